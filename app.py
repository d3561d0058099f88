# ============================================
#     CodeCollab — Main Application
# ============================================

# -------------------------------------------------
#   EVENTLET PATCH (REQUIRED FOR GUNICORN)
# -------------------------------------------------
import eventlet
eventlet.monkey_patch()

import os

# -----------------------------------------
#   ENV VARIABLES (.env / secrets)
# -----------------------------------------
from dotenv import load_dotenv
load_dotenv()

from collab.config import DATA_DIR
from collab.server import create_app
from collab.logger import log_info, log_error

# =========================================
#   DATA DIR + APPLICATION
# =========================================
# DATA_DIR holds users, rooms, chat logs and code versions
try:
    os.makedirs(DATA_DIR, exist_ok=True)
    log_info("app", f"Persistent DATA_DIR ready at: {DATA_DIR}")
except OSError as e:
    log_error("app", f"Fatal error creating DATA_DIR ({DATA_DIR}): {e}")
    raise

app, socketio = create_app()

_store = app.extensions["collab_store"]
log_info("app", f"Store loaded: {len(_store.users)} users, {len(_store.rooms)} rooms.")

# =========================================
#   RUN SERVER (DEV / PROD)
# =========================================
if __name__ == "__main__":
    port = int(os.environ.get("PORT", 3000))
    log_info("app", f"Server starting on port {port}...")
    socketio.run(app, host="0.0.0.0", port=port)
