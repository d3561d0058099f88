# ============================================
#   CodeCollab — Application Factory
# ============================================

from flask import Flask, jsonify
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException

from collab.config import DATA_DIR, CORS_ORIGINS, SOCKETIO_ASYNC_MODE, IS_PROD
from collab.api import BLUEPRINTS
from collab.errors import ApiError
from collab.events import EventRouter
from collab.sockets import register_socket_handlers
from collab.state import SessionDirectory
from collab.storage import Storage
from collab.logger import log_info, log_exception


def _register_error_handlers(app):

    @app.errorhandler(ApiError)
    def on_api_error(e):
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(HTTPException)
    def on_http_error(e):
        return jsonify({"success": False, "message": e.description}), e.code

    @app.errorhandler(Exception)
    def on_unexpected(e):
        log_exception("server", f"Unhandled error: {e}")
        message = "Internal server error" if IS_PROD else str(e)
        return jsonify({"success": False, "message": message}), 500


def create_app(store=None, sessions=None, async_mode=SOCKETIO_ASYNC_MODE):
    """
    Build the Flask app and its Socket.IO server.

    The store and the session directory are created here unless injected.
    Returns (app, socketio).
    """
    store = store or Storage(DATA_DIR)
    sessions = sessions or SessionDirectory()

    app = Flask(__name__)
    app.extensions["collab_store"] = store
    app.extensions["collab_sessions"] = sessions

    for bp in BLUEPRINTS:
        app.register_blueprint(bp)
    _register_error_handlers(app)

    # async_handlers=False: events of one connection are handled strictly in
    # arrival order; other connections are not blocked.
    socketio = SocketIO(
        app,
        cors_allowed_origins=CORS_ORIGINS,
        async_mode=async_mode,
        async_handlers=False,
    )

    router = EventRouter(store, sessions)
    app.extensions["collab_router"] = router
    register_socket_handlers(socketio, router)

    @app.get("/")
    def index():
        return jsonify({"message": "Code Collab Project"})

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "connections": sessions.connection_count})

    log_info("server", f"Application created (async_mode={socketio.async_mode}).")
    return app, socketio
