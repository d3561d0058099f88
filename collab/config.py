# ============================================
#     CodeCollab — Global Configuration
# ============================================

import os

# =========================================
#   ENVIRONMENT
# =========================================
# Expected values: "dev", "test", "prod"
ENV = os.getenv("ENV", "dev").lower()

IS_PROD = ENV == "prod"

# =========================================
#   PATHS (everything persistent lives under PERSIST_ROOT)
# =========================================
# All persistent writes go to PERSIST_ROOT.
#
# Override options:
#   - COLLAB_PERSIST_ROOT=/custom/path
#   - COLLAB_DATA_DIR=/custom/path   (alias)
#
# Dev default: ./var/data inside the project

# Project root = one level above /collab
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

PERSIST_ROOT = (
    os.getenv("COLLAB_PERSIST_ROOT")
    or os.getenv("COLLAB_DATA_DIR")
    or ("/var/data" if IS_PROD else os.path.join(PROJECT_ROOT, "var", "data"))
)

DATA_DIR = PERSIST_ROOT

# Logs persistence
LOG_DIR = os.path.join(PERSIST_ROOT, "logs")
DEFAULT_LOG_FILE = os.path.join(LOG_DIR, "collab.log")
LOG_FILE = os.getenv("COLLAB_LOG_FILE", DEFAULT_LOG_FILE)

LOG_LEVEL = os.getenv("COLLAB_LOG_LEVEL", "INFO").upper()
LOG_RETENTION_DAYS = int(os.getenv("COLLAB_LOG_RETENTION_DAYS", "30"))
LOG_TO_CONSOLE = os.getenv("COLLAB_LOG_CONSOLE", "0" if IS_PROD else "1") == "1"

# =========================================
#   AUTH TOKENS (JWT)
# =========================================
# Must be set in your environment (.env / secrets):
#   JWT_SECRET_KEY=long_random_secret
#
# In production a missing key is fatal (see auth.get_secret_key).
# In dev, an insecure fallback key is used and a warning is logged.

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = "HS256"
DEV_FALLBACK_SECRET = "dev-insecure-secret-change-me"

TOKEN_TTL_SECONDS = int(os.getenv("TOKEN_TTL_SECONDS", str(7 * 24 * 3600)))
TOKEN_COOKIE_NAME = "token"

# =========================================
#   TRANSPORT
# =========================================
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if o.strip()
]

# None → Flask-SocketIO picks eventlet when installed
SOCKETIO_ASYNC_MODE = os.getenv("SOCKETIO_ASYNC_MODE") or None

# =========================================
#   ROOMS / EDITOR
# =========================================
SUPPORTED_LANGUAGES = (
    "javascript",
    "python",
    "java",
    "cpp",
    "html",
    "css",
    "typescript",
)

DEFAULT_LANGUAGE = "javascript"
DEFAULT_CODE = "// Start coding here... "
DEFAULT_MAX_PARTICIPANTS = 10
ROOM_ID_LENGTH = 8

MAX_MESSAGE_LENGTH = 2000       # Hard cap on chat message size (chars)
MAX_CODE_LENGTH = 500_000       # Hard cap on a single buffer (chars)
HISTORY_LIMIT = 100             # Default chat history page size
CODE_HISTORY_PAGE_SIZE = 10

# =========================================
#   USERS
# =========================================
MIN_PASSWORD_LENGTH = 6
DEFAULT_AVATAR = "https://ui-avatars.com/api/?name=User&background=random"

# =========================================
#   AI ASSISTANT (OpenAI)
# =========================================
# OPENAI_API_KEY is read lazily by the OpenAI client itself.
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
