# ============================================
#   CodeCollab — Token Authentication (JWT)
#   Shared by the HTTP routes and the Socket.IO handshake
# ============================================

import time
from functools import wraps

import jwt
from flask import request, g, current_app

from collab.config import (
    IS_PROD,
    JWT_SECRET_KEY,
    JWT_ALGORITHM,
    DEV_FALLBACK_SECRET,
    TOKEN_TTL_SECONDS,
    TOKEN_COOKIE_NAME,
)
from collab.errors import ApiError
from collab.users import get_user
from collab.logger import log_warning

_warned_fallback = False


def get_secret_key() -> str:
    global _warned_fallback

    if JWT_SECRET_KEY:
        return JWT_SECRET_KEY

    # In production, a signing key MUST be configured.
    if IS_PROD:
        raise RuntimeError("JWT_SECRET_KEY is not set")

    if not _warned_fallback:
        log_warning("auth", "JWT_SECRET_KEY missing, using insecure dev key.")
        _warned_fallback = True
    return DEV_FALLBACK_SECRET


# =====================================================
#   ISSUE / DECODE
# =====================================================

def issue_token(user_id, ttl=TOKEN_TTL_SECONDS) -> str:
    now = int(time.time())
    claims = {"id": str(user_id), "iat": now, "exp": now + int(ttl)}
    return jwt.encode(claims, get_secret_key(), algorithm=JWT_ALGORITHM)


def decode_token(token):
    """
    Return the token claims, or None when the token is absent, malformed,
    badly signed or expired.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        return jwt.decode(token, get_secret_key(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        log_warning("auth", f"Rejected token: {e}")
        return None


def resolve_user(store, token):
    """Resolve a token to an existing user record, or None."""
    claims = decode_token(token)
    if not claims:
        return None
    return get_user(store, claims.get("id"))


# =====================================================
#   TOKEN EXTRACTION
# =====================================================

def token_from_handshake(auth):
    """
    Socket.IO handshake: `auth` payload first, then ?token=, then the cookie.
    """
    if isinstance(auth, dict) and auth.get("token"):
        return str(auth["token"])
    return request.args.get("token") or request.cookies.get(TOKEN_COOKIE_NAME)


def token_from_request():
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return request.cookies.get(TOKEN_COOKIE_NAME)


# =====================================================
#   HTTP GUARD
# =====================================================

def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        store = current_app.extensions["collab_store"]
        user = resolve_user(store, token_from_request())
        if not user:
            raise ApiError(401, "Unauthorized")
        g.user = user
        return view(*args, **kwargs)

    return wrapper
