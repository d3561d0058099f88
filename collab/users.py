# ============================================
#     CodeCollab — User Records
#     + Email / password validation
#     + Public profile projection
# ============================================

import re
import uuid

from werkzeug.security import generate_password_hash, check_password_hash

from collab.config import DEFAULT_AVATAR, MIN_PASSWORD_LENGTH
from collab.storage import now_iso
from collab.logger import log_info, log_warning


# =====================================================
#   VALIDATION
# =====================================================

EMAIL_REGEX = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")


def normalize_email(email) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def is_valid_email(email) -> bool:
    return bool(EMAIL_REGEX.fullmatch(normalize_email(email)))


def validate_registration(name, email, password):
    """
    Returns a list of {"field", "msg"} problems (empty when valid).
    """
    errors = []
    if not isinstance(name, str) or not name.strip():
        errors.append({"field": "name", "msg": "Name is required"})
    if not is_valid_email(email):
        errors.append({"field": "email", "msg": "Please provide a valid email"})
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors.append({
            "field": "password",
            "msg": f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        })
    return errors


# =====================================================
#   LOOKUPS
# =====================================================

def get_user(store, user_id):
    if not user_id:
        return None
    return store.users.get(str(user_id))


def find_user_by_email(store, email):
    target = normalize_email(email)
    if not target:
        return None
    matches = store.users.find(lambda u: u.get("email") == target)
    return matches[0] if matches else None


def public_profile(user):
    """
    The fields other users may see: {_id, name, email, avatar}.
    """
    if not user:
        return None
    return {
        "_id": user["_id"],
        "name": user.get("name"),
        "email": user.get("email"),
        "avatar": user.get("avatar") or DEFAULT_AVATAR,
    }


# =====================================================
#   CREATE / AUTHENTICATE / UPDATE
# =====================================================

def create_user(store, name, email, password):
    """
    Register a new user.

    Returns {"success": True, "user": <record>} or {"error": "user_exists"}.
    Input must already have passed validate_registration().
    """
    email = normalize_email(email)

    if find_user_by_email(store, email):
        log_warning("users", f"Registration refused, email already used: {email}")
        return {"error": "user_exists"}

    user = {
        "_id": uuid.uuid4().hex,
        "name": name.strip(),
        "email": email,
        "password": generate_password_hash(password),
        "avatar": DEFAULT_AVATAR,
        "rooms": [],
        "createdAt": now_iso(),
    }
    store.users.insert(user["_id"], user)

    log_info("users", f"User registered: {email} (id={user['_id']})")
    return {"success": True, "user": user}


def authenticate(store, email, password):
    """Return the user record when the credentials match, else None."""
    user = find_user_by_email(store, email)
    if not user or not isinstance(password, str):
        return None
    if not check_password_hash(user.get("password", ""), password):
        return None
    return user


def update_profile(store, user_id, name=None, avatar=None):
    def _apply(doc):
        changed = False
        if isinstance(name, str) and name.strip() and name.strip() != doc.get("name"):
            doc["name"] = name.strip()
            changed = True
        if isinstance(avatar, str) and avatar.strip() and avatar.strip() != doc.get("avatar"):
            doc["avatar"] = avatar.strip()
            changed = True
        return changed

    return store.users.update(str(user_id), _apply)


def add_room_to_user(store, user_id, room_id):
    def _apply(doc):
        rooms = doc.setdefault("rooms", [])
        if room_id in rooms:
            return False
        rooms.append(room_id)
        return True

    return store.users.update(str(user_id), _apply)
