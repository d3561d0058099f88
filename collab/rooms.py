# ============================================
#     CodeCollab — Room Records
#     create / lookup / buffer + language overwrite / soft delete
# ============================================

import re
import uuid

from collab.config import (
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
    DEFAULT_CODE,
    DEFAULT_MAX_PARTICIPANTS,
    ROOM_ID_LENGTH,
)
from collab.storage import now_iso
from collab.users import add_room_to_user, get_user, public_profile
from collab.logger import log_info, log_warning


ROOM_ID_REGEX = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
MAX_ROOM_NAME_LENGTH = 80


def is_valid_room_id(room_id) -> bool:
    return isinstance(room_id, str) and bool(ROOM_ID_REGEX.fullmatch(room_id))


def is_supported_language(language) -> bool:
    return language in SUPPORTED_LANGUAGES


def generate_room_id(store) -> str:
    while True:
        room_id = uuid.uuid4().hex[:ROOM_ID_LENGTH]
        if store.rooms.get(room_id) is None:
            return room_id


# =====================================================
#   CREATE
# =====================================================

def create_room(store, creator, name, description="", language=None,
                max_participants=DEFAULT_MAX_PARTICIPANTS):
    """
    Create a room with its creator as the first active participant.

    Returns {"success": True, "room": <doc>} or {"error": <code>} where code
    is one of "invalid_name", "invalid_language".
    """
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name or len(name) > MAX_ROOM_NAME_LENGTH:
        return {"error": "invalid_name"}

    language = language or DEFAULT_LANGUAGE
    if not is_supported_language(language):
        return {"error": "invalid_language"}

    now = now_iso()
    room = {
        "roomId": generate_room_id(store),
        "name": name,
        "description": (description or "").strip() if isinstance(description, str) else "",
        "creator": creator["_id"],
        "participants": [
            {
                "userId": creator["_id"],
                "userName": creator.get("name"),
                "joinedAt": now,
                "isActive": True,
            }
        ],
        "currentCode": DEFAULT_CODE,
        "language": language,
        "isActive": True,
        "maxParticipants": int(max_participants),
        "createdAt": now,
        "updatedAt": now,
    }

    store.rooms.insert(room["roomId"], room)
    add_room_to_user(store, creator["_id"], room["roomId"])

    log_info("rooms", f"Room created: {room['roomId']} ({name!r}) by {creator['_id']}")
    return {"success": True, "room": room}


# =====================================================
#   LOOKUPS
# =====================================================

def get_room(store, room_id):
    """
    Return the room document, or None when it does not exist or has been
    soft-deleted.
    """
    if not is_valid_room_id(room_id):
        return None
    room = store.rooms.get(room_id)
    if not room or not room.get("isActive", True):
        return None
    return room


def list_user_rooms(store, user_id):
    """Active rooms where `user_id` has a participant entry, newest first."""
    uid = str(user_id)
    rooms = store.rooms.find(
        lambda r: r.get("isActive", True)
        and any(p.get("userId") == uid for p in r.get("participants", []))
    )
    rooms.sort(key=lambda r: r.get("updatedAt") or "", reverse=True)
    return rooms


# =====================================================
#   OVERWRITES (last writer wins)
# =====================================================

def _overwrite(store, room_id, fields):
    def _apply(doc):
        if not doc.get("isActive", True):
            return False
        doc.update(fields)
        doc["updatedAt"] = now_iso()
        return True

    room = store.rooms.update(room_id, _apply)
    if room is None or not room.get("isActive", True):
        return None
    return room


def set_room_code(store, room_id, code):
    return _overwrite(store, room_id, {"currentCode": code})


def set_room_language(store, room_id, language):
    return _overwrite(store, room_id, {"language": language})


def set_room_content(store, room_id, code, language):
    return _overwrite(store, room_id, {"currentCode": code, "language": language})


# =====================================================
#   SOFT DELETE
# =====================================================

def soft_delete_room(store, room_id, user_id):
    """
    Mark the room inactive. Only the creator may do this.
    Returns {"success": True} or {"error": "not_found" | "forbidden"}.
    """
    room = get_room(store, room_id)
    if not room:
        return {"error": "not_found"}

    if str(room.get("creator")) != str(user_id):
        log_warning("rooms", f"Delete refused: {user_id} is not creator of {room_id}")
        return {"error": "forbidden"}

    def _apply(doc):
        doc["isActive"] = False
        doc["updatedAt"] = now_iso()
        return True

    store.rooms.update(room_id, _apply)
    log_info("rooms", f"Room soft-deleted: {room_id}")
    return {"success": True}


# =====================================================
#   PROJECTIONS
# =====================================================

def participant_view(participant):
    return {
        "userId": participant.get("userId"),
        "userName": participant.get("userName"),
        "joinedAt": participant.get("joinedAt"),
        "isActive": bool(participant.get("isActive")),
    }


def room_snapshot(room):
    """
    Payload of `room_data`, sent to a connection right after it joins.
    """
    return {
        "currentCode": room.get("currentCode", ""),
        "language": room.get("language", DEFAULT_LANGUAGE),
        "participants": [participant_view(p) for p in room.get("participants", [])],
    }


def room_details(store, room):
    """
    Room document with creator and participant profiles populated,
    as returned by the HTTP routes.
    """
    participants = []
    for p in room.get("participants", []):
        view = participant_view(p)
        view["user"] = public_profile(get_user(store, p.get("userId")))
        participants.append(view)

    return {
        "roomId": room["roomId"],
        "name": room.get("name"),
        "description": room.get("description", ""),
        "creator": public_profile(get_user(store, room.get("creator"))),
        "participants": participants,
        "currentCode": room.get("currentCode", ""),
        "language": room.get("language", DEFAULT_LANGUAGE),
        "isActive": room.get("isActive", True),
        "maxParticipants": room.get("maxParticipants", DEFAULT_MAX_PARTICIPANTS),
        "createdAt": room.get("createdAt"),
        "updatedAt": room.get("updatedAt"),
    }
