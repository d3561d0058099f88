# ============================================
#     CodeCollab — Saved Code Versions
# ============================================
#
# Manual saves create numbered versions (1, 2, 3 ...) per room and also
# overwrite the room's live buffer. A manual save and a live code_change
# race freely: whichever is committed last is the room content.

import math
import uuid

from collab.config import CODE_HISTORY_PAGE_SIZE
from collab.rooms import set_room_content
from collab.storage import now_iso
from collab.users import get_user, public_profile
from collab.logger import log_info


def _populate(store, record):
    out = dict(record)
    out["updatedBy"] = public_profile(get_user(store, record.get("updatedBy"))) or {
        "_id": record.get("updatedBy"),
    }
    return out


def save_code(store, room, user, content, language=None, change_description=None):
    """
    Append a new version for `room` and make it the room's current content.
    Returns the populated version record.
    """
    room_id = room["roomId"]
    language = language or room.get("language")

    versions = store.code.read(room_id)
    last_version = max((v.get("version", 0) for v in versions), default=0)

    record = {
        "_id": uuid.uuid4().hex,
        "room": room_id,
        "content": content,
        "language": language,
        "updatedBy": user["_id"],
        "version": last_version + 1,
        "changeDescription": change_description or "Code Updated",
        "createdAt": now_iso(),
    }
    store.code.append(room_id, record)
    set_room_content(store, room_id, content, language)

    log_info("code", f"Saved version {record['version']} of {room_id} by {user['_id']}")
    return _populate(store, record)


def get_code_history(store, room_id, page=1, limit=CODE_HISTORY_PAGE_SIZE):
    """Newest first, paginated."""
    page = max(int(page), 1)
    limit = max(int(limit), 1)

    versions = sorted(
        store.code.read(room_id),
        key=lambda v: v.get("version", 0),
        reverse=True,
    )
    total = len(versions)
    start = (page - 1) * limit
    chunk = versions[start:start + limit]

    return {
        "codes": [_populate(store, v) for v in chunk],
        "totalPages": math.ceil(total / limit),
        "currentPage": page,
        "total": total,
    }


def get_code_version(store, room_id, version):
    for v in store.code.read(room_id):
        if v.get("version") == version:
            return _populate(store, v)
    return None
