# ============================================
#     CodeCollab — Chat Log
#     Append-only per-room message history
# ============================================

import uuid

from collab.config import HISTORY_LIMIT
from collab.storage import now_iso
from collab.users import get_user, public_profile
from collab.logger import log_info


def normalize_message(msg: dict) -> dict:
    """
    Fill in the fields every stored chat message carries
    (_id, type, content, createdAt).
    """
    m = dict(msg or {})

    m.setdefault("_id", uuid.uuid4().hex)
    m.setdefault("type", "text")
    m.setdefault("content", "")
    m.setdefault("createdAt", now_iso())

    return m


def append_message(store, room_id, sender_id, content):
    """
    Persist one chat message and return the stored record.
    Raises StorageError when the write fails.
    """
    record = normalize_message({
        "room": room_id,
        "sender": str(sender_id),
        "content": content,
        "type": "text",
    })
    total = store.messages.append(room_id, record)
    log_info("history", f"Message appended in {room_id} (total={total}).")
    return record


def enrich_message(store, record, sender=None):
    """
    Replace the sender id with the sender's public profile
    ({_id, name, email, avatar}).
    """
    enriched = dict(record)
    if sender is None:
        sender = get_user(store, record.get("sender"))
    enriched["sender"] = public_profile(sender) or {"_id": record.get("sender")}
    return enriched


def get_room_history(store, room_id, limit=HISTORY_LIMIT):
    """
    The newest `limit` messages of a room, oldest first, sender-enriched.
    """
    msgs = store.messages.read(room_id)
    if limit is not None and limit < len(msgs):
        msgs = msgs[-limit:]

    profiles = {}
    result = []
    for m in msgs:
        sid = m.get("sender")
        if sid not in profiles:
            profiles[sid] = get_user(store, sid)
        result.append(enrich_message(store, m, sender=profiles[sid]))
    return result
