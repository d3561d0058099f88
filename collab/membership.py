# ============================================
#   CodeCollab — Room Membership Authority
# ============================================
#
# Single source of truth for "may this user act in this room".
#
# Participant entries are never removed: isActive=False means
# "joined before, not connected now", which is distinct from
# "never joined" (no entry at all).
#
# Membership is re-read from the store on every state-changing event;
# it is never cached on the connection.

from collab.config import DEFAULT_MAX_PARTICIPANTS
from collab.storage import now_iso
from collab.logger import log_info


ADMITTED = "admitted"
REACTIVATED = "reactivated"
UNCHANGED = "unchanged"


def find_participant(room, user_id):
    if not room:
        return None
    uid = str(user_id)
    for p in room.get("participants", []):
        if p.get("userId") == uid:
            return p
    return None


def is_active_participant(room, user_id) -> bool:
    p = find_participant(room, user_id)
    return bool(p and p.get("isActive"))


def admit_or_reactivate(store, room_id, user_id, user_name):
    """
    Make `user_id` an active participant of `room_id`.

    - no entry      → append {userId, userName, joinedAt, isActive=True}
    - inactive entry → flip to active
    - active entry   → nothing

    The check and the write happen in one locked update, so two concurrent
    admits of the same user can never produce two entries.

    Returns {"status": ADMITTED | REACTIVATED | UNCHANGED, "room": <doc>}
    or {"error": "not_found" | "room_full"}.
    """
    uid = str(user_id)
    outcome = {}

    def _apply(doc):
        if not doc.get("isActive", True):
            outcome["error"] = "not_found"
            return False

        existing = find_participant(doc, uid)
        if existing is not None:
            if existing.get("isActive"):
                outcome["status"] = UNCHANGED
                return False
            existing["isActive"] = True
            if user_name:
                existing["userName"] = user_name
            outcome["status"] = REACTIVATED
            return True

        participants = doc.setdefault("participants", [])
        if len(participants) >= int(doc.get("maxParticipants") or DEFAULT_MAX_PARTICIPANTS):
            outcome["error"] = "room_full"
            return False

        participants.append({
            "userId": uid,
            "userName": user_name,
            "joinedAt": now_iso(),
            "isActive": True,
        })
        outcome["status"] = ADMITTED
        return True

    room = store.rooms.update(room_id, _apply)
    if room is None:
        return {"error": "not_found"}
    if "error" in outcome:
        return {"error": outcome["error"]}

    if outcome["status"] != UNCHANGED:
        log_info("membership", f"{outcome['status']} {uid} in {room_id}")
    return {"status": outcome["status"], "room": room}


def deactivate(store, room_id, user_id):
    """
    Flip the participant entry to inactive. No-op when the entry (or the
    room) is absent. Returns the room document, or None.
    """
    uid = str(user_id)

    def _apply(doc):
        p = find_participant(doc, uid)
        if p is None or not p.get("isActive"):
            return False
        p["isActive"] = False
        return True

    return store.rooms.update(room_id, _apply)
