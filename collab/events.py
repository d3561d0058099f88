# ============================================
#   CodeCollab — Realtime Event Router
#   Connection auth + per-event handlers
# ============================================
#
# Per connection:
#   unauthenticated → authenticated → (no room) ⇄ in-room → closed
#
# Handlers never touch the transport. Each one receives a
# ConnectionContext and the raw event payload, performs its store writes,
# and returns an Outcome describing which Socket.IO groups to leave/join
# and what to emit to whom. sockets.py applies the Outcome.
#
# Concurrent code_change events are last-writer-wins: the buffer is
# overwritten, never merged.

import time

from collab.config import MAX_CODE_LENGTH, MAX_MESSAGE_LENGTH
from collab.auth import resolve_user
from collab.rooms import (
    get_room,
    is_valid_room_id,
    is_supported_language,
    room_snapshot,
    set_room_code,
    set_room_language,
)
from collab.membership import admit_or_reactivate, deactivate, is_active_participant
from collab.history import append_message, enrich_message
from collab.users import add_room_to_user, get_user
from collab.storage import StorageError
from collab.logger import log_info, log_warning, log_exception, room_logger


ROOM_NOT_FOUND = "Room not found"
NOT_A_MEMBER = "You are not a member of this room"
INVALID_PAYLOAD = "Invalid payload"

SIGNALING_EVENTS = (
    "webrtc_offer",
    "webrtc_answer",
    "webrtc_ice_candidate",
)

# start_call → call_started, end_call → call_ended
CALL_EVENTS = {
    "start_call": "call_started",
    "end_call": "call_ended",
}

# Generic message sent to the sender when a store write fails
FAILURE_MESSAGES = {
    "join_room": "Failed to join room",
    "code_change": "Failed to update code",
    "cursor_position": "Failed to update cursor",
    "send_message": "Failed to send message",
    "language_change": "Failed to change language",
}


class ConnectionContext:
    """Authenticated identity of one live connection."""

    def __init__(self, sid, user_id, user_name):
        self.sid = sid
        self.user_id = str(user_id)
        self.user_name = user_name

    def __repr__(self):
        return f"<ConnectionContext sid={self.sid} user={self.user_id}>"


class Outcome:
    """
    What a handler wants done on the transport.

    emits: list of {"event", "payload", "target", "room"} where target is
      "sender" – the triggering connection only
      "others" – every connection in `room` except the sender
      "room"   – every connection in `room`, sender included
    """

    def __init__(self):
        self.emits = []
        self.joins = []
        self.leaves = []

    def to_sender(self, event, payload):
        self.emits.append({"event": event, "payload": payload, "target": "sender", "room": None})

    def to_others(self, room_id, event, payload):
        self.emits.append({"event": event, "payload": payload, "target": "others", "room": room_id})

    def to_room(self, room_id, event, payload):
        self.emits.append({"event": event, "payload": payload, "target": "room", "room": room_id})

    def error(self, event, message):
        self.to_sender(event, {"message": message})

    def merge(self, other):
        self.emits.extend(other.emits)
        self.joins.extend(other.joins)
        self.leaves.extend(other.leaves)
        return self

    def find(self, event):
        return [e for e in self.emits if e["event"] == event]

    @property
    def is_empty(self):
        return not (self.emits or self.joins or self.leaves)


def _room_id_of(data):
    if not isinstance(data, dict):
        return None
    room_id = data.get("roomId")
    return room_id if is_valid_room_id(room_id) else None


class EventRouter:
    """
    Routes named realtime events to handlers.

    `store` is the document store (collab.storage.Storage), `sessions` the
    process-wide SessionDirectory. Both are injected so the router can be
    exercised without a live transport.
    """

    def __init__(self, store, sessions, clock=time.time):
        self.store = store
        self.sessions = sessions
        self.clock = clock

        self._handlers = {
            "join_room": self.join_room,
            "code_change": self.code_change,
            "cursor_position": self.cursor_position,
            "send_message": self.send_message,
            "language_change": self.language_change,
            "typing_start": self.typing_start,
            "typing_stop": self.typing_stop,
            "leave_room": self.leave_room,
        }
        for event in SIGNALING_EVENTS:
            self._handlers[event] = self._make_relay(event, event)
        for event, relayed in CALL_EVENTS.items():
            self._handlers[event] = self._make_relay(event, relayed)

    @property
    def events(self):
        return tuple(self._handlers)

    # =====================================================
    #   CONNECTION AUTHENTICATOR
    # =====================================================
    def authenticate(self, sid, token):
        """
        Resolve the handshake token and bind the identity to `sid`.
        Returns the ConnectionContext, or None to refuse the connection.
        """
        try:
            user = resolve_user(self.store, token)
        except Exception:
            log_exception("events", f"Token resolution failed for sid={sid}")
            user = None

        if not user:
            log_warning("events", f"Connection refused (authentication): sid={sid}")
            return None

        self.sessions.bind(sid, user["_id"], user.get("name"))
        log_info("events", f'Client connected: sid={sid} user="{user.get("name")}" ({user["_id"]})')
        return ConnectionContext(sid, user["_id"], user.get("name"))

    def context(self, sid):
        ident = self.sessions.identity(sid)
        if not ident:
            return None
        return ConnectionContext(sid, ident["user_id"], ident["user_name"])

    # =====================================================
    #   DISPATCH (one failure boundary per event)
    # =====================================================
    def dispatch(self, event, ctx, data=None):
        handler = self._handlers.get(event)
        if handler is None:
            log_warning("events", f"Unknown event {event!r} from sid={ctx.sid}")
            return Outcome()

        try:
            return handler(ctx, data)
        except Exception:
            log_exception("events", f"Handler {event} failed for sid={ctx.sid}")
            outcome = Outcome()
            message = FAILURE_MESSAGES.get(event)
            if message:
                outcome.error("error", message)
            return outcome

    def _load_member_room(self, ctx, room_id, outcome, silent=False):
        """
        Fetch the room and check the sender is an active participant.
        Returns the room, or None after recording the matching error.
        """
        room = get_room(self.store, room_id)
        if room is None:
            if not silent:
                outcome.error("room_found_error", ROOM_NOT_FOUND)
            return None

        if not is_active_participant(room, ctx.user_id):
            room_logger("events", room_id, ctx.sid).warning(f"Denied: {ctx.user_id} is not an active participant")
            if not silent:
                outcome.error("user_found_error", NOT_A_MEMBER)
            return None

        return room

    # =====================================================
    #   JOIN
    # =====================================================
    def join_room(self, ctx, data):
        outcome = Outcome()

        room_id = _room_id_of(data)
        if room_id is None:
            outcome.error("room_found_error", ROOM_NOT_FOUND)
            return outcome

        room = get_room(self.store, room_id)
        if room is None:
            room_logger("events", room_id, ctx.sid).warning("join_room: room not found")
            outcome.error("room_found_error", ROOM_NOT_FOUND)
            return outcome

        result = admit_or_reactivate(self.store, room_id, ctx.user_id, ctx.user_name)
        if result.get("error") == "room_full":
            outcome.error("error", "Room is full")
            return outcome
        if "error" in result:
            outcome.error("room_found_error", ROOM_NOT_FOUND)
            return outcome

        try:
            add_room_to_user(self.store, ctx.user_id, room_id)
        except StorageError:
            log_exception("events", f"Could not record {room_id} on user {ctx.user_id}")

        previous = self.sessions.get(ctx.sid)
        rejoin = bool(previous) and previous.get("room_id") == room_id

        # Switching rooms on the same connection: leave the old one first
        if previous and not rejoin:
            outcome.merge(self._leave(ctx, previous["room_id"], "left the room"))

        # Already present through this or another connection: no announcement
        announce = not rejoin and not self._other_connections_in_room(ctx, room_id)

        self.sessions.put(ctx.sid, ctx.user_id, ctx.user_name, room_id)
        outcome.joins.append(room_id)

        if announce:
            outcome.to_others(room_id, "user_joined", {
                "userId": ctx.user_id,
                "userName": ctx.user_name,
                "message": f"{ctx.user_name} joined the room",
            })
        outcome.to_sender("room_data", room_snapshot(result["room"]))

        room_logger("events", room_id, ctx.sid).info(f'"{ctx.user_name}" joined ({result["status"]})')
        return outcome

    # =====================================================
    #   CODE / CURSOR / LANGUAGE
    # =====================================================
    def code_change(self, ctx, data):
        outcome = Outcome()

        room_id = _room_id_of(data)
        code = data.get("code") if isinstance(data, dict) else None
        if room_id is None or not isinstance(code, str):
            outcome.error("error", INVALID_PAYLOAD)
            return outcome

        if len(code) > MAX_CODE_LENGTH:
            outcome.error("error", "Code is too large")
            return outcome

        if self._load_member_room(ctx, room_id, outcome) is None:
            return outcome

        if set_room_code(self.store, room_id, code) is None:
            outcome.error("room_found_error", ROOM_NOT_FOUND)
            return outcome

        outcome.to_others(room_id, "code_update", {
            "code": code,
            "userId": ctx.user_id,
            "userName": ctx.user_name,
            "timeStamp": int(self.clock() * 1000),
        })
        return outcome

    def cursor_position(self, ctx, data):
        outcome = Outcome()

        room_id = _room_id_of(data)
        position = data.get("position") if isinstance(data, dict) else None
        if room_id is None or not isinstance(position, dict):
            outcome.error("error", INVALID_PAYLOAD)
            return outcome

        if self._load_member_room(ctx, room_id, outcome) is None:
            return outcome

        outcome.to_others(room_id, "cursor_update", {
            "position": position,
            "userId": ctx.user_id,
            "userName": ctx.user_name,
        })
        return outcome

    def language_change(self, ctx, data):
        outcome = Outcome()

        room_id = _room_id_of(data)
        language = data.get("language") if isinstance(data, dict) else None
        if room_id is None:
            outcome.error("error", INVALID_PAYLOAD)
            return outcome

        if not is_supported_language(language):
            outcome.error("error", "Unsupported language")
            return outcome

        if self._load_member_room(ctx, room_id, outcome) is None:
            return outcome

        if set_room_language(self.store, room_id, language) is None:
            outcome.error("room_found_error", ROOM_NOT_FOUND)
            return outcome

        outcome.to_room(room_id, "language_updated", {
            "language": language,
            "changedBy": ctx.user_name,
        })
        room_logger("events", room_id, ctx.sid).info(f'"{ctx.user_name}" set language to {language}')
        return outcome

    # =====================================================
    #   CHAT
    # =====================================================
    def send_message(self, ctx, data):
        outcome = Outcome()

        room_id = _room_id_of(data)
        text = data.get("message") if isinstance(data, dict) else None
        if room_id is None or not isinstance(text, str):
            outcome.error("error", INVALID_PAYLOAD)
            return outcome

        if not text.strip():
            outcome.error("error", "Message cannot be empty")
            return outcome

        if len(text) > MAX_MESSAGE_LENGTH:
            outcome.error("error", f"Message too long ({len(text)} chars)")
            return outcome

        if self._load_member_room(ctx, room_id, outcome) is None:
            return outcome

        record = append_message(self.store, room_id, ctx.user_id, text)

        sender = get_user(self.store, ctx.user_id) or {"_id": ctx.user_id, "name": ctx.user_name}
        outcome.to_room(room_id, "receive_message", enrich_message(self.store, record, sender=sender))
        return outcome

    # =====================================================
    #   SIGNALING (WebRTC + call lifecycle)
    # =====================================================
    def _make_relay(self, event, relayed_event):
        def relay(ctx, data):
            return self.relay_signal(ctx, data, event, relayed_event)
        return relay

    def relay_signal(self, ctx, data, event, relayed_event):
        """
        Relay an opaque signaling payload to the other connections.
        Every failure is silent: no error event, no broadcast.
        """
        outcome = Outcome()

        room_id = _room_id_of(data)
        if room_id is None:
            return outcome

        room = self._load_member_room(ctx, room_id, outcome, silent=True)
        if room is None:
            return outcome

        if event in CALL_EVENTS:
            payload = {"userId": ctx.user_id, "userName": ctx.user_name}
        else:
            payload = {"payload": data.get("payload"), "userId": ctx.user_id}

        outcome.to_others(room_id, relayed_event, payload)
        return outcome

    # =====================================================
    #   TYPING
    # =====================================================
    def _typing(self, ctx, data, is_typing):
        outcome = Outcome()
        room_id = _room_id_of(data)
        if room_id is None:
            return outcome

        outcome.to_others(room_id, "user_typing", {
            "userName": ctx.user_name,
            "isTyping": is_typing,
        })
        return outcome

    def typing_start(self, ctx, data):
        return self._typing(ctx, data, True)

    def typing_stop(self, ctx, data):
        return self._typing(ctx, data, False)

    # =====================================================
    #   LEAVE / DISCONNECT (best effort)
    # =====================================================
    def _other_connections_in_room(self, ctx, room_id):
        return [
            sid for sid in self.sessions.sids_for_user(ctx.user_id)
            if sid != ctx.sid and self.sessions.get(sid).get("room_id") == room_id
        ]

    def _leave(self, ctx, room_id, verb):
        outcome = Outcome()
        log = room_logger("events", room_id, ctx.sid)

        entry = self.sessions.get(ctx.sid)
        if entry and entry.get("room_id") == room_id:
            self.sessions.remove(ctx.sid)
        outcome.leaves.append(room_id)

        # Same user still in the room from another tab: stays an active participant
        if self._other_connections_in_room(ctx, room_id):
            log.info(f'"{ctx.user_name}" {verb} (other connections remain)')
            return outcome

        try:
            deactivate(self.store, room_id, ctx.user_id)
        except Exception:
            # The connection is still torn down; the flag stays stale.
            log.exception(f"Could not deactivate {ctx.user_id}")

        outcome.to_others(room_id, "user_left", {
            "userId": ctx.user_id,
            "userName": ctx.user_name,
            "message": f"{ctx.user_name} {verb}",
        })

        log.info(f'"{ctx.user_name}" {verb}')
        return outcome

    def leave_room(self, ctx, data):
        """
        Leave the room this connection is bound to. A roomId naming any
        other room is ignored.
        """
        entry = self.sessions.get(ctx.sid)
        bound = entry.get("room_id") if entry else None
        if bound is None:
            return Outcome()

        requested = _room_id_of(data)
        if requested is not None and requested != bound:
            room_logger("events", requested, ctx.sid).warning(f"leave_room ignored: connection is bound to {bound}")
            return Outcome()

        return self._leave(ctx, bound, "left the room")

    def disconnect(self, sid):
        """
        Transport-level disconnect: same end state as leave_room for the
        room recorded in the Session Directory, then forget the identity.
        """
        entry = self.sessions.get(sid)
        ident = self.sessions.identity(sid)
        self.sessions.release(sid)

        if not entry:
            log_info("events", f"Client disconnected: sid={sid} (no room)")
            return Outcome()

        ctx = ConnectionContext(
            sid,
            entry["user_id"],
            entry.get("user_name") or (ident or {}).get("user_name"),
        )
        try:
            return self._leave(ctx, entry["room_id"], "disconnected")
        except Exception:
            log_exception("events", f"Disconnect cleanup failed for sid={sid}")
            self.sessions.remove(sid)
            return Outcome()
