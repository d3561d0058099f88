# ============================================
#     CodeCollab — Runtime Session State
# ============================================
#
# Lifecycle:
# - one SessionDirectory is created at server start (see server.create_app)
# - entries are added/removed by the realtime router only
# - everything is discarded at process shutdown; nothing here is persisted
#
# Two maps, both keyed by the Socket.IO sid:
#
# identities = { sid: {"user_id": str, "user_name": str} }
#   set by the connection authenticator, released on disconnect
#
# entries = { sid: {"user_id": str, "user_name": str, "room_id": str} }
#   set by join_room, removed by leave_room / disconnect


class SessionDirectory:

    def __init__(self):
        self.identities = {}
        self.entries = {}

    # -----------------------------------------
    #   AUTHENTICATED IDENTITY (per connection)
    # -----------------------------------------
    def bind(self, sid, user_id, user_name):
        self.identities[sid] = {"user_id": str(user_id), "user_name": user_name}

    def identity(self, sid):
        return self.identities.get(sid)

    def release(self, sid):
        self.identities.pop(sid, None)

    # -----------------------------------------
    #   ROOM BINDING (Connection Session)
    # -----------------------------------------
    def put(self, sid, user_id, user_name, room_id):
        """Insert or overwrite the room binding for a connection."""
        self.entries[sid] = {
            "user_id": str(user_id),
            "user_name": user_name,
            "room_id": room_id,
        }

    def get(self, sid):
        """Return the entry for `sid`, or None."""
        return self.entries.get(sid)

    def remove(self, sid):
        self.entries.pop(sid, None)

    # -----------------------------------------
    #   QUERIES
    # -----------------------------------------
    def sids_for_user(self, user_id):
        uid = str(user_id)
        return [sid for sid, e in self.entries.items() if e.get("user_id") == uid]

    @property
    def connection_count(self):
        return len(self.identities)
