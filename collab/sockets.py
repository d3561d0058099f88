# ============================================
#   CodeCollab — Socket.IO Handlers
#   Transport glue: auth handshake, group membership, emits
# ============================================

from flask import request
from flask_socketio import emit, join_room, leave_room, ConnectionRefusedError

from collab.auth import token_from_handshake
from collab.logger import log_info, log_exception


def apply_outcome(outcome):
    """
    Perform what a router handler asked for, in order:
    group leaves, group joins, then emits.
    """
    for room in outcome.leaves:
        leave_room(room)

    for room in outcome.joins:
        join_room(room)

    for e in outcome.emits:
        target = e["target"]
        if target == "sender":
            emit(e["event"], e["payload"], to=request.sid)
        elif target == "others":
            emit(e["event"], e["payload"], to=e["room"], include_self=False)
        else:
            emit(e["event"], e["payload"], to=e["room"])


def register_socket_handlers(socketio, router):

    # -----------------------------------------
    # CONNECT (authentication handshake)
    # -----------------------------------------
    @socketio.on("connect", namespace="/")
    def on_connect(auth=None):
        ctx = router.authenticate(request.sid, token_from_handshake(auth))
        if ctx is None:
            raise ConnectionRefusedError("Authentication error")

    # -----------------------------------------
    # DISCONNECT
    # -----------------------------------------
    @socketio.on("disconnect", namespace="/")
    def on_disconnect(reason=None):
        apply_outcome(router.disconnect(request.sid))
        log_info("sockets", f"Client disconnected: sid={request.sid} reason={reason}")

    # -----------------------------------------
    # ROUTED EVENTS
    # -----------------------------------------
    def _make_handler(event):
        def handler(data=None):
            ctx = router.context(request.sid)
            if ctx is None:
                # connect() refuses unauthenticated clients, so this is a
                # connection whose identity was already released
                return
            apply_outcome(router.dispatch(event, ctx, data))

        handler.__name__ = f"on_{event}"
        return handler

    for event in router.events:
        socketio.on_event(event, _make_handler(event), namespace="/")

    # -----------------------------------------
    # LAST-RESORT ERROR LOGGING
    # -----------------------------------------
    @socketio.on_error_default
    def on_error(e):
        log_exception("sockets", f"Unhandled Socket.IO error sid={request.sid}: {e}")

    log_info("sockets", f"Registered {len(router.events)} realtime events.")
