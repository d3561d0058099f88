"""
Shared pytest fixtures.

Environment variables are set before any ``collab`` import so that
configuration, logging and token signing use throwaway values.
"""
import os
import tempfile

os.environ.setdefault("ENV", "test")
os.environ["COLLAB_PERSIST_ROOT"] = tempfile.mkdtemp(prefix="collab-test-")
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["COLLAB_LOG_CONSOLE"] = "0"
os.environ.pop("OPENAI_API_KEY", None)

import pytest

from collab.auth import issue_token
from collab.events import EventRouter
from collab.rooms import create_room
from collab.server import create_app
from collab.state import SessionDirectory
from collab.storage import Storage
from collab.users import create_user

FIXED_NOW = 1_700_000_000.0


@pytest.fixture()
def store(tmp_path):
    return Storage(str(tmp_path / "data"))


@pytest.fixture()
def sessions():
    return SessionDirectory()


@pytest.fixture()
def router(store, sessions):
    return EventRouter(store, sessions, clock=lambda: FIXED_NOW)


@pytest.fixture()
def make_user(store):
    def _make(name, email=None, password="secret123"):
        email = email or f"{name.lower()}@example.com"
        return create_user(store, name, email, password)["user"]
    return _make


@pytest.fixture()
def alice(make_user):
    return make_user("Alice")


@pytest.fixture()
def bob(make_user):
    return make_user("Bob")


@pytest.fixture()
def carol(make_user):
    return make_user("Carol")


@pytest.fixture()
def make_room(store):
    def _make(creator, name="Pairing", empty=False, **kwargs):
        room = create_room(store, creator, name, **kwargs)["room"]
        if empty:
            def _clear(doc):
                doc["participants"] = []
                return True
            room = store.rooms.update(room["roomId"], _clear)
        return room
    return _make


@pytest.fixture()
def connect_ctx(router):
    """Authenticate a fake connection for `user` and return its context."""
    counter = {"n": 0}

    def _connect(user):
        counter["n"] += 1
        return router.authenticate(f"sid-{counter['n']}", issue_token(user["_id"]))
    return _connect


@pytest.fixture()
def server(store, sessions):
    app, socketio = create_app(store=store, sessions=sessions, async_mode="threading")
    app.config["TESTING"] = True
    return app, socketio


@pytest.fixture()
def http(server):
    app, _ = server
    return app.test_client()


@pytest.fixture()
def connect(server):
    """Open a Socket.IO test client authenticated as `user`."""
    app, socketio = server
    clients = []

    def _connect(user=None, token=None):
        if token is None and user is not None:
            token = issue_token(user["_id"])
        auth = {"token": token} if token is not None else None
        client = socketio.test_client(app, auth=auth)
        clients.append(client)
        return client

    yield _connect

    for c in clients:
        if c.is_connected():
            c.disconnect()


def payloads(packets, name):
    """Payloads of every `name` event in a test client's received packets."""
    return [p["args"][0] for p in packets if p["name"] == name]


def auth_header(user):
    return {"Authorization": f"Bearer {issue_token(user['_id'])}"}
