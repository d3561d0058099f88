"""
HTTP routes: auth, rooms, code versions, chat history, AI assistant.
"""
import pytest

from collab import assistant
from collab.rooms import get_room
from collab.history import append_message

from conftest import auth_header


# =====================================================
#   AUTH
# =====================================================

class TestAuth:

    def test_register_returns_token_and_cookie(self, http):
        resp = http.post("/api/auth/register", json={
            "name": "Dana", "email": "Dana@Example.com", "password": "hunter22",
        })

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["name"] == "Dana"
        assert body["email"] == "dana@example.com"
        assert body["token"]
        assert "password" not in body
        assert "token=" in resp.headers.get("Set-Cookie", "")

    def test_register_validation(self, http):
        resp = http.post("/api/auth/register", json={"name": "", "email": "bad", "password": "123"})

        assert resp.status_code == 400
        fields = {e["field"] for e in resp.get_json()["errors"]}
        assert fields == {"name", "email", "password"}

    def test_register_duplicate(self, http, alice):
        resp = http.post("/api/auth/register", json={
            "name": "Alice 2", "email": "alice@example.com", "password": "secret123",
        })
        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "message": "User already exists"}

    def test_login(self, http, alice):
        ok = http.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret123"})
        bad = http.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"})

        assert ok.status_code == 200
        assert ok.get_json()["_id"] == alice["_id"]
        assert bad.status_code == 401
        assert bad.get_json()["message"] == "Invalid email or password"

    def test_profile_requires_token(self, http):
        resp = http.get("/api/auth/profile")
        assert resp.status_code == 401
        assert resp.get_json() == {"success": False, "message": "Unauthorized"}

    def test_profile_read_and_update(self, http, alice):
        resp = http.put("/api/auth/profile", json={"name": "Alice B."}, headers=auth_header(alice))
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Alice B."

        resp = http.get("/api/auth/profile", headers=auth_header(alice))
        assert resp.get_json()["name"] == "Alice B."
        assert resp.get_json()["rooms"] == []


# =====================================================
#   ROOMS
# =====================================================

class TestRooms:

    def test_create_and_get(self, http, store, alice):
        resp = http.post("/api/rooms", json={"name": "Kata", "language": "python"},
                         headers=auth_header(alice))

        assert resp.status_code == 201
        room = resp.get_json()
        assert room["language"] == "python"
        assert room["creator"]["_id"] == alice["_id"]
        assert [p["userId"] for p in room["participants"]] == [alice["_id"]]

        fetched = http.get(f"/api/rooms/{room['roomId']}", headers=auth_header(alice))
        assert fetched.status_code == 200
        assert fetched.get_json()["name"] == "Kata"
        assert room["roomId"] in store.users.get(alice["_id"])["rooms"]

    @pytest.mark.parametrize("body, message", [
        ({"name": "  "}, "Room name is required"),
        ({"name": "x", "language": "brainfuck"}, "Unsupported language"),
    ])
    def test_create_rejected(self, http, alice, body, message):
        resp = http.post("/api/rooms", json=body, headers=auth_header(alice))
        assert resp.status_code == 400
        assert resp.get_json()["message"] == message

    def test_list_only_own_rooms(self, http, make_room, alice, bob):
        mine = make_room(alice, name="Mine")
        make_room(bob, name="Theirs")

        resp = http.get("/api/rooms", headers=auth_header(alice))

        assert [r["roomId"] for r in resp.get_json()] == [mine["roomId"]]

    def test_join_and_leave(self, http, store, make_room, alice, bob):
        rid = make_room(alice)["roomId"]

        resp = http.post(f"/api/rooms/{rid}/join", headers=auth_header(bob))
        assert resp.status_code == 200
        assert bob["_id"] in [p["userId"] for p in resp.get_json()["participants"]]

        again = http.post(f"/api/rooms/{rid}/join", headers=auth_header(bob))
        assert again.status_code == 400
        assert again.get_json()["message"] == "Already in room"

        left = http.post(f"/api/rooms/{rid}/leave", headers=auth_header(bob))
        assert left.status_code == 200
        bob_entry = [p for p in get_room(store, rid)["participants"] if p["userId"] == bob["_id"]]
        assert bob_entry[0]["isActive"] is False

        rejoin = http.post(f"/api/rooms/{rid}/join", headers=auth_header(bob))
        assert rejoin.status_code == 200

    def test_join_full_room(self, http, make_room, alice, bob):
        rid = make_room(alice, max_participants=1)["roomId"]

        resp = http.post(f"/api/rooms/{rid}/join", headers=auth_header(bob))

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Room is full"

    def test_delete_only_by_creator(self, http, make_room, alice, bob):
        rid = make_room(alice)["roomId"]

        forbidden = http.delete(f"/api/rooms/{rid}", headers=auth_header(bob))
        assert forbidden.status_code == 403

        ok = http.delete(f"/api/rooms/{rid}", headers=auth_header(alice))
        assert ok.get_json() == {"success": True, "message": "Room deleted"}

        gone = http.get(f"/api/rooms/{rid}", headers=auth_header(alice))
        assert gone.status_code == 404

    def test_messages_for_members_only(self, http, store, make_room, alice, bob):
        rid = make_room(alice)["roomId"]
        append_message(store, rid, alice["_id"], "first")
        append_message(store, rid, alice["_id"], "second")

        resp = http.get(f"/api/rooms/{rid}/messages?limit=1", headers=auth_header(alice))
        assert resp.status_code == 200
        msgs = resp.get_json()["messages"]
        assert [m["content"] for m in msgs] == ["second"]
        assert msgs[0]["sender"]["name"] == "Alice"

        outsider = http.get(f"/api/rooms/{rid}/messages", headers=auth_header(bob))
        assert outsider.status_code == 403


# =====================================================
#   CODE VERSIONS
# =====================================================

class TestCode:

    def test_save_history_version_current(self, http, store, make_room, alice):
        rid = make_room(alice)["roomId"]
        headers = auth_header(alice)

        first = http.post(f"/api/code/{rid}", json={"content": "a = 1"}, headers=headers)
        second = http.post(f"/api/code/{rid}", json={
            "content": "a = 2", "language": "python", "changeDescription": "bump",
        }, headers=headers)

        assert first.status_code == 201
        assert first.get_json()["version"] == 1
        assert second.get_json()["version"] == 2
        assert second.get_json()["updatedBy"]["name"] == "Alice"

        history = http.get(f"/api/code/{rid}/history?limit=1", headers=headers).get_json()
        assert [c["version"] for c in history["codes"]] == [2]
        assert history["total"] == 2
        assert history["totalPages"] == 2

        v1 = http.get(f"/api/code/{rid}/version/1", headers=headers).get_json()
        assert v1["content"] == "a = 1"
        assert v1["changeDescription"] == "Code Updated"

        current = http.get(f"/api/code/{rid}/current", headers=headers).get_json()
        assert current == {"content": "a = 2", "language": "python"}
        assert get_room(store, rid)["currentCode"] == "a = 2"

    def test_missing_version(self, http, make_room, alice):
        rid = make_room(alice)["roomId"]
        resp = http.get(f"/api/code/{rid}/version/7", headers=auth_header(alice))
        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Version not found"

    def test_save_requires_membership_and_content(self, http, make_room, alice, bob):
        rid = make_room(alice)["roomId"]

        outsider = http.post(f"/api/code/{rid}", json={"content": "x"}, headers=auth_header(bob))
        assert outsider.status_code == 403

        empty = http.post(f"/api/code/{rid}", json={}, headers=auth_header(alice))
        assert empty.status_code == 400
        assert empty.get_json()["message"] == "Content is required"


# =====================================================
#   AI ASSISTANT
# =====================================================

class TestAssistant:

    @pytest.fixture(autouse=True)
    def fresh_client(self):
        assistant.reset_client()
        yield
        assistant.reset_client()

    @pytest.mark.parametrize("route, key", [
        ("suggest", "suggestion"),
        ("review", "review"),
        ("explain", "explain"),
        ("fix", "fixedCode"),
    ])
    def test_routes_forward_prompt(self, http, alice, monkeypatch, route, key):
        prompts = []

        def fake_complete(prompt):
            prompts.append(prompt)
            return "model says hi"

        monkeypatch.setattr(assistant, "complete", fake_complete)

        resp = http.post(f"/api/ai/{route}", json={"code": "x = 1", "language": "python"},
                         headers=auth_header(alice))

        assert resp.status_code == 200
        assert resp.get_json() == {"success": True, key: "model says hi", "language": "python"}
        assert len(prompts) == 1
        assert "x = 1" in prompts[0]

    def test_code_required(self, http, alice):
        resp = http.post("/api/ai/review", json={}, headers=auth_header(alice))
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Code is required"

    def test_unconfigured_assistant(self, http, alice, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        resp = http.post("/api/ai/explain", json={"code": "x = 1"}, headers=auth_header(alice))

        assert resp.status_code == 503
        assert resp.get_json()["message"] == "AI assistant is not configured"

    def test_model_failure(self, http, alice, monkeypatch):
        def broken(prompt):
            raise RuntimeError("upstream 500")

        monkeypatch.setattr(assistant, "complete", broken)

        resp = http.post("/api/ai/fix", json={"code": "x = 1"}, headers=auth_header(alice))

        assert resp.status_code == 500
        assert resp.get_json()["message"] == "Failed to fix code"


# =====================================================
#   SERVICE ENDPOINTS
# =====================================================

def test_index_and_health(http):
    assert http.get("/").get_json() == {"message": "Code Collab Project"}
    assert http.get("/health").get_json() == {"status": "ok", "connections": 0}
