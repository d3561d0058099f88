# ============================================
#   CodeCollab — HTTP Routes
#   /api/auth  /api/rooms  /api/code  /api/ai
# ============================================

from flask import Blueprint, jsonify, request, g, current_app

from collab import assistant
from collab.auth import issue_token, login_required
from collab.config import (
    TOKEN_COOKIE_NAME,
    TOKEN_TTL_SECONDS,
    IS_PROD,
    HISTORY_LIMIT,
    CODE_HISTORY_PAGE_SIZE,
    MAX_CODE_LENGTH,
    DEFAULT_LANGUAGE,
)
from collab.errors import ApiError
from collab.users import (
    validate_registration,
    create_user,
    authenticate,
    update_profile,
    public_profile,
    is_valid_email,
    add_room_to_user,
)
from collab.rooms import (
    create_room,
    get_room,
    list_user_rooms,
    soft_delete_room,
    room_details,
    is_supported_language,
)
from collab.membership import (
    admit_or_reactivate,
    deactivate,
    find_participant,
    is_active_participant,
)
from collab.history import get_room_history
from collab.code import save_code, get_code_history, get_code_version
from collab.logger import log_info, log_exception


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
rooms_bp = Blueprint("rooms", __name__, url_prefix="/api/rooms")
code_bp = Blueprint("code", __name__, url_prefix="/api/code")
ai_bp = Blueprint("ai", __name__, url_prefix="/api/ai")


def _store():
    return current_app.extensions["collab_store"]


def _body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _require_room(room_id):
    room = get_room(_store(), room_id)
    if not room:
        raise ApiError(404, "Room not found")
    return room


def _require_member(room):
    if find_participant(room, g.user["_id"]) is None:
        raise ApiError(403, "You are not a member of this room")


def _int_arg(name, default, minimum=1, maximum=None):
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        raise ApiError(400, f"Invalid '{name}' parameter")
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


# =====================================================
#   AUTH
# =====================================================

def _auth_response(user, status):
    token = issue_token(user["_id"])
    payload = dict(public_profile(user), token=token)
    resp = jsonify(payload)
    resp.status_code = status
    resp.set_cookie(
        TOKEN_COOKIE_NAME,
        token,
        max_age=TOKEN_TTL_SECONDS,
        httponly=True,
        secure=IS_PROD,
        samesite="Lax",
    )
    return resp


@auth_bp.post("/register")
def register():
    data = _body()
    name, email, password = data.get("name"), data.get("email"), data.get("password")

    errors = validate_registration(name, email, password)
    if errors:
        raise ApiError(400, "Validation failed", errors=errors)

    result = create_user(_store(), name, email, password)
    if "error" in result:
        raise ApiError(400, "User already exists")

    return _auth_response(result["user"], 201)


@auth_bp.post("/login")
def login():
    data = _body()
    email, password = data.get("email"), data.get("password")

    errors = []
    if not is_valid_email(email):
        errors.append({"field": "email", "msg": "Please provide a valid email"})
    if not password:
        errors.append({"field": "password", "msg": "Password is required"})
    if errors:
        raise ApiError(400, "Validation failed", errors=errors)

    user = authenticate(_store(), email, password)
    if not user:
        raise ApiError(401, "Invalid email or password")

    log_info("api", f"User logged in: {user['email']}")
    return _auth_response(user, 200)


@auth_bp.get("/profile")
@login_required
def get_profile():
    return jsonify(dict(public_profile(g.user), rooms=g.user.get("rooms", [])))


@auth_bp.put("/profile")
@login_required
def put_profile():
    data = _body()
    user = update_profile(_store(), g.user["_id"], name=data.get("name"), avatar=data.get("avatar"))
    return jsonify(dict(public_profile(user), rooms=user.get("rooms", [])))


# =====================================================
#   ROOMS
# =====================================================

@rooms_bp.post("")
@login_required
def create_room_route():
    data = _body()
    result = create_room(
        _store(),
        g.user,
        data.get("name"),
        description=data.get("description", ""),
        language=data.get("language"),
    )
    if result.get("error") == "invalid_name":
        raise ApiError(400, "Room name is required")
    if result.get("error") == "invalid_language":
        raise ApiError(400, "Unsupported language")

    return jsonify(room_details(_store(), result["room"])), 201


@rooms_bp.get("")
@login_required
def list_rooms_route():
    store = _store()
    return jsonify([room_details(store, r) for r in list_user_rooms(store, g.user["_id"])])


@rooms_bp.get("/<room_id>")
@login_required
def get_room_route(room_id):
    return jsonify(room_details(_store(), _require_room(room_id)))


@rooms_bp.delete("/<room_id>")
@login_required
def delete_room_route(room_id):
    result = soft_delete_room(_store(), room_id, g.user["_id"])
    if result.get("error") == "not_found":
        raise ApiError(404, "Room not found")
    if result.get("error") == "forbidden":
        raise ApiError(403, "Only the room creator can delete this room")
    return jsonify({"success": True, "message": "Room deleted"})


@rooms_bp.post("/<room_id>/join")
@login_required
def join_room_route(room_id):
    store = _store()
    room = _require_room(room_id)

    if is_active_participant(room, g.user["_id"]):
        raise ApiError(400, "Already in room")

    result = admit_or_reactivate(store, room_id, g.user["_id"], g.user.get("name"))
    if result.get("error") == "room_full":
        raise ApiError(400, "Room is full")
    if "error" in result:
        raise ApiError(404, "Room not found")

    add_room_to_user(store, g.user["_id"], room_id)
    return jsonify(room_details(store, result["room"]))


@rooms_bp.post("/<room_id>/leave")
@login_required
def leave_room_route(room_id):
    _require_room(room_id)
    deactivate(_store(), room_id, g.user["_id"])
    return jsonify({"success": True, "message": "Left room"})


@rooms_bp.get("/<room_id>/messages")
@login_required
def room_messages_route(room_id):
    room = _require_room(room_id)
    _require_member(room)
    limit = _int_arg("limit", HISTORY_LIMIT, maximum=500)
    return jsonify({"roomId": room_id, "messages": get_room_history(_store(), room_id, limit)})


# =====================================================
#   CODE VERSIONS
# =====================================================

@code_bp.post("/<room_id>")
@login_required
def save_code_route(room_id):
    room = _require_room(room_id)
    _require_member(room)

    data = _body()
    content = data.get("content")
    if not isinstance(content, str):
        raise ApiError(400, "Content is required")
    if len(content) > MAX_CODE_LENGTH:
        raise ApiError(400, "Code is too large")

    language = data.get("language")
    if language is not None and not is_supported_language(language):
        raise ApiError(400, "Unsupported language")

    record = save_code(
        _store(),
        room,
        g.user,
        content,
        language=language,
        change_description=data.get("changeDescription"),
    )
    return jsonify(record), 201


@code_bp.get("/<room_id>/history")
@login_required
def code_history_route(room_id):
    _require_room(room_id)
    page = _int_arg("page", 1)
    limit = _int_arg("limit", CODE_HISTORY_PAGE_SIZE, maximum=100)
    return jsonify(get_code_history(_store(), room_id, page=page, limit=limit))


@code_bp.get("/<room_id>/current")
@login_required
def current_code_route(room_id):
    room = _require_room(room_id)
    return jsonify({"content": room.get("currentCode", ""), "language": room.get("language")})


@code_bp.get("/<room_id>/version/<int:version>")
@login_required
def code_version_route(room_id, version):
    _require_room(room_id)
    record = get_code_version(_store(), room_id, version)
    if not record:
        raise ApiError(404, "Version not found")
    return jsonify(record)


# =====================================================
#   AI ASSISTANT
# =====================================================

def _assist(result_key, failure_message, call):
    data = _body()
    code = data.get("code")
    if not code or not isinstance(code, str):
        raise ApiError(400, "Code is required")

    language = data.get("language") or DEFAULT_LANGUAGE
    try:
        text = call(code, language, data)
    except assistant.AssistantUnavailable:
        raise ApiError(503, "AI assistant is not configured")
    except Exception:
        log_exception("api", failure_message)
        raise ApiError(500, failure_message)

    return jsonify({"success": True, result_key: text, "language": language})


@ai_bp.post("/suggest")
@login_required
def ai_suggest():
    return _assist(
        "suggestion",
        "Failed to generate suggestion",
        lambda code, lang, d: assistant.suggest(code, lang, d.get("context")),
    )


@ai_bp.post("/review")
@login_required
def ai_review():
    return _assist(
        "review",
        "Failed to review code",
        lambda code, lang, d: assistant.review(code, lang),
    )


@ai_bp.post("/explain")
@login_required
def ai_explain():
    return _assist(
        "explain",
        "Failed to explain code",
        lambda code, lang, d: assistant.explain(code, lang),
    )


@ai_bp.post("/fix")
@login_required
def ai_fix():
    return _assist(
        "fixedCode",
        "Failed to fix code",
        lambda code, lang, d: assistant.fix(code, lang, d.get("issue")),
    )


BLUEPRINTS = (auth_bp, rooms_bp, code_bp, ai_bp)
