# -*- coding: utf-8 -*-
"""Auth — API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ..errors import AuthError, ConflictError
from ..sanitizer import normalize_whitespace, sanitize_object
from ..validation import validate_registration
from .models import (
    AuthStatusResponse,
    CurrentUserResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisteredUser,
    RegisterRequest,
    RegisterResponse,
    SearchHistoryAddRequest,
    SearchHistoryResponse,
    UserPublic,
)
from .security import verify_password
from .session import (
    Session,
    SessionStore,
    create_user_session,
    destroy_user_session,
    get_session,
    get_session_store,
    get_user_from_session,
    is_authenticated,
)
from .storage import (
    UsernameTakenError,
    add_search_history,
    clear_search_history,
    create_user,
    get_search_history,
    get_user_by_username,
    public_user,
)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 500
MAX_SUMMARY_LENGTH = 1000

_INVALID_CREDENTIALS = "Invalid username or password"


def _session_user(session: Session) -> UserPublic | None:
    info = get_user_from_session(session)
    if not info:
        return None
    return UserPublic(id=info["user_id"], username=info["username"], nickname=info["nickname"])


def require_session_user(session: Session = Depends(get_session)) -> str:
    """Dependency: the authenticated user's id, or 401."""
    if not is_authenticated(session):
        raise AuthError("Authentication required")
    return str(session["user_id"])


@router.post("/register", response_model=RegisterResponse, status_code=201, summary="Register a new user")
def register(request: RegisterRequest):
    if not request.username or not request.password or not request.nickname:
        raise AuthError("Username, password, and nickname are required", status=400)

    result = validate_registration(request.model_dump())
    if result.error:
        raise AuthError("Validation error", status=400, details=result.error.message)

    # The password is hashed as-is; only the display fields are sanitized.
    cleaned = sanitize_object({"username": result.value["username"], "nickname": result.value["nickname"]})
    nickname = normalize_whitespace(cleaned["nickname"])
    if not nickname:
        raise AuthError("Validation error", status=400, details="Nickname is required")

    if get_user_by_username(cleaned["username"]):
        raise ConflictError("Username already exists")

    try:
        user = create_user(username=cleaned["username"], password=result.value["password"], nickname=nickname)
    except UsernameTakenError as exc:
        raise ConflictError("Username already exists") from exc

    logger.info("Registered user %s", user["username"])
    row = public_user(user)
    return RegisterResponse(
        message="User registered successfully",
        user=RegisteredUser(
            id=row["id"],
            username=row["username"],
            nickname=row["nickname"],
            created_at=row["created_at"],
        ),
    )


@router.post("/login", response_model=LoginResponse, summary="Login")
def login(
    request: LoginRequest,
    session: Session = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
):
    if not request.username or not request.password:
        raise AuthError("Username and password are required", status=400)

    user = get_user_by_username(request.username)
    if not user or not verify_password(request.password, user["password"]):
        logger.info("Failed login for %s", request.username.strip().lower()[:50])
        raise AuthError(_INVALID_CREDENTIALS)

    create_user_session(session, user)
    try:
        store.save(session)
    except Exception as exc:
        logger.error("Session save failed for %s", user["username"], exc_info=exc)
        raise AuthError("Session creation failed", status=500) from exc

    logger.info("User %s logged in", user["username"])
    return LoginResponse(
        message="Login successful",
        user=UserPublic(id=user["id"], username=user["username"], nickname=user["nickname"]),
    )


@router.post("/logout", response_model=MessageResponse, summary="Logout")
def logout(
    session: Session = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
):
    if not session.is_new:
        username = session.get("username")
        destroy_user_session(session)
        try:
            store.delete(session.id)
        except Exception as exc:
            logger.error("Session destruction failed", exc_info=exc)
            raise AuthError("Logout failed", status=500) from exc
        session.destroyed = True
        logger.info("User %s logged out", username or "<anonymous>")
    return MessageResponse(message="Logout successful")


@router.delete("/account", response_model=MessageResponse, summary="Delete current user account")
def delete_account(user_id: str = Depends(require_session_user)):
    # TODO: decide hard-delete vs soft-delete with product before removing any rows.
    logger.warning("Account deletion requested for %s; not performed", user_id)
    return MessageResponse(message="Account deleted successfully")


@router.get("/me", response_model=CurrentUserResponse, summary="Get current user")
def me(session: Session = Depends(get_session)):
    user = _session_user(session)
    if user is None:
        raise AuthError("Not authenticated")
    return CurrentUserResponse(user=user)


@router.get("/status", response_model=AuthStatusResponse, summary="Check authentication status")
def auth_status(session: Session = Depends(get_session)):
    user = _session_user(session)
    return AuthStatusResponse(is_authenticated=user is not None, user=user)


@router.get(
    "/search-history",
    response_model=SearchHistoryResponse,
    response_model_exclude_none=True,
    summary="Get search history",
)
def list_search_history(user_id: str = Depends(require_session_user)):
    return SearchHistoryResponse(search_history=get_search_history(user_id))


@router.post("/search-history", response_model=SearchHistoryResponse, summary="Add a search to history")
def add_to_search_history(request: SearchHistoryAddRequest, user_id: str = Depends(require_session_user)):
    if not request.search_id or not request.query or not request.summary:
        raise AuthError("Search ID, query, and summary are required", status=400)
    if len(request.query) > MAX_QUERY_LENGTH:
        raise AuthError(f"Query cannot exceed {MAX_QUERY_LENGTH} characters", status=400)
    if len(request.summary) > MAX_SUMMARY_LENGTH:
        raise AuthError(f"Summary cannot exceed {MAX_SUMMARY_LENGTH} characters", status=400)

    history = add_search_history(
        user_id,
        search_id=request.search_id,
        query=request.query,
        summary=request.summary,
    )
    return SearchHistoryResponse(message="Search added to history", search_history=history)


@router.delete("/search-history", response_model=MessageResponse, summary="Clear search history")
def clear_history(user_id: str = Depends(require_session_user)):
    clear_search_history(user_id)
    return MessageResponse(message="Search history cleared successfully")
