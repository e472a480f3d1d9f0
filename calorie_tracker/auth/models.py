# -*- coding: utf-8 -*-
"""Auth — Pydantic models (camelCase on the wire)."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    # Presence is checked by the handler so the 400 message stays stable.
    username: Optional[str] = None
    password: Optional[str] = None
    nickname: Optional[str] = None


class LoginRequest(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None


class SearchHistoryAddRequest(CamelModel):
    search_id: Optional[str] = None
    query: Optional[str] = None
    summary: Optional[str] = None


class UserPublic(CamelModel):
    id: str
    username: str
    nickname: str


class RegisteredUser(UserPublic):
    created_at: str


class RegisterResponse(CamelModel):
    success: bool = True
    message: str
    user: RegisteredUser


class LoginResponse(CamelModel):
    success: bool = True
    message: str
    user: UserPublic


class CurrentUserResponse(CamelModel):
    success: bool = True
    user: UserPublic


class AuthStatusResponse(CamelModel):
    success: bool = True
    is_authenticated: bool
    user: Optional[UserPublic] = None


class SearchHistoryEntry(CamelModel):
    search_id: str
    query: str
    summary: str
    timestamp: str


class SearchHistoryResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    search_history: List[SearchHistoryEntry] = []


class MessageResponse(CamelModel):
    success: bool = True
    message: str
