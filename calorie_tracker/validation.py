# -*- coding: utf-8 -*-
"""Request validation schemas (pydantic) with stable, human-readable messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictStr, StringConstraints, TypeAdapter, ValidationInfo
from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator
from pydantic_core import PydanticCustomError

from .config import settings


@dataclass
class ErrorDetail:
    message: str
    path: Tuple[Any, ...] = ()
    type: str = "value_error"


@dataclass
class ValidationErrorInfo:
    details: List[ErrorDetail]

    @property
    def message(self) -> str:
        return self.details[0].message if self.details else "Validation failed"


@dataclass
class ValidationResult:
    value: Dict[str, Any] = field(default_factory=dict)
    error: Optional[ValidationErrorInfo] = None


# Field-specific wording for pydantic error types, keyed by (field, error type).
_MESSAGES: Dict[Tuple[str, str], str] = {
    ("food", "missing"): "Food input is required",
    ("food", "string_type"): "Food input must be a string",
    ("username", "missing"): "Username is required",
    ("username", "string_type"): "Username must be a string",
    ("username", "string_too_short"): "Username must be at least 3 characters long",
    ("username", "string_too_long"): "Username cannot exceed 50 characters",
    ("username", "string_pattern_mismatch"): "Username can only contain letters, numbers and underscores",
    ("password", "missing"): "Password is required",
    ("password", "string_type"): "Password must be a string",
    ("password", "string_too_short"): "Password must be at least 6 characters long",
    ("password", "string_too_long"): "Password cannot exceed 100 characters",
    ("nickname", "missing"): "Nickname is required",
    ("nickname", "string_type"): "Nickname must be a string",
    ("nickname", "string_too_short"): "Nickname is required",
    ("nickname", "string_too_long"): "Nickname cannot exceed 100 characters",
    ("page", "int_parsing"): "page must be an integer",
    ("page", "greater_than_equal"): "page must be greater than or equal to 1",
    ("per_page", "int_parsing"): "per_page must be an integer",
    ("per_page", "greater_than_equal"): "per_page must be greater than or equal to 1",
    ("per_page", "less_than_equal"): "per_page must be less than or equal to 50",
    ("limit", "int_parsing"): "limit must be an integer",
    ("limit", "greater_than_equal"): "limit must be greater than or equal to 1",
    ("limit", "less_than_equal"): "limit must be less than or equal to 10",
}


def _to_result(exc: PydanticValidationError) -> ValidationResult:
    details: List[ErrorDetail] = []
    for err in exc.errors():
        loc = tuple(err.get("loc") or ())
        name = str(loc[0]) if loc else ""
        etype = err.get("type", "value_error")
        message = _MESSAGES.get((name, etype)) or err.get("msg") or "Invalid value"
        details.append(ErrorDetail(message=message, path=loc, type=etype))
    return ValidationResult(error=ValidationErrorInfo(details=details))


# ---------- Nutrition ----------


class NutritionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    food: StrictStr

    @field_validator("food")
    @classmethod
    def _check_food(cls, value: str, info: ValidationInfo) -> str:
        value = value.strip()
        if not value:
            raise PydanticCustomError("string_empty", "Food input is required")
        context = info.context or {}
        max_length = int(context.get("max_length") or settings.max_food_input_length)
        if len(value) > max_length:
            raise PydanticCustomError(
                "string_too_long",
                "Food input length must be less than or equal to {max_length} characters",
                {"max_length": max_length},
            )
        return value


def validate_nutrition_request(data: Any, *, max_length: Optional[int] = None) -> ValidationResult:
    """Validate a nutrition analysis body. Extra keys are dropped from ``value``."""
    if not isinstance(data, Mapping):
        data = {}
    try:
        model = NutritionRequest.model_validate(dict(data), context={"max_length": max_length})
    except PydanticValidationError as exc:
        return _to_result(exc)
    return ValidationResult(value=model.model_dump())


# ---------- Pagination ----------


class PaginationParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page: int = Field(1, ge=1)
    per_page: int = Field(20, ge=1, le=50)
    limit: int = Field(5, ge=1, le=10)


def validate_pagination_params(data: Mapping[str, Any]) -> ValidationResult:
    present = {k: v for k, v in dict(data or {}).items() if v is not None and v != ""}
    try:
        model = PaginationParams.model_validate(present)
    except PydanticValidationError as exc:
        return _to_result(exc)
    return ValidationResult(value=model.model_dump())


# ---------- Identifiers ----------

_SearchId = TypeAdapter(Annotated[StrictStr, StringConstraints(pattern=r"^search_\d+_[a-z0-9]+$")])
_SessionId = TypeAdapter(Annotated[StrictStr, StringConstraints(pattern=r"^session_\d+_[a-z0-9]+$")])


def _validate_identifier(adapter: TypeAdapter, value: Any, label: str) -> ValidationResult:
    try:
        parsed = adapter.validate_python(value)
    except PydanticValidationError:
        return ValidationResult(
            error=ValidationErrorInfo(details=[ErrorDetail(message=f"Invalid {label}", type="string_pattern_mismatch")])
        )
    return ValidationResult(value={"id": parsed})


def validate_search_id(search_id: Any) -> ValidationResult:
    return _validate_identifier(_SearchId, search_id, "search ID")


def validate_session_id(session_id: Any) -> ValidationResult:
    return _validate_identifier(_SessionId, session_id, "session ID")


# ---------- Auth ----------


class RegistrationData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    username: StrictStr = Field(..., min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_]+$")
    password: StrictStr = Field(..., min_length=6, max_length=100)
    nickname: Annotated[StrictStr, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]

    @field_validator("username", mode="before")
    @classmethod
    def _strip_username(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class LoginData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    username: StrictStr = Field(..., min_length=1)
    password: StrictStr = Field(..., min_length=1)


def validate_registration(data: Mapping[str, Any]) -> ValidationResult:
    try:
        model = RegistrationData.model_validate(dict(data))
    except PydanticValidationError as exc:
        return _to_result(exc)
    return ValidationResult(value=model.model_dump())


def validate_login(data: Mapping[str, Any]) -> ValidationResult:
    try:
        model = LoginData.model_validate(dict(data))
    except PydanticValidationError as exc:
        return _to_result(exc)
    return ValidationResult(value=model.model_dump())
