# -*- coding: utf-8 -*-
"""Nutrition — API endpoints."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from ..auth.session import Session, get_session
from ..config import settings
from ..errors import BadRequestError, NotFoundError, RequestValidationFailed
from ..sanitizer import sanitize_input
from ..validation import validate_nutrition_request, validate_pagination_params, validate_search_id
from .history import HISTORY_SESSION_KEY, SearchHistoryService
from .models import (
    AnalyzeRequest,
    AnalyzeResponse,
    AppStats,
    BreadcrumbsResponse,
    ClearHistoryResponse,
    ConnectionTestResponse,
    HistoryResponse,
    SearchDetailResponse,
    StatsResponse,
    result_to_record,
)
from .service import NutritionService

router = APIRouter(prefix="/api/nutrition", tags=["Nutrition"])

logger = logging.getLogger(__name__)

_EMPTY_FOOD = "Food description cannot be empty"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def get_nutrition_service(request: Request) -> NutritionService:
    return request.app.state.nutrition_service


def get_search_history_service(request: Request) -> SearchHistoryService:
    return request.app.state.search_history_service


def _history_session_id(session: Session) -> Optional[str]:
    return session.get(HISTORY_SESSION_KEY)


def _query_params(**params: Optional[str]) -> dict:
    result = validate_pagination_params(params)
    if result.error:
        raise RequestValidationFailed(result.error.message)
    return result.value


@router.get("/test", response_model=ConnectionTestResponse, summary="Check the LLM provider connection")
def test_connection(response: Response, service: NutritionService = Depends(get_nutrition_service)):
    result = service.test_connection()
    if not result["success"]:
        response.status_code = 503
    return ConnectionTestResponse(timestamp=_utc_now(), **result)


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    response_model_exclude_none=True,
    summary="Analyze a food description",
)
def analyze(
    request: AnalyzeRequest,
    session: Session = Depends(get_session),
    service: NutritionService = Depends(get_nutrition_service),
    history: SearchHistoryService = Depends(get_search_history_service),
):
    validated = validate_nutrition_request(request.model_dump(exclude_unset=True))
    if validated.error:
        # Whitespace or markup-only input gets the same answer whichever layer catches it.
        if isinstance(request.food, str) and not sanitize_input(request.food):
            raise BadRequestError(_EMPTY_FOOD)
        raise RequestValidationFailed(validated.error.message)

    food = sanitize_input(validated.value["food"])
    if not food:
        raise BadRequestError(_EMPTY_FOOD)

    result = service.analyze_nutrition(food)

    session_id = history.get_or_create_session_id(session)
    saved = history.save_search(session_id, {"query": food, **result_to_record(result)})
    logger.info("Analyzed %r: %s kcal (%s)", food[:50], result.total_calories, saved["id"])
    return AnalyzeResponse(
        query=food,
        data=result,
        search_id=saved["id"],
        session_id=session_id,
        timestamp=_utc_now(),
    )


@router.get("/breadcrumbs", response_model=BreadcrumbsResponse, summary="Recent searches for navigation")
def breadcrumbs(
    limit: Optional[str] = Query(default=None, description="1-10, default 5"),
    session: Session = Depends(get_session),
    history: SearchHistoryService = Depends(get_search_history_service),
):
    params = _query_params(limit=limit)
    data = history.get_recent_searches(_history_session_id(session), params["limit"])
    return BreadcrumbsResponse(data=data, timestamp=_utc_now())


@router.get("/history", response_model=HistoryResponse, summary="Paginated search history")
def search_history(
    page: Optional[str] = Query(default=None, description=">= 1, default 1"),
    per_page: Optional[str] = Query(default=None, description="1-50, default 20"),
    session: Session = Depends(get_session),
    history: SearchHistoryService = Depends(get_search_history_service),
):
    params = _query_params(page=page, per_page=per_page)
    data = history.get_search_history(_history_session_id(session), params["page"], params["per_page"])
    return HistoryResponse(data=data, timestamp=_utc_now())


@router.get("/search/{search_id}", response_model=SearchDetailResponse, summary="One search from history")
def search_detail(
    search_id: str,
    session: Session = Depends(get_session),
    history: SearchHistoryService = Depends(get_search_history_service),
):
    checked = validate_search_id(search_id)
    if checked.error:
        raise RequestValidationFailed(checked.error.message)
    found = history.get_search_by_id(_history_session_id(session), checked.value["id"])
    if found is None:
        raise NotFoundError("Search not found")
    return SearchDetailResponse(data=found, timestamp=_utc_now())


@router.delete("/history", response_model=ClearHistoryResponse, summary="Clear this session's history")
def clear_search_history(
    session: Session = Depends(get_session),
    history: SearchHistoryService = Depends(get_search_history_service),
):
    history.clear_history(_history_session_id(session))
    return ClearHistoryResponse(message="Search history cleared", timestamp=_utc_now())


@router.get("/stats", response_model=StatsResponse, summary="Process-wide usage statistics")
def stats(request: Request, history: SearchHistoryService = Depends(get_search_history_service)):
    data = AppStats(
        total_sessions=history.get_total_sessions(),
        total_searches=history.get_total_searches(),
        average_calories_per_session=history.get_average_calories_per_session(),
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        version=settings.version,
    )
    return StatsResponse(data=data, timestamp=_utc_now())
