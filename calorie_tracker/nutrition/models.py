# -*- coding: utf-8 -*-
"""Nutrition — Pydantic models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..auth.models import CamelModel


class Confidence(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class BreakdownItem(CamelModel):
    item: str = Field("Unknown item", min_length=1)
    quantity: Optional[str] = None
    calories: int = 0
    protein: int = 0
    carbs: int = 0
    fat: int = 0
    fiber: Optional[int] = None
    sugar: Optional[int] = None
    sodium: Optional[int] = None


class NutritionResult(CamelModel):
    total_calories: int
    total_protein: int = 0
    total_carbs: int = 0
    total_fat: int = 0
    total_fiber: Optional[int] = None
    total_sugar: Optional[int] = None
    total_sodium: Optional[int] = None
    serving_size: str = "Not specified"
    breakdown: List[BreakdownItem] = Field(default_factory=list)
    confidence: Confidence = Confidence.medium
    summary: str = ""
    timestamp: str


class AnalyzeRequest(CamelModel):
    # Typed loosely; validate_nutrition_request owns the rules and messages.
    food: Any = None


class AnalyzeResponse(CamelModel):
    success: bool = True
    query: str
    data: NutritionResult
    search_id: str
    session_id: str
    timestamp: str


class ConnectionTestResponse(CamelModel):
    success: bool
    message: str
    configured: bool
    timestamp: str


class Breadcrumb(CamelModel):
    id: str
    query: str
    total_calories: int
    timestamp: str


class SearchSummary(CamelModel):
    id: str
    query: str
    total_calories: int
    confidence: Confidence
    timestamp: str


class SearchDetail(SearchSummary):
    total_protein: int = 0
    total_carbs: int = 0
    total_fat: int = 0
    serving_size: str
    breakdown: List[BreakdownItem] = Field(default_factory=list)
    summary: str = ""


class Pagination(CamelModel):
    page: int
    per_page: int
    total_searches: int
    total_pages: int


class HistoryStats(CamelModel):
    total_searches: int = 0
    total_calories_analyzed: int = 0
    average_calories: int = 0
    first_search: Optional[str] = None
    last_search: Optional[str] = None


class HistoryPage(CamelModel):
    searches: List[SearchSummary] = Field(default_factory=list)
    pagination: Pagination
    stats: HistoryStats


class BreadcrumbsResponse(CamelModel):
    success: bool = True
    data: List[Breadcrumb] = Field(default_factory=list)
    timestamp: str


class HistoryResponse(CamelModel):
    success: bool = True
    data: HistoryPage
    timestamp: str


class SearchDetailResponse(CamelModel):
    success: bool = True
    data: SearchDetail
    timestamp: str


class ClearHistoryResponse(CamelModel):
    success: bool = True
    message: str
    timestamp: str


class AppStats(CamelModel):
    total_sessions: int
    total_searches: int
    average_calories_per_session: int
    uptime: float
    version: str


class StatsResponse(CamelModel):
    success: bool = True
    data: AppStats
    timestamp: str


def result_to_record(result: NutritionResult) -> Dict[str, Any]:
    """Flatten a result into the fields the history store keeps (snake_case)."""
    return result.model_dump(mode="json", exclude={"timestamp"})
