# -*- coding: utf-8 -*-
"""Nutrition — LLM-backed analysis over an OpenAI-compatible chat completions API."""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import UpstreamServiceError
from .models import BreakdownItem, Confidence, NutritionResult

logger = logging.getLogger(__name__)

_PROVIDER_LABELS = {"openai": "OpenAI", "deepseek": "Deepseek"}
_QUOTA_CODES = {"insufficient_quota", "rate_limit_exceeded"}
_FENCE_OPEN_RE = re.compile(r"^```[\w-]*\s*", flags=re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```$")

SYSTEM_PROMPT = (
    "You are a professional nutritionist AI that provides accurate calorie and nutritional "
    "information. Always respond with valid JSON only, no additional text or formatting."
)


@dataclass(frozen=True)
class LLMSettings:
    provider: str
    api_key: Optional[str]
    base_url: str
    model: str
    max_tokens: int
    temperature: float
    timeout: float

    @property
    def label(self) -> str:
        return _PROVIDER_LABELS.get(self.provider, self.provider)


def resolve_llm_settings() -> LLMSettings:
    if settings.llm_provider == "deepseek":
        api_key, base_url, model = settings.deepseek_api_key, settings.deepseek_base_url, settings.deepseek_model
    else:
        api_key, base_url, model = settings.openai_api_key, settings.openai_base_url, settings.openai_model
    return LLMSettings(
        provider=settings.llm_provider,
        api_key=api_key,
        base_url=base_url.rstrip("/"),
        model=model,
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
        timeout=settings.llm_timeout,
    )


def build_nutrition_prompt(food: str) -> str:
    return (
        "Analyze the following food/meal and provide detailed nutritional information in JSON format:\n"
        "\n"
        f'"{food}"\n'
        "\n"
        "Respond with ONLY a valid JSON object. No markdown, no code fences, no explanations.\n"
        "Schema:\n"
        "{\n"
        '  "totalCalories": number,\n'
        '  "totalProtein": number (grams),\n'
        '  "totalCarbs": number (grams),\n'
        '  "totalFat": number (grams),\n'
        '  "totalFiber": number (grams),\n'
        '  "totalSugar": number (grams),\n'
        '  "totalSodium": number (milligrams),\n'
        '  "servingSize": "string",\n'
        '  "breakdown": [\n'
        '    {"item": "string", "quantity": "string", "calories": number, "protein": number,\n'
        '     "carbs": number, "fat": number, "fiber": number, "sugar": number, "sodium": number}\n'
        "  ],\n"
        '  "confidence": "high" | "medium" | "low",\n'
        '  "summary": "one short sentence"\n'
        "}\n"
        "\n"
        "Provide realistic estimations based on common serving sizes."
    )


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    cleaned = _FENCE_OPEN_RE.sub("", cleaned)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    return cleaned.strip()


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # Integers beyond float range.
        return False


def _round(value: Any) -> int:
    """Half-up rounding; anything non-numeric counts as 0."""
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if not _is_number(value):
        return 0
    try:
        return int(math.floor(value + 0.5))
    except OverflowError:
        return 0


def _round_optional(value: Any) -> Optional[int]:
    if value is None:
        return None
    return _round(value)


def _normalize_confidence(value: Any) -> Confidence:
    if isinstance(value, str) and value.strip().lower() in Confidence.__members__:
        return Confidence(value.strip().lower())
    if _is_number(value):
        score = value / 100.0 if value > 1 else value
        if score >= 0.8:
            return Confidence.high
        if score >= 0.5:
            return Confidence.medium
        return Confidence.low
    return Confidence.medium


# ---------- Response shape adapters ----------


def _adapt_legacy(data: Dict[str, Any]) -> Dict[str, Any]:
    """``{totalCalories, breakdown, macros:{protein, carbs, fat}}`` and the flat ``total*`` variant."""
    macros = data.get("macros") if isinstance(data.get("macros"), dict) else {}
    return {
        "total_calories": data.get("totalCalories"),
        "total_protein": data.get("totalProtein", macros.get("protein")),
        "total_carbs": data.get("totalCarbs", macros.get("carbs")),
        "total_fat": data.get("totalFat", macros.get("fat")),
        "total_fiber": data.get("totalFiber", macros.get("fiber")),
        "total_sugar": data.get("totalSugar", macros.get("sugar")),
        "total_sodium": data.get("totalSodium", macros.get("sodium")),
        "serving_size": data.get("servingSize"),
        "breakdown": data.get("breakdown"),
        "confidence": data.get("confidence"),
        "summary": data.get("summary"),
    }


def _adapt_food_items(data: Dict[str, Any]) -> Dict[str, Any]:
    """``{calories, protein, carbs, fat, fiber, sugar, sodium, confidence: 0..1, foodItems}``."""
    items = data.get("foodItems")
    breakdown: Any = items
    if isinstance(items, list):
        breakdown = [
            {**item, "item": item.get("item") or item.get("name")} if isinstance(item, dict) else item
            for item in items
        ]
    return {
        "total_calories": data.get("calories"),
        "total_protein": data.get("protein"),
        "total_carbs": data.get("carbs"),
        "total_fat": data.get("fat"),
        "total_fiber": data.get("fiber"),
        "total_sugar": data.get("sugar"),
        "total_sodium": data.get("sodium"),
        "serving_size": data.get("servingSize"),
        "breakdown": breakdown,
        "confidence": data.get("confidence"),
        "summary": data.get("summary"),
    }


def adapt_response(data: Dict[str, Any]) -> Dict[str, Any]:
    if "totalCalories" not in data and ("foodItems" in data or "calories" in data):
        return _adapt_food_items(data)
    return _adapt_legacy(data)


def _breakdown_item(raw: Any) -> BreakdownItem:
    if not isinstance(raw, dict):
        raw = {}
    quantity = raw.get("quantity")
    return BreakdownItem(
        item=str(raw.get("item") or raw.get("food") or raw.get("name") or "").strip() or "Unknown item",
        quantity=str(quantity) if quantity not in (None, "") else None,
        calories=_round(raw.get("calories")),
        protein=_round(raw.get("protein")),
        carbs=_round(raw.get("carbs")),
        fat=_round(raw.get("fat")),
        fiber=_round_optional(raw.get("fiber")),
        sugar=_round_optional(raw.get("sugar")),
        sodium=_round_optional(raw.get("sodium")),
    )


def normalize_nutrition_data(data: Any) -> NutritionResult:
    """Validate the parsed model output and fill defaults.

    ``totalCalories`` must be numeric and ``breakdown`` must be a list; anything
    else raises ``OPENAI_INVALID_RESPONSE``. A zero calorie total is valid.
    """
    if not isinstance(data, dict):
        raise UpstreamServiceError(
            "Invalid nutrition data: expected a JSON object", code="OPENAI_INVALID_RESPONSE", status=502
        )
    adapted = adapt_response(data)
    if not _is_number(adapted["total_calories"]):
        raise UpstreamServiceError(
            "Invalid nutrition data: totalCalories must be a number", code="OPENAI_INVALID_RESPONSE", status=502
        )
    if not isinstance(adapted["breakdown"], list):
        raise UpstreamServiceError(
            "Invalid nutrition data: breakdown must be an array", code="OPENAI_INVALID_RESPONSE", status=502
        )

    total_calories = _round(adapted["total_calories"])
    serving_size = str(adapted["serving_size"] or "").strip() or "Not specified"
    summary = str(adapted["summary"] or "").strip() or f"Approximately {total_calories} calories ({serving_size})"
    return NutritionResult(
        total_calories=total_calories,
        total_protein=_round(adapted["total_protein"]),
        total_carbs=_round(adapted["total_carbs"]),
        total_fat=_round(adapted["total_fat"]),
        total_fiber=_round_optional(adapted["total_fiber"]),
        total_sugar=_round_optional(adapted["total_sugar"]),
        total_sodium=_round_optional(adapted["total_sodium"]),
        serving_size=serving_size,
        breakdown=[_breakdown_item(item) for item in adapted["breakdown"]],
        confidence=_normalize_confidence(adapted["confidence"]),
        summary=summary,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


# ---------- Upstream error mapping ----------


def _upstream_error_code(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        code = err.get("code") or err.get("type")
        return str(code) if code else None
    return None


def map_upstream_error(exc: Exception, label: str = "OpenAI") -> UpstreamServiceError:
    if isinstance(exc, UpstreamServiceError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        code = _upstream_error_code(exc.response)
        if status == 401 or code == "invalid_api_key":
            return UpstreamServiceError(
                f"{label} API key is invalid or not configured", code="OPENAI_CONFIG_ERROR", status=500
            )
        if status == 429 or code in _QUOTA_CODES:
            return UpstreamServiceError(
                f"{label} service quota exceeded. Please try again later.",
                code="OPENAI_QUOTA_EXCEEDED",
                status=503,
            )
        if status == 400:
            return UpstreamServiceError(
                f"Invalid request to {label} service", code="OPENAI_BAD_REQUEST", status=400
            )
    elif isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return UpstreamServiceError(
            f"Cannot connect to {label} service", code="OPENAI_NETWORK_ERROR", status=503
        )
    return UpstreamServiceError(f"{label} service error", code="OPENAI_SERVICE_ERROR", status=500)


class NutritionService:
    def __init__(self, llm_settings: Optional[LLMSettings] = None, transport: Optional[httpx.BaseTransport] = None):
        self.llm = llm_settings or resolve_llm_settings()
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.llm.api_key)

    def _complete(self, messages: List[Dict[str, str]], *, max_tokens: int, temperature: float) -> str:
        if not self.llm.api_key:
            raise UpstreamServiceError(
                f"{self.llm.label} API key is invalid or not configured", code="OPENAI_CONFIG_ERROR", status=500
            )
        payload = {
            "model": self.llm.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.llm.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.llm.base_url}/chat/completions"
        try:
            with httpx.Client(timeout=self.llm.timeout, follow_redirects=True, transport=self._transport) as client:
                resp = client.post(url, headers=headers, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "%s completion failed: HTTP %s %s",
                self.llm.label,
                exc.response.status_code,
                exc.response.text[:500],
            )
            raise map_upstream_error(exc, self.llm.label) from exc
        except httpx.HTTPError as exc:
            logger.warning("%s completion transport error: %r", self.llm.label, exc)
            raise map_upstream_error(exc, self.llm.label) from exc
        except ValueError as exc:
            logger.warning("%s returned a non-JSON completion body", self.llm.label)
            raise map_upstream_error(exc, self.llm.label) from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not isinstance(content, str) or not content.strip():
            raise UpstreamServiceError(
                f"No response from {self.llm.label}", code="OPENAI_EMPTY_RESPONSE", status=502
            )
        return content.strip()

    def analyze_nutrition(self, food: str) -> NutritionResult:
        content = self._complete(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_nutrition_prompt(food)},
            ],
            max_tokens=self.llm.max_tokens,
            temperature=self.llm.temperature,
        )
        try:
            parsed = json.loads(strip_code_fences(content))
        except ValueError as exc:
            logger.warning("Unparseable nutrition output from %s: %s", self.llm.label, content[:500])
            raise UpstreamServiceError(
                "Failed to parse nutrition data from AI response", code="OPENAI_PARSE_ERROR", status=502
            ) from exc

        try:
            return normalize_nutrition_data(parsed)
        except UpstreamServiceError:
            logger.warning("Invalid nutrition output from %s: %s", self.llm.label, content[:500])
            raise

    def test_connection(self) -> Dict[str, Any]:
        if not self.configured:
            return {
                "success": False,
                "configured": False,
                "message": f"{self.llm.label} API key not configured",
            }
        try:
            reply = self._complete(
                [{"role": "user", "content": "Say 'connection successful'"}],
                max_tokens=10,
                temperature=0,
            )
        except UpstreamServiceError as exc:
            logger.error("%s connection test failed [%s]: %s", self.llm.label, exc.code, exc.message)
            return {"success": False, "configured": True, "message": exc.message}
        return {"success": True, "configured": True, "message": reply}
