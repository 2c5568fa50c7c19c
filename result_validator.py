from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from verdict import CHECK_NEEDED, classify_verdict


@dataclass(frozen=True)
class ResultDefaults:
    """Fallback values substituted when a field fails validation."""
    summary_fallback: str = "Unable to determine visa requirements at this time."
    route_fallback: str = (
        "Check the official embassy or consulate website of the destination country "
        "for current requirements."
    )
    parse_failed_caveats: Tuple[str, ...] = (
        "This response could not be properly generated",
        "Please verify requirements with official government sources",
        "Visa rules can change; confirm with the embassy or consulate before travel",
    )


DEFAULTS = ResultDefaults()


@dataclass(frozen=True)
class VisaStats:
    """Optional stay/fee/processing metadata. Absent sub-fields are None."""
    max_stay_days: Optional[int] = None
    fee_estimate: Optional[str] = None
    processing_time_estimate: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.max_stay_days is not None:
            out["maxStayDays"] = self.max_stay_days
        if self.fee_estimate is not None:
            out["feeEstimate"] = self.fee_estimate
        if self.processing_time_estimate is not None:
            out["processingTimeEstimate"] = self.processing_time_estimate
        return out


@dataclass(frozen=True)
class EvaluationResult:
    """Validated visa evaluation, safe to hand to the frontend."""
    summary: str
    recommended_route: str
    caveats: List[str] = field(default_factory=list)
    verdict: str = CHECK_NEEDED
    stats: Optional[VisaStats] = None
    raw_model_response: Optional[str] = None

    def to_candidate(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "recommendedRoute": self.recommended_route,
            "caveats": list(self.caveats),
            "verdict": self.verdict,
            "stats": self.stats.to_dict() if self.stats else None,
            "rawModelResponse": self.raw_model_response,
        }

    def to_public(self, case_id: str, request_id: str) -> Dict[str, Any]:
        """Public API shape. rawModelResponse is never included."""
        out: Dict[str, Any] = {
            "caseId": case_id,
            "summary": self.summary,
            "recommendedRoute": self.recommended_route,
            "caveats": list(self.caveats),
            "verdict": self.verdict,
        }
        if self.stats is not None:
            out["stats"] = self.stats.to_dict()
        out["requestId"] = request_id
        return out


def text_or_default(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


def string_items(value: Any) -> List[str]:
    """String elements of a list, in order; anything else yields []."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def validate_caveats(value: Any) -> List[str]:
    return [item.strip() for item in string_items(value) if item.strip()]


def _trimmed(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _positive_days(value: Any) -> Optional[int]:
    # bool is an int subclass but never a day count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value <= 0:
        return None
    days = math.floor(value)
    return days if days >= 1 else None


def validate_stats(value: Any) -> Optional[VisaStats]:
    """Field-by-field stats check; None unless at least one field is valid."""
    if isinstance(value, VisaStats):
        value = value.to_dict()
    if not isinstance(value, Mapping):
        return None

    stats = VisaStats(
        max_stay_days=_positive_days(value.get("maxStayDays")),
        fee_estimate=_trimmed(value.get("feeEstimate")),
        processing_time_estimate=_trimmed(value.get("processingTimeEstimate")),
    )
    return stats if stats.to_dict() else None


def validate_verdict(verdict: Any, requires_visa: Any = None) -> str:
    return classify_verdict(
        requires_visa=requires_visa if isinstance(requires_visa, bool) else None,
        verdict_text=verdict if isinstance(verdict, str) else None,
    )


class ResultValidator:
    """Single trusted boundary every candidate passes through. Never raises."""

    def __init__(self, defaults: ResultDefaults = DEFAULTS):
        self.defaults = defaults

    def validate(self, candidate: Any) -> EvaluationResult:
        if isinstance(candidate, EvaluationResult):
            candidate = candidate.to_candidate()
        if not isinstance(candidate, Mapping):
            candidate = {}

        raw = candidate.get("rawModelResponse")
        return EvaluationResult(
            summary=text_or_default(candidate.get("summary"), self.defaults.summary_fallback),
            recommended_route=text_or_default(candidate.get("recommendedRoute"), self.defaults.route_fallback),
            caveats=validate_caveats(candidate.get("caveats")),
            verdict=validate_verdict(candidate.get("verdict"), candidate.get("requiresVisa")),
            stats=validate_stats(candidate.get("stats")),
            raw_model_response=raw if isinstance(raw, str) else None,
        )


_default_validator = ResultValidator()


def validate_evaluation_result(candidate: Any) -> EvaluationResult:
    return _default_validator.validate(candidate)
