from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from result_validator import (
    DEFAULTS,
    EvaluationResult,
    ResultDefaults,
    ResultValidator,
    string_items,
    text_or_default,
    validate_stats,
    validate_verdict,
)
from verdict import CHECK_NEEDED

_OPENING_FENCE = re.compile(r"^```(?:json)?[ \t]*", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\s*```$")


def strip_code_fences(text: str) -> str:
    """Removes a markdown code fence only when the text starts with one."""
    t = (text or "").strip().lstrip("\ufeff").lstrip()
    if not t.startswith("```"):
        return t
    t = _OPENING_FENCE.sub("", t, count=1)
    t = _CLOSING_FENCE.sub("", t, count=1)
    return t.strip()


def parse_json_object(text: Optional[str]) -> Optional[dict]:
    """Fence-strips and parses; None unless the top level is a JSON object."""
    cleaned = strip_code_fences(text or "")
    if not cleaned:
        return None
    try:
        obj = json.loads(cleaned)
    except (ValueError, RecursionError):
        return None
    return obj if isinstance(obj, dict) else None


class ResponseParser:
    """Turns raw model text into a candidate dict. Never raises."""

    def __init__(self, defaults: ResultDefaults = DEFAULTS):
        self.defaults = defaults

    def parse_failed(self, text: str) -> Dict[str, Any]:
        return {
            "summary": self.defaults.summary_fallback,
            "recommendedRoute": self.defaults.route_fallback,
            "caveats": list(self.defaults.parse_failed_caveats),
            "verdict": CHECK_NEEDED,
            "stats": None,
            "rawModelResponse": text,
        }

    def parse(self, text: Optional[str]) -> Dict[str, Any]:
        raw = text if isinstance(text, str) else ""
        obj = parse_json_object(raw)
        if obj is None:
            return self.parse_failed(raw)

        # every field is extracted on its own; one bad field never voids the rest
        stats = validate_stats(obj.get("stats"))
        return {
            "summary": text_or_default(obj.get("summary"), self.defaults.summary_fallback),
            "recommendedRoute": text_or_default(obj.get("recommendedRoute"), self.defaults.route_fallback),
            "caveats": string_items(obj.get("caveats")),
            "verdict": validate_verdict(obj.get("verdict"), obj.get("requiresVisa")),
            "stats": stats.to_dict() if stats else None,
            "rawModelResponse": raw,
        }


_default_parser = ResponseParser()


def parse_response(text: Optional[str]) -> Dict[str, Any]:
    return _default_parser.parse(text)


def evaluate_model_text(text: Optional[str], defaults: ResultDefaults = DEFAULTS) -> EvaluationResult:
    """Raw model text -> validated EvaluationResult."""
    return ResultValidator(defaults).validate(ResponseParser(defaults).parse(text))
