from __future__ import annotations

import re
from typing import Any

_ISO_CODE = re.compile(r"^[A-Z]{2,3}$")


def looks_like_iso_code(value: Any) -> bool:
    """True for ISO 3166 alpha-2/alpha-3 style values (2-3 uppercase letters)."""
    if not isinstance(value, str) or not value:
        return False
    return _ISO_CODE.match(value.strip()) is not None


def validate_country_name(value: Any, field_name: str) -> None:
    """Raises ValueError unless value is a full country name."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} is required")
    if looks_like_iso_code(value):
        raise ValueError(
            f"Expected country name for {field_name}, got ISO code '{value}'. "
            "Please use full country names (e.g., 'United States' instead of 'US')."
        )


def redact_payload_for_logging(payload: Any) -> Any:
    """Keeps only the fields worth logging; additionalContext is truncated."""
    if not isinstance(payload, dict):
        return payload

    redacted = {
        "nationality": payload.get("nationality"),
        "destinationCountry": payload.get("destinationCountry"),
        "travelPurpose": payload.get("travelPurpose"),
    }
    for key in ("plannedStartDate", "plannedEndDate"):
        if payload.get(key):
            redacted[key] = payload[key]

    if payload.get("additionalContext"):
        context = str(payload["additionalContext"])
        redacted["additionalContext"] = context[:100] + "..." if len(context) > 100 else context
    return redacted
