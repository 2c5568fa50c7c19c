from __future__ import annotations

from typing import Any, Optional

VISA_FREE = "VISA_FREE"
VISA_REQUIRED = "VISA_REQUIRED"
CHECK_NEEDED = "CHECK_NEEDED"

VERDICTS = (VISA_FREE, VISA_REQUIRED, CHECK_NEEDED)

# Checked in order; the first match wins when a degenerate string matches several.
_TEXT_RULES = (
    (VISA_FREE, "VISA FREE"),
    (VISA_REQUIRED, "VISA REQUIRED"),
    (CHECK_NEEDED, "CHECK NEEDED"),
)


def is_verdict(value: Any) -> bool:
    return isinstance(value, str) and value in VERDICTS


def classify_verdict(requires_visa: Optional[bool] = None, verdict_text: Optional[str] = None) -> str:
    """
    Maps verdict signals to one of the three verdicts.

    Priority:
      1. requires_visa (bool): True -> VISA_REQUIRED, False -> VISA_FREE
      2. verdict_text: upper-cased, trimmed, matched against the known labels
      3. CHECK_NEEDED

    Summary prose is never inspected; anything unrecognized stays CHECK_NEEDED.
    """
    if requires_visa is True:
        return VISA_REQUIRED
    if requires_visa is False:
        return VISA_FREE

    if isinstance(verdict_text, str) and verdict_text:
        normalized = verdict_text.upper().strip()
        for verdict, spaced in _TEXT_RULES:
            if verdict in normalized or normalized == spaced:
                return verdict

    return CHECK_NEEDED
