from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ChecklistItem:
    label: str
    optional: bool
    notes: Optional[str] = None


@dataclass(frozen=True)
class VisaChecklist:
    """Static document checklist (general guide, not an evaluation)."""
    title: str
    items: List[ChecklistItem] = field(default_factory=list)
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        items = []
        for item in self.items:
            d = asdict(item)
            if d["notes"] is None:
                del d["notes"]
            items.append(d)
        out: Dict[str, Any] = {"title": self.title}
        if self.description:
            out["description"] = self.description
        out["items"] = items
        return out


BASE_ITEMS = (
    ChecklistItem("Valid passport (usually 3+ months beyond planned departure, with blank pages)", False),
    ChecklistItem("Completed visa application form for the destination country", False),
    ChecklistItem("Recent passport-sized photos meeting consulate specifications", False),
    ChecklistItem(
        "Travel medical insurance covering the Schengen area (if applicable)",
        False,
        "For Schengen, coverage is usually at least EUR 30,000.",
    ),
    ChecklistItem("Proof of accommodation (hotel booking, invitation letter, or rental)", False),
    ChecklistItem("Proof of sufficient funds (bank statements, sponsor letter, etc.)", False),
    ChecklistItem("Round-trip or onward travel booking/itinerary", False),
    ChecklistItem("Evidence of ties to home country (employment, business, property, family)", True),
)

# Extra documents keyed by travel purpose.
PURPOSE_ITEMS: Dict[str, tuple] = {
    "study": (ChecklistItem("Proof of enrolment or admission letter from educational institution", False),),
    "work": (ChecklistItem("Work contract, assignment letter, or employer support letter", False),),
    "business": (ChecklistItem("Work contract, assignment letter, or employer support letter", False),),
    "family_visit": (
        ChecklistItem("Invitation letter from family member or friend in destination country", False),
    ),
}

DESCRIPTION = (
    "This checklist is a general guide only. Always verify exact requirements with the official "
    "consulate or visa application center."
)


def purpose_label(purpose: str) -> str:
    if purpose == "tourism":
        return "tourist"
    return purpose.replace("_", " ")


def build_checklist(nationality: str, destination_country: str, travel_purpose: str) -> VisaChecklist:
    """Base items plus the purpose-specific ones."""
    items = list(BASE_ITEMS) + list(PURPOSE_ITEMS.get(travel_purpose, ()))
    title = (
        f"Suggested {purpose_label(travel_purpose)} visa checklist for travel "
        f"from {nationality} to {destination_country}"
    )
    return VisaChecklist(title=title, items=items, description=DESCRIPTION)
