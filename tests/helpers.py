"""Test doubles shared across the suite."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass
class FakeProvider:
    """Returns scripted responses in order; an Exception entry is raised instead."""

    responses: List[object] = field(default_factory=list)
    name: str = "fake"
    calls: List[Tuple[str, str]] = field(default_factory=list)

    def generate(self, system: str, user_input: str):
        self.calls.append((system, user_input))
        item = self.responses.pop(0) if self.responses else ""
        if isinstance(item, Exception):
            raise item
        return item, {"input_tokens": 10, "output_tokens": 20, "total_tokens": 30}


def make_provider(*responses) -> FakeProvider:
    return FakeProvider(responses=list(responses))
