from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Source:
    """Configured RSS/Atom feed endpoint with a relative trust weight."""

    name: str
    url: str
    weight: float = 1.0
    enabled: bool = True
