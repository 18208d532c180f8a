from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

TIER_UNKNOWN = "N0"
TIERS = ("N0", "N1", "N2", "N3", "N4", "N5")
NO_BASE_FORM = "*"


@dataclass(frozen=True)
class Token:
    surface: str
    base_form: Optional[str]
    reading: str
    pos: str

    @property
    def has_base_form(self) -> bool:
        return bool(self.base_form) and self.base_form != NO_BASE_FORM


@dataclass(frozen=True)
class AnnotatedToken:
    token: Token
    difficulty: str = TIER_UNKNOWN

    @property
    def surface(self) -> str:
        return self.token.surface

    def to_payload(self) -> dict:
        return {
            "surface": self.token.surface,
            "reading": self.token.reading,
            "pos": self.token.pos,
            "difficulty": self.difficulty,
        }


@dataclass(frozen=True)
class Marker:
    """A named time point reported by the synthesizer."""

    name: Union[str, int, float]
    time_seconds: float

    def to_payload(self) -> dict:
        return {"markName": self.name, "timeSeconds": self.time_seconds}


@dataclass
class TimedToken:
    surface: str
    start_time: float
    end_time: Optional[float]
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict:
        payload = dict(self.extra)
        payload["surface"] = self.surface
        payload["startTime"] = self.start_time
        payload["endTime"] = self.end_time
        return payload


@dataclass
class Alignment:
    tokens: List[TimedToken]
    exact: bool
    markers: List[Marker] = field(default_factory=list)
