"""
StepOutcome -- result of a recoverable orchestration step.

Selector, specialist and team-resolution failures never abort a request;
they produce a usable fallback value tagged with why it is degraded. Only
validation and synthesis failures reach the user.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class DegradedReason(str, Enum):
    SELECTOR_FAILED = "selector_failed"
    SELECTOR_INVALID_OUTPUT = "selector_invalid_output"
    SPECIALIST_FAILED = "specialist_failed"
    SPECIALIST_TIMEOUT = "specialist_timeout"
    TEAM_UNRESOLVED = "team_unresolved"


@dataclass(frozen=True)
class StepOutcome(Generic[T]):
    """A value plus, when the step fell back, the reason and a detail string."""

    value: T
    degraded: DegradedReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.degraded is None

    @classmethod
    def success(cls, value: T) -> "StepOutcome[T]":
        return cls(value=value)

    @classmethod
    def degrade(cls, value: T, reason: DegradedReason, detail: str = "") -> "StepOutcome[T]":
        return cls(value=value, degraded=reason, detail=detail)
