"""Time extents, step intervals and the shared time-selector binding."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Optional

from becidashboard.model.registry import LayerRole, LayerSpec


class TimeUnit(StrEnum):
    YEARS = "years"
    MONTHS = "months"
    DAYS = "days"
    HOURS = "hours"


@dataclass(frozen=True)
class StepInterval:
    unit: TimeUnit
    value: int = 1

    def __post_init__(self) -> None:
        if self.value <= 0:
            raise ValueError(f"Step value must be positive, got {self.value}")


@dataclass(frozen=True)
class TimeExtent:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Extent start {self.start} is after end {self.end}")

    def contains(self, other: "TimeExtent") -> bool:
        return self.start <= other.start and other.end <= self.end

    def clamp(self, other: "TimeExtent") -> Optional["TimeExtent"]:
        """Intersection with ``other``, or None when they do not overlap."""
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start > end:
            return None
        return TimeExtent(start, end)


@dataclass(frozen=True)
class TemporalMetadata:
    """What the rendering surface knows about a time-aware layer."""
    full_extent: TimeExtent
    step: Optional[StepInterval] = None


# Fallback steps when a layer declares none. Keyed by role, not by layer.
ROLE_STEP_DEFAULTS: dict[LayerRole, StepInterval] = {
    LayerRole.ANNUAL: StepInterval(TimeUnit.YEARS, 1),
    LayerRole.MONTHLY: StepInterval(TimeUnit.MONTHS, 1),
    LayerRole.DAILY: StepInterval(TimeUnit.DAYS, 1),
}


def resolve_step(layer: LayerSpec, declared: Optional[StepInterval]) -> Optional[StepInterval]:
    if declared is not None:
        return declared
    return ROLE_STEP_DEFAULTS.get(layer.role)


@dataclass(frozen=True)
class TemporalBinding:
    """
    State of the shared time selector.

    ``window`` is always inside ``full_extent`` when both are set.
    """
    active_layer: Optional[str] = None
    full_extent: Optional[TimeExtent] = None
    step: Optional[StepInterval] = None
    window: Optional[TimeExtent] = None

    @property
    def is_bound(self) -> bool:
        return self.active_layer is not None and self.full_extent is not None

    @property
    def is_pending(self) -> bool:
        return self.active_layer is not None and self.full_extent is None


UNBOUND = TemporalBinding()
