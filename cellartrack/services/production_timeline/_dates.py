"""Calendar-day date resolution for occupancy intervals.

Synopsis:
Normalizes heterogeneous timestamps into instants anchored at a fixed hour of
their local calendar day in the production timezone, and resolves the start and
end of an occupancy interval from the fallback chains of the lifecycle fields.

Glossary:
- Calendar-day anchor: The local date of a value at the configured reference hour.
- Overdue extension: Stretching a non-completed interval whose end has passed to today.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

import pytz

from ...utils.datetime_helpers import ensure_timezone_aware, is_date_only, parse_timestamp
from .types import Batch, BatchPhase, LotPhase, TimelineSettings

logger = logging.getLogger(__name__)


# --- End request ---
# Purpose: Bundle every input the end-date fallback chain may consult.
@dataclass(frozen=True)
class EndRequest:
    phase: str
    start: datetime
    entity_completed: bool = False
    completed_at: Any = None
    assignment_completed: bool = False
    actual_end: Any = None
    next_phase_start: Any = None
    updated_at: Any = None
    planned_end: Any = None
    estimated_end: Any = None


@dataclass(frozen=True)
class ResolvedEnd:
    end: datetime
    is_overdue: bool = False


class DateResolver:
    """Resolve calendar-day anchored instants relative to a fixed ``now``."""

    def __init__(self, settings: TimelineSettings, now: datetime):
        self.settings = settings
        self._tz = pytz.timezone(settings.timezone)
        self.now = ensure_timezone_aware(now)
        self.today = self.anchor(self.now.astimezone(self._tz).date())

    # --- Anchor ---
    # Purpose: Place a local calendar date at the reference hour.
    # Inputs: Calendar date.
    # Outputs: Timezone-aware instant.
    def anchor(self, day: date) -> datetime:
        naive = datetime.combine(day, time(hour=self.settings.reference_hour))
        return self._tz.localize(naive)

    def add_days(self, instant: datetime, days: int) -> datetime:
        return self.anchor(instant.astimezone(self._tz).date() + timedelta(days=days))

    # --- Calendar day ---
    # Purpose: Convert any supported value into its local calendar-day anchor.
    # Inputs: Date, datetime, date-only string, ISO timestamp, or anything else.
    # Outputs: Anchored instant or None when the value is absent/unparseable.
    def to_calendar_day(self, value: Any) -> datetime | None:
        if is_date_only(value):
            parsed = parse_timestamp(value)
            return self.anchor(parsed.date()) if parsed else None
        if isinstance(value, date) and not isinstance(value, datetime):
            return self.anchor(value)
        parsed = parse_timestamp(value)
        if parsed is None:
            if value not in (None, ""):
                logger.debug("Ignoring unparseable timestamp %r", value)
            return None
        if parsed.tzinfo is None:
            return self.anchor(parsed.date())
        return self.anchor(parsed.astimezone(self._tz).date())

    def first_day(self, *candidates: Any) -> datetime | None:
        for candidate in candidates:
            resolved = self.to_calendar_day(candidate)
            if resolved is not None:
                return resolved
        return None

    # --- Start resolver ---
    # Purpose: Walk the start fallback chain.
    # Inputs: Ordered candidate values (planned start, actual start, phase start, creation).
    # Outputs: First parseable anchor, else today.
    def resolve_start(self, *candidates: Any) -> datetime:
        resolved = self.first_day(*candidates)
        return resolved if resolved is not None else self.today

    # --- End resolver ---
    # Purpose: Walk the end fallback chain and apply the overdue extension.
    # Inputs: EndRequest.
    # Outputs: ResolvedEnd (never before the start).
    def resolve_end(self, request: EndRequest) -> ResolvedEnd:
        phase = (request.phase or "").upper()
        if phase in (BatchPhase.PLANNED.value, BatchPhase.BREWING.value):
            return ResolvedEnd(self.add_days(request.start, 1))

        if request.entity_completed:
            end = self.first_day(request.completed_at) or self.today
            return ResolvedEnd(max(end, request.start))

        if request.assignment_completed:
            end = self.first_day(
                request.actual_end,
                request.next_phase_start,
                request.updated_at,
                request.planned_end,
            ) or self.today
            return ResolvedEnd(max(end, request.start))

        end = self.first_day(request.planned_end, request.estimated_end)
        if end is None:
            end = self.add_days(request.start, self.settings.duration_days(phase))
        end = max(end, request.start)
        if end < self.today:
            return ResolvedEnd(self.today, is_overdue=True)
        return ResolvedEnd(end)


# --- Phase start lookup ---
# Purpose: Map a lot/assignment phase onto the batch timestamp marking its start.
# Inputs: Batch and lot phase (or batch phase when no lot phase exists).
# Outputs: Raw timestamp value or None.
def phase_start_value(batch: Batch, phase: LotPhase | BatchPhase | None) -> Any:
    if phase in (LotPhase.FERMENTATION, BatchPhase.FERMENTING):
        return batch.fermentation_started_at
    if phase in (LotPhase.CONDITIONING, BatchPhase.CONDITIONING):
        return batch.conditioning_started_at
    if phase in (LotPhase.BRIGHT, BatchPhase.BRIGHT, BatchPhase.READY):
        return batch.ready_at
    if phase in (LotPhase.PACKAGING, BatchPhase.PACKAGING):
        return batch.packaging_started_at
    if phase is BatchPhase.PLANNED:
        return batch.planned_date
    if phase is BatchPhase.BREWING:
        return batch.brewed_at
    return None


# --- Next phase start lookup ---
# Purpose: Map a phase onto the batch timestamp marking the start of the next phase.
# Inputs: Batch and lot phase.
# Outputs: Raw timestamp value or None.
def next_phase_start_value(batch: Batch, phase: LotPhase | BatchPhase | None) -> Any:
    if phase in (LotPhase.FERMENTATION, BatchPhase.FERMENTING):
        return batch.conditioning_started_at
    if phase in (LotPhase.CONDITIONING, BatchPhase.CONDITIONING):
        return batch.ready_at or batch.packaging_started_at
    if phase in (LotPhase.BRIGHT, BatchPhase.BRIGHT, BatchPhase.READY):
        return batch.packaging_started_at
    if phase in (LotPhase.PACKAGING, BatchPhase.PACKAGING):
        return batch.completed_at
    return None
