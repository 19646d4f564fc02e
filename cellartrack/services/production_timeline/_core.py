"""Production timeline reconciliation service.

Synopsis:
Runs the two-pass reconciliation over one snapshot: pass one builds the blend
table and the per-batch cases, pass two folds the cases into occupancy events.
Phase counts, the conservation report and current-lot selection are computed
from the same immutable tables.

Glossary:
- Reference instant: The ``now`` every date fallback and overdue check uses.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from ...utils.datetime_helpers import ensure_timezone_aware, parse_timestamp, utc_now
from ._blends import detect_blends
from ._cases import classify_batches
from ._conservation import conservation_report
from ._dates import DateResolver
from ._events import EventSynthesizer
from ._phase_counts import aggregate_phase_counts
from ._resources import ResourceIndex
from ._splits import select_current_lot
from ._summary import DEFAULT_WINDOW_DAYS, summarize_occupancy
from .types import (
    OccupancyEvent,
    PhaseCounts,
    ReconciliationResult,
    ResourceOccupancy,
    TimelineSettings,
    TimelineSnapshot,
)

logger = logging.getLogger(__name__)


# --- Snapshot coercion ---
# Purpose: Accept a typed snapshot or its raw payload.
# Inputs: TimelineSnapshot or mapping.
# Outputs: TimelineSnapshot.
def _snapshot(snapshot: TimelineSnapshot | Mapping[str, Any]) -> TimelineSnapshot:
    if isinstance(snapshot, TimelineSnapshot):
        return snapshot
    return TimelineSnapshot.from_payload(snapshot)


# --- Reference instant ---
# Purpose: Pick the explicit ``now``, else the snapshot's, else the current UTC time.
# Inputs: Explicit value and snapshot.
# Outputs: Timezone-aware datetime.
def resolve_now(now: Any, snapshot: TimelineSnapshot | None = None) -> datetime:
    for candidate in (now, snapshot.now if snapshot else None):
        parsed = parse_timestamp(candidate)
        if parsed is not None:
            return ensure_timezone_aware(parsed)
        if candidate not in (None, ""):
            raise ValueError(f"Invalid reference time: {candidate!r}")
    return utc_now()


class ProductionTimelineService:
    @classmethod
    def reconcile(
        cls,
        snapshot: TimelineSnapshot | Mapping[str, Any],
        now: Any = None,
        settings: TimelineSettings | None = None,
    ) -> ReconciliationResult:
        snapshot = _snapshot(snapshot)
        settings = settings or TimelineSettings()
        reference = resolve_now(now, snapshot)

        blends = detect_blends(snapshot.batches)
        cases = classify_batches(snapshot.batches, blends)
        resolver = DateResolver(settings, reference)
        events = EventSynthesizer(resolver, ResourceIndex(snapshot.resources), snapshot.batches).synthesize(cases)
        counts = aggregate_phase_counts(snapshot.batches, blends)
        issues = conservation_report(snapshot.batches)
        current_lots = {}
        for batch in snapshot.batches:
            lot = select_current_lot(batch)
            current_lots[batch.id] = lot.code if lot else None

        logger.info(
            "Reconciled %s batches into %s events (%s blend groups, %s volume issues)",
            len(snapshot.batches),
            len(events),
            len(blends.groups),
            len(issues),
        )
        return ReconciliationResult(
            events=events,
            phase_counts=counts,
            generated_at=reference,
            conservation_issues=issues,
            current_lots=current_lots,
        )

    @classmethod
    def build_occupancy_events(
        cls,
        snapshot: TimelineSnapshot | Mapping[str, Any],
        now: Any = None,
        settings: TimelineSettings | None = None,
    ) -> tuple[OccupancyEvent, ...]:
        return cls.reconcile(snapshot, now=now, settings=settings).events

    @classmethod
    def aggregate_phase_counts(cls, snapshot: TimelineSnapshot | Mapping[str, Any]) -> PhaseCounts:
        return aggregate_phase_counts(_snapshot(snapshot).batches)

    @classmethod
    def summarize_occupancy(
        cls,
        snapshot: TimelineSnapshot | Mapping[str, Any],
        now: Any = None,
        settings: TimelineSettings | None = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
    ) -> tuple[ResourceOccupancy, ...]:
        snapshot = _snapshot(snapshot)
        settings = settings or TimelineSettings()
        result = cls.reconcile(snapshot, now=now, settings=settings)
        today = DateResolver(settings, result.generated_at).today
        return summarize_occupancy(result.events, snapshot.resources, today, window_days)
