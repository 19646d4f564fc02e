"""Production timeline reconciliation package.

Synopsis:
Turns a snapshot of batches, lots and tank assignments into a deduplicated list
of resource occupancy events plus lot-based dashboard phase counts.

Glossary:
- Reconciliation: Folding the batch/lot graph into one consistent timeline view.
"""

from ._blends import BlendTable, detect_blends
from ._conservation import conservation_report
from ._core import ProductionTimelineService, resolve_now
from ._dates import DateResolver
from ._phase_counts import aggregate_phase_counts
from ._resources import ResourceIndex
from ._splits import resolve_split, select_current_lot
from ._summary import summarize_occupancy
from .types import (
    OccupancyEvent,
    PhaseCounts,
    ReconciliationResult,
    SnapshotPayloadError,
    TimelineSettings,
    TimelineSnapshot,
)

__all__ = [
    "BlendTable",
    "DateResolver",
    "OccupancyEvent",
    "PhaseCounts",
    "ProductionTimelineService",
    "ReconciliationResult",
    "ResourceIndex",
    "SnapshotPayloadError",
    "TimelineSettings",
    "TimelineSnapshot",
    "aggregate_phase_counts",
    "conservation_report",
    "detect_blends",
    "resolve_now",
    "resolve_split",
    "select_current_lot",
    "summarize_occupancy",
]
