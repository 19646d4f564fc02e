"""Typed contracts for production timeline reconciliation.

Synopsis:
Normalizes the snapshot handed over by the data-fetch layer (batches with their
lots, lot tank assignments and the resource list) into immutable typed records,
and defines the occupancy events, blend groups, batch cases and phase counts the
reconciliation package produces.

Glossary:
- Batch: One brew of a recipe; the unit of production planning.
- Lot: A physical volume of liquid; may hold liquid from one or several batches.
- Tank assignment: A record that a lot occupies a resource for a phase window.
- Blend: A lot holding liquid contributed by two or more batches.
- Split: A batch whose liquid was divided into several child lots.
- Unitank: One vessel holding a lot through consecutive phases.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Union

CHILD_LOT_SUFFIX = re.compile(r"-([A-Z])$")
BLEND_LOT_PREFIX = "BLEND-"

logger = logging.getLogger(__name__)


# --- Float parser ---
# Purpose: Convert loose numeric payload values into safe floats.
# Inputs: Arbitrary value and fallback default.
# Outputs: Parsed float value.
def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        if value is None:
            return float(default)
        if isinstance(value, str):
            cleaned = value.replace(",", "").strip()
            if cleaned == "":
                return float(default)
            return float(cleaned)
        return float(value)
    except (TypeError, ValueError):
        return float(default)


# --- Optional float parser ---
# Purpose: Keep "absent" distinct from zero for contribution metadata.
# Inputs: Arbitrary value.
# Outputs: Float or None when value is empty/invalid.
def _to_optional_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# --- Int parser ---
# Purpose: Convert loose payload values into optional integers.
# Inputs: Arbitrary value.
# Outputs: Integer or None when value is empty/invalid.
def _to_int(value: Any) -> int | None:
    try:
        if value in (None, "", []):
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


# --- Text normalizer ---
# Purpose: Normalize arbitrary values into trimmed text.
# Inputs: Arbitrary value and fallback.
# Outputs: Stripped string.
def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip() or default


# --- Optional identifier ---
# Purpose: Normalize id-like values (ints or strings) into text or None.
# Inputs: Arbitrary value.
# Outputs: Identifier string or None.
def _ident(value: Any) -> str | None:
    text = _text(value)
    return text or None


# --- Key picker ---
# Purpose: Read the first present key among snake_case and camelCase aliases.
# Inputs: Payload mapping and candidate keys.
# Outputs: First non-None value or None.
def _pick(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


# --- Nested reference id ---
# Purpose: Read ``{"id": ...}`` style nested references (e.g. currentTank).
# Inputs: Arbitrary nested value.
# Outputs: Identifier string or None.
def _nested(value: Any, key: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(key)
    return None


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


# --- Record rows ---
# Purpose: Keep the mapping rows of a nested list that carry an id.
# Inputs: Raw list value and the record kind (for logging).
# Outputs: Rows with an id; rows without one are skipped and logged.
def _mappings(raw: Any, kind: str) -> list[Mapping[str, Any]]:
    if not isinstance(raw, (list, tuple)):
        return []
    rows = []
    for row in raw:
        if not isinstance(row, Mapping):
            continue
        if _ident(row.get("id")) is None:
            logger.debug("Skipping %s entry without an id: %r", kind, row)
            continue
        rows.append(row)
    return rows


class SnapshotPayloadError(ValueError):
    """Raised when a snapshot payload cannot be read at all."""


# --- Batch phase ---
# Purpose: Enumerate the batch lifecycle phases in production order.
class BatchPhase(Enum):
    PLANNED = "PLANNED"
    BREWING = "BREWING"
    FERMENTING = "FERMENTING"
    CONDITIONING = "CONDITIONING"
    BRIGHT = "BRIGHT"
    READY = "READY"
    PACKAGING = "PACKAGING"
    COMPLETED = "COMPLETED"

    @classmethod
    def parse(cls, value: Any) -> "BatchPhase | None":
        text = _text(value).upper()
        if text == "FERMENTATION":
            return cls.FERMENTING
        try:
            return cls(text)
        except ValueError:
            return None


# --- Lot phase ---
# Purpose: Enumerate the phases a lot (and its tank assignments) can be in.
class LotPhase(Enum):
    FERMENTATION = "FERMENTATION"
    CONDITIONING = "CONDITIONING"
    BRIGHT = "BRIGHT"
    PACKAGING = "PACKAGING"

    @classmethod
    def parse(cls, value: Any) -> "LotPhase | None":
        text = _text(value).upper()
        if text in {"READY", "BRITE"}:
            return cls.BRIGHT
        if text == "FERMENTING":
            return cls.FERMENTATION
        try:
            return cls(text)
        except ValueError:
            return None

    @property
    def batch_phase(self) -> BatchPhase:
        if self is LotPhase.FERMENTATION:
            return BatchPhase.FERMENTING
        return BatchPhase(self.value)


class LotStatus(Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"

    @classmethod
    def parse(cls, value: Any) -> "LotStatus":
        if _text(value).upper() == "COMPLETED":
            return cls.COMPLETED
        return cls.ACTIVE


class AssignmentStatus(Enum):
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"

    @classmethod
    def parse(cls, value: Any) -> "AssignmentStatus":
        text = _text(value).upper()
        try:
            return cls(text)
        except ValueError:
            return cls.PLANNED


# --- Phase group ---
# Purpose: Name the two groups a blend is detected in.
class PhaseGroup(Enum):
    CONDITIONING = "conditioning"
    FERMENTATION = "fermentation"

    @property
    def phases(self) -> frozenset[LotPhase]:
        if self is PhaseGroup.FERMENTATION:
            return frozenset({LotPhase.FERMENTATION})
        return frozenset({LotPhase.CONDITIONING, LotPhase.BRIGHT, LotPhase.PACKAGING})


class ResourceCategory(Enum):
    BREWHOUSE = "brewhouse"
    FERMENTER = "fermenter"
    CONDITIONING = "conditioning"
    OTHER = "other"


_FERMENTER_HINTS = ("fermenter", "unitank", "conical", "fv")
_CONDITIONING_HINTS = ("brite", "bright", "conditioning", "serving", "bbt")
_BREWHOUSE_HINTS = ("brewhouse", "kettle", "mash", "lauter", "brew")


# --- Resource category classifier ---
# Purpose: Derive the lane category from equipment type and name hints.
# Inputs: Explicit category/type text and resource name.
# Outputs: ResourceCategory member.
def classify_resource(category: str, name: str) -> ResourceCategory:
    for text in (category.lower(), name.lower()):
        if not text:
            continue
        if any(hint in text for hint in _BREWHOUSE_HINTS):
            return ResourceCategory.BREWHOUSE
        if any(hint in text for hint in _FERMENTER_HINTS):
            return ResourceCategory.FERMENTER
        if any(hint in text for hint in _CONDITIONING_HINTS) or text.startswith("br-"):
            return ResourceCategory.CONDITIONING
    return ResourceCategory.OTHER


# --- Resource ---
# Purpose: Represent one piece of equipment a lot can occupy.
# Inputs: Equipment payload mapping.
# Outputs: Immutable resource instance.
@dataclass(frozen=True)
class Resource:
    id: str
    name: str
    category: ResourceCategory
    capacity: float = 0.0

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Resource":
        resource_id = _ident(payload.get("id"))
        if resource_id is None:
            raise SnapshotPayloadError("Resource entry is missing an id")
        name = _text(payload.get("name"), resource_id)
        category = _text(_pick(payload, "category", "type", "equipment_type", "equipmentType"))
        return cls(
            id=resource_id,
            name=name,
            category=classify_resource(category, name),
            capacity=max(_to_float(payload.get("capacity"), 0.0), 0.0),
        )

    @property
    def is_brewhouse(self) -> bool:
        return self.category is ResourceCategory.BREWHOUSE


# --- Tank assignment ---
# Purpose: Represent one lot-on-resource phase window.
# Inputs: Assignment payload mapping.
# Outputs: Immutable assignment instance.
@dataclass(frozen=True)
class TankAssignment:
    id: str
    phase: LotPhase | None
    status: AssignmentStatus
    tank_id: str | None = None
    equipment_id: str | None = None
    tank_name: str | None = None
    planned_start: Any = None
    planned_end: Any = None
    actual_start: Any = None
    actual_end: Any = None
    created_at: Any = None
    updated_at: Any = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TankAssignment":
        assignment_id = _ident(payload.get("id"))
        if assignment_id is None:
            raise SnapshotPayloadError("Tank assignment entry is missing an id")
        tank = payload.get("tank") or payload.get("equipment")
        return cls(
            id=assignment_id,
            phase=LotPhase.parse(payload.get("phase")),
            status=AssignmentStatus.parse(payload.get("status")),
            tank_id=_ident(_pick(payload, "tank_id", "tankId", "resource_id", "resourceId")),
            equipment_id=_ident(
                _pick(payload, "equipment_id", "equipmentId") or _nested(tank, "id")
            ),
            tank_name=_ident(
                _pick(payload, "tank_name", "tankName", "equipment_name", "equipmentName")
                or _nested(tank, "name")
            ),
            planned_start=_pick(payload, "planned_start", "plannedStart"),
            planned_end=_pick(payload, "planned_end", "plannedEnd"),
            actual_start=_pick(payload, "actual_start", "actualStart", "start_time", "startTime"),
            actual_end=_pick(payload, "actual_end", "actualEnd", "end_time", "endTime"),
            created_at=_pick(payload, "created_at", "createdAt"),
            updated_at=_pick(payload, "updated_at", "updatedAt"),
        )

    @property
    def is_completed(self) -> bool:
        return self.status is AssignmentStatus.COMPLETED

    @property
    def is_active(self) -> bool:
        return self.status is AssignmentStatus.ACTIVE


# --- Lot ---
# Purpose: Represent one lot as seen from a single batch (join metadata included).
# Inputs: Lot payload mapping.
# Outputs: Immutable lot instance.
@dataclass(frozen=True)
class Lot:
    id: str
    code: str
    phase: LotPhase | None
    status: LotStatus
    volume: float = 0.0
    completed_at: Any = None
    parent_lot_id: str | None = None
    volume_contribution: float | None = None
    batch_percentage: float | None = None
    batch_count: int | None = None
    is_blend_result: bool = False
    assignments: tuple[TankAssignment, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Lot":
        lot_id = _ident(payload.get("id"))
        if lot_id is None:
            raise SnapshotPayloadError("Lot entry is missing an id")
        return cls(
            id=lot_id,
            code=_text(_pick(payload, "code", "lot_code", "lotCode", "lot_number", "lotNumber"), lot_id),
            phase=LotPhase.parse(payload.get("phase")),
            status=LotStatus.parse(payload.get("status")),
            volume=max(_to_float(payload.get("volume"), 0.0), 0.0),
            completed_at=_pick(payload, "completed_at", "completedAt"),
            parent_lot_id=_ident(_pick(payload, "parent_lot_id", "parentLotId")),
            volume_contribution=_to_optional_float(
                _pick(payload, "volume_contribution", "volumeContribution")
            ),
            batch_percentage=_to_optional_float(
                _pick(payload, "batch_percentage", "batchPercentage")
            ),
            batch_count=_to_int(_pick(payload, "batch_count", "batchCount")),
            is_blend_result=_flag(_pick(payload, "is_blend_result", "isBlendResult")),
            assignments=tuple(
                TankAssignment.from_payload(row)
                for row in _mappings(
                    _pick(payload, "assignments", "tank_assignments", "tankAssignments"), "tank assignment"
                )
            ),
        )

    @property
    def is_completed(self) -> bool:
        return self.status is LotStatus.COMPLETED

    @property
    def child_suffix(self) -> str | None:
        match = CHILD_LOT_SUFFIX.search(self.code)
        return match.group(1) if match else None

    @property
    def is_blend_code(self) -> bool:
        return self.code.upper().startswith(BLEND_LOT_PREFIX)


# --- Batch ---
# Purpose: Represent one batch with its lifecycle timestamps and lots.
# Inputs: Batch payload mapping.
# Outputs: Immutable batch instance.
@dataclass(frozen=True)
class Batch:
    id: str
    code: str
    phase: BatchPhase
    recipe_name: str = ""
    volume: float = 0.0
    is_split: bool = False
    is_blend: bool = False
    brewed_at: Any = None
    fermentation_started_at: Any = None
    conditioning_started_at: Any = None
    ready_at: Any = None
    packaging_started_at: Any = None
    completed_at: Any = None
    created_at: Any = None
    planned_date: Any = None
    estimated_end: Any = None
    current_tank_id: str | None = None
    tank_id: str | None = None
    tank_name: str | None = None
    lots: tuple[Lot, ...] = ()
    member_codes: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Batch":
        batch_id = _ident(payload.get("id"))
        if batch_id is None:
            raise SnapshotPayloadError("Batch entry is missing an id")
        recipe = payload.get("recipe")
        current_tank = _pick(payload, "current_tank", "currentTank")
        lots_raw = _pick(payload, "lots", "all_lots", "allLots")
        return cls(
            id=batch_id,
            code=_text(_pick(payload, "code", "batch_number", "batchNumber"), batch_id),
            phase=BatchPhase.parse(payload.get("phase") or payload.get("status")) or BatchPhase.PLANNED,
            recipe_name=_text(_pick(payload, "recipe_name", "recipeName") or _nested(recipe, "name")),
            volume=max(_to_float(_pick(payload, "volume", "actual_volume", "actualVolume"), 0.0), 0.0),
            is_split=_flag(_pick(payload, "is_split", "isSplit")),
            is_blend=_flag(_pick(payload, "is_blend", "isBlend")),
            brewed_at=_pick(payload, "brewed_at", "brewedAt", "brew_date", "brewDate"),
            fermentation_started_at=_pick(
                payload, "fermentation_started_at", "fermentationStartedAt"
            ),
            conditioning_started_at=_pick(
                payload, "conditioning_started_at", "conditioningStartedAt"
            ),
            ready_at=_pick(payload, "ready_at", "readyAt"),
            packaging_started_at=_pick(payload, "packaging_started_at", "packagingStartedAt"),
            completed_at=_pick(payload, "completed_at", "completedAt"),
            created_at=_pick(payload, "created_at", "createdAt"),
            planned_date=_pick(payload, "planned_date", "plannedDate"),
            estimated_end=_pick(
                payload, "estimated_end", "estimatedEnd", "estimated_end_date", "estimatedEndDate"
            ),
            current_tank_id=_ident(
                _pick(payload, "current_tank_id", "currentTankId") or _nested(current_tank, "id")
            ),
            tank_id=_ident(_pick(payload, "tank_id", "tankId", "equipment_id", "equipmentId")),
            tank_name=_ident(
                _pick(payload, "tank_name", "tankName") or _nested(current_tank, "name")
            ),
            lots=tuple(Lot.from_payload(row) for row in _mappings(lots_raw, "lot")),
            member_codes=tuple(
                _text(code) for code in (_pick(payload, "member_codes", "memberCodes") or ()) if _text(code)
            ),
        )

    @property
    def is_completed(self) -> bool:
        return self.phase is BatchPhase.COMPLETED


# --- Timeline snapshot ---
# Purpose: Hold one consistent snapshot of batches and resources.
# Inputs: Snapshot payload mapping.
# Outputs: Immutable snapshot instance.
@dataclass(frozen=True)
class TimelineSnapshot:
    batches: tuple[Batch, ...]
    resources: tuple[Resource, ...]
    now: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> "TimelineSnapshot":
        if not isinstance(payload, Mapping):
            raise SnapshotPayloadError("Snapshot payload must be a JSON object")
        batches_raw = payload.get("batches")
        resources_raw = _pick(payload, "resources", "equipment", "tanks")
        if batches_raw is not None and not isinstance(batches_raw, (list, tuple)):
            raise SnapshotPayloadError("'batches' must be a list")
        if resources_raw is not None and not isinstance(resources_raw, (list, tuple)):
            raise SnapshotPayloadError("'resources' must be a list")
        return cls(
            batches=tuple(Batch.from_payload(row) for row in _mappings(batches_raw, "batch")),
            resources=tuple(Resource.from_payload(row) for row in _mappings(resources_raw, "resource")),
            now=payload.get("now"),
        )


DEFAULT_PHASE_DURATION_DAYS: dict[str, int] = {
    "PLANNED": 1,
    "BREWING": 1,
    "FERMENTING": 14,
    "FERMENTATION": 14,
    "CONDITIONING": 7,
    "BRIGHT": 7,
    "READY": 7,
    "PACKAGING": 1,
}


# --- Duration table parser ---
# Purpose: Parse "PHASE=days,PHASE=days" config strings or mappings.
# Inputs: Raw config value.
# Outputs: Phase-name to positive day-count mapping.
def _durations(raw: Any) -> dict[str, int]:
    merged = dict(DEFAULT_PHASE_DURATION_DAYS)
    if isinstance(raw, Mapping):
        items = raw.items()
    elif isinstance(raw, str):
        items = [part.split("=", 1) for part in raw.split(",") if "=" in part]
    else:
        items = []
    for key, value in items:
        days = _to_int(_text(value))
        if days is not None and days > 0:
            merged[_text(key).upper()] = days
    return merged


# --- Timeline settings ---
# Purpose: Carry the production timezone, anchor hour and default durations.
# Inputs: Flask config mapping (or any mapping with the same keys).
# Outputs: Immutable settings instance.
@dataclass(frozen=True)
class TimelineSettings:
    timezone: str = "UTC"
    reference_hour: int = 12
    durations: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_PHASE_DURATION_DAYS))

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TimelineSettings":
        hour = _to_int(config.get("TIMELINE_REFERENCE_HOUR"))
        if hour is None or not 0 <= hour <= 23:
            hour = 12
        return cls(
            timezone=_text(config.get("PRODUCTION_TIMEZONE"), "UTC"),
            reference_hour=hour,
            durations=_durations(config.get("TIMELINE_DEFAULT_DURATIONS")),
        )

    def duration_days(self, phase: str | None) -> int:
        return int(self.durations.get(_text(phase).upper(), 1))


# --- Blend group ---
# Purpose: Describe one shared lot detected as a blend within a phase group.
@dataclass(frozen=True)
class BlendGroup:
    lot: Lot
    phase_group: PhaseGroup
    member_ids: tuple[str, ...]
    label: str
    recipe_label: str
    volume: float
    representative: TankAssignment | None = None
    origin_batch_id: str | None = None

    @property
    def renderer_id(self) -> str:
        return self.member_ids[0]

    def in_group(self, assignment: TankAssignment) -> bool:
        return (assignment.phase or self.lot.phase) in self.phase_group.phases


@dataclass(frozen=True)
class SplitChild:
    lot: Lot
    suffix: str | None


# --- Batch cases ---
# Purpose: Tag each batch with the single rendering path chosen in pass one.
@dataclass(frozen=True)
class SimpleCase:
    batch: Batch
    lots: tuple[Lot, ...]


@dataclass(frozen=True)
class SplitCase:
    batch: Batch
    parent_lots: tuple[Lot, ...]
    children: tuple[SplitChild, ...]
    blends: tuple[BlendGroup, ...] = ()


@dataclass(frozen=True)
class BlendMemberCase:
    batch: Batch
    lots: tuple[Lot, ...]
    blends: tuple[BlendGroup, ...]


@dataclass(frozen=True)
class BlendOriginCase:
    batch: Batch
    blends: tuple[BlendGroup, ...]


BatchCase = Union[SimpleCase, SplitCase, BlendMemberCase, BlendOriginCase]


@dataclass(frozen=True)
class EventBadge:
    kind: str
    label: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "label": self.label}


# --- Occupancy event ---
# Purpose: One rendered interval of a resource being occupied.
@dataclass(frozen=True)
class OccupancyEvent:
    id: str
    resource_id: str
    resource_name: str
    lane: str
    start: datetime
    end: datetime
    label: str
    recipe_label: str
    phase: str
    status: str
    is_historical: bool
    is_blend: bool
    is_split_lot: bool
    batch_ids: tuple[str, ...]
    volume: float
    fill_percent: int = 0
    is_overdue: bool = False
    lot_id: str | None = None
    lot_code: str | None = None
    badges: tuple[EventBadge, ...] = ()

    @property
    def sort_key(self) -> tuple[datetime, str, str]:
        return (self.start, self.resource_id, self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "lane": self.lane,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "label": self.label,
            "recipe_label": self.recipe_label,
            "phase": self.phase,
            "status": self.status,
            "is_historical": self.is_historical,
            "is_blend": self.is_blend,
            "is_split_lot": self.is_split_lot,
            "is_overdue": self.is_overdue,
            "batch_ids": list(self.batch_ids),
            "lot_id": self.lot_id,
            "lot_code": self.lot_code,
            "volume": round(self.volume, 3),
            "fill_percent": self.fill_percent,
            "badges": [badge.to_dict() for badge in self.badges],
        }


@dataclass(frozen=True)
class PhaseCounts:
    planned: int = 0
    brewing: int = 0
    fermenting: int = 0
    conditioning: int = 0
    ready: int = 0
    packaging: int = 0
    blended: int = 0
    split: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "planned": self.planned,
            "brewing": self.brewing,
            "fermenting": self.fermenting,
            "conditioning": self.conditioning,
            "ready": self.ready,
            "packaging": self.packaging,
            "blended": self.blended,
            "split": self.split,
        }


@dataclass(frozen=True)
class ConservationIssue:
    kind: str
    subject_id: str
    subject_code: str
    expected: float
    actual: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "subject_id": self.subject_id,
            "subject_code": self.subject_code,
            "expected": round(self.expected, 3),
            "actual": round(self.actual, 3),
        }


@dataclass(frozen=True)
class ResourceOccupancy:
    resource_id: str
    resource_name: str
    lane: str
    active_count: int
    planned_count: int
    current_label: str | None
    utilisation_percent: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "lane": self.lane,
            "active_count": self.active_count,
            "planned_count": self.planned_count,
            "current_label": self.current_label,
            "utilisation_percent": self.utilisation_percent,
        }


@dataclass(frozen=True)
class ReconciliationResult:
    events: tuple[OccupancyEvent, ...]
    phase_counts: PhaseCounts
    generated_at: datetime
    conservation_issues: tuple[ConservationIssue, ...] = ()
    current_lots: Mapping[str, str | None] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "events": [event.to_dict() for event in self.events],
            "phase_counts": self.phase_counts.to_dict(),
            "current_lots": dict(self.current_lots),
            "conservation_issues": [issue.to_dict() for issue in self.conservation_issues],
        }
