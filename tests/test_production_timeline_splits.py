from cellartrack.services.production_timeline import resolve_split, select_current_lot
from cellartrack.services.production_timeline._splits import (
    is_historical_child_assignment,
    is_parent_lot,
)
from cellartrack.services.production_timeline.types import Batch, Lot, TankAssignment


def _split_batch(**overrides):
    payload = {
        "id": "b3",
        "batchNumber": "B3",
        "status": "CONDITIONING",
        "isSplit": True,
        "volume": 20,
        "lots": [
            {"id": "l3", "lotCode": "L3", "phase": "FERMENTATION", "status": "COMPLETED", "volume": 20},
            {"id": "l3a", "lotCode": "L3-A", "phase": "CONDITIONING", "status": "ACTIVE", "volume": 10},
            {"id": "l3b", "lotCode": "L3-B", "phase": "BRIGHT", "status": "ACTIVE", "volume": 10},
        ],
    }
    payload.update(overrides)
    return Batch.from_payload(payload)


def test_split_partitions_parent_and_children():
    split = resolve_split(_split_batch())

    assert [lot.id for lot in split.parent_lots] == ["l3"]
    assert [(child.lot.id, child.suffix) for child in split.children] == [("l3a", "A"), ("l3b", "B")]


def test_parent_lot_id_marks_children_without_suffix():
    batch = _split_batch(
        lots=[
            {"id": "p", "lotCode": "LOT-100", "phase": "FERMENTATION"},
            {"id": "c1", "lotCode": "LOT-200", "parentLotId": "p", "phase": "CONDITIONING"},
            {"id": "c2", "lotCode": "LOT-300", "parentLotId": "p", "phase": "CONDITIONING"},
        ]
    )
    split = resolve_split(batch)

    assert [lot.id for lot in split.parent_lots] == ["p"]
    assert [child.suffix for child in split.children] == [None, None]


def test_split_flag_without_child_lots_is_not_a_split():
    batch = _split_batch(
        lots=[
            {"id": "l1", "lotCode": "L1", "phase": "CONDITIONING"},
            {"id": "l2", "lotCode": "L2", "phase": "CONDITIONING"},
        ]
    )
    assert resolve_split(batch) is None
    assert resolve_split(_split_batch(isSplit=False)) is None


def test_similar_codes_are_not_mistaken_for_parents():
    lots = [Lot.from_payload({"id": "a", "lotCode": "L1"}), Lot.from_payload({"id": "b", "lotCode": "L10-A"})]
    assert is_parent_lot(lots[0], lots) is False


def test_completed_assignment_on_active_lot_in_same_phase_is_current():
    lot = Lot.from_payload({"id": "l3a", "lotCode": "L3-A", "phase": "CONDITIONING", "status": "ACTIVE"})
    stale = TankAssignment.from_payload({"id": "x", "phase": "CONDITIONING", "status": "COMPLETED"})
    earlier = TankAssignment.from_payload({"id": "y", "phase": "FERMENTATION", "status": "COMPLETED"})
    active = TankAssignment.from_payload({"id": "z", "phase": "CONDITIONING", "status": "ACTIVE"})

    assert is_historical_child_assignment(lot, stale) is False
    assert is_historical_child_assignment(lot, earlier) is True
    assert is_historical_child_assignment(lot, active) is False


def test_completed_lot_keeps_completed_assignment_historical():
    lot = Lot.from_payload({"id": "l3a", "lotCode": "L3-A", "phase": "CONDITIONING", "status": "COMPLETED"})
    assignment = TankAssignment.from_payload({"id": "x", "phase": "CONDITIONING", "status": "COMPLETED"})
    assert is_historical_child_assignment(lot, assignment) is True


def test_current_lot_prefers_active_child():
    assert select_current_lot(_split_batch()).id == "l3a"

    plain = Batch.from_payload(
        {
            "id": "b1",
            "lots": [
                {"id": "old", "lotCode": "L0", "status": "COMPLETED"},
                {"id": "new", "lotCode": "L1", "status": "ACTIVE"},
            ],
        }
    )
    assert select_current_lot(plain).id == "new"
    assert select_current_lot(Batch.from_payload({"id": "empty"})) is None
