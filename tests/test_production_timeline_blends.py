from cellartrack.services.production_timeline import detect_blends
from cellartrack.services.production_timeline._cases import classify_batch
from cellartrack.services.production_timeline.types import (
    Batch,
    BlendMemberCase,
    BlendOriginCase,
    PhaseGroup,
    SimpleCase,
)


def _shared_lot(**overrides):
    lot = {
        "id": "lb",
        "lotCode": "LB",
        "phase": "CONDITIONING",
        "status": "ACTIVE",
        "volume": 22,
        "assignments": [
            {"id": "f1", "tankId": "t1", "phase": "FERMENTATION", "status": "COMPLETED"},
            {"id": "c1", "tankId": "t2", "phase": "CONDITIONING", "status": "ACTIVE"},
        ],
    }
    lot.update(overrides)
    return lot


def _batch(batch_id, code, created_at, lots, **extra):
    payload = {
        "id": batch_id,
        "batchNumber": code,
        "status": "CONDITIONING",
        "createdAt": created_at,
        "volume": 10,
        "lots": lots,
    }
    payload.update(extra)
    return Batch.from_payload(payload)


def _own_lot(lot_id):
    return {
        "id": lot_id,
        "lotCode": lot_id.upper(),
        "phase": "FERMENTATION",
        "status": "COMPLETED",
        "assignments": [{"id": f"a-{lot_id}", "tankId": "t5", "phase": "FERMENTATION", "status": "COMPLETED"}],
    }


def test_shared_conditioning_lot_forms_one_blend_group():
    b1 = _batch("b1", "B1", "2026-02-01T08:00:00Z", [_shared_lot()], recipe={"name": "Pale"})
    b2 = _batch("b2", "B2", "2026-02-02T08:00:00Z", [_own_lot("l2"), _shared_lot()], recipe={"name": "IPA"})

    table = detect_blends([b2, b1])

    assert len(table.groups) == 1
    group = table.groups[0]
    assert group.phase_group is PhaseGroup.CONDITIONING
    assert group.member_ids == ("b1", "b2")
    assert group.renderer_id == "b1"
    assert group.label == "B1 + B2"
    assert group.recipe_label == "Pale / IPA"
    assert group.representative.id == "c1"
    assert group.origin_batch_id == "b1"


def test_members_are_ordered_by_creation_time_not_input_order():
    late = _batch("a-late", "B9", "2026-02-05", [_shared_lot()])
    early = _batch("z-early", "B3", "2026-01-20", [_shared_lot()])

    group = detect_blends([late, early]).groups[0]

    assert group.member_ids == ("z-early", "a-late")
    assert group.label == "B3 + B9"


def test_blend_code_prefixes_the_combined_label():
    lot = _shared_lot(lotCode="BLEND-2026-0001")
    table = detect_blends([
        _batch("b1", "B1", "2026-02-01", [lot]),
        _batch("b2", "B2", "2026-02-02", [lot]),
    ])
    assert table.groups[0].label == "BLEND-2026-0001: B1 + B2"


def test_combined_volume_uses_contributions_then_batch_volume():
    with_contrib = detect_blends([
        _batch("b1", "B1", "2026-02-01", [_shared_lot(volumeContribution=9.5)]),
        _batch("b2", "B2", "2026-02-02", [_shared_lot(volumeContribution=12)]),
    ])
    assert with_contrib.groups[0].volume == 21.5

    without_contrib = detect_blends([
        _batch("b1", "B1", "2026-02-01", [_shared_lot()], volume=10),
        _batch("b2", "B2", "2026-02-02", [_shared_lot()], volume=12),
    ])
    assert without_contrib.groups[0].volume == 22


def test_fermentation_history_does_not_create_fermentation_blend():
    table = detect_blends([
        _batch("b1", "B1", "2026-02-01", [_shared_lot()]),
        _batch("b2", "B2", "2026-02-02", [_own_lot("l2"), _shared_lot()]),
    ])
    assert [group.phase_group for group in table.groups] == [PhaseGroup.CONDITIONING]


def test_shared_fermenting_lot_is_a_fermentation_blend():
    lot = {
        "id": "lf",
        "lotCode": "LF",
        "phase": "FERMENTATION",
        "status": "ACTIVE",
        "assignments": [{"id": "fx", "tankId": "t1", "phase": "FERMENTATION", "status": "ACTIVE"}],
    }
    table = detect_blends([
        _batch("b1", "B1", "2026-02-01", [lot]),
        _batch("b2", "B2", "2026-02-02", [lot]),
    ])
    assert len(table.groups) == 1
    assert table.groups[0].phase_group is PhaseGroup.FERMENTATION


def test_single_batch_lot_is_not_a_blend():
    table = detect_blends([_batch("b1", "B1", "2026-02-01", [_shared_lot()])])
    assert table.groups == ()
    assert table.lot_batches == {"lb": ("b1",)}


def test_cases_distinguish_origin_member_and_simple_batches():
    b1 = _batch("b1", "B1", "2026-02-01", [_shared_lot()])
    b2 = _batch("b2", "B2", "2026-02-02", [_own_lot("l2"), _shared_lot()])
    b3 = _batch("b3", "B3", "2026-02-03", [_own_lot("l3")])
    table = detect_blends([b1, b2, b3])

    origin = classify_batch(b1, table)
    member = classify_batch(b2, table)
    simple = classify_batch(b3, table)

    assert isinstance(origin, BlendOriginCase)
    assert isinstance(member, BlendMemberCase)
    assert [lot.id for lot in member.lots] == ["l2"]
    assert isinstance(simple, SimpleCase)
