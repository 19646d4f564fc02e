import pytest

from cellartrack.services.production_timeline import ResourceIndex, SnapshotPayloadError, TimelineSnapshot
from cellartrack.services.production_timeline.types import (
    Resource,
    ResourceCategory,
    classify_resource,
)


def _resources():
    return [
        Resource.from_payload({"id": "t1", "name": "FV-1", "type": "fermenter", "capacity": 30}),
        Resource.from_payload({"id": "bh-1", "name": "Brewhouse", "type": "brewhouse", "capacity": 20}),
        Resource.from_payload({"id": "t2", "name": "BT-1", "type": "brite", "capacity": 30}),
        Resource.from_payload({"id": 7, "name": "Unitank 7", "capacity": "40"}),
    ]


@pytest.mark.parametrize(
    "category,name,expected",
    [
        ("fermenter", "FV-1", ResourceCategory.FERMENTER),
        ("", "Unitank 3", ResourceCategory.FERMENTER),
        ("brite", "BT-1", ResourceCategory.CONDITIONING),
        ("", "BR-2", ResourceCategory.CONDITIONING),
        ("serving", "Serving Tank", ResourceCategory.CONDITIONING),
        ("kettle", "Kettle", ResourceCategory.BREWHOUSE),
        ("", "Keg washer", ResourceCategory.OTHER),
    ],
)
def test_resource_category_classification(category, name, expected):
    assert classify_resource(category, name) is expected


def test_resource_payload_normalizes_ids_and_capacity():
    resource = _resources()[3]
    assert resource.id == "7"
    assert resource.capacity == 40.0
    assert resource.category is ResourceCategory.FERMENTER


def test_resource_without_id_is_skipped_from_snapshot():
    snapshot = TimelineSnapshot.from_payload(
        {"batches": [], "resources": [{"name": "Mystery"}, {"id": "t1", "name": "FV-1", "type": "fermenter"}]}
    )

    assert [resource.id for resource in snapshot.resources] == ["t1"]
    with pytest.raises(SnapshotPayloadError):
        Resource.from_payload({"name": "Mystery"})


def test_explicit_tank_id_wins_over_name():
    index = ResourceIndex(_resources())
    resolved = index.resolve(current_tank_id="t2", tank_id="t1", tank_name="FV-1")
    assert resolved.id == "t2"


def test_generic_id_then_name_lookup_is_case_insensitive():
    index = ResourceIndex(_resources())
    assert index.resolve(current_tank_id="missing", tank_id="t1").id == "t1"
    assert index.resolve(tank_name="  bt-1 ").id == "t2"


def test_brew_day_phases_fall_back_to_first_brewhouse():
    index = ResourceIndex(_resources())
    assert index.resolve(phase="PLANNED").id == "bh-1"
    assert index.resolve(phase="brewing").id == "bh-1"


def test_unresolvable_reference_returns_none():
    index = ResourceIndex(_resources())
    assert index.resolve(tank_id="t99", phase="FERMENTING") is None
    assert index.resolve(phase="FERMENTING") is None
    assert ResourceIndex([]).resolve(phase="PLANNED") is None
