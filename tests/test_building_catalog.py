"""Tests for catalogue loading and lookups."""
from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.building_catalog import (
    CatalogError,
    building_from_dict,
    catalog_from_data,
    load_catalog_from_path,
    load_default_catalog,
)


def test_default_catalog_contains_starter_buildings():
    catalog = load_default_catalog()

    assert "queen" in catalog
    assert catalog.find_building("queen").max_level == 7
    assert catalog.find_building("throne_room") is None
    assert catalog.ids()[0] == "queen"
    assert len(catalog) == len(list(catalog))


def test_levels_are_sorted_and_duplicates_keep_last():
    building = building_from_dict(
        {
            "id": " hall ",
            "depotType": "stone",
            "warns": "Fragile",
            "levels": [
                {"level": 2, "requirements": {"farm": "1"}},
                {"level": 1, "requirements": {"well": 1}},
                {"level": 1, "requirements": {}},
            ],
        }
    )

    assert building.id == "hall"
    assert [level.level for level in building.levels] == [1, 2]
    assert building.get_level(1).requirements == {}
    assert building.get_level(2).requirements == {"farm": 1}
    assert building.get_level(3) is None
    assert building.depot_type == "stone"
    assert building.warns == ("Fragile",)
    assert building.display_name == "Hall"


def test_level_costs_are_parsed():
    building = building_from_dict(
        {"id": "depot", "levels": [{"level": 1, "cost": {"plant": "100"}, "buildTime": 30}]}
    )

    level = building.get_level(1)
    assert level.cost == {"plant": 100.0}
    assert level.build_time == 30.0
    assert level.requirement_count == 0


@pytest.mark.parametrize(
    "record",
    [
        {"levels": []},
        {"id": "hall", "levels": [{"requirements": {}}]},
        {"id": "hall", "levels": [{"level": 0}]},
    ],
)
def test_malformed_records_raise(record):
    with pytest.raises(CatalogError):
        building_from_dict(record)


def test_catalog_data_must_be_a_list():
    with pytest.raises(CatalogError):
        catalog_from_data({"buildings": "nope"})


def test_load_from_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps({"buildings": [{"id": "hall", "levels": [{"level": 1}]}]}),
        encoding="utf-8",
    )

    catalog = load_catalog_from_path(path)

    assert catalog.ids() == ["hall"]


def test_load_from_directory_in_filename_order(tmp_path):
    (tmp_path / "b_well.json").write_text(json.dumps({"id": "well", "levels": [{"level": 1}]}), encoding="utf-8")
    (tmp_path / "a_hall.json").write_text(json.dumps({"id": "hall", "levels": [{"level": 1}]}), encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    catalog = load_catalog_from_path(tmp_path)

    assert catalog.ids() == ["hall", "well"]


def test_dependency_depth_is_longest_chain():
    catalog = load_default_catalog()

    assert catalog.dependency_depth("queen", 1) == 0
    assert catalog.dependency_depth("worker_ant_nest", 2) == 1
    assert catalog.dependency_depth("queen", 3) == 3
    assert catalog.dependency_depth("throne_room", 1) == 0


def test_dependency_depth_terminates_on_cycles():
    catalog = catalog_from_data(
        [
            {"id": "x", "levels": [{"level": 1, "requirements": {"y": 1}}]},
            {"id": "y", "levels": [{"level": 1, "requirements": {"x": 1}}]},
        ]
    )

    assert catalog.dependency_depth("x", 1) == 2
    assert catalog.dependency_depth("y", 1) == 1


def test_building_info_includes_warnings():
    info = load_default_catalog().building_info("construction_center")

    assert info["max_level"] == 1
    assert info["warns"] == ["Only useful while the colony belongs to an alliance"]
    assert info["depot_type"] is None


def test_dependency_depth_handles_long_chains():
    records = [{"id": "step0", "levels": [{"level": 1}]}]
    records += [
        {"id": f"step{index}", "levels": [{"level": 1, "requirements": {f"step{index - 1}": 1}}]}
        for index in range(1, 3000)
    ]
    catalog = catalog_from_data(records)

    assert catalog.dependency_depth("step2999", 1) == 2999
    assert catalog.dependency_depth("step1500", 1) == 1500
