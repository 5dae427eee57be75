"""Tests for the topological orderer."""
from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.build_order import number_steps, order_requirements, validate_build_order
from core.building_catalog import catalog_from_data
from core.building_models import BuildRequirement
from core.diagnostics import DiagnosticCollector


def _catalog():
    return catalog_from_data(
        [
            {
                "id": "hall",
                "levels": [
                    {"level": 1, "requirements": {}},
                    {"level": 2, "requirements": {"farm": 1, "well": 1}},
                    {"level": 3, "requirements": {"farm": 2}},
                ],
            },
            {"id": "farm", "levels": [{"level": 1}, {"level": 2, "requirements": {"hall": 2}}]},
            {"id": "well", "levels": [{"level": 1}]},
            {"id": "mill", "levels": [{"level": 1, "requirements": {"farm": 1}}]},
        ]
    )


def _req(building_id: str, level: int, requirement_count: int = 0) -> BuildRequirement:
    return BuildRequirement(id=building_id, level=level, requirement_count=requirement_count)


def _pairs(requirements):
    return [(item.id, item.level) for item in requirements]


def test_prerequisites_and_level_chain_come_first():
    catalog = _catalog()
    requirements = [_req("hall", 3, 1), _req("farm", 2, 1), _req("hall", 2, 2), _req("well", 1), _req("farm", 1), _req("hall", 1)]

    ordered = order_requirements(requirements, catalog)

    assert _pairs(ordered) == [("farm", 1), ("hall", 1), ("well", 1), ("hall", 2), ("farm", 2), ("hall", 3)]
    assert [item.step for item in ordered] == [1, 2, 3, 4, 5, 6]


def test_ready_ties_follow_level_then_requirement_count_then_id():
    catalog = _catalog()
    requirements = [_req("mill", 1, 1), _req("well", 1), _req("farm", 1), _req("hall", 2, 2)]

    ordered = order_requirements(requirements, catalog)

    # hall 1 is outside the set, so its chain edge is ignored.
    assert _pairs(ordered) == [("farm", 1), ("well", 1), ("mill", 1), ("hall", 2)]


def test_target_chain_yields_to_other_prerequisites_on_ties():
    catalog = _catalog()
    requirements = [_req("hall", 1), _req("farm", 1), _req("well", 1)]

    plain = order_requirements(requirements, catalog)
    targeted = order_requirements(requirements, catalog, target_id="farm")

    assert _pairs(plain) == [("farm", 1), ("hall", 1), ("well", 1)]
    assert _pairs(targeted) == [("hall", 1), ("well", 1), ("farm", 1)]


def test_ordering_does_not_depend_on_input_order():
    catalog = _catalog()
    requirements = [_req("hall", 3, 1), _req("farm", 2, 1), _req("hall", 2, 2), _req("well", 1), _req("farm", 1), _req("hall", 1)]

    forward = order_requirements(requirements, catalog)
    backward = order_requirements(list(reversed(requirements)), catalog)

    assert forward == backward


def test_cycle_returns_input_order():
    catalog = catalog_from_data(
        [
            {"id": "x", "levels": [{"level": 1, "requirements": {"y": 1}}]},
            {"id": "y", "levels": [{"level": 1, "requirements": {"x": 1}}]},
            {"id": "z", "levels": [{"level": 1}]},
        ]
    )
    collector = DiagnosticCollector()
    requirements = [_req("y", 1, 1), _req("z", 1), _req("x", 1, 1)]

    ordered = order_requirements(requirements, catalog, collector)

    assert _pairs(ordered) == [("y", 1), ("z", 1), ("x", 1)]
    assert [item.step for item in ordered] == [1, 2, 3]
    assert collector.codes() == ["topological_fallback"]
    assert collector.events[0].details == {"ordered": 1, "total": 3}


def test_empty_input():
    assert order_requirements([], _catalog()) == ()


def test_validate_build_order_flags_late_prerequisites():
    catalog = _catalog()
    collector = DiagnosticCollector()
    sequence = number_steps([_req("hall", 2, 2), _req("farm", 1), _req("well", 1)])

    violations = validate_build_order(sequence, catalog, collector)

    assert violations == 2
    assert collector.codes() == ["order_violation", "order_violation"]
    assert {event.details["requires"] for event in collector.events} == {"farm-1", "well-1"}


def test_validate_build_order_accepts_ordered_sequence():
    catalog = _catalog()
    ordered = order_requirements([_req("hall", 2, 2), _req("farm", 1), _req("well", 1), _req("hall", 1)], catalog)

    assert validate_build_order(ordered, catalog) == 0
