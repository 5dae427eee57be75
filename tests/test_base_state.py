import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core import config
from core.base_state import get_prebuilt_state, merge_build_state, resolve_prebuilt_state
from core.building_catalog import catalog_from_data, load_default_catalog


def _catalog():
    return catalog_from_data(
        [
            {"id": "nest", "levels": [{"level": 1}, {"level": 2, "requirements": {"pond": 2}}]},
            {"id": "pond", "levels": [{"level": 1}, {"level": 2, "requirements": {"reeds": 1}}]},
            {"id": "reeds", "levels": [{"level": 1}]},
        ]
    )


def test_starters_pull_in_transitive_prerequisites():
    prebuilt = resolve_prebuilt_state([("nest", 2)], _catalog())

    assert prebuilt == {"nest": 2, "pond": 2, "reeds": 1}


def test_highest_level_wins_between_starters():
    prebuilt = resolve_prebuilt_state([("pond", 1), ("nest", 2)], _catalog())

    assert prebuilt["pond"] == 2


def test_unknown_starter_is_recorded_without_prerequisites():
    prebuilt = resolve_prebuilt_state([("ghost", 3)], _catalog())

    assert prebuilt == {"ghost": 3}


def test_default_prebuilt_state_is_memoised():
    catalog = load_default_catalog()

    first = get_prebuilt_state(catalog)
    second = get_prebuilt_state(catalog)

    assert first is second
    assert first == {building_id: level for building_id, level in config.BASE_BUILDINGS}


def test_merge_keeps_the_higher_level_and_floors_starters():
    effective = merge_build_state(
        {"nest": 2, "pond": 2},
        {"nest": 1, "pond": 3, "reeds": 0, "hall": 4},
        [("nest", 2), ("well", 1)],
    )

    assert effective == {"nest": 2, "pond": 3, "hall": 4, "well": 1}


def test_merge_without_user_state():
    assert merge_build_state({"nest": 1}, None) == {"nest": 1}


def test_long_starter_chain_resolves():
    records = [{"id": "root", "levels": [{"level": 1}]}]
    records += [
        {"id": f"tier{index}", "levels": [{"level": 1, "requirements": {f"tier{index - 1}" if index > 1 else "root": 1}}]}
        for index in range(1, 2500)
    ]
    prebuilt = resolve_prebuilt_state([("tier2499", 1)], catalog_from_data(records))

    assert len(prebuilt) == 2500
    assert prebuilt["root"] == 1
