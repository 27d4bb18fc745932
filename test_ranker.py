# test_ranker.py
import pytest

import ranker as mod
from conftest import make_store
from indicator_store import CountryRef


def ref(code):
    return CountryRef(code, f"Country {code}", "Other")


def test_worked_example_gains():
    store = make_store(
        WATER={"X": {2015: 40.0, 2020: 70.0}, "Y": {2018: 1.0}},
        POP={"X": {2020: 1_000_000}},
    )
    assert store.years("WATER") == [2015, 2018, 2020]
    rows = mod.top_absolute_gainers(store, "WATER", 2015, [ref("X")], limit=5)
    assert len(rows) == 1
    r = rows[0]
    assert (r.baseline_year, r.baseline_value) == (2015, 40.0)
    assert (r.latest_year, r.latest_value) == (2020, 70.0)
    assert r.delta_pp == pytest.approx(30.0)
    assert r.delta_people == pytest.approx(300_000)


def test_baseline_prefers_later_year_latest_is_exact():
    store = make_store(
        WATER={"X": {2014: 10.0, 2016: 20.0, 2019: 50.0}},
        POP={"X": {2019: 100}},
    )
    r = mod.mover_row(store, "WATER", ref("X"), 2015)
    assert r.baseline_year == 2016
    assert r.latest_year == 2019


def test_rejects_latest_not_after_baseline():
    store = make_store(WATER={"X": {2017: 30.0}}, POP={"X": {2017: 100}})
    # baseline resolves to 2017 and latest is 2017 as well
    assert mod.mover_row(store, "WATER", ref("X"), 2015) is None
    assert mod.top_absolute_gainers(store, "WATER", 2015, [ref("X")], limit=3) == []


def test_population_falls_back_to_previous_then_next_year():
    store = make_store(
        WATER={"X": {2015: 10.0, 2020: 20.0}},
        POP={"X": {2019: 1000, 2021: 5000}},
    )
    r = mod.mover_row(store, "WATER", ref("X"), 2015)
    assert r.delta_people == pytest.approx(100)  # 10pp of 2019's 1000

    store2 = make_store(WATER={"X": {2015: 10.0, 2020: 20.0}}, POP={"X": {2022: 1000}})
    assert mod.mover_row(store2, "WATER", ref("X"), 2015) is None


def test_rank_by_people_then_present_by_latest_level():
    store = make_store(
        WATER={
            "A": {2015: 10.0, 2020: 20.0},   # +10pp of 1000 -> 100
            "B": {2015: 50.0, 2020: 90.0},   # +40pp of 1000 -> 400
            "C": {2015: 30.0, 2020: 35.0},   # +5pp of 10000 -> 500
            "D": {2015: 60.0, 2020: 61.0},   # +1pp of 1000 -> 10
        },
        POP={k: {2020: v} for k, v in {"A": 1000, "B": 1000, "C": 10000, "D": 1000}.items()},
    )
    rows = mod.top_absolute_gainers(store, "WATER", 2015, [ref(c) for c in "ABCD"], limit=3)
    # top three by people are C, B, A; shown by latest value ascending
    assert [r.country_code for r in rows] == ["A", "C", "B"]
    assert all(r.latest_year > r.baseline_year for r in rows)


def test_ties_keep_input_order_and_are_deterministic():
    store = make_store(
        WATER={c: {2015: 10.0, 2020: 20.0} for c in "PQR"},
        POP={c: {2020: 100} for c in "PQR"},
    )
    countries = [ref("R"), ref("P"), ref("Q")]
    first = mod.top_absolute_gainers(store, "WATER", 2015, countries, limit=2)
    assert [r.country_code for r in first] == ["R", "P"]
    assert mod.top_absolute_gainers(store, "WATER", 2015, countries, limit=2) == first


def test_limit_bounds_length(story_store, countries):
    for limit in (0, 1, 2, 10):
        rows = mod.top_absolute_gainers(story_store, "WATER", 2015, countries, limit=limit)
        assert len(rows) <= limit


def test_no_qualifying_countries_gives_empty_list():
    store = make_store(WATER={"X": {2015: 10.0}}, POP={"X": {2015: 10}})
    assert mod.top_absolute_gainers(store, "WATER", 2015, [ref("X")], limit=5) == []
    assert mod.top_signed_delta(store, "WATER", 2015, 2020, [ref("X")], limit=5) == []


def test_top_signed_delta_best_last(story_store, countries):
    rows = mod.top_signed_delta(story_store, "ELEC", 2015, 2020, countries, limit=2)
    # Kenya +25, India +10, South Sudan missing 2020, Germany 0
    assert [r.country_code for r in rows] == ["IND", "KEN"]
    assert rows[-1].delta == pytest.approx(25.0)
