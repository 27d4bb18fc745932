# test_app_core.py
"""Dash wiring: startup from files and the locked runtime entry points."""

import json
from types import SimpleNamespace

import plotly.graph_objects as go
import pytest

import app_core as mod
from indicator_store import StoryDataError
from scenes import SceneKind


def write_inputs(tmp_path):
    header = '"Country Name","Country Code","Indicator Name","Indicator Code","2015","2016","2017"\n'
    data = {
        "ELEC": '"Kenya","KEN","x","x","40","45","50"\n"India","IND","x","x","88","","92"\n',
        "NET": '"Kenya","KEN","x","x","16","","20"\n"India","IND","x","x","15","","30"\n',
        "WATER": '"Kenya","KEN","x","x","50","","60"\n"India","IND","x","x","40","","55"\n',
        "POP": '"Kenya","KEN","x","x","50000000","51000000","52000000"\n"India","IND","x","x","1300000000","1310000000","1320000000"\n',
        "GDPPC": '"Kenya","KEN","x","x","1500","1550","1600"\n"India","IND","x","x","1700","1750","1800"\n',
    }
    files = {}
    for code, rows in data.items():
        p = tmp_path / f"{code}.csv"
        p.write_text(header + rows, encoding="utf-8")
        files[code] = str(p)
    geo = {"type": "FeatureCollection", "features": [
        {"type": "Feature", "properties": {"iso_a3": "KEN", "name": "Kenya", "region_wb": "Sub-Saharan Africa"}},
        {"type": "Feature", "properties": {"iso_a3": "IND", "name": "India", "region_wb": "South Asia"}},
    ]}
    g = tmp_path / "geo.json"
    g.write_text(json.dumps(geo), encoding="utf-8")
    return SimpleNamespace(FILES=files, GEO_FILE=str(g), LABELS={"ELEC": "Electricity access"},
                           ANNOTATIONS={}, SDG_START=2015)


def test_create_app_builds_layout(tmp_path):
    runtime = mod.build_runtime(write_inputs(tmp_path))
    app = mod.create_app(runtime)
    ids = {c.id for c in app.layout._traverse() if getattr(c, "id", None)}
    assert {"world_map", "year-range", "visible-section", "slope", "water-heat", "net-boxplots"} <= ids
    assert runtime.controller.state.scene is SceneKind.INTRO


def test_create_app_fails_on_missing_geo(tmp_path):
    hook = write_inputs(tmp_path)
    hook.GEO_FILE = str(tmp_path / "missing.json")
    with pytest.raises(FileNotFoundError):
        mod.build_runtime(hook)


def test_create_app_fails_on_empty_geo(tmp_path):
    hook = write_inputs(tmp_path)
    (tmp_path / "geo.json").write_text('{"type": "FeatureCollection", "features": []}', encoding="utf-8")
    with pytest.raises(StoryDataError):
        mod.build_runtime(hook)


def test_runtime_section_and_slide(tmp_path):
    runtime = mod.build_runtime(write_inputs(tmp_path))

    state, fig = runtime.section("electricity")
    assert state.scene is SceneKind.ELECTRICITY
    assert (state.year_min, state.year_max, state.current_year) == (2015, 2017, 2017)
    assert isinstance(fig, go.Figure)
    outputs, chart = runtime.charts[SceneKind.ELECTRICITY]
    assert [r.country_code for r in outputs.rows] == ["IND", "KEN"]
    assert isinstance(chart, go.Figure)

    state, fig = runtime.slide(2016)
    assert state.current_year == 2016
    assert runtime.controller.displayed[0].year == 2016
    assert fig is runtime.controller.displayed[1]

    state, _ = runtime.key("ArrowLeft")
    assert state.current_year == 2015


def test_runtime_ignores_unknown_section(tmp_path):
    runtime = mod.build_runtime(write_inputs(tmp_path))
    state, _ = runtime.section("footer")
    assert state.scene is SceneKind.INTRO


def test_slider_marks():
    assert mod.slider_marks(2015, 2020, step=5) == {2015: "2015", 2020: "2020"}


def test_runtime_section_needs_a_fresh_crossing(tmp_path):
    runtime = mod.build_runtime(write_inputs(tmp_path))
    assert runtime.section("water", 0.5) == (None, None)   # below the threshold
    state, _ = runtime.section("water", 0.7)
    assert state.scene is SceneKind.WATER
    assert runtime.section("water", 0.9) == (None, None)   # already visible
    runtime.section("water", 0.0)
    state, _ = runtime.section("electricity", 0.8)
    assert state.scene is SceneKind.ELECTRICITY


def test_runtime_slide_skips_echo_and_other_scenes(tmp_path):
    runtime = mod.build_runtime(write_inputs(tmp_path))
    state, _ = runtime.section("electricity")
    seq = state.seq

    # on_section writes the slider value, which comes straight back
    state, fig = runtime.slide(state.current_year, "electricity")
    assert fig is None
    assert runtime.controller.latest_seq == seq

    state, fig = runtime.slide(2016, "water")
    assert fig is None
    assert state.current_year == 2017
    assert runtime.controller.latest_seq == seq
