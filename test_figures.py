# test_figures.py
import math
from types import MappingProxyType, SimpleNamespace

import plotly.graph_objects as go
import pytest

import figures as mod
from aggregator import RegionRow, ScatterRow
from indicator_store import CountryRef
from ranker import DeltaRow, MoverRow
from scenes import Callout, RedrawRequest, SceneKind

HOOK = SimpleNamespace(LABELS={"ELEC": "Electricity access", "GDPPC": "GDP per capita"},
                       LEGEND_LABELS={"ELEC": "% access"}, GDP_DOMAIN=(500, 60000))
COUNTRIES = [CountryRef("KEN", "Kenya", "Sub-Saharan Africa"), CountryRef("SSD", "South Sudan", "Sub-Saharan Africa")]


def request(indicator, values, scene=SceneKind.ELECTRICITY, callouts=()):
    return RedrawRequest(seq=1, scene=scene, indicator=indicator, year=2020,
                         values=MappingProxyType(values), callouts=callouts)


def test_formatters():
    assert mod.fmt_pct(None) == "—"
    assert mod.fmt_pct(40) == "40.0%"
    assert mod.fmt_pp(2.04) == "+2.0 pp"
    assert mod.fmt_pp(-1.5) == "-1.5 pp"
    assert mod.fmt_usd0(1234.4) == "$1,234"
    assert mod.fmt_people(300_000) == "300k"
    assert mod.fmt_people(1_250_000) == "1.25M"
    assert mod.fmt_people(None) == "—"


def test_safe_log10_and_ticks():
    assert math.isnan(mod.safe_log10(0))
    assert mod.safe_log10(100) == 2
    vals, text = mod.make_log_ticks(500, 60000)
    assert text == ["100", "1,000", "10,000", "100,000"]
    assert vals == pytest.approx([2.0, 3.0, 4.0, 5.0])
    assert mod.make_log_ticks(0, 10) == ([], [])


def test_map_paints_present_values_over_grey_base():
    fig = mod.map_figure(request("ELEC", {"KEN": 120.0, "SSD": None}), COUNTRIES, HOOK)
    base, layer = fig.data[0], fig.data[1]
    assert list(base.locations) == ["KEN", "SSD"]
    assert list(layer.locations) == ["KEN"]
    assert list(layer.z) == [100.0]          # clamped to the percent domain


def test_map_gdp_uses_log_scale():
    fig = mod.map_figure(request("GDPPC", {"KEN": 100.0}, scene=SceneKind.GDP), COUNTRIES, HOOK)
    layer = fig.data[1]
    assert list(layer.z) == [mod.safe_log10(500)]
    assert tuple(layer.colorbar.ticktext) == ("100", "1,000", "10,000", "100,000")


def test_intro_map_is_blank():
    fig = mod.map_figure(request(None, {}, scene=SceneKind.INTRO), COUNTRIES, HOOK)
    assert len(fig.data) == 1


def test_callouts_render_absent_as_dash():
    callouts = (Callout("SSD", "South Sudan", None, 2020),)
    fig = mod.map_figure(request("ELEC", {"KEN": 50.0}, callouts=callouts), COUNTRIES, HOOK)
    marker = fig.data[-1]
    assert isinstance(marker, go.Scattergeo)
    assert "Electricity access: —" in marker.text[0]


def test_lollipop_keeps_row_order():
    rows = [DeltaRow("IND", "India", 80, 90, 10), DeltaRow("KEN", "Kenya", 35, 60, 25)]
    fig = mod.lollipop_figure(rows, 2015, 2020)
    assert tuple(fig.layout.yaxis.categoryarray) == ("India", "Kenya")
    assert tuple(fig.data[-1].text) == ("+10.0 pp", "+25.0 pp")


def test_empty_inputs_give_notice_figures():
    assert mod.lollipop_figure([], 2015, 2020).layout.annotations
    assert mod.improvers_figure([]).layout.annotations
    assert mod.region_boxplot_figure([], 2015, 2020).layout.annotations
    assert mod.scatter_figure([]).layout.annotations


def test_improvers_and_boxplot_and_scatter_build():
    movers = [MoverRow("X", "Xland", 2015, 40.0, 2020, 70.0, 30.0, 300_000)]
    fig = mod.improvers_figure(movers)
    assert tuple(fig.data[-1].text) == (mod.fmt_people(300_000),)

    regions = [RegionRow("South Asia", "S. Asia", 2015, 14.9), RegionRow("South Asia", "S. Asia", 2020, 43.0)]
    assert len(mod.region_boxplot_figure(regions, 2015, 2020).data) == 2

    scatter = [ScatterRow("Kenya", "Africa", "Internet", 29.5, 1800, 5e7, 2020, 2020, 2020),
               ScatterRow("Kenya", "Africa", "Water", 60.0, 1800, 5e7, 2020, 2020, 2020)]
    fig = mod.scatter_figure(scatter, metric="Water")
    assert list(fig.data[0].y) == [60.0]
