# figures.py
# Plotly figures for each scene. These only draw what the engine hands them.

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

BLANK_COLOR = "#f1f5f9"
BASELINE_COLOR = "#64748b"
LATEST_COLOR = "#0ea5e9"
CALLOUT_COLORS = {"electricity": "#f59e0b", "internet": "#3b82f6"}


# -----------------------------
# Formatters
# -----------------------------

def fmt_pct(v):
    return "—" if v is None else f"{v:.1f}%"


def fmt_pp(v):
    if v is None:
        return "—"
    return f"{'+' if v >= 0 else ''}{v:.1f} pp"


def fmt_usd0(v):
    return "—" if v is None else f"${v:,.0f}"


def fmt_people(v):
    """Short SI-style count: 1.2M, 340k."""
    if v is None:
        return "—"
    a = abs(v)
    for div, suffix in ((1e9, "G"), (1e6, "M"), (1e3, "k")):
        if a >= div:
            return f"{v / div:.3g}{suffix}"
    return f"{v:.3g}"


def fmt_value(indicator, v):
    return fmt_usd0(v) if indicator == "GDPPC" else fmt_pct(v)


# -----------------------------
# Helpers
# -----------------------------

def safe_log10(x):
    """Log10 for scalars or arrays. Nonpositive -> NaN. No runtime warnings."""
    if np.isscalar(x):
        x = float(x)
        return np.log10(x) if x > 0 else np.nan
    x = np.asarray(x, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(x > 0, np.log10(x), np.nan)


def make_log_ticks(vmin, vmax):
    """
    Given positive min/max in linear space, return (tickvals_log10, ticktext)
    for whole decades covering [vmin, vmax].
    """
    try:
        vmin = float(vmin); vmax = float(vmax)
    except (TypeError, ValueError):
        return [], []

    # guardrails
    if not np.isfinite(vmin) or not np.isfinite(vmax):
        return [], []
    if vmin <= 0 or vmax <= 0 or vmin >= vmax:
        return [], []

    pmin = int(np.floor(np.log10(vmin)))
    pmax = int(np.ceil(np.log10(vmax)))

    vals = (10.0 ** np.arange(pmin, pmax + 1)).astype(float)
    tickvals = np.log10(vals)  # positions in log space
    ticktext = [f"{int(v):,}" if v >= 1 else f"{v:.3g}" for v in vals]
    return tickvals.tolist(), ticktext


def empty_fig(msg: str):
    fig = go.Figure()
    fig.add_annotation(text=msg, showarrow=False, xref="paper", yref="paper", x=0.5, y=0.5)
    fig.update_layout(
        xaxis=dict(visible=False),
        yaxis=dict(visible=False),
        margin=dict(l=40, r=20, t=40, b=40),
    )
    return fig


def map_style(indicator, hook):
    """Colour scale, clamp domain and log flag for one indicator's choropleth."""
    legend = getattr(hook, "LEGEND_LABELS", {}).get(indicator, "")
    if indicator == "GDPPC":
        lo, hi = getattr(hook, "GDP_DOMAIN", (500, 60000))
        return {"scale": getattr(hook, "GDP_SCALE", "PuBuGn"), "domain": (lo, hi), "log": True, "legend": legend}
    return {"scale": getattr(hook, "PERCENT_SCALE", "YlGnBu"), "domain": (0, 100), "log": False, "legend": legend}


# -----------------------------
# Map
# -----------------------------

def map_figure(request, countries, hook):
    """Choropleth for a RedrawRequest: grey where absent, callouts on top."""
    codes = [c.code for c in countries]
    names = {c.code: c.name for c in countries}
    projection = getattr(hook, "MAP_PROJECTION", "natural earth")
    no_data = getattr(hook, "NO_DATA_COLOR", "#e0e0e0")

    fig = go.Figure()
    base_color = BLANK_COLOR if request.indicator is None else no_data
    fig.add_trace(go.Choropleth(
        locations=codes, z=[0] * len(codes), locationmode="ISO-3",
        colorscale=[[0, base_color], [1, base_color]], showscale=False,
        marker_line_color="#fff", marker_line_width=0.5,
        text=[names[c] for c in codes], hovertemplate="%{text}<br>No data<extra></extra>",
    ))

    if request.indicator is not None:
        style = map_style(request.indicator, hook)
        lo, hi = style["domain"]
        d = pd.DataFrame(
            [(c, names[c], v) for c, v in request.values.items() if v is not None],
            columns=["iso3", "country", "value"],
        )
        if not d.empty:
            clamped = d["value"].clip(lo, hi)
            plot_value = safe_log10(clamped) if style["log"] else clamped
            label = getattr(hook, "LABELS", {}).get(request.indicator, request.indicator)
            colorbar = dict(title=style["legend"])
            zmin, zmax = (safe_log10(lo), safe_log10(hi)) if style["log"] else (lo, hi)
            if style["log"]:
                tickvals, ticktext = make_log_ticks(lo, hi)
                if tickvals and ticktext:
                    colorbar.update(tickvals=tickvals, ticktext=ticktext)
            fig.add_trace(go.Choropleth(
                locations=d["iso3"], z=plot_value, locationmode="ISO-3",
                colorscale=style["scale"], zmin=zmin, zmax=zmax, colorbar=colorbar,
                marker_line_color="#fff", marker_line_width=0.5,
                text=d["country"],
                customdata=[[fmt_value(request.indicator, v)] for v in d["value"]],
                hovertemplate=f"<b>%{{text}}</b><br>{label}: %{{customdata[0]}} ({request.year})<extra></extra>",
            ))

    if request.callouts:
        label = getattr(hook, "LABELS", {}).get(request.indicator, request.indicator)
        fig.add_trace(go.Scattergeo(
            locations=[c.country_code for c in request.callouts], locationmode="ISO-3",
            mode="markers+text", textposition="bottom center",
            marker=dict(size=8, color=CALLOUT_COLORS.get(request.scene.section, "#f59e0b"),
                        line=dict(color="#fff", width=1.5)),
            text=[f"{c.title}<br>{label}: {fmt_pct(c.value)}<br>Year: {c.year}" for c in request.callouts],
            hoverinfo="text", showlegend=False,
        ))

    fig.update_geos(projection_type=projection, showframe=False, showcoastlines=False)
    fig.update_layout(margin=dict(l=10, r=10, t=10, b=10), showlegend=False)
    return fig


# -----------------------------
# Scene charts
# -----------------------------

def lollipop_figure(rows, baseline_year, latest_year):
    """Dumbbell of baseline vs latest with the point change beside each country."""
    if not rows:
        return empty_fig(f"No countries with data for both {baseline_year} and {latest_year}")
    names = [r.display_name for r in rows]
    fig = go.Figure()
    for r in rows:
        fig.add_trace(go.Scatter(
            x=[r.baseline_value, r.latest_value], y=[r.display_name] * 2,
            mode="lines", line=dict(color="#94a3b8", width=2), showlegend=False, hoverinfo="skip",
        ))
    fig.add_trace(go.Scatter(
        x=[r.baseline_value for r in rows], y=names, mode="markers", name=str(baseline_year),
        marker=dict(color=BASELINE_COLOR, size=9),
        hovertemplate="%{y}<br>" + str(baseline_year) + ": %{x:.1f}<extra></extra>",
    ))
    fig.add_trace(go.Scatter(
        x=[r.latest_value for r in rows], y=names, mode="markers+text", name="Latest",
        marker=dict(color=LATEST_COLOR, size=10),
        text=[fmt_pp(r.delta) for r in rows], textposition="middle right",
        hovertemplate="%{y}<br>Latest: %{x:.1f}<extra></extra>",
    ))
    fig.update_layout(
        xaxis=dict(title="% access", range=[0, 105]),
        yaxis=dict(categoryorder="array", categoryarray=names),
        height=420, margin=dict(l=10, r=40, t=20, b=40),
    )
    return fig


def region_boxplot_figure(rows, baseline_year, compare_year):
    if not rows:
        return empty_fig(f"No internet data available for {baseline_year} or {compare_year}.")
    d = pd.DataFrame([r._asdict() for r in rows])
    d["year"] = d["year"].astype(str)
    regions = sorted(d["region_label"].dropna().unique())
    year_order = [str(baseline_year), str(compare_year)]
    fig = px.box(
        d, x="value", y="region_label", color="year", orientation="h",
        category_orders={"region_label": regions, "year": year_order},
        color_discrete_sequence=[BASELINE_COLOR, LATEST_COLOR],
        points=False, labels={"value": "% of population using the Internet", "region_label": ""},
    )
    fig.update_traces(boxmean=False)
    fig.update_layout(
        xaxis=dict(range=[0, 100]),
        legend=dict(orientation="h", title="Year", y=-0.15),
        height=max(360, 90 * len(regions)), margin=dict(l=10, r=10, t=10, b=40),
    )
    return fig


def improvers_figure(rows):
    """Baseline → latest per country; labels show people gained."""
    if not rows:
        return empty_fig("No countries with both a baseline and a later value")
    names = [r.display_name for r in rows]
    fig = go.Figure()
    for r in rows:
        fig.add_trace(go.Scatter(
            x=[r.baseline_value, r.latest_value], y=[r.display_name] * 2,
            mode="lines", line=dict(color="#94a3b8", width=2), showlegend=False, hoverinfo="skip",
        ))
    fig.add_trace(go.Scatter(
        x=[r.baseline_value for r in rows], y=names, mode="markers", name="Baseline",
        marker=dict(color=BASELINE_COLOR, size=9),
        customdata=[[r.baseline_year] for r in rows],
        hovertemplate="%{y}<br>Baseline year: %{customdata[0]}<br>Baseline %: %{x:.1f}<extra></extra>",
    ))
    fig.add_trace(go.Scatter(
        x=[r.latest_value for r in rows], y=names, mode="markers+text", name="Latest",
        marker=dict(color=LATEST_COLOR, size=10),
        text=[fmt_people(r.delta_people) for r in rows], textposition="middle right",
        customdata=[[r.latest_year, r.delta_pp, r.delta_people] for r in rows],
        hovertemplate=("%{y}<br>Latest year: %{customdata[0]}<br>Latest %: %{x:.1f}"
                       "<br>Δ (pp): %{customdata[1]:.1f}<br>People gained: %{customdata[2]:,.0f}<extra></extra>"),
    ))
    fig.update_layout(
        xaxis=dict(title="% safely managed", range=[0, 105]),
        yaxis=dict(categoryorder="array", categoryarray=names),
        height=440, margin=dict(l=10, r=40, t=20, b=40),
    )
    return fig


def scatter_figure(rows, metric="Internet", gdp_cap=100000):
    d = pd.DataFrame([r._asdict() for r in rows])
    if d.empty:
        return empty_fig("No aligned GDP / access data")
    d = d[(d["metric"] == metric) & (d["gdppc"] <= gdp_cap)]
    if d.empty:
        return empty_fig(f"No aligned data for {metric}")
    fig = px.scatter(
        d, x="gdppc", y="value", size="pop", color="region", hover_name="country",
        size_max=40,
        hover_data={"year_metric": True, "year_gdp": True, "year_pop": True, "pop": ":,.0f"},
        labels={"gdppc": "GDP per capita (US$)", "value": "% with access", "region": "Region",
                "year_metric": "Metric year", "year_gdp": "GDP year", "year_pop": "Pop year",
                "pop": "Population"},
    )
    fig.update_layout(
        yaxis=dict(range=[0, 100]),
        legend=dict(orientation="h", y=-0.2),
        height=420, margin=dict(l=10, r=10, t=10, b=30),
    )
    return fig
