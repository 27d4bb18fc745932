# app_core.py
# Development Indicators Scroll Story: Dash front end for the scene engine.

import logging
import sys
import threading

from dash import Dash, dcc, html, Input, Output, State, ctx, exceptions, no_update

import figures
import story_hook as SH
from indicator_store import country_refs, load_features, load_store
from scenes import ManualFrameScheduler, SceneController, SceneKind, StoryConfig
from visibility import VisibilitySignal

logger = logging.getLogger(__name__)

APP_TITLE = "Access for All? Electricity, Internet and Water since 2015"

STEPS = [
    (SceneKind.INTRO, "Since the Sustainable Development Goals were adopted in 2015, "
                      "access to basic services has grown unevenly. Scroll to begin."),
    (SceneKind.WATER, "SDG 6: safely managed drinking water. The countries where the most "
                      "people gained access are not always the ones that moved the most points."),
    (SceneKind.ELECTRICITY, "SDG 7: electricity. Drag the slider to watch the map fill in."),
    (SceneKind.GDP, "SDG 8: does wealth buy access? Each circle is a country, sized by population."),
    (SceneKind.INTERNET, "SDG 9: internet use by region, 2015 against any later year."),
]

OBSERVER_JS = """
function(href, cfg) {
    if (window._storyObserver || !cfg) { return window.dash_clientside.no_update; }
    const margin = `-${cfg.margin * 100}% 0% -${cfg.margin * 100}% 0%`;
    const steps20 = Array.from({length: 21}, (_, i) => i / 20);
    const start = () => {
        const steps = document.querySelectorAll(".step");
        if (!steps.length) { setTimeout(start, 200); return; }
        window._storyObserver = new IntersectionObserver((entries) => {
            entries.forEach((entry) => {
                window.dash_clientside.set_props("visible-section", {
                    data: {
                        scene: entry.target.dataset.scene,
                        ratio: entry.isIntersecting ? entry.intersectionRatio : 0,
                        ts: Date.now(),
                    }
                });
            });
        }, {root: null, threshold: steps20, rootMargin: margin});
        steps.forEach((s) => window._storyObserver.observe(s));
    };
    start();
    return true;
}
"""


def slider_marks(start, end, step=5):
    return {y: str(y) for y in range(start, end + 1, step)}


class StoryRuntime:
    """
    Glue between Dash callbacks and the SceneController.

    Dash may run callbacks on several threads, so every touch of the
    controller goes through one lock.
    """

    def __init__(self, hook, store, features):
        self.hook = hook
        self.lock = threading.Lock()
        self.scheduler = ManualFrameScheduler()
        self.charts = {}
        self.controller = SceneController(
            renderer=self._render_map,
            scheduler=self.scheduler,
            config=StoryConfig.from_hook(hook),
            chart_renderer=self._render_charts,
        )
        self.controller.load(store, country_refs(features))
        self.signal = VisibilitySignal(getattr(hook, "VISIBILITY_THRESHOLD", 0.6))
        self.signal.on_any(self.controller.on_visibility)

    # renderers

    def _render_map(self, request):
        return figures.map_figure(request, self.controller.countries, self.hook)

    def _render_charts(self, outputs):
        kind = outputs.scene
        if kind is SceneKind.ELECTRICITY:
            fig = figures.lollipop_figure(outputs.rows, outputs.baseline_year, outputs.latest_year)
        elif kind is SceneKind.INTERNET:
            fig = figures.region_boxplot_figure(outputs.rows, outputs.baseline_year, outputs.latest_year)
        elif kind is SceneKind.WATER:
            fig = figures.improvers_figure(outputs.rows)
        elif kind is SceneKind.GDP:
            fig = figures.scatter_figure(outputs.rows)
        else:
            fig = None
        self.charts[kind] = (outputs, fig)

    # event entry points, each returns (state, map figure or None)

    def _current_map(self, seq):
        shown = self.controller.displayed
        if shown is None or shown[0].seq != seq:
            return None
        return shown[1]

    def section(self, section_id, ratio=1.0):
        with self.lock:
            if not self.signal.observe(section_id, ratio):
                return None, None
            state = self.controller.state
            if state is None:
                return None, None
            return state, self._current_map(state.seq)

    def slide(self, value, section=None):
        with self.lock:
            current = self.controller.state
            if current is not None and current.current_year == value:
                # echo of the value on_section just wrote
                return current, None
            state = self.controller.on_slider_input(value, section=section)
            self.scheduler.run_frame()
            if state is None:
                return None, None
            if current is not None and state.seq == current.seq:
                # input was dropped, nothing new to paint
                return state, None
            return state, self._current_map(state.seq)

    def key(self, key):
        with self.lock:
            state = self.controller.on_key(key)
            if state is None:
                return None, None
            return state, self._current_map(state.seq)

    def region_rows(self, compare_year):
        with self.lock:
            return self.controller.region_rows(compare_year)


# -----------------------------
# Layout
# -----------------------------

def _tile(code, label):
    return html.Div(className="tile", id=f"tile-{code}", children=[
        html.Div(label, className="tile-label"),
        html.Span(id=f"tile-{code}-base"), html.Span(" → "),
        html.Span(id=f"tile-{code}-latest"), html.Span(" "),
        html.Span(id=f"tile-{code}-delta"),
        html.Div(id=f"tile-{code}-yearnote", className="tile-note"),
    ])


def _step_body(kind, hook):
    labels = getattr(hook, "LABELS", {})
    if kind is SceneKind.INTRO:
        return [html.Div(className="tiles", children=[_tile(c, labels.get(c, c)) for c in ("ELEC", "NET", "WATER")])]
    if kind is SceneKind.WATER:
        return [html.H4(id="water-title"), dcc.Graph(id="water-heat", config={"displaylogo": False})]
    if kind is SceneKind.ELECTRICITY:
        return [html.H4(id="slope-title"), dcc.Graph(id="slope", config={"displaylogo": False})]
    if kind is SceneKind.GDP:
        return [
            html.H4(id="sdg8-title"),
            dcc.Dropdown(id="sdg8-metric", options=["Electricity", "Internet", "Water"],
                         value="Internet", clearable=False, style={"width": "220px"}),
            dcc.Graph(id="sdg8-scatter", config={"displaylogo": False}),
        ]
    return [
        html.H4(id="net-title"),
        dcc.Graph(id="net-boxplots", config={"displaylogo": False}),
        html.Div(className="viz-controls", children=[
            html.Label("Compare to:", style={"fontSize": "12px", "marginRight": "8px"}),
            dcc.Slider(id="net-compare", min=0, max=1, step=1, value=1,
                       tooltip={"placement": "bottom", "always_visible": False}),
        ]),
    ]


def build_layout(runtime):
    hook = runtime.hook
    state = runtime.controller.state
    intro_map = runtime.controller.displayed[1] if runtime.controller.displayed else figures.empty_fig("Loading…")

    steps = [
        html.Div(
            className="step", id=f"step-{kind.section}", **{"data-scene": kind.section},
            style={"minHeight": "80vh", "padding": "24px 0"},
            children=[html.P(text)] + _step_body(kind, hook),
        )
        for kind, text in STEPS
    ]

    return html.Div(
        id="page", className=runtime.controller.theme,
        style={"fontFamily": "system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial",
               "padding": "16px", "maxWidth": "1200px", "margin": "0 auto"},
        children=[
            dcc.Location(id="url"),
            dcc.Store(id="visible-section"),
            dcc.Store(id="scene-state"),
            dcc.Store(id="observer-ready"),
            dcc.Store(id="observer-config", data={
                "threshold": getattr(hook, "VISIBILITY_THRESHOLD", 0.6),
                "margin": getattr(hook, "VISIBILITY_MARGIN", 0.10),
            }),

            html.H2(APP_TITLE, style={"marginBottom": "8px"}),

            html.Div(
                style={"display": "grid", "gridTemplateColumns": "1fr 1fr", "gap": "16px"},
                children=[
                    html.Div(steps),
                    html.Div(style={"position": "sticky", "top": "0", "alignSelf": "start"}, children=[
                        dcc.Graph(id="world_map", figure=intro_map,
                                  config={"displaylogo": False}, style={"height": "60vh"}),
                        html.Div(id="year-control", hidden=True, children=[
                            html.Label("Year"),
                            html.Button("◀", id="year-prev", n_clicks=0),
                            html.Div(
                                dcc.Slider(id="year-range", min=state.year_min, max=state.year_max, step=1,
                                           value=state.current_year, updatemode="drag",
                                           marks=slider_marks(state.year_min, state.year_max, step=1)),
                                style={"display": "inline-block", "width": "70%"},
                            ),
                            html.Button("▶", id="year-next", n_clicks=0),
                            html.Span(str(state.current_year), id="year-label", style={"marginLeft": "8px"}),
                        ]),
                    ]),
                ],
            ),
        ],
    )


# -----------------------------
# App
# -----------------------------

def build_runtime(hook=SH):
    """Load everything up front; a missing or malformed input stops startup."""
    store = load_store(getattr(hook, "FILES"))
    features = load_features(getattr(hook, "GEO_FILE"))
    return StoryRuntime(hook, store, features)


def create_app(runtime):
    app = Dash(__name__, title=APP_TITLE)
    app.layout = build_layout(runtime)

    app.clientside_callback(
        OBSERVER_JS,
        Output("observer-ready", "data"),
        Input("url", "href"),
        State("observer-config", "data"),
    )

    step_outputs = [Output(f"step-{kind.section}", "className") for kind, _ in STEPS]

    @app.callback(
        Output("year-range", "min"),
        Output("year-range", "max"),
        Output("year-range", "value"),
        Output("year-range", "marks"),
        Output("year-control", "hidden"),
        Output("year-label", "children"),
        Output("page", "className"),
        Output("world_map", "figure"),
        Output("scene-state", "data"),
        *step_outputs,
        Input("visible-section", "data"),
        prevent_initial_call=True,
    )
    def on_section(data):
        if not data or "scene" not in data:
            raise exceptions.PreventUpdate
        state, fig = runtime.section(data["scene"], data.get("ratio", 1.0))
        if state is None:
            raise exceptions.PreventUpdate
        step = 5 if (state.year_max - state.year_min) > 8 else 1
        classes = ["step active" if kind is state.scene else "step" for kind, _ in STEPS]
        return (
            state.year_min, state.year_max, state.current_year,
            slider_marks(state.year_min, state.year_max, step=step),
            not state.slider_visible, str(state.current_year),
            runtime.controller.theme,
            fig if fig is not None else no_update,
            {"scene": state.scene.section, "seq": state.seq},
            *classes,
        )

    @app.callback(
        Output("world_map", "figure", allow_duplicate=True),
        Output("year-label", "children", allow_duplicate=True),
        Input("year-range", "value"),
        State("scene-state", "data"),
        prevent_initial_call=True,
    )
    def on_year(value, scene_state):
        if value is None:
            raise exceptions.PreventUpdate
        section = (scene_state or {}).get("scene")
        state, fig = runtime.slide(value, section)
        if state is None or fig is None:
            # superseded by a newer request, or the year already on screen
            raise exceptions.PreventUpdate
        return fig, str(state.current_year)

    @app.callback(
        Output("year-range", "value", allow_duplicate=True),
        Output("world_map", "figure", allow_duplicate=True),
        Output("year-label", "children", allow_duplicate=True),
        Input("year-prev", "n_clicks"),
        Input("year-next", "n_clicks"),
        prevent_initial_call=True,
    )
    def on_step(_prev, _next):
        key = {"year-prev": "ArrowLeft", "year-next": "ArrowRight"}.get(ctx.triggered_id)
        if key is None:
            raise exceptions.PreventUpdate
        state, fig = runtime.key(key)
        if state is None:
            raise exceptions.PreventUpdate
        return state.current_year, fig if fig is not None else no_update, str(state.current_year)

    @app.callback(
        Output("tile-ELEC-base", "children"), Output("tile-ELEC-latest", "children"),
        Output("tile-ELEC-delta", "children"), Output("tile-ELEC-yearnote", "children"),
        Output("tile-NET-base", "children"), Output("tile-NET-latest", "children"),
        Output("tile-NET-delta", "children"), Output("tile-NET-yearnote", "children"),
        Output("tile-WATER-base", "children"), Output("tile-WATER-latest", "children"),
        Output("tile-WATER-delta", "children"), Output("tile-WATER-yearnote", "children"),
        Input("url", "href"),
        Input("scene-state", "data"),
    )
    def fill_tiles(_href, _scene):
        outputs, _ = runtime.charts[SceneKind.INTRO]
        out = []
        for code in ("ELEC", "NET", "WATER"):
            agg = outputs.tiles.get(code)
            delta = agg.delta if agg else None
            out += [
                figures.fmt_pct(agg.baseline_mean if agg else None),
                figures.fmt_pct(agg.latest_mean if agg else None),
                "(—)" if delta is None else f"({figures.fmt_pp(delta)})",
                f"{outputs.baseline_year} → {outputs.latest_year}",
            ]
        return out

    def _chart(kind):
        entry = runtime.charts.get(kind)
        if entry is None:
            raise exceptions.PreventUpdate
        return entry

    @app.callback(Output("water-heat", "figure"), Output("water-title", "children"),
                  Input("scene-state", "data"))
    def draw_water(_scene):
        outputs, fig = _chart(SceneKind.WATER)
        return fig, outputs.title

    @app.callback(Output("slope", "figure"), Output("slope-title", "children"),
                  Input("scene-state", "data"))
    def draw_electricity(_scene):
        outputs, fig = _chart(SceneKind.ELECTRICITY)
        return fig, outputs.title

    @app.callback(Output("sdg8-scatter", "figure"), Output("sdg8-title", "children"),
                  Input("scene-state", "data"), Input("sdg8-metric", "value"))
    def draw_gdp(_scene, metric):
        outputs, _ = _chart(SceneKind.GDP)
        return figures.scatter_figure(outputs.rows, metric=metric or "Internet"), outputs.title

    @app.callback(
        Output("net-compare", "min"), Output("net-compare", "max"),
        Output("net-compare", "value"), Output("net-compare", "marks"),
        Output("net-title", "children"),
        Input("scene-state", "data"),
    )
    def setup_internet(_scene):
        outputs, _ = _chart(SceneKind.INTERNET)
        years = outputs.compare_years or (outputs.latest_year,)
        marks = {y: str(y) for y in years}
        return years[0], years[-1], years[-1], marks, outputs.title

    @app.callback(Output("net-boxplots", "figure"), Input("net-compare", "value"),
                  prevent_initial_call=True)
    def draw_internet(compare_year):
        if compare_year is None:
            raise exceptions.PreventUpdate
        outputs, _ = _chart(SceneKind.INTERNET)
        rows = runtime.region_rows(int(compare_year))
        return figures.region_boxplot_figure(rows, outputs.baseline_year, int(compare_year))

    return app


# -----------------------------
# Run
# -----------------------------
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        runtime = build_runtime()
    except (OSError, ValueError) as e:
        logger.error("Error initializing: %s", e)
        print(f"❌ Error initializing the story: {e}")
        sys.exit(1)
    app = create_app(runtime)
    state = runtime.controller.state
    print(f"Countries: {len(runtime.controller.countries):,}, "
          f"intro years {state.year_min}–{state.year_max}")
    app.run(debug=True, dev_tools_hot_reload=False)  # Dash 3.x
