# scenes.py
# The narrative engine: one active scene at a time, each owning a year range,
# a slider binding and the tables its charts are drawn from.

import logging
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from aggregator import AggregateResult, aligned_scatter_rows, baseline_vs_latest, region_distribution
from indicator_store import CountryRef, IndicatorStore, StoryDataError, common_years
from ranker import top_absolute_gainers, top_signed_delta

logger = logging.getLogger(__name__)

REQUIRED_INDICATORS = ("ELEC", "NET", "WATER", "POP", "GDPPC")
TILE_INDICATORS = ("ELEC", "NET", "WATER")
SCATTER_METRICS = {"Electricity": "ELEC", "Internet": "NET", "Water": "WATER"}
GDP_FLOOR_YEAR = 1980


class SceneKind(Enum):
    # section id, governing indicator, keeps the held year on re-entry, theme
    INTRO = ("intro", None, False, None)
    ELECTRICITY = ("electricity", "ELEC", False, "theme-7")
    INTERNET = ("internet", "NET", True, "theme-9")
    WATER = ("water", "WATER", False, "theme-6")
    GDP = ("sdg8", "GDPPC", True, "theme-8")

    def __init__(self, section, indicator, keeps_year, theme):
        self.section = section
        self.indicator = indicator
        self.keeps_year = keeps_year
        self.theme = theme

    @classmethod
    def from_section(cls, section: str) -> Optional["SceneKind"]:
        for kind in cls:
            if kind.section == section:
                return kind
        return None

    def anchor_year(self, sdg_start: int) -> int:
        if self is SceneKind.GDP:
            return max(GDP_FLOOR_YEAR, sdg_start)
        return sdg_start


@dataclass(frozen=True)
class StoryConfig:
    sdg_start: int = 2015
    baseline_window: int = 3
    population_window: int = 2
    latest_population_window: int = 1
    top_gainers_limit: int = 12
    top_delta_limit: int = 10
    region_aliases: Mapping[str, str] = field(default_factory=dict)
    annotations: Mapping[str, Sequence[Tuple[str, str]]] = field(default_factory=dict)
    initial_theme: str = "theme-6"

    @classmethod
    def from_hook(cls, hook):
        """Read settings off a story_hook-like module; missing names keep defaults."""
        d = cls()
        return cls(
            sdg_start=int(getattr(hook, "SDG_START", d.sdg_start)),
            baseline_window=int(getattr(hook, "BASELINE_WINDOW", d.baseline_window)),
            population_window=int(getattr(hook, "POPULATION_WINDOW", d.population_window)),
            latest_population_window=int(getattr(hook, "LATEST_POPULATION_WINDOW", d.latest_population_window)),
            top_gainers_limit=int(getattr(hook, "TOP_GAINERS_LIMIT", d.top_gainers_limit)),
            top_delta_limit=int(getattr(hook, "TOP_DELTA_LIMIT", d.top_delta_limit)),
            region_aliases=dict(getattr(hook, "REGION_ALIASES", {})),
            annotations=dict(getattr(hook, "ANNOTATIONS", {})),
        )


# -----------------------------
# Engine state and its transitions
# -----------------------------

@dataclass(frozen=True)
class EngineState:
    scene: SceneKind
    year_min: int
    year_max: int
    current_year: int
    seq: int = 0

    @property
    def slider_visible(self) -> bool:
        return self.scene is not SceneKind.INTRO


def clamp(year, lo: int, hi: int) -> int:
    return max(lo, min(hi, int(year)))


def activate(state: Optional[EngineState], kind: SceneKind, bounds: Tuple[int, int]) -> EngineState:
    """Enter ``kind``. Scenes that keep the year clamp the held one, others jump to the latest."""
    lo, hi = bounds
    if kind.keeps_year and state is not None:
        year = clamp(state.current_year, lo, hi)
    else:
        year = hi
    seq = (state.seq if state is not None else 0) + 1
    return EngineState(kind, lo, hi, year, seq)


def slide(state: EngineState, year) -> EngineState:
    return replace(state, current_year=clamp(year, state.year_min, state.year_max), seq=state.seq + 1)


def step(state: EngineState, delta: int) -> EngineState:
    return slide(state, state.current_year + delta)


# -----------------------------
# Renderer contracts
# -----------------------------

class Callout(NamedTuple):
    country_code: str
    title: str
    value: Optional[float]
    year: int


@dataclass(frozen=True)
class RedrawRequest:
    """Read-only snapshot handed to the map renderer."""
    seq: int
    scene: SceneKind
    indicator: Optional[str]
    year: int
    values: Mapping[str, Optional[float]]
    callouts: Tuple[Callout, ...] = ()

    def value_of(self, country_code: str) -> Optional[float]:
        return self.values.get(country_code)


@dataclass(frozen=True)
class SceneOutputs:
    """Tables behind a scene's charts, computed once per activation."""
    scene: SceneKind
    title: str
    baseline_year: int
    latest_year: int
    rows: Tuple[Any, ...] = ()
    tiles: Mapping[str, AggregateResult] = field(default_factory=dict)
    compare_years: Tuple[int, ...] = ()


class ManualFrameScheduler:
    """Holds callbacks until ``run_frame``: a stand-in for the next animation frame."""

    def __init__(self):
        self._queue = OrderedDict()
        self._next = 0

    def request(self, callback: Callable[[], None]):
        self._next += 1
        self._queue[self._next] = callback
        return self._next

    def cancel(self, handle):
        self._queue.pop(handle, None)

    @property
    def pending(self) -> int:
        return len(self._queue)

    def run_frame(self) -> int:
        callbacks = list(self._queue.values())
        self._queue.clear()
        for cb in callbacks:
            cb()
        return len(callbacks)


class ImmediateFrameScheduler:
    """Runs every request on the spot; no coalescing."""

    def request(self, callback):
        callback()
        return None

    def cancel(self, handle):
        pass


# -----------------------------
# Scene controller
# -----------------------------

class SceneController:
    """
    Owns the EngineState and is the only writer of it.

    ``renderer(request)`` paints the map. It may return its output right away
    or return None and call ``complete(request, output)`` later; either way a
    completion only sticks if no newer request has been issued since.
    ``chart_renderer(outputs)`` (optional) draws the scene's charts.
    """

    def __init__(self, renderer: Callable[[RedrawRequest], Any], scheduler=None,
                 config: Optional[StoryConfig] = None,
                 chart_renderer: Optional[Callable[[SceneOutputs], Any]] = None):
        self.renderer = renderer
        self.chart_renderer = chart_renderer
        self.scheduler = scheduler or ImmediateFrameScheduler()
        self.config = config or StoryConfig()

        self.store: Optional[IndicatorStore] = None
        self.countries: List[CountryRef] = []
        self.common_latest: Optional[int] = None
        self.state: Optional[EngineState] = None
        self.outputs: Optional[SceneOutputs] = None
        self.displayed: Optional[Tuple[RedrawRequest, Any]] = None
        self.theme = self.config.initial_theme

        self._held: Optional[SceneKind] = None
        self._pending = None
        self._latest_issued = 0
        self._bounds: Dict[SceneKind, Tuple[int, int]] = {}

    # ---- loading ----

    @property
    def loaded(self) -> bool:
        return self.store is not None

    def load(self, store: IndicatorStore, countries: Sequence[CountryRef]) -> EngineState:
        """Attach the loaded data, show the intro, then any scene asked for while loading."""
        missing = [code for code in REQUIRED_INDICATORS if code not in store]
        if missing:
            raise StoryDataError(f"Missing indicator tables: {', '.join(missing)}")
        if not countries:
            raise StoryDataError("No country features to draw")

        self.store = store
        self.countries = list(countries)
        ys = common_years(store, TILE_INDICATORS, since=self.config.sdg_start)
        self.common_latest = ys[-1] if ys else None
        self._bounds = {kind: self._compute_bounds(kind) for kind in SceneKind}
        logger.info("Story loaded: %d countries, common latest year %s",
                    len(self.countries), self.common_latest)

        held, self._held = self._held, None
        self.activate(SceneKind.INTRO)
        if held is not None and held is not SceneKind.INTRO:
            self.activate(held)
        return self.state

    def _compute_bounds(self, kind: SceneKind) -> Tuple[int, int]:
        lo = kind.anchor_year(self.config.sdg_start)
        if kind is SceneKind.INTRO:
            hi = self.common_latest
        else:
            hi = self.store.latest_year(kind.indicator, since=self.config.sdg_start)
        if hi is None or hi < lo:
            logger.warning("No %s data from %s on; slider pinned to %s", kind.section, lo, lo)
            hi = lo
        return lo, hi

    def bounds(self, kind: SceneKind) -> Tuple[int, int]:
        return self._bounds[kind]

    # ---- events ----

    def on_visibility(self, section_id: str, is_visible: bool = True) -> Optional[EngineState]:
        if not is_visible:
            return self.state
        kind = SceneKind.from_section(section_id)
        if kind is None:
            logger.debug("Ignoring unknown section %r", section_id)
            return self.state
        if not self.loaded:
            self._held = kind
            return None
        return self.activate(kind)

    def activate(self, kind: SceneKind) -> EngineState:
        if not self.loaded:
            raise RuntimeError("Scenes cannot activate before the data is loaded")
        self._cancel_pending()
        self.state = activate(self.state, kind, self.bounds(kind))
        if kind.theme:
            self.theme = kind.theme
        logger.info("Scene %s active, years %d–%d, showing %d",
                    kind.section, self.state.year_min, self.state.year_max, self.state.current_year)

        self.outputs = self.scene_outputs(kind)
        if self.chart_renderer is not None:
            try:
                self.chart_renderer(self.outputs)
            except Exception:
                logger.exception("Chart renderer failed for scene %s", kind.section)
        self._issue(self.state)
        return self.state

    def on_slider_input(self, value, section=None) -> Optional[EngineState]:
        """
        Move the year now, redraw on the next frame; a newer move replaces a queued one.

        ``section`` is the scene the input was made in. Input from a scene
        that is no longer active is dropped.
        """
        if self.state is None or not self.state.slider_visible:
            return self.state
        if section is not None and section != self.state.scene.section:
            logger.debug("Dropping slider input from %r, %s is active", section, self.state.scene.section)
            return self.state
        self.state = slide(self.state, value)
        self._cancel_pending()
        seq = self.state.seq
        self._pending = self.scheduler.request(lambda: self._run_frame(seq))
        return self.state

    def on_key(self, key: str) -> Optional[EngineState]:
        deltas = {"ArrowLeft": -1, "ArrowRight": 1}
        if self.state is None or not self.state.slider_visible or key not in deltas:
            return self.state
        self._cancel_pending()
        self.state = step(self.state, deltas[key])
        self._issue(self.state)
        return self.state

    def _cancel_pending(self):
        if self._pending is not None:
            self.scheduler.cancel(self._pending)
            self._pending = None

    def _run_frame(self, seq: int):
        self._pending = None
        if self.state is None or self.state.seq != seq:
            return
        self._issue(self.state)

    # ---- redraws ----

    def build_request(self, state: EngineState) -> RedrawRequest:
        ind = state.scene.indicator
        values = {}
        if ind is not None:
            values = {c.code: self.store.get(ind, c.code, state.current_year) for c in self.countries}
        return RedrawRequest(
            seq=state.seq,
            scene=state.scene,
            indicator=ind,
            year=state.current_year,
            values=MappingProxyType(values),
            callouts=self.callouts(state.scene, state.current_year),
        )

    def _issue(self, state: EngineState) -> RedrawRequest:
        request = self.build_request(state)
        self._latest_issued = request.seq
        try:
            output = self.renderer(request)
        except Exception:
            logger.exception("Map renderer failed for scene %s (request %d)",
                             request.scene.section, request.seq)
            return request
        if output is not None:
            self.complete(request, output)
        return request

    def complete(self, request: RedrawRequest, output) -> bool:
        """Accept a renderer's output unless a newer request has been issued."""
        if request.seq != self._latest_issued:
            logger.debug("Dropping stale redraw %d (latest %d)", request.seq, self._latest_issued)
            return False
        self.displayed = (request, output)
        return True

    @property
    def latest_seq(self) -> int:
        return self._latest_issued

    # ---- scene tables ----

    def callouts(self, kind: SceneKind, year: int) -> Tuple[Callout, ...]:
        picks = self.config.annotations.get(kind.section, ())
        known = {c.code for c in self.countries}
        return tuple(
            Callout(iso, title, self.store.get(kind.indicator, iso, year), year)
            for iso, title in picks
            if iso in known
        )

    def scene_outputs(self, kind: SceneKind) -> SceneOutputs:
        cfg = self.config
        lo, hi = self.bounds(kind)

        if kind is SceneKind.INTRO:
            tiles = {
                code: baseline_vs_latest(self.store, code, lo, hi, self.countries)
                for code in TILE_INDICATORS
            }
            return SceneOutputs(kind, f"{lo} → {hi}", lo, hi, tiles=tiles)

        if kind is SceneKind.ELECTRICITY:
            rows = top_signed_delta(self.store, "ELEC", lo, hi, self.countries, cfg.top_delta_limit)
            title = (f"Top {cfg.top_delta_limit} countries by absolute gain in electricity "
                     f"access since {lo} (to {hi})")
            return SceneOutputs(kind, title, lo, hi, rows=tuple(rows))

        if kind is SceneKind.INTERNET:
            years = tuple(self.store.years_since("NET", lo))
            rows = self.region_rows(hi)
            title = f"Internet users (%): distribution by region — {lo} vs {hi}"
            return SceneOutputs(kind, title, lo, hi, rows=tuple(rows), compare_years=years)

        if kind is SceneKind.WATER:
            rows = top_absolute_gainers(
                self.store, "WATER", lo, self.countries, cfg.top_gainers_limit,
                baseline_window=cfg.baseline_window,
                population_window=cfg.latest_population_window,
            )
            title = f"Safely managed water — Top improvers since ~{lo} (labels show people gained)"
            return SceneOutputs(kind, title, lo, hi, rows=tuple(rows))

        rows = aligned_scatter_rows(
            self.store, SCATTER_METRICS, hi, self.countries,
            window=cfg.baseline_window, align_window=cfg.population_window,
        )
        title = f"GDP per capita vs access ({hi}) — circle size = population"
        return SceneOutputs(kind, title, lo, hi, rows=tuple(rows))

    def region_rows(self, compare_year: int):
        lo = SceneKind.INTERNET.anchor_year(self.config.sdg_start)
        return region_distribution(self.store, "NET", lo, compare_year, self.countries,
                                   aliases=self.config.region_aliases)
