# aggregator.py
# Population-weighted means and the tabular rows behind the comparison charts.

import logging
from typing import Iterable, List, Mapping, NamedTuple, Optional

from indicator_store import CountryRef, IndicatorStore
from resolver import POPULATION, POPULATION_WINDOW, resolve, resolve_population

logger = logging.getLogger(__name__)


class AggregateResult(NamedTuple):
    baseline_mean: Optional[float]
    latest_mean: Optional[float]

    @property
    def delta(self) -> Optional[float]:
        """Change in percentage points, absent if either side is absent."""
        if self.baseline_mean is None or self.latest_mean is None:
            return None
        return self.latest_mean - self.baseline_mean


def _codes(countries) -> List[str]:
    return [c.code if isinstance(c, CountryRef) else str(c) for c in countries]


def weighted_mean(store: IndicatorStore, indicator: str, year: int, countries: Iterable,
                  population: str = POPULATION) -> Optional[float]:
    """
    Population-weighted mean (in %) at exactly ``year``.

    A country counts only when both its value and its population are present
    at that year; no nearest-year fallback. None when nobody qualifies.
    """
    num = 0.0
    den = 0.0
    for iso in _codes(countries):
        v = store.get(indicator, iso, year)
        p = store.get(population, iso, year)
        if v is None or p is None:
            continue
        num += (v / 100.0) * p
        den += p
    if not den:
        return None
    return num / den * 100.0


def baseline_vs_latest(store: IndicatorStore, indicator: str, baseline_year: int, latest_year: int,
                       countries: Iterable, population: str = POPULATION) -> AggregateResult:
    """Two independent weighted means; each year decides its own cohort."""
    countries = list(countries)
    return AggregateResult(
        weighted_mean(store, indicator, baseline_year, countries, population),
        weighted_mean(store, indicator, latest_year, countries, population),
    )


# -----------------------------
# Rows for the comparison charts
# -----------------------------

class RegionRow(NamedTuple):
    region: str
    region_label: str
    year: int
    value: float


def region_distribution(store: IndicatorStore, indicator: str, baseline_year: int, compare_year: int,
                        countries: Iterable[CountryRef],
                        aliases: Optional[Mapping[str, str]] = None) -> List[RegionRow]:
    """Exact values at the baseline and the comparison year, tagged with a short region label."""
    aliases = aliases or {}
    rows = []
    for c in countries:
        label = aliases.get(c.region, c.region)
        v0 = store.get(indicator, c.code, baseline_year)
        v1 = store.get(indicator, c.code, compare_year)
        if v0 is not None:
            rows.append(RegionRow(c.region, label, baseline_year, v0))
        if v1 is not None:
            rows.append(RegionRow(c.region, label, compare_year, v1))
    return rows


class ScatterRow(NamedTuple):
    country: str
    region: str
    metric: str
    value: float
    gdppc: float
    pop: float
    year_metric: int
    year_gdp: int
    year_pop: int


def aligned_scatter_rows(store: IndicatorStore, metrics: Mapping[str, str], target_year: int,
                         countries: Iterable[CountryRef], gdp: str = "GDPPC",
                         window: int = 3, align_window: int = POPULATION_WINDOW) -> List[ScatterRow]:
    """
    One row per (country, metric): the metric near ``target_year``, then GDP per
    capita and population near whichever year the metric actually came from.

    ``metrics`` maps a display name to an indicator code.
    """
    rows = []
    for c in countries:
        for name, code in metrics.items():
            m = resolve(store, code, c.code, target_year, window=window)
            if not m.found:
                continue
            g = resolve(store, gdp, c.code, m.year, window=align_window)
            p = resolve_population(store, c.code, m.year, window=align_window)
            if not (g.found and p.found):
                continue
            rows.append(ScatterRow(
                country=c.name, region=c.region, metric=name,
                value=m.value, gdppc=g.value, pop=p.value,
                year_metric=m.year, year_gdp=g.year, year_pop=p.year,
            ))
    logger.debug("Aligned %d scatter rows near %s", len(rows), target_year)
    return rows

