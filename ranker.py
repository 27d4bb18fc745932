# ranker.py
# "Top movers" tables: who gained the most people, and who moved the most points.

import logging
import math
from collections import namedtuple

from resolver import POPULATION, latest_exact, resolve

logger = logging.getLogger(__name__)


MoverRow = namedtuple("MoverRow", [
    "country_code", "display_name",
    "baseline_year", "baseline_value",
    "latest_year", "latest_value",
    "delta_pp", "delta_people",
])

DeltaRow = namedtuple("DeltaRow", ["country_code", "display_name", "baseline_value", "latest_value", "delta"])


def mover_row(store, indicator, country, baseline_year, baseline_window=3,
              population=POPULATION, population_window=1):
    """
    Baseline vs latest for one country, or None if it cannot be ranked.

    The baseline may come from a nearby year (later years preferred); the
    latest value is always exact. Population is taken at the latest year,
    then the year before, then the year after.
    """
    base = resolve(store, indicator, country.code, baseline_year, window=baseline_window, prefer_future=True)
    if not base.found:
        return None
    latest = latest_exact(store, indicator, country.code, baseline_year)
    if not latest.found or latest.year <= base.year:
        return None
    pop = resolve(store, population, country.code, latest.year, window=population_window, prefer_future=False)
    if not pop.found:
        return None

    delta_pp = latest.value - base.value
    delta_people = (delta_pp / 100.0) * pop.value
    if not (math.isfinite(delta_pp) and math.isfinite(delta_people)):
        return None
    return MoverRow(
        country_code=country.code,
        display_name=country.name,
        baseline_year=base.year,
        baseline_value=base.value,
        latest_year=latest.year,
        latest_value=latest.value,
        delta_pp=delta_pp,
        delta_people=delta_people,
    )


def top_absolute_gainers(store, indicator, baseline_year, countries, limit, baseline_window=3,
                         population=POPULATION, population_window=1):
    """
    The ``limit`` countries where the most people gained access since the baseline.

    Ranked by people gained (ties keep input order), then laid out by latest
    level ascending for the chart.
    """
    rows = []
    for c in countries:
        row = mover_row(store, indicator, c, baseline_year, baseline_window, population, population_window)
        if row is not None:
            rows.append(row)

    ranked = sorted(rows, key=lambda r: r.delta_people, reverse=True)[:max(0, limit)]
    logger.debug("%s gainers: %d qualifying, showing %d", indicator, len(rows), len(ranked))
    return sorted(ranked, key=lambda r: r.latest_value)


def top_signed_delta(store, indicator, baseline_year, latest_year, countries, limit):
    """Largest point changes between two exact years, listed bottom-to-top (best last)."""
    rows = []
    for c in countries:
        v0 = store.get(indicator, c.code, baseline_year)
        v1 = store.get(indicator, c.code, latest_year)
        if v0 is None or v1 is None:
            continue
        rows.append(DeltaRow(c.code, c.name, v0, v1, v1 - v0))

    top = sorted(rows, key=lambda r: r.delta, reverse=True)[:max(0, limit)]
    top.reverse()
    return top
