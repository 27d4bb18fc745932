# resolver.py
# Bounded nearest-year lookup on top of the IndicatorStore.

from collections import namedtuple

DEFAULT_WINDOW = 3
POPULATION_WINDOW = 2
POPULATION = "POP"


class Resolved(namedtuple("Resolved", ["year", "value"])):
    __slots__ = ()

    @property
    def found(self):
        return self.year is not None and self.value is not None


ABSENT = Resolved(None, None)


def candidate_years(target, window=DEFAULT_WINDOW, prefer_future=True):
    """
    Years to try, in order: the target, then each radius 1..window with the
    preferred direction first.
    """
    yield target
    for r in range(1, window + 1):
        if prefer_future:
            yield target + r
            yield target - r
        else:
            yield target - r
            yield target + r


def resolve(store, indicator, country_code, target, window=DEFAULT_WINDOW, prefer_future=True):
    """
    Value at ``target`` or, failing that, at the nearest year within ``window``.

    Equal-distance ties go to the later year when ``prefer_future`` is set,
    to the earlier one otherwise. Returns ABSENT if nothing is in reach.
    """
    for year in candidate_years(int(target), max(0, int(window)), prefer_future):
        v = store.get(indicator, country_code, year)
        if v is not None:
            return Resolved(year, v)
    return ABSENT


def resolve_population(store, country_code, target, window=POPULATION_WINDOW, prefer_future=True,
                       indicator=POPULATION):
    return resolve(store, indicator, country_code, target, window=window, prefer_future=prefer_future)


def latest_exact(store, indicator, country_code, since):
    # latest values are never approximated
    for year in reversed(store.years_since(indicator, since)):
        v = store.get(indicator, country_code, year)
        if v is not None:
            return Resolved(year, v)
    return ABSENT
