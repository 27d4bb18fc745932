# conftest.py
# Small in-memory tables shared by the tests.

import pytest

from indicator_store import CountryRef, IndicatorStore, IndicatorTable


def make_store(**tables):
    """make_store(ELEC={"KEN": {2015: 40}}, POP=...) -> IndicatorStore"""
    return IndicatorStore({code: IndicatorTable.from_rows(code, rows) for code, rows in tables.items()})


@pytest.fixture
def countries():
    return [
        CountryRef("KEN", "Kenya", "Sub-Saharan Africa"),
        CountryRef("IND", "India", "South Asia"),
        CountryRef("DEU", "Germany", "Europe & Central Asia"),
        CountryRef("SSD", "South Sudan", "Sub-Saharan Africa"),
    ]


@pytest.fixture
def story_store():
    """Five indicators over 2014–2020 with deliberate gaps."""
    years = range(2014, 2021)
    return make_store(
        ELEC={
            "KEN": {y: 30 + 5 * (y - 2014) for y in years},
            "IND": {y: 80 + 2 * (y - 2014) for y in years},
            "DEU": {y: 100 for y in years},
            "SSD": {2015: 5.0, 2019: 7.0},
        },
        NET={
            "KEN": {2015: 16.6, 2019: 23.0, 2020: 29.5},
            "IND": {2015: 14.9, 2020: 43.0},
            "DEU": {2015: 87.6, 2020: 89.8},
        },
        WATER={
            "KEN": {2016: 50.0, 2020: 60.0},
            "IND": {2015: 40.0, 2020: 55.0},
            "DEU": {2015: 99.0, 2020: 99.5},
        },
        POP={
            "KEN": {y: 50_000_000 for y in years},
            "IND": {y: 1_300_000_000 for y in years},
            "DEU": {y: 83_000_000 for y in years},
            "SSD": {y: 11_000_000 for y in years},
        },
        GDPPC={
            "KEN": {y: 1500 + 50 * (y - 2014) for y in years},
            "IND": {y: 1700 + 80 * (y - 2014) for y in years},
            "DEU": {y: 45000 for y in range(2014, 2020)},
        },
    )
