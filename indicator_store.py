# indicator_store.py
# Per-indicator tables keyed by country code, and the loaders that build them.

import io
import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

WB_HEADER = re.compile(r'^"Country Name","Country Code","Indicator Name","Indicator Code"')
YEAR_COLUMN = re.compile(r"^\d{4}$")

# Natural Earth marks Kosovo with a placeholder instead of an ISO code
KOSOVO_PLACEHOLDER = "-99"
KOSOVO_CODE = "XKX"


class StoryDataError(ValueError):
    """An input file is present but cannot feed the story."""


def to_number(raw):
    """Float for finite numerics, None for blanks, NaN and junk."""
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        num = float(raw)
    except (TypeError, ValueError):
        return None
    return num if np.isfinite(num) else None


# -----------------------------
# Indicator tables
# -----------------------------

class IndicatorTable:
    """
    One indicator: a row per country code, a column per year.

    Years with no observation in any country are dropped, so every year that
    appears in a row also appears in ``years`` (strictly increasing).
    """

    def __init__(self, code, frame: pd.DataFrame):
        frame = frame.copy()
        frame.columns = [int(c) for c in frame.columns]
        frame = frame.apply(pd.to_numeric, errors="coerce")
        frame = frame.reindex(sorted(frame.columns), axis=1)
        frame = frame.loc[:, frame.notna().any(axis=0)]
        # later rows win, like a dict built from the file top to bottom
        frame = frame[~frame.index.duplicated(keep="last")]
        frame.index = frame.index.astype(str)

        self.code = code
        self._frame = frame
        self.years = tuple(int(y) for y in frame.columns)

    @classmethod
    def from_rows(cls, code, rows):
        """Build from ``{country_code: {year: value}}``."""
        frame = pd.DataFrame.from_dict(
            {iso: dict(row) for iso, row in rows.items()}, orient="index"
        )
        return cls(code, frame)

    def get(self, country_code, year):
        try:
            raw = self._frame.at[country_code, int(year)]
        except (KeyError, TypeError, ValueError):
            return None
        return to_number(raw)

    @property
    def country_codes(self):
        return list(self._frame.index)

    def __contains__(self, country_code):
        return country_code in self._frame.index

    def __len__(self):
        return len(self._frame.index)

    def __repr__(self):
        span = f"{self.years[0]}–{self.years[-1]}" if self.years else "no years"
        return f"IndicatorTable({self.code!r}, {len(self)} countries, {span})"


class IndicatorStore:
    """Read-only lookup over several indicator tables. No fallback here."""

    def __init__(self, tables):
        self._tables = dict(tables)

    def get(self, indicator, country_code, year):
        table = self._tables.get(indicator)
        if table is None:
            return None
        return table.get(country_code, year)

    def years(self, indicator):
        table = self._tables.get(indicator)
        return list(table.years) if table is not None else []

    def years_since(self, indicator, since):
        return [y for y in self.years(indicator) if y >= since]

    def latest_year(self, indicator, since=None):
        ys = self.years(indicator) if since is None else self.years_since(indicator, since)
        return ys[-1] if ys else None

    def table(self, indicator):
        return self._tables[indicator]

    @property
    def indicators(self):
        return list(self._tables)

    def __contains__(self, indicator):
        return indicator in self._tables


def common_years(store, indicators, since=None):
    """Years present in every listed indicator (optionally from ``since`` on)."""
    common = None
    for ind in indicators:
        ys = set(store.years(ind))
        common = ys if common is None else common & ys
    out = sorted(common or ())
    if since is not None:
        out = [y for y in out if y >= since]
    return out


# -----------------------------
# World Bank CSV loader
# -----------------------------

def _resolve_path(path, base_dir=None):
    p = Path(path)
    if not p.is_absolute():
        root = base_dir or os.environ.get("STORY_DATA_DIR")
        if root:
            p = Path(root) / p
    return p


def load_wb_csv(path, code=None, base_dir=None):
    """
    Read a World Bank download CSV into an IndicatorTable.

    Tolerates a UTF-8 BOM and the metadata lines that precede the real
    header; keeps only four-digit year columns.
    """
    p = _resolve_path(path, base_dir)
    if not p.exists():
        raise FileNotFoundError(
            f"{p} not found. Fetch it first with prepare_worldbank_dataset.py."
        )

    text = p.read_text(encoding="utf-8-sig")
    lines = text.splitlines()
    header_idx = next((i for i, line in enumerate(lines) if WB_HEADER.match(line)), None)
    if header_idx is not None:
        text = "\n".join(lines[header_idx:])

    df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    if "Country Code" not in df.columns:
        raise StoryDataError(f"Missing 'Country Code' column in {p}")

    year_cols = [c for c in df.columns if YEAR_COLUMN.match(str(c).strip())]
    if not year_cols:
        raise StoryDataError(f"No year columns in {p}")

    if code is None:
        codes = df.get("Indicator Code")
        code = codes.iloc[0] if codes is not None and len(codes) else p.stem

    frame = df.set_index("Country Code")[year_cols]
    frame.columns = [c.strip() for c in year_cols]
    table = IndicatorTable(code, frame)
    logger.debug("Loaded %r from %s", table, p)
    return table


def load_store(files, base_dir=None):
    """Load every indicator file; any missing or malformed file is fatal."""
    tables = {code: load_wb_csv(path, code=code, base_dir=base_dir) for code, path in files.items()}
    for table in tables.values():
        logger.info("Indicator %s: %d countries, years %s", table.code, len(table),
                    f"{table.years[0]}–{table.years[-1]}" if table.years else "none")
    return IndicatorStore(tables)


# -----------------------------
# Country features (GeoJSON)
# -----------------------------

@dataclass(frozen=True)
class CountryRef:
    code: str
    name: str
    region: str


def _first(props, keys):
    for k in keys:
        v = props.get(k)
        if v:
            return v
    return None


def country_code(feature):
    props = feature.get("properties") or {}
    iso = _first(props, ("iso_a3", "adm0_a3", "ADM0_A3", "ISO_A3")) or feature.get("id")
    if iso == KOSOVO_PLACEHOLDER:
        iso = KOSOVO_CODE
    return iso


def display_name(feature):
    props = feature.get("properties") or {}
    return _first(props, ("name", "name_en", "ADMIN")) or country_code(feature)


def region(feature):
    props = feature.get("properties") or {}
    return _first(props, ("region_wb", "REGION_WB", "region", "REGION", "continent", "CONTINENT")) or "Other"


def country_refs(features):
    refs = []
    for f in features:
        code = country_code(f)
        if not code:
            logger.debug("Skipping feature without a country code: %s", f.get("properties"))
            continue
        refs.append(CountryRef(code=str(code), name=str(display_name(f)), region=str(region(f))))
    return refs


def load_features(path, base_dir=None):
    """Features of a GeoJSON FeatureCollection (or any object with ``features``)."""
    p = _resolve_path(path, base_dir)
    if not p.exists():
        raise FileNotFoundError(f"{p} not found.")
    with open(p, "r", encoding="utf-8") as f:
        raw = json.load(f)
    features = raw.get("features") if isinstance(raw, dict) else None
    if not features:
        raise StoryDataError(f"No country features in {p}")
    logger.info("Loaded %d country features from %s", len(features), p)
    return list(features)
