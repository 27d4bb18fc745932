import sys
from pathlib import Path

import pandas as pd
from pandas_datareader import wb

import story_hook as SH

START_YEAR, END_YEAR = 1990, 2023

WB_HEADER = ["Country Name", "Country Code", "Indicator Name", "Indicator Code"]


def get_countries_table():
    """Get WB countries, filter out aggregates, keep ISO-3 and canonical names."""
    c = wb.get_countries()
    c = c[c["region"] != "Aggregates"][["name", "iso3c"]]
    c = c.rename(columns={"name": "country", "iso3c": "iso3"})
    return c


def fetch_wb_indicator(code, countries_df, start=START_YEAR, end=END_YEAR):
    """
    Robust WB fetch: request by 'all' countries, then left-join to countries_df
    to attach ISO-3 and discard aggregates. Returns long df: iso3, country, year, value.
    """
    print(f"Fetching WB {code}")
    try:
        df = wb.download(indicator=code, country="all", start=start, end=end).reset_index()
    except Exception as e:
        print(f"  ⚠️ WB failed for {code}: {e}")
        return pd.DataFrame([])

    # WB returns columns: country, year, <code>
    if not {"country", "year", code}.issubset(df.columns):
        print(f"  ⚠️ WB returned unexpected columns for {code}: {df.columns.tolist()}")
        return pd.DataFrame([])

    # Attach ISO-3 and drop aggregates (only rows that match countries_df)
    df = df.merge(countries_df, on="country", how="left")
    df = df.dropna(subset=["iso3"])

    df = df.rename(columns={code: "value"})
    return df[["iso3", "country", "year", "value"]]


def to_wb_layout(long_df, wb_code, indicator_name):
    """
    Long (iso3, country, year, value) -> the wide layout of a World Bank
    download: one row per country, one column per year, blanks for gaps.
    """
    df = long_df.copy()
    df["year"] = pd.to_numeric(df["year"], errors="coerce").astype("Int64")
    df = df.dropna(subset=["year"])
    wide = df.pivot_table(index=["iso3", "country"], columns="year", values="value", aggfunc="last")
    wide = wide.reindex(sorted(wide.columns), axis=1)
    wide.columns = [str(int(y)) for y in wide.columns]
    wide = wide.reset_index().rename(columns={"country": "Country Name", "iso3": "Country Code"})
    years = [c for c in wide.columns if c not in ("Country Name", "Country Code")]
    wide["Indicator Name"] = indicator_name
    wide["Indicator Code"] = wb_code
    wide = wide[WB_HEADER + years]
    return wide.sort_values("Country Name").reset_index(drop=True)


def write_wb_csv(wide, path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wide.to_csv(path, index=False, quoting=1)  # QUOTE_ALL, like the WB downloads
    return path


def main():
    countries_df = get_countries_table()
    files = getattr(SH, "FILES")
    codes = getattr(SH, "WB_CODES")
    labels = getattr(SH, "LABELS", {})

    written = []
    for ind, wb_code in codes.items():
        long_df = fetch_wb_indicator(wb_code, countries_df)
        if long_df.empty:
            print(f"  ⚠️ No data for {wb_code} ({ind})")
            continue
        wide = to_wb_layout(long_df, wb_code, labels.get(ind, ind))
        written.append(write_wb_csv(wide, files[ind]))

    if len(written) < len(codes):
        raise RuntimeError("Some indicators could not be retrieved. Check network or try again later.")

    print("\n✅ Wrote:")
    for p in written:
        print(f" - {p}")


if __name__ == "__main__":
    try:
        main()
    except RuntimeError as e:
        print(f"❌ {e}")
        sys.exit(1)
