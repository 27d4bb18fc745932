# ================== STORY SETTINGS =====================
# Edit this file to change which files feed the story, how the scenes
# look and how far the nearest-year search is allowed to reach.

# Indicator CSVs, World Bank download layout (one wide file per indicator)
FILES = {
    "ELEC": "data/7_EG.ELC.ACCS.ZS.csv",
    "NET": "data/9_IT.NET.USER.ZS.csv",
    "WATER": "data/6_SH.H2O.SMDW.ZS.csv",
    "POP": "data/SP.POP.TOTL.csv",
    "GDPPC": "data/8_NY.GDP.PCAP.CD.csv",  # GDP per capita (current US$)
}
GEO_FILE = "custom.geo.json"

# World Bank series behind each indicator (used by prepare_worldbank_dataset.py)
WB_CODES = {
    "ELEC": "EG.ELC.ACCS.ZS",
    "NET": "IT.NET.USER.ZS",
    "WATER": "SH.H2O.SMDW.ZS",
    "POP": "SP.POP.TOTL",
    "GDPPC": "NY.GDP.PCAP.CD",
}

# Friendly labels for the UI, you can change these (right hand side) as you like
LABELS = {
    "ELEC": "Electricity access",
    "NET": "Internet users",
    "WATER": "Safely managed water",
    "POP": "Population",
    "GDPPC": "GDP per capita (US$)",
}

# Legend captions for the map
LEGEND_LABELS = {
    "ELEC": "% access",
    "NET": "% users",
    "WATER": "% safely managed",
    "GDPPC": "US$ (log scale)",
}

# Start of the comparison period; every scene's slider begins here
SDG_START = 2015

# Nearest-year search: how many years either side of the target may be used
BASELINE_WINDOW = 3
POPULATION_WINDOW = 2
LATEST_POPULATION_WINDOW = 1

# How many countries the ranked charts show
TOP_GAINERS_LIMIT = 12
TOP_DELTA_LIMIT = 10

# A section becomes the active scene once this share of it is on screen.
# The margin shrinks the viewport at top and bottom to stop flicker at edges.
VISIBILITY_THRESHOLD = 0.6
VISIBILITY_MARGIN = 0.10

# Default visualisation settings
PERCENT_SCALE = "YlGnBu"
GDP_SCALE = "PuBuGn"
GDP_DOMAIN = (500, 60000)
NO_DATA_COLOR = "#e0e0e0"
MAP_PROJECTION = "natural earth"

# Shorter region names for the boxplot rows
REGION_ALIASES = {
    "Sub-Saharan Africa": "Africa",
    "Europe & Central Asia": "Europe",
    "Middle East & North Africa": "Middle East",
    "Latin America & Caribbean": "S. America",
    "East Asia & Pacific": "E. Asia",
    "South Asia": "S. Asia",
    "North America": "N. America",
}

# Map callouts per scene: (iso3, title)
ANNOTATIONS = {
    "electricity": [
        ("SSD", "South Sudan — very low access"),
        ("AUS", "Australia — near-universal access"),
    ],
    "internet": [
        ("BDI", "Central African countries generally have the least Internet access, such as Burundi"),
        ("ARE", "United Arab Emirates — near-universal"),
    ],
}

# ================== END STORY SETTINGS =====================
