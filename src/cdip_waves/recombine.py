"""Join per-station daily means back onto the sites that matched each station."""
import pandas as pd

from .models import AGG_COLUMNS, RESULT_COLUMNS


def matches_frame(matches):
    """Site ↔ station map as a DataFrame (one row per site)."""
    return pd.DataFrame({
        "site": [m.site.name for m in matches],
        "station": [m.station.id for m in matches],
        "distance_m": [m.distance_m for m in matches],
    })


def combine(aggregates, matches):
    """
    Inner join of daily aggregates with the site map on station id.

    ``aggregates`` is a DataFrame (or an iterable of DataFrames) with the
    station/date_utc/mean_value columns. A station shared by several sites
    yields one copy of its rows per site; sites whose station has no
    aggregates do not appear at all.
    """
    if not isinstance(aggregates, pd.DataFrame):
        frames = [f for f in aggregates if f is not None and not f.empty]
        aggregates = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=AGG_COLUMNS)

    sitemap = matches_frame(matches)[["site", "station"]]
    if aggregates.empty or sitemap.empty:
        return pd.DataFrame(columns=RESULT_COLUMNS)

    site_order = {name: i for i, name in enumerate(dict.fromkeys(sitemap["site"]))}
    joined = aggregates.merge(sitemap, on="station", how="inner")
    joined["_order"] = joined["site"].map(site_order)
    joined = joined.sort_values(["_order", "date_utc"], kind="stable")
    return joined[RESULT_COLUMNS].reset_index(drop=True)
