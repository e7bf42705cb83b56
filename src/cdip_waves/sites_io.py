"""Site list input and result table output (CSV)."""
from pathlib import Path

import pandas as pd

from .errors import SitesFileError
from .models import RESULT_COLUMNS, Site

REQUIRED_COLUMNS = ("site", "lat", "long")


def read_sites(path):
    """
    Read a delimited site list with ``site``, ``lat`` and ``long`` columns
    (header matched case-insensitively; other columns are ignored).
    """
    try:
        df = pd.read_csv(path, sep=None, engine="python")
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise SitesFileError(f"Error reading sites file {path}: {e}") from e

    df = df.rename(columns=lambda c: str(c).strip().lower())
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise SitesFileError(f"Sites file {path} is missing column(s): {', '.join(missing)}")

    try:
        lat = pd.to_numeric(df["lat"], errors="raise")
        lon = pd.to_numeric(df["long"], errors="raise")
    except (ValueError, TypeError) as e:
        raise SitesFileError(f"Non-numeric coordinates in {path}: {e}") from e
    if lat.isna().any() or lon.isna().any():
        raise SitesFileError(f"Missing coordinates in {path}")

    return [Site(name=str(name), latitude=float(la), longitude=float(lo))
            for name, la, lo in zip(df["site"], lat, lon)]


def write_table(table, path):
    """Write the result table to CSV and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table[RESULT_COLUMNS].to_csv(path, index=False)
    print(f"  Saved {len(table)} rows to {path}")
    return path
