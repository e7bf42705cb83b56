"""
Command line entry point.

Usage:
    cdip-waves sites.csv --start 2017-09-01 --end 2017-09-30
    cdip-waves sites.csv --start 2017-09-01 --end 2017-09-30 --output wave_data.csv
"""
import argparse
import sys

from .config import PipelineConfig
from .errors import NoStationInRange, SitesFileError
from .pipeline import process
from .sites_io import write_table


def build_parser():
    parser = argparse.ArgumentParser(
        prog="cdip-waves",
        description="Daily mean significant wave height per site from CDIP MOP hindcasts")
    parser.add_argument("sites", help="CSV with site, lat, long columns")
    parser.add_argument("--start", required=True, help="first day, YYYY-MM-DD (UTC)")
    parser.add_argument("--end", required=True, help="last day, YYYY-MM-DD (UTC, inclusive)")
    parser.add_argument("--cache-dir", default=None,
                        help="hindcast download directory (default: cdip_data/ or $CDIP_CACHE_DIR)")
    parser.add_argument("--output", default="wave_data.csv", help="output CSV path")
    parser.add_argument("--margin", type=float, default=None,
                        help="station search window beyond the sites, degrees (default 0.2)")
    parser.add_argument("--fallback-full-catalog", action="store_true",
                        help="search the whole catalog when no station is inside the window")
    parser.add_argument("--reduce-executor", choices=["process", "thread"], default=None)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = PipelineConfig.from_env().with_overrides(
        window_margin_deg=args.margin,
        reduce_executor=args.reduce_executor,
        fallback_to_full_catalog=args.fallback_full_catalog or None,
    )

    try:
        wave_data = process(args.sites, args.start, args.end,
                            cache_dir=args.cache_dir, config=config)
    except (SitesFileError, NoStationInRange, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if wave_data is None:
        return 1

    print(wave_data.to_string(index=False, max_rows=20))
    write_table(wave_data, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
