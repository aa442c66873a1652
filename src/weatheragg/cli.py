# command line entry: run one search and print it, or serve the http apps

from __future__ import annotations
import argparse
import sys
from typing import List, Optional
import uvicorn

from . import config
from .errors import ServiceError, describe
from .models import SearchRequest
from .service import build_search


def positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer {raw!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"count must be positive (got {value})")
    return value


def search(place: str, count: int) -> int:
    if count <= 0:
        print(f"count must be positive (got {count})", file=sys.stderr)
        return 2
    try:
        results = build_search().run(SearchRequest(place=place, count=count))
    except ServiceError as exc:
        print(describe(exc), file=sys.stderr)
        return 1

    if not results:
        print(f"No locations found for {place!r}")
    for r in results:
        loc, w = r.location, r.weather
        population = f"{loc.population:,}" if loc.population is not None else "unknown"
        print(
            f"{loc.name} ({loc.qualified_name}, pop. {population}): "
            f"{w.temperature:.1f}{w.temperature_unit}, rain {w.rain:.1f}{w.rain_unit}"
        )
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="weatheragg")
    sub = parser.add_subparsers(dest="command", required=True)

    p_search = sub.add_parser("search", help="print the current weather for places matching a name")
    p_search.add_argument("place", nargs="?", default=config.DEFAULT_PLACE)
    p_search.add_argument("-n", "--count", type=positive_int, default=config.DEFAULT_COUNT)

    for name, target, help_text in (
        ("serve", "weatheragg.app:create_app", "run the aggregation service"),
        ("gateway", "weatheragg.gateway:create_gateway_app", "run the signature verifying gateway"),
        ("filter", "weatheragg.filter:create_filter_app", "run the jq filter service"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--host", default=config.HOST)
        p.add_argument("--port", type=int, default=config.PORT)
        p.set_defaults(target=target)

    args = parser.parse_args(argv)
    config.configure_logging()

    if args.command == "search":
        sys.exit(search(args.place, args.count))
    uvicorn.run(args.target, factory=True, host=args.host, port=args.port, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
