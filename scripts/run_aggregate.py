"""
Aggregate URL body sizes from the CLI without starting the HTTP server.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace

from app.aggregation.exceptions import AggregationError
from app.config import get_aggregator_settings
from app.services.aggregation_service import AggregationService


def main() -> int:
    parser = argparse.ArgumentParser(description="Fetch a list of URLs and print their body sizes.")
    parser.add_argument(
        "url_file",
        nargs="?",
        default="-",
        help="File with one URL per line, or '-' to read from stdin.",
    )
    parser.add_argument(
        "--stall-timeout",
        dest="stall_timeout",
        type=float,
        default=None,
        help="Override the rolling stall timeout in seconds.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.url_file == "-":
        body = sys.stdin.buffer.read()
    else:
        with open(args.url_file, "rb") as handle:
            body = handle.read()

    settings = get_aggregator_settings()
    if args.stall_timeout is not None:
        settings = replace(settings, stall_timeout_seconds=max(0.01, args.stall_timeout))

    service = AggregationService.from_settings(settings)
    try:
        result = service.aggregate(body)
    except AggregationError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    print(result.payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
