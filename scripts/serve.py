"""
Serve the aggregation API with uvicorn.
"""

from __future__ import annotations

import argparse

import uvicorn

from app.config import get_server_settings


def main() -> int:
    settings = get_server_settings()
    parser = argparse.ArgumentParser(description="Run the URL size aggregation API.")
    parser.add_argument("--host", dest="host", default="0.0.0.0", help="Interface to bind.")
    parser.add_argument(
        "--port",
        dest="port",
        type=int,
        default=settings.port,
        help="Port to listen on (default: PORT or 3000).",
    )
    args = parser.parse_args()

    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
