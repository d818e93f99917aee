"""
Check that a running aggregation API answers its health endpoint.

Exits 0 when `/health` returns 200 with `status == "ok"`, and 1 otherwise.
"""

from __future__ import annotations

import argparse
import sys

import requests

from app.config import get_server_settings


def check_health(base_url: str, timeout_seconds: float = 2.0) -> str | None:
    """
    Return None when the service is healthy, or a description of the problem.
    """

    url = f"{base_url.rstrip('/')}/health"
    try:
        response = requests.get(url, timeout=timeout_seconds)
    except requests.RequestException as exc:
        return f"{url} unreachable: {exc}"

    if response.status_code != 200:
        return f"{url} returned HTTP {response.status_code}"

    try:
        payload = response.json()
    except ValueError:
        return f"{url} returned a non-JSON body"

    if not isinstance(payload, dict) or payload.get("status") != "ok":
        return f"{url} reported {payload!r}"
    return None


def main(argv: list[str] | None = None) -> int:
    settings = get_server_settings()
    parser = argparse.ArgumentParser(description="Check the URL size aggregation API health.")
    parser.add_argument(
        "--base-url",
        dest="base_url",
        default=f"http://127.0.0.1:{settings.port}",
        help="Service root (default: http://127.0.0.1:PORT).",
    )
    parser.add_argument("--timeout", dest="timeout", type=float, default=2.0)
    args = parser.parse_args(argv)

    problem = check_health(args.base_url, args.timeout)
    if problem is not None:
        print(f"healthcheck failed: {problem}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
