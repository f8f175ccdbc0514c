from __future__ import annotations

import argparse
import os
import sys
from urllib import error, request


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check that a running server answers /health.")
    parser.add_argument(
        "--base-url",
        default=f"http://localhost:{os.getenv('DEADLINES_PORT', '3000')}",
        help="Server base URL (default: http://localhost:$DEADLINES_PORT or port 3000).",
    )
    parser.add_argument("--timeout-s", type=float, default=5.0, help="Request timeout in seconds.")
    return parser.parse_args()


def main() -> int:
    """Exit 0 on HTTP 200, 1 on any other status, 2 when the server is unreachable."""
    args = _parse_args()
    url = args.base_url.rstrip("/") + "/health"
    try:
        with request.urlopen(url, timeout=args.timeout_s) as response:
            body = response.read().decode("utf-8", errors="replace")
            print("OK", body)
            return 0
    except error.HTTPError as exc:
        print("FAIL", exc.code, exc.read().decode("utf-8", errors="replace"), file=sys.stderr)
        return 1
    except (error.URLError, OSError) as exc:
        print("ERR", exc, file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
