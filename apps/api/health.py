from __future__ import annotations

import sys

import requests

from libs.core.settings import get_settings


def main() -> None:
    settings = get_settings()
    url = f"{settings.public_url.rstrip('/')}/health"

    try:
        resp = requests.get(url, timeout=5)
        if resp.ok and resp.json().get("status") == "ok":
            sys.exit(0)
        print(f"Unhealthy response from {url}: {resp.status_code}", file=sys.stderr)
    except Exception as exc:  # pragma: no cover - network errors
        print(exc, file=sys.stderr)

    sys.exit(1)


if __name__ == "__main__":
    main()
