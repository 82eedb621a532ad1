from __future__ import annotations

import os
import sys

from stock_check.availability import evaluate_availability
from stock_check.http_client import HttpClient


def main() -> int:
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    except Exception:
        pass

    urls_env = os.getenv("LIVE_TARGETS", "").strip() or os.getenv("TARGET_URL", "").strip()
    urls = [u.strip() for u in urls_env.split(",") if u.strip()]
    if not urls:
        print("Set LIVE_TARGETS (comma-separated) or TARGET_URL.", file=sys.stderr)
        return 2

    element_id = os.getenv("LIVE_ELEMENT_ID", "add").strip() or "add"
    timeout_seconds = float(os.getenv("LIVE_TIMEOUT_SECONDS", "25"))
    client = HttpClient(timeout_seconds=timeout_seconds)

    errors: list[str] = []
    for url in urls:
        print(f"\n== {url}", flush=True)
        try:
            res = client.fetch_text(url)
        except Exception as e:
            errors.append(f"  x {url}: {type(e).__name__}: {e}")
            print(f"error={type(e).__name__}: {e}", flush=True)
            continue
        print(f"status={res.status_code} {res.reason} bytes={len(res.text)} {res.elapsed_ms}ms", flush=True)
        if not res.ok:
            errors.append(f"  x {url}: HTTP {res.status_code}")
            continue

        result = evaluate_availability(res.text, element_id=element_id)
        print(
            f"  #{element_id}: exists={result.exists} says_add_to_cart={result.says_add_to_cart} "
            f"locked={result.locked} available={result.available} text={result.text!r}",
            flush=True,
        )

    if errors:
        print(f"\nErrors ({len(errors)}):", flush=True)
        for e in errors:
            print(e, flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
