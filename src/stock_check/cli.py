from __future__ import annotations

import argparse
import json
import os

from .config import ConfigurationError, load_config
from .mailer import DryRunMailer
from .runner import StockCheckRunner


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="stock-check")
    parser.add_argument(
        "--url",
        default="",
        help="Product page to check. Defaults to TARGET_URL.",
    )
    parser.add_argument(
        "--source",
        default="",
        help="Execution id used in log lines. Generated when omitted.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Do not send email notifications.",
    )
    args = parser.parse_args(argv)

    env = dict(os.environ)
    if args.url.strip():
        env["TARGET_URL"] = args.url.strip()
    try:
        config = load_config(env)
    except ConfigurationError:
        return 2

    runner = StockCheckRunner(config, mailer=DryRunMailer() if args.dry_run else None)
    event = {"source": args.source.strip()} if args.source.strip() else None
    response = runner.run(event)

    print(json.dumps(response.to_dict(), ensure_ascii=False, indent=2))
    return 0 if response.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
