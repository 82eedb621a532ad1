from __future__ import annotations

import os
import sys
from typing import Any


PREFIX = "[stock-check]"


def _enabled() -> bool:
    return os.getenv("STOCK_CHECK_LOG", "1").strip() != "0"


def _fmt(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return str(value)
    if isinstance(value, (int, float)):
        return str(value)
    s = str(value)
    if not s or any(c.isspace() for c in s) or "=" in s:
        return repr(s)
    return s


def format_event(phase: str, **fields: Any) -> str:
    parts = [PREFIX, phase]
    parts.extend(f"{k}={_fmt(v)}" for k, v in fields.items())
    return " ".join(parts)


def log_event(phase: str, **fields: Any) -> None:
    if not _enabled():
        return
    print(format_event(phase, **fields), flush=True)


def warn_event(phase: str, **fields: Any) -> None:
    # Warnings ignore STOCK_CHECK_LOG.
    print(format_event(phase, **fields), file=sys.stderr, flush=True)
