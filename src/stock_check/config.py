from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import urlparse

from .logutil import warn_event


DEFAULT_REGION = "us-east-1"

_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


class ConfigurationError(ValueError):
    pass


@dataclass(frozen=True)
class StockCheckConfig:
    region: str
    target_url: str
    to_email: str
    from_email: str


def _get(env: Mapping[str, str], key: str) -> str:
    return (env.get(key) or "").strip()


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def is_valid_email(address: str) -> bool:
    return address.isascii() and _EMAIL_RE.fullmatch(address) is not None


def _validate(env: Mapping[str, str]) -> StockCheckConfig:
    region = _get(env, "AWS_REGION") or _get(env, "AWS_DEFAULT_REGION") or DEFAULT_REGION
    target_url = _get(env, "TARGET_URL")
    to_email = _get(env, "TO_EMAIL")
    from_email = _get(env, "FROM_EMAIL")

    if not target_url:
        raise ConfigurationError("TARGET_URL environment variable is required")
    if not to_email or not from_email:
        raise ConfigurationError("TO_EMAIL and FROM_EMAIL environment variables are required")
    if not is_valid_url(target_url):
        raise ConfigurationError("TARGET_URL must be a valid URL")
    if not is_valid_email(to_email):
        raise ConfigurationError("TO_EMAIL must be a valid email address")
    if not is_valid_email(from_email):
        raise ConfigurationError("FROM_EMAIL must be a valid email address")

    return StockCheckConfig(region=region, target_url=target_url, to_email=to_email, from_email=from_email)


def load_config(environ: Mapping[str, str] | None = None) -> StockCheckConfig:
    """Read and validate settings from the environment.

    Raises ConfigurationError on the first invalid or missing value; the
    failure is logged before it propagates.
    """
    env = os.environ if environ is None else environ
    try:
        return _validate(env)
    except ConfigurationError as e:
        warn_event("config_error", error=str(e))
        raise
