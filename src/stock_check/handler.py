"""AWS Lambda entry point.

Configuration is validated once per process, on the first invocation, and the
runner is reused afterwards. A ConfigurationError escapes to the Lambda
runtime and is re-raised on every later invocation of the same process
without reading the environment again; every other failure comes back in the
response dict.
"""

from __future__ import annotations

from typing import Any

from .config import ConfigurationError, load_config
from .runner import StockCheckRunner


_RUNNER: StockCheckRunner | None = None
_CONFIG_ERROR: ConfigurationError | None = None


def get_runner() -> StockCheckRunner:
    global _RUNNER, _CONFIG_ERROR
    if _CONFIG_ERROR is not None:
        raise _CONFIG_ERROR
    if _RUNNER is None:
        try:
            config = load_config()
        except ConfigurationError as e:
            _CONFIG_ERROR = e
            raise
        _RUNNER = StockCheckRunner(config)
    return _RUNNER


def reset_runner() -> None:
    global _RUNNER, _CONFIG_ERROR
    _RUNNER = None
    _CONFIG_ERROR = None


def lambda_handler(event: Any = None, context: Any = None) -> dict[str, Any]:
    return get_runner().run(event).to_dict()
