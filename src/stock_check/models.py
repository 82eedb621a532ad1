from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union


@dataclass(frozen=True)
class CheckResult:
    exists: bool
    text: str
    says_add_to_cart: bool
    locked: bool

    @property
    def available(self) -> bool:
        return self.exists and self.says_add_to_cart and not self.locked


@dataclass(frozen=True)
class CheckSuccess:
    notified: bool
    result: CheckResult
    ok: Literal[True] = True

    outcome = "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "notified": self.notified,
            "exists": self.result.exists,
            "text": self.result.text,
            "saysAddToCart": self.result.says_add_to_cart,
            "locked": self.result.locked,
        }


@dataclass(frozen=True)
class FetchFailure:
    message: str
    ok: Literal[False] = False

    outcome = "fetch_failure"

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "message": self.message}


@dataclass(frozen=True)
class RuntimeFailure:
    error: str
    timed_out: bool = False
    ok: Literal[False] = False

    outcome = "runtime_failure"

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": self.error}


HandlerResponse = Union[CheckSuccess, FetchFailure, RuntimeFailure]
