from __future__ import annotations

import time
from typing import Any, Mapping

import requests

from .availability import evaluate_availability
from .config import StockCheckConfig
from .http_client import HttpClient
from .logutil import log_event, warn_event
from .mailer import Mailer, SesMailer, h
from .models import CheckSuccess, FetchFailure, HandlerResponse, RuntimeFailure
from .timeutil import epoch_ms, utc_now_iso


SLOW_EXECUTION_MS = 20_000

EMPTY_BODY_MESSAGE = "Received empty response from target URL"
SERVER_ERROR_SUBJECT = "Stock check: Server error detected"
IN_STOCK_SUBJECT = "Item In Stock Alert - Add to Cart Available!"
TIMEOUT_SUBJECT = "Stock check timeout"
SYSTEM_ERROR_SUBJECT = "Stock check system error"


def execution_id_for(event: Any) -> str:
    if isinstance(event, Mapping):
        source = event.get("source")
        if source:
            return str(source)
    return f"execution-{epoch_ms()}"


def _is_timeout(exc: BaseException) -> bool:
    return isinstance(exc, (requests.Timeout, TimeoutError))


def _format_in_stock_message(url: str, button_text: str, execution_id: str, now: str) -> str:
    lines = [
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">',
        '<h2 style="color: #28a745;">Stock Available!</h2>',
        "<p>The item you are monitoring is now available for purchase.</p>",
        f'<p><strong>Product URL:</strong><br><a href="{h(url)}">{h(url)}</a></p>',
        f"<p><strong>Button Status:</strong> {h(button_text)}</p>",
        f"<p><strong>Detected At:</strong> {h(now)}</p>",
        f'<p><a href="{h(url)}" style="background-color: #28a745; color: white; padding: 12px 24px; '
        'text-decoration: none; border-radius: 5px; display: inline-block;">Buy Now</a></p>',
        '<hr style="margin: 20px 0; border: none; border-top: 1px solid #dee2e6;">',
        '<p style="color: #6c757d; font-size: 12px;">This is an automated notification from your stock monitoring service.'
        f"<br>Execution ID: {h(execution_id)}</p>",
        "</div>",
    ]
    return "\n".join(lines)


def _format_server_error_message(status_code: int, reason: str, url: str, now: str) -> str:
    lines = [
        "<p>Server error while checking stock:</p>",
        f"<p><strong>Status:</strong> {status_code} {h(reason)}</p>",
        f'<p><strong>URL:</strong> <a href="{h(url)}">{h(url)}</a></p>',
        f"<p><strong>Time:</strong> {h(now)}</p>",
    ]
    return "\n".join(lines)


def _format_error_message(error: str, *, timed_out: bool, url: str, execution_id: str, now: str) -> str:
    lines = [
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">',
        '<h2 style="color: #dc3545;">Stock Check Failed</h2>',
        "<p>There was an error while checking stock availability.</p>",
        f"<p><strong>Error Type:</strong> {'Timeout' if timed_out else 'System Error'}</p>",
        f"<p><strong>Error Message:</strong> {h(error)}</p>",
        f"<p><strong>Target URL:</strong> {h(url)}</p>",
        f"<p><strong>Execution ID:</strong> {h(execution_id)}</p>",
        f"<p><strong>Time:</strong> {h(now)}</p>",
        "<p>The system will automatically retry on the next scheduled check.</p>",
        '<hr style="margin: 20px 0; border: none; border-top: 1px solid #dee2e6;">',
        '<p style="color: #6c757d; font-size: 12px;">This is an automated error notification from your stock monitoring service.</p>',
        "</div>",
    ]
    return "\n".join(lines)


class StockCheckRunner:
    """One fetch, one evaluation, at most one email per invocation."""

    def __init__(
        self,
        config: StockCheckConfig,
        *,
        client: HttpClient | None = None,
        mailer: Mailer | None = None,
    ) -> None:
        self.config = config
        self._client = client or HttpClient()
        self._mailer = mailer or SesMailer.from_config(config)

    def run(self, event: Any = None) -> HandlerResponse:
        execution_id = execution_id_for(event)
        started = time.perf_counter()
        outcome = "runtime_failure"
        log_event("start", execution_id=execution_id, url=self.config.target_url)
        try:
            try:
                response = self._check(execution_id)
            except Exception as exc:
                response = self._handle_error(exc, execution_id)
            outcome = response.outcome
            return response
        finally:
            duration_ms = int((time.perf_counter() - started) * 1000)
            log_event("done", execution_id=execution_id, outcome=outcome, duration_ms=duration_ms)
            if duration_ms > SLOW_EXECUTION_MS:
                warn_event("slow", execution_id=execution_id, duration_ms=duration_ms, threshold_ms=SLOW_EXECUTION_MS)

    def _check(self, execution_id: str) -> HandlerResponse:
        url = self.config.target_url
        res = self._client.fetch_text(url)

        if not res.ok:
            status = " ".join(p for p in (str(res.status_code), res.reason) if p)
            msg = f"HTTP {status} when fetching {url}"
            warn_event("fetch_failed", execution_id=execution_id, status=res.status_code, message=msg)
            if res.status_code >= 500:
                self._send_best_effort(
                    SERVER_ERROR_SUBJECT,
                    _format_server_error_message(res.status_code, res.reason, url, utc_now_iso()),
                    execution_id=execution_id,
                )
            return FetchFailure(message=msg)

        if not res.text or not res.text.strip():
            warn_event("fetch_failed", execution_id=execution_id, status=res.status_code, message=EMPTY_BODY_MESSAGE)
            return FetchFailure(message=EMPTY_BODY_MESSAGE)

        result = evaluate_availability(res.text)
        log_event(
            "result",
            execution_id=execution_id,
            exists=result.exists,
            says_add_to_cart=result.says_add_to_cart,
            locked=result.locked,
            text=result.text,
        )

        if not result.available:
            return CheckSuccess(notified=False, result=result)

        notified = self._send_best_effort(
            IN_STOCK_SUBJECT,
            _format_in_stock_message(url, result.text, execution_id, utc_now_iso()),
            execution_id=execution_id,
        )
        if notified:
            log_event("notified", execution_id=execution_id)
        return CheckSuccess(notified=notified, result=result)

    def _handle_error(self, exc: Exception, execution_id: str) -> RuntimeFailure:
        error = str(exc) or type(exc).__name__
        timed_out = _is_timeout(exc)
        warn_event(
            "error",
            execution_id=execution_id,
            error_type=type(exc).__name__,
            timed_out=timed_out,
            error=error,
        )
        self._send_best_effort(
            TIMEOUT_SUBJECT if timed_out else SYSTEM_ERROR_SUBJECT,
            _format_error_message(
                error,
                timed_out=timed_out,
                url=self.config.target_url,
                execution_id=execution_id,
                now=utc_now_iso(),
            ),
            execution_id=execution_id,
        )
        return RuntimeFailure(error=error, timed_out=timed_out)

    def _send_best_effort(self, subject: str, html_body: str, *, execution_id: str) -> bool:
        try:
            self._mailer.send(subject, html_body)
        except Exception as e:
            warn_event("email_failed", execution_id=execution_id, subject=subject, error=f"{type(e).__name__}: {e}")
            return False
        return True
