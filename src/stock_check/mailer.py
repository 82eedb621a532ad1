from __future__ import annotations

import html
from typing import Any, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import StockCheckConfig
from .logutil import log_event, warn_event


class EmailDeliveryError(RuntimeError):
    pass


class Mailer(Protocol):
    def send(self, subject: str, html_body: str) -> str: ...


class SesMailer:
    """Sends HTML email through Amazon SES to one fixed recipient."""

    def __init__(self, *, region: str, sender: str, recipient: str, client: Any = None) -> None:
        self._sender = sender
        self._recipient = recipient
        self._client = client or boto3.client(
            "ses",
            region_name=region,
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )

    @classmethod
    def from_config(cls, cfg: StockCheckConfig, *, client: Any = None) -> "SesMailer":
        return cls(region=cfg.region, sender=cfg.from_email, recipient=cfg.to_email, client=client)

    def send(self, subject: str, html_body: str) -> str:
        try:
            resp = self._client.send_email(
                Source=self._sender,
                Destination={"ToAddresses": [self._recipient]},
                Message={
                    "Subject": {"Charset": "UTF-8", "Data": subject},
                    "Body": {"Html": {"Charset": "UTF-8", "Data": html_body}},
                },
            )
        except (ClientError, BotoCoreError) as e:
            warn_event("email_send_failed", to=self._recipient, error=f"{type(e).__name__}: {e}")
            raise EmailDeliveryError(f"Failed to send email to {self._recipient}: {e}") from e

        message_id = str(resp.get("MessageId", ""))
        log_event("email_sent", to=self._recipient, message_id=message_id)
        return message_id


class DryRunMailer:
    """Logs what would be sent instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send(self, subject: str, html_body: str) -> str:
        self.sent.append((subject, html_body))
        message_id = f"dry-run-{len(self.sent)}"
        log_event("email_dry_run", subject=subject, message_id=message_id)
        return message_id


def h(text: str | None) -> str:
    return html.escape(text or "", quote=True)
