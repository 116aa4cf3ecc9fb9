"""
auth/notifier.py -- Best-effort outbound email.

Two implementations share the send(recipient, subject, body) interface:

  ResendNotifier  POSTs to the Resend HTTP API when RESEND_API_KEY is set.
  LogNotifier     Logs the message it would have sent. Used when no API key
                  is configured, e.g. local development.

send() never raises. Delivery problems are wrapped in TransportError inside
_deliver() and logged by send(); anything else that goes wrong while sending
is logged the same way. The request that triggered the email carries on as if
it had been delivered. There are no retries.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from typing import Protocol

import requests

from auth.errors import TransportError
from core.config import Settings

logger = logging.getLogger("buildkit.notifier")

RESEND_API = "https://api.resend.com/emails"
DEFAULT_FROM = "Buildkit <noreply@buildkit.app>"


class Notifier(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> None: ...


class LogNotifier:
    """Writes outgoing messages to the log instead of delivering them."""

    def __init__(self, sender: str = DEFAULT_FROM) -> None:
        self.sender = sender

    def send(self, recipient: str, subject: str, body: str) -> None:
        logger.info(
            "Sending email (log only): from=%s to=%s subject=%r text=%r",
            self.sender,
            recipient,
            subject,
            body,
        )


class ResendNotifier:
    """Delivers plain-text email through the Resend REST API."""

    def __init__(
        self,
        api_key: str,
        sender: str = DEFAULT_FROM,
        session: requests.Session | None = None,
        timeout: float = 10,
    ) -> None:
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        # One session per notifier for connection pooling.
        self._session = session or requests.Session()
        self._session.max_redirects = 3

    def send(self, recipient: str, subject: str, body: str) -> None:
        try:
            message_id = self._deliver(recipient, subject, body)
        except TransportError:
            logger.exception("Error sending email to %s", recipient)
            return
        except Exception:
            logger.exception("Unexpected error sending email to %s", recipient)
            return
        logger.info("Email sent successfully to %s (id=%s)", recipient, message_id)

    def _deliver(self, recipient: str, subject: str, body: str) -> str | None:
        payload = {
            "from": self.sender,
            "to": [recipient],
            "subject": subject,
            "text": body,
        }
        try:
            resp = self._session.post(
                RESEND_API,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise TransportError(f"Resend delivery failed: {e}") from e
        return data.get("id") if isinstance(data, dict) else None


def build_notifier(settings: Settings) -> Notifier:
    """Return a ResendNotifier when an API key is configured, else a LogNotifier."""
    if settings.resend_api_key:
        return ResendNotifier(settings.resend_api_key, sender=settings.email_from)
    return LogNotifier(sender=settings.email_from)
