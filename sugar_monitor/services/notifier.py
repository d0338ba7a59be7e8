"""Notification dispatch.

Destinations are grouped by kind and handed to the channel for that
kind. Only email has a transport; sms and push destinations are reported
back as skipped.

Delivery never raises. Every public method returns a ``NotificationSent``
or ``NotificationFailed`` and the caller decides what to record.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from sugar_monitor.core.errors import NotificationError
from sugar_monitor.logging_config import get_logger
from sugar_monitor.services.mail_transport import MailMessage, SmtpMailTransport
from sugar_monitor.services.notification_templates import (
    AlertNotification,
    RenderedMessage,
    WeeklyDigest,
    render_alert_email,
    render_weekly_digest,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class NotificationSent:
    recipients: tuple[str, ...]
    skipped_kinds: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class NotificationFailed:
    error: str
    recipients: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return False


NotificationResult = NotificationSent | NotificationFailed


def _as_dict(destination: BaseModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(destination, BaseModel):
        return destination.model_dump(mode="json")
    return destination


def split_destinations(
    destinations: Iterable[BaseModel | dict[str, Any]],
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Return (email addresses, kinds without a channel).

    Addresses are de-duplicated case-insensitively, keeping first-seen order.
    """
    emails: list[str] = []
    seen: set[str] = set()
    skipped: list[str] = []
    for destination in destinations:
        data = _as_dict(destination)
        kind = data.get("kind")
        if kind == "email":
            address = data.get("address")
            if address and address.lower() not in seen:
                seen.add(address.lower())
                emails.append(address)
        elif kind and kind not in skipped:
            skipped.append(kind)
    return tuple(emails), tuple(skipped)


class Notifier:
    """Sends alert and weekly digest notifications."""

    def __init__(self, transport: SmtpMailTransport):
        self.transport = transport

    async def verify_connectivity(self) -> NotificationResult:
        """Check that the mail transport accepts a connection and login."""
        try:
            await self.transport.verify()
        except NotificationError as e:
            logger.warning("Mail transport verification failed", error=str(e))
            return NotificationFailed(error=str(e))
        except Exception as e:
            logger.error(
                "Unexpected error verifying mail transport",
                error=str(e),
            )
            return NotificationFailed(error=str(e))
        return NotificationSent(recipients=())

    async def send_alert(
        self,
        destinations: Iterable[BaseModel | dict[str, Any]],
        payload: AlertNotification,
        timeout: float | None = None,
    ) -> NotificationResult:
        """Email a threshold alert to every email destination.

        Args:
            destinations: Stored destination dicts or destination models.
            payload: The alert to describe.
            timeout: Upper bound in seconds on waiting for the send, None for
                no bound. The SMTP exchange runs in a worker thread that
                cannot be cancelled, so on timeout the message may still be
                delivered later. The failure then reads "unconfirmed".
        """
        return await self._deliver(
            destinations,
            render_alert_email(payload),
            timeout=timeout,
            notification="alert",
        )

    async def send_weekly_digest(
        self,
        destinations: Iterable[BaseModel | dict[str, Any]],
        digest: WeeklyDigest,
    ) -> NotificationResult:
        """Email the weekly digest to every email destination."""
        return await self._deliver(
            destinations,
            render_weekly_digest(digest),
            timeout=None,
            notification="weekly_digest",
        )

    async def _deliver(
        self,
        destinations: Iterable[BaseModel | dict[str, Any]],
        rendered: RenderedMessage,
        timeout: float | None,
        notification: str,
    ) -> NotificationResult:
        emails, skipped = split_destinations(destinations)

        for kind in skipped:
            logger.info(
                "No channel for destination kind, skipping",
                kind=kind,
                notification=notification,
            )

        if not emails:
            return NotificationFailed(error="No email recipients configured")

        message = MailMessage(
            to=emails,
            subject=rendered.subject,
            html_body=rendered.html_body,
            text_body=rendered.text_body,
        )

        try:
            if timeout is None:
                await self.transport.send(message)
            else:
                await asyncio.wait_for(self.transport.send(message), timeout)
        except TimeoutError:
            logger.warning(
                "Notification delivery unconfirmed before timeout",
                notification=notification,
                timeout_seconds=timeout,
                recipients=len(emails),
            )
            return NotificationFailed(
                error=f"Delivery unconfirmed after {timeout} seconds",
                recipients=emails,
            )
        except NotificationError as e:
            logger.warning(
                "Notification delivery failed",
                notification=notification,
                recipients=len(emails),
                error=str(e),
            )
            return NotificationFailed(error=str(e), recipients=emails)
        except Exception as e:
            logger.error(
                "Unexpected error delivering notification",
                notification=notification,
                error=str(e),
            )
            return NotificationFailed(error=str(e), recipients=emails)

        return NotificationSent(recipients=emails, skipped_kinds=skipped)
