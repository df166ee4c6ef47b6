# salon_booking/services/messaging.py
"""
Outbound messaging collaborators.

The core only needs ``send(recipient, message) -> bool``. Delivery is not
guaranteed; a False return (or a DispatchFailure) tells the Notification
Scheduler to try again on a later sweep.
"""

import logging
from typing import Optional, Protocol

import httpx

from salon_booking.config import Settings
from salon_booking.exceptions import DispatchFailure

logger = logging.getLogger(__name__)


class MessageDispatcher(Protocol):
    def send(self, recipient: str, message: str) -> bool: ...


class LoggingDispatcher:
    """Used when no gateway is configured: the message only reaches the log."""

    def send(self, recipient: str, message: str) -> bool:
        logger.info("message_logged", extra={"recipient": recipient, "text": message})
        return True


class HttpDispatcher:
    """Posts ``{"number", "text"}`` to a messaging gateway (WhatsApp bridge or similar)."""

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.url = url
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
            headers["apikey"] = token
        self.client = client or httpx.Client(timeout=timeout)
        self.headers = headers

    def send(self, recipient: str, message: str) -> bool:
        try:
            response = self.client.post(
                self.url,
                json={"number": recipient, "text": message},
                headers=self.headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DispatchFailure(
                "Messaging gateway rejected the message",
                details={"recipient": recipient, "error": str(exc)},
            ) from exc
        return True

    def close(self) -> None:
        self.client.close()


def build_dispatcher(settings: Settings) -> MessageDispatcher:
    if settings.messaging_url:
        return HttpDispatcher(
            settings.messaging_url,
            token=settings.messaging_token,
            timeout=settings.messaging_timeout_seconds,
        )
    return LoggingDispatcher()
