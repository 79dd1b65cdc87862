"""Outbound and inbound message transport ports.

Executors never talk to a mail server directly. Sending goes through a
``MessageSender`` and reply detection through an ``InboxPoller``, so the
automation core runs the same with a real relay, a simulated sender, or
a test double.
"""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

import httpx

from outreach.exceptions import MessageSendError
from outreach.models.messaging import SendAccount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundMessage:
    """A fully rendered message ready for the transport."""

    sender: str
    recipient: str
    subject: str
    body: str
    tracking_id: UUID
    send_account_id: UUID | None = None


class MessageSender(Protocol):
    def send(self, message: OutboundMessage) -> None:
        """Deliver a message.

        Raises:
            MessageSendError: The transport rejected the message
        """
        ...


class InboxPoller(Protocol):
    def poll(self, account: SendAccount) -> int:
        """Check the mailbox and return the number of new replies."""
        ...


# -----------------------------------------------------------------------------
# Senders
# -----------------------------------------------------------------------------


class LoggingMessageSender:
    """Simulated sender that only logs.

    Used when no relay is configured so the pipeline can be exercised
    end to end without delivering anything.
    """

    def send(self, message: OutboundMessage) -> None:
        logger.info(
            f"[SIMULATED] Message to {message.recipient}: {message.subject}",
            extra={
                "sender": message.sender,
                "recipient": message.recipient,
                "tracking_id": str(message.tracking_id),
            },
        )


class HttpRelayMessageSender:
    """Sender that posts messages to an HTTP mail relay.

    The relay answers 2xx on acceptance. On rejection it may return a JSON
    body ``{"code": "550", "error": "..."}``; the code is carried on the
    raised ``MessageSendError`` so bounces can be told apart.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the relay sender.

        Args:
            url: Relay endpoint receiving POSTed messages
            timeout: Request timeout in seconds
            client: Optional preconfigured client (tests pass a mock transport)
        """
        self.url = url
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def send(self, message: OutboundMessage) -> None:
        try:
            response = self.client.post(
                self.url,
                json={
                    "from": message.sender,
                    "to": message.recipient,
                    "subject": message.subject,
                    "text": message.body,
                    "tracking_id": str(message.tracking_id),
                },
            )
        except httpx.HTTPError as e:
            raise MessageSendError(f"Relay unreachable: {e}") from e

        if response.is_success:
            logger.debug(
                "Message accepted by relay",
                extra={"recipient": message.recipient, "status_code": response.status_code},
            )
            return

        code = str(response.status_code)
        detail = response.text
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = str(body.get("code") or code)
            detail = str(body.get("error") or detail)

        raise MessageSendError(f"{code} {detail}".strip(), code=code)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


# -----------------------------------------------------------------------------
# Pollers
# -----------------------------------------------------------------------------


class NullInboxPoller:
    """Poller for deployments without inbox access; never finds replies."""

    def poll(self, account: SendAccount) -> int:
        return 0
