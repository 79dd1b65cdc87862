"""Tests for the outbound message transports."""

import json
from uuid import uuid4

import httpx
import pytest

from outreach.exceptions import MessageSendError
from outreach.executors.transport import (
    HttpRelayMessageSender,
    LoggingMessageSender,
    NullInboxPoller,
    OutboundMessage,
)
from outreach.models.messaging import SendAccount

RELAY_URL = "https://relay.test/send"


def _message() -> OutboundMessage:
    return OutboundMessage(
        sender="me@agency.test",
        recipient="jane@acme.test",
        subject="Hello",
        body="Hi Jane",
        tracking_id=uuid4(),
    )


def _sender(handler) -> HttpRelayMessageSender:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpRelayMessageSender(RELAY_URL, client=client)


class TestHttpRelaySender:
    """Tests for HttpRelayMessageSender."""

    def test_posts_message_json(self):
        """The relay receives the rendered message as JSON."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202, json={"status": "queued"})

        message = _message()
        _sender(handler).send(message)

        [request] = requests
        assert request.method == "POST"
        assert str(request.url) == RELAY_URL
        assert json.loads(request.content) == {
            "from": "me@agency.test",
            "to": "jane@acme.test",
            "subject": "Hello",
            "text": "Hi Jane",
            "tracking_id": str(message.tracking_id),
        }

    def test_rejection_carries_relay_code(self):
        """A JSON error body supplies the code and message."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"code": "550", "error": "mailbox unavailable"})

        with pytest.raises(MessageSendError) as exc_info:
            _sender(handler).send(_message())

        assert exc_info.value.code == "550"
        assert exc_info.value.is_bounce
        assert str(exc_info.value) == "550 mailbox unavailable"

    def test_rejection_without_json_uses_status(self):
        """A plain-text error falls back to the HTTP status code."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="try later")

        with pytest.raises(MessageSendError) as exc_info:
            _sender(handler).send(_message())

        assert exc_info.value.code == "503"
        assert not exc_info.value.is_bounce

    def test_network_error_wrapped(self):
        """Transport errors surface as MessageSendError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(MessageSendError, match="Relay unreachable"):
            _sender(handler).send(_message())

    def test_close_releases_client(self):
        """close drops the client so it is recreated lazily."""
        sender = _sender(lambda request: httpx.Response(200))

        sender.close()

        assert sender._client is None


class TestSimulatedTransports:
    """Tests for the no-op transports."""

    def test_logging_sender_never_raises(self, caplog):
        """The simulated sender only logs."""
        with caplog.at_level("INFO"):
            LoggingMessageSender().send(_message())

        assert "[SIMULATED]" in caplog.text

    def test_null_poller_finds_nothing(self):
        """The null poller never reports replies."""
        account = SendAccount(label="main", email="a@x.test")

        assert NullInboxPoller().poll(account) == 0
