"""Tests for keye.host.events and keye.host.channels modules."""

import asyncio
from unittest.mock import Mock

import pytest

from keye.host.channels import QueueChannel
from keye.host.events import InMemoryEventStream

REQUEST = {
    'tabId': 1,
    'url': 'https://example.com/',
    'requestHeaders': [{'name': 'Cookie', 'value': 'sid=1'}],
}
RESPONSE = {
    'tabId': 1,
    'url': 'https://example.com/',
    'responseHeaders': [{'name': 'Set-Cookie', 'value': 'sid=1'}],
}


class TestInMemoryEventStream:
    """Test InMemoryEventStream."""

    def test_events_dropped_without_subscriber(self):
        stream = InMemoryEventStream()
        assert stream.subscribed is False
        assert stream.emit_request(REQUEST) is False
        assert stream.emit_response(RESPONSE) is False

    def test_subscribed_handlers_receive_events(self):
        stream = InMemoryEventStream()
        on_send, on_received = Mock(), Mock()

        stream.subscribe(on_send, on_received)

        assert stream.emit_request(REQUEST) is True
        assert stream.emit_response(RESPONSE) is True
        on_send.assert_called_once_with(REQUEST)
        on_received.assert_called_once_with(RESPONSE)

    def test_unsubscribe_removes_both_handlers(self):
        stream = InMemoryEventStream()
        on_send, on_received = Mock(), Mock()
        stream.subscribe(on_send, on_received)

        stream.unsubscribe()

        assert stream.subscribed is False
        assert stream.emit_request(REQUEST) is False
        assert stream.emit_response(RESPONSE) is False
        on_send.assert_not_called()
        on_received.assert_not_called()


class TestQueueChannel:
    """Test QueueChannel."""

    @pytest.mark.asyncio
    async def test_post_and_receive(self):
        channel = QueueChannel()

        channel.post_message({'type': 'STATE_UPDATE', 'captures': {}})

        assert await channel.receive() == {'type': 'STATE_UPDATE', 'captures': {}}

    @pytest.mark.asyncio
    async def test_drain(self):
        channel = QueueChannel()
        channel.post_message({'type': 'A'})
        channel.post_message({'type': 'B'})

        assert channel.drain() == [{'type': 'A'}, {'type': 'B'}]
        assert channel.drain() == []

    @pytest.mark.asyncio
    async def test_full_queue_raises(self):
        channel = QueueChannel(maxsize=1)
        channel.post_message({'type': 'A'})

        with pytest.raises(asyncio.QueueFull):
            channel.post_message({'type': 'B'})
