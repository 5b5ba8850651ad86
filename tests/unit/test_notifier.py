"""Unit tests for change notification between contexts."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict, List

import pytest

from daymark.core.notifier import BroadcastChannel, ChangeEvent, ChangeNotifier


def _channel_name() -> str:
    return f"test-{uuid.uuid4().hex}"


@pytest.mark.unit
class TestBroadcastChannel:
    """Tests for BroadcastChannel."""

    def test_delivers_to_others_not_sender(self) -> None:
        name = _channel_name()
        sender, receiver = BroadcastChannel(name), BroadcastChannel(name)
        sent: List[Dict[str, Any]] = []
        received: List[Dict[str, Any]] = []
        sender.on_message = sent.append
        receiver.on_message = received.append

        assert sender.post_message({"type": "refresh"}) == 1
        assert received == [{"type": "refresh"}]
        assert sent == []

    def test_names_are_isolated(self) -> None:
        a, b = BroadcastChannel(_channel_name()), BroadcastChannel(_channel_name())
        received: List[Dict[str, Any]] = []
        b.on_message = received.append
        assert a.post_message({"type": "refresh"}) == 0
        assert received == []

    def test_closed_channel_does_not_receive(self) -> None:
        name = _channel_name()
        sender, receiver = BroadcastChannel(name), BroadcastChannel(name)
        received: List[Dict[str, Any]] = []
        receiver.on_message = received.append
        receiver.close()
        assert sender.post_message({"type": "refresh"}) == 0
        assert received == []

    def test_closed_channel_cannot_send(self) -> None:
        channel = BroadcastChannel(_channel_name())
        channel.close()
        with pytest.raises(RuntimeError):
            channel.post_message({"type": "refresh"})

    def test_delivery_is_deferred_inside_event_loop(self) -> None:
        """Inside a running loop, receivers run after the sender continues."""
        name = _channel_name()
        sender, receiver = BroadcastChannel(name), BroadcastChannel(name)
        received: List[Dict[str, Any]] = []
        receiver.on_message = received.append

        async def scenario() -> None:
            sender.post_message({"type": "refresh"})
            assert received == []
            await asyncio.sleep(0)
            assert received == [{"type": "refresh"}]

        asyncio.run(scenario())

    def test_failing_handler_does_not_break_sender(self) -> None:
        name = _channel_name()
        sender, receiver = BroadcastChannel(name), BroadcastChannel(name)

        def explode(message: Dict[str, Any]) -> None:
            raise RuntimeError("boom")

        receiver.on_message = explode
        assert sender.post_message({"type": "refresh"}) == 1


@pytest.mark.unit
class TestChangeNotifier:
    """Tests for ChangeNotifier."""

    def test_notify_write_emits_updated_locally(self) -> None:
        notifier = ChangeNotifier(_channel_name())
        calls: List[Dict[str, Any]] = []
        notifier.subscribe(ChangeEvent.UPDATED, lambda **kw: calls.append(kw))
        notifier.notify_write()
        assert calls == [{}]

    def test_notify_write_refreshes_other_contexts(self) -> None:
        """A write in one context is observed by every other open context."""
        name = _channel_name()
        writer, tab_a, tab_b = ChangeNotifier(name), ChangeNotifier(name), ChangeNotifier(name)
        refreshes: List[str] = []
        tab_a.subscribe(ChangeEvent.REFRESH, lambda reason=None: refreshes.append(f"a:{reason}"))
        tab_b.subscribe(ChangeEvent.REFRESH, lambda reason=None: refreshes.append(f"b:{reason}"))
        writer_refreshes: List[str] = []
        writer.subscribe(ChangeEvent.REFRESH, lambda reason=None: writer_refreshes.append(reason))

        writer.notify_write()

        assert sorted(refreshes) == ["a:local-write", "b:local-write"]
        assert writer_refreshes == []

    def test_notify_pulled_refreshes_everyone(self) -> None:
        name = _channel_name()
        puller, other = ChangeNotifier(name), ChangeNotifier(name)
        seen: List[str] = []
        puller.subscribe(ChangeEvent.REFRESH, lambda reason=None: seen.append(f"puller:{reason}"))
        other.subscribe(ChangeEvent.REFRESH, lambda reason=None: seen.append(f"other:{reason}"))

        puller.notify_pulled()

        assert sorted(seen) == ["other:pull", "puller:pull"]

    def test_unsubscribe(self) -> None:
        notifier = ChangeNotifier(_channel_name())
        calls: List[int] = []
        unsubscribe = notifier.subscribe(ChangeEvent.UPDATED, lambda: calls.append(1))
        unsubscribe()
        unsubscribe()
        notifier.notify_write()
        assert calls == []

    def test_failing_subscriber_does_not_stop_others(self) -> None:
        notifier = ChangeNotifier(_channel_name())
        calls: List[int] = []

        def explode(**_: Any) -> None:
            raise RuntimeError("boom")

        notifier.subscribe(ChangeEvent.SYNC_ERROR, explode)
        notifier.subscribe(ChangeEvent.SYNC_ERROR, lambda **_: calls.append(1))
        notifier.emit(ChangeEvent.SYNC_ERROR, error="offline")
        assert calls == [1]

    def test_closed_notifier_stops_receiving(self) -> None:
        name = _channel_name()
        writer, reader = ChangeNotifier(name), ChangeNotifier(name)
        calls: List[Any] = []
        reader.subscribe(ChangeEvent.REFRESH, lambda **kw: calls.append(kw))
        reader.close()
        writer.notify_write()
        assert calls == []
