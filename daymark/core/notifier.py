"""Change notification for DayMark.

Every open view of a profile must observe a state change after any write,
whether the write happened locally or arrived through a pull. Two layers
provide that:

- ChangeNotifier: in-process signals for the subscribers of one context
  (one journal/engine pair, the equivalent of a browser tab).
- BroadcastChannel: a named channel delivering messages to every *other*
  context that opened a channel with the same name.

Notifications are fire-and-forget: there is no acknowledgment and no
ordering with respect to the data being flushed. Consumers re-read the
local store instead of trusting payloads.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

__all__ = ["BroadcastChannel", "ChangeEvent", "ChangeNotifier", "DEFAULT_CHANNEL"]

DEFAULT_CHANNEL = "daymark-sync"

Subscriber = Callable[..., Any]


class ChangeEvent(str, Enum):
    """Signals emitted to local subscribers."""

    UPDATED = "updated"  # data changed in this context
    REFRESH = "refresh"  # data changed in another context or via pull
    SYNC_STARTED = "sync-started"
    SYNC_COMPLETE = "sync-complete"
    SYNC_ERROR = "sync-error"


class BroadcastChannel:
    """Named message channel shared by all contexts of the process.

    A message posted on one channel object is delivered to every other open
    channel object with the same name, never back to the sender.
    """

    _registry: Dict[str, "weakref.WeakSet[BroadcastChannel]"] = {}

    def __init__(self, name: str) -> None:
        self.name = name
        self.on_message: Optional[Callable[[Dict[str, Any]], None]] = None
        self._closed = False
        self._registry.setdefault(name, weakref.WeakSet()).add(self)

    def post_message(self, message: Dict[str, Any]) -> int:
        """Deliver a message to every other channel with this name.

        Delivery is scheduled on the running event loop if there is one,
        otherwise it happens before this call returns.

        Returns:
            Number of receivers the message was dispatched to
        """
        if self._closed:
            raise RuntimeError(f"Channel '{self.name}' is closed")
        receivers = [
            ch for ch in list(self._registry.get(self.name, ()))
            if ch is not self and not ch._closed
        ]
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        for receiver in receivers:
            if loop is not None:
                loop.call_soon(receiver._deliver, dict(message))
            else:
                receiver._deliver(dict(message))
        return len(receivers)

    def _deliver(self, message: Dict[str, Any]) -> None:
        if self._closed or self.on_message is None:
            return
        try:
            self.on_message(message)
        except Exception:
            logger.exception(f"Broadcast handler on channel '{self.name}' failed")

    def close(self) -> None:
        """Stop receiving and sending on this channel."""
        if self._closed:
            return
        self._closed = True
        members = self._registry.get(self.name)
        if members is not None:
            members.discard(self)
            if not members:
                del self._registry[self.name]


class ChangeNotifier:
    """Fan-out of change signals for one context."""

    def __init__(self, channel_name: str = DEFAULT_CHANNEL) -> None:
        """Initialize notifier.

        Args:
            channel_name: Broadcast channel shared with the other contexts
                of the same profile
        """
        self._subscribers: Dict[ChangeEvent, List[Subscriber]] = {
            event: [] for event in ChangeEvent
        }
        self.channel_name = channel_name
        self._channel = BroadcastChannel(channel_name)
        self._channel.on_message = self._on_broadcast

    def subscribe(self, event: ChangeEvent, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for one signal.

        Args:
            event: Signal to listen for
            callback: Called with the signal's keyword payload

        Returns:
            A callable that removes the subscription
        """
        self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[event]:
                self._subscribers[event].remove(callback)

        return unsubscribe

    def emit(self, event: ChangeEvent, **payload: Any) -> None:
        """Emit a signal to this context's subscribers."""
        for callback in list(self._subscribers[event]):
            try:
                callback(**payload)
            except Exception:
                logger.exception(f"Subscriber for '{event.value}' failed")

    def broadcast_refresh(self, reason: str) -> None:
        """Tell every other context to re-read the store."""
        self._channel.post_message({"type": ChangeEvent.REFRESH.value, "reason": reason})

    def notify_write(self) -> None:
        """Signal a successful local write to all contexts."""
        self.broadcast_refresh("local-write")
        self.emit(ChangeEvent.UPDATED)

    def notify_pulled(self) -> None:
        """Signal that local data was replaced from the remote."""
        self.broadcast_refresh("pull")
        self.emit(ChangeEvent.REFRESH, reason="pull")

    def _on_broadcast(self, message: Dict[str, Any]) -> None:
        if message.get("type") == ChangeEvent.REFRESH.value:
            self.emit(ChangeEvent.REFRESH, reason=message.get("reason"))
        else:
            logger.debug(f"Ignoring unknown broadcast message: {message}")

    def close(self) -> None:
        self._channel.close()
        for callbacks in self._subscribers.values():
            callbacks.clear()
