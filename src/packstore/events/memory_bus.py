"""
In-process broadcast channel.

Several actors running in one process (or one test) share a BroadcastHub;
each actor talks to the hub through its own InMemoryBroadcastChannel.
"""

import asyncio
from typing import Dict, List, Set, Tuple

import structlog

from .bus import BroadcastChannel, MessageHandler
from .event import ProxyMessage

logger = structlog.get_logger()


class BroadcastHub:
    """Routes messages between the channels attached to it."""

    def __init__(self):
        self._subscribers: Dict[str, List[Tuple["InMemoryBroadcastChannel", MessageHandler]]] = {}
        self._pending: Set[asyncio.Task] = set()

    def attach(self, subject: str, channel: "InMemoryBroadcastChannel", handler: MessageHandler) -> None:
        self._subscribers.setdefault(subject, []).append((channel, handler))

    def detach(self, subject: str, channel: "InMemoryBroadcastChannel") -> None:
        remaining = [(c, h) for c, h in self._subscribers.get(subject, []) if c is not channel]
        if remaining:
            self._subscribers[subject] = remaining
        else:
            self._subscribers.pop(subject, None)

    def deliver(self, subject: str, sender: "InMemoryBroadcastChannel", message: ProxyMessage) -> int:
        """Schedule delivery to every subscriber except the sender."""
        wire = message.to_wire()
        delivered = 0
        for channel, handler in list(self._subscribers.get(subject, [])):
            if channel is sender:
                continue
            # Each receiver gets its own decoded copy, as it would off the wire
            copy = ProxyMessage.model_validate(wire)
            task = asyncio.create_task(
                self._run(handler, copy, subject),
                name=f"broadcast-{subject}",
            )
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            delivered += 1
        return delivered

    async def _run(self, handler: MessageHandler, message: ProxyMessage, subject: str) -> None:
        try:
            await handler(message)
        except Exception as e:
            logger.error(
                f"Error handling broadcast message: {e}",
                subject=subject,
                request_id=message.request_id,
                exc_info=True,
            )

    async def drain(self) -> None:
        """Wait until every scheduled delivery has been handled."""
        while self._pending:
            await asyncio.gather(*list(self._pending))


class InMemoryBroadcastChannel(BroadcastChannel):
    """One actor's endpoint on a BroadcastHub."""

    def __init__(self, hub: BroadcastHub):
        self.hub = hub
        self._subjects: Set[str] = set()
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        for subject in list(self._subjects):
            await self.unsubscribe(subject)
        self._connected = False

    async def publish(self, subject: str, message: ProxyMessage) -> None:
        if not self._connected:
            raise ConnectionError("Broadcast channel not connected. Call connect() first.")

        delivered = self.hub.deliver(subject, self, message)
        logger.debug(
            "Broadcast message published",
            subject=subject,
            handler=message.handler_name.value,
            type=message.type.value,
            receivers=delivered,
        )

    async def subscribe(self, subject: str, handler: MessageHandler) -> None:
        if not self._connected:
            raise ConnectionError("Broadcast channel not connected. Call connect() first.")

        self.hub.attach(subject, self, handler)
        self._subjects.add(subject)

    async def unsubscribe(self, subject: str) -> None:
        if subject in self._subjects:
            self.hub.detach(subject, self)
            self._subjects.discard(subject)

    async def health_check(self) -> bool:
        return self._connected
