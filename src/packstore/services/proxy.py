"""
Remote Proxy Channel - relays writes of unprivileged actors to a privileged one.

Requests go out on ``{PROXY_SUBJECT}.request``; the elected responder answers
on ``{PROXY_SUBJECT}.resolve``. Each request is a single pending future keyed
by its request id. A request nobody answers resolves to None once its
deadline passes; it never raises and never hangs.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from packstore.access_control import Actor
from packstore.events import BroadcastChannel, ProxyHandler, ProxyMessage, ProxyMessageType
from packstore.platform.config import Settings, settings as default_settings
from packstore.platform.logging import get_logger

logger = get_logger(__name__)


def request_subject(base: str) -> str:
    return f"{base}.request"


def resolve_subject(base: str) -> str:
    return f"{base}.resolve"


@dataclass
class PendingRequest:
    """One outstanding request: its deadline and how to stop its timer."""
    request_id: str
    handler: ProxyHandler
    future: asyncio.Future
    deadline: float
    cancel: Callable[[], None]


class PendingRequestTracker:
    """
    Map of request id -> PendingRequest.

    A request leaves the map exactly once: resolved by a response, expired
    by its timer, or cancelled.
    """

    def __init__(self, timeout: float):
        self.timeout = timeout
        self._pending: Dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: str) -> bool:
        return request_id in self._pending

    def register(
        self,
        request_id: str,
        handler: ProxyHandler,
        timeout: Optional[float] = None,
    ) -> asyncio.Future:
        """Track a new request and return the future its caller awaits."""
        if request_id in self._pending:
            raise ValueError(f"Request '{request_id}' is already pending.")

        loop = asyncio.get_running_loop()
        delay = self.timeout if timeout is None else timeout
        future = loop.create_future()
        timer = loop.call_later(delay, self.expire, request_id)

        self._pending[request_id] = PendingRequest(
            request_id=request_id,
            handler=handler,
            future=future,
            deadline=loop.time() + delay,
            cancel=timer.cancel,
        )
        return future

    def resolve(self, request_id: str, result: Any) -> bool:
        """Complete a request with ``result``. False if it is unknown or already done."""
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return False

        pending.cancel()
        if not pending.future.done():
            pending.future.set_result(result)
        return True

    def expire(self, request_id: str) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return

        logger.warning(
            "Proxy request timed out; no privileged actor answered",
            request_id=request_id,
            handler=pending.handler.value,
            timeout=self.timeout,
        )
        if not pending.future.done():
            pending.future.set_result(None)

    def cancel_all(self) -> None:
        """Resolve every outstanding request to None (used on shutdown)."""
        for request_id in list(self._pending):
            pending = self._pending.pop(request_id)
            pending.cancel()
            if not pending.future.done():
                pending.future.set_result(None)

    def pending_ids(self) -> List[str]:
        return list(self._pending)


class RemoteProxyChannel:
    """
    Requester side of the proxy relay.

    ``request`` publishes a request message and waits for its resolution,
    returning the resolution's args or None on timeout.
    """

    def __init__(
        self,
        channel: BroadcastChannel,
        actor: Actor,
        settings: Settings = default_settings,
        timeout: Optional[float] = None,
    ):
        self.channel = channel
        self.actor = actor
        self.settings = settings
        self.tracker = PendingRequestTracker(
            settings.PROXY_TIMEOUT_SECONDS if timeout is None else timeout
        )
        self._started = False

    @property
    def resolve_subject(self) -> str:
        return resolve_subject(self.settings.PROXY_SUBJECT)

    @property
    def request_subject(self) -> str:
        return request_subject(self.settings.PROXY_SUBJECT)

    async def start(self) -> None:
        if self._started:
            return
        await self.channel.subscribe(self.resolve_subject, self._on_resolve)
        self._started = True
        logger.info("Proxy channel started", actor=self.actor.id, subject=self.resolve_subject)

    async def stop(self) -> None:
        if not self._started:
            return
        await self.channel.unsubscribe(self.resolve_subject)
        self.tracker.cancel_all()
        self._started = False
        logger.info("Proxy channel stopped", actor=self.actor.id)

    async def request(self, handler: ProxyHandler, args: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Relay ``handler(args)`` to the elected privileged actor.

        Returns:
            The resolution args, or None if nobody answered in time
        """
        if not self._started:
            await self.start()

        request_id = uuid.uuid4().hex
        future = self.tracker.register(request_id, handler)
        message = ProxyMessage(
            handler_name=handler,
            type=ProxyMessageType.REQUEST,
            args={**args, "requestId": request_id},
            sender_id=self.actor.id,
        )

        try:
            await self.channel.publish(self.request_subject, message)
        except Exception:
            self.tracker.resolve(request_id, None)
            raise

        logger.debug("Proxy request sent", request_id=request_id, handler=handler.value)
        return await future

    async def _on_resolve(self, message: ProxyMessage) -> None:
        if message.type != ProxyMessageType.RESOLVE or not message.request_id:
            return

        # Resolutions are broadcast; only the requester knows the id
        if self.tracker.resolve(message.request_id, dict(message.args)):
            logger.debug(
                "Proxy request resolved",
                request_id=message.request_id,
                handler=message.handler_name.value,
                responder=message.sender_id,
            )
