"""
Proxy Worker - privileged responder for relayed writes.

Subscribes to proxy requests and, when this worker's actor is the elected
responder, performs the store or delete on the requester's behalf and
broadcasts the resolution.
"""

from typing import Any, Dict, Optional

from packstore.access_control import ActorRoster
from packstore.errors import PackStoreError
from packstore.events import BroadcastChannel, ProxyHandler, ProxyMessage, ProxyMessageType
from packstore.index.fields import decode_payload
from packstore.platform.logging import get_logger
from packstore.services.data_storage import DataStorage
from packstore.services.proxy import request_subject, resolve_subject

logger = get_logger(__name__)


class ProxyWorker:
    """
    Background worker answering proxy requests.

    This worker:
    1. Subscribes to proxy request messages
    2. Ignores requests unless its actor is the elected responder
    3. Runs the requested store/delete with its own privilege
    4. Publishes the resolution, echoing the request id
    """

    def __init__(
        self,
        channel: BroadcastChannel,
        storage: DataStorage,
        roster: ActorRoster,
    ):
        """
        Args:
            channel: Broadcast channel shared with the requesters
            storage: DataStorage acting for a privileged actor
            roster: Connected actors, used for responder election
        """
        self.channel = channel
        self.storage = storage
        self.roster = roster
        self._running = False

        base = storage.settings.PROXY_SUBJECT
        self.request_subject = request_subject(base)
        self.resolve_subject = resolve_subject(base)

    @property
    def actor(self):
        return self.storage.actor

    async def start(self) -> None:
        """Start the worker and subscribe to proxy requests."""
        if not self.actor.is_privileged:
            raise PackStoreError(
                f"Proxy worker actor '{self.actor.id}' is not privileged and cannot answer requests."
            )
        self.roster.add(self.actor)
        await self.channel.subscribe(self.request_subject, self._handle_message)
        self._running = True
        logger.info("Proxy worker started", actor=self.actor.id, subject=self.request_subject)

    async def stop(self) -> None:
        self._running = False
        await self.channel.unsubscribe(self.request_subject)
        logger.info("Proxy worker stopped", actor=self.actor.id)

    async def _handle_message(self, message: ProxyMessage) -> None:
        if message.type != ProxyMessageType.REQUEST or not message.request_id:
            return

        if not self.roster.is_responder(self.actor):
            logger.debug("Not the elected responder; ignoring request", request_id=message.request_id)
            return

        try:
            result = await self._dispatch(message)
        except PackStoreError as e:
            logger.warning(
                f"Proxied {message.handler_name.value} rejected: {e}",
                request_id=message.request_id,
                requester=message.sender_id,
            )
            result = {"error": str(e)}
        except Exception as e:
            logger.error(
                f"Failed to process proxy request {message.request_id}: {e}",
                exc_info=True,
            )
            result = {"error": "The responder failed to process the request."}

        await self.channel.publish(
            self.resolve_subject,
            ProxyMessage(
                handler_name=message.handler_name,
                type=ProxyMessageType.RESOLVE,
                args={**result, "requestId": message.request_id},
                sender_id=self.actor.id,
            ),
        )

    async def _dispatch(self, message: ProxyMessage) -> Dict[str, Any]:
        if message.handler_name == ProxyHandler.STORE:
            return await self._handle_store(message.args)
        if message.handler_name == ProxyHandler.DELETE:
            return await self._handle_delete(message.args)
        raise PackStoreError(f"Unsupported proxy handler '{message.handler_name}'.")

    async def _handle_store(self, args: Dict[str, Any]) -> Dict[str, Any]:
        entry = await self.storage.store(
            data=decode_payload(args.get("data")),
            name=args.get("name"),
            thumb=args.get("thumb"),
            tags=args.get("tags"),
            type=args.get("type"),
            desc=args.get("desc"),
            pack=args.get("pack"),
        )
        logger.info("Proxied store completed", uuid=entry.uuid)
        return {"uuid": entry.uuid}

    async def _handle_delete(self, args: Dict[str, Any]) -> Dict[str, Any]:
        uuid: Optional[str] = args.get("uuid")
        entries = await self.storage.get_entries_from_uuid([uuid] if uuid else [], full=False)
        if not entries:
            return {"deleted": False}

        deleted = await self.storage.delete(entries[0])
        logger.info("Proxied delete completed", uuid=uuid, deleted=deleted)
        return {"deleted": deleted}
