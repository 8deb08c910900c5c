"""
NATS-based Broadcast Channel implementation.

Uses core NATS publish/subscribe: fire-and-forget delivery to every connected
actor, no persistence. Echo is disabled so senders never see their own
messages.
"""

import json
from typing import Dict

import structlog
from nats.aio.client import Client as NATS

from .bus import BroadcastChannel, MessageHandler
from .event import ProxyMessage

logger = structlog.get_logger()


class NatsBroadcastChannel(BroadcastChannel):
    """
    NATS core pub/sub broadcast channel.

    Provides:
    - Fan-out delivery to all subscribers of a subject
    - Automatic reconnection
    - No self-delivery (no_echo)
    """

    def __init__(
        self,
        nats_url: str = "nats://localhost:4222",
        max_reconnect_attempts: int = 60,
    ):
        """
        Initialize NATS broadcast channel.

        Args:
            nats_url: NATS server URL
            max_reconnect_attempts: Maximum reconnection attempts
        """
        self.nats_url = nats_url
        self.max_reconnect_attempts = max_reconnect_attempts
        self.nc: NATS | None = None
        self._subscriptions: Dict[str, object] = {}
        self._connected = False

    async def connect(self) -> None:
        """Establish connection to NATS."""
        if self._connected:
            logger.warning("Already connected to NATS")
            return

        try:
            self.nc = NATS()
            await self.nc.connect(
                servers=[self.nats_url],
                max_reconnect_attempts=self.max_reconnect_attempts,
                reconnect_time_wait=2,  # seconds
                no_echo=True,
            )

            self._connected = True
            logger.info("Connected to NATS", nats_url=self.nats_url)

        except Exception as e:
            logger.error("Failed to connect to NATS", error=str(e))
            raise ConnectionError(f"Could not connect to NATS: {e}")

    async def disconnect(self) -> None:
        """Close connection to NATS and cleanup subscriptions."""
        if not self._connected:
            return

        try:
            for sub in self._subscriptions.values():
                try:
                    await sub.unsubscribe()
                except Exception as e:
                    logger.warning("Error unsubscribing", error=str(e))

            if self.nc:
                await self.nc.close()

            self._connected = False
            self._subscriptions.clear()

            logger.info("Disconnected from NATS")

        except Exception as e:
            logger.error("Error during NATS disconnect", error=str(e))
            raise

    async def publish(self, subject: str, message: ProxyMessage) -> None:
        """
        Publish a message on a NATS subject.

        Args:
            subject: NATS subject
            message: Message to publish
        """
        if not self._connected or not self.nc:
            raise ConnectionError("Not connected to NATS. Call connect() first.")

        try:
            await self.nc.publish(subject, message.to_json().encode())

            logger.debug(
                "Message published to NATS",
                subject=subject,
                handler=message.handler_name.value,
                type=message.type.value,
                request_id=message.request_id,
            )

        except Exception as e:
            logger.error(
                "Failed to publish message",
                subject=subject,
                request_id=message.request_id,
                error=str(e),
            )
            raise

    async def subscribe(self, subject: str, handler: MessageHandler) -> None:
        """
        Subscribe to messages on a subject.

        Args:
            subject: NATS subject (wildcards * and > are supported)
            handler: Async function to handle received messages
        """
        if not self._connected or not self.nc:
            raise ConnectionError("Not connected to NATS. Call connect() first.")

        async def _on_message(msg) -> None:
            await self._handle_message(msg, handler, subject)

        try:
            subscription = await self.nc.subscribe(subject, cb=_on_message)
            self._subscriptions[subject] = subscription

            logger.info("Subscribed to subject", subject=subject)

        except Exception as e:
            logger.error(
                "Failed to subscribe to subject",
                subject=subject,
                error=str(e),
            )
            raise

    async def _handle_message(self, msg, handler: MessageHandler, subject: str) -> None:
        """
        Decode one NATS message and pass it to the handler.

        Undecodable messages and handler failures are logged and dropped.
        """
        try:
            message = ProxyMessage.model_validate(json.loads(msg.data.decode()))
            await handler(message)

            logger.debug(
                "Message received and handled",
                subject=msg.subject,
                request_id=message.request_id,
            )

        except Exception as e:
            logger.error(
                f"Error handling message: {e}",
                subject=subject,
                error=str(e),
                exc_info=True,
            )

    async def unsubscribe(self, subject: str) -> None:
        """
        Unsubscribe from a subject.

        Args:
            subject: Subject to unsubscribe from
        """
        subscription = self._subscriptions.pop(subject, None)
        if not subscription:
            return

        try:
            await subscription.unsubscribe()
            logger.info("Unsubscribed from subject", subject=subject)

        except Exception as e:
            logger.error(
                "Error unsubscribing from subject",
                subject=subject,
                error=str(e),
            )
            raise

    async def health_check(self) -> bool:
        """
        Check if NATS is healthy and connected.

        Returns:
            True if healthy, False otherwise
        """
        if not self._connected or not self.nc:
            return False

        try:
            return self.nc.is_connected
        except Exception:
            return False
