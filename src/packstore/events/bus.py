"""
Broadcast Channel - Abstract interface for fire-and-forget messaging
between all connected actors.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from .event import ProxyMessage


# Type alias for message handlers
MessageHandler = Callable[[ProxyMessage], Awaitable[None]]


class BroadcastChannel(ABC):
    """
    Abstract base class for broadcast channel implementations.

    A message published by one endpoint is delivered to every other endpoint
    subscribed to the subject. Senders never receive their own messages.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the broadcast medium."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the broadcast medium."""
        ...

    @abstractmethod
    async def publish(self, subject: str, message: ProxyMessage) -> None:
        """
        Publish a message to all other subscribers of a subject.

        Args:
            subject: Subject to publish on
            message: Message to send
        """
        ...

    @abstractmethod
    async def subscribe(self, subject: str, handler: MessageHandler) -> None:
        """
        Subscribe to messages published on a subject.

        Args:
            subject: Subject to subscribe to
            handler: Async function to handle received messages
        """
        ...

    @abstractmethod
    async def unsubscribe(self, subject: str) -> None:
        """
        Unsubscribe from a subject.

        Args:
            subject: Subject to unsubscribe from
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the channel is healthy and connected.

        Returns:
            True if healthy, False otherwise
        """
        ...
