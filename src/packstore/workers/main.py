"""
packstore Worker Entry Point

Runs the privileged proxy responder against the configured document store.
Usage:
    python -m packstore.workers.main
"""

import asyncio
import signal
import sys

from packstore.access_control import Actor, ActorRoster, Role
from packstore.events import BroadcastChannel, BroadcastHub, InMemoryBroadcastChannel, NatsBroadcastChannel
from packstore.platform.config import Settings, settings
from packstore.platform.logging import configure_logging, get_logger
from packstore.services import DataStorage
from packstore.storage.sql_adapter import SqlAdapter
from packstore.storage.sql_engine import SqlDocumentEngine
from packstore.workers.proxy_worker import ProxyWorker

# Configure logging
configure_logging()
logger = get_logger(__name__)


def build_channel(config: Settings) -> BroadcastChannel:
    """Broadcast channel for the configured backend."""
    if config.BROADCAST_BACKEND == "nats":
        return NatsBroadcastChannel(
            nats_url=config.NATS_URL,
            max_reconnect_attempts=config.NATS_MAX_RECONNECT_ATTEMPTS,
        )
    if config.BROADCAST_BACKEND == "memory":
        return InMemoryBroadcastChannel(BroadcastHub())
    raise ValueError(f"Unknown BROADCAST_BACKEND '{config.BROADCAST_BACKEND}'. Use 'memory' or 'nats'.")


class WorkerManager:
    """Manages the lifecycle of the proxy worker and its shared resources."""

    def __init__(self, config: Settings = settings):
        self.config = config
        self.adapter = None
        self.channel = None
        self.storage = None
        self.worker = None
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        logger.info("Starting proxy worker", backend=self.config.BROADCAST_BACKEND)

        self.adapter = SqlAdapter(self.config.DATABASE_URL)
        self.adapter.connect()
        engine = SqlDocumentEngine(self.adapter)

        self.channel = build_channel(self.config)
        await self.channel.connect()
        logger.info("Connected to broadcast channel")

        actor = Actor(
            id=self.config.WORKER_ACTOR_ID,
            name=self.config.WORKER_ACTOR_NAME,
            role=Role(self.config.WORKER_ACTOR_ROLE),
        )
        self.storage = DataStorage(engine, actor, settings=self.config)
        self.worker = ProxyWorker(self.channel, self.storage, ActorRoster([actor]))
        await self.worker.start()

        # Keep running until shutdown
        await self._shutdown_event.wait()

    async def shutdown(self) -> None:
        """Gracefully shutdown the worker."""
        logger.info("Shutting down workers...")

        if self.worker:
            try:
                await self.worker.stop()
            except Exception as e:
                logger.error(f"Error stopping worker: {e}")

        if self.storage:
            await self.storage.close()
            await self.storage.engine.drain()
        if self.channel:
            await self.channel.disconnect()
        if self.adapter:
            self.adapter.close()

        self._shutdown_event.set()
        logger.info("Workers shutdown complete")


async def main():
    """Main entry point."""
    manager = WorkerManager()

    # Setup signal handlers
    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda: asyncio.create_task(manager.shutdown()))

    try:
        await manager.start()
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.error(f"Worker failed: {e}", exc_info=True)
        await manager.shutdown()
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
