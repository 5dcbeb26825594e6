"""Polling for new blocks and notifying listeners through an event queue."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Union

from deezel.rpc import RpcClient, RpcError

logger = logging.getLogger(__name__)

EVENT_BUFFER = 100


@dataclass(frozen=True)
class BlockMonitorConfig:
    """Polling behaviour of a block monitor; times are in seconds."""

    polling_interval: float = 30
    max_retries: int = 5
    retry_delay: float = 5


@dataclass(frozen=True)
class NewBlock:
    """A block higher than any seen before was found."""

    height: int
    hash: str


@dataclass(frozen=True)
class TransactionConfirmed:
    """A watched transaction reached a number of confirmations."""

    txid: str
    confirmations: int


@dataclass(frozen=True)
class MonitorError:
    """The monitor hit an error it could not recover from."""

    message: str


BlockEvent = Union[NewBlock, TransactionConfirmed, MonitorError]


class BlockMonitor:
    """Watches the chain tip and publishes block events."""

    def __init__(self, rpc_client: RpcClient, config: BlockMonitorConfig | None = None) -> None:
        self.rpc_client = rpc_client
        self.config = config if config is not None else BlockMonitorConfig()
        self.current_height = 0
        self._events: asyncio.Queue[BlockEvent] = asyncio.Queue(maxsize=EVENT_BUFFER)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Whether the polling task is alive."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start polling in a background task."""
        if self.running:
            logger.warning("Block monitor is already running")
            return
        logger.info("Starting block monitor")
        self._task = asyncio.create_task(self._run())
        logger.info("Block monitor started")

    async def stop(self) -> None:
        """Cancel the polling task."""
        if not self.running:
            logger.warning("Block monitor is not running")
            return
        logger.info("Stopping block monitor")
        assert self._task is not None
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Block monitor stopped")

    async def check_for_new_block(self) -> bool:
        """Query the chain tip; publish a NewBlock event if it advanced."""
        bitcoin_height = await self.rpc_client.get_block_count()
        metashrew_height = await self.rpc_client.get_metashrew_height()
        if metashrew_height != bitcoin_height + 1:
            logger.warning(
                "Metashrew height (%d) is not Bitcoin height (%d) + 1",
                metashrew_height,
                bitcoin_height,
            )
        if bitcoin_height <= self.current_height:
            return False
        block_hash = await self.rpc_client.call("btc_getblockhash", [bitcoin_height])
        if not isinstance(block_hash, str):
            raise RpcError("Invalid block hash")
        logger.info("New block detected at height %d", bitcoin_height)
        self.current_height = bitcoin_height
        await self._events.put(NewBlock(bitcoin_height, block_hash))
        return True

    async def events(self) -> AsyncIterator[BlockEvent]:
        """Yield events as the monitor publishes them."""
        while True:
            yield await self._events.get()

    async def _run(self) -> None:
        retries = 0
        while True:
            try:
                found = await self.check_for_new_block()
            except RpcError as exc:
                retries += 1
                logger.error("Error checking for new block: %s", exc)
                if retries >= self.config.max_retries:
                    logger.error("Maximum retry count reached, stopping block monitor")
                    await self._events.put(MonitorError(f"Maximum retry count reached: {exc}"))
                    return
                await asyncio.sleep(self.config.retry_delay)
                continue
            if found:
                retries = 0
            else:
                logger.debug("No new block found")
            await asyncio.sleep(self.config.polling_interval)