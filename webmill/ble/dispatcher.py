"""Single-flight FIFO dispatch of control point commands."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from typing import Awaitable, Callable, Optional

from webmill.ble.codec import Command
from webmill.core.errors import CommandWriteError

logger = logging.getLogger(__name__)

WriteFn = Callable[[bytes], Awaitable[None]]


class CommandDispatcher:
    """Drains queued commands to the device, one write at a time.

    Commands are written strictly in enqueue order and only while the link is
    marked connected. A failed write is logged and dropped; draining goes on.
    """

    def __init__(self, write: WriteFn) -> None:
        self._write = write
        self._queue: deque[Command] = deque()
        self._in_flight = False
        self._connected = False
        self._wakeup = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def pending(self) -> tuple[Command, ...]:
        return tuple(self._queue)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def enqueue(self, command: Command) -> None:
        self._queue.append(command)
        self._wakeup.set()

    def set_connected(self, connected: bool) -> None:
        self._connected = connected
        if connected:
            self._wakeup.set()

    def clear(self) -> None:
        # A write already awaiting the device keeps the in-flight slot until it returns.
        self._queue.clear()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._drain_loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def drain_once(self) -> bool:
        """Write the head of the queue if allowed. Returns True if a write was issued."""
        if self._in_flight or not self._connected or not self._queue:
            return False

        command = self._queue[0]
        self._in_flight = True
        try:
            await self._write(command.payload)
        except Exception as exc:
            error = CommandWriteError(
                f"{command.kind.value} write failed ({command.payload.hex(' ')}): {exc}"
            )
            logger.warning("%s", error)
        finally:
            self._in_flight = False
            # The queue may have been cleared while the write was pending.
            if self._queue and self._queue[0] is command:
                self._queue.popleft()
        return True

    async def _drain_loop(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            while await self.drain_once():
                pass
