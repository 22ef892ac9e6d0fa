"""Outbound command channel between request handlers and the serial loop."""

from __future__ import annotations

import logging
import queue

from typeguard import typechecked

from .types import CommandBatch

logger = logging.getLogger("solenoid_bridge.command_queue")


@typechecked
class CommandQueue:
    """Unbounded many-producer / single-consumer FIFO of command tokens.

    ``submit`` never blocks and never refuses a command.  Commands from one
    producer come out in the order they went in; interleaving between
    producers is whatever order the underlying queue serialised them in.

    The queue does not validate tokens.  See ``solenoid_bridge.commands``.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue = queue.SimpleQueue()

    def submit(self, command: str) -> None:
        """Enqueue *command* for eventual delivery to the device."""
        self._queue.put_nowait(command)
        logger.debug("[CMD-QUEUE] Queued %r", command)

    def drain_available(self) -> CommandBatch:
        """Remove and return every command queued right now, oldest first."""
        drained = []
        while True:
            try:
                drained.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return drained

    def pending(self) -> int:
        """Approximate number of queued commands."""
        return self._queue.qsize()
