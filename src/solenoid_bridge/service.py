"""Boundary between remote callers and the serial bridge core."""

from __future__ import annotations

import logging

from typeguard import typechecked

from . import commands
from .command_queue import CommandQueue
from .state_store import TelemetryStore
from .telemetry import TelemetryRecord
from .types import TelemetryDict

logger = logging.getLogger("solenoid_bridge.service")


@typechecked
class BridgeService:
    """Reads telemetry and requests commands on behalf of remote callers.

    Every call returns immediately.  Reads are "best known, possibly stale";
    command requests are fire-and-forget and say nothing about whether the
    device ever received them.  Parameters are validated here so that the
    queue only ever sees well-formed tokens.
    """

    def __init__(self, store: TelemetryStore, command_queue: CommandQueue) -> None:
        self.store = store
        self.command_queue = command_queue

    def get_state(self) -> TelemetryRecord:
        return self.store.read()

    def get_state_dict(self) -> TelemetryDict:
        return self.store.read().to_dict()

    def request_arm(self) -> None:
        self._submit(commands.arm_command())

    def request_disarm(self) -> None:
        self._submit(commands.disarm_command())

    def request_solenoid(self, channel: int, state: int) -> None:
        """Request *channel* (1-16) be driven to *state* (0 or 1).

        Raises:
            CommandValidationError: If either parameter is out of range.
        """
        self._submit(commands.solenoid_command(channel, state))

    def _submit(self, command: str) -> None:
        self.command_queue.submit(command)
        logger.info("[SERVICE] Requested %r", command)
