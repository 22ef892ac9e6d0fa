"""Latest-value store shared between the serial loop and its readers."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from typeguard import typechecked

from .telemetry import TelemetryRecord

logger = logging.getLogger("solenoid_bridge.state_store")


@typechecked
class TelemetryStore:
    """Holds the most recent ``TelemetryRecord`` and nothing else.

    Written by exactly one thread (the serial loop), read by any number of
    request handlers.  The lock only guards a reference swap, so neither side
    can hold the other up for longer than that.  Records are frozen, so a
    reader's value cannot change under it after ``read()`` returns.

    Example::

        store = TelemetryStore()
        store.read().armed        # False until the device reports otherwise
    """

    def __init__(self, initial: Optional[TelemetryRecord] = None) -> None:
        self._lock = threading.Lock()
        self._record = initial if initial is not None else TelemetryRecord.default()

    def read(self) -> TelemetryRecord:
        """Return the current record."""
        with self._lock:
            return self._record

    def write(self, record: TelemetryRecord) -> None:
        """Replace the current record.  Last write wins."""
        with self._lock:
            self._record = record
        logger.debug("[STATE] Stored telemetry ts=%d", record.timestamp)
