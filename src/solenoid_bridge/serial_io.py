"""Serial I/O loop bridging the controller to the telemetry store.

``SerialIOLoop`` is the only code that touches the serial port.  Each
iteration it:

1. drains the ``CommandQueue`` and writes every command, newline-terminated,
2. attempts one line read bounded by the port's read timeout and publishes
   the decoded frame to the ``TelemetryStore`` if it parses,
3. sleeps briefly so an idle line does not spin the CPU.

The port is opened once.  If that fails the loop stops for good and the
store keeps its default record; there is no reconnect.

Cross-platform: works on both Windows (COMx) and Linux
(/dev/ttyACM*, /dev/ttyUSB*, /dev/ttyS*).

Default line settings: 115200 8N1 (no flow control).
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import platform
import threading
import time
from typing import List, Optional

import serial
import serial.tools.list_ports

from . import (
    SERIAL_BAUD_RATE,
    SERIAL_READ_TIMEOUT,
    SERIAL_WRITE_TIMEOUT,
    SERIAL_LOOP_SLEEP_S,
    SERIAL_MAX_LINE_BYTES,
)
from .command_queue import CommandQueue
from .exceptions import (
    DeviceOpenError,
    DeviceWriteError,
    FrameParseError,
    SerialCommunicationError,
)
from .state_store import TelemetryStore
from .telemetry import parse_frame

logger = logging.getLogger("solenoid_bridge.serial_io")

_IS_WINDOWS = platform.system() == "Windows"

LINE_TERMINATOR = b"\n"


def _write_all(
    ser: serial.Serial,
    data: bytes,
    port_name: str,
) -> int:
    """Write *all* bytes to the serial port and flush the OS transmit buffer.

    Does **not** catch pyserial or OS exceptions; the caller decides whether
    a failed write is fatal.

    Returns:
        Number of bytes written (always ``len(data)`` on success).

    Raises:
        SerialCommunicationError: If a short write is detected.
    """
    n = ser.write(data)
    if n != len(data):
        raise SerialCommunicationError(
            f"Short write on {port_name}: wrote {n}/{len(data)} bytes. "
            f"The device is not draining its receive buffer."
        )
    ser.flush()
    return n


class SerialConnectionManager:
    """Owns the handle of the controller's serial port.

    The line format is fixed at 8N1 with no flow control; only the baud rate
    and the timeouts are configurable.
    """

    def __init__(
        self,
        port: str,
        baud_rate: int = SERIAL_BAUD_RATE,
        read_timeout: float = SERIAL_READ_TIMEOUT,
        write_timeout: Optional[float] = SERIAL_WRITE_TIMEOUT,
    ) -> None:
        """
        Args:
            port: Serial port path, e.g. ``/dev/ttyACM0`` (Linux) or ``COM5`` (Windows).
            baud_rate: Baud rate (default: 115200).
            read_timeout: Upper bound in seconds for one line read.  Must be
                positive so the I/O loop never blocks indefinitely.
            write_timeout: Write timeout in seconds.  ``None`` blocks forever.

        Raises:
            SerialCommunicationError: If a setting is out of range.
        """
        if baud_rate <= 0:
            raise SerialCommunicationError(
                f"Invalid baud rate {baud_rate!r} for {port}: must be positive "
                f"(the controller firmware runs at {SERIAL_BAUD_RATE})."
            )
        if read_timeout <= 0:
            raise SerialCommunicationError(
                f"Invalid read_timeout {read_timeout!r} for {port}: a positive "
                f"number of seconds is required so reads cannot block the loop."
            )
        if write_timeout is not None and write_timeout < 0:
            raise SerialCommunicationError(
                f"Invalid write_timeout {write_timeout!r} for {port}: "
                f"use None to block or a non-negative number of seconds."
            )

        self.port = port
        self.baud_rate = baud_rate
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self._serial: Optional[serial.Serial] = None

        logger.info(
            "[SERIAL-INIT] %s: %d 8N1, read_timeout=%.2fs, write_timeout=%s",
            port, baud_rate, read_timeout,
            "blocking" if write_timeout is None else f"{write_timeout:.2f}s",
        )

    def open(self, context: str) -> None:
        """Open the port if it is not open yet.

        Raises:
            DeviceOpenError: The OS refused the port.  The message carries the
                OS reason, *context* and a hint for the current platform.
        """
        if self.is_open():
            logger.debug("[SERIAL-OPEN] [%s] %s already open", context, self.port)
            return

        logger.info("[SERIAL-OPEN] [%s] Opening %s at %d baud", context, self.port, self.baud_rate)
        try:
            self._serial = serial.Serial(
                port=self.port,
                baudrate=self.baud_rate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.read_timeout,
                write_timeout=self.write_timeout,
            )
        except (serial.SerialException, OSError) as exc:
            msg = f"[{context}] Cannot open {self.port}: {exc}. {self._platform_hint()}"
            logger.error("[SERIAL-OPEN] %s", msg)
            raise DeviceOpenError(msg) from exc
        logger.info("[SERIAL-OPEN] [%s] Opened %s", context, self.port)

    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def close(self) -> None:
        """Release the port.  Safe to call when it was never opened."""
        if self._serial is None:
            return
        try:
            self._serial.close()
        except (serial.SerialException, OSError) as exc:
            logger.warning("[SERIAL-CLOSE] Error closing %s: %s", self.port, exc)
        else:
            logger.info("[SERIAL-CLOSE] Closed %s", self.port)
        finally:
            self._serial = None

    def get_serial(self) -> serial.Serial:
        """Return the open ``serial.Serial`` handle.

        Raises:
            SerialCommunicationError: If ``open()`` has not succeeded.
        """
        if not self.is_open():
            raise SerialCommunicationError(f"Serial port {self.port} is not open")
        return self._serial

    @staticmethod
    def list_available_ports() -> List[str]:
        """Return a list of serial port names visible to the operating system."""
        descriptions = []
        for p in serial.tools.list_ports.comports():
            descriptions.append(f"{p.device} ({p.description})")
            logger.debug("[SERIAL-LIST] Found port: %s (%s)", p.device, p.description)
        return descriptions

    def _platform_hint(self) -> str:
        """Return a platform-specific troubleshooting hint."""
        available = ", ".join(p.device for p in serial.tools.list_ports.comports()) or "none"
        if _IS_WINDOWS:
            return (
                "On Windows: verify the COM port number in Device Manager "
                "(Ports → COM & LPT) and close any serial monitor (Arduino IDE, "
                f"PuTTY) holding the port. Available ports: {available}."
            )
        return (
            "On Linux: verify the device path exists (ls /dev/ttyACM* /dev/ttyUSB*), "
            "ensure your user is in the 'dialout' group, and that no other process "
            f"(minicom, screen, Arduino IDE) has the port open. Available ports: {available}."
        )


class _LineAssembler:
    """Accumulates raw bytes until a full line is available.

    A line that straddles a read timeout is completed on a later read instead
    of being dropped.
    """

    def __init__(self, max_bytes: int) -> None:
        self.max_bytes = max_bytes
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> None:
        self._buffer.extend(chunk)

    def pop_line(self) -> Optional[bytes]:
        """Return the oldest complete line (terminator removed), if any.

        Lines longer than ``max_bytes`` are discarded, whether or not their
        terminator has arrived yet.
        """
        while True:
            end = self._buffer.find(LINE_TERMINATOR)
            if end < 0:
                if len(self._buffer) >= self.max_bytes:
                    logger.warning(
                        "[SERIAL-LOOP] Discarding %d bytes with no line terminator",
                        len(self._buffer),
                    )
                    self._buffer.clear()
                return None
            line = bytes(self._buffer[:end])
            del self._buffer[: end + 1]
            if len(line) <= self.max_bytes:
                return line
            logger.warning("[SERIAL-LOOP] Discarding oversized line of %d bytes", len(line))

    def __len__(self) -> int:
        return len(self._buffer)


class LoopState(enum.Enum):
    """Lifecycle of a ``SerialIOLoop``."""
    CONNECTING = "connecting"
    RUNNING = "running"
    FAILED = "failed"     # port could not be opened; terminal
    STOPPED = "stopped"   # stop() was called; terminal


@dataclasses.dataclass(frozen=True)
class LoopStatistics:
    """Snapshot of the loop's counters."""
    iterations: int = 0
    frames_accepted: int = 0
    frames_rejected: int = 0
    commands_written: int = 0
    commands_failed: int = 0
    read_errors: int = 0
    iteration_errors: int = 0


class SerialIOLoop:
    """Background thread that owns the serial port for its whole lifetime.

    The store and the queue are injected; request handlers only ever talk to
    those two objects, never to the port.

    Example::

        store, commands = TelemetryStore(), CommandQueue()
        io_loop = SerialIOLoop(SerialConnectionManager("/dev/ttyACM0"), store, commands)
        io_loop.start()
        commands.submit("a")          # written on the next iteration
        store.read().armed            # updated as frames arrive
    """

    def __init__(
        self,
        connection_manager: SerialConnectionManager,
        store: TelemetryStore,
        command_queue: CommandQueue,
        loop_sleep_s: float = SERIAL_LOOP_SLEEP_S,
        max_line_bytes: int = SERIAL_MAX_LINE_BYTES,
    ) -> None:
        self.connection_manager = connection_manager
        self.store = store
        self.command_queue = command_queue
        self.loop_sleep_s = loop_sleep_s
        self.max_line_bytes = max_line_bytes

        self._state = LoopState.CONNECTING
        self._started = threading.Event()   # set once CONNECTING is left
        self._stop_requested = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._assembler = _LineAssembler(max_line_bytes)
        self._stats_lock = threading.Lock()
        self._stats = LoopStatistics()
        self._consecutive_read_errors = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def port(self) -> str:
        return self.connection_manager.port

    @property
    def state(self) -> LoopState:
        return self._state

    def statistics(self) -> LoopStatistics:
        with self._stats_lock:
            return self._stats

    def start(self) -> None:
        """Start the loop on a daemon thread.  May only be called once."""
        if self._thread is not None:
            raise RuntimeError("SerialIOLoop has already been started")
        self._thread = threading.Thread(
            target=self.run, name=f"serial-io-{self.port}", daemon=True,
        )
        self._thread.start()

    def wait_until_started(self, timeout: Optional[float] = None) -> LoopState:
        """Block until the open attempt has finished; return the resulting state."""
        self._started.wait(timeout)
        return self._state

    def stop(self, timeout: Optional[float] = None) -> None:
        """Ask the loop to exit after its current iteration and wait for it."""
        self._stop_requested.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        """Open the port, then iterate until ``stop()`` is called.

        Runs on the calling thread; ``start()`` is the usual entry point.
        """
        try:
            self.connection_manager.open(context="serial I/O loop startup")
        except DeviceOpenError as exc:
            logger.error(
                "[SERIAL-LOOP] Device unavailable, bridge will serve default telemetry "
                "and never relay commands: %s", exc,
            )
            self._set_state(LoopState.FAILED)
            return

        self._set_state(LoopState.RUNNING)
        logger.info("[SERIAL-LOOP] Running on %s", self.port)
        try:
            ser = self.connection_manager.get_serial()
            while not self._stop_requested.is_set():
                try:
                    self.run_once(ser)
                except Exception:
                    # Nothing a single iteration does may end the loop.
                    logger.exception("[SERIAL-LOOP] Iteration failed on %s, continuing", self.port)
                    self._bump(iteration_errors=1)
                time.sleep(self.loop_sleep_s)
        finally:
            self.connection_manager.close()
            self._set_state(LoopState.STOPPED)
            logger.info("[SERIAL-LOOP] Stopped on %s", self.port)

    def run_once(self, ser: serial.Serial) -> None:
        """One iteration: flush queued commands, then read at most one frame."""
        for command in self.command_queue.drain_available():
            try:
                self._write_command(ser, command)
                self._bump(commands_written=1)
            except DeviceWriteError as exc:
                logger.error("[SERIAL-WRITE] Command %r lost: %s", exc.command, exc)
                self._bump(commands_failed=1)

        line = self._read_line(ser)
        if line is not None:
            self._handle_line(line)
        self._bump(iterations=1)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _set_state(self, state: LoopState) -> None:
        self._state = state
        self._started.set()

    def _bump(self, **deltas: int) -> None:
        with self._stats_lock:
            self._stats = dataclasses.replace(
                self._stats,
                **{k: getattr(self._stats, k) + v for k, v in deltas.items()},
            )

    def _write_command(self, ser: serial.Serial, command: str) -> None:
        data = (command + "\n").encode("utf-8")
        try:
            _write_all(ser, data, self.port)
        except (serial.SerialException, OSError, SerialCommunicationError) as exc:
            raise DeviceWriteError(
                f"Failed to write {data!r} to {self.port}: {exc}", command=command,
            ) from exc
        logger.debug("[SERIAL-WRITE] Sent %r to %s", data, self.port)

    def _read_line(self, ser: serial.Serial) -> Optional[bytes]:
        """Return one complete line, or ``None`` on timeout or read error."""
        line = self._assembler.pop_line()
        if line is not None:
            return line
        try:
            chunk = ser.read_until(LINE_TERMINATOR, self.max_line_bytes)
        except (serial.SerialException, OSError) as exc:
            self._consecutive_read_errors += 1
            self._bump(read_errors=1)
            log = logger.warning if self._consecutive_read_errors == 1 else logger.debug
            log("[SERIAL-LOOP] Read error on %s (treated as no data): %s", self.port, exc)
            return None
        self._consecutive_read_errors = 0
        if chunk:
            self._assembler.feed(chunk)
        return self._assembler.pop_line()

    def _handle_line(self, raw: bytes) -> None:
        try:
            line = raw.decode("utf-8").strip()
        except UnicodeDecodeError:
            logger.debug("[FRAME] Dropped undecodable line %r", raw)
            self._bump(frames_rejected=1)
            return
        if not line:
            return
        try:
            record = parse_frame(line)
        except FrameParseError as exc:
            logger.debug("[FRAME] Rejected (%s): %r", exc.reason, exc.line)
            self._bump(frames_rejected=1)
            return
        self.store.write(record)
        self._bump(frames_accepted=1)
