"""
Solenoid Bridge - serial-to-HTTP bridge for an arming / solenoid controller

This package connects a line-oriented serial controller to a small HTTP
control surface. It includes:

- **Frame parsing** of the controller's ``TS:... | ARM:... | ...`` telemetry lines
- **Latest-value store** shared between the serial thread and HTTP handlers
- **Fire-and-forget command relay** (arm, disarm, solenoid set) via a queue
- **Serial I/O loop** owning the port for the lifetime of the process
- **HTTP control page** and JSON telemetry endpoint (Flask)

The serial device is opened exactly once; if that fails the bridge keeps
serving the default (all-off) telemetry record and accepts commands that
will never be delivered.
"""

import logging
import os
import platform

logging.getLogger("solenoid_bridge").addHandler(logging.NullHandler())

__version__ = "0.1.0"

_IS_WINDOWS = platform.system() == "Windows"

# Serial device path.  Override via SOLENOID_BRIDGE_SERIAL_PORT or the CLI.
DEFAULT_SERIAL_PORT = os.environ.get(
    "SOLENOID_BRIDGE_SERIAL_PORT",
    "COM5" if _IS_WINDOWS else "/dev/ttyACM0",
)

# HTTP listener
DEFAULT_HTTP_HOST = os.environ.get("SOLENOID_BRIDGE_HTTP_HOST", "127.0.0.1")
DEFAULT_HTTP_PORT = int(os.environ.get("SOLENOID_BRIDGE_HTTP_PORT", "8000"))

# Serial communication settings (fixed by the controller firmware)
SERIAL_BAUD_RATE = 115200
SERIAL_READ_TIMEOUT = 0.1  # seconds, upper bound on one line read
SERIAL_WRITE_TIMEOUT = 1   # seconds
SERIAL_LOOP_SLEEP_S = 0.01  # pause between loop iterations
SERIAL_MAX_LINE_BYTES = 4096  # receive buffer cap when no newline arrives

# Telemetry frame layout
SOLENOID_COUNT = 16
