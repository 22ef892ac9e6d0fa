"""Custom exceptions for the serial bridge."""

from __future__ import annotations


class SolenoidBridgeError(Exception):
    """Common base exception for all solenoid_bridge errors."""
    pass


class FrameParseError(SolenoidBridgeError):
    """Exception for telemetry lines that do not match the frame grammar.

    Never escapes the serial loop: a rejected frame is logged and dropped.

    Attributes:
        line: The offending line (already stripped of its terminator).
        reason: Short description of the first deviation found.
    """

    def __init__(self, reason: str, *, line: str) -> None:
        super().__init__(f"{reason}: {line!r}")
        self.reason = reason
        self.line = line


class CommandValidationError(SolenoidBridgeError, ValueError):
    """Exception for command requests with out-of-range parameters.

    Raised at the boundary before anything is queued.
    """
    pass


class SerialCommunicationError(SolenoidBridgeError):
    """Base exception for serial communication errors.

    Raised when the serial port cannot be configured, opened, or written to.
    """
    pass


class DeviceOpenError(SerialCommunicationError):
    """Exception for a serial device that could not be opened.

    Terminal for the I/O loop: there is no reconnect.
    """
    pass


class DeviceWriteError(SerialCommunicationError):
    """Exception for a command that could not be written to the device.

    Attributes:
        command: The command token that was lost.
    """

    def __init__(self, message: str, *, command: str) -> None:
        super().__init__(message)
        self.command = command
