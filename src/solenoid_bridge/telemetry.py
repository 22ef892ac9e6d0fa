"""Telemetry record and frame parser for the controller's serial protocol.

One frame is one newline-terminated ASCII line::

    TS:<u64> | ARM:<0|1> | BATT:<float>V | ARM_SENSE:<float>V | SOL:1:ON,2:OFF,...,16:OFF

Parsing is all-or-nothing: any deviation rejects the whole line and no
partial record is ever produced.  The parser holds no state and performs no
I/O, so it is safe to call from any thread.
"""

from __future__ import annotations

import dataclasses
import math
import re
from typing import Iterable

from . import SOLENOID_COUNT
from .exceptions import FrameParseError
from .types import SolenoidStates, TelemetryDict

FIELD_DELIMITER = " | "
FIELD_COUNT = 5

_U64_MAX = 2 ** 64 - 1
_U64_MAX_DIGITS = len(str(_U64_MAX))
_F32_MAX = 3.4028234663852886e38

# Unsigned decimal, optional leading '+'.  ASCII digits only.
_UINT_RE = re.compile(r"\+?[0-9]+", re.ASCII)

# Plain or exponent notation.  No underscores, whitespace, inf or nan.
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?", re.ASCII)

_ARM_TOKENS = {"1": True, "0": False}
_SOLENOID_TOKENS = {"ON": True, "OFF": False}


@dataclasses.dataclass(frozen=True)
class TelemetryRecord:
    """Immutable snapshot of controller-reported state.

    Attributes:
        timestamp: Device-side monotonic counter (not wall-clock time).
        armed: ``True`` when the controller reports the arming circuit live.
        battery: Battery voltage.
        arming_sense: Arming-circuit sense voltage.
        solenoids: Exactly 16 on/off states; index ``i`` is channel ``i + 1``.
    """
    timestamp: int = 0
    armed: bool = False
    battery: float = 0.0
    arming_sense: float = 0.0
    solenoids: SolenoidStates = (False,) * SOLENOID_COUNT

    def __post_init__(self) -> None:
        states = tuple(bool(s) for s in self.solenoids)
        if len(states) != SOLENOID_COUNT:
            raise ValueError(
                f"TelemetryRecord requires exactly {SOLENOID_COUNT} solenoid "
                f"states, got {len(states)}"
            )
        object.__setattr__(self, "solenoids", states)

    @classmethod
    def default(cls) -> TelemetryRecord:
        """Record served before the device has reported anything."""
        return cls()

    def to_dict(self) -> TelemetryDict:
        """Structured form for JSON encoding.

        The sense voltage is keyed ``arming`` to stay compatible with the
        existing control page and scripts that poll ``/telemetry``.
        """
        return {
            "timestamp": self.timestamp,
            "armed": self.armed,
            "battery": self.battery,
            "arming": self.arming_sense,
            "solenoids": list(self.solenoids),
        }


def _strip_literal(field: str, prefix: str, line: str, suffix: str = "") -> str:
    if not field.startswith(prefix):
        raise FrameParseError(f"expected prefix {prefix!r}", line=line)
    payload = field[len(prefix):]
    if suffix:
        if not payload.endswith(suffix):
            raise FrameParseError(f"expected suffix {suffix!r} after {prefix!r}", line=line)
        payload = payload[: -len(suffix)]
    return payload


def _parse_uint64(text: str, name: str, line: str) -> int:
    if not _UINT_RE.fullmatch(text):
        raise FrameParseError(f"{name} is not an unsigned integer", line=line)
    # int() refuses very long digit strings with ValueError, so bound the length first.
    digits = text.lstrip("+").lstrip("0") or "0"
    if len(digits) > _U64_MAX_DIGITS:
        raise FrameParseError(f"{name} exceeds 64 bits", line=line)
    value = int(digits)
    if value > _U64_MAX:
        raise FrameParseError(f"{name} exceeds 64 bits", line=line)
    return value


def _parse_voltage(text: str, name: str, line: str) -> float:
    if not _FLOAT_RE.fullmatch(text):
        raise FrameParseError(f"{name} is not a number", line=line)
    value = float(text)
    # Readings are single precision on the device.
    if not math.isfinite(value) or abs(value) > _F32_MAX:
        raise FrameParseError(f"{name} is out of range", line=line)
    return value


def _parse_solenoids(entries: Iterable[str], line: str) -> SolenoidStates:
    # Channel indices are informational only; position decides the channel.
    states = []
    for entry in entries:
        parts = entry.split(":")
        if len(parts) != 2:
            raise FrameParseError(f"malformed solenoid entry {entry!r}", line=line)
        token = parts[1].strip()
        if token not in _SOLENOID_TOKENS:
            raise FrameParseError(f"bad solenoid state {token!r}", line=line)
        states.append(_SOLENOID_TOKENS[token])
    return tuple(states)


def parse_frame(line: str) -> TelemetryRecord:
    """Decode one telemetry line into a ``TelemetryRecord``.

    Args:
        line: A single frame without its line terminator.

    Returns:
        The decoded record.

    Raises:
        FrameParseError: If the line deviates from the frame grammar in any
            way (field count, literal prefixes/suffixes, numeric payloads,
            boolean tokens, or solenoid entry count).
    """
    fields = line.split(FIELD_DELIMITER)
    if len(fields) != FIELD_COUNT:
        raise FrameParseError(
            f"expected {FIELD_COUNT} fields, got {len(fields)}", line=line,
        )
    ts_field, arm_field, batt_field, sense_field, sol_field = fields

    timestamp = _parse_uint64(_strip_literal(ts_field, "TS:", line), "TS", line)

    arm_token = _strip_literal(arm_field, "ARM:", line)
    if arm_token not in _ARM_TOKENS:
        raise FrameParseError(f"bad ARM flag {arm_token!r}", line=line)

    battery = _parse_voltage(_strip_literal(batt_field, "BATT:", line, "V"), "BATT", line)
    arming_sense = _parse_voltage(
        _strip_literal(sense_field, "ARM_SENSE:", line, "V"), "ARM_SENSE", line,
    )

    entries = _strip_literal(sol_field, "SOL:", line).split(",")
    if len(entries) != SOLENOID_COUNT:
        raise FrameParseError(
            f"expected {SOLENOID_COUNT} solenoid entries, got {len(entries)}", line=line,
        )
    solenoids = _parse_solenoids(entries, line)

    return TelemetryRecord(
        timestamp=timestamp,
        armed=_ARM_TOKENS[arm_token],
        battery=battery,
        arming_sense=arming_sense,
        solenoids=solenoids,
    )
