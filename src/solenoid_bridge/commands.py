"""Command tokens understood by the controller firmware.

``a`` arms, ``d`` disarms, ``s<channel><state>`` sets one solenoid
(``s51`` = channel 5 on).  The serial loop appends the newline.
"""

from __future__ import annotations

from . import SOLENOID_COUNT
from .exceptions import CommandValidationError

ARM_COMMAND = "a"
DISARM_COMMAND = "d"


def arm_command() -> str:
    return ARM_COMMAND


def disarm_command() -> str:
    return DISARM_COMMAND


def solenoid_command(channel: int, state: int) -> str:
    """Build the token that drives *channel* (1-16) to *state* (0 or 1).

    Raises:
        CommandValidationError: If either parameter is out of range.
    """
    if isinstance(channel, bool) or not 1 <= channel <= SOLENOID_COUNT:
        raise CommandValidationError(
            f"Invalid solenoid channel {channel!r}. "
            f"Must be an integer from 1 to {SOLENOID_COUNT}."
        )
    if isinstance(state, bool) or state not in (0, 1):
        raise CommandValidationError(
            f"Invalid solenoid state {state!r}. Must be 0 (off) or 1 (on)."
        )
    return f"s{channel}{state}"
