"""Type definitions for Solenoid Bridge."""

from typing import Any, Dict, List, Tuple

# Per-channel on/off states, index i is channel i + 1
SolenoidStates = Tuple[bool, ...]

# Structured form of a telemetry record, as served over HTTP
TelemetryDict = Dict[str, Any]  # {"timestamp", "armed", "battery", "arming", "solenoids"}

# Commands removed from the queue in one drain
CommandBatch = List[str]
