"""
Command-line interface test suite.

Run with full visibility:
    pytest tests/test_cli.py -v -s
"""

from __future__ import annotations

import json

import pytest

from solenoid_bridge import DEFAULT_SERIAL_PORT
from solenoid_bridge.cli import build_bridge, build_parser, main
from solenoid_bridge.exceptions import SerialCommunicationError
from solenoid_bridge.serial_io import LoopState

_LINE = (
    "TS:100 | ARM:1 | BATT:11.5V | ARM_SENSE:2.3V | "
    "SOL:1:ON,2:OFF,3:OFF,4:OFF,5:OFF,6:OFF,7:OFF,8:OFF,9:OFF,10:OFF,"
    "11:OFF,12:OFF,13:OFF,14:OFF,15:OFF,16:OFF"
)


class TestCLIArgs:

    def test_serve_defaults(self):
        # type: () -> None
        args = build_parser().parse_args(["serve"])
        assert args.serial_port == DEFAULT_SERIAL_PORT
        assert args.baud_rate == 115200
        assert args.log_level == "INFO"

    def test_serve_port_and_flags(self):
        # type: () -> None
        args = build_parser().parse_args(
            ["serve", "COM7", "--http-port", "9000", "--host", "0.0.0.0"],
        )
        assert args.serial_port == "COM7"
        assert args.http_port == 9000
        assert args.host == "0.0.0.0"

    def test_serve_help_includes_flags(self, capsys):
        # type: (pytest.CaptureFixture) -> None
        with pytest.raises(SystemExit):
            main(["serve", "--help"])
        out = capsys.readouterr().out
        for flag in ("--baud-rate", "--host", "--http-port", "--log-level"):
            assert flag in out

    def test_command_required(self):
        # type: () -> None
        with pytest.raises(SystemExit):
            main([])


class TestParseCommand:

    def test_parse_valid(self, capsys):
        # type: (pytest.CaptureFixture) -> None
        assert main(["parse", _LINE]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["timestamp"] == 100
        assert data["solenoids"] == [True] + [False] * 15

    def test_parse_invalid(self, capsys):
        # type: (pytest.CaptureFixture) -> None
        assert main(["parse", "TS:100 | ARM:1"]) == 1
        assert "Rejected" in capsys.readouterr().err


class TestSerialList:

    def test_serial_list_runs(self, capsys):
        # type: (pytest.CaptureFixture) -> None
        assert main(["serial-list"]) == 0
        assert "serial ports" in capsys.readouterr().out


class TestBuildBridge:

    def test_wiring_shares_store_and_queue(self):
        # type: () -> None
        service, io_loop = build_bridge("/dev/null")
        assert io_loop.state is LoopState.CONNECTING
        assert service.store is io_loop.store
        assert service.command_queue is io_loop.command_queue
        service.request_arm()
        assert io_loop.command_queue.drain_available() == ["a"]

    def test_invalid_baud_rate(self):
        # type: () -> None
        with pytest.raises(SerialCommunicationError):
            build_bridge("/dev/null", baud_rate=0)

    def test_serve_invalid_baud_returns_error(self, capsys):
        # type: (pytest.CaptureFixture) -> None
        assert main(["serve", "/dev/null", "--baud-rate", "0"]) == 1
        assert "Error" in capsys.readouterr().err
