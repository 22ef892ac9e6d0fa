"""HTTP control surface (Flask).

Routes:

- ``GET /``                              control page
- ``GET /telemetry``                     latest record as JSON
- ``POST /arm`` / ``POST /disarm``       queue an arm / disarm command
- ``POST /solenoid/<channel>/<state>``   queue a solenoid command
- ``GET /health``                        serial loop state and counters
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional

from flask import Flask, jsonify, render_template

from .exceptions import CommandValidationError
from .serial_io import SerialIOLoop
from .service import BridgeService

logger = logging.getLogger("solenoid_bridge.web")


def create_app(service: BridgeService, io_loop: Optional[SerialIOLoop] = None) -> Flask:
    """Build the Flask app around an already-wired ``BridgeService``."""
    app = Flask(__name__)

    @app.route("/")
    def index():
        return render_template("index.html")

    @app.route("/telemetry")
    def telemetry():
        return jsonify(service.get_state_dict())

    @app.route("/arm", methods=["POST"])
    def arm():
        service.request_arm()
        return "OK"

    @app.route("/disarm", methods=["POST"])
    def disarm():
        service.request_disarm()
        return "OK"

    @app.route("/solenoid/<int:channel>/<int:state>", methods=["POST"])
    def solenoid(channel, state):
        try:
            service.request_solenoid(channel, state)
        except CommandValidationError as exc:
            logger.info("[HTTP] Rejected solenoid request: %s", exc)
            return "Invalid parameters", 400
        return "OK"

    @app.route("/health")
    def health():
        if io_loop is None:
            return jsonify({"serial": None})
        return jsonify({
            "serial": {
                "port": io_loop.port,
                "state": io_loop.state.value,
                "statistics": dataclasses.asdict(io_loop.statistics()),
            },
        })

    return app
