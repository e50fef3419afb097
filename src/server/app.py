"""
Flask + Flask-SocketIO transport for the control channel.

Usage:
  trafficlens serve --port 3001

Clients exchange ``{"type": ...}`` objects on the ``control`` event.
"""
import logging
import os
from typing import Optional, Tuple

from flask import Flask, jsonify, request
from flask_socketio import SocketIO

from capture.icapture_backend import ICaptureBackend
from capture.scapy_backend import ScapyBackend

from .config import ServerConfig
from .engine import TrafficEngine
from .messages import Message
from .observer import Observer

logger = logging.getLogger(__name__)

CONTROL_EVENT = "control"


class SocketObserver(Observer):
    """One Socket.IO client, addressed by its session id."""

    def __init__(self, socketio: SocketIO, sid: str):
        super().__init__(sid)
        self._socketio = socketio

    def send(self, message: Message) -> None:
        self._socketio.emit(CONTROL_EVENT, message, to=self.id)


def create_app(config: Optional[ServerConfig] = None,
               backend: Optional[ICaptureBackend] = None) -> Tuple[Flask, SocketIO, TrafficEngine]:
    config = config or ServerConfig.from_env()
    backend = backend or ScapyBackend()

    app = Flask(__name__)
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY') or os.urandom(24).hex()
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')
    engine = TrafficEngine(backend, config)
    app.extensions['trafficlens'] = engine

    @app.route("/api/stats")
    def api_stats():
        return jsonify(engine.aggregator.snapshot_dicts())

    @app.route("/api/interfaces")
    def api_interfaces():
        return jsonify([{"name": name} for name in engine.controller.list_interfaces()])

    @socketio.on("connect")
    def on_connect(auth=None):
        engine.connect(SocketObserver(socketio, request.sid))

    @socketio.on("disconnect")
    def on_disconnect(reason=None):
        engine.disconnect(request.sid)

    @socketio.on(CONTROL_EVENT)
    def on_control(data):
        observer = engine.observer(request.sid)
        if observer is None:
            observer = SocketObserver(socketio, request.sid)
            engine.connect(observer)
        engine.handle_message(observer, data)

    return app, socketio, engine


def run_server(config: ServerConfig, backend: Optional[ICaptureBackend] = None) -> None:
    app, socketio, engine = create_app(config, backend)
    engine.start()
    logger.info("Packet capture server listening on %s:%d", config.host, config.port)
    try:
        socketio.run(app, host=config.host, port=config.port, allow_unsafe_werkzeug=True)
    finally:
        engine.shutdown()
