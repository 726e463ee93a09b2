from __future__ import annotations

import sys

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config, GameSettings
from .game.service import GameService
from .realtime.bus import SocketIOTransport
from .realtime.handlers import register_socketio_handlers
from .routes.health import bp as health_bp
from .routes.rooms import bp as rooms_bp


def _pick_async_mode(configured: str) -> str:
    if configured:
        return configured
    # Default choice:
    # - Windows: threading (eventlet has known compatibility issues on newer Python)
    # - Python >= 3.13: threading (safer default)
    # - Otherwise: eventlet
    if sys.platform.startswith("win") or sys.version_info >= (3, 13):
        return "threading"
    return "eventlet"


def _start_sweeper(app: Flask, socketio: SocketIO, service: GameService) -> None:
    """Drive round timers and garbage collection from one background task."""
    if app.config.get("TESTING") and not app.config.get("ENABLE_SCHEDULER_IN_TESTS"):
        return

    tick = float(app.config.get("SCHEDULER_TICK_SEC", 0.25))

    def _runner() -> None:
        app.logger.info(f"[sweeper-start] tick={tick}s")
        while True:
            try:
                service.tick()
            except Exception:
                app.logger.exception("[sweeper-error]")
            socketio.sleep(tick)

    socketio.start_background_task(_runner)


def create_app(config_class: type = Config) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=_pick_async_mode(app.config.get("SOCKETIO_ASYNC_MODE", "")),
    )

    service = GameService(settings=GameSettings.from_mapping(app.config))
    service.bus.bind(SocketIOTransport(socketio))
    app.extensions["sketchparty"] = service

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")

    register_socketio_handlers(socketio, service)
    _start_sweeper(app, socketio, service)

    return app, socketio
