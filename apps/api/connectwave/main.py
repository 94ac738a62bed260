"""FastAPI application for the ConnectWave room-signaling service."""
from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response

from .core.config import Settings, settings
from .routers import admin, signaling
from .services.rooms import RoomRegistry
from .services.signaling import SignalingRelay

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str) -> None:
    """Install a single stream handler on the ``connectwave`` logger tree."""

    package_logger = logging.getLogger("connectwave")
    package_logger.setLevel(level.upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
        package_logger.propagate = False


def create_app(config: Settings = settings) -> FastAPI:
    """Build the app with a fresh room registry owned by this instance."""

    app = FastAPI(title="ConnectWave Signaling API", version="0.1.0")
    app.state.relay = SignalingRelay(RoomRegistry(), emit_sharing_hints=config.emit_sharing_hints)

    if config.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(signaling.build_router(config.websocket_path))
    app.include_router(admin.router, prefix="/api/admin", tags=["admin"])

    @app.get("/", tags=["meta"])
    async def index() -> dict[str, str]:
        """Describe where clients should connect."""

        return {"service": "connectwave-signaling", "websocket": config.websocket_path}

    @app.head("/", tags=["meta"])
    async def index_head() -> Response:
        """Fast health checks issue HEAD /; answer with 200 to avoid noisy 405s."""

        return Response(status_code=200)

    @app.get("/api/health", tags=["meta"])
    async def health() -> dict[str, str]:
        """Simple liveness probe."""

        return {"status": "ok"}

    @app.head("/api/health", tags=["meta"])
    async def health_head() -> Response:
        """Allow HEAD for uptime monitors that only need the status code."""

        return Response(status_code=200)

    @app.get("/robots.txt", response_class=PlainTextResponse, include_in_schema=False)
    async def robots() -> PlainTextResponse:
        """Serve a minimal robots.txt to avoid 404 noise."""

        return PlainTextResponse("User-agent: *\nDisallow: /")

    return app


app = create_app()


def run(config: Settings = settings) -> None:
    """Serve the app; exit with status 1 if the listener cannot start."""

    configure_logging(config.log_level)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.host,
            port=config.port,
            log_level=config.log_level,
            ws_ping_interval=config.ws_ping_interval,
            ws_ping_timeout=config.ws_ping_timeout,
        )
    )
    logger.info("Starting signaling server on %s:%s (%s)", config.host, config.port, config.app_env)
    server.run()
    if not server.started:
        logger.error("Signaling server failed to start on %s:%s", config.host, config.port)
        raise SystemExit(1)


if __name__ == "__main__":
    run()
