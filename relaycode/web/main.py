"""relaycode web backend - FastAPI application."""

import logging
import os

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relaycode import __version__
from relaycode.config import RelaycodeSettings, SettingsLoader
from relaycode.web.core.config import PORT_ENV_VARS
from relaycode.web.core.lifespan import lifespan
from relaycode.web.routers import dev, events, meta, prompts, transactions


def create_app(settings: RelaycodeSettings | None = None) -> FastAPI:
    """Build the application. Settings default to the merged JSON config of the cwd."""
    settings = settings or SettingsLoader(workspace_root=os.getcwd()).load()

    app = FastAPI(title="relaycode", version=__version__, lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(transactions.router)
    app.include_router(events.router)
    app.include_router(prompts.router)
    app.include_router(dev.router)
    app.include_router(meta.router)
    return app


app = create_app()


def _resolve_port(settings: RelaycodeSettings) -> int:
    """Resolve backend port: RELAYCODE_PORT > PORT > settings."""
    for name in PORT_ENV_VARS:
        port = os.environ.get(name)
        if port:
            return int(port)
    return settings.server.port


def serve() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = app.state.settings
    # Package-qualified target keeps reload import-safe
    uvicorn.run(
        "relaycode.web.main:app",
        host=settings.server.host,
        port=_resolve_port(settings),
        reload=settings.server.reload,
    )


if __name__ == "__main__":
    serve()
