"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, FastAPI, Request

from relaycode.config import RelaycodeSettings
from relaycode.core import EventBroadcaster, SimulationEngine, TransactionStore


async def get_app(request: Request) -> FastAPI:
    """Get FastAPI app instance from request."""
    return request.app


async def get_settings(app: Annotated[FastAPI, Depends(get_app)]) -> RelaycodeSettings:
    return app.state.settings


async def get_store(app: Annotated[FastAPI, Depends(get_app)]) -> TransactionStore:
    return app.state.store


async def get_engine(app: Annotated[FastAPI, Depends(get_app)]) -> SimulationEngine:
    return app.state.engine


async def get_broadcaster(app: Annotated[FastAPI, Depends(get_app)]) -> EventBroadcaster:
    return app.state.broadcaster
