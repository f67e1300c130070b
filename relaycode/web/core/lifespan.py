"""Application lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from relaycode.config import RelaycodeSettings
from relaycode.core import EventBroadcaster, SimulationEngine, TransactionStore
from relaycode.data import load_seed

logger = logging.getLogger(__name__)


def build_state(app: FastAPI, settings: RelaycodeSettings) -> None:
    """Create the broadcaster, store and engine and hang them on ``app.state``."""
    broadcaster = EventBroadcaster()
    store = TransactionStore(broadcaster)
    transactions, prompts = load_seed(settings.data.seed_path)
    store.load(transactions, prompts)

    app.state.settings = settings
    app.state.broadcaster = broadcaster
    app.state.store = store
    app.state.engine = SimulationEngine(store, settings.simulation)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    build_state(app, app.state.settings)
    logger.info("relaycode ready with %d transactions", len(app.state.store))
    try:
        yield
    finally:
        # Cleanup: cancel in-flight simulations
        await app.state.engine.shutdown()
