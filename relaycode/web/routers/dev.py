"""Development helpers."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from relaycode.config import RelaycodeSettings
from relaycode.core import SimulationEngine, TransactionStore
from relaycode.data import load_seed
from relaycode.web.core.config import API_PREFIX
from relaycode.web.core.dependencies import get_engine, get_settings, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_PREFIX}/dev", tags=["dev"])


@router.post("/reset")
async def reset_data(
    store: Annotated[TransactionStore, Depends(get_store)] = None,
    engine: Annotated[SimulationEngine, Depends(get_engine)] = None,
    settings: Annotated[RelaycodeSettings, Depends(get_settings)] = None,
) -> dict[str, Any]:
    """Cancel running simulations and reload the seed data.

    Open event streams stay connected; clients should refetch the list.
    """
    await engine.shutdown()
    transactions, prompts = load_seed(settings.data.seed_path)
    store.load(transactions, prompts)
    logger.info("Store reset to seed data")
    return {"success": True, "count": len(store)}
