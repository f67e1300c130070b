"""Prompt registry endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from relaycode.core import TransactionStore
from relaycode.web.core.config import API_PREFIX
from relaycode.web.core.dependencies import get_store

router = APIRouter(prefix=f"{API_PREFIX}/prompts", tags=["prompts"])


@router.get("")
async def list_prompts(store: Annotated[TransactionStore, Depends(get_store)] = None) -> list[dict[str, Any]]:
    return [prompt.to_wire() for prompt in store.prompts()]
