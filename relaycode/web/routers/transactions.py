"""Transaction listing, status and reapply endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query

from relaycode.core import (
    FileNotFound,
    GroupStrategy,
    RelaycodeError,
    SimulationEngine,
    TransactionNotFound,
    TransactionStatus,
    TransactionStore,
    group_transactions,
)
from relaycode.web.core.config import API_PREFIX
from relaycode.web.core.dependencies import get_engine, get_store
from relaycode.web.models.requests import (
    BulkActionRequest,
    BulkActionResponse,
    ReapplyFileRequest,
    ReapplyResponse,
    UpdateStatusRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_PREFIX}/transactions", tags=["transactions"])


def _http_error(e: RelaycodeError) -> HTTPException:
    if isinstance(e, (TransactionNotFound, FileNotFound)):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=409, detail=str(e))


@router.get("")
async def list_transactions(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=500)] = 15,
    search: str | None = None,
    status: str | None = None,
    store: Annotated[TransactionStore, Depends(get_store)] = None,
) -> list[dict[str, Any]]:
    """List transactions filtered by status and search text."""
    return [tx.to_wire() for tx in store.list_transactions(page=page, limit=limit, search=search, status=status)]


@router.get("/groups")
async def list_transaction_groups(
    strategy: GroupStrategy = GroupStrategy.PROMPT,
    store: Annotated[TransactionStore, Depends(get_store)] = None,
) -> list[dict[str, Any]]:
    """Every transaction grouped by *strategy* and threaded by parent chain."""
    transactions = store.list_transactions(page=1, limit=len(store))
    return [group.to_wire() for group in group_transactions(transactions, store.prompts(), strategy)]


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    store: Annotated[TransactionStore, Depends(get_store)] = None,
) -> dict[str, Any]:
    try:
        return store.get(transaction_id).to_wire()
    except RelaycodeError as e:
        raise _http_error(e) from e


@router.patch("/{transaction_id}/status")
async def update_transaction_status(
    transaction_id: str,
    payload: UpdateStatusRequest,
    store: Annotated[TransactionStore, Depends(get_store)] = None,
    engine: Annotated[SimulationEngine, Depends(get_engine)] = None,
) -> dict[str, Any]:
    """Change a transaction's status.

    APPLYING starts a simulation and returns the transaction as it is right
    after the call; later transitions arrive on the event stream.
    """
    try:
        if payload.status is TransactionStatus.APPLYING:
            tx = engine.start_simulation(transaction_id, payload.scenario)
        else:
            tx = store.update_status(transaction_id, payload.status)
    except RelaycodeError as e:
        raise _http_error(e) from e
    return tx.to_wire()


@router.post("/bulk")
async def bulk_update_transactions(
    payload: BulkActionRequest,
    store: Annotated[TransactionStore, Depends(get_store)] = None,
    engine: Annotated[SimulationEngine, Depends(get_engine)] = None,
) -> dict[str, Any]:
    """Apply one action to many ids; unknown ids and invalid moves are skipped."""
    if payload.action is not TransactionStatus.APPLYING:
        updated = store.update_status_bulk(payload.ids, payload.action)
        return BulkActionResponse(success=True, updated_ids=updated).to_wire()

    updated = []
    for transaction_id in payload.ids:
        try:
            engine.start_simulation(transaction_id)
        except RelaycodeError as e:
            logger.info("Bulk apply skipped %s: %s", transaction_id, e)
            continue
        updated.append(transaction_id)
    return BulkActionResponse(success=True, updated_ids=updated).to_wire()


@router.post("/{transaction_id}/files/reapply")
async def reapply_file(
    transaction_id: str,
    payload: ReapplyFileRequest,
    engine: Annotated[SimulationEngine, Depends(get_engine)] = None,
) -> dict[str, Any]:
    try:
        paths = engine.reapply_file(transaction_id, payload.file_path)
    except RelaycodeError as e:
        raise _http_error(e) from e
    return ReapplyResponse(success=True, file_paths=paths).to_wire()


@router.post("/{transaction_id}/reapply-failed")
async def reapply_all_failed(
    transaction_id: str,
    engine: Annotated[SimulationEngine, Depends(get_engine)] = None,
) -> dict[str, Any]:
    """Retry every FAILED file of a transaction. No failed files is not an error."""
    try:
        paths = engine.reapply_all_failed(transaction_id)
    except RelaycodeError as e:
        raise _http_error(e) from e
    return ReapplyResponse(success=True, file_paths=paths).to_wire()
