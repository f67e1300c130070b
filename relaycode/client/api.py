"""HTTP client for the relaycode REST API."""

from __future__ import annotations

from typing import Any

import httpx

from relaycode.core.chains import GroupStrategy
from relaycode.core.models import Prompt, SimulationScenario, Transaction, TransactionStatus


class RelaycodeClient:
    """Thin async wrapper over the relaycode endpoints."""

    def __init__(self, base_url: str = "http://localhost:3000", client: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=30.0)

    async def list_transactions(
        self,
        page: int = 1,
        limit: int = 15,
        search: str | None = None,
        status: TransactionStatus | None = None,
    ) -> list[Transaction]:
        params: dict[str, Any] = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        if status:
            params["status"] = status.value
        resp = await self._client.get("/api/transactions", params=params)
        resp.raise_for_status()
        return [Transaction.model_validate(item) for item in resp.json()]

    async def get_transaction(self, transaction_id: str) -> Transaction:
        resp = await self._client.get(f"/api/transactions/{transaction_id}")
        resp.raise_for_status()
        return Transaction.model_validate(resp.json())

    async def list_groups(self, strategy: GroupStrategy = GroupStrategy.PROMPT) -> list[dict[str, Any]]:
        resp = await self._client.get("/api/transactions/groups", params={"strategy": strategy.value})
        resp.raise_for_status()
        return resp.json()

    async def update_status(
        self,
        transaction_id: str,
        status: TransactionStatus,
        scenario: SimulationScenario | None = None,
    ) -> Transaction:
        """Change status; APPLYING starts a server-side simulation."""
        payload: dict[str, Any] = {"status": status.value}
        if scenario:
            payload["scenario"] = scenario.value
        resp = await self._client.patch(f"/api/transactions/{transaction_id}/status", json=payload)
        resp.raise_for_status()
        return Transaction.model_validate(resp.json())

    async def bulk_update(self, ids: list[str], action: TransactionStatus) -> list[str]:
        """Returns the ids that were actually updated."""
        resp = await self._client.post("/api/transactions/bulk", json={"ids": ids, "action": action.value})
        resp.raise_for_status()
        return resp.json()["updatedIds"]

    async def reapply_file(self, transaction_id: str, file_path: str) -> list[str]:
        resp = await self._client.post(
            f"/api/transactions/{transaction_id}/files/reapply", json={"filePath": file_path}
        )
        resp.raise_for_status()
        return resp.json()["filePaths"]

    async def reapply_all_failed(self, transaction_id: str) -> list[str]:
        resp = await self._client.post(f"/api/transactions/{transaction_id}/reapply-failed")
        resp.raise_for_status()
        return resp.json()["filePaths"]

    async def list_prompts(self) -> list[Prompt]:
        resp = await self._client.get("/api/prompts")
        resp.raise_for_status()
        return [Prompt.model_validate(item) for item in resp.json()]

    async def reset(self) -> None:
        resp = await self._client.post("/api/dev/reset")
        resp.raise_for_status()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
