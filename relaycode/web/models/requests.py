"""Pydantic request and response models for the relaycode web API."""

from pydantic import Field

from relaycode.core.models import CamelModel, SimulationScenario, TransactionStatus


class UpdateStatusRequest(CamelModel):
    status: TransactionStatus
    scenario: SimulationScenario | None = None


class BulkActionRequest(CamelModel):
    ids: list[str] = Field(default_factory=list)
    action: TransactionStatus


class BulkActionResponse(CamelModel):
    success: bool
    updated_ids: list[str] = Field(default_factory=list)


class ReapplyFileRequest(CamelModel):
    file_path: str


class ReapplyResponse(CamelModel):
    success: bool
    file_paths: list[str] = Field(default_factory=list)
