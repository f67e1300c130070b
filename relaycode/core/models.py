"""Transaction domain models.

Wire format is camelCase JSON (``createdAt``, ``promptId``, ``applyStatus``)
while Python attributes stay snake_case. Every status field is an explicit
enum and blocks are a discriminated union on ``type``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase while accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# Enums
# ============================================================================


class TransactionStatus(str, Enum):
    """Lifecycle status of a transaction."""

    PENDING = "PENDING"
    APPLYING = "APPLYING"
    APPLIED = "APPLIED"
    PARTIALLY_APPLIED = "PARTIALLYAPPLIED"
    FAILED = "FAILED"
    COMMITTED = "COMMITTED"
    REVERTED = "REVERTED"


class FileApplyStatus(str, Enum):
    """Per-file sub-state, only driven during (re)apply simulations."""

    PENDING = "PENDING"
    APPLYING = "APPLYING"
    APPLIED = "APPLIED"
    FAILED = "FAILED"


class FileChangeKind(str, Enum):
    """File-system operation a file change describes."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


class PromptStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class SimulationScenario(str, Enum):
    """Named simulation profile. ``None`` selects the default profile."""

    FAST_SUCCESS = "fast-success"
    SIMULATED_FAILURE = "simulated-failure"
    LONG_RUNNING = "long-running"
    PARTIAL_FAILURE = "partial-failure"


# ============================================================================
# Transactions
# ============================================================================


class TransactionFile(CamelModel):
    path: str
    status: FileChangeKind = FileChangeKind.MODIFIED
    language: str = ""
    diff: str = ""
    apply_status: FileApplyStatus = FileApplyStatus.PENDING
    error_message: str | None = None


class MarkdownBlock(CamelModel):
    type: Literal["markdown"] = "markdown"
    content: str


class FileBlock(CamelModel):
    type: Literal["file"] = "file"
    file: TransactionFile


Block = Annotated[MarkdownBlock | FileBlock, Field(discriminator="type")]


class Transaction(CamelModel):
    id: str
    status: TransactionStatus = TransactionStatus.PENDING
    description: str = ""
    created_at: datetime
    timestamp: str = ""
    prompt_id: str = ""
    parent_id: str | None = None
    is_chain_root: bool | None = None
    author: str = ""
    provider: str = ""
    model: str = ""
    cost: str = ""
    tokens: str = ""
    reasoning: str = ""
    blocks: list[Block] = Field(default_factory=list)
    files: list[TransactionFile] = Field(default_factory=list)

    @model_validator(mode="after")
    def derive_files(self) -> Transaction:
        """Fill ``files`` from file blocks when not supplied; paths must be unique."""
        if not self.files:
            self.files = [block.file.model_copy(deep=True) for block in self.blocks if isinstance(block, FileBlock)]
        seen: set[str] = set()
        for file in self.files:
            if file.path in seen:
                raise ValueError(f"Duplicate file path in transaction {self.id}: {file.path}")
            seen.add(file.path)
        return self

    def file_paths(self) -> list[str]:
        return [f.path for f in self.files]

    def find_file(self, path: str) -> TransactionFile | None:
        for file in self.files:
            if file.path == path:
                return file
        return None

    def file_entries(self, path: str) -> list[TransactionFile]:
        """Every stored copy of *path*: the ``files`` entry and any matching file block."""
        entries = [f for f in self.files if f.path == path]
        entries.extend(b.file for b in self.blocks if isinstance(b, FileBlock) and b.file.path == path)
        return entries

    def first_file_path(self) -> str | None:
        if self.files:
            return self.files[0].path
        for block in self.blocks:
            if isinstance(block, FileBlock):
                return block.file.path
        return None

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match over description, author, notes and file paths."""
        needle = needle.lower()
        haystacks = [self.description, self.author]
        for block in self.blocks:
            haystacks.append(block.content if isinstance(block, MarkdownBlock) else block.file.path)
        haystacks.extend(self.file_paths())
        return any(needle in h.lower() for h in haystacks)


class Prompt(CamelModel):
    id: str
    title: str
    content: str = ""
    timestamp: str = ""
    status: PromptStatus = PromptStatus.ACTIVE


# ============================================================================
# Stream events
# ============================================================================


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectedEvent(CamelModel):
    type: Literal["connected"] = "connected"


class TransactionStatusEvent(CamelModel):
    type: Literal["transaction"] = "transaction"
    transaction_id: str
    status: TransactionStatus
    timestamp: datetime = Field(default_factory=_utcnow)


class FileStatusEvent(CamelModel):
    type: Literal["file"] = "file"
    transaction_id: str
    file_path: str
    apply_status: FileApplyStatus
    error_message: str | None = None


StoreEvent = TransactionStatusEvent | FileStatusEvent
StreamEvent = Annotated[ConnectedEvent | TransactionStatusEvent | FileStatusEvent, Field(discriminator="type")]

STREAM_EVENT_ADAPTER: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def encode_event(event: ConnectedEvent | StoreEvent) -> str:
    """Serialise an event as one JSON frame payload."""
    return event.model_dump_json(by_alias=True, exclude_none=True)


def decode_event(payload: str | bytes) -> ConnectedEvent | StoreEvent:
    """Parse one JSON frame payload. Raises ``pydantic.ValidationError`` on bad input."""
    return STREAM_EVENT_ADAPTER.validate_json(payload)
