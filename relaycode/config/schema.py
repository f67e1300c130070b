"""Configuration schema for relaycode using Pydantic.

Groups:
- server: bind address, port and CORS origins
- simulation: timing windows and failure odds for the simulation engine
- stream: SSE heartbeat and client retry hint
- data: seed data location
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

DEFAULT_PORT = 3000


def _check_window(v: tuple[int, int]) -> tuple[int, int]:
    low, high = v
    if low < 0 or high < low:
        raise ValueError(f"Invalid delay window: {v}")
    return v


class ServerConfig(BaseModel):
    host: str = Field("0.0.0.0", description="Bind address")
    port: int = Field(DEFAULT_PORT, gt=0, lt=65536, description="Bind port")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    reload: bool = Field(False, description="Enable uvicorn auto-reload")


class SimulationConfig(BaseModel):
    """Timing windows are ``[min_ms, max_ms]`` and sampled uniformly."""

    default_duration_ms: tuple[int, int] = Field((2000, 6000), description="Default scenario duration")
    fast_success_duration_ms: tuple[int, int] = Field((500, 1000), description="fast-success duration")
    long_running_duration_ms: tuple[int, int] = Field((8000, 12000), description="long-running duration")
    file_delay_ms: tuple[int, int] = Field((600, 2000), description="Per-file delay for partial-failure and reapply")
    file_failure_probability: float = Field(0.3, ge=0.0, le=1.0, description="Per-file failure odds in partial-failure")
    reapply_failure_probability: float = Field(0.3, ge=0.0, le=1.0, description="Per-file failure odds on reapply")

    @field_validator("default_duration_ms", "fast_success_duration_ms", "long_running_duration_ms", "file_delay_ms")
    @classmethod
    def validate_window(cls, v: tuple[int, int]) -> tuple[int, int]:
        return _check_window(v)


class StreamConfig(BaseModel):
    heartbeat_seconds: float = Field(15.0, gt=0, description="Idle interval before a keep-alive comment")
    retry_ms: int = Field(5000, ge=0, description="Reconnect hint sent to clients")


class DataConfig(BaseModel):
    seed_path: str | None = Field(None, description="Seed JSON file (defaults to the packaged seed)")


class RelaycodeSettings(BaseModel):
    """Main relaycode configuration.

    Configuration priority (highest to lowest):
    1. Explicit overrides
    2. Project config (.relaycode/settings.json in workspace)
    3. User config (~/.relaycode/settings.json)
    4. System defaults (relaycode/config/defaults/settings.json)
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    data: DataConfig = Field(default_factory=DataConfig)
