"""Configuration management for relaycode."""

from .loader import SettingsLoader
from .schema import DataConfig, RelaycodeSettings, ServerConfig, SimulationConfig, StreamConfig

__all__ = ["DataConfig", "RelaycodeSettings", "ServerConfig", "SettingsLoader", "SimulationConfig", "StreamConfig"]
