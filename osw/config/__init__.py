"""Configuration: engine settings, commission schedule and config-file loading."""

from osw.config.settings import DEFAULT_SETTINGS, CommissionSettings, EngineSettings

__all__ = ["CommissionSettings", "DEFAULT_SETTINGS", "EngineSettings"]
