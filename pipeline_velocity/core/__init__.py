"""
Core infrastructure package for the Pipeline Velocity service.

Provides configuration management via pydantic-settings. FastAPI
dependencies live in pipeline_velocity.core.dependencies and are imported
from there by the API layer.

Components Re-exported:
    Settings: Pydantic settings class with all configuration parameters
    VelocityThresholds: Immutable gating thresholds passed to every service
    DEFAULT_THRESHOLDS: VelocityThresholds with default values
    get_settings: Function returning the cached Settings singleton
"""

from pipeline_velocity.core.config import (
    DEFAULT_THRESHOLDS,
    Settings,
    VelocityThresholds,
    get_settings,
)

__all__ = [
    "Settings",
    "VelocityThresholds",
    "DEFAULT_THRESHOLDS",
    "get_settings",
]
