"""
FastAPI dependency injection module for the Pipeline Velocity service.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_thresholds: Builds the immutable VelocityThresholds from Settings
- get_generation_provider: Returns the configured provider client or None
- SettingsDep / ThresholdsDep / ProviderDep: Annotated aliases for endpoints

Every request gets its configuration through these dependencies, so tests
swap any of them with app.dependency_overrides instead of patching modules.

Usage Examples:
    @router.post("/fact-pack")
    async def fact_pack(
        request: VelocityDataRequest,
        thresholds: ThresholdsDep,
    ) -> dict:
        ...
"""

from typing import Annotated, Optional

from fastapi import Depends

from pipeline_velocity.core.config import Settings, VelocityThresholds, get_settings
from pipeline_velocity.services.generation_provider import GenerationProvider, build_provider


def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Returns:
        Settings: The cached Settings instance with all configuration values.
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


def get_thresholds(settings: SettingsDep) -> VelocityThresholds:
    """Gating thresholds for the current request."""
    return settings.velocity_thresholds()


ThresholdsDep = Annotated[VelocityThresholds, Depends(get_thresholds)]


def get_generation_provider(settings: SettingsDep) -> Optional[GenerationProvider]:
    """
    Provider client for AI insights and drafts.

    Returns None when no provider kind or API key is configured; endpoints
    that require generation translate that into a 503.
    """
    return build_provider(settings)


ProviderDep = Annotated[Optional[GenerationProvider], Depends(get_generation_provider)]
