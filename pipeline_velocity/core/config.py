"""
Settings and environment management module for the Pipeline Velocity service.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for development
- Singleton pattern via @lru_cache for efficient access
- Optional generation provider credentials (OpenAI, OpenAI-compatible, Anthropic)
- Sample-size gating thresholds, exposed to services as an immutable
  VelocityThresholds value

Environment Variables:
- GENERATION_PROVIDER: openai | openai_compatible | anthropic (optional)
- GENERATION_BASE_URL: Provider API root (default depends on provider)
- GENERATION_API_KEY: Provider API key
- GENERATION_MODEL: Model identifier sent with every request
- GENERATION_TIMEOUT_SECONDS: Per-request timeout (default: 30)
- CORS_ORIGINS: Comma separated origins allowed by the API

Gating Defaults:
- min_offers_for_decay: 10 (Offers needed before a candidate decay curve is shown)
- min_hires_for_fast_vs_slow: 10 (Hires per cohort side; 2x closed reqs required)
- min_denom_for_pass_rate: 5 (Smallest denominator a formatted rate is shown for)
- min_reqs_for_req_decay: 10 (Reqs needed before a requisition decay curve is shown)
- min_bucket_size_for_chart: 3 (Bucket count needed to enter decay estimation)

Usage:
    from pipeline_velocity.core.config import get_settings

    settings = get_settings()
    thresholds = settings.velocity_thresholds()
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

from pipeline_velocity.models.enums import ProviderKind


class VelocityThresholds(BaseModel):
    """
    Immutable sample-size and day-count limits used by every gate and builder.

    Passed explicitly into each service function so two concurrent requests can
    run with different limits and no module holds mutable configuration.
    """
    model_config = ConfigDict(frozen=True)

    # Decay curves
    min_offers_for_decay: int = 10
    min_reqs_for_req_decay: int = 10
    min_bucket_size_for_chart: int = 3
    offer_decay_drop_ratio: float = 0.95
    req_decay_drop_ratio: float = 0.90
    min_req_age_days: int = 30

    # Cohorts and rates
    min_hires_for_fast_vs_slow: int = 10
    min_denom_for_pass_rate: int = 5

    # Stage timing
    min_snapshot_diff_events: int = 10

    # Load vs performance
    min_load_hires: int = 10
    min_load_bucket_hires: int = 3
    max_time_to_fill_days: int = 365

    # Contributing requisitions (days since last activity / days to fill)
    stalled_days: int = 14
    zombie_days: int = 30
    slow_fill_days: int = 60
    fast_fill_days: int = 30
    max_contributing_reqs: int = 10

    # Bottlenecks
    max_bottleneck_stages: int = 5
    min_bottleneck_samples: int = 3


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The class inherits from pydantic-settings BaseSettings which provides:
    - Automatic loading from environment variables (case-insensitive)
    - Support for .env file loading
    - Type validation and coercion
    - Default values for optional settings

    Attributes:
        generation_provider: Wire protocol of the generation provider, None when disabled.
        generation_base_url: Provider API root; provider default when unset.
        generation_api_key: Credential sent to the provider.
        generation_model: Model identifier.
        generation_timeout_seconds: Timeout for a single provider request.
        generation_max_tokens: Completion token ceiling.
        generation_temperature: Sampling temperature.
        cors_origins: Comma separated list of allowed origins.
        min_*: Gating defaults copied into VelocityThresholds.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Generation Provider (Optional - AI insights are disabled without it)
    # =========================================================================

    generation_provider: Optional[ProviderKind] = None

    # Defaults: https://api.openai.com/v1 and https://api.anthropic.com/v1
    generation_base_url: Optional[str] = None

    generation_api_key: Optional[str] = None

    generation_model: str = 'gpt-4o-mini'

    generation_timeout_seconds: float = 30.0

    generation_max_tokens: int = 2000

    generation_temperature: float = 0.3

    # =========================================================================
    # HTTP
    # =========================================================================

    cors_origins: str = 'http://localhost:3000'

    # =========================================================================
    # Gating Defaults
    # =========================================================================

    min_offers_for_decay: int = 10
    min_hires_for_fast_vs_slow: int = 10
    min_denom_for_pass_rate: int = 5
    min_reqs_for_req_decay: int = 10
    min_bucket_size_for_chart: int = 3
    min_snapshot_diff_events: int = 10
    min_load_hires: int = 10

    @property
    def generation_enabled(self) -> bool:
        """True when a provider kind and an API key are both configured."""
        return self.generation_provider is not None and bool(self.generation_api_key)

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(',') if origin.strip()]

    def velocity_thresholds(self) -> VelocityThresholds:
        """Build the immutable threshold value handed to the services."""
        return VelocityThresholds(
            min_offers_for_decay=self.min_offers_for_decay,
            min_hires_for_fast_vs_slow=self.min_hires_for_fast_vs_slow,
            min_denom_for_pass_rate=self.min_denom_for_pass_rate,
            min_reqs_for_req_decay=self.min_reqs_for_req_decay,
            min_bucket_size_for_chart=self.min_bucket_size_for_chart,
            min_snapshot_diff_events=self.min_snapshot_diff_events,
            min_load_hires=self.min_load_hires,
        )


DEFAULT_THRESHOLDS = VelocityThresholds()


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The cached settings instance.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
