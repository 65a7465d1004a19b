from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from tempo.domain.cache.models import DEFAULT_TTL_MS, CacheName
from tempo.domain.constants import (
    CACHE_CLEANUP_BATCH_SIZE,
    CACHE_METRICS_RETENTION_DAYS,
    DAILY_NEW_CARD_LIMIT,
    DEBOUNCE_DELAY_MS,
    FOLD_BATCH_SIZE,
    MIN_UPDATE_INTERVAL_MS,
    SIGNIFICANT_CHANGE_THRESHOLD,
    SNAPSHOT_FRESHNESS_MS,
)


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/tempo/config.toml",
        Path.home() / ".tempo.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for tempo.
    Supports loading from:
    1. Environment variables (TEMPO_*)
    2. Config file (~/.config/tempo/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="TEMPO_",
        extra="ignore",
    )

    # Scheduling
    timezone: str = "UTC"
    use_concept_mastery: bool = True
    daily_new_card_limit: int = Field(default=DAILY_NEW_CARD_LIMIT, ge=1)

    # Real-time updates
    debounce_ms: int = Field(default=DEBOUNCE_DELAY_MS, ge=0)
    min_update_interval_ms: int = Field(default=MIN_UPDATE_INTERVAL_MS, ge=0)
    fold_batch_size: int = Field(default=FOLD_BATCH_SIZE, ge=1)
    significance_threshold: float = Field(default=SIGNIFICANT_CHANGE_THRESHOLD, gt=0.0, le=1.0)
    snapshot_freshness_ms: int = Field(default=SNAPSHOT_FRESHNESS_MS, ge=0)

    # Cache
    cache_ttl_ms: dict[CacheName, int] = Field(default_factory=lambda: dict(DEFAULT_TTL_MS))
    cleanup_batch_size: int = Field(default=CACHE_CLEANUP_BATCH_SIZE, ge=1)
    metrics_retention_days: int = Field(default=CACHE_METRICS_RETENTION_DAYS, ge=1)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Find the first existing file
        toml_file = None
        for f in config_files():
            if f.exists():
                toml_file = f
                break

        # Explicit overrides beat environment, environment beats the file
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("cache_ttl_ms")
    @classmethod
    def fill_missing_ttls(cls, v: dict[CacheName, int]) -> dict[CacheName, int]:
        merged = dict(DEFAULT_TTL_MS)
        merged.update(v)
        for name, ttl in merged.items():
            if ttl <= 0:
                raise ValueError(f"TTL for {name.value} must be positive")
        return merged

    def ttl_for(self, name: CacheName) -> int:
        return self.cache_ttl_ms.get(name, DEFAULT_TTL_MS[name])


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/tempo/config.toml (if exists)
    3. Environment variables (TEMPO_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
