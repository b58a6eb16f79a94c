"""Configuration management for playlist migrations."""

import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from tunebridge.models.data_models import PROVIDER_NAMES


def _parse_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class ProviderSettings(BaseModel):
    """Per-provider connection settings."""
    base_url: str = Field(description="API root URL")
    enabled: bool = Field(default=True, description="Feature flag; disabled providers cannot be created")
    requests_per_second: float = Field(default=5.0, description="Outbound request rate for this provider")
    token_env: Optional[str] = Field(default=None, description="Environment variable holding the access token")

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://, got: {v}")
        return v

    @field_validator("requests_per_second")
    @classmethod
    def validate_rate(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"requests_per_second must be positive, got: {v}")
        return v


def _default_providers() -> Dict[str, ProviderSettings]:
    return {
        "spotify": ProviderSettings(
            base_url="https://api.spotify.com/v1",
            token_env="SPOTIFY_TOKEN",
        ),
        "youtube": ProviderSettings(
            base_url="https://www.googleapis.com/youtube/v3",
            token_env="YOUTUBE_TOKEN",
        ),
        "deezer": ProviderSettings(
            base_url="https://api.deezer.com",
            enabled=False,
            token_env="DEEZER_TOKEN",
        ),
        "tidal": ProviderSettings(
            base_url="https://openapi.tidal.com",
            enabled=False,
            token_env="TIDAL_TOKEN",
        ),
    }


class AppConfig(BaseModel):
    """Top-level migration configuration."""

    providers: Dict[str, ProviderSettings] = Field(default_factory=_default_providers)

    # Circuit breaker
    circuit_breaker_failure_threshold: int = Field(default=5, description="Consecutive failures before opening")
    circuit_breaker_cooldown_ms: int = Field(default=30000, description="OPEN -> HALF_OPEN cooldown in ms")

    # Resolver
    fuzzy_threshold: float = Field(default=0.6, description="Minimum Jaccard score for fuzzy matches")

    # Paging and batching
    page_size: Optional[int] = Field(default=None, description="Import page size; provider default when unset")
    batch_size: Optional[int] = Field(default=None, description="Export batch size; provider default when unset")

    # Retry (rate limits only)
    max_retries: int = Field(default=3, description="Retries after a 429")
    retry_base_delay: float = Field(default=0.5, description="Base delay for exponential backoff")
    retry_max_delay: float = Field(default=8.0, description="Maximum retry delay")
    retry_jitter_max: float = Field(default=0.1, description="Maximum jitter added to each delay")

    # HTTP timeouts
    connect_timeout: float = Field(default=3.0, description="HTTP connect timeout in seconds")
    read_timeout: float = Field(default=8.0, description="HTTP read timeout in seconds")

    total_timeout: float = Field(default=300.0, description="Maximum duration of one migration")

    # In-process GET response cache
    response_cache_enabled: bool = Field(default=True, description="Cache successful GET responses")
    response_cache_ttl_ms: int = Field(default=60000, description="Lifetime of a cached response in ms")
    response_cache_max_size: int = Field(default=1000, description="Maximum cached responses per provider")

    log_level: str = Field(default="INFO", description="Logging level")

    output_directory: str = Field(default="out", description="Output directory for results")
    output_filename: str = Field(default="migration.json", description="Output JSON filename")

    @field_validator("circuit_breaker_failure_threshold")
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"circuit_breaker_failure_threshold must be >= 1, got: {v}")
        return v

    @field_validator("circuit_breaker_cooldown_ms")
    @classmethod
    def validate_cooldown(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"circuit_breaker_cooldown_ms must be >= 0, got: {v}")
        return v

    @field_validator("fuzzy_threshold")
    @classmethod
    def validate_fuzzy(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"fuzzy_threshold must be within [0, 1], got: {v}")
        return v

    @field_validator("total_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError(f"total_timeout must be positive, got: {v}")
        return v

    @field_validator("response_cache_ttl_ms")
    @classmethod
    def validate_cache_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"response_cache_ttl_ms must be positive, got: {v}")
        return v

    @field_validator("response_cache_max_size")
    @classmethod
    def validate_cache_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"response_cache_max_size must be >= 1, got: {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return level

    @property
    def output_path(self) -> Path:
        """Get full output file path."""
        return Path(self.output_directory) / self.output_filename

    def provider(self, name: str) -> Optional[ProviderSettings]:
        return self.providers.get(name)

    def token_for(self, name: str) -> Optional[str]:
        """Read the provider's access token from its environment variable."""
        settings = self.providers.get(name)
        env_name = settings.token_env if settings and settings.token_env else f"{name.upper()}_TOKEN"
        return os.environ.get(env_name) or None


ENV_MAPPINGS = {
    "PROVIDER_CIRCUIT_BREAKER_THRESHOLD": ("circuit_breaker_failure_threshold", int),
    "PROVIDER_CIRCUIT_BREAKER_COOLDOWN_MS": ("circuit_breaker_cooldown_ms", int),
    "PROVIDERS_MBID_FUZZY_MIN": ("fuzzy_threshold", float),
    "TUNEBRIDGE_LOG_LEVEL": ("log_level", str),
    "TUNEBRIDGE_TIMEOUT": ("total_timeout", float),
    "TUNEBRIDGE_BATCH_SIZE": ("batch_size", int),
    "PROVIDER_CACHE_TTL_MS": ("response_cache_ttl_ms", int),
    "PROVIDER_CACHE_MAX_SIZE": ("response_cache_max_size", int),
}


def env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict:
    """
    Collect configuration overrides from environment variables.

    Besides the scalar mappings above, PROVIDERS_<NAME> toggles a provider's
    feature flag (e.g. PROVIDERS_DEEZER=true).
    """
    env = os.environ if environ is None else environ
    overrides: Dict = {}

    for env_var, (field_name, cast) in ENV_MAPPINGS.items():
        if env.get(env_var):
            overrides[field_name] = cast(env[env_var])

    flags = {}
    for name in PROVIDER_NAMES:
        env_var = f"PROVIDERS_{name.upper()}"
        if env.get(env_var):
            flags[name] = _parse_flag(env[env_var])
    if flags:
        overrides["provider_flags"] = flags

    return overrides


class ConfigManager:
    """Manages configuration loading with override precedence."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = Path(config_file) if config_file else Path("config/config.yaml")
        self._config: Optional[AppConfig] = None

    def load_config(
        self,
        cli_overrides: Optional[Dict] = None,
        environ: Optional[Dict[str, str]] = None
    ) -> AppConfig:
        """
        Load configuration with override precedence: CLI > ENV > YAML.

        Each tier overrides values from lower tiers; CLI values of None are
        treated as "not given".

        Args:
            cli_overrides: Optional dictionary of CLI flag overrides
            environ: Environment mapping; defaults to os.environ

        Returns:
            Fully merged AppConfig instance

        Raises:
            ValueError: If configuration validation fails
        """
        config_dict: Dict = AppConfig().model_dump()

        if self.config_file.exists():
            with open(self.config_file, "r") as f:
                yaml_config = yaml.safe_load(f)
            if yaml_config:
                yaml_providers = yaml_config.pop("providers", None) or {}
                config_dict.update(yaml_config)
                for name, settings in yaml_providers.items():
                    merged = dict(config_dict["providers"].get(name, {}))
                    merged.update(settings or {})
                    config_dict["providers"][name] = merged

        env = env_overrides(environ)
        flags = env.pop("provider_flags", {})
        config_dict.update(env)
        for name, enabled in flags.items():
            if name in config_dict["providers"]:
                config_dict["providers"][name]["enabled"] = enabled

        if cli_overrides:
            config_dict.update({k: v for k, v in cli_overrides.items() if v is not None})

        self._config = AppConfig(**config_dict)
        return self._config

    @property
    def config(self) -> AppConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config
