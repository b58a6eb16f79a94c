"""Unit tests for configuration management."""

from pathlib import Path

import pytest
import yaml

from tunebridge.models.config import AppConfig, ConfigManager, ProviderSettings, env_overrides


def test_app_config_defaults():
    """AppConfig defaults match the provider defaults."""
    config = AppConfig()

    # Circuit breaker
    assert config.circuit_breaker_failure_threshold == 5
    assert config.circuit_breaker_cooldown_ms == 30000

    # Resolver
    assert config.fuzzy_threshold == 0.6

    # Retry policy
    assert config.max_retries == 3
    assert config.retry_base_delay == 0.5
    assert config.retry_max_delay == 8.0

    # Timeouts
    assert config.connect_timeout == 3.0
    assert config.read_timeout == 8.0

    # Response cache
    assert config.response_cache_enabled is True
    assert config.response_cache_ttl_ms == 60000
    assert config.response_cache_max_size == 1000

    # Providers
    assert set(config.providers) == {"spotify", "youtube", "deezer", "tidal"}
    assert config.providers["youtube"].enabled is True
    assert config.providers["deezer"].enabled is False
    assert config.providers["youtube"].base_url == "https://www.googleapis.com/youtube/v3"

    assert config.output_path == Path("out/migration.json")


def test_provider_settings_validation():
    settings = ProviderSettings(base_url="http://localhost:8001")
    assert settings.requests_per_second == 5.0

    with pytest.raises(ValueError, match="must start with http"):
        ProviderSettings(base_url="ftp://invalid.com")

    with pytest.raises(ValueError, match="requests_per_second must be positive"):
        ProviderSettings(base_url="https://x", requests_per_second=0)


@pytest.mark.parametrize("fields,message", [
    ({"circuit_breaker_failure_threshold": 0}, "circuit_breaker_failure_threshold"),
    ({"circuit_breaker_cooldown_ms": -1}, "circuit_breaker_cooldown_ms"),
    ({"fuzzy_threshold": 1.5}, "fuzzy_threshold"),
    ({"total_timeout": 0}, "total_timeout must be positive"),
    ({"log_level": "LOUD"}, "unknown log level"),
    ({"response_cache_ttl_ms": 0}, "response_cache_ttl_ms must be positive"),
    ({"response_cache_max_size": 0}, "response_cache_max_size"),
])
def test_app_config_validators(fields, message):
    with pytest.raises(ValueError, match=message):
        AppConfig(**fields)


def test_log_level_is_uppercased():
    assert AppConfig(log_level="debug").log_level == "DEBUG"


def test_token_for_reads_configured_env(monkeypatch):
    monkeypatch.setenv("SPOTIFY_TOKEN", "abc")
    monkeypatch.delenv("YOUTUBE_TOKEN", raising=False)
    config = AppConfig()

    assert config.token_for("spotify") == "abc"
    assert config.token_for("youtube") is None


def test_env_overrides_mapping():
    overrides = env_overrides({
        "PROVIDER_CIRCUIT_BREAKER_THRESHOLD": "3",
        "PROVIDER_CIRCUIT_BREAKER_COOLDOWN_MS": "1000",
        "PROVIDERS_MBID_FUZZY_MIN": "0.75",
        "TUNEBRIDGE_LOG_LEVEL": "DEBUG",
        "TUNEBRIDGE_TIMEOUT": "42",
        "TUNEBRIDGE_BATCH_SIZE": "25",
        "PROVIDER_CACHE_TTL_MS": "5000",
        "PROVIDER_CACHE_MAX_SIZE": "50",
        "PROVIDERS_DEEZER": "true",
        "PROVIDERS_SPOTIFY": "0",
        "UNRELATED": "x",
    })

    assert overrides == {
        "circuit_breaker_failure_threshold": 3,
        "circuit_breaker_cooldown_ms": 1000,
        "fuzzy_threshold": 0.75,
        "log_level": "DEBUG",
        "total_timeout": 42.0,
        "batch_size": 25,
        "response_cache_ttl_ms": 5000,
        "response_cache_max_size": 50,
        "provider_flags": {"spotify": False, "deezer": True},
    }


def test_env_overrides_empty():
    assert env_overrides({}) == {}


class TestConfigManager:

    def write_yaml(self, tmp_path, data) -> Path:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    def test_missing_file_uses_defaults(self, tmp_path):
        config = ConfigManager(tmp_path / "missing.yaml").load_config(environ={})
        assert config == AppConfig()

    def test_yaml_overrides_defaults(self, tmp_path):
        path = self.write_yaml(tmp_path, {
            "circuit_breaker_failure_threshold": 7,
            "providers": {"youtube": {"requests_per_second": 2}},
        })

        config = ConfigManager(path).load_config(environ={})

        assert config.circuit_breaker_failure_threshold == 7
        assert config.providers["youtube"].requests_per_second == 2
        # Unspecified provider fields keep their defaults
        assert config.providers["youtube"].base_url == "https://www.googleapis.com/youtube/v3"
        assert config.providers["spotify"].enabled is True

    def test_env_overrides_yaml(self, tmp_path):
        path = self.write_yaml(tmp_path, {"circuit_breaker_failure_threshold": 7, "total_timeout": 10})

        config = ConfigManager(path).load_config(environ={
            "PROVIDER_CIRCUIT_BREAKER_THRESHOLD": "2",
            "PROVIDERS_TIDAL": "yes",
        })

        assert config.circuit_breaker_failure_threshold == 2
        assert config.total_timeout == 10
        assert config.providers["tidal"].enabled is True

    def test_cli_overrides_env(self, tmp_path):
        path = self.write_yaml(tmp_path, {"total_timeout": 10})

        config = ConfigManager(path).load_config(
            cli_overrides={"total_timeout": 99.0, "batch_size": None},
            environ={"TUNEBRIDGE_TIMEOUT": "50", "TUNEBRIDGE_BATCH_SIZE": "20"},
        )

        assert config.total_timeout == 99.0
        assert config.batch_size == 20

    def test_invalid_values_raise(self, tmp_path):
        path = self.write_yaml(tmp_path, {"fuzzy_threshold": 3})
        with pytest.raises(ValueError):
            ConfigManager(path).load_config(environ={})

    def test_config_property_loads_lazily(self, tmp_path):
        manager = ConfigManager(tmp_path / "missing.yaml")
        assert isinstance(manager.config, AppConfig)
        assert manager.config is manager.config

    def test_repository_config_file_is_valid(self):
        path = Path(__file__).resolve().parents[2] / "config" / "config.yaml"
        config = ConfigManager(path).load_config(environ={})
        assert config.providers["deezer"].enabled is False
        assert config.circuit_breaker_cooldown_ms == 30000
