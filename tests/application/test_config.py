import pydantic
import pytest

from tempo.application.config import AppConfig, config_files, resolve_config
from tempo.domain.cache.models import DEFAULT_TTL_MS, CacheName


@pytest.fixture
def config_file(mock_home):
    path = mock_home / ".config" / "tempo" / "config.toml"
    path.parent.mkdir(parents=True)
    return path


def test_defaults(mock_home):
    config = resolve_config()

    assert config.timezone == "UTC"
    assert config.debounce_ms == 2000
    assert config.min_update_interval_ms == 30_000
    assert config.significance_threshold == 0.15
    assert config.cache_ttl_ms == DEFAULT_TTL_MS


def test_config_files_follow_home(mock_home):
    assert config_files()[0] == mock_home / ".config/tempo/config.toml"


def test_toml_file_is_loaded(config_file):
    config_file.write_text(
        'timezone = "Europe/Berlin"\n'
        "daily_new_card_limit = 30\n"
        "\n"
        "[cache_ttl_ms]\n"
        "learning_pattern = 60000\n"
    )

    config = resolve_config()

    assert config.timezone == "Europe/Berlin"
    assert config.daily_new_card_limit == 30
    assert config.ttl_for(CacheName.LEARNING_PATTERN) == 60_000
    # Unlisted caches keep their defaults
    assert config.ttl_for(CacheName.USER_STATS) == DEFAULT_TTL_MS[CacheName.USER_STATS]


def test_environment_beats_file(config_file, monkeypatch):
    config_file.write_text('timezone = "Europe/Berlin"\n')
    monkeypatch.setenv("TEMPO_TIMEZONE", "Asia/Tokyo")

    assert resolve_config().timezone == "Asia/Tokyo"


def test_cli_overrides_beat_environment(mock_home, monkeypatch):
    monkeypatch.setenv("TEMPO_DEBOUNCE_MS", "500")

    config = resolve_config({"debounce_ms": 100, "timezone": None})

    assert config.debounce_ms == 100
    assert config.timezone == "UTC"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"timezone": "Mars/Olympus"},
        {"significance_threshold": 0.0},
        {"fold_batch_size": 0},
        {"cache_ttl_ms": {"user_stats": -1}},
    ],
)
def test_invalid_values_are_rejected(mock_home, kwargs):
    with pytest.raises(pydantic.ValidationError):
        AppConfig(**kwargs)
