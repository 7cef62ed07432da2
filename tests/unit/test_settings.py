"""Tests for configuration loading."""

import os
from pathlib import Path

import pytest

from aquacycle.config.settings import (
    ConfigError,
    Settings,
    generate_example_env,
    get_settings,
    load_env_file,
    load_settings,
)
from aquacycle.pipelines.sensor_series_pipeline import SensorSeriesConfig


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch):
    """Clean aquacycle variables and run from an empty directory."""
    original_env = os.environ.copy()

    for var in [k for k in os.environ if k.startswith("AQUACYCLE_")]:
        del os.environ[var]

    import aquacycle.config.settings as settings_module

    settings_module._settings = None
    monkeypatch.chdir(tmp_path)

    yield

    os.environ.clear()
    os.environ.update(original_env)
    settings_module._settings = None


def test_defaults():
    settings = Settings()

    assert settings.store_url == "http://localhost:3001"
    assert settings.timezone == "UTC"
    assert settings.concurrency_limit == 3
    assert settings.target_points == 100
    assert settings.log_dir is None


def test_from_env_without_env_file():
    os.environ["AQUACYCLE_STORE_URL"] = "http://readings.internal:8080"
    os.environ["AQUACYCLE_CONCURRENCY"] = "5"
    os.environ["AQUACYCLE_FETCH_TIMEOUT"] = "2.5"
    os.environ["AQUACYCLE_LOG_LEVEL"] = "debug"
    os.environ["AQUACYCLE_LOG_DIR"] = "logs"

    settings = Settings.from_env()

    assert settings.store_url == "http://readings.internal:8080"
    assert settings.concurrency_limit == 5
    assert settings.fetch_timeout == 2.5
    assert settings.log_level == "DEBUG"
    assert settings.log_dir == Path("logs")


def test_from_env_reads_env_file(tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text(
        """
# comment
AQUACYCLE_TIMEZONE="America/Mexico_City"
AQUACYCLE_TARGET_POINTS=200
""",
        encoding="utf-8",
    )

    settings = Settings.from_env(env_file)

    assert settings.timezone == "America/Mexico_City"
    assert settings.target_points == 200


def test_load_env_file_strips_quotes(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("AQUACYCLE_STORE_URL='http://quoted'\n", encoding="utf-8")

    load_env_file(env_file)

    assert os.environ["AQUACYCLE_STORE_URL"] == "http://quoted"


def test_invalid_number_raises_config_error():
    os.environ["AQUACYCLE_CONCURRENCY"] = "three"

    with pytest.raises(ConfigError, match="Invalid configuration"):
        Settings.from_env()


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"concurrency_limit": 0}, "AQUACYCLE_CONCURRENCY"),
        ({"target_points": 0}, "AQUACYCLE_TARGET_POINTS"),
        ({"fetch_timeout": 0}, "AQUACYCLE_FETCH_TIMEOUT"),
        ({"timezone": "Nowhere/Atlantis"}, "AQUACYCLE_TIMEZONE"),
        ({"log_level": "LOUD"}, "AQUACYCLE_LOG_LEVEL"),
        ({"store_url": ""}, "AQUACYCLE_STORE_URL"),
    ],
)
def test_validation_errors_name_the_variable(kwargs, message):
    with pytest.raises(ConfigError, match=message):
        Settings(**kwargs)


def test_from_yaml(tmp_path):
    config_file = tmp_path / "aquacycle.yaml"
    config_file.write_text(
        "store_url: http://yaml.store\nconcurrency_limit: 4\nmax_sensors: 10\nlog_dir: var/log\n",
        encoding="utf-8",
    )

    settings = Settings.from_yaml(config_file)

    assert settings.store_url == "http://yaml.store"
    assert settings.concurrency_limit == 4
    assert settings.max_sensors == 10
    assert settings.log_dir == Path("var/log")


def test_from_yaml_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / "aquacycle.yaml"
    config_file.write_text("vault_path: vault\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Unknown settings"):
        Settings.from_yaml(config_file)


def test_from_yaml_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        Settings.from_yaml(tmp_path / "nope.yaml")


def test_from_yaml_invalid_yaml(tmp_path):
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("store_url: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        Settings.from_yaml(config_file)


def test_pipeline_config():
    config = Settings(concurrency_limit=2, page_size=50, fetch_timeout=3.0).pipeline_config()

    assert isinstance(config, SensorSeriesConfig)
    assert config.concurrency_limit == 2
    assert config.page_size == 50
    assert config.fetch_timeout_seconds == 3.0
    assert config.max_sensors == 20


def test_get_settings_requires_load():
    with pytest.raises(ConfigError, match="not loaded"):
        get_settings()

    loaded = load_settings()
    assert get_settings() is loaded


def test_generate_example_env(tmp_path):
    output = tmp_path / "example.env"
    content = generate_example_env(output)

    assert output.read_text(encoding="utf-8") == content
    for var in (
        "AQUACYCLE_STORE_URL",
        "AQUACYCLE_TIMEZONE",
        "AQUACYCLE_CONCURRENCY",
        "AQUACYCLE_TARGET_POINTS",
        "AQUACYCLE_PAGE_SIZE",
        "AQUACYCLE_FETCH_TIMEOUT",
        "AQUACYCLE_MAX_PAGES",
        "AQUACYCLE_MAX_SENSORS",
        "AQUACYCLE_LOG_LEVEL",
        "AQUACYCLE_LOG_DIR",
    ):
        assert var in content


def test_generated_example_loads(tmp_path):
    env_file = tmp_path / ".env"
    generate_example_env(env_file)

    settings = Settings.from_env(env_file)
    assert settings == Settings()
