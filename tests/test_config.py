"""Tests for configuration loading and validation."""

import pytest
from pydantic import ValidationError

from automation.config import (
    AppConfig,
    DatabaseType,
    LogLevel,
    get_config,
    get_development_config,
    get_testing_config,
    load_config,
    reset_config,
    validate_config,
)


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


class TestAppConfig:
    """Test cases for AppConfig."""

    def test_defaults(self):
        config = AppConfig()

        assert config.database_type == DatabaseType.SQLITE
        assert config.action_timeout == 30.0
        assert config.retry_max_attempts == 1
        assert config.log_level == LogLevel.INFO
        assert config.is_production is True
        assert config.get_database_connect_args() == {"check_same_thread": False, "timeout": 30}

    def test_non_sqlite_connect_args(self):
        config = AppConfig(database_url="postgresql+psycopg://user:pw@db/automation")
        assert config.database_type == DatabaseType.POSTGRESQL
        assert config.get_database_connect_args() == {}

    @pytest.mark.parametrize("overrides", [
        {"database_url": "oracle://db"},
        {"database_url": ""},
        {"port": 0},
        {"action_timeout": 0},
        {"webhook_timeout": -1},
        {"max_action_workers": 0},
        {"retry_max_attempts": 0},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            AppConfig(**overrides)

    def test_uvicorn_config(self):
        config = AppConfig(port=9000, log_level=LogLevel.WARNING)
        assert config.get_uvicorn_config() == {
            "host": "0.0.0.0",
            "port": 9000,
            "reload": False,
            "log_level": "warning",
            "access_log": False,
        }

    def test_development_config(self):
        config = get_development_config()
        assert config.reload is True
        assert config.log_level == LogLevel.DEBUG
        assert config.is_production is False

    def test_testing_config(self):
        config = get_testing_config()
        assert config.database_url == "sqlite:///:memory:"
        assert config.enable_request_logging is False
        assert config.action_timeout == 5.0


class TestEnvironmentLoading:
    """Test cases for environment based configuration."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("AUTOMATION_ENGINE_PORT", "9100")
        monkeypatch.setenv("AUTOMATION_ENGINE_DEBUG", "yes")
        monkeypatch.setenv("AUTOMATION_ENGINE_ACTION_TIMEOUT", "2.5")
        monkeypatch.setenv("AUTOMATION_ENGINE_LOG_LEVEL", "debug")
        monkeypatch.setenv("AUTOMATION_ENGINE_CORS_ORIGINS", "https://a.test,https://b.test")

        config = AppConfig.from_env()

        assert config.port == 9100
        assert config.debug is True
        assert config.action_timeout == 2.5
        assert config.log_level == LogLevel.DEBUG
        assert config.cors_origins == ["https://a.test", "https://b.test"]

    def test_openai_key_fallback(self, monkeypatch):
        monkeypatch.delenv("AUTOMATION_ENGINE_OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert AppConfig.from_env().openai_api_key == "sk-test"

        monkeypatch.setenv("AUTOMATION_ENGINE_OPENAI_API_KEY", "sk-engine")
        assert AppConfig.from_env().openai_api_key == "sk-engine"

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_load_config_reads_env_file(self, tmp_path, monkeypatch):
        # Registered so the variable load_dotenv sets is removed afterwards.
        monkeypatch.setenv("AUTOMATION_ENGINE_WEBHOOK_TIMEOUT", "placeholder")
        monkeypatch.delenv("AUTOMATION_ENGINE_WEBHOOK_TIMEOUT")

        env_file = tmp_path / "engine.env"
        env_file.write_text("AUTOMATION_ENGINE_WEBHOOK_TIMEOUT=4.5\n")

        config = load_config(str(env_file))

        assert config.webhook_timeout == 4.5
        assert get_config() is config


class TestValidateConfig:

    def test_creates_missing_directories(self, tmp_path):
        db_path = tmp_path / "data" / "engine.db"
        log_path = tmp_path / "logs" / "engine.log"

        validate_config(AppConfig(database_url=f"sqlite:///{db_path}", log_file=str(log_path)))

        assert db_path.parent.is_dir()
        assert log_path.parent.is_dir()

    def test_rejects_excessive_retries(self):
        with pytest.raises(ValueError, match="retry_max_attempts"):
            validate_config(AppConfig(database_url="sqlite:///:memory:", retry_max_attempts=11))
