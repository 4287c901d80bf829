"""Configuration management for the Workflow Automation Engine."""

import os
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
from enum import Enum

ENV_PREFIX = "AUTOMATION_ENGINE_"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DatabaseType(str, Enum):
    """Supported database types."""
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"


class AppConfig(BaseModel):
    """Application configuration settings."""

    # Application settings
    app_name: str = Field(default="Workflow Automation Engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    reload: bool = Field(default=False, description="Enable auto-reload in development")

    # Database settings
    database_url: str = Field(
        default="sqlite:///./automation_engine.db",
        description="Database connection URL"
    )
    database_echo: bool = Field(default=False, description="Enable SQLAlchemy query logging")

    # Action execution settings
    action_timeout: float = Field(
        default=30.0,
        description="Per-action time budget in seconds"
    )
    max_action_workers: int = Field(
        default=32,
        description="Threads available to run action handlers"
    )
    retry_max_attempts: int = Field(
        default=1,
        description="Attempts per action; 1 disables retry"
    )
    retry_base_delay: float = Field(
        default=1.0,
        description="Base delay between retry attempts in seconds"
    )
    webhook_timeout: float = Field(
        default=10.0,
        description="HTTP timeout for webhook and Slack calls in seconds"
    )

    # Completion action settings
    openai_api_key: Optional[str] = Field(default=None, description="API key for the completion action")
    completion_model: str = Field(default="gpt-4o", description="Default completion model")
    completion_temperature: float = Field(default=0.7, description="Default sampling temperature")
    completion_max_tokens: int = Field(default=1000, description="Default completion token limit")

    # Logging settings
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size: int = Field(default=10485760, description="Maximum log file size in bytes")  # 10MB
    log_backup_count: int = Field(default=5, description="Number of log backup files to keep")
    structured_logging: bool = Field(default=False, description="Emit JSON log lines")

    # Health check settings
    health_check_timeout: float = Field(
        default=5.0,
        description="Health check timeout in seconds"
    )

    # Request handling
    enable_request_logging: bool = Field(
        default=True,
        description="Log every HTTP request with its duration"
    )
    slow_request_threshold: float = Field(
        default=5.0,
        description="Slow request threshold in seconds"
    )

    # Security settings
    cors_origins: list = Field(
        default=["*"],
        description="CORS allowed origins"
    )
    cors_methods: list = Field(
        default=["GET", "POST", "PUT", "DELETE"],
        description="CORS allowed methods"
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if not v:
            raise ValueError("Database URL cannot be empty")

        supported_schemes = ['sqlite', 'postgresql', 'mysql']
        scheme = v.split('://')[0].split('+')[0].lower()

        if scheme not in supported_schemes:
            raise ValueError(f"Unsupported database scheme: {scheme}. Supported: {supported_schemes}")

        return v

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        """Validate port number."""
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator('action_timeout', 'webhook_timeout', 'health_check_timeout')
    @classmethod
    def validate_timeouts(cls, v):
        """Validate timeout values."""
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator('max_action_workers', 'retry_max_attempts')
    @classmethod
    def validate_at_least_one(cls, v):
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @property
    def database_type(self) -> DatabaseType:
        """Get the database type from the URL."""
        scheme = self.database_url.split('://')[0].lower()
        if scheme.startswith('sqlite'):
            return DatabaseType.SQLITE
        elif scheme.startswith('postgresql'):
            return DatabaseType.POSTGRESQL
        elif scheme.startswith('mysql'):
            return DatabaseType.MYSQL
        else:
            raise ValueError(f"Unknown database type: {scheme}")

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.database_type == DatabaseType.SQLITE

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug and not self.reload

    def get_database_connect_args(self) -> Dict[str, Any]:
        """Get database connection arguments based on database type."""
        if self.is_sqlite:
            return {"check_same_thread": False, "timeout": 30}
        return {}

    def get_uvicorn_config(self) -> Dict[str, Any]:
        """Get Uvicorn server configuration."""
        return {
            "host": self.host,
            "port": self.port,
            "reload": self.reload,
            "log_level": self.log_level.value.lower(),
            "access_log": self.debug
        }

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Create configuration from environment variables."""
        def get_env(key: str, default=None, type_func=str):
            """Get environment variable with type conversion."""
            value = os.getenv(f"{ENV_PREFIX}{key}")
            if value is None:
                return default
            if type_func == bool:
                return str(value).lower() in ('true', '1', 'yes', 'on')
            elif type_func == list:
                return value.split(',') if value else default
            return type_func(value)

        return cls(
            app_name=get_env("APP_NAME", "Workflow Automation Engine"),
            app_version=get_env("APP_VERSION", "1.0.0"),
            debug=get_env("DEBUG", False, bool),
            host=get_env("HOST", "0.0.0.0"),
            port=get_env("PORT", 8000, int),
            reload=get_env("RELOAD", False, bool),
            database_url=get_env("DATABASE_URL", "sqlite:///./automation_engine.db"),
            database_echo=get_env("DATABASE_ECHO", False, bool),
            action_timeout=get_env("ACTION_TIMEOUT", 30.0, float),
            max_action_workers=get_env("MAX_ACTION_WORKERS", 32, int),
            retry_max_attempts=get_env("RETRY_MAX_ATTEMPTS", 1, int),
            retry_base_delay=get_env("RETRY_BASE_DELAY", 1.0, float),
            webhook_timeout=get_env("WEBHOOK_TIMEOUT", 10.0, float),
            # The completion client's conventional variable is honoured as a fallback.
            openai_api_key=get_env("OPENAI_API_KEY", os.getenv("OPENAI_API_KEY")),
            completion_model=get_env("COMPLETION_MODEL", "gpt-4o"),
            completion_temperature=get_env("COMPLETION_TEMPERATURE", 0.7, float),
            completion_max_tokens=get_env("COMPLETION_MAX_TOKENS", 1000, int),
            log_level=LogLevel(get_env("LOG_LEVEL", "INFO").upper()),
            log_format=get_env("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_file=get_env("LOG_FILE", None),
            log_max_size=get_env("LOG_MAX_SIZE", 10485760, int),
            log_backup_count=get_env("LOG_BACKUP_COUNT", 5, int),
            structured_logging=get_env("STRUCTURED_LOGGING", False, bool),
            health_check_timeout=get_env("HEALTH_CHECK_TIMEOUT", 5.0, float),
            enable_request_logging=get_env("ENABLE_REQUEST_LOGGING", True, bool),
            slow_request_threshold=get_env("SLOW_REQUEST_THRESHOLD", 5.0, float),
            cors_origins=get_env("CORS_ORIGINS", ["*"], list),
            cors_methods=get_env("CORS_METHODS", ["GET", "POST", "PUT", "DELETE"], list),
        )


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Load configuration from a .env file (if present) and environment variables."""
    global _config

    from dotenv import load_dotenv

    if config_file and os.path.exists(config_file):
        load_dotenv(config_file)
    elif os.path.exists('.env'):
        load_dotenv('.env')

    _config = AppConfig.from_env()

    return _config


def reset_config():
    """Reset the global configuration instance (mainly for testing)."""
    global _config
    _config = None


def validate_config(config: AppConfig) -> None:
    """Check settings that can only be verified against the environment."""
    errors = []

    if config.is_sqlite and ":memory:" not in config.database_url:
        db_path = config.database_url.split(":///", 1)[-1]
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            try:
                os.makedirs(db_dir, exist_ok=True)
            except OSError as e:
                errors.append(f"Cannot create database directory {db_dir}: {e}")

    if config.log_file:
        log_dir = os.path.dirname(config.log_file)
        if log_dir and not os.path.exists(log_dir):
            try:
                os.makedirs(log_dir, exist_ok=True)
            except OSError as e:
                errors.append(f"Cannot create log directory {log_dir}: {e}")

    if config.retry_max_attempts > 10:
        errors.append("retry_max_attempts above 10 would hold executions open for too long")

    if errors:
        raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")


def get_development_config() -> AppConfig:
    """Get development configuration."""
    return AppConfig(
        debug=True,
        reload=True,
        log_level=LogLevel.DEBUG,
        database_echo=True,
    )


def get_testing_config() -> AppConfig:
    """Get testing configuration."""
    return AppConfig(
        debug=True,
        database_url="sqlite:///:memory:",
        log_level=LogLevel.WARNING,
        action_timeout=5.0,
        max_action_workers=4,
        webhook_timeout=2.0,
        enable_request_logging=False,
    )
