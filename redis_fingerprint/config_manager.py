import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

import colorlog
from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .logging_config import configure_structlog

# Load environment variables
load_dotenv()

"""
Configuration Management for Redis Fingerprint

This module provides centralized configuration management with validation
and environment variable handling. Command-line options override the
environment; the environment overrides the built-in defaults.
"""

DEFAULT_REDIS_CONNECTIONS = 30
DEFAULT_CONCURRENCY = 200
DEFAULT_SCAN_COUNT = 1000

CONNECTION_STRATEGIES = ("pooled", "per-call")
SCAN_MODES = ("keys", "scan")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"{name} must be an integer, got {value!r}", cause=exc
        ) from exc


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"{name} must be a number, got {value!r}", cause=exc
        ) from exc


def _set_client_log_level(log_level: str) -> None:
    """Set log levels for client-library loggers to reduce noise."""
    client_loggers = ["redis", "redis.asyncio", "asyncio"]
    target_level = logging.DEBUG if log_level == "DEBUG" else logging.WARNING
    for name in client_loggers:
        logging.getLogger(name).setLevel(target_level)


logger = logging.getLogger(__name__)


@dataclass
class RedisConfig:
    """Configuration for the store connection."""

    url: str = field(default_factory=lambda: os.getenv("REDIS_URL", ""))
    max_connections: int = field(
        default_factory=lambda: _env_int(
            "RFP_REDIS_CONNECTIONS", DEFAULT_REDIS_CONNECTIONS
        )
    )
    connection_strategy: str = field(
        default_factory=lambda: os.getenv("RFP_CONNECTION_STRATEGY", "pooled")
    )

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.connection_strategy = self.connection_strategy.lower()
        if self.max_connections < 1:
            raise ConfigurationError(
                "Max connections must be at least 1", config_section="redis"
            )
        if self.connection_strategy not in CONNECTION_STRATEGIES:
            raise ConfigurationError(
                f"Connection strategy must be one of: {list(CONNECTION_STRATEGIES)}",
                config_section="redis",
            )

    def validate(self) -> None:
        """Validate the store address."""
        if not self.url:
            raise ConfigurationError(
                "Redis URL is required", config_section="redis"
            )
        scheme = urlsplit(self.url).scheme
        if scheme not in ("redis", "rediss", "unix"):
            raise ConfigurationError(
                f"Unsupported Redis URL scheme: {scheme or '(none)'}",
                config_section="redis",
            )

    @property
    def pooled(self) -> bool:
        return self.connection_strategy == "pooled"

    def get_safe_url(self) -> str:
        """Get the URL for logging, with any password masked."""
        parts = urlsplit(self.url)
        if parts.password:
            netloc = parts.netloc.replace(f":{parts.password}@", ":***@")
            return urlunsplit(parts._replace(netloc=netloc))
        return self.url


@dataclass
class ProcessingConfig:
    """Configuration for the fetch and write stages."""

    redis_concurrency: int = field(
        default_factory=lambda: _env_int("RFP_REDIS_CONCURRENCY", DEFAULT_CONCURRENCY)
    )
    file_concurrency: int = field(
        default_factory=lambda: _env_int("RFP_FILE_CONCURRENCY", DEFAULT_CONCURRENCY)
    )
    scan_mode: str = field(default_factory=lambda: os.getenv("RFP_SCAN_MODE", "keys"))
    key_pattern: str = field(
        default_factory=lambda: os.getenv("RFP_KEY_PATTERN", "*")
    )
    scan_count: int = field(
        default_factory=lambda: _env_int("RFP_SCAN_COUNT", DEFAULT_SCAN_COUNT)
    )
    best_effort: bool = field(default_factory=lambda: _env_flag("RFP_BEST_EFFORT"))
    operation_timeout: Optional[float] = field(
        default_factory=lambda: _env_float("RFP_OPERATION_TIMEOUT")
    )

    def __post_init__(self) -> None:
        """Validate processing configuration."""
        self.scan_mode = self.scan_mode.lower()
        if self.redis_concurrency < 1:
            raise ConfigurationError(
                "Redis concurrency must be at least 1", config_section="processing"
            )
        if self.file_concurrency < 1:
            raise ConfigurationError(
                "File concurrency must be at least 1", config_section="processing"
            )
        if self.scan_mode not in SCAN_MODES:
            raise ConfigurationError(
                f"Scan mode must be one of: {list(SCAN_MODES)}",
                config_section="processing",
            )
        if not self.key_pattern:
            raise ConfigurationError(
                "Key pattern must not be empty", config_section="processing"
            )
        if self.scan_count < 1:
            raise ConfigurationError(
                "Scan count must be at least 1", config_section="processing"
            )
        if self.operation_timeout is not None and self.operation_timeout <= 0:
            raise ConfigurationError(
                "Operation timeout must be positive", config_section="processing"
            )


@dataclass
class OutputConfig:
    """Configuration for the fingerprint log."""

    log_path: str = field(default_factory=lambda: os.getenv("RFP_OUTPUT", ""))

    def validate(self) -> None:
        if not self.log_path:
            raise ConfigurationError(
                "Output log path is required", config_section="output"
            )


@dataclass
class LoggingConfig:
    """Configuration for logging behavior."""

    level: str = field(default_factory=lambda: os.getenv("RFP_LOG_LEVEL", "INFO"))
    format: str = field(
        default_factory=lambda: os.getenv(
            "RFP_LOG_FORMAT", "%(log_color)s%(levelname)s:%(name)s:%(message)s"
        )
    )
    file_output: Optional[str] = field(
        default_factory=lambda: os.getenv("RFP_LOG_FILE")
    )

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ConfigurationError(
                f"Log level must be one of: {valid_levels}", config_section="logging"
            )
        self.level = self.level.upper()

    def get_log_level(self) -> int:
        """Convert string log level to logging constant."""
        return int(getattr(logging, self.level))


@dataclass
class FingerprintConfig:
    """Main configuration class that aggregates all configuration sections."""

    redis: RedisConfig = field(default_factory=RedisConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_environment(
        cls,
        redis_url: Optional[str] = None,
        log_path: Optional[str] = None,
        max_connections: Optional[int] = None,
        redis_concurrency: Optional[int] = None,
        file_concurrency: Optional[int] = None,
        connection_strategy: Optional[str] = None,
        scan_mode: Optional[str] = None,
        key_pattern: Optional[str] = None,
        scan_count: Optional[int] = None,
        best_effort: Optional[bool] = None,
        operation_timeout: Optional[float] = None,
        log_level: Optional[str] = None,
        log_file: Optional[str] = None,
    ) -> "FingerprintConfig":
        """
        Create configuration from environment variables.

        Every argument left as None keeps the value read from the
        environment (or the built-in default).

        Returns:
            FingerprintConfig: Configured instance, not yet validated
        """
        config = cls()

        if redis_url is not None:
            config.redis.url = redis_url
        if log_path is not None:
            config.output.log_path = log_path
        if max_connections is not None:
            config.redis.max_connections = max_connections
        if connection_strategy is not None:
            config.redis.connection_strategy = connection_strategy
        if redis_concurrency is not None:
            config.processing.redis_concurrency = redis_concurrency
        if file_concurrency is not None:
            config.processing.file_concurrency = file_concurrency
        if scan_mode is not None:
            config.processing.scan_mode = scan_mode
        if key_pattern is not None:
            config.processing.key_pattern = key_pattern
        if scan_count is not None:
            config.processing.scan_count = scan_count
        if best_effort is not None:
            config.processing.best_effort = best_effort
        if operation_timeout is not None:
            config.processing.operation_timeout = operation_timeout
        if log_level is not None:
            config.logging.level = log_level
        if log_file is not None:
            config.logging.file_output = log_file

        return config

    def validate_all(self) -> None:
        """Validate all configuration sections."""
        try:
            self.redis.__post_init__()
            self.redis.validate()
            self.processing.__post_init__()
            self.output.validate()
            self.logging.__post_init__()
        except ConfigurationError as e:
            logger.error(f"❌ Configuration validation failed: {e}")
            raise

    def log_configuration_summary(self) -> None:
        """Log a summary of the current configuration (without sensitive data)."""
        logger.info("=" * 60)
        logger.info("🔧 REDIS FINGERPRINT CONFIGURATION")
        logger.info("=" * 60)
        logger.info(f"🗄️  Redis: {self.redis.get_safe_url()}")
        logger.info(f"   - Connection Strategy: {self.redis.connection_strategy}")
        if self.redis.pooled:
            logger.info(f"   - Max Connections: {self.redis.max_connections}")
        logger.info("⚙️  Processing:")
        logger.info(f"   - Redis Concurrency: {self.processing.redis_concurrency}")
        logger.info(f"   - File Concurrency: {self.processing.file_concurrency}")
        logger.info(
            f"   - Enumeration: {self.processing.scan_mode} "
            f"(pattern {self.processing.key_pattern!r})"
        )
        logger.info(
            f"   - Mode: {'best-effort' if self.processing.best_effort else 'fail-fast'}"
        )
        logger.info(
            f"   - Operation Timeout: {self.processing.operation_timeout or 'None'}"
        )
        logger.info(f"📄 Output: {self.output.log_path}")
        logger.info(f"📝 Logging Level: {self.logging.level}")
        if self.logging.file_output:
            logger.info(f"📄 Log File: {self.logging.file_output}")
        logger.info("=" * 60)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        return {
            "redis": {
                "url": self.redis.get_safe_url(),
                "max_connections": self.redis.max_connections,
                "connection_strategy": self.redis.connection_strategy,
            },
            "processing": {
                "redis_concurrency": self.processing.redis_concurrency,
                "file_concurrency": self.processing.file_concurrency,
                "scan_mode": self.processing.scan_mode,
                "key_pattern": self.processing.key_pattern,
                "scan_count": self.processing.scan_count,
                "best_effort": self.processing.best_effort,
                "operation_timeout": self.processing.operation_timeout,
            },
            "output": {"log_path": self.output.log_path},
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
            },
        }


def setup_logging(config: LoggingConfig) -> None:
    """
    Setup logging configuration based on config.
    """
    _set_client_log_level(config.level.upper())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(config.get_log_level())

    console_handler = colorlog.StreamHandler()
    console_handler.setFormatter(colorlog.ColoredFormatter(config.format))
    root_logger.addHandler(console_handler)

    if config.file_output:
        file_handler = logging.FileHandler(config.file_output)
        file_formatter = logging.Formatter(
            "%(asctime)s - %(levelname)s:%(name)s:%(message)s"
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    configure_structlog()

    logger.debug(
        f"📝 Logging configured: level={config.level}, file={config.file_output or 'console'}"
    )


def create_config_from_env(**overrides: Any) -> FingerprintConfig:
    """
    Factory function to create and validate configuration from environment.

    Args:
        **overrides: Keyword overrides accepted by
            ``FingerprintConfig.from_environment``

    Returns:
        FingerprintConfig: Validated configuration instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config = FingerprintConfig.from_environment(**overrides)
    config.validate_all()
    return config
