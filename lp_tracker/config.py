"""
Configuration management for LP Tracker

Loads settings from environment variables and .env file.
Includes logging configuration with file output and correlation ID support.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from dotenv import load_dotenv

from .errors import ConfigurationError


def _load_env_file():
    """Load .env file from project root"""
    current = Path(__file__).parent.parent  # lp_tracker package parent
    env_file = current / ".env"

    if env_file.exists():
        load_dotenv(env_file)


# Load .env on module import
_load_env_file()


def _get_env(key: str, default: Optional[str] = "") -> Optional[str]:
    """Get environment variable with default"""
    value = os.getenv(key)
    if value is None:
        return default
    return value


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid float value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as int"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid int value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as bool"""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _get_env_list(key: str) -> List[str]:
    """Get comma-separated environment variable as list (empty items dropped)"""
    value = os.getenv(key)
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


# Public Base endpoint used when nothing else is configured
DEFAULT_BASE_RPC_URL = "https://mainnet.base.org"
ALCHEMY_RPC_URL_TEMPLATE = "https://base-mainnet.g.alchemy.com/v2/{api_key}"


@dataclass
class RpcConfig:
    """Chain read endpoint configuration"""
    # Comma-separated list of equivalent endpoints, tried in rotation
    urls: List[str] = field(default_factory=lambda: _get_env_list("BASE_RPC_URLS"))
    timeout_seconds: float = field(default_factory=lambda: _get_env_float("RPC_TIMEOUT_SECONDS", 15.0))
    max_retries: int = field(default_factory=lambda: _get_env_int("RPC_MAX_RETRIES", 3))
    retry_delay: float = field(default_factory=lambda: _get_env_float("RPC_RETRY_DELAY", 0.5))
    max_retry_delay: float = field(default_factory=lambda: _get_env_float("RPC_MAX_RETRY_DELAY", 4.0))
    # Fraction of the computed delay added as random jitter
    retry_jitter: float = field(default_factory=lambda: _get_env_float("RPC_RETRY_JITTER", 0.2))
    max_workers: int = field(default_factory=lambda: _get_env_int("RPC_MAX_WORKERS", 16))

    # Chain ID (Base only)
    chain_id: int = 8453


@dataclass
class IndexerConfig:
    """Alchemy NFT API configuration (required only for V4 discovery)"""
    api_key: Optional[str] = field(default_factory=lambda: _get_env("ALCHEMY_API_KEY", None))
    base_url: str = field(default_factory=lambda: _get_env(
        "ALCHEMY_NFT_URL", "https://base-mainnet.g.alchemy.com/nft/v3"
    ))
    timeout: float = field(default_factory=lambda: _get_env_float("NFT_INDEX_TIMEOUT", 10.0))
    max_pages: int = field(default_factory=lambda: _get_env_int("NFT_INDEX_MAX_PAGES", 10))


@dataclass
class PricingConfig:
    """GeckoTerminal price feed configuration"""
    base_url: str = field(default_factory=lambda: _get_env(
        "GECKO_API_URL", "https://api.geckoterminal.com/api/v2"
    ))
    network: str = field(default_factory=lambda: _get_env("GECKO_NETWORK", "base"))
    timeout: float = field(default_factory=lambda: _get_env_float("PRICE_TIMEOUT_SECONDS", 10.0))
    # GeckoTerminal accepts at most 30 addresses per request
    batch_size: int = field(default_factory=lambda: _get_env_int("PRICE_BATCH_SIZE", 30))
    cache_ttl: float = field(default_factory=lambda: _get_env_float("PRICE_CACHE_TTL", 30.0))


@dataclass
class CacheConfig:
    """Valuation cache configuration"""
    # Fully priced results are kept for 30 minutes
    good_ttl: float = field(default_factory=lambda: _get_env_float("CACHE_GOOD_TTL", 1800.0))
    # Partially priced results expire quickly so pricing can recover
    partial_ttl: float = field(default_factory=lambda: _get_env_float("CACHE_PARTIAL_TTL", 60.0))
    max_entries: int = field(default_factory=lambda: _get_env_int("CACHE_MAX_ENTRIES", 500))


@dataclass
class ProtocolConfig:
    """Protocol discovery configuration"""
    # Extra V2 pair addresses scanned in addition to the built-in registry
    extra_v2_pools: List[str] = field(default_factory=lambda: _get_env_list("V2_POOL_ADDRESSES"))


def _get_default_log_path() -> str:
    """Get default log file path under lp_tracker/log/ with UTC timestamp"""
    from datetime import datetime, timezone
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_dir = Path(__file__).parent / "log"
    return str(log_dir / f"lp_tracker_{timestamp}.log")


@dataclass
class LoggingConfig:
    """
    Logging configuration with file output and correlation ID support.

    Environment variables:
        LOG_FILE: Path to log file (overrides default)
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
        LOG_FORMAT: Custom log format string
        LOG_CONSOLE: Enable console output (default: true)
        LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
        LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    """
    log_file: str = field(default_factory=lambda: _get_env("LOG_FILE", _get_default_log_path()))
    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: _get_env(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    console_output: bool = field(default_factory=lambda: _get_env_bool("LOG_CONSOLE", True))
    max_bytes: int = field(default_factory=lambda: _get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))  # 10MB
    backup_count: int = field(default_factory=lambda: _get_env_int("LOG_BACKUP_COUNT", 5))

    @property
    def level(self) -> int:
        """Get numeric log level"""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@dataclass
class Config:
    """
    Main configuration container

    Usage:
        from lp_tracker.config import config

        print(config.rpc_endpoints())
        print(config.cache.good_ttl)
    """
    rpc: RpcConfig = field(default_factory=RpcConfig)
    indexer: IndexerConfig = field(default_factory=IndexerConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    protocols: ProtocolConfig = field(default_factory=ProtocolConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def rpc_endpoints(self) -> List[str]:
        """
        Ordered list of chain read endpoints.

        The Alchemy endpoint comes first when an API key is configured,
        explicit BASE_RPC_URLS follow, and the public endpoint is the
        last resort.
        """
        endpoints: List[str] = []
        if self.indexer.api_key:
            endpoints.append(ALCHEMY_RPC_URL_TEMPLATE.format(api_key=self.indexer.api_key))
        endpoints.extend(self.rpc.urls)
        if not endpoints:
            endpoints.append(DEFAULT_BASE_RPC_URL)
        # Preserve order, drop duplicates
        return list(dict.fromkeys(endpoints))

    def validate(self) -> None:
        """Raise ConfigurationError on values that cannot work"""
        if self.rpc.timeout_seconds <= 0:
            raise ConfigurationError.invalid("RPC_TIMEOUT_SECONDS", "must be positive")
        if self.rpc.max_retries < 1:
            raise ConfigurationError.invalid("RPC_MAX_RETRIES", "must be at least 1")
        if self.rpc.max_workers < 1:
            raise ConfigurationError.invalid("RPC_MAX_WORKERS", "must be at least 1")
        if self.cache.max_entries < 1:
            raise ConfigurationError.invalid("CACHE_MAX_ENTRIES", "must be at least 1")
        if self.cache.partial_ttl > self.cache.good_ttl:
            raise ConfigurationError.invalid(
                "CACHE_PARTIAL_TTL", "must not exceed CACHE_GOOD_TTL"
            )
        if not 1 <= self.pricing.batch_size <= 30:
            raise ConfigurationError.invalid("PRICE_BATCH_SIZE", "must be between 1 and 30")

    @classmethod
    def reload(cls) -> "Config":
        """Reload configuration from environment"""
        _load_env_file()
        return cls()


# Global config instance
config = Config()


def get_config() -> Config:
    """Get global configuration instance"""
    return config


def reload_config() -> Config:
    """Reload and return new configuration"""
    global config
    config = Config.reload()
    return config


def setup_logging(
    log_config: Optional[LoggingConfig] = None,
    logger_name: str = "lp_tracker",
) -> logging.Logger:
    """
    Set up logging based on configuration.

    Creates handlers for file and/or console output with rotation.
    The log file directory is created automatically if it doesn't exist.

    Args:
        log_config: Logging configuration (uses global config if None)
        logger_name: Name of the logger to configure (default: lp_tracker)

    Returns:
        Configured logger instance

    Example:
        from lp_tracker.config import LoggingConfig, setup_logging
        logger = setup_logging(LoggingConfig(log_file="", log_level="DEBUG"))
    """
    if log_config is None:
        log_config = config.logging

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_config.level)

    # Close before removing to release file handles on reload
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(log_config.log_format)

    handlers: List[logging.Handler] = []

    if log_config.log_file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(log_config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_config.log_file,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(log_config.level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if log_config.console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_config.level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for handler in handlers:
        logger.addHandler(handler)

    # Child loggers inherit handlers from parent
    for name in [
        f"{logger_name}.infra",
        f"{logger_name}.modules",
        f"{logger_name}.protocols",
    ]:
        logging.getLogger(name).setLevel(log_config.level)

    if log_config.log_file:
        logger.info(f"Logging initialized: file={log_config.log_file}, level={log_config.log_level}")

    return logger
