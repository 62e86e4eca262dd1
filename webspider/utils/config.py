"""
Configuration management for the web crawler system.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml


class ConfigError(ValueError):
    """Raised when configuration values are invalid."""
    pass


def load_pattern(item: Any) -> Any:
    """
    Convert a YAML pattern entry into a rule pattern.

    A mapping with a `regex` key becomes a compiled regular expression, a
    list becomes a set-membership pattern, anything else is a literal.
    """
    if isinstance(item, Mapping):
        if 'regex' not in item:
            raise ConfigError(f"Pattern mapping needs a 'regex' key: {item!r}")
        try:
            return re.compile(item['regex'])
        except re.error as e:
            raise ConfigError(f"Invalid regex {item['regex']!r}: {e}") from e

    if isinstance(item, (list, tuple, set)):
        return frozenset(item)

    return item


def load_patterns(items: Optional[List[Any]]) -> List[Any]:
    return [load_pattern(item) for item in (items or [])]


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_urls: List[str] = field(default_factory=list)
    user_agent: Optional[str] = "webspider/1.0.0"
    referer: Optional[str] = None
    delay: float = 0.0
    schemes: List[str] = field(default_factory=lambda: ['http', 'https'])
    hosts: List[Any] = field(default_factory=list)
    ignore_hosts: List[Any] = field(default_factory=list)
    ports: List[Any] = field(default_factory=list)
    ignore_ports: List[Any] = field(default_factory=list)
    links: List[Any] = field(default_factory=list)
    ignore_links: List[Any] = field(default_factory=list)
    exts: List[Any] = field(default_factory=list)
    ignore_exts: List[Any] = field(default_factory=list)
    queue: List[str] = field(default_factory=list)
    history: List[str] = field(default_factory=list)
    request_timeout: float = 30
    verify_ssl: bool = True
    concurrency: int = 1

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CrawlerConfig':
        data = dict(data)
        for key in ('hosts', 'ignore_hosts', 'ports', 'ignore_ports',
                    'links', 'ignore_links', 'exts', 'ignore_exts'):
            if key in data:
                data[key] = load_patterns(data[key])
        return cls(**data)


@dataclass
class ProxyConfig:
    """Configuration for the outbound proxy."""
    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/crawler.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'Config':
        data = data or {}
        try:
            config = cls(
                crawler=CrawlerConfig.from_dict(data.get('crawler') or {}),
                proxy=ProxyConfig(**(data.get('proxy') or {})),
                logging=LoggingConfig(**(data.get('logging') or {})),
                monitoring=MonitoringConfig(**(data.get('monitoring') or {}))
            )
        except TypeError as e:
            raise ConfigError(f"Unknown configuration key: {e}") from e

        validate_config(config)
        return config


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Config):
    """Validate configuration values."""
    crawler = config.crawler

    for name in ('delay', 'request_timeout'):
        if not _is_number(getattr(crawler, name)):
            raise ConfigError(f"{name} must be a number, got {getattr(crawler, name)!r}")

    if not isinstance(crawler.concurrency, int) or isinstance(crawler.concurrency, bool):
        raise ConfigError(f"concurrency must be an integer, got {crawler.concurrency!r}")

    if crawler.delay < 0:
        raise ConfigError("delay must be non-negative")

    if crawler.request_timeout <= 0:
        raise ConfigError("request_timeout must be positive")

    if crawler.concurrency < 1:
        raise ConfigError("concurrency must be at least 1")

    if config.proxy.port is not None:
        if not config.proxy.host:
            raise ConfigError("proxy port given without proxy host")
        if not isinstance(config.proxy.port, int) or isinstance(config.proxy.port, bool):
            raise ConfigError(f"proxy port must be an integer, got {config.proxy.port!r}")

    if not isinstance(config.logging.level, str):
        raise ConfigError(f"log level must be a name, got {config.logging.level!r}")

    if not isinstance(logging.getLevelName(config.logging.level.upper()), int):
        raise ConfigError(f"Unknown log level: {config.logging.level}")


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file)

        self._config = Config.from_dict(config_data)
        logging.getLogger(__name__).info("Configuration validation passed")
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()

