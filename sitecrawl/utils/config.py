"""
Configuration management for the crawler.

Settings come from an optional YAML file, then environment variables
(MAX_CONCURRENT_REQUESTS, MAX_DEPTH, STATE_FILE_PATH), then command-line
flags, each layer overriding the previous one.
"""

import os
import yaml
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..crawler.canonical import canonicalize, hostname_of
from ..errors import ConfigError


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_urls: List[str] = field(default_factory=list)
    max_depth: int = 10
    max_concurrent_requests: int = 5
    request_timeout: float = 30
    fetch_timeout: float = 60
    politeness_delay: float = 0.0
    retry_attempts: int = 0
    user_agent: str = "sitecrawl/1.0"
    use_sitemap: bool = False
    use_canonical_link: bool = False


@dataclass
class StorageConfig:
    """Configuration for visited-state persistence."""
    state_file: str = "output/crawled_urls.csv"
    write_ahead: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/crawler.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Environment variable -> (section, key, type)
ENV_OVERRIDES = {
    'MAX_CONCURRENT_REQUESTS': ('crawler', 'max_concurrent_requests', int),
    'MAX_DEPTH': ('crawler', 'max_depth', int),
    'STATE_FILE_PATH': ('storage', 'state_file', str),
}


def _build_section(cls, data: Optional[Mapping[str, Any]], name: str):
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ConfigError(f"Section '{name}' must be a mapping")

    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown keys in section '{name}': {', '.join(sorted(unknown))}")
    return cls(**data)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None):
        self.config_path = Path(config_path) if config_path else None
        self.environ = os.environ if environ is None else environ
        self._config: Optional[Config] = None

    def load_config(self, overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
        """
        Load configuration from the YAML file, environment and overrides.

        Args:
            overrides: Per-section values that win over everything else,
                e.g. {'crawler': {'max_depth': 2}}. None values are ignored.
        """
        config_data: Dict[str, Any] = {}

        if self.config_path is not None:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            try:
                with open(self.config_path, 'r') as file:
                    config_data = yaml.safe_load(file) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

            if not isinstance(config_data, dict):
                raise ConfigError(f"{self.config_path} must contain a mapping")

        try:
            self._config = Config(
                crawler=_build_section(CrawlerConfig, config_data.get('crawler'), 'crawler'),
                storage=_build_section(StorageConfig, config_data.get('storage'), 'storage'),
                logging=_build_section(LoggingConfig, config_data.get('logging'), 'logging'),
            )
        except TypeError as e:
            raise ConfigError(str(e)) from e

        self._apply_environment()
        if overrides:
            self._apply_overrides(overrides)

        self._validate_config()
        return self._config

    def _apply_environment(self):
        for var, (section, key, cast) in ENV_OVERRIDES.items():
            raw = self.environ.get(var)
            if raw is None or raw == '':
                continue
            try:
                value = cast(raw)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {var}: {raw!r}") from e
            setattr(getattr(self._config, section), key, value)

    def _apply_overrides(self, overrides: Dict[str, Dict[str, Any]]):
        for section, values in overrides.items():
            target = getattr(self._config, section, None)
            if target is None:
                raise ConfigError(f"Unknown configuration section: {section}")
            for key, value in values.items():
                if value is None:
                    continue
                if not hasattr(target, key):
                    raise ConfigError(f"Unknown option {section}.{key}")
                setattr(target, key, value)

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ConfigError("Configuration not loaded")

        crawler = self._config.crawler

        if crawler.max_depth < 0:
            raise ConfigError("max_depth must be non-negative")

        if crawler.max_concurrent_requests < 1:
            raise ConfigError("max_concurrent_requests must be at least 1")

        if crawler.request_timeout <= 0 or crawler.fetch_timeout <= 0:
            raise ConfigError("request_timeout and fetch_timeout must be positive")

        if crawler.politeness_delay < 0:
            raise ConfigError("politeness_delay must be non-negative")

        if crawler.retry_attempts < 0:
            raise ConfigError("retry_attempts must be non-negative")

        if not self._config.storage.state_file:
            raise ConfigError("state_file must be set")

        hosts = set()
        for url in crawler.seed_urls:
            if canonicalize(url) is None:
                raise ConfigError(f"Invalid seed URL: {url}")
            hosts.add(hostname_of(url))
        if len(hosts) > 1:
            raise ConfigError(f"All seed URLs must share one host, got: {', '.join(sorted(hosts))}")

        logging.getLogger(__name__).debug("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ConfigError("Configuration not loaded. Call load_config() first.")
        return self._config


def load_config(config_path: Optional[str] = None,
                overrides: Optional[Dict[str, Dict[str, Any]]] = None,
                environ: Optional[Mapping[str, str]] = None) -> Config:
    """Load configuration from file, environment and overrides."""
    return ConfigManager(config_path, environ=environ).load_config(overrides)
