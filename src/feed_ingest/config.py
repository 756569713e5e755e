"""Configuration management."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from feed_ingest.adapters.fetchers.http_fetcher import DEFAULT_USER_AGENT
from feed_ingest.adapters.normalizers.fields import DEFAULT_PLACEHOLDER_TEMPLATE


@dataclass
class FetchConfig:
    """HTTP fetch settings."""
    timeout_seconds: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    max_concurrency: int = 5
    follow_redirects: bool = True


@dataclass
class CacheConfig:
    """Feed cache settings."""
    ttl_seconds: int = 1800
    enabled: bool = True


@dataclass
class PathsConfig:
    """Path settings."""
    data_dir: Path = Path("data")
    feeds_file: Path = Path("data/feeds.json")
    parsed_feeds_file: Path = Path("data/parsed-feeds.json")
    cache_dir: Path = Path("data/rss-cache")
    log_file: Path = Path("logs/feed_ingest.log")


@dataclass
class NormalizerConfig:
    """Normalization settings."""
    placeholder_cover_template: str = DEFAULT_PLACEHOLDER_TEMPLATE


@dataclass
class Settings:
    """Application settings."""

    log_level: str = "INFO"

    # Config sections
    fetch: FetchConfig = field(default_factory=FetchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)

    @property
    def feeds_file(self) -> Path:
        return self.paths.feeds_file

    @property
    def parsed_feeds_file(self) -> Path:
        return self.paths.parsed_feeds_file

    @property
    def cache_dir(self) -> Path:
        return self.paths.cache_dir


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _rebase_data_paths(paths: PathsConfig, data_dir: Path) -> None:
    """Move the data files that still sit under the old data dir."""
    for name in ("feeds_file", "parsed_feeds_file", "cache_dir"):
        current: Path = getattr(paths, name)
        try:
            relative = current.relative_to(paths.data_dir)
        except ValueError:
            continue
        setattr(paths, name, data_dir / relative)
    paths.data_dir = data_dir


def get_settings(config_path: Optional[Path] = None) -> Settings:
    """Get application settings from YAML config and environment."""
    if config_path is None:
        config_path = Path(os.getenv("FEED_INGEST_CONFIG", "config.yaml"))

    # Load YAML config
    config = load_config(config_path)

    settings = Settings()

    # Apply YAML config
    if "log_level" in config:
        settings.log_level = str(config["log_level"])

    if "fetch" in config:
        for key, value in config["fetch"].items():
            setattr(settings.fetch, key, value)

    if "cache" in config:
        for key, value in config["cache"].items():
            setattr(settings.cache, key, value)

    if "paths" in config:
        paths = dict(config["paths"])
        if "data_dir" in paths:
            _rebase_data_paths(settings.paths, Path(paths.pop("data_dir")))
        for key, value in paths.items():
            setattr(settings.paths, key, Path(value))

    if "normalizer" in config:
        for key, value in config["normalizer"].items():
            setattr(settings.normalizer, key, value)

    # Environment overrides
    data_dir = os.getenv("FEED_INGEST_DATA_DIR")
    if data_dir:
        _rebase_data_paths(settings.paths, Path(data_dir))

    timeout = os.getenv("FEED_INGEST_TIMEOUT")
    if timeout:
        settings.fetch.timeout_seconds = float(timeout)

    max_concurrency = os.getenv("FEED_INGEST_MAX_CONCURRENCY")
    if max_concurrency:
        settings.fetch.max_concurrency = int(max_concurrency)

    log_level = os.getenv("FEED_INGEST_LOG_LEVEL")
    if log_level:
        settings.log_level = log_level

    return settings
