"""Configuration schema dataclasses for herotree.

All fields are optional so that partial configs from several files can be
merged together before conversion.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_BASE_URL = "https://api.heroku.com"


@dataclass
class ApiConfig:
    """Remote API connection settings.

    The API key is deliberately absent: it is a secret and is fetched through
    ``fetch_secret("HEROKU_API_KEY")``.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0  # Seconds per request
    user_agent: str = "herotree"


@dataclass
class PollerConfig:
    """Background refresh configuration.

    Example config.yaml:
        poller:
          api_calls: 30      # refresh cycles per minute
          only_dirty: true   # skip roots nobody marked stale
    """

    enabled: bool = True
    api_calls: int = 30  # Requests-per-minute budget, must be > 0
    only_dirty: bool = False


@dataclass
class TreeConfig:
    """Tree presentation policy."""

    # Stage whose rollup colours a pipeline when it has apps (e.g. "production")
    authoritative_stage: str | None = None


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    api: ApiConfig = field(default_factory=ApiConfig)
    poller: PollerConfig = field(default_factory=PollerConfig)
    tree: TreeConfig = field(default_factory=TreeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections are kept here untouched
    extra: dict[str, Any] = field(default_factory=dict)
