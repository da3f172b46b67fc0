"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Cascading merge of system, user and project files
- Environment variable overrides
- Config caching with reload callbacks
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from herotree.config.paths import get_config_paths
from herotree.config.schema import (
    DEFAULT_BASE_URL,
    ApiConfig,
    Config,
    LoggingConfig,
    PollerConfig,
    TreeConfig,
)
from herotree.errors import ConfigError

_log = logging.getLogger("herotree.config")

_cached_config: Config | None = None

_reload_callbacks: list[Callable[[Config], None]] = []

_KNOWN_SECTIONS = {"api", "poller", "tree", "logging"}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Nested dicts merge key by key, lists and scalars are replaced, and a None
    in ``override`` never clears a value set in ``base``.
    """
    result = base.copy()
    for key, value in override.items():
        if value is None:
            continue
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge config dicts left to right (later ones win)."""
    result: dict[str, Any] = {}
    for config in configs:
        if config:
            result = deep_merge(result, config)
    return result


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping, returning an empty dict if missing or unreadable."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build a config dict from environment variables.

    HEROTREE_LOG sets the log file, HEROTREE_API_CALLS the poll budget.
    The API key is a secret and is not part of Config.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("HEROTREE_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    api_calls = os.environ.get("HEROTREE_API_CALLS")
    if api_calls:
        try:
            overrides.setdefault("poller", {})["api_calls"] = int(api_calls)
        except ValueError:
            _log.warning("Ignoring non-integer HEROTREE_API_CALLS=%r", api_calls)

    return overrides


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{name} must be an integer > 0, got {value!r}")
    return value


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged dict to the typed Config dataclass.

    Raises:
        ConfigError: If poller.api_calls is not a positive integer.
    """
    api_data = data.get("api") or {}
    api = ApiConfig(
        base_url=str(api_data.get("base_url", DEFAULT_BASE_URL)).rstrip("/"),
        timeout=float(api_data.get("timeout", 30.0)),
        user_agent=api_data.get("user_agent", "herotree"),
    )

    poller_data = data.get("poller") or {}
    poller = PollerConfig(
        enabled=bool(poller_data.get("enabled", True)),
        api_calls=_positive_int(poller_data.get("api_calls", 30), "poller.api_calls"),
        only_dirty=bool(poller_data.get("only_dirty", False)),
    )

    tree_data = data.get("tree") or {}
    tree = TreeConfig(authoritative_stage=tree_data.get("authoritative_stage"))

    log_data = data.get("logging") or {}
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(api=api, poller=poller, tree=tree, logging=logging_config, extra=extra)


def load_config(
    project_root: str | None = None,
    reload: bool = False,
    config_path: str | Path | None = None,
) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Explicit config file (config_path)
    3. Project config ($project_root/.herotree/config.yaml)
    4. User config
    5. System config

    Args:
        project_root: Project directory for project-level config.
        reload: Force reload even if cached.
        config_path: Extra config file merged over the standard ones.

    Returns:
        Merged Config object. Only the global config (no project_root, no
        config_path) is cached.
    """
    global _cached_config

    is_global = project_root is None and config_path is None
    if _cached_config is not None and not reload and is_global:
        return _cached_config

    paths = get_config_paths(project_root)
    if config_path is not None:
        paths.append(Path(config_path).expanduser())

    configs: list[dict[str, Any]] = []
    for path in paths:
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    if is_global:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Drop the cached config."""
    global _cached_config
    _cached_config = None


def reload_config(project_root: str | None = None) -> Config:
    """Reload config from files and notify registered callbacks."""
    config = load_config(project_root=project_root, reload=True)

    for callback in list(_reload_callbacks):
        try:
            callback(config)
        except Exception as e:
            _log.warning("Config reload callback error: %s", e)

    return config


def on_config_reload(callback: Callable[[Config], None]) -> Callable[[], None]:
    """Register a callback for config reloads.

    Returns:
        A function that unregisters the callback.
    """
    _reload_callbacks.append(callback)

    def unregister() -> None:
        if callback in _reload_callbacks:
            _reload_callbacks.remove(callback)

    return unregister
