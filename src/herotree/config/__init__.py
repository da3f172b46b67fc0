"""Configuration management for herotree.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/herotree/ or %PROGRAMDATA%)
- User-level config (~/.config/herotree/, ~/.herotree/ or %APPDATA%)
- Project-level config ($project_root/.herotree/)
- Environment variable overrides (highest priority)

Example usage:
    from herotree.config import load_config

    config = load_config(project_root="/path/to/project")
    print(config.poller.api_calls)
"""

from herotree.config.loader import (
    deep_merge,
    get_config,
    load_config,
    merge_configs,
    on_config_reload,
    reload_config,
    reset_config,
)
from herotree.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from herotree.config.schema import (
    ApiConfig,
    Config,
    LoggingConfig,
    PollerConfig,
    TreeConfig,
)
from herotree.config.secrets import clear_secret_cache, fetch_secret, get_api_key
from herotree.config.watcher import ConfigWatcher

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    "on_config_reload",
    "deep_merge",
    "merge_configs",
    # Schema types
    "ApiConfig",
    "LoggingConfig",
    "PollerConfig",
    "TreeConfig",
    # Secrets
    "fetch_secret",
    "get_api_key",
    "clear_secret_cache",
    # Paths
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
    # Watcher
    "ConfigWatcher",
]
