"""herotree: a lazily refreshed cache of Heroku resources shaped as a tree."""

__version__ = "0.1.0"

# Public API
from herotree.client import HerokuClient, ResourceClient
from herotree.config import Config, get_config, load_config
from herotree.errors import (
    ConfigError,
    DuplicateIdentityError,
    HerotreeError,
    RateLimitedError,
    RemoteAPIError,
)
from herotree.poller import Poller, refresh_interval
from herotree.tree import (
    Addon,
    AddonState,
    Application,
    GroupNode,
    Node,
    Pipeline,
    Process,
    ProcessState,
    ResourceTree,
    Stage,
    TreeItem,
)

__all__ = [
    # Main entry points
    "ResourceTree",
    "Poller",
    "refresh_interval",
    # Client
    "ResourceClient",
    "HerokuClient",
    # Nodes
    "Node",
    "Application",
    "Process",
    "Addon",
    "Pipeline",
    "GroupNode",
    "Stage",
    "TreeItem",
    "ProcessState",
    "AddonState",
    # Config
    "Config",
    "load_config",
    "get_config",
    # Errors
    "HerotreeError",
    "ConfigError",
    "RemoteAPIError",
    "RateLimitedError",
    "DuplicateIdentityError",
]
