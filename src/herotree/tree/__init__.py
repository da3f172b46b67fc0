"""Resource tree: node model, reconciliation, state rollups and the cache."""

from herotree.tree.cache import ChangeListener, ResourceTree
from herotree.tree.nodes import (
    CREATE_APP_COMMAND,
    Addon,
    Application,
    Collapsible,
    CommandNode,
    GroupKind,
    GroupNode,
    Node,
    Pipeline,
    Process,
    RemoteNode,
    Stage,
    TreeItem,
)
from herotree.tree.reconcile import ReconcilePlan, apply_plan, plan_reconcile
from herotree.tree.state import (
    ADDON_STATE_RANKING,
    ADDON_TO_PROCESS_STATE,
    PROCESS_STATE_RANKING,
    AddonState,
    ProcessState,
    addon_display_state,
    addon_rollup,
    best_state,
    process_rollup,
    staged_rollup,
    state_color,
)

__all__ = [
    # Cache
    "ResourceTree",
    "ChangeListener",
    # Nodes
    "Node",
    "RemoteNode",
    "Application",
    "Process",
    "Addon",
    "Pipeline",
    "GroupNode",
    "GroupKind",
    "CommandNode",
    "CREATE_APP_COMMAND",
    "Stage",
    "TreeItem",
    "Collapsible",
    # Reconciliation
    "ReconcilePlan",
    "plan_reconcile",
    "apply_plan",
    # State
    "ProcessState",
    "AddonState",
    "PROCESS_STATE_RANKING",
    "ADDON_STATE_RANKING",
    "ADDON_TO_PROCESS_STATE",
    "best_state",
    "process_rollup",
    "addon_rollup",
    "addon_display_state",
    "staged_rollup",
    "state_color",
]
