"""Node types of the resource tree.

The hierarchy mirrors the remote model:

    Application                 (RemoteNode, remote app id)
    ├── GroupNode[PROCESSES]    "Dynos"
    │   └── Process             (RemoteNode, remote dyno id)
    └── GroupNode[ADDONS]       "Add-ons"
        └── Addon               (RemoteNode, remote add-on id)

    Pipeline                    (RemoteNode, remote pipeline id)
    └── GroupNode[STAGE]        one per non-empty stage
        └── Application

    CommandNode                 synthetic "create app" entry at the root

Parents hold their children; a child only knows its ``parent_id`` and
resolves it through the owning ResourceTree. Grouping nodes own no remote
state: their children, freshness and refresh all come from ``owner_id``.

Every node carries a ``version`` that is bumped when its domain data changes
(including changes reported by descendants). The display projection and the
aggregate ``state`` are memoized against that version.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from herotree.client.records import (
    AddonRecord,
    AppRecord,
    CouplingRecord,
    DynoRecord,
    PipelineRecord,
    parse_records,
)
from herotree.logging import VERBOSE, get_logger
from herotree.tree.reconcile import apply_plan, plan_reconcile
from herotree.tree.state import (
    AddonState,
    ProcessState,
    addon_display_state,
    addon_rollup,
    process_rollup,
    staged_rollup,
    state_color,
)

if TYPE_CHECKING:
    from herotree.tree.cache import ResourceTree

log = get_logger("tree")


class Collapsible(Enum):
    """Initial expansion state of a tree row."""

    NONE = "none"
    COLLAPSED = "collapsed"
    EXPANDED = "expanded"


@dataclass(frozen=True)
class TreeItem:
    """Display projection of a node, as consumed by a tree view.

    Attributes:
        label: Row text.
        context_value: Kind tag the host UI keys menus on (e.g., "dynoUp").
        collapsible: Whether the row can expand.
        tooltip: Hover text.
        description: Secondary, dimmed text.
        icon: Icon id.
        color: Theme colour id used to tint the icon.
        command: Command id run when the row is activated.
    """

    label: str
    context_value: str
    collapsible: Collapsible = Collapsible.NONE
    tooltip: str | None = None
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    command: str | None = None


class Stage(Enum):
    """Pipeline stage vocabulary, in display order."""

    TEST = "test"
    REVIEW = "review"
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

    def __str__(self) -> str:
        return self.value

    @property
    def title(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: str | None) -> Stage | None:
        if value is None:
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return None


class GroupKind(Enum):
    """What a grouping node groups."""

    PROCESSES = "processes"
    ADDONS = "addons"
    STAGE = "stage"


# =============================================================================
# Base classes
# =============================================================================


@dataclass(eq=False, kw_only=True)
class Node(ABC):
    """Base class for every entry of the resource tree.

    Nodes compare by identity: reconciliation updates retained nodes in place
    so that references held elsewhere (selection, expansion) stay valid.

    Attributes:
        node_id: Key of the node in its tree, unique across the tree.
        name: Display name; unique among siblings, not globally.
        parent_id: node_id of the parent, None for roots.
        dirty: Cached data may be stale and must be refreshed before use.
        version: Bumped whenever the node's domain data changes.
    """

    node_id: str
    name: str
    parent_id: str | None = None
    dirty: bool = True
    version: int = 0

    _tree: ResourceTree | None = field(default=None, init=False, repr=False)
    _item_cache: tuple[int, TreeItem] | None = field(default=None, init=False, repr=False)

    @property
    @abstractmethod
    def node_type(self) -> str:
        """Return the node type identifier."""
        ...

    @abstractmethod
    def cached_children(self) -> list[Node]:
        """Children as currently cached. Never fetches."""
        ...

    @abstractmethod
    def _project(self) -> TreeItem:
        """Build the display projection from current data."""
        ...

    @abstractmethod
    async def refresh(self) -> None:
        """Re-fetch this node's remote data and reconcile its children."""
        ...

    @property
    def parent(self) -> Node | None:
        if self.parent_id is None or self._tree is None:
            return None
        return self._tree.get_node(self.parent_id)

    def _require_tree(self) -> ResourceTree:
        if self._tree is None:
            raise RuntimeError(f"Node {self.node_id} is not attached to a tree")
        return self._tree

    def iter_subtree(self) -> Iterator[Node]:
        """Yield this node and every cached descendant, depth first."""
        yield self
        for child in self.cached_children():
            yield from child.iter_subtree()

    async def ensure_fresh(self) -> None:
        """Refresh this node if (and only if) it is dirty."""
        if self.dirty:
            await self.refresh()

    async def children(self) -> list[Node]:
        """Children, refreshed first if this node is dirty."""
        await self.ensure_fresh()
        return self.cached_children()

    def tree_item(self) -> TreeItem:
        """Display projection, recomputed only when ``version`` moved."""
        cached = self._item_cache
        if cached is not None and cached[0] == self.version:
            return cached[1]
        item = self._project()
        self._item_cache = (self.version, item)
        return item

    # -------------------------------------------------------------------------
    # Dirtiness
    # -------------------------------------------------------------------------

    def mark_dirty(self) -> None:
        """Mark this node, its ancestors and its descendants dirty.

        No-op once the node and its whole cached subtree are dirty. A dirty
        node can still hold clean children after a partial refresh, so the
        guard looks at the subtree and not just at ``self.dirty``.
        """
        subtree = list(self.iter_subtree())
        if all(node.dirty for node in subtree):
            return
        for node in subtree:
            node.dirty = True

        parent = self.parent
        if parent is not None:
            parent.mark_dirty()

    def _mark_subtree_clean(self) -> None:
        for node in self.iter_subtree():
            node.dirty = False

    def _can_settle(self) -> bool:
        """Whether clean children are enough to clear this node.

        Nodes holding remote data of their own that a child refresh does not
        re-fetch override this.
        """
        return True

    def _settle_ancestors(self) -> None:
        """Clear dirty ancestors whose children are now all clean."""
        parent = self.parent
        while parent is not None and parent.dirty:
            if not parent._can_settle():
                break
            if any(child.dirty for child in parent.cached_children()):
                break
            parent.dirty = False
            parent = parent.parent

    # -------------------------------------------------------------------------
    # Change propagation
    # -------------------------------------------------------------------------

    def _mark_changed(self, description: str = "") -> None:
        """Bump the version and tell ancestors their rollups moved."""
        self.version += 1
        if description:
            log.log(VERBOSE, "%s changed: %s", self.node_id, description)
        parent = self.parent
        if parent is not None:
            parent.on_child_changed(self)

    def on_child_changed(self, child: Node) -> None:
        """Handle a change reported by a child. Default: bump and propagate."""
        self._mark_changed()


@dataclass(eq=False, kw_only=True)
class RemoteNode(Node):
    """A node backed by a remote record.

    Attributes:
        remote_id: Identity assigned by the remote system.
    """

    remote_id: str

    @abstractmethod
    def update_from_record(self, record: Any) -> bool:
        """Copy attributes from a fresh record. Returns True if anything changed."""
        ...


# =============================================================================
# Leaves
# =============================================================================


@dataclass(eq=False, kw_only=True)
class Process(RemoteNode):
    """A dyno of an application."""

    state: ProcessState = ProcessState.DOWN
    command: str = ""
    process_type: str | None = None
    size: str | None = None
    attach_url: str | None = None

    @property
    def node_type(self) -> str:
        return "dyno"

    @classmethod
    def from_record(cls, record: DynoRecord, parent_id: str | None = None) -> Process:
        return cls(
            node_id=f"dyno:{record.id}",
            remote_id=record.id,
            name=record.name,
            parent_id=parent_id,
            state=ProcessState.parse(record.state),
            command=record.command,
            process_type=record.type,
            size=record.size,
            attach_url=record.attach_url,
        )

    def update_from_record(self, record: DynoRecord) -> bool:
        values = {
            "name": record.name,
            "state": ProcessState.parse(record.state),
            "command": record.command,
            "process_type": record.type,
            "size": record.size,
            "attach_url": record.attach_url,
        }
        changed = [key for key, value in values.items() if getattr(self, key) != value]
        for key in changed:
            setattr(self, key, values[key])
        if changed:
            self.version += 1
        return bool(changed)

    def cached_children(self) -> list[Node]:
        return []

    async def refresh(self) -> None:
        # Dynos are fetched as a list by their application
        owner = self.parent.parent if self.parent is not None else None
        if owner is not None:
            await owner.refresh()

    def _project(self) -> TreeItem:
        return TreeItem(
            label=self.name,
            context_value="dynoDown" if self.state is ProcessState.DOWN else "dynoUp",
            tooltip=f"Command: {self.command}",
            description=self.state.value,
            icon="server-process",
            color=state_color(self.state),
        )


@dataclass(eq=False, kw_only=True)
class Addon(RemoteNode):
    """An add-on attached to an application."""

    state: AddonState = AddonState.PROVISIONED
    service: str | None = None
    plan: str | None = None
    config_vars: list[str] = field(default_factory=list)

    @property
    def node_type(self) -> str:
        return "addon"

    @classmethod
    def from_record(cls, record: AddonRecord, parent_id: str | None = None) -> Addon:
        addon = cls(
            node_id=f"addon:{record.id}",
            remote_id=record.id,
            name=record.name,
            parent_id=parent_id,
        )
        addon.update_from_record(record)
        addon.version = 0
        return addon

    def update_from_record(self, record: AddonRecord) -> bool:
        values = {
            "name": record.name,
            "state": AddonState.parse(record.state),
            "service": record.addon_service.name if record.addon_service else None,
            "plan": record.plan.name if record.plan else None,
            "config_vars": list(record.config_vars),
        }
        changed = [key for key, value in values.items() if getattr(self, key) != value]
        for key in changed:
            setattr(self, key, values[key])
        if changed:
            self.version += 1
        return bool(changed)

    def cached_children(self) -> list[Node]:
        return []

    async def refresh(self) -> None:
        owner = self.parent.parent if self.parent is not None else None
        if owner is not None:
            await owner.refresh()

    def _project(self) -> TreeItem:
        return TreeItem(
            label=self.name,
            context_value="addon",
            tooltip=f"{self.service or 'add-on'}: {self.state.value}",
            description=self.plan,
            icon="extensions",
            color=state_color(addon_display_state(self.state)),
        )


# =============================================================================
# Grouping nodes
# =============================================================================


_GROUP_LABELS = {
    GroupKind.PROCESSES: ("Dynos", "dynoBranch", "server-process"),
    GroupKind.ADDONS: ("Add-ons", "addonBranch", "empty-window"),
    GroupKind.STAGE: ("", "pipelineStage", "layers"),
}


@dataclass(eq=False, kw_only=True)
class GroupNode(Node):
    """Synthetic node that groups children of its owner for display.

    Children, state and freshness are read from the owner (an Application
    for PROCESSES/ADDONS, a Pipeline for STAGE); refreshing a group refreshes
    its owner.
    """

    kind: GroupKind
    owner_id: str
    stage: Stage | None = None

    @property
    def node_type(self) -> str:
        return f"group:{self.kind.value}"

    def owner(self) -> Application | Pipeline | None:
        if self._tree is None:
            return None
        return self._tree.get_node(self.owner_id)  # type: ignore[return-value]

    def cached_children(self) -> list[Node]:
        owner = self.owner()
        if owner is None:
            return []
        match self.kind:
            case GroupKind.PROCESSES:
                return list(owner.processes)  # type: ignore[union-attr]
            case GroupKind.ADDONS:
                return list(owner.addons)  # type: ignore[union-attr]
            case GroupKind.STAGE:
                return list(owner.stage_apps.get(self.stage, []))  # type: ignore[union-attr, arg-type]
        return []

    async def refresh(self) -> None:
        owner = self.owner()
        if owner is not None:
            await owner.refresh()

    async def ensure_fresh(self) -> None:
        owner = self.owner()
        if owner is not None:
            await owner.ensure_fresh()

    @property
    def state(self) -> ProcessState:
        owner = self.owner()
        if owner is None:
            return ProcessState.DOWN
        match self.kind:
            case GroupKind.PROCESSES:
                return owner.state
            case GroupKind.ADDONS:
                return addon_display_state(owner.addon_state)  # type: ignore[union-attr]
            case GroupKind.STAGE:
                return process_rollup(app.state for app in self.cached_children())  # type: ignore[attr-defined]
        return ProcessState.DOWN

    def tree_item(self) -> TreeItem:
        # Depends on the owner's data, which has its own version
        return self._project()

    def _project(self) -> TreeItem:
        label, context_value, icon = _GROUP_LABELS[self.kind]
        description = None
        if self.kind is GroupKind.STAGE and self.stage is not None:
            label = self.stage.title
            count = len(self.cached_children())
            description = f"{count} app" if count == 1 else f"{count} apps"
        return TreeItem(
            label=label,
            context_value=context_value,
            collapsible=Collapsible.COLLAPSED,
            description=description,
            icon=icon,
            color=state_color(self.state),
        )


# =============================================================================
# Applications
# =============================================================================


@dataclass(eq=False, kw_only=True)
class Application(RemoteNode):
    """An application with its dynos and add-ons."""

    web_url: str | None = None
    git_url: str | None = None
    processes: list[Process] = field(default_factory=list)
    addons: list[Addon] = field(default_factory=list)

    process_branch: GroupNode = field(init=False, repr=False)
    addon_branch: GroupNode = field(init=False, repr=False)
    _state_cache: tuple[int, ProcessState] | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.process_branch = GroupNode(
            node_id=f"{self.node_id}/processes",
            name="Dynos",
            parent_id=self.node_id,
            kind=GroupKind.PROCESSES,
            owner_id=self.node_id,
        )
        self.addon_branch = GroupNode(
            node_id=f"{self.node_id}/addons",
            name="Add-ons",
            parent_id=self.node_id,
            kind=GroupKind.ADDONS,
            owner_id=self.node_id,
        )

    @property
    def node_type(self) -> str:
        return "app"

    @classmethod
    def from_record(cls, record: AppRecord) -> Application:
        return cls(
            node_id=f"app:{record.id}",
            remote_id=record.id,
            name=record.name,
            web_url=record.web_url,
            git_url=record.git_url,
        )

    def update_from_record(self, record: AppRecord) -> bool:
        values = {"name": record.name, "web_url": record.web_url, "git_url": record.git_url}
        changed = [key for key, value in values.items() if getattr(self, key) != value]
        for key in changed:
            setattr(self, key, values[key])
        if changed:
            self._mark_changed(f"app attributes {', '.join(changed)}")
        return bool(changed)

    def cached_children(self) -> list[Node]:
        return [self.process_branch, self.addon_branch]

    @property
    def state(self) -> ProcessState:
        """Rollup of dyno states, memoized until the app's version moves."""
        cached = self._state_cache
        if cached is not None and cached[0] == self.version:
            return cached[1]
        state = process_rollup(process.state for process in self.processes)
        self._state_cache = (self.version, state)
        return state

    @property
    def addon_state(self) -> AddonState:
        return addon_rollup(addon.state for addon in self.addons)

    async def refresh(self) -> None:
        """Fetch dynos and add-ons together, then reconcile both lists.

        A collection that fetched successfully is committed even if the
        other failed; the app then stays dirty and the first error is raised.
        """
        tree = self._require_tree()
        results = await asyncio.gather(
            tree.client.list("dynos", self.remote_id),
            tree.client.list("addons", self.remote_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        dynos, addons = results
        errors: list[Exception] = []
        changed = False

        if isinstance(dynos, Exception):
            errors.append(dynos)
        else:
            changed |= await self._reconcile_processes(parse_records(DynoRecord, dynos))

        if isinstance(addons, Exception):
            errors.append(addons)
        else:
            changed |= await self._reconcile_addons(parse_records(AddonRecord, addons))

        if changed:
            self._mark_changed("dynos/add-ons reconciled")

        if errors:
            log.warning("Refresh of app %s incomplete: %s", self.name, errors[0])
            raise errors[0]

        self._mark_subtree_clean()
        self._settle_ancestors()
        log.debug("Refreshed app %s (%d dynos, %d add-ons, state=%s)",
                  self.name, len(self.processes), len(self.addons), self.state)

    async def _reconcile_processes(self, records: list[DynoRecord]) -> bool:
        tree = self._require_tree()
        plan = plan_reconcile(self.processes, records, collection=f"dynos of {self.name}")
        updated: list[bool] = []

        def create(record: DynoRecord) -> Process:
            process = Process.from_record(record, parent_id=self.process_branch.node_id)
            tree._adopt(process)
            return process

        def update(process: Process, record: DynoRecord) -> None:
            updated.append(process.update_from_record(record))

        await apply_plan(self.processes, plan, create=create, update=update, remove=tree._forget)
        return not plan.unchanged or any(updated)

    async def _reconcile_addons(self, records: list[AddonRecord]) -> bool:
        tree = self._require_tree()
        plan = plan_reconcile(self.addons, records, collection=f"add-ons of {self.name}")
        updated: list[bool] = []

        def create(record: AddonRecord) -> Addon:
            addon = Addon.from_record(record, parent_id=self.addon_branch.node_id)
            tree._adopt(addon)
            return addon

        def update(addon: Addon, record: AddonRecord) -> None:
            updated.append(addon.update_from_record(record))

        await apply_plan(self.addons, plan, create=create, update=update, remove=tree._forget)
        return not plan.unchanged or any(updated)

    def _project(self) -> TreeItem:
        state = self.state
        return TreeItem(
            label=self.name,
            context_value="app",
            collapsible=Collapsible.COLLAPSED,
            tooltip=f"State: {state.value}",
            icon=f"heroku-dyno-{state.value}",
            color=state_color(state),
        )


# =============================================================================
# Pipelines
# =============================================================================


def stage_node_id(pipeline_name: str, stage: Stage) -> str:
    return f"stage:{pipeline_name}:{stage.value}"


@dataclass(eq=False, kw_only=True)
class Pipeline(RemoteNode):
    """A deployment pipeline and the applications coupled to its stages.

    Attributes:
        stage_apps: Applications per stage, in coupling order. Only
            non-empty stages are present.
        stage_nodes: One GroupNode per key of ``stage_apps``.
    """

    stage_apps: dict[Stage, list[Application]] = field(default_factory=dict)
    stage_nodes: dict[Stage, GroupNode] = field(default_factory=dict)

    _state_cache: tuple[int, Stage | None, ProcessState] | None = field(
        default=None, init=False, repr=False
    )
    # Set when couplings were fetched and claimed but apps not yet refreshed
    _couplings_fresh: bool = field(default=False, init=False, repr=False)

    @property
    def node_type(self) -> str:
        return "pipeline"

    @classmethod
    def from_record(cls, record: PipelineRecord) -> Pipeline:
        return cls(node_id=f"pipeline:{record.id}", remote_id=record.id, name=record.name)

    def update_from_record(self, record: PipelineRecord) -> bool:
        if record.name == self.name:
            return False
        self.name = record.name
        self._rekey_stages()
        self._mark_changed("renamed")
        return True

    def cached_children(self) -> list[Node]:
        return [self.stage_nodes[stage] for stage in Stage if stage in self.stage_nodes]

    def applications(self) -> list[Application]:
        """Every coupled application, in stage order."""
        return [app for stage in Stage for app in self.stage_apps.get(stage, [])]

    @property
    def authoritative_stage(self) -> Stage | None:
        if self._tree is None:
            return None
        return self._tree.authoritative_stage

    @property
    def state(self) -> ProcessState:
        """Rollup over all stages, or over the authoritative stage if it has apps."""
        authoritative = self.authoritative_stage
        cached = self._state_cache
        if cached is not None and cached[0] == self.version and cached[1] is authoritative:
            return cached[2]
        per_stage = {
            stage: [app.state for app in apps] for stage, apps in self.stage_apps.items()
        }
        state = staged_rollup(per_stage, authoritative)
        self._state_cache = (self.version, authoritative, state)
        return state

    def claim(self, couplings: list[CouplingRecord], pool: dict[str, Application]) -> None:
        """Rebuild the stage mapping from couplings, taking apps out of ``pool``.

        Claiming pops the app from ``pool`` so a later pipeline cannot take
        it. Couplings whose app is not in the pool (claimed earlier, or not
        fetched yet) and couplings with an unknown stage are dropped.
        """
        tree = self._require_tree()
        claimed: dict[Stage, list[Application]] = {}

        for coupling in couplings:
            stage = Stage.parse(coupling.stage)
            if stage is None:
                log.warning("Pipeline %s: ignoring coupling %s with unknown stage %r",
                            self.name, coupling.id, coupling.stage)
                continue
            app = pool.pop(coupling.app.id, None)
            if app is None:
                log.info(
                    "Pipeline %s: dropping coupling of app %s to %s "
                    "(already claimed or not fetched)",
                    self.name, coupling.app.name or coupling.app.id, stage,
                )
                continue
            claimed.setdefault(stage, []).append(app)

        for stage in list(self.stage_nodes):
            if stage not in claimed:
                tree._unregister(self.stage_nodes.pop(stage))

        previous = self.applications()
        self.stage_apps = {stage: claimed[stage] for stage in Stage if stage in claimed}
        for stage, apps in self.stage_apps.items():
            group = self.stage_nodes.get(stage)
            if group is None:
                group = GroupNode(
                    node_id=stage_node_id(self.name, stage),
                    name=stage.title,
                    parent_id=self.node_id,
                    kind=GroupKind.STAGE,
                    owner_id=self.node_id,
                    stage=stage,
                )
                self.stage_nodes[stage] = group
                tree._register(group)
            for app in apps:
                app.parent_id = group.node_id

        # A dirty pipeline holds no clean descendants, and a dirty
        # (unfetched) claimed app makes the pipeline dirty
        stale = self.dirty or any(app.dirty for app in self.applications())
        for node in self.iter_subtree():
            if stale:
                node.dirty = True
            elif isinstance(node, GroupNode) and node.owner_id == self.node_id:
                node.dirty = False

        self._couplings_fresh = True
        if previous != self.applications():
            self._mark_changed("couplings reconciled")

    def release(self) -> list[Application]:
        """Drop every stage and return the apps this pipeline held."""
        tree = self._tree
        apps = self.applications()
        for group in self.stage_nodes.values():
            if tree is not None:
                tree._unregister(group)
        self.stage_nodes = {}
        self.stage_apps = {}
        for app in apps:
            app.parent_id = None
        return apps

    def detach(self, app: Application) -> bool:
        """Remove one app from its stage. Returns True if it was coupled here."""
        for stage, apps in list(self.stage_apps.items()):
            if app in apps:
                apps.remove(app)
                if not apps:
                    del self.stage_apps[stage]
                    group = self.stage_nodes.pop(stage)
                    if self._tree is not None:
                        self._tree._unregister(group)
                app.parent_id = None
                self._mark_changed(f"detached {app.name}")
                return True
        return False

    def _rekey_stages(self) -> None:
        tree = self._tree
        for stage, group in self.stage_nodes.items():
            if tree is not None:
                tree._unregister(group)
            group.node_id = stage_node_id(self.name, stage)
            if tree is not None:
                tree._register(group)
            for app in self.stage_apps.get(stage, []):
                app.parent_id = group.node_id

    async def fetch_couplings(self) -> list[CouplingRecord]:
        tree = self._require_tree()
        records = await tree.client.list("pipeline-couplings", self.remote_id)
        return parse_records(CouplingRecord, records)

    @property
    def needs_couplings(self) -> bool:
        """True if the pipeline is dirty and its couplings were not re-fetched."""
        return self.dirty and not self._couplings_fresh

    async def refresh(self) -> None:
        """Re-fetch couplings (re-claiming apps) and refresh every coupled app."""
        await self._require_tree().refresh_pipeline(self)

    async def ensure_fresh(self) -> None:
        if not self.dirty:
            return
        if self._couplings_fresh:
            await self.refresh_applications()
        else:
            await self.refresh()

    def _can_settle(self) -> bool:
        # App refreshes never re-fetch couplings
        return self._couplings_fresh

    async def refresh_applications(self) -> None:
        """Refresh all coupled apps concurrently, then settle this pipeline.

        Every app is attempted; the first failure is raised afterwards and
        leaves the pipeline dirty.
        """
        results = await asyncio.gather(
            *(app.refresh() for app in self.applications()),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            log.warning("Refresh of pipeline %s incomplete: %d of %d apps failed",
                        self.name, len(errors), len(results))
            raise errors[0]

        self._couplings_fresh = False
        self.dirty = False
        for group in self.stage_nodes.values():
            group.dirty = False
        self._settle_ancestors()
        log.debug("Refreshed pipeline %s (%d apps, state=%s)",
                  self.name, len(results), self.state)

    def mark_dirty(self) -> None:
        self._couplings_fresh = False
        super().mark_dirty()

    def _project(self) -> TreeItem:
        state = self.state
        authoritative = self.authoritative_stage
        tooltip = f"State: {state.value}"
        if authoritative is not None and self.stage_apps.get(authoritative):
            tooltip += f" ({authoritative.value})"
        return TreeItem(
            label=self.name,
            context_value="pipeline",
            collapsible=Collapsible.COLLAPSED,
            tooltip=tooltip,
            icon="rocket",
            color=state_color(state),
        )


# =============================================================================
# Root command entry
# =============================================================================


CREATE_APP_COMMAND = "herotree.app.create"


@dataclass(eq=False, kw_only=True)
class CommandNode(Node):
    """A synthetic row that runs a command instead of showing data."""

    command: str
    icon: str = "add"
    dirty: bool = False

    @property
    def node_type(self) -> str:
        return "command"

    def cached_children(self) -> list[Node]:
        return []

    async def refresh(self) -> None:
        return None

    def mark_dirty(self) -> None:
        # Nothing to fetch
        return None

    def _project(self) -> TreeItem:
        return TreeItem(
            label=self.name,
            context_value="command",
            icon=self.icon,
            command=self.command,
        )
