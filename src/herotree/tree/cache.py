"""Resource tree cache and tree-view provider.

The ResourceTree owns every node, indexes them by node_id for parent
lookups, and answers the tree-view questions (children, parent, display
item). Data is fetched lazily: a dirty node is refreshed the first time its
children or its display item is asked for.

Root construction:
    1. List apps and pipelines (concurrently).
    2. Reconcile both lists against the cached roots, keeping node identity.
    3. Fetch every pipeline's couplings (concurrently), then let pipelines
       claim apps in listing order: an app belongs to the first pipeline
       that claims it.
    4. Apps no pipeline claimed become roots. Roots sort by name; the
       "create app" entry always comes last.

Nothing is committed until every fetch of a step has succeeded, so a failed
refresh leaves the previous tree intact and still dirty.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from typing import Any

from herotree.client.protocol import ResourceClient
from herotree.client.records import AppRecord, CouplingRecord, PipelineRecord, parse_records
from herotree.config.schema import TreeConfig
from herotree.logging import get_logger
from herotree.tree.nodes import (
    CREATE_APP_COMMAND,
    Application,
    CommandNode,
    GroupNode,
    Node,
    Pipeline,
    Stage,
    TreeItem,
)
from herotree.tree.reconcile import apply_plan, plan_reconcile

log = get_logger("tree")

# Callback receiving the refreshed subtree root, or None for the whole tree
ChangeListener = Callable[[Node | None], Any]


class ResourceTree:
    """Cache of the remote resource hierarchy.

    Example:
        async with HerokuClient(api_key) as client:
            tree = ResourceTree(client)
            for root in await tree.get_children():
                item = await tree.get_tree_item(root)
                print(item.label, item.tooltip)
    """

    def __init__(self, client: ResourceClient, config: TreeConfig | None = None) -> None:
        self.client = client
        self.config = config or TreeConfig()

        self._nodes: dict[str, Node] = {}
        self._roots: list[Application | Pipeline] = []
        # Pipelines in remote listing order, the order they claim apps in
        self._pipelines: list[Pipeline] = []
        self._roots_dirty = True
        self._listeners: list[ChangeListener] = []

        self._create_entry = CommandNode(
            node_id="command:create-app",
            name="Create new app",
            command=CREATE_APP_COMMAND,
        )
        self._register(self._create_entry)

    # -------------------------------------------------------------------------
    # Index
    # -------------------------------------------------------------------------

    def _register(self, node: Node) -> None:
        node._tree = self
        self._nodes[node.node_id] = node

    def _unregister(self, node: Node) -> None:
        if self._nodes.get(node.node_id) is node:
            del self._nodes[node.node_id]

    def _adopt(self, node: Node) -> None:
        """Register a node and its cached subtree."""
        self._register(node)
        for child in node.cached_children():
            self._adopt(child)

    def _forget(self, node: Node) -> None:
        """Unregister a node and its cached subtree."""
        if isinstance(node, Pipeline):
            # Coupled apps outlive their pipeline; the caller re-homes them
            node.release()
        for child in node.cached_children():
            self._forget(child)
        self._unregister(node)

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._nodes.values()))

    @property
    def roots(self) -> list[Node]:
        """Cached root entries, create-app entry last. Never fetches."""
        return [*self._roots, self._create_entry]

    @property
    def roots_dirty(self) -> bool:
        return self._roots_dirty

    def applications(self) -> list[Application]:
        """Every cached application, standalone or coupled."""
        return [node for node in self._nodes.values() if isinstance(node, Application)]

    def pipelines(self) -> list[Pipeline]:
        """Cached pipelines in remote listing order."""
        return list(self._pipelines)

    def find_application(self, remote_id: str) -> Application | None:
        node = self._nodes.get(f"app:{remote_id}")
        return node if isinstance(node, Application) else None

    def root_of(self, node: Node) -> Node:
        """Top-level ancestor of a node (the node itself for roots)."""
        current = node
        while (parent := current.parent) is not None:
            current = parent
        return current

    @property
    def authoritative_stage(self) -> Stage | None:
        value = self.config.authoritative_stage
        if not value:
            return None
        stage = Stage.parse(value)
        if stage is None:
            log.warning("Unknown authoritative stage %r, using all stages", value)
        return stage

    # -------------------------------------------------------------------------
    # Tree-view provider
    # -------------------------------------------------------------------------

    async def get_children(self, node: Node | None = None) -> list[Node]:
        """Children of a node, or the root entries when ``node`` is None.

        Dirty nodes (and a dirty root collection) are refreshed first.
        """
        if node is None:
            if self._roots_dirty:
                await self._rebuild_roots()
            return self.roots
        return await node.children()

    def get_parent(self, node: Node) -> Node | None:
        """Parent of a node; None for roots. Never fetches."""
        return node.parent

    async def get_tree_item(self, node: Node) -> TreeItem:
        """Display projection of a node, refreshing it first if dirty."""
        await node.ensure_fresh()
        return node.tree_item()

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    async def refresh(self, node: Node | None = None) -> None:
        """Re-fetch a node's top-level owner, or the whole tree.

        With a node, the root it hangs under is marked dirty and re-fetched
        in full. With None, the root collection is rebuilt and every root is
        refreshed.
        """
        if node is None:
            await self._rebuild_roots()
            await self._refresh_roots(list(self._roots), full=True)
            self._emit(None)
            return

        root = self.root_of(node)
        root.mark_dirty()
        await root.refresh()
        self._emit(root)

    async def refresh_dirty(self) -> None:
        """Refresh only what is dirty: the root collection or dirty roots.

        Dirty pipelines re-fetch their couplings first and claim apps in
        listing order before any app is refreshed.
        """
        if self._roots_dirty:
            await self.refresh()
            return

        stale = [pipeline for pipeline in self._pipelines if pipeline.needs_couplings]
        if stale:
            await self._reclaim(stale)

        dirty = [root for root in self._roots if root.dirty]
        if not dirty:
            log.debug("Nothing dirty to refresh")
            return
        try:
            await self._refresh_roots(dirty)
        finally:
            for root in dirty:
                if not root.dirty:
                    self._emit(root)

    def mark_dirty(self, node: Node | None = None) -> None:
        """Schedule a node (and its ancestors/descendants) for refresh.

        With None the root collection itself is marked dirty.
        """
        if node is None:
            self._roots_dirty = True
            return
        node.mark_dirty()

    async def _refresh_roots(
        self, roots: list[Application | Pipeline], *, full: bool = False
    ) -> None:
        """Refresh roots concurrently; raise the first failure after all settle.

        With ``full``, pipeline couplings are taken as just fetched and only
        their apps are refreshed.
        """

        async def refresh_one(root: Application | Pipeline) -> None:
            if isinstance(root, Pipeline):
                if full:
                    await root.refresh_applications()
                else:
                    await root.ensure_fresh()
            else:
                await root.refresh()

        results = await asyncio.gather(
            *(refresh_one(root) for root in roots), return_exceptions=True
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            log.warning("Refresh incomplete: %d of %d roots failed", len(errors), len(roots))
            raise errors[0]

    async def _rebuild_roots(self) -> None:
        app_data, pipeline_data = await asyncio.gather(
            self.client.list("apps"),
            self.client.list("pipelines"),
        )
        app_records = parse_records(AppRecord, app_data)
        pipeline_records = parse_records(PipelineRecord, pipeline_data)
        coupling_lists = await asyncio.gather(
            *(self.client.list("pipeline-couplings", p.id) for p in pipeline_records)
        )
        # Everything fetched; commit

        pipelines = self.pipelines()
        pipeline_plan = plan_reconcile(pipelines, pipeline_records, collection="pipelines")
        await apply_plan(
            pipelines,
            pipeline_plan,
            create=self._create_pipeline,
            update=lambda pipeline, record: pipeline.update_from_record(record),
            remove=self._forget,
        )

        apps = self.applications()
        app_plan = plan_reconcile(apps, app_records, collection="apps")
        await apply_plan(
            apps,
            app_plan,
            create=self._create_application,
            update=lambda app, record: app.update_from_record(record),
            remove=self._forget_application,
        )

        by_id = {app.remote_id: app for app in apps}
        pool = {record.id: by_id[record.id] for record in app_records}
        pipelines_by_id = {pipeline.remote_id: pipeline for pipeline in pipelines}
        ordered = [pipelines_by_id[record.id] for record in pipeline_records]

        for pipeline, couplings in zip(ordered, coupling_lists, strict=True):
            pipeline.claim(parse_records(CouplingRecord, couplings), pool)

        for app in pool.values():
            app.parent_id = None

        self._pipelines = ordered
        self._roots = sorted([*ordered, *pool.values()], key=lambda root: root.name)
        self._roots_dirty = False
        log.info(
            "Built %d roots (%d pipelines, %d standalone apps)",
            len(self._roots), len(ordered), len(pool),
        )

    async def refresh_pipeline(self, pipeline: Pipeline) -> None:
        """Re-fetch one pipeline's couplings and refresh its apps."""
        await self._reclaim([pipeline])
        await pipeline.refresh_applications()

    async def _reclaim(self, pipelines: list[Pipeline]) -> None:
        """Re-fetch couplings of ``pipelines`` and let them claim apps again.

        Fetches run concurrently; claiming is sequential in listing order,
        so an app coupled to several of them lands in the first listed.
        The pool holds their own apps plus standalone root apps: apps held
        by other pipelines are never taken. Apps no longer claimed go back
        to the root collection.
        """
        ordered = [pipeline for pipeline in self._pipelines if pipeline in pipelines]
        coupling_lists = await asyncio.gather(
            *(pipeline.fetch_couplings() for pipeline in ordered)
        )
        # Everything fetched; commit

        pool: dict[str, Application] = {}
        for pipeline in ordered:
            for app in pipeline.applications():
                pool[app.remote_id] = app
        for root in self._roots:
            if isinstance(root, Application):
                pool[root.remote_id] = root

        for pipeline, couplings in zip(ordered, coupling_lists, strict=True):
            pipeline.claim(couplings, pool)

        for app in pool.values():
            app.parent_id = None
        self._roots = sorted(
            [*self._pipelines, *pool.values()], key=lambda root: root.name
        )
        log.debug("Reclaimed apps for %d pipelines, %d standalone apps",
                  len(ordered), len(pool))

    def _create_pipeline(self, record: PipelineRecord) -> Pipeline:
        pipeline = Pipeline.from_record(record)
        self._adopt(pipeline)
        return pipeline

    def _create_application(self, record: AppRecord) -> Application:
        app = Application.from_record(record)
        self._adopt(app)
        return app

    def _forget_application(self, app: Application) -> None:
        parent = app.parent
        if isinstance(parent, GroupNode):
            owner = parent.owner()
            if isinstance(owner, Pipeline):
                owner.detach(app)
        self._forget(app)

    # -------------------------------------------------------------------------
    # Local edits
    # -------------------------------------------------------------------------

    def add_application(self, record: AppRecord | dict[str, Any]) -> Application:
        """Insert a just-created app as a standalone root.

        If the app is already cached it is updated in place instead.
        """
        if isinstance(record, dict):
            record = AppRecord.model_validate(record)

        existing = self.find_application(record.id)
        if existing is not None:
            existing.update_from_record(record)
            return existing

        app = self._create_application(record)
        self._roots.append(app)
        self._roots.sort(key=lambda root: root.name)
        log.info("Added app %s", app.name)
        self._emit(None)
        return app

    def remove_application(self, app: Application | str) -> bool:
        """Drop an app (by node or remote id) from the tree.

        Returns:
            True if the app was cached.
        """
        if isinstance(app, str):
            found = self.find_application(app)
            if found is None:
                return False
            app = found
        if self._nodes.get(app.node_id) is not app:
            return False

        parent = app.parent
        if app in self._roots:
            self._roots.remove(app)
        self._forget_application(app)
        log.info("Removed app %s", app.name)
        self._emit(None if parent is None else self.root_of(parent))
        return True

    # -------------------------------------------------------------------------
    # Change events
    # -------------------------------------------------------------------------

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Subscribe to refresh completions.

        Returns:
            A function that unsubscribes the listener.
        """
        self._listeners.append(listener)

        def unregister() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unregister

    def _emit(self, node: Node | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(node)
            except Exception as e:
                log.error("Change listener failed: %s", e)
