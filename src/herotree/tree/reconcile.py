"""Diff-and-merge of cached children against a freshly fetched collection.

Reconciliation keeps object identity for children that still exist remotely
(they are updated in place), drops children that vanished, and builds nodes
for records seen for the first time:

    plan = plan_reconcile(cached, records, collection="dynos")
    await apply_plan(children, plan, create=..., update=..., remove=...)

Phases are applied in a fixed order: removals, then in-place updates
(awaited together when they suspend), then additions.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

from herotree.errors import DuplicateIdentityError
from herotree.logging import TRACE, get_logger

log = get_logger("tree.reconcile")


class Identified(Protocol):
    @property
    def id(self) -> str: ...


class RemoteIdentified(Protocol):
    @property
    def remote_id(self) -> str: ...


N = TypeVar("N", bound=RemoteIdentified)
R = TypeVar("R", bound=Identified)


@dataclass
class ReconcilePlan(Generic[N, R]):
    """Outcome of diffing cached children against remote records.

    Attributes:
        removed: Cached children with no remote counterpart.
        updated: (cached child, matching record) pairs, in cached order.
        added: Records with no cached counterpart, in remote order.
    """

    removed: list[N] = field(default_factory=list)
    updated: list[tuple[N, R]] = field(default_factory=list)
    added: list[R] = field(default_factory=list)

    @property
    def unchanged(self) -> bool:
        """True if the child set (not necessarily the attributes) is unchanged."""
        return not self.removed and not self.added


def _check_unique(keys: Sequence[str], collection: str) -> None:
    seen: set[str] = set()
    for key in keys:
        if key in seen:
            raise DuplicateIdentityError(collection, key)
        seen.add(key)


def plan_reconcile(
    cached: Sequence[N],
    remote: Sequence[R],
    *,
    collection: str = "collection",
) -> ReconcilePlan[N, R]:
    """Match cached children to remote records by identity.

    Each remote record is consumed by at most one cached child: matching
    pops the record from the pending pool.

    Raises:
        DuplicateIdentityError: If ids repeat within either side.
    """
    _check_unique([node.remote_id for node in cached], f"cached {collection}")
    _check_unique([record.id for record in remote], f"remote {collection}")

    pending: dict[str, R] = {record.id: record for record in remote}
    plan: ReconcilePlan[N, R] = ReconcilePlan()

    for node in cached:
        record = pending.pop(node.remote_id, None)
        if record is None:
            plan.removed.append(node)
        else:
            plan.updated.append((node, record))

    plan.added = list(pending.values())

    log.log(
        TRACE,
        "Reconcile %s: %d removed, %d updated, %d added",
        collection,
        len(plan.removed),
        len(plan.updated),
        len(plan.added),
    )
    return plan


async def apply_plan(
    children: list[N],
    plan: ReconcilePlan[N, R],
    *,
    create: Callable[[R], N],
    update: Callable[[N, R], Awaitable[Any] | None],
    remove: Callable[[N], None] | None = None,
) -> None:
    """Apply a plan to ``children`` in place.

    Args:
        children: The owner's child list; mutated in place.
        plan: Result of ``plan_reconcile`` over ``children``.
        create: Builds a node for a new record.
        update: Refreshes a retained node from its record. May return an
            awaitable; all such awaitables run concurrently.
        remove: Called for every removed node after it leaves ``children``.
    """
    for node in plan.removed:
        children.remove(node)
        if remove is not None:
            remove(node)

    pending = []
    for node, record in plan.updated:
        result = update(node, record)
        if inspect.isawaitable(result):
            pending.append(result)
    if pending:
        await asyncio.gather(*pending)

    for record in plan.added:
        children.append(create(record))
