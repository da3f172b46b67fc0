"""Background refresh of a ResourceTree.

The poller spends a requests-per-minute budget: one refresh cycle every
``60 / api_calls`` seconds. A failed cycle is logged and the next one tries
again; nothing is retried inside the tree itself.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from herotree.errors import ConfigError
from herotree.logging import get_logger

if TYPE_CHECKING:
    from herotree.config.schema import Config, PollerConfig
    from herotree.tree.cache import ResourceTree

log = get_logger("poller")


def refresh_interval(api_calls: int) -> float:
    """Seconds between refresh cycles for a per-minute call budget.

    Raises:
        ConfigError: If ``api_calls`` is not a positive integer.
    """
    if isinstance(api_calls, bool) or not isinstance(api_calls, int) or api_calls <= 0:
        raise ConfigError(f"api_calls must be a positive integer, got {api_calls!r}")
    return 60 / api_calls


class Poller:
    """Periodically refreshes a tree from an asyncio task.

    By default every cycle is a full ``tree.refresh()``: nothing outside the
    poller marks nodes dirty when the remote side changes, so a dirty-only
    pass would never pick up a crashed dyno on its own. With
    ``only_dirty=True`` a cycle is ``tree.refresh_dirty()`` instead, for
    hosts that mark nodes dirty themselves (after running an action, or on
    a webhook).

    Example:
        async with Poller(tree, api_calls=30):
            ...  # tree refreshes every 2 seconds until the block exits
    """

    def __init__(
        self,
        tree: ResourceTree,
        api_calls: int = 30,
        only_dirty: bool = False,
    ) -> None:
        self.tree = tree
        self.only_dirty = only_dirty
        self._interval = refresh_interval(api_calls)
        self._api_calls = api_calls
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._in_cycle = False
        self.cycles = 0
        self.failures = 0

    @classmethod
    def from_config(cls, tree: ResourceTree, config: PollerConfig) -> Poller:
        return cls(tree, api_calls=config.api_calls, only_dirty=config.only_dirty)

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def api_calls(self) -> int:
        return self._api_calls

    @property
    def running(self) -> bool:
        return self._running

    def apply_config(self, config: Config) -> None:
        """Pick up a reloaded config. Takes effect from the next cycle.

        Suitable as an ``on_config_reload`` callback. An invalid budget is
        logged and the current interval kept.
        """
        try:
            interval = refresh_interval(config.poller.api_calls)
        except ConfigError as e:
            log.error("Ignoring poller config: %s", e)
            return
        if interval != self._interval:
            log.info("Poller interval %.2fs -> %.2fs", self._interval, interval)
        self._interval = interval
        self._api_calls = config.poller.api_calls
        self.only_dirty = config.poller.only_dirty

    async def run_once(self) -> bool:
        """Run one refresh cycle.

        Returns:
            True if the cycle succeeded, False if it failed (and was logged).
        """
        self.cycles += 1
        try:
            if self.only_dirty:
                await self.tree.refresh_dirty()
            else:
                await self.tree.refresh()
        except Exception as e:
            self.failures += 1
            log.warning("Refresh cycle %d failed: %s", self.cycles, e)
            return False
        log.debug("Refresh cycle %d done", self.cycles)
        return True

    async def _poll_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            if not self._running:
                break
            self._in_cycle = True
            try:
                await self.run_once()
            finally:
                self._in_cycle = False

    def start(self) -> None:
        """Start polling. Must be called with a running event loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        log.debug("Poller started (interval=%.2fs, only_dirty=%s)",
                  self._interval, self.only_dirty)

    def stop(self) -> None:
        """Stop polling. An in-flight cycle runs to completion."""
        self._running = False
        if self._task:
            if not self._in_cycle:
                self._task.cancel()
            self._task = None
        log.debug("Poller stopped after %d cycles", self.cycles)

    async def __aenter__(self) -> Poller:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.stop()
