"""Config file watcher that reloads configuration on change.

Polls config file modification times from an asyncio task, the same way the
tree poller works, so no filesystem notification library is needed.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path

from herotree.config.loader import reload_config
from herotree.config.paths import get_config_paths

_log = logging.getLogger("herotree.config.watcher")

DEFAULT_POLL_INTERVAL = 2.0


class ConfigWatcher:
    """Watches config files and calls ``reload_config`` when any changes.

    Reload callbacks registered with ``on_config_reload`` (for example the
    tree poller) see the new Config.
    """

    def __init__(
        self,
        project_root: str | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._project_root = project_root
        self._poll_interval = poll_interval
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._mtimes: dict[Path, float] = {}

    def _check_mtimes(self) -> dict[Path, float]:
        mtimes: dict[Path, float] = {}
        for path in get_config_paths(self._project_root):
            if path.exists():
                with contextlib.suppress(OSError):
                    mtimes[path] = path.stat().st_mtime
        return mtimes

    def detect_changes(self) -> list[Path]:
        """Return files created, modified or deleted since the last check."""
        current = self._check_mtimes()
        changed = [
            path
            for path, old_mtime in self._mtimes.items()
            if current.get(path) != old_mtime
        ]
        changed.extend(path for path in current if path not in self._mtimes)
        self._mtimes = current
        return changed

    async def _poll_loop(self) -> None:
        self._mtimes = self._check_mtimes()

        while self._running:
            await asyncio.sleep(self._poll_interval)
            if not self._running:
                break

            changed = self.detect_changes()
            if changed:
                _log.info("Config changed: %s", [str(p) for p in changed])
                try:
                    reload_config(project_root=self._project_root)
                except Exception as e:
                    _log.error("Error reloading config: %s", e)

    def start(self) -> None:
        """Start polling. Must be called with a running event loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        _log.debug("Config watcher started (interval=%.1fs)", self._poll_interval)

    def stop(self) -> None:
        """Stop polling."""
        self._running = False
        if self._task:
            self._task.cancel()
            self._task = None
        _log.debug("Config watcher stopped")

    async def __aenter__(self) -> ConfigWatcher:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.stop()
