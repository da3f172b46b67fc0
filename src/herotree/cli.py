"""Command-line interface for herotree."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console

if TYPE_CHECKING:
    from herotree.config import Config

console = Console(stderr=True)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    from herotree import __version__

    parser = argparse.ArgumentParser(
        prog="herotree",
        description="Browse Heroku apps, dynos, add-ons and pipelines as a tree",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Extra config file merged over system, user and project config",
    )
    parser.add_argument(
        "--project",
        type=Path,
        help="Project directory holding .herotree/config.yaml",
    )

    subparsers = parser.add_subparsers(dest="mode", help="Command")

    show_parser = subparsers.add_parser("show", help="Print the resource tree once")
    show_parser.add_argument(
        "--depth",
        type=int,
        default=None,
        help="Levels to expand below each root (default: all)",
    )
    show_parser.add_argument(
        "--commands",
        action="store_true",
        help="Include command entries such as 'Create new app'",
    )

    watch_parser = subparsers.add_parser("watch", help="Keep refreshing and re-rendering")
    watch_parser.add_argument(
        "--api-calls",
        type=int,
        help="Refresh cycles per minute (overrides poller.api_calls)",
    )
    watch_parser.add_argument(
        "--only-dirty",
        action="store_true",
        default=None,
        help="Refresh only subtrees marked dirty",
    )
    watch_parser.add_argument(
        "--depth",
        type=int,
        default=None,
        help="Levels to expand below each root (default: all)",
    )

    return parser


async def run_show(config: Config, api_key: str, depth: int | None, commands: bool) -> int:
    """Fetch the tree once and print it."""
    from herotree.client import HerokuClient
    from herotree.errors import RemoteAPIError
    from herotree.render import build_tree, make_console
    from herotree.tree import ResourceTree

    out = make_console()
    async with HerokuClient(api_key, config.api) as client:
        tree = ResourceTree(client, config.tree)
        try:
            rendered = await build_tree(tree, depth=depth, show_commands=commands)
        except RemoteAPIError as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1
    out.print(rendered)
    return 0


async def run_watch(
    config: Config,
    api_key: str,
    project_root: str | None,
    depth: int | None,
) -> int:
    """Refresh on the poller's schedule and redraw after every refresh."""
    from rich.live import Live

    from herotree.client import HerokuClient
    from herotree.config import ConfigWatcher, on_config_reload
    from herotree.errors import RemoteAPIError
    from herotree.poller import Poller
    from herotree.render import build_tree, make_console
    from herotree.tree import Node, ResourceTree

    if not config.poller.enabled:
        console.print("[yellow]Poller disabled in config (poller.enabled: false)[/yellow]")
        return 1

    out = make_console()
    async with HerokuClient(api_key, config.api) as client:
        tree = ResourceTree(client, config.tree)
        try:
            await tree.refresh()
        except RemoteAPIError as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1

        changed = asyncio.Event()

        def on_change(node: Node | None) -> None:
            changed.set()

        unregister_change = tree.on_change(on_change)
        poller = Poller.from_config(tree, config.poller)
        unregister_reload = on_config_reload(poller.apply_config)
        console.print(f"[dim]Refreshing every {poller.interval:.1f}s, Ctrl+C to stop[/dim]")

        try:
            with Live(await build_tree(tree, depth=depth), console=out) as live:
                async with poller, ConfigWatcher(project_root):
                    while True:
                        await changed.wait()
                        changed.clear()
                        live.update(await build_tree(tree, depth=depth))
        finally:
            unregister_reload()
            unregister_change()


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.mode is None:
        parser.print_help()
        return 1

    from herotree.config import get_api_key, load_config
    from herotree.errors import ConfigError
    from herotree.logging import setup_logging

    project_root = str(parsed.project) if parsed.project else None
    try:
        config = load_config(project_root=project_root, config_path=parsed.config)
    except ConfigError as e:
        console.print(f"[red]Config error: {e}[/red]")
        return 2

    if parsed.verbose:
        config.logging.verbose = min(1 + parsed.verbose, 4)
    setup_logging(config.logging)

    api_key = get_api_key()
    if not api_key:
        console.print("[red]Error: HEROKU_API_KEY is not set[/red]")
        return 2

    try:
        if parsed.mode == "show":
            return asyncio.run(run_show(config, api_key, parsed.depth, parsed.commands))
        elif parsed.mode == "watch":
            if parsed.api_calls is not None:
                config.poller.api_calls = parsed.api_calls
            if parsed.only_dirty is not None:
                config.poller.only_dirty = parsed.only_dirty
            return asyncio.run(run_watch(config, api_key, project_root, parsed.depth))
        else:
            parser.print_help()
            return 1
    except ConfigError as e:
        console.print(f"[red]Config error: {e}[/red]")
        return 2
    except KeyboardInterrupt:
        return 130
