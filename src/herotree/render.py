"""Terminal rendering of a ResourceTree with rich."""

from __future__ import annotations

from rich.console import Console
from rich.text import Text
from rich.theme import Theme
from rich.tree import Tree

from herotree.tree.cache import ResourceTree
from herotree.tree.nodes import Collapsible, CommandNode, Node, TreeItem
from herotree.tree.state import ProcessState, state_color

# Styles for the colour ids nodes put in TreeItem.color
THEME = Theme(
    {
        state_color(ProcessState.UP): "green",
        state_color(ProcessState.STARTING): "yellow",
        state_color(ProcessState.IDLE): "cyan",
        state_color(ProcessState.CRASHED): "bold red",
        state_color(ProcessState.DOWN): "dim",
    }
)

_MARKERS = {
    "app": "●",
    "pipeline": "◆",
    "dynoUp": "▸",
    "dynoDown": "▹",
}


def make_console(**kwargs: object) -> Console:
    return Console(theme=THEME, **kwargs)  # type: ignore[arg-type]


def item_label(item: TreeItem) -> Text:
    """One tree row: coloured marker, label, dimmed description."""
    text = Text()
    marker = _MARKERS.get(item.context_value, "•")
    text.append(f"{marker} ", style=item.color or "")
    text.append(item.label, style="bold" if item.collapsible is not Collapsible.NONE else "")
    if item.description:
        text.append(f"  {item.description}", style="dim")
    return text


async def _add_node(branch: Tree, tree: ResourceTree, node: Node, depth: int | None) -> None:
    item = await tree.get_tree_item(node)
    child_branch = branch.add(item_label(item))
    if item.collapsible is Collapsible.NONE or depth == 0:
        return
    for child in await tree.get_children(node):
        await _add_node(child_branch, tree, child, None if depth is None else depth - 1)


async def build_tree(
    tree: ResourceTree,
    *,
    depth: int | None = None,
    show_commands: bool = False,
    title: str = "Heroku",
) -> Tree:
    """Walk the resource tree (fetching as needed) into a rich Tree.

    Args:
        tree: The resource tree to render.
        depth: Levels below each root to expand; None expands everything.
        show_commands: Include synthetic command rows such as "Create new app".
        title: Label of the rich tree's root.
    """
    rendered = Tree(Text(title, style="bold"), guide_style="dim")
    for root in await tree.get_children():
        if isinstance(root, CommandNode) and not show_commands:
            continue
        await _add_node(rendered, tree, root, depth)
    return rendered
