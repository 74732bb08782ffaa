"""Render a result forest as markdown."""

import io
from collections.abc import Collection, Iterable

from confluence_search.core.tree.builder import iter_nodes
from confluence_search.models.result import TYPE_ICONS
from confluence_search.models.tree import TreeNode


def _count_descendants(node: TreeNode) -> int:
    return sum(1 for _n, _d in iter_nodes(node.children))


def render_forest_as_markdown(
    forest: Iterable[TreeNode],
    *,
    cached_ids: Collection[str] = (),
    include_links: bool = True,
) -> str:
    """Render the forest as an indented bullet list.

    Args:
        forest: Root nodes from ``build_forest``.
        cached_ids: Result ids with a cached summary; they get a marker.
        include_links: Whether to render titles as markdown links.

    Returns:
        Markdown string with bullet-list hierarchy.
    """
    out = io.StringIO()
    hidden_below: int | None = None

    for node, depth in iter_nodes(forest):
        # Skip the subtree of a collapsed node
        if hidden_below is not None:
            if depth > hidden_below:
                continue
            hidden_below = None

        indent = "    " * depth
        title = node.title or "(untitled)"
        label = f"[{title}]({node.url})" if include_links and node.url != "#" else title
        if node.is_result:
            icon = TYPE_ICONS.get(node.type or "", "📄")
            marker = " ✅" if node.id in cached_ids else ""
            out.write(f"{indent}- {icon} {label}{marker}\n")
        else:
            out.write(f"{indent}- {label}\n")

        if node.collapsed:
            count = _count_descendants(node)
            noun = "child" if count == 1 else "children"
            out.write(f"{indent}    - ... ({count} hidden {noun}, id={node.id})\n")
            hidden_below = depth

    return out.getvalue()
