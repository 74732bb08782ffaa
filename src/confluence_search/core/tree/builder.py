"""Rebuild the ancestor/descendant forest from the display list."""

from collections.abc import Collection, Iterable, Iterator

from loguru import logger

from confluence_search.models.result import Result
from confluence_search.models.tree import TreeNode


def _mark_result(node: TreeNode, result: Result) -> None:
    node.title = result.title
    node.url = result.url
    node.is_result = True
    node.type = result.type
    node.contributor = result.creator.display_name if result.creator else "Unknown"
    node.modified_at = result.modified_at


def build_forest(
    display_list: Iterable[Result],
    *,
    collapsed_ids: Collection[str] = (),
) -> list[TreeNode]:
    """Build a fresh forest of TreeNodes from results and their ancestor chains.

    A node that is both an ancestor stub and a direct result is materialised
    once and carries the result decorations. Roots keep first-seen order;
    any node that ends up as someone's child is not a root.

    Args:
        display_list: Filtered and sorted results.
        collapsed_ids: Ids the user had collapsed before this rebuild.

    Returns:
        Root nodes of the forest.
    """
    results = list(display_list)
    arena: dict[str, TreeNode] = {}

    # Pass 1: materialise every node.
    for result in results:
        for ancestor in result.ancestors:
            if ancestor.id not in arena:
                arena[ancestor.id] = TreeNode(
                    id=ancestor.id, title=ancestor.title, url=ancestor.url, type="page"
                )
        node = arena.get(result.id)
        if node is None:
            node = arena[result.id] = TreeNode(id=result.id, title=result.title, url=result.url)
        _mark_result(node, result)

    # Pass 2: link parent -> child along each chain.
    child_ids: dict[str, set[str]] = {}
    linked: set[str] = set()
    candidates: list[str] = []

    def link(parent: TreeNode, child: TreeNode) -> None:
        seen = child_ids.setdefault(parent.id, set())
        if child.id in seen or child.id == parent.id:
            return
        seen.add(child.id)
        parent.children.append(child)
        linked.add(child.id)

    for result in results:
        chain = [a.id for a in result.ancestors if a.id != result.id]
        if not chain:
            candidates.append(result.id)
            continue
        for parent_id, child_id in zip(chain, chain[1:]):
            link(arena[parent_id], arena[child_id])
        link(arena[chain[-1]], arena[result.id])
        candidates.append(chain[0])

    roots: list[TreeNode] = []
    seen_roots: set[str] = set()
    for node_id in candidates:
        if node_id in linked or node_id in seen_roots:
            continue
        seen_roots.add(node_id)
        roots.append(arena[node_id])

    collapsed = set(collapsed_ids)
    for node in arena.values():
        node.collapsed = bool(node.children) and node.id in collapsed

    logger.debug("Built forest: {} roots, {} nodes", len(roots), len(arena))
    return roots


def iter_nodes(forest: Iterable[TreeNode]) -> Iterator[tuple[TreeNode, int]]:
    """Walk the forest depth-first, yielding (node, depth)."""
    todo: list[tuple[TreeNode, int]] = [(n, 0) for n in forest]
    todo.reverse()
    while todo:
        node, depth = todo.pop()
        yield node, depth
        todo.extend((c, depth + 1) for c in reversed(node.children))


def collect_collapsed_ids(forest: Iterable[TreeNode]) -> set[str]:
    """Capture the ids currently collapsed in a live forest."""
    return {node.id for node, _depth in iter_nodes(forest) if node.collapsed}
