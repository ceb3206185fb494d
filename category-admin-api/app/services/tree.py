"""Tree builder for the category hierarchy.

Turns the flat list of category records into a forest of ``CategoryNode``
objects and provides the walks the mutation engine and the projection need.
"""
import logging
from typing import Iterable, Iterator, List, Optional, Set

from app.models.category import Category, CategoryNode

logger = logging.getLogger(__name__)


def build_tree(categories: Iterable[Category]) -> List[CategoryNode]:
    """Build a forest from flat category records.

    Siblings keep the order the records arrive in; pre-sort the input to get
    a different sibling order. Records whose parent does not exist become
    roots. Never raises.
    """
    records = list(categories)

    # First pass: id -> node
    nodes: dict[str, CategoryNode] = {}
    for category in records:
        nodes[category.id] = CategoryNode(
            **category.model_dump(exclude={"level", "children"}), children=[]
        )

    # Second pass: attach to parent or treat as root
    roots: List[CategoryNode] = []
    for category in records:
        node = nodes[category.id]
        if node.parent_id and node.parent_id in nodes and node.parent_id != node.id:
            nodes[node.parent_id].children.append(node)
        else:
            if node.parent_id:
                logger.debug(
                    f"Category {node.id} has missing parent {node.parent_id}, treating as root"
                )
            roots.append(node)

    visited = _assign_levels(roots)

    # Anything unreached hangs off a parent cycle; break each cycle once
    if len(visited) < len(nodes):
        for category in records:
            if category.id in visited:
                continue
            node = nodes[_cycle_member(nodes, category.id)]
            logger.warning(
                f"Category {node.id} is part of a parent cycle, treating as root"
            )
            parent = nodes[node.parent_id]
            parent.children = [c for c in parent.children if c.id != node.id]
            roots.append(node)
            visited |= _assign_levels([node])

    return roots


def _cycle_member(nodes: dict[str, CategoryNode], category_id: str) -> str:
    """Follow parent links from an unreachable node until an id repeats."""
    seen: Set[str] = set()
    current = category_id
    while current not in seen:
        seen.add(current)
        current = nodes[current].parent_id
    return current


def _assign_levels(roots: List[CategoryNode]) -> Set[str]:
    """Set ``level`` on every node below ``roots``. Returns the ids reached."""
    visited: Set[str] = set()
    stack = [(root, 0) for root in roots]
    while stack:
        node, level = stack.pop()
        if node.id in visited:
            continue
        visited.add(node.id)
        node.level = level
        for child in node.children:
            stack.append((child, level + 1))
    return visited


def iter_tree(forest: Iterable[CategoryNode]) -> Iterator[CategoryNode]:
    """Yield nodes depth-first, parents before children, siblings in order."""
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def flatten_tree(forest: Iterable[CategoryNode]) -> List[CategoryNode]:
    return list(iter_tree(forest))


def find_node(forest: Iterable[CategoryNode], category_id: str) -> Optional[CategoryNode]:
    """Find a node anywhere in the forest."""
    for node in iter_tree(forest):
        if node.id == category_id:
            return node
    return None


def descendant_ids(node: CategoryNode) -> List[str]:
    """Ids of every node below ``node``, depth-first. Excludes ``node`` itself."""
    return [child.id for child in iter_tree(node.children)]


def ancestor_ids(forest: Iterable[CategoryNode], category_id: str) -> List[str]:
    """Ids from the root down to the parent of ``category_id``.

    Empty for roots and for ids not in the forest.
    """
    path: List[str] = []

    def walk(nodes: List[CategoryNode]) -> bool:
        for node in nodes:
            if node.id == category_id:
                return True
            path.append(node.id)
            if walk(node.children):
                return True
            path.pop()
        return False

    walk(list(forest))
    return path
