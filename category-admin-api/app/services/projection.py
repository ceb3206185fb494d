"""Read-side projection of the category tree.

Everything here is a pure function over records or built nodes; the
repository is never touched and input nodes are never modified.
"""
from typing import AbstractSet, Iterable, List

from app.models.category import (
    Category,
    CategoryNode,
    CategoryStats,
    RenderedNode,
    RenderedTree,
    RenderFilters,
    SortDirection,
    SortField,
)
from app.services.tree import build_tree, iter_tree


def sort_categories(
    categories: Iterable[Category],
    field: SortField = SortField.sort_order,
    direction: SortDirection = SortDirection.asc,
) -> List[Category]:
    """Sort flat records before building so sibling order follows ``field``.

    Stable: ties keep their incoming order in both directions.
    """
    if field == SortField.name:
        key = lambda c: c.name.casefold()  # noqa: E731
    elif field == SortField.created_at:
        key = lambda c: c.created_at  # noqa: E731
    else:
        key = lambda c: c.sort_order  # noqa: E731

    return sorted(categories, key=key, reverse=direction == SortDirection.desc)


def filter_active(forest: Iterable[CategoryNode], show_inactive: bool = False) -> List[CategoryNode]:
    """Drop inactive nodes, and everything under them, unless ``show_inactive``."""
    if show_inactive:
        return list(forest)

    return [
        node.model_copy(update={"children": filter_active(node.children)})
        for node in forest
        if node.is_active
    ]


def matches_query(category: Category, query: str) -> bool:
    """Case-insensitive substring match on name, slug and description."""
    needle = query.casefold()
    return (
        needle in category.name.casefold()
        or needle in category.slug.casefold()
        or (category.description is not None and needle in category.description.casefold())
    )


def search_tree(forest: Iterable[CategoryNode], query: str) -> List[CategoryNode]:
    """Keep each root whose subtree contains a match, with the whole subtree.

    Non-matching nodes inside a matching subtree are kept too.
    """
    query = query.strip()
    if not query:
        return list(forest)

    return [
        root for root in forest
        if any(matches_query(node, query) for node in iter_tree([root]))
    ]


def apply_expanded(forest: Iterable[CategoryNode], expanded: AbstractSet[str]) -> List[RenderedNode]:
    """Convert to rendered nodes, omitting children of collapsed nodes."""
    rendered = []
    for node in forest:
        is_expanded = node.id in expanded
        rendered.append(
            RenderedNode(
                **node.model_dump(exclude={"children"}),
                children=apply_expanded(node.children, expanded) if is_expanded else [],
                has_children=bool(node.children),
                is_expanded=is_expanded,
            )
        )
    return rendered


def render(categories: Iterable[Category], filters: RenderFilters) -> RenderedTree:
    """Sort, build, search, filter and expand in one read path.

    Search looks at the full forest, inactive nodes included; a matching root
    stays visible even when its only match is inside a hidden branch.
    """
    ordered = sort_categories(categories, filters.sort_field, filters.sort_direction)
    forest = build_tree(ordered)
    forest = search_tree(forest, filters.query)
    forest = filter_active(forest, filters.show_inactive)

    return RenderedTree(
        roots=apply_expanded(forest, filters.expanded),
        query=filters.query,
    )


def category_stats(categories: Iterable[Category]) -> CategoryStats:
    """Totals over every stored record, active or not."""
    records = list(categories)
    active = sum(1 for c in records if c.is_active)

    return CategoryStats(
        total=len(records),
        active=active,
        inactive=len(records) - active,
        top_level=len(build_tree(records)),
        with_resources=sum(1 for c in records if c.resource_count > 0),
    )
