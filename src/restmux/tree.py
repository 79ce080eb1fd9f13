"""Segment-based routing trie with wildcard backtracking.

Each level of the trie consumes one segment of a route key. The first level is
the http method, so every method owns a disjoint subtree. A node has at most
one wildcard child because all wildcard segments share one canonical key.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from restmux.errors import DuplicateRoute, SegmentCollision, WildcardNameConflict
from restmux.segment import WILDCARD, Segment


@dataclass(slots=True)
class Node[T]:
    """Segment-based trie node"""

    segment: Segment | None = None  # None for the root
    handler: T | None = None
    children: dict[Segment, Node[T]] = field(default_factory=dict)


def insert[T](tree: Node[T], segments: Sequence[Segment], handler: T) -> None:
    """Register handler at the end of segments, creating nodes as needed.

    Raises WildcardNameConflict if a wildcard position is already registered
    under another name, SegmentCollision if a literal "*" meets a wildcard and
    DuplicateRoute if the route already has a handler.
    """
    if not segments:
        msg = "route key must contain at least one segment"
        raise ValueError(msg)

    current = tree
    for seg in segments:
        child = current.children.get(seg)
        if child is None:
            child = Node(segment=seg)
            current.children[seg] = child
        else:
            existing = child.segment
            assert existing is not None
            if existing.is_wildcard != seg.is_wildcard:
                raise SegmentCollision(str(existing), str(seg), handler)
            if (
                existing.wildcard_name is not None
                and seg.wildcard_name is not None
                and existing.wildcard_name != seg.wildcard_name
            ):
                raise WildcardNameConflict(
                    existing.wildcard_name, seg.wildcard_name, handler
                )
        current = child

    if current.handler is not None:
        raise DuplicateRoute(current.handler, handler)
    current.handler = handler


def find_handler[T](
    tree: Node[T], segments: Sequence[Segment], params: dict[str, str]
) -> T | None:
    """Traverses the tree to find the handler registered for segments.

    Each segment tries the exact (literal) child first. If that subtree has no
    handler for the rest of the key, the wildcard child is tried instead,
    binding the segment value to the wildcard name in params. Bindings made on
    a branch that fails are rolled back, so params only ever holds the
    wildcards of the successful path.

    On the last segment a literal child ends the search: its handler is the
    result even when it is None, and the wildcard sibling is not tried.

    Returns None when no path matches, or when the matched node has no handler.
    """
    if not segments:
        return None
    return _find(tree, segments, 0, params)


def _find[T](
    node: Node[T], segments: Sequence[Segment], i: int, params: dict[str, str]
) -> T | None:
    seg = segments[i]
    last = i == len(segments) - 1

    child = node.children.get(seg)
    if child is not None and not _is_wildcard(child):
        if last:  # matched path, possibly without a handler
            return child.handler
        handler = _find(child, segments, i + 1, params)
        if handler is not None:  # exact match
            return handler

    # the wildcard key also finds a literal "*" child, which must not bind
    child = node.children.get(WILDCARD)
    if child is None or child.segment is None or child.segment.wildcard_name is None:
        return None

    # fallback to wildcard match
    name = child.segment.wildcard_name
    previous = params.get(name)
    params[name] = seg.value
    handler = child.handler if last else _find(child, segments, i + 1, params)
    if handler is None:  # backtrack
        if previous is None:
            del params[name]
        else:
            params[name] = previous
    return handler


def _is_wildcard[T](node: Node[T]) -> bool:
    return node.segment is not None and node.segment.is_wildcard


def format_routes[T](root: Node[T], *, tree: bool = False) -> str:
    """Format registered routes as a human-readable string.

    By default produces a column-aligned flat route list:

        GET      /api              op5
        GET      /api/basic/op1    op1
        DELETE   /api/{type}/op2   op2

    With `tree=True`, produces a visual tree instead:

        DELETE
        └── api
            └── {type}
                └── op2 [op2]
        GET
        └── api [op5]
            └── basic
                └── op1 [op1]
    """
    if tree:
        return _format_tree(root)
    return _format_route_list(root)


type _Route = tuple[str, str, str]


def _format_route_list[T](root: Node[T]) -> str:
    """Column-aligned flat route list."""
    routes: list[_Route] = []
    for method, child in root.children.items():
        routes.extend(
            (str(method), path, handler) for path, handler in _collect_routes(child, [])
        )
    routes.sort(key=lambda r: (r[1], r[0]))
    if not routes:
        return ""

    method_w = max(len(r[0]) for r in routes)
    path_w = max(len(r[1]) for r in routes)
    return "\n".join(
        f"{method:<{method_w}}   {path:<{path_w}}   {handler}"
        for method, path, handler in routes
    )


def _collect_routes[T](node: Node[T], parts: list[str]) -> list[tuple[str, str]]:
    """Walk the trie below a method node, returning (path, handler) entries."""
    routes: list[tuple[str, str]] = []
    for child in node.children.values():
        sub_parts = [*parts, str(child.segment)]
        if child.handler is not None:
            routes.append(("/" + "/".join(sub_parts), _qualname(child.handler)))
        routes.extend(_collect_routes(child, sub_parts))
    return routes


def _format_tree[T](root: Node[T]) -> str:
    """Visual tree with box-drawing characters, one root per method."""
    lines: list[str] = []
    for method, child in sorted(root.children.items(), key=lambda x: x[0].value):
        lines.append(_label(method, child))
        _render_tree(child, "", lines=lines)
    return "\n".join(lines)


def _render_tree[T](node: Node[T], prefix: str, *, lines: list[str]) -> None:
    """Recursively render a node's children with tree-drawing prefixes."""
    # literals sorted, wildcard last
    items = sorted(
        node.children.items(), key=lambda x: (_is_wildcard(x[1]), x[0].value)
    )
    for i, (seg, child) in enumerate(items):
        is_last = i == len(items) - 1
        connector = "└── " if is_last else "├── "
        lines.append(f"{prefix}{connector}{_label(child.segment or seg, child)}")
        extension = "    " if is_last else "│   "
        _render_tree(child, prefix + extension, lines=lines)


def _label[T](seg: Segment, node: Node[T]) -> str:
    if node.handler is None:
        return str(seg)
    return f"{seg} [{_qualname(node.handler)}]"


def _qualname(obj: object) -> str:
    """Extract __qualname__ from a callable, falling back to str."""
    return str(obj.__qualname__) if hasattr(obj, "__qualname__") else str(obj)
