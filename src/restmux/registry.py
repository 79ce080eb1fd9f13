"""Registry of REST functions keyed by http method and path template."""

from __future__ import annotations

from dataclasses import dataclass, field

from restmux.operation import HTTPMethod, Operation
from restmux.tree import Node, find_handler, format_routes, insert


@dataclass(slots=True, frozen=True)
class ResolvedMatch[T]:
    """Result of a successful lookup."""

    handler: T
    wildcards: dict[str, str] = field(default_factory=dict)


class Registry[T]:
    """Trie-backed registry.

    Not synchronized: build the registry fully before sharing it between
    threads. Once built, concurrent `resolve` calls are safe since lookups
    never mutate the tree.
    """

    __slots__ = ("_tree",)
    _tree: Node[T]

    def __init__(self) -> None:
        self._tree = Node()

    def insert(self, method: HTTPMethod | str, path: str, handler: T) -> None:
        """Registers handler for method on path template, e.g. ``/api/{id}``."""
        self.insert_operation(Operation(HTTPMethod(method), path), handler)

    def insert_operation(self, operation: Operation, handler: T) -> None:
        insert(self._tree, operation.segments(), handler)

    def resolve(self, method: HTTPMethod | str, path: str) -> ResolvedMatch[T] | None:
        """Returns the handler for a concrete request path, or None."""
        return self.resolve_operation(Operation(HTTPMethod(method), path))

    def resolve_operation(self, operation: Operation) -> ResolvedMatch[T] | None:
        wildcards: dict[str, str] = {}
        handler = find_handler(self._tree, operation.request_segments(), wildcards)
        if handler is None:
            return None
        return ResolvedMatch(handler, wildcards)

    def clear(self) -> None:
        """Discards every registration."""
        self._tree = Node()

    def format_routes(self, *, tree: bool = False) -> str:
        return format_routes(self._tree, tree=tree)

    def __str__(self) -> str:
        return format_routes(self._tree, tree=True)
