"""REST operations: an HTTP method plus a path, and their route keys."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from restmux.errors import MalformedRoute
from restmux.segment import Segment


class HTTPMethod(Enum):
    """HTTP methods that can lead a route key.

    The dispatcher only serves GET, POST, PUT and DELETE; the remaining
    members exist so registries can be used with other front ends.
    """

    DELETE = "DELETE"  # Remove the target.
    GET = "GET"  # Retrieve the target.
    HEAD = "HEAD"  # Same as GET, but only retrieve status line and header section.
    OPTIONS = "OPTIONS"  # Describe the communication options for the target.
    PATCH = "PATCH"  # Apply partial modifications to a target.
    POST = "POST"  # Perform target-specific processing with the request payload.
    PUT = "PUT"  # Replace the target with the request payload.

    def __repr__(self) -> str:
        return str(self.value)


@dataclass(slots=True, frozen=True)
class Operation:
    method: HTTPMethod
    path: str

    @classmethod
    def parse(cls, route: str) -> Operation:
        """Parse the ``METHOD:/path`` wire format, e.g. ``GET:/api/{group}``."""
        parts = route.split(":")
        if len(parts) != 2:
            msg = f"expected exactly one ':', found {len(parts) - 1}"
            raise MalformedRoute(route, msg)
        method, path = parts
        try:
            return cls(HTTPMethod(method), path)
        except ValueError:
            msg = f"unknown http method {method!r}"
            raise MalformedRoute(route, msg) from None

    def segments(self) -> tuple[Segment, ...]:
        """Route key for registration: ``{name}`` tokens become wildcards."""
        return (Segment(self.method.value), *map(Segment.parse, _split(self.path)))

    def request_segments(self) -> tuple[Segment, ...]:
        """Route key for lookup: every path token is a literal."""
        return (Segment(self.method.value), *map(Segment, _split(self.path)))

    def __str__(self) -> str:
        return f"{self.method.value}:{self.path}"


def _split(path: str) -> list[str]:
    if path.startswith("/"):
        path = path[1:]
    return path.split("/")
