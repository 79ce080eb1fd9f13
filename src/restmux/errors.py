"""Registration and parsing errors raised by the routing tree."""


class RouteError(ValueError):
    """Base class for route configuration errors."""


class MalformedRoute(RouteError):
    def __init__(self, route: str, reason: str) -> None:
        self.route = route
        self.reason = reason
        super().__init__(f"Failed to parse operation {route!r}: {reason}")


class DuplicateRoute(RouteError):
    def __init__(self, existing: object, handler: object) -> None:
        self.existing = existing
        self.handler = handler
        super().__init__(
            f"Cannot register [{handler}]. Function [{existing}] already exists"
        )


class WildcardNameConflict(RouteError):
    def __init__(self, registered: str, offered: str, handler: object) -> None:
        self.registered = registered
        self.offered = offered
        self.handler = handler
        super().__init__(
            f"Cannot register [{handler}]. Path already contains wildcard "
            f"{{{registered}}} and trying to register wildcard {{{offered}}}"
        )


class SegmentCollision(RouteError):
    """A literal segment equal to the wildcard marker meets a wildcard segment."""

    def __init__(self, registered: str, offered: str, handler: object) -> None:
        self.registered = registered
        self.offered = offered
        self.handler = handler
        super().__init__(
            f"Cannot register [{handler}]. Segment {offered} collides with "
            f"registered segment {registered}"
        )
