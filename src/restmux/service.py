"""REST services, their decorated functions, and the registry built from them."""

from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from restmux.operation import Operation
from restmux.registry import Registry, ResolvedMatch
from restmux.response import RestResponse
from restmux.rsgi import HTTPProtocol, HTTPScope

logger = logging.getLogger(__name__)

type RestResult = RestResponse | str | None


class RestService:
    """Base class for objects exposing REST functions.

    Methods decorated with `rest_function` are registered when the service is
    added to a `RegistryService`:

        class UserService(RestService):
            @rest_function("GET:/api/user/{id}")
            async def get_user(self, scope: HTTPScope, proto: HTTPProtocol) -> str:
                return json.dumps({"id": path_params.get()["ws.id"]})
    """


def rest_function[F: Callable[..., Any]](*operations: str) -> Callable[[F], F]:
    """Marks a service method as the handler for one or more operations.

    Operations use the ``METHOD:/path`` format, e.g. ``"PUT:/api/{group}"``.
    """
    if not operations:
        msg = "rest_function requires at least one operation"
        raise ValueError(msg)

    def decorator(func: F) -> F:
        existing: tuple[str, ...] = getattr(func, "__rest_operations__", ())
        func.__rest_operations__ = (*existing, *operations)  # type: ignore[attr-defined]
        return func

    return decorator


@dataclass(frozen=True, slots=True)
class FunctionMeta:
    """A registered REST function: the service, its method name and operation."""

    service: RestService
    function_name: str
    operation: Operation

    async def invoke(self, scope: HTTPScope, proto: HTTPProtocol) -> RestResult:
        result = getattr(self.service, self.function_name)(scope, proto)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __str__(self) -> str:
        return f"{type(self.service).__qualname__}.{self.function_name}"


def collect_functions(service: RestService) -> list[FunctionMeta]:
    """Returns every operation declared by the service's methods.

    Classes are searched from most derived to least derived. The most derived
    definition of a name wins, so overriding a decorated method without the
    decorator removes its operations.

    Raises MalformedRoute on an unparsable operation string.
    """
    functions: list[FunctionMeta] = []
    seen: set[str] = set()
    for cls in type(service).__mro__:
        if cls is RestService or cls is object:
            continue
        for name, attr in vars(cls).items():
            if name in seen:
                continue
            seen.add(name)
            for route in getattr(attr, "__rest_operations__", ()):
                functions.append(FunctionMeta(service, name, Operation.parse(route)))
    return functions


class RegistryService:
    """Tracks REST services and keeps a registry of their functions.

    Every change to the tracked services bumps a tracking count. The registry
    is rebuilt lazily on the next lookup when the count it was built from is
    stale: the new registry is built off to the side and published with a
    single assignment, so lookups never observe a partially built tree.
    """

    __slots__ = ("_built_count", "_lock", "_registry", "_services", "_tracking_count")
    _services: dict[int, RestService]
    _registry: Registry[FunctionMeta]

    def __init__(self, services: Iterable[RestService] = ()) -> None:
        self._services = {}
        self._registry = Registry()
        self._lock = threading.Lock()
        self._tracking_count = 0
        self._built_count = -1
        for service in services:
            self.add(service)

    def add(self, service: RestService) -> None:
        """Tracks a service. Adding an already tracked service does nothing."""
        with self._lock:
            if id(service) in self._services:
                return
            self._services[id(service)] = service
            self._tracking_count += 1

    def remove(self, service: RestService) -> None:
        """Stops tracking a service. Raises KeyError if it isn't tracked."""
        with self._lock:
            if id(service) not in self._services:
                msg = f"{type(service).__qualname__} is not registered"
                raise KeyError(msg)
            del self._services[id(service)]
            self._tracking_count += 1

    @property
    def services(self) -> tuple[RestService, ...]:
        return tuple(self._services.values())

    def resolve(self, operation: Operation) -> ResolvedMatch[FunctionMeta] | None:
        self.rebuild_if_needed()
        return self._registry.resolve_operation(operation)

    def format_routes(self, *, tree: bool = False) -> str:
        self.rebuild_if_needed()
        return self._registry.format_routes(tree=tree)

    def rebuild_if_needed(self) -> None:
        """Rebuilds the registry if services changed since it was last built.

        Registration errors propagate and leave the previous registry in place.
        """
        if self._built_count == self._tracking_count:
            return
        with self._lock:
            if self._built_count == self._tracking_count:
                logger.debug(
                    "tracking counts match after double check, no refresh. %d=%d",
                    self._built_count,
                    self._tracking_count,
                )
                return
            logger.info(
                "Rebuilding REST function registry. "
                "Tracking count mismatch: cached = %d, actual = %d",
                self._built_count,
                self._tracking_count,
            )
            self._registry = self._build(self._services.values())
            self._built_count = self._tracking_count

    @staticmethod
    def _build(services: Iterable[RestService]) -> Registry[FunctionMeta]:
        registry: Registry[FunctionMeta] = Registry()
        services = list(services)
        if not services:
            logger.warning("No %s services have been registered", RestService.__name__)
            return registry
        logger.info("Found %d service matches", len(services))
        for service in services:
            for meta in collect_functions(service):
                logger.info("Registering %s to %s", meta.operation, meta)
                registry.insert_operation(meta.operation, meta)
        return registry
