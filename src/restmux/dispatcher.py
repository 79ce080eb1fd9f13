"""RSGI application routing requests to REST functions.

Inspired by go-chi/mux's Mux
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from functools import reduce

from restmux.operation import HTTPMethod, Operation
from restmux.response import RestResponse, RestServiceError
from restmux.rsgi import HTTPProtocol, HTTPScope, Middleware, RSGIHTTPHandler
from restmux.service import FunctionMeta, RegistryService

logger = logging.getLogger(__name__)

path_params: ContextVar[dict[str, str]] = ContextVar("path_params")
http_route: ContextVar[str] = ContextVar("http_route")
rest_function_meta: ContextVar[FunctionMeta] = ContextVar("rest_function_meta")

SUPPORTED_METHODS = frozenset(
    {HTTPMethod.GET, HTTPMethod.POST, HTTPMethod.PUT, HTTPMethod.DELETE}
)
_TEXT = [("content-type", "text/plain")]


class Dispatcher:
    """Resolves each request against a `RegistryService` and runs the function.

    Args:
        registry: Source of the registered REST functions.
        suffix: Trailing selector/extension stripped from request paths before
            lookup. Empty string disables stripping.
        attribute_prefix: Prepended to every wildcard name in `path_params`,
            e.g. ``{id}`` is exposed as ``path_params.get()["ws.id"]``.
        middleware: Wraps the matched function, outermost first. Not found and
            method not allowed responses bypass middleware.

    Example:
        registry = RegistryService([UserService()])
        app = Dispatcher(registry, middleware=(otel(),))
        server = Server(app, address="127.0.0.1", port=8000)
    """

    __slots__ = ("_middleware", "_prefix", "_registry", "_suffix")

    def __init__(
        self,
        registry: RegistryService,
        *,
        suffix: str = ".ws.json",
        attribute_prefix: str = "ws.",
        middleware: tuple[Middleware, ...] = (),
    ) -> None:
        if not attribute_prefix:
            msg = "attribute_prefix must not be empty"
            raise ValueError(msg)
        self._registry = registry
        self._suffix = suffix
        self._prefix = attribute_prefix
        self._middleware = middleware

    def use(self, *middleware: Middleware) -> None:
        """Adds middleware around every matched function."""
        self._middleware = self._middleware + middleware

    async def __rsgi__(self, scope: HTTPScope, proto: HTTPProtocol) -> None:
        try:
            method = HTTPMethod(scope.method.upper())
        except ValueError:
            method = None
        if method not in SUPPORTED_METHODS:
            proto.response_str(405, _TEXT, "Method not allowed")
            return
        assert method is not None

        path = self._clean_path(scope.path)
        try:
            match = self._registry.resolve(Operation(method, path))
        except Exception:  # noqa: BLE001
            logger.exception(
                "Failed to resolve REST operation %s %s", method.value, path
            )
            proto.response_str(500, _TEXT, "Unexpected error occurred.")
            return
        if match is None:
            logger.debug("Could not find REST operation %s", path)
            proto.response_str(404, _TEXT, "Not found")
            return

        handler = reduce(
            lambda h, m: m(h), reversed(self._middleware), _invoker(match.handler)
        )
        params = {self._prefix + k: v for k, v in match.wildcards.items()}
        params_token = path_params.set(params)
        route_token = http_route.set(match.handler.operation.path)
        function_token = rest_function_meta.set(match.handler)
        try:
            await handler(scope, proto)
        finally:
            rest_function_meta.reset(function_token)
            http_route.reset(route_token)
            path_params.reset(params_token)

    def _clean_path(self, path: str) -> str:
        if self._suffix and path.endswith(self._suffix):
            cleaned = path[: -len(self._suffix)]
            logger.debug("Cleaned path %s -> %s", path, cleaned)
            return cleaned
        return path


def _invoker(function: FunctionMeta) -> RSGIHTTPHandler:
    """Wraps a REST function as an RSGI handler writing its JSON response."""

    async def invoke(scope: HTTPScope, proto: HTTPProtocol) -> None:
        try:
            result = await function.invoke(scope, proto)
            if isinstance(result, str):
                result = RestResponse(result)
            elif result is not None and not isinstance(result, RestResponse):
                msg = (
                    f"Unsupported return type of {type(result).__qualname__} "
                    f"for {result!r}"
                )
                raise TypeError(msg)
        except RestServiceError as e:
            if e.is_validation:
                logger.debug("Web service failure: %s", e, exc_info=True)
            else:
                logger.error("Web service failure: %s", e, exc_info=True)
            _write(proto, e.to_response())
            return
        except Exception:  # noqa: BLE001
            logger.exception("Web service failure in %s", function)
            proto.response_str(500, _TEXT, "Unexpected error occurred.")
            return

        if result is not None:  # None: function wrote its own response
            _write(proto, result)

    return invoke


def _write(proto: HTTPProtocol, response: RestResponse) -> None:
    proto.response_str(response.status, response.headers(), response.body)
