from importlib.metadata import version

from .dispatcher import Dispatcher, http_route, path_params, rest_function_meta
from .errors import (
    DuplicateRoute,
    MalformedRoute,
    RouteError,
    SegmentCollision,
    WildcardNameConflict,
)
from .operation import HTTPMethod, Operation
from .registry import Registry, ResolvedMatch
from .response import RestResponse, RestServiceError
from .service import FunctionMeta, RegistryService, RestService, rest_function

__all__ = [
    "Dispatcher",
    "DuplicateRoute",
    "FunctionMeta",
    "HTTPMethod",
    "MalformedRoute",
    "Operation",
    "Registry",
    "RegistryService",
    "ResolvedMatch",
    "RestResponse",
    "RestService",
    "RestServiceError",
    "RouteError",
    "SegmentCollision",
    "WildcardNameConflict",
    "__version__",
    "http_route",
    "path_params",
    "rest_function",
    "rest_function_meta",
]

__version__ = version("restmux")
