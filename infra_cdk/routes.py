# infra_cdk/routes.py
"""
The HTTP routes served by the api image target.

Each descriptor becomes exactly one Lambda function and one API Gateway
method. The table is checked when this module is imported.
"""
import re
from dataclasses import dataclass
from typing import Iterable, Tuple

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE"})

_PLACEHOLDER_RE = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\}$")
_LITERAL_SEGMENT_RE = re.compile(r"^[A-Za-z0-9._-]+$")


@dataclass(frozen=True)
class RouteDescriptor:
    name: str
    method: str
    path: str


ROUTES: Tuple[RouteDescriptor, ...] = (
    RouteDescriptor("deleteMicropost", "DELETE", "/v1/users/{user_id}/microposts/{micropost_id}"),
    RouteDescriptor("deleteUser", "DELETE", "/v1/users/{user_id}"),
    RouteDescriptor("getMicropost", "GET", "/v1/users/{user_id}/microposts/{micropost_id}"),
    RouteDescriptor("getMicroposts", "GET", "/v1/users/{user_id}/microposts"),
    RouteDescriptor("getUser", "GET", "/v1/users/{user_id}"),
    RouteDescriptor("getUsers", "GET", "/v1/users"),
    RouteDescriptor("postMicroposts", "POST", "/v1/users/{user_id}/microposts"),
    RouteDescriptor("postUsers", "POST", "/v1/users"),
    RouteDescriptor("putMicropost", "PUT", "/v1/users/{user_id}/microposts/{micropost_id}"),
    RouteDescriptor("putUser", "PUT", "/v1/users/{user_id}"),
    RouteDescriptor("hello", "POST", "/v1/hello"),
)


def path_parameters(path: str) -> Tuple[str, ...]:
    """Returns the placeholder names of a path template, in order."""
    names = []
    for segment in path.strip("/").split("/"):
        match = _PLACEHOLDER_RE.match(segment)
        if match:
            names.append(match.group(1))
    return tuple(names)


def _validate_path(path: str) -> None:
    if not path.startswith("/") or path == "/":
        raise ValueError(f"Path template must start with '/' and name a resource: {path!r}")
    seen = set()
    for segment in path[1:].split("/"):
        if not segment:
            raise ValueError(f"Path template has an empty segment: {path!r}")
        match = _PLACEHOLDER_RE.match(segment)
        if match:
            if match.group(1) in seen:
                raise ValueError(f"Path template repeats placeholder {match.group(1)!r}: {path!r}")
            seen.add(match.group(1))
        elif not _LITERAL_SEGMENT_RE.match(segment):
            raise ValueError(f"Path template has a malformed segment {segment!r}: {path!r}")


def validate_routes(routes: Iterable[RouteDescriptor]) -> None:
    """
    Checks a route table before it is turned into resources.

    Raises:
        ValueError: On duplicate names, duplicate method/path bindings,
            unsupported methods or malformed path templates.
    """
    names = set()
    bindings = set()
    for route in routes:
        if not route.name:
            raise ValueError("Route name must not be empty")
        if route.name in names:
            raise ValueError(f"Duplicate route name: {route.name}")
        names.add(route.name)

        if route.method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method {route.method!r} for route {route.name}")
        _validate_path(route.path)

        binding = (route.method, route.path)
        if binding in bindings:
            raise ValueError(f"Duplicate binding {route.method} {route.path}")
        bindings.add(binding)


validate_routes(ROUTES)
