"""Data models for directory-based routing.

Immutable frozen dataclasses representing discovered route files, the
typed configuration a route file exports, and the record of what was
mounted.  Built once per mount call.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from treeroute._internal.types import Handler, Stage


@dataclass(frozen=True, slots=True)
class RouteDescriptor:
    """A discovered (path, method, file) unit before pipeline assembly.

    Attributes:
        path: Absolute POSIX route path (e.g., ``/users/:userId``).
        method: Lower-case HTTP verb from the allow-list.
        source: Absolute path of the route file.
    """

    path: str
    method: str
    source: Path


@dataclass(frozen=True, slots=True)
class RouteConfig:
    """Declarative exports of one route file.

    Only ``handle`` is required; the rest are validated when the pipeline
    is assembled.

    Attributes:
        handle: Final request handler ``(request, response)``.
        authorize: Predicate ``(request, response) -> bool``.
        rate_limit: Duration string or ``{points, duration, key_prefix}``.
        middleware: Extra stages run between authorization and ``handle``.
        permissions: ``{action: target}`` mapping or a callable producing one.
    """

    handle: Handler | None = None
    authorize: Any = None
    rate_limit: Any = None
    middleware: tuple[Any, ...] = ()
    permissions: Any = None

    def __post_init__(self) -> None:
        # A single stage is accepted wherever a list is.
        object.__setattr__(self, "middleware", _as_tuple(self.middleware))

    @classmethod
    def coerce(cls, value: Any) -> RouteConfig:
        """Build a RouteConfig from a RouteConfig, a mapping, or a callable.

        A bare callable is treated as ``handle``.  Unknown mapping keys are
        ignored; ``handler`` is accepted as an alias for ``handle``.
        """
        if isinstance(value, RouteConfig):
            return value
        if isinstance(value, Mapping):
            return cls.from_exports(value.get)
        if callable(value):
            return cls(handle=value)
        return cls()

    @classmethod
    def from_exports(cls, lookup: Callable[[str], Any]) -> RouteConfig:
        """Build a RouteConfig from a name lookup (``dict.get`` or module getattr)."""
        handle = lookup("handle")
        if handle is None:
            handle = lookup("handler")
        return cls(
            handle=handle,
            authorize=lookup("authorize"),
            rate_limit=lookup("rate_limit"),
            middleware=_as_tuple(lookup("middleware")),
            permissions=lookup("permissions"),
        )


def _as_tuple(middleware: Any) -> tuple[Any, ...]:
    if middleware is None:
        return ()
    if isinstance(middleware, (list, tuple)):
        return tuple(middleware)
    return (middleware,)


@dataclass(frozen=True, slots=True)
class MountRecord:
    """What was registered with the host app for one (path, method).

    Attributes:
        path: Full route path passed to the host app (mount prefix included).
        method: HTTP verb whose registration function was called.
        source: Route file the configuration came from.
        config: The loaded route configuration.
        pipeline: Stages registered, in execution order.
    """

    path: str
    method: str
    source: Path
    config: RouteConfig
    pipeline: tuple[Stage, ...]


class HostApp(Protocol):
    """Shape of the host application consumed by :func:`treeroute.mount`.

    One registration function per HTTP verb, each taking the route path
    and the list of stages::

        app.get("/users/:userId", [rate_limit, authorize, handle])

    Only the verbs actually discovered need to exist.
    """

    def use(self, path: str, pipeline: list[Stage], /) -> None: ...

    def get(self, path: str, pipeline: list[Stage], /) -> None: ...

    def post(self, path: str, pipeline: list[Stage], /) -> None: ...

    def put(self, path: str, pipeline: list[Stage], /) -> None: ...

    def patch(self, path: str, pipeline: list[Stage], /) -> None: ...

    def delete(self, path: str, pipeline: list[Stage], /) -> None: ...
