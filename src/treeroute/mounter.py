"""Mount a route directory onto a host application.

Usage::

    from treeroute import mount

    records = mount(app, dir="routes", route="/api")
    for record in records:
        print(record.method.upper(), record.path)

The host app only needs one registration function per HTTP verb taking
``(path, pipeline)``; Express-style routers fit as-is.

Mounting is all-or-nothing: every route file is loaded, every pipeline
assembled, and every registration function looked up before the first
route is registered, so a configuration error registers nothing.
"""

import logging
import os
from collections.abc import Callable, Sequence
from functools import partial
from pathlib import Path
from typing import Any, TypeAlias

from treeroute.config import MountConfig
from treeroute.errors import (
    ConfigurationError,
    DirectoryInvalid,
    MethodUnsupported,
    RouteInvalid,
    SourceMissing,
)
from treeroute.pipeline.assemble import assemble, client_identity
from treeroute.pipeline.authorize import AuthorizerProvider
from treeroute.pipeline.ratelimit import RateLimiterRegistry
from treeroute.routing.discovery import discover, join_path
from treeroute.routing.loader import load_route_config
from treeroute.routing.types import HostApp, MountRecord, RouteConfig, RouteDescriptor

logger = logging.getLogger("treeroute.mount")

# Turns a route file path into its configuration
RouteLoader: TypeAlias = Callable[[Path], RouteConfig]


def mount(
    app: HostApp | Any,
    *,
    dir: str | os.PathLike[str] | None = None,  # noqa: A002 — mirrors the public keyword
    handlers: Sequence[RouteDescriptor] | None = None,
    route: str = "/",
    config: MountConfig | None = None,
    limiters: RateLimiterRegistry | None = None,
    authorizer: AuthorizerProvider | None = None,
    loader: RouteLoader = load_route_config,
) -> tuple[MountRecord, ...]:
    """Discover, assemble, and register routes on *app*.

    Args:
        app: Host application with one ``<verb>(path, pipeline)`` function
            per HTTP verb in use.
        dir: Route directory to discover.  Mutually exclusive with *handlers*.
        handlers: Pre-discovered descriptors, e.g. from
            :func:`~treeroute.routing.discovery.discover_async`.
        route: Mount prefix joined in front of every route path.
        config: Discovery and rate-limit settings.
        limiters: Rate-limiter registry; the process-wide default when omitted.
        authorizer: Per-request authorizer provider for ``permissions`` routes.
        loader: Turns a route file path into a :class:`RouteConfig`.

    Returns:
        One :class:`MountRecord` per registration, in registration order.

    Raises:
        SourceMissing: Neither or both of *dir* and *handlers* were given.
        DirectoryInvalid: *dir* is blank or not a path.
        RouteInvalid: *route* is not a non-blank string.
        ConfigurationError: Any route file is invalid.
        MethodUnsupported: *app* lacks a registration function in use.
    """
    config = config or MountConfig()

    if (dir is None) == (handlers is None):
        raise SourceMissing('Exactly one of "dir" or "handlers" must be supplied')
    if not isinstance(route, str):
        raise RouteInvalid('The "route" parameter is not a string')
    if route.strip() == "":
        raise RouteInvalid('The "route" parameter can not be an empty string')

    if dir is not None:
        if not isinstance(dir, (str, os.PathLike)):
            raise DirectoryInvalid('The "dir" parameter is not a string or path')
        descriptors = discover(
            dir,
            convention=config.convention,
            methods=config.methods,
            extensions=config.extensions,
        )
    else:
        descriptors = _check_handlers(handlers)

    client_key = config.client_key
    if client_key is None and config.key_header:
        client_key = partial(client_identity, key_header=config.key_header)

    records = []
    for descriptor in descriptors:
        route_config = loader(descriptor.source)
        try:
            pipeline = assemble(
                route_config,
                limiters=limiters,
                authorizer=authorizer,
                client_key=client_key,
                default_key_prefix=config.default_key_prefix,
            )
        except ConfigurationError as exc:
            exc.add_note(f"in route file {descriptor.source}")
            raise
        records.append(
            MountRecord(
                path=join_path(route, descriptor.path),
                method=descriptor.method,
                source=descriptor.source,
                config=route_config,
                pipeline=pipeline,
            )
        )

    registrars = _registrars(app, {record.method for record in records})

    for record in records:
        registrars[record.method](record.path, list(record.pipeline))
        logger.debug("Mounted %s %s (%d stages)", record.method.upper(), record.path, len(record.pipeline))

    logger.info("Mounted %d route(s) at %s", len(records), join_path(route))
    return tuple(records)


def _check_handlers(handlers: Any) -> tuple[RouteDescriptor, ...]:
    if isinstance(handlers, (str, bytes)) or not isinstance(handlers, Sequence):
        raise SourceMissing('The "handlers" parameter is not a sequence of route descriptors')
    for item in handlers:
        if not isinstance(item, RouteDescriptor):
            msg = f'The "handlers" parameter contains {type(item).__name__}, expected RouteDescriptor'
            raise ConfigurationError(msg)
    return tuple(handlers)


def _registrars(app: Any, methods: set[str]) -> dict[str, Callable[..., Any]]:
    """Look up the host app's registration function for each verb."""
    registrars = {}
    for method in sorted(methods):
        register = getattr(app, method, None)
        if not callable(register):
            raise MethodUnsupported(f"Host app has no {method!r} function to register routes with")
        registrars[method] = register
    return registrars
