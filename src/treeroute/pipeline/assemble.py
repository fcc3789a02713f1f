"""Pipeline assembly — turn a route's exports into an ordered stage list.

Stage order is fixed::

    [rate_limit?, authorize?, permissions?, *middleware, handle]

Every stage has the shape ``async def stage(request, response, next)``.
A stage either calls ``next()`` to continue, calls ``next(error)`` to stop
the chain with an error, or returns without calling ``next`` after
writing a response.  Runtime failures are always forwarded, never raised.

Configuration problems raise synchronously while assembling so a bad
route file fails the mount instead of the first request.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from treeroute._internal.invoke import invoke
from treeroute._internal.types import Next, Stage
from treeroute.errors import HandleInvalid, TooManyRequests
from treeroute.pipeline.authorize import (
    AuthorizerProvider,
    create_authorize_stage,
    create_permissions_stage,
)
from treeroute.pipeline.ratelimit import RateLimitConfig, RateLimiterRegistry, default_registry
from treeroute.routing.types import RouteConfig

logger = logging.getLogger("treeroute.ratelimit")


def client_identity(request: Any, key_header: str | None = None) -> str:
    """Identify the client a request came from, for rate limiting.

    Checks, in order: *key_header* (first hop of a comma-separated proxy
    chain), ``request.ip``, ``request.client`` as a ``(host, port)`` tuple
    or an object with ``.host``.  Falls back to ``"unknown"``.
    """
    if key_header:
        headers = getattr(request, "headers", None)
        raw = headers.get(key_header) if headers is not None else None
        if raw:
            forwarded = raw.split(",")[0].strip()
            if forwarded:
                return forwarded

    ip = getattr(request, "ip", None)
    if ip:
        return str(ip)

    client = getattr(request, "client", None)
    if isinstance(client, (tuple, list)) and client:
        return str(client[0])
    host = getattr(client, "host", None)
    if host:
        return str(host)
    return "unknown"


def create_rate_limit_stage(
    rate_limit: Any,
    limiters: RateLimiterRegistry | None = None,
    client_key: Callable[[Any], str] | None = None,
    default_key_prefix: str | None = None,
) -> Stage:
    """Wrap a rate-limit policy as a pipeline stage.

    Args:
        rate_limit: Duration string (one permit per span), mapping, or
            :class:`RateLimitConfig`.
        limiters: Registry to take the limiter from; the process-wide
            default when omitted.
        client_key: Maps a request to its client key; defaults to
            :func:`client_identity`.
        default_key_prefix: Limiter name for policies without a
            ``key_prefix``; the registry default when omitted.

    Raises:
        RateLimitInvalid: The policy is malformed.
    """
    config = RateLimitConfig.coerce(rate_limit)
    if config.key_prefix is None and default_key_prefix:
        config = replace(config, key_prefix=default_key_prefix)
    registry = limiters if limiters is not None else default_registry
    limiter = registry.limiter_for(config)
    identify = client_key or client_identity

    async def rate_limit_stage(request: Any, response: Any, next: Next) -> None:
        key = identify(request)
        allowed, retry_after = limiter.consume(key)
        if not allowed:
            logger.debug("Rate limit exceeded for %s; retry in %ds", key, retry_after)
            next(TooManyRequests(retry_after=retry_after))
            return
        next()

    return rate_limit_stage


def create_handle_stage(handle: Any) -> Stage:
    """Wrap the final request handler as a pipeline stage.

    The handler writes the response itself; its return value is ignored.
    Exceptions are forwarded to ``next`` instead of propagating.

    Raises:
        HandleInvalid: *handle* is missing or not callable.
    """
    if not callable(handle):
        raise HandleInvalid('The "handle" parameter is not a function')

    async def handle_stage(request: Any, response: Any, next: Next) -> None:
        try:
            await invoke(handle, request, response)
        except Exception as exc:
            next(exc)

    return handle_stage


def assemble(
    config: RouteConfig | Any,
    *,
    limiters: RateLimiterRegistry | None = None,
    authorizer: AuthorizerProvider | None = None,
    client_key: Callable[[Any], str] | None = None,
    default_key_prefix: str | None = None,
) -> tuple[Stage, ...]:
    """Build the ordered stage tuple for one route.

    Args:
        config: A :class:`RouteConfig`, a mapping with the same keys, or a
            bare callable used as ``handle``.
        limiters: Rate-limiter registry for ``rate_limit`` routes.
        authorizer: Per-request authorizer provider for ``permissions``.
        client_key: Overrides client identification for rate limiting.
        default_key_prefix: Limiter name for rate limits without ``key_prefix``.

    Returns:
        Non-empty tuple of stages ending with the wrapped handler.

    Raises:
        RateLimitInvalid, AuthorizeInvalid, PermissionsInvalid, HandleInvalid:
            The corresponding export is malformed.
    """
    route = RouteConfig.coerce(config)
    candidates: list[Any] = []

    if route.rate_limit is not None:
        candidates.append(create_rate_limit_stage(route.rate_limit, limiters, client_key, default_key_prefix))

    if route.authorize is not None:
        candidates.append(create_authorize_stage(route.authorize))

    if route.permissions is not None:
        candidates.append(create_permissions_stage(route.permissions, authorizer))

    candidates.extend(route.middleware)
    candidates.append(create_handle_stage(route.handle))

    return tuple(stage for stage in candidates if callable(stage))
