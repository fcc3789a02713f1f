"""treeroute — directory trees as HTTP route tables.

Each directory becomes a URL segment, each ``<verb>.py`` file an HTTP
method handler, and each route's exports an ordered request pipeline
(rate limit, authorize, permissions, middleware, handle).

Basic usage::

    from treeroute import mount

    records = mount(app, dir="routes")

    # routes/
    #   get.py            GET /
    #   users/
    #     get.py          GET /users
    #     user-id/
    #       get.py        GET /users/:userId

A route file::

    rate_limit = "1s"

    async def authorize(request, response):
        return request.user is not None

    async def handle(request, response):
        response.end("ok")
"""

__version__ = "0.1.0"
__all__ = [
    "PREFIX",
    "SUFFIX",
    "Authorizer",
    "ConfigurationError",
    "Forbidden",
    "HTTPError",
    "MountConfig",
    "MountRecord",
    "RateLimitConfig",
    "RateLimiterRegistry",
    "RouteConfig",
    "RouteDescriptor",
    "TooManyRequests",
    "TreeRouteError",
    "assemble",
    "discover",
    "discover_async",
    "mount",
    "run_pipeline",
    "segment",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import treeroute`` fast while providing a clean top-level API.
    """
    if name == "mount":
        from treeroute.mounter import mount

        return mount

    if name == "MountConfig":
        from treeroute.config import MountConfig

        return MountConfig

    if name in ("discover", "discover_async"):
        from treeroute.routing import discovery as _discovery

        return getattr(_discovery, name)

    if name in ("PREFIX", "SUFFIX", "segment"):
        from treeroute.routing import convention as _convention

        return getattr(_convention, name)

    if name in ("MountRecord", "RouteConfig", "RouteDescriptor"):
        from treeroute.routing import types as _types

        return getattr(_types, name)

    if name in ("Authorizer", "RateLimitConfig", "RateLimiterRegistry", "assemble", "run_pipeline"):
        from treeroute import pipeline as _pipeline

        return getattr(_pipeline, name)

    if name in ("ConfigurationError", "Forbidden", "HTTPError", "TooManyRequests", "TreeRouteError"):
        from treeroute import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
