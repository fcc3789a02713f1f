"""treeroute exception hierarchy.

Two families share one base:

- :class:`ConfigurationError` — raised synchronously while discovering,
  loading, assembling, or mounting routes.  Fatal to the mount call.
- :class:`HTTPError` — produced while serving a request and forwarded to
  the next pipeline stage via ``next(error)``, never raised out of a stage.
"""

from dataclasses import dataclass


class TreeRouteError(Exception):
    """Base for all treeroute-specific errors."""


class ConfigurationError(TreeRouteError):
    """Raised when a route tree, route module, or mount call is invalid.

    Every subclass carries a stable ``code`` so callers can branch on it
    without matching message text.
    """

    code: str = "CONFIGURATION_INVALID"


class DirectoryInvalid(ConfigurationError):
    """The ``dir`` argument is missing, blank, or not a path."""

    code = "DIR_INVALID"


class RouteInvalid(ConfigurationError):
    """The ``route`` mount prefix is not a non-blank string."""

    code = "ROOT_INVALID"


class SourceMissing(ConfigurationError):
    """Neither (or both) of ``dir`` and ``handlers`` were supplied."""

    code = "SOURCE_MISSING"


class RateLimitInvalid(ConfigurationError):
    code = "RATE_LIMIT_INVALID"


class AuthorizeInvalid(ConfigurationError):
    code = "AUTHORIZE_INVALID"


class HandleInvalid(ConfigurationError):
    code = "HANDLE_INVALID"


class PermissionsInvalid(ConfigurationError):
    """Permissions are malformed or declared without an authorizer.

    Also forwarded (not raised) at request time when a permissions
    callable resolves to something other than a mapping.
    """

    code = "PERMISSIONS_INVALID"


class DuplicateRoute(ConfigurationError):
    """Two descriptors resolve to the same (path, method) pair."""

    code = "DUPLICATE_ROUTE"


class RouteLoadError(ConfigurationError):
    """A route file could not be imported."""

    code = "ROUTE_LOAD_FAILED"


class MethodUnsupported(ConfigurationError):
    """The host app has no registration function for an HTTP verb."""

    code = "METHOD_UNSUPPORTED"


@dataclass(frozen=True, slots=True)
class HTTPError(TreeRouteError):
    """An error that maps directly to an HTTP status code.

    Forwarded by pipeline stages to ``next``; the host app's error stage
    decides how to render it.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class Forbidden(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """403 — authorization or a permission check denied the request."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(status=403, detail=detail)


class TooManyRequests(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """429 — the client exhausted its rate-limit permits.

    Carries a ``Retry-After`` header with the whole seconds until the
    next permit is available.
    """

    def __init__(self, retry_after: int = 1, detail: str = "Too Many Requests") -> None:
        super().__init__(
            status=429,
            detail=detail,
            headers=(("Retry-After", str(retry_after)),),
        )

    @property
    def retry_after(self) -> int:
        return int(dict(self.headers)["Retry-After"])
