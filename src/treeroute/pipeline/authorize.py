"""Authorization stages — ``authorize`` predicates and ``permissions`` checks.

``authorize`` is a per-route predicate::

    async def authorize(request, response) -> bool:
        return request.user is not None

``permissions`` declares capability checks evaluated by an injected
:class:`Authorizer`::

    permissions = {"read": "documents"}

    # or derived from the request
    def permissions(request, response):
        return {"edit": request.params["doc_id"]}

The authorizer is resolved per request from an :data:`AuthorizerProvider`
supplied at mount time, never discovered on the request object.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol, TypeAlias

from treeroute._internal.invoke import invoke
from treeroute._internal.types import Next, Stage
from treeroute.errors import AuthorizeInvalid, Forbidden, HTTPError, PermissionsInvalid

_log = logging.getLogger("treeroute.security")


class Authorizer(Protocol):
    """Capability check for the current principal.

    ``can`` may be sync or async and must return exactly ``True`` to grant.
    """

    def can(self, action: str, target: Any) -> bool: ...


# Resolves the authorizer for a request; None means nobody to authorize
AuthorizerProvider: TypeAlias = Callable[[Any], Authorizer | None]


def create_authorize_stage(authorize: Any) -> Stage:
    """Wrap an ``authorize`` predicate as a pipeline stage.

    Only a result that ``is True`` continues the chain.  Anything else,
    including a raised exception, forwards :class:`Forbidden`; an
    :class:`HTTPError` raised by the predicate is forwarded unchanged.

    Raises:
        AuthorizeInvalid: *authorize* is not callable.
    """
    if not callable(authorize):
        raise AuthorizeInvalid('The "authorize" parameter is not a function')

    async def authorize_stage(request: Any, response: Any, next: Next) -> None:
        try:
            allowed = await invoke(authorize, request, response)
        except HTTPError as exc:
            next(exc)
            return
        except Exception as exc:
            _log.debug("authorize raised %r; denying", exc)
            forbidden = Forbidden()
            forbidden.__cause__ = exc
            next(forbidden)
            return

        if allowed is True:
            next()
        else:
            next(Forbidden())

    return authorize_stage


def create_permissions_stage(permissions: Any, provider: AuthorizerProvider | None) -> Stage:
    """Wrap a ``permissions`` declaration as a pipeline stage.

    Every ``(action, target)`` pair must pass ``authorizer.can``.  A request
    with no authorizer is denied.  A permissions callable that resolves to a
    non-mapping forwards :class:`PermissionsInvalid` to ``next``.

    Raises:
        PermissionsInvalid: *permissions* is neither a mapping nor callable,
            or no *provider* was supplied.
    """
    if not isinstance(permissions, Mapping) and not callable(permissions):
        raise PermissionsInvalid('The "permissions" parameter is not a mapping or a function')
    if provider is None:
        raise PermissionsInvalid('Route declares "permissions" but no authorizer was supplied to mount()')
    resolve_authorizer: AuthorizerProvider = provider

    async def permissions_stage(request: Any, response: Any, next: Next) -> None:
        try:
            error = await _check_permissions(permissions, resolve_authorizer, request, response)
        except Exception as exc:
            error = exc

        if error is None:
            next()
        else:
            next(error)

    return permissions_stage


async def _check_permissions(
    permissions: Any,
    provider: AuthorizerProvider,
    request: Any,
    response: Any,
) -> Exception | None:
    """Return the error to forward, or None when every check passes."""
    resolved = permissions
    if callable(permissions):
        resolved = await invoke(permissions, request, response)
    if not isinstance(resolved, Mapping):
        return PermissionsInvalid(f"Resolved permissions must be a mapping, got {type(resolved).__name__}")

    authorizer = provider(request)
    if authorizer is None:
        return Forbidden()

    for action, target in resolved.items():
        if await invoke(authorizer.can, action, target) is not True:
            _log.debug("Permission %r on %r denied", action, target)
            return Forbidden()
    return None
