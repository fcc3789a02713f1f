"""Invoke helpers — call sync or async user callables uniformly.

Route handlers, ``authorize`` predicates, middleware, and authorizers can
all be ``def`` or ``async def``. Any code that calls one of them goes
through :func:`invoke` so the sync/async check lives in exactly one place.

Usage::

    from treeroute._internal.invoke import invoke

    result = await invoke(handle, request, response)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it's awaitable.

    Works with both sync and async callables::

        # sync — returns immediately
        def authorize(request, response):
            return request.user is not None

        # async — returns a coroutine, awaited automatically
        async def authorize(request, response):
            return await lookup_session(request)
    """
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
