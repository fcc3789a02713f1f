"""Pipeline runner — drive a stage tuple for one request.

Host apps with their own ``(request, response, next)`` chain driver don't
need this; it exists for hosts that don't have one and for tests.

Semantics:

- Stages run strictly one after another.
- ``next(error)`` stops the chain; the error is handed to the outer
  ``next`` and returned.
- A stage that returns without calling ``next`` ends the chain.
- An exception raised by a stage is forwarded like ``next(exc)``; if the
  stage already forwarded an error, that first error wins.
- The runner yields to the event loop before each stage, so a cancelled
  request never starts a later stage (and never spends its permits).
"""

from collections.abc import Callable, Sequence
from typing import Any

import anyio.lowlevel

from treeroute._internal.invoke import invoke
from treeroute._internal.types import Stage


class _Continuation:
    """The ``next`` callable handed to a single stage."""

    __slots__ = ("called", "error")

    def __init__(self) -> None:
        self.called = False
        self.error: BaseException | None = None

    def __call__(self, error: BaseException | None = None) -> None:
        if self.called:
            msg = "next() called more than once by the same stage"
            raise RuntimeError(msg)
        self.called = True
        self.error = error


async def run_pipeline(
    stages: Sequence[Stage],
    request: Any,
    response: Any,
    next: Callable[..., None] | None = None,
) -> BaseException | None:
    """Run *stages* against one request.

    Args:
        stages: Stages in execution order.
        request: Host request object, passed through untouched.
        response: Host response object, passed through untouched.
        next: Outer continuation; called with the forwarded error, or with
            ``None`` when the last stage calls ``next()``.

    Returns:
        The forwarded error, or ``None``.
    """
    for stage in stages:
        await anyio.lowlevel.checkpoint()
        continuation = _Continuation()
        try:
            await invoke(stage, request, response, continuation)
        except Exception as exc:
            if continuation.error is None:
                continuation.called = True
                continuation.error = exc

        if not continuation.called:
            return None
        if continuation.error is not None:
            if next is not None:
                next(continuation.error)
            return continuation.error

    if next is not None:
        next(None)
    return None
