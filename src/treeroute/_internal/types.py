"""Shared type aliases used across treeroute modules."""

from collections.abc import Awaitable, Callable
from typing import Any, TypeAlias

# Continuation handed to every stage: next() to continue, next(error) to fail
Next: TypeAlias = Callable[..., None]

# A request-processing stage: (request, response, next)
Stage: TypeAlias = Callable[[Any, Any, Next], Awaitable[None] | None]

# Final route handler: (request, response) -> anything
Handler: TypeAlias = Callable[[Any, Any], Any]
