"""Mount configuration.

MountConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from treeroute.routing.convention import SUFFIX, PathConvention

# HTTP verbs recognised as route file stems, in registration order
METHODS: tuple[str, ...] = ("use", "get", "post", "put", "patch", "delete")


@dataclass(frozen=True, slots=True)
class MountConfig:
    """Deployment-level settings for discovery and pipeline assembly.

    All fields have sensible defaults. Override what you need::

        config = MountConfig(convention=PREFIX, key_header="x-forwarded-for")
    """

    # Discovery
    convention: PathConvention = SUFFIX
    methods: tuple[str, ...] = METHODS
    extensions: tuple[str, ...] = (".py",)

    # Rate limiting
    default_key_prefix: str = "treeroute"
    key_header: str | None = None  # e.g. "x-forwarded-for"; first hop wins
    client_key: Callable[[Any], str] | None = None  # overrides header/ip lookup
