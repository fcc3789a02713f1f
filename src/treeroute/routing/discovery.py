"""Directory route discovery.

Walks a route directory tree and discovers:
- ``<verb>.py`` files (``get.py``, ``post.py``, ...) as route handlers
- subdirectories as URL segments, mapped through a naming convention

Ordering is part of the contract and determines registration order:

1. Files of a directory come before any of its subdirectories.
2. Subdirectories are visited by name, with parameter and wildcard
   directories after every literal sibling, so a host router tries
   ``/users/me`` before ``/users/:userId``.

Layout::

    routes/
      get.py              # GET /
      users/
        get.py            # GET /users
        post.py           # POST /users
        me/get.py         # GET /users/me
        user-id/
          get.py          # GET /users/:userId
          delete.py       # DELETE /users/:userId
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import anyio

from treeroute.config import METHODS
from treeroute.errors import DirectoryInvalid, DuplicateRoute
from treeroute.routing.convention import SUFFIX, PathConvention
from treeroute.routing.types import RouteDescriptor

logger = logging.getLogger("treeroute.discovery")


def join_path(*parts: str) -> str:
    """Join route path parts with POSIX semantics.

    Duplicate slashes collapse and trailing slashes are dropped, except for
    the root itself::

        join_path("/", "users")      -> "/users"
        join_path("/api/", "/users/") -> "/api/users"
        join_path("/", "")           -> "/"
    """
    segments = [piece for part in parts for piece in part.split("/") if piece]
    return "/" + "/".join(segments)


def discover(
    root: str | os.PathLike[str],
    *,
    convention: PathConvention = SUFFIX,
    methods: Iterable[str] = METHODS,
    extensions: Iterable[str] = (".py",),
) -> tuple[RouteDescriptor, ...]:
    """Walk a route directory and discover all routes.

    Args:
        root: Path to the route directory.
        convention: Naming convention for parameter directories.
        methods: Allowed HTTP verbs; order decides per-directory emit order.
        extensions: File suffixes recognised as route files.

    Returns:
        Ordered tuple of :class:`RouteDescriptor` objects.

    Raises:
        DirectoryInvalid: *root* is missing, blank, or not a path.
        DuplicateRoute: Two files resolve to the same path and method.
        FileNotFoundError: *root* does not exist.
        NotADirectoryError: *root* is not a directory.
    """
    directory = _validate_root(root)
    descriptors = _walk(
        directory,
        "/",
        convention=convention,
        methods=tuple(methods),
        extensions=frozenset(extensions),
    )
    _check_unique(descriptors)
    return descriptors


def _walk(
    directory: Path,
    route_path: str,
    *,
    convention: PathConvention,
    methods: tuple[str, ...],
    extensions: frozenset[str],
) -> tuple[RouteDescriptor, ...]:
    """Discover routes in *directory* and everything below it."""
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda entry: entry.name)

    files = [entry.name for entry in entries if entry.is_file()]
    dirs = [entry.name for entry in entries if entry.is_dir()]

    here = _routes_here(directory, route_path, files, methods=methods, extensions=extensions)

    branches: list[tuple[RouteDescriptor, ...]] = []
    for name in order_directories(dirs, convention):
        branches.append(
            _walk(
                directory / name,
                join_path(route_path, convention.segment(name)),
                convention=convention,
                methods=methods,
                extensions=extensions,
            )
        )
    return here + tuple(descriptor for branch in branches for descriptor in branch)


async def discover_async(
    root: str | os.PathLike[str],
    *,
    convention: PathConvention = SUFFIX,
    methods: Iterable[str] = METHODS,
    extensions: Iterable[str] = (".py",),
) -> tuple[RouteDescriptor, ...]:
    """Non-blocking variant of :func:`discover` built on :class:`anyio.Path`.

    Siblings are walked one after another in the same order as
    :func:`discover`, so both variants return identical sequences.
    """
    directory = _validate_root(root)
    if not await anyio.Path(directory).is_dir():
        if not await anyio.Path(directory).exists():
            raise FileNotFoundError(f"Route directory not found: {directory}")
        raise NotADirectoryError(f"Route path is not a directory: {directory}")

    descriptors = await _walk_async(
        anyio.Path(directory),
        "/",
        convention=convention,
        methods=tuple(methods),
        extensions=frozenset(extensions),
    )
    _check_unique(descriptors)
    return descriptors


async def _walk_async(
    directory: anyio.Path,
    route_path: str,
    *,
    convention: PathConvention,
    methods: tuple[str, ...],
    extensions: frozenset[str],
) -> tuple[RouteDescriptor, ...]:
    entries = sorted([entry async for entry in directory.iterdir()], key=lambda entry: entry.name)

    files: list[str] = []
    dirs: list[str] = []
    for entry in entries:
        if await entry.is_file():
            files.append(entry.name)
        elif await entry.is_dir():
            dirs.append(entry.name)

    result = _routes_here(Path(directory), route_path, files, methods=methods, extensions=extensions)
    for name in order_directories(dirs, convention):
        result += await _walk_async(
            directory / name,
            join_path(route_path, convention.segment(name)),
            convention=convention,
            methods=methods,
            extensions=extensions,
        )
    return result


def order_directories(names: Iterable[str], convention: PathConvention) -> list[str]:
    """Order subdirectory names for walking.

    Hidden (``.``) and private (``_``, e.g. ``__pycache__``) directories are
    skipped.  Dynamic names sort after literal ones; the sort is stable, so
    the incoming order is kept among equals.
    """
    visible = []
    for name in names:
        if name.startswith((".", "_")):
            logger.debug("Skipping directory %r", name)
            continue
        visible.append(name)
    return sorted(visible, key=convention.is_dynamic)


def _routes_here(
    directory: Path,
    route_path: str,
    files: Iterable[str],
    *,
    methods: tuple[str, ...],
    extensions: frozenset[str],
) -> tuple[RouteDescriptor, ...]:
    """Descriptors for the verb files directly inside *directory*.

    Emitted in allow-list order so ``get`` always precedes ``post`` at
    the same path regardless of listing order.
    """
    found: dict[str, Path] = {}
    for name in files:
        stem, suffix = os.path.splitext(name)
        if suffix not in extensions or stem not in methods:
            logger.debug("Ignoring %s: not a route file", directory / name)
            continue
        if stem in found:
            msg = (
                f"Duplicate route {stem.upper()} {route_path}: "
                f"{found[stem]} conflicts with {directory / name}"
            )
            raise DuplicateRoute(msg)
        found[stem] = (directory / name).absolute()

    return tuple(
        RouteDescriptor(path=route_path, method=method, source=found[method])
        for method in methods
        if method in found
    )


def _validate_root(root: Any) -> Path:
    if root is None:
        raise DirectoryInvalid('The "dir" parameter is missing')
    if not isinstance(root, (str, os.PathLike)):
        raise DirectoryInvalid('The "dir" parameter is not a string or path')
    if isinstance(root, str) and root.strip() == "":
        raise DirectoryInvalid('The "dir" parameter can not be an empty string')
    return Path(root)


def _check_unique(descriptors: tuple[RouteDescriptor, ...]) -> None:
    """Reject two descriptors sharing (path, method) across directories.

    A literal directory named like a mapped segment (``:userId`` beside
    ``user-id``) is how two branches end up at the same path.
    """
    seen: dict[tuple[str, str], Path] = {}
    for descriptor in descriptors:
        key = (descriptor.path, descriptor.method)
        if key in seen:
            msg = (
                f"Duplicate route {descriptor.method.upper()} {descriptor.path}: "
                f"{seen[key]} conflicts with {descriptor.source}"
            )
            raise DuplicateRoute(msg)
        seen[key] = descriptor.source
