"""Route file loading — import a route file into a typed RouteConfig.

A route file either exports a ``route`` object::

    # users/get.py
    route = RouteConfig(handle=list_users, rate_limit="1s")

or declares the fields at module level::

    # users/post.py
    rate_limit = {"points": 5, "duration": "1m"}

    async def authorize(request, response):
        return request.user is not None

    async def handle(request, response):
        ...

``handler`` is accepted as an alias of ``handle``.
"""

import hashlib
import importlib.util
import sys
import threading
from pathlib import Path
from types import ModuleType

from treeroute.errors import RouteLoadError
from treeroute.routing.types import RouteConfig

_cache_lock = threading.Lock()
_module_cache: dict[Path, ModuleType] = {}


def load_module(path: str | Path) -> ModuleType:
    """Import the file at *path* once per process and return the module.

    Raises:
        RouteLoadError: The file is missing or raises while importing.
    """
    resolved = Path(path).resolve()
    with _cache_lock:
        cached = _module_cache.get(resolved)
    if cached is not None:
        return cached

    digest = hashlib.sha1(str(resolved).encode(), usedforsecurity=False).hexdigest()[:12]
    module_name = f"_treeroute_{resolved.stem}_{digest}"
    spec = importlib.util.spec_from_file_location(module_name, resolved)
    if spec is None or spec.loader is None:
        raise RouteLoadError(f"Cannot import route file: {resolved}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        raise RouteLoadError(f"Failed to import route file {resolved}: {exc}") from exc

    with _cache_lock:
        module = _module_cache.setdefault(resolved, module)
    return module


def load_route_config(path: str | Path) -> RouteConfig:
    """Load the route file at *path* and return its :class:`RouteConfig`.

    Field values are validated later, when the pipeline is assembled.
    """
    module = load_module(path)
    exported = getattr(module, "route", None)
    if exported is not None:
        return RouteConfig.coerce(exported)
    return RouteConfig.from_exports(lambda name: getattr(module, name, None))


def clear_cache() -> None:
    """Forget every imported route module; the next load re-imports."""
    with _cache_lock:
        for module in _module_cache.values():
            sys.modules.pop(module.__name__, None)
        _module_cache.clear()
