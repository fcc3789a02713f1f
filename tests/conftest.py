"""Shared fixtures for treeroute tests.

``route_tree`` writes a directory of route files from a mapping of
relative paths to file contents (``None`` creates an empty directory).
"""

import textwrap
from collections.abc import Callable, Mapping
from pathlib import Path

import pytest

from treeroute.pipeline.ratelimit import default_registry
from treeroute.routing.loader import clear_cache


@pytest.fixture(autouse=True)
def _fresh_state():
    yield
    clear_cache()
    default_registry.reset()


@pytest.fixture
def route_tree(tmp_path: Path) -> Callable[[Mapping[str, str | None]], Path]:
    """Build a route directory under ``tmp_path`` and return its root."""

    def build(files: Mapping[str, str | None], name: str = "routes") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for relative, content in files.items():
            target = root / relative
            if content is None:
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(content), encoding="utf-8")
        return root

    return build
