"""Test utilities for treeroute mounts.

Provides a host-app double that records registrations, and minimal
request/response objects for driving pipelines::

    from treeroute import mount
    from treeroute.pipeline import run_pipeline
    from treeroute.testing import RecordingApp, StubRequest, StubResponse

    app = RecordingApp()
    mount(app, dir="routes")
    pipeline = app.pipeline_for("get", "/")
    response = StubResponse()
    error = await run_pipeline(pipeline, StubRequest(ip="10.0.0.1"), response)
"""

from dataclasses import dataclass, field
from typing import Any

from treeroute.config import METHODS
from treeroute.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class Registration:
    """One call to a host app registration function."""

    method: str
    path: str
    pipeline: list[Any]


class RecordingApp:
    """Host app double exposing one registration function per verb.

    Registrations are appended to :attr:`registrations` in call order.
    """

    def __init__(self, methods: tuple[str, ...] = METHODS) -> None:
        self.registrations: list[Registration] = []
        for method in methods:
            setattr(self, method, self._recorder(method))

    def _recorder(self, method: str):
        def register(path: str, pipeline: list[Any]) -> None:
            self.registrations.append(Registration(method=method, path=path, pipeline=pipeline))

        register.__name__ = method
        return register

    def calls(self, method: str) -> list[Registration]:
        """Registrations made through *method*, in order."""
        return [r for r in self.registrations if r.method == method]

    def pipeline_for(self, method: str, path: str) -> list[Any]:
        """The pipeline registered for (*method*, *path*)."""
        for registration in self.registrations:
            if registration.method == method and registration.path == path:
                return registration.pipeline
        raise ConfigurationError(f"No {method.upper()} route registered at {path}")


@dataclass(slots=True)
class StubRequest:
    """Minimal request: client IP, headers, params, and a free-form user."""

    ip: str = "127.0.0.1"
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    user: Any = None


@dataclass(slots=True)
class StubResponse:
    """Minimal response recording what a handler wrote."""

    status: int = 200
    body: list[Any] = field(default_factory=list)
    ended: bool = False

    def end(self, body: Any = None) -> None:
        if body is not None:
            self.body.append(body)
        self.ended = True
