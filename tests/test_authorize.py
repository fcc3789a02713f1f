"""Tests for treeroute.pipeline.authorize — permissions and the Authorizer."""

import pytest

from treeroute.errors import Forbidden, PermissionsInvalid
from treeroute.pipeline.assemble import assemble
from treeroute.pipeline.authorize import create_permissions_stage
from treeroute.pipeline.runner import run_pipeline
from treeroute.testing import StubRequest, StubResponse


async def _handle(request, response) -> None:
    response.end("ok")


class RoleAuthorizer:
    """Grants an action when the role holds it for the target."""

    def __init__(self, grants: dict[str, set[str]]) -> None:
        self.grants = grants
        self.checked: list[tuple[str, object]] = []

    def can(self, action: str, target: object) -> bool:
        self.checked.append((action, target))
        return target in self.grants.get(action, set())


def _provider_for(authorizer):
    return lambda request: authorizer


class TestAssembly:
    def test_requires_authorizer(self) -> None:
        with pytest.raises(PermissionsInvalid) as info:
            assemble({"permissions": {"read": "docs"}, "handle": _handle})
        assert info.value.code == "PERMISSIONS_INVALID"

    def test_rejects_non_mapping(self) -> None:
        with pytest.raises(PermissionsInvalid):
            create_permissions_stage(["read"], lambda request: None)

    def test_stage_after_authorize(self) -> None:
        pipeline = assemble(
            {
                "authorize": lambda request, response: True,
                "permissions": {"read": "docs"},
                "handle": _handle,
            },
            authorizer=_provider_for(RoleAuthorizer({})),
        )
        assert [stage.__name__ for stage in pipeline] == [
            "authorize_stage",
            "permissions_stage",
            "handle_stage",
        ]


class TestPermissionsStage:
    @pytest.mark.anyio
    async def test_granted(self) -> None:
        authorizer = RoleAuthorizer({"read": {"docs"}, "edit": {"docs"}})
        pipeline = assemble(
            {"permissions": {"read": "docs", "edit": "docs"}, "handle": _handle},
            authorizer=_provider_for(authorizer),
        )
        response = StubResponse()
        assert await run_pipeline(pipeline, StubRequest(), response) is None
        assert response.body == ["ok"]
        assert authorizer.checked == [("read", "docs"), ("edit", "docs")]

    @pytest.mark.anyio
    async def test_any_denial_is_forbidden(self) -> None:
        authorizer = RoleAuthorizer({"read": {"docs"}})
        pipeline = assemble(
            {"permissions": {"read": "docs", "delete": "docs"}, "handle": _handle},
            authorizer=_provider_for(authorizer),
        )
        response = StubResponse()
        error = await run_pipeline(pipeline, StubRequest(), response)
        assert isinstance(error, Forbidden)
        assert response.body == []

    @pytest.mark.anyio
    async def test_no_authorizer_for_request(self) -> None:
        pipeline = assemble(
            {"permissions": {"read": "docs"}, "handle": _handle},
            authorizer=lambda request: None,
        )
        assert isinstance(await run_pipeline(pipeline, StubRequest(), StubResponse()), Forbidden)

    @pytest.mark.anyio
    async def test_callable_permissions(self) -> None:
        authorizer = RoleAuthorizer({"edit": {"42"}})

        def permissions(request, response):
            return {"edit": request.params["doc_id"]}

        pipeline = assemble(
            {"permissions": permissions, "handle": _handle},
            authorizer=_provider_for(authorizer),
        )
        assert await run_pipeline(pipeline, StubRequest(params={"doc_id": "42"}), StubResponse()) is None
        error = await run_pipeline(pipeline, StubRequest(params={"doc_id": "7"}), StubResponse())
        assert isinstance(error, Forbidden)

    @pytest.mark.anyio
    async def test_resolved_non_mapping_is_forwarded(self) -> None:
        pipeline = assemble(
            {"permissions": lambda request, response: ["read"], "handle": _handle},
            authorizer=_provider_for(RoleAuthorizer({})),
        )
        error = await run_pipeline(pipeline, StubRequest(), StubResponse())
        assert isinstance(error, PermissionsInvalid)

    @pytest.mark.anyio
    async def test_async_can(self) -> None:
        class AsyncAuthorizer:
            async def can(self, action, target):
                return action == "read"

        pipeline = assemble(
            {"permissions": {"read": "docs"}, "handle": _handle},
            authorizer=lambda request: AsyncAuthorizer(),
        )
        assert await run_pipeline(pipeline, StubRequest(), StubResponse()) is None

    @pytest.mark.anyio
    async def test_truthy_is_not_enough(self) -> None:
        class Truthy:
            def can(self, action, target):
                return 1

        pipeline = assemble(
            {"permissions": {"read": "docs"}, "handle": _handle},
            authorizer=lambda request: Truthy(),
        )
        assert isinstance(await run_pipeline(pipeline, StubRequest(), StubResponse()), Forbidden)

    @pytest.mark.anyio
    async def test_authorizer_error_forwarded(self) -> None:
        class Broken:
            def can(self, action, target):
                raise ConnectionError("policy service down")

        pipeline = assemble(
            {"permissions": {"read": "docs"}, "handle": _handle},
            authorizer=lambda request: Broken(),
        )
        assert isinstance(await run_pipeline(pipeline, StubRequest(), StubResponse()), ConnectionError)
