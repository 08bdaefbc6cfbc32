import httpx
import pytest

from helpers import PROJECT_ID, TASK_ID, USER_ID, FakeBackend, make_client, resolver_routes
from task_pilot.resolver import EntityResolver, looks_like_id

# ---------------------------------------------------------------------------
# ID shapes
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "value",
    [PROJECT_ID, PROJECT_ID.upper(), "user_2abcDEF123xyz", f"  {TASK_ID} "],
)
def test_looks_like_id(value):
    assert looks_like_id(value)


@pytest.mark.parametrize("value", ["Fix bug", "abc", "", None, 42, "user_", "1111-2222"])
def test_free_text_is_not_an_id(value):
    assert not looks_like_id(value)


# ---------------------------------------------------------------------------
# Single lookups
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_id_shaped_input_skips_lookup():
    backend = FakeBackend()
    resolver = EntityResolver(make_client(backend))

    result = await resolver.resolve_project(PROJECT_ID)

    assert result.id == PROJECT_ID
    assert result.score == 1.0
    assert backend.calls == []


@pytest.mark.asyncio
async def test_project_lookup_sends_entity_and_name():
    backend = FakeBackend()
    resolver_routes(backend, projects={"Website": (PROJECT_ID, 0.9)})
    resolver = EntityResolver(make_client(backend))

    result = await resolver.resolve_project("Website")

    assert result.id == PROJECT_ID
    assert backend.bodies("POST", "/tools/resolve-id") == [{"entity": "project", "name": "Website"}]


@pytest.mark.asyncio
async def test_task_lookup_carries_project_and_workspace_context():
    backend = FakeBackend()
    resolver_routes(backend, tasks={"Fix bug": (TASK_ID, 0.8)})
    resolver = EntityResolver(make_client(backend))

    result = await resolver.resolve_task("Fix bug", project_id=PROJECT_ID, workspace_id="ws-1")

    assert result.id == TASK_ID
    body = backend.bodies("POST", "/tools/resolve-id")[0]
    assert body["context"] == {"projectId": PROJECT_ID, "workspaceId": "ws-1"}


@pytest.mark.asyncio
async def test_user_lookup_uses_resolve_user():
    backend = FakeBackend()
    resolver_routes(backend, users={"Dave": (USER_ID, 0.8)})
    resolver = EntityResolver(make_client(backend))

    result = await resolver.resolve_user("Dave", project_id=PROJECT_ID)

    assert result.id == USER_ID
    assert backend.bodies("POST", "/tools/resolve-user") == [{"name": "Dave", "context": {"projectId": PROJECT_ID}}]


@pytest.mark.asyncio
async def test_below_threshold_is_the_same_as_no_match():
    backend = FakeBackend()
    resolver_routes(backend, projects={"Web": (PROJECT_ID, 0.29)})
    resolver = EntityResolver(make_client(backend))

    assert await resolver.resolve_project("Web") is None
    assert await resolver.resolve_project("Nothing") is None


@pytest.mark.asyncio
async def test_threshold_is_inclusive_and_configurable():
    backend = FakeBackend()
    resolver_routes(backend, projects={"Web": (PROJECT_ID, 0.3)})

    assert (await EntityResolver(make_client(backend)).resolve_project("Web")).id == PROJECT_ID
    assert await EntityResolver(make_client(backend), threshold=0.5).resolve_project("Web") is None


@pytest.mark.asyncio
async def test_error_status_and_missing_best_are_no_match():
    backend = FakeBackend()
    backend.on("POST", "/tools/resolve-id", status=500, json_body={"error": "boom"})
    backend.on("POST", "/tools/resolve-user", json_body={"error": "No users found with that name", "candidates": []})
    resolver = EntityResolver(make_client(backend))

    assert await resolver.resolve_task("x") is None
    assert await resolver.resolve_user("y") is None


@pytest.mark.asyncio
async def test_transport_failure_is_no_match():
    def explode(request):
        raise httpx.ConnectError("refused", request=request)

    backend = FakeBackend()
    backend.on("POST", "/tools/resolve-id", handler=explode)
    resolver = EntityResolver(make_client(backend))

    assert await resolver.resolve_project("Website") is None


# ---------------------------------------------------------------------------
# Directive arguments
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_resolve_args_swaps_names_for_ids():
    backend = FakeBackend()
    resolver_routes(
        backend,
        projects={"Website": (PROJECT_ID, 0.95)},
        tasks={"Fix bug": (TASK_ID, 0.7)},
        users={"Dave": (USER_ID, 0.8)},
    )
    resolver = EntityResolver(make_client(backend))

    resolved = await resolver.resolve_args(
        {"projectName": "Website", "taskTitle": "Fix bug", "assigneeName": "Dave", "status": "done"}
    )

    assert resolved.unresolved == {}
    assert resolved.args == {"projectId": PROJECT_ID, "taskId": TASK_ID, "assigneeId": USER_ID, "status": "done"}
    task_lookup = [b for b in backend.bodies("POST", "/tools/resolve-id") if b["entity"] == "task"][0]
    assert task_lookup["context"] == {"projectId": PROJECT_ID}


@pytest.mark.asyncio
async def test_resolve_args_leaves_concrete_ids_alone():
    backend = FakeBackend()
    resolver = EntityResolver(make_client(backend))
    args = {"projectId": PROJECT_ID, "taskId": TASK_ID, "assigneeId": "user_2abcDEF123xyz"}

    resolved = await resolver.resolve_args(args)

    assert resolved.args == args
    assert backend.calls == []


@pytest.mark.asyncio
async def test_non_id_value_in_id_field_is_resolved_as_a_name():
    backend = FakeBackend()
    resolver_routes(backend, tasks={"Fix bug": (TASK_ID, 0.7)})
    resolver = EntityResolver(make_client(backend))

    resolved = await resolver.resolve_args({"taskId": "Fix bug"})

    assert resolved.args == {"taskId": TASK_ID}


@pytest.mark.asyncio
async def test_resolve_args_records_misses():
    backend = FakeBackend()
    resolver_routes(backend, tasks={"Fix bug": (TASK_ID, 0.7)})
    resolver = EntityResolver(make_client(backend))

    resolved = await resolver.resolve_args({"taskTitle": "Fix bug", "assigneeName": "nonexistent person"})

    assert resolved.unresolved == {"user": "nonexistent person"}
    assert resolved.args["taskId"] == TASK_ID
    assert resolved.args["assigneeName"] == "nonexistent person"
    assert "assigneeId" not in resolved.args


@pytest.mark.asyncio
async def test_resolve_args_is_side_effect_free():
    backend = FakeBackend()
    resolver_routes(backend, projects={"Website": (PROJECT_ID, 0.9)})
    resolver = EntityResolver(make_client(backend))
    args = {"projectName": "Website"}

    first = await resolver.resolve_args(args)
    second = await resolver.resolve_args(args)

    assert args == {"projectName": "Website"}
    assert first.args == second.args == {"projectId": PROJECT_ID}
