import asyncio
import json
from typing import Any, Callable

import httpx

from task_pilot.client import ToolClient
from task_pilot.config import Settings
from task_pilot.gate import ConfirmationGate

PROJECT_ID = "11111111-1111-1111-1111-111111111111"
TASK_ID = "22222222-2222-2222-2222-222222222222"
USER_ID = "33333333-3333-3333-3333-333333333333"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeBackend:
    """Route table for httpx.MockTransport that records every request."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.calls: list[httpx.Request] = []

    def on(self, method: str, path: str, status: int = 200, json_body: Any = None, handler: Handler | None = None) -> None:
        if handler is None:
            def handler(request: httpx.Request, _status=status, _body=json_body) -> httpx.Response:
                return httpx.Response(_status, json=_body)
        self.routes[(method, path)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": f"no route for {request.method} {request.url.path}"})
        return handler(request)

    def requests(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.calls if r.method == method and r.url.path == path]

    def bodies(self, method: str, path: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests(method, path)]


def make_settings(**overrides: Any) -> Settings:
    values = {"api_base_url": "http://testserver", "openai_api_key": "test"}
    values.update(overrides)
    return Settings(**values)


def make_client(backend: FakeBackend, settings: Settings | None = None) -> ToolClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(backend), base_url="http://testserver")
    return ToolClient(settings or make_settings(), http=http)


def resolver_routes(
    backend: FakeBackend,
    projects: dict[str, tuple[str, float]] | None = None,
    tasks: dict[str, tuple[str, float]] | None = None,
    users: dict[str, tuple[str, float]] | None = None,
) -> None:
    """Register resolve-id / resolve-user answering from name → (id, score) tables."""
    projects = projects or {}
    tasks = tasks or {}
    users = users or {}

    def _best(table: dict[str, tuple[str, float]], name: str) -> dict:
        if name not in table:
            return {"best": None, "candidates": []}
        entity_id, score = table[name]
        return {"best": {"id": entity_id, "score": score}}

    def resolve_id(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        table = projects if body["entity"] == "project" else tasks
        return httpx.Response(200, json=_best(table, body["name"]))

    def resolve_user(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(200, json=_best(users, body["name"]))

    backend.on("POST", "/tools/resolve-id", handler=resolve_id)
    backend.on("POST", "/tools/resolve-user", handler=resolve_user)


async def answer_gate(gate: ConfirmationGate, decisions: list[bool], timeout: float = 2.0) -> list:
    """Accept or reject the next len(decisions) confirmations, in order."""
    seen = []
    for accept in decisions:
        pending = await asyncio.wait_for(gate.wait_for_pending(), timeout)
        seen.append(pending)
        if accept:
            gate.accept()
        else:
            gate.reject()
    return seen


async def run_with_decisions(coro, gate: ConfirmationGate, decisions: list[bool]):
    """Run `coro` while answering its confirmations. Returns (result, pendings)."""
    task = asyncio.ensure_future(coro)
    try:
        pendings = await answer_gate(gate, decisions)
        result = await asyncio.wait_for(task, 2.0)
    finally:
        if not task.done():
            task.cancel()
    return result, pendings
