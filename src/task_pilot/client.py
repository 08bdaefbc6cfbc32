# client.py
# Async HTTP access to the task-tracking API.
#
# Every call is one request with no retries. Callers decide what a failed
# response means; this module only reports it.

import json
from dataclasses import dataclass
from typing import Any

import httpx

from task_pilot.config import Settings
from task_pilot.log import get_logger

logger = get_logger(name=__name__)


@dataclass(frozen=True)
class ToolResponse:
    status_code: int
    data: Any
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def error_text(self) -> str:
        """Backend error text, verbatim where the backend provided one."""
        if isinstance(self.data, dict):
            for key in ("error", "message"):
                value = self.data.get(key)
                if isinstance(value, str) and value:
                    return value
        if self.text.strip():
            return self.text.strip()
        return f"HTTP {self.status_code}"


def _query_params(args: dict[str, Any]) -> dict[str, str]:
    params: dict[str, str] = {}
    for key, value in args.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, (str, int, float)):
            params[key] = str(value)
        else:
            params[key] = json.dumps(value)
    return params


def _to_response(response: httpx.Response) -> ToolResponse:
    try:
        data = response.json()
    except ValueError:
        data = None
    return ToolResponse(status_code=response.status_code, data=data, text=response.text)


class ToolClient:
    """
    Thin wrapper over httpx.AsyncClient for tool, resolver and task endpoints.

    Pass `http` to supply a preconfigured client (tests use MockTransport);
    otherwise one is built from Settings and closed by aclose().
    """

    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None) -> None:
        self._tools_prefix = "/" + settings.tools_prefix.strip("/")
        self._owns_http = http is None
        if http is None:
            headers = {"Accept": "application/json"}
            if settings.api_token:
                headers["Authorization"] = f"Bearer {settings.api_token}"
            http = httpx.AsyncClient(
                base_url=settings.api_base_url,
                headers=headers,
                timeout=settings.http_timeout,
            )
        self._http = http

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "ToolClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    def _tool_path(self, name: str) -> str:
        return f"{self._tools_prefix}/{name}"

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> ToolResponse:
        logger.debug("http.request", method="GET", path=path)
        response = await self._http.get(path, params=_query_params(params or {}))
        return _to_response(response)

    async def _post(self, path: str, body: dict[str, Any]) -> ToolResponse:
        logger.debug("http.request", method="POST", path=path)
        response = await self._http.post(path, json=body)
        return _to_response(response)

    # ------------------------------------------------------------------
    # Tool endpoints
    # ------------------------------------------------------------------

    async def read_tool(self, name: str, params: dict[str, Any]) -> ToolResponse:
        return await self._get(self._tool_path(name), params)

    async def write_tool(self, name: str, body: dict[str, Any]) -> ToolResponse:
        return await self._post(self._tool_path(name), body)

    # ------------------------------------------------------------------
    # Resolver endpoints
    # ------------------------------------------------------------------

    async def resolve_id(self, entity: str, name: str, context: dict[str, Any] | None = None) -> ToolResponse:
        body: dict[str, Any] = {"entity": entity, "name": name}
        if context:
            body["context"] = context
        return await self._post(self._tool_path("resolve-id"), body)

    async def resolve_user(self, name: str, context: dict[str, Any] | None = None) -> ToolResponse:
        body: dict[str, Any] = {"name": name}
        if context:
            body["context"] = context
        return await self._post(self._tool_path("resolve-user"), body)

    # ------------------------------------------------------------------
    # Verification re-fetch endpoints
    # ------------------------------------------------------------------

    async def get_task(self, task_id: str) -> ToolResponse:
        return await self._get(f"/tasks/{task_id}")

    async def list_subtasks(self, task_id: str) -> ToolResponse:
        return await self._get(f"/tasks/{task_id}/subtasks")

    async def search_tasks(self, project_id: str, query: str) -> ToolResponse:
        return await self._get("/tasks/search", {"projectId": project_id, "q": query})
