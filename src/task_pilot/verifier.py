# verifier.py
# Post-execution verifier.
#
# A 2xx from a write endpoint is a claim, not proof. For create-task and the
# subtask family the claim is checked against fresh reads. Every other writer
# is accepted on HTTP success alone; no independent read exists for them yet.
# Verification only ever reads.

from dataclasses import dataclass
from typing import Any

import httpx

from task_pilot.client import ToolClient
from task_pilot.log import get_logger
from task_pilot.resolver import EntityResolver, looks_like_id
from task_pilot.tools import ClassifiedTool, Tool

logger = get_logger(name=__name__)


@dataclass(frozen=True)
class Verification:
    ok: bool
    checked: bool = True
    entity_id: str | None = None
    detail: str = ""


def _same_title(a: Any, b: Any) -> bool:
    return isinstance(a, str) and isinstance(b, str) and a.strip().casefold() == b.strip().casefold()


def _records(data: Any, key: str) -> list[dict]:
    """Accept both a bare JSON list and a `{key: [...]}` envelope."""
    if isinstance(data, dict):
        data = data.get(key)
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


def created_task_id(response: Any) -> str | None:
    if not isinstance(response, dict):
        return None
    task = response.get("task")
    if isinstance(task, dict) and task.get("id"):
        return str(task["id"])
    if response.get("id"):
        return str(response["id"])
    return None


class PostExecutionVerifier:
    def __init__(self, client: ToolClient, resolver: EntityResolver) -> None:
        self._client = client
        self._resolver = resolver

    async def verify(self, tool: ClassifiedTool, args: dict[str, Any], response: Any) -> Verification:
        """Re-check the effect of one successful writer call."""
        try:
            if tool.tool is Tool.CREATE_TASK:
                result = await self._verify_created_task(args, response)
            elif tool.in_subtask_family:
                result = await self._verify_subtask(tool.tool, args, response)
            else:
                return Verification(ok=True, checked=False)
        except httpx.HTTPError as exc:
            result = Verification(ok=False, detail=f"re-fetch failed ({exc})")

        if not result.ok:
            logger.warning("verifier.failed", tool=tool.name, detail=result.detail)
        return result

    # ------------------------------------------------------------------
    # create-task
    # ------------------------------------------------------------------

    async def _verify_created_task(self, args: dict[str, Any], response: Any) -> Verification:
        task_id = created_task_id(response)
        if task_id:
            fetched = await self._client.get_task(task_id)
            if fetched.ok:
                return Verification(ok=True, entity_id=task_id)

        title = args.get("title")
        project_id = args.get("projectId")
        if isinstance(title, str) and looks_like_id(project_id):
            found = await self._client.search_tasks(project_id, title)
            if found.ok:
                for record in _records(found.data, "tasks"):
                    if _same_title(record.get("title"), title) and record.get("id"):
                        return Verification(ok=True, entity_id=str(record["id"]))

        return Verification(ok=False, detail=f'task "{title}" could not be found')

    # ------------------------------------------------------------------
    # Subtask family
    # ------------------------------------------------------------------

    async def _parent_task_id(self, args: dict[str, Any], response: Any) -> str | None:
        if looks_like_id(args.get("taskId")):
            return args["taskId"]
        if isinstance(response, dict):
            subtask = response.get("subtask")
            if isinstance(subtask, dict) and subtask.get("taskId"):
                return str(subtask["taskId"])
        title = args.get("taskTitle")
        if isinstance(title, str) and title.strip():
            project_id = args.get("projectId") if looks_like_id(args.get("projectId")) else None
            result = await self._resolver.resolve_task(title, project_id)
            if result is not None:
                return result.id
        return None

    async def _verify_subtask(self, tool: Tool, args: dict[str, Any], response: Any) -> Verification:
        parent_id = await self._parent_task_id(args, response)
        if parent_id is None:
            return Verification(ok=False, detail="parent task could not be determined")

        listed = await self._client.list_subtasks(parent_id)
        if not listed.ok:
            return Verification(ok=False, detail=f"subtasks of {parent_id} could not be listed")
        subtasks = _records(listed.data, "subtasks")

        title = args.get("title")
        subtask_id = args.get("subtaskId")

        if tool is Tool.DELETE_SUBTASK:
            if any(str(s.get("id")) == str(subtask_id) for s in subtasks):
                return Verification(ok=False, detail=f"subtask {subtask_id} is still present")
            return Verification(ok=True, entity_id=parent_id)

        if tool is Tool.UPDATE_SUBTASK and not isinstance(title, str):
            if any(str(s.get("id")) == str(subtask_id) for s in subtasks):
                return Verification(ok=True, entity_id=parent_id)
            return Verification(ok=False, detail=f"subtask {subtask_id} not found under task {parent_id}")

        if any(_same_title(s.get("title"), title) for s in subtasks):
            return Verification(ok=True, entity_id=parent_id)
        return Verification(ok=False, detail=f'subtask "{title}" not found under task {parent_id}')
