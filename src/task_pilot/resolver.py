# resolver.py
# Entity resolver: free-text names → canonical identifiers.
#
# Every lookup is read-only and idempotent, so the gate may call it
# speculatively to build a preview. Matches below the confidence threshold
# are indistinguishable from no match at all.

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from task_pilot.client import ToolClient, ToolResponse
from task_pilot.log import get_logger
from task_pilot.models import ResolutionResult

logger = get_logger(name=__name__)

DEFAULT_THRESHOLD = 0.3

_UUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_PLATFORM_USER_ID = re.compile(r"^user_[A-Za-z0-9]{8,}$")


def looks_like_id(value: Any) -> bool:
    """True for UUIDs and platform user ids, which need no lookup."""
    if not isinstance(value, str):
        return False
    value = value.strip()
    return bool(_UUID.match(value) or _PLATFORM_USER_ID.match(value))


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass
class ResolvedArgs:
    """Arguments with names swapped for IDs, plus whatever could not be resolved."""

    args: dict[str, Any]
    unresolved: dict[str, str] = field(default_factory=dict)


class EntityResolver:
    def __init__(self, client: ToolClient, threshold: float = DEFAULT_THRESHOLD) -> None:
        self._client = client
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    def _accept(self, entity: str, name: str, response: ToolResponse) -> ResolutionResult | None:
        if not response.ok:
            logger.info("resolver.lookup_failed", entity=entity, name=name, status=response.status_code)
            return None
        best = response.data.get("best") if isinstance(response.data, dict) else None
        if not isinstance(best, dict) or not best.get("id"):
            logger.info("resolver.no_match", entity=entity, name=name)
            return None

        score = best.get("score")
        score = float(score) if isinstance(score, (int, float)) else 0.0
        if score < self._threshold:
            logger.info("resolver.below_threshold", entity=entity, name=name, score=score)
            return None

        logger.debug("resolver.lookup", entity=entity, name=name, id=best["id"], score=score)
        return ResolutionResult(id=str(best["id"]), score=min(score, 1.0))

    async def _lookup(self, entity: str, name: str, call) -> ResolutionResult | None:
        try:
            response = await call
        except httpx.HTTPError as exc:
            logger.warning("resolver.lookup_failed", entity=entity, name=name, error=str(exc))
            return None
        return self._accept(entity, name, response)

    # ------------------------------------------------------------------
    # Single lookups
    # ------------------------------------------------------------------

    async def resolve_project(self, name: str) -> ResolutionResult | None:
        if looks_like_id(name):
            return ResolutionResult(id=name.strip(), score=1.0)
        return await self._lookup("project", name, self._client.resolve_id("project", name))

    async def resolve_task(
        self,
        name: str,
        project_id: str | None = None,
        workspace_id: str | None = None,
    ) -> ResolutionResult | None:
        if looks_like_id(name):
            return ResolutionResult(id=name.strip(), score=1.0)
        context = {k: v for k, v in (("projectId", project_id), ("workspaceId", workspace_id)) if v}
        return await self._lookup("task", name, self._client.resolve_id("task", name, context))

    async def resolve_user(self, name: str, project_id: str | None = None) -> ResolutionResult | None:
        if looks_like_id(name):
            return ResolutionResult(id=name.strip(), score=1.0)
        context = {"projectId": project_id} if project_id else None
        return await self._lookup("user", name, self._client.resolve_user(name, context))

    # ------------------------------------------------------------------
    # Directive arguments
    # ------------------------------------------------------------------

    async def resolve_args(self, args: dict[str, Any]) -> ResolvedArgs:
        """
        Replace projectName/taskTitle/assigneeName (or non-ID values in the
        matching *Id fields) with resolved IDs.

        Project goes first because it scopes the task and user lookups, which
        are then issued together. Name keys are removed once resolved; on a
        miss they stay in place and the miss is recorded in `unresolved`.
        """
        out = dict(args)
        unresolved: dict[str, str] = {}

        project_name = _pending_name(out, "projectId", "projectName")
        if project_name is not None:
            result = await self.resolve_project(project_name)
            if result is not None:
                out["projectId"] = result.id
                out.pop("projectName", None)
            else:
                unresolved["project"] = project_name
                if not looks_like_id(out.get("projectId")):
                    out.pop("projectId", None)

        project_id = out.get("projectId") if looks_like_id(out.get("projectId")) else None
        task_name = _pending_name(out, "taskId", "taskTitle")
        user_name = _pending_name(out, "assigneeId", "assigneeName")

        async def _none() -> None:
            return None

        task_result, user_result = await asyncio.gather(
            self.resolve_task(task_name, project_id, _text(out.get("workspaceId"))) if task_name else _none(),
            self.resolve_user(user_name, project_id) if user_name else _none(),
        )

        if task_name is not None:
            if task_result is not None:
                out["taskId"] = task_result.id
                out.pop("taskTitle", None)
            else:
                unresolved["task"] = task_name
                if not looks_like_id(out.get("taskId")):
                    out.pop("taskId", None)
                    out.setdefault("taskTitle", task_name)

        if user_name is not None:
            if user_result is not None:
                out["assigneeId"] = user_result.id
                out.pop("assigneeName", None)
            else:
                unresolved["user"] = user_name
                if not looks_like_id(out.get("assigneeId")):
                    out.pop("assigneeId", None)

        return ResolvedArgs(args=out, unresolved=unresolved)


def _pending_name(args: dict[str, Any], id_key: str, name_key: str) -> str | None:
    """The name still needing resolution for one entity, or None if already an ID."""
    current = args.get(id_key)
    if looks_like_id(current):
        return None
    return _text(args.get(name_key)) or _text(current)
