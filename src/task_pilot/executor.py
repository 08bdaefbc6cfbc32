# executor.py
# Step queue executor.
#
# Owns the queue and the cross-step context for exactly one model turn and
# drives one directive at a time:
#
#   classify → reader: GET, append result, continue
#            → writer: confirm → POST → verify → record, continue
#
# Any failure or rejection drains the rest of the queue. Nothing resumes a
# drained queue; the next turn starts from a fresh executor.

import json
from collections import deque
from typing import Any, Iterable

import httpx

from task_pilot import display
from task_pilot.client import ToolClient, ToolResponse
from task_pilot.errors import InvocationError, OrchestratorError, ResolutionError, VerificationError
from task_pilot.gate import ConfirmationGate
from task_pilot.log import get_logger
from task_pilot.models import (
    Directive,
    ExecutionRecord,
    PendingConfirmation,
    StepContext,
    StepStatus,
    Transcript,
)
from task_pilot.resolver import looks_like_id
from task_pilot.tools import ClassifiedTool, Tool, classify
from task_pilot.verifier import PostExecutionVerifier, Verification

logger = get_logger(name=__name__)

# Unresolved names are reported in this order.
_RESOLUTION_ORDER = ("project", "task", "user")


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _pretty(response: ToolResponse) -> str:
    if response.data is None:
        return response.text
    return json.dumps(response.data, indent=2)


def _summary(tool: ClassifiedTool, args: dict[str, Any], data: Any, verification: Verification) -> str:
    if tool.tool is Tool.CREATE_TASK:
        return f'Created task "{args.get("title", "")}" ({verification.entity_id}).'
    if isinstance(data, dict) and isinstance(data.get("message"), str) and data["message"]:
        return data["message"]
    return f"{tool.name} completed."


class StepQueueExecutor:
    """
    Runs the directives of one model turn in order.

    `project_id` is the ambient project: readers get it when they omit one,
    and writers get it when they name no project at all.
    """

    def __init__(
        self,
        client: ToolClient,
        gate: ConfirmationGate,
        verifier: PostExecutionVerifier,
        transcript: Transcript,
        project_id: str | None = None,
        benign_conflict_tools: Iterable[str] = (),
    ) -> None:
        self._client = client
        self._gate = gate
        self._verifier = verifier
        self._transcript = transcript
        self._project_id = project_id
        self._benign_conflicts = frozenset(benign_conflict_tools)

        self._queue: deque[Directive] = deque()
        self._records: list[ExecutionRecord] = []
        self._aborted = False
        self.context = StepContext()

    @property
    def remaining(self) -> int:
        return len(self._queue)

    @property
    def aborted(self) -> bool:
        return self._aborted

    # ------------------------------------------------------------------
    # Queue control
    # ------------------------------------------------------------------

    def _abort(self, next_index: int) -> None:
        """Drain everything still queued. A drained queue is never resumed."""
        self._aborted = True
        for offset, directive in enumerate(self._queue):
            tool = classify(directive.tool)
            self._records.append(
                ExecutionRecord(
                    index=next_index + offset,
                    tool=tool.name,
                    kind=tool.kind.value,
                    args=dict(directive.args),
                    status=StepStatus.SKIPPED,
                    message="Not run: queue aborted.",
                )
            )
        if self._queue:
            logger.info("executor.aborted", drained=len(self._queue))
        self._queue.clear()

    def _fail(self, index: int, tool: ClassifiedTool, args: dict[str, Any], message: str) -> None:
        self._transcript.add_assistant(f"Error: {message}")
        display.halt(message)
        self._records.append(
            ExecutionRecord(
                index=index,
                tool=tool.name,
                kind=tool.kind.value,
                args=args,
                status=StepStatus.FAILED,
                message=message,
            )
        )
        self._abort(index + 1)

    async def run(self, directives: Iterable[Directive]) -> list[ExecutionRecord]:
        """
        Execute a full queue. Returns one record per directive, including
        the ones drained by an abort.
        """
        self._queue = deque(directives)
        self._records = []
        self._aborted = False
        self.context = StepContext()

        total = len(self._queue)
        index = 0
        display.execution_start(total)

        while self._queue and not self._aborted:
            directive = self._queue.popleft()
            index += 1
            tool = classify(directive.tool)
            display.step_start(index, total, tool.name, tool.kind.value)
            logger.info("executor.step_started", index=index, tool=tool.name, kind=tool.kind.value)

            args = dict(directive.args)
            try:
                if tool.is_reader:
                    await self._run_reader(index, tool, args)
                else:
                    await self._run_writer(index, tool, directive)
            except OrchestratorError as exc:
                self._fail(index, tool, args, str(exc))
            except httpx.HTTPError as exc:
                self._fail(index, tool, args, f"Request to {tool.name} failed: {exc}")

        logger.info("executor.completed", steps=total, aborted=self._aborted)
        display.execution_summary(self._records)
        return list(self._records)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    async def _run_reader(self, index: int, tool: ClassifiedTool, args: dict[str, Any]) -> None:
        if not _present(args.get("projectId")) and self._project_id:
            args["projectId"] = self._project_id

        response = await self._client.read_tool(tool.name, args)
        if not response.ok:
            raise InvocationError(response.text.strip() or f"HTTP {response.status_code}", response.status_code)

        self._transcript.add_assistant(_pretty(response))
        display.reader_result(tool.name, response.data if response.data is not None else response.text)
        self._records.append(
            ExecutionRecord(
                index=index,
                tool=tool.name,
                kind=tool.kind.value,
                args=args,
                status=StepStatus.SUCCEEDED,
                message="Read completed.",
            )
        )

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def _writer_args(self, tool: ClassifiedTool, args: dict[str, Any]) -> dict[str, Any]:
        args = dict(args)
        if tool.in_subtask_family and not looks_like_id(args.get("taskId")):
            if self.context.last_created_task_id:
                args["taskId"] = self.context.last_created_task_id
            else:
                args.pop("taskId", None)
        if not _present(args.get("projectId")) and not _present(args.get("projectName")) and self._project_id:
            args["projectId"] = self._project_id
        return args

    @staticmethod
    def _require_resolved(tool: ClassifiedTool, pending: PendingConfirmation) -> None:
        for entity in _RESOLUTION_ORDER:
            name = pending.unresolved.get(entity)
            if name is None:
                continue
            # The subtask endpoints resolve a parent title themselves.
            if entity == "task" and tool.in_subtask_family:
                continue
            raise ResolutionError(entity, name)

    async def _run_writer(self, index: int, tool: ClassifiedTool, directive: Directive) -> None:
        prepared = Directive(tool=directive.tool, args=self._writer_args(tool, directive.args))
        decision = await self._gate.submit(prepared, tool.name)
        pending = decision.pending

        if not decision.accepted:
            self._transcript.add_assistant(f"Cancelled: {tool.name} was rejected. Remaining steps were not run.")
            self._records.append(
                ExecutionRecord(
                    index=index,
                    tool=tool.name,
                    kind=tool.kind.value,
                    args=pending.resolved_args,
                    status=StepStatus.REJECTED,
                    message="Rejected by operator.",
                )
            )
            self._abort(index + 1)
            return

        self._require_resolved(tool, pending)
        args = pending.resolved_args

        display.invoking(tool.name)
        response = await self._client.write_tool(tool.name, args)

        if not response.ok:
            if response.status_code == 409 and tool.name in self._benign_conflicts:
                self._succeed(index, tool, args, "Already exists.", verified=False)
                return
            raise InvocationError(response.error_text, response.status_code)

        verification = await self._verifier.verify(tool, args, response.data)
        if not verification.ok:
            raise VerificationError(verification.detail)

        if verification.checked:
            display.verification_passed(tool.name, verification.entity_id)
        else:
            display.verification_skipped(tool.name)

        if tool.tool is Tool.CREATE_TASK:
            self.context.last_created_task_id = verification.entity_id

        self._succeed(index, tool, args, _summary(tool, args, response.data, verification), verified=verification.checked)

    def _succeed(self, index: int, tool: ClassifiedTool, args: dict[str, Any], summary: str, verified: bool) -> None:
        self._transcript.add_assistant(summary)
        display.step_succeeded(summary)
        self._records.append(
            ExecutionRecord(
                index=index,
                tool=tool.name,
                kind=tool.kind.value,
                args=args,
                status=StepStatus.SUCCEEDED,
                message=summary,
                verified=verified,
            )
        )
