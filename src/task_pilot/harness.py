# harness.py
# Conversational tool-call orchestrator.
#
# The Orchestrator is the kernel. The model is a passive responder; this
# class owns the transcript, the turn lifecycle and plan approval, and hands
# every directive list to a fresh StepQueueExecutor.
#
# Control flow per turn:
#   user message → model → parse
#     none      → plain reply
#     plan      → numbered list + "Proceed?" (nothing runs until approve_plan)
#     directive → step queue: classify → resolve → confirm → execute → verify
#
# All terminal output is delegated to display.py.

import httpx
from openai import OpenAIError

from task_pilot import display
from task_pilot.client import ToolClient
from task_pilot.config import Settings
from task_pilot.errors import OrchestratorError, TurnInProgressError
from task_pilot.executor import StepQueueExecutor
from task_pilot.gate import ConfirmationGate
from task_pilot.llm import ChatModel
from task_pilot.log import get_logger
from task_pilot.models import (
    ChatRequest,
    ExecutionRecord,
    ParsedResponse,
    Plan,
    ResponseShape,
    Transcript,
)
from task_pilot.parser import parse_response
from task_pilot.resolver import EntityResolver
from task_pilot.verifier import PostExecutionVerifier

logger = get_logger(name=__name__)

APPROVAL_MESSAGE = "Approved. Carry out the plan."


class Orchestrator:
    """
    One conversation with the task tracker.

    Example:
        orchestrator = Orchestrator(chat, client, settings)
        turn = asyncio.create_task(orchestrator.send("Create a task called Fix login"))
        pending = await orchestrator.gate.wait_for_pending()
        orchestrator.gate.accept()
        await turn
    """

    def __init__(self, chat: ChatModel, client: ToolClient, settings: Settings) -> None:
        self._chat = chat
        self._client = client
        self._settings = settings
        self._project_id = settings.default_project_id

        self.transcript = Transcript()
        self.resolver = EntityResolver(client, threshold=settings.resolution_threshold)
        self.gate = ConfirmationGate(self.resolver)
        self.verifier = PostExecutionVerifier(client, self.resolver)

        self._pending_plan: Plan | None = None
        self._running = False
        self.last_records: list[ExecutionRecord] = []

    @property
    def project_id(self) -> str | None:
        return self._project_id

    @project_id.setter
    def project_id(self, value: str | None) -> None:
        self._project_id = value

    @property
    def pending_plan(self) -> Plan | None:
        return self._pending_plan

    @property
    def busy(self) -> bool:
        return self._running or self.gate.busy

    def _ensure_idle(self) -> None:
        if self.busy:
            raise TurnInProgressError("Accept or reject the pending action before continuing.")

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def _ask(self, message: str, approved: list[str] | None = None) -> str:
        request = ChatRequest(
            message=message,
            project_id=self._project_id,
            history=self.transcript.messages[:-1],
            plan_approved_steps=approved,
        )
        display.calling_model()
        response = await self._chat.complete(request)
        return response.response

    async def _dispatch(self, text: str, parsed: ParsedResponse) -> None:
        if parsed.shape is ResponseShape.PLAN:
            assert parsed.plan is not None
            self._pending_plan = parsed.plan
            self.transcript.add_assistant(parsed.plan.render())
            display.plan_proposed(parsed.plan)
            return

        if not parsed.has_directives:
            self.transcript.add_assistant(text)
            display.assistant_message(text)
            return

        executor = StepQueueExecutor(
            self._client,
            self.gate,
            self.verifier,
            self.transcript,
            project_id=self._project_id,
            benign_conflict_tools=self._settings.benign_conflict_tools,
        )
        self.last_records = await executor.run(parsed.directives)

    async def _turn(self, message: str, approved: list[str] | None = None) -> None:
        self._running = True
        try:
            try:
                text = await self._ask(message, approved)
            except (OrchestratorError, OpenAIError, httpx.HTTPError) as exc:
                self.transcript.add_assistant(f"Error: {exc}")
                display.halt(str(exc))
                return
            await self._dispatch(text, parse_response(text))
        finally:
            self._running = False

    async def send(self, message: str) -> None:
        """Run one full conversational exchange for a user message."""
        self._ensure_idle()
        self._pending_plan = None
        self.last_records = []
        display.prompt_received(message)
        self.transcript.add_user(message)
        await self._turn(message)

    # ------------------------------------------------------------------
    # Plan approval
    # ------------------------------------------------------------------

    async def approve_plan(self) -> None:
        """Turn the pending plan into directives and run them."""
        self._ensure_idle()
        if self._pending_plan is None:
            raise OrchestratorError("There is no plan awaiting approval.")
        plan, self._pending_plan = self._pending_plan, None
        self.last_records = []
        logger.info("plan.approved", steps=len(plan.steps))
        self.transcript.add_user(APPROVAL_MESSAGE)
        await self._turn(APPROVAL_MESSAGE, approved=list(plan.steps))

    def reject_plan(self) -> None:
        self._ensure_idle()
        if self._pending_plan is None:
            raise OrchestratorError("There is no plan awaiting approval.")
        self._pending_plan = None
        logger.info("plan.rejected")
        self.transcript.add_assistant("Plan cancelled.")
        display.plan_cancelled()
