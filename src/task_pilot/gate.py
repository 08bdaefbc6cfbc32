# gate.py
# Confirmation gate: the only place the orchestrator waits on a human.
#
#   Idle ──submit()──▶ AwaitingConfirmation ──accept()/reject()──▶ Idle
#
# There is no timeout and no auto-accept. A pending confirmation lives until
# the operator decides.

import asyncio
from dataclasses import dataclass
from enum import Enum

from task_pilot import display
from task_pilot.errors import GateStateError
from task_pilot.log import get_logger
from task_pilot.models import Directive, PendingConfirmation
from task_pilot.resolver import EntityResolver

logger = get_logger(name=__name__)


class GateState(str, Enum):
    IDLE = "idle"
    AWAITING = "awaiting_confirmation"


@dataclass(frozen=True)
class GateDecision:
    accepted: bool
    pending: PendingConfirmation


class ConfirmationGate:
    """
    Holds at most one PendingConfirmation.

    The executor calls submit() and is suspended until a UI calls accept()
    or reject(). UIs that are not driven by callbacks can await
    wait_for_pending() to learn when there is something to render.
    """

    def __init__(self, resolver: EntityResolver) -> None:
        self._resolver = resolver
        self._pending: PendingConfirmation | None = None
        self._decision: asyncio.Future[bool] | None = None
        self._opened = asyncio.Event()
        self._resolving = False

    @property
    def state(self) -> GateState:
        return GateState.AWAITING if self._pending is not None else GateState.IDLE

    @property
    def pending(self) -> PendingConfirmation | None:
        return self._pending

    @property
    def busy(self) -> bool:
        """True while a writer is being resolved or awaits a decision."""
        return self._resolving or self._pending is not None

    async def submit(self, directive: Directive, tool: str) -> GateDecision:
        """Open the gate for one writer directive and wait for the operator."""
        if self.busy:
            raise GateStateError("A confirmation is already pending.")

        self._resolving = True
        try:
            resolved = await self._resolver.resolve_args(directive.args)
        finally:
            self._resolving = False

        pending = PendingConfirmation(
            directive=directive,
            tool=tool,
            resolved_args=resolved.args,
            unresolved=resolved.unresolved,
        )
        self._pending = pending
        self._decision = asyncio.get_running_loop().create_future()
        self._opened.set()
        logger.info("gate.opened", tool=tool, unresolved=list(resolved.unresolved))
        display.pending_confirmation(pending)

        try:
            accepted = await self._decision
        finally:
            self._pending = None
            self._decision = None
            self._opened.clear()

        return GateDecision(accepted=accepted, pending=pending)

    async def wait_for_pending(self) -> PendingConfirmation:
        await self._opened.wait()
        assert self._pending is not None
        return self._pending

    def _decide(self, accepted: bool) -> PendingConfirmation:
        if self._pending is None or self._decision is None or self._decision.done():
            raise GateStateError("No confirmation is pending.")
        pending = self._pending
        self._pending = None
        self._opened.clear()
        self._decision.set_result(accepted)
        logger.info("gate.accepted" if accepted else "gate.rejected", tool=pending.tool)
        display.gate_decision(pending.tool, accepted)
        return pending

    def accept(self) -> PendingConfirmation:
        return self._decide(True)

    def reject(self) -> PendingConfirmation:
        return self._decide(False)
