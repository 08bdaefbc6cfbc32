# models.py
# Data contracts for the tool-call orchestrator.
# Schema and validation only.

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Directive(BaseModel):
    """A single `{tool, args}` instruction extracted from model text."""

    model_config = ConfigDict(frozen=True)

    tool: str = Field(..., min_length=1, description="Raw tool name as emitted by the model.")
    args: dict[str, Any] = Field(default_factory=dict, description="Tool arguments.")


class Plan(BaseModel):
    """Human-readable steps awaiting operator approval. Never executed directly."""

    steps: list[str] = Field(..., min_length=1)

    def render(self) -> str:
        lines = [f"{i}. {step}" for i, step in enumerate(self.steps, start=1)]
        lines.append("")
        lines.append("Proceed?")
        return "\n".join(lines)


class ResponseShape(str, Enum):
    PLAN = "plan"
    STEPS = "steps"
    DIRECTIVE = "directive"
    NONE = "none"


class ParsedResponse(BaseModel):
    """Result of parsing one model response. Exactly one shape per response."""

    shape: ResponseShape = ResponseShape.NONE
    plan: Plan | None = None
    directives: list[Directive] = Field(default_factory=list)

    @property
    def has_directives(self) -> bool:
        return bool(self.directives)


class ResolutionResult(BaseModel):
    id: str
    score: float = Field(..., ge=0.0, le=1.0)


class PendingConfirmation(BaseModel):
    """The one writer directive currently blocking the queue."""

    directive: Directive
    tool: str = Field(..., description="Normalized tool name.")
    resolved_args: dict[str, Any] = Field(default_factory=dict)
    unresolved: dict[str, str] = Field(
        default_factory=dict,
        description="Entity kind → name that could not be resolved.",
    )


class StepContext(BaseModel):
    """Identifiers carried between directives of one queue. Reset every turn."""

    last_created_task_id: str | None = None


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class Transcript(BaseModel):
    """The running conversation. The orchestrator's only observable surface."""

    messages: list[ChatMessage] = Field(default_factory=list)

    def add_user(self, content: str) -> None:
        self.messages.append(ChatMessage(role="user", content=content))

    def add_assistant(self, content: str) -> None:
        self.messages.append(ChatMessage(role="assistant", content=content))

    def history(self) -> list[dict[str, str]]:
        return [m.model_dump() for m in self.messages]

    @property
    def last(self) -> ChatMessage | None:
        return self.messages[-1] if self.messages else None


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    project_id: str | None = Field(default=None, alias="projectId")
    history: list[ChatMessage] = Field(default_factory=list)
    plan_approved_steps: list[str] | None = Field(default=None, alias="planApprovedSteps")


class ChatResponse(BaseModel):
    response: str


class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    REJECTED = "rejected"
    FAILED = "failed"
    SKIPPED = "skipped"


class ExecutionRecord(BaseModel):
    """Log entry produced for every directive the executor popped or drained."""

    index: int = Field(..., description="1-based position in the queue.")
    tool: str
    kind: str
    args: dict[str, Any]
    status: StepStatus
    message: str = Field(default="")
    verified: bool = Field(default=False)
