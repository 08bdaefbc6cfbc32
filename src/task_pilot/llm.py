# llm.py
# Chat-completion collaborators.
#
# The orchestrator only needs `complete(ChatRequest) -> ChatResponse` and
# only ever looks at the response text. Two backends:
#   HttpChatModel   — the task tracker's own /chat endpoint
#   OpenAIChatModel — an OpenAI-compatible API, clarify-then-execute

import json
from datetime import date
from typing import Literal, Protocol

import httpx
from openai import AsyncOpenAI

from task_pilot.config import Settings
from task_pilot.errors import InvocationError
from task_pilot.log import get_logger
from task_pilot.models import ChatRequest, ChatResponse

logger = get_logger(name=__name__)

Intent = Literal["read", "write", "answer"]


class ChatModel(Protocol):
    async def complete(self, request: ChatRequest) -> ChatResponse: ...


# ---------------------------------------------------------------------------
# System Prompts
# ---------------------------------------------------------------------------

PERSONA = """\
You are a project-management assistant with the manner of an experienced \
Agile coach. Today is {today}.\
"""

CLARIFY_PROMPT = """\
Decide whether the user wants to READ information, WRITE (change) \
information, or just get an ANSWER that needs no tools.

Respond with ONLY one of these JSON objects:
  {"intent": "read"}
  {"intent": "write"}
  {"intent": "answer"}

Examples:
  "change the priority of the login task to high" → {"intent": "write"}
  "show me the details for the analytics bug"     → {"intent": "read"}
  "what is agile methodology?"                    → {"intent": "answer"}\
"""

ANSWER_PROMPT = "You are a helpful assistant. Answer the user's question."

READ_TOOLS = """\
- search-tasks:      {"query": "<string>", "projectId?": "<uuid>"}
- get-task-details:  {"taskId?": "<uuid>", "taskTitle?": "<string>", "projectId?": "<uuid>"}
- search-bugs:       {"query": "<string>", "projectId?": "<uuid>"}
- get-bug-details:   {"bugId?": "<uuid>", "bugTitle?": "<string>", "projectId?": "<uuid>"}\
"""

WRITE_TOOLS = """\
- create-task:          {"projectId?": "<uuid>", "projectName?": "<string>", "title": "<string>", \
"details?": "<string>", "priority?": "low|medium|high|urgent", "assigneeName?": "<string>"}
- update-task:          {"taskId?": "<uuid>", "taskTitle?": "<string>", "projectId?": "<uuid>", \
"status?": "<string>", "priority?": "<string>", "storyPoints?": <number>, "assigneeName?": "<string>"}
- delete-task:          {"taskId?": "<uuid>", "taskTitle?": "<string>", "projectId?": "<uuid>"}
- comment:              {"taskId?": "<uuid>", "taskTitle?": "<string>", "content": "<string>"}
- breakdown-task:       {"projectId": "<uuid>", "title": "<string>"}
- create-bug-from-text: {"projectId": "<uuid>", "text": "<string>"}
- create-bug:           {"projectId": "<uuid>", "title": "<string>", "description?": "<string>"}
- update-bug:           {"bugId": "<uuid>", "status?": "<string>", "severity?": "<string>"}
- delete-bug:           {"bugId": "<uuid>"}
- create-subtask:       {"taskId?": "<uuid>", "taskTitle?": "<string>", "title": "<string>", "assigneeName?": "<string>"}
- update-subtask:       {"taskId?": "<uuid>", "taskTitle?": "<string>", "subtaskId": "<uuid>", \
"title?": "<string>", "isCompleted?": <bool>}
- delete-subtask:       {"taskId?": "<uuid>", "taskTitle?": "<string>", "subtaskId": "<uuid>"}\
"""

EXECUTION_PROMPT = """\
The user's intent is {intent}. Use ONLY the tools listed below.

Available tools and their JSON arguments:
{tools}

Respond with ONLY JSON, in exactly one of these shapes:
  {{"steps": [{{"tool": "<name>", "args": {{...}}}}, ...]}}   actions to run, in order
  {{"tool": "<name>", "args": {{...}}}}                       a single action
  {{"plan": ["<step description>", ...]}}                   a larger change the user must approve first

RULES:
- Use names (taskTitle, projectName, assigneeName) when you don't have IDs. \
The system resolves them.
- Never invent IDs. If a later step needs the ID of a task created earlier, omit it.
- Do NOT ask for confirmation; the client handles that.

Context:
```json
{context}
```\
"""

APPROVED_PLAN_PROMPT = """\
The user approved this plan:
{steps}

Emit the `steps` array that carries it out, in the same order.\
"""


# ---------------------------------------------------------------------------
# HTTP backend
# ---------------------------------------------------------------------------


class HttpChatModel:
    """Posts `{message, projectId, history, planApprovedSteps}` to /chat."""

    def __init__(self, http: httpx.AsyncClient, path: str = "/chat") -> None:
        self._http = http
        self._path = path

    async def complete(self, request: ChatRequest) -> ChatResponse:
        body = request.model_dump(by_alias=True, exclude_none=True)
        response = await self._http.post(self._path, json=body)
        response.raise_for_status()
        return ChatResponse.model_validate(response.json())


# ---------------------------------------------------------------------------
# OpenAI-compatible backend
# ---------------------------------------------------------------------------


def _parse_intent(text: str) -> Intent:
    try:
        intent = json.loads(text.strip()).get("intent")
    except (json.JSONDecodeError, AttributeError):
        return "answer"
    return intent if intent in ("read", "write", "answer") else "answer"


def build_execution_prompt(intent: Intent, project_id: str | None, approved: list[str] | None = None) -> str:
    context = json.dumps({"projectId": project_id} if project_id else {}, indent=2)[:4000]
    prompt = PERSONA.format(today=date.today().strftime("%A, %B %d, %Y")) + "\n\n" + EXECUTION_PROMPT.format(
        intent=intent.upper(),
        tools=READ_TOOLS if intent == "read" else WRITE_TOOLS,
        context=context,
    )
    if approved:
        numbered = "\n".join(f"{i}. {step}" for i, step in enumerate(approved, start=1))
        prompt += "\n\n" + APPROVED_PLAN_PROMPT.format(steps=numbered)
    return prompt


class OpenAIChatModel:
    """
    Two calls per turn: a short clarify call picks read/write/answer, then
    the real call runs with only the matching tool list in its prompt.

    An approved plan skips the clarify call and goes straight to write mode.
    """

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None) -> None:
        self._model = settings.openai_model
        self._client = client or AsyncOpenAI(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
        )

    async def _call(self, messages: list[dict], max_tokens: int = 1200, temperature: float = 0.6) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        content = response.choices[0].message.content
        if not content:
            raise InvocationError("Model returned an empty response.")
        return content.strip()

    async def classify_intent(self, message: str) -> Intent:
        text = await self._call(
            [
                {"role": "system", "content": CLARIFY_PROMPT},
                {"role": "user", "content": message},
            ],
            max_tokens=50,
            temperature=0,
        )
        intent = _parse_intent(text)
        logger.debug("llm.intent", intent=intent)
        return intent

    async def complete(self, request: ChatRequest) -> ChatResponse:
        if request.plan_approved_steps:
            intent: Intent = "write"
        else:
            intent = await self.classify_intent(request.message)

        if intent == "answer":
            messages = [
                {"role": "system", "content": ANSWER_PROMPT},
                {"role": "user", "content": request.message},
            ]
        else:
            system = build_execution_prompt(intent, request.project_id, request.plan_approved_steps)
            messages = [
                {"role": "system", "content": system},
                *[m.model_dump() for m in request.history],
                {"role": "user", "content": request.message},
            ]

        return ChatResponse(response=await self._call(messages))
