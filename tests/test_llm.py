import json
from types import SimpleNamespace

import httpx
import pytest
from unittest.mock import AsyncMock

from helpers import PROJECT_ID, make_settings
from task_pilot.errors import InvocationError
from task_pilot.llm import (
    ANSWER_PROMPT,
    CLARIFY_PROMPT,
    HttpChatModel,
    OpenAIChatModel,
    _parse_intent,
    build_execution_prompt,
)
from task_pilot.models import ChatMessage, ChatRequest


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _openai(*replies):
    client = AsyncMock()
    client.chat.completions.create.side_effect = [_completion(r) for r in replies]
    return OpenAIChatModel(make_settings(), client=client), client.chat.completions.create


# ---------------------------------------------------------------------------
# Intent
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "text, expected",
    [
        ('{"intent": "write"}', "write"),
        (' {"intent": "read"} ', "read"),
        ('{"intent": "answer"}', "answer"),
        ('{"intent": "delete"}', "answer"),
        ("write", "answer"),
        ("[]", "answer"),
    ],
)
def test_parse_intent(text, expected):
    assert _parse_intent(text) == expected


def test_execution_prompt_lists_tools_for_the_intent():
    read = build_execution_prompt("read", PROJECT_ID)
    write = build_execution_prompt("write", None)

    assert "search-tasks" in read and "create-task" not in read
    assert "create-subtask" in write and "search-bugs" not in write
    assert PROJECT_ID in read
    assert '{"steps": [{"tool": "<name>"' in write


def test_execution_prompt_appends_approved_steps():
    prompt = build_execution_prompt("write", None, ["Create epic", "Add subtasks"])
    assert "1. Create epic\n2. Add subtasks" in prompt


# ---------------------------------------------------------------------------
# OpenAI-compatible backend
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_clarify_then_execute():
    model, create = _openai('{"intent": "write"}', '{"tool": "comment", "args": {}}')
    request = ChatRequest(
        message="comment on it",
        project_id=PROJECT_ID,
        history=[ChatMessage(role="user", content="earlier")],
    )

    response = await model.complete(request)

    assert response.response == '{"tool": "comment", "args": {}}'
    clarify, execute = create.call_args_list
    assert clarify.kwargs["messages"][0] == {"role": "system", "content": CLARIFY_PROMPT}
    assert clarify.kwargs["temperature"] == 0
    messages = execute.kwargs["messages"]
    assert "create-task" in messages[0]["content"]
    assert messages[1:] == [
        {"role": "user", "content": "earlier"},
        {"role": "user", "content": "comment on it"},
    ]


@pytest.mark.asyncio
async def test_answer_intent_uses_the_plain_prompt():
    model, create = _openai('{"intent": "answer"}', "Scrum is a framework.")

    response = await model.complete(ChatRequest(message="what is scrum?"))

    assert response.response == "Scrum is a framework."
    assert create.call_args_list[1].kwargs["messages"][0] == {"role": "system", "content": ANSWER_PROMPT}


@pytest.mark.asyncio
async def test_approved_plan_skips_the_clarify_call():
    model, create = _openai('{"steps": []}')

    await model.complete(ChatRequest(message="go", plan_approved_steps=["Create epic"]))

    assert create.call_count == 1
    assert "1. Create epic" in create.call_args.kwargs["messages"][0]["content"]


@pytest.mark.asyncio
async def test_empty_completion_raises():
    model, _ = _openai('{"intent": "read"}', "")
    with pytest.raises(InvocationError):
        await model.complete(ChatRequest(message="show tasks"))


# ---------------------------------------------------------------------------
# HTTP backend
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_http_backend_posts_camel_case_body():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"response": "hello"})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://testserver")
    model = HttpChatModel(http)

    response = await model.complete(
        ChatRequest(message="hi", project_id=PROJECT_ID, plan_approved_steps=["One"])
    )

    assert response.response == "hello"
    assert seen == [{"message": "hi", "projectId": PROJECT_ID, "history": [], "planApprovedSteps": ["One"]}]


@pytest.mark.asyncio
async def test_http_backend_raises_on_error_status():
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "boom"})),
        base_url="http://testserver",
    )
    with pytest.raises(httpx.HTTPStatusError):
        await HttpChatModel(http).complete(ChatRequest(message="hi"))
