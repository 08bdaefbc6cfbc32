# run.py
# Entry point. Config and wiring only.
#
# Commands at the prompt:
#   /project <uuid>   set the ambient project
#   /quit             leave

import asyncio

import httpx
from rich.prompt import Confirm, Prompt

from task_pilot import display
from task_pilot.client import ToolClient
from task_pilot.config import Settings, load_settings
from task_pilot.harness import Orchestrator
from task_pilot.llm import ChatModel, HttpChatModel, OpenAIChatModel
from task_pilot.log import configure_logging


async def _drive(orchestrator: Orchestrator, turn: asyncio.Task) -> None:
    """Await a turn, answering every confirmation it raises on the way."""
    while not turn.done():
        waiter = asyncio.ensure_future(orchestrator.gate.wait_for_pending())
        done, _ = await asyncio.wait({turn, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if waiter in done:
            accepted = await asyncio.to_thread(Confirm.ask, "Accept this action?", default=False)
            if accepted:
                orchestrator.gate.accept()
            else:
                orchestrator.gate.reject()
        else:
            waiter.cancel()
    await turn


async def _session(settings: Settings, chat: ChatModel, client: ToolClient) -> None:
    orchestrator = Orchestrator(chat, client, settings)

    while True:
        try:
            message = await asyncio.to_thread(Prompt.ask, "[bold cyan]you[/bold cyan]")
        except (EOFError, KeyboardInterrupt):
            break

        message = message.strip()
        if not message:
            continue
        if message in ("/quit", "/exit"):
            break
        if message.startswith("/project"):
            orchestrator.project_id = message[len("/project"):].strip() or None
            display.assistant_message(f"Ambient project: {orchestrator.project_id or 'none'}")
            continue

        await _drive(orchestrator, asyncio.ensure_future(orchestrator.send(message)))

        while orchestrator.pending_plan is not None:
            proceed = await asyncio.to_thread(Confirm.ask, "Proceed?", default=False)
            if not proceed:
                orchestrator.reject_plan()
                break
            await _drive(orchestrator, asyncio.ensure_future(orchestrator.approve_plan()))


async def _main(settings: Settings) -> None:
    async with ToolClient(settings) as client:
        if settings.chat_backend == "http":
            async with httpx.AsyncClient(
                base_url=settings.api_base_url,
                headers={"Authorization": f"Bearer {settings.api_token}"} if settings.api_token else None,
                timeout=settings.http_timeout,
            ) as http:
                await _session(settings, HttpChatModel(http), client)
        else:
            await _session(settings, OpenAIChatModel(settings), client)


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    model = settings.openai_model if settings.chat_backend == "openai" else "/chat endpoint"
    display.banner(model, settings.api_base_url)
    asyncio.run(_main(settings))


if __name__ == "__main__":
    main()
