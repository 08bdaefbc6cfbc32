# display.py
# All terminal output for the task-pilot orchestrator.
#
# This module owns presentation entirely. Other modules never format strings
# for the terminal; they call named functions here.
#
# Colour language:
#   cyan    — routing events
#   blue    — model calls and responses
#   yellow  — confirmation and verification checkpoints
#   green   — success / accepted
#   red     — failures, rejections, halts
#   magenta — reader tool output

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from task_pilot.models import ExecutionRecord, PendingConfirmation, Plan, StepStatus

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return escape(value[:max_len]) + "…"
    return escape(value)


def _value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def banner(model: str, api_url: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]task-pilot[/bold cyan]\n"
            "[dim]Confirmed, verified tool calls against the task tracker[/dim]\n\n"
            f"[dim]Model :[/dim] [white]{escape(model)}[/white]\n"
            f"[dim]API   :[/dim] [white]{escape(api_url)}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def prompt_received(prompt: str) -> None:
    console.print()
    console.print(Rule("[cyan]NEW TURN[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(prompt)}[/white]",
            title=_label("USER", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


def calling_model() -> None:
    console.print(_label("ORCHESTRATOR", "cyan"), "[cyan] → Asking the model…[/cyan]")


def assistant_message(text: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{escape(text)}[/white]",
            title=_label("ASSISTANT", "blue"),
            border_style="blue",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


def plan_proposed(plan: Plan) -> None:
    console.print()
    table = Table(box=box.SIMPLE_HEAVY, border_style="cyan", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="center", width=4)
    table.add_column("Step", style="white")
    for i, step in enumerate(plan.steps, start=1):
        table.add_row(str(i), escape(step))

    console.print(
        Panel(
            table,
            title=_label("PLAN PROPOSED", "cyan"),
            subtitle="[dim]Proceed?[/dim]",
            border_style="cyan",
            padding=(0, 1),
        )
    )


def plan_cancelled() -> None:
    console.print(_label("PLAN", "red"), "[red] Cancelled by operator.[/red]")


# ---------------------------------------------------------------------------
# Execution loop
# ---------------------------------------------------------------------------


def execution_start(total: int) -> None:
    console.print()
    console.print(Rule(f"[cyan]STEP QUEUE — {total} directive(s)[/cyan]", style="cyan"))


def step_start(index: int, total: int, tool: str, kind: str) -> None:
    console.print()
    console.print(
        f"[bold cyan]  STEP [{index}/{total}][/bold cyan]  "
        f"[bold white]{escape(tool)}[/bold white]  [dim]({kind})[/dim]"
    )


def reader_result(tool: str, data: Any) -> None:
    rendered = json.dumps(data, indent=2) if not isinstance(data, str) else data
    console.print(f"  [magenta]Read[/magenta]     [dim]{escape(tool)}[/dim]")
    console.print(f"  [white]{_mono(rendered, 400)}[/white]")


def pending_confirmation(pending: PendingConfirmation) -> None:
    console.print()
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold yellow", padding=(0, 1))
    table.add_column("Argument", style="bold white")
    table.add_column("Value", style="white")
    for key, value in pending.resolved_args.items():
        table.add_row(escape(key), _mono(_value(value), 80))
    for entity, name in pending.unresolved.items():
        table.add_row(f"[red]{entity}[/red]", f"[red]not found: {escape(name)}[/red]")

    console.print(
        Panel(
            table,
            title=_label(f"CONFIRM: {pending.tool}", "yellow"),
            subtitle="[dim]Accept / Reject[/dim]",
            border_style="yellow",
            padding=(0, 1),
        )
    )


def gate_decision(tool: str, accepted: bool) -> None:
    if accepted:
        console.print(f"  [bold green]✓ Accepted[/bold green]  [dim]{escape(tool)}[/dim]")
    else:
        console.print(f"  [bold red]✗ Rejected[/bold red]  [dim]{escape(tool)}[/dim]")


def invoking(tool: str) -> None:
    console.print(f"  [cyan]↳ POST[/cyan] [dim]{escape(tool)}[/dim]…")


def verification_passed(tool: str, entity_id: str | None) -> None:
    suffix = f"  [dim]{escape(entity_id)}[/dim]" if entity_id else ""
    console.print(f"  [bold green]✓ Verified[/bold green]  [dim]{escape(tool)}[/dim]{suffix}")


def verification_skipped(tool: str) -> None:
    console.print(f"  [yellow]• No independent check for[/yellow] [dim]{escape(tool)}[/dim]")


def step_succeeded(summary: str) -> None:
    console.print(f"  [green]{_mono(summary, 200)}[/green]")


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def execution_summary(records: list[ExecutionRecord]) -> None:
    if not records:
        return
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="dim",
        show_header=True,
        header_style="bold dim",
        padding=(0, 1),
    )
    table.add_column("Step", justify="center", width=6)
    table.add_column("Tool", width=22)
    table.add_column("Status", justify="center", width=10)
    table.add_column("Verified", justify="center", width=10)
    table.add_column("Message", style="dim white")

    colours = {
        StepStatus.SUCCEEDED: "green",
        StepStatus.REJECTED: "red",
        StepStatus.FAILED: "red",
        StepStatus.SKIPPED: "dim",
    }
    for record in records:
        colour = colours[record.status]
        verified = "[bold green]✓[/bold green]" if record.verified else "[dim]–[/dim]"
        table.add_row(
            str(record.index),
            escape(record.tool),
            f"[{colour}]{record.status.value}[/{colour}]",
            verified,
            _mono(record.message, 60),
        )

    console.print(
        Panel(
            table,
            title="[dim]EXECUTION SUMMARY[/dim]",
            border_style="dim",
            padding=(0, 1),
        )
    )
