# parser.py
# Directive parser: model text in, structure out. Pure, with no I/O or state.
#
# Shapes are checked in a fixed order and are mutually exclusive:
#   {"plan": [str, ...]}                 → Plan (needs operator approval)
#   {"steps": [{tool, args}, ...]}       → ordered Directives
#   {"tool": str, "args": {...}}         → one Directive
#   anything else / invalid JSON         → nothing (plain conversation)

import json
import re
from typing import Any

from pydantic import ValidationError

from task_pilot.models import Directive, ParsedResponse, Plan, ResponseShape

_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


def extract_json(text: str) -> Any | None:
    """
    Return the decoded JSON payload of a model response, or None.

    A fenced block wins when present; otherwise the whole trimmed text is
    tried as JSON.
    """
    match = _FENCE.search(text)
    raw = match.group(1).strip() if match else text.strip()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def _as_plan(data: dict) -> Plan | None:
    steps = data.get("plan")
    if not isinstance(steps, list) or not steps:
        return None
    if not all(isinstance(step, str) for step in steps):
        return None
    return Plan(steps=steps)


def _as_directive(data: Any) -> Directive | None:
    if not isinstance(data, dict):
        return None
    if not isinstance(data.get("tool"), str) or not isinstance(data.get("args"), dict):
        return None
    try:
        return Directive(tool=data["tool"], args=data["args"])
    except ValidationError:
        return None


def _as_steps(data: dict) -> list[Directive] | None:
    entries = data.get("steps")
    if not isinstance(entries, list) or not entries:
        return None
    directives = [_as_directive(entry) for entry in entries]
    if any(d is None for d in directives):
        return None
    return directives


def parse_response(text: str) -> ParsedResponse:
    """Classify one model response into at most one shape."""
    data = extract_json(text)
    if not isinstance(data, dict):
        return ParsedResponse()

    plan = _as_plan(data)
    if plan is not None:
        return ParsedResponse(shape=ResponseShape.PLAN, plan=plan)

    steps = _as_steps(data)
    if steps is not None:
        return ParsedResponse(shape=ResponseShape.STEPS, directives=steps)

    directive = _as_directive(data)
    if directive is not None:
        return ParsedResponse(shape=ResponseShape.DIRECTIVE, directives=[directive])

    return ParsedResponse()
