# tools.py
# Tool registry and classifier.
#
# Model output names tools as free text. Everything downstream of classify()
# works with a ClassifiedTool: a normalized endpoint name, a reader/writer
# kind, and the known Tool member (or None for anything outside the set).

from dataclasses import dataclass
from enum import Enum

from task_pilot.log import get_logger

logger = get_logger(name=__name__)


class ToolKind(str, Enum):
    READER = "reader"
    WRITER = "writer"


class Tool(str, Enum):
    # Readers
    SEARCH_TASKS = "search-tasks"
    GET_TASK_DETAILS = "get-task-details"
    SEARCH_BUGS = "search-bugs"
    GET_BUG_DETAILS = "get-bug-details"

    # Writers
    CREATE_TASK = "create-task"
    UPDATE_TASK = "update-task"
    DELETE_TASK = "delete-task"
    COMMENT = "comment"
    BREAKDOWN_TASK = "breakdown-task"
    CREATE_BUG_FROM_TEXT = "create-bug-from-text"
    CREATE_BUG = "create-bug"
    UPDATE_BUG = "update-bug"
    DELETE_BUG = "delete-bug"
    CREATE_SUBTASK = "create-subtask"
    UPDATE_SUBTASK = "update-subtask"
    DELETE_SUBTASK = "delete-subtask"


READERS: frozenset[Tool] = frozenset({
    Tool.SEARCH_TASKS,
    Tool.GET_TASK_DETAILS,
    Tool.SEARCH_BUGS,
    Tool.GET_BUG_DETAILS,
})

WRITERS: frozenset[Tool] = frozenset(set(Tool) - READERS)

SUBTASK_FAMILY: frozenset[Tool] = frozenset({
    Tool.CREATE_SUBTASK,
    Tool.UPDATE_SUBTASK,
    Tool.DELETE_SUBTASK,
})

# Names the model has been seen to emit for known tools.
ALIASES: dict[str, str] = {
    "post-breakdown-task": Tool.BREAKDOWN_TASK.value,
    "post-create-bug-from-text": Tool.CREATE_BUG_FROM_TEXT.value,
    "post-create-subtask": Tool.CREATE_SUBTASK.value,
    "post-update-subtask": Tool.UPDATE_SUBTASK.value,
    "post-delete-subtask": Tool.DELETE_SUBTASK.value,
    "get-search-tasks": Tool.SEARCH_TASKS.value,
    "get-search-bugs": Tool.SEARCH_BUGS.value,
    "task-details": Tool.GET_TASK_DETAILS.value,
    "bug-details": Tool.GET_BUG_DETAILS.value,
}

_KNOWN_NAMES: dict[str, Tool] = {tool.value: tool for tool in Tool}


@dataclass(frozen=True)
class ClassifiedTool:
    raw: str
    name: str
    kind: ToolKind
    tool: Tool | None = None

    @property
    def is_reader(self) -> bool:
        return self.kind is ToolKind.READER

    @property
    def is_writer(self) -> bool:
        return self.kind is ToolKind.WRITER

    @property
    def in_subtask_family(self) -> bool:
        return self.tool in SUBTASK_FAMILY


def normalize_tool_name(raw: str) -> str:
    """
    Collapse legacy spellings into the hyphenated endpoint name.

    `get_x` becomes `get-x`, a `post_` prefix is dropped, remaining
    underscores become hyphens, then known aliases are applied.
    """
    name = raw.strip().lower()
    if name.startswith("get_"):
        name = "get-" + name[len("get_"):]
    if name.startswith("post_"):
        name = name[len("post_"):]
    name = name.replace("_", "-")

    if name in ALIASES:
        return ALIASES[name]
    if name.startswith("post-") and name[len("post-"):] in _KNOWN_NAMES:
        return name[len("post-"):]
    return name


def classify(raw: str) -> ClassifiedTool:
    """
    Label a tool name as reader or writer.

    Anything that is not recognisably a reader is a writer, so an unknown
    capability always goes through the Confirmation Gate.
    """
    name = normalize_tool_name(raw)
    tool = _KNOWN_NAMES.get(name)

    if name.startswith("get-") or tool in READERS:
        return ClassifiedTool(raw=raw, name=name, kind=ToolKind.READER, tool=tool)

    if name.startswith("post-") or tool in WRITERS:
        return ClassifiedTool(raw=raw, name=name, kind=ToolKind.WRITER, tool=tool)

    logger.warning("tool.unrecognized", raw=raw, normalized=name, fallback=ToolKind.WRITER.value)
    return ClassifiedTool(raw=raw, name=name, kind=ToolKind.WRITER, tool=None)
