"""Session and item types shown on the radar board.

Two item shapes come off disk:
- todo files (~/.claude/todos/*.json): {"content", "status", "activeForm"}
- task files (~/.claude/tasks/<session>/*.json): {"id", "subject", "status", "owner", ...}

Both carry a `kind` tag so the board can tell them apart without isinstance().
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Mapping, Optional, Tuple, Union

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED)

SOURCE_TODOS = "todos"
SOURCE_TASKS = "tasks"


@dataclass(frozen=True)
class TodoItem:
    content: str
    status: str = STATUS_PENDING
    active_form: Optional[str] = None

    kind: ClassVar[str] = "todo"


@dataclass(frozen=True)
class TaskItem:
    id: str
    subject: str
    status: str = STATUS_PENDING
    owner: Optional[str] = None
    description: str = ""
    active_form: Optional[str] = None
    blocks: Tuple[str, ...] = ()
    blocked_by: Tuple[str, ...] = ()

    kind: ClassVar[str] = "task"


Item = Union[TodoItem, TaskItem]


@dataclass(frozen=True)
class SessionMeta:
    project_path: str
    project_name: str
    summary: Optional[str] = None
    first_prompt: Optional[str] = None
    git_branch: Optional[str] = None


@dataclass(frozen=True)
class SessionData:
    id: str
    source: str
    last_modified: datetime
    items: Tuple[Item, ...] = field(default_factory=tuple)
    meta: Optional[SessionMeta] = None


def _str_tuple(value):
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v) for v in value)


def _opt_str(value):
    return value if isinstance(value, str) and value else None


def item_from_dict(raw: Mapping[str, Any]) -> Item:
    """Build a TodoItem or TaskItem from one raw JSON object.

    Anything with a "subject" key is a task; everything else is a todo.
    Status is kept verbatim so unknown values reach the renderer's fallback.
    """
    status = raw.get("status")
    status = status if isinstance(status, str) else STATUS_PENDING

    if "subject" in raw:
        return TaskItem(
            id=str(raw.get("id", "")),
            subject=str(raw.get("subject") or ""),
            status=status,
            owner=_opt_str(raw.get("owner")),
            description=str(raw.get("description") or ""),
            active_form=_opt_str(raw.get("activeForm")),
            blocks=_str_tuple(raw.get("blocks")),
            blocked_by=_str_tuple(raw.get("blockedBy")),
        )

    return TodoItem(
        content=str(raw.get("content") or ""),
        status=status,
        active_form=_opt_str(raw.get("activeForm")),
    )
