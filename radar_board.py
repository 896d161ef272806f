"""Radar board: turns loaded sessions into rich renderables.

Everything here is a pure function of its input. No file access, no clock
reads except the default `now` in format_time_ago, no module state. The
live loop in radar.py calls render_board() on every tick.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from rich import box
from rich.console import Group, RenderableType
from rich.padding import Padding
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from radar_models import (
    Item,
    SessionData,
    SOURCE_TASKS,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
)

# ink "gray" is ANSI bright black
MUTED = "bright_black"

FALLBACK_ICON = "?"
FALLBACK_COLOR = "white"

PROGRESS_WIDTH = 12
PROGRESS_FILLED = "█"
PROGRESS_EMPTY = "░"

DEFAULT_BRANCH = "main"
TITLE_ID_CHARS = 8
PROMPT_PREVIEW_CHARS = 60

TASKS_ICON = "\U0001f4cb"
TODOS_ICON = "\U0001f4dd"

DEFAULT_WATCH_LABELS = ("~/.claude/todos/", "~/.claude/tasks/")


# === FORMATTERS ===

def status_icon(status: str) -> str:
    if status == STATUS_COMPLETED:
        return "✓"
    elif status == STATUS_IN_PROGRESS:
        return "▶"
    elif status == STATUS_PENDING:
        return "○"
    return FALLBACK_ICON


def status_color(status: str) -> str:
    if status == STATUS_COMPLETED:
        return "green"
    elif status == STATUS_IN_PROGRESS:
        return "yellow"
    elif status == STATUS_PENDING:
        return MUTED
    return FALLBACK_COLOR


def progress_cells(done: int, total: int, width: int = PROGRESS_WIDTH) -> int:
    """Number of filled cells for done/total, rounded half up. 0 when total is 0."""
    if total <= 0:
        return 0
    return min(width, int(done * width / total + 0.5))


def render_progress_bar(done: int, total: int, width: int = PROGRESS_WIDTH) -> Text:
    filled = progress_cells(done, total, width)
    text = Text()
    text.append(PROGRESS_FILLED * filled, style="green")
    text.append(PROGRESS_EMPTY * (width - filled), style=MUTED)
    text.append(f" {done}/{total}", style=MUTED)
    return text


def format_time_ago(when: datetime, now: Optional[datetime] = None) -> str:
    """Relative age of `when`: "45s ago", "1m ago", "1h ago", "1d ago".

    Days is the coarsest unit, so a month-old session reads "30d ago".
    Timestamps in the future (clock skew between machines) read "0s ago".
    """
    if now is None:
        now = datetime.now(when.tzinfo)
    seconds = max(0, int((now - when).total_seconds()))
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def format_dwell(since: Optional[datetime], now: Optional[datetime] = None) -> str:
    """How long an item has held its current status: "<1m", "5m", "2h", "3d".

    Empty when the start is unknown or lies in the future.
    """
    if since is None:
        return ""
    if now is None:
        now = datetime.now(since.tzinfo)
    elapsed = (now - since).total_seconds()
    if elapsed < 0:
        return ""
    minutes = int(elapsed // 60)
    if minutes < 1:
        return "<1m"
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def item_label(item: Item) -> str:
    if item.kind == "task":
        return f"#{item.id} {item.subject}"
    return item.content


def session_title(session: SessionData) -> str:
    meta = session.meta
    if meta is not None and meta.project_name:
        return meta.project_name
    return session.id[:TITLE_ID_CHARS] + "..."


def branch_suffix(session: SessionData, default_branch: str = DEFAULT_BRANCH) -> str:
    """' · <branch>' for feature branches, '' for the default branch or none."""
    meta = session.meta
    if meta is None or not meta.git_branch or meta.git_branch == default_branch:
        return ""
    return f" · {meta.git_branch}"


def session_description(session: SessionData) -> Optional[Tuple[str, str]]:
    """(text, style) for the line under the header, or None.

    A summary is shown italic; a first-prompt preview is also dimmed.
    """
    meta = session.meta
    if meta is None:
        return None
    if meta.summary:
        return meta.summary, f"italic {MUTED}"
    if meta.first_prompt:
        return meta.first_prompt[:PROMPT_PREVIEW_CHARS] + "...", f"italic dim {MUTED}"
    return None


def item_key(item: Item) -> str:
    """Identity of an item within its session, stable across status changes."""
    if item.kind == "task":
        return f"task:{item.id}"
    return f"todo:{item.content}"


def session_key(session: SessionData) -> str:
    # todos and tasks can share a session id
    return f"{session.source}-{session.id}"


def count_completed(session: SessionData) -> int:
    return sum(1 for item in session.items if item.status == STATUS_COMPLETED)


# === RENDERERS ===

def render_item_row(item: Item, dwell: str = "") -> Text:
    completed = item.status == STATUS_COMPLETED
    text = Text()
    text.append(f" {status_icon(item.status)} ", style=status_color(item.status))
    text.append(
        item_label(item),
        style=f"strike {MUTED}" if completed else "white",
    )
    owner = getattr(item, "owner", None)
    if owner:
        text.append(f" ({owner})", style="cyan")
    if dwell:
        text.append(f" {dwell}", style=MUTED)
    return text


def render_card_header(
    session: SessionData,
    now: Optional[datetime] = None,
    default_branch: str = DEFAULT_BRANCH,
) -> Table:
    """Left: type icon, title, branch. Right: progress bar and age."""
    left = Text()
    left.append(f"{TASKS_ICON if session.source == SOURCE_TASKS else TODOS_ICON} ")
    left.append(session_title(session), style="bold cyan")
    left.append(branch_suffix(session, default_branch), style=MUTED)

    right = render_progress_bar(count_completed(session), len(session.items))
    right.append(f" · {format_time_ago(session.last_modified, now)}", style=MUTED)

    header = Table.grid(expand=True)
    header.add_column(no_wrap=True)
    header.add_column(justify="right", no_wrap=True)
    header.add_row(left, right)
    return header


def render_session_card(
    session: SessionData,
    now: Optional[datetime] = None,
    default_branch: str = DEFAULT_BRANCH,
) -> Panel:
    rows: List[RenderableType] = [render_card_header(session, now, default_branch)]

    description = session_description(session)
    if description is not None:
        text, style = description
        rows.append(Text(f"  {text}", style=style))

    rows.append(Text(""))
    rows.extend(render_item_row(item) for item in session.items)

    return Panel(
        Group(*rows),
        box=box.ROUNDED,
        border_style=MUTED,
        padding=(0, 1),
    )


def render_empty_board(watch_labels: Sequence[str] = DEFAULT_WATCH_LABELS) -> Padding:
    todos_label, tasks_label = watch_labels
    return Padding(
        Group(
            Text("No active tasks or todos found.", style=MUTED),
            Text(f"Watching {todos_label} and {tasks_label} ...", style=MUTED),
        ),
        1,
    )


def board_cards(
    sessions: Sequence[SessionData],
    now: Optional[datetime] = None,
    default_branch: str = DEFAULT_BRANCH,
) -> List[Tuple[str, Panel]]:
    """(key, card) per session, in the order received."""
    return [
        (session_key(session), render_session_card(session, now, default_branch))
        for session in sessions
    ]


def render_board(
    sessions: Sequence[SessionData],
    now: Optional[datetime] = None,
    default_branch: str = DEFAULT_BRANCH,
    watch_labels: Sequence[str] = DEFAULT_WATCH_LABELS,
) -> RenderableType:
    if not sessions:
        return render_empty_board(watch_labels)
    cards = board_cards(sessions, now, default_branch)
    return Group(*(Padding(card, (0, 0, 1, 0)) for _, card in cards))


def summarize_sessions(sessions: Sequence[SessionData]) -> Dict[str, int]:
    """Totals across all sessions, for the dashboard header."""
    items = [item for session in sessions for item in session.items]
    return {
        "sessions": len(sessions),
        "items": len(items),
        "completed": sum(1 for i in items if i.status == STATUS_COMPLETED),
        "in_progress": sum(1 for i in items if i.status == STATUS_IN_PROGRESS),
    }
