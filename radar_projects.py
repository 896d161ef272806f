"""Project view: sessions grouped by project path.

The board shows one card per session; a project usually has several (one
todo list per agent, one task list per team). group_projects() folds them
into one ProjectData per project for the dashboard and the detail view.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from rich import box
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from radar_board import (
    MUTED,
    format_dwell,
    format_time_ago,
    item_key,
    item_label,
    render_item_row,
    render_progress_bar,
    session_key,
)
from radar_models import SessionData, STATUS_COMPLETED, STATUS_IN_PROGRESS

UNKNOWN_PROJECT = "(no project)"
MAIN_AGENT = "main"
ACTIVE_NOW_ROWS = 4
PREVIEW_ITEMS = 8
NAME_WIDTH = 12


@dataclass(frozen=True)
class ProjectData:
    project_path: str
    project_name: str
    sessions: Tuple[SessionData, ...]
    total_tasks: int
    completed_tasks: int
    in_progress_tasks: int
    agents: Tuple[str, ...]
    last_activity: datetime
    is_active: bool
    git_branch: Optional[str] = None

    @property
    def all_done(self) -> bool:
        return self.total_tasks > 0 and self.completed_tasks == self.total_tasks


# === AGGREGATION ===

def _project_of(session: SessionData) -> Tuple[str, str]:
    if session.meta is None:
        return "", UNKNOWN_PROJECT
    return session.meta.project_path, session.meta.project_name or UNKNOWN_PROJECT


def build_project(project_path: str, project_name: str, sessions: Sequence[SessionData]) -> ProjectData:
    """Totals for one project. `sessions` must be non-empty."""
    ordered = sorted(sessions, key=lambda s: s.last_modified, reverse=True)
    items = [item for session in ordered for item in session.items]
    owners = {getattr(item, "owner", None) for item in items}
    branch = next(
        (s.meta.git_branch for s in ordered if s.meta is not None and s.meta.git_branch),
        None,
    )
    in_progress = sum(1 for item in items if item.status == STATUS_IN_PROGRESS)
    return ProjectData(
        project_path=project_path,
        project_name=project_name,
        sessions=tuple(ordered),
        total_tasks=len(items),
        completed_tasks=sum(1 for item in items if item.status == STATUS_COMPLETED),
        in_progress_tasks=in_progress,
        agents=tuple(sorted(owner for owner in owners if owner)),
        last_activity=ordered[0].last_modified,
        is_active=in_progress > 0,
        git_branch=branch,
    )


def group_projects(sessions: Sequence[SessionData]) -> List[ProjectData]:
    """One ProjectData per project path, most recently active first.

    Sessions with no index metadata share a single "(no project)" entry.
    """
    grouped: Dict[str, List[SessionData]] = {}
    names: Dict[str, str] = {}
    for session in sessions:
        path, name = _project_of(session)
        grouped.setdefault(path, []).append(session)
        names.setdefault(path, name)

    projects = [build_project(path, names[path], members) for path, members in grouped.items()]
    projects.sort(key=lambda p: p.last_activity, reverse=True)
    return projects


def find_project(projects: Sequence[ProjectData], project_path: str) -> Optional[ProjectData]:
    return next((p for p in projects if p.project_path == project_path), None)


def summarize_projects(projects: Sequence[ProjectData]) -> Dict[str, int]:
    return {
        "projects": len(projects),
        "agents": len({agent for p in projects for agent in p.agents}),
        "tasks": sum(p.total_tasks for p in projects),
        "completed": sum(p.completed_tasks for p in projects),
    }


def active_pairs(projects: Sequence[ProjectData], now: Optional[datetime] = None) -> List[Tuple[str, str, str, str]]:
    """(project, agent, item label, age) for every in-progress item."""
    pairs = []
    for project in projects:
        for session in project.sessions:
            for item in session.items:
                if item.status != STATUS_IN_PROGRESS:
                    continue
                agent = getattr(item, "owner", None) or MAIN_AGENT
                pairs.append((project.project_name, agent, item_label(item),
                              format_time_ago(session.last_modified, now)))
    return pairs


def agent_label(project: ProjectData) -> str:
    count = len(project.agents)
    if count == 0:
        return ""
    return f"{count} agent{'s' if count > 1 else ''}"


# === RENDERERS ===

def _panel(body: RenderableType, title: str) -> Panel:
    return Panel(body, title=title, title_align="left", box=box.ROUNDED, border_style=MUTED, padding=(0, 1))


def project_icon(project: ProjectData) -> Tuple[str, str]:
    if project.is_active:
        return "▶", "yellow"
    if project.all_done:
        return "✓", "green"
    return "○", MUTED


def render_overview_panel(projects: Sequence[ProjectData]) -> Panel:
    totals = summarize_projects(projects)
    line = Text()
    for count, label in ((totals["projects"], "projects"), (totals["agents"], "agents"), (totals["tasks"], "tasks")):
        line.append(str(count), style="bold white")
        line.append(f" {label}  ", style=MUTED)
    return _panel(Group(line, render_progress_bar(totals["completed"], totals["tasks"], width=20)), "OVERVIEW")


def render_active_now_panel(projects: Sequence[ProjectData], now: Optional[datetime] = None) -> Panel:
    pairs = active_pairs(projects, now)
    if not pairs:
        return _panel(Text("No active agents", style=MUTED), "ACTIVE NOW")
    rows = []
    for project_name, agent, label, age in pairs[:ACTIVE_NOW_ROWS]:
        row = Text()
        row.append("▶ ", style="yellow")
        row.append(f"{project_name}/{agent}", style=MUTED)
        row.append(f"  {label}", style="white")
        row.append(f"  {age}", style=MUTED)
        rows.append(row)
    return _panel(Group(*rows), "ACTIVE NOW")


def render_project_list(projects: Sequence[ProjectData], now: Optional[datetime] = None) -> Panel:
    if not projects:
        return _panel(Text("No active projects", style=MUTED), "PROJECTS")
    table = Table.grid(padding=(0, 1, 0, 0))
    table.add_column(no_wrap=True)
    table.add_column(no_wrap=True)
    table.add_column(no_wrap=True)
    table.add_column(justify="right", no_wrap=True)
    for project in projects:
        icon, color = project_icon(project)
        table.add_row(
            Text(icon, style=color),
            Text(project.project_name[:NAME_WIDTH].ljust(NAME_WIDTH), style="white"),
            render_progress_bar(project.completed_tasks, project.total_tasks, width=8),
            Text(format_time_ago(project.last_activity, now), style=MUTED),
        )
    return _panel(table, "PROJECTS")


def render_project_summary(project: ProjectData) -> Text:
    """Branch, agent count and progress on one line."""
    line = Text()
    if project.git_branch:
        line.append(f"⎇ {project.git_branch} ", style="magenta")
    agents = agent_label(project)
    if agents:
        line.append(f"{agents} ", style=MUTED)
    line.append_text(render_progress_bar(project.completed_tasks, project.total_tasks))
    return line


def render_project_items(
    project: ProjectData,
    now: Optional[datetime] = None,
    status_since: Optional[Mapping[Tuple[str, str], datetime]] = None,
    limit: Optional[int] = None,
) -> List[Text]:
    """Item rows across the project's sessions; in-progress rows show their dwell time."""
    rows = []
    for session in project.sessions:
        for item in session.items:
            dwell = ""
            if status_since and item.status == STATUS_IN_PROGRESS:
                dwell = format_dwell(status_since.get((session_key(session), item_key(item))), now)
            rows.append(render_item_row(item, dwell))
    if limit is not None and len(rows) > limit:
        hidden = len(rows) - limit
        rows = rows[:limit] + [Text(f"  ... +{hidden} more", style=MUTED)]
    return rows


def render_dashboard(projects: Sequence[ProjectData], now: Optional[datetime] = None) -> RenderableType:
    """Overview and active-now side by side, then the project list with a preview of the newest."""
    top = Table.grid(expand=True)
    top.add_column(ratio=1)
    top.add_column(ratio=1)
    top.add_row(render_overview_panel(projects), render_active_now_panel(projects, now))

    bottom = Table.grid(expand=True)
    bottom.add_column(ratio=1)
    bottom.add_column(ratio=1)
    if projects:
        current = projects[0]
        preview = _panel(
            Group(render_project_summary(current), Text(""),
                  *render_project_items(current, now, limit=PREVIEW_ITEMS)),
            current.project_name.upper(),
        )
    else:
        preview = _panel(Text("Select a project", style=MUTED), "DETAIL")
    bottom.add_row(render_project_list(projects, now), preview)
    return Group(top, bottom)


def render_project_detail(
    project: Optional[ProjectData],
    now: Optional[datetime] = None,
    status_since: Optional[Mapping[Tuple[str, str], datetime]] = None,
    side: Sequence[RenderableType] = (),
) -> RenderableType:
    """Every item of one project, with optional side panels (roadmap, usage)."""
    if project is None:
        return _panel(Text("Project not found (may have been removed)", style=MUTED), "PROJECT")
    tasks = _panel(
        Group(render_project_summary(project), Text(""),
              *render_project_items(project, now, status_since)),
        f"{project.project_name.upper()} · Tasks",
    )
    if not side:
        return tasks
    layout = Table.grid(expand=True)
    layout.add_column(ratio=3)
    layout.add_column(ratio=2)
    layout.add_row(tasks, Group(*side))
    return layout
