#!/usr/bin/env python3
"""Claude Radar — live board of Claude Code todos and tasks

Polls ~/.claude/todos/ and ~/.claude/tasks/ and draws one card per session:
project, branch, progress, age, and every item with its status.

Usage:
  python3 radar.py                         # Live board, refresh every poll_interval
  python3 radar.py --once                  # Print the board once and exit
  python3 radar.py --interval 5            # Poll every 5s
  python3 radar.py --projects              # Dashboard: sessions grouped by project
  python3 radar.py --project PATH          # One project: items, roadmap, token usage
  python3 radar.py --toggle-hidden PATH    # Hide/unhide a project's sessions
  python3 radar.py --list-hidden           # Show hidden projects

Config: ~/.claude-radar/config.yaml (see radar_config.py)
"""

import argparse
import time
from datetime import datetime
from pathlib import Path

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

import radar_config
from radar_board import MUTED, item_key, render_board, session_key, summarize_sessions
from radar_projects import find_project, group_projects, render_dashboard, render_project_detail
from radar_roadmap import load_project_roadmaps, render_roadmap_panel
from radar_scanner import log_error, scan_all, snapshot_key
from radar_usage import load_project_usage, render_usage_panel

console = Console()

MAX_CONSECUTIVE_ERRORS = 5

VIEW_BOARD = "board"
VIEW_PROJECTS = "projects"
VIEW_PROJECT = "project"
VIEW_LABELS = {VIEW_BOARD: "BOARD", VIEW_PROJECTS: "DASHBOARD", VIEW_PROJECT: "DETAIL"}


class RadarState:
    """What the live loop carries between ticks."""

    def __init__(self):
        self.sessions = []
        self.fingerprint = None
        self.last_update = None
        # (session key, item key) -> (status, when that status was first seen)
        self.status_seen = {}
        self.roadmaps = []
        self.usage = None

    def refresh(self, sessions, now=None):
        """Store a fresh scan. Returns True if the data actually changed."""
        now = now or datetime.now()
        self.sessions = sessions
        self.track_status(sessions, now)
        key = snapshot_key(sessions)
        if key == self.fingerprint:
            return False
        self.fingerprint = key
        self.last_update = now
        return True

    def track_status(self, sessions, now):
        """Remember when each item took on its current status.

        A status seen for the first time dates from the session's file mtime;
        a change observed between polls dates from `now`.
        """
        seen = {}
        for session in sessions:
            for item in session.items:
                key = (session_key(session), item_key(item))
                previous = self.status_seen.get(key)
                if previous is None:
                    seen[key] = (item.status, session.last_modified)
                elif previous[0] == item.status:
                    seen[key] = previous
                else:
                    seen[key] = (item.status, now)
        self.status_seen = seen

    @property
    def status_since(self):
        return {key: since for key, (_, since) in self.status_seen.items()}


def render_header(sessions, last_update, interval, view=VIEW_BOARD):
    totals = summarize_sessions(sessions)
    text = Text()
    text.append("  CLAUDE RADAR  ", style="bold white on blue")
    if view != VIEW_BOARD:
        text.append(f" {VIEW_LABELS[view]} ", style="bold black on cyan")
    text.append(
        f"  {totals['sessions']} sessions · {totals['completed']}/{totals['items']} done"
        f" · {totals['in_progress']} in progress",
        style="bold",
    )
    if last_update is not None:
        text.append(f"   Changed {last_update.strftime('%H:%M:%S')}", style=MUTED)
    text.append(f"   Polling every {interval:g}s", style=f"italic {MUTED}")
    return text


def render_body(state, settings, now=None):
    view = settings["view"]
    if view == VIEW_PROJECTS:
        return render_dashboard(group_projects(state.sessions), now)
    if view == VIEW_PROJECT:
        project = find_project(group_projects(state.sessions), settings["project"])
        side = [render_roadmap_panel(state.roadmaps), render_usage_panel(state.usage)]
        return render_project_detail(project, now, state.status_since, side)
    return render_board(
        state.sessions,
        now=now,
        default_branch=settings["default_branch"],
        watch_labels=settings["watch_labels"],
    )


def generate_view(state, settings, now=None):
    """Header line plus the body for the selected view."""
    return Group(
        render_header(state.sessions, state.last_update, settings["interval"], settings["view"]),
        Text(""),
        render_body(state, settings, now),
    )


def load_project_extras(state, settings, include_usage=False):
    """Roadmaps (and, once, token usage) for the project detail view."""
    if settings["view"] != VIEW_PROJECT:
        return
    state.roadmaps = load_project_roadmaps(settings["project"])
    if include_usage:
        state.usage = load_project_usage(settings["project"], settings["dirs"]["projects"])


def build_settings(args, config):
    """Merge config file values with command-line overrides."""
    dirs = radar_config.watch_dirs(config)
    for key in ("todos", "tasks", "projects"):
        override = getattr(args, f"{key}_dir", None)
        if override:
            dirs[key] = Path(override).expanduser()

    interval = args.interval if args.interval and args.interval > 0 else radar_config.poll_interval(config)

    view = VIEW_BOARD
    if args.project:
        view = VIEW_PROJECT
    elif args.projects:
        view = VIEW_PROJECTS

    return {
        "dirs": dirs,
        "interval": interval,
        "default_branch": radar_config.default_branch(config),
        "hidden": radar_config.get_hidden_projects(config),
        "watch_labels": (
            radar_config.display_path(dirs["todos"]),
            radar_config.display_path(dirs["tasks"]),
        ),
        "view": view,
        "project": str(Path(args.project).expanduser()) if args.project else None,
    }


def scan(settings):
    dirs = settings["dirs"]
    return scan_all(
        todos_dir=dirs["todos"],
        tasks_dir=dirs["tasks"],
        projects_dir=dirs["projects"],
        hidden_projects=settings["hidden"],
    )


def run_live(settings):
    """Redraw every interval. Age labels tick even when the data doesn't."""
    state = RadarState()
    consecutive_errors = 0
    usage_loaded = False

    try:
        with Live(Text(""), console=console, screen=True, auto_refresh=False) as live:
            while True:
                try:
                    if state.refresh(scan(settings)):
                        load_project_extras(state, settings, include_usage=not usage_loaded)
                        usage_loaded = True
                    live.update(generate_view(state, settings), refresh=True)
                    consecutive_errors = 0
                except KeyboardInterrupt:
                    raise
                except Exception as e:
                    consecutive_errors += 1
                    log_error("main_loop", "render", f"render crash #{consecutive_errors}: {e}")
                    if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                        console.print(f"\n[red]Radar crashed {MAX_CONSECUTIVE_ERRORS}x in a row: {e}[/red]\n")
                        return 1
                    error_text = Text(
                        f"\n  Render error: {e}\n  Retrying... ({consecutive_errors}/{MAX_CONSECUTIVE_ERRORS})",
                        style="red",
                    )
                    live.update(Panel(error_text, title="[red]ERROR[/red]", border_style="red"), refresh=True)
                time.sleep(settings["interval"])
    except KeyboardInterrupt:
        console.print("\n[yellow]Radar stopped.[/yellow]\n")
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Live terminal board of Claude Code todos and tasks"
    )
    parser.add_argument("--once", action="store_true", help="Print the board once and exit")
    parser.add_argument("--interval", type=float, help="Seconds between polls (default: config or 1)")
    parser.add_argument("--todos-dir", help="Todo directory (default: ~/.claude/todos)")
    parser.add_argument("--tasks-dir", help="Task directory (default: ~/.claude/tasks)")
    parser.add_argument("--projects-dir", help="Projects directory (default: ~/.claude/projects)")
    parser.add_argument("--projects", action="store_true", help="Show the project dashboard instead of session cards")
    parser.add_argument("--project", metavar="PATH", help="Show one project: items, roadmap and token usage")
    parser.add_argument("--toggle-hidden", metavar="PATH", help="Hide or unhide a project path")
    parser.add_argument("--list-hidden", action="store_true", help="List hidden project paths")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    if args.toggle_hidden:
        try:
            hidden = radar_config.toggle_hidden_project(args.toggle_hidden)
        except OSError as e:
            console.print(f"[red]Could not write {radar_config.CONFIG_PATH}: {e}[/red]")
            return 1
        state = "hidden" if hidden else "visible"
        console.print(f"[green]{args.toggle_hidden}[/green] is now {state}")
        return 0

    config = radar_config.load_config()

    if args.list_hidden:
        hidden = sorted(radar_config.get_hidden_projects(config))
        if not hidden:
            console.print("[dim]No hidden projects.[/dim]")
        for path in hidden:
            console.print(path)
        return 0

    settings = build_settings(args, config)

    if args.once:
        state = RadarState()
        state.refresh(scan(settings))
        load_project_extras(state, settings, include_usage=True)
        console.print(generate_view(state, settings))
        return 0

    return run_live(settings)


if __name__ == "__main__":
    raise SystemExit(main())
