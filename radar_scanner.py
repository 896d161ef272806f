"""Session scanner: reads Claude Code todo/task files into SessionData.

Sources:
- ~/.claude/todos/{session}-agent-{agent}.json   one JSON list of todos per file
- ~/.claude/tasks/{session}/{id}.json            one JSON object per task
- ~/.claude/projects/*/sessions-index.json       project path, summary, first prompt, branch

Bad files never stop a scan. They are skipped and recorded in the error log
(~/.claude-radar/errors.json) so a quiet board can be told apart from a broken one.
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path

from radar_config import CLAUDE_DIR, CONFIG_DIR
from radar_models import SOURCE_TASKS, SOURCE_TODOS, SessionData, SessionMeta, item_from_dict

TODOS_DIR = CLAUDE_DIR / "todos"
TASKS_DIR = CLAUDE_DIR / "tasks"
PROJECTS_DIR = CLAUDE_DIR / "projects"
ERROR_LOG = CONFIG_DIR / "errors.json"

MAX_ERRORS = 100
FIRST_PROMPT_CHARS = 80
MAX_FILE_BYTES = 5_000_000


# === ERROR LOG ===

def log_error(source, path, reason):
    """Append one record to the error log, keeping the last MAX_ERRORS."""
    errors = []
    if ERROR_LOG.exists():
        try:
            errors = json.loads(ERROR_LOG.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError):
            errors = []
    if not isinstance(errors, list):
        errors = []

    errors.append({
        "timestamp": datetime.now().isoformat(),
        "source": source,
        "path": str(path),
        "reason": reason,
    })
    errors = errors[-MAX_ERRORS:]

    tmp_path = None
    try:
        ERROR_LOG.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=ERROR_LOG.parent, suffix=".json")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(errors, f, indent=2)
        os.replace(tmp_path, ERROR_LOG)
    except OSError:
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass


def read_errors():
    if not ERROR_LOG.exists():
        return []
    try:
        errors = json.loads(ERROR_LOG.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError):
        return []
    return errors if isinstance(errors, list) else []


# === FILE HELPERS ===

def read_json(path, source):
    """Parsed JSON or None. Oversized and corrupt files are logged."""
    try:
        if path.stat().st_size > MAX_FILE_BYTES:
            log_error(source, path, f"file larger than {MAX_FILE_BYTES} bytes")
            return None
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        log_error(source, path, f"unreadable JSON: {e}")
        return None
    except OSError:
        # Deleted between listdir and read; the next poll will see it gone
        return None


def mod_time(path):
    try:
        return datetime.fromtimestamp(path.stat().st_mtime)
    except OSError:
        return datetime.fromtimestamp(0)


def list_dir(directory):
    try:
        return sorted(directory.iterdir())
    except OSError:
        return []


# === SESSION INDEX ===

def _opt_text(value):
    return value if isinstance(value, str) and value else None


def build_session_index(projects_dir=None):
    """Map session id -> SessionMeta from ~/.claude/projects.

    Entries in sessions-index.json carry the richest metadata. Transcript
    files ({session}.jsonl) missing from the index still get the project
    path learned from their siblings in the same directory. Entries whose
    sessionId or projectPath is not a non-empty string are logged and skipped.
    """
    projects_dir = Path(projects_dir) if projects_dir else PROJECTS_DIR
    index = {}

    for project_dir in list_dir(projects_dir):
        if not project_dir.is_dir():
            continue
        known_path = None

        data = None
        index_file = project_dir / "sessions-index.json"
        if index_file.exists():
            data = read_json(index_file, "session_index")
        entries = data.get("entries") if isinstance(data, dict) else None

        if isinstance(entries, list):
            for entry in entries:
                if not isinstance(entry, dict) or not entry.get("sessionId"):
                    continue
                session_id = entry["sessionId"]
                if not isinstance(session_id, str):
                    log_error("session_index", index_file, f"sessionId is not a string: {session_id!r}")
                    continue
                entry_path = entry.get("projectPath")
                if entry_path is not None and not isinstance(entry_path, str):
                    log_error("session_index", index_file,
                              f"projectPath for {session_id} is not a string: {entry_path!r}")
                    continue
                if entry_path:
                    known_path = entry_path
                project_path = entry_path or known_path or project_dir.name
                first_prompt = _opt_text(entry.get("firstPrompt"))
                index[session_id] = SessionMeta(
                    project_path=project_path,
                    project_name=Path(project_path).name,
                    summary=_opt_text(entry.get("summary")),
                    first_prompt=first_prompt[:FIRST_PROMPT_CHARS] if first_prompt else None,
                    git_branch=_opt_text(entry.get("gitBranch")),
                )

        if not known_path:
            continue

        for transcript in list_dir(project_dir):
            if transcript.suffix != ".jsonl":
                continue
            session_id = transcript.stem
            if session_id in index:
                continue
            index[session_id] = SessionMeta(
                project_path=known_path,
                project_name=Path(known_path).name,
            )

    return index


# === SCANNERS ===

def _newest_first(sessions):
    return sorted(sessions, key=lambda s: s.last_modified, reverse=True)


def scan_todos(todos_dir=None, session_index=None):
    """One session per non-empty todo file."""
    todos_dir = Path(todos_dir) if todos_dir else TODOS_DIR
    session_index = session_index or {}
    sessions = []

    for path in list_dir(todos_dir):
        if path.suffix != ".json":
            continue
        raw_items = read_json(path, SOURCE_TODOS)
        if not isinstance(raw_items, list) or not raw_items:
            continue
        items = tuple(item_from_dict(raw) for raw in raw_items if isinstance(raw, dict))
        if not items:
            continue
        session_id = path.stem.split("-agent-")[0]
        sessions.append(SessionData(
            id=session_id,
            source=SOURCE_TODOS,
            last_modified=mod_time(path),
            items=items,
            meta=session_index.get(session_id),
        ))

    return _newest_first(sessions)


def _task_sort_key(item):
    try:
        return (0, float(item.id), "")
    except ValueError:
        return (1, 0.0, item.id)


def scan_tasks(tasks_dir=None, session_index=None):
    """One session per task directory that holds at least one valid task file."""
    tasks_dir = Path(tasks_dir) if tasks_dir else TASKS_DIR
    session_index = session_index or {}
    sessions = []

    for session_dir in list_dir(tasks_dir):
        if not session_dir.is_dir():
            continue
        items = []
        latest = datetime.fromtimestamp(0)

        for path in list_dir(session_dir):
            if path.suffix != ".json":
                continue
            raw = read_json(path, SOURCE_TASKS)
            if not isinstance(raw, dict) or not raw.get("id"):
                continue
            if "subject" not in raw:
                raw = dict(raw, subject="")
            items.append(item_from_dict(raw))
            modified = mod_time(path)
            if modified > latest:
                latest = modified

        if not items:
            continue
        items.sort(key=_task_sort_key)
        sessions.append(SessionData(
            id=session_dir.name,
            source=SOURCE_TASKS,
            last_modified=latest,
            items=tuple(items),
            meta=session_index.get(session_dir.name),
        ))

    return _newest_first(sessions)


def scan_all(todos_dir=None, tasks_dir=None, projects_dir=None, hidden_projects=None):
    """Every session from both sources, newest first, hidden projects removed."""
    session_index = build_session_index(projects_dir)
    sessions = scan_todos(todos_dir, session_index) + scan_tasks(tasks_dir, session_index)
    if hidden_projects:
        sessions = [
            s for s in sessions
            if s.meta is None or s.meta.project_path not in hidden_projects
        ]
    return _newest_first(sessions)


def snapshot_key(sessions):
    """Fingerprint of what the board shows per item: identity and status."""
    parts = []
    for session in sessions:
        items = ",".join(
            f"{item.id}:{item.status}" if item.kind == "task" else f"{item.content}:{item.status}"
            for item in session.items
        )
        parts.append(f"{session.source}-{session.id}={items}")
    return "|".join(parts)
