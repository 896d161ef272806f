"""Radar configuration: ~/.claude-radar/config.yaml

Example:

    poll_interval: 1.0
    default_branch: main
    watch:
      todos: ~/.claude/todos
      tasks: ~/.claude/tasks
      projects: ~/.claude/projects
    hidden_projects:
      - /Users/me/Development/scratch

Every key is optional. Unknown keys are preserved when the file is rewritten.
"""

import os
import tempfile
from pathlib import Path

import yaml

CLAUDE_DIR = Path.home() / ".claude"
CONFIG_DIR = Path.home() / ".claude-radar"
CONFIG_PATH = CONFIG_DIR / "config.yaml"

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_BRANCH = "main"


def load_config(path=None):
    """Read the config file. Missing, unreadable or non-mapping YAML -> {}."""
    path = Path(path) if path else CONFIG_PATH
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(config, path=None):
    """Write config atomically: temp file + rename."""
    path = Path(path) if path else CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".yaml")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
        os.replace(tmp_path, path)
    except OSError:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def watch_dirs(config):
    """Resolve todos/tasks/projects directories, applying `watch:` overrides."""
    watch = config.get("watch")
    if not isinstance(watch, dict):
        watch = {}

    def _resolve(key, default):
        value = watch.get(key)
        if isinstance(value, str) and value:
            return Path(value).expanduser()
        return default

    return {
        "todos": _resolve("todos", CLAUDE_DIR / "todos"),
        "tasks": _resolve("tasks", CLAUDE_DIR / "tasks"),
        "projects": _resolve("projects", CLAUDE_DIR / "projects"),
    }


def poll_interval(config):
    value = config.get("poll_interval", DEFAULT_POLL_INTERVAL)
    try:
        value = float(value)
    except (TypeError, ValueError):
        return DEFAULT_POLL_INTERVAL
    return value if value > 0 else DEFAULT_POLL_INTERVAL


def default_branch(config):
    value = config.get("default_branch")
    return value if isinstance(value, str) and value else DEFAULT_BRANCH


def get_hidden_projects(config=None):
    """Set of project paths whose sessions are left off the board."""
    if config is None:
        config = load_config()
    hidden = config.get("hidden_projects")
    if not isinstance(hidden, list):
        return set()
    return {str(p) for p in hidden}


def toggle_hidden_project(project_path, path=None):
    """Hide or unhide one project. Returns True if it is now hidden."""
    config = load_config(path)
    hidden = config.get("hidden_projects")
    if not isinstance(hidden, list):
        hidden = []

    if project_path in hidden:
        hidden.remove(project_path)
        now_hidden = False
    else:
        hidden.append(project_path)
        now_hidden = True

    config["hidden_projects"] = hidden
    save_config(config, path)
    return now_hidden


def display_path(directory):
    """'~/.claude/todos/' style label for a watched directory."""
    directory = Path(directory).expanduser()
    home = Path.home()
    try:
        relative = directory.relative_to(home)
    except ValueError:
        label = str(directory)
    else:
        label = "~" if relative == Path(".") else "~/" + str(relative)
    return label.rstrip("/") + "/"
