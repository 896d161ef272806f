"""Shared fixtures for the radar tests.

radar_config and radar_scanner resolve their paths from Path.home() at import
time. Patching Path.home() after import does NOT move those constants, so the
autouse fixture below redirects the module attributes directly.
"""

import io
import sys
from datetime import datetime
from pathlib import Path

import pytest
from rich.console import Console

sys.path.insert(0, str(Path(__file__).parent.parent))
import radar_config
import radar_scanner


NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture(autouse=True)
def isolate_home(tmp_path, monkeypatch):
    """Point every home-relative path at a temp dir."""
    fake_home = tmp_path / "fakehome"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", staticmethod(lambda: fake_home))

    claude_dir = fake_home / ".claude"
    config_dir = fake_home / ".claude-radar"
    monkeypatch.setattr(radar_config, "CLAUDE_DIR", claude_dir)
    monkeypatch.setattr(radar_config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(radar_config, "CONFIG_PATH", config_dir / "config.yaml")
    monkeypatch.setattr(radar_scanner, "TODOS_DIR", claude_dir / "todos")
    monkeypatch.setattr(radar_scanner, "TASKS_DIR", claude_dir / "tasks")
    monkeypatch.setattr(radar_scanner, "PROJECTS_DIR", claude_dir / "projects")
    monkeypatch.setattr(radar_scanner, "ERROR_LOG", config_dir / "errors.json")

    return fake_home


def render_plain(renderable, width=100):
    """Print a renderable without colour and return what landed on screen."""
    console = Console(file=io.StringIO(), width=width, color_system=None,
                      force_terminal=False, legacy_windows=False)
    console.print(renderable)
    return console.file.getvalue()
