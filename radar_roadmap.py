"""Roadmap progress: markdown checkboxes grouped by heading.

A project's PRD.md, TODO.md or docs/*.md often tracks milestones as
`- [x] done` / `- [ ] pending` lists. Each file with at least one checkbox
becomes a RoadmapData; sections without checkboxes are dropped.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rich import box
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from radar_board import MUTED

HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
# Indented checkboxes count too; any of the - * + list markers
CHECKBOX_RE = re.compile(r"^\s*[-*+]\s+\[([ xX])\]\s+(.+)$")

UNTITLED = "(untitled)"
MAX_DEPTH = 3
SKIP_DIRS = {"node_modules", ".git", "dist", "build", "coverage", "vendor", ".next"}
SECTION_TITLE_CHARS = 20
ITEM_TEXT_CHARS = 22
EMPTY_MESSAGE = "No roadmap · add [ ] to .md"


@dataclass(frozen=True)
class RoadmapItem:
    text: str
    done: bool


@dataclass(frozen=True)
class RoadmapSection:
    title: str
    level: int
    items: Tuple[RoadmapItem, ...]

    @property
    def done(self) -> int:
        return sum(1 for item in self.items if item.done)

    @property
    def total(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class RoadmapData:
    source: str
    sections: Tuple[RoadmapSection, ...]
    last_modified: datetime

    @property
    def total_done(self) -> int:
        return sum(section.done for section in self.sections)

    @property
    def total_items(self) -> int:
        return sum(section.total for section in self.sections)


# === PARSER ===

def parse_checkboxes(content: str) -> List[RoadmapSection]:
    """Checkbox items grouped under the nearest heading above them.

    Checkboxes before any heading land in an "(untitled)" level-1 section.
    """
    sections = []
    title, level, items = "", 0, []

    def flush():
        if items:
            sections.append(RoadmapSection(title or UNTITLED, level or 1, tuple(items)))

    for line in content.splitlines():
        heading = HEADING_RE.match(line)
        if heading:
            flush()
            title, level, items = heading.group(2).strip(), len(heading.group(1)), []
            continue
        checkbox = CHECKBOX_RE.match(line)
        if checkbox:
            items.append(RoadmapItem(checkbox.group(2).strip(), checkbox.group(1).lower() == "x"))

    flush()
    return sections


def parse_roadmap_file(path, source: str) -> Optional[RoadmapData]:
    """RoadmapData for one file, or None if unreadable or without checkboxes."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
        modified = datetime.fromtimestamp(path.stat().st_mtime)
    except (OSError, UnicodeDecodeError):
        return None
    sections = parse_checkboxes(content)
    if not sections:
        return None
    return RoadmapData(source=source, sections=tuple(sections), last_modified=modified)


# === DISCOVERY ===

def discover_markdown_files(root, max_depth: int = MAX_DEPTH) -> List[str]:
    """Relative paths of *.md files under root, build and vendor dirs skipped."""
    root = Path(root)
    found = []

    def walk(directory, depth):
        try:
            entries = sorted(directory.iterdir())
        except OSError:
            return
        for entry in entries:
            if entry.is_dir():
                if entry.name not in SKIP_DIRS and depth < max_depth:
                    walk(entry, depth + 1)
            elif entry.suffix.lower() == ".md":
                found.append(entry.relative_to(root).as_posix())

    walk(root, 0)
    return found


def load_project_roadmaps(project_path) -> List[RoadmapData]:
    """Every markdown file in the project that carries checkboxes."""
    root = Path(project_path)
    roadmaps = []
    for relative in discover_markdown_files(root):
        roadmap = parse_roadmap_file(root / relative, relative)
        if roadmap is not None:
            roadmaps.append(roadmap)
    return roadmaps


def primary_roadmap(roadmaps: Sequence[RoadmapData]) -> Optional[RoadmapData]:
    """The roadmap with the most checkboxes; first found wins ties."""
    best = None
    for roadmap in roadmaps:
        if best is None or roadmap.total_items > best.total_items:
            best = roadmap
    return best


# === RENDERING ===

def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[:width - 1] + "…"


def _count_style(done: int, total: int, pending_style: str) -> str:
    return "green" if done == total else pending_style


def render_roadmap_panel(
    roadmaps: Sequence[RoadmapData],
    selected: int = 0,
    expanded: Optional[int] = None,
) -> Panel:
    """Section-level progress for one roadmap file; `expanded` lists one section's items."""
    if not roadmaps:
        return Panel(Text(EMPTY_MESSAGE, style=MUTED), title="ROADMAP",
                     box=box.ROUNDED, border_style=MUTED)

    roadmap = roadmaps[min(max(selected, 0), len(roadmaps) - 1)]
    source = roadmap.source
    if len(roadmaps) > 1:
        source = f"{source} +{len(roadmaps) - 1}"

    grid = Table.grid(expand=True)
    grid.add_column(no_wrap=True)
    grid.add_column(justify="right", no_wrap=True)
    grid.add_row(
        Text(source, style="magenta"),
        Text(f"{roadmap.total_done}/{roadmap.total_items}",
             style=_count_style(roadmap.total_done, roadmap.total_items, "white")),
    )

    for idx, section in enumerate(roadmap.sections):
        is_expanded = idx == expanded
        left = Text(f"{'▾' if is_expanded else '▸'} ", style=MUTED)
        left.append(_truncate(section.title, SECTION_TITLE_CHARS), style="white")
        grid.add_row(left, Text(f"{section.done}/{section.total}",
                                style=_count_style(section.done, section.total, MUTED)))
        if is_expanded:
            for item in section.items:
                style = "green" if item.done else MUTED
                grid.add_row(Text(f"  {'✓' if item.done else '○'} {_truncate(item.text, ITEM_TEXT_CHARS)}",
                                  style=style), Text(""))

    return Panel(Group(grid), title="ROADMAP", box=box.ROUNDED, border_style=MUTED)
