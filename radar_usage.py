"""Token usage and estimated cost per project, from session transcripts.

Claude Code appends every assistant message, with its `usage` block, to
~/.claude/projects/<encoded-path>/<session>.jsonl. These files grow large, so
usage is read on demand when a project is opened, never on every poll.

Cost model (per million tokens): input and output rates by model, and cache
rates derived from the input rate:
  cache write 5m = input x 1.25
  cache write 1h = input x 2.0
  cache read     = input x 0.1
"""

import json
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

import radar_scanner
from radar_board import MUTED
from radar_scanner import list_dir, log_error, read_json

MTOK = 1_000_000
CACHE_WRITE_5M_MULT = 1.25
CACHE_WRITE_1H_MULT = 2.0
CACHE_READ_MULT = 0.1


@dataclass(frozen=True)
class ModelPricing:
    input: float
    output: float


# Prefix match, most specific first
MODEL_PRICING = [
    ("claude-opus-4-6", ModelPricing(5, 25)),
    ("claude-opus-4-5", ModelPricing(5, 25)),
    ("claude-opus-4-1", ModelPricing(15, 75)),
    ("claude-opus-4", ModelPricing(15, 75)),
    ("claude-opus-3", ModelPricing(15, 75)),
    ("claude-sonnet-4-5", ModelPricing(3, 15)),
    ("claude-sonnet-4", ModelPricing(3, 15)),
    ("claude-sonnet-3", ModelPricing(3, 15)),
    ("claude-haiku-4-5", ModelPricing(1, 5)),
    ("claude-haiku-3-5", ModelPricing(0.80, 4)),
    ("claude-haiku-3", ModelPricing(0.25, 1.25)),
]

# Sonnet tier for anything unrecognised
FALLBACK_PRICING = ModelPricing(3, 15)


@dataclass
class TokenCounts:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_write_5m_tokens: int = 0
    cache_write_1h_tokens: int = 0
    cache_read_tokens: int = 0


@dataclass
class SessionUsage:
    session_id: str
    model: str
    message_count: int
    tokens: TokenCounts
    cost_usd: float


@dataclass
class ProjectUsage:
    sessions: List[SessionUsage] = field(default_factory=list)

    @property
    def total_input_tokens(self):
        return sum(s.tokens.input_tokens for s in self.sessions)

    @property
    def total_output_tokens(self):
        return sum(s.tokens.output_tokens for s in self.sessions)

    @property
    def total_cache_write_tokens(self):
        return sum(s.tokens.cache_write_5m_tokens + s.tokens.cache_write_1h_tokens for s in self.sessions)

    @property
    def total_cache_read_tokens(self):
        return sum(s.tokens.cache_read_tokens for s in self.sessions)

    @property
    def total_cost_usd(self):
        return sum(s.cost_usd for s in self.sessions)

    @property
    def total_messages(self):
        return sum(s.message_count for s in self.sessions)


# === PRICING ===

def resolve_model_pricing(model_id):
    if not model_id:
        return FALLBACK_PRICING
    for prefix, pricing in MODEL_PRICING:
        if model_id.startswith(prefix):
            return pricing
    return FALLBACK_PRICING


def calculate_cost_usd(tokens, pricing):
    return (
        tokens.input_tokens * pricing.input
        + tokens.output_tokens * pricing.output
        + tokens.cache_write_5m_tokens * pricing.input * CACHE_WRITE_5M_MULT
        + tokens.cache_write_1h_tokens * pricing.input * CACHE_WRITE_1H_MULT
        + tokens.cache_read_tokens * pricing.input * CACHE_READ_MULT
    ) / MTOK


# === TRANSCRIPT PARSING ===

def _count(mapping, key):
    value = mapping.get(key)
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def extract_usage(line):
    """(model, usage dict, cache_creation dict) for an assistant line, else None."""
    # Most lines are user/progress records; skip them before parsing
    if '"assistant"' not in line:
        return None
    try:
        record = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(record, dict) or record.get("type") != "assistant":
        return None
    message = record.get("message")
    if not isinstance(message, dict) or not isinstance(message.get("usage"), dict):
        return None
    usage = message["usage"]
    cache_creation = usage.get("cache_creation")
    model = message.get("model")
    return (
        model if isinstance(model, str) else "",
        usage,
        cache_creation if isinstance(cache_creation, dict) else {},
    )


def parse_session_usage(jsonl_path, session_id):
    """Token totals and cost for one transcript, or None with no assistant messages."""
    tokens = TokenCounts()
    models = Counter()
    message_count = 0

    try:
        with open(jsonl_path, encoding="utf-8") as f:
            for line in f:
                extracted = extract_usage(line)
                if extracted is None:
                    continue
                model, usage, cache_creation = extracted
                message_count += 1
                tokens.input_tokens += _count(usage, "input_tokens")
                tokens.output_tokens += _count(usage, "output_tokens")
                tokens.cache_read_tokens += _count(usage, "cache_read_input_tokens")

                write_5m = _count(cache_creation, "ephemeral_5m_input_tokens")
                write_1h = _count(cache_creation, "ephemeral_1h_input_tokens")
                if write_5m or write_1h:
                    tokens.cache_write_5m_tokens += write_5m
                    tokens.cache_write_1h_tokens += write_1h
                else:
                    # Older transcripts have no 5m/1h breakdown
                    tokens.cache_write_1h_tokens += _count(usage, "cache_creation_input_tokens")

                if model:
                    models[model] += 1
    except UnicodeDecodeError as e:
        log_error("usage", jsonl_path, f"unreadable transcript: {e}")
        return None
    except OSError:
        return None

    if message_count == 0:
        return None

    # Most frequent model; the first seen wins a tie
    primary = models.most_common(1)[0][0] if models else ""
    return SessionUsage(
        session_id=session_id,
        model=primary,
        message_count=message_count,
        tokens=tokens,
        cost_usd=calculate_cost_usd(tokens, resolve_model_pricing(primary)),
    )


def get_project_usage(claude_project_dir):
    """Usage summed over every transcript in one ~/.claude/projects/<dir>."""
    usage = ProjectUsage()
    for entry in list_dir(Path(claude_project_dir)):
        if entry.suffix != ".jsonl":
            continue
        stats = parse_session_usage(entry, entry.stem)
        if stats is not None:
            usage.sessions.append(stats)
    return usage if usage.sessions else None


def encode_project_path(project_path):
    """Directory name Claude Code uses for a project: non-alphanumerics become '-'."""
    return re.sub(r"[^A-Za-z0-9]", "-", project_path)


def find_project_dir(project_path, projects_dir=None):
    """The ~/.claude/projects/<dir> holding transcripts for project_path, or None."""
    projects_dir = Path(projects_dir) if projects_dir else radar_scanner.PROJECTS_DIR
    candidate = projects_dir / encode_project_path(project_path)
    if candidate.is_dir():
        return candidate

    # Encoding rules have changed between releases; fall back to the indexes
    for project_dir in list_dir(projects_dir):
        index_file = project_dir / "sessions-index.json"
        if not index_file.is_file():
            continue
        data = read_json(index_file, "session_index")
        entries = data.get("entries") if isinstance(data, dict) else None
        if isinstance(entries, list) and any(
            isinstance(entry, dict) and entry.get("projectPath") == project_path
            for entry in entries
        ):
            return project_dir
    return None


def load_project_usage(project_path, projects_dir=None):
    project_dir = find_project_dir(project_path, projects_dir)
    if project_dir is None:
        return None
    return get_project_usage(project_dir)


# === RENDERING ===

def format_tokens(count):
    """Compact token count: 950, 12.3K, 4.5M."""
    if count >= MTOK:
        return f"{count / MTOK:.1f}M"
    if count >= 1000:
        return f"{count / 1000:.1f}K"
    return str(count)


def render_usage_panel(usage):
    if usage is None:
        return Panel(Text("No usage recorded", style=MUTED), title="USAGE",
                     box=box.ROUNDED, border_style=MUTED)

    grid = Table.grid(padding=(0, 2))
    grid.add_column(style=MUTED)
    grid.add_column(justify="right", style="white")
    grid.add_row("Cost", Text(f"${usage.total_cost_usd:.2f}", style="bold green"))
    grid.add_row("Sessions", str(len(usage.sessions)))
    grid.add_row("Messages", str(usage.total_messages))
    grid.add_row("Input", format_tokens(usage.total_input_tokens))
    grid.add_row("Output", format_tokens(usage.total_output_tokens))
    grid.add_row("Cache write", format_tokens(usage.total_cache_write_tokens))
    grid.add_row("Cache read", format_tokens(usage.total_cache_read_tokens))
    return Panel(grid, title="USAGE", box=box.ROUNDED, border_style=MUTED)
