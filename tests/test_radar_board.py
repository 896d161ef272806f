"""Tests for radar_board.py — formatters, item rows, session cards, board.

Run with: python3 -m pytest tests/test_radar_board.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

import radar_board as b
from radar_models import SessionData, SessionMeta, TaskItem, TodoItem
from conftest import NOW, render_plain


def make_session(session_id="abcdef1234567890", source="todos", items=None, meta=None, age=30):
    if items is None:
        items = (
            TodoItem(content="Write parser", status="completed"),
            TodoItem(content="Wire up board", status="in_progress"),
            TodoItem(content="Ship it", status="pending"),
        )
    return SessionData(
        id=session_id,
        source=source,
        last_modified=NOW - timedelta(seconds=age),
        items=tuple(items),
        meta=meta,
    )


def make_meta(**overrides):
    fields = {
        "project_path": "/work/alpha",
        "project_name": "alpha",
        "summary": None,
        "first_prompt": None,
        "git_branch": None,
    }
    fields.update(overrides)
    return SessionMeta(**fields)


# ---------------------------------------------------------------------------
# 1. FORMATTERS
# ---------------------------------------------------------------------------

class TestStatusFormatter:
    """Status -> glyph/colour is total: unknown values fall back, never raise."""

    @pytest.mark.parametrize("status,icon,color", [
        ("completed", "✓", "green"),
        ("in_progress", "▶", "yellow"),
        ("pending", "○", b.MUTED),
    ])
    def test_known_statuses(self, status, icon, color):
        assert b.status_icon(status) == icon
        assert b.status_color(status) == color

    @pytest.mark.parametrize("status", ["blocked", "", "COMPLETED", "in-progress", "deleted"])
    def test_unknown_status_falls_back(self, status):
        """WHY: Claude Code may add statuses; the board must keep drawing."""
        assert b.status_icon(status) == "?"
        assert b.status_color(status) == "white"


class TestProgressBar:

    def test_zero_total_is_all_empty(self):
        """total=0 must not divide by zero."""
        bar = b.render_progress_bar(0, 0)
        assert bar.plain == "░" * 12 + " 0/0"

    def test_half_done(self):
        bar = b.render_progress_bar(6, 12)
        assert bar.plain == "█" * 6 + "░" * 6 + " 6/12"

    def test_all_done(self):
        bar = b.render_progress_bar(12, 12)
        assert bar.plain == "█" * 12 + " 12/12"

    def test_rounds_half_up(self):
        """1/24 of 12 cells is exactly 0.5; rounds up, not to even."""
        assert b.progress_cells(1, 24) == 1
        assert b.progress_cells(5, 8) == 8
        assert b.progress_cells(1, 3) == 4

    def test_bar_is_always_twelve_cells(self):
        for total in range(1, 30):
            for done in range(total + 1):
                bar = b.render_progress_bar(done, total).plain
                cells = bar.split(" ")[0]
                assert len(cells) == 12, f"{done}/{total} -> {bar!r}"

    def test_filled_cells_are_green(self):
        bar = b.render_progress_bar(3, 4)
        assert bar.spans[0].style == "green"
        assert bar.spans[0].end - bar.spans[0].start == 9


class TestTimeAgo:

    @pytest.mark.parametrize("seconds,expected", [
        (0, "0s ago"),
        (45, "45s ago"),
        (59, "59s ago"),
        (60, "1m ago"),
        (90, "1m ago"),
        (3599, "59m ago"),
        (3600, "1h ago"),
        (3661, "1h ago"),
        (86399, "23h ago"),
        (90000, "1d ago"),
        (86400 * 45, "45d ago"),
    ])
    def test_boundaries(self, seconds, expected):
        assert b.format_time_ago(NOW - timedelta(seconds=seconds), now=NOW) == expected

    def test_future_timestamp_reads_zero(self):
        """WHY: mtimes from a network share can be slightly ahead of local time."""
        assert b.format_time_ago(NOW + timedelta(seconds=30), now=NOW) == "0s ago"

    def test_timezone_aware_default_now(self):
        when = datetime.now(timezone.utc) - timedelta(minutes=5)
        assert b.format_time_ago(when) == "5m ago"


class TestDwell:

    @pytest.mark.parametrize("seconds,expected", [
        (0, "<1m"),
        (59, "<1m"),
        (60, "1m"),
        (3599, "59m"),
        (3600, "1h"),
        (86399, "23h"),
        (86400 * 3, "3d"),
    ])
    def test_boundaries(self, seconds, expected):
        assert b.format_dwell(NOW - timedelta(seconds=seconds), now=NOW) == expected

    def test_unknown_start(self):
        assert b.format_dwell(None, now=NOW) == ""

    def test_future_start(self):
        assert b.format_dwell(NOW + timedelta(minutes=1), now=NOW) == ""


# ---------------------------------------------------------------------------
# 2. ITEM ROWS
# ---------------------------------------------------------------------------

class TestItemRow:

    def test_task_label(self):
        item = TaskItem(id="7", subject="Refactor scanner", status="pending")
        assert b.item_label(item) == "#7 Refactor scanner"
        assert b.render_item_row(item).plain == " ○ #7 Refactor scanner"

    def test_dwell_appended_muted(self):
        row = b.render_item_row(TaskItem(id="4", subject="Wire", status="in_progress", owner="ana"), "12m")
        assert row.plain == " ▶ #4 Wire (ana) 12m"
        assert row.spans[-1].style == b.MUTED

    def test_item_key_ignores_status(self):
        assert b.item_key(TaskItem(id="4", subject="a", status="pending")) == \
            b.item_key(TaskItem(id="4", subject="b", status="completed")) == "task:4"
        assert b.item_key(TodoItem(content="Ship it")) == "todo:Ship it"

    def test_todo_label_is_content_verbatim(self):
        item = TodoItem(content="  spaced #1 [bold]x[/bold]", status="pending")
        assert b.item_label(item) == "  spaced #1 [bold]x[/bold]"

    def test_owner_appended_in_cyan(self):
        item = TaskItem(id="3", subject="Review", status="in_progress", owner="researcher")
        row = b.render_item_row(item)
        assert row.plain == " ▶ #3 Review (researcher)"
        assert row.spans[-1].style == "cyan"

    def test_empty_owner_not_shown(self):
        item = TaskItem(id="3", subject="Review", status="in_progress", owner="")
        assert "(" not in b.render_item_row(item).plain

    def test_completed_is_struck_and_muted(self):
        row = b.render_item_row(TodoItem(content="Done thing", status="completed"))
        assert any(span.style == f"strike {b.MUTED}" for span in row.spans)

    def test_open_item_is_white(self):
        row = b.render_item_row(TodoItem(content="Open thing", status="pending"))
        assert any(span.style == "white" for span in row.spans)
        assert not any("strike" in str(span.style) for span in row.spans)

    def test_unknown_status_row(self):
        row = b.render_item_row(TodoItem(content="Odd", status="paused"))
        assert row.plain == " ? Odd"
        assert row.spans[0].style == "white"


# ---------------------------------------------------------------------------
# 3. SESSION CARDS
# ---------------------------------------------------------------------------

class TestSessionCard:

    def test_title_falls_back_to_short_id(self):
        session = make_session()
        assert b.session_title(session) == "abcdef12..."
        assert "abcdef12..." in render_plain(b.render_session_card(session, now=NOW))

    def test_title_uses_project_name(self):
        session = make_session(meta=make_meta(project_name="alpha"))
        assert b.session_title(session) == "alpha"

    def test_main_branch_hidden(self):
        session = make_session(meta=make_meta(git_branch="main"))
        assert b.branch_suffix(session) == ""
        assert "main" not in render_plain(b.render_session_card(session, now=NOW))

    def test_feature_branch_shown(self):
        session = make_session(meta=make_meta(git_branch="feature/radar"))
        assert b.branch_suffix(session) == " · feature/radar"
        assert "alpha · feature/radar" in render_plain(b.render_session_card(session, now=NOW))

    def test_custom_default_branch(self):
        session = make_session(meta=make_meta(git_branch="trunk"))
        assert b.branch_suffix(session, default_branch="trunk") == ""
        assert b.branch_suffix(session) == " · trunk"

    def test_summary_wins_over_first_prompt(self):
        meta = make_meta(summary="Board rewrite", first_prompt="please rewrite the board")
        output = render_plain(b.render_session_card(make_session(meta=meta), now=NOW))
        assert "Board rewrite" in output
        assert "please rewrite" not in output

    def test_first_prompt_truncated_to_60(self):
        prompt = "x" * 59 + "YZ" + "tail"
        meta = make_meta(first_prompt=prompt)
        assert b.session_description(make_session(meta=meta)) == ("x" * 59 + "Y...", f"italic dim {b.MUTED}")

    def test_summary_style_not_dimmed(self):
        meta = make_meta(summary="Board rewrite", first_prompt="please")
        assert b.session_description(make_session(meta=meta)) == ("Board rewrite", f"italic {b.MUTED}")

    def test_description_line_carries_style(self):
        card = b.render_session_card(make_session(meta=make_meta(first_prompt="hello")), now=NOW)
        line = card.renderable.renderables[1]
        assert line.plain == "  hello..."
        assert line.style == f"italic dim {b.MUTED}"

    def test_no_description_without_meta(self):
        assert b.session_description(make_session()) is None

    def test_header_progress_and_age(self):
        output = render_plain(b.render_session_card(make_session(age=90), now=NOW))
        assert "█" * 4 + "░" * 8 + " 1/3 · 1m ago" in output

    def test_type_icons(self):
        todos = render_plain(b.render_session_card(make_session(source="todos"), now=NOW))
        tasks = render_plain(b.render_session_card(make_session(source="tasks"), now=NOW))
        assert b.TODOS_ICON in todos
        assert b.TASKS_ICON in tasks

    def test_items_keep_their_order(self):
        """No re-sorting: completed items stay where the session put them."""
        output = render_plain(b.render_session_card(make_session(), now=NOW))
        assert output.index("Write parser") < output.index("Wire up board") < output.index("Ship it")

    def test_empty_session_card(self):
        output = render_plain(b.render_session_card(make_session(items=()), now=NOW))
        assert "░" * 12 + " 0/0" in output

    def test_card_is_rounded_panel(self):
        output = render_plain(b.render_session_card(make_session(), now=NOW))
        assert output.startswith("╭")


# ---------------------------------------------------------------------------
# 4. BOARD
# ---------------------------------------------------------------------------

class TestBoard:

    def test_empty_board_placeholder(self):
        output = render_plain(b.render_board([], now=NOW))
        assert "No active tasks or todos found." in output
        assert "Watching ~/.claude/todos/ and ~/.claude/tasks/ ..." in output
        assert "╭" not in output

    def test_empty_board_custom_labels(self):
        output = render_plain(b.render_board([], watch_labels=("/data/t/", "/data/k/")))
        assert "Watching /data/t/ and /data/k/ ..." in output

    def test_one_card_per_session(self):
        sessions = [make_session("aaaa1111"), make_session("bbbb2222"), make_session("cccc3333")]
        assert len(b.board_cards(sessions, now=NOW)) == 3
        assert render_plain(b.render_board(sessions, now=NOW)).count("╭") == 3

    def test_keys_disambiguate_sources(self):
        """Same id in todos and tasks still yields two distinct cards."""
        sessions = [make_session("same-id", source="todos"), make_session("same-id", source="tasks")]
        keys = [key for key, _ in b.board_cards(sessions, now=NOW)]
        assert keys == ["todos-same-id", "tasks-same-id"]

    def test_input_order_is_authoritative(self):
        sessions = [
            make_session("zzzz0000", age=5000),
            make_session("aaaa0000", age=5),
        ]
        output = render_plain(b.render_board(sessions, now=NOW))
        assert output.index("zzzz0000") < output.index("aaaa0000")

    def test_render_is_idempotent(self):
        sessions = [make_session(meta=make_meta(summary="Same"))]
        first = render_plain(b.render_board(sessions, now=NOW))
        second = render_plain(b.render_board(sessions, now=NOW))
        assert first == second

    def test_summarize_sessions(self):
        sessions = [
            make_session(),
            make_session("t1", source="tasks", items=(
                TaskItem(id="1", subject="a", status="completed"),
                TaskItem(id="2", subject="b", status="weird"),
            )),
        ]
        assert b.summarize_sessions(sessions) == {
            "sessions": 2, "items": 5, "completed": 2, "in_progress": 1,
        }

    def test_summarize_empty(self):
        assert b.summarize_sessions([]) == {
            "sessions": 0, "items": 0, "completed": 0, "in_progress": 0,
        }
