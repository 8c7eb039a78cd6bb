"""Tests for text formatting helpers."""
import csv
import io
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from saas_mcp import formatters


class TestCsv:
    """CSV escaping rules shared by every tool."""

    def test_plain_values(self):
        """Test that plain values are written unquoted."""
        assert formatters.csv_field("abc") == "abc"
        assert formatters.csv_field(42) == "42"
        assert formatters.csv_field(None) == ""
        assert formatters.csv_field(True) == "true"
        assert formatters.csv_field(False) == "false"

    def test_comma_and_quote_are_quoted(self):
        """Test that commas and quotes force quoting."""
        assert formatters.csv_field("a,b") == '"a,b"'
        assert formatters.csv_field('say "hi"') == '"say ""hi"""'

    def test_newlines_collapse_to_single_space(self):
        """Test that every newline style collapses to one space."""
        assert formatters.csv_field("one\r\ntwo\nthree\rfour") == '"one two three four"'

    def test_reparse_recovers_text_with_newlines_collapsed(self):
        """Test that a CSV reader recovers the field text."""
        original = 'Hello, "world"\nsecond line'
        line = formatters.csv_row(["id-1", original])

        parsed = next(csv.reader(io.StringIO(line)))

        assert parsed == ["id-1", 'Hello, "world" second line']

    def test_table_without_rows_is_header_only(self):
        """Test that an empty table is just the header line."""
        assert formatters.csv_table(["id", "name"], []) == "id,name\n"

    def test_table_lines_end_with_newline(self):
        """Test that every table line ends with a newline."""
        text = formatters.csv_table(["a", "b"], [[1, "x"], [2, None]])
        assert text == "a,b\n1,x\n2,\n"


class TestDates:
    """Test date formatting helpers."""

    def test_format_day(self):
        """Test reducing timestamps to a day."""
        assert formatters.format_day("2024-01-15T10:00:00.000+0000") == "2024-01-15"
        assert formatters.format_day("") == ""
        assert formatters.format_day(None) == ""
        assert formatters.format_day("yesterday") == "yesterday"

    def test_graph_datetime_defaults_to_utc_iso(self):
        """Test that Graph datetimes default to UTC ISO output."""
        assert formatters.format_graph_datetime("2024-01-15T10:00:00.0000000") == "2024-01-15T10:00:00.000Z"

    def test_unknown_source_zone_is_treated_as_utc(self):
        """Test that an unknown source zone is treated as UTC."""
        value = formatters.format_graph_datetime("2024-01-15T10:00:00.0000000", "Pacific Standard Time")
        assert value == "2024-01-15T10:00:00.000Z"

    def test_graph_datetime_in_target_zone(self):
        """Test conversion into a target time zone."""
        try:
            ZoneInfo("America/New_York")
        except ZoneInfoNotFoundError:
            pytest.skip("tz database not available")

        value = formatters.format_graph_datetime("2024-01-15T10:00:00.0000000", "UTC", "America/New_York")

        assert value == "2024-01-15 05:00:00 EST"

    def test_unparsable_value_is_returned_unchanged(self):
        """Test that unparsable values pass through."""
        assert formatters.format_graph_datetime("not a date") == "not a date"
        assert formatters.format_graph_datetime("") == ""


class TestSlackGrouping:
    """Test grouping Slack messages by channel."""

    def test_groups_by_channel_in_first_seen_order(self):
        """Test that channels appear in first-seen order."""
        messages = [
            {"ts": "3.0", "text": "newest", "username": "bob", "channel": {"id": "C2", "name": "random"},
             "isUnread": True},
            {"ts": "2.0", "text": "hi, all", "username": "ann", "channel": {"id": "C1", "name": "general"},
             "isUnread": False},
        ]

        text = formatters.format_messages_by_channel(messages)

        assert text == (
            "Channel start -- #random C2\n"
            "username,text,time,isUnread\n"
            "bob,newest,3.0,true\n"
            "Channel end -- #random C2\n"
            "\n"
            "Channel start -- #general C1\n"
            "username,text,time,isUnread\n"
            'ann,"hi, all",2.0,false\n'
            "Channel end -- #general C1"
        )


class TestGitHub:
    """Test GitHub report formatting."""

    def test_tree_items_sort_directories_first(self):
        """Test that directories sort before files."""
        items = [
            {"path": "b.txt", "type": "blob"},
            {"path": "a/", "type": "tree"},
            {"path": "a.txt", "type": "blob"},
        ]

        assert [i["path"] for i in formatters.sort_tree_items(items)] == ["a/", "a.txt", "b.txt"]

    def test_tree_type_wins_over_name(self):
        """Test that item type outranks the path when sorting."""
        items = [{"path": "a.txt", "type": "blob"}, {"path": "zeta", "type": "tree"}]
        assert [i["path"] for i in formatters.sort_tree_items(items)] == ["zeta", "a.txt"]

    def test_recursive_tree_listing(self):
        """Test the indented recursive tree listing."""
        tree = {
            "tree": [
                {"path": "src/app.py", "type": "blob", "size": 2048},
                {"path": "README.md", "type": "blob", "size": 100},
                {"path": "src", "type": "tree"},
            ],
            "truncated": True,
        }

        text = formatters.format_repository_tree("octo", "repo", tree, ref="main", recursive=True)

        assert text.startswith("REPOSITORY TREE STRUCTURE\nRepository: octo/repo\nRef: main\n")
        assert "Total items: 3 (truncated)" in text
        assert text.endswith("STRUCTURE:\nDIR: src\nFILE: README.md (0KB)\n  FILE: app.py (2KB)")

    def test_top_level_tree_listing_uses_full_paths(self):
        """Test the top-level tree listing."""
        tree = {"tree": [{"path": "docs", "type": "tree"}], "truncated": False}

        text = formatters.format_repository_tree("octo", "repo", tree)

        assert "Top level only" in text
        assert "Total items: 1\n" in text
        assert text.endswith("DIR: docs")

    def test_file_content_header(self):
        """Test the file content header block."""
        text = formatters.format_file_content("octo", "repo", "a.py", {"size": 1536, "content": "print(1)\n"})

        assert text == (
            "FILE CONTENT\n"
            "Repository: octo/repo\n"
            "File: a.py\n"
            "Size: 2KB\n"
            "\n"
            "\n"
            "CONTENT:\n"
            "print(1)\n"
        )

    def test_code_search_report(self):
        """Test the code search report."""
        data = {
            "total_count": 1234,
            "incomplete_results": True,
            "items": [{
                "path": "src/x.py",
                "html_url": "https://github.com/octo/repo/blob/main/src/x.py",
                "repository": {"full_name": "octo/repo", "stargazers_count": 5, "language": "Python"},
                "text_matches": [{"fragment": "  def x():  "}],
            }],
        }

        text = formatters.format_code_search("x is:private", data)

        assert 'Found 1,234 code files matching "x is:private"' in text
        assert formatters.INCOMPLETE_WARNING in text
        assert "1. octo/repo (5 stars) [Python]\n   File: src/x.py" in text
        assert '   "def x():"' in text

    def test_issue_search_report(self):
        """Test the issue and pull request report."""
        data = {
            "total_count": 1,
            "incomplete_results": False,
            "items": [{
                "number": 7,
                "title": "Broken build",
                "state": "open",
                "repository_url": "https://api.github.com/repos/octo/repo",
                "pull_request": {"url": "x"},
                "labels": [{"name": "bug"}],
                "assignees": [],
                "assignee": {"login": "sam"},
                "user": {"login": "kim"},
                "created_at": "2024-01-02T03:04:05Z",
                "updated_at": "2024-01-03T03:04:05Z",
                "html_url": "https://github.com/octo/repo/pull/7",
            }],
        }

        text = formatters.format_issue_search("build", data)

        assert "1. OPEN PR #7 - octo/repo" in text
        assert "Title: Broken build [bug]" in text
        assert "Author: @kim Assignee: sam" in text
        assert "Created: 2024-01-02 | Updated: 2024-01-03" in text
        assert formatters.INCOMPLETE_WARNING not in text
