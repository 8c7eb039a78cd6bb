"""Shared text formatting for tool output.

Tools return flat text: mostly CSV with a fixed header row, plus a few
report-style layouts (GitHub, grouped Slack messages). Both the stdio and the
HTTP transport return these strings unchanged.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger("saas-mcp.formatters")


# ============================================================================
# "No results" messages
# ============================================================================
# Callers match these by exact substring, so the wording must not change.

NO_SLACK_MESSAGES = "No messages found for the specified time period"
NO_CONFLUENCE_PAGES_SEARCH = "No Confluence pages found matching the search criteria."
NO_CONFLUENCE_PAGES_LATEST = "No Confluence pages found matching the criteria."
NO_CONFLUENCE_SPACES = "No Confluence spaces found matching the search criteria."
NO_PLATFORMS = (
    "No platforms are available. Please ensure at least one platform "
    "(Slack, Azure, or Atlassian) is connected."
)


def no_github_results(query: str) -> str:
    return f'No results found for query: "{query}"'


# ============================================================================
# CSV
# ============================================================================

_NEWLINES = re.compile(r"\r\n|\r|\n")
_NEEDS_QUOTES = (",", '"', "\r", "\n")


def csv_field(value: Any) -> str:
    """Serialise one CSV field.

    Fields containing a comma, quote or newline are quoted with embedded quotes
    doubled. Newlines inside such fields become a single space, so multi-line
    text does not survive a round trip.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if any(ch in text for ch in _NEEDS_QUOTES):
        text = _NEWLINES.sub(" ", text).replace('"', '""')
        return f'"{text}"'
    return text


def csv_row(values: Iterable[Any]) -> str:
    return ",".join(csv_field(v) for v in values) + "\n"


def csv_table(header: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """Header line plus one line per row. No rows still yields the header."""
    return csv_row(header) + "".join(csv_row(row) for row in rows)


# ============================================================================
# Dates
# ============================================================================

_DAY = re.compile(r"^\d{4}-\d{2}-\d{2}")
_FRACTION = re.compile(r"\.\d+")


def format_day(value: Optional[str]) -> str:
    """Reduce an ISO timestamp to ``YYYY-MM-DD``."""
    if not value:
        return ""
    match = _DAY.match(value)
    return match.group(0) if match else value


def _zone(name: Optional[str]):
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        # Graph can report Windows zone names such as "Pacific Standard Time"
        logger.debug(f"Unknown time zone {name!r}, using UTC")
        return timezone.utc


def format_graph_datetime(value: Optional[str], source_tz: str = "UTC", target_tz: Optional[str] = None) -> str:
    """Format a Graph ``dateTime`` (no offset, 7-digit fraction).

    Without ``target_tz`` the result is UTC ISO 8601 with milliseconds and a
    ``Z`` suffix. With it, ``YYYY-MM-DD HH:MM:SS <zone>``. Unparsable input is
    returned unchanged.
    """
    if not value:
        return ""
    text = _FRACTION.sub("", value, count=1)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return value

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_zone(source_tz))
    instant = parsed.astimezone(timezone.utc)

    if target_tz:
        return instant.astimezone(_zone(target_tz)).strftime("%Y-%m-%d %H:%M:%S %Z")
    return instant.strftime("%Y-%m-%dT%H:%M:%S.") + f"{instant.microsecond // 1000:03d}Z"


# ============================================================================
# Slack
# ============================================================================

SLACK_MESSAGE_HEADER = ["username", "text", "time", "isUnread"]


def format_messages_by_channel(messages: list[dict]) -> str:
    """Group messages by channel, keeping the order in which channels first appear.

    Each message carries ``channel`` ({id, name}) and an ``isUnread`` flag.
    """
    groups: dict[str, list[dict]] = {}
    for message in messages:
        channel_id = (message.get("channel") or {}).get("id") or "unknown"
        groups.setdefault(channel_id, []).append(message)

    sections = []
    for channel_id, channel_messages in groups.items():
        name = (channel_messages[0].get("channel") or {}).get("name") or "unknown"
        rows = [
            [m.get("username") or "", m.get("text") or "", m.get("ts") or "", bool(m.get("isUnread"))]
            for m in channel_messages
        ]
        sections.append(
            f"Channel start -- #{name} {channel_id}\n"
            f"{csv_table(SLACK_MESSAGE_HEADER, rows)}"
            f"Channel end -- #{name} {channel_id}"
        )
    return "\n\n".join(sections)


# ============================================================================
# GitHub
# ============================================================================

INCOMPLETE_WARNING = "WARNING: Results may be incomplete due to timeout"


def _kb(size: int) -> int:
    return int(size / 1024 + 0.5)


def format_code_search(query: str, data: dict) -> str:
    """Code search report; callers handle ``total_count == 0`` themselves."""
    entries = []
    for index, item in enumerate(data.get("items") or [], start=1):
        repo = item.get("repository") or {}
        language = f" [{repo['language']}]" if repo.get("language") else ""
        lines = [
            f"{index}. {repo.get('full_name', '')} ({repo.get('stargazers_count') or 0} stars){language}",
            f"   File: {item.get('path', '')}",
            f"   URL: {item.get('html_url', '')}",
        ]
        for match in (item.get("text_matches") or [])[:2]:
            lines.append(f'   "{(match.get("fragment") or "").strip()}"')
        entries.append("\n".join(lines))

    warning = INCOMPLETE_WARNING if data.get("incomplete_results") else ""
    return (
        "GITHUB CODE SEARCH RESULTS\n"
        f'Found {data.get("total_count", 0):,} code files matching "{query}"\n'
        f"{warning}\n"
        "\n"
        "Top Results:\n" + "\n\n".join(entries)
    )


def format_issue_search(query: str, data: dict) -> str:
    """Issue and pull request search report."""
    entries = []
    for index, item in enumerate(data.get("items") or [], start=1):
        repo_name = "/".join((item.get("repository_url") or "").split("/")[-2:])
        kind = "PR" if item.get("pull_request") else "Issue"
        state = "OPEN" if item.get("state") == "open" else "CLOSED"

        labels = [label.get("name", "") for label in item.get("labels") or []][:3]
        labels_text = f" [{', '.join(labels)}]" if labels else ""

        assignees = [a.get("login", "") for a in item.get("assignees") or []][:2]
        if assignees:
            assignee_text = f" Assignees: {', '.join(assignees)}"
        elif item.get("assignee"):
            assignee_text = f" Assignee: {item['assignee'].get('login', '')}"
        else:
            assignee_text = ""

        entries.append(
            f"{index}. {state} {kind} #{item.get('number')} - {repo_name}\n"
            f"   Title: {item.get('title', '')}{labels_text}\n"
            f"   Author: @{(item.get('user') or {}).get('login', '')}{assignee_text}\n"
            f"   Created: {format_day(item.get('created_at'))} | Updated: {format_day(item.get('updated_at'))}\n"
            f"   URL: {item.get('html_url', '')}"
        )

    warning = INCOMPLETE_WARNING if data.get("incomplete_results") else ""
    return (
        "GITHUB ISSUES AND PULL REQUESTS SEARCH RESULTS\n"
        f'Found {data.get("total_count", 0):,} items matching "{query}"\n'
        f"{warning}\n"
        "\n"
        "Results:\n" + "\n\n".join(entries)
    )


def format_file_content(owner: str, repo: str, path: str, file: dict, ref: Optional[str] = None) -> str:
    ref_line = f"Ref: {ref}" if ref else ""
    return (
        "FILE CONTENT\n"
        f"Repository: {owner}/{repo}\n"
        f"File: {path}\n"
        f"Size: {_kb(file.get('size') or 0)}KB\n"
        f"{ref_line}\n"
        "\n"
        "CONTENT:\n"
        f"{file.get('content', '')}"
    )


def sort_tree_items(items: list[dict]) -> list[dict]:
    """Directories (``tree``) before files (``blob``), then by path."""
    return sorted(items, key=lambda item: (0 if item.get("type") == "tree" else 1, item.get("path", "")))


def format_repository_tree(owner: str, repo: str, tree: dict, ref: Optional[str] = None, recursive: bool = False) -> str:
    items = tree.get("tree") or []
    ref_line = f"Ref: {ref}" if ref else ""
    truncated = " (truncated)" if tree.get("truncated") else ""
    header = (
        "REPOSITORY TREE STRUCTURE\n"
        f"Repository: {owner}/{repo}\n"
        f"{ref_line}\n"
        f"{'Full recursive structure' if recursive else 'Top level only'}\n"
        f"Total items: {len(items)}{truncated}\n"
        "\n"
        "STRUCTURE:\n"
    )

    lines = []
    for item in sort_tree_items(items):
        kind = "DIR" if item.get("type") == "tree" else "FILE"
        size = f" ({_kb(item['size'])}KB)" if item.get("size") else ""
        path = item.get("path", "")
        if recursive:
            parts = path.split("/")
            lines.append(f"{'  ' * (len(parts) - 1)}{kind}: {parts[-1]}{size}")
        else:
            lines.append(f"{kind}: {path}{size}")
    return header + "\n".join(lines)
