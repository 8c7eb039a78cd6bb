"""Jira and Confluence tools."""
import logging

from .. import formatters
from ..clients import AtlassianClient
from ..errors import ToolError
from ..registry import Tool, ToolSet
from ..schemas import (
    AtlassianLatestActivityArgs,
    ConfluenceLatestPagesArgs,
    JiraLatestIssuesArgs,
    SearchConfluencePagesArgs,
    SearchConfluenceSpacesArgs,
    SearchJiraIssuesArgs,
)
from .common import clamp, days_ago, gather_sections

logger = logging.getLogger("saas-mcp.toolsets.atlassian")

ISSUE_HEADER = ["key", "summary", "status", "assignee", "reporter", "priority", "created", "updated"]
PAGE_HEADER = ["id", "title", "type", "space", "url", "last_modified", "excerpt"]
SPACE_HEADER = ["key", "name", "type", "status", "description"]

LATEST_ISSUES_LIMIT = 100
JIRA_MAX_RESULTS = 100
CONFLUENCE_MAX_RESULTS = 100


def issue_row(issue: dict) -> list:
    fields = issue.get("fields") or {}
    return [
        issue.get("key", ""),
        fields.get("summary") or "",
        (fields.get("status") or {}).get("name", ""),
        (fields.get("assignee") or {}).get("displayName") or "Unassigned",
        (fields.get("reporter") or {}).get("displayName") or "Unknown",
        (fields.get("priority") or {}).get("name") or "Unknown",
        formatters.format_day(fields.get("created")),
        formatters.format_day(fields.get("updated")),
    ]


def epic_columns(issue: dict) -> list:
    parent = (issue.get("fields") or {}).get("parent") or {}
    return [parent.get("key", ""), (parent.get("fields") or {}).get("summary", "")]


def page_rows(data: dict) -> list[list]:
    """Rows for Confluence search results; URLs are made absolute with the site base."""
    base_url = (data.get("_links") or {}).get("base") or ""
    rows = []
    for item in data.get("results") or []:
        content = item.get("content") or {}
        space = content.get("space") or {}
        key, name = space.get("key", ""), space.get("name", "")
        rows.append([
            content.get("id", ""),
            item.get("title", ""),
            content.get("type", ""),
            f"{key} ({name})" if key and name else key or name,
            f"{base_url}{item['url']}" if item.get("url") and base_url else "",
            formatters.format_day(item.get("lastModified")),
            item.get("excerpt", ""),
        ])
    return rows


class AtlassianTools(ToolSet):
    platform = "Atlassian"
    latest_activity_tool = "atlassian__get_latest_activity"

    def __init__(self, client: AtlassianClient):
        self.client = client
        super().__init__()

    def _build_tools(self) -> list[Tool]:
        return [
            Tool(
                name="atlassian__search_jira_issues",
                description="Search for Jira issues using JQL (Jira Query Language)",
                args_model=SearchJiraIssuesArgs,
                handler=self.search_jira_issues,
            ),
            Tool(
                name="atlassian__jira_get_latest_issues",
                description="Get user's latest Jira issues from the last N days - includes issues where "
                            "user is mentioned (returns metadata only, no content)",
                args_model=JiraLatestIssuesArgs,
                handler=self.jira_get_latest_issues,
            ),
            Tool(
                name="atlassian__search_confluence_pages",
                description="Search for Confluence pages using CQL (Confluence Query Language)",
                args_model=SearchConfluencePagesArgs,
                handler=self.search_confluence_pages,
            ),
            Tool(
                name="atlassian__search_confluence_spaces",
                description="Search for Confluence spaces",
                args_model=SearchConfluenceSpacesArgs,
                handler=self.search_confluence_spaces,
            ),
            Tool(
                name="atlassian__confluence_get_latest_pages",
                description="Get latest Confluence pages and comments with excerpts - includes content "
                            "where user is mentioned",
                args_model=ConfluenceLatestPagesArgs,
                handler=self.confluence_get_latest_pages,
            ),
            Tool(
                name="atlassian__get_latest_activity",
                description="Get the user's latest Jira issues and Confluence pages from the last N days",
                args_model=AtlassianLatestActivityArgs,
                handler=self.get_latest_activity,
            ),
        ]

    async def search_jira_issues(self, args: SearchJiraIssuesArgs) -> str:
        result = await self.client.search_jira_issues(
            args.jql,
            max_results=clamp(args.max_results, 1, JIRA_MAX_RESULTS),
            next_page_token=args.next_page_token,
        )
        if not result.success:
            raise ToolError(f"Error searching Jira issues: {result.error}")

        text = formatters.csv_table(ISSUE_HEADER, [issue_row(i) for i in (result.data.get("issues") or [])])
        token = result.data.get("nextPageToken")
        if token and not result.data.get("isLast"):
            text += f"Next page token: {token}\n"
        return text

    async def jira_get_latest_issues(self, args: JiraLatestIssuesArgs) -> str:
        since = days_ago(args.days).strftime("%Y-%m-%d")
        jql = (
            "(assignee = currentUser() OR reporter = currentUser() OR comment ~ currentUser() "
            f'OR description ~ currentUser()) AND updated >= "{since}" ORDER BY updated DESC'
        )
        result = await self.client.search_jira_issues(jql, max_results=LATEST_ISSUES_LIMIT)
        if not result.success:
            raise ToolError(f"Error searching Jira issues: {result.error}")

        rows = [issue_row(i) + epic_columns(i) for i in (result.data.get("issues") or [])]
        return formatters.csv_table(ISSUE_HEADER + ["epic_key", "epic_summary"], rows)

    async def search_confluence_pages(self, args: SearchConfluencePagesArgs) -> str:
        result = await self.client.search_confluence_content(
            query=args.query,
            cql=args.cql,
            space=args.space,
            type=args.type,
            max_results=clamp(args.max_results, 1, CONFLUENCE_MAX_RESULTS),
        )
        if not result.success:
            raise ToolError(f"Error searching Confluence pages: {result.error}")

        rows = page_rows(result.data)
        if not rows:
            return formatters.NO_CONFLUENCE_PAGES_SEARCH
        return formatters.csv_table(PAGE_HEADER, rows)

    async def search_confluence_spaces(self, args: SearchConfluenceSpacesArgs) -> str:
        result = await self.client.search_confluence_spaces(
            args.query, max_results=clamp(args.max_results, 1, CONFLUENCE_MAX_RESULTS)
        )
        if not result.success:
            raise ToolError(f"Error searching Confluence spaces: {result.error}")

        spaces = result.data.get("results") or []
        if not spaces:
            return formatters.NO_CONFLUENCE_SPACES

        rows = []
        for space in spaces:
            description = ((space.get("description") or {}).get("plain") or {}).get("value") or "No description"
            rows.append([
                space.get("key", ""),
                space.get("name", ""),
                space.get("type", ""),
                space.get("status", ""),
                description[:100],
            ])
        return formatters.csv_table(SPACE_HEADER, rows)

    async def confluence_get_latest_pages(self, args: ConfluenceLatestPagesArgs) -> str:
        since = days_ago(args.days).strftime("%Y-%m-%d")
        cql = f'(type = page OR type = comment) AND lastModified >= "{since}"'
        if args.include_user_mentions:
            cql += " AND (mention = currentUser() OR creator = currentUser())"
        cql += " ORDER BY lastModified DESC"

        result = await self.client.search_confluence_content(
            cql=cql,
            max_results=clamp(args.max_results, 1, CONFLUENCE_MAX_RESULTS),
            include_archived=args.include_archived,
        )
        if not result.success:
            raise ToolError(f"Error searching latest Confluence pages: {result.error}")

        rows = page_rows(result.data)
        if not rows:
            return formatters.NO_CONFLUENCE_PAGES_LATEST
        return formatters.csv_table(PAGE_HEADER, rows)

    async def get_latest_activity(self, args: AtlassianLatestActivityArgs) -> str:
        return await gather_sections(
            [
                ("JIRA ISSUES", self.jira_get_latest_issues(JiraLatestIssuesArgs(days=args.days))),
                ("CONFLUENCE PAGES", self.confluence_get_latest_pages(ConfluenceLatestPagesArgs(days=args.days))),
            ],
            error_prefix="Error getting latest Atlassian activity",
        )
