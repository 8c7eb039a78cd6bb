"""GitHub tools."""
import asyncio
import logging
from typing import Optional

from .. import formatters
from ..clients import GitHubClient
from ..errors import ToolError
from ..registry import Tool, ToolSet
from ..schemas import ApiResponse, FileContentArgs, GitHubSearchArgs, RepositoryTreeArgs
from .common import clamp

logger = logging.getLogger("saas-mcp.toolsets.github")

GITHUB_MAX_PER_PAGE = 100


def _report(result: ApiResponse, query: str, render) -> Optional[str]:
    """Rendered report, or None when the search failed or found nothing."""
    if not result.success or not result.data.get("total_count"):
        return None
    return render(query, result.data)


class GitHubTools(ToolSet):
    platform = "GitHub"

    def __init__(self, client: GitHubClient):
        self.client = client
        super().__init__()

    def _build_tools(self) -> list[Tool]:
        return [
            Tool(
                name="github__search",
                description="Search private GitHub repositories for code, issues, and pull requests.",
                args_model=GitHubSearchArgs,
                handler=self.search,
            ),
            Tool(
                name="github__get_file_content",
                description="Get the full content of a specific file from a GitHub repository.",
                args_model=FileContentArgs,
                handler=self.get_file_content,
            ),
            Tool(
                name="github__get_repository_tree",
                description="Get the folder structure and file tree of a GitHub repository.",
                args_model=RepositoryTreeArgs,
                handler=self.get_repository_tree,
            ),
        ]

    async def search(self, args: GitHubSearchArgs) -> str:
        # Only private repositories are searched
        query = f"{args.query} is:private"
        per_page = clamp(args.max_results, 1, GITHUB_MAX_PER_PAGE)

        code, issues = await asyncio.gather(
            self.client.search_code(query, per_page=per_page),
            self.client.search_issues(query, per_page=per_page),
        )
        if not code.success and not issues.success:
            raise ToolError(f"Error searching GitHub: code search: {code.error}; issue search: {issues.error}")
        for label, result in (("code", code), ("issue", issues)):
            if not result.success:
                logger.warning(f"GitHub {label} search failed: {result.error}")

        sections = []
        code_report = _report(code, query, formatters.format_code_search)
        if code_report:
            sections.append(f"## CODE SEARCH RESULTS\n\n{code_report}")
        issue_report = _report(issues, query, formatters.format_issue_search)
        if issue_report:
            sections.append(f"## ISSUES AND PULL REQUESTS\n\n{issue_report}")

        if not sections:
            return formatters.no_github_results(args.query)
        return "\n\n".join(sections)

    async def get_file_content(self, args: FileContentArgs) -> str:
        result = await self.client.get_file_content(args.owner, args.repo, args.path, ref=args.ref)
        if not result.success:
            raise ToolError(f"Error getting file content: {result.error}")
        return formatters.format_file_content(args.owner, args.repo, args.path, result.data, ref=args.ref)

    async def get_repository_tree(self, args: RepositoryTreeArgs) -> str:
        result = await self.client.get_repository_tree(
            args.owner, args.repo, tree_sha=args.ref, recursive=args.recursive
        )
        if not result.success:
            raise ToolError(f"Error getting repository tree: {result.error}")
        return formatters.format_repository_tree(
            args.owner, args.repo, result.data, ref=args.ref, recursive=args.recursive
        )
