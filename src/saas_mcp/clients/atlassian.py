"""Atlassian Cloud client for Jira and Confluence.

All calls go through ``api.atlassian.com`` and need the site's cloud id, which
is resolved from the token's accessible resources on first use.
"""
import asyncio
import logging
from typing import Optional

from ..schemas import ApiResponse
from .base import PlatformClient

logger = logging.getLogger("saas-mcp.clients.atlassian")

JIRA_FIELDS = ["summary", "status", "assignee", "reporter", "priority", "created", "updated", "parent"]


def _quote_cql(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_confluence_cql(
    query: Optional[str] = None,
    space: Optional[str] = None,
    content_type: Optional[str] = None,
) -> str:
    """AND-combine the structured filters into one CQL string.

    With no filters the result is ``type = page``.
    """
    parts = [f"type = {content_type or 'page'}"]
    if space:
        parts.append(f'space = "{_quote_cql(space)}"')
    if query:
        quoted = _quote_cql(query)
        parts.append(f'(title ~ "{quoted}" OR text ~ "{quoted}")')
    return " AND ".join(parts)


class AtlassianClient(PlatformClient):
    """Jira and Confluence REST client bound to the first accessible site."""

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = "https://api.atlassian.com",
        cloud_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(access_token, base_url=base_url, **kwargs)
        self.cloud_id = cloud_id
        self._cloud_id_lock = asyncio.Lock()

    async def get_accessible_resources(self) -> ApiResponse:
        """Sites the token can reach. The first one becomes the cloud id if none is set."""
        result = await self._request(
            "GET", "/oauth/token/accessible-resources", operation="get accessible resources"
        )
        if not result.success:
            return result
        resources = result.data if isinstance(result.data, list) else []
        if not self.cloud_id and resources:
            self.cloud_id = resources[0].get("id")
            logger.info(f"Using Atlassian site {resources[0].get('name', self.cloud_id)}")
        return ApiResponse.ok(resources)

    async def ensure_cloud_id(self) -> ApiResponse:
        """Resolve the cloud id once; concurrent first callers share the lookup."""
        if self.cloud_id:
            return ApiResponse.ok(self.cloud_id)
        async with self._cloud_id_lock:
            if self.cloud_id:
                return ApiResponse.ok(self.cloud_id)
            resources = await self.get_accessible_resources()
            if not resources.success:
                return resources
            if not self.cloud_id:
                return ApiResponse.fail("No accessible Atlassian resources found")
            return ApiResponse.ok(self.cloud_id)

    async def search_jira_issues(
        self,
        jql: str,
        max_results: int = 10,
        next_page_token: Optional[str] = None,
    ) -> ApiResponse:
        """Returns the raw search payload (``issues``, ``nextPageToken``, ``isLast``)."""
        cloud = await self.ensure_cloud_id()
        if not cloud.success:
            return cloud

        body = {"jql": jql, "maxResults": max_results, "fields": JIRA_FIELDS}
        if next_page_token:
            body["nextPageToken"] = next_page_token
        return await self._request(
            "POST",
            f"/ex/jira/{cloud.data}/rest/api/3/search/jql",
            operation="search Jira issues",
            json_body=body,
        )

    async def search_confluence_content(
        self,
        query: Optional[str] = None,
        cql: Optional[str] = None,
        space: Optional[str] = None,
        type: Optional[str] = None,
        max_results: int = 10,
        include_archived: bool = False,
        cursor: Optional[str] = None,
    ) -> ApiResponse:
        """CQL search. A raw ``cql`` string takes precedence over the structured filters."""
        cloud = await self.ensure_cloud_id()
        if not cloud.success:
            return cloud

        return await self._request(
            "GET",
            f"/ex/confluence/{cloud.data}/wiki/rest/api/search",
            operation="search Confluence content",
            params={
                "cql": cql or build_confluence_cql(query, space, type),
                "limit": max_results,
                "expand": "content.space,content.version",
                "includeArchivedSpaces": "true" if include_archived else "false",
                "cursor": cursor,
            },
        )

    async def search_confluence_spaces(self, query: str, max_results: int = 10) -> ApiResponse:
        """Spaces whose name or key contains ``query``, case-insensitively."""
        cloud = await self.ensure_cloud_id()
        if not cloud.success:
            return cloud

        result = await self._request(
            "GET",
            f"/ex/confluence/{cloud.data}/wiki/rest/api/space",
            operation="search Confluence spaces",
            params={"limit": max_results, "expand": "description.plain"},
        )
        if not result.success or not query:
            return result

        needle = query.lower()
        spaces = [
            space for space in (result.data.get("results") or [])
            if needle in (space.get("name") or "").lower() or needle in (space.get("key") or "").lower()
        ]
        return ApiResponse.ok({**result.data, "results": spaces, "size": len(spaces)})
