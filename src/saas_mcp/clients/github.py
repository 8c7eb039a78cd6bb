"""GitHub REST v3 client."""
import base64
import logging
from typing import Optional

from ..schemas import ApiResponse
from .base import PlatformClient

logger = logging.getLogger("saas-mcp.clients.github")

TEXT_MATCH_MEDIA_TYPE = "application/vnd.github.text-match+json"


class GitHubClient(PlatformClient):
    default_headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }

    def __init__(self, access_token: str, *, base_url: str = "https://api.github.com", **kwargs):
        super().__init__(access_token, base_url=base_url, **kwargs)

    async def search_code(
        self,
        query: str,
        per_page: Optional[int] = None,
        page: Optional[int] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
    ) -> ApiResponse:
        return await self._request(
            "GET",
            "/search/code",
            operation="search code",
            params={"q": query, "sort": sort, "order": order, "per_page": per_page, "page": page},
            headers={"Accept": TEXT_MATCH_MEDIA_TYPE},
        )

    async def search_issues(
        self,
        query: str,
        per_page: Optional[int] = None,
        page: Optional[int] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
    ) -> ApiResponse:
        """Issues and pull requests."""
        return await self._request(
            "GET",
            "/search/issues",
            operation="search issues",
            params={"q": query, "sort": sort, "order": order, "per_page": per_page, "page": page},
        )

    async def get_file_content(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> ApiResponse:
        """File metadata with ``content`` replaced by the decoded text."""
        result = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/contents/{path.lstrip('/')}",
            operation="get file content",
            params={"ref": ref},
        )
        if not result.success:
            return result

        data = result.data
        if not isinstance(data, dict) or data.get("type") != "file" or not data.get("content"):
            return ApiResponse.fail("Path does not point to a file or content is not available")

        raw = data["content"].replace("\n", "")
        try:
            decoded = base64.b64decode(raw).decode("utf-8", errors="replace")
        except ValueError as e:
            logger.error(f"Could not decode {owner}/{repo}/{path}: {e}")
            return ApiResponse.fail(f"Error while trying to get file content: invalid base64 content ({e})")
        return ApiResponse.ok({**data, "content": decoded})

    async def get_repository_tree(
        self,
        owner: str,
        repo: str,
        tree_sha: Optional[str] = None,
        recursive: bool = False,
    ) -> ApiResponse:
        """Git tree for a ref; ``truncated`` is returned as GitHub reports it."""
        return await self._request(
            "GET",
            f"/repos/{owner}/{repo}/git/trees/{tree_sha or 'HEAD'}",
            operation="get repository tree",
            params={"recursive": "1" if recursive else None},
        )
