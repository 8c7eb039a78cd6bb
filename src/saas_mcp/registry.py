"""Tool registry and dispatch shared by the stdio and HTTP transports.

A tool is a name, a description, a pydantic argument model and an async
handler returning text. Tool sets group the tools of one platform. The
functions here turn tool sets into MCP tool listings and run calls, always
producing a ToolResponse instead of raising.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence

import httpx
from mcp.types import Tool as McpTool
from pydantic import BaseModel

from .errors import ToolError
from .schemas import PlatformCredentials, ToolDefinition, ToolResponse, error_response, text_response

logger = logging.getLogger("saas-mcp.registry")


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    args_model: type[BaseModel]
    handler: Callable[[Any], Awaitable[str]]

    async def invoke(self, arguments: Optional[dict] = None) -> str:
        """Validate ``arguments`` against the argument model and run the handler."""
        args = self.args_model.model_validate(arguments or {})
        return await self.handler(args)


class ToolSet:
    """The tools of one platform, built once per session.

    ``latest_activity_tool`` names the tool the cross-platform summary calls,
    or is None when the platform has no such tool.
    """

    platform: str = ""
    latest_activity_tool: Optional[str] = None

    def __init__(self):
        self._tools = self._build_tools()

    def _build_tools(self) -> list[Tool]:
        raise NotImplementedError

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools)

    def get(self, name: str) -> Optional[Tool]:
        return find_tool(self._tools, name)


# ============================================================================
# Listing
# ============================================================================

def tool_input_schema(tool: Tool) -> dict[str, Any]:
    """JSON schema for a tool's arguments, or ``{}`` if it cannot be generated."""
    try:
        schema = tool.args_model.model_json_schema(by_alias=True)
    except Exception as e:
        logger.warning(f"Could not build input schema for {tool.name}: {type(e).__name__}: {e}")
        return {}
    schema.pop("title", None)
    return schema


def list_definitions(tools: Sequence[Tool]) -> list[ToolDefinition]:
    return [
        ToolDefinition(name=tool.name, description=tool.description, inputSchema=tool_input_schema(tool))
        for tool in tools
    ]


def to_mcp_tools(tools: Sequence[Tool]) -> list[McpTool]:
    return [
        McpTool(name=d.name, description=d.description, inputSchema=d.inputSchema)
        for d in list_definitions(tools)
    ]


def collect_tools(tool_sets: Iterable[ToolSet]) -> list[Tool]:
    """Flatten tool sets in order. Tool names must be unique."""
    tools: list[Tool] = []
    seen: set[str] = set()
    for tool_set in tool_sets:
        for tool in tool_set.tools:
            if tool.name in seen:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            seen.add(tool.name)
            tools.append(tool)
    return tools


def find_tool(tools: Sequence[Tool], name: str) -> Optional[Tool]:
    """Exact, case-sensitive lookup."""
    for tool in tools:
        if tool.name == name:
            return tool
    return None


# ============================================================================
# Dispatch
# ============================================================================

async def execute(tools: Sequence[Tool], name: str, arguments: Optional[dict] = None) -> ToolResponse:
    """Run one tool call. Failures come back as ``isError`` responses."""
    tool = find_tool(tools, name)
    if tool is None:
        logger.warning(f"Unknown tool requested: {name}")
        return error_response(f"Unknown tool: {name}")

    logger.info(f"Tool call: {name}")
    try:
        text = await tool.invoke(arguments)
    except ToolError as e:
        logger.warning(f"Tool {name} reported an error: {e}")
        return error_response(str(e))
    except Exception as e:
        logger.exception(f"Unexpected error during {name} call")
        return error_response(f"Error executing tool {name}: {e}")

    return text_response(text)


def build_tool_sets(
    credentials: PlatformCredentials,
    settings,
    http_client: Optional[httpx.AsyncClient] = None,
    platforms: Optional[Iterable[str]] = None,
) -> list[ToolSet]:
    """Tool sets for every platform with a token, then the cross-platform set.

    Registration order is Slack, Azure, Atlassian, GitHub. ``platforms``
    restricts which of them are considered.
    """
    from .clients import AtlassianClient, AzureClient, GitHubClient, SlackClient
    from .toolsets import AtlassianTools, AzureTools, CombinedTools, GitHubTools, SlackTools

    wanted = set(platforms) if platforms is not None else None
    common = {"http_client": http_client, "timeout": settings.http_timeout_seconds}

    def enabled(platform: str, token: Optional[str]) -> bool:
        return bool(token) and (wanted is None or platform in wanted)

    tool_sets: list[ToolSet] = []
    if enabled("slack", credentials.slack_token):
        tool_sets.append(SlackTools(
            SlackClient(credentials.slack_token, base_url=settings.slack_api_base_url, **common)
        ))
    if enabled("azure", credentials.azure_token):
        tool_sets.append(AzureTools(
            AzureClient(credentials.azure_token, base_url=settings.graph_api_base_url, **common),
            timezone=settings.timezone,
        ))
    if enabled("atlassian", credentials.atlassian_token):
        tool_sets.append(AtlassianTools(
            AtlassianClient(
                credentials.atlassian_token,
                base_url=settings.atlassian_api_base_url,
                cloud_id=credentials.atlassian_cloud_id,
                **common,
            )
        ))
    if enabled("github", credentials.github_token):
        tool_sets.append(GitHubTools(
            GitHubClient(credentials.github_token, base_url=settings.github_api_base_url, **common)
        ))

    tool_sets.append(CombinedTools(list(tool_sets)))
    logger.info(f"Enabled platforms: {', '.join(t.platform for t in tool_sets[:-1]) or 'none'}")
    return tool_sets
