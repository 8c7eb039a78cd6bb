"""SaaS MCP stdio server - one user's platforms over a long-lived stdio session.

Tokens come from the environment (see config.Settings). Tool results are
returned as-is, including the in-band ``isError`` flag.
"""
import argparse
import asyncio
import logging
from typing import Optional, Sequence

import httpx
from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from . import registry
from .config import Settings, configure_logging, get_settings
from .schemas import PlatformCredentials

logger = logging.getLogger("saas-mcp")

PLATFORMS = ("slack", "azure", "atlassian", "github")


def create_server(tools: Sequence[registry.Tool]) -> Server:
    """Low-level MCP server exposing ``tools``."""
    server = Server("saas-mcp")

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return registry.to_mcp_tools(tools)

    # Registered directly so the registry's response, isError included,
    # reaches the client without the SDK's own result conversion.
    async def call_tool(request: types.CallToolRequest) -> types.ServerResult:
        response = await registry.execute(tools, request.params.name, request.params.arguments or {})
        return types.ServerResult(response.to_call_tool_result())

    server.request_handlers[types.CallToolRequest] = call_tool
    return server


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="saas-mcp-stdio", description="Run the SaaS MCP server over stdio.")
    parser.add_argument(
        "--platform",
        action="append",
        choices=PLATFORMS,
        help="Only expose this platform (repeatable). Defaults to every platform with a token.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser.parse_args(argv)


async def serve(settings: Settings, platforms: Optional[Sequence[str]] = None) -> None:
    credentials = PlatformCredentials.from_settings(settings)
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http_client:
        tool_sets = registry.build_tool_sets(credentials, settings, http_client=http_client, platforms=platforms)
        tools = registry.collect_tools(tool_sets)
        logger.info(f"MCP stdio server starting with {len(tools)} tools")

        server = create_server(tools)
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())


def run(argv: Optional[Sequence[str]] = None) -> None:
    """Console entry point."""
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)
    asyncio.run(serve(settings, args.platform))


if __name__ == "__main__":
    run()
