"""SaaS MCP streamable HTTP server (FastAPI).

Stateless: every request builds the caller's tool sets from the platform
tokens in its cookies (set by the OAuth layer) or ``X-<Platform>-Token``
headers. Tool errors are raised so the MCP SDK reports them as failed calls.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from mcp.server import Server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from mcp.types import TextContent

from .. import __version__, registry
from ..config import Settings, configure_logging, get_settings
from ..errors import ToolInvocationError
from ..schemas import PlatformCredentials

logger = logging.getLogger("saas-mcp.http")


def credentials_from_request(request: Request, settings: Settings) -> PlatformCredentials:
    """Platform tokens for one request. Cookies win over headers."""
    tokens = {}
    for platform, cookie_name in settings.token_cookie_names.items():
        tokens[f"{platform}_token"] = request.cookies.get(cookie_name) or request.headers.get(f"x-{platform}-token")
    return PlatformCredentials(**tokens, atlassian_cloud_id=request.headers.get("x-atlassian-cloud-id"))


async def call_tool_over_http(
    settings: Settings,
    credentials: PlatformCredentials,
    name: str,
    arguments: Optional[dict[str, Any]],
) -> list[TextContent]:
    """Execute a tool for one request. An error response becomes ToolInvocationError."""
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http_client:
        tools = registry.collect_tools(registry.build_tool_sets(credentials, settings, http_client=http_client))
        response = await registry.execute(tools, name, arguments or {})

    if response.is_error:
        raise ToolInvocationError(response.text)
    return list(response.content)


def create_mcp_server(settings: Settings) -> Server:
    server = Server("saas-mcp")

    def current_credentials() -> PlatformCredentials:
        try:
            request = server.request_context.request
        except LookupError:
            request = None
        if request is None:
            return PlatformCredentials()
        return credentials_from_request(request, settings)

    @server.list_tools()
    async def list_tools():
        tool_sets = registry.build_tool_sets(current_credentials(), settings)
        return registry.to_mcp_tools(registry.collect_tools(tool_sets))

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        return await call_tool_over_http(settings, current_credentials(), name, arguments)

    return server


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    session_manager = StreamableHTTPSessionManager(
        app=create_mcp_server(settings),
        event_store=None,
        json_response=True,
        stateless=True,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with session_manager.run():
            logger.info("MCP streamable HTTP endpoint ready at /mcp")
            yield

    app = FastAPI(
        title="SaaS MCP Server",
        description="Slack, Azure, Atlassian and GitHub tools over MCP",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Mcp-Session-Id"],
    )

    @app.get("/")
    def root():
        """Root endpoint with server info."""
        return {
            "name": "SaaS MCP Server",
            "version": __version__,
            "mcp_endpoint": "/mcp",
            "transport": "streamable-http",
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    async def handle_mcp(scope, receive, send):
        await session_manager.handle_request(scope, receive, send)

    app.mount("/mcp", handle_mcp)
    return app


def run() -> None:
    """Console entry point."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(f"Starting SaaS MCP HTTP server on {settings.host}:{settings.port}")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
