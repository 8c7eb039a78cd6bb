"""SaaS MCP Server - Model Context Protocol tools for SaaS platforms.

This package exposes Slack, Azure (Outlook/Graph), Atlassian (Jira/Confluence)
and GitHub as one uniform set of MCP tools, so an AI assistant can call them
interchangeably regardless of backend.

Modules:
- server: stdio MCP server implementation
- api: streamable HTTP MCP server (FastAPI)
- registry: tool registry and dispatch shared by both transports
- toolsets: per-platform tool definitions
- clients: per-platform REST API clients
- formatters: response formatting utilities
"""

__version__ = "1.0.0"

# Export shared modules for use by both transports
from . import formatters
from . import registry
from . import toolsets

__all__ = ["formatters", "registry", "toolsets", "__version__"]
