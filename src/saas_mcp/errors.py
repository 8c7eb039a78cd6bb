"""Exceptions shared by tool handlers and transports."""


class ToolError(Exception):
    """Raised by a tool handler to report an expected failure.

    The message is already user-facing (``Error <doing what>: <reason>``) and
    is returned verbatim as an error response.
    """
    pass


class ToolInvocationError(Exception):
    """Raised by the HTTP transport when a tool call produced an error response."""
    pass
