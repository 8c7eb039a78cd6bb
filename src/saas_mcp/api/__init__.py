"""Streamable HTTP transport."""
