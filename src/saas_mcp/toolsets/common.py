"""Helpers shared by the platform tool sets."""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Sequence

from ..errors import ToolError

logger = logging.getLogger("saas-mcp.toolsets")


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def days_ago(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


def failure_text(exc: BaseException) -> str:
    """Text shown in place of a section whose call failed."""
    if isinstance(exc, ToolError):
        return str(exc)
    return f"Error: {exc}"


async def gather_sections(sections: Sequence[tuple[str, Awaitable[str]]], *, error_prefix: str) -> str:
    """Run the section calls concurrently and join them under ``## <title>`` headings.

    A failed section shows its error text. If every section fails, ToolError.
    """
    results = await asyncio.gather(*(call for _, call in sections), return_exceptions=True)

    failures = [r for r in results if isinstance(r, BaseException)]
    for failure in failures:
        if not isinstance(failure, ToolError):
            logger.error(f"Section failed unexpectedly: {type(failure).__name__}: {failure}")
    if failures and len(failures) == len(results):
        raise ToolError(f"{error_prefix}: " + "; ".join(failure_text(f) for f in failures))

    return "\n\n".join(
        f"## {title}\n\n{result if isinstance(result, str) else failure_text(result)}"
        for (title, _), result in zip(sections, results)
    )
