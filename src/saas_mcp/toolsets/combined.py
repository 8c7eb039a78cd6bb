"""Cross-platform activity summary."""
import asyncio
import logging
from typing import Sequence

from .. import formatters
from ..registry import Tool, ToolSet
from ..schemas import LatestActivityArgs
from .common import failure_text

logger = logging.getLogger("saas-mcp.toolsets.combined")


class CombinedTools(ToolSet):
    """Fans ``all_platforms__get_latest_activity`` out to each platform's latest-activity tool."""

    platform = "All platforms"

    def __init__(self, tool_sets: Sequence[ToolSet]):
        self.tool_sets = [t for t in tool_sets if t.latest_activity_tool]
        super().__init__()

    def _build_tools(self) -> list[Tool]:
        return [
            Tool(
                name="all_platforms__get_latest_activity",
                description="Get latest activity from all connected platforms (Slack messages, Azure "
                            "emails/calendar, Atlassian activity) for the current user",
                args_model=LatestActivityArgs,
                handler=self.get_latest_activity,
            ),
        ]

    async def get_latest_activity(self, args: LatestActivityArgs) -> str:
        targets = []
        for tool_set in self.tool_sets:
            tool = tool_set.get(tool_set.latest_activity_tool)
            if tool is not None:
                targets.append((tool_set.platform, tool))

        if not targets:
            return formatters.NO_PLATFORMS

        # Every platform settles independently; output follows registration order
        results = await asyncio.gather(
            *(tool.invoke({"days": args.days}) for _, tool in targets),
            return_exceptions=True,
        )

        sections = [f"=== LATEST ACTIVITY FROM ALL PLATFORMS (Last {args.days} days) ==="]
        for (platform, _), result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning(f"{platform} activity failed: {type(result).__name__}: {result}")
                result = failure_text(result)
            sections.append(f"=== {platform.upper()} ===\n{result.strip()}")
        return "\n\n".join(sections)
