"""Slack tools."""
import asyncio
import logging
import re

from .. import formatters
from ..clients import SlackClient
from ..errors import ToolError
from ..registry import Tool, ToolSet
from ..schemas import (
    ChannelsListArgs,
    ConversationsHistoryArgs,
    ConversationsRepliesArgs,
    SearchMessagesArgs,
    SlackLatestMessagesArgs,
)
from .common import clamp, days_ago

logger = logging.getLogger("saas-mcp.toolsets.slack")

LATEST_PAGE_SIZE = 100
LATEST_MAX_PAGES = 10
LATEST_BATCH_SIZE = 5

SLACK_MAX_MESSAGES = 999
SLACK_MAX_CHANNELS = 1000
SLACK_MAX_SEARCH_COUNT = 100

_USER_ID = re.compile(r"^[UW][A-Z0-9]{2,}$")
_CHANNEL_ID = re.compile(r"^[CGD][A-Z0-9]{2,}$")


def build_search_query(args: SearchMessagesArgs) -> str:
    """Append Slack search modifiers for the optional filters."""
    parts = [args.query.strip()]
    if args.user:
        user = f"<@{args.user}>" if _USER_ID.match(args.user) else args.user
        parts.append(f"from:{user}")
    if args.in_channel:
        channel = args.in_channel
        if _CHANNEL_ID.match(channel):
            channel = f"<#{channel}>"
        elif not channel.startswith("#"):
            channel = f"#{channel}"
        parts.append(f"in:{channel}")
    if args.after_date:
        parts.append(f"after:{args.after_date}")
    if args.before_date:
        parts.append(f"before:{args.before_date}")
    return " ".join(p for p in parts if p)


def _ts(message: dict) -> float:
    try:
        return float(message.get("ts") or 0)
    except ValueError:
        return 0.0


class SlackTools(ToolSet):
    platform = "Slack"
    latest_activity_tool = "slack__get_latest_messages"

    def __init__(self, client: SlackClient):
        self.client = client
        super().__init__()

    def _build_tools(self) -> list[Tool]:
        return [
            Tool(
                name="slack__conversations_history",
                description="Get messages from a channel. Returns username, text, time and whether each "
                            "message is unread.",
                args_model=ConversationsHistoryArgs,
                handler=self.conversations_history,
            ),
            Tool(
                name="slack__conversations_replies",
                description="Get the replies of a message thread.",
                args_model=ConversationsRepliesArgs,
                handler=self.conversations_replies,
            ),
            Tool(
                name="slack__channels_list",
                description="List channels the user can see. Pass the returned cursor to get the next page.",
                args_model=ChannelsListArgs,
                handler=self.channels_list,
            ),
            Tool(
                name="slack__search_messages",
                description="Search messages across the workspace, optionally filtered by user, channel "
                            "and date range.",
                args_model=SearchMessagesArgs,
                handler=self.search_messages,
            ),
            Tool(
                name="slack__get_latest_messages",
                description="Get the user's latest messages from the last N days, grouped by channel "
                            "with unread markers.",
                args_model=SlackLatestMessagesArgs,
                handler=self.get_latest_messages,
            ),
        ]

    async def conversations_history(self, args: ConversationsHistoryArgs) -> str:
        result = await self.client.get_conversation_history(
            args.channel_id, limit=clamp(args.limit, 1, SLACK_MAX_MESSAGES), cursor=args.cursor
        )
        if not result.success:
            raise ToolError(f"Error fetching conversation history: {result.error}")

        rows = [
            [m.get("username") or m.get("user") or "", m["text"], m.get("ts", ""), m["isUnread"]]
            for m in result.data["messages"]
        ]
        text = formatters.csv_table(["username", "text", "time", "isUnread"], rows)
        if result.data["next_cursor"]:
            text += f"Next cursor: {result.data['next_cursor']}\n"
        return text

    async def conversations_replies(self, args: ConversationsRepliesArgs) -> str:
        result = await self.client.get_conversation_replies(
            args.channel_id, args.thread_ts, limit=clamp(args.limit, 1, SLACK_MAX_MESSAGES)
        )
        if not result.success:
            raise ToolError(f"Error fetching thread replies: {result.error}")

        rows = [
            [m.get("username") or m.get("user") or "", m["text"], m.get("ts", ""), m.get("thread_ts", "")]
            for m in result.data
        ]
        return formatters.csv_table(["username", "text", "time", "thread_ts"], rows)

    async def channels_list(self, args: ChannelsListArgs) -> str:
        result = await self.client.get_channels(
            cursor=args.cursor, limit=clamp(args.limit, 1, SLACK_MAX_CHANNELS)
        )
        if not result.success:
            raise ToolError(f"Error listing channels: {result.error}")

        rows = [
            [c.get("id", ""), c.get("name", ""), bool(c.get("is_private")), bool(c.get("is_member"))]
            for c in result.data["channels"]
        ]
        text = formatters.csv_table(["id", "name", "is_private", "is_member"], rows)
        if result.data["next_cursor"]:
            text += f"Next cursor: {result.data['next_cursor']}\n"
        return text

    async def search_messages(self, args: SearchMessagesArgs) -> str:
        result = await self.client.search_messages(
            build_search_query(args),
            count=clamp(args.count, 1, SLACK_MAX_SEARCH_COUNT),
            sort=args.sort,
            sort_dir=args.sort_dir,
        )
        if not result.success:
            raise ToolError(f"Error searching messages: {result.error}")

        rows = [
            [m.get("username") or m.get("user") or "", m["text"], m.get("ts", ""), (m.get("channel") or {}).get("name", "")]
            for m in result.data
        ]
        return formatters.csv_table(["userName", "text", "time", "channel"], rows)

    async def get_latest_messages(self, args: SlackLatestMessagesArgs) -> str:
        auth = await self.client.auth_test()
        if not auth.success:
            raise ToolError(f"Error getting user latest messages: {auth.error}")

        query = f"with:<@{auth.data['user_id']}> after:{days_ago(args.days).strftime('%Y-%m-%d')}"

        messages: list[dict] = []
        for batch_start in range(1, LATEST_MAX_PAGES + 1, LATEST_BATCH_SIZE):
            pages = range(batch_start, min(batch_start + LATEST_BATCH_SIZE, LATEST_MAX_PAGES + 1))
            results = await asyncio.gather(*(
                self.client.search_messages(query, count=LATEST_PAGE_SIZE, page=page) for page in pages
            ))

            done = False
            for result in results:
                if not result.success:
                    raise ToolError(f"Error getting user latest messages: {result.error}")
                messages.extend(result.data)
                if len(result.data) < LATEST_PAGE_SIZE:
                    done = True
                    break
            if done:
                break

        logger.info(f"Fetched {len(messages)} recent Slack messages")
        if not messages:
            return formatters.NO_SLACK_MESSAGES

        messages.sort(key=_ts, reverse=True)
        return formatters.format_messages_by_channel(messages)
