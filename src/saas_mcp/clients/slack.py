"""Slack Web API client."""
import asyncio
import logging
from typing import Any, Optional

from ..schemas import ApiResponse
from .base import PlatformClient

logger = logging.getLogger("saas-mcp.clients.slack")


def is_message_unread(message_ts: str, last_read: Optional[str]) -> bool:
    """A message is unread if it is newer than the channel's ``last_read`` mark.

    Missing or unparsable timestamps count as unread.
    """
    if not last_read:
        return True
    try:
        return float(message_ts) > float(last_read)
    except (TypeError, ValueError):
        return True


class SlackClient(PlatformClient):
    """Slack Web API client authenticated with a user token.

    Slack answers most failures with HTTP 200 and ``{"ok": false}``; those are
    folded into failed ApiResponses as well.
    """

    def __init__(self, access_token: str, *, base_url: str = "https://slack.com/api", **kwargs):
        super().__init__(access_token, base_url=base_url, **kwargs)
        self._channel_ids: dict[str, str] = {}
        self._last_read: dict[str, Optional[str]] = {}

    async def _call(self, method: str, *, operation: str, params: Optional[dict[str, Any]] = None) -> ApiResponse:
        result = await self._request("GET", method, operation=operation, params=params)
        if not result.success:
            return result
        if not isinstance(result.data, dict) or not result.data.get("ok"):
            error = result.data.get("error", "unknown_error") if isinstance(result.data, dict) else "invalid_response"
            logger.warning(f"Slack {method} returned ok=false: {error}")
            return ApiResponse.fail(f"Failed to {operation}: {error}")
        return result

    async def auth_test(self) -> ApiResponse:
        """Identify the token's user (``user_id``, ``user``)."""
        result = await self._call("auth.test", operation="get auth test info")
        if not result.success:
            return result
        if not result.data.get("user_id"):
            return ApiResponse.fail("Failed to get auth test info: no user_id in response")
        return ApiResponse.ok({"user_id": result.data["user_id"], "user": result.data.get("user", "")})

    async def get_channels(self, cursor: Optional[str] = None, limit: int = 100) -> ApiResponse:
        """List conversations the user can see. ``cursor`` is forwarded unchanged."""
        result = await self._call(
            "conversations.list",
            operation="fetch channels",
            params={
                "cursor": cursor,
                "limit": limit,
                "types": "public_channel,private_channel",
                "exclude_archived": "true",
            },
        )
        if not result.success:
            return result

        channels = result.data.get("channels") or []
        for channel in channels:
            if channel.get("name") and channel.get("id"):
                self._channel_ids[channel["name"]] = channel["id"]
        next_cursor = (result.data.get("response_metadata") or {}).get("next_cursor") or None
        return ApiResponse.ok({"channels": channels, "next_cursor": next_cursor})

    async def resolve_channel(self, channel: str) -> ApiResponse:
        """Map ``#name`` to a channel id; ids pass through."""
        if not channel.startswith("#"):
            return ApiResponse.ok(channel)
        name = channel[1:]
        if name not in self._channel_ids:
            listed = await self.get_channels()
            if not listed.success:
                return listed
        if name not in self._channel_ids:
            return ApiResponse.fail(f"Channel {channel} not found")
        return ApiResponse.ok(self._channel_ids[name])

    async def get_conversation_info(self, channel_id: str) -> ApiResponse:
        """Return ``{"last_read": ...}`` for a channel, remembered for this client."""
        if channel_id in self._last_read:
            return ApiResponse.ok({"last_read": self._last_read[channel_id]})
        result = await self._call(
            "conversations.info", operation="fetch conversation info", params={"channel": channel_id}
        )
        if not result.success:
            return result
        last_read = (result.data.get("channel") or {}).get("last_read")
        self._last_read[channel_id] = last_read
        return ApiResponse.ok({"last_read": last_read})

    async def get_conversation_history(
        self,
        channel: str,
        limit: int = 10,
        cursor: Optional[str] = None,
        oldest: Optional[str] = None,
        latest: Optional[str] = None,
    ) -> ApiResponse:
        """Regular messages of a channel, each annotated with ``isUnread``.

        Returns ``{"messages": [...], "next_cursor": ...}``.
        """
        resolved = await self.resolve_channel(channel)
        if not resolved.success:
            return resolved
        channel_id = resolved.data

        result = await self._call(
            "conversations.history",
            operation="fetch conversation history",
            params={
                "channel": channel_id,
                "limit": limit,
                "cursor": cursor,
                "oldest": oldest,
                "latest": latest,
                "inclusive": "false",
            },
        )
        if not result.success:
            return result

        info = await self.get_conversation_info(channel_id)
        last_read = info.data.get("last_read") if info.success else None

        messages = []
        for message in result.data.get("messages") or []:
            # Skip joins, topic changes and other system messages
            if message.get("subtype"):
                continue
            messages.append({
                **message,
                "text": message.get("text") or "",
                "isUnread": is_message_unread(message.get("ts", ""), last_read),
            })
        next_cursor = (result.data.get("response_metadata") or {}).get("next_cursor") or None
        return ApiResponse.ok({"messages": messages, "next_cursor": next_cursor})

    async def get_conversation_replies(
        self,
        channel: str,
        ts: str,
        limit: int = 10,
        cursor: Optional[str] = None,
    ) -> ApiResponse:
        """Regular messages of one thread, parent first."""
        resolved = await self.resolve_channel(channel)
        if not resolved.success:
            return resolved

        result = await self._call(
            "conversations.replies",
            operation="fetch conversation replies",
            params={"channel": resolved.data, "ts": ts, "limit": limit, "cursor": cursor, "inclusive": "true"},
        )
        if not result.success:
            return result

        messages = [
            {**message, "text": message.get("text") or ""}
            for message in (result.data.get("messages") or [])
            if not message.get("subtype")
        ]
        return ApiResponse.ok(messages)

    async def search_messages(
        self,
        query: str,
        count: int = 20,
        page: int = 1,
        sort: str = "timestamp",
        sort_dir: str = "desc",
    ) -> ApiResponse:
        """Search the workspace; each match is annotated with ``isUnread``."""
        result = await self._call(
            "search.messages",
            operation="search messages",
            params={"query": query, "count": count, "page": page, "sort": sort, "sort_dir": sort_dir},
        )
        if not result.success:
            return result

        matches = (result.data.get("messages") or {}).get("matches") or []
        channel_ids = list(dict.fromkeys(
            (match.get("channel") or {}).get("id") for match in matches if (match.get("channel") or {}).get("id")
        ))
        infos = await asyncio.gather(*(self.get_conversation_info(channel_id) for channel_id in channel_ids))
        # Channels whose info lookup failed are treated as fully unread
        last_read = {
            channel_id: info.data.get("last_read")
            for channel_id, info in zip(channel_ids, infos)
            if info.success
        }

        annotated = []
        for match in matches:
            channel_id = (match.get("channel") or {}).get("id", "")
            annotated.append({
                **match,
                "text": match.get("text") or "",
                "isUnread": is_message_unread(match.get("ts", ""), last_read.get(channel_id)),
            })
        return ApiResponse.ok(annotated)
