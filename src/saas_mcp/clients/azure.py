"""Microsoft Graph client for Outlook mail and calendar."""
import logging
from typing import Any, Optional

from ..schemas import ApiResponse, AzureCalendarEvent, AzureMessage
from .base import PlatformClient

logger = logging.getLogger("saas-mcp.clients.azure")

MESSAGE_FIELDS = "id,subject,from,toRecipients,receivedDateTime,importance,isRead"
MESSAGE_FIELDS_WITH_BODY = "id,subject,body,from,toRecipients,receivedDateTime,importance,isRead"
EVENT_FIELDS = "id,subject,start,end,location,recurrence,seriesMasterId,organizer,attendees,importance,body"


def _address(entry: Optional[dict]) -> str:
    return ((entry or {}).get("emailAddress") or {}).get("address") or ""


def parse_message(raw: dict[str, Any], *, message_id: Optional[str] = None, body: str = "") -> AzureMessage:
    """Normalise a Graph message resource."""
    return AzureMessage(
        id=message_id or raw.get("id", ""),
        subject=raw.get("subject") or "",
        body=body,
        sender=_address(raw.get("from")),
        to_recipients=[_address(r) for r in raw.get("toRecipients") or []],
        received_date_time=raw.get("receivedDateTime") or "",
        importance=raw.get("importance") or "normal",
        is_read=bool(raw.get("isRead")),
    )


def parse_event(raw: dict[str, Any]) -> AzureCalendarEvent:
    """Normalise a Graph event resource."""
    start = raw.get("start") or {}
    end = raw.get("end") or {}
    return AzureCalendarEvent(
        id=raw.get("id", ""),
        subject=raw.get("subject") or "",
        body=(raw.get("body") or {}).get("content") or "",
        start=start.get("dateTime") or "",
        end=end.get("dateTime") or "",
        start_time_zone=start.get("timeZone") or "UTC",
        end_time_zone=end.get("timeZone") or "UTC",
        location=(raw.get("location") or {}).get("displayName") or "",
        attendees=[_address(a) for a in raw.get("attendees") or []],
        organizer=_address(raw.get("organizer")),
        importance=raw.get("importance") or "normal",
    )


class AzureClient(PlatformClient):
    """Graph API client for the signed-in user's mailbox and calendar."""

    def __init__(self, access_token: str, *, base_url: str = "https://graph.microsoft.com/v1.0", **kwargs):
        super().__init__(access_token, base_url=base_url, **kwargs)

    async def get_profile(self) -> ApiResponse:
        result = await self._request("GET", "/me", operation="fetch profile")
        if not result.success:
            return result
        user = result.data
        return ApiResponse.ok({
            "id": user.get("id"),
            "displayName": user.get("displayName"),
            "userPrincipalName": user.get("userPrincipalName"),
            "mail": user.get("mail"),
            "jobTitle": user.get("jobTitle"),
            "department": user.get("department"),
            "officeLocation": user.get("officeLocation"),
        })

    async def get_message_titles(
        self,
        limit: Optional[int] = None,
        filter: Optional[str] = None,
        search: Optional[str] = None,
    ) -> ApiResponse:
        """Message headers without bodies; ``data`` is a list of AzureMessage."""
        result = await self._request(
            "GET",
            "/me/messages",
            operation="fetch messages",
            params={
                "$select": MESSAGE_FIELDS,
                "$top": limit,
                "$filter": filter,
                # Graph expects the $search value in double quotes
                "$search": f'"{search}"' if search else None,
            },
        )
        if not result.success:
            return result
        return ApiResponse.ok([parse_message(raw) for raw in (result.data.get("value") or [])])

    async def get_message_content(self, message_id: str) -> ApiResponse:
        """One message including its body."""
        result = await self._request(
            "GET",
            f"/me/messages/{message_id}",
            operation="fetch message content",
            params={"$select": MESSAGE_FIELDS_WITH_BODY},
        )
        if not result.success:
            return result
        raw = result.data
        return ApiResponse.ok(parse_message(raw, body=(raw.get("body") or {}).get("content") or ""))

    async def get_calendar_events(
        self,
        limit: Optional[int] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> ApiResponse:
        """Calendar events; expanded occurrences when a full time window is given."""
        params: dict[str, Any] = {"$select": EVENT_FIELDS, "$top": limit}
        if start_time and end_time:
            path = "/me/calendarView"
            params.update({"startDateTime": start_time, "endDateTime": end_time})
        else:
            # calendarView rejects requests without a window
            path = "/me/events"

        result = await self._request("GET", path, operation="fetch calendar events", params=params)
        if not result.success:
            return result
        return ApiResponse.ok([parse_event(raw) for raw in (result.data.get("value") or [])])

    async def search_emails(self, query: Optional[str] = None, limit: int = 25) -> ApiResponse:
        """Keyword search through the Graph search API, or newest messages without a query.

        Search hits carry the hit summary in ``body``.
        """
        if not query:
            result = await self._request(
                "GET",
                "/me/messages",
                operation="search emails",
                params={"$select": MESSAGE_FIELDS, "$orderby": "receivedDateTime desc", "$top": limit},
            )
            if not result.success:
                return result
            return ApiResponse.ok([parse_message(raw) for raw in (result.data.get("value") or [])])

        result = await self._request(
            "POST",
            "/search/query",
            operation="search emails",
            json_body={
                "requests": [{
                    "entityTypes": ["message"],
                    "query": {"queryString": query},
                    "from": 0,
                    "size": limit,
                }]
            },
        )
        if not result.success:
            return result

        responses = result.data.get("value") or []
        containers = responses[0].get("hitsContainers") if responses else None
        if not containers:
            logger.debug(f"Email search for {len(query)}-char query returned no hit containers")
            return ApiResponse.ok([])

        messages = [
            parse_message(hit.get("resource") or {}, message_id=hit.get("hitId"), body=hit.get("summary") or "")
            for hit in containers[0].get("hits") or []
        ]
        return ApiResponse.ok(messages)
