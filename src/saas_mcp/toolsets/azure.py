"""Outlook mail and calendar tools."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from .. import formatters
from ..clients import AzureClient
from ..errors import ToolError
from ..registry import Tool, ToolSet
from ..schemas import (
    AzureCalendarEvent,
    AzureMessage,
    CalendarEventsArgs,
    EmailContentArgs,
    EmailsAndCalendarArgs,
    LatestEmailsArgs,
    SearchEmailArgs,
    UpcomingCalendarArgs,
)
from .common import clamp, days_ago, gather_sections

logger = logging.getLogger("saas-mcp.toolsets.azure")

MESSAGE_HEADER = ["id", "subject", "from", "toRecipients", "receivedDateTime", "importance", "isRead"]
EVENT_HEADER = ["id", "subject", "start", "end", "location", "attendees", "organizer", "importance"]

GRAPH_MAX_TOP = 1000
GRAPH_MAX_SEARCH_SIZE = 500


def graph_timestamp(value: datetime) -> str:
    """UTC timestamp in the form Graph filters expect (``...T10:00:00.000Z``)."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class AzureTools(ToolSet):
    platform = "Azure"
    latest_activity_tool = "azure__get_emails_and_calendar"

    def __init__(self, client: AzureClient, timezone: Optional[str] = None):
        self.client = client
        self.timezone = timezone
        super().__init__()

    def _build_tools(self) -> list[Tool]:
        return [
            Tool(
                name="azure__get_latest_emails",
                description="Get latest emails from the last N days",
                args_model=LatestEmailsArgs,
                handler=self.get_latest_emails,
            ),
            Tool(
                name="azure__get_upcoming_calendar",
                description="Get upcoming calendar events for the next N days",
                args_model=UpcomingCalendarArgs,
                handler=self.get_upcoming_calendar,
            ),
            Tool(
                name="azure__search_email",
                description="Search emails by keyword or get newest emails by time (returns summaries only)",
                args_model=SearchEmailArgs,
                handler=self.search_email,
            ),
            Tool(
                name="azure__get_calendar_events",
                description="Get calendar events from Outlook/Exchange",
                args_model=CalendarEventsArgs,
                handler=self.get_calendar_events,
            ),
            Tool(
                name="azure__get_email_content",
                description="Get full content of a specific email by message ID",
                args_model=EmailContentArgs,
                handler=self.get_email_content,
            ),
            Tool(
                name="azure__get_emails_and_calendar",
                description="Get latest emails from the last N days and upcoming calendar events for the "
                            "next N days in one call",
                args_model=EmailsAndCalendarArgs,
                handler=self.get_emails_and_calendar,
            ),
        ]

    # Row builders

    def _format_time(self, value: str, source_tz: str) -> str:
        return formatters.format_graph_datetime(value, source_tz, self.timezone)

    @staticmethod
    def _message_row(message: AzureMessage) -> list:
        return [
            message.id,
            message.subject,
            message.sender,
            ";".join(message.to_recipients),
            message.received_date_time,
            message.importance,
            message.is_read,
        ]

    def _event_row(self, event: AzureCalendarEvent) -> list:
        return [
            event.id,
            event.subject,
            self._format_time(event.start, event.start_time_zone),
            self._format_time(event.end, event.end_time_zone),
            event.location,
            ";".join(event.attendees),
            event.organizer,
            event.importance,
        ]

    # Handlers

    async def get_latest_emails(self, args: LatestEmailsArgs) -> str:
        result = await self.client.get_message_titles(
            filter=f"receivedDateTime ge {graph_timestamp(days_ago(args.days))}"
        )
        if not result.success:
            raise ToolError(f"Error getting latest emails: {result.error}")
        return formatters.csv_table(MESSAGE_HEADER, [self._message_row(m) for m in result.data])

    async def get_upcoming_calendar(self, args: UpcomingCalendarArgs) -> str:
        now = datetime.now(timezone.utc)
        result = await self.client.get_calendar_events(
            start_time=graph_timestamp(now),
            end_time=graph_timestamp(now + timedelta(days=args.days)),
        )
        if not result.success:
            raise ToolError(f"Error getting upcoming events: {result.error}")
        return formatters.csv_table(EVENT_HEADER, [self._event_row(e) for e in result.data])

    async def search_email(self, args: SearchEmailArgs) -> str:
        result = await self.client.search_emails(
            query=args.query, limit=clamp(args.limit, 1, GRAPH_MAX_SEARCH_SIZE)
        )
        if not result.success:
            raise ToolError(f"Error searching emails: {result.error}")
        return formatters.csv_table(
            MESSAGE_HEADER + ["summary"],
            [self._message_row(m) + [m.body] for m in result.data],
        )

    async def get_calendar_events(self, args: CalendarEventsArgs) -> str:
        result = await self.client.get_calendar_events(
            limit=clamp(args.limit, 1, GRAPH_MAX_TOP), start_time=args.start_time, end_time=args.end_time
        )
        if not result.success:
            raise ToolError(f"Error fetching calendar events: {result.error}")
        return formatters.csv_table(
            EVENT_HEADER + ["body"],
            [self._event_row(e) + [e.body] for e in result.data],
        )

    async def get_email_content(self, args: EmailContentArgs) -> str:
        result = await self.client.get_message_content(args.message_id)
        if not result.success:
            raise ToolError(f"Error fetching email content: {result.error}")
        message = result.data
        return formatters.csv_table(MESSAGE_HEADER + ["body"], [self._message_row(message) + [message.body]])

    async def get_emails_and_calendar(self, args: EmailsAndCalendarArgs) -> str:
        return await gather_sections(
            [
                ("EMAILS", self.get_latest_emails(LatestEmailsArgs(days=args.days))),
                ("CALENDAR", self.get_upcoming_calendar(UpcomingCalendarArgs(days=args.days))),
            ],
            error_prefix="Error getting emails and calendar",
        )
