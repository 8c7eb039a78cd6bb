"""Pydantic schemas for API results, tool responses and tool arguments."""
from typing import Any, Generic, Literal, Optional, TypeVar

from mcp.types import CallToolResult, TextContent
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

T = TypeVar("T")


# Envelopes

class ApiResponse(BaseModel, Generic[T]):
    """Result of one platform client call.

    Either ``success=True`` with ``data`` or ``success=False`` with ``error``.
    Client methods return this instead of raising for expected failures.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def check_envelope(self) -> "ApiResponse[T]":
        if self.success:
            if self.data is None:
                raise ValueError("data is required when success is true")
            if self.error is not None:
                raise ValueError("error must be empty when success is true")
        else:
            if self.data is not None:
                raise ValueError("data must be empty when success is false")
            if not self.error:
                raise ValueError("error is required when success is false")
        return self

    @classmethod
    def ok(cls, data: Any) -> "ApiResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ApiResponse":
        return cls(success=False, error=error)


class ToolResponse(BaseModel):
    """Transport-neutral tool result: one text block plus an optional error flag."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent]
    is_error: Optional[bool] = Field(None, alias="isError")

    @field_validator("content")
    @classmethod
    def single_text_block(cls, value: list[TextContent]) -> list[TextContent]:
        if len(value) != 1:
            raise ValueError("a tool response carries exactly one text block")
        return value

    @property
    def text(self) -> str:
        return self.content[0].text

    def to_call_tool_result(self) -> CallToolResult:
        return CallToolResult(content=list(self.content), isError=bool(self.is_error))

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def text_response(text: str) -> ToolResponse:
    return ToolResponse(content=[TextContent(type="text", text=text)])


def error_response(text: str) -> ToolResponse:
    return ToolResponse(content=[TextContent(type="text", text=text)], is_error=True)


class ToolDefinition(BaseModel):
    """What a transport advertises for one tool on a list request."""

    name: str
    description: str
    inputSchema: dict[str, Any] = Field(default_factory=dict)


class PlatformCredentials(BaseModel):
    """Access tokens for one user session, as supplied by the OAuth layer."""

    slack_token: Optional[str] = None
    azure_token: Optional[str] = None
    atlassian_token: Optional[str] = None
    github_token: Optional[str] = None
    atlassian_cloud_id: Optional[str] = None

    @classmethod
    def from_settings(cls, settings) -> "PlatformCredentials":
        return cls(
            slack_token=settings.slack_token,
            azure_token=settings.azure_token,
            atlassian_token=settings.atlassian_token,
            github_token=settings.github_token,
            atlassian_cloud_id=settings.atlassian_cloud_id,
        )


# Normalised platform records

class AzureMessage(BaseModel):
    """Outlook message reduced to the fields the tools print."""

    id: str
    subject: str = ""
    body: str = ""
    sender: str = ""
    to_recipients: list[str] = Field(default_factory=list)
    received_date_time: str = ""
    importance: str = "normal"
    is_read: bool = False


class AzureCalendarEvent(BaseModel):
    """Calendar event reduced to the fields the tools print."""

    id: str
    subject: str = ""
    body: str = ""
    start: str = ""
    end: str = ""
    start_time_zone: str = "UTC"
    end_time_zone: str = "UTC"
    location: str = ""
    attendees: list[str] = Field(default_factory=list)
    organizer: str = ""
    importance: str = "normal"


# Tool arguments

class ToolArgs(BaseModel):
    """Base for tool argument models.

    Explicit nulls are dropped so that field defaults apply, and unknown keys
    are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# Slack

class ConversationsHistoryArgs(ToolArgs):
    channel_id: str = Field(..., description="Channel ID or name (e.g., #general)")
    limit: int = Field(10, description="Number of messages (default: 10)")
    cursor: Optional[str] = Field(None, description="Pagination cursor from a previous call")


class ConversationsRepliesArgs(ToolArgs):
    channel_id: str = Field(..., description="Channel ID or name (e.g., #general)")
    thread_ts: str = Field(..., description="Thread timestamp (e.g., 1234567890.123456)")
    limit: int = Field(10, description="Number of replies (default: 10)")


class ChannelsListArgs(ToolArgs):
    cursor: Optional[str] = Field(None, description="Pagination cursor")
    limit: int = Field(100, description="Number of channels (default: 100, max: 1000)")


class SearchMessagesArgs(ToolArgs):
    query: str = Field(
        ...,
        description="Search query text (keywords, phrases). Unquoted multi-word searches match messages "
                    "containing ANY of the words (OR logic), quoted phrases match exactly.",
    )
    count: int = Field(20, description="Number of results (default: 20, max: 100)")
    user: Optional[str] = Field(None, description="Only messages from this user (user ID or @name)")
    in_channel: Optional[str] = Field(None, description="Only messages in this channel (e.g., #general)")
    after_date: Optional[str] = Field(None, description="Filter messages after date (YYYY-MM-DD)")
    before_date: Optional[str] = Field(None, description="Filter messages before date (YYYY-MM-DD)")
    sort: Literal["score", "timestamp"] = Field("timestamp", description="Sort by relevance or time")
    sort_dir: Literal["asc", "desc"] = Field("desc", description="Sort direction")


class SlackLatestMessagesArgs(ToolArgs):
    days: int = Field(14, description="Number of days to look back (default: 14)")


# Azure

class LatestEmailsArgs(ToolArgs):
    days: int = Field(14, description="Number of days to look back (default: 14)")


class UpcomingCalendarArgs(ToolArgs):
    days: int = Field(7, description="Number of days to look ahead (default: 7)")


class SearchEmailArgs(ToolArgs):
    query: Optional[str] = Field(
        None,
        description="Search keyword to find in email content. If not provided, returns newest emails by time",
    )
    limit: int = Field(25, description="Number of emails to retrieve (default: 25)")


class CalendarEventsArgs(ToolArgs):
    limit: int = Field(10, description="Number of events to retrieve (default: 10)")
    start_time: Optional[str] = Field(None, description="Start time filter (ISO 8601 format)")
    end_time: Optional[str] = Field(None, description="End time filter (ISO 8601 format)")


class EmailContentArgs(ToolArgs):
    message_id: str = Field(
        ..., alias="messageId", description="The message ID of the email to retrieve full content for"
    )


class EmailsAndCalendarArgs(ToolArgs):
    days: int = Field(7, description="Number of days to look back for email and ahead for events (default: 7)")


# Atlassian

class SearchJiraIssuesArgs(ToolArgs):
    jql: str = Field(
        ...,
        description='JQL query to search for issues (e.g., "assignee = currentUser() AND status != Done")',
    )
    max_results: int = Field(
        10, alias="maxResults", description="Maximum number of results to return (default: 10, max: 100)"
    )
    next_page_token: Optional[str] = Field(
        None, alias="nextPageToken", description="Token from a previous call to fetch the next page"
    )


class JiraLatestIssuesArgs(ToolArgs):
    days: int = Field(14, description="Number of days to look back (default: 14)")


class SearchConfluencePagesArgs(ToolArgs):
    query: Optional[str] = Field(None, description="Search query for page titles or content (simple text search)")
    cql: Optional[str] = Field(
        None, description='Advanced CQL query (e.g., "type=page AND space=PROJ AND title ~ \\"search term\\"")'
    )
    space: Optional[str] = Field(None, description='Filter results to specific space key (e.g., "PROJ")')
    type: Optional[Literal["page", "blogpost", "attachment"]] = Field(None, description="Content type filter")
    max_results: int = Field(10, alias="maxResults", description="Maximum number of results to return (default: 10)")


class SearchConfluenceSpacesArgs(ToolArgs):
    query: str = Field(..., description="Search query for space names or keys")
    max_results: int = Field(10, alias="maxResults", description="Maximum number of results to return (default: 10)")


class ConfluenceLatestPagesArgs(ToolArgs):
    days: int = Field(14, description="Number of days to look back (default: 14)")
    max_results: int = Field(10, alias="maxResults", description="Maximum number of results to return (default: 10)")
    include_user_mentions: bool = Field(
        True,
        alias="includeUserMentions",
        description="Only pages where the current user is mentioned or is the creator (default: true)",
    )
    include_archived: bool = Field(
        False, alias="includeArchived", description="Include content from archived spaces (default: false)"
    )


class AtlassianLatestActivityArgs(ToolArgs):
    days: int = Field(14, description="Number of days to look back (default: 14)")


# GitHub

class GitHubSearchArgs(ToolArgs):
    query: str = Field(..., description="Search query keywords")
    max_results: int = Field(
        10, alias="maxResults", description="Maximum number of results to return (1-100, default: 10)"
    )


class FileContentArgs(ToolArgs):
    owner: str = Field(..., description="Repository owner (username or organization)")
    repo: str = Field(..., description="Repository name")
    path: str = Field(..., description="File path within the repository")
    ref: Optional[str] = Field(None, description="Branch, tag, or commit SHA (default: default branch)")


class RepositoryTreeArgs(ToolArgs):
    owner: str = Field(..., description="Repository owner (username or organization)")
    repo: str = Field(..., description="Repository name")
    ref: Optional[str] = Field(None, description="Branch, tag, or commit SHA (default: default branch)")
    recursive: bool = Field(
        False, description="Get full recursive tree structure (default: false, shows top level only)"
    )


# All platforms

class LatestActivityArgs(ToolArgs):
    days: int = Field(7, description="Number of days to look back for activity (default: 7)")
