"""Tests for platform client response normalisation."""
import asyncio
import base64

import httpx
import pytest

from saas_mcp.clients import AtlassianClient, AzureClient, GitHubClient, SlackClient
from saas_mcp.clients.atlassian import build_confluence_cql
from saas_mcp.clients.slack import is_message_unread
from saas_mcp.retry import RetryPolicy


class TestPlatformClient:
    """Shared behaviour, exercised through the GitHub client."""

    @pytest.mark.asyncio
    async def test_success_returns_parsed_body(self, fake_api):
        """Test that a 2xx response becomes a successful envelope with the parsed body."""
        payload = {"total_count": 1, "incomplete_results": False, "items": [{"id": 1, "title": "x"}]}
        http, api = fake_api({("GET", "/search/issues"): (200, payload)})
        client = GitHubClient("tok", http_client=http)

        result = await client.search_issues("bug", per_page=5)

        assert result.success is True
        assert result.data == payload
        assert result.error is None
        request = api.requests[0]
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.params["q"] == "bug"
        assert request.url.params["per_page"] == "5"
        assert "page" not in request.url.params

    @pytest.mark.asyncio
    async def test_non_2xx_includes_status(self, fake_api):
        """Test that a non-2xx response fails with the status and body."""
        http, _ = fake_api({("GET", "/search/issues"): (403, "rate limited")})
        client = GitHubClient("tok", http_client=http)

        result = await client.search_issues("bug")

        assert result.success is False
        assert result.data is None
        assert result.error == "Failed to search issues: 403 rate limited"

    @pytest.mark.asyncio
    async def test_transport_error_is_captured(self):
        """Test that a network error is returned, not raised."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = GitHubClient("tok", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        result = await client.search_issues("bug")

        assert result.success is False
        assert result.error == "Error while trying to search issues: connection refused"

    @pytest.mark.asyncio
    async def test_invalid_json_is_captured(self, fake_api):
        """Test that a non-JSON body fails the call."""
        http, _ = fake_api({("GET", "/search/issues"): (200, "<html>oops</html>")})
        client = GitHubClient("tok", http_client=http)

        result = await client.search_issues("bug")

        assert result.success is False
        assert result.error.startswith("Error while trying to search issues: invalid JSON response")

    def test_empty_token_is_rejected(self):
        """Test that a client cannot be built without a token."""
        with pytest.raises(ValueError):
            GitHubClient("")

    @pytest.mark.asyncio
    async def test_retry_policy_retries_transport_errors(self):
        """Test that an injected retry policy retries transport errors."""
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("flaky", request=request)
            return httpx.Response(200, json={"items": []})

        client = GitHubClient(
            "tok",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            retry_policy=RetryPolicy(max_attempts=3, base_delay_s=0),
        )

        result = await client.search_issues("bug")

        assert result.success is True
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_default_policy_does_not_retry(self):
        """Test that the default policy makes a single attempt."""
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ReadTimeout("slow", request=request)

        client = GitHubClient("tok", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        result = await client.search_issues("bug")

        assert result.success is False
        assert len(attempts) == 1


class TestSlackClient:
    """Test the Slack Web API client."""

    @pytest.mark.asyncio
    async def test_ok_false_becomes_failure(self, fake_api):
        """Test that ok=false in a 200 response becomes a failure."""
        http, _ = fake_api({("GET", "/api/search.messages"): (200, {"ok": False, "error": "invalid_auth"})})
        client = SlackClient("xoxp", http_client=http)

        result = await client.search_messages("hello")

        assert result.success is False
        assert result.error == "Failed to search messages: invalid_auth"

    @pytest.mark.asyncio
    async def test_cursor_is_forwarded_verbatim(self, fake_api):
        """Test that pagination cursors pass through untouched."""
        cursor = "dXNlcjpVMEc5V0ZYTlo=&x"
        http, api = fake_api({
            ("GET", "/api/conversations.list"): (200, {
                "ok": True,
                "channels": [{"id": "C1", "name": "general"}],
                "response_metadata": {"next_cursor": "bmV4dA=="},
            }),
        })
        client = SlackClient("xoxp", http_client=http)

        first = await client.get_channels(limit=1)
        second = await client.get_channels(cursor=cursor, limit=1)

        assert first.data["next_cursor"] == "bmV4dA=="
        assert second.success is True
        assert "cursor" not in api.requests[0].url.params
        assert api.requests[1].url.params["cursor"] == cursor

    @pytest.mark.asyncio
    async def test_history_resolves_channel_name_and_marks_unread(self, fake_api):
        """Test channel name resolution, subtype filtering and unread marking."""
        http, api = fake_api({
            ("GET", "/api/conversations.list"): (200, {"ok": True, "channels": [{"id": "C1", "name": "general"}]}),
            ("GET", "/api/conversations.history"): (200, {
                "ok": True,
                "messages": [
                    {"ts": "2.0", "text": "hi", "user": "U1"},
                    {"ts": "1.5", "subtype": "channel_join", "text": "joined"},
                    {"ts": "1.0", "text": "old", "user": "U2"},
                ],
            }),
            ("GET", "/api/conversations.info"): (200, {"ok": True, "channel": {"last_read": "1.0"}}),
        })
        client = SlackClient("xoxp", http_client=http)

        result = await client.get_conversation_history("#general")

        assert result.success is True
        assert [m["text"] for m in result.data["messages"]] == ["hi", "old"]
        assert [m["isUnread"] for m in result.data["messages"]] == [True, False]
        assert api.calls("/api/conversations.history")[0].url.params["channel"] == "C1"

    @pytest.mark.asyncio
    async def test_unknown_channel_name(self, fake_api):
        """Test that an unknown channel name fails."""
        http, _ = fake_api({("GET", "/api/conversations.list"): (200, {"ok": True, "channels": []})})
        client = SlackClient("xoxp", http_client=http)

        result = await client.get_conversation_history("#nope")

        assert result.success is False
        assert result.error == "Channel #nope not found"

    @pytest.mark.asyncio
    async def test_search_ignores_failed_channel_info(self, fake_api):
        """Test that a failed channel lookup leaves matches unread."""
        http, _ = fake_api({
            ("GET", "/api/search.messages"): (200, {
                "ok": True,
                "messages": {"matches": [{"ts": "5.0", "text": "x", "channel": {"id": "C9", "name": "ops"}}]},
            }),
            ("GET", "/api/conversations.info"): (200, {"ok": False, "error": "channel_not_found"}),
        })
        client = SlackClient("xoxp", http_client=http)

        result = await client.search_messages("x")

        assert result.success is True
        assert result.data[0]["isUnread"] is True

    def test_is_message_unread(self):
        """Test the unread comparison against last_read."""
        assert is_message_unread("2.0", None) is True
        assert is_message_unread("2.0", "1.0") is True
        assert is_message_unread("1.0", "2.0") is False
        assert is_message_unread("abc", "1.0") is True


class TestAzureClient:
    """Test the Microsoft Graph client."""

    @pytest.mark.asyncio
    async def test_message_titles_are_normalised(self, fake_api):
        """Test that Graph messages are normalised without bodies."""
        http, api = fake_api({
            ("GET", "/v1.0/me/messages"): (200, {"value": [{
                "id": "m1",
                "subject": "Hello",
                "from": {"emailAddress": {"address": "a@example.com"}},
                "toRecipients": [{"emailAddress": {"address": "b@example.com"}}],
                "receivedDateTime": "2024-01-01T00:00:00Z",
                "importance": "high",
                "isRead": True,
            }]}),
        })
        client = AzureClient("tok", http_client=http)

        result = await client.get_message_titles(filter="receivedDateTime ge 2024-01-01T00:00:00Z")

        message = result.data[0]
        assert message.sender == "a@example.com"
        assert message.to_recipients == ["b@example.com"]
        assert message.is_read is True
        assert message.body == ""
        params = api.requests[0].url.params
        assert params["$filter"] == "receivedDateTime ge 2024-01-01T00:00:00Z"
        assert "body" not in params["$select"]

    @pytest.mark.asyncio
    async def test_keyword_search_uses_search_api(self, fake_api):
        """Test that keyword search posts to the search API and reads hits."""
        http, api = fake_api({
            ("POST", "/v1.0/search/query"): (200, {"value": [{"hitsContainers": [{"hits": [{
                "hitId": "hit-1",
                "summary": "quarterly numbers",
                "resource": {"subject": "Q3", "from": {"emailAddress": {"address": "cfo@example.com"}}},
            }]}]}]}),
        })
        client = AzureClient("tok", http_client=http)

        result = await client.search_emails("numbers", limit=5)

        assert result.data[0].id == "hit-1"
        assert result.data[0].body == "quarterly numbers"
        request_body = api.body(api.requests[0])["requests"][0]
        assert request_body["entityTypes"] == ["message"]
        assert request_body["query"] == {"queryString": "numbers"}
        assert request_body["size"] == 5

    @pytest.mark.asyncio
    async def test_search_without_query_lists_newest(self, fake_api):
        """Test that search without a query lists the newest messages."""
        http, api = fake_api({("GET", "/v1.0/me/messages"): (200, {"value": []})})
        client = AzureClient("tok", http_client=http)

        result = await client.search_emails()

        assert result.data == []
        assert api.requests[0].url.params["$orderby"] == "receivedDateTime desc"

    @pytest.mark.asyncio
    async def test_calendar_window_selects_endpoint(self, fake_api):
        """Test that a full time window uses calendarView and otherwise events."""
        http, api = fake_api({
            ("GET", "/v1.0/me/calendarView"): (200, {"value": [{
                "id": "e1",
                "subject": "Standup",
                "start": {"dateTime": "2024-01-15T10:00:00.0000000", "timeZone": "UTC"},
                "end": {"dateTime": "2024-01-15T10:15:00.0000000", "timeZone": "UTC"},
                "attendees": [{"emailAddress": {"address": "x@example.com"}}],
                "organizer": {"emailAddress": {"address": "o@example.com"}},
            }]}),
            ("GET", "/v1.0/me/events"): (200, {"value": []}),
        })
        client = AzureClient("tok", http_client=http)

        windowed = await client.get_calendar_events(start_time="2024-01-15T00:00:00Z", end_time="2024-01-16T00:00:00Z")
        unbounded = await client.get_calendar_events(limit=3)

        event = windowed.data[0]
        assert event.start == "2024-01-15T10:00:00.0000000"
        assert event.attendees == ["x@example.com"]
        assert event.organizer == "o@example.com"
        assert api.calls("/v1.0/me/calendarView")[0].url.params["startDateTime"] == "2024-01-15T00:00:00Z"
        assert unbounded.data == []
        assert api.calls("/v1.0/me/events")[0].url.params["$top"] == "3"


class TestAtlassianClient:
    """Test the Jira and Confluence client."""

    RESOURCES = ("GET", "/oauth/token/accessible-resources")

    @pytest.mark.asyncio
    async def test_cloud_id_resolved_once_for_concurrent_calls(self, fake_api):
        """Test that concurrent first calls share one cloud id lookup."""
        http, api = fake_api({
            self.RESOURCES: (200, [{"id": "cloud-1", "name": "Acme"}, {"id": "cloud-2", "name": "Other"}]),
            ("POST", "/ex/jira/cloud-1/rest/api/3/search/jql"): (200, {"issues": []}),
        })
        client = AtlassianClient("tok", http_client=http)

        results = await asyncio.gather(*(client.search_jira_issues("project = X") for _ in range(3)))

        assert all(r.success for r in results)
        assert client.cloud_id == "cloud-1"
        assert len(api.calls("/oauth/token/accessible-resources")) == 1
        assert len(api.calls("/ex/jira/cloud-1/rest/api/3/search/jql")) == 3

    @pytest.mark.asyncio
    async def test_no_resources(self, fake_api):
        """Test that an empty resource list fails with a clear message."""
        http, _ = fake_api({self.RESOURCES: (200, [])})
        client = AtlassianClient("tok", http_client=http)

        result = await client.search_jira_issues("project = X")

        assert result.success is False
        assert result.error == "No accessible Atlassian resources found"

    @pytest.mark.asyncio
    async def test_resource_lookup_failure_propagates(self, fake_api):
        """Test that a failed resource lookup fails the call."""
        http, _ = fake_api({self.RESOURCES: (401, "unauthorized")})
        client = AtlassianClient("tok", http_client=http)

        result = await client.search_confluence_spaces("eng")

        assert result.success is False
        assert "401" in result.error

    @pytest.mark.asyncio
    async def test_preseeded_cloud_id_skips_lookup(self, fake_api):
        """Test that a known cloud id skips the resource lookup."""
        http, api = fake_api({("POST", "/ex/jira/abc/rest/api/3/search/jql"): (200, {"issues": []})})
        client = AtlassianClient("tok", http_client=http, cloud_id="abc")

        await client.search_jira_issues("project = X", next_page_token="tok-2")

        assert api.calls("/oauth/token/accessible-resources") == []
        body = api.body(api.requests[0])
        assert body["nextPageToken"] == "tok-2"
        assert "parent" in body["fields"]

    @pytest.mark.asyncio
    async def test_raw_cql_wins_over_filters(self, fake_api):
        """Test that raw CQL takes precedence over structured filters."""
        http, api = fake_api({("GET", "/ex/confluence/abc/wiki/rest/api/search"): (200, {"results": []})})
        client = AtlassianClient("tok", http_client=http, cloud_id="abc")

        await client.search_confluence_content(query="ignored", cql="type = blogpost", include_archived=True)

        params = api.requests[0].url.params
        assert params["cql"] == "type = blogpost"
        assert params["includeArchivedSpaces"] == "true"

    @pytest.mark.asyncio
    async def test_spaces_are_filtered_by_name_or_key(self, fake_api):
        """Test that spaces are filtered case-insensitively on name or key."""
        http, _ = fake_api({("GET", "/ex/confluence/abc/wiki/rest/api/space"): (200, {
            "results": [{"key": "ENG", "name": "Engineering"}, {"key": "HR", "name": "People"}],
            "size": 2,
        })})
        client = AtlassianClient("tok", http_client=http, cloud_id="abc")

        result = await client.search_confluence_spaces("eng")

        assert [s["key"] for s in result.data["results"]] == ["ENG"]
        assert result.data["size"] == 1

    def test_cql_defaults_to_pages(self):
        """Test that CQL with no filters searches pages."""
        assert build_confluence_cql() == "type = page"

    def test_cql_combines_filters(self):
        """Test that CQL filters are combined and quotes escaped."""
        cql = build_confluence_cql('say "hi"', "ENG", "blogpost")
        assert cql == 'type = blogpost AND space = "ENG" AND (title ~ "say \\"hi\\"" OR text ~ "say \\"hi\\"")'


class TestGitHubClient:
    """Test the GitHub REST client."""

    @pytest.mark.asyncio
    async def test_file_content_is_decoded(self, fake_api):
        """Test that base64 file content is decoded."""
        encoded = base64.b64encode("print('hi')\n".encode()).decode()
        wrapped = encoded[:8] + "\n" + encoded[8:]
        http, api = fake_api({("GET", "/repos/octo/repo/contents/src/a.py"): (200, {
            "type": "file", "size": 12, "content": wrapped, "encoding": "base64",
        })})
        client = GitHubClient("tok", http_client=http)

        result = await client.get_file_content("octo", "repo", "src/a.py", ref="dev")

        assert result.data["content"] == "print('hi')\n"
        assert api.requests[0].url.params["ref"] == "dev"

    @pytest.mark.asyncio
    async def test_directory_is_not_a_file(self, fake_api):
        """Test that a directory path fails."""
        http, _ = fake_api({("GET", "/repos/octo/repo/contents/src"): (200, [{"type": "file", "name": "a.py"}])})
        client = GitHubClient("tok", http_client=http)

        result = await client.get_file_content("octo", "repo", "src")

        assert result.success is False
        assert result.error == "Path does not point to a file or content is not available"

    @pytest.mark.asyncio
    async def test_tree_defaults_to_head_and_keeps_truncated(self, fake_api):
        """Test that the tree defaults to HEAD and keeps the truncated flag."""
        http, api = fake_api({("GET", "/repos/octo/repo/git/trees/HEAD"): (200, {"tree": [], "truncated": True})})
        client = GitHubClient("tok", http_client=http)

        result = await client.get_repository_tree("octo", "repo", recursive=True)

        assert result.data["truncated"] is True
        assert api.requests[0].url.params["recursive"] == "1"

    @pytest.mark.asyncio
    async def test_code_search_requests_text_matches(self, fake_api):
        """Test that code search asks for text matches."""
        http, api = fake_api({("GET", "/search/code"): (200, {"total_count": 0, "items": []})})
        client = GitHubClient("tok", http_client=http)

        await client.search_code("foo")

        request = api.requests[0]
        assert request.headers["Accept"] == "application/vnd.github.text-match+json"
        assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"
