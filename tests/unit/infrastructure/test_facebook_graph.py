"""Unit tests for the Graph API client."""

import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from app.core.exceptions import ErrorKind, FacebookAPIError
from app.infrastructure.facebook_graph import (
    AUTH_REMEDIATION,
    FacebookGraphAPI,
    classify_graph_error,
)
from app.infrastructure.http_client import HTTPClient


def make_graph(handler, **kwargs) -> FacebookGraphAPI:
    client = HTTPClient(transport=httpx.MockTransport(handler))
    return FacebookGraphAPI(client, graph_version="v20.0", retry_base_delay=0.0, **kwargs)


def graph_error(code: int, message: str, status: int = 400, **extra) -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": code, "message": message, **extra}})


class TestClassifyGraphError:
    """Tests for Graph error classification."""

    @pytest.mark.parametrize(
        "code,subcode,message,expected",
        [
            (190, None, "Error validating access token", ErrorKind.PLATFORM_AUTH_FAILURE),
            (200, None, "Permissions error", ErrorKind.PLATFORM_AUTH_FAILURE),
            (4, None, "Application request limit reached", ErrorKind.PLATFORM_QUOTA_OR_POLICY),
            (368, None, "Temporarily blocked", ErrorKind.PLATFORM_QUOTA_OR_POLICY),
            (351, None, "Error loading video", ErrorKind.PLATFORM_MEDIA_REJECTED),
            (100, 1363030, "Video upload timed out", ErrorKind.PLATFORM_MEDIA_REJECTED),
            (100, None, "The video file is corrupt", ErrorKind.PLATFORM_MEDIA_REJECTED),
            (1, None, "An unknown error occurred", ErrorKind.UNKNOWN),
        ],
    )
    def test_codes(self, code, subcode, message, expected):
        """Test classification by code, subcode and message."""
        assert classify_graph_error(code, subcode, message) == expected

    def test_oauth_type_is_auth_failure(self):
        """Test OAuthException without a known code."""
        kind = classify_graph_error(1, None, "Session expired", error_type="OAuthException")
        assert kind == ErrorKind.PLATFORM_AUTH_FAILURE

    def test_http_429_is_quota(self):
        """Test rate limit status without a payload."""
        assert classify_graph_error(None, None, "", status_code=429) == (
            ErrorKind.PLATFORM_QUOTA_OR_POLICY
        )


class TestGraphUrls:
    """Tests for versioned base URLs."""

    def test_both_hosts_share_version(self):
        """Test graph and graph-video use the same pinned version."""
        graph = make_graph(lambda request: httpx.Response(200, json={}))
        assert graph.graph_url == "https://graph.facebook.com/v20.0"
        assert graph.video_url == "https://graph-video.facebook.com/v20.0"

    @pytest.mark.asyncio
    async def test_get_sends_token_and_params(self):
        """Test GET query parameters."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            return httpx.Response(200, json={"id": "123", "name": "Page"})

        graph = make_graph(handler)
        payload = await graph.get("123", "tok", params={"fields": "id,name"})

        assert payload == {"id": "123", "name": "Page"}
        assert seen["url"].host == "graph.facebook.com"
        assert seen["url"].path == "/v20.0/123"
        assert seen["url"].params["access_token"] == "tok"
        assert seen["url"].params["fields"] == "id,name"

    @pytest.mark.asyncio
    async def test_post_video_host_and_form_values(self):
        """Test booleans and ints are form-encoded and None is dropped."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["host"] = request.url.host
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"id": "v1"})

        graph = make_graph(handler)
        await graph.post(
            "123/videos",
            "tok",
            data={"published": True, "file_size": 42, "title": None},
            video=True,
        )

        assert seen["host"] == "graph-video.facebook.com"
        assert seen["form"]["published"] == ["true"]
        assert seen["form"]["file_size"] == ["42"]
        assert seen["form"]["access_token"] == ["tok"]
        assert "title" not in seen["form"]


class TestGraphErrors:
    """Tests for error payload translation."""

    @pytest.mark.asyncio
    async def test_auth_error_has_remediation(self):
        """Test expired tokens carry the remediation checklist."""
        graph = make_graph(
            lambda request: graph_error(190, "Error validating access token", type="OAuthException")
        )

        with pytest.raises(FacebookAPIError) as exc_info:
            await graph.get("me", "tok")

        error = exc_info.value
        assert error.kind == ErrorKind.PLATFORM_AUTH_FAILURE
        assert error.code == 190
        assert error.platform_message == "Error validating access token"
        assert error.remediation == AUTH_REMEDIATION
        assert error.recoverable is False

    @pytest.mark.asyncio
    async def test_user_message_preferred(self):
        """Test error_user_msg is used as the platform message."""
        graph = make_graph(
            lambda request: graph_error(
                100, "Invalid parameter", error_user_msg="Your video could not be processed"
            )
        )

        with pytest.raises(FacebookAPIError) as exc_info:
            await graph.post("123/videos", "tok")

        assert exc_info.value.platform_message == "Your video could not be processed"
        assert exc_info.value.kind == ErrorKind.PLATFORM_MEDIA_REJECTED

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        """Test an HTML error page becomes a FacebookAPIError."""
        graph = make_graph(lambda request: httpx.Response(403, text="<html>Forbidden</html>"))

        with pytest.raises(FacebookAPIError) as exc_info:
            await graph.get("123", "tok")

        assert exc_info.value.status_code == 403
        assert exc_info.value.kind == ErrorKind.PLATFORM_AUTH_FAILURE

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Test connection failures are wrapped."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        graph = make_graph(handler)
        with pytest.raises(FacebookAPIError) as exc_info:
            await graph.get("123", "tok")
        assert exc_info.value.kind == ErrorKind.UNKNOWN


class TestGraphRetriesAndTimeouts:
    """Tests for retry and timeout behavior."""

    @pytest.mark.asyncio
    async def test_post_retries_5xx_when_allowed(self):
        """Test transient errors are retried for retry=True calls."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json={"start_offset": "10"})

        graph = make_graph(handler)
        payload = await graph.post("123/videos", "tok", video=True, retry=True)

        assert payload == {"start_offset": "10"}
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_post_does_not_retry_by_default(self):
        """Test non-idempotent posts are sent once."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        graph = make_graph(handler)
        with pytest.raises(FacebookAPIError) as exc_info:
            await graph.post("123/feed", "tok", data={"message": "hi"})

        assert len(calls) == 1
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self):
        """Test retrying stops after max_retries."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500, text="boom")

        graph = make_graph(handler, max_retries=2)
        with pytest.raises(FacebookAPIError):
            await graph.get("123", "tok")
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_timeout_marks_error(self):
        """Test a call slower than its timeout is abandoned."""

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={})

        graph = make_graph(handler)
        with pytest.raises(FacebookAPIError) as exc_info:
            await graph.post("123/videos", "tok", video=True, timeout=0.05)

        assert exc_info.value.timed_out is True
        assert "timed out" in str(exc_info.value)
