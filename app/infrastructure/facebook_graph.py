"""Facebook Graph API client.

Thin async wrapper around the Graph REST endpoints. It owns URL building
for the two graph subdomains (both pinned to the same API version), the
timeout race for every call, retry of transient 5xx responses where the
caller allows it, and translation of Graph error payloads into
``FacebookAPIError`` with an ``ErrorKind``.
"""

import asyncio
from typing import Any

import httpx

from app.core.exceptions import ErrorKind, FacebookAPIError
from app.core.logging import get_logger
from app.infrastructure.http_client import HTTPClient

logger = get_logger(__name__)

GRAPH_HOST = "https://graph.facebook.com"
GRAPH_VIDEO_HOST = "https://graph-video.facebook.com"

# Retriable HTTP status codes
RETRIABLE_STATUS_CODES = [500, 502, 503, 504]

DEFAULT_TIMEOUT = 30.0

# Graph error codes grouped by how the pipeline reacts to them
AUTH_ERROR_CODES = frozenset({102, 190, 463, 467})
PERMISSION_ERROR_CODES = frozenset({10, *range(200, 300)})
QUOTA_POLICY_ERROR_CODES = frozenset({4, 17, 32, 341, 368, 613, 80001})
MEDIA_ERROR_CODES = frozenset({351, 352, 353, 356, 381, 382, 6000, 6001})
MEDIA_ERROR_SUBCODES = range(1363000, 1364000)
MEDIA_ERROR_MARKERS = (
    "corrupt",
    "unsupported",
    "invalid video",
    "video file is",
    "could not be processed",
    "codec",
)

AUTH_REMEDIATION = [
    "Generate a new Page access token from the Page settings or Graph API Explorer",
    "Make sure the token belongs to the Page, not to a user",
    "Grant the pages_manage_posts and pages_read_engagement permissions",
    "Confirm the connected account is still an admin of the Page",
]


def classify_graph_error(
    code: int | None,
    subcode: int | None,
    message: str,
    error_type: str | None = None,
    status_code: int | None = None,
) -> ErrorKind:
    """Map a Graph error payload to a pipeline ErrorKind.

    Args:
        code: Graph error code
        subcode: Graph error subcode
        message: Graph error message
        error_type: Graph error type (e.g. "OAuthException")
        status_code: HTTP status code

    Returns:
        ErrorKind classification
    """
    lowered = (message or "").lower()

    if code in QUOTA_POLICY_ERROR_CODES or status_code == 429:
        return ErrorKind.PLATFORM_QUOTA_OR_POLICY
    if code in MEDIA_ERROR_CODES or (subcode is not None and subcode in MEDIA_ERROR_SUBCODES):
        return ErrorKind.PLATFORM_MEDIA_REJECTED
    if code in AUTH_ERROR_CODES or code in PERMISSION_ERROR_CODES:
        return ErrorKind.PLATFORM_AUTH_FAILURE
    if error_type == "OAuthException" or status_code in (401, 403):
        return ErrorKind.PLATFORM_AUTH_FAILURE
    if any(marker in lowered for marker in MEDIA_ERROR_MARKERS):
        return ErrorKind.PLATFORM_MEDIA_REJECTED
    if "spam" in lowered or "community standards" in lowered or "rate limit" in lowered:
        return ErrorKind.PLATFORM_QUOTA_OR_POLICY
    return ErrorKind.UNKNOWN


class FacebookGraphAPI:
    """Async Graph API client.

    Example:
        >>> graph = FacebookGraphAPI(http_client, graph_version="v20.0")
        >>> page = await graph.get("123", access_token=token, params={"fields": "id,name"})
    """

    def __init__(
        self,
        http_client: HTTPClient,
        graph_version: str = "v20.0",
        app_id: str = "",
        app_secret: str = "",
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        """Initialize FacebookGraphAPI.

        Args:
            http_client: Shared HTTP client
            graph_version: Pinned API version used for every endpoint
            app_id: App ID for token exchange
            app_secret: App secret for token exchange
            max_retries: Maximum retries for calls that allow retrying
            retry_base_delay: Base of the exponential backoff in seconds
        """
        self._http = http_client
        self.graph_version = graph_version
        self.app_id = app_id
        self.app_secret = app_secret
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    @property
    def graph_url(self) -> str:
        """Base URL for standard Graph calls."""
        return f"{GRAPH_HOST}/{self.graph_version}"

    @property
    def video_url(self) -> str:
        """Base URL for video uploads."""
        return f"{GRAPH_VIDEO_HOST}/{self.graph_version}"

    async def get(
        self,
        path: str,
        access_token: str,
        params: dict[str, Any] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> dict[str, Any]:
        """Issue a GET against the standard graph host.

        Args:
            path: Path relative to the versioned base (no leading slash needed)
            access_token: Access token
            params: Extra query parameters
            timeout: Seconds before the call is abandoned

        Returns:
            Decoded JSON payload

        Raises:
            FacebookAPIError: On transport errors, timeouts or Graph errors
        """
        query = dict(params or {})
        query["access_token"] = access_token
        url = f"{self.graph_url}/{path.lstrip('/')}"
        return await self._call("GET", url, path, timeout, retries=self.max_retries, params=query)

    async def post(
        self,
        path: str,
        access_token: str,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        video: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        retry: bool = False,
    ) -> dict[str, Any]:
        """Issue a POST against the graph or graph-video host.

        Args:
            path: Path relative to the versioned base
            access_token: Access token
            data: Form fields
            files: Multipart files (httpx format)
            video: Use the graph-video host
            timeout: Seconds before the call is abandoned
            retry: Retry transient 5xx responses (only for idempotent calls)

        Returns:
            Decoded JSON payload

        Raises:
            FacebookAPIError: On transport errors, timeouts or Graph errors
        """
        form = {k: _form_value(v) for k, v in (data or {}).items() if v is not None}
        form["access_token"] = access_token
        base = self.video_url if video else self.graph_url
        url = f"{base}/{path.lstrip('/')}"
        retries = self.max_retries if retry else 0
        return await self._call("POST", url, path, timeout, retries=retries, data=form, files=files)

    async def _call(
        self,
        method: str,
        url: str,
        path: str,
        timeout: float,
        retries: int,
        **kwargs: Any,
    ) -> dict[str, Any]:
        retry_count = 0
        while True:
            try:
                response = await asyncio.wait_for(
                    self._send(method, url, timeout, **kwargs), timeout=timeout
                )
            except TimeoutError as e:
                logger.warning("Graph call timed out", method=method, path=path, timeout=timeout)
                raise FacebookAPIError(
                    f"Graph {method} /{path.lstrip('/')} timed out after {timeout:.0f}s",
                    timed_out=True,
                ) from e
            except httpx.HTTPError as e:
                logger.warning("Graph transport error", method=method, path=path, error=str(e))
                raise FacebookAPIError(
                    f"Graph {method} /{path.lstrip('/')} failed: {e}",
                    context={"transport_error": type(e).__name__},
                ) from e

            if response.status_code in RETRIABLE_STATUS_CODES and retry_count < retries:
                retry_count += 1
                wait_time = self.retry_base_delay * 2**retry_count
                logger.warning(
                    "Retriable Graph error, retrying",
                    path=path,
                    status=response.status_code,
                    retry=retry_count,
                    wait_seconds=wait_time,
                )
                await asyncio.sleep(wait_time)
                continue

            return self._parse(response, path)

    async def _send(self, method: str, url: str, timeout: float, **kwargs: Any) -> httpx.Response:
        # Let the asyncio race decide; httpx only guards against a dead socket
        request_timeout = httpx.Timeout(timeout + 5.0)
        if method == "GET":
            return await self._http.get(url, timeout=request_timeout, **kwargs)
        return await self._http.post(url, timeout=request_timeout, **kwargs)

    def _parse(self, response: httpx.Response, path: str) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and "error" in payload:
            raise self._to_error(payload["error"], response.status_code, path)

        if response.status_code >= 400 or not isinstance(payload, dict):
            message = response.text[:500]
            kind = classify_graph_error(None, None, message, status_code=response.status_code)
            raise FacebookAPIError(
                f"Graph /{path.lstrip('/')} returned HTTP {response.status_code}",
                kind=kind,
                status_code=response.status_code,
                platform_message=message or None,
                remediation=AUTH_REMEDIATION if kind == ErrorKind.PLATFORM_AUTH_FAILURE else None,
            )
        return payload

    def _to_error(self, error: dict[str, Any], status_code: int, path: str) -> FacebookAPIError:
        code = _as_int(error.get("code"))
        subcode = _as_int(error.get("error_subcode"))
        message = str(error.get("error_user_msg") or error.get("message") or "Unknown Graph error")
        error_type = error.get("type")
        kind = classify_graph_error(code, subcode, message, error_type, status_code)

        logger.warning(
            "Graph API error",
            path=path,
            code=code,
            subcode=subcode,
            error_type=error_type,
            kind=kind.value,
        )
        return FacebookAPIError(
            f"Graph /{path.lstrip('/')} failed ({code}): {message}",
            kind=kind,
            code=code,
            subcode=subcode,
            status_code=status_code,
            platform_message=message,
            remediation=AUTH_REMEDIATION if kind == ErrorKind.PLATFORM_AUTH_FAILURE else None,
            context={"fbtrace_id": error.get("fbtrace_id")} if error.get("fbtrace_id") else None,
        )


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _form_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return value


__all__ = [
    "AUTH_REMEDIATION",
    "FacebookGraphAPI",
    "GRAPH_HOST",
    "GRAPH_VIDEO_HOST",
    "classify_graph_error",
]
