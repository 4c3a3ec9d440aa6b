"""Page access token maintenance.

Token checks run as pre-flight steps before a publish, never inside every
Graph call.
"""

from dataclasses import dataclass, field

from app.core.exceptions import ConfigError, ErrorKind, FacebookAPIError
from app.core.logging import get_logger
from app.infrastructure.facebook_graph import FacebookGraphAPI

logger = get_logger(__name__)

# Page tasks that allow publishing
PUBLISHING_TASKS = frozenset({"MANAGE", "CREATE_CONTENT", "MODERATE", "ADVERTISE"})


@dataclass
class TokenValidation:
    """Result of a page token check.

    Attributes:
        valid: Whether the token can read the page
        page_id: Page ID returned by the platform
        page_name: Page name returned by the platform
        error: Failure message
        error_kind: Failure classification
        remediation: Steps to obtain a working token
    """

    valid: bool
    page_id: str | None = None
    page_name: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    remediation: list[str] = field(default_factory=list)


@dataclass
class ManagedPage:
    """A page the user can publish to."""

    page_id: str
    name: str
    access_token: str = field(repr=False)
    tasks: list[str] = field(default_factory=list)


class TokenManager:
    """Validate and exchange Facebook tokens.

    Example:
        >>> tokens = TokenManager(graph)
        >>> check = await tokens.validate_page_token("123", token)
        >>> check.valid
        True
    """

    def __init__(self, graph: FacebookGraphAPI) -> None:
        self._graph = graph

    async def validate_page_token(self, page_id: str, access_token: str) -> TokenValidation:
        """Check that a token can read the given page.

        Args:
            page_id: Facebook Page ID
            access_token: Page access token

        Returns:
            TokenValidation; Graph failures are returned, not raised
        """
        try:
            payload = await self._graph.get(
                page_id, access_token, params={"fields": "id,name"}
            )
        except FacebookAPIError as e:
            logger.warning(
                "Page token validation failed",
                page_id=page_id,
                kind=e.kind.value,
                error=str(e),
            )
            return TokenValidation(
                valid=False,
                error=e.platform_message or str(e),
                error_kind=e.kind,
                remediation=e.remediation,
            )

        logger.debug("Page token valid", page_id=page_id)
        return TokenValidation(
            valid=True,
            page_id=str(payload.get("id", page_id)),
            page_name=payload.get("name"),
        )

    async def exchange_long_lived_token(self, short_lived_token: str) -> str:
        """Exchange a short-lived user token for a long-lived one.

        Args:
            short_lived_token: Short-lived user access token

        Returns:
            Long-lived access token

        Raises:
            ConfigError: If the app ID or secret is not configured
            FacebookAPIError: If the exchange fails
        """
        if not self._graph.app_id or not self._graph.app_secret:
            raise ConfigError("Facebook app ID and secret are required for token exchange")

        payload = await self._graph.get(
            "oauth/access_token",
            short_lived_token,
            params={
                "grant_type": "fb_exchange_token",
                "client_id": self._graph.app_id,
                "client_secret": self._graph.app_secret,
                "fb_exchange_token": short_lived_token,
            },
        )
        token = payload.get("access_token")
        if not token:
            raise FacebookAPIError(
                "Token exchange returned no access token",
                kind=ErrorKind.PLATFORM_AUTH_FAILURE,
            )
        logger.info("Exchanged long-lived token", expires_in=payload.get("expires_in"))
        return str(token)

    async def get_page_permissions(self, page_id: str, access_token: str) -> list[str]:
        """Tasks the token holder may perform on the page.

        Raises:
            FacebookAPIError: If the lookup fails
        """
        payload = await self._graph.get(page_id, access_token, params={"fields": "tasks"})
        return [str(task) for task in payload.get("tasks") or []]

    async def get_managed_pages(self, user_access_token: str) -> list[ManagedPage]:
        """Pages the user manages with publishing rights.

        Raises:
            FacebookAPIError: If the lookup fails
        """
        payload = await self._graph.get(
            "me/accounts",
            user_access_token,
            params={"fields": "id,name,access_token,tasks"},
        )
        pages: list[ManagedPage] = []
        for entry in payload.get("data") or []:
            tasks = [str(task) for task in entry.get("tasks") or []]
            if not PUBLISHING_TASKS.intersection(tasks):
                continue
            pages.append(
                ManagedPage(
                    page_id=str(entry["id"]),
                    name=str(entry.get("name", "")),
                    access_token=str(entry.get("access_token", "")),
                    tasks=tasks,
                )
            )
        logger.info("Loaded managed pages", count=len(pages))
        return pages


__all__ = ["ManagedPage", "PUBLISHING_TASKS", "TokenManager", "TokenValidation"]
