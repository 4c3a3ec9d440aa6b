"""Exception hierarchy for the ReelRelay publishing pipeline.

Every error derives from ReelRelayError and carries a ``context`` dict
that is passed straight to structlog. Pipeline failures also carry an
``ErrorKind`` that drives the fallback policy: recoverable kinds advance
to the next strategy, the rest are surfaced to the caller immediately.
"""

from enum import Enum
from typing import Any


class ReelRelayError(Exception):
    """Root of all ReelRelay errors.

    Attributes:
        context: Structured fields describing the failure

    Example:
        >>> error = ReelRelayError("Scratch directory unwritable", context={"path": "/tmp/rr"})
        >>> logger.error("Startup failed", **error.to_dict())
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.context = context or {}
        super().__init__(message)

    def with_context(self, **kwargs: Any) -> "ReelRelayError":
        """Merge extra fields into ``context`` and return self."""
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Flatten to log-friendly fields."""
        return {
            "error_type": type(self).__name__,
            "message": str(self),
            "context": self.context,
        }


# ============================================
# Configuration Errors
# ============================================


class ConfigError(ReelRelayError):
    """Base exception for configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when a configuration file does not exist."""

    def __init__(self, path: str, context: dict[str, Any] | None = None) -> None:
        ctx = context or {}
        ctx["path"] = path
        super().__init__(f"Configuration file not found: {path}", context=ctx)
        self.path = path


class ConfigValidationError(ConfigError):
    """Raised when configuration content fails schema validation."""

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if errors:
            ctx["errors"] = errors
        super().__init__(message, context=ctx)
        self.errors = errors or []


# ============================================
# Pipeline Error Taxonomy
# ============================================


class ErrorKind(str, Enum):
    """Classification of every pipeline failure."""

    SOURCE_UNAVAILABLE = "source_unavailable"
    ACCESS_DENIED = "access_denied"
    QUOTA_EXCEEDED = "quota_exceeded"
    MALFORMED_REFERENCE = "malformed_reference"
    DOWNLOAD_INTEGRITY_FAILURE = "download_integrity_failure"
    TRANSCODE_FAILURE = "transcode_failure"
    PLATFORM_MEDIA_REJECTED = "platform_media_rejected"
    PLATFORM_AUTH_FAILURE = "platform_auth_failure"
    PLATFORM_QUOTA_OR_POLICY = "platform_quota_or_policy"
    UNKNOWN = "unknown"


# Retrying with another strategy cannot fix these
NON_RECOVERABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.SOURCE_UNAVAILABLE,
        ErrorKind.ACCESS_DENIED,
        ErrorKind.MALFORMED_REFERENCE,
        ErrorKind.PLATFORM_AUTH_FAILURE,
    }
)


class PipelineError(ReelRelayError):
    """Failure raised by a fetch, transcode or upload strategy.

    Attributes:
        kind: Error classification
        strategy: Name of the strategy that was attempted
        platform_message: Verbatim message from the remote platform, if any
        remediation: Human-actionable steps for the caller
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        strategy: str | None = None,
        platform_message: str | None = None,
        remediation: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize PipelineError.

        Args:
            message: Error message
            kind: Error classification
            strategy: Strategy name that produced the error
            platform_message: Verbatim remote error message
            remediation: Remediation checklist for the caller
            context: Additional context
        """
        ctx = context or {}
        ctx["kind"] = kind.value
        if strategy:
            ctx["strategy"] = strategy
        if platform_message:
            ctx["platform_message"] = platform_message
        super().__init__(message, context=ctx)
        self.kind = kind
        self.strategy = strategy
        self.platform_message = platform_message
        self.remediation = remediation or []

    @property
    def recoverable(self) -> bool:
        """Whether advancing to another strategy may succeed."""
        return self.kind not in NON_RECOVERABLE_KINDS

    def for_strategy(self, strategy: str) -> "PipelineError":
        """Record the strategy name if none was set yet.

        Args:
            strategy: Strategy name

        Returns:
            Self for method chaining
        """
        if self.strategy is None:
            self.strategy = strategy
            self.context["strategy"] = strategy
        return self


class StrategiesExhaustedError(PipelineError):
    """Raised when an ordered strategy list was empty."""

    def __init__(self, concern: str) -> None:
        super().__init__(
            f"No {concern} strategies available",
            kind=ErrorKind.UNKNOWN,
            context={"concern": concern},
        )


# ============================================
# Fetch Errors
# ============================================


class FetchErrorKind(str, Enum):
    """Detailed reasons a source download failed."""

    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_FORMAT = "invalid_format"
    TOO_SMALL = "too_small"
    STALLED = "stalled"
    SIZE_MISMATCH = "size_mismatch"
    MALFORMED = "malformed"
    UNKNOWN = "unknown"


FETCH_KIND_TO_ERROR_KIND: dict[FetchErrorKind, ErrorKind] = {
    FetchErrorKind.NOT_FOUND: ErrorKind.SOURCE_UNAVAILABLE,
    FetchErrorKind.ACCESS_DENIED: ErrorKind.ACCESS_DENIED,
    FetchErrorKind.QUOTA_EXCEEDED: ErrorKind.QUOTA_EXCEEDED,
    FetchErrorKind.INVALID_FORMAT: ErrorKind.DOWNLOAD_INTEGRITY_FAILURE,
    FetchErrorKind.TOO_SMALL: ErrorKind.DOWNLOAD_INTEGRITY_FAILURE,
    FetchErrorKind.STALLED: ErrorKind.DOWNLOAD_INTEGRITY_FAILURE,
    FetchErrorKind.SIZE_MISMATCH: ErrorKind.DOWNLOAD_INTEGRITY_FAILURE,
    FetchErrorKind.MALFORMED: ErrorKind.MALFORMED_REFERENCE,
    FetchErrorKind.UNKNOWN: ErrorKind.UNKNOWN,
}


class FetchError(PipelineError):
    """Raised by a download strategy when it cannot produce a valid video.

    Attributes:
        fetch_kind: Detailed download failure reason
        url: URL that was being fetched
    """

    def __init__(
        self,
        message: str,
        fetch_kind: FetchErrorKind = FetchErrorKind.UNKNOWN,
        url: str | None = None,
        strategy: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize FetchError.

        Args:
            message: Error message
            fetch_kind: Detailed failure reason
            url: URL being fetched
            strategy: Strategy name
            context: Additional context
        """
        ctx = context or {}
        ctx["fetch_kind"] = fetch_kind.value
        if url:
            ctx["url"] = url
        super().__init__(
            message,
            kind=FETCH_KIND_TO_ERROR_KIND[fetch_kind],
            strategy=strategy,
            context=ctx,
        )
        self.fetch_kind = fetch_kind
        self.url = url


# ============================================
# Transcode Errors
# ============================================


class TranscodeError(PipelineError):
    """Raised when the external encoder fails or times out for a profile.

    Attributes:
        profile: Profile name
        stderr: Encoder stderr output, if captured
    """

    def __init__(
        self,
        message: str,
        profile: str | None = None,
        stderr: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if profile:
            ctx["profile"] = profile
        super().__init__(
            message,
            kind=ErrorKind.TRANSCODE_FAILURE,
            strategy=profile,
            context=ctx,
        )
        self.profile = profile
        self.stderr = stderr


# ============================================
# Facebook Platform Errors
# ============================================


class FacebookAPIError(PipelineError):
    """Raised when a Graph API call fails.

    Attributes:
        code: Graph error code
        subcode: Graph error subcode
        status_code: HTTP status code
        timed_out: Whether the call was abandoned because of its timeout
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        code: int | None = None,
        subcode: int | None = None,
        status_code: int | None = None,
        platform_message: str | None = None,
        timed_out: bool = False,
        remediation: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize FacebookAPIError.

        Args:
            message: Error message
            kind: Error classification
            code: Graph error code
            subcode: Graph error subcode
            status_code: HTTP status code
            platform_message: Verbatim Graph error message
            timed_out: True when the call exceeded its timeout
            remediation: Remediation checklist
            context: Additional context
        """
        ctx = context or {}
        if code is not None:
            ctx["code"] = code
        if subcode is not None:
            ctx["subcode"] = subcode
        if status_code is not None:
            ctx["status_code"] = status_code
        if timed_out:
            ctx["timed_out"] = True
        super().__init__(
            message,
            kind=kind,
            platform_message=platform_message,
            remediation=remediation,
            context=ctx,
        )
        self.code = code
        self.subcode = subcode
        self.status_code = status_code
        self.timed_out = timed_out


__all__ = [
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "ErrorKind",
    "FETCH_KIND_TO_ERROR_KIND",
    "FacebookAPIError",
    "FetchError",
    "FetchErrorKind",
    "NON_RECOVERABLE_KINDS",
    "PipelineError",
    "ReelRelayError",
    "StrategiesExhaustedError",
    "TranscodeError",
]
