"""Structured progress events.

Strategies report progress through a ProgressChannel instead of printing
or invoking ad-hoc callbacks; the orchestrator forwards the channel's
events to whoever subscribed (a Celery task state, a websocket, a test).
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.core.logging import get_logger

logger = get_logger(__name__)


class ProgressPhase(str, Enum):
    """Pipeline phases reported to subscribers."""

    FETCH = "fetch"
    VALIDATE = "validate"
    UPLOAD = "upload"
    TRANSCODE = "transcode"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress update.

    Attributes:
        phase: Pipeline phase
        percent: Completion of the phase, 0-100, None when unknown
        detail: Human readable description
        data: Extra structured fields (strategy, bytes, ...)
    """

    phase: ProgressPhase
    percent: float | None = None
    detail: str = ""
    data: dict[str, Any] = field(default_factory=dict)


ProgressCallback = Callable[[ProgressEvent], Awaitable[None] | None]


class ProgressChannel:
    """Fan-out of progress events to subscribers.

    A failing subscriber is logged and never interrupts the pipeline.
    """

    def __init__(self) -> None:
        self._subscribers: list[ProgressCallback] = []

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a sync or async callback.

        Args:
            callback: Called with every ProgressEvent

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def emit(
        self,
        phase: ProgressPhase,
        percent: float | None = None,
        detail: str = "",
        **data: Any,
    ) -> ProgressEvent:
        """Publish an event to every subscriber.

        Args:
            phase: Pipeline phase
            percent: Phase completion (clamped to 0-100)
            detail: Description
            **data: Extra structured fields

        Returns:
            The emitted event
        """
        if percent is not None:
            percent = max(0.0, min(100.0, float(percent)))
        event = ProgressEvent(phase=phase, percent=percent, detail=detail, data=data)

        for callback in list(self._subscribers):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(
                    "Progress subscriber failed",
                    phase=phase.value,
                    error=str(e),
                    exc_info=True,
                )
        return event


__all__ = ["ProgressCallback", "ProgressChannel", "ProgressEvent", "ProgressPhase"]
