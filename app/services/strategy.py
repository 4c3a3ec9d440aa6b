"""Ordered fallback strategies.

Every fallback cascade in the pipeline (download methods, upload methods,
transcode profiles) is a list of strategies run by ``StrategyChain``:
strategies are attempted strictly in order and the first success wins.

A strategy signals failure by raising ``PipelineError``. By default the
chain moves on after recoverable errors and stops at the first
non-recoverable one; callers may supply their own continuation policy.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

from app.core.exceptions import PipelineError, StrategiesExhaustedError
from app.core.logging import get_logger

logger = get_logger(__name__)

CtxT = TypeVar("CtxT", contravariant=True)
ResultT = TypeVar("ResultT", covariant=True)
R = TypeVar("R")


class Strategy(Protocol[CtxT, ResultT]):
    """One concrete attempt in an ordered fallback list."""

    name: str

    async def attempt(self, ctx: CtxT) -> ResultT: ...


@dataclass
class AttemptRecord:
    """Outcome of one strategy attempt.

    Attributes:
        name: Strategy name
        success: Whether the attempt succeeded
        error: Failure raised by the strategy
    """

    name: str
    success: bool
    error: PipelineError | None = None


@dataclass
class ChainResult(Generic[R]):
    """Outcome of running a StrategyChain.

    Attributes:
        success: Whether any strategy succeeded
        value: Winning strategy's result
        strategy: Winning strategy's name
        error: Last error when every attempt failed or the chain stopped early
        attempts: Every attempt, in order
    """

    success: bool
    value: R | None = None
    strategy: str | None = None
    error: PipelineError | None = None
    attempts: list[AttemptRecord] = field(default_factory=list)

    @property
    def attempted(self) -> list[str]:
        """Names of the strategies attempted, in order."""
        return [a.name for a in self.attempts]


def continue_if_recoverable(error: PipelineError) -> bool:
    """Default continuation policy."""
    return error.recoverable


class StrategyChain(Generic[R]):
    """Generic "try in order, stop at first success" driver.

    Example:
        >>> chain = StrategyChain([usercontent, confirm_token, alternate], concern="fetch")
        >>> result = await chain.run(reference)
        >>> result.strategy
        'uc_confirm_token'
    """

    def __init__(
        self,
        strategies: Sequence[Strategy],
        concern: str,
        should_continue: Callable[[PipelineError], bool] = continue_if_recoverable,
    ) -> None:
        """Initialize StrategyChain.

        Args:
            strategies: Strategies in priority order
            concern: Label used in logs (e.g. "fetch", "upload")
            should_continue: Decides whether a failure advances to the next strategy
        """
        self.strategies = list(strategies)
        self.concern = concern
        self._should_continue = should_continue

    async def run(self, ctx: object, accept: Callable[[R], bool] | None = None) -> ChainResult:
        """Attempt each strategy in order until one succeeds.

        Exceptions other than PipelineError are not caught.

        Args:
            ctx: Context handed to every strategy
            accept: Optional check on a strategy's result; a rejected result
                counts as a recoverable failure of that strategy

        Returns:
            ChainResult describing the winner or the last failure
        """
        if not self.strategies:
            return ChainResult(success=False, error=StrategiesExhaustedError(self.concern))

        attempts: list[AttemptRecord] = []
        last_error: PipelineError | None = None

        for index, strategy in enumerate(self.strategies, start=1):
            logger.debug(
                "Attempting strategy",
                concern=self.concern,
                strategy=strategy.name,
                position=index,
                total=len(self.strategies),
            )
            try:
                value = await strategy.attempt(ctx)
                if accept is not None and not accept(value):
                    raise PipelineError(f"Result of {strategy.name} was rejected")
            except PipelineError as e:
                e.for_strategy(strategy.name)
                attempts.append(AttemptRecord(name=strategy.name, success=False, error=e))
                last_error = e
                logger.info(
                    "Strategy failed",
                    concern=self.concern,
                    strategy=strategy.name,
                    kind=e.kind.value,
                    error=str(e),
                )
                if not self._should_continue(e):
                    logger.info(
                        "Stopping strategy chain on non-recoverable error",
                        concern=self.concern,
                        strategy=strategy.name,
                        kind=e.kind.value,
                    )
                    break
                continue

            attempts.append(AttemptRecord(name=strategy.name, success=True))
            logger.info("Strategy succeeded", concern=self.concern, strategy=strategy.name)
            return ChainResult(
                success=True,
                value=value,
                strategy=strategy.name,
                attempts=attempts,
            )

        return ChainResult(success=False, error=last_error, attempts=attempts)


__all__ = [
    "AttemptRecord",
    "ChainResult",
    "Strategy",
    "StrategyChain",
    "continue_if_recoverable",
]
