import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import TypeVar

from adworker.logging.logger import Log
from adworker.scraping.exceptions import TransientTransportError

T = TypeVar("T")


def is_transient_error(error: BaseException) -> bool:
    """Default classifier: only transport-level failures are worth a cooldown."""
    return isinstance(error, TransientTransportError)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget shared by the result poller and outbound calls.

    Ordinary retries wait ``base_delay`` seconds; a retry that follows a
    transient error waits ``base_delay * backoff_multiplier``.
    """

    max_attempts: int
    base_delay: float
    backoff_multiplier: float = 1.5
    is_transient: Callable[[BaseException], bool] = is_transient_error

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be at least 1")

    def delay_for(self, error: BaseException | None = None) -> float:
        if error is not None and self.is_transient(error):
            return self.base_delay * self.backoff_multiplier
        return self.base_delay

    def with_overrides(
        self,
        max_attempts: int | None = None,
        base_delay: float | None = None,
    ) -> "RetryPolicy":
        changes: dict[str, float | int] = {}
        if max_attempts is not None:
            changes["max_attempts"] = max_attempts
        if base_delay is not None:
            changes["base_delay"] = base_delay
        return replace(self, **changes) if changes else self

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def call(self, fn: Callable[[], Awaitable[T]], *, description: str = "request") -> T:
        """Await ``fn()`` and retry it after transient errors until the budget runs out."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await fn()
            except Exception as exc:
                if not self.is_transient(exc) or attempt == self.max_attempts:
                    raise
                delay = self.delay_for(exc)
                Log.warning(
                    f"{description} failed (attempt {attempt}/{self.max_attempts}): {exc}; "
                    f"retrying in {delay:.1f}s"
                )
                await self.sleep(delay)
        raise RuntimeError("unreachable")  # pragma: no cover
