import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff with additive jitter.

    The delay before retry ``n`` (0-based) is
    ``min(base_delay * multiplier ** n + uniform(0, jitter), max_delay)``.
    ``max_retries`` counts retries after the first attempt, so the operation
    runs at most ``max_retries + 1`` times.
    """

    max_retries: int = 2
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 10.0
    jitter: float = 1.0

    @classmethod
    def from_config(cls, cfg: dict) -> "BackoffPolicy":
        return cls(
            max_retries=int(cfg.get("MAX_RETRIES", cls.max_retries)),
            base_delay=float(cfg.get("BASE_DELAY", cls.base_delay)),
            multiplier=float(cfg.get("MULTIPLIER", cls.multiplier)),
            max_delay=float(cfg.get("MAX_DELAY", cls.max_delay)),
            jitter=float(cfg.get("JITTER", cls.jitter)),
        )

    def delay(self, retry_number: int, rng=random) -> float:
        raw = self.base_delay * (self.multiplier ** retry_number) + rng.uniform(0, self.jitter)
        return min(raw, self.max_delay)


def call_with_retry(
    operation: Callable[[], T],
    is_retryable: Callable[[BaseException], bool],
    policy: BackoffPolicy = BackoffPolicy(),
    sleep: Callable[[float], None] = time.sleep,
    rng=random,
) -> T:
    """Run `operation`, retrying only errors `is_retryable` accepts.

    Non-retryable errors propagate immediately. When the retry budget is
    spent the last error propagates unchanged.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except Exception as exc:
            if attempt >= policy.max_retries or not is_retryable(exc):
                if attempt:
                    logger.error("Operation failed after %s attempts: %s", attempt + 1, exc)
                raise
            wait = policy.delay(attempt, rng)
            logger.warning(
                "Operation failed (attempt %s/%s), retrying in %.2fs: %s",
                attempt + 1, policy.max_retries + 1, wait, exc,
            )
            sleep(wait)
            attempt += 1
