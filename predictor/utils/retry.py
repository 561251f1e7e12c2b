import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry a failing call.

    The delay before retry ``n`` (1-based) is
    ``base_delay * backoff_factor ** (n - 1)`` plus a uniform jitter in
    ``[0, jitter]``.
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    backoff_factor: float = 2.0
    jitter: float = 0.0

    def delay_for(self, retry_number, rng=random.random):
        delay = self.base_delay * (self.backoff_factor ** (retry_number - 1))
        if self.jitter:
            delay += rng() * self.jitter
        return delay


@dataclass
class RetryResult:
    value: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self):
        return self.error is None

    def unwrap(self):
        """Return the value or raise the final error"""
        if self.error is not None:
            raise self.error
        return self.value


def call_with_retry(
    func, policy, retry_on=(Exception,), sleep=time.sleep, description="call"
):
    """
    Call ``func`` until it succeeds or the policy is exhausted.

    Only exceptions matching ``retry_on`` are retried; any other exception
    ends the loop at once. Failures are returned in the RetryResult rather
    than raised.
    """
    attempts = 0
    while True:
        attempts += 1
        try:
            return RetryResult(value=func(), attempts=attempts)
        except retry_on as e:
            if attempts >= policy.max_attempts:
                logger.warning(
                    f"{description} failed after {attempts} attempt(s): {e}"
                )
                return RetryResult(error=e, attempts=attempts)
            delay = policy.delay_for(attempts)
            logger.info(
                f"{description} failed (attempt {attempts}/{policy.max_attempts}): {e}. "
                f"Waiting {delay:.1f}s before retry"
            )
            sleep(delay)
        except Exception as e:
            return RetryResult(error=e, attempts=attempts)
