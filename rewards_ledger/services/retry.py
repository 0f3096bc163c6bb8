from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError

from rewards_ledger.errors import TransientStoreError, translate_db_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_seconds: float = 0.05

    def delay(self, attempt: int) -> float:
        return self.backoff_seconds * (2 ** (attempt - 1))


def run_with_retry(operation: Callable[[], T], policy: RetryPolicy, *, on_failure: Callable[[], None] | None = None) -> T:
    """
    Run ``operation`` and retry it when the store reports a transient failure.

    Driver errors are translated into ConcurrencyConflict / StoreUnavailable
    first; anything else propagates untouched on the first attempt.
    """
    attempt = 1
    while True:
        try:
            return operation()
        except DBAPIError as exc:
            transient = translate_db_error(exc)
            if transient is None:
                raise
            error: TransientStoreError = transient
            cause: BaseException = exc
        except TransientStoreError as exc:
            error = exc
            cause = exc

        if on_failure is not None:
            on_failure()
        if attempt >= policy.max_attempts:
            logger.error("giving up after %s attempts: %s", attempt, error)
            if error is cause:
                raise error
            raise error from cause
        logger.warning("transient store failure (attempt %s/%s): %s", attempt, policy.max_attempts, error)
        time.sleep(policy.delay(attempt))
        attempt += 1
