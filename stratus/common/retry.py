import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, TypeVar

from botocore.exceptions import ClientError, ConnectionError as BotocoreConnectionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERROR_CODES = frozenset(
    [
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "ServiceUnavailable",
        "InternalFailure",
    ]
)


class RetryPolicy(ABC):
    """
    Strategy deciding how often a remote call is attempted.

    Remote lookups are one-shot by default; a transient failure surfaces immediately and triggers the
    workflow rollback. Policies exist so that callers can opt into retries without touching the
    remote client.
    """

    @abstractmethod
    def execute(self, operation_name: str, call: Callable[[], T]) -> T:
        raise NotImplementedError()


class NoRetryPolicy(RetryPolicy):
    def execute(self, operation_name: str, call: Callable[[], T]) -> T:
        return call()


class FixedDelayRetryPolicy(RetryPolicy):
    def __init__(self, attempts: int, delay_seconds: float) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        if delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")
        self.attempts = attempts
        self.delay_seconds = delay_seconds

    def execute(self, operation_name: str, call: Callable[[], T]) -> T:
        for attempt in range(1, self.attempts + 1):
            try:
                return call()
            except (ClientError, BotocoreConnectionError) as e:
                if attempt == self.attempts or not is_retryable(e):
                    raise
                logger.warning(
                    "Remote call %s failed (attempt %s of %s), retrying in %ss: %s",
                    operation_name,
                    attempt,
                    self.attempts,
                    self.delay_seconds,
                    e,
                )
                time.sleep(self.delay_seconds)
        raise RuntimeError(f"Remote call {operation_name} was never attempted")


def is_retryable(error: Exception) -> bool:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code") in RETRYABLE_ERROR_CODES
    return isinstance(error, BotocoreConnectionError)


def create_retry_policy(attempts: int = 1, delay_seconds: float = 0.0) -> RetryPolicy:
    if attempts <= 1:
        return NoRetryPolicy()
    return FixedDelayRetryPolicy(attempts, delay_seconds)
