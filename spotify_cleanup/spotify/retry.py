"""
Retry and backoff policy for Spotify Web API requests

The request loop in the client never decides on its own whether to retry:
it asks a RetryState, which is a small bounded state machine:

    attempt 0 --retryable status--> wait delay(0) --> attempt 1 --> ... --> attempt N
    any state --non-retryable status or attempt == max_retries--> terminal (give up)

Retryable statuses:
- 429 Too Many Requests: wait the Retry-After hint (seconds) when the server
  sends one, otherwise base * 2**attempt
- 5xx server errors: always base * 2**attempt, Retry-After is ignored

Keeping the policy separate from HTTP plumbing lets the schedule be tested
without a network or a clock.
"""

import math
from dataclasses import dataclass
from typing import Optional, Union

RATE_LIMIT_STATUS = 429


def is_retryable_status(status: int) -> bool:
    """True for 429 and 5xx responses"""
    return status == RATE_LIMIT_STATUS or 500 <= status < 600


def parse_retry_after(value: Optional[Union[str, int, float]]) -> Optional[float]:
    """
    Parse a Retry-After header value given in seconds

    Args:
        value: Raw header value

    Returns:
        Delay in seconds, or None when the header is missing, negative or not a
        finite number
    """
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Retry budget and exponential backoff schedule

    Attributes:
        max_retries: Retries allowed after the first attempt
        base_delay: Delay in seconds before the first retry; doubled each retry
    """
    max_retries: int = 3
    base_delay: float = 0.5

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before retry number `attempt` (0-based)"""
        return self.base_delay * (2 ** attempt)

    def start(self) -> 'RetryState':
        return RetryState(self)


class RetryState:
    """
    Per-request retry state

    Attributes:
        policy: Backoff policy in use
        attempt: Number of retries already granted
        exhausted: True once a retry has been refused
    """

    def __init__(self, policy: BackoffPolicy):
        self.policy = policy
        self.attempt = 0
        self.exhausted = False

    def next_delay(self, status: int, retry_after: Optional[float] = None) -> Optional[float]:
        """
        Decide what to do after a failed response

        Args:
            status: HTTP status of the response
            retry_after: Parsed Retry-After hint, only honoured for 429

        Returns:
            Seconds to wait before retrying, or None to give up
        """
        if self.exhausted or not is_retryable_status(status):
            self.exhausted = True
            return None

        if self.attempt >= self.policy.max_retries:
            self.exhausted = True
            return None

        if status == RATE_LIMIT_STATUS and retry_after is not None:
            delay = retry_after
        else:
            delay = self.policy.delay_for(self.attempt)

        self.attempt += 1
        return delay
