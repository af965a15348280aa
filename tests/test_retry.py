"""Test the retry policy state machine"""

import pytest

from spotify_cleanup.spotify.retry import BackoffPolicy, is_retryable_status, parse_retry_after


class TestRetryPolicy:
    """Test retry decisions without HTTP or clocks"""

    def test_retryable_statuses(self):
        assert is_retryable_status(429)
        assert is_retryable_status(500)
        assert is_retryable_status(503)
        assert not is_retryable_status(400)
        assert not is_retryable_status(404)

    def test_parse_retry_after(self):
        assert parse_retry_after("3") == 3.0
        assert parse_retry_after("0.5") == 0.5
        assert parse_retry_after(None) is None
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None
        assert parse_retry_after("-1") is None

    @pytest.mark.parametrize("value", ["inf", "-inf", "nan", "Infinity"])
    def test_parse_retry_after_rejects_non_finite(self, value):
        assert parse_retry_after(value) is None

    def test_backoff_schedule(self):
        """Delays double from the base"""
        state = BackoffPolicy(max_retries=3, base_delay=0.5).start()

        delays = [state.next_delay(500) for _ in range(4)]

        assert delays == [0.5, 1.0, 2.0, None]
        assert state.exhausted

    def test_retry_after_only_for_rate_limit(self):
        state = BackoffPolicy(max_retries=3, base_delay=1.0).start()

        assert state.next_delay(429, retry_after=7.0) == 7.0
        assert state.next_delay(502, retry_after=7.0) == 2.0
        assert state.next_delay(429) == 4.0

    def test_non_retryable_is_terminal(self):
        state = BackoffPolicy().start()

        assert state.next_delay(404) is None
        assert state.exhausted
        assert state.next_delay(429) is None

    @pytest.mark.parametrize("max_retries", [0, 1, 5])
    def test_retry_budget(self, max_retries):
        state = BackoffPolicy(max_retries=max_retries, base_delay=0.1).start()

        granted = 0
        while state.next_delay(429) is not None:
            granted += 1

        assert granted == max_retries
