"""
Exception classes for spotify-cleanup.

Every failure the pipeline can raise is defined here so that callers can tell
apart a configuration problem, a remote fetch failure and the one failure that
aborts a cleanup run before anything is removed.

Exception Hierarchy:
    CleanupToolError (base)
        ConfigError - Configuration file or value issues
        AuthenticationError - No usable Spotify access token
        SpotifyAPIError - Non-retryable or retry-exhausted HTTP failure
            MalformedResponseError - 2xx response that does not match its schema
        VerificationError - Recovery playlist could not be confirmed

Scope-level removal failures are deliberately NOT exceptions: they are
collected as FailureRecord values (see safety.models) so one failing playlist
never hides the outcome of the others.
"""

from typing import Any, Dict, Optional


class CleanupToolError(Exception):
    """
    Base exception for all spotify-cleanup errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (playlist id, url...).
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(CleanupToolError):
    """
    Raised when the configuration cannot be used.

    Common causes:
        - Missing Spotify client credentials
        - Invalid numeric values (negative retries, zero concurrency)
    """
    pass


class AuthenticationError(CleanupToolError):
    """
    Raised when no valid access token can be obtained.

    Token refresh is handled by the authentication collaborator; the pipeline
    itself only ever receives a token string.
    """
    pass


class SpotifyAPIError(CleanupToolError):
    """
    Raised when a Spotify Web API request fails for good.

    This is the "fetch failure" of the pipeline: either the status was not
    retryable (4xx other than 429) or the retry budget for 429/5xx responses
    was exhausted. The response body is kept as diagnostic context.

    Attributes:
        status: HTTP status code of the last response (None for transport errors).
        body: Raw response body text of the last response.
        url: Request URL that failed.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: str = "",
        url: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, details)
        self.status = status
        self.body = body
        self.url = url

    @property
    def is_rate_limit(self) -> bool:
        return self.status == 429

    @property
    def is_server_error(self) -> bool:
        return self.status is not None and 500 <= self.status < 600


class MalformedResponseError(SpotifyAPIError):
    """
    Raised when a successful response does not match the expected shape.

    Responses are validated at the boundary before any model is built, so a
    partially parsed object never travels further into the pipeline.
    """
    pass


class VerificationError(CleanupToolError):
    """
    Raised when the recovery playlist copy could not be confirmed.

    This is pipeline-fatal: no removal request has been issued when it is
    raised. The recovery playlist itself may exist and is left untouched.

    Attributes:
        playlist_id: Id of the recovery playlist that failed verification.
        playlist_name: Name of that playlist.
        expected: Number of tracks the playlist should contain.
        observed: Totals reported by each verification poll, in order.
    """

    def __init__(
        self,
        message: str,
        playlist_id: str,
        playlist_name: str,
        expected: int,
        observed: Optional[list] = None
    ) -> None:
        super().__init__(message, details={
            'playlist_id': playlist_id,
            'expected': expected,
            'observed': list(observed or []),
        })
        self.playlist_id = playlist_id
        self.playlist_name = playlist_name
        self.expected = expected
        self.observed = list(observed or [])
