# spotify_cleanup/spotify/__init__.py
"""
Spotify Web API package
Async client, response models, retry policy and bounded concurrency
"""

from .client import SpotifyClient, create_spotify_client
from .concurrency import map_concurrently
from .retry import BackoffPolicy, RetryState, is_retryable_status, parse_retry_after
from .models import (
    ScopeKind,
    Scope,
    SpotifyArtist,
    SpotifyTrack,
    SpotifyUser,
    SpotifyPlaylist,
    PlaylistTrackItem,
    Page,
    LibraryMeta,
    LibraryData,
    PlaylistContents
)

__all__ = [
    'SpotifyClient',
    'create_spotify_client',
    'map_concurrently',
    'BackoffPolicy',
    'RetryState',
    'is_retryable_status',
    'parse_retry_after',
    'ScopeKind',
    'Scope',
    'SpotifyArtist',
    'SpotifyTrack',
    'SpotifyUser',
    'SpotifyPlaylist',
    'PlaylistTrackItem',
    'Page',
    'LibraryMeta',
    'LibraryData',
    'PlaylistContents',
]
