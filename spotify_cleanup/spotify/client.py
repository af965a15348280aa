"""
Spotify Web API client for library scans and safe batch writes

This module is the remote layer of the cleanup pipeline. Every other component
talks to Spotify through SpotifyClient, which takes care of authentication
headers, request pacing, retries, pagination, response validation and batching.

Architecture Overview:

1. **Request Layer** (`_request`)
   - Bearer token passed explicitly by the caller on every call; the client
     keeps no token state, so it can be driven with a fake token in tests
   - Shared asyncio_throttle.Throttler caps requests per second
   - Retry decisions delegated to a RetryState (see retry.py):
     429 honours Retry-After, 5xx uses exponential backoff, anything else
     fails immediately with the response body attached
   - 204 and empty 2xx bodies return None

2. **Pagination Layer** (`fetch_page`, `fetch_all`)
   - Follows the `next` URL chain strictly in order
   - Fails closed: a failing page aborts the whole chain, nothing is truncated

3. **Read Operations**
   - Current user, owned playlists, recovery playlists
   - Playlist items with positions, Liked Songs, declared totals
   - Library metadata and full library summary, fetched with a bounded
     worker pool (map_concurrently)

4. **Write Operations**
   - Chunked to Spotify's batch limits (50 ids, 100 uris) and issued one chunk
     at a time; a failing chunk aborts the call so the caller can record a
     single failure for the whole scope

Error Handling Strategy:
- Retry-exhausted or non-retryable responses: SpotifyAPIError(status, body)
- Successful responses with an unexpected shape: MalformedResponseError
- Transport errors (connection reset, timeout): SpotifyAPIError without status
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import quote

import aiohttp
from asyncio_throttle import Throttler

from ..config.settings import Settings, get_settings
from ..exceptions import MalformedResponseError, SpotifyAPIError
from ..utils.helpers import chunked, unique_in_order
from ..utils.logger import get_logger
from .concurrency import map_concurrently
from .models import (
    LibraryData,
    LibraryMeta,
    Page,
    PlaylistContents,
    PlaylistTrackItem,
    Scope,
    SpotifyPlaylist,
    SpotifyTrack,
    SpotifyUser,
)
from .retry import BackoffPolicy, parse_retry_after

DEFAULT_API_BASE = "https://api.spotify.com/v1"

# Spotify batch limits for write endpoints
SAVED_TRACKS_BATCH_SIZE = 50
PLAYLIST_TRACKS_BATCH_SIZE = 100

SleepFunc = Callable[[float], Awaitable[Any]]
ProgressCallback = Callable[[int, int], None]


class SpotifyClient:
    """
    Async Spotify Web API client used by the cleanup pipeline

    The client can own its aiohttp session (created lazily, closed by
    `close()` or by leaving the `async with` block) or use a session supplied
    by the caller, which it then never closes.

    Attributes:
        api_base: Base URL of the Web API
        policy: Retry budget and backoff schedule
        archive_prefix: Name prefix of recovery playlists, excluded from cleanup targets
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        api_base: str = DEFAULT_API_BASE,
        policy: Optional[BackoffPolicy] = None,
        request_timeout: float = 30,
        requests_per_second: int = 10,
        archive_prefix: str = "Removed by Spotify Cleanup Tool",
        sleep: Optional[SleepFunc] = None
    ):
        """
        Initialize the client

        Args:
            session: Existing aiohttp session to use (not closed by the client)
            api_base: Web API base URL
            policy: Backoff policy, defaults to 3 retries with a 0.5s base
            request_timeout: Total timeout in seconds for owned sessions
            requests_per_second: Steady-state request ceiling
            archive_prefix: Recovery playlist name prefix
            sleep: Coroutine used for backoff waits (injectable for tests)
        """
        self.api_base = api_base.rstrip('/')
        self.policy = policy or BackoffPolicy()
        self.archive_prefix = archive_prefix
        self.request_timeout = request_timeout
        self.logger = get_logger(__name__)

        self._session = session
        self._owns_session = session is None
        self._throttler = Throttler(rate_limit=requests_per_second, period=1.0)
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        session: Optional[aiohttp.ClientSession] = None
    ) -> 'SpotifyClient':
        """Build a client configured from application settings"""
        settings = settings or get_settings()
        return cls(
            session=session,
            api_base=settings.network.api_base,
            policy=BackoffPolicy(
                max_retries=int(settings.network.max_retries),
                base_delay=float(settings.network.backoff_base),
            ),
            request_timeout=settings.network.request_timeout,
            requests_per_second=int(settings.network.requests_per_second),
            archive_prefix=settings.safety.archive_prefix,
        )

    @property
    def session(self) -> aiohttp.ClientSession:
        """Lazily created aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if the client created it"""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> 'SpotifyClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith('http://') or path_or_url.startswith('https://'):
            return path_or_url
        return f"{self.api_base}/{path_or_url.lstrip('/')}"

    async def _request(
        self,
        token: str,
        method: str,
        path_or_url: str,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Any] = None
    ) -> Optional[Any]:
        """
        Issue one API request with pacing and bounded retries

        Args:
            token: OAuth access token
            method: HTTP method
            path_or_url: Absolute URL (as found in `next`) or path under api_base
            params: Query parameters
            json_body: JSON request body

        Returns:
            Decoded JSON body, or None for 204 / empty responses

        Raises:
            SpotifyAPIError: Non-retryable status, exhausted retries or transport error
            MalformedResponseError: 2xx response whose body is not JSON
        """
        url = self._url(path_or_url)
        headers = {
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json',
        }
        retry = self.policy.start()

        while True:
            async with self._throttler:
                try:
                    async with self.session.request(
                        method, url, headers=headers, params=params, json=json_body
                    ) as response:
                        status = response.status
                        body = await response.text()
                        retry_after = parse_retry_after(response.headers.get('Retry-After'))
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    raise SpotifyAPIError(f"Request {method} {url} failed: {e}", url=url) from e

            if 200 <= status < 300:
                if status == 204 or not body.strip():
                    return None
                try:
                    return json.loads(body)
                except ValueError as e:
                    raise MalformedResponseError(
                        f"Invalid JSON from {method} {url}", status=status, body=body[:500], url=url
                    ) from e

            delay = retry.next_delay(status, retry_after)
            if delay is None:
                self.logger.debug(f"{method} {url} failed with {status} after {retry.attempt} retries")
                raise SpotifyAPIError(
                    f"Spotify API error ({status}): {body or 'no response body'}",
                    status=status,
                    body=body,
                    url=url,
                )

            reason = "Rate limited" if status == 429 else f"Server error {status}"
            self.logger.warning(
                f"{reason} on {method} {url}, retrying in {delay:.1f}s "
                f"(retry {retry.attempt}/{self.policy.max_retries})"
            )
            await self._sleep(delay)

    # Pagination

    async def fetch_page(self, token: str, url: str) -> Page:
        """
        Fetch one page of a paginated list endpoint

        Args:
            token: OAuth access token
            url: Page URL (absolute `next` URL or path under api_base)

        Returns:
            Page with raw items, next URL and total (empty Page for 204)
        """
        data = await self._request(token, 'GET', url)
        if data is None:
            return Page()
        try:
            return Page.from_spotify_data(data)
        except MalformedResponseError as e:
            raise MalformedResponseError(f"{e.message} ({self._url(url)})", url=self._url(url)) from e

    async def fetch_all(self, token: str, url: str) -> List[Any]:
        """
        Fetch every item of a paginated list endpoint

        Pages are requested strictly one after another by following `next`.
        Any failure aborts the chain and propagates.

        Args:
            token: OAuth access token
            url: First page URL

        Returns:
            All raw items, in page order
        """
        items: List[Any] = []
        next_url: Optional[str] = url
        pages = 0

        while next_url:
            page = await self.fetch_page(token, next_url)
            items.extend(page.items)
            next_url = page.next
            pages += 1

        self.logger.debug(f"Fetched {len(items)} items in {pages} pages from {self._url(url)}")
        return items

    # Read operations

    async def get_current_user(self, token: str) -> SpotifyUser:
        data = await self._request(token, 'GET', '/me')
        if data is None:
            raise MalformedResponseError("Empty response for current user", url=self._url('/me'))
        return SpotifyUser.from_spotify_data(data)

    async def get_all_playlists(self, token: str) -> List[SpotifyPlaylist]:
        """All playlists in the user's library (owned and followed)"""
        items = await self.fetch_all(token, '/me/playlists?limit=50')
        return [SpotifyPlaylist.from_spotify_data(item) for item in items if item is not None]

    def is_archive_name(self, name: str) -> bool:
        return name.startswith(self.archive_prefix)

    async def get_owned_playlists(self, token: str, user_id: str) -> List[SpotifyPlaylist]:
        """
        Playlists the user owns, excluding recovery playlists

        Args:
            token: OAuth access token
            user_id: Id of the current user

        Returns:
            Owned playlists whose name does not start with the archive prefix
        """
        playlists = await self.get_all_playlists(token)
        return [
            playlist for playlist in playlists
            if playlist.owner_id == user_id and not self.is_archive_name(playlist.name)
        ]

    async def get_archive_playlists(self, token: str, user_id: str) -> List[SpotifyPlaylist]:
        """Recovery playlists created by previous cleanup runs"""
        playlists = await self.get_all_playlists(token)
        return [
            playlist for playlist in playlists
            if playlist.owner_id == user_id and self.is_archive_name(playlist.name)
        ]

    async def get_playlist_items(self, token: str, playlist_id: str) -> List[PlaylistTrackItem]:
        """
        Every available track occurrence of a playlist, with its position

        Positions are 0-based indexes in the playlist. Unavailable entries
        (removed tracks, local files) still occupy a position but are not
        returned.

        Args:
            token: OAuth access token
            playlist_id: Playlist id

        Returns:
            Playlist items in playlist order
        """
        raw_items = await self.fetch_all(token, f"/playlists/{quote(playlist_id, safe='')}/tracks?limit=100")

        items = []
        for position, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                raise MalformedResponseError(f"Unexpected playlist item at position {position} of {playlist_id}")
            track = SpotifyTrack.from_spotify_data(raw.get('track'))
            if track is None:
                self.logger.debug(f"Skipping unavailable item at position {position} of {playlist_id}")
                continue
            items.append(PlaylistTrackItem(track=track, position=position))
        return items

    async def get_playlist_tracks(self, token: str, playlist_id: str) -> List[SpotifyTrack]:
        items = await self.get_playlist_items(token, playlist_id)
        return [item.track for item in items]

    async def get_liked_tracks(self, token: str) -> List[SpotifyTrack]:
        """All available tracks in Liked Songs, most recently saved first"""
        raw_items = await self.fetch_all(token, '/me/tracks?limit=50')
        tracks = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                raise MalformedResponseError("Unexpected saved track item")
            track = SpotifyTrack.from_spotify_data(raw.get('track'))
            if track is not None:
                tracks.append(track)
        return tracks

    async def get_liked_total(self, token: str) -> int:
        page = await self.fetch_page(token, '/me/tracks?limit=1')
        if page.total is None:
            raise MalformedResponseError("Saved tracks response has no total", url=self._url('/me/tracks'))
        return page.total

    async def get_playlist_total(self, token: str, playlist_id: str) -> int:
        """Declared number of items in a playlist (eventually consistent after writes)"""
        data = await self._request(
            token, 'GET', f"/playlists/{quote(playlist_id, safe='')}", params={'fields': 'tracks.total'}
        )
        tracks = data.get('tracks') if isinstance(data, dict) else None
        total = tracks.get('total') if isinstance(tracks, dict) else None
        if not isinstance(total, int):
            raise MalformedResponseError(f"Playlist {playlist_id} response has no tracks.total")
        return total

    async def get_playlist_snapshot_id(self, token: str, playlist_id: str) -> str:
        data = await self._request(
            token, 'GET', f"/playlists/{quote(playlist_id, safe='')}", params={'fields': 'snapshot_id'}
        )
        snapshot_id = data.get('snapshot_id') if isinstance(data, dict) else None
        if not isinstance(snapshot_id, str):
            raise MalformedResponseError(f"Playlist {playlist_id} response has no snapshot_id")
        return snapshot_id

    async def get_library_meta(self, token: str, concurrency: int = 4) -> LibraryMeta:
        """
        User, owned playlists with declared totals, and the Liked Songs total

        Playlist totals are fetched with at most `concurrency` requests in flight.
        """
        user = await self.get_current_user(token)
        playlists = await self.get_owned_playlists(token, user.id)

        async def with_total(playlist: SpotifyPlaylist) -> Scope:
            return Scope.for_playlist(playlist, total=await self.get_playlist_total(token, playlist.id))

        scopes = await map_concurrently(playlists, concurrency, with_total)
        liked_total = await self.get_liked_total(token)

        self.logger.info(f"Library meta: {len(scopes)} owned playlists, {liked_total} liked songs")
        return LibraryMeta(user=user, playlists=scopes, liked_total=liked_total)

    async def get_library_summary(
        self,
        token: str,
        concurrency: int = 3,
        on_progress: Optional[ProgressCallback] = None
    ) -> LibraryData:
        """
        Liked Songs and the contents of every owned playlist

        Args:
            token: OAuth access token
            concurrency: Playlists fetched at the same time
            on_progress: Called with (completed playlists, total playlists)

        Returns:
            LibraryData for the library audit
        """
        user = await self.get_current_user(token)
        playlists = await self.get_owned_playlists(token, user.id)
        completed = 0

        async def contents(playlist: SpotifyPlaylist) -> PlaylistContents:
            return PlaylistContents(playlist=playlist, tracks=await self.get_playlist_tracks(token, playlist.id))

        def report(_index: int, _result: PlaylistContents) -> None:
            nonlocal completed
            completed += 1
            if on_progress is not None:
                on_progress(completed, len(playlists))

        playlist_data = await map_concurrently(playlists, concurrency, contents, on_result=report)
        liked_tracks = await self.get_liked_tracks(token)

        return LibraryData(user=user, liked_tracks=liked_tracks, playlists=playlist_data)

    # Write operations

    async def create_playlist(
        self,
        token: str,
        user_id: str,
        name: str,
        description: str = "",
        public: bool = False
    ) -> SpotifyPlaylist:
        data = await self._request(
            token,
            'POST',
            f"/users/{quote(user_id, safe='')}/playlists",
            json_body={'name': name, 'public': public, 'description': description},
        )
        if data is None:
            raise MalformedResponseError(f"Empty response when creating playlist '{name}'")
        return SpotifyPlaylist.from_spotify_data(data)

    async def delete_playlist(self, token: str, playlist_id: str) -> None:
        """Remove a playlist from the user's library (Spotify's equivalent of deletion)"""
        await self._request(token, 'DELETE', f"/playlists/{quote(playlist_id, safe='')}/followers")

    async def add_tracks_to_playlist(self, token: str, playlist_id: str, uris: Sequence[str]) -> None:
        """
        Append tracks to a playlist, 100 uris per request

        Raises:
            SpotifyAPIError: On the first failing chunk; later chunks are not sent
        """
        path = f"/playlists/{quote(playlist_id, safe='')}/tracks"
        for chunk in chunked(list(uris), PLAYLIST_TRACKS_BATCH_SIZE):
            await self._request(token, 'POST', path, json_body={'uris': chunk})
            self.logger.debug(f"Added {len(chunk)} tracks to playlist {playlist_id}")

    async def remove_saved_tracks(self, token: str, track_ids: Sequence[str]) -> None:
        """
        Remove tracks from Liked Songs, 50 ids per request

        Raises:
            SpotifyAPIError: On the first failing chunk; later chunks are not sent
        """
        for chunk in chunked(list(track_ids), SAVED_TRACKS_BATCH_SIZE):
            await self._request(token, 'DELETE', '/me/tracks', params={'ids': ','.join(chunk)})
            self.logger.debug(f"Removed {len(chunk)} tracks from Liked Songs")

    async def remove_playlist_tracks(self, token: str, playlist_id: str, uris: Sequence[str]) -> None:
        """
        Remove every occurrence of the given uris from a playlist, 100 per request

        Raises:
            SpotifyAPIError: On the first failing chunk; later chunks are not sent
        """
        path = f"/playlists/{quote(playlist_id, safe='')}/tracks"
        for chunk in chunked(list(uris), PLAYLIST_TRACKS_BATCH_SIZE):
            await self._request(token, 'DELETE', path, json_body={'tracks': [{'uri': uri} for uri in chunk]})
            self.logger.debug(f"Removed {len(chunk)} uris from playlist {playlist_id}")

    async def remove_playlist_track_positions(
        self,
        token: str,
        playlist_id: str,
        removals: Mapping[str, Iterable[int]]
    ) -> None:
        """
        Remove specific occurrences of tracks from a playlist

        Used when a playlist holds the same track several times and only some
        occurrences must go. Every chunk is sent against the snapshot id read
        before the first chunk, so positions keep referring to the playlist as
        it was scanned even after earlier chunks changed it.

        Args:
            token: OAuth access token
            playlist_id: Playlist id
            removals: uri -> positions to remove

        Raises:
            SpotifyAPIError: On the first failing chunk; later chunks are not sent
        """
        entries = [
            {'uri': uri, 'positions': sorted(unique_in_order(positions))}
            for uri, positions in removals.items()
        ]
        entries = [entry for entry in entries if entry['positions']]
        if not entries:
            return

        snapshot_id = await self.get_playlist_snapshot_id(token, playlist_id)
        path = f"/playlists/{quote(playlist_id, safe='')}/tracks"
        for chunk in chunked(entries, PLAYLIST_TRACKS_BATCH_SIZE):
            await self._request(
                token, 'DELETE', path, json_body={'tracks': chunk, 'snapshot_id': snapshot_id}
            )
            self.logger.debug(f"Removed {len(chunk)} positioned uris from playlist {playlist_id}")


def create_spotify_client(
    settings: Optional[Settings] = None,
    session: Optional[aiohttp.ClientSession] = None
) -> SpotifyClient:
    """
    Factory for a client configured from settings

    Args:
        settings: Settings to use, defaults to the global instance
        session: Optional aiohttp session to share

    Returns:
        New SpotifyClient
    """
    return SpotifyClient.from_settings(settings, session=session)
