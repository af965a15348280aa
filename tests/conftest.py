"""Test configuration and fixtures"""

import json
import tempfile
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional
from unittest.mock import Mock
from urllib.parse import urlencode

import pytest

from spotify_cleanup.config.settings import ConcurrencyConfig, NetworkConfig, SafetyConfig
from spotify_cleanup.spotify.client import DEFAULT_API_BASE, SpotifyClient
from spotify_cleanup.spotify.models import PlaylistTrackItem, SpotifyArtist, SpotifyTrack
from spotify_cleanup.spotify.retry import BackoffPolicy


class FakeResponse:
    """Stand-in for an aiohttp response used as an async context manager"""

    def __init__(self, status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None):
        self.status = status
        self.headers = headers or {}
        if body is None:
            self._text = ""
        elif isinstance(body, str):
            self._text = body
        else:
            self._text = json.dumps(body)

    async def text(self) -> str:
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class Call(NamedTuple):
    method: str
    path: str
    params: Optional[Dict[str, str]]
    json: Any


class FakeSession:
    """
    Scripted replacement for aiohttp.ClientSession.request

    Routes are keyed by method and path (relative to the API base). A path
    registered with a query string only matches that exact query. Each route
    serves its responses in order and repeats the last one.
    """

    closed = False

    def __init__(self):
        self.routes: Dict[tuple, List[FakeResponse]] = {}
        self.calls: List[Call] = []

    def add(self, method: str, path: str, *responses: FakeResponse) -> None:
        self.routes.setdefault((method, path), []).extend(responses)

    def request(self, method, url, headers=None, params=None, json=None):
        path = url[len(DEFAULT_API_BASE):] if url.startswith(DEFAULT_API_BASE) else url
        self.calls.append(Call(method, path, params, json))

        full = f"{path}{'&' if '?' in path else '?'}{urlencode(params)}" if params else path
        for key in ((method, full), (method, path), (method, path.split('?')[0])):
            queue = self.routes.get(key)
            if queue:
                return queue.pop(0) if len(queue) > 1 else queue[0]
        raise AssertionError(f"Unexpected request: {method} {url} params={params}")

    def calls_to(self, method: str, path_prefix: str) -> List[Call]:
        return [call for call in self.calls if call.method == method and call.path.startswith(path_prefix)]

    async def close(self):
        self.closed = True


class SleepRecorder:
    """Async sleep replacement that records requested delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_track(
    track_id: str,
    name: str = "Song",
    artist: str = "Artist",
    artist_id: Optional[str] = None,
    featured: Optional[List[SpotifyArtist]] = None,
    album: str = "Album"
) -> SpotifyTrack:
    artists = (SpotifyArtist(id=artist_id or f"artist-{artist.lower()}", name=artist),) + tuple(featured or [])
    return SpotifyTrack(
        id=track_id,
        uri=f"spotify:track:{track_id}",
        name=name,
        artists=artists,
        album_name=album,
    )


def make_item(track: SpotifyTrack, position: int) -> PlaylistTrackItem:
    return PlaylistTrackItem(track=track, position=position)


def track_json(track_id: str, name: str = "Song", artist: str = "Artist") -> Dict[str, Any]:
    """Raw Spotify track object"""
    return {
        'id': track_id,
        'uri': f"spotify:track:{track_id}",
        'name': name,
        'artists': [{'id': f"artist-{artist.lower()}", 'name': artist}],
        'album': {
            'name': 'Album',
            'images': [
                {'url': 'https://i.scdn.co/large', 'height': 640, 'width': 640},
                {'url': 'https://i.scdn.co/small', 'height': 64, 'width': 64},
            ],
        },
    }


def page_json(items: List[Any], next_url: Optional[str] = None, total: Optional[int] = None) -> Dict[str, Any]:
    return {'items': items, 'next': next_url, 'total': len(items) if total is None else total}


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def client(session, sleep):
    """SpotifyClient wired to the fake session with instant sleeps"""
    return SpotifyClient(
        session=session,
        policy=BackoffPolicy(max_retries=3, base_delay=0.5),
        requests_per_second=1000,
        sleep=sleep,
    )


@pytest.fixture
def mock_settings():
    """Mock settings for testing"""
    settings = Mock()
    settings.network = NetworkConfig(requests_per_second=1000)
    settings.concurrency = ConcurrencyConfig()
    settings.safety = SafetyConfig()
    return settings
