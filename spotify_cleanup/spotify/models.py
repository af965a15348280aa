"""
Data models for Spotify library data

This module defines the value types the cleanup pipeline works with and the
boundary parsing that builds them from raw Spotify Web API JSON. Every
`from_spotify_data()` factory validates the shape it needs and raises
MalformedResponseError instead of returning a partially filled object, so
nothing downstream has to second-guess a model it receives.

Model overview:

1. **Scope layer**: what can be cleaned
   - ScopeKind: Liked Songs or an owned playlist
   - Scope: a scope with its declared total (used for verification and progress)
   - SpotifyPlaylist: playlist metadata as returned by the API

2. **Item layer**: what gets removed
   - SpotifyArtist: contributor reference
   - SpotifyTrack: one track (identity = `id`, locator = `uri`)
   - PlaylistTrackItem: one occurrence of a track at a position in a playlist

3. **Transport layer**
   - Page: one page of a paginated list endpoint (`items`, `next`, `total`)

4. **Aggregates**
   - SpotifyUser, LibraryMeta, PlaylistContents, LibraryData

Identity vs locator: `id` is shared by every occurrence of a track anywhere in
the library; `uri` is the handle write endpoints accept. Two occurrences of the
same track in a playlist are different PlaylistTrackItems with the same id.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import MalformedResponseError


def _require(data: Dict[str, Any], key: str, expected: Any, context: str) -> Any:
    """Fetch a required key and check its type, raising MalformedResponseError otherwise"""
    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected an object for {context}, got {type(data).__name__}")
    if key not in data:
        raise MalformedResponseError(f"Missing '{key}' in {context}")
    value = data[key]
    if not isinstance(value, expected):
        raise MalformedResponseError(
            f"Unexpected type for '{key}' in {context}: {type(value).__name__}"
        )
    return value


def _optional(data: Dict[str, Any], key: str, expected: Any, context: str) -> Any:
    """Fetch an optional key (missing or null allowed) and check its type"""
    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected an object for {context}, got {type(data).__name__}")
    value = data.get(key)
    if value is not None and not isinstance(value, expected):
        raise MalformedResponseError(
            f"Unexpected type for '{key}' in {context}: {type(value).__name__}"
        )
    return value


class ScopeKind(Enum):
    """
    Kind of collection a removal applies to

    Values:
        LIKED: The user's saved tracks ("Liked Songs"), addressed by track id
        PLAYLIST: A playlist owned by the user, addressed by track uri
    """
    LIKED = "liked"
    PLAYLIST = "playlist"


@dataclass(frozen=True)
class SpotifyArtist:
    """
    Contributor reference embedded in a track

    Attributes:
        id: Spotify artist id (None for artists of local files)
        name: Display name
    """
    id: Optional[str]
    name: str

    @classmethod
    def from_spotify_data(cls, data: Dict[str, Any]) -> 'SpotifyArtist':
        return cls(
            id=_optional(data, 'id', str, 'artist'),
            name=_require(data, 'name', str, 'artist'),
        )


@dataclass(frozen=True)
class SpotifyTrack:
    """
    A single track, independent of where it appears

    Attributes:
        id: Stable track identity
        uri: Locator used by playlist write endpoints (spotify:track:ID)
        name: Track title
        artists: Contributors in credit order; the first one is the primary artist
        album_name: Display name of the album the track belongs to
        album_image_url: Smallest album artwork, when available
    """
    id: str
    uri: str
    name: str
    artists: Tuple[SpotifyArtist, ...] = ()
    album_name: str = ""
    album_image_url: Optional[str] = None

    @property
    def primary_artist(self) -> str:
        """Name of the first credited artist ("" when the track has none)"""
        return self.artists[0].name if self.artists else ""

    @property
    def all_artists(self) -> str:
        return ", ".join(artist.name for artist in self.artists)

    @classmethod
    def from_spotify_data(cls, data: Optional[Dict[str, Any]]) -> Optional['SpotifyTrack']:
        """
        Build a track from a Spotify track object

        Unavailable entries (null track, or a track without an id such as a
        local file) are not errors: they return None and the caller skips them.

        Args:
            data: Raw track object

        Returns:
            SpotifyTrack, or None for unavailable entries

        Raises:
            MalformedResponseError: If an available track is missing required fields
        """
        if data is None:
            return None
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected an object for track, got {type(data).__name__}")
        if data.get('id') is None:
            return None

        track_id = _require(data, 'id', str, 'track')
        context = f"track {track_id}"
        artists_data = _require(data, 'artists', list, context)
        album = _optional(data, 'album', dict, context) or {}
        images = _optional(album, 'images', list, f"album of {context}") or []

        return cls(
            id=track_id,
            uri=_require(data, 'uri', str, context),
            name=_require(data, 'name', str, context),
            artists=tuple(SpotifyArtist.from_spotify_data(artist) for artist in artists_data),
            album_name=_optional(album, 'name', str, f"album of {context}") or "",
            album_image_url=_smallest_image_url(images),
        )


def _smallest_image_url(images: List[Dict[str, Any]]) -> Optional[str]:
    """Pick the smallest artwork; images without a height never replace a sized one"""
    smallest = None
    for image in images:
        if not isinstance(image, dict) or not image.get('url'):
            continue
        if smallest is None:
            smallest = image
            continue
        if image.get('height') and smallest.get('height') and image['height'] < smallest['height']:
            smallest = image
    return smallest['url'] if smallest else None


@dataclass(frozen=True)
class PlaylistTrackItem:
    """
    One occurrence of a track inside a playlist

    Attributes:
        track: The track at this position
        position: 0-based index of the occurrence in the playlist
    """
    track: SpotifyTrack
    position: int


@dataclass(frozen=True)
class SpotifyUser:
    """Authenticated user profile"""
    id: str
    display_name: str = ""

    @classmethod
    def from_spotify_data(cls, data: Dict[str, Any]) -> 'SpotifyUser':
        return cls(
            id=_require(data, 'id', str, 'user'),
            display_name=_optional(data, 'display_name', str, 'user') or "",
        )


@dataclass(frozen=True)
class SpotifyPlaylist:
    """
    Playlist metadata

    Attributes:
        id: Playlist id
        name: Display name
        owner_id: Id of the owning user
        track_total: Declared number of items (None when the response omits it)
        snapshot_id: Version id used for position-based removals
    """
    id: str
    name: str
    owner_id: Optional[str] = None
    track_total: Optional[int] = None
    snapshot_id: Optional[str] = None

    @classmethod
    def from_spotify_data(cls, data: Dict[str, Any]) -> 'SpotifyPlaylist':
        playlist_id = _require(data, 'id', str, 'playlist')
        context = f"playlist {playlist_id}"
        owner = _optional(data, 'owner', dict, context) or {}
        tracks = _optional(data, 'tracks', dict, context) or {}
        return cls(
            id=playlist_id,
            name=_require(data, 'name', str, context),
            owner_id=_optional(owner, 'id', str, f"owner of {context}"),
            track_total=_optional(tracks, 'total', int, context),
            snapshot_id=_optional(data, 'snapshot_id', str, context),
        )


@dataclass(frozen=True)
class Scope:
    """
    A collection that can be scanned and cleaned

    Attributes:
        kind: Liked Songs or playlist
        name: Display name
        id: Playlist id (None for Liked Songs)
        total: Declared number of items, used for verification and progress
    """
    kind: ScopeKind
    name: str
    id: Optional[str] = None
    total: Optional[int] = None

    LIKED_NAME = "Liked Songs"

    @classmethod
    def liked(cls, total: Optional[int] = None) -> 'Scope':
        return cls(kind=ScopeKind.LIKED, name=cls.LIKED_NAME, total=total)

    @classmethod
    def for_playlist(cls, playlist: SpotifyPlaylist, total: Optional[int] = None) -> 'Scope':
        return cls(
            kind=ScopeKind.PLAYLIST,
            name=playlist.name,
            id=playlist.id,
            total=playlist.track_total if total is None else total,
        )


@dataclass
class Page:
    """
    One page of a paginated list endpoint

    Attributes:
        items: Raw item objects of this page
        next: URL of the following page, None on the last page
        total: Total number of items across all pages, when reported
    """
    items: List[Any] = field(default_factory=list)
    next: Optional[str] = None
    total: Optional[int] = None

    @classmethod
    def from_spotify_data(cls, data: Dict[str, Any]) -> 'Page':
        return cls(
            items=_require(data, 'items', list, 'page'),
            next=_optional(data, 'next', str, 'page'),
            total=_optional(data, 'total', int, 'page'),
        )


@dataclass
class LibraryMeta:
    """User, owned playlists with their totals, and the Liked Songs total"""
    user: SpotifyUser
    playlists: List[Scope]
    liked_total: int

    @property
    def liked_scope(self) -> Scope:
        return Scope.liked(self.liked_total)


@dataclass
class PlaylistContents:
    """An owned playlist and its available tracks"""
    playlist: SpotifyPlaylist
    tracks: List[SpotifyTrack]


@dataclass
class LibraryData:
    """Full library snapshot used by the library audit"""
    user: SpotifyUser
    liked_tracks: List[SpotifyTrack]
    playlists: List[PlaylistContents]
