"""
Library audit: who is in the library, and what removing them would touch

Works on a LibraryData snapshot (Liked Songs plus every owned playlist) and
supports the artist cleanup flow:

1. build_tracks_with_sources() merges the library into one entry per track
   id, remembering every scope the track appears in
2. build_artist_stats() / build_artist_list() summarize artists; artists who
   only ever appear as featured contributors are hidden unless asked for
3. build_track_candidates() picks every track crediting a selected artist
4. build_playlist_impact() shows how many tracks each scope would lose
5. build_removal_plan() turns the final selection into a RemovalPlan for the
   SafeMutationOrchestrator
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .safety.models import RemovalPlan
from .spotify.models import LibraryData, Scope, ScopeKind, SpotifyTrack
from .utils.helpers import compute_percent

LIKED_SOURCE_KEY = "liked"

ARTIST_SORTS = ("count-desc", "count-asc", "name-asc", "name-desc")


@dataclass(frozen=True)
class TrackSource:
    """A scope a track appears in"""
    kind: ScopeKind
    playlist_id: Optional[str] = None
    playlist_name: Optional[str] = None

    @property
    def key(self) -> str:
        """Selection key: "liked" or the playlist id"""
        return LIKED_SOURCE_KEY if self.kind == ScopeKind.LIKED else self.playlist_id

    @property
    def label(self) -> str:
        return Scope.LIKED_NAME if self.kind == ScopeKind.LIKED else (self.playlist_name or "")


@dataclass
class TrackWithSources:
    """A distinct track and every scope that contains it"""
    track: SpotifyTrack
    sources: List[TrackSource] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.track.id

    @property
    def uri(self) -> str:
        return self.track.uri


@dataclass
class ArtistStats:
    """Tracks crediting an artist, and the subset where they are the primary artist"""
    id: str
    name: str
    track_ids: Set[str] = field(default_factory=set)
    primary_track_ids: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class ArtistSummary:
    id: str
    name: str
    count: int


@dataclass(frozen=True)
class PlaylistImpact:
    """Number of selected tracks a scope would lose"""
    id: str
    label: str
    track_count: int


def build_tracks_with_sources(library: Optional[LibraryData]) -> List[TrackWithSources]:
    """
    Merge Liked Songs and playlists into one entry per track id

    Args:
        library: Library snapshot (None gives an empty list)

    Returns:
        Tracks in first-seen order, Liked Songs first, each with unique sources
    """
    if library is None:
        return []

    by_id: Dict[str, TrackWithSources] = {}

    def add(track: SpotifyTrack, source: TrackSource) -> None:
        entry = by_id.get(track.id)
        if entry is None:
            by_id[track.id] = TrackWithSources(track=track, sources=[source])
        elif all(existing.key != source.key for existing in entry.sources):
            entry.sources.append(source)

    for track in library.liked_tracks:
        add(track, TrackSource(kind=ScopeKind.LIKED))

    for contents in library.playlists:
        source = TrackSource(
            kind=ScopeKind.PLAYLIST,
            playlist_id=contents.playlist.id,
            playlist_name=contents.playlist.name,
        )
        for track in contents.tracks:
            add(track, source)

    return list(by_id.values())


def build_artist_stats(tracks: Iterable[TrackWithSources]) -> Dict[str, ArtistStats]:
    """Per artist id, the tracks crediting them (artists without an id are skipped)"""
    stats: Dict[str, ArtistStats] = {}

    for entry in tracks:
        artists = entry.track.artists
        primary_id = artists[0].id if artists else None
        for artist in artists:
            if artist.id is None:
                continue
            artist_stats = stats.setdefault(artist.id, ArtistStats(id=artist.id, name=artist.name))
            artist_stats.track_ids.add(entry.id)
            if artist.id == primary_id:
                artist_stats.primary_track_ids.add(entry.id)

    return stats


def _check_sort(sort: str) -> None:
    if sort not in ARTIST_SORTS:
        raise ValueError(f"Unknown artist sort '{sort}', expected one of {', '.join(ARTIST_SORTS)}")


def _sorted_artists(artists: List[ArtistSummary], sort: str) -> List[ArtistSummary]:
    _check_sort(sort)
    # Secondary key first: stable sorts keep the name tiebreak ascending
    ordered = sorted(artists, key=lambda artist: artist.name.casefold())
    if sort.startswith("name"):
        return sorted(ordered, key=lambda artist: artist.name.casefold(), reverse=sort == "name-desc")
    return sorted(ordered, key=lambda artist: artist.count, reverse=sort == "count-desc")


def build_artist_list(
    stats: Dict[str, ArtistStats],
    sort: str = "count-desc",
    show_featured_only: bool = False
) -> List[ArtistSummary]:
    """
    Artists with their track counts

    Args:
        stats: Output of build_artist_stats()
        sort: count-desc, count-asc, name-asc or name-desc (ties broken by name)
        show_featured_only: Include artists that are never the primary artist

    Returns:
        Sorted artist summaries
    """
    artists = [
        ArtistSummary(id=entry.id, name=entry.name, count=len(entry.track_ids))
        for entry in stats.values()
        if show_featured_only or entry.primary_track_ids
    ]
    return _sorted_artists(artists, sort)


def build_featured_only_artists(stats: Dict[str, ArtistStats], sort: str = "count-desc") -> List[ArtistSummary]:
    """Artists that only appear as featured contributors"""
    artists = [
        ArtistSummary(id=entry.id, name=entry.name, count=len(entry.track_ids))
        for entry in stats.values()
        if not entry.primary_track_ids
    ]
    return _sorted_artists(artists, sort)


def build_track_candidates(
    tracks: Iterable[TrackWithSources],
    artist_ids: Iterable[str]
) -> Tuple[List[TrackWithSources], Dict[str, bool]]:
    """
    Tracks crediting any of the selected artists

    Returns:
        (candidates, selection) where every candidate is selected by default
    """
    selected = set(artist_ids)
    candidates = [
        entry for entry in tracks
        if any(artist.id in selected for artist in entry.track.artists)
    ]
    return candidates, {entry.id: True for entry in candidates}


def build_playlist_impact(selected_tracks: Iterable[TrackWithSources]) -> List[PlaylistImpact]:
    """Per scope, how many of the selected tracks it contains (first-seen order)"""
    counts: Dict[str, int] = {}
    labels: Dict[str, str] = {}

    for entry in selected_tracks:
        for source in entry.sources:
            counts[source.key] = counts.get(source.key, 0) + 1
            labels.setdefault(source.key, source.label)

    return [PlaylistImpact(id=key, label=labels[key], track_count=count) for key, count in counts.items()]


def build_removal_plan(
    selected_tracks: Iterable[TrackWithSources],
    selected_sources: Dict[str, bool]
) -> RemovalPlan:
    """
    RemovalPlan for removing tracks from the selected scopes

    Args:
        selected_tracks: Tracks to remove
        selected_sources: Scope key ("liked" or playlist id) -> remove from it?

    Returns:
        RemovalPlan; only tracks removed from at least one selected scope are
        part of the recovery snapshot
    """
    plan = RemovalPlan()
    liked_seen: Set[str] = set()
    removed_seen: Set[str] = set()
    playlist_seen: Dict[str, Set[str]] = {}

    for entry in selected_tracks:
        removed = False
        for source in entry.sources:
            if not selected_sources.get(source.key, False):
                continue
            if source.kind == ScopeKind.LIKED:
                if entry.id not in liked_seen:
                    liked_seen.add(entry.id)
                    plan.liked_track_ids.append(entry.id)
            else:
                seen = playlist_seen.setdefault(source.playlist_id, set())
                if entry.uri not in seen:
                    seen.add(entry.uri)
                    plan.playlist_track_uris.setdefault(source.playlist_id, []).append(entry.uri)
            removed = True

        if removed and entry.uri not in removed_seen:
            removed_seen.add(entry.uri)
            plan.removed_track_uris.append(entry.uri)

    return plan


def compute_scan_percent(
    completed_sources: int,
    total_sources: int,
    completed_tracks: int = 0,
    total_tracks: int = 0
) -> int:
    """Scan progress in percent, by tracks when their total is known, otherwise by scopes"""
    if total_tracks:
        return compute_percent(completed_tracks, total_tracks)
    return compute_percent(completed_sources, total_sources)
