"""
Data models for safe mutation runs

A run takes a RemovalPlan, copies everything it is about to remove into a
RecoverySnapshot playlist, verifies the copy and only then issues removals.
The outcome is an ExecutionResult; scope-level removal failures are collected
as FailureRecord values instead of being raised.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..spotify.models import ScopeKind, SpotifyPlaylist
from ..utils.helpers import unique_in_order


class RunState(Enum):
    """
    Lifecycle of a mutation run

    IDLE -> SNAPSHOTTING -> VERIFYING -> MUTATING -> DONE
    SNAPSHOTTING -> FAILED when the recovery playlist cannot be created or filled
    VERIFYING -> FAILED when the recovery copy cannot be confirmed
    """
    IDLE = "idle"
    SNAPSHOTTING = "snapshotting"
    VERIFYING = "verifying"
    MUTATING = "mutating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RemovalPlan:
    """
    Everything a cleanup run is going to remove

    Attributes:
        liked_track_ids: Track ids to remove from Liked Songs
        playlist_track_uris: playlist id -> uris removed with every occurrence
        playlist_track_positions: playlist id -> uri -> positions removed one by one
        removed_track_uris: Union of removed uris (deduplicated, ordered),
            copied into the recovery playlist before anything is removed
    """
    liked_track_ids: List[str] = field(default_factory=list)
    playlist_track_uris: Dict[str, List[str]] = field(default_factory=dict)
    playlist_track_positions: Dict[str, Dict[str, List[int]]] = field(default_factory=dict)
    removed_track_uris: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.liked_track_ids = unique_in_order(self.liked_track_ids)
        self.removed_track_uris = self.snapshot_uris()

    def snapshot_uris(self) -> List[str]:
        """
        Uris the recovery playlist must hold

        removed_track_uris plus every uri removed from a playlist, by uri or
        by position. Liked Songs removals are addressed by id, so their uris
        have to be listed in removed_track_uris.
        """
        uris = list(self.removed_track_uris)
        for values in self.playlist_track_uris.values():
            uris.extend(values)
        for positions in self.playlist_track_positions.values():
            uris.extend(positions)
        return unique_in_order(uris)

    @property
    def is_empty(self) -> bool:
        return not self.liked_track_ids and not self.snapshot_uris()

    @property
    def playlist_ids(self) -> List[str]:
        """Playlists touched by the plan, uri removals first then positional ones"""
        return unique_in_order(
            [pid for pid, uris in self.playlist_track_uris.items() if uris]
            + [pid for pid, positions in self.playlist_track_positions.items() if positions]
        )


@dataclass
class RecoverySnapshot:
    """Recovery playlist and the uris copied into it"""
    playlist: SpotifyPlaylist
    track_uris: List[str]

    @property
    def expected_total(self) -> int:
        return len(self.track_uris)


@dataclass
class FailureRecord:
    """
    A scope whose removal call failed after the snapshot was verified

    Attributes:
        scope: Liked Songs or playlist
        message: User facing description
        scope_id: Playlist id (None for Liked Songs)
    """
    scope: ScopeKind
    message: str
    scope_id: Optional[str] = None

    @property
    def label(self) -> str:
        if self.scope == ScopeKind.LIKED:
            return "Liked Songs"
        return f"playlist {self.scope_id}"


@dataclass
class ExecutionResult:
    """
    Outcome of a completed mutation run

    Attributes:
        removed_from_liked: Tracks removed from Liked Songs
        removed_from_playlists: Playlist entries removed across all playlists
        playlists_updated: Playlists with at least one successful removal call
        removed_tracks: Distinct uris in the recovery snapshot
        archive_playlist: Recovery playlist, None when nothing had to be removed
        failures: Scope failures (empty on full success)
    """
    removed_from_liked: int = 0
    removed_from_playlists: int = 0
    playlists_updated: int = 0
    removed_tracks: int = 0
    archive_playlist: Optional[SpotifyPlaylist] = None
    failures: List[FailureRecord] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures


@dataclass
class ArchiveDeleteResult:
    """Outcome of deleting recovery playlists"""
    removed: int = 0
    failures: List[FailureRecord] = field(default_factory=list)
