"""
Duplicate detection

Two entry points, one per source shape:

- detect_in_positional_scope(): playlists, where every occurrence has a
  position. Repeated ids form exact groups (first occurrence kept, the rest
  selected for removal); the remaining tracks are matched on title and
  primary artist to form potential groups.
- detect_in_flat_scope(): Liked Songs, which has no positions and cannot hold
  the same id twice. Only the title/artist matching runs.

Potential matches (a remaster next to the original, a live version...) are
frequent false positives, so their members are never selected by default.
"""

from collections import OrderedDict
from typing import Dict, Iterable, List

from ..spotify.models import PlaylistTrackItem, SpotifyTrack
from ..utils.helpers import normalize_match_text
from ..utils.logger import get_logger
from .models import DuplicateGroup, DuplicateItem, DuplicateKind, DuplicateScan

logger = get_logger(__name__)


def build_match_key(track: SpotifyTrack) -> str:
    """
    Fuzzy match key: normalized title and normalized primary artist

    Examples:
        >>> build_match_key(track)  # "Song (Remastered 2011)" by "Artist"
        'song|artist'
    """
    return f"{normalize_match_text(track.name)}|{normalize_match_text(track.primary_artist)}"


def _potential_groups(tracks: Iterable[SpotifyTrack], scan: DuplicateScan) -> None:
    """Group distinct tracks by match key and append groups of two or more to the scan"""
    by_key: Dict[str, List[DuplicateItem]] = OrderedDict()
    seen_ids = set()

    for track in tracks:
        if track.id in seen_ids:
            continue
        seen_ids.add(track.id)
        by_key.setdefault(build_match_key(track), []).append(
            DuplicateItem(key=f"potential:{track.id}", track=track)
        )

    for match_key, items in by_key.items():
        if len(items) < 2:
            continue
        for item in items:
            scan.defaults[item.key] = False
        sample = items[0].track
        scan.groups.append(DuplicateGroup(
            id=f"potential:{match_key}",
            kind=DuplicateKind.POTENTIAL,
            title=sample.name,
            subtitle=sample.primary_artist,
            items=items,
        ))


def detect_in_positional_scope(items: List[PlaylistTrackItem]) -> DuplicateScan:
    """
    Find duplicates in a playlist

    Args:
        items: Playlist occurrences with their positions

    Returns:
        DuplicateScan with exact groups first, then potential groups
    """
    scan = DuplicateScan()
    occurrences: Dict[str, List[DuplicateItem]] = OrderedDict()

    for item in items:
        occurrences.setdefault(item.track.id, []).append(DuplicateItem(
            key=f"exact:{item.track.id}:{item.position}",
            track=item.track,
            position=item.position,
        ))

    repeated_ids = set()
    for track_id, entries in occurrences.items():
        if len(entries) < 2:
            continue
        repeated_ids.add(track_id)
        ordered = sorted(entries, key=lambda entry: entry.position)
        for index, entry in enumerate(ordered):
            scan.defaults[entry.key] = index > 0
        first = ordered[0].track
        scan.groups.append(DuplicateGroup(
            id=f"exact:{track_id}",
            kind=DuplicateKind.EXACT,
            title=first.name,
            subtitle=first.all_artists,
            items=ordered,
        ))

    _potential_groups(
        (item.track for item in items if item.track.id not in repeated_ids),
        scan,
    )

    summary = scan.summary()
    logger.debug(
        f"Positional scan of {len(items)} items: {summary['exact']} exact, "
        f"{summary['potential']} potential groups"
    )
    return scan


def detect_in_flat_scope(tracks: List[SpotifyTrack]) -> DuplicateScan:
    """
    Find potential duplicates in an unpositioned collection (Liked Songs)

    Args:
        tracks: Tracks in collection order

    Returns:
        DuplicateScan with potential groups only
    """
    scan = DuplicateScan()
    _potential_groups(tracks, scan)
    logger.debug(f"Flat scan of {len(tracks)} tracks: {len(scan.groups)} potential groups")
    return scan
