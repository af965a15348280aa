"""
Turn a duplicate selection into a RemovalPlan
"""

from typing import Dict, List, Optional

from ..safety.models import RemovalPlan
from ..spotify.models import ScopeKind
from .models import DuplicateItem


def build_removal_plan(
    selected_items: List[DuplicateItem],
    source: ScopeKind,
    playlist_id: Optional[str] = None
) -> RemovalPlan:
    """
    Build the removal plan for selected duplicates of one source

    Liked Songs removals are addressed by track id. Playlist items that carry
    a position are removed by position so the kept occurrence survives; the
    others are removed by uri. A uri already removed by position is never
    also removed by uri, since that would delete every occurrence.

    Args:
        selected_items: Items selected for removal
        source: Source the scan was run on
        playlist_id: Playlist id, required for playlist sources

    Returns:
        RemovalPlan with the union of removed uris for the recovery snapshot

    Raises:
        ValueError: If a playlist source has no playlist id
    """
    if source == ScopeKind.PLAYLIST and not playlist_id:
        raise ValueError("playlist_id is required for playlist duplicate removal")

    liked_ids: List[str] = []
    uris: List[str] = []
    positions: Dict[str, List[int]] = {}
    removed: List[str] = []

    for item in selected_items:
        removed.append(item.track.uri)
        if source == ScopeKind.LIKED:
            liked_ids.append(item.track.id)
        elif item.position is not None:
            entry = positions.setdefault(item.track.uri, [])
            if item.position not in entry:
                entry.append(item.position)
        elif item.track.uri not in uris:
            uris.append(item.track.uri)

    uris = [uri for uri in uris if uri not in positions]

    plan = RemovalPlan(liked_track_ids=liked_ids, removed_track_uris=removed)
    if source == ScopeKind.PLAYLIST:
        if uris:
            plan.playlist_track_uris[playlist_id] = uris
        if positions:
            plan.playlist_track_positions[playlist_id] = {
                uri: sorted(values) for uri, values in positions.items()
            }
    return plan
