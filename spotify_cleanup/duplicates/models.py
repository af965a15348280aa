"""
Duplicate scan models

A scan groups the tracks of one source (Liked Songs or a playlist) into
DuplicateGroups. Every DuplicateItem carries a key unique within the scan;
the selection (key -> remove?) is what the user edits before cleanup.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..spotify.models import SpotifyTrack


class DuplicateKind(Enum):
    """
    Values:
        EXACT: Same track id repeated in a playlist
        POTENTIAL: Different ids sharing normalized title and primary artist
    """
    EXACT = "exact"
    POTENTIAL = "potential"


@dataclass(frozen=True)
class DuplicateItem:
    """
    One member of a duplicate group

    Attributes:
        key: Selection key, unique within one scan
        track: The track
        position: Playlist position for exact duplicates, None otherwise
    """
    key: str
    track: SpotifyTrack
    position: Optional[int] = None


@dataclass
class DuplicateGroup:
    """A set of at least two items that look like the same track"""
    id: str
    kind: DuplicateKind
    title: str
    subtitle: str
    items: List[DuplicateItem]

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class DuplicateScan:
    """
    Result of a duplicate detection pass

    Attributes:
        groups: Groups in discovery order
        defaults: Default selection, key -> True when selected for removal
    """
    groups: List[DuplicateGroup] = field(default_factory=list)
    defaults: Dict[str, bool] = field(default_factory=dict)

    def summary(self) -> Dict[str, int]:
        """Number of groups and of items across all groups"""
        return {
            'groups': len(self.groups),
            'items': sum(len(group.items) for group in self.groups),
            'exact': sum(1 for group in self.groups if group.kind == DuplicateKind.EXACT),
            'potential': sum(1 for group in self.groups if group.kind == DuplicateKind.POTENTIAL),
        }

    def selection(self) -> Dict[str, bool]:
        """A fresh copy of the default selection"""
        return dict(self.defaults)

    def selected_items(self, selection: Optional[Dict[str, bool]] = None) -> List[DuplicateItem]:
        """Items marked for removal, in group order"""
        selection = self.defaults if selection is None else selection
        return [
            item
            for group in self.groups
            for item in group.items
            if selection.get(item.key, False)
        ]

    def invalid_groups(self, selection: Optional[Dict[str, bool]] = None) -> List[DuplicateGroup]:
        """Groups where every member is selected; at least one must be kept"""
        selection = self.defaults if selection is None else selection
        return [
            group for group in self.groups
            if all(selection.get(item.key, False) for item in group.items)
        ]

    def find_item(self, key: str) -> Optional[DuplicateItem]:
        for group in self.groups:
            for item in group.items:
                if item.key == key:
                    return item
        return None
