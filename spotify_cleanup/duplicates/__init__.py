# spotify_cleanup/duplicates/__init__.py
"""
Duplicate detection package
Exact and potential duplicate grouping and removal plan building
"""

from .models import DuplicateKind, DuplicateItem, DuplicateGroup, DuplicateScan
from .detector import build_match_key, detect_in_positional_scope, detect_in_flat_scope
from .removal import build_removal_plan

__all__ = [
    'DuplicateKind',
    'DuplicateItem',
    'DuplicateGroup',
    'DuplicateScan',
    'build_match_key',
    'detect_in_positional_scope',
    'detect_in_flat_scope',
    'build_removal_plan',
]
