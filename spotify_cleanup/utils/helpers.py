"""
Utility functions and helpers for Spotify Cleanup Tool
Common functions for batching, string normalization and formatting
"""

import re
from datetime import date
from typing import Hashable, Iterable, Iterator, List, Optional, Sequence, TypeVar

T = TypeVar('T')
H = TypeVar('H', bound=Hashable)

# Parenthetical and bracketed segments, with the whitespace around them
_PAREN_SEGMENT = re.compile(r'\s*\(.*?\)\s*')
_BRACKET_SEGMENT = re.compile(r'\s*\[.*?\]\s*')
# Anything that is not a unicode letter or digit
_NON_ALNUM_RUN = re.compile(r'[\W_]+')


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """
    Split a sequence into consecutive chunks of at most `size` items

    Args:
        items: Sequence to split
        size: Maximum chunk size (must be >= 1)

    Yields:
        Lists of consecutive items, in order
    """
    if size < 1:
        raise ValueError(f"Chunk size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def unique_in_order(items: Iterable[H]) -> List[H]:
    """Drop repeated values, keeping the first occurrence of each"""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def normalize_match_text(value: str) -> str:
    """
    Normalize a title or artist name for fuzzy duplicate matching

    Lowercases, drops "( ... )" and "[ ... ]" segments (remaster/version
    notes, featured artists), collapses every run of non-alphanumeric
    characters into a single space and trims the result. Applying it to an
    already normalized string returns the same string.

    Args:
        value: Original title or name

    Returns:
        Normalized text

    Examples:
        >>> normalize_match_text("Song (Remastered 2011)")
        'song'
        >>> normalize_match_text("Don't Stop [Live] - Edit")
        'don t stop edit'
    """
    normalized = value.lower()
    normalized = _PAREN_SEGMENT.sub(' ', normalized)
    normalized = _BRACKET_SEGMENT.sub(' ', normalized)
    normalized = _NON_ALNUM_RUN.sub(' ', normalized)
    return normalized.strip()


def format_date_label(day: Optional[date] = None) -> str:
    """Format a date as YYYY-MM-DD (today when not given)"""
    return (day or date.today()).isoformat()


def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
    """Return "1 track" / "3 tracks" style labels"""
    word = singular if count == 1 else (plural or f"{singular}s")
    return f"{count} {word}"


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate string to maximum length with suffix

    Args:
        text: Text to truncate
        max_length: Maximum length including suffix
        suffix: Suffix to add when truncated

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def compute_percent(completed: int, total: int) -> int:
    """Rounded completion percentage clamped to 0..100 (0 when total is unknown)"""
    if total <= 0:
        return 0
    return max(0, min(100, round((completed / total) * 100)))
