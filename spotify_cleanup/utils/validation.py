"""
Input validation utilities
"""
import re
from typing import Optional, Tuple

_ID_PATTERN = re.compile(r'^[a-zA-Z0-9]{22}$')


def extract_playlist_id(url_or_id: str) -> str:
    """
    Extract a playlist ID from a Spotify URL, URI or bare ID

    Supported formats:
    - Direct ID: 22-character alphanumeric string
    - Web URL: https://open.spotify.com/playlist/ID?si=...
    - Spotify URI: spotify:playlist:ID

    Args:
        url_or_id: Spotify playlist URL, URI or ID

    Returns:
        Playlist ID

    Raises:
        ValueError: If no playlist ID can be extracted
    """
    value = (url_or_id or "").strip()

    if _ID_PATTERN.match(value):
        return value

    candidate = None
    if 'spotify.com' in value and 'playlist/' in value:
        candidate = value.split('playlist/')[-1].split('?')[0].strip('/')
    elif value.startswith('spotify:'):
        parts = value.split(':')
        if len(parts) >= 3 and parts[1] == 'playlist':
            candidate = parts[2]

    if candidate and _ID_PATTERN.match(candidate):
        return candidate

    raise ValueError(f"Invalid Spotify playlist URL or ID: {url_or_id}")


def validate_playlist_reference(url_or_id: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a playlist URL, URI or ID

    Args:
        url_or_id: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not url_or_id:
        return False, "Playlist reference cannot be empty"
    try:
        extract_playlist_id(url_or_id)
    except ValueError as e:
        return False, str(e)
    return True, None
