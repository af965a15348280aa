"""
Spotify Cleanup Tool: bulk-audit and safely clean a Spotify library

The tool finds duplicate tracks and unwanted artists in the user's Liked Songs
and owned playlists and removes them without ever losing a track: everything
that is about to be removed is first copied into a recovery playlist, the copy
is verified, and only then are removal requests issued.

## Core Architecture

**Spotify Integration (`spotify_cleanup/spotify/`)**
- Async Web API client (aiohttp) with request pacing, bounded retries and
  strict pagination
- Bounded worker pool for fetching many playlists at once
- Response models validated at the boundary

**Duplicate Detection (`spotify_cleanup/duplicates/`)**
- Exact duplicates: the same track repeated in a playlist
- Potential duplicates: same normalized title and primary artist
- Removal plans that keep the chosen occurrence of a repeated track

**Safe Mutation (`spotify_cleanup/safety/`)**
- Snapshot, verify, then mutate, scope by scope
- Per-scope failure reporting
- Recovery playlist management

**Library Audit (`spotify_cleanup/audit.py`)**
- Artist statistics and artist-based removal plans

**Configuration and Utilities (`spotify_cleanup/config/`, `spotify_cleanup/utils/`)**
- YAML and environment configuration, OAuth through spotipy
- Console and file logging, helpers and input validation
"""

__version__ = "0.1.0"

__author__ = "Spotify Cleanup Tool Team"

__description__ = "Bulk-audit and safely clean Spotify Liked Songs and playlists"

__all__ = [
    "__version__",
    "__author__",
    "__description__"
]
