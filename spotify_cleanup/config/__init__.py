"""
Configuration management package for Spotify Cleanup Tool

Two components:

1. Settings Management (settings.py):
   - Application configuration from YAML files and environment variables
   - Settings validation
   - Process-wide access through get_settings() / reload_settings()

2. Authentication Management (auth.py):
   - Spotify OAuth2 sign-in through spotipy
   - Cached token storage and refresh
   - Produces the access token that the CLI passes explicitly to the pipeline
"""

from .settings import Settings, get_settings, reload_settings
from .auth import SpotifyAuth, get_auth, reset_auth

__all__ = [
    'Settings',
    'get_settings',
    'reload_settings',
    'SpotifyAuth',
    'get_auth',
    'reset_auth',
]
