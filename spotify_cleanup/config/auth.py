"""
OAuth2 authentication and token management for Spotify API

Sign-in and token refresh sit outside the cleanup pipeline: the pipeline only
ever receives an access token string, passed explicitly to every remote call.
This module is the collaborator that produces that string for the CLI.

Key features:
- Authorization code flow through spotipy's SpotifyOAuth helper
- Token cache on disk (spotipy CacheFileHandler) with restrictive permissions
- Transparent refresh of expired tokens
- Logout by deleting the cached token
"""

import os
from typing import Dict, Optional, Any

import spotipy
from spotipy.cache_handler import CacheFileHandler
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from .settings import Settings, get_settings
from ..exceptions import AuthenticationError, ConfigError


class SpotifyAuth:
    """
    Authentication manager producing access tokens for the cleanup pipeline

    Wraps spotipy's OAuth helper so the rest of the application never deals
    with refresh tokens or expiry: get_access_token() either returns a usable
    token or raises AuthenticationError.

    Attributes:
        settings: Application settings instance
        token_file: Path of the cached token
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize authentication manager with application settings

        Args:
            settings: Settings to use, defaults to the global instance
        """
        self.settings = settings or get_settings()
        self.token_file = self.settings.get_token_cache_path()
        self._oauth: Optional[SpotifyOAuth] = None

    @property
    def oauth(self) -> SpotifyOAuth:
        """
        Lazily built spotipy OAuth helper

        Raises:
            ConfigError: If client credentials are not configured
        """
        if self._oauth is None:
            spotify_config = self.settings.spotify
            if not spotify_config.client_id or not spotify_config.client_secret:
                raise ConfigError(
                    "Spotify client_id and client_secret are required "
                    "(set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET)"
                )
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            self._oauth = SpotifyOAuth(
                client_id=spotify_config.client_id,
                client_secret=spotify_config.client_secret,
                redirect_uri=spotify_config.redirect_url,
                scope=spotify_config.scope,
                cache_handler=CacheFileHandler(cache_path=str(self.token_file)),
                open_browser=True,
            )
        return self._oauth

    def _cached_token(self) -> Optional[Dict[str, Any]]:
        """Return the cached token info, refreshed if it had expired"""
        token_info = self.oauth.get_cached_token()
        if not token_info:
            return None
        if self.oauth.is_token_expired(token_info):
            try:
                token_info = self.oauth.refresh_access_token(token_info['refresh_token'])
            except SpotifyOauthError:
                return None
        return token_info

    def login(self) -> str:
        """
        Run the interactive authorization flow if no usable token is cached

        Returns:
            A valid access token

        Raises:
            AuthenticationError: If the flow did not produce a token
        """
        token_info = self._cached_token()
        if token_info:
            return token_info['access_token']

        try:
            token = self.oauth.get_access_token(as_dict=False)
        except SpotifyOauthError as e:
            raise AuthenticationError(f"Spotify authorization failed: {e}")

        if not token:
            raise AuthenticationError("Spotify authorization did not return a token")

        if self.token_file.exists():
            os.chmod(self.token_file, 0o600)
        return token

    def get_access_token(self) -> str:
        """
        Get a valid access token without starting an interactive flow

        Returns:
            Access token string

        Raises:
            AuthenticationError: If the user has not logged in or refresh failed
        """
        token_info = self._cached_token()
        if not token_info:
            raise AuthenticationError("Not logged in. Run 'spotify-cleanup auth login' first.")
        return token_info['access_token']

    def is_authenticated(self) -> bool:
        """Check whether a usable token is cached (no network call for fresh tokens)"""
        try:
            return self._cached_token() is not None
        except ConfigError:
            return False

    def logout(self) -> bool:
        """
        Delete the cached token

        Returns:
            True if a cached token was removed
        """
        self._oauth = None
        if self.token_file.exists():
            self.token_file.unlink()
            return True
        return False

    def get_user_info(self) -> Optional[Dict[str, Any]]:
        """
        Get the authenticated user's profile

        Returns:
            Profile dictionary, or None when not authenticated
        """
        try:
            token = self.get_access_token()
            return spotipy.Spotify(auth=token).current_user()
        except (AuthenticationError, SpotifyException):
            return None


_auth_instance: Optional[SpotifyAuth] = None


def get_auth() -> SpotifyAuth:
    """Get the global authentication instance"""
    global _auth_instance
    if not _auth_instance:
        _auth_instance = SpotifyAuth()
    return _auth_instance


def reset_auth() -> None:
    """Forget the global authentication instance (does not delete the token cache)"""
    global _auth_instance
    _auth_instance = None
