"""
Configuration management for Spotify Cleanup Tool

This module handles loading, validation, and management of application settings
from multiple sources including YAML files and environment variables. It provides
a centralized configuration system shared by the CLI and the cleanup pipeline.

The configuration is organized into logical sections using dataclasses:
- Spotify API settings (credentials, scopes)
- Network behavior (timeouts, retry budget, backoff, request pacing)
- Concurrency limits for library scans
- Safety net settings (recovery playlist naming and verification polling)
- Logging and storage locations

All sensitive data (client id and secret) can be loaded from environment variables
for security, while non-sensitive settings can be stored in YAML files.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, asdict
from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()


@dataclass
class SpotifyConfig:
    """
    Spotify API configuration and authentication settings

    Contains credentials and settings for Spotify Web API integration.
    The scope covers reading and modifying both Liked Songs and playlists,
    which the cleanup pipeline needs for snapshotting and removal.
    """
    client_id: str = ""
    client_secret: str = ""
    redirect_url: str = "http://127.0.0.1:8080/callback"
    scope: str = (
        "user-library-read user-library-modify playlist-read-private "
        "playlist-modify-private playlist-modify-public"
    )


@dataclass
class NetworkConfig:
    """
    Network and HTTP configuration settings

    Controls request timeouts, the retry budget for rate-limited (429) and
    server-error (5xx) responses, the exponential backoff base, and the
    steady-state request pacing used to stay under Spotify's per-second ceiling.
    """
    api_base: str = "https://api.spotify.com/v1"
    request_timeout: int = 30
    max_retries: int = 3
    backoff_base: float = 0.5
    requests_per_second: int = 10


@dataclass
class ConcurrencyConfig:
    """
    Worker pool sizes for library scans

    scope_fetch_limit bounds how many playlists have their contents fetched at
    once; totals_fetch_limit bounds the per-playlist total lookups used for
    library metadata and progress reporting.
    """
    scope_fetch_limit: int = 3
    totals_fetch_limit: int = 4


@dataclass
class SafetyConfig:
    """
    Recovery playlist settings

    Every destructive run first copies the removed tracks into a private
    playlist whose name starts with archive_prefix. Playlists with this prefix
    are never offered as cleanup targets.
    """
    archive_prefix: str = "Removed by Spotify Cleanup Tool"
    archive_description: str = "Backup playlist created by Spotify Cleanup Tool."
    verify_attempts: int = 3
    verify_interval: float = 1.0


@dataclass
class LoggingConfig:
    """
    Logging configuration and output settings

    Controls log level, optional rotating log file and console formatting.
    """
    level: str = "INFO"
    file: str = ""
    max_size: str = "10MB"
    backup_count: int = 3
    console_output: bool = True
    colored_output: bool = True


@dataclass
class SecurityConfig:
    """
    Storage locations for the token cache and user configuration
    """
    token_cache_path: str = "~/.spotify-cleanup/token-cache.json"
    config_directory: str = "~/.spotify-cleanup/"


class Settings:
    """
    Main settings class that manages all configuration

    Loads settings from multiple sources (YAML files, environment variables)
    and provides a unified interface for accessing configuration throughout
    the application.

    The class handles:
    - Loading configuration from YAML files
    - Overriding with environment variables
    - Validating configuration values
    - Saving configuration back to files
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize settings from config file or environment variables

        Args:
            config_path: Path to custom config file, if None uses default locations
        """
        self.config_path = config_path

        self.spotify = SpotifyConfig()
        self.network = NetworkConfig()
        self.concurrency = ConcurrencyConfig()
        self.safety = SafetyConfig()
        self.logging = LoggingConfig()
        self.security = SecurityConfig()

        # Later sources override earlier ones
        self._load_config()
        self._load_environment_variables()

    def _sections(self) -> Dict[str, Any]:
        return {
            'spotify': self.spotify,
            'network': self.network,
            'concurrency': self.concurrency,
            'safety': self.safety,
            'logging': self.logging,
            'security': self.security,
        }

    def _load_config(self) -> None:
        """
        Load configuration from YAML file

        Searches for configuration files in multiple locations in order of
        precedence. The first file found will be used.
        """
        config_paths = [
            self.config_path,
            self.get_config_directory() / "config.yaml",
            Path("config/config.yaml"),
            Path("config.yaml")
        ]

        config_data = {}
        for path in config_paths:
            if path and Path(path).exists():
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        config_data = yaml.safe_load(f) or {}
                    break
                except (OSError, yaml.YAMLError) as e:
                    print(f"Warning: Failed to load config from {path}: {e}")

        self._apply_config(config_data)

    def _apply_config(self, config_data: Dict[str, Any]) -> None:
        """
        Apply configuration data to dataclass instances

        Only keys that exist on the matching dataclass are applied; unknown
        sections and keys are ignored.

        Args:
            config_data: Dictionary containing configuration sections
        """
        config_mapping = self._sections()

        for section_name, section_data in config_data.items():
            if section_name in config_mapping and isinstance(section_data, dict):
                config_obj = config_mapping[section_name]
                for key, value in section_data.items():
                    if hasattr(config_obj, key):
                        setattr(config_obj, key, value)

    def _load_environment_variables(self) -> None:
        """
        Load sensitive configuration from environment variables

        Environment variables take precedence over file-based configuration.
        """
        env_mappings = {
            'SPOTIFY_CLIENT_ID': lambda v: setattr(self.spotify, 'client_id', v),
            'SPOTIFY_CLIENT_SECRET': lambda v: setattr(self.spotify, 'client_secret', v),
            'SPOTIFY_REDIRECT_URL': lambda v: setattr(self.spotify, 'redirect_url', v),
            'SPOTIFY_CLEANUP_LOG_LEVEL': lambda v: setattr(self.logging, 'level', v),
        }

        for env_var, setter in env_mappings.items():
            value = os.getenv(env_var)
            if value:
                setter(value)

    def get_config_directory(self) -> Path:
        """Get the expanded config directory path"""
        return Path(self.security.config_directory).expanduser()

    def get_token_cache_path(self) -> Path:
        """Get the expanded token cache path"""
        return Path(self.security.token_cache_path).expanduser()

    def save_config(self, path: Optional[str] = None) -> Path:
        """
        Save current configuration to file

        Serializes the current configuration to a YAML file, excluding
        the Spotify client credentials.

        Args:
            path: Custom path to save config, defaults to user config directory

        Returns:
            Path the configuration was written to
        """
        target = Path(path) if path else self.get_config_directory() / "config.yaml"

        config_data = {name: asdict(section) for name, section in self._sections().items()}

        config_data['spotify']['client_id'] = ""
        config_data['spotify']['client_secret'] = ""

        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f, default_flow_style=False, indent=2)
        return target

    def validation_errors(self) -> List[str]:
        """
        Collect every configuration problem

        Returns:
            List of human-readable problems, empty when the configuration is usable
        """
        errors = []

        if not self.spotify.client_id or not self.spotify.client_secret:
            errors.append("Spotify client_id and client_secret are required")

        if int(self.network.max_retries) < 0:
            errors.append(f"network.max_retries must be >= 0, got {self.network.max_retries}")

        if float(self.network.backoff_base) < 0:
            errors.append(f"network.backoff_base must be >= 0, got {self.network.backoff_base}")

        if int(self.network.requests_per_second) < 1:
            errors.append(
                f"network.requests_per_second must be >= 1, got {self.network.requests_per_second}"
            )

        for name in ('scope_fetch_limit', 'totals_fetch_limit'):
            if int(getattr(self.concurrency, name)) < 1:
                errors.append(f"concurrency.{name} must be >= 1")

        if int(self.safety.verify_attempts) < 1:
            errors.append(f"safety.verify_attempts must be >= 1, got {self.safety.verify_attempts}")

        if not self.safety.archive_prefix.strip():
            errors.append("safety.archive_prefix cannot be empty")

        return errors

    def validate(self) -> bool:
        """
        Validate current configuration

        Returns:
            True if configuration is valid, False otherwise
        """
        errors = self.validation_errors()

        if errors:
            print("Configuration validation errors:")
            for error in errors:
                print(f"  - {error}")
            return False

        return True

    def __str__(self) -> str:
        sections = [
            f"API: {self.network.api_base}",
            f"Retries: {self.network.max_retries}",
            f"Scan workers: {self.concurrency.scope_fetch_limit}",
            f"Archive prefix: {self.safety.archive_prefix}",
        ]
        return f"Settings({', '.join(sections)})"


# Global settings instance, created on first access
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance

    Returns:
        The shared Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Reload settings from configuration files

    Args:
        config_path: Optional path to specific config file

    Returns:
        New Settings instance with reloaded configuration
    """
    global _settings
    _settings = Settings(config_path)
    return _settings
