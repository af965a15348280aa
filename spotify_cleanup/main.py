"""
Main CLI interface for Spotify Cleanup Tool

This module provides the command-line interface for auditing and cleaning a
Spotify library. Every destructive command goes through the
SafeMutationOrchestrator: removed tracks are first copied into a verified
recovery playlist, and nothing is removed if that copy cannot be confirmed.

The CLI is built using Click framework and provides command groups for:
- Authentication handling (login, logout, status)
- Library overview (summary)
- Duplicate cleanup (scan, clean) for Liked Songs or an owned playlist
- Artist cleanup (list, remove) across the whole library
- Recovery playlist management (list, delete)
- Configuration display (show)
"""

import asyncio
import functools
import sys
from typing import Dict, List, Optional, Tuple

import click

from . import __version__
from .audit import (
    ARTIST_SORTS,
    build_artist_list,
    build_artist_stats,
    build_featured_only_artists,
    build_playlist_impact,
    build_removal_plan as build_artist_removal_plan,
    build_track_candidates,
    build_tracks_with_sources
)
from .config.auth import get_auth, reset_auth
from .config.settings import Settings, get_settings, reload_settings
from .duplicates import (
    DuplicateKind,
    DuplicateScan,
    build_removal_plan as build_duplicate_removal_plan,
    detect_in_flat_scope,
    detect_in_positional_scope
)
from .exceptions import VerificationError
from .safety import (
    ExecutionResult,
    RemovalPlan,
    SafeMutationOrchestrator,
    delete_archives,
    list_archives
)
from .spotify.client import SpotifyClient, create_spotify_client
from .spotify.models import Scope, ScopeKind
from .utils.helpers import pluralize, truncate_string
from .utils.logger import configure_from_settings, create_operation_logger, get_current_log_file, get_logger
from .utils.validation import extract_playlist_id, validate_playlist_reference

# Initialize logging system from configuration settings
configure_from_settings()
logger = get_logger(__name__)

LIKED_SOURCE = "liked"


def print_banner():
    """Print application banner to console"""
    banner = """
╔═══════════════════════════════════════════════════════════════╗
║                     Spotify Cleanup Tool                      ║
║                                                               ║
║   Remove duplicates and artists, with a recovery playlist     ║
║                                                               ║
╚═══════════════════════════════════════════════════════════════╝
    """
    click.echo(click.style(banner, fg='green', bold=True))


def handle_error(func):
    """
    Decorator to handle common CLI errors gracefully

    Catches exceptions raised by a command, logs them and exits with a
    non-zero status: 130 when the user pressed Ctrl-C, 1 otherwise.

    Args:
        func: The CLI command function to wrap

    Returns:
        Wrapped function with error handling
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo(click.style("\n\nOperation cancelled by user", fg='yellow'))
            sys.exit(130)
        except Exception as e:
            logger.error(f"Command failed: {e}")
            click.echo(click.style(f"Error: {e}", fg='red'), err=True)
            sys.exit(1)
    return wrapper


def run_async(coro):
    """Run a coroutine on a fresh event loop"""
    return asyncio.run(coro)


def get_token() -> str:
    """Access token of the logged in user (raises AuthenticationError otherwise)"""
    return get_auth().get_access_token()


def display_username(user_info: Optional[Dict]) -> str:
    if not user_info:
        return 'Unknown'
    return user_info.get('display_name') or user_info.get('id', 'Unknown')


def confirm_or_abort(message: str, assume_yes: bool) -> None:
    if assume_yes:
        return
    if not click.confirm(message, default=False):
        click.echo("Aborted, nothing was removed.")
        sys.exit(0)


def print_execution_result(result: ExecutionResult) -> None:
    """
    Report a cleanup run: counts, the recovery playlist and scope failures

    Args:
        result: Outcome of SafeMutationOrchestrator.run()
    """
    click.echo()
    if result.archive_playlist:
        click.echo(f"Recovery playlist: {result.archive_playlist.name}")
    click.echo(f"   Removed from Liked Songs: {result.removed_from_liked}")
    click.echo(f"   Removed from playlists: {result.removed_from_playlists}")
    click.echo(f"   Playlists updated: {result.playlists_updated}")
    click.echo(f"   Tracks backed up: {result.removed_tracks}")

    if result.failures:
        click.echo(click.style(f"\nCompleted with {pluralize(len(result.failures), 'failure')}:", fg='yellow'))
        for failure in result.failures:
            click.echo(f"   • {failure.label}: {failure.message}")
    else:
        click.echo(click.style("\nCleanup completed successfully", fg='green'))


async def execute_plan(
    client: SpotifyClient,
    settings: Settings,
    token: str,
    plan: RemovalPlan,
    source_name: Optional[str] = None,
    duplicates: bool = False
) -> ExecutionResult:
    orchestrator = SafeMutationOrchestrator(client, settings)
    return await orchestrator.run(token, plan, source_name=source_name, duplicates=duplicates)


def run_plan(plan: RemovalPlan, source_name: Optional[str] = None, duplicates: bool = False) -> None:
    """Execute a plan and report the outcome; verification failures exit with status 1"""
    settings = get_settings()
    token = get_token()

    async def run():
        async with create_spotify_client(settings) as client:
            return await execute_plan(client, settings, token, plan, source_name, duplicates)

    try:
        result = run_async(run())
    except VerificationError as e:
        logger.error(f"Verification failed for {e.playlist_id}: expected {e.expected}, observed {e.observed}")
        click.echo(click.style(
            f"Recovery playlist '{e.playlist_name}' could not be verified "
            f"(expected {e.expected} tracks). No tracks were removed.",
            fg='red'
        ), err=True)
        sys.exit(1)

    print_execution_result(result)
    if result.failures:
        sys.exit(1)


# Main CLI group - root command that all subcommands attach to
@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--config', type=click.Path(), help='Path to config file')
@click.pass_context
def cli(ctx, version, verbose, config):
    """
    Spotify Cleanup Tool - bulk clean a Spotify library safely

    Finds duplicate tracks and unwanted artists in Liked Songs and owned
    playlists. Every removal is preceded by a verified recovery playlist.
    """
    ctx.ensure_object(dict)

    if version:
        click.echo(f"Spotify Cleanup Tool v{__version__}")
        return

    if config:
        reload_settings(config)
        configure_from_settings()
        click.echo(f"Loaded config: {config}")

    if verbose:
        ctx.obj['verbose'] = True
        settings = get_settings()
        settings.logging.level = "DEBUG"
        configure_from_settings()
        logger.info("Verbose mode enabled")

    if ctx.invoked_subcommand is None:
        print_banner()
        click.echo(ctx.get_help())


# Authentication commands

@cli.group()
def auth():
    """Authentication management"""
    pass


@auth.command()
@handle_error
def login():
    """
    Authenticate with Spotify

    Opens the browser for the OAuth authorization flow and caches the
    resulting token for later commands.
    """
    auth_manager = get_auth()

    if auth_manager.is_authenticated():
        user_info = auth_manager.get_user_info()
        username = display_username(user_info)
        click.echo(f"Already authenticated as: {username}")
        return

    click.echo("Starting Spotify authentication...")
    auth_manager.login()

    user_info = auth_manager.get_user_info()
    username = display_username(user_info)
    click.echo(f"Successfully authenticated as: {username}")


@auth.command()
@handle_error
def logout():
    """Remove the cached Spotify token"""
    if get_auth().logout():
        click.echo("Successfully logged out")
    else:
        click.echo("No stored authentication found")
    reset_auth()


@auth.command()
@handle_error
def status():
    """Check authentication status"""
    auth_manager = get_auth()

    if auth_manager.is_authenticated():
        user_info = auth_manager.get_user_info()
        if user_info:
            click.echo("Authentication Status: Authenticated")
            click.echo(f"   User: {display_username(user_info)}")
            click.echo(f"   Id: {user_info.get('id', 'Unknown')}")
        else:
            click.echo("Authentication Status: Authenticated (limited info)")
    else:
        click.echo("Authentication Status: Not authenticated")
        click.echo("   Run 'spotify-cleanup auth login' to authenticate")


# Library overview

@cli.command()
@handle_error
def summary():
    """
    Show the library overview

    Lists Liked Songs and every owned playlist with its track count.
    Recovery playlists from previous runs are not included.
    """
    settings = get_settings()
    token = get_token()

    async def load():
        async with create_spotify_client(settings) as client:
            return await client.get_library_meta(token, concurrency=settings.concurrency.totals_fetch_limit)

    meta = run_async(load())

    click.echo(f"Library of {meta.user.display_name or meta.user.id}:\n")
    liked = meta.liked_scope
    click.echo(f"   {liked.name:<40} {liked.total:>6}")
    for scope in meta.playlists:
        click.echo(f"   {truncate_string(scope.name, 40):<40} {scope.total or 0:>6}   {scope.id}")

    total_tracks = meta.liked_total + sum(scope.total or 0 for scope in meta.playlists)
    click.echo(f"\n{pluralize(len(meta.playlists), 'owned playlist')}, {pluralize(total_tracks, 'track')} in total")


# Duplicate commands

@cli.group()
def duplicates():
    """
    Duplicate cleanup

    SOURCE is "liked" for Liked Songs, or an owned playlist id, URL or URI.
    """
    pass


async def scan_source(client: SpotifyClient, token: str, source: str) -> Tuple[ScopeKind, Optional[str], str, DuplicateScan]:
    """
    Fetch a source and detect its duplicates

    Returns:
        (source kind, playlist id or None, display name, scan)
    """
    if source.lower() == LIKED_SOURCE:
        tracks = await client.get_liked_tracks(token)
        return ScopeKind.LIKED, None, Scope.LIKED_NAME, detect_in_flat_scope(tracks)

    playlist_id = extract_playlist_id(source)
    user = await client.get_current_user(token)
    owned = {playlist.id: playlist for playlist in await client.get_owned_playlists(token, user.id)}
    if playlist_id not in owned:
        raise click.ClickException(f"Playlist {playlist_id} is not one of your playlists")

    items = await client.get_playlist_items(token, playlist_id)
    return ScopeKind.PLAYLIST, playlist_id, owned[playlist_id].name, detect_in_positional_scope(items)


def load_scan(source: str) -> Tuple[ScopeKind, Optional[str], str, DuplicateScan]:
    if source.lower() != LIKED_SOURCE:
        is_valid, error_msg = validate_playlist_reference(source)
        if not is_valid:
            click.echo(click.style(f"Invalid playlist: {error_msg}", fg='red'), err=True)
            sys.exit(1)

    settings = get_settings()
    token = get_token()

    async def load():
        async with create_spotify_client(settings) as client:
            return await scan_source(client, token, source)

    return run_async(load())


def print_scan(name: str, scan: DuplicateScan, selection: Dict[str, bool]) -> None:
    stats = scan.summary()
    click.echo(f"Duplicates in {name}: {pluralize(stats['groups'], 'group')}, {pluralize(stats['items'], 'item')}\n")

    for group in scan.groups:
        label = "EXACT" if group.kind == DuplicateKind.EXACT else "POTENTIAL"
        click.echo(click.style(f"[{label}] {group.title}", bold=True) + f" - {group.subtitle}")
        for item in group.items:
            marker = click.style("remove", fg='red') if selection.get(item.key) else click.style("keep", fg='green')
            position = f"#{item.position + 1} " if item.position is not None else ""
            click.echo(f"   {marker:<6} {position}{item.track.name} ({item.track.album_name})   {item.key}")
        click.echo()


@duplicates.command('scan')
@click.argument('source')
@handle_error
def duplicates_scan(source):
    """
    Scan a source for duplicates

    Exact duplicates (same track repeated in a playlist) keep their first
    occurrence and select the others for removal. Potential duplicates (same
    title and primary artist, different track) are never selected by default.
    """
    _, _, name, scan = load_scan(source)
    if not scan.groups:
        click.echo(f"No duplicates found in {name}")
        return
    print_scan(name, scan, scan.defaults)


@duplicates.command('clean')
@click.argument('source')
@click.option('--remove', 'remove_keys', multiple=True, help='Also remove the item with this key')
@click.option('--keep', 'keep_keys', multiple=True, help='Keep the item with this key')
@click.option('--dry-run', is_flag=True, help='Show what would be removed without removing')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@handle_error
def duplicates_clean(source, remove_keys, keep_keys, dry_run, yes):
    """
    Remove duplicates from a source

    Starts from the default selection of `duplicates scan`, adjusted with
    --remove and --keep (item keys as printed by the scan). Every group must
    keep at least one item.
    """
    kind, playlist_id, name, scan = load_scan(source)
    selection = scan.selection()

    for key in list(remove_keys) + list(keep_keys):
        if scan.find_item(key) is None:
            raise click.BadParameter(f"Unknown item key '{key}'")
    for key in remove_keys:
        selection[key] = True
    for key in keep_keys:
        selection[key] = False

    invalid = scan.invalid_groups(selection)
    if invalid:
        titles = ", ".join(group.title for group in invalid)
        raise click.ClickException(f"Keep at least one item in every group ({titles})")

    selected = scan.selected_items(selection)
    if not selected:
        click.echo(f"Nothing selected for removal in {name}")
        return

    print_scan(name, scan, selection)
    plan = build_duplicate_removal_plan(selected, kind, playlist_id)

    if dry_run:
        click.echo(f"Dry run: {pluralize(len(selected), 'item')} would be removed from {name}")
        return

    confirm_or_abort(f"Remove {pluralize(len(selected), 'item')} from {name}?", yes)
    run_plan(plan, source_name=name if kind == ScopeKind.PLAYLIST else None, duplicates=True)


# Artist commands

@cli.group()
def artists():
    """Artist cleanup across Liked Songs and owned playlists"""
    pass


def load_library_tracks():
    """Fetch the whole library and merge it per track"""
    settings = get_settings()
    token = get_token()
    operation = create_operation_logger(__name__, "Library scan", unit="playlist")

    async def load():
        async with create_spotify_client(settings) as client:
            return await client.get_library_summary(
                token,
                concurrency=settings.concurrency.scope_fetch_limit,
                on_progress=lambda done, total: operation.progress("Loading playlists", done, total),
            )

    operation.start("Loading library...")
    try:
        library = run_async(load())
    except Exception as e:
        operation.error(str(e), e)
        raise
    operation.complete(
        f"Loaded {pluralize(len(library.liked_tracks), 'liked song')} "
        f"and {pluralize(len(library.playlists), 'playlist')}"
    )
    return build_tracks_with_sources(library)


@artists.command('list')
@click.option('--sort', type=click.Choice(ARTIST_SORTS), default='count-desc', help='Sort order')
@click.option('--featured', is_flag=True, help='Include artists that only appear as featured artists')
@click.option('--featured-only', is_flag=True, help='Only list artists that only appear as featured artists')
@click.option('--limit', type=int, default=50, help='Number of artists to show (0 for all)')
@handle_error
def artists_list(sort, featured, featured_only, limit):
    """List artists in the library with their track counts"""
    tracks = load_library_tracks()
    stats = build_artist_stats(tracks)

    if featured_only:
        listing = build_featured_only_artists(stats, sort)
    else:
        listing = build_artist_list(stats, sort, show_featured_only=featured)

    shown = listing[:limit] if limit > 0 else listing
    click.echo()
    for artist in shown:
        click.echo(f"   {truncate_string(artist.name, 40):<40} {artist.count:>5}   {artist.id}")
    if len(shown) < len(listing):
        click.echo(f"\n... and {len(listing) - len(shown)} more")


@artists.command('remove')
@click.argument('artist_ids', nargs=-1, required=True)
@click.option('--source', 'sources', multiple=True, help='Only remove from this scope ("liked" or playlist id)')
@click.option('--dry-run', is_flag=True, help='Show what would be removed without removing')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@handle_error
def artists_remove(artist_ids, sources, dry_run, yes):
    """
    Remove every track crediting the given artists

    Tracks are removed from Liked Songs and every owned playlist, or only from
    the scopes given with --source.
    """
    tracks = load_library_tracks()
    candidates, _ = build_track_candidates(tracks, artist_ids)
    if not candidates:
        click.echo("No tracks found for the selected artists")
        return

    impact = build_playlist_impact(candidates)
    wanted = {extract_playlist_id(s) if s.lower() != LIKED_SOURCE else LIKED_SOURCE for s in sources}
    selected_sources = {entry.id: not wanted or entry.id in wanted for entry in impact}

    click.echo(f"\n{pluralize(len(candidates), 'track')} found:\n")
    for entry in impact:
        marker = "x" if selected_sources[entry.id] else " "
        click.echo(f"   [{marker}] {truncate_string(entry.label, 40):<40} {pluralize(entry.track_count, 'track')}")

    plan = build_artist_removal_plan(candidates, selected_sources)
    if plan.is_empty:
        click.echo("\nNothing to remove from the selected scopes")
        return

    if dry_run:
        click.echo(f"\nDry run: {pluralize(len(plan.removed_track_uris), 'track')} would be removed")
        return

    confirm_or_abort(f"\nRemove {pluralize(len(plan.removed_track_uris), 'track')}?", yes)
    run_plan(plan)


# Recovery playlist commands

@cli.group()
def archives():
    """Recovery playlists created by previous cleanups"""
    pass


def fetch_archives() -> List[Scope]:
    settings = get_settings()
    token = get_token()

    async def load():
        async with create_spotify_client(settings) as client:
            return await list_archives(client, token)

    return run_async(load())


@archives.command('list')
@handle_error
def archives_list():
    """List recovery playlists"""
    scopes = fetch_archives()
    if not scopes:
        click.echo("No recovery playlists found")
        return

    for scope in scopes:
        click.echo(f"   {scope.name:<70} {scope.total or 0:>5}   {scope.id}")
    click.echo(f"\n{pluralize(len(scopes), 'recovery playlist')}")


@archives.command('delete')
@click.argument('playlist_ids', nargs=-1)
@click.option('--all', 'delete_all', is_flag=True, help='Delete every recovery playlist')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@handle_error
def archives_delete(playlist_ids, delete_all, yes):
    """Delete recovery playlists (by id, or all with --all)"""
    archive_scopes = fetch_archives()
    known = {scope.id: scope for scope in archive_scopes}

    if delete_all:
        ids = [scope.id for scope in archive_scopes]
    else:
        ids = [extract_playlist_id(value) for value in playlist_ids]
        unknown = [playlist_id for playlist_id in ids if playlist_id not in known]
        if unknown:
            raise click.ClickException(f"Not a recovery playlist: {', '.join(unknown)}")

    if not ids:
        click.echo("No recovery playlists to delete")
        return

    confirm_or_abort(f"Delete {pluralize(len(ids), 'recovery playlist')}?", yes)

    settings = get_settings()
    token = get_token()

    async def delete():
        async with create_spotify_client(settings) as client:
            return await delete_archives(client, token, ids)

    result = run_async(delete())
    click.echo(f"Deleted {pluralize(result.removed, 'recovery playlist')}")
    if result.failures:
        for failure in result.failures:
            name = known[failure.scope_id].name if failure.scope_id in known else failure.scope_id
            click.echo(click.style(f"   • {name}: {failure.message}", fg='red'))
        sys.exit(1)


# Configuration commands

@cli.group()
def config():
    """Configuration management"""
    pass


@config.command()
@handle_error
def show():
    """Show current configuration"""
    settings = get_settings()

    click.echo("Current Configuration:\n")

    click.echo("Spotify:")
    click.echo(f"   Client ID: {'set' if settings.spotify.client_id else 'not set'}")
    click.echo(f"   Redirect URL: {settings.spotify.redirect_url}")

    click.echo("\nNetwork:")
    click.echo(f"   API base: {settings.network.api_base}")
    click.echo(f"   Max retries: {settings.network.max_retries}")
    click.echo(f"   Backoff base: {settings.network.backoff_base}s")
    click.echo(f"   Requests per second: {settings.network.requests_per_second}")

    click.echo("\nConcurrency:")
    click.echo(f"   Playlist scan workers: {settings.concurrency.scope_fetch_limit}")
    click.echo(f"   Total fetch workers: {settings.concurrency.totals_fetch_limit}")

    click.echo("\nSafety:")
    click.echo(f"   Recovery prefix: {settings.safety.archive_prefix}")
    click.echo(f"   Verification polls: {settings.safety.verify_attempts} every {settings.safety.verify_interval}s")

    current_log = get_current_log_file()
    click.echo(f"\nLogging: {current_log if current_log else 'console only'} ({settings.logging.level})")

    errors = settings.validation_errors()
    if errors:
        click.echo(f"\nFound {pluralize(len(errors), 'issue')}:")
        for error in errors:
            click.echo(f"   • {error}")


# Entry point for module execution
if __name__ == '__main__':
    cli()
