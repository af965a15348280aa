"""
Recovery playlist management

Every cleanup run leaves a recovery playlist behind. These helpers list them
and delete the ones the user no longer needs.
"""

from typing import Iterable, List

from ..exceptions import SpotifyAPIError
from ..spotify.client import SpotifyClient
from ..spotify.models import Scope, ScopeKind
from ..utils.logger import get_logger
from .models import ArchiveDeleteResult, FailureRecord

logger = get_logger(__name__)


async def list_archives(client: SpotifyClient, token: str) -> List[Scope]:
    """Recovery playlists of the current user, with their declared totals"""
    user = await client.get_current_user(token)
    playlists = await client.get_archive_playlists(token, user.id)
    return [Scope.for_playlist(playlist) for playlist in playlists]


async def delete_archives(client: SpotifyClient, token: str, playlist_ids: Iterable[str]) -> ArchiveDeleteResult:
    """
    Delete recovery playlists one by one

    A failing deletion is recorded and the remaining ids are still attempted.

    Args:
        client: Spotify client
        token: OAuth access token
        playlist_ids: Playlists to delete (empty ids are ignored)

    Returns:
        ArchiveDeleteResult with the number removed and the failures
    """
    result = ArchiveDeleteResult()

    for playlist_id in playlist_ids:
        if not playlist_id:
            continue
        try:
            await client.delete_playlist(token, playlist_id)
            result.removed += 1
        except SpotifyAPIError as e:
            logger.error(f"Failed to delete recovery playlist {playlist_id}: {e}")
            result.failures.append(FailureRecord(
                scope=ScopeKind.PLAYLIST,
                message="Failed to delete playlist.",
                scope_id=playlist_id,
            ))

    logger.info(f"Deleted {result.removed} recovery playlists, {len(result.failures)} failures")
    return result
