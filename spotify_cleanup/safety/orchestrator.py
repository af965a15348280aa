"""
Safe mutation orchestrator

Runs a RemovalPlan against the user's library without ever removing a track
that has not first been copied into a verified recovery playlist.

Run lifecycle:

    IDLE
      |
    SNAPSHOTTING   create "<prefix> - <date>" playlist, add every removed uri
      |
    VERIFYING      poll the playlist total until it matches the uri count
      |         \
    MUTATING     FAILED   (VerificationError or snapshot error, no removal request issued)
      |
    DONE           ExecutionResult with counts and per-scope failures

Spotify totals are eventually consistent after a write, so a mismatch on the
first poll is expected from time to time, and a failing poll only uses up one
attempt. The poll budget (attempts and interval) comes from the safety settings.

Removals are attempted scope by scope. A failing scope is recorded as a
FailureRecord and the remaining scopes are still attempted.
"""

import asyncio
from datetime import date
from typing import Any, Awaitable, Callable, List, Optional

from ..config.settings import Settings, get_settings
from ..exceptions import SpotifyAPIError, VerificationError
from ..spotify.client import SpotifyClient
from ..spotify.models import ScopeKind
from ..utils.helpers import format_date_label
from ..utils.logger import get_logger
from .models import ExecutionResult, FailureRecord, RecoverySnapshot, RemovalPlan, RunState

SleepFunc = Callable[[float], Awaitable[Any]]

# Failure messages shown to the user, per run type
LIKED_FAILURE = "Failed to remove some tracks from Liked Songs."
PLAYLIST_FAILURE = "Failed to remove some tracks from a playlist."
LIKED_DUPLICATES_FAILURE = "Failed to remove some duplicates from Liked Songs."
PLAYLIST_POSITIONS_FAILURE = "Failed to remove some duplicate positions."
PLAYLIST_DUPLICATES_FAILURE = "Failed to remove some duplicate tracks."


def build_snapshot_name(
    prefix: str,
    day: Optional[date] = None,
    duplicates: bool = False,
    source_name: Optional[str] = None
) -> str:
    """
    Name of a recovery playlist

    Examples:
        >>> build_snapshot_name("Removed by Spotify Cleanup Tool", date(2024, 5, 1))
        'Removed by Spotify Cleanup Tool - 2024-05-01'
        >>> build_snapshot_name("Removed by Spotify Cleanup Tool", date(2024, 5, 1), True, "Road Trip")
        'Removed by Spotify Cleanup Tool - Duplicates - Road Trip - 2024-05-01'
    """
    parts = [prefix]
    if duplicates:
        parts.append("Duplicates")
        if source_name:
            parts.append(source_name)
    parts.append(format_date_label(day))
    return " - ".join(parts)


class SafeMutationOrchestrator:
    """
    Snapshot, verify, then mutate

    One orchestrator instance drives one run at a time; `state` reflects the
    current phase and is left at DONE or FAILED when `run()` returns or raises.
    """

    def __init__(
        self,
        client: SpotifyClient,
        settings: Optional[Settings] = None,
        sleep: Optional[SleepFunc] = None,
        today: Optional[Callable[[], date]] = None
    ):
        """
        Args:
            client: Spotify client used for every remote call
            settings: Safety settings source, defaults to the global settings
            sleep: Coroutine used between verification polls (injectable for tests)
            today: Date provider for snapshot names
        """
        self.client = client
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)
        self.state = RunState.IDLE
        self._sleep = sleep or asyncio.sleep
        self._today = today or date.today

    async def run(
        self,
        token: str,
        plan: RemovalPlan,
        source_name: Optional[str] = None,
        duplicates: bool = False,
        user_id: Optional[str] = None
    ) -> ExecutionResult:
        """
        Execute a removal plan

        Args:
            token: OAuth access token
            plan: What to remove
            source_name: Scope name included in duplicate snapshot names
            duplicates: True for duplicate cleanup runs (snapshot naming and messages)
            user_id: Owner of the recovery playlist, fetched when not given

        Returns:
            ExecutionResult with counts and scope failures

        Raises:
            VerificationError: Recovery copy could not be confirmed; nothing was removed
            SpotifyAPIError: Creating or filling the recovery playlist failed; nothing was removed
            ValueError: Liked Songs removals without any uri to back them up
        """
        self.state = RunState.IDLE
        uris = plan.snapshot_uris()
        if plan.liked_track_ids and not uris:
            raise ValueError("Liked Songs removals need their uris in removed_track_uris")
        result = ExecutionResult(removed_tracks=len(uris))

        if plan.is_empty:
            self.logger.info("Removal plan is empty, skipping recovery snapshot")
        else:
            self.state = RunState.SNAPSHOTTING
            try:
                snapshot = await self._create_snapshot(token, uris, source_name, duplicates, user_id)
            except SpotifyAPIError:
                self.state = RunState.FAILED
                raise
            result.archive_playlist = snapshot.playlist

            self.state = RunState.VERIFYING
            await self._verify_snapshot(token, snapshot)

        self.state = RunState.MUTATING
        await self._mutate(token, plan, duplicates, result)

        self.state = RunState.DONE
        self.logger.info(
            f"Cleanup finished: {result.removed_from_liked} removed from Liked Songs, "
            f"{result.removed_from_playlists} from {result.playlists_updated} playlists, "
            f"{len(result.failures)} failures"
        )
        return result

    async def _create_snapshot(
        self,
        token: str,
        uris: List[str],
        source_name: Optional[str],
        duplicates: bool,
        user_id: Optional[str]
    ) -> RecoverySnapshot:
        if user_id is None:
            user_id = (await self.client.get_current_user(token)).id

        safety = self.settings.safety
        name = build_snapshot_name(safety.archive_prefix, self._today(), duplicates, source_name)
        playlist = await self.client.create_playlist(
            token, user_id, name, description=safety.archive_description, public=False
        )
        self.logger.info(f"Created recovery playlist '{name}' ({playlist.id})")

        await self.client.add_tracks_to_playlist(token, playlist.id, uris)
        self.logger.debug(f"Copied {len(uris)} tracks into recovery playlist {playlist.id}")
        return RecoverySnapshot(playlist=playlist, track_uris=uris)

    async def _verify_snapshot(self, token: str, snapshot: RecoverySnapshot) -> None:
        """Poll the recovery playlist total until it matches, or fail the run"""
        attempts = max(1, int(self.settings.safety.verify_attempts))
        interval = float(self.settings.safety.verify_interval)
        expected = snapshot.expected_total
        observed: List[Optional[int]] = []

        for attempt in range(attempts):
            if attempt > 0:
                await self._sleep(interval)
            try:
                total = await self.client.get_playlist_total(token, snapshot.playlist.id)
            except SpotifyAPIError as e:
                observed.append(None)
                self.logger.warning(f"Recovery playlist poll {attempt + 1} failed: {e}")
                continue
            observed.append(total)
            if total == expected:
                self.logger.debug(f"Recovery playlist verified on poll {attempt + 1}")
                return
            self.logger.debug(f"Recovery playlist reports {total}/{expected} tracks (poll {attempt + 1})")

        self.state = RunState.FAILED
        self.logger.error(
            f"Recovery playlist {snapshot.playlist.id} never reached {expected} tracks: {observed}"
        )
        raise VerificationError(
            "Recovery playlist verification failed. Cleanup aborted before removals.",
            playlist_id=snapshot.playlist.id,
            playlist_name=snapshot.playlist.name,
            expected=expected,
            observed=observed,
        )

    async def _mutate(self, token: str, plan: RemovalPlan, duplicates: bool, result: ExecutionResult) -> None:
        if plan.liked_track_ids:
            try:
                await self.client.remove_saved_tracks(token, plan.liked_track_ids)
                result.removed_from_liked = len(plan.liked_track_ids)
            except SpotifyAPIError as e:
                self.logger.error(f"Failed to remove tracks from Liked Songs: {e}")
                result.failures.append(FailureRecord(
                    scope=ScopeKind.LIKED,
                    message=LIKED_DUPLICATES_FAILURE if duplicates else LIKED_FAILURE,
                ))

        for playlist_id in plan.playlist_ids:
            if await self._mutate_playlist(token, plan, playlist_id, duplicates, result):
                result.playlists_updated += 1

    async def _mutate_playlist(
        self,
        token: str,
        plan: RemovalPlan,
        playlist_id: str,
        duplicates: bool,
        result: ExecutionResult
    ) -> bool:
        """Positional removals then uri removals; True when at least one call succeeded"""
        updated = False

        positions = {
            uri: values
            for uri, values in plan.playlist_track_positions.get(playlist_id, {}).items()
            if values
        }
        if positions:
            try:
                await self.client.remove_playlist_track_positions(token, playlist_id, positions)
                result.removed_from_playlists += sum(len(values) for values in positions.values())
                updated = True
            except SpotifyAPIError as e:
                self.logger.error(f"Failed to remove positions from playlist {playlist_id}: {e}")
                result.failures.append(FailureRecord(
                    scope=ScopeKind.PLAYLIST,
                    message=PLAYLIST_POSITIONS_FAILURE if duplicates else PLAYLIST_FAILURE,
                    scope_id=playlist_id,
                ))

        uris = plan.playlist_track_uris.get(playlist_id, [])
        if uris:
            try:
                await self.client.remove_playlist_tracks(token, playlist_id, uris)
                result.removed_from_playlists += len(uris)
                updated = True
            except SpotifyAPIError as e:
                self.logger.error(f"Failed to remove tracks from playlist {playlist_id}: {e}")
                result.failures.append(FailureRecord(
                    scope=ScopeKind.PLAYLIST,
                    message=PLAYLIST_DUPLICATES_FAILURE if duplicates else PLAYLIST_FAILURE,
                    scope_id=playlist_id,
                ))

        return updated
