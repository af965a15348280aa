"""Test the Spotify Web API client"""

import pytest

from spotify_cleanup.exceptions import MalformedResponseError, SpotifyAPIError
from spotify_cleanup.spotify.client import SpotifyClient

from conftest import FakeResponse, page_json, track_json

NEXT_LIKED = "https://api.spotify.com/v1/me/tracks?offset=50&limit=50"


class TestRequestRetries:
    """Test retry behaviour of single requests"""

    @pytest.mark.asyncio
    async def test_rate_limit_uses_retry_after(self, client, session, sleep):
        """429 with Retry-After waits the hinted seconds"""
        session.add('GET', '/me',
                    FakeResponse(429, headers={'Retry-After': '2'}),
                    FakeResponse(200, {'id': 'user1', 'display_name': 'User'}))

        user = await client.get_current_user("token")

        assert user.id == 'user1'
        assert sleep.delays == [2.0]
        assert len(session.calls) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_without_header_uses_backoff(self, client, session, sleep):
        """429 without Retry-After follows the exponential schedule"""
        session.add('GET', '/me',
                    FakeResponse(429), FakeResponse(429),
                    FakeResponse(200, {'id': 'user1'}))

        await client.get_current_user("token")

        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_infinite_retry_after_uses_backoff(self, client, session, sleep):
        session.add('GET', '/me',
                    FakeResponse(429, headers={'Retry-After': 'inf'}),
                    FakeResponse(200, {'id': 'user1'}))

        await client.get_current_user("token")

        assert sleep.delays == [0.5]

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, client, session, sleep):
        session.add('GET', '/me', FakeResponse(429, 'slow down', headers={'Retry-After': '1'}))

        with pytest.raises(SpotifyAPIError) as exc_info:
            await client.get_current_user("token")

        assert exc_info.value.is_rate_limit
        assert not exc_info.value.is_server_error
        assert sleep.delays == [1.0, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_server_error_ignores_retry_after(self, client, session, sleep):
        """5xx retries with backoff even when Retry-After is sent"""
        session.add('GET', '/me',
                    FakeResponse(503, headers={'Retry-After': '30'}),
                    FakeResponse(200, {'id': 'user1'}))

        await client.get_current_user("token")

        assert sleep.delays == [0.5]

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, client, session, sleep):
        """After max_retries the last status and body are raised"""
        session.add('GET', '/me', FakeResponse(500, 'upstream down'))

        with pytest.raises(SpotifyAPIError) as exc_info:
            await client.get_current_user("token")

        assert exc_info.value.status == 500
        assert exc_info.value.body == 'upstream down'
        assert exc_info.value.is_server_error
        assert sleep.delays == [0.5, 1.0, 2.0]
        assert len(session.calls) == 4

    @pytest.mark.asyncio
    async def test_client_error_fails_immediately(self, client, session, sleep):
        """Non-retryable statuses are not retried"""
        session.add('GET', '/me', FakeResponse(403, {'error': {'status': 403, 'message': 'Forbidden'}}))

        with pytest.raises(SpotifyAPIError) as exc_info:
            await client.get_current_user("token")

        assert exc_info.value.status == 403
        assert 'Forbidden' in exc_info.value.body
        assert sleep.delays == []
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_token_sent_as_bearer(self, session, sleep):
        """The access token is passed explicitly on each request"""
        seen = []
        original = session.request

        def recording_request(method, url, headers=None, **kwargs):
            seen.append(headers['Authorization'])
            return original(method, url, headers=headers, **kwargs)

        session.request = recording_request
        session.add('GET', '/me', FakeResponse(200, {'id': 'user1'}))
        client = SpotifyClient(session=session, requests_per_second=1000, sleep=sleep)

        await client.get_current_user("abc")
        await client.get_current_user("def")

        assert seen == ['Bearer abc', 'Bearer def']


class TestPagination:
    """Test page fetching"""

    @pytest.mark.asyncio
    async def test_fetch_all_follows_next(self, client, session):
        """Items from every page are returned in order"""
        session.add('GET', '/me/tracks?limit=50',
                    FakeResponse(200, page_json([{'track': track_json('a')}], NEXT_LIKED, total=2)))
        session.add('GET', '/me/tracks?offset=50&limit=50',
                    FakeResponse(200, page_json([{'track': track_json('b')}], None, total=2)))

        tracks = await client.get_liked_tracks("token")

        assert [track.id for track in tracks] == ['a', 'b']
        assert [call.path for call in session.calls] == ['/me/tracks?limit=50', '/me/tracks?offset=50&limit=50']

    @pytest.mark.asyncio
    async def test_fetch_all_fails_closed(self, client, session):
        """A failing page aborts the whole chain"""
        session.add('GET', '/me/tracks?limit=50',
                    FakeResponse(200, page_json([{'track': track_json('a')}], NEXT_LIKED)))
        session.add('GET', '/me/tracks?offset=50&limit=50', FakeResponse(404, 'gone'))

        with pytest.raises(SpotifyAPIError):
            await client.get_liked_tracks("token")

    @pytest.mark.asyncio
    async def test_no_content_is_empty_page(self, client, session):
        """204 responses become an empty page"""
        session.add('GET', '/me/tracks', FakeResponse(204))

        page = await client.fetch_page("token", '/me/tracks')

        assert page.items == []
        assert page.next is None

    @pytest.mark.asyncio
    async def test_malformed_page(self, client, session):
        """A page without items is rejected"""
        session.add('GET', '/me/tracks', FakeResponse(200, {'next': None}))

        with pytest.raises(MalformedResponseError):
            await client.fetch_page("token", '/me/tracks')

    @pytest.mark.asyncio
    async def test_invalid_json(self, client, session):
        """A 2xx body that is not JSON is a malformed response"""
        session.add('GET', '/me', FakeResponse(200, '<html>'))

        with pytest.raises(MalformedResponseError):
            await client.get_current_user("token")


class TestReads:
    """Test higher level read operations"""

    @pytest.mark.asyncio
    async def test_non_object_artist_is_malformed(self, client, session):
        track = track_json('a')
        track['artists'] = [None]
        session.add('GET', '/me/tracks?limit=50', FakeResponse(200, page_json([{'track': track}])))

        with pytest.raises(MalformedResponseError):
            await client.get_liked_tracks("token")

    @pytest.mark.asyncio
    async def test_playlist_items_keep_positions(self, client, session):
        """Unavailable entries consume a position but are skipped"""
        session.add('GET', '/playlists/p1/tracks?limit=100', FakeResponse(200, page_json([
            {'track': track_json('a')},
            {'track': None},
            {'track': track_json('b')},
            {'track': track_json('a')},
        ])))

        items = await client.get_playlist_items("token", 'p1')

        assert [(item.track.id, item.position) for item in items] == [('a', 0), ('b', 2), ('a', 3)]

    @pytest.mark.asyncio
    async def test_owned_playlists_exclude_archives(self, client, session):
        """Only playlists owned by the user and not named like recovery playlists"""
        session.add('GET', '/me/playlists?limit=50', FakeResponse(200, page_json([
            {'id': 'p1', 'name': 'Mine', 'owner': {'id': 'user1'}, 'tracks': {'total': 3}},
            {'id': 'p2', 'name': 'Followed', 'owner': {'id': 'other'}, 'tracks': {'total': 5}},
            {'id': 'p3', 'name': 'Removed by Spotify Cleanup Tool - 2024-01-01',
             'owner': {'id': 'user1'}, 'tracks': {'total': 2}},
        ])))

        owned = await client.get_owned_playlists("token", 'user1')
        archives = await client.get_archive_playlists("token", 'user1')

        assert [playlist.id for playlist in owned] == ['p1']
        assert [playlist.id for playlist in archives] == ['p3']

    @pytest.mark.asyncio
    async def test_library_meta(self, client, session):
        """Library meta reads each playlist total and the liked total"""
        session.add('GET', '/me', FakeResponse(200, {'id': 'user1', 'display_name': 'User'}))
        session.add('GET', '/me/playlists?limit=50', FakeResponse(200, page_json([
            {'id': 'p1', 'name': 'One', 'owner': {'id': 'user1'}},
            {'id': 'p2', 'name': 'Two', 'owner': {'id': 'user1'}},
        ])))
        session.add('GET', '/playlists/p1?fields=tracks.total', FakeResponse(200, {'tracks': {'total': 12}}))
        session.add('GET', '/playlists/p2?fields=tracks.total', FakeResponse(200, {'tracks': {'total': 7}}))
        session.add('GET', '/me/tracks?limit=1', FakeResponse(200, page_json([], total=99)))

        meta = await client.get_library_meta("token")

        assert meta.user.display_name == 'User'
        assert [(scope.id, scope.total) for scope in meta.playlists] == [('p1', 12), ('p2', 7)]
        assert meta.liked_total == 99

    @pytest.mark.asyncio
    async def test_library_summary_reports_progress(self, client, session):
        """Every playlist's contents are loaded and progress is reported"""
        session.add('GET', '/me', FakeResponse(200, {'id': 'user1'}))
        session.add('GET', '/me/playlists?limit=50', FakeResponse(200, page_json([
            {'id': 'p1', 'name': 'One', 'owner': {'id': 'user1'}},
            {'id': 'p2', 'name': 'Two', 'owner': {'id': 'user1'}},
        ])))
        session.add('GET', '/playlists/p1/tracks?limit=100',
                    FakeResponse(200, page_json([{'track': track_json('a')}])))
        session.add('GET', '/playlists/p2/tracks?limit=100',
                    FakeResponse(200, page_json([{'track': track_json('b')}, {'track': track_json('c')}])))
        session.add('GET', '/me/tracks?limit=50', FakeResponse(200, page_json([{'track': track_json('a')}])))
        progress = []

        library = await client.get_library_summary("token", on_progress=lambda done, total: progress.append((done, total)))

        assert [contents.playlist.id for contents in library.playlists] == ['p1', 'p2']
        assert [len(contents.tracks) for contents in library.playlists] == [1, 2]
        assert [track.id for track in library.liked_tracks] == ['a']
        assert progress == [(1, 2), (2, 2)]


class TestWrites:
    """Test chunked write operations"""

    @pytest.mark.asyncio
    async def test_remove_saved_tracks_chunks_by_50(self, client, session):
        session.add('DELETE', '/me/tracks', FakeResponse(200))
        ids = [f"t{i}" for i in range(120)]

        await client.remove_saved_tracks("token", ids)

        calls = session.calls_to('DELETE', '/me/tracks')
        assert [len(call.params['ids'].split(',')) for call in calls] == [50, 50, 20]
        assert calls[0].params['ids'].split(',')[0] == 't0'

    @pytest.mark.asyncio
    async def test_add_tracks_chunks_by_100(self, client, session):
        session.add('POST', '/playlists/p1/tracks', FakeResponse(201, {'snapshot_id': 's'}))
        uris = [f"spotify:track:{i}" for i in range(250)]

        await client.add_tracks_to_playlist("token", 'p1', uris)

        calls = session.calls_to('POST', '/playlists/p1/tracks')
        assert [len(call.json['uris']) for call in calls] == [100, 100, 50]

    @pytest.mark.asyncio
    async def test_failing_chunk_aborts_call(self, client, session):
        """Later chunks are not sent after a failing chunk"""
        session.add('DELETE', '/playlists/p1/tracks', FakeResponse(200), FakeResponse(400, 'bad uri'))
        uris = [f"spotify:track:{i}" for i in range(300)]

        with pytest.raises(SpotifyAPIError):
            await client.remove_playlist_tracks("token", 'p1', uris)

        assert len(session.calls_to('DELETE', '/playlists/p1/tracks')) == 2

    @pytest.mark.asyncio
    async def test_position_removal_uses_one_snapshot(self, client, session):
        """Every chunk is sent against the snapshot id read first"""
        session.add('GET', '/playlists/p1?fields=snapshot_id', FakeResponse(200, {'snapshot_id': 'snap-1'}))
        session.add('DELETE', '/playlists/p1/tracks', FakeResponse(200, {'snapshot_id': 'snap-2'}))
        removals = {f"spotify:track:{i}": [i + 200, i] for i in range(150)}

        await client.remove_playlist_track_positions("token", 'p1', removals)

        calls = session.calls_to('DELETE', '/playlists/p1/tracks')
        assert len(calls) == 2
        assert all(call.json['snapshot_id'] == 'snap-1' for call in calls)
        assert calls[0].json['tracks'][0] == {'uri': 'spotify:track:0', 'positions': [0, 200]}
        assert len(session.calls_to('GET', '/playlists/p1')) == 1

    @pytest.mark.asyncio
    async def test_create_and_delete_playlist(self, client, session):
        session.add('POST', '/users/user1/playlists',
                    FakeResponse(201, {'id': 'new', 'name': 'Backup', 'owner': {'id': 'user1'}}))
        session.add('DELETE', '/playlists/new/followers', FakeResponse(200))

        playlist = await client.create_playlist("token", 'user1', 'Backup', description='desc')
        await client.delete_playlist("token", playlist.id)

        create_call = session.calls_to('POST', '/users/user1/playlists')[0]
        assert create_call.json == {'name': 'Backup', 'public': False, 'description': 'desc'}
        assert playlist.id == 'new'
        assert len(session.calls_to('DELETE', '/playlists/new/followers')) == 1
