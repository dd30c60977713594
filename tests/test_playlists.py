"""Tests for playlist building and scanning"""

import pytest

from errors import ScanError
from playlists import (
    build_default_playlist,
    build_playlists,
    generate_local,
    scan,
    scan_remote,
    track_name_from_file,
)
from models import ScanResult
from tests.conftest import ROOT, FakeStrategy


class TestBuildPlaylists:

    def test_drops_empty_directories_and_renumbers(self, store):
        playlists = build_playlists(list(store), list(store.values()))

        assert [p.name for p in playlists] == ["community", "NEUKO", "zeta"]
        assert [p.index for p in playlists] == [1, 2, 3]
        assert all(p.total == 3 for p in playlists)

    def test_track_count_matches_audio_files(self, store):
        playlists = build_playlists(list(store), list(store.values()))

        assert sum(len(p.tracks) for p in playlists) == 2 + 5 + 1
        assert all(len(p.tracks) > 0 for p in playlists)

    def test_index_and_track_numbers_are_consistent(self, store):
        playlists = build_playlists(list(store), list(store.values()))

        for playlist in playlists:
            assert 1 <= playlist.index <= playlist.total == len(playlists)
            for number, track in enumerate(playlist.tracks, start=1):
                assert track.track_number == number
                assert track.playlist_index == playlist.index
                assert track.playlist_total == playlist.total
                assert track.playlist_name == playlist.name
                assert track.playlist_path == playlist.path

    def test_remix_track_derivation(self, store):
        playlists = build_playlists(list(store), list(store.values()))
        neuko = playlists[1]
        track = neuko.tracks[2]

        assert len(neuko.tracks) == 5
        assert track.track_name == "My Song (Remix)"
        assert track.file_name == "/music/NEUKO/My Song (Remix).mp3"
        assert track.track_number == 3
        assert track.playlist_index == 2
        assert track.playlist_total == 3
        assert track.duration == "0:00"

    def test_keeps_listing_order(self):
        playlists = build_playlists(["mix"], [["z.mp3", "a.mp3", "m.mp3"]])

        assert [t.track_name for t in playlists[0].tracks] == ["z", "a", "m"]

    def test_camel_case_document(self):
        document = ScanResult(playlists=build_playlists(["mix"], [["one.mp3"]])).to_json()
        track = document["playlists"][0]["tracks"][0]

        assert track == {
            "trackNumber": 1,
            "trackName": "one",
            "fileName": "/music/mix/one.mp3",
            "duration": "0:00",
            "playlistName": "mix",
            "playlistIndex": 1,
            "playlistTotal": 1,
            "playlistPath": "/music/mix",
        }

    def test_mismatched_listings(self):
        with pytest.raises(ValueError):
            build_playlists(["a", "b"], [["x.mp3"]])

    def test_default_playlist(self):
        playlists = build_default_playlist(["b.mp3", "a.wav", "cover.png"])

        assert len(playlists) == 1
        default = playlists[0]
        assert default.name == "Default"
        assert default.path == "/music"
        assert (default.index, default.total) == (1, 1)
        assert [t.file_name for t in default.tracks] == ["/music/b.mp3", "/music/a.wav"]

    def test_track_name_from_file(self):
        assert track_name_from_file("song.name.mp3") == "song.name"
        assert track_name_from_file("live/set 1.flac") == "set 1"
        assert track_name_from_file("noext") == "noext"


class TestScan:

    @pytest.mark.asyncio
    async def test_missing_root_is_empty(self, store):
        result = await scan(FakeStrategy(store, exists=False), ROOT)

        assert result.playlists == []

    @pytest.mark.asyncio
    async def test_root_without_directories_is_empty(self):
        result = await scan(FakeStrategy({}), ROOT)

        assert result.playlists == []

    @pytest.mark.asyncio
    async def test_scan_builds_document(self, store):
        result = await scan(FakeStrategy(store), ROOT)

        assert [p.name for p in result.playlists] == ["community", "NEUKO", "zeta"]
        assert result.playlists[0].tracks[1].file_name == "/music/community/Second Take.FLAC"

    @pytest.mark.asyncio
    async def test_directories_listed_concurrently(self, store):
        strategy = FakeStrategy(store, delay=0.01)

        await scan(strategy, ROOT)

        assert strategy.max_in_flight == len(store)

    @pytest.mark.asyncio
    async def test_failing_directory_aborts_scan(self, store):
        with pytest.raises(OSError):
            await scan(FakeStrategy(store, fail_dir="zeta"), ROOT)

    @pytest.mark.asyncio
    async def test_scan_is_idempotent(self, store):
        strategy = FakeStrategy(store)

        first = await scan(strategy, ROOT)
        second = await scan(strategy, ROOT)

        assert first == second


class TestScanRemote:

    @pytest.mark.asyncio
    async def test_falls_back_to_other_protocol(self, settings, store):
        created = {}

        def factory(protocol, _settings):
            error = OSError("auth failed") if protocol == "ftp" else None
            created[protocol] = FakeStrategy(store, error=error)
            return created[protocol]

        result = await scan_remote(settings, factory=factory)

        assert result == await scan(FakeStrategy(store), ROOT)
        assert created["ftp"].disconnect_calls == 1
        assert created["sftp"].disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_preferred_protocol_first(self, settings, store):
        settings.use_sftp = True
        order = []

        def factory(protocol, _settings):
            order.append(protocol)
            return FakeStrategy(store)

        await scan_remote(settings, factory=factory)

        assert order == ["sftp"]

    @pytest.mark.asyncio
    async def test_both_protocols_fail(self, settings, store):
        order = []

        def factory(protocol, _settings):
            order.append(protocol)
            message = "auth failed" if protocol == "ftp" else "connection refused"
            return FakeStrategy(store, error=OSError(message))

        with pytest.raises(ScanError) as exc_info:
            await scan_remote(settings, factory=factory)

        assert order == ["ftp", "sftp"]
        assert str(exc_info.value) == (
            "Both FTP and SFTP failed. FTP: auth failed, SFTP: connection refused"
        )


class TestGenerateLocal:

    @pytest.mark.asyncio
    async def test_subdirectory_playlists(self, tmp_path):
        (tmp_path / "rock" / "live").mkdir(parents=True)
        (tmp_path / "rock" / "b.mp3").write_bytes(b"x")
        (tmp_path / "rock" / "live" / "a.mp3").write_bytes(b"x")
        (tmp_path / "silent").mkdir()
        (tmp_path / "silent" / "notes.txt").write_text("nothing")

        result = await generate_local(tmp_path)

        assert [p.name for p in result.playlists] == ["rock"]
        assert [t.file_name for t in result.playlists[0].tracks] == [
            "/music/rock/b.mp3",
            "/music/rock/live/a.mp3",
        ]
        assert result.playlists[0].tracks[1].track_name == "a"

    @pytest.mark.asyncio
    async def test_loose_files_become_default(self, tmp_path):
        (tmp_path / "one.mp3").write_bytes(b"x")
        (tmp_path / "two.ogg").write_bytes(b"x")

        result = await generate_local(tmp_path)

        assert [p.name for p in result.playlists] == ["Default"]
        assert [t.track_name for t in result.playlists[0].tracks] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_missing_directory_is_created(self, tmp_path):
        music = tmp_path / "music"

        result = await generate_local(music)

        assert result.playlists == []
        assert music.is_dir()
