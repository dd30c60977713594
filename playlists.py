"""
Playlist scanning.

build_playlists maps already-fetched listings onto the playlist document and
does no I/O. scan walks one strategy against a root path; scan_remote adds
the FTP/SFTP fallback; generate_local is the filesystem generator used to
produce the static playlists.json bundled with the site.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Sequence

from config import DEFAULT_PLAYLIST, MUSIC_ROOT, Settings
from errors import ScanError
from models import Playlist, ScanResult, Track
from transports import (
	LocalFileSystemStrategy,
	ScanStrategy,
	StrategyFactory,
	create_strategy,
	is_audio_file,
	join_path,
	run_with_fallback,
)

logger = logging.getLogger("pirate_radio.playlists")


def track_name_from_file(file_name: str) -> str:
	"""Strip directories and the last extension: 'a/My Song.mp3' -> 'My Song'."""
	base = file_name.rsplit("/", 1)[-1]
	stem, dot, _ = base.rpartition(".")
	return stem if dot and stem else base


def _make_tracks(files: Sequence[str], playlist_name: str, playlist_path: str, index: int, total: int) -> List[Track]:
	return [
		Track(
			track_number=number,
			track_name=track_name_from_file(file_name),
			file_name=join_path(playlist_path, file_name),
			playlist_name=playlist_name,
			playlist_index=index,
			playlist_total=total,
			playlist_path=playlist_path,
		)
		for number, file_name in enumerate(files, start=1)
	]


def build_playlists(
	directories: Sequence[str],
	listings: Sequence[Sequence[str]],
	music_root: str = MUSIC_ROOT,
) -> List[Playlist]:
	"""
	Turn directory names and their file listings into playlists.

	listings[i] is the file listing of directories[i], in transport order.
	Non-audio names are ignored and directories left without audio files
	produce no playlist. index and total count the surviving playlists only,
	so dropping a directory shifts the index of everything after it.
	"""
	if len(directories) != len(listings):
		raise ValueError(f"{len(directories)} directories but {len(listings)} listings")

	survivors = []
	for name, files in zip(directories, listings):
		audio = [f for f in files if is_audio_file(f)]
		if audio:
			survivors.append((name, audio))

	total = len(survivors)
	playlists = []
	for index, (name, audio) in enumerate(survivors, start=1):
		path = join_path(music_root, name)
		playlists.append(Playlist(
			name=name,
			path=path,
			index=index,
			total=total,
			tracks=_make_tracks(audio, name, path, index, total),
		))
	return playlists


def build_default_playlist(files: Sequence[str], music_root: str = MUSIC_ROOT) -> List[Playlist]:
	"""Single implicit playlist for loose audio files directly in the music root."""
	audio = [f for f in files if is_audio_file(f)]
	if not audio:
		return []
	tracks = [
		Track(
			track_number=number,
			track_name=track_name_from_file(file_name),
			file_name=join_path(music_root, file_name),
			playlist_name=DEFAULT_PLAYLIST,
			playlist_index=1,
			playlist_total=1,
			playlist_path=music_root,
		)
		for number, file_name in enumerate(audio, start=1)
	]
	return [Playlist(name=DEFAULT_PLAYLIST, path=music_root, index=1, total=1, tracks=tracks)]


async def scan(strategy: ScanStrategy, root_path: str, music_root: str = MUSIC_ROOT) -> ScanResult:
	"""
	Walk root_path with strategy, one playlist per subdirectory.

	A missing root or a root without subdirectories is an empty document,
	not an error. Directory listings are issued concurrently. Any failure
	aborts the scan; no partial document is returned.
	"""
	if not await strategy.path_exists(root_path):
		logger.info(f"Music root {root_path} does not exist")
		return ScanResult()

	directories = await strategy.list_directories(root_path)
	if not directories:
		return ScanResult()

	listings = await asyncio.gather(
		*(strategy.list_audio_files(join_path(root_path, name)) for name in directories)
	)
	playlists = build_playlists(directories, listings, music_root)
	logger.debug(f"Scanned {len(directories)} directories under {root_path}, {len(playlists)} playlists")
	return ScanResult(playlists=playlists)


async def scan_remote(settings: Settings, factory: StrategyFactory = create_strategy) -> ScanResult:
	"""Scan the remote store, falling back to the other protocol once."""
	return await run_with_fallback(
		settings,
		lambda strategy: scan(strategy, settings.ftp_path),
		factory=factory,
		error_cls=ScanError,
	)


async def generate_local(music_dir: Path, music_root: str = MUSIC_ROOT) -> ScanResult:
	"""
	Build the document from a local music directory.

	Subdirectories become playlists (audio files collected recursively).
	When the root has no subdirectories its loose audio files form the
	"Default" playlist. A missing root is created and yields nothing.
	"""
	strategy = LocalFileSystemStrategy()
	root = str(music_dir)
	if not await strategy.path_exists(root):
		logger.info(f"Music directory {music_dir} does not exist, creating it")
		music_dir.mkdir(parents=True, exist_ok=True)
		return ScanResult()

	if await strategy.list_directories(root):
		return await scan(strategy, root, music_root)

	files = await strategy.list_root_audio_files(root)
	return ScanResult(playlists=build_default_playlist(files, music_root))
