
# Helper functions for song submission and download
import os
import re
import time
from pathlib import Path
from urllib.parse import urlparse, parse_qs
from typing import Dict, List, Tuple

from config import (
	DEFAULT_AUDIO_QUALITY,
	MAX_PLAYLIST_NAME_LENGTH,
	MIN_PLAYLIST_NAME_LENGTH,
	RATE_LIMIT_REQUESTS,
	RATE_LIMIT_WINDOW,
)
from errors import ValidationError
from transports import is_audio_file

YOUTUBE_HOSTS = ("youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com", "youtu.be")
SPOTIFY_HOSTS = ("open.spotify.com", "spotify.com")


def get_ydl_opts(out_dir: Path, audio_quality: str = DEFAULT_AUDIO_QUALITY):
	"""
	Returns a ytdlp opt dictionary that downloads a single video into out_dir as MP3.
	out_dir is created if missing. Quality follows ffmpeg VBR scale (0 best, 9 worst).
	"""
	out_dir = Path(out_dir)
	if not out_dir.exists():
		out_dir.mkdir(parents=True, exist_ok=True)

	# Test if we have write permissions
	if not os.access(str(out_dir), mode=os.W_OK):
		raise ValueError(f"Invalid path or no write permission: {out_dir}")

	ydl_opts = {
		'format': 'bestaudio/best',
		'noplaylist': True,
		'quiet': True,
		'postprocessors': [
			{
				'key': 'FFmpegExtractAudio',
				'preferredcodec': 'mp3',
				'preferredquality': audio_quality,
			},
			{
				'key': 'FFmpegMetadata',
			}
		],
		'outtmpl': str(out_dir / '%(title)s.%(ext)s'),
		# keep the source video id in the comment tag
		'postprocessor_args': [
			'-metadata', 'comment=youtube_id=%(id)s'
		],
	}
	return ydl_opts


def _host(url: str) -> str:
	parsed = urlparse(url if "://" in url else f"https://{url}")
	if parsed.scheme not in ("http", "https"):
		return ""
	return (parsed.hostname or "").lower()


def is_youtube_url(url: str) -> bool:
	try:
		return _host(url) in YOUTUBE_HOSTS
	except ValueError:
		return False


def is_spotify_url(url: str) -> bool:
	try:
		return _host(url) in SPOTIFY_HOSTS
	except ValueError:
		return False


def validate_song_url(url: str) -> bool:
	return is_youtube_url(url) or is_spotify_url(url)


def clean_youtube_url(url: str) -> str:
	"""Reduce a YouTube link to its single video, dropping playlist/index params."""
	try:
		parsed = urlparse(url if "://" in url else f"https://{url}")
	except ValueError:
		return url
	video_id = parse_qs(parsed.query).get("v", [None])[0]
	if not video_id and (parsed.hostname or "").endswith("youtu.be"):
		video_id = parsed.path.lstrip("/") or None
	if video_id:
		return f"https://www.youtube.com/watch?v={video_id}"
	return url


def validate_playlist_name(name: str) -> bool:
	if not name or not (MIN_PLAYLIST_NAME_LENGTH <= len(name) <= MAX_PLAYLIST_NAME_LENGTH):
		return False
	if "/" in name or "\\" in name or name == "." or ".." in name:
		return False
	return not any(ord(ch) < 32 for ch in name)


def check_song_request(url: str, playlist: str) -> None:
	if not validate_song_url(url):
		raise ValidationError("Invalid URL. Please share a valid YouTube or Spotify link.")
	if not validate_playlist_name(playlist):
		raise ValidationError("Invalid playlist name.")


def check_song_path(playlist: str, file_name: str) -> None:
	if not validate_playlist_name(playlist):
		raise ValidationError("Invalid playlist name.")
	if "/" in file_name or "\\" in file_name or not is_audio_file(file_name):
		raise ValidationError("Invalid file name.")


def sanitize_file_name(file_name: str) -> str:
	name = re.sub(r"[^a-zA-Z0-9._-]", "_", file_name)
	name = re.sub(r"_{2,}", "_", name)
	return name.strip("_")[:255].lower()


class RateLimiter:
	"""Fixed window request counter per identifier (client address)."""

	def __init__(self, max_requests: int = RATE_LIMIT_REQUESTS, window: float = RATE_LIMIT_WINDOW, clock=time.monotonic):
		self.max_requests = max_requests
		self.window = window
		self._clock = clock
		self._entries: Dict[str, Tuple[int, float]] = {}

	def check(self, identifier: str) -> Tuple[bool, int]:
		"""Count a request. Returns (allowed, seconds until the window resets)."""
		now = self._clock()
		self._purge(now)
		count, reset_at = self._entries.get(identifier, (0, now + self.window))
		if count >= self.max_requests:
			return False, max(1, int(reset_at - now + 0.999))
		self._entries[identifier] = (count + 1, reset_at)
		return True, 0

	def remaining(self, identifier: str) -> int:
		count, reset_at = self._entries.get(identifier, (0, 0.0))
		if reset_at <= self._clock():
			return self.max_requests
		return max(0, self.max_requests - count)

	def _purge(self, now: float) -> None:
		expired: List[str] = [k for k, (_, reset_at) in self._entries.items() if reset_at <= now]
		for key in expired:
			del self._entries[key]
