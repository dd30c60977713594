"""
Runtime settings for the Pirate Radio service.

Everything is read from the environment; a local .env file is loaded first
when present. Absence of the FTP user/password is the "not configured yet"
state: the read path then serves an empty playlist document.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

MUSIC_ROOT = "/music"
DEFAULT_PLAYLIST = "Default"
SUPPORTED_AUDIO_EXTENSIONS = ("mp3", "wav", "ogg", "m4a", "aac", "flac")
TRACK_DURATION_PLACEHOLDER = "0:00"

DEFAULT_FTP_HOST = "files.bloc.rocks"
DEFAULT_FTP_PATH = "/public/music"
FTP_PORT = 21
SFTP_PORT = 22
FTP_TIMEOUT = 30  # seconds, per connection

PLAYLIST_CACHE_TTL = 10 * 60  # seconds
PLAYLIST_CACHE_KEY = "playlists_cache"

DEFAULT_AUDIO_QUALITY = "5"  # ~128kbps VBR for web streaming
DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024
DEFAULT_SITE_URL = "http://localhost:8000"

RATE_LIMIT_REQUESTS = 10
RATE_LIMIT_WINDOW = 60  # seconds

MIN_PLAYLIST_NAME_LENGTH = 1
MAX_PLAYLIST_NAME_LENGTH = 100


def _env_bool(name: str, default: bool = False) -> bool:
	value = os.getenv(name)
	if value is None:
		return default
	return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
	value = os.getenv(name)
	if not value:
		return default
	try:
		return int(value)
	except ValueError:
		return default


@dataclass
class Settings:
	ftp_host: str = DEFAULT_FTP_HOST
	ftp_user: str | None = None
	ftp_password: str | None = None
	ftp_path: str = DEFAULT_FTP_PATH
	use_sftp: bool = False
	update_token: str | None = None
	cache_ttl: int = PLAYLIST_CACHE_TTL
	site_url: str = DEFAULT_SITE_URL
	music_dir: Path = Path("public/music")
	db_path: Path = Path(".database/database.db")
	max_file_size: int = DEFAULT_MAX_FILE_SIZE
	audio_quality: str = DEFAULT_AUDIO_QUALITY
	spotify_client_id: str | None = None
	spotify_client_secret: str | None = None

	@property
	def has_credentials(self) -> bool:
		return bool(self.ftp_user and self.ftp_password)

	@property
	def preferred_protocol(self) -> str:
		return "sftp" if self.use_sftp else "ftp"

	def remote_playlist_dir(self, playlist: str) -> str:
		return f"{self.ftp_path.rstrip('/')}/{playlist}"


def load_settings() -> Settings:
	"""Build Settings from the current environment."""
	return Settings(
		ftp_host=os.getenv("DREAMHOST_FTP_HOST") or DEFAULT_FTP_HOST,
		ftp_user=os.getenv("DREAMHOST_FTP_USER") or None,
		ftp_password=os.getenv("DREAMHOST_FTP_PASSWORD") or None,
		ftp_path=os.getenv("DREAMHOST_FTP_PATH") or DEFAULT_FTP_PATH,
		use_sftp=_env_bool("DREAMHOST_USE_SFTP"),
		update_token=os.getenv("PLAYLIST_UPDATE_TOKEN") or None,
		cache_ttl=_env_int("PLAYLIST_CACHE_TTL", PLAYLIST_CACHE_TTL),
		site_url=os.getenv("PUBLIC_SITE_URL") or DEFAULT_SITE_URL,
		music_dir=Path(os.getenv("MUSIC_DIR") or "public/music"),
		db_path=Path(os.getenv("PIRATE_RADIO_DB_PATH") or ".database/database.db"),
		max_file_size=_env_int("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE),
		audio_quality=os.getenv("AUDIO_QUALITY") or DEFAULT_AUDIO_QUALITY,
		spotify_client_id=os.getenv("SPOTIPY_CLIENT_ID") or None,
		spotify_client_secret=os.getenv("SPOTIPY_CLIENT_SECRET") or None,
	)
