import asyncio
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path

import requests
from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError as YtDlpError

from celery_app import celery
from config import Settings, load_settings
from database import update_submission
from errors import ConfigurationError, DownloadError, user_message
from helpers import clean_youtube_url, get_ydl_opts, is_spotify_url, is_youtube_url, sanitize_file_name
from transports import run_with_fallback

logger = logging.getLogger("pirate_radio.tasks")

DOWNLOAD_TIMEOUT = 5 * 60  # seconds


def download_song(url: str, out_dir: Path, settings: Settings) -> Path:
    """Download url into out_dir as MP3 and return the file path."""
    try:
        if is_youtube_url(url):
            with YoutubeDL(get_ydl_opts(out_dir, settings.audio_quality)) as ydl:
                ydl.download([clean_youtube_url(url)])
        elif is_spotify_url(url):
            env = dict(os.environ)
            if settings.spotify_client_id:
                env["SPOTIPY_CLIENT_ID"] = settings.spotify_client_id
            if settings.spotify_client_secret:
                env["SPOTIPY_CLIENT_SECRET"] = settings.spotify_client_secret
            subprocess.run(
                ["spotify_dl", "-l", url, "-o", str(out_dir)],
                env=env, capture_output=True, text=True, check=True, timeout=DOWNLOAD_TIMEOUT,
            )
        else:
            raise DownloadError("Unsupported URL type. Please provide a YouTube or Spotify link.")
    except YtDlpError as e:
        raise DownloadError(f"Download failed: {e}") from e
    except subprocess.CalledProcessError as e:
        raise DownloadError(f"spotify_dl exited with {e.returncode}: {e.stderr}") from e
    except subprocess.TimeoutExpired as e:
        raise DownloadError(f"Download timed out after {DOWNLOAD_TIMEOUT}s") from e
    except FileNotFoundError as e:
        raise ConfigurationError(f"Downloader not installed: {e.filename}") from e

    mp3_files = sorted(out_dir.rglob("*.mp3"))
    if not mp3_files:
        raise DownloadError("No MP3 file found after download")

    path = mp3_files[0]
    size = path.stat().st_size
    if size == 0:
        raise DownloadError("Downloaded file is empty")
    if size > settings.max_file_size:
        raise DownloadError(
            f"File too large ({size // (1024 * 1024)}MB). "
            f"Maximum size is {settings.max_file_size // (1024 * 1024)}MB."
        )
    return path


def request_playlist_refresh(settings: Settings) -> bool:
    """POST the regenerate trigger so the new remote state is served right away."""
    headers = {}
    if settings.update_token:
        headers["Authorization"] = f"Bearer {settings.update_token}"
    url = f"{settings.site_url.rstrip('/')}/api/update-playlists"
    try:
        response = requests.post(url, headers=headers, timeout=(5, 120))
    except requests.RequestException as e:
        logger.warning(f"Playlist refresh request failed: {e}")
        return False
    if response.status_code != 200:
        logger.warning(f"Playlist refresh returned {response.status_code}: {response.text}")
        return False
    return True


@celery.task(bind=True, max_retries=3)
def process_song(self, submission_id: int, url: str, playlist: str):
    """Download a song, upload it to the playlist folder and refresh playlists"""

    settings = load_settings()
    db_path = settings.db_path
    work_dir = Path(tempfile.mkdtemp(prefix="song-dl-"))

    async def upload(local_path: Path, file_name: str) -> str:
        await update_submission(db_path, submission_id, status="uploading", file_name=file_name)
        remote_dir = settings.remote_playlist_dir(playlist)
        return await run_with_fallback(
            settings, lambda strategy: strategy.upload_file(local_path, remote_dir, file_name)
        )

    try:
        if not settings.has_credentials:
            raise ConfigurationError("FTP credentials not configured")
        asyncio.run(update_submission(db_path, submission_id, status="downloading"))
        local_path = download_song(url, work_dir, settings)
        file_name = sanitize_file_name(local_path.name)
        remote_path = asyncio.run(upload(local_path, file_name))
        asyncio.run(update_submission(db_path, submission_id, status="done", error=None))
        logger.info(f"Submission {submission_id} uploaded to {remote_path}")

    except (DownloadError, ConfigurationError) as e:
        logger.error(f"Submission {submission_id} failed: {e}")
        asyncio.run(update_submission(db_path, submission_id, status="failed", error=user_message(e)))
        raise

    except Exception as e:
        if self.request.retries >= self.max_retries:
            logger.error(f"Submission {submission_id} failed after retries: {e}")
            asyncio.run(update_submission(db_path, submission_id, status="failed", error=user_message(e)))
            raise
        raise self.retry(exc=e, countdown=10)

    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    request_playlist_refresh(settings)
    return {"status": "success", "file_name": file_name, "remote_path": remote_path}


@celery.task(bind=True, max_retries=3)
def delete_song(self, playlist: str, file_name: str):
    """Remove a song from the remote store and refresh playlists"""

    settings = load_settings()
    if not settings.has_credentials:
        raise ConfigurationError("FTP credentials not configured")
    remote_path = f"{settings.remote_playlist_dir(playlist)}/{file_name}"

    try:
        asyncio.run(run_with_fallback(settings, lambda strategy: strategy.delete_file(remote_path)))
    except Exception as e:
        raise self.retry(exc=e, countdown=10)

    local_copy = settings.music_dir / playlist / file_name
    local_copy.unlink(missing_ok=True)

    logger.info(f"Deleted {remote_path}")
    request_playlist_refresh(settings)
    return {"status": "success", "remote_path": remote_path}
