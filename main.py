from fastapi import FastAPI, HTTPException, Depends, Header, Request
from fastapi.responses import JSONResponse, RedirectResponse
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Awaitable, Callable
import secrets
import aiosqlite
import yaml
import logging
import logging.config

from cache import PlaylistCache
from config import Settings, load_settings
from database import init_db
from errors import ValidationError
from helpers import RateLimiter, check_song_path, check_song_request
from models import ScanResult, SongRequest, Submission
from playlists import scan_remote
from tasks import delete_song, process_song


cwd = Path(__file__).parent

CACHE_CONTROL = {
	"HIT": "public, max-age=60",
	"MISS": "public, max-age=60",
	"STALE": "public, max-age=10",
}

Scanner = Callable[[Settings], Awaitable[ScanResult]]


def init_logger() -> logging.Logger:
	try:
		with open(cwd / "logger_config.yaml", "r") as f:
			config = yaml.safe_load(f)
		logging.config.dictConfig(config)
		logger = logging.getLogger("pirate_radio")
		logger.debug("Logger configured")
		return logger
	except Exception as e:
		logging.basicConfig(level=logging.INFO)
		logger = logging.getLogger("pirate_radio")
		logger.error(f"Logger initialization failed: {e}")
		return logger


def get_settings(request: Request) -> Settings:
	return request.app.state.settings


def get_cache(request: Request) -> PlaylistCache:
	return request.app.state.cache


def get_scanner(request: Request) -> Scanner:
	return request.app.state.scanner


def get_rate_limiter(request: Request) -> RateLimiter:
	return request.app.state.rate_limiter


async def get_db(settings: Settings = Depends(get_settings)):
	async with aiosqlite.connect(settings.db_path) as db:
		db.row_factory = aiosqlite.Row
		yield db


@asynccontextmanager
async def lifespan(app: FastAPI):
	app.state.logger = init_logger()
	logger = app.state.logger

	settings = load_settings()
	app.state.settings = settings
	app.state.cache = PlaylistCache(default_ttl=settings.cache_ttl)
	app.state.scanner = scan_remote
	app.state.rate_limiter = RateLimiter()

	if settings.has_credentials:
		logger.info(f"Music store: {settings.preferred_protocol.upper()} {settings.ftp_host}{settings.ftp_path}")
	else:
		logger.warning("FTP credentials not configured, serving empty playlists")

	await init_db(settings.db_path)
	logger.info("Database ready")

	yield
	logger.info("Application shutdown")


app = FastAPI(
	title="Pirate Radio",
	version="0.1",
	description="Playlist and song submission service for Pirate Radio",
	lifespan=lifespan,
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
	return JSONResponse(content={"detail": exc.message}, status_code=exc.status_code)


def _playlist_response(result: ScanResult, status: str) -> JSONResponse:
	return JSONResponse(
		content=result.to_json(),
		headers={"X-Cache-Status": status, "Cache-Control": CACHE_CONTROL[status]},
	)


def _token_ok(authorization: str | None, token: str | None) -> bool:
	if not token:
		return True
	if not authorization or not authorization.startswith("Bearer "):
		return False
	return secrets.compare_digest(authorization[len("Bearer "):], token)


@app.get("/")
async def docs():
	return RedirectResponse(url="/docs", status_code=307)


@app.get("/api/playlists.json")
@app.get("/api/update-playlists")
async def get_playlists(
	settings: Settings = Depends(get_settings),
	cache: PlaylistCache = Depends(get_cache),
	scanner: Scanner = Depends(get_scanner),
):
	logger = app.state.logger
	if not settings.has_credentials:
		return JSONResponse(content=ScanResult().to_json())

	cached = cache.get()
	if cached is not None:
		return _playlist_response(cached, "HIT")

	try:
		result = await scanner(settings)
	except Exception as e:
		stale = cache.get_stale()
		if stale is not None:
			logger.warning(f"Playlist scan failed, serving stale copy: {e}")
			return _playlist_response(stale, "STALE")
		logger.exception("Playlist scan failed and nothing is cached")
		return JSONResponse(
			content={"playlists": [], "error": str(e)},
			status_code=500,
			headers={"Cache-Control": "no-store"},
		)

	cache.set(result)
	logger.info(f"Playlist cache refreshed: {len(result.playlists)} playlists")
	return _playlist_response(result, "MISS")


@app.post("/api/update-playlists")
async def update_playlists(
	authorization: str | None = Header(default=None),
	settings: Settings = Depends(get_settings),
	cache: PlaylistCache = Depends(get_cache),
	scanner: Scanner = Depends(get_scanner),
):
	logger = app.state.logger
	if not _token_ok(authorization, settings.update_token):
		return JSONResponse(content={"success": False, "error": "Unauthorized"}, status_code=401)

	if not settings.has_credentials:
		return JSONResponse(
			content={"success": False, "error": "FTP credentials not configured"},
			status_code=503,
		)

	try:
		result = await scanner(settings)
	except Exception as e:
		logger.exception("Error updating playlists")
		return JSONResponse(content={"success": False, "error": str(e)}, status_code=500)

	cache.set(result)
	logger.info(f"Playlists regenerated: {len(result.playlists)} playlists")
	return {
		"success": True,
		"message": "Playlists updated successfully",
		"playlists": len(result.playlists),
	}


@app.get("/api/cache/stats")
async def cache_stats(cache: PlaylistCache = Depends(get_cache)):
	return cache.stats()


@app.post("/api/songs", status_code=202)
async def submit_song(
	song: SongRequest,
	request: Request,
	limiter: RateLimiter = Depends(get_rate_limiter),
	db: aiosqlite.Connection = Depends(get_db),
):
	logger = app.state.logger
	client = request.client.host if request.client else "unknown"
	try:
		allowed, retry_after = limiter.check(client)
		if not allowed:
			raise HTTPException(
				status_code=429,
				detail=f"Rate limit exceeded. Please wait {retry_after} seconds before trying again.",
				headers={"Retry-After": str(retry_after)},
			)
		check_song_request(song.url, song.playlist)

		cur = await db.execute(
			"INSERT INTO submission (url, playlist, client) VALUES (?, ?, ?)",
			(song.url, song.playlist, client),
		)
		await db.commit()
		submission_id = cur.lastrowid

		try:
			task = process_song.delay(submission_id, song.url, song.playlist)
		except Exception as e:
			logger.exception("Could not enqueue song download")
			await db.execute(
				"UPDATE submission SET status = 'failed', error = ? WHERE id = ?",
				(str(e), submission_id),
			)
			await db.commit()
			raise HTTPException(status_code=503, detail="Download service is not available. Please contact support.")

		await db.execute("UPDATE submission SET task_id = ? WHERE id = ?", (task.id, submission_id))
		await db.commit()
		logger.info(f"Queued submission {submission_id}: {song.url} -> {song.playlist}")
		return {"id": submission_id, "status": "queued", "task_id": task.id}
	except (HTTPException, ValidationError):
		raise
	except Exception:
		logger.exception("Error submitting song")
		raise HTTPException(status_code=500, detail="Failed to submit song")


@app.get("/api/songs/{submission_id}", response_model=Submission)
async def get_submission(submission_id: int, db: aiosqlite.Connection = Depends(get_db)):
	logger = app.state.logger
	try:
		cur = await db.execute(
			"SELECT id, url, playlist, status, task_id, file_name, error, created_at FROM submission WHERE id = ?",
			(submission_id,),
		)
		row = await cur.fetchone()
		if not row:
			raise HTTPException(status_code=404, detail="Submission not found")
		return Submission(**dict(row))
	except HTTPException:
		raise
	except Exception:
		logger.exception("Error reading submission")
		raise HTTPException(status_code=500, detail="Failed to read submission")


@app.delete("/api/songs/{playlist}/{file_name}", status_code=202)
async def remove_song(
	playlist: str,
	file_name: str,
	authorization: str | None = Header(default=None),
	settings: Settings = Depends(get_settings),
):
	logger = app.state.logger
	if not _token_ok(authorization, settings.update_token):
		raise HTTPException(status_code=401, detail="Unauthorized")
	check_song_path(playlist, file_name)
	if not settings.has_credentials:
		raise HTTPException(status_code=503, detail="FTP credentials not configured")

	try:
		task = delete_song.delay(playlist, file_name)
	except Exception:
		logger.exception("Could not enqueue song deletion")
		raise HTTPException(status_code=503, detail="Deletion service is not available")
	logger.info(f"Queued deletion of {playlist}/{file_name}")
	return {"status": "queued", "task_id": task.id}
