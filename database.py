from pathlib import Path
import aiosqlite

SUBMISSION_FIELDS = ("status", "task_id", "file_name", "error")


async def init_db(db_path: Path) -> None:
	db_path.parent.mkdir(parents=True, exist_ok=True)
	async with aiosqlite.connect(db_path) as db:
		await db.execute("""
		CREATE TABLE IF NOT EXISTS submission (
			id INTEGER PRIMARY KEY AUTOINCREMENT,
			url TEXT NOT NULL,
			playlist TEXT NOT NULL,
			client TEXT,
			status TEXT NOT NULL DEFAULT 'queued',
			task_id TEXT,
			file_name TEXT,
			error TEXT,
			created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
		)
		""")

		await db.execute("""
		CREATE INDEX IF NOT EXISTS idx_submission_status
		ON submission(status)
		""")

		await db.commit()


async def update_submission(db_path: Path, submission_id: int, **fields) -> None:
	"""Set status/task_id/file_name/error on one submission row."""
	unknown = set(fields) - set(SUBMISSION_FIELDS)
	if unknown:
		raise ValueError(f"Unknown submission fields: {sorted(unknown)}")
	if not fields:
		return
	assignments = ", ".join(f"{name} = ?" for name in fields)
	async with aiosqlite.connect(db_path) as db:
		await db.execute(
			f"UPDATE submission SET {assignments} WHERE id = ?",
			(*fields.values(), submission_id),
		)
		await db.commit()
