"""Test configuration and fixtures"""

import asyncio
from types import SimpleNamespace

import pytest

from config import Settings
from transports import is_audio_file

ROOT = "/public/music"


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeStrategy:
    """In-memory music store: {directory: [file names]} under ROOT"""

    def __init__(self, directories=None, root=ROOT, exists=True, error=None, fail_dir=None, delay=0):
        self.directories = directories if directories is not None else {}
        self.root = root
        self.exists = exists
        self.error = error
        self.fail_dir = fail_dir
        self.delay = delay
        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.uploads = []
        self.deleted = []

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    async def connect(self):
        self.connect_calls += 1
        self.connected = True

    async def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False

    async def path_exists(self, path):
        return self.exists and path == self.root

    async def list_directories(self, path):
        if self.error:
            raise self.error
        return list(self.directories)

    async def list_audio_files(self, path):
        name = path.rsplit("/", 1)[-1]
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if name == self.fail_dir:
                raise OSError(f"listing {name} failed")
            return [f for f in self.directories[name] if is_audio_file(f)]
        finally:
            self.in_flight -= 1

    async def upload_file(self, local_path, remote_dir, file_name):
        self.uploads.append((local_path, remote_dir, file_name))
        return f"{remote_dir}/{file_name}"

    async def delete_file(self, remote_path):
        self.deleted.append(remote_path)


class FakeTask:
    """Stands in for a celery task's .delay()"""

    def __init__(self, task_id="task-1", error=None):
        self.task_id = task_id
        self.error = error
        self.calls = []

    def delay(self, *args):
        if self.error:
            raise self.error
        self.calls.append(args)
        return SimpleNamespace(id=self.task_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        ftp_user="radio",
        ftp_password="secret",
        ftp_path=ROOT,
        db_path=tmp_path / "database.db",
        music_dir=tmp_path / "music",
    )


@pytest.fixture
def store():
    return {
        "community": ["intro.mp3", "cover.jpg", "Second Take.FLAC"],
        "NEUKO": ["a.mp3", "b.wav", "My Song (Remix).mp3", "notes.txt", "d.ogg", "e.m4a"],
        "empty": ["readme.md"],
        "zeta": ["last.aac"],
    }
