"""
Transport strategies for listing the music store.

A strategy answers three questions about a directory tree: which
subdirectories does a path hold, which audio files does a directory hold,
and does a path exist at all. FTP (aioftp) and SFTP (asyncssh) talk to the
remote store; the local filesystem strategy backs the static generator.

Remote listings are normalised into RemoteEntry before filtering so callers
never see protocol specific records.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Awaitable, Callable, List, Protocol, Tuple, Type, TypeVar

import aioftp
import asyncssh

from config import FTP_PORT, FTP_TIMEOUT, SFTP_PORT, SUPPORTED_AUDIO_EXTENSIONS, Settings
from errors import RemoteStoreError, TransportError

logger = logging.getLogger("pirate_radio.transports")

T = TypeVar("T")


@dataclass(frozen=True)
class RemoteEntry:
	name: str
	is_directory: bool


def is_audio_file(name: str) -> bool:
	if "." not in name:
		return False
	return name.rsplit(".", 1)[1].lower() in SUPPORTED_AUDIO_EXTENSIONS


def join_path(base: str, name: str) -> str:
	return f"{base.rstrip('/')}/{name}"


class ScanStrategy(Protocol):
	async def connect(self) -> None: ...

	async def disconnect(self) -> None: ...

	async def list_directories(self, path: str) -> List[str]: ...

	async def list_audio_files(self, path: str) -> List[str]: ...

	async def path_exists(self, path: str) -> bool: ...


class RemoteStrategy(ABC):
	"""
	Shared behaviour of the FTP and SFTP strategies.

	Subclasses implement _open, _close, _list, upload_file and delete_file,
	and name the listing errors that mean "path is not there" in
	missing_path_errors. Listing without an explicit connect() opens the
	connection on demand, once, however many calls race for it.
	Use as an async context manager to guarantee the session is released.
	"""

	protocol = "remote"
	missing_path_errors: Tuple[Type[BaseException], ...] = ()

	def __init__(self, settings: Settings):
		self.settings = settings
		self.connected = False
		self._connect_lock = asyncio.Lock()

	async def __aenter__(self):
		await self.connect()
		return self

	async def __aexit__(self, exc_type, exc, tb):
		await self.disconnect()

	async def connect(self) -> None:
		if self.connected:
			return
		async with self._connect_lock:
			if self.connected:
				return
			logger.debug(f"Connecting to {self.protocol.upper()} {self.settings.ftp_host} as {self.settings.ftp_user}")
			try:
				await self._open()
			except Exception as e:
				await self._close()
				raise TransportError(f"{self.protocol.upper()} connect to {self.settings.ftp_host} failed: {str(e) or type(e).__name__}", self.protocol) from e
			self.connected = True

	async def disconnect(self) -> None:
		if not self.connected:
			return
		self.connected = False
		await self._close()
		logger.debug(f"{self.protocol.upper()} session closed")

	async def list_entries(self, path: str) -> List[RemoteEntry]:
		if not self.connected:
			await self.connect()
		entries = await self._list(path)
		return [e for e in entries if e.name not in (".", "..")]

	async def list_directories(self, path: str) -> List[str]:
		return [e.name for e in await self.list_entries(path) if e.is_directory]

	async def list_audio_files(self, path: str) -> List[str]:
		return [e.name for e in await self.list_entries(path) if not e.is_directory and is_audio_file(e.name)]

	async def path_exists(self, path: str) -> bool:
		# Neither protocol offers a stat that behaves the same on every server
		if not self.connected:
			await self.connect()
		try:
			await self._list(path)
			return True
		except self.missing_path_errors as e:
			logger.debug(f"{path} not listable over {self.protocol}: {e}")
			return False

	@abstractmethod
	async def _open(self) -> None:
		...

	@abstractmethod
	async def _close(self) -> None:
		...

	@abstractmethod
	async def _list(self, path: str) -> List[RemoteEntry]:
		...

	@abstractmethod
	async def upload_file(self, local_path: Path, remote_dir: str, file_name: str) -> str:
		...

	@abstractmethod
	async def delete_file(self, remote_path: str) -> None:
		...


class FTPStrategy(RemoteStrategy):
	protocol = "ftp"
	missing_path_errors = (aioftp.StatusCodeError,)

	def __init__(self, settings: Settings):
		super().__init__(settings)
		self._client: aioftp.Client | None = None
		# one control connection, so commands must not interleave
		self._lock = asyncio.Lock()

	async def _open(self) -> None:
		self._client = aioftp.Client(socket_timeout=FTP_TIMEOUT, connection_timeout=FTP_TIMEOUT)
		await self._client.connect(self.settings.ftp_host, FTP_PORT)
		await self._client.login(self.settings.ftp_user, self.settings.ftp_password)

	async def _close(self) -> None:
		client, self._client = self._client, None
		if client is None:
			return
		try:
			await client.quit()
		except (aioftp.StatusCodeError, OSError, asyncio.TimeoutError) as e:
			logger.debug(f"FTP quit failed, closing socket: {e}")
		finally:
			client.close()

	def _require_client(self) -> aioftp.Client:
		if self._client is None:
			raise TransportError("FTP client not connected", self.protocol)
		return self._client

	async def _list(self, path: str) -> List[RemoteEntry]:
		client = self._require_client()
		async with self._lock:
			listing = await client.list(path)
		entries = []
		for entry_path, info in listing:
			kind = info.get("type")
			if kind not in ("dir", "file"):
				continue
			entries.append(RemoteEntry(name=PurePosixPath(entry_path).name, is_directory=kind == "dir"))
		return entries

	async def upload_file(self, local_path: Path, remote_dir: str, file_name: str) -> str:
		if not self.connected:
			await self.connect()
		client = self._require_client()
		remote_path = join_path(remote_dir, file_name)
		async with self._lock:
			await client.make_directory(remote_dir)
			logger.info(f"Uploading {local_path} to ftp://{self.settings.ftp_host}{remote_path}")
			await client.upload(local_path, remote_path, write_into=True)
		return remote_path

	async def delete_file(self, remote_path: str) -> None:
		if not self.connected:
			await self.connect()
		client = self._require_client()
		async with self._lock:
			await client.remove_file(remote_path)


class SFTPStrategy(RemoteStrategy):
	protocol = "sftp"
	missing_path_errors = (asyncssh.SFTPNoSuchFile, asyncssh.SFTPPermissionDenied, asyncssh.SFTPFailure)

	def __init__(self, settings: Settings):
		super().__init__(settings)
		self._conn: asyncssh.SSHClientConnection | None = None
		self._sftp: asyncssh.SFTPClient | None = None

	async def _open(self) -> None:
		self._conn = await asyncssh.connect(
			self.settings.ftp_host,
			port=SFTP_PORT,
			username=self.settings.ftp_user,
			password=self.settings.ftp_password,
			known_hosts=None,
			connect_timeout=FTP_TIMEOUT,
		)
		self._sftp = await self._conn.start_sftp_client()

	async def _close(self) -> None:
		sftp, self._sftp = self._sftp, None
		conn, self._conn = self._conn, None
		if sftp is not None:
			sftp.exit()
		if conn is not None:
			conn.close()
			await conn.wait_closed()

	def _require_sftp(self) -> asyncssh.SFTPClient:
		if self._sftp is None:
			raise TransportError("SFTP client not connected", self.protocol)
		return self._sftp

	async def _list(self, path: str) -> List[RemoteEntry]:
		names = await self._require_sftp().readdir(path)
		entries = []
		for item in names:
			kind = item.attrs.type
			if kind == asyncssh.FILEXFER_TYPE_DIRECTORY:
				entries.append(RemoteEntry(name=item.filename, is_directory=True))
			elif kind == asyncssh.FILEXFER_TYPE_REGULAR:
				entries.append(RemoteEntry(name=item.filename, is_directory=False))
		return entries

	async def upload_file(self, local_path: Path, remote_dir: str, file_name: str) -> str:
		if not self.connected:
			await self.connect()
		sftp = self._require_sftp()
		remote_path = join_path(remote_dir, file_name)
		await sftp.makedirs(remote_dir, exist_ok=True)
		logger.info(f"Uploading {local_path} to sftp://{self.settings.ftp_host}{remote_path}")
		await sftp.put(str(local_path), remote_path)
		return remote_path

	async def delete_file(self, remote_path: str) -> None:
		if not self.connected:
			await self.connect()
		await self._require_sftp().remove(remote_path)


class LocalFileSystemStrategy:
	"""Filesystem strategy used by the static playlist generator."""

	async def __aenter__(self):
		return self

	async def __aexit__(self, exc_type, exc, tb):
		return None

	async def connect(self) -> None:
		return None

	async def disconnect(self) -> None:
		return None

	async def list_directories(self, path: str) -> List[str]:
		root = Path(path)
		if not root.is_dir():
			return []
		return sorted(p.name for p in root.iterdir() if p.is_dir())

	async def list_audio_files(self, path: str) -> List[str]:
		"""Audio files below path, recursively, as '/'-separated relative paths."""
		root = Path(path)
		if not root.is_dir():
			return []
		files = []
		self._collect(root, PurePosixPath(), files)
		return files

	async def list_root_audio_files(self, path: str) -> List[str]:
		root = Path(path)
		if not root.is_dir():
			return []
		return sorted(p.name for p in root.iterdir() if p.is_file() and is_audio_file(p.name))

	async def path_exists(self, path: str) -> bool:
		return Path(path).exists()

	def _collect(self, directory: Path, relative: PurePosixPath, files: List[str]) -> None:
		for item in sorted(directory.iterdir(), key=lambda p: p.name):
			if item.is_dir():
				self._collect(item, relative / item.name, files)
			elif item.is_file() and is_audio_file(item.name):
				files.append(str(relative / item.name))


def other_protocol(protocol: str) -> str:
	return "sftp" if protocol == "ftp" else "ftp"


def create_strategy(protocol: str, settings: Settings) -> RemoteStrategy:
	if protocol == "ftp":
		return FTPStrategy(settings)
	if protocol == "sftp":
		return SFTPStrategy(settings)
	raise ValueError(f"Unknown protocol: {protocol}")


StrategyFactory = Callable[[str, Settings], RemoteStrategy]


async def run_with_fallback(
	settings: Settings,
	operation: Callable[[RemoteStrategy], Awaitable[T]],
	preferred: str | None = None,
	factory: StrategyFactory = create_strategy,
	error_cls: type = RemoteStoreError,
) -> T:
	"""
	Run operation against the preferred protocol, then once against the other.

	Each attempt gets a fresh strategy which is disconnected however the
	attempt ends. If both attempts fail, error_cls is raised naming both
	underlying failures in attempt order.
	"""
	first = preferred or settings.preferred_protocol
	failures = []
	for protocol in (first, other_protocol(first)):
		strategy = factory(protocol, settings)
		try:
			async with strategy:
				return await operation(strategy)
		except Exception as e:
			message = str(e) or type(e).__name__
			failures.append((protocol.upper(), message))
			if len(failures) == 1:
				logger.warning(f"{protocol.upper()} attempt failed, trying {other_protocol(protocol).upper()} fallback: {message}")
	(a, a_msg), (b, b_msg) = failures
	raise error_cls(f"Both {a} and {b} failed. {a}: {a_msg}, {b}: {b_msg}")
