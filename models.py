from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from config import TRACK_DURATION_PLACEHOLDER


class CamelModel(BaseModel):
	# JSON consumers (browser player, bot) expect camelCase keys
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	def to_json(self) -> dict:
		return self.model_dump(by_alias=True)


class Track(CamelModel):
	track_number: int
	track_name: str
	file_name: str
	duration: str = TRACK_DURATION_PLACEHOLDER
	playlist_name: str
	playlist_index: int
	playlist_total: int
	playlist_path: str


class Playlist(CamelModel):
	name: str
	path: str
	index: int
	total: int
	tracks: List[Track] = Field(default_factory=list)


class ScanResult(CamelModel):
	playlists: List[Playlist] = Field(default_factory=list)


class SongRequest(BaseModel):
	url: str
	playlist: str


class Submission(BaseModel):
	id: int
	url: str
	playlist: str
	status: str
	task_id: Optional[str] = None
	file_name: Optional[str] = None
	error: Optional[str] = None
	created_at: str
