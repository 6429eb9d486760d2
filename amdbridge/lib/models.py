# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Data model shared by the daemon and the remote client.

Everything here is an immutable value with a ``to_wire()`` method producing
the JSON-ready dict sent over the socket.  Parsing (and shape validation)
lives in ``protocol.py``.

Songs are identified structurally by their (title, album, artist) triple:
the same logical song carries different ids in the library and catalog
namespaces, so ids are never used for reconciliation.
"""

from dataclasses import dataclass, field
from enum import Enum


class Namespace(str, Enum):
    LIBRARY = "library"
    CATALOG = "catalog"


class PlaybackStatus(str, Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    SEEKING_FORWARD = "seekingforward"
    SEEKING_BACKWARD = "seekingbackward"


class CommandType(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    STOP = "stop"
    PREVIOUS = "previous"
    NEXT = "next"
    SHUFFLE = "shuffle"
    REPEAT = "repeatsong"


class MessageLevel(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    SUCCESS = "success"
    INFO = "info"


def _drop_none(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class MediaItem:
    """A playable song, resolved or as described by the other end."""
    title: str
    artist: str | None = None
    album: str | None = None
    id: str | None = None
    duration: float | None = None
    artwork: str | None = None

    @property
    def identity(self) -> tuple:
        return (self.title, self.album, self.artist)

    def same_song(self, other: "MediaItem | None") -> bool:
        """Structural equality: exact, case-sensitive triple match."""
        return other is not None and self.identity == other.identity

    def to_wire(self) -> dict:
        return _drop_none({
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "duration": self.duration,
            "artwork": self.artwork,
        })


def same_song(a: MediaItem | None, b: MediaItem | None) -> bool:
    """Structural equality that treats two missing songs as equal."""
    if a is None or b is None:
        return a is None and b is None
    return a.identity == b.identity


@dataclass(frozen=True)
class Album:
    title: str
    artist: str | None = None
    id: str | None = None
    artwork: str | None = None
    tracks: tuple[MediaItem, ...] = ()

    def matches(self, other: "Album") -> bool:
        return self.title == other.title and self.artist == other.artist

    def to_wire(self) -> dict:
        return _drop_none({
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "artwork": self.artwork,
        })


@dataclass(frozen=True)
class Playlist:
    name: str
    id: str | None = None
    tracks: tuple[MediaItem, ...] = ()

    def to_wire(self) -> dict:
        return _drop_none({"id": self.id, "name": self.name})


@dataclass(frozen=True)
class Station:
    name: str
    id: str | None = None

    def to_wire(self) -> dict:
        return _drop_none({"id": self.id, "name": self.name})


# ── Client → daemon ──

@dataclass(frozen=True)
class TransportCommand:
    command: CommandType

    def to_wire(self) -> dict:
        return {"commandType": self.command.value}


@dataclass(frozen=True)
class EnqueueSong:
    song: MediaItem
    append: bool = False

    def to_wire(self) -> dict:
        return {"song": self.song.to_wire(), "append": self.append}


@dataclass(frozen=True)
class EnqueueAlbum:
    album: Album
    append: bool = False

    def to_wire(self) -> dict:
        return {"album": self.album.to_wire(), "append": self.append}


@dataclass(frozen=True)
class EnqueuePlaylist:
    """Playlists always replace the queue."""
    playlist: Playlist

    def to_wire(self) -> dict:
        return {"playlist": self.playlist.to_wire()}


@dataclass(frozen=True)
class EnqueueStation:
    """Stations always replace the queue."""
    station: Station

    def to_wire(self) -> dict:
        return {"station": self.station.to_wire()}


# ── Daemon → client ──

@dataclass(frozen=True)
class QueueUpdate:
    current_song: MediaItem | None
    songs: tuple[MediaItem, ...] = ()

    def to_wire(self) -> dict:
        return {
            "currentSong": self.current_song.to_wire() if self.current_song else None,
            "songs": [s.to_wire() for s in self.songs],
        }


@dataclass(frozen=True)
class Snapshot(QueueUpdate):
    """Full player state at one broadcast tick.  Unversioned."""
    playback_status: PlaybackStatus = PlaybackStatus.STOPPED
    playback_time: float = 0.0
    shuffle_status: bool = False
    repeat_status: bool = False

    def to_wire(self) -> dict:
        data = super().to_wire()
        data.update({
            "playbackStatus": self.playback_status.value,
            "playbackTime": self.playback_time,
            "shuffleStatus": self.shuffle_status,
            "repeatStatus": self.repeat_status,
        })
        return data


@dataclass(frozen=True)
class OutcomeNotification:
    level: MessageLevel
    title: str
    message: str

    @classmethod
    def success(cls, title: str, message: str) -> "OutcomeNotification":
        return cls(MessageLevel.SUCCESS, title, message)

    @classmethod
    def error(cls, title: str, message: str) -> "OutcomeNotification":
        return cls(MessageLevel.ERROR, title, message)

    def to_wire(self) -> dict:
        return {"level": self.level.value, "title": self.title, "message": self.message}


@dataclass
class QueueEntry:
    """One position in the daemon's queue.  Station streams carry no song."""
    title: str
    item: MediaItem | None = None

    @classmethod
    def for_song(cls, song: MediaItem) -> "QueueEntry":
        return cls(title=song.title, item=song)


@dataclass
class PlayerState:
    entries: list[QueueEntry] = field(default_factory=list)
    current_index: int | None = None
    position: float = 0.0
    phase: PlaybackStatus = PlaybackStatus.STOPPED
    shuffle: bool = False
    repeat: bool = False

    @property
    def current_entry(self) -> QueueEntry | None:
        if self.current_index is None or not 0 <= self.current_index < len(self.entries):
            return None
        return self.entries[self.current_index]
