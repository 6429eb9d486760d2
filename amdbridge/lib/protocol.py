# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Wire codec for the /amdsocket protocol.

Frames are compact JSON objects with no type tag.  A receiver sniffs the
shape: it tries each registered (name, validator, constructor) triple in a
fixed order and takes the first one whose required fields are present and
type-correct.  Frames that match nothing are dropped.

The order is part of the protocol — existing clients and daemons rely on it:

    daemon side:  enqueue-song, enqueue-album, enqueue-playlist,
                  enqueue-station, transport-command
    client side:  state-snapshot, queue-mirror-update, outcome-notification

Usage:
    text = encode(EnqueueSong(MediaItem("A", artist="B", album="C")))
    msg  = decode_command(text)     # -> EnqueueSong
    msg  = decode_update(frame)     # -> Snapshot | QueueUpdate | OutcomeNotification | None
"""

import json
import logging
import math
from typing import Any, Callable, NamedTuple

from .models import (
    Album,
    CommandType,
    EnqueueAlbum,
    EnqueuePlaylist,
    EnqueueSong,
    EnqueueStation,
    MediaItem,
    MessageLevel,
    OutcomeNotification,
    PlaybackStatus,
    Playlist,
    QueueUpdate,
    Snapshot,
    Station,
    TransportCommand,
)

log = logging.getLogger(__name__)

_COMMAND_TYPES = {c.value for c in CommandType}
_PLAYBACK_STATUSES = {s.value for s in PlaybackStatus}
_LEVELS = {lv.value for lv in MessageLevel}


class Shape(NamedTuple):
    name: str
    validate: Callable[[dict], bool]
    build: Callable[[dict], Any]


# ── Field checks ──

def _is_str(value) -> bool:
    return isinstance(value, str)


def _is_opt_str(value) -> bool:
    return value is None or isinstance(value, str)


def _is_bool(value) -> bool:
    return isinstance(value, bool)


def _is_number(value) -> bool:
    # bool is an int subclass; JSON true/false is not a number here
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except OverflowError:
        return False


def _is_choice(value, choices) -> bool:
    return isinstance(value, str) and value in choices


def _artist(data: dict):
    return data.get("artist", data.get("artistName"))


def _album_title(data: dict):
    return data.get("album", data.get("albumTitle"))


def _valid_song(data) -> bool:
    if not isinstance(data, dict) or not _is_str(data.get("title")):
        return False
    duration = data.get("duration")
    return (
        _is_opt_str(data.get("id"))
        and _is_opt_str(_artist(data))
        and _is_opt_str(_album_title(data))
        and _is_opt_str(data.get("artwork"))
        and (duration is None or _is_number(duration))
    )


def _valid_album(data) -> bool:
    return (
        isinstance(data, dict)
        and _is_str(data.get("title"))
        and _is_opt_str(data.get("id"))
        and _is_opt_str(_artist(data))
    )


def _valid_named(data) -> bool:
    return isinstance(data, dict) and _is_str(data.get("name")) and _is_opt_str(data.get("id"))


# ── Builders (input already validated) ──

def song_from_wire(data: dict) -> MediaItem:
    duration = data.get("duration")
    return MediaItem(
        title=data["title"],
        artist=_artist(data),
        album=_album_title(data),
        id=data.get("id"),
        duration=float(duration) if duration is not None else None,
        artwork=data.get("artwork"),
    )


def album_from_wire(data: dict) -> Album:
    return Album(title=data["title"], artist=_artist(data), id=data.get("id"),
                 artwork=data.get("artwork") if _is_str(data.get("artwork")) else None)


def _current_song(data: dict) -> MediaItem | None:
    current = data.get("currentSong")
    return song_from_wire(current) if current is not None else None


def _songs(data: dict) -> tuple[MediaItem, ...]:
    return tuple(song_from_wire(s) for s in data["songs"])


# ── Shapes ──

def _is_enqueue_song(data: dict) -> bool:
    return _valid_song(data.get("song")) and _is_bool(data.get("append"))


def _is_enqueue_album(data: dict) -> bool:
    return _valid_album(data.get("album")) and _is_bool(data.get("append"))


def _is_enqueue_playlist(data: dict) -> bool:
    return _valid_named(data.get("playlist"))


def _is_enqueue_station(data: dict) -> bool:
    return _valid_named(data.get("station"))


def _is_transport_command(data: dict) -> bool:
    return _is_choice(data.get("commandType"), _COMMAND_TYPES)


def _is_queue_update(data: dict) -> bool:
    current = data.get("currentSong")
    songs = data.get("songs")
    return (
        (current is None or _valid_song(current))
        and isinstance(songs, list)
        and all(_valid_song(s) for s in songs)
    )


def _is_snapshot(data: dict) -> bool:
    return (
        _is_queue_update(data)
        and _is_choice(data.get("playbackStatus"), _PLAYBACK_STATUSES)
        and _is_number(data.get("playbackTime"))
        and _is_bool(data.get("shuffleStatus"))
        and _is_bool(data.get("repeatStatus"))
    )


def _is_notification(data: dict) -> bool:
    return (
        _is_choice(data.get("level"), _LEVELS)
        and _is_str(data.get("title"))
        and _is_str(data.get("message"))
    )


SERVER_SHAPES: list[Shape] = [
    Shape("enqueue-song", _is_enqueue_song,
          lambda d: EnqueueSong(song_from_wire(d["song"]), d["append"])),
    Shape("enqueue-album", _is_enqueue_album,
          lambda d: EnqueueAlbum(album_from_wire(d["album"]), d["append"])),
    Shape("enqueue-playlist", _is_enqueue_playlist,
          lambda d: EnqueuePlaylist(Playlist(d["playlist"]["name"], d["playlist"].get("id")))),
    Shape("enqueue-station", _is_enqueue_station,
          lambda d: EnqueueStation(Station(d["station"]["name"], d["station"].get("id")))),
    Shape("transport-command", _is_transport_command,
          lambda d: TransportCommand(CommandType(d["commandType"]))),
]

CLIENT_SHAPES: list[Shape] = [
    Shape("state-snapshot", _is_snapshot,
          lambda d: Snapshot(
              current_song=_current_song(d),
              songs=_songs(d),
              playback_status=PlaybackStatus(d["playbackStatus"]),
              playback_time=float(d["playbackTime"]),
              shuffle_status=d["shuffleStatus"],
              repeat_status=d["repeatStatus"],
          )),
    Shape("queue-mirror-update", _is_queue_update,
          lambda d: QueueUpdate(current_song=_current_song(d), songs=_songs(d))),
    Shape("outcome-notification", _is_notification,
          lambda d: OutcomeNotification(MessageLevel(d["level"]), d["title"], d["message"])),
]


def encode(message) -> str:
    """Serialize a model to a single newline-free JSON text frame."""
    return json.dumps(message.to_wire(), separators=(",", ":"), ensure_ascii=False)


def decode(text: str | bytes, shapes: list[Shape]):
    """Return the first shape match for *text*, or None when nothing fits."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError, RecursionError):
        log.debug("Dropping non-JSON frame")
        return None
    if not isinstance(data, dict):
        log.debug("Dropping non-object frame")
        return None

    for shape in shapes:
        try:
            if shape.validate(data):
                return shape.build(data)
        except Exception as e:
            log.debug("Frame rejected as %s: %s", shape.name, e)
    log.debug("Frame matches no known shape: %s", sorted(data))
    return None


def decode_command(text: str | bytes):
    return decode(text, SERVER_SHAPES)


def decode_update(text: str | bytes):
    return decode(text, CLIENT_SHAPES)
