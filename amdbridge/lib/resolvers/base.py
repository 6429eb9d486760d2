# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Abstract base class for media resolvers.

A resolver turns a loose descriptor (an id, a title, a search term) into a
canonical item from the music library or the streaming catalog.  Lookups
return None on a miss; backend failures raise ResolverError, which callers
treat the same as a miss.
"""

from abc import ABC, abstractmethod

from ..models import Album, MediaItem, Namespace, Playlist, Station


class ResolverError(Exception):
    """The lookup backend failed (network, auth, unexpected payload)."""


class ResolverGateway(ABC):
    """Interface every resolver backend must implement."""

    @abstractmethod
    async def resolve_song(self, namespace: Namespace, song_id: str) -> MediaItem | None: ...

    @abstractmethod
    async def resolve_album(self, namespace: Namespace, album_id: str) -> Album | None: ...

    @abstractmethod
    async def resolve_playlist(self, playlist_id: str | None = None,
                               name: str | None = None) -> Playlist | None: ...

    @abstractmethod
    async def resolve_station(self, station_id: str) -> Station | None: ...

    @abstractmethod
    async def search(self, term: str, types: tuple[str, ...] = ("songs",),
                     limit: int = 25) -> list: ...

    async def close(self) -> None:
        pass  # no-op by default (nothing to release)
