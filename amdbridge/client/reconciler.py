# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Reconciler — keeps the client's mirror of now-playing and the queue in step
with the daemon's once-a-second full snapshots.

Snapshots are complete, unversioned and frequent, so each one is compared
structurally (title, album, artist) against the mirror first and only what
changed is re-resolved.  One reconciliation runs at a time: a snapshot that
arrives while another is being resolved is dropped, and the next tick
catches up.

Steps per snapshot:
  1. current song — if the triple differs, resolve it (catalog id, then a
     "<title> by <artist>" search); on failure keep the raw descriptor.
  2. queue — if the length or any position differs, rebuild the mirror by
     resolving every song in order; songs that fail to resolve are dropped.
  3. active index — first mirrored position matching the incoming current
     song; left alone when nothing matches.
"""

import logging
from dataclasses import dataclass, field

from ..lib.models import MediaItem, Namespace, QueueUpdate, same_song
from ..lib.resolvers import ResolverGateway

log = logging.getLogger(__name__)


@dataclass
class QueueMirror:
    """Client-side copy of the daemon's queue.  Never authoritative."""
    queue: list[MediaItem] = field(default_factory=list)
    current_song: MediaItem | None = None
    current_index: int = 0


def queue_is_stale(mirror: list[MediaItem], songs) -> bool:
    if len(mirror) != len(songs):
        return True
    return any(not a.same_song(b) for a, b in zip(mirror, songs))


class Reconciler:

    def __init__(self, resolver: ResolverGateway, mirror: QueueMirror | None = None):
        self.resolver = resolver
        self.mirror = mirror or QueueMirror()
        self.updating = False

    async def reconcile(self, update: QueueUpdate) -> bool:
        """Apply *update* to the mirror.  False when dropped as a collision."""
        if self.updating:
            log.debug("Reconciliation in progress — snapshot dropped")
            return False
        self.updating = True
        try:
            await self._update_current_song(update.current_song)
            await self._update_queue(update.songs)
            self._update_index(update.current_song)
        finally:
            self.updating = False
        return True

    async def _update_current_song(self, incoming: MediaItem | None):
        if same_song(self.mirror.current_song, incoming):
            return
        if incoming is None:
            self.mirror.current_song = None
            return
        resolved = await self.resolve_song(incoming)
        self.mirror.current_song = resolved if resolved is not None else incoming
        log.info("Now playing: %s — %s", incoming.title, incoming.artist)

    async def _update_queue(self, songs):
        if not queue_is_stale(self.mirror.queue, songs):
            return
        log.info("Queue changed — resolving %d songs", len(songs))
        self.mirror.queue.clear()
        for song in songs:
            resolved = await self.resolve_song(song)
            if resolved is not None:
                self.mirror.queue.append(resolved)

    def _update_index(self, incoming: MediaItem | None):
        # matched against the incoming descriptor, not the resolved song
        if incoming is None:
            return
        for i, song in enumerate(self.mirror.queue):
            if incoming.same_song(song):
                self.mirror.current_index = i
                return

    async def resolve_song(self, song: MediaItem) -> MediaItem | None:
        """Catalog lookup by id, then "<title> by <artist>" search.  None on failure."""
        if song.id is not None:
            try:
                item = await self.resolver.resolve_song(Namespace.CATALOG, song.id)
                if item is not None:
                    return item
            except Exception as e:
                log.info("Catalog lookup failed for %s by %s: %s", song.title, song.artist, e)

        term = f"{song.title} by {song.artist}" if song.artist else song.title
        try:
            results = await self.resolver.search(term, ("songs",), 1)
        except Exception as e:
            log.info("Search failed for %s: %s", term, e)
            return None
        return results[0] if results else None
