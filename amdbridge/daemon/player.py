# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Player — owner of the daemon's single PlayerState.

Only the PlaybackExecutor mutates it; the StateBroadcaster reads it through
``snapshot()``, which copies everything it returns so a queue replacement
can never be observed half-done.

Playback position is derived from a monotonic clock while playing, so the
broadcast time advances without a ticking task of its own.
"""

import logging
import time
from typing import Callable, Iterable

from ..lib.models import PlaybackStatus, PlayerState, QueueEntry, Snapshot

log = logging.getLogger(__name__)


class Player:

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.state = PlayerState()
        self._clock = clock
        # clock reading when playback last (re)started from state.position
        self._started_at: float | None = None

    # ── Read side ──

    @property
    def position(self) -> float:
        if self.state.phase is PlaybackStatus.PLAYING and self._started_at is not None:
            return self.state.position + (self._clock() - self._started_at)
        return self.state.position

    @property
    def is_empty(self) -> bool:
        return not self.state.entries

    def snapshot(self) -> Snapshot:
        state = self.state
        current = state.current_entry
        return Snapshot(
            current_song=current.item if current else None,
            songs=tuple(e.item for e in state.entries if e.item is not None),
            playback_status=state.phase,
            playback_time=self.position,
            shuffle_status=state.shuffle,
            repeat_status=state.repeat,
        )

    # ── Queue ──

    def replace_queue(self, entries: Iterable[QueueEntry]):
        self.state.entries = list(entries)
        self.state.current_index = None
        self.state.phase = PlaybackStatus.STOPPED
        self._rewind()
        log.info("Queue replaced (%d entries)", len(self.state.entries))

    def append_to_queue(self, entries: Iterable[QueueEntry]):
        added = list(entries)
        self.state.entries.extend(added)
        log.info("Appended %d entries (%d total)", len(added), len(self.state.entries))

    def prepare_to_play(self):
        """Load the current entry (queue head if none) without starting it."""
        if self.state.entries and self.state.current_entry is None:
            self.state.current_index = 0
            self._rewind()

    # ── Transport ──

    def play(self) -> bool:
        if self.is_empty:
            log.info("Play ignored — queue is empty")
            return False
        if self.state.current_entry is None:
            self.state.current_index = 0
            self._rewind()
        if self.state.phase is not PlaybackStatus.PLAYING:
            self._started_at = self._clock()
            self.state.phase = PlaybackStatus.PLAYING
        return True

    def pause(self):
        if self.state.phase is PlaybackStatus.STOPPED:
            return
        self._freeze()
        self.state.phase = PlaybackStatus.PAUSED

    def stop(self):
        self.state.phase = PlaybackStatus.STOPPED
        self._rewind()

    def skip_to_next(self) -> bool:
        return self._skip(1)

    def skip_to_previous(self) -> bool:
        return self._skip(-1)

    def toggle_shuffle(self) -> bool:
        self.state.shuffle = not self.state.shuffle
        return self.state.shuffle

    def toggle_repeat(self) -> bool:
        self.state.repeat = not self.state.repeat
        return self.state.repeat

    # ── Internals ──

    def _skip(self, step: int) -> bool:
        index = self.state.current_index
        if index is None:
            return False
        target = index + step
        if not 0 <= target < len(self.state.entries):
            log.debug("No %s entry — skip ignored", "next" if step > 0 else "previous")
            return False
        self.state.current_index = target
        self._rewind()
        return True

    def _rewind(self):
        self.state.position = 0.0
        self._started_at = self._clock() if self.state.phase is PlaybackStatus.PLAYING else None

    def _freeze(self):
        self.state.position = self.position
        self._started_at = None
