"""Explicit highlight state for one loaded narration track.

WHY: A player UI has to remember whether it is playing and which word
is lit. Keeping that in a small explicit record, updated only by
applying the pure mapper on each player event, keeps the mapper
stateless and makes the UI behavior testable in isolation.

HOW: HighlightState holds the timeline, the track duration (once the
metadata has loaded), a playing flag, and the current index. Each
player event has a method; time-driven events call
map_time_to_word_index with the event's time and nothing else.

RULES:
- current_index is NO_HIGHLIGHT until the first time update
- stop() and on_ended() reset to NO_HIGHLIGHT and not playing
- seek() recomputes from the new time (no memory of the old one)
- Before metadata loads, time updates report NO_HIGHLIGHT
- The mapper never sees this object's previous index
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from somni.core.ir import DEFAULT_TUNING, PlaybackState, SyncTuning, WordTimeline
from somni.core.sync import NO_HIGHLIGHT, classify_words, map_time_to_word_index


@dataclass
class HighlightState:
    """Playback-UI state for one track: duration, playing flag, lit word."""

    timeline: WordTimeline
    tuning: SyncTuning = DEFAULT_TUNING
    duration_s: Optional[float] = None
    is_playing: bool = False
    current_index: int = NO_HIGHLIGHT
    position_s: float = 0.0

    def load_metadata(self, duration_s: float) -> None:
        """Record the track duration once the player knows it."""
        self.duration_s = duration_s
        self.position_s = 0.0
        self.current_index = NO_HIGHLIGHT

    def play(self) -> None:
        self.is_playing = True

    def pause(self) -> None:
        self.is_playing = False

    def on_time_update(self, current_time_s: float) -> int:
        """Apply the mapper for a player time-update event."""
        self.position_s = current_time_s
        if self.duration_s is None:
            self.current_index = NO_HIGHLIGHT
        else:
            self.current_index = map_time_to_word_index(
                current_time_s, self.duration_s, self.timeline, self.tuning
            )
        return self.current_index

    def seek(self, current_time_s: float) -> int:
        """Jump to a new position; identical to a fresh time update."""
        return self.on_time_update(current_time_s)

    def stop(self) -> None:
        self.is_playing = False
        self.position_s = 0.0
        self.current_index = NO_HIGHLIGHT

    def on_ended(self) -> None:
        self.stop()

    @property
    def snapshot(self) -> Optional[PlaybackState]:
        """The player position as last reported, or None before metadata loads."""
        if self.duration_s is None:
            return None
        return PlaybackState(current_time_s=self.position_s, total_duration_s=self.duration_s)

    @property
    def current_word(self) -> Optional[str]:
        if self.current_index == NO_HIGHLIGHT:
            return None
        return self.timeline.tokens[self.current_index].text

    def word_states(self) -> List[str]:
        """spoken / current / unspoken for every word, for rendering."""
        return classify_words(len(self.timeline), self.current_index)
