"""Playback-to-word mapping for karaoke highlighting.

WHY: While narration plays, the player fires time-update events. On
each one the UI needs the index of the word being spoken. Computing it
as a pure function of (time, duration, timeline) means seeking, track
changes, and concurrent players need no bookkeeping, and the mapping
can be tested without any audio at all.

HOW: Subtract the start-of-speech offset from the playback time, turn
the result into a fraction of the effective duration, scale it into
weight space, and binary-search the cumulative weights for the first
word not yet fully spoken.

RULES:
- adjusted = max(time - offset, 0); effective = duration - offset
- progress = adjusted / effective, clamped to [0, 1]
- index = first token whose cumulative_weight > progress * total_weight,
  clamped to the last token
- Non-decreasing in time for a fixed track (no backward jumps)
- Empty timeline → NO_HIGHLIGHT; effective <= 0 → last index;
  infinite duration → progress 0;
  negative or NaN time → treated as 0
- Never raises, never keeps state between calls
"""

from __future__ import annotations

import math
from bisect import bisect_right
from typing import List

from somni.core.ir import DEFAULT_TUNING, SyncTuning, WordTiming, WordTimeline

NO_HIGHLIGHT = -1
"""Index reported when there is nothing to highlight."""

SPOKEN = "spoken"
CURRENT = "current"
UNSPOKEN = "unspoken"


def _effective_duration(total_duration_s: float, tuning: SyncTuning) -> float:
    """Duration of actual speech; NaN (metadata not loaded) counts as 0.0."""
    if math.isnan(total_duration_s):
        return 0.0
    return total_duration_s - tuning.speech_start_offset_s


def playback_progress(
    current_time_s: float,
    total_duration_s: float,
    tuning: SyncTuning = DEFAULT_TUNING,
) -> float:
    """Fraction of the speech that has elapsed, in [0, 1].

    A non-positive effective duration counts as fully elapsed (1.0).
    """
    effective = _effective_duration(total_duration_s, tuning)
    if effective <= 0:
        return 1.0

    if math.isnan(current_time_s):
        current_time_s = 0.0
    adjusted = max(current_time_s - tuning.speech_start_offset_s, 0.0)
    return min(adjusted / effective, 1.0)


def map_time_to_word_index(
    current_time_s: float,
    total_duration_s: float,
    timeline: WordTimeline,
    tuning: SyncTuning = DEFAULT_TUNING,
) -> int:
    """Index of the word to highlight at a playback position.

    Args:
        current_time_s: Elapsed playback time reported by the player.
        total_duration_s: Track duration from the loaded metadata.
        timeline: Weighted words of the narrated text.
        tuning: Supplies the start-of-speech offset.

    Returns:
        A token index, or NO_HIGHLIGHT for an empty timeline.
    """
    if not timeline:
        return NO_HIGHLIGHT

    progress = playback_progress(current_time_s, total_duration_s, tuning)
    target = progress * timeline.total_weight

    index = bisect_right(timeline.cumulative_weights, target)
    return min(index, timeline.last_index)


def estimate_word_times(
    timeline: WordTimeline,
    total_duration_s: float,
    tuning: SyncTuning = DEFAULT_TUNING,
) -> List[WordTiming]:
    """Estimated [start, end) window of every word under the same model.

    WHY: Exports (karaoke JSON, LRC) and clients that schedule their own
    highlight changes need absolute times rather than an index lookup.

    HOW: Word i spans the weight interval (cum[i-1], cum[i]]; that
    interval is scaled onto the effective duration and shifted by the
    start-of-speech offset.

    RULES:
    - map_time_to_word_index(start_s) == index for every word with
      positive duration
    - Windows are contiguous and non-overlapping
    - effective duration <= 0 or infinite collapses every window to [0, 0]
    """
    if not timeline:
        return []

    effective = _effective_duration(total_duration_s, tuning)
    timings: List[WordTiming] = []
    previous_cum = 0.0

    for index, token in enumerate(timeline.tokens):
        if effective <= 0 or not math.isfinite(effective) or timeline.total_weight <= 0:
            start_s = end_s = 0.0
        else:
            offset = tuning.speech_start_offset_s
            start_s = offset + previous_cum / timeline.total_weight * effective
            end_s = offset + token.cumulative_weight / timeline.total_weight * effective
        timings.append(WordTiming(
            index=index,
            text=token.text,
            weight=token.weight,
            start_s=start_s,
            end_s=end_s,
        ))
        previous_cum = token.cumulative_weight

    return timings


def classify_words(word_count: int, current_index: int) -> List[str]:
    """Label every word as spoken, current, or unspoken.

    With current_index == NO_HIGHLIGHT every word is unspoken.
    """
    states: List[str] = []
    for i in range(word_count):
        if current_index < 0 or i > current_index:
            states.append(UNSPOKEN)
        elif i == current_index:
            states.append(CURRENT)
        else:
            states.append(SPOKEN)
    return states
