"""Intermediate representation dataclasses for the karaoke word sync.

WHY: The weight estimator, the playback mapper, the formatters, the CLI
and the HTTP API all talk about the same things: words with relative
durations, a playback position, and the tuning constants that shape the
estimate. One set of typed, immutable dataclasses keeps them in step.

HOW: Five dataclasses:
  WordToken     — one whitespace-delimited word with weight and running sum
  WordTimeline  — the ordered tokens of one story text plus total weight
  PlaybackState — a snapshot of the external player (time + duration)
  WordTiming    — a word's estimated [start, end) window in seconds
  SyncTuning    — every empirical constant used by the estimator/mapper

RULES:
- Everything here is frozen; a timeline is derived once per text
- weight > 0 for every token (guaranteed by the floor in SyncTuning)
- cumulative_weight is non-decreasing; the last equals total_weight
- An empty timeline means "nothing to highlight"
- Times are float seconds
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from somni import config


@dataclass(frozen=True)
class WordToken:
    """A single word of the story text with its relative speaking time.

    RULES:
    - text: the literal substring between whitespace runs, punctuation kept
    - weight: unitless relative duration, never below the tuning floor
    - cumulative_weight: sum of weights up to and including this token
    """

    text: str
    weight: float
    cumulative_weight: float


@dataclass(frozen=True)
class WordTimeline:
    """The weighted word sequence for one story text.

    WHY: The mapper needs the prefix sums to locate a word from an elapsed
    fraction; the renderer needs the words themselves. Keeping both in one
    immutable object means they can never drift apart.

    RULES:
    - tokens are in text order
    - cumulative_weights mirrors tokens[i].cumulative_weight, so the mapper
      can bisect it directly on every time update
    - total_weight equals tokens[-1].cumulative_weight, or 0.0 when empty
    """

    tokens: Tuple[WordToken, ...] = ()
    cumulative_weights: Tuple[float, ...] = ()
    total_weight: float = 0.0

    def __len__(self) -> int:
        return len(self.tokens)

    def __bool__(self) -> bool:
        return bool(self.tokens)

    @property
    def words(self) -> list[str]:
        """The token texts, in order."""
        return [t.text for t in self.tokens]

    @property
    def last_index(self) -> int:
        """Index of the final token, or -1 for an empty timeline."""
        return len(self.tokens) - 1


@dataclass(frozen=True)
class PlaybackState:
    """Snapshot of the external audio player.

    RULES:
    - current_time_s advances while playing and resets to 0 on stop
    - total_duration_s is fixed once the track metadata has loaded
    """

    current_time_s: float
    total_duration_s: float


@dataclass(frozen=True)
class WordTiming:
    """Estimated speaking window of one word, in seconds from track start."""

    index: int
    text: str
    weight: float
    start_s: float
    end_s: float

    @property
    def duration_s(self) -> float:
        return self.end_s - self.start_s


@dataclass(frozen=True)
class SyncTuning:
    """Empirical constants for word weighting and playback mapping.

    WHY: The punctuation bonuses, the weight floor, and the start-of-speech
    offset come from listening tests, not from a reading-speed model.
    Treating them as data lets a deployment retune them per voice/engine.

    RULES:
    - base weight = max(len(word) // chars_per_unit, min_word_weight)
    - sentence_pause_bonus applies when a word ends with a sentence_enders char
    - clause_pause_bonus applies when a word ends with a clause_enders char
    - quote_dash_bonus applies when a word contains any quote_dash_chars char
    - bonuses are independent and cumulative
    - speech_start_offset_s is subtracted from playback time before mapping
    """

    chars_per_unit: float = 5.0
    min_word_weight: float = 0.5
    sentence_pause_bonus: float = 0.8
    clause_pause_bonus: float = 0.3
    quote_dash_bonus: float = 0.1
    speech_start_offset_s: float = 0.5
    sentence_enders: frozenset = field(default=frozenset({".", "!", "?"}))
    clause_enders: frozenset = field(default=frozenset({",", ";", ":"}))
    quote_dash_chars: frozenset = field(default=frozenset({'"', "'", "—"}))

    @classmethod
    def from_env(cls) -> SyncTuning:
        """Build tuning from the SYNC_* values in somni.config.

        Raises:
            ValueError: If the divisor or the floor is not positive, or a
                bonus or the start offset is negative.
        """
        for name in ("SYNC_CHARS_PER_UNIT", "SYNC_MIN_WORD_WEIGHT"):
            if not getattr(config, name) > 0:
                raise ValueError(
                    "{} must be greater than 0, got {}.".format(name, getattr(config, name))
                )
        for name in (
            "SYNC_SENTENCE_PAUSE_BONUS",
            "SYNC_CLAUSE_PAUSE_BONUS",
            "SYNC_QUOTE_DASH_BONUS",
            "SYNC_SPEECH_START_OFFSET_S",
        ):
            if not getattr(config, name) >= 0:
                raise ValueError(
                    "{} must not be negative, got {}.".format(name, getattr(config, name))
                )
        return cls(
            chars_per_unit=config.SYNC_CHARS_PER_UNIT,
            min_word_weight=config.SYNC_MIN_WORD_WEIGHT,
            sentence_pause_bonus=config.SYNC_SENTENCE_PAUSE_BONUS,
            clause_pause_bonus=config.SYNC_CLAUSE_PAUSE_BONUS,
            quote_dash_bonus=config.SYNC_QUOTE_DASH_BONUS,
            speech_start_offset_s=config.SYNC_SPEECH_START_OFFSET_S,
        )


DEFAULT_TUNING = SyncTuning()
"""The stock constants (0.5 floor, 0.8/0.3/0.1 bonuses, 0.5s offset)."""


@dataclass(frozen=True)
class NarratedStory:
    """A story text paired with its narration length, ready for export.

    WHY: Timeline exporters need the title for naming, the words with
    weights, and the audio duration to turn weights into seconds.

    RULES:
    - timeline is build_timeline(text, tuning)
    - duration_s is the narration track length (0.0 if not narrated)
    """

    title: str
    text: str
    timeline: WordTimeline
    duration_s: float
    tuning: SyncTuning = DEFAULT_TUNING
