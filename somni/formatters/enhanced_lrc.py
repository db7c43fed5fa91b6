"""Enhanced LRC formatter — word-timed lyrics for karaoke players.

WHY: Many offline music and karaoke players already highlight word by
word from "enhanced" (A2) LRC files. Exporting one lets a narrated story
play with highlighting in those players without any Somni code.

HOW: Words are grouped into lines at sentence ends. Each line starts
with a ``[mm:ss.xx]`` stamp (its first word's start) and every word is
preceded by a ``<mm:ss.xx>`` stamp. A closing stamp marks the end of the
last word on the line.

RULES:
- Suffix: "-karaoke.lrc"; media type "text/plain"
- Header tags: [ti:<title>] and [length:mm:ss]
- A line ends after a word whose last char is a sentence ender
- Stamps are rounded to milliseconds, then cut to centiseconds
- An empty story yields only the header
- A NaN or infinite duration is written as 0 and collapses every stamp
"""

from __future__ import annotations

import math
from typing import List

from somni.core.ir import NarratedStory, WordTiming
from somni.core.sync import estimate_word_times
from somni.formatters.base import BaseFormatter, FormatterOutput


def _lrc_stamp(seconds: float) -> str:
    """Format seconds as mm:ss.xx."""
    millis = int(round(max(seconds, 0.0) * 1000))
    centis = millis // 10
    minutes, centis = divmod(centis, 6000)
    secs, centis = divmod(centis, 100)
    return "{:02d}:{:02d}.{:02d}".format(minutes, secs, centis)


def _split_lines(timings: List[WordTiming], sentence_enders: frozenset) -> List[List[WordTiming]]:
    lines: List[List[WordTiming]] = []
    current: List[WordTiming] = []
    for timing in timings:
        current.append(timing)
        if timing.text[-1] in sentence_enders:
            lines.append(current)
            current = []
    if current:
        lines.append(current)
    return lines


class EnhancedLRCFormatter(BaseFormatter):
    """Formatter producing a single enhanced LRC file."""

    @property
    def name(self) -> str:
        return "Enhanced LRC"

    @property
    def suffix(self) -> str:
        return "-karaoke.lrc"

    def format(self, story: NarratedStory) -> List[FormatterOutput]:
        duration_s = story.duration_s if math.isfinite(story.duration_s) else 0.0
        length_s = int(max(duration_s, 0.0))
        out_lines = [
            "[ti:{}]".format(story.title),
            "[length:{:02d}:{:02d}]".format(length_s // 60, length_s % 60),
        ]

        timings = estimate_word_times(story.timeline, duration_s, story.tuning)
        for line in _split_lines(timings, story.tuning.sentence_enders):
            parts = ["[{}]".format(_lrc_stamp(line[0].start_s))]
            for timing in line:
                parts.append("<{}>{}".format(_lrc_stamp(timing.start_s), timing.text))
            parts.append("<{}>".format(_lrc_stamp(line[-1].end_s)))
            out_lines.append(" ".join(parts))

        return [FormatterOutput(
            suffix=self.suffix,
            content="\n".join(out_lines) + "\n",
            media_type="text/plain",
        )]
