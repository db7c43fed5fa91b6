"""Word weight estimation: story text to a weighted WordTimeline.

WHY: Synthesised narration arrives as one audio file with no word
timestamps. To highlight the spoken word we need a guess of how long
each word takes relative to the others. Longer words take longer, and
narrators pause at sentence and clause ends, so those get extra weight.

HOW: Split the text on whitespace runs, score each token with a
length-proportional base (floored so tiny words still count) plus
additive punctuation bonuses, then accumulate prefix sums.

RULES:
- Tokenization: str.split() semantics (any whitespace run, no empties)
- Paragraph structure is flattened away
- base = max(len(word) // chars_per_unit, min_word_weight): whole units
  only, so any word shorter than chars_per_unit sits on the floor
- +sentence bonus if the word ends with ".", "!" or "?"
- +clause bonus if the word ends with ",", ";" or ":"
- +quote/dash bonus if the word contains '"', "'" or an em-dash anywhere
- Deterministic; never raises; empty input gives an empty timeline
"""

from __future__ import annotations

from itertools import accumulate
from typing import List

from somni.core.ir import DEFAULT_TUNING, SyncTuning, WordTimeline, WordToken


def tokenize(text: str) -> List[str]:
    """Split story text into whitespace-delimited words, order preserved.

    Punctuation stays attached to its word ("sat." not "sat" + ".").
    """
    if not text:
        return []
    return text.split()


def word_weight(word: str, tuning: SyncTuning = DEFAULT_TUNING) -> float:
    """Relative vocalization time of a single word.

    Bonuses stack: ``'"Stop!'`` gets both the sentence bonus and the
    quote bonus.
    """
    weight = max(len(word) // tuning.chars_per_unit, tuning.min_word_weight)

    if word and word[-1] in tuning.sentence_enders:
        weight += tuning.sentence_pause_bonus
    if word and word[-1] in tuning.clause_enders:
        weight += tuning.clause_pause_bonus
    if any(ch in tuning.quote_dash_chars for ch in word):
        weight += tuning.quote_dash_bonus

    return weight


def build_timeline(text: str, tuning: SyncTuning = DEFAULT_TUNING) -> WordTimeline:
    """Convert story text into a WordTimeline.

    Args:
        text: The full story body. Blank lines between paragraphs are
            treated like any other whitespace.
        tuning: Weighting constants; defaults to the stock values.

    Returns:
        A WordTimeline whose tokens carry weight and cumulative weight.
        Empty when the text has no words.
    """
    words = tokenize(text)
    if not words:
        return WordTimeline()

    weights = [word_weight(w, tuning) for w in words]
    cumulative = tuple(accumulate(weights))

    tokens = tuple(
        WordToken(text=w, weight=wt, cumulative_weight=cum)
        for w, wt, cum in zip(words, weights, cumulative)
    )
    return WordTimeline(tokens=tokens, cumulative_weights=cumulative, total_weight=cumulative[-1])
