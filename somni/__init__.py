"""Somni: bedtime stories with narrated, karaoke-highlighted playback.

WHY: Parents want a fresh bedtime story on demand, read aloud in a
familiar voice, with each word lighting up as it is spoken so early
readers can follow along.

HOW: Three stages. A story client asks a text-generation API for the
story, a voice client narrates it (optionally in a cloned voice), and
the core word-sync engine turns the text into a weighted word timeline
that maps any playback position to the word being spoken.

RULES:
- The word-sync core is pure: no I/O, no hidden state between calls
- Provider HTTP lives only in somni.api
- Formatters, CLI, and HTTP API all consume the same WordTimeline
"""

__version__ = "0.1.0"
