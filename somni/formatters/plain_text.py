"""Plain text story formatter.

WHY: Parents want the story itself saved next to the narration, to
re-read or print, with no timing data in the way.

HOW: Writes the title, a blank line, then the story body exactly as
generated (paragraph breaks kept).

RULES:
- Suffix: "-story.txt"; media type "text/plain"
- No trailing whitespace on any line; file ends with one newline
"""

from __future__ import annotations

from typing import List

from somni.core.ir import NarratedStory
from somni.formatters.base import BaseFormatter, FormatterOutput


class PlainTextFormatter(BaseFormatter):
    """Formatter producing the story as readable text."""

    @property
    def name(self) -> str:
        return "Plain Text"

    @property
    def suffix(self) -> str:
        return "-story.txt"

    def format(self, story: NarratedStory) -> List[FormatterOutput]:
        body = "\n".join(line.rstrip() for line in story.text.strip().splitlines())
        content = "{}\n\n{}\n".format(story.title.strip(), body) if body else story.title.strip() + "\n"
        return [FormatterOutput(
            suffix=self.suffix,
            content=content,
            media_type="text/plain",
        )]
