"""Abstract base formatter and output container.

WHY: Every timeline export consumes the same NarratedStory but produces
different file content. This base class enforces a consistent interface
so the CLI and the HTTP API can work with any formatter generically.

HOW: BaseFormatter is an ABC: a display ``name``, the ``suffix`` of the
file it writes, and ``format()``. FormatterOutput pairs that suffix with
the rendered content and its MIME type.

RULES:
- Subclasses implement ``name``, ``suffix`` and ``format()``
- ``format()`` returns a list; single-file formatters return one item
- ``suffix`` starts with a hyphen, e.g. ``"-karaoke.json"``
- The caller is responsible for prepending the story filename stem
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from somni.core.ir import NarratedStory


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: File suffix appended to the story stem,
                e.g. ``"-karaoke.json"`` → ``"the-sleepy-owl-karaoke.json"``.
        content: The file content as a string or bytes.
        media_type: MIME type for the content.
    """

    suffix: str
    content: str | bytes
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for all timeline formatters.

    New exports subclass this and get a key in formatters.FORMATTERS.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'Karaoke JSON'."""

    @property
    @abstractmethod
    def suffix(self) -> str:
        """Suffix of the (first) file this formatter produces."""

    @abstractmethod
    def format(self, story: NarratedStory) -> list[FormatterOutput]:
        """Convert a narrated story into one or more output files."""
