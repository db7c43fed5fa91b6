"""Timeline formatter registry — pluggable export hub.

WHY: The CLI and the HTTP API need a single lookup to find the right
formatter by name. A central dict makes it trivial to add new exports:
create the formatter class, import it here, add one line.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["karaoke_json"]()``.

RULES:
- Keys are snake_case identifiers (used in CLI flags and query params)
- Values are BaseFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from somni.formatters.enhanced_lrc import EnhancedLRCFormatter
from somni.formatters.karaoke_json import KaraokeJSONFormatter
from somni.formatters.plain_text import PlainTextFormatter

if TYPE_CHECKING:
    from somni.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "karaoke_json": KaraokeJSONFormatter,
    "enhanced_lrc": EnhancedLRCFormatter,
    "plain_text": PlainTextFormatter,
}
