"""Audio metadata for narrated tracks.

WHY: The word timeline is scaled onto the real track length. The CLI and
the exporters get MP3 bytes back from the narration provider and need
the duration a browser would report from loadedmetadata.

HOW: mutagen parses the MP3 frame headers from an in-memory buffer.

RULES:
- Input is the raw MP3 body returned by the voice client
- Raises ValueError when the bytes are not decodable MP3
"""

from __future__ import annotations

import io

from mutagen import MutagenError
from mutagen.mp3 import MP3


def mp3_duration_s(data: bytes) -> float:
    """Length of an MP3 payload in seconds."""
    if not data:
        raise ValueError("Cannot read duration of empty audio")
    try:
        audio = MP3(io.BytesIO(data))
    except MutagenError as exc:
        raise ValueError("Unreadable MP3 audio: {}".format(exc)) from exc
    return float(audio.info.length)
