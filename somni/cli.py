"""Command-line interface for Somni.

WHY: Parents and developers want to create a narrated story, or inspect
the karaoke timeline of an existing text, without running the web
service. The CLI wires the story client, voice client, word-sync core,
and timeline formatters behind three subcommands.

HOW: argparse with subcommands:
  generate  — story from an idea → optional narration MP3 → exports
  timeline  — offline exports for a text file and a known duration
  highlight — print the word highlighted at one playback position
The async provider pipeline runs via asyncio.run(). Status messages go
to stderr; files are saved to --output-dir (default: CWD) with numeric
suffixes on name conflicts.

RULES:
- Status output goes to stderr (not stdout); highlight prints to stdout
- --formats: comma-separated formatter keys (default: all registered)
- Output naming: {slug}{suffix}, numeric suffix for conflicts (-karaoke-2.json)
- --duration must be finite and >= 0; checked before any file is written
- Exit 1 on user/config/provider errors, 130 on Ctrl-C
- Python 3.9.6 compatible — no match/case, no X | Y unions at runtime
"""

from __future__ import annotations

import argparse
import asyncio
import itertools
import math
import re
import sys
from pathlib import Path
from typing import List, Optional

import httpx

from somni.api.models import STORYTELLING_SETTINGS, AgeGroup
from somni.api.story_client import StoryAPIError, StoryClient, StoryGenerationError
from somni.api.voice_client import VoiceAPIError, VoiceClient
from somni.config import DEFAULT_AGE_GROUP, DEFAULT_VOICE_ID
from somni.core.audio import mp3_duration_s
from somni.core.ir import NarratedStory, SyncTuning
from somni.core.sync import NO_HIGHLIGHT, map_time_to_word_index
from somni.core.weights import build_timeline
from somni.formatters import FORMATTERS
from somni.formatters.base import FormatterOutput


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def _slugify(title: str) -> str:
    """Filename stem from a story title: "The Sleepy Owl!" → "the-sleepy-owl"."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "story"


def _resolve_output_path(stem: str, suffix: str, output_dir: Path) -> Path:
    """Resolve the output file path, adding numeric suffix on conflict.

    RULES:
    - First attempt: {stem}{suffix} (e.g. the-sleepy-owl-karaoke.json)
    - Conflict: counter inserted before the extension
      (e.g. the-sleepy-owl-karaoke-2.json), starting at 2
    """
    path = output_dir / (stem + suffix)
    if not path.exists():
        return path

    head, dot, ext = suffix.rpartition(".")
    if not head:
        # ".mp3" or "-notes": nothing before the extension dot
        head, ext = (suffix, "") if not dot else ("", "." + ext)
    else:
        ext = "." + ext

    for counter in itertools.count(2):
        path = output_dir / "{}{}-{}{}".format(stem, head, counter, ext)
        if not path.exists():
            return path


def _save_output(output: FormatterOutput, stem: str, output_dir: Path) -> Path:
    path = _resolve_output_path(stem, output.suffix, output_dir)
    if isinstance(output.content, bytes):
        path.write_bytes(output.content)
    else:
        path.write_text(output.content, encoding="utf-8")
    return path


def _parse_formats(raw: Optional[str]) -> List[str]:
    """Validate --formats; exits on unknown keys."""
    if not raw:
        return list(FORMATTERS.keys())
    keys = [f.strip() for f in raw.split(",") if f.strip()]
    for key in keys:
        if key not in FORMATTERS:
            available = ", ".join(sorted(FORMATTERS.keys()))
            _fail("Unknown format '{}'. Available formats: {}".format(key, available))
    return keys


def _check_duration(value: float) -> float:
    """Validate --duration; exits unless finite and >= 0."""
    if not math.isfinite(value) or value < 0:
        _fail("--duration must be a finite number of seconds >= 0, got {}".format(value))
    return value


def _resolve_output_dir(raw: Optional[str]) -> Path:
    output_dir = Path(raw).resolve() if raw else Path.cwd()
    if not output_dir.is_dir():
        _fail("Output directory does not exist: {}".format(output_dir))
    return output_dir


def _read_text_file(raw: str) -> str:
    path = Path(raw)
    if not path.is_file():
        _fail("File not found: {}".format(path))
    return path.read_text(encoding="utf-8")


def _write_exports(
    story: NarratedStory,
    format_keys: List[str],
    stem: str,
    output_dir: Path,
) -> List[Path]:
    saved: List[Path] = []
    for key in format_keys:
        formatter = FORMATTERS[key]()
        _status("  Running {} formatter...".format(formatter.name))
        for output in formatter.format(story):
            path = _save_output(output, stem, output_dir)
            saved.append(path)
            _status("  Saved: {}".format(path.name))
    return saved


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


async def _run_generate(args: argparse.Namespace) -> None:
    """Story → narration → exports."""
    output_dir = _resolve_output_dir(args.output_dir)
    format_keys = _parse_formats(args.formats)
    tuning = SyncTuning.from_env()

    async with StoryClient() as story_client:
        generated = await story_client.generate_story(
            args.prompt,
            child_name=args.child_name,
            age_group=AgeGroup(args.age_group),
            on_status=_status,
        )

    stem = _slugify(generated.title)
    saved: List[Path] = []
    duration_s = 0.0

    if args.audio:
        async with VoiceClient() as voice_client:
            audio = await voice_client.text_to_speech(
                generated.content,
                args.voice_id,
                base_settings=STORYTELLING_SETTINGS,
                on_status=_status,
            )
        audio_path = _resolve_output_path(stem, ".mp3", output_dir)
        audio_path.write_bytes(audio)
        saved.append(audio_path)
        _status("  Saved: {}".format(audio_path.name))
        duration_s = mp3_duration_s(audio)
        _status("  Narration length: {:.1f}s".format(duration_s))

    story = NarratedStory(
        title=generated.title,
        text=generated.content,
        timeline=build_timeline(generated.content, tuning),
        duration_s=duration_s,
        tuning=tuning,
    )

    _status("Exporting...")
    saved.extend(_write_exports(story, format_keys, stem, output_dir))

    _status("")
    _status("Done! Saved {} file(s) to {}".format(len(saved), output_dir))


def _run_timeline(args: argparse.Namespace) -> None:
    """Offline exports for an existing text and narration length."""
    duration_s = _check_duration(args.duration)
    text = _read_text_file(args.text_file)
    output_dir = _resolve_output_dir(args.output_dir)
    format_keys = _parse_formats(args.formats)
    tuning = SyncTuning.from_env()

    title = args.title or Path(args.text_file).stem
    story = NarratedStory(
        title=title,
        text=text,
        timeline=build_timeline(text, tuning),
        duration_s=duration_s,
        tuning=tuning,
    )
    _status("{} words, total weight {:.2f}".format(len(story.timeline), story.timeline.total_weight))

    saved = _write_exports(story, format_keys, _slugify(title), output_dir)
    _status("Done! Saved {} file(s) to {}".format(len(saved), output_dir))


def _run_highlight(args: argparse.Namespace) -> None:
    """Print '<index>\\t<word>' for one playback position."""
    duration_s = _check_duration(args.duration)
    text = _read_text_file(args.text_file)
    tuning = SyncTuning.from_env()
    timeline = build_timeline(text, tuning)

    index = map_time_to_word_index(args.time, duration_s, timeline, tuning)
    if index == NO_HIGHLIGHT:
        print("{}\t".format(index))
    else:
        print("{}\t{}".format(index, timeline.tokens[index].text))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    RULES:
    - generate: PROMPT, --age-group, --child-name, --voice-id,
      --audio/--no-audio, --formats, --output-dir
    - timeline: TEXT_FILE, --duration (required), --title, --formats, --output-dir
    - highlight: TEXT_FILE, --duration, --time (both required)
    """
    parser = argparse.ArgumentParser(
        prog="somni",
        description="Generate narrated bedtime stories with karaoke word timelines.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    format_help = "Comma-separated list of export formats. Available: {}. Default: all.".format(
        ", ".join(sorted(FORMATTERS.keys()))
    )

    gen = subparsers.add_parser("generate", help="Write, narrate, and export a new story.")
    gen.add_argument("prompt", help="The story idea.")
    gen.add_argument(
        "--age-group",
        default=DEFAULT_AGE_GROUP,
        choices=[g.value for g in AgeGroup],
        help="Audience (default: %(default)s).",
    )
    gen.add_argument("--child-name", default=None, help="Name for the hero or a friend.")
    gen.add_argument(
        "--voice-id",
        default=DEFAULT_VOICE_ID,
        help="Provider voice id to narrate with (default: stock narrator).",
    )
    gen.add_argument(
        "--audio",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Narrate the story to MP3 (default: %(default)s).",
    )
    gen.add_argument("--formats", default=None, help=format_help)
    gen.add_argument("--output-dir", default=None, help="Directory for output files (default: CWD).")

    tl = subparsers.add_parser("timeline", help="Export the word timeline of a text file.")
    tl.add_argument("text_file", help="Path to the story text (UTF-8).")
    tl.add_argument("--duration", type=float, required=True, help="Narration length in seconds.")
    tl.add_argument("--title", default=None, help="Story title (default: file stem).")
    tl.add_argument("--formats", default=None, help=format_help)
    tl.add_argument("--output-dir", default=None, help="Directory for output files (default: CWD).")

    hl = subparsers.add_parser("highlight", help="Show the word spoken at a playback position.")
    hl.add_argument("text_file", help="Path to the story text (UTF-8).")
    hl.add_argument("--duration", type=float, required=True, help="Narration length in seconds.")
    hl.add_argument("--time", type=float, required=True, help="Playback position in seconds.")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m somni`` and the ``somni`` script."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "generate":
            asyncio.run(_run_generate(args))
        elif args.command == "timeline":
            _run_timeline(args)
        else:
            _run_highlight(args)
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except (StoryAPIError, StoryGenerationError, VoiceAPIError, httpx.HTTPError) as e:
        _fail(str(e))
    except ValueError as e:
        # Config errors (missing API key, unreadable audio, etc.)
        _fail(str(e))


if __name__ == "__main__":
    main()
