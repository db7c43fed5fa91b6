"""Core karaoke word-sync modules.

WHY: The core package holds the only real algorithm in Somni: estimating
relative word durations and mapping a playback position to a word.
Everything else (API clients, stores, HTTP, CLI) is plumbing around it.

HOW: ir.py defines the dataclasses and tuning, weights.py builds a
WordTimeline from text, sync.py maps time to a word index, playback.py
holds the explicit UI highlight state, audio.py reads track duration.

RULES:
- weights.py and sync.py are pure and I/O-free
- IR dataclasses are the contract between modules — change with care
"""
