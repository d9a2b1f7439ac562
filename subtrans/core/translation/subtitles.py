"""Subtitle line helpers for ASS and SRT content.

ASS dialogue lines look like::

    Dialogue: Layer,Start,End,Style,Name,MarginL,MarginR,MarginV,Effect,Text

Only the final Text field is translatable; it may itself contain commas.
"""

import re
from typing import Optional, Tuple

ASS_DIALOGUE_PREFIX = "Dialogue:"

# Commas before the Text field of an ASS dialogue line
ASS_HEADER_FIELDS = 9

_ASS_ACTOR_PATTERN = re.compile(r"^Dialogue:\s*[^,]+,[^,]+,[^,]+,[^,]+,([^,]*),", re.IGNORECASE)
_SRT_INDEX_PATTERN = re.compile(r"^\d+$")
_SRT_TIMING_PATTERN = re.compile(r"^\d{2}:\d{2}:\d{2}.*\d{2}:\d{2}:\d{2}")


def is_ass_dialogue(line: str) -> bool:
    return line.strip().startswith(ASS_DIALOGUE_PREFIX)


def split_ass_dialogue(line: str) -> Optional[Tuple[str, str]]:
    """Split an ASS dialogue line into header and text.

    Args:
        line: Raw ASS line

    Returns:
        ``(header, text)`` where header ends with the 9th comma, or None if
        the line has fewer fields
    """
    comma_count = 0
    for i, char in enumerate(line):
        if char == ",":
            comma_count += 1
            if comma_count == ASS_HEADER_FIELDS:
                return line[: i + 1], line[i + 1:]
    return None


def extract_ass_actor(line: str) -> Optional[str]:
    """Return the Name field of an ASS dialogue line, if present."""
    match = _ASS_ACTOR_PATTERN.match(line)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None


def is_srt_structural(line: str) -> bool:
    """Whether an SRT line is a cue index or a timing row."""
    trimmed = line.strip()
    return bool(_SRT_INDEX_PATTERN.match(trimmed) or _SRT_TIMING_PATTERN.match(trimmed))
