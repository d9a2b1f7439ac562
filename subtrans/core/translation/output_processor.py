"""Output processor for translation results.

This module cleans raw model output before it reaches the caller. Subtitle
override tags (``{...}``) are left untouched; outside them, italics tags,
commas and the Burmese section mark are removed.
"""

import re
from typing import List

from .subtitles import is_ass_dialogue, split_ass_dialogue


class OutputProcessor:
    """Text-cleaning collaborator for model output.

    Responsibilities:
    1. Strip disallowed punctuation outside tag regions
    2. Keep ASS headers intact while cleaning their text
    3. Normalize whitespace and ``\\N`` line breaks
    4. Split raw batch responses into cleaned lines
    """

    ITALIC_TAG_PATTERN = re.compile(r"\{\\i[01]?\}")
    STRIPPED_CHARS = frozenset({",", "။"})  # comma, Burmese section mark

    FENCE_OPEN_PATTERN = re.compile(r"^```(?:ass|text)?\s*[\r\n]+")
    FENCE_CLOSE_PATTERN = re.compile(r"[\r\n]+```\s*$")

    def _clean_content(self, text: str) -> str:
        text = self.ITALIC_TAG_PATTERN.sub("", text)
        result = []
        depth = 0
        for char in text:
            if char == "{":
                depth += 1
                result.append(char)
            elif char == "}":
                depth = max(0, depth - 1)
                result.append(char)
            elif depth > 0 or char not in self.STRIPPED_CHARS:
                result.append(char)
        return "".join(result)

    def clean(self, text: str) -> str:
        """Remove disallowed punctuation, preserving ASS headers.

        Args:
            text: A plain line or a full ASS dialogue line

        Returns:
            Cleaned text
        """
        if is_ass_dialogue(text):
            components = split_ass_dialogue(text)
            if components is None:
                # Malformed dialogue line: leave it alone
                return text
            header, content = components
            return header + self._clean_content(content)
        return self._clean_content(text)

    def post_process(self, text: str) -> str:
        """Clean a single output line for display."""
        text = self.clean(text)
        text = re.sub(r"\s+", " ", text)
        text = re.sub(r"\s*\\N\s*", r"\\N", text)
        text = text.strip()
        # Keep abbreviation dots ("Mr.") but drop a final stop after other script
        text = re.sub(r"([^\w])\.$", r"\1", text, flags=re.ASCII)
        return text

    def process_lines(self, raw: str) -> List[str]:
        """Split a raw response into cleaned lines.

        Code fences are removed and a single trailing blank line is dropped.
        """
        raw = self.FENCE_OPEN_PATTERN.sub("", raw)
        raw = self.FENCE_CLOSE_PATTERN.sub("", raw)

        lines = raw.split("\n")
        if lines and not lines[-1].strip():
            lines.pop()

        return [self.post_process(line) for line in lines]

    def process(self, raw: str) -> str:
        """Clean a complete single-request response."""
        return "\n".join(self.process_lines(raw)).strip()
