"""Content deduplication for batch translation.

Subtitle files repeat short lines ("What?", "No!") many times. Only the
unique dialogue text of a chunk is sent upstream; every original line is
then rebuilt from the translated unique text and its structural header.
"""

from typing import Dict, List, Optional, Sequence

from subtrans.core.resilience.errors import BatchAlignmentError

from .models.batch import BatchLineRecord, BatchPlan, SubtitleFormat
from .subtitles import is_ass_dialogue, is_srt_structural, split_ass_dialogue


class ContentDeduplicator:
    """Plans, splits and reconstructs batch lines."""

    def needs_translation(self, line: str, line_format: SubtitleFormat) -> bool:
        """Whether a raw line carries translatable dialogue."""
        trimmed = line.strip()
        if not trimmed:
            return False
        if not line_format.is_structured:
            return True
        if line_format is SubtitleFormat.ASS:
            return is_ass_dialogue(trimmed)
        return not is_srt_structural(trimmed)

    def plan(
        self,
        lines: Sequence[str],
        line_format: SubtitleFormat,
        completed: Optional[Sequence[Optional[str]]] = None,
    ) -> BatchPlan:
        """Decide which lines still need translating.

        Completed, blank and structural lines are passed through into the
        output state; the rest are pending.

        Args:
            lines: Raw file lines
            line_format: Input format
            completed: Previously translated lines (None where pending), for resume

        Returns:
            BatchPlan with the output state and pending indices
        """
        if completed is None or len(completed) != len(lines):
            completed = [None] * len(lines)

        state: List[Optional[str]] = list(completed)
        pending: List[int] = []
        for index, line in enumerate(lines):
            if state[index] is not None:
                continue
            if self.needs_translation(line, line_format):
                pending.append(index)
            else:
                state[index] = line

        return BatchPlan(lines=state, pending=pending)

    def split(
        self,
        lines: Sequence[str],
        line_format: SubtitleFormat,
    ) -> List[BatchLineRecord]:
        """Separate structural headers from translatable content."""
        records = []
        for index, line in enumerate(lines):
            header = ""
            content = line
            if line_format is SubtitleFormat.ASS and is_ass_dialogue(line):
                components = split_ass_dialogue(line)
                if components is not None:
                    header, content = components
            records.append(
                BatchLineRecord(
                    index=index,
                    header=header,
                    content=content.strip(),
                    original=line,
                )
            )
        return records

    def unique_contents(self, records: Sequence[BatchLineRecord]) -> List[str]:
        """Non-empty contents in first-seen order, without duplicates."""
        return list(dict.fromkeys(r.content for r in records if r.content))

    def reconstruct(
        self,
        records: Sequence[BatchLineRecord],
        unique: Sequence[str],
        translations: Sequence[str],
    ) -> List[str]:
        """Rebuild every line from the translated unique contents.

        Args:
            records: Split lines of the chunk
            unique: Unique contents that were sent upstream
            translations: One translated line per unique content

        Returns:
            One output line per record

        Raises:
            BatchAlignmentError: If the translation count differs from ``unique``
        """
        if len(translations) != len(unique):
            raise BatchAlignmentError(sent=len(unique), received=len(translations))

        translated: Dict[str, str] = {
            content: translations[i] or content for i, content in enumerate(unique)
        }

        output = []
        for record in records:
            if not record.content:
                output.append(record.original)
            else:
                output.append(record.header + translated.get(record.content, record.content))
        return output
