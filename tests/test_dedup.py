import pytest

from subtrans.core.resilience import BatchAlignmentError
from subtrans.core.translation import ContentDeduplicator, SubtitleFormat

ASS_HEADER = "Dialogue: 0,0:00:01.00,0:00:02.00,Default,Bob,0,0,0,,"


@pytest.fixture
def dedup() -> ContentDeduplicator:
    return ContentDeduplicator()


def test_duplicates_are_sent_once_and_fanned_out(dedup: ContentDeduplicator) -> None:
    records = dedup.split(["A", "A", "B", ""], SubtitleFormat.PLAIN)

    unique = dedup.unique_contents(records)
    output = dedup.reconstruct(records, unique, ["a", "b"])

    assert unique == ["A", "B"]
    assert output == ["a", "a", "b", ""]


def test_reconstruct_rejects_misaligned_output(dedup: ContentDeduplicator) -> None:
    records = dedup.split(["A", "B", "C"], SubtitleFormat.PLAIN)
    unique = dedup.unique_contents(records)

    with pytest.raises(BatchAlignmentError) as exc_info:
        dedup.reconstruct(records, unique, ["a", "b"])

    assert exc_info.value.sent == 3
    assert exc_info.value.received == 2


def test_empty_translation_keeps_source_text(dedup: ContentDeduplicator) -> None:
    records = dedup.split(["A", "B"], SubtitleFormat.PLAIN)

    output = dedup.reconstruct(records, ["A", "B"], ["", "b"])

    assert output == ["A", "b"]


def test_ass_headers_are_kept_out_of_content(dedup: ContentDeduplicator) -> None:
    lines = [ASS_HEADER + "Hello, there", ASS_HEADER + "Hello, there"]

    records = dedup.split(lines, SubtitleFormat.ASS)
    unique = dedup.unique_contents(records)
    output = dedup.reconstruct(records, unique, ["MM"])

    assert records[0].header == ASS_HEADER
    assert unique == ["Hello, there"]
    assert output == [ASS_HEADER + "MM", ASS_HEADER + "MM"]


def test_plan_ass_only_translates_dialogue(dedup: ContentDeduplicator) -> None:
    lines = ["[Script Info]", "Title: Demo", "", ASS_HEADER + "Hi", "Comment: 0,note"]

    plan = dedup.plan(lines, SubtitleFormat.ASS)

    assert plan.pending == [3]
    assert plan.lines == ["[Script Info]", "Title: Demo", "", None, "Comment: 0,note"]


def test_plan_srt_skips_indices_and_timings(dedup: ContentDeduplicator) -> None:
    lines = ["1", "00:00:01,000 --> 00:00:02,000", "Hello", "", "2", "00:00:03,000 --> 00:00:04,000", "World"]

    plan = dedup.plan(lines, SubtitleFormat.SRT)

    assert plan.pending == [2, 6]


def test_plan_resumes_from_completed_state(dedup: ContentDeduplicator) -> None:
    plan = dedup.plan(["A", "B", "C"], SubtitleFormat.PLAIN, completed=["a", None, None])

    assert plan.pending == [1, 2]
    assert plan.lines[0] == "a"
    assert plan.is_complete is False


def test_plan_ignores_completed_state_of_other_length(dedup: ContentDeduplicator) -> None:
    plan = dedup.plan(["A", "B"], SubtitleFormat.PLAIN, completed=["a"])

    assert plan.pending == [0, 1]


@pytest.mark.parametrize(
    "file_name, expected",
    [
        ("episode.srt", SubtitleFormat.SRT),
        ("Episode.ASS", SubtitleFormat.ASS),
        ("notes.txt", SubtitleFormat.PLAIN),
        ("README", SubtitleFormat.PLAIN),
    ],
)
def test_format_from_filename(file_name: str, expected: SubtitleFormat) -> None:
    assert SubtitleFormat.from_filename(file_name) is expected


def test_plain_format_translates_every_non_blank_line(dedup: ContentDeduplicator) -> None:
    assert SubtitleFormat.PLAIN.is_structured is False

    plan = dedup.plan(["1", "00:00:01,000 --> 00:00:02,000", "", "Hello"], SubtitleFormat.PLAIN)

    assert plan.pending == [0, 1, 3]
