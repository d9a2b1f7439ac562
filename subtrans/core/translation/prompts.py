"""Prompt builders for single-line and batch requests."""

from typing import Optional, Sequence

from subtrans.core.llm.response import PromptBundle

from .models.context import TranslationContext
from .subtitles import extract_ass_actor

# Few-shot examples kept in batch prompts
BATCH_EXAMPLE_LIMIT = 5

SYSTEM_INSTRUCTION = """You are "Mg Luck", a Burmese subtitle translator known for natural, emotion-rich localization.

For every line: analyse the scene and the relationship between speaker and listener, grasp the subtext, then write natural spoken Burmese (Subject-Object-Verb).

Rules:
1. ASS input keeps its "Dialogue: ..." header, timestamps and styles exactly. Translate only the Text field.
2. Keep override tags such as {\\pos(x,y)}, {\\fad(t1,t2)} and \\N in place. Remove italics tags {\\i1}, {\\i0}, {\\i}.
3. No punctuation in Burmese text: no "။" and no ",".
4. Keep personal names in English, Title Case.
5. Choose pronouns and particles from the characters' relationship and the tone.

Return only the translated lines."""


def build_translation_prompt(text: str, context: TranslationContext) -> PromptBundle:
    """Build the prompt for a single (possibly multi-line) request."""
    detected_actor: Optional[str] = extract_ass_actor(text)

    user_prompt = (
        f"[INPUT]\n{text}\n\n"
        f"[CONTEXT]\n"
        f"- Source: {context.movie_title or 'Unknown'}\n"
        f"- Spkr: {context.speaker or detected_actor or 'Unknown'}\n"
        f"- Listener: {context.listener or 'Unknown'}\n"
        f"- Tone: {context.tone.value}\n"
        f"- Scene: {context.scene_description or 'None'}\n"
        f"- Glossary/Terms: {context.glossary_text() or 'None'}\n"
    )

    if context.few_shot_examples:
        examples = "\n---\n".join(
            f"Input: {ex.original}\nOutput: {ex.translated}"
            for ex in context.few_shot_examples
        )
        user_prompt += (
            "\n[LEARNED PATTERNS (STRICTLY FOLLOW THIS STYLE)]\n"
            "The user has provided previous corrections. Mimic this style exactly:\n"
            f"{examples}\n"
        )

    user_prompt += (
        "\n[TASK]\n"
        "Translate to spoken Burmese (S-O-V).\n"
        "1. Meaning over literal. Natural flow.\n"
        f"2. Terminology: \"{context.movie_title or 'this show'}\".\n"
        "3. Names: Keep English, Title Case.\n"
        "4. Format: Maintain ASS tags. Remove italics. No punctuation.\n"
    )

    return PromptBundle(system_prompt=SYSTEM_INSTRUCTION, user_prompt=user_prompt)


def build_batch_prompt(unique_contents: Sequence[str], context: TranslationContext) -> PromptBundle:
    """Build the prompt for one deduplicated batch chunk.

    The model must answer with exactly one line per input line.
    """
    count = len(unique_contents)
    text_block = "\n".join(unique_contents)

    user_prompt = f"[BATCH INPUT - {count} unique lines]\n{text_block}\n\n"

    if context.few_shot_examples:
        references = "\n".join(
            f"Original: {ex.original} -> Translated: {ex.translated}"
            for ex in context.few_shot_examples[-BATCH_EXAMPLE_LIMIT:]
        )
        user_prompt += f"[LEARNED STYLE REFERENCES]\n{references}\n\n"

    user_prompt += (
        "[INSTRUCTIONS]\n"
        "Translate to spoken Burmese (S-O-V).\n"
        f"- Source Material: {context.movie_title or 'General'}\n"
        f"- Context: {context.tone.value}\n"
        f"- Scene: {context.scene_description or 'General'}\n"
        f"- Glossary: {context.glossary_text() or 'None'}\n"
        f"- CRITICAL: Maintain strict line-by-line correspondence. Output exactly {count} lines.\n"
        "- NAMES: Keep English names in Title Case.\n"
        "- FORMAT: Keep tags like {\\an8} or \\N in their relative positions.\n"
        "- Clean italics and punctuation.\n"
    )

    return PromptBundle(system_prompt=SYSTEM_INSTRUCTION, user_prompt=user_prompt)
