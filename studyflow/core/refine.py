# studyflow/core/refine.py

from typing import Optional

from studyflow.core.errors import InvalidRefinementError
from studyflow.core.generation import DEFAULT_FLASHCARD_COUNT, GenerationDispatcher
from studyflow.core.types import OutputFormat
from studyflow.memory.models import ContentRecord
from studyflow.utils.logging import get_logger

logger = get_logger(__name__)

REFINE_TARGETS = {
    OutputFormat.FLASHCARDS: "Cards",
    OutputFormat.QUIZ: "Quiz",
}


def ensure_refinable(source: ContentRecord, target_format: OutputFormat) -> None:
    """
    Raise InvalidRefinementError unless ``source`` is a Notes record and the
    target is Flashcards or Quiz.
    """
    if source.format != OutputFormat.NOTES:
        raise InvalidRefinementError(
            f"Only Notes can be refined; {source.id!r} is {source.format.value}."
        )
    if target_format not in REFINE_TARGETS:
        raise InvalidRefinementError(
            f"Notes can be refined into Flashcards or Quiz, not {target_format.value}."
        )


def can_refine(source: Optional[ContentRecord], target_format: OutputFormat) -> bool:
    if source is None:
        return False
    try:
        ensure_refinable(source, target_format)
    except InvalidRefinementError:
        return False
    return True


async def refine(
    dispatcher: GenerationDispatcher,
    source: ContentRecord,
    target_format: OutputFormat,
    count: int = DEFAULT_FLASHCARD_COUNT,
) -> Optional[ContentRecord]:
    """
    Derive a Flashcards or Quiz record from a Notes record's markdown.

    Anything other than a Notes source is a no-op (returns None). The source
    record is never modified; the caller appends the result to history.
    """
    if not can_refine(source, target_format):
        logger.info("Ignoring refinement of %s record %s into %s.",
                    source.format.value, source.id, target_format.value)
        return None

    source_text = source.notes or ""
    title = f"{source.title} ({REFINE_TARGETS[target_format]})"

    if target_format == OutputFormat.FLASHCARDS:
        _, cards = await dispatcher.generate_flashcards(source_text, source.style, count)
        return ContentRecord.create(
            title=title,
            source_label=source.source_label,
            format=target_format,
            style=source.style,
            flashcards=cards,
        )

    _, questions = await dispatcher.generate_quiz(source_text, source.style, count)
    return ContentRecord.create(
        title=title,
        source_label=source.source_label,
        format=target_format,
        style=source.style,
        quiz=questions,
    )
