"""
Unit tests for the refinement pipeline.
"""

import pytest

from conftest import make_questions
from studyflow.core.errors import InvalidRefinementError
from studyflow.core.refine import can_refine, ensure_refinable, refine
from studyflow.core.types import OutputFormat


class TestRefine:
    @pytest.mark.asyncio
    async def test_notes_into_quiz(self, dispatcher, fake_client, notes_record):
        fake_client.structured["practice_quiz"] = {"title": "ignored", "questions": make_questions(5)}

        record = await refine(dispatcher, notes_record, OutputFormat.QUIZ, 5)

        assert record.title == "Cell Biology (Quiz)"
        assert record.format == OutputFormat.QUIZ
        assert len(record.quiz) == 5
        assert record.source_label == notes_record.source_label
        assert record.style == notes_record.style
        assert record.id != notes_record.id

        name, prompt, schema_name = fake_client.calls[0]
        assert schema_name == "practice_quiz"
        assert "exactly 5" in prompt
        assert notes_record.notes in prompt

    @pytest.mark.asyncio
    async def test_notes_into_flashcards(self, dispatcher, notes_record):
        record = await refine(dispatcher, notes_record, OutputFormat.FLASHCARDS)
        assert record.title == "Cell Biology (Cards)"
        assert len(record.flashcards) == 10

    @pytest.mark.asyncio
    async def test_source_is_untouched(self, dispatcher, notes_record):
        before = notes_record.to_dict()
        await refine(dispatcher, notes_record, OutputFormat.QUIZ, 5)
        assert notes_record.to_dict() == before

    @pytest.mark.asyncio
    async def test_quiz_source_is_noop(self, dispatcher, fake_client, quiz_record):
        assert await refine(dispatcher, quiz_record, OutputFormat.FLASHCARDS) is None
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_flashcards_source_is_noop(self, dispatcher, fake_client, flashcards_record):
        assert await refine(dispatcher, flashcards_record, OutputFormat.QUIZ) is None
        assert fake_client.calls == []


class TestGuards:
    def test_ensure_refinable_rejects_non_notes(self, quiz_record):
        with pytest.raises(InvalidRefinementError):
            ensure_refinable(quiz_record, OutputFormat.FLASHCARDS)

    def test_ensure_refinable_rejects_bad_target(self, notes_record):
        with pytest.raises(InvalidRefinementError):
            ensure_refinable(notes_record, OutputFormat.VIDEO)

    def test_can_refine(self, notes_record, quiz_record):
        assert can_refine(notes_record, OutputFormat.QUIZ) is True
        assert can_refine(notes_record, OutputFormat.NOTES) is False
        assert can_refine(quiz_record, OutputFormat.QUIZ) is False
        assert can_refine(None, OutputFormat.QUIZ) is False
