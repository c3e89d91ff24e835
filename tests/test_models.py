"""
Unit tests for the record / identity data model.
"""

import pytest

from conftest import make_questions
from studyflow.core.types import OutputFormat, StudyStyle, parse_format, parse_style
from studyflow.memory.models import ContentRecord, Flashcard, Identity, QuizQuestion


class TestContentRecord:
    def test_create_assigns_id_and_timestamp(self):
        record = ContentRecord.create(
            title="T", source_label="src", format=OutputFormat.NOTES,
            style=StudyStyle.SIMPLE, notes="# T",
        )
        assert record.id.startswith(f"gen-{record.created_at}-")
        assert record.created_at > 0

    def test_ids_are_unique(self):
        ids = {
            ContentRecord.create(
                title="T", source_label="s", format=OutputFormat.NOTES,
                style=StudyStyle.SIMPLE, notes="x",
            ).id
            for _ in range(20)
        }
        assert len(ids) == 20

    def test_payload_must_match_format(self):
        with pytest.raises(ValueError):
            ContentRecord.create(
                title="T", source_label="s", format=OutputFormat.QUIZ,
                style=StudyStyle.SIMPLE, notes="# wrong payload",
            )

    def test_two_payloads_rejected(self):
        with pytest.raises(ValueError):
            ContentRecord.create(
                title="T", source_label="s", format=OutputFormat.NOTES,
                style=StudyStyle.SIMPLE, notes="x", video_uri="https://v",
            )

    def test_dict_round_trip(self, quiz_record):
        restored = ContentRecord.from_dict(quiz_record.to_dict())
        assert restored == quiz_record

    def test_from_dict_rejects_unknown_format(self, notes_record):
        data = notes_record.to_dict()
        data["format"] = "Podcast"
        with pytest.raises(ValueError):
            ContentRecord.from_dict(data)

    def test_context_text_for_notes_is_markdown(self, notes_record):
        assert notes_record.context_text() == notes_record.notes

    def test_context_text_for_flashcards_lists_cards(self, flashcards_record):
        text = flashcards_record.context_text()
        assert "Term 1" in text and "Definition 3" in text

    def test_context_text_for_video_falls_back_to_label(self):
        record = ContentRecord.create(
            title="Video", source_label="https://example.com/lesson",
            format=OutputFormat.VIDEO, style=StudyStyle.CREATIVE,
            video_uri="https://media/1?key=k",
        )
        assert record.context_text() == "https://example.com/lesson"


class TestQuizQuestion:
    def test_accepts_legacy_answer_field(self):
        q = QuizQuestion.from_dict({
            "id": "1", "question": "Q?", "options": ["a", "b"],
            "answer": "b", "explanation": "because",
        })
        assert q.correct_option == "b"

    def test_missing_correct_option_raises(self):
        data = make_questions(1)[0]
        del data["correct_option"]
        with pytest.raises(KeyError):
            QuizQuestion.from_dict(data)


class TestIdentity:
    def test_round_trip(self):
        ident = Identity(name="Ada", email="ada@example.com", provider="google", avatar="a.png")
        assert Identity.from_dict(ident.to_dict()) == ident

    def test_flashcard_requires_both_sides(self):
        with pytest.raises(KeyError):
            Flashcard.from_dict({"front": "only front"})


class TestParsing:
    @pytest.mark.parametrize("raw,expected", [
        ("Simple", StudyStyle.SIMPLE),
        ("advanced", StudyStyle.ADVANCED),
        ("Exam Focused", StudyStyle.EXAM),
        ("exam", StudyStyle.EXAM),
        ("CREATIVE", StudyStyle.CREATIVE),
    ])
    def test_parse_style(self, raw, expected):
        assert parse_style(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("Notes", OutputFormat.NOTES),
        ("flashcards", OutputFormat.FLASHCARDS),
        ("Quiz", OutputFormat.QUIZ),
        ("AI Video", OutputFormat.VIDEO),
        ("video", OutputFormat.VIDEO),
    ])
    def test_parse_format(self, raw, expected):
        assert parse_format(raw) == expected

    def test_unknown_values_raise(self):
        with pytest.raises(ValueError):
            parse_style("Lazy")
        with pytest.raises(ValueError):
            parse_format("Podcast")
