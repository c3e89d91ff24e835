"""
CLI smoke tests (no network: only commands that stay local).
"""

import pytest

from studyflow.core.types import OutputFormat, StudyStyle
from studyflow.main import build_parser, main, print_record
from studyflow.memory.models import ContentRecord
from studyflow.memory.repository import LocalStore


@pytest.fixture
def env(monkeypatch, db_path):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("STUDYFLOW_DB_PATH", db_path)
    return db_path


def test_history_empty(env, capsys):
    assert main(["history", "--email", "ada@example.com"]) == 0
    assert "No study sessions saved for ada@example.com." in capsys.readouterr().out


def test_history_lists_records(env, capsys, notes_record):
    LocalStore(env).save_history("ada@example.com", [notes_record])

    assert main(["history", "--email", "ada@example.com"]) == 0

    out = capsys.readouterr().out
    assert notes_record.id in out
    assert "Cell Biology" in out


def test_missing_key_is_reported(monkeypatch, capsys):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert main(["history", "--email", "ada@example.com"]) == 1
    assert "OPENAI_API_KEY" in capsys.readouterr().err


def test_generate_needs_exactly_one_source():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["generate", "--email", "a@b.c", "--text", "x", "--url", "https://x"])


def test_print_quiz_marks_correct_option(quiz_record, capsys):
    print_record(quiz_record)
    out = capsys.readouterr().out
    assert "[*] B" in out
    assert "[ ] A" in out


def test_print_video(capsys):
    record = ContentRecord.create(
        title="AI Generated Video Lesson", source_label="x", format=OutputFormat.VIDEO,
        style=StudyStyle.CREATIVE, video_uri="https://media/1?key=k",
    )
    print_record(record)
    assert "Video: https://media/1?key=k" in capsys.readouterr().out
