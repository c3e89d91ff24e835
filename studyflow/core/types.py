# studyflow/core/types.py

from enum import Enum


class InputMode(str, Enum):
    TEXT = "text"
    URL = "url"
    FILE = "file"


class StudyStyle(str, Enum):
    SIMPLE = "Simple"
    ADVANCED = "Advanced"
    EXAM = "Exam Focused"
    CREATIVE = "Creative"


class OutputFormat(str, Enum):
    NOTES = "Notes"
    FLASHCARDS = "Flashcards"
    QUIZ = "Quiz"
    VIDEO = "AI Video"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


def parse_style(value: str) -> StudyStyle:
    """
    Accept either the enum value ("Exam Focused") or its name ("exam").
    """
    cleaned = (value or "").strip()
    for style in StudyStyle:
        if cleaned == style.value or cleaned.upper() == style.name:
            return style
    lowered = cleaned.lower()
    if lowered.startswith("exam"):
        return StudyStyle.EXAM
    raise ValueError(f"Unknown study style: {value!r}")


def parse_format(value: str) -> OutputFormat:
    cleaned = (value or "").strip()
    for fmt in OutputFormat:
        if cleaned == fmt.value or cleaned.upper() == fmt.name:
            return fmt
    if cleaned.lower() in ("video", "ai_video"):
        return OutputFormat.VIDEO
    raise ValueError(f"Unknown output format: {value!r}")
