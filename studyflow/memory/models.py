# studyflow/memory/models.py

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from studyflow.core.types import OutputFormat, StudyStyle


def now_millis() -> int:
    return int(time.time() * 1000)


def new_record_id(created_at: int) -> str:
    # Millis prefix keeps ids sortable by recency; hex suffix keeps them unique.
    return f"gen-{created_at}-{uuid.uuid4().hex[:8]}"


@dataclass
class Flashcard:
    front: str
    back: str

    def to_dict(self) -> Dict[str, Any]:
        return {"front": self.front, "back": self.back}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Flashcard":
        return cls(front=str(data["front"]), back=str(data["back"]))


@dataclass
class QuizQuestion:
    id: str
    question: str
    options: List[str]
    correct_option: str
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "correct_option": self.correct_option,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuizQuestion":
        # Older payloads call the correct option "answer".
        correct = data.get("correct_option", data.get("answer"))
        if correct is None:
            raise KeyError("correct_option")
        return cls(
            id=str(data.get("id") or ""),
            question=str(data["question"]),
            options=[str(o) for o in data.get("options") or []],
            correct_option=str(correct),
            explanation=str(data.get("explanation") or ""),
        )


@dataclass
class ContentRecord:
    """
    One generated study artifact.

    Exactly one payload field (notes / flashcards / quiz / video_uri) is
    populated, and it is the one matching ``format``.
    """
    id: str
    created_at: int
    title: str
    source_label: str
    format: OutputFormat
    style: StudyStyle
    notes: Optional[str] = None
    flashcards: Optional[List[Flashcard]] = None
    quiz: Optional[List[QuizQuestion]] = None
    video_uri: Optional[str] = None

    @classmethod
    def create(
        cls,
        *,
        title: str,
        source_label: str,
        format: OutputFormat,
        style: StudyStyle,
        notes: Optional[str] = None,
        flashcards: Optional[List[Flashcard]] = None,
        quiz: Optional[List[QuizQuestion]] = None,
        video_uri: Optional[str] = None,
    ) -> "ContentRecord":
        created_at = now_millis()
        record = cls(
            id=new_record_id(created_at),
            created_at=created_at,
            title=title,
            source_label=source_label,
            format=format,
            style=style,
            notes=notes,
            flashcards=flashcards,
            quiz=quiz,
            video_uri=video_uri,
        )
        record.validate()
        return record

    def _payload_fields(self) -> Dict[OutputFormat, Any]:
        return {
            OutputFormat.NOTES: self.notes,
            OutputFormat.FLASHCARDS: self.flashcards,
            OutputFormat.QUIZ: self.quiz,
            OutputFormat.VIDEO: self.video_uri,
        }

    def validate(self) -> None:
        """
        Raise ValueError unless exactly the payload matching ``format`` is set.
        """
        populated = [fmt for fmt, value in self._payload_fields().items() if value is not None]
        if populated != [self.format]:
            raise ValueError(
                f"Record {self.id!r} has format {self.format.value!r} "
                f"but payload fields {[p.value for p in populated]!r}"
            )

    def context_text(self) -> str:
        """
        Text the tutor is grounded on for this artifact.
        """
        if self.format == OutputFormat.NOTES and self.notes:
            return self.notes
        if self.format == OutputFormat.FLASHCARDS and self.flashcards:
            lines = [f"# {self.title}"]
            for card in self.flashcards:
                lines.append(f"- Q: {card.front}\n  A: {card.back}")
            return "\n".join(lines)
        if self.format == OutputFormat.QUIZ and self.quiz:
            lines = [f"# {self.title}"]
            for q in self.quiz:
                lines.append(
                    f"- {q.question}\n  Options: {', '.join(q.options)}\n"
                    f"  Answer: {q.correct_option}\n  Why: {q.explanation}"
                )
            return "\n".join(lines)
        return self.source_label

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "title": self.title,
            "source_label": self.source_label,
            "format": self.format.value,
            "style": self.style.value,
            "notes": self.notes,
            "flashcards": [c.to_dict() for c in self.flashcards] if self.flashcards is not None else None,
            "quiz": [q.to_dict() for q in self.quiz] if self.quiz is not None else None,
            "video_uri": self.video_uri,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentRecord":
        flashcards = data.get("flashcards")
        quiz = data.get("quiz")
        record = cls(
            id=str(data["id"]),
            created_at=int(data["created_at"]),
            title=str(data.get("title") or ""),
            source_label=str(data.get("source_label") or ""),
            format=OutputFormat(data["format"]),
            style=StudyStyle(data["style"]),
            notes=data.get("notes"),
            flashcards=[Flashcard.from_dict(c) for c in flashcards] if flashcards is not None else None,
            quiz=[QuizQuestion.from_dict(q) for q in quiz] if quiz is not None else None,
            video_uri=data.get("video_uri"),
        )
        record.validate()
        return record


@dataclass
class Identity:
    name: str
    email: str
    provider: str = "email"   # 'google' or 'email'
    avatar: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "provider": self.provider,
            "avatar": self.avatar,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        return cls(
            name=str(data["name"]),
            email=str(data["email"]),
            provider=str(data.get("provider") or "email"),
            avatar=data.get("avatar") or None,
        )


@dataclass
class ChatMessage:
    role: str            # 'user' or 'assistant'
    text: str
    image: Optional[str] = None
    timestamp: int = field(default_factory=now_millis)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "text": self.text,
            "image": self.image,
            "timestamp": self.timestamp,
        }
