"""
Pytest configuration and shared fixtures.

The generative-AI collaborator is replaced by FakeClient, which records every
call and replays canned answers.
"""
import os
import tempfile

# Keep test logs out of the project tree; must happen before studyflow imports.
os.environ.setdefault("STUDYFLOW_LOG_DIR", tempfile.mkdtemp(prefix="studyflow-logs-"))

import pytest

from studyflow.clients.contracts import PlainReply, VideoJob
from studyflow.core.generation import GenerationDispatcher
from studyflow.core.state import AppState
from studyflow.core.types import OutputFormat, StudyStyle
from studyflow.memory.models import ContentRecord, Flashcard, QuizQuestion
from studyflow.memory.repository import LocalStore


def make_cards(n):
    return [{"front": f"Term {i}", "back": f"Definition {i}"} for i in range(1, n + 1)]


def make_questions(n):
    return [
        {
            "id": f"q{i}",
            "question": f"Question {i}?",
            "options": ["A", "B", "C", "D"],
            "correct_option": "B",
            "explanation": f"Because {i}.",
        }
        for i in range(1, n + 1)
    ]


class FakeClient:
    def __init__(self):
        self.api_key = "test-key"
        self.calls = []
        self.text_replies = []
        self.default_text = "# Photosynthesis\n\n- Light becomes chemical energy."
        self.structured = {
            "flashcard_deck": {"title": "Deck", "cards": make_cards(10)},
            "practice_quiz": {"title": "Quiz", "questions": make_questions(5)},
        }
        self.url_summary = "Summary of the page."
        self.video_polls = []
        self.submitted_job = VideoJob(id="vid_1", done=False)
        self.chat_turns = []
        self.image = "data:image/png;base64,iVBORw0KGgo="
        self.errors = {}

    def _maybe_fail(self, op):
        err = self.errors.get(op)
        if err is not None:
            raise err

    async def generate_text(self, prompt, *, system=None, temperature=None):
        self.calls.append(("generate_text", prompt, system))
        self._maybe_fail("generate_text")
        if self.text_replies:
            return self.text_replies.pop(0)
        return self.default_text

    async def generate_structured(self, prompt, *, schema_name, schema):
        self.calls.append(("generate_structured", prompt, schema_name))
        self._maybe_fail("generate_structured")
        return self.structured[schema_name]

    async def summarize_url(self, url):
        self.calls.append(("summarize_url", url))
        self._maybe_fail("summarize_url")
        return self.url_summary

    async def submit_video_job(self, prompt):
        self.calls.append(("submit_video_job", prompt))
        self._maybe_fail("submit_video_job")
        return self.submitted_job

    async def poll_video_job(self, job):
        self.calls.append(("poll_video_job", job.id))
        self._maybe_fail("poll_video_job")
        if self.video_polls:
            return self.video_polls.pop(0)
        return VideoJob(id=job.id, done=True, media_uri="https://media.example/v/1?alt=media")

    async def generate_image(self, prompt):
        self.calls.append(("generate_image", prompt))
        self._maybe_fail("generate_image")
        return self.image

    async def chat(self, messages, *, tools=None):
        # Snapshot: the session keeps mutating the same list
        self.calls.append(("chat", [dict(m) for m in messages], tools))
        self._maybe_fail("chat")
        if self.chat_turns:
            turn = self.chat_turns.pop(0)
            if isinstance(turn, Exception):
                raise turn
            return turn
        return PlainReply(text="Sure, here's an explanation.")


class FakeCredentials:
    def __init__(self, has=True, select=True):
        self.has = has
        self.select = select
        self.asked = 0

    async def has_credential(self):
        return self.has

    async def select_credential(self):
        self.asked += 1
        return self.select


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def dispatcher(fake_client):
    return GenerationDispatcher(fake_client, poll_interval=0, max_wait=5)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "studyflow.db")


@pytest.fixture
def store(db_path):
    return LocalStore(db_path)


@pytest.fixture
def state(store):
    s = AppState.restore(store)
    s.login_with_email("ada@example.com")
    return s


@pytest.fixture
def notes_record():
    return ContentRecord.create(
        title="Cell Biology",
        source_label="Cells are the basic unit of l...",
        format=OutputFormat.NOTES,
        style=StudyStyle.ADVANCED,
        notes="# Cell Biology\n\n- Mitochondria make ATP.",
    )


@pytest.fixture
def quiz_record():
    return ContentRecord.create(
        title="Cell Quiz",
        source_label="cells.pdf",
        format=OutputFormat.QUIZ,
        style=StudyStyle.SIMPLE,
        quiz=[QuizQuestion.from_dict(q) for q in make_questions(2)],
    )


@pytest.fixture
def flashcards_record():
    return ContentRecord.create(
        title="Cell Cards",
        source_label="cells.pdf",
        format=OutputFormat.FLASHCARDS,
        style=StudyStyle.SIMPLE,
        flashcards=[Flashcard.from_dict(c) for c in make_cards(3)],
    )
