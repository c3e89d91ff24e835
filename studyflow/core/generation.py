# studyflow/core/generation.py

from __future__ import annotations

import asyncio
import re
import time
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from studyflow.clients.contracts import CredentialPicker, GenerativeClient
from studyflow.core import prompts
from studyflow.core.errors import GenerationCancelled, GenerationError
from studyflow.core.types import OutputFormat, StudyStyle
from studyflow.memory.models import ContentRecord, Flashcard, QuizQuestion
from studyflow.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_FLASHCARD_COUNT = 10
DEFAULT_QUIZ_COUNT = 5

NOTES_TITLE_PLACEHOLDER = "Study Session"
VIDEO_TITLE = "AI Generated Video Lesson"

_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


class CancelToken:
    """
    Explicit cancellation for long-running work (the video poll loop).
    Tie one to a viewing session and cancel it when the session goes away.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> None:
        """Sleep up to ``seconds``, waking early if cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


def extract_title(markdown: str) -> str:
    match = _HEADING_RE.search(markdown or "")
    return match.group(1).strip() if match else NOTES_TITLE_PLACEHOLDER


def with_credential(uri: str, api_key: str) -> str:
    """Append the active credential as a ``key`` query parameter."""
    parts = urlsplit(uri)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append(("key", api_key))
    return urlunsplit(parts._replace(query=urlencode(query)))


def _require(data: dict, field: str, kind: type, what: str):
    value = data.get(field)
    if not isinstance(value, kind):
        raise GenerationError(f"{what} response is missing '{field}'.")
    return value


class GenerationDispatcher:
    """
    Maps (text, style, format) onto the right external calls and builds a
    ContentRecord from the result. Never touches history itself.
    """

    def __init__(
        self,
        client: GenerativeClient,
        *,
        poll_interval: float = 5.0,
        max_wait: float = 600.0,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self.max_wait = max_wait

    # ---------- credential pre-check (video only) ----------

    async def ensure_video_credential(self, credentials: Optional[CredentialPicker]) -> bool:
        """
        True when a credential is available (or no picker is wired in).
        False means the user declined selection and the caller should abort quietly.
        """
        if credentials is None:
            return True
        if await credentials.has_credential():
            return True
        selected = await credentials.select_credential()
        if not selected:
            logger.info("Credential selection declined; aborting video generation.")
        return bool(selected)

    # ---------- per-format generation ----------

    async def generate_notes(self, content: str, style: StudyStyle) -> Tuple[str, str]:
        text = await self.client.generate_text(
            content,
            system=prompts.notes_system_instruction(style),
            temperature=0.3,
        )
        markdown = text or prompts.NOTES_FALLBACK
        return extract_title(markdown), markdown

    async def generate_flashcards(
        self, content: str, style: StudyStyle, count: int = DEFAULT_FLASHCARD_COUNT
    ) -> Tuple[str, List[Flashcard]]:
        data = await self.client.generate_structured(
            prompts.flashcards_prompt(content, style, count),
            schema_name="flashcard_deck",
            schema=prompts.FLASHCARDS_SCHEMA,
        )
        title = _require(data, "title", str, "Flashcards")
        raw_cards = _require(data, "cards", list, "Flashcards")
        try:
            cards = [Flashcard.from_dict(c) for c in raw_cards]
        except (KeyError, TypeError) as e:
            raise GenerationError(f"Flashcards response has a malformed card: {e}") from e
        return title, cards

    async def generate_quiz(
        self, content: str, style: StudyStyle, count: int = DEFAULT_QUIZ_COUNT
    ) -> Tuple[str, List[QuizQuestion]]:
        data = await self.client.generate_structured(
            prompts.quiz_prompt(content, style, count),
            schema_name="practice_quiz",
            schema=prompts.QUIZ_SCHEMA,
        )
        title = _require(data, "title", str, "Quiz")
        raw_questions = _require(data, "questions", list, "Quiz")
        try:
            questions = [QuizQuestion.from_dict(q) for q in raw_questions]
        except (KeyError, TypeError) as e:
            raise GenerationError(f"Quiz response has a malformed question: {e}") from e
        return title, questions

    async def generate_video(
        self, content: str, style: StudyStyle, cancel: Optional[CancelToken] = None
    ) -> Tuple[str, str]:
        # (a) visual prompt
        derived = await self.client.generate_text(prompts.video_prompt_request(content))
        video_prompt = derived or f"Educational video about: {content[:50]}"
        final_prompt = f"{video_prompt}{prompts.VIDEO_PROMPT_SUFFIX}"
        logger.info("Generating %s video with prompt: %r", style.value, final_prompt[:240])

        # (b) submit
        job = await self.client.submit_video_job(final_prompt)

        # (c) poll
        deadline = time.monotonic() + self.max_wait
        while not job.done:
            if cancel is not None and cancel.cancelled:
                logger.info("Video job %s poll cancelled.", job.id)
                raise GenerationCancelled("Video generation was cancelled.")
            if time.monotonic() >= deadline:
                raise GenerationError(f"Video generation timed out after {self.max_wait:.0f}s.")

            if cancel is not None:
                await cancel.sleep(self.poll_interval)
                if cancel.cancelled:
                    logger.info("Video job %s poll cancelled.", job.id)
                    raise GenerationCancelled("Video generation was cancelled.")
            else:
                await asyncio.sleep(self.poll_interval)

            job = await self.client.poll_video_job(job)
            logger.info("Video job %s polled: done=%s", job.id, job.done)

        if job.error:
            raise GenerationError(job.error)
        if not job.media_uri:
            raise GenerationError("Video generation failed to return a URI.")

        return VIDEO_TITLE, with_credential(job.media_uri, self.client.api_key)

    # ---------- main entry point ----------

    async def generate(
        self,
        raw_text: str,
        style: StudyStyle,
        format: OutputFormat,
        *,
        source_label: str = "",
        credentials: Optional[CredentialPicker] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Optional[ContentRecord]:
        """
        Produce one ContentRecord for ``format``.

        Returns None only when the video credential selection is declined.
        Any other failure raises and nothing is kept.
        """
        if format == OutputFormat.VIDEO and not await self.ensure_video_credential(credentials):
            return None

        logger.info("Dispatching %s generation (style=%s, input_chars=%d)",
                    format.value, style.value, len(raw_text or ""))

        if format == OutputFormat.NOTES:
            title, markdown = await self.generate_notes(raw_text, style)
            return ContentRecord.create(
                title=title, source_label=source_label, format=format, style=style, notes=markdown,
            )

        if format == OutputFormat.FLASHCARDS:
            title, cards = await self.generate_flashcards(raw_text, style)
            return ContentRecord.create(
                title=title, source_label=source_label, format=format, style=style, flashcards=cards,
            )

        if format == OutputFormat.QUIZ:
            title, questions = await self.generate_quiz(raw_text, style)
            return ContentRecord.create(
                title=title, source_label=source_label, format=format, style=style, quiz=questions,
            )

        if format == OutputFormat.VIDEO:
            title, uri = await self.generate_video(raw_text, style, cancel=cancel)
            return ContentRecord.create(
                title=title, source_label=source_label, format=format, style=style, video_uri=uri,
            )

        raise GenerationError(f"Unsupported output format: {format!r}")
