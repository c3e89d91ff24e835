# studyflow/inputs/acquisition.py

from dataclasses import dataclass
from typing import Optional, Tuple

from studyflow.clients.contracts import GenerativeClient
from studyflow.core.errors import ValidationError
from studyflow.core.types import InputMode
from studyflow.inputs.file_parser import parse_file
from studyflow.utils.logging import get_logger

logger = get_logger(__name__)

LABEL_CHARS = 30


@dataclass
class UploadedFile:
    name: str
    data: bytes


@dataclass
class StudyInput:
    """Whatever the user supplied for the active input mode."""
    mode: InputMode
    text: Optional[str] = None
    url: Optional[str] = None
    file: Optional[UploadedFile] = None


def text_label(text: str) -> str:
    return text[:LABEL_CHARS] + "..."


async def acquire(source: StudyInput, client: GenerativeClient) -> Tuple[str, str]:
    """
    Normalize the active input into ``(raw_text, label)``.

    URL content is summarized by the AI collaborator; files are decoded by the
    extension-keyed parser. Raises ValidationError for empty input.
    """
    if source.mode == InputMode.TEXT:
        text = source.text or ""
        if not text.strip():
            raise ValidationError("Please enter some text.")
        return text, text_label(text)

    if source.mode == InputMode.URL:
        url = (source.url or "").strip()
        if not url:
            raise ValidationError("Please enter a URL.")
        logger.info("Summarizing URL input: %s", url)
        return await client.summarize_url(url), url

    if source.mode == InputMode.FILE:
        if source.file is None or not source.file.name:
            raise ValidationError("Please upload a file.")
        logger.info("Parsing uploaded file %r (%d bytes)", source.file.name, len(source.file.data))
        return parse_file(source.file.name, source.file.data), source.file.name

    raise ValidationError(f"Unknown input mode: {source.mode!r}")
