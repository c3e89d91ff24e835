# studyflow/inputs/file_parser.py

from __future__ import annotations

import io
from pathlib import PurePath

from studyflow.core.errors import GenerationError, ParserUnavailableError, UnsupportedFormatError

TEXT_EXTENSIONS = {"txt", "md"}


def _extension(file_name: str) -> str:
    return PurePath(file_name or "").suffix.lstrip(".").lower()


def _require_pdf_reader():
    try:
        from PyPDF2 import PdfReader  # type: ignore
        return PdfReader
    except ImportError as e:
        raise ParserUnavailableError("PDF parser library not loaded.") from e


def _require_docx():
    try:
        import docx  # type: ignore
        return docx
    except ImportError as e:
        raise ParserUnavailableError("DOCX parser library not loaded.") from e


def parse_text_file(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def parse_pdf(data: bytes) -> str:
    """Page-by-page text, each page prefixed with its number."""

    PdfReader = _require_pdf_reader()
    try:
        reader = PdfReader(io.BytesIO(data))
        chunks: list[str] = []
        for i, page in enumerate(reader.pages, start=1):
            page_text = page.extract_text() or ""
            chunks.append(f"Page {i}:\n{page_text}\n\n")
    except Exception as e:
        raise GenerationError(f"PyPDF2 failed to read PDF: {e}") from e
    return "".join(chunks)


def parse_docx(data: bytes) -> str:
    docx = _require_docx()
    try:
        document = docx.Document(io.BytesIO(data))
    except Exception as e:
        raise GenerationError(f"python-docx failed to read DOCX: {e}") from e
    return "\n".join(p.text for p in document.paragraphs)


def parse_file(file_name: str, data: bytes) -> str:
    """Dispatch on the file extension; unknown extensions are rejected."""

    ext = _extension(file_name)
    if ext == "pdf":
        return parse_pdf(data)
    if ext == "docx":
        return parse_docx(data)
    if ext in TEXT_EXTENSIONS:
        return parse_text_file(data)
    raise UnsupportedFormatError(f"Unsupported file type: .{ext}")
