# studyflow/main.py
"""
StudyFlow CLI entrypoint.

Subcommands:
- serve    : run the HTTP API (uvicorn)
- generate : text / URL / file -> notes, flashcards, quiz or video for one identity
- history  : list an identity's saved study sessions
- refine   : turn a saved Notes session into flashcards or a quiz
- chat     : talk to the AI tutor about a saved study session

Notes:
- Login is local and mocked; --email just selects whose history is used.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from studyflow.clients.credentials import ConfiguredCredential
from studyflow.clients.openai_client import StudyClient
from studyflow.config.settings import Settings, load_settings
from studyflow.core.chat import TutorSession
from studyflow.core.errors import StudyFlowError
from studyflow.core.generation import DEFAULT_FLASHCARD_COUNT, GenerationDispatcher
from studyflow.core.pipeline import StudyPipeline
from studyflow.core.state import AppState
from studyflow.core.types import InputMode, OutputFormat, StudyStyle, parse_format, parse_style
from studyflow.inputs.acquisition import StudyInput, UploadedFile
from studyflow.memory.models import ContentRecord
from studyflow.memory.repository import LocalStore


# -----------------------------
# Wiring
# -----------------------------

def _build(settings: Settings, email: str) -> tuple[AppState, StudyPipeline, StudyClient]:
    client = StudyClient(settings)
    state = AppState.restore(LocalStore(settings.db_path))
    state.login_with_email(email)
    dispatcher = GenerationDispatcher(
        client,
        poll_interval=settings.video_poll_seconds,
        max_wait=settings.video_max_wait_seconds,
    )
    return state, StudyPipeline(state, dispatcher, ConfiguredCredential(settings)), client


def _source_from_args(args: argparse.Namespace) -> StudyInput:
    if args.url:
        return StudyInput(mode=InputMode.URL, url=args.url)
    if args.file:
        path = Path(args.file)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        return StudyInput(mode=InputMode.FILE, file=UploadedFile(name=path.name, data=path.read_bytes()))
    return StudyInput(mode=InputMode.TEXT, text=args.text or "")


# -----------------------------
# Printing
# -----------------------------

def print_record(record: ContentRecord) -> None:
    print(f"== {record.title} [{record.format.value} / {record.style.value}] id={record.id}")
    print(f"   source: {record.source_label}\n")

    if record.format == OutputFormat.NOTES:
        print(record.notes)
    elif record.format == OutputFormat.FLASHCARDS:
        for i, card in enumerate(record.flashcards or [], start=1):
            print(f"{i:>2}. {card.front}\n    -> {card.back}")
    elif record.format == OutputFormat.QUIZ:
        for i, q in enumerate(record.quiz or [], start=1):
            print(f"{i:>2}. {q.question}")
            for opt in q.options:
                marker = "*" if opt == q.correct_option else " "
                print(f"     [{marker}] {opt}")
            print(f"     why: {q.explanation}")
    elif record.format == OutputFormat.VIDEO:
        print(f"Video: {record.video_uri}")


# -----------------------------
# Commands
# -----------------------------

async def _cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    state, pipeline, client = _build(settings, args.email)
    try:
        record = await pipeline.generate(_source_from_args(args), parse_style(args.style), parse_format(args.format))
    finally:
        await client.close()

    if record is None:
        print("[aborted] No credential selected; nothing was generated.")
        return 1
    print_record(record)
    return 0


async def _cmd_refine(args: argparse.Namespace, settings: Settings) -> int:
    state, pipeline, client = _build(settings, args.email)
    try:
        record = await pipeline.refine(args.record_id, parse_format(args.format), args.count)
    finally:
        await client.close()

    if record is None:
        print("[ignored] Only Notes sessions can be refined into flashcards or a quiz.")
        return 1
    print_record(record)
    return 0


async def _cmd_chat(args: argparse.Namespace, settings: Settings) -> int:
    state, _, client = _build(settings, args.email)
    record = state.open(args.record_id)
    tutor = TutorSession(client, record.context_text())
    print(f"Tutor for '{record.title}'. Type 'exit' to quit.\n")
    print(f"Tutor: {tutor.messages[0].text}\n")

    try:
        while True:
            try:
                user = input("You: ").strip()
            except (EOFError, KeyboardInterrupt):
                print("\n[Session ended]")
                break

            if user.lower() in {"exit", "quit"}:
                break

            reply = await tutor.send(user)
            if reply is None:
                continue
            print(f"Tutor: {reply.text}")
            if reply.image:
                print(f"[image] {reply.image[:64]}... ({len(reply.image)} chars)")
            print()
    finally:
        await client.close()
    return 0


def _cmd_history(args: argparse.Namespace, settings: Settings) -> int:
    state = AppState.restore(LocalStore(settings.db_path))
    records = state.load_for_identity(args.email)
    if not records:
        print(f"No study sessions saved for {args.email}.")
        return 0
    for r in records:
        print(f"{r.id}  {r.format.value:<10} {r.style.value:<12} {r.title}")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("studyflow.api.server:create_app", factory=True, host=args.host, port=args.port)
    return 0


# -----------------------------
# CLI main
# -----------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="StudyFlow: AI study notes, flashcards, quizzes and videos.")
    sub = p.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    gen = sub.add_parser("generate", help="Generate a study artifact.")
    gen.add_argument("--email", required=True, help="Whose history the result is saved to.")
    src = gen.add_mutually_exclusive_group(required=True)
    src.add_argument("--text", help="Raw study text.")
    src.add_argument("--url", help="URL to summarize.")
    src.add_argument("--file", help="Path to a .txt, .md, .pdf or .docx file.")
    gen.add_argument("--style", default=StudyStyle.SIMPLE.value,
                     help="Simple, Advanced, Exam Focused or Creative.")
    gen.add_argument("--format", default=OutputFormat.NOTES.value,
                     help="Notes, Flashcards, Quiz or 'AI Video'.")

    hist = sub.add_parser("history", help="List saved study sessions.")
    hist.add_argument("--email", required=True)

    ref = sub.add_parser("refine", help="Derive flashcards or a quiz from saved notes.")
    ref.add_argument("--email", required=True)
    ref.add_argument("record_id")
    ref.add_argument("--format", default=OutputFormat.QUIZ.value, help="Flashcards or Quiz.")
    ref.add_argument("--count", type=int, default=DEFAULT_FLASHCARD_COUNT)

    chat = sub.add_parser("chat", help="Chat with the AI tutor about a saved session.")
    chat.add_argument("--email", required=True)
    chat.add_argument("record_id")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        return _cmd_serve(args)

    try:
        settings = load_settings()
        if args.command == "history":
            return _cmd_history(args, settings)
        if args.command == "generate":
            return asyncio.run(_cmd_generate(args, settings))
        if args.command == "refine":
            return asyncio.run(_cmd_refine(args, settings))
        if args.command == "chat":
            return asyncio.run(_cmd_chat(args, settings))
    except (StudyFlowError, RuntimeError, ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
