# studyflow/api/server.py
"""
FastAPI server for StudyFlow:

- /auth/*          : mocked local login / logout
- /profile         : read / update the active identity
- /onboarding/*    : onboarding completion flags
- /theme           : theme preference
- /generate        : text / URL / file -> notes, flashcards, quiz or video
- /history/*       : list, open, delete, refine study sessions
- /chat            : AI tutor over the active study session
- /health          : basic health check

Every handler logs with a per-request id and converts the domain error
taxonomy into HTTP status codes in one place (_to_http).
"""

import base64
import binascii
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from studyflow.clients.contracts import CredentialPicker, GenerativeClient
from studyflow.config.settings import Settings, load_settings
from studyflow.core.chat import TutorSession
from studyflow.core.errors import (
    ChatBusyError,
    ConfirmationRequired,
    GenerationCancelled,
    GenerationError,
    GenerationInProgress,
    NotLoggedIn,
    ParserUnavailableError,
    RecordNotFound,
    StudyFlowError,
    UnsupportedFormatError,
    ValidationError,
)
from studyflow.core.generation import DEFAULT_FLASHCARD_COUNT, GenerationDispatcher
from studyflow.core.pipeline import StudyPipeline
from studyflow.core.state import AppState
from studyflow.core.types import InputMode, Theme, parse_format, parse_style
from studyflow.inputs.acquisition import StudyInput, UploadedFile
from studyflow.memory.repository import LocalStore
from studyflow.utils.logging import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Models (Auth / Profile / Preferences)
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    email: str = Field(..., description="Email address; no password check is performed.")


class ProfileUpdateRequest(BaseModel):
    name: str
    avatar: Optional[str] = Field(default=None, description="Image URL or data URI (max 2MB).")


class IdentityResponse(BaseModel):
    name: str
    email: str
    provider: str
    avatar: Optional[str] = None
    needs_onboarding: bool = False


class ThemeRequest(BaseModel):
    theme: Theme


# ---------------------------------------------------------------------------
# Models (Generation / History)
# ---------------------------------------------------------------------------

class GenerateRequest(BaseModel):
    """
    Input contract for /generate.

    mode        : which input is active: "text", "url" or "file"
    file_name   : original file name (extension picks the parser)
    file_base64 : base64-encoded file bytes
    style       : "Simple", "Advanced", "Exam Focused", "Creative"
    format      : "Notes", "Flashcards", "Quiz", "AI Video"
    """
    mode: InputMode = InputMode.TEXT
    text: Optional[str] = None
    url: Optional[str] = None
    file_name: Optional[str] = None
    file_base64: Optional[str] = None
    style: str = "Simple"
    format: str = "Notes"


class GenerateResponse(BaseModel):
    record: Optional[Dict[str, Any]] = None
    aborted: bool = False
    latency_ms: int = 0


class RefineRequest(BaseModel):
    format: str = Field(..., description="'Flashcards' or 'Quiz'")
    count: int = Field(default=DEFAULT_FLASHCARD_COUNT, ge=1, le=50)


class HistoryResponse(BaseModel):
    items: List[Dict[str, Any]]
    current_id: Optional[str] = None
    is_saving: bool = False


# ---------------------------------------------------------------------------
# Models (Tutor)
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    message: str = Field(..., description="User message in plain text.")


class ChatResponse(BaseModel):
    reply: Optional[Dict[str, Any]] = None
    messages: List[Dict[str, Any]]
    state: str


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR = [
    (ValidationError, 400),
    (UnsupportedFormatError, 400),
    (ParserUnavailableError, 400),
    (NotLoggedIn, 401),
    (RecordNotFound, 404),
    (ConfirmationRequired, 409),
    (GenerationInProgress, 409),
    (ChatBusyError, 409),
    (GenerationCancelled, 409),
    (GenerationError, 502),
]


def _to_http(where: str, request_id: str, exc: StudyFlowError) -> HTTPException:
    for err_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, err_type):
            break
    else:
        status = 500
    log = logger.error if status >= 500 else logger.warning
    log("[%s] request_id=%s %s: %s", where, request_id, type(exc).__name__, exc)
    return HTTPException(status_code=status, detail=str(exc))


def _identity_response(state: AppState) -> IdentityResponse:
    identity = state.require_identity()
    return IdentityResponse(
        name=identity.name,
        email=identity.email,
        provider=identity.provider,
        avatar=identity.avatar,
        needs_onboarding=state.needs_onboarding,
    )


# ---------------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------------

@dataclass
class AppContext:
    state: AppState
    pipeline: StudyPipeline
    tutor: TutorSession


def create_app(
    settings: Optional[Settings] = None,
    client: Optional[GenerativeClient] = None,
    store: Optional[LocalStore] = None,
    credentials: Optional[CredentialPicker] = None,
) -> FastAPI:
    """
    Build the API. Collaborators default to the real ones built from settings;
    tests pass fakes.
    """
    settings = settings or load_settings()
    if client is None:
        from studyflow.clients.openai_client import StudyClient
        client = StudyClient(settings)
    if credentials is None:
        from studyflow.clients.credentials import ConfiguredCredential
        credentials = ConfiguredCredential(settings)
    store = store or LocalStore(settings.db_path)

    state = AppState.restore(store, saving_indicator_seconds=settings.saving_indicator_seconds)
    dispatcher = GenerationDispatcher(
        client,
        poll_interval=settings.video_poll_seconds,
        max_wait=settings.video_max_wait_seconds,
    )
    ctx = AppContext(
        state=state,
        pipeline=StudyPipeline(state, dispatcher, credentials),
        tutor=TutorSession(client),
    )

    app = FastAPI(
        title="StudyFlow API",
        description="Local API for StudyFlow (notes, flashcards, quizzes, videos, AI tutor).",
        version="1.0.0",
    )
    app.state.ctx = ctx

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------

    @app.get("/health")
    def health_check() -> dict:
        return {
            "status": "ok",
            "logged_in": ctx.state.identity is not None,
            "generating": ctx.state.generating,
        }

    # -----------------------------------------------------------------------
    # Auth + profile
    # -----------------------------------------------------------------------

    @app.post("/auth/login", response_model=IdentityResponse)
    def login(req: LoginRequest) -> IdentityResponse:
        request_id = str(uuid.uuid4())
        try:
            ctx.state.login_with_email(req.email)
            ctx.tutor.set_context("")
            return _identity_response(ctx.state)
        except StudyFlowError as e:
            raise _to_http("login", request_id, e)

    @app.post("/auth/google", response_model=IdentityResponse)
    def login_google() -> IdentityResponse:
        ctx.state.login_with_google()
        ctx.tutor.set_context("")
        return _identity_response(ctx.state)

    @app.post("/auth/logout")
    def logout() -> dict:
        ctx.state.logout()
        ctx.tutor.set_context("")
        return {"status": "logged_out"}

    @app.get("/profile", response_model=IdentityResponse)
    def get_profile() -> IdentityResponse:
        try:
            return _identity_response(ctx.state)
        except StudyFlowError as e:
            raise _to_http("profile", str(uuid.uuid4()), e)

    @app.put("/profile", response_model=IdentityResponse)
    def update_profile(req: ProfileUpdateRequest) -> IdentityResponse:
        request_id = str(uuid.uuid4())
        try:
            ctx.state.update_profile(req.name, req.avatar)
            return _identity_response(ctx.state)
        except StudyFlowError as e:
            raise _to_http("update_profile", request_id, e)

    @app.post("/onboarding/complete")
    def complete_onboarding() -> dict:
        request_id = str(uuid.uuid4())
        try:
            saved = ctx.state.complete_onboarding()
        except StudyFlowError as e:
            raise _to_http("onboarding", request_id, e)
        return {"needs_onboarding": False, "saved": saved}

    @app.get("/theme")
    def get_theme() -> dict:
        return {"theme": ctx.state.theme.value}

    @app.put("/theme")
    def set_theme(req: ThemeRequest) -> dict:
        saved = ctx.state.set_theme(req.theme)
        return {"theme": ctx.state.theme.value, "saved": saved}

    # -----------------------------------------------------------------------
    # Generation
    # -----------------------------------------------------------------------

    @app.post("/generate", response_model=GenerateResponse)
    async def generate(req: GenerateRequest) -> GenerateResponse:
        request_id = str(uuid.uuid4())
        start_time = time.monotonic()

        try:
            style = parse_style(req.style)
            fmt = parse_format(req.format)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        upload = None
        if req.mode == InputMode.FILE and req.file_base64:
            try:
                data = base64.b64decode(req.file_base64, validate=True)
            except (binascii.Error, ValueError) as exc:
                logger.warning("[generate] request_id=%s invalid base64: %s", request_id, exc)
                raise HTTPException(status_code=400, detail="Invalid 'file_base64' payload: could not decode base64.")
            upload = UploadedFile(name=req.file_name or "", data=data)

        logger.info(
            "[generate] request_id=%s mode=%s style=%s format=%s",
            request_id, req.mode.value, style.value, fmt.value,
        )

        source = StudyInput(mode=req.mode, text=req.text, url=req.url, file=upload)
        try:
            record = await ctx.pipeline.generate(source, style, fmt)
        except StudyFlowError as e:
            raise _to_http("generate", request_id, e)

        latency_ms = int((time.monotonic() - start_time) * 1000)
        if record is None:
            logger.info("[generate] request_id=%s aborted latency_ms=%d", request_id, latency_ms)
            return GenerateResponse(record=None, aborted=True, latency_ms=latency_ms)

        logger.info("[generate] request_id=%s OK id=%s latency_ms=%d", request_id, record.id, latency_ms)
        return GenerateResponse(record=record.to_dict(), latency_ms=latency_ms)

    # -----------------------------------------------------------------------
    # History
    # -----------------------------------------------------------------------

    @app.get("/history", response_model=HistoryResponse)
    def list_history() -> HistoryResponse:
        try:
            ctx.state.require_identity()
        except StudyFlowError as e:
            raise _to_http("history", str(uuid.uuid4()), e)
        return HistoryResponse(
            items=[r.to_dict() for r in ctx.state.history],
            current_id=ctx.state.current_id,
            is_saving=ctx.state.is_saving,
        )

    @app.get("/history/{record_id}")
    def open_record(record_id: str) -> Dict[str, Any]:
        request_id = str(uuid.uuid4())
        try:
            ctx.state.require_identity()
            return ctx.state.open(record_id).to_dict()
        except StudyFlowError as e:
            raise _to_http("open_record", request_id, e)

    @app.delete("/history/{record_id}")
    def delete_record(record_id: str, confirm: bool = Query(False)) -> dict:
        request_id = str(uuid.uuid4())
        was_open = ctx.state.current_id == record_id
        try:
            ctx.state.remove(record_id, confirmed=confirm)
        except StudyFlowError as e:
            raise _to_http("delete_record", request_id, e)
        if was_open:
            ctx.tutor.set_context("")
        return {"deleted": record_id, "current_id": ctx.state.current_id}

    @app.post("/history/{record_id}/refine", response_model=GenerateResponse)
    async def refine_record(record_id: str, req: RefineRequest) -> GenerateResponse:
        request_id = str(uuid.uuid4())
        start_time = time.monotonic()
        try:
            fmt = parse_format(req.format)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        try:
            record = await ctx.pipeline.refine(record_id, fmt, req.count)
        except StudyFlowError as e:
            raise _to_http("refine", request_id, e)

        latency_ms = int((time.monotonic() - start_time) * 1000)
        if record is None:
            logger.info("[refine] request_id=%s ignored (source not refinable)", request_id)
            return GenerateResponse(record=None, aborted=True, latency_ms=latency_ms)
        return GenerateResponse(record=record.to_dict(), latency_ms=latency_ms)

    # -----------------------------------------------------------------------
    # Tutor
    # -----------------------------------------------------------------------

    @app.get("/chat", response_model=ChatResponse)
    def get_chat() -> ChatResponse:
        current = ctx.state.current
        if current is not None:
            ctx.tutor.set_context(current.context_text())
        return ChatResponse(
            messages=[m.to_dict() for m in ctx.tutor.messages],
            state=ctx.tutor.state.value,
        )

    @app.post("/chat", response_model=ChatResponse)
    async def chat(req: ChatRequest) -> ChatResponse:
        request_id = str(uuid.uuid4())
        current = ctx.state.current
        if current is None:
            raise HTTPException(status_code=409, detail="Open a study session before chatting with the tutor.")

        ctx.tutor.set_context(current.context_text())
        logger.info("[chat] request_id=%s record=%s message_len=%d", request_id, current.id, len(req.message))
        try:
            reply = await ctx.tutor.send(req.message)
        except StudyFlowError as e:
            raise _to_http("chat", request_id, e)

        return ChatResponse(
            reply=reply.to_dict() if reply else None,
            messages=[m.to_dict() for m in ctx.tutor.messages],
            state=ctx.tutor.state.value,
        )

    return app
