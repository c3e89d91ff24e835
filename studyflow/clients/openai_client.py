# studyflow/clients/openai_client.py
#
# Single integration layer for the generative-AI collaborator (OpenAI).
# Every external call goes through _call_with_retries so failures are
# classified, logged with a request id, and surfaced as GenerationError.

import asyncio
import json
import random
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import openai
from openai import AsyncOpenAI

from studyflow.clients.contracts import ChatTurn, PlainReply, ToolInvocation, VideoJob
from studyflow.config.settings import Settings
from studyflow.core.errors import GenerationError
from studyflow.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

URL_SUMMARY_FALLBACK = "Could not summarize URL content."

# ---------------------------------------------------------------------------
# Request ids + retry helpers
# ---------------------------------------------------------------------------

def _mk_req_id(prefix: str = "req") -> str:
    return f"{prefix}_{int(time.time()*1000)}_{random.randint(1000, 9999)}"

def _is_transient_status(code: int) -> bool:
    return code in {408, 409, 425, 429, 500, 502, 503, 504}

async def _sleep_backoff(attempt_idx: int) -> None:
    base = 0.4 * (2 ** max(0, attempt_idx - 1))
    jitter = random.uniform(0.0, 0.25)
    await asyncio.sleep(min(3.0, base + jitter))

def _snippet(text: str, limit: int = 240) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")

# ---------------------------------------------------------------------------
# Error classification helpers
# ---------------------------------------------------------------------------

def _classify_openai_error(e: Exception) -> str:
    if isinstance(e, openai.AuthenticationError):
        return "openai_auth"
    if isinstance(e, openai.RateLimitError):
        return "openai_rate_limit"
    if isinstance(e, openai.APITimeoutError):
        return "openai_timeout"
    if isinstance(e, openai.APIConnectionError):
        return "openai_network"
    if isinstance(e, openai.NotFoundError):
        return "openai_404_not_found"
    if isinstance(e, openai.APIStatusError):
        return f"openai_{e.status_code}"

    msg = (str(e) or "").lower()
    if "timeout" in msg or "timed out" in msg:
        return "openai_timeout"
    return "openai_unknown"

def _is_transient(e: Exception) -> bool:
    if isinstance(e, (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError)):
        return True
    if isinstance(e, openai.APIStatusError):
        return _is_transient_status(int(e.status_code))
    return False

# ---------------------------------------------------------------------------
# Response extraction helpers
# ---------------------------------------------------------------------------

def _message_text(resp: Any) -> str:
    try:
        return (resp.choices[0].message.content or "").strip()
    except (AttributeError, IndexError):
        return ""

def _tool_call_message(message: Any) -> Dict[str, Any]:
    """
    Rebuild the assistant message that requested tool calls so it can be
    replayed ahead of the tool result.
    """
    return {
        "role": "assistant",
        "content": message.content or "",
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {
                    "name": call.function.name,
                    "arguments": call.function.arguments or "{}",
                },
            }
            for call in message.tool_calls
        ],
    }


class StudyClient:
    """
    Async wrapper around the OpenAI SDK exposing exactly the operations the
    study pipeline needs.
    """

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None) -> None:
        if not settings.openai_api_key:
            # Hard fail early: nothing will work without this
            raise RuntimeError("OPENAI_API_KEY is not set in settings/.env")

        self._settings = settings
        self._max_attempts = max(1, settings.openai_max_retries + 1)
        self._client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.openai_timeout_seconds,
            max_retries=0,  # retries are handled here so they show up in our logs
        )
        logger.info("OpenAI base_url resolved to: %s", settings.openai_base_url)

    @property
    def api_key(self) -> str:
        return self._settings.openai_api_key

    async def close(self) -> None:
        await self._client.close()

    # ---------------------------------------------------------------------
    # Shared retry loop
    # ---------------------------------------------------------------------

    async def _call_with_retries(self, op: str, call: Callable[[], Awaitable[T]]) -> T:
        req_id = _mk_req_id(op)
        last_err: Optional[Exception] = None

        logger.info("[%s] req_id=%s start model=%s", op, req_id, self._settings.openai_model)

        for attempt in range(1, self._max_attempts + 1):
            t0 = time.monotonic()
            try:
                result = await call()
                dt_ms = int((time.monotonic() - t0) * 1000)
                logger.info("[%s] req_id=%s OK attempt=%d latency_ms=%d", op, req_id, attempt, dt_ms)
                return result
            except GenerationError:
                # Raised by our own response checks; retrying won't change the answer.
                raise
            except openai.OpenAIError as e:
                last_err = e
                dt_ms = int((time.monotonic() - t0) * 1000)
                code = _classify_openai_error(e)
                transient = _is_transient(e)

                # Safeguard: auth shouldn't retry
                if code == "openai_auth":
                    logger.error("[%s] req_id=%s AUTH failure attempt=%d latency_ms=%d err=%s",
                                 op, req_id, attempt, dt_ms, str(e))
                    break

                logger.warning("[%s] req_id=%s FAIL attempt=%d/%d latency_ms=%d code=%s transient=%s err=%s",
                               op, req_id, attempt, self._max_attempts, dt_ms, code, transient, str(e))

                if attempt >= self._max_attempts or not transient:
                    break

                await _sleep_backoff(attempt)

        logger.error("[%s] req_id=%s failed after retries. last_code=%s last_err=%r",
                     op, req_id, _classify_openai_error(last_err or Exception("unknown")), last_err)
        raise GenerationError(str(last_err) if last_err else f"{op} failed.") from last_err

    # ---------------------------------------------------------------------
    # Text + structured generation
    # ---------------------------------------------------------------------

    async def generate_text(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        messages: List[Dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature

        async def _call() -> str:
            resp = await self._client.chat.completions.create(
                model=self._settings.openai_model,
                messages=messages,
                **kwargs,
            )
            return _message_text(resp)

        return await self._call_with_retries("text", _call)

    async def generate_structured(
        self,
        prompt: str,
        *,
        schema_name: str,
        schema: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Ask for a JSON object conforming to ``schema`` and return it parsed.
        """
        async def _call() -> str:
            resp = await self._client.chat.completions.create(
                model=self._settings.openai_model,
                messages=[{"role": "user", "content": prompt}],
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": schema_name, "schema": schema, "strict": True},
                },
            )
            return _message_text(resp)

        raw = await self._call_with_retries("structured", _call)
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error("[structured] schema=%s unparseable reply=%r", schema_name, _snippet(raw))
            raise GenerationError(f"Model returned invalid JSON for {schema_name}.") from e
        if not isinstance(data, dict):
            raise GenerationError(f"Model returned a non-object for {schema_name}.")
        return data

    async def summarize_url(self, url: str) -> str:
        """
        Summarize the educational content behind ``url`` using hosted web search;
        the page itself is never fetched by us.
        """
        async def _call() -> str:
            resp = await self._client.responses.create(
                model=self._settings.openai_model,
                input=(
                    f"Summarize the key educational content found at this URL: {url}. "
                    "If it is a video, explain the main points covered."
                ),
                tools=[{"type": "web_search"}],
            )
            return (getattr(resp, "output_text", "") or "").strip()

        text = await self._call_with_retries("url_summary", _call)
        return text or URL_SUMMARY_FALLBACK

    # ---------------------------------------------------------------------
    # Video (long-running job)
    # ---------------------------------------------------------------------

    def _to_job(self, video: Any) -> VideoJob:
        status = (getattr(video, "status", "") or "").lower()
        if status == "completed":
            media_uri = f"{self._settings.openai_base_url}/videos/{video.id}/content"
            return VideoJob(id=video.id, done=True, media_uri=media_uri)
        if status == "failed":
            err = getattr(video, "error", None)
            message = getattr(err, "message", None) or "Video generation failed."
            return VideoJob(id=video.id, done=True, error=message)
        return VideoJob(id=video.id, done=False)

    async def submit_video_job(self, prompt: str) -> VideoJob:
        async def _call() -> Any:
            return await self._client.videos.create(
                model=self._settings.openai_video_model,
                prompt=prompt,
                size="1280x720",
            )

        video = await self._call_with_retries("video_submit", _call)
        job = self._to_job(video)
        logger.info("[video_submit] job_id=%s done=%s", job.id, job.done)
        return job

    async def poll_video_job(self, job: VideoJob) -> VideoJob:
        async def _call() -> Any:
            return await self._client.videos.retrieve(job.id)

        return self._to_job(await self._call_with_retries("video_poll", _call))

    # ---------------------------------------------------------------------
    # Images
    # ---------------------------------------------------------------------

    async def generate_image(self, prompt: str) -> str:
        """
        Return the generated image as a ``data:<mime>;base64,<bytes>`` URI.
        """
        async def _call() -> Any:
            return await self._client.images.generate(
                model=self._settings.openai_image_model,
                prompt=prompt,
                size="1024x1024",
            )

        resp = await self._call_with_retries("image", _call)
        for item in getattr(resp, "data", None) or []:
            b64 = getattr(item, "b64_json", None)
            if b64:
                fmt = (getattr(resp, "output_format", None) or "png").lower()
                return f"data:image/{fmt};base64,{b64}"
        raise GenerationError("No image generated by the model.")

    # ---------------------------------------------------------------------
    # Chat with tool calling
    # ---------------------------------------------------------------------

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ChatTurn:
        kwargs: Dict[str, Any] = {}
        if tools:
            kwargs["tools"] = tools

        async def _call() -> Any:
            return await self._client.chat.completions.create(
                model=self._settings.openai_model,
                messages=messages,
                **kwargs,
            )

        resp = await self._call_with_retries("chat", _call)
        try:
            message = resp.choices[0].message
        except (AttributeError, IndexError):
            return PlainReply(text="")

        tool_calls = getattr(message, "tool_calls", None) or []
        if tool_calls:
            call = tool_calls[0]
            try:
                arguments = json.loads(call.function.arguments or "{}")
            except ValueError:
                logger.warning("[chat] tool call %s had unparseable arguments: %r",
                               call.function.name, call.function.arguments)
                arguments = {}
            return ToolInvocation(
                name=call.function.name,
                arguments=arguments if isinstance(arguments, dict) else {},
                call_id=call.id,
                message=_tool_call_message(message),
            )

        return PlainReply(text=(message.content or "").strip())
