# studyflow/clients/contracts.py
"""
Shapes exchanged with the generative-AI collaborator.

The conversational step is a tagged union (PlainReply | ToolInvocation) so the
tutor never has to inspect an open-ended response object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union


@dataclass(frozen=True)
class PlainReply:
    text: str


@dataclass(frozen=True)
class ToolInvocation:
    name: str
    arguments: Dict[str, Any]
    call_id: str
    # Assistant message that carried the call; replayed before the tool result.
    message: Dict[str, Any] = field(default_factory=dict)


ChatTurn = Union[PlainReply, ToolInvocation]


@dataclass(frozen=True)
class VideoJob:
    id: str
    done: bool = False
    media_uri: Optional[str] = None
    error: Optional[str] = None


class GenerativeClient(Protocol):
    @property
    def api_key(self) -> str: ...

    async def generate_text(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str: ...

    async def generate_structured(
        self,
        prompt: str,
        *,
        schema_name: str,
        schema: Dict[str, Any],
    ) -> Dict[str, Any]: ...

    async def summarize_url(self, url: str) -> str: ...

    async def submit_video_job(self, prompt: str) -> VideoJob: ...

    async def poll_video_job(self, job: VideoJob) -> VideoJob: ...

    async def generate_image(self, prompt: str) -> str: ...

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ChatTurn: ...


class CredentialPicker(Protocol):
    async def has_credential(self) -> bool: ...

    async def select_credential(self) -> bool: ...
