# studyflow/core/chat.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import json

from studyflow.clients.contracts import GenerativeClient, PlainReply, ToolInvocation
from studyflow.core import prompts
from studyflow.core.errors import ChatBusyError
from studyflow.memory.models import ChatMessage
from studyflow.utils.logging import get_logger

logger = get_logger(__name__)

# Bounds on grounding context + a single user message
MAX_CONTEXT_CHARS = 20000
MAX_USER_TEXT_CHARS = 8000

IMAGE_TOOL_NAME = "generate_image"

WELCOME_TEXT = "Hi! I'm your AI Tutor. I've read your notes. Ask me anything, or ask me to generate diagrams!"
EMPTY_REPLY_TEXT = "I'm having trouble thinking right now. Try again?"
ERROR_REPLY_TEXT = "Sorry, I encountered an error. Please try again."
IMAGE_FAILED_TEXT = "Sorry, I couldn't generate that image right now."
IMAGE_ACK_RESULT = "Image generated successfully and displayed to user."


class TutorState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    TOOL_EXECUTING = "tool_executing"


@dataclass
class ConversationState:
    context: str = ""
    state: TutorState = TutorState.IDLE
    # What the user sees
    messages: List[ChatMessage] = field(default_factory=list)
    # What the model sees (system instruction + running exchange)
    exchange: List[Dict[str, Any]] = field(default_factory=list)


class TutorSession:
    """
    Conversational tutor grounded on one artifact's text.

    Re-seeded (welcome message only) whenever the context text changes; the
    transcript is never persisted.
    """

    def __init__(self, client: GenerativeClient, context: str = "") -> None:
        self.client = client
        self.conv = ConversationState()
        self._reset(context)

    @property
    def state(self) -> TutorState:
        return self.conv.state

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self.conv.messages)

    def _reset(self, context: str) -> None:
        grounded = (context or "")[:MAX_CONTEXT_CHARS]
        self.conv = ConversationState(
            context=context or "",
            state=TutorState.IDLE,
            messages=[ChatMessage(role="assistant", text=WELCOME_TEXT)],
            exchange=[{"role": "system", "content": prompts.tutor_system_instruction(grounded)}],
        )

    def set_context(self, context: str) -> bool:
        """
        Re-seed the session if ``context`` differs from the current one.
        Returns True when a reset happened.
        """
        if (context or "") == self.conv.context:
            return False
        logger.info("Tutor context changed (%d chars); resetting conversation.", len(context or ""))
        self._reset(context)
        return True

    def _is_stale(self, conv: ConversationState) -> bool:
        if self.conv is conv:
            return False
        logger.info("Tutor context changed during a turn; dropping the late reply.")
        return True

    def _reply(
        self,
        conv: ConversationState,
        text: str,
        image: Optional[str] = None,
        remember: bool = True,
    ) -> Optional[ChatMessage]:
        # Replies only land in the conversation that asked for them
        if self._is_stale(conv):
            return None
        msg = ChatMessage(role="assistant", text=text, image=image)
        conv.messages.append(msg)
        if remember:
            conv.exchange.append({"role": "assistant", "content": text})
        return msg

    async def _run_image_tool(self, conv: ConversationState, call: ToolInvocation) -> Optional[ChatMessage]:
        conv.state = TutorState.TOOL_EXECUTING
        prompt = str(call.arguments.get("prompt") or "").strip()
        mark = len(conv.exchange)

        try:
            if not prompt:
                raise ValueError("generate_image was called without a prompt.")
            image_uri = await self.client.generate_image(prompt)
            if self._is_stale(conv):
                return None

            # Acknowledge the tool result inside the same conversation
            conv.exchange.append(call.message or {
                "role": "assistant",
                "content": "",
                "tool_calls": [{
                    "id": call.call_id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }],
            })
            conv.exchange.append({
                "role": "tool",
                "tool_call_id": call.call_id,
                "content": json.dumps({"result": IMAGE_ACK_RESULT}),
            })
            ack = await self.client.chat(conv.exchange, tools=[prompts.GENERATE_IMAGE_TOOL])
        except Exception as e:
            logger.error("Image generation failed for prompt %r: %s", prompt, e)
            # Drop the half-finished tool exchange so the next turn stays valid
            del conv.exchange[mark:]
            return self._reply(conv, IMAGE_FAILED_TEXT)

        text = f"I've generated an image for: {prompt}"
        if isinstance(ack, PlainReply) and ack.text:
            if self._is_stale(conv):
                return None
            conv.exchange.append({"role": "assistant", "content": ack.text})
            return self._reply(conv, text, image=image_uri, remember=False)
        return self._reply(conv, text, image=image_uri)

    async def send(self, text: str) -> Optional[ChatMessage]:
        """
        Send one user message and return the assistant message it produced.
        Blank input is ignored (returns None). If the context changes while
        the turn is in flight, the late reply is dropped and None is returned.
        """
        conv = self.conv
        if conv.state != TutorState.IDLE:
            raise ChatBusyError("The tutor is still answering the previous message.")

        cleaned = (text or "").strip()
        if not cleaned:
            return None
        if len(cleaned) > MAX_USER_TEXT_CHARS:
            logger.warning(
                "User text length %d exceeds MAX_USER_TEXT_CHARS=%d; truncating.",
                len(cleaned),
                MAX_USER_TEXT_CHARS,
            )
            cleaned = cleaned[:MAX_USER_TEXT_CHARS]

        conv.messages.append(ChatMessage(role="user", text=cleaned))
        conv.exchange.append({"role": "user", "content": cleaned})
        conv.state = TutorState.AWAITING_RESPONSE

        try:
            try:
                turn = await self.client.chat(conv.exchange, tools=[prompts.GENERATE_IMAGE_TOOL])
            except Exception as e:
                logger.error("Tutor chat call failed: %s", e)
                return self._reply(conv, ERROR_REPLY_TEXT)

            if isinstance(turn, ToolInvocation):
                if self._is_stale(conv):
                    return None
                if turn.name == IMAGE_TOOL_NAME:
                    return await self._run_image_tool(conv, turn)
                logger.warning("Tutor requested unknown tool %r; ignoring.", turn.name)
                return self._reply(conv, EMPTY_REPLY_TEXT)

            return self._reply(conv, turn.text or EMPTY_REPLY_TEXT)
        finally:
            conv.state = TutorState.IDLE
