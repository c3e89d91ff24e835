"""
Unit tests for the tutor chat session and its image tool loop.
"""

import asyncio

import pytest

from studyflow.clients.contracts import PlainReply, ToolInvocation
from studyflow.core.chat import (
    EMPTY_REPLY_TEXT,
    ERROR_REPLY_TEXT,
    IMAGE_FAILED_TEXT,
    MAX_CONTEXT_CHARS,
    WELCOME_TEXT,
    TutorSession,
    TutorState,
)
from studyflow.core.errors import ChatBusyError, GenerationError


def _image_call(prompt="a labelled chloroplast diagram"):
    return ToolInvocation(
        name="generate_image",
        arguments={"prompt": prompt},
        call_id="call_1",
        message={
            "role": "assistant",
            "content": None,
            "tool_calls": [{
                "id": "call_1",
                "type": "function",
                "function": {"name": "generate_image", "arguments": f'{{"prompt": "{prompt}"}}'},
            }],
        },
    )


@pytest.fixture
def tutor(fake_client):
    return TutorSession(fake_client, context="# Photosynthesis\nChlorophyll absorbs light.")


class TestSeeding:
    def test_starts_with_welcome(self, tutor):
        assert [m.text for m in tutor.messages] == [WELCOME_TEXT]
        assert tutor.state == TutorState.IDLE

    def test_system_instruction_embeds_bounded_context(self, fake_client):
        session = TutorSession(fake_client, context="x" * (MAX_CONTEXT_CHARS + 500))
        system = session.conv.exchange[0]["content"]
        assert "x" * MAX_CONTEXT_CHARS in system
        assert "x" * (MAX_CONTEXT_CHARS + 1) not in system

    @pytest.mark.asyncio
    async def test_same_context_keeps_transcript(self, tutor):
        await tutor.send("What is chlorophyll?")
        assert tutor.set_context("# Photosynthesis\nChlorophyll absorbs light.") is False
        assert len(tutor.messages) == 3

    @pytest.mark.asyncio
    async def test_new_context_resets(self, tutor):
        await tutor.send("What is chlorophyll?")
        assert tutor.set_context("# Mitosis") is True
        assert [m.text for m in tutor.messages] == [WELCOME_TEXT]
        assert "# Mitosis" in tutor.conv.exchange[0]["content"]


class TestSend:
    @pytest.mark.asyncio
    async def test_plain_reply(self, tutor, fake_client):
        fake_client.chat_turns = [PlainReply(text="It absorbs light.")]

        reply = await tutor.send("  What is chlorophyll?  ")

        assert reply.role == "assistant"
        assert reply.text == "It absorbs light."
        assert [m.role for m in tutor.messages] == ["assistant", "user", "assistant"]
        sent = fake_client.calls[0][1]
        assert sent[0]["role"] == "system"
        assert sent[-1] == {"role": "user", "content": "What is chlorophyll?"}
        assert tutor.state == TutorState.IDLE

    @pytest.mark.asyncio
    async def test_blank_message_ignored(self, tutor, fake_client):
        assert await tutor.send("   ") is None
        assert fake_client.calls == []
        assert len(tutor.messages) == 1

    @pytest.mark.asyncio
    async def test_exchange_carries_history(self, tutor, fake_client):
        fake_client.chat_turns = [PlainReply(text="first"), PlainReply(text="second")]
        await tutor.send("one")
        await tutor.send("two")
        second_call = fake_client.calls[1][1]
        assert [m["role"] for m in second_call] == ["system", "user", "assistant", "user"]

    @pytest.mark.asyncio
    async def test_empty_reply_uses_fallback(self, tutor, fake_client):
        fake_client.chat_turns = [PlainReply(text="")]
        reply = await tutor.send("hello")
        assert reply.text == EMPTY_REPLY_TEXT

    @pytest.mark.asyncio
    async def test_collaborator_failure_becomes_error_message(self, tutor, fake_client):
        fake_client.chat_turns = [GenerationError("boom")]
        reply = await tutor.send("hello")
        assert reply.text == ERROR_REPLY_TEXT
        assert tutor.state == TutorState.IDLE

    @pytest.mark.asyncio
    async def test_busy_session_rejects_messages(self, tutor):
        tutor.conv.state = TutorState.AWAITING_RESPONSE
        with pytest.raises(ChatBusyError):
            await tutor.send("hello")

    @pytest.mark.asyncio
    async def test_unknown_tool_is_ignored(self, tutor, fake_client):
        fake_client.chat_turns = [ToolInvocation(name="search_web", arguments={}, call_id="c", message={})]
        reply = await tutor.send("hello")
        assert reply.text == EMPTY_REPLY_TEXT
        assert not [c for c in fake_client.calls if c[0] == "generate_image"]


class TestImageTool:
    @pytest.mark.asyncio
    async def test_image_tool_round_trip(self, tutor, fake_client):
        fake_client.chat_turns = [_image_call(), PlainReply(text="Here it is!")]

        reply = await tutor.send("Draw me a chloroplast")

        assert reply.text == "I've generated an image for: a labelled chloroplast diagram"
        assert reply.image == fake_client.image
        assert ("generate_image", "a labelled chloroplast diagram") in fake_client.calls

        ack_exchange = fake_client.calls[-1][1]
        assert ack_exchange[-2]["tool_calls"][0]["id"] == "call_1"
        assert ack_exchange[-1]["role"] == "tool"
        assert ack_exchange[-1]["tool_call_id"] == "call_1"
        assert tutor.state == TutorState.IDLE

    @pytest.mark.asyncio
    async def test_image_failure_is_reported_and_rolled_back(self, tutor, fake_client):
        fake_client.chat_turns = [_image_call()]
        fake_client.errors["generate_image"] = GenerationError("No image generated by the model.")

        reply = await tutor.send("Draw me a chloroplast")

        assert reply.text == IMAGE_FAILED_TEXT
        assert reply.image is None
        assert not any(m.get("role") == "tool" for m in tutor.conv.exchange)
        assert tutor.state == TutorState.IDLE

    @pytest.mark.asyncio
    async def test_missing_prompt_counts_as_failure(self, tutor, fake_client):
        fake_client.chat_turns = [_image_call(prompt="")]
        reply = await tutor.send("Draw something")
        assert reply.text == IMAGE_FAILED_TEXT
        assert not [c for c in fake_client.calls if c[0] == "generate_image"]


class TestContextSwitchMidTurn:
    @pytest.fixture
    def gated(self, fake_client):
        gate = asyncio.Event()
        original = fake_client.chat

        async def slow_chat(messages, *, tools=None):
            await gate.wait()
            return await original(messages, tools=tools)

        fake_client.chat = slow_chat
        return gate

    @pytest.mark.asyncio
    async def test_late_reply_is_dropped_after_reset(self, tutor, fake_client, gated):
        fake_client.chat_turns = [PlainReply(text="Answer about the old notes")]
        pending = asyncio.create_task(tutor.send("question about the old notes"))
        await asyncio.sleep(0)
        assert tutor.state == TutorState.AWAITING_RESPONSE

        tutor.set_context("# Mitosis\nCells divide.")
        assert tutor.state == TutorState.IDLE
        gated.set()

        assert await pending is None
        assert [m.text for m in tutor.messages] == [WELCOME_TEXT]
        assert [m["role"] for m in tutor.conv.exchange] == ["system"]
        assert tutor.state == TutorState.IDLE

    @pytest.mark.asyncio
    async def test_old_turn_does_not_unlock_new_session(self, tutor, fake_client, gated):
        first = asyncio.create_task(tutor.send("old question"))
        await asyncio.sleep(0)
        tutor.set_context("# Mitosis")

        second = asyncio.create_task(tutor.send("new question"))
        await asyncio.sleep(0)
        assert tutor.state == TutorState.AWAITING_RESPONSE

        gated.set()
        assert await first is None
        reply = await second
        assert reply.text == "Sure, here's an explanation."
        assert [m.text for m in tutor.messages] == [WELCOME_TEXT, "new question", reply.text]

    @pytest.mark.asyncio
    async def test_late_image_is_dropped_after_reset(self, tutor, fake_client, gated):
        fake_client.chat_turns = [_image_call()]
        pending = asyncio.create_task(tutor.send("Draw me a chloroplast"))
        await asyncio.sleep(0)
        tutor.set_context("# Mitosis")
        gated.set()

        assert await pending is None
        assert not [c for c in fake_client.calls if c[0] == "generate_image"]
        assert [m.text for m in tutor.messages] == [WELCOME_TEXT]
