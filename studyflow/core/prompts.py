# studyflow/core/prompts.py

from typing import Any, Dict

from studyflow.core.types import StudyStyle

NOTES_FALLBACK = "# Generated Notes\nNo content generated."

VIDEO_PROMPT_SOURCE_CHARS = 5000
VIDEO_PROMPT_SUFFIX = ". Cinematic, high definition, 4k. Text overlays with facts."


def notes_system_instruction(style: StudyStyle) -> str:
    return (
        "You are StudyFlow, an expert study companion.\n"
        "Your goal is to create clear, structured study notes.\n"
        f"Style: {style.value}.\n"
        "Use clean Markdown formatting (headers, bullet points, bold text).\n"
        "Always include a concise Title at the very top.\n"
        "Focus on extracting key concepts, definitions, and relationships.\n"
        "Do not use generic intros/outros."
    )


def flashcards_prompt(content: str, style: StudyStyle, count: int) -> str:
    return (
        f"Create exactly {count} study flashcards from the following content. "
        f"Style: {style.value}.\n\nContent:\n{content}"
    )


def quiz_prompt(content: str, style: StudyStyle, count: int) -> str:
    return (
        f"Generate a multiple-choice practice quiz with exactly {count} questions based on "
        f"the following material. Style: {style.value}. Ensure options are plausible distractors. "
        "The correct_option must be the exact text of one of the options.\n\n"
        f"Content:\n{content}"
    )


def video_prompt_request(content: str) -> str:
    return (
        "Convert the following educational content into a detailed prompt for an AI video "
        "generation model.\n"
        "The user wants an educational video.\n"
        "If the content is about history, describe a cinematic historical recreation of key events.\n"
        'Explicitly ask for "Text overlays showing key facts" and "Cinematic style" in the prompt.\n'
        "Keep the prompt under 200 words.\n\n"
        f"Content: {content[:VIDEO_PROMPT_SOURCE_CHARS]}"
    )


def tutor_system_instruction(context: str) -> str:
    return (
        "You are StudyFlow's AI Tutor.\n"
        "The user is currently studying the following material:\n\n"
        "--- START OF CONTEXT ---\n"
        f"{context}\n"
        "--- END OF CONTEXT ---\n\n"
        "Your Role:\n"
        "1. Answer the user's doubts specifically based on the context provided above.\n"
        "2. If the answer isn't in the notes, use your general knowledge but mention that it "
        "wasn't in the specific notes.\n"
        "3. Be encouraging, concise, and helpful.\n"
        "4. You have access to a tool 'generate_image'. If the user asks for a diagram, visual, "
        "or picture, use this tool with a descriptive prompt.\n"
        "5. Keep responses conversational."
    )


FLASHCARDS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "A short, relevant title for this flashcard deck"},
        "cards": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "front": {"type": "string", "description": "The question or term on the front of the card"},
                    "back": {"type": "string", "description": "The answer or definition on the back"},
                },
                "required": ["front", "back"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["title", "cards"],
    "additionalProperties": False,
}

QUIZ_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "Title of the quiz"},
        "questions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "question": {"type": "string"},
                    "options": {"type": "array", "items": {"type": "string"}},
                    "correct_option": {"type": "string", "description": "The correct option string text"},
                    "explanation": {"type": "string", "description": "Why this answer is correct"},
                },
                "required": ["id", "question", "options", "correct_option", "explanation"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["title", "questions"],
    "additionalProperties": False,
}

GENERATE_IMAGE_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "generate_image",
        "description": (
            "Generates an image based on a detailed text description. Use this when the user "
            "asks to see, draw, or generate a diagram, picture, or image."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "A detailed visual description of the image to generate.",
                },
            },
            "required": ["prompt"],
        },
    },
}
