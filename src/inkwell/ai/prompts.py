"""Prompt templates for the rewrite, cover image, and Story Coach actions."""

from __future__ import annotations

from typing import Optional

from .ai_types import AIRequest

NOT_DEFINED = "(not defined yet)"

STORY_COACH_SYSTEM_PROMPT = (
    "You are a professional story editor assisting an author. "
    "You may use the synopsis context to reason internally, but your response must ONLY contain text "
    "suitable for the focused field. Do not mention or describe other synopsis fields explicitly."
)


def rewrite_system_prompt(language: Optional[str]) -> str:
    lang = (language or "").strip() or "en"
    return (
        "You are a writing assistant. Rewrite only the provided selection. "
        f"Return plain text only. Language: {lang}."
    )


def rewrite_user_prompt(request: AIRequest) -> str:
    """Build the user message for a selection rewrite."""

    context = request.context
    preserve = "yes" if request.input_flag("preserve_terms", True) else "no"
    lines = [
        "Rewrite the selection below. Return only the rewritten selection text.",
        f"Tone: {request.input_text('tone', 'Neutral')}.",
        f"Length: {request.input_text('length', 'Same')}.",
        f"Preserve terms: {preserve}.",
    ]
    instruction = request.input_text("instruction").strip()
    if instruction:
        lines.append(f"Instruction: {instruction}")
    if context.document_title:
        lines.append(f"Document title: {context.document_title}")
    if context.containing_paragraph:
        lines.append(f"Context paragraph:\n{context.containing_paragraph}")
    lines.append(f"Selection:\n{context.selection_text}")
    return "\n".join(lines)


def cover_image_prompt(request: AIRequest) -> str:
    prompt = request.input_text("prompt").strip()
    instruction = request.input_text("instruction").strip()
    if instruction:
        prompt = f"{prompt}\n\nInstruction: {instruction}"
    return prompt


class StoryCoachPromptBuilder:
    """Builds Story Coach prompts that ask for the focused field's text only."""

    system_prompt = STORY_COACH_SYSTEM_PROMPT

    @staticmethod
    def build_user_prompt(
        *,
        field_key: str,
        focus_prompt: str,
        current_value: str,
        other_fields_context: str,
        user_notes: str | None = None,
    ) -> str:
        notes = (user_notes or "").strip()
        sections = [
            "Synopsis Context (unlabeled):",
            other_fields_context.strip() or NOT_DEFINED,
            "",
            f"Focus field: {field_key}",
            f"Focus prompt: {focus_prompt}",
            "Current value:",
            current_value.strip() or NOT_DEFINED,
            "",
            "User input:",
            notes or "No additional input. Generate a proposal based on the synopsis context.",
            "",
            "Task:",
            "Propose a revised version of the focused field only.",
            "",
            "Rules:",
            "- Output ONLY the proposed text",
            "- Do NOT include headings or labels",
            "- Do NOT reference other fields explicitly",
            "- Maintain tonal and thematic consistency",
        ]
        return "\n".join(sections)

    @classmethod
    def from_request(cls, request: AIRequest) -> str:
        return cls.build_user_prompt(
            field_key=request.input_text("focus_field_key"),
            focus_prompt=request.input_text("focus_field_prompt"),
            current_value=request.input_text("existing_value"),
            other_fields_context=request.input_text("other_fields_context"),
            user_notes=request.input_text("user_notes"),
        )


__all__ = [
    "NOT_DEFINED",
    "STORY_COACH_SYSTEM_PROMPT",
    "StoryCoachPromptBuilder",
    "cover_image_prompt",
    "rewrite_system_prompt",
    "rewrite_user_prompt",
]
