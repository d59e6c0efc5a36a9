"""Assembles the message list sent to the chat model."""

import base64
import logging
from pathlib import Path
from typing import Any, Sequence

from ..attachments import AttachmentRef
from ..memory import MemoryService
from .models import ChatMessage

logger = logging.getLogger(__name__)

DEFAULT_COACHING_MODE = "weight-loss"
SUPPORTED_IMAGE_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
    "image/avif",
    "image/bmp",
})
LOW_DETAIL_THRESHOLD = 2_000_000

COACHING_PERSONAS: dict[str, str] = {
    "weight-loss": (
        "You are a supportive weight loss coach focused on sustainable habits, healthy "
        "eating, and appropriate exercise. Be motivating, empathetic, and science-based. "
        "Avoid extreme dieting advice."
    ),
    "muscle-gain": (
        "You are a knowledgeable muscle gain coach focused on strength training, progressive "
        "overload, adequate protein intake, and recovery. Be motivating and educational about "
        "proper form and technique."
    ),
    "fitness": (
        "You are an experienced fitness coach focused on overall fitness improvement, "
        "cardiovascular health, flexibility, and strength. Provide varied workout suggestions "
        "and emphasize consistency."
    ),
    "mental-wellness": (
        "You are a compassionate mental wellness coach focused on stress reduction, "
        "mindfulness, positive psychology, and emotional resilience. Be gentle, "
        "non-judgmental, and encourage healthy coping strategies."
    ),
    "nutrition": (
        "You are a balanced nutrition coach focused on whole foods, portion control, and "
        "sustainable eating patterns. Provide practical meal suggestions and emphasize "
        "nutritional education without being restrictive."
    ),
}

HOLISTIC_PERSONA = (
    "You are a holistic wellness coach providing balanced advice on health, fitness, "
    "nutrition, and wellbeing. Be supportive, educational, and focus on sustainable "
    "lifestyle changes."
)

VISION_PREAMBLE = (
    "You can see every image attached to this conversation. Analyze visual content "
    "directly and refer to specific elements you see instead of asking the user to "
    "describe it. Answer visual questions first, then apply your coaching expertise."
)


def coaching_persona(mode: str) -> str:
    return COACHING_PERSONAS.get(mode, HOLISTIC_PERSONA)


def resolve_coaching_mode(mode: str | None) -> str:
    """Known modes pass through; anything else becomes weight-loss."""
    if mode in COACHING_PERSONAS:
        return mode
    return DEFAULT_COACHING_MODE


class ChatContextService:
    """Builds provider-neutral chat context from persona, memories and history."""

    def __init__(self, memory_service: MemoryService, uploads_dir: Path) -> None:
        self.memory_service = memory_service
        self.uploads_dir = Path(uploads_dir)

    def build_chat_context(
        self,
        user_id: int,
        message: str,
        conversation_id: str,
        coaching_mode: str | None = None,
        history: Sequence[ChatMessage] = (),
        attachments: Sequence[AttachmentRef] = (),
    ) -> list[dict[str, Any]]:
        """Build the ordered message list for one chat turn.

        Args:
            user_id: User sending the message.
            message: Current message text.
            conversation_id: Only history from this conversation is included.
            coaching_mode: Persona key; unknown values fall back to weight-loss.
            history: Prior messages, possibly from several conversations.
            attachments: Files attached to the current message.

        Returns:
            List of {"role", "content"} dicts. Content is a string, or a list
            of content parts when the message carries attachments.
        """
        mode = resolve_coaching_mode(coaching_mode)
        persona = self.memory_service.build_enhanced_system_prompt(
            user_id, message, base_prompt=coaching_persona(mode)
        )
        if persona.degraded:
            logger.warning("Building context without memories: %s", persona.error)

        context: list[dict[str, Any]] = [
            {"role": "system", "content": f"{VISION_PREAMBLE}\n\n{persona.value}"}
        ]

        session = [m for m in history if m.conversation_id == conversation_id]
        for past in session:
            if past.role not in ("user", "assistant"):
                continue
            content: Any = past.content
            if past.attachments:
                content = self.build_content_parts(past.content, past.attachments)
            context.append({"role": past.role, "content": content})

        current: Any = message
        if attachments:
            current = self.build_content_parts(message, attachments)
        context.append({"role": "user", "content": current})

        logger.info(
            "Built context for conversation %s: %d messages (%d from history)",
            conversation_id,
            len(context),
            len(session),
        )
        return context

    def build_content_parts(
        self, text: str, attachments: Sequence[AttachmentRef]
    ) -> list[dict[str, Any]]:
        """Text part first, then one part per attachment."""
        parts: list[dict[str, Any]] = []
        if text:
            parts.append({"type": "text", "text": text})
        elif attachments:
            parts.append({"type": "text", "text": "Analyzing content."})

        for attachment in attachments:
            parts.append(self._attachment_part(attachment))

        if not parts:
            parts.append({"type": "text", "text": "No content provided."})
        return parts

    def _attachment_part(self, attachment: AttachmentRef) -> dict[str, Any]:
        if not attachment.is_image:
            return _text_part(
                f"[Attachment reference: {attachment.label} ({attachment.file_type})]"
            )

        if attachment.file_type not in SUPPORTED_IMAGE_TYPES:
            logger.warning("Unsupported image format %s for %s", attachment.file_type, attachment.label)
            return _text_part(
                f"[Image: {attachment.label} - {attachment.file_type} format not supported. "
                "Please use PNG, JPEG, GIF, or WebP format.]"
            )

        path = self.uploads_dir / Path(attachment.file_name).name
        if not path.is_file():
            logger.error("Image file not found: %s", path)
            return _text_part(f"[Image file: {attachment.label} - file not found]")

        try:
            data = path.read_bytes()
        except OSError as e:
            logger.error("Failed to load image %s: %s", attachment.file_name, e)
            return _text_part(f"[Image file: {attachment.label} - error loading file]")

        detail = "low" if len(data) > LOW_DETAIL_THRESHOLD else "high"
        encoded = base64.b64encode(data).decode("ascii")
        logger.debug("Inlined image %s (%d bytes, %s detail)", attachment.file_name, len(data), detail)
        return {
            "type": "image_url",
            "image_url": {"url": f"data:{attachment.file_type};base64,{encoded}", "detail": detail},
        }


def _text_part(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}
