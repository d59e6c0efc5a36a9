"""Chat message model."""

from dataclasses import dataclass, field

from ..attachments import AttachmentRef


@dataclass(frozen=True)
class ChatMessage:
    """A stored conversation message.

    Attributes:
        conversation_id: Conversation the message belongs to.
        role: 'user', 'assistant' or 'system'.
        content: Message text.
        attachments: Files sent with the message.
        user_id: Owner of the conversation.
        id: Database ID, None for new messages.
        created_at: ISO timestamp when stored.
    """

    conversation_id: str
    role: str
    content: str
    attachments: tuple[AttachmentRef, ...] = field(default_factory=tuple)
    user_id: int | None = None
    id: int | None = None
    created_at: str | None = None
