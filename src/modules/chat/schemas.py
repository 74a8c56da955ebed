"""Schemas for the chat module."""

from dataclasses import dataclass, field

from src.infrastructure.llm.schemas import Attachment


@dataclass
class ChatReply:
    """A completion packaged for a size-limited message transport."""

    segments: list[str]  # Ordered; each within the transport limit
    attachments: list[Attachment] = field(default_factory=list)
    provider: str = ""  # Provider that produced the answer
