"""
Chat service data models for chats and messages.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Optional, Any
import uuid


ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"
ROLES = (ROLE_USER, ROLE_ASSISTANT, ROLE_SYSTEM)

DEFAULT_CHAT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 30
TITLE_ELLIPSIS = "..."


def new_id() -> str:
    """Generate an opaque unique identifier"""
    return str(uuid.uuid4())


def derive_title(first_message: str) -> str:
    """Chat title from the first message: 30 characters, ellipsis when cut"""
    if len(first_message) > TITLE_MAX_LENGTH:
        return first_message[:TITLE_MAX_LENGTH] + TITLE_ELLIPSIS
    return first_message


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return datetime.now()


@dataclass
class Message:
    """Individual message in a chat"""
    role: str  # "user", "assistant", "system"
    content: str
    id: str = field(default_factory=new_id)
    reasoning: Optional[str] = None  # assistant messages only
    reasoning_expanded: bool = False
    editing: bool = False
    saved_original_content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "reasoning": self.reasoning,
            "reasoning_expanded": self.reasoning_expanded,
            "editing": self.editing,
            "saved_original_content": self.saved_original_content,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        """Build a message, defaulting any missing field"""
        role = data.get("role")
        return cls(
            id=data.get("id") or new_id(),
            role=role if role in ROLES else ROLE_USER,
            content=data.get("content") or "",
            reasoning=data.get("reasoning"),
            reasoning_expanded=bool(data.get("reasoning_expanded", False)),
            editing=bool(data.get("editing", False)),
            saved_original_content=data.get("saved_original_content"),
        )


@dataclass
class Chat:
    """Chat containing an ordered list of messages"""
    id: str = field(default_factory=new_id)
    title: str = DEFAULT_CHAT_TITLE
    messages: List[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    def find_message_index(self, message_id: str) -> Optional[int]:
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                return index
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [message.to_dict() for message in self.messages],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Chat':
        """Build a chat; absent title/messages fall back to defaults"""
        raw_messages = data.get("messages")
        if not isinstance(raw_messages, list):
            raw_messages = []

        return cls(
            id=data.get("id") or new_id(),
            title=data.get("title") or DEFAULT_CHAT_TITLE,
            messages=[Message.from_dict(item) for item in raw_messages if isinstance(item, dict)],
            created_at=_parse_datetime(data.get("created_at")),
        )


def create_default_chat() -> Chat:
    """Fresh empty chat with the default title"""
    return Chat()
