"""
Markdown export of a chat.
"""

import re

from services.chat_service.models import Chat, ROLE_ASSISTANT, DEFAULT_CHAT_TITLE


def export_chat_markdown(chat: Chat, assistant_label: str = "AceAI") -> str:
    """
    Render a chat as markdown, one section per message

    Args:
        chat: Chat to export
        assistant_label: Heading used for assistant messages

    Returns:
        Markdown text
    """
    sections = []
    for message in chat.messages:
        role = assistant_label if message.role == ROLE_ASSISTANT else "User"
        sections.append(f"### {role}\n\n{message.content}\n\n")
    return "---\n\n".join(sections)


def export_filename(chat: Chat) -> str:
    """File name for an exported chat: the title with path separators removed"""
    title = re.sub(r'[\\/]+', '_', chat.title).strip() or DEFAULT_CHAT_TITLE
    return f"{title}.md"
