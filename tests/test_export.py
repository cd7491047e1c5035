"""
Tests for markdown chat export
"""

from services.chat_service.export import export_chat_markdown, export_filename
from services.chat_service.models import Chat, Message


class TestChatExport:
    """Test markdown rendering and file naming"""

    def test_markdown_layout(self):
        chat = Chat(title="Greeting", messages=[
            Message(role="user", content="Hi"),
            Message(role="assistant", content="Hello!", reasoning="be polite"),
        ])

        markdown = export_chat_markdown(chat, "AceAI")

        assert markdown == "### User\n\nHi\n\n---\n\n### AceAI\n\nHello!\n\n"

    def test_reasoning_is_not_exported(self):
        chat = Chat(messages=[Message(role="assistant", content="Answer", reasoning="secret steps")])

        assert "secret steps" not in export_chat_markdown(chat)

    def test_non_assistant_roles_are_labelled_user(self):
        chat = Chat(messages=[Message(role="system", content="setup")])

        assert export_chat_markdown(chat, "Bot").startswith("### User\n\n")

    def test_empty_chat(self):
        assert export_chat_markdown(Chat()) == ""

    def test_filename_from_title(self):
        assert export_filename(Chat(title="Trip ideas...")) == "Trip ideas....md"

    def test_filename_strips_path_separators(self):
        assert export_filename(Chat(title="a/b\\c")) == "a_b_c.md"
