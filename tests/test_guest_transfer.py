"""
Tests for guest-to-account chat transfer
"""

import os
import shutil
import tempfile
from unittest.mock import patch

from services.chat_service.chat_repository import LocalChatRepository, PersistenceError, RemoteChatRepository
from services.chat_service.guest_transfer import transfer_guest_chats
from services.chat_service.models import Chat, Message


class TestGuestTransfer:
    """Test one-shot migration of guest chats"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.local = LocalChatRepository(os.path.join(self.temp_dir, "local.db"))
        self.remote = RemoteChatRepository(os.path.join(self.temp_dir, "remote.db"), "user-1",
                                           fallback=self.local)

        self.chat_a = Chat(title="Chat A", messages=[
            Message(role="user", content="question"),
            Message(role="assistant", content="answer"),
        ])
        self.chat_b = Chat(title="Chat B", messages=[])
        self.local.save([self.chat_a, self.chat_b])

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_non_empty_chats_become_new_remote_chats(self):
        assert transfer_guest_chats([self.chat_a, self.chat_b], self.remote, self.local) is True

        remote_chats = self.remote.load()
        assert len(remote_chats) == 1
        transferred = remote_chats[0]
        assert transferred.id != self.chat_a.id
        assert transferred.title == "Chat A"
        assert [m.content for m in transferred.messages] == ["question", "answer"]

    def test_local_storage_cleared_on_success(self):
        transfer_guest_chats([self.chat_a, self.chat_b], self.remote, self.local)

        assert self.local.has_stored_chats() is False

    def test_empty_collection_reports_nothing_transferred(self):
        assert transfer_guest_chats([], self.remote, self.local) is False
        assert self.local.has_stored_chats() is True

    def test_only_empty_chats_reports_nothing_transferred(self):
        assert transfer_guest_chats([self.chat_b], self.remote, self.local) is False
        assert self.local.has_stored_chats() is True

    def test_failure_keeps_local_storage(self):
        with patch.object(self.remote, "create_chats", side_effect=PersistenceError("offline")):
            assert transfer_guest_chats([self.chat_a], self.remote, self.local) is False

        assert self.local.has_stored_chats() is True
        assert [chat.id for chat in self.local.load()] == [self.chat_a.id, self.chat_b.id]
