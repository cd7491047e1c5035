"""
Tests for chat session storage selection and synchronization
"""

import os
import shutil
import tempfile
from unittest.mock import Mock, patch

from services.chat_service.chat_repository import LocalChatRepository, RemoteChatRepository
from services.chat_service.chat_session import ChatSession
from services.chat_service.models import Chat, Message, DEFAULT_CHAT_TITLE


class FakeCompletionClient:
    """Completion client double"""

    def stream_completion(self, history):
        yield "<think>"
        yield "considering"
        yield "</think>Sure."


class TestChatSession:
    """Test guest/account storage switching"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.local = LocalChatRepository(os.path.join(self.temp_dir, "local.db"))
        self.remote_path = os.path.join(self.temp_dir, "remote.db")
        self.session = ChatSession(local_repository=self.local, remote_db_path=self.remote_path,
                                   completion_client=FakeCompletionClient())

    def teardown_method(self):
        self.session.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_guest_uses_local_storage(self):
        assert self.session.is_signed_in is False
        assert self.session.repository is self.local
        assert self.session.select_repository(None) is self.local

    def test_signed_in_user_gets_remote_storage(self):
        repository = self.session.select_repository("user-1")

        assert isinstance(repository, RemoteChatRepository)
        assert repository.user_id == "user-1"

    def test_guest_turn_is_written_locally(self):
        list(self.session.store.handle_submit("Hello"))

        stored = self.local.load()
        assert [m.content for m in stored[0].messages] == ["Hello", "Sure."]

    def test_sign_in_transfers_guest_chats(self):
        list(self.session.store.handle_submit("Guest question"))

        assert self.session.sign_in("user-1") is True

        assert self.session.is_signed_in is True
        assert isinstance(self.session.repository, RemoteChatRepository)
        titles = [chat.title for chat in self.session.store.chats]
        assert "Guest question" in titles
        assert self.local.has_stored_chats() is False

    def test_sign_in_without_guest_messages(self):
        assert self.session.sign_in("user-1") is False

        assert len(self.session.store.chats) == 1
        assert self.session.store.active_chat.title == DEFAULT_CHAT_TITLE

    def test_sign_in_twice_is_noop(self):
        self.session.sign_in("user-1")

        assert self.session.sign_in("user-1") is False

    def test_signed_in_writes_go_remote(self):
        self.session.sign_in("user-1")

        list(self.session.store.handle_submit("Account question"))

        remote = RemoteChatRepository(self.remote_path, "user-1", fallback=self.local)
        assert any(chat.title == "Account question" for chat in remote.load())

    def test_remote_updates_are_applied_on_request(self):
        self.session.sign_in("user-1")
        other_device = RemoteChatRepository(self.remote_path, "user-1", fallback=self.local)
        pushed = Chat(title="From another device", messages=[Message(role="user", content="x")])

        other_device.save([pushed])

        assert all(chat.id != pushed.id for chat in self.session.store.chats)
        assert self.session.apply_pending_updates() is True
        assert any(chat.id == pushed.id for chat in self.session.store.chats)
        assert self.session.apply_pending_updates() is False

    def test_sign_out_returns_to_local_storage(self):
        self.session.sign_in("user-1")
        list(self.session.store.handle_submit("Kept remotely"))

        self.session.sign_out()

        assert self.session.is_signed_in is False
        assert self.session.repository is self.local
        assert self.session.store.active_chat.title == DEFAULT_CHAT_TITLE
        remote = RemoteChatRepository(self.remote_path, "user-1", fallback=self.local)
        assert any(chat.title == "Kept remotely" for chat in remote.load())

    def test_no_updates_after_sign_out(self):
        self.session.sign_in("user-1")
        self.session.sign_out()
        other_device = RemoteChatRepository(self.remote_path, "user-1", fallback=self.local)

        other_device.save([Chat(title="Late", messages=[])])

        assert self.session.apply_pending_updates() is False

    def test_storage_without_live_updates_is_not_subscribed(self):
        remote = Mock()
        remote.supports_live_updates = False
        remote.load.return_value = [Chat(title="Remote", messages=[])]

        with patch.object(self.session, "select_repository", return_value=remote):
            self.session.sign_in("user-1")

        remote.subscribe.assert_not_called()
        assert self.session.store.active_chat.title == "Remote"
        assert self.session.apply_pending_updates() is False

    def test_sign_in_releases_unstarted_turn(self):
        stream = self.session.store.handle_submit("Hello")

        self.session.sign_in("user-1")
        stream.close()

        assert self.session.store.is_streaming is False
        assert self.session.store.handle_submit("Next") is not None
