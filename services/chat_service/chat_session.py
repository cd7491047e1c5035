"""
Chat session - binds a conversation store to the storage of the current principal.

Guests write to local storage. Signing in switches to remote storage for
that user, migrates the guest chats once, and subscribes to live updates.
Remote updates may arrive from any thread; they are buffered here and
applied to the store by apply_pending_updates() on the UI thread.
"""

import threading
from typing import Callable, List, Optional

from config.app_config import get_config
from services.chat_service.chat_repository import ChatRepository, LocalChatRepository, RemoteChatRepository
from services.chat_service.conversation_store import ConversationStore
from services.chat_service.guest_transfer import transfer_guest_chats
from services.chat_service.models import Chat
from utils.logging_config import get_logger, log_execution_time


class ChatSession:
    """
    Persistence strategy selection and remote synchronization for one UI session.
    """

    def __init__(self, local_repository: Optional[LocalChatRepository] = None,
                 remote_db_path: Optional[str] = None, completion_client=None,
                 on_title_derived: Optional[Callable[[str, str], None]] = None,
                 on_active_chat_deleted: Optional[Callable[[str], None]] = None,
                 on_first_answer: Optional[Callable[[], None]] = None):
        self.logger = get_logger(__name__)
        storage_config = get_config().storage

        self.local_repository = local_repository or LocalChatRepository(
            storage_config.local_db_path, storage_config.guest_storage_key
        )
        self.remote_db_path = remote_db_path or storage_config.remote_db_path
        self.user_id: Optional[str] = None
        self.repository: ChatRepository = self.local_repository

        self.store = ConversationStore(
            self.local_repository,
            completion_client=completion_client,
            on_title_derived=on_title_derived,
            on_active_chat_deleted=on_active_chat_deleted,
            on_first_answer=on_first_answer,
        )

        self._unsubscribe: Optional[Callable[[], None]] = None
        self._pending_chats: Optional[List[Chat]] = None
        self._pending_lock = threading.Lock()

    @property
    def is_signed_in(self) -> bool:
        return self.user_id is not None

    def select_repository(self, user_id: Optional[str]) -> ChatRepository:
        """
        Storage for a principal: local for guests, remote for signed-in users

        Args:
            user_id: Authenticated user id, None for a guest
        """
        if user_id is None:
            return self.local_repository
        return RemoteChatRepository(self.remote_db_path, user_id, fallback=self.local_repository)

    def sign_in(self, user_id: str) -> bool:
        """
        Switch to the user's remote storage

        Coming from the guest state, the guest chats are transferred first.
        A failed transfer does not block the sign-in.

        Args:
            user_id: Authenticated user id

        Returns:
            True if guest chats were transferred
        """
        if self.user_id == user_id:
            return False

        was_guest = self.user_id is None
        self._stop_listening()
        self.store.cancel_turn()

        remote = self.select_repository(user_id)
        transferred = False
        with log_execution_time(self.logger, "chat session sign-in", user_id=user_id):
            if was_guest:
                transferred = transfer_guest_chats(self.store.collection_snapshot(), remote,
                                                   self.local_repository)

            self.user_id = user_id
            self.repository = remote
            self.store.attach_repository(remote)
            self.store.replace_collection(remote.load())

        if remote.supports_live_updates:
            self._unsubscribe = remote.subscribe(self._on_remote_update)
            self.apply_pending_updates()

        self.logger.info(f"Chat session signed in: {user_id} (guest chats transferred: {transferred})")
        return transferred

    def sign_out(self):
        """Drop the remote subscription and go back to guest storage"""
        if self.user_id is None:
            return

        self._stop_listening()
        self.store.cancel_turn()

        previous_user = self.user_id
        self.user_id = None
        self.repository = self.local_repository
        self.store.attach_repository(self.local_repository)
        self.store.replace_collection(self.local_repository.load())
        with self._pending_lock:
            self._pending_chats = None

        self.logger.info(f"Chat session signed out: {previous_user}")

    def _on_remote_update(self, chats: List[Chat]):
        with self._pending_lock:
            self._pending_chats = chats

    def apply_pending_updates(self) -> bool:
        """
        Apply the latest buffered remote collection to the store

        Returns:
            True if an update was applied
        """
        with self._pending_lock:
            chats, self._pending_chats = self._pending_chats, None
        if chats is None:
            return False
        self.store.apply_remote_snapshot(chats)
        return True

    def _stop_listening(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def close(self):
        """Release the remote subscription"""
        self._stop_listening()
