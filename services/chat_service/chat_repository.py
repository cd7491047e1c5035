"""
Chat repositories - durable storage for the chat collection.

Two interchangeable backends behind ChatRepository:
- LocalChatRepository: the whole collection serialized under one fixed key
  of a key-value table (guest use)
- RemoteChatRepository: one row per chat namespaced by user id, merge-upsert
  writes with a server write timestamp, soft-delete and live listeners
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple
import json
import os
import sqlite3
import threading

from services.chat_service.models import Chat, Message, create_default_chat, new_id
from utils.logging_config import get_logger


ChatListener = Callable[[List[Chat]], None]


class PersistenceError(Exception):
    """Raised when the underlying storage rejects a write"""
    pass


def _server_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class _SQLiteStore:
    """Connection handling shared by both backends"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        os.makedirs(os.path.dirname(self.db_path) if os.path.dirname(self.db_path) else ".", exist_ok=True)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


class ChatRepository(ABC):
    """Persistence contract for the chat collection"""

    #: Principal the repository is bound to, None for guest storage
    user_id: Optional[str] = None

    @abstractmethod
    def load(self) -> List[Chat]:
        """Load the collection; never empty"""

    @abstractmethod
    def save(self, chats: List[Chat]) -> bool:
        """Persist the whole collection"""

    @abstractmethod
    def clear(self) -> bool:
        """Remove the stored collection"""

    @abstractmethod
    def delete_chat(self, chat_id: str) -> bool:
        """Remove one chat from storage"""

    def subscribe(self, on_update: ChatListener) -> Callable[[], None]:
        """Register a live listener; returns the unsubscribe function"""
        raise NotImplementedError(f"{type(self).__name__} does not support live updates")

    @property
    def supports_live_updates(self) -> bool:
        """True when subscribe() delivers collection updates"""
        return False


class LocalChatRepository(_SQLiteStore, ChatRepository):
    """
    Key-value storage holding the serialized collection under one key.
    """

    def __init__(self, db_path: str, storage_key: str = "guest_chats"):
        """
        Initialize local repository

        Args:
            db_path: Path to the SQLite key-value database
            storage_key: Key holding the serialized collection
        """
        super().__init__(db_path)
        self.logger = get_logger(__name__)
        self.storage_key = storage_key
        self._init_database()

    def _init_database(self):
        """Create the key-value table"""
        try:
            with self._connect() as conn:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS key_value_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                ''')
            self.logger.debug(f"Local chat storage ready: {self.db_path}")
        except sqlite3.Error as e:
            self.logger.error(f"Error initializing local chat storage: {e}")
            raise

    def _read(self) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                'SELECT value FROM key_value_store WHERE key = ?', (self.storage_key,)
            ).fetchone()
        return row[0] if row else None

    def _write(self, chats: List[Chat]):
        payload = json.dumps([chat.to_dict() for chat in chats], ensure_ascii=False)
        with self._connect() as conn:
            conn.execute('''
                INSERT INTO key_value_store (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            ''', (self.storage_key, payload, _server_timestamp()))

    def has_stored_chats(self) -> bool:
        """Check whether anything is stored under the key"""
        try:
            return self._read() is not None
        except sqlite3.Error as e:
            self.logger.error(f"Error reading local chat storage: {e}")
            return False

    def load(self) -> List[Chat]:
        """
        Load the stored collection

        Returns:
            Stored chats, or one default chat when nothing usable is stored
        """
        try:
            raw = self._read()
            if raw:
                data = json.loads(raw)
                if isinstance(data, list):
                    chats = [Chat.from_dict(item) for item in data if isinstance(item, dict)]
                    if chats:
                        self.logger.debug(f"Loaded {len(chats)} chats from local storage")
                        return chats
        except (sqlite3.Error, ValueError) as e:
            self.logger.error(f"Error loading chats from local storage: {e}")

        return [create_default_chat()]

    def save(self, chats: List[Chat]) -> bool:
        """
        Overwrite the stored collection

        Raises:
            PersistenceError: If the storage write fails
        """
        try:
            self._write(chats)
            return True
        except sqlite3.Error as e:
            self.logger.error(f"Error saving chats to local storage: {e}")
            raise PersistenceError(f"Local save failed: {e}") from e

    def clear(self) -> bool:
        """Remove the stored collection key"""
        try:
            with self._connect() as conn:
                conn.execute('DELETE FROM key_value_store WHERE key = ?', (self.storage_key,))
            self.logger.info("Cleared local chat storage")
            return True
        except sqlite3.Error as e:
            self.logger.error(f"Error clearing local chat storage: {e}")
            return False

    def delete_chat(self, chat_id: str) -> bool:
        """Hard delete: rewrite the stored collection without the chat"""
        try:
            raw = self._read()
            if not raw:
                return True
            data = json.loads(raw)
            remaining = [Chat.from_dict(item) for item in data
                         if isinstance(item, dict) and item.get("id") != chat_id]
            self._write(remaining)
            return True
        except (sqlite3.Error, ValueError) as e:
            self.logger.error(f"Error deleting chat {chat_id} from local storage: {e}")
            return False


# Live listeners per (database, user); shared by every repository instance in the process
_listeners: Dict[Tuple[str, str], List[ChatListener]] = {}
_listeners_lock = threading.Lock()


class RemoteChatRepository(_SQLiteStore, ChatRepository):
    """
    Per-user chat documents with soft-delete and live listeners.
    """

    def __init__(self, db_path: str, user_id: str, fallback: LocalChatRepository):
        """
        Initialize remote repository

        Args:
            db_path: Path to the shared chat database
            user_id: Principal namespacing every read and write
            fallback: Local storage receiving the collection when a write fails
        """
        if not user_id:
            raise ValueError("Remote chat storage requires a user id")
        super().__init__(db_path)
        self.logger = get_logger(__name__)
        self.user_id = user_id
        self.fallback = fallback
        self._init_database()

    def _init_database(self):
        """Create the chat document table"""
        try:
            with self._connect() as conn:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS user_chats (
                        user_id TEXT NOT NULL,
                        chat_id TEXT NOT NULL,
                        title TEXT,
                        messages TEXT,
                        created_at TEXT,
                        updated_at TEXT NOT NULL,
                        deleted INTEGER NOT NULL DEFAULT 0,
                        PRIMARY KEY (user_id, chat_id)
                    )
                ''')
                conn.execute('''
                    CREATE INDEX IF NOT EXISTS idx_user_chats_visible
                    ON user_chats (user_id, deleted, updated_at)
                ''')
        except sqlite3.Error as e:
            self.logger.error(f"Error initializing remote chat storage: {e}")
            raise

    @property
    def supports_live_updates(self) -> bool:
        return True

    def _row_to_chat(self, row) -> Chat:
        """Build a chat from a stored row, defaulting malformed fields"""
        chat_id, title, raw_messages, created_at = row
        chat = Chat.from_dict({"id": chat_id, "title": title, "created_at": created_at})
        if raw_messages:
            try:
                data = json.loads(raw_messages)
                if isinstance(data, list):
                    chat.messages = [Message.from_dict(item) for item in data if isinstance(item, dict)]
            except ValueError:
                self.logger.warning(f"Unreadable messages for chat {chat_id}, loading it empty")
        return chat

    def _fetch_visible(self) -> List[Chat]:
        with self._connect() as conn:
            rows = conn.execute('''
                SELECT chat_id, title, messages, created_at FROM user_chats
                WHERE user_id = ? AND deleted = 0
                ORDER BY updated_at DESC, created_at DESC
            ''', (self.user_id,)).fetchall()
        return [self._row_to_chat(row) for row in rows]

    def _upsert(self, conn, chat: Chat, timestamp: str):
        messages = json.dumps([message.to_dict() for message in chat.messages], ensure_ascii=False)
        # Unchanged documents keep their write timestamp
        conn.execute('''
            INSERT INTO user_chats (user_id, chat_id, title, messages, created_at, updated_at, deleted)
            VALUES (?, ?, ?, ?, ?, ?, 0)
            ON CONFLICT(user_id, chat_id) DO UPDATE SET
                updated_at = CASE
                    WHEN user_chats.title IS excluded.title
                         AND user_chats.messages IS excluded.messages
                         AND user_chats.deleted = 0
                    THEN user_chats.updated_at
                    ELSE excluded.updated_at
                END,
                title = excluded.title,
                messages = excluded.messages,
                deleted = 0
        ''', (self.user_id, chat.id, chat.title, messages, chat.created_at.isoformat(), timestamp))

    def load(self) -> List[Chat]:
        """
        One-time filtered, timestamp-ordered fetch

        A user without visible chats gets one empty default chat, written
        immediately.

        Returns:
            Visible chats, newest write first
        """
        try:
            chats = self._fetch_visible()
            if chats:
                self.logger.info(f"Loaded {len(chats)} chats for user {self.user_id}")
                return chats

            default_chat = create_default_chat()
            with self._connect() as conn:
                self._upsert(conn, default_chat, _server_timestamp())
            self.logger.info(f"Created default chat for new user {self.user_id}")
            self._notify()
            return [default_chat]

        except sqlite3.Error as e:
            self.logger.error(f"Error loading chats for user {self.user_id}: {e}")
            return [create_default_chat()]

    def save(self, chats: List[Chat]) -> bool:
        """
        Merge-upsert every chat in one transaction

        On failure the collection is written to local storage instead.

        Returns:
            True if the remote write succeeded
        """
        try:
            timestamp = _server_timestamp()
            with self._connect() as conn:
                for chat in chats:
                    if not chat.id:
                        continue
                    self._upsert(conn, chat, timestamp)
            self.logger.debug(f"Saved {len(chats)} chats for user {self.user_id}")

        except sqlite3.Error as e:
            self.logger.error(f"Error saving chats for user {self.user_id}, writing local copy: {e}")
            try:
                self.fallback.save(chats)
            except PersistenceError as fallback_error:
                self.logger.error(f"Local fallback write failed too: {fallback_error}")
            return False

        self._notify()
        return True

    def create_chats(self, chats: List[Chat]) -> List[str]:
        """
        Insert chats as brand new documents, all or nothing

        Args:
            chats: Chats to copy; their ids are not reused

        Returns:
            Ids of the created documents

        Raises:
            PersistenceError: If the batch could not be written
        """
        new_ids = []
        timestamp = _server_timestamp()
        try:
            with self._connect() as conn:
                for chat in chats:
                    copy = Chat(id=new_id(), title=chat.title, messages=chat.messages,
                                created_at=chat.created_at)
                    self._upsert(conn, copy, timestamp)
                    new_ids.append(copy.id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Batch create failed: {e}") from e

        self._notify()
        return new_ids

    def delete_chat(self, chat_id: str) -> bool:
        """Soft delete: flag the document, keep the row"""
        try:
            with self._connect() as conn:
                conn.execute('''
                    UPDATE user_chats SET deleted = 1, updated_at = ?
                    WHERE user_id = ? AND chat_id = ?
                ''', (_server_timestamp(), self.user_id, chat_id))
        except sqlite3.Error as e:
            self.logger.error(f"Error deleting chat {chat_id} for user {self.user_id}: {e}")
            return False

        self.logger.info(f"Soft-deleted chat {chat_id} for user {self.user_id}")
        self._notify()
        return True

    def clear(self) -> bool:
        """Soft delete every chat of the user and drop the local copy"""
        success = True
        try:
            with self._connect() as conn:
                conn.execute('''
                    UPDATE user_chats SET deleted = 1, updated_at = ?
                    WHERE user_id = ?
                ''', (_server_timestamp(), self.user_id))
            self.logger.info(f"Marked all chats deleted for user {self.user_id}")
        except sqlite3.Error as e:
            self.logger.error(f"Error clearing chats for user {self.user_id}: {e}")
            success = False

        self.fallback.clear()
        if success:
            self._notify()
        return success

    def subscribe(self, on_update: ChatListener) -> Callable[[], None]:
        """
        Register a listener for this user's collection

        The listener receives the current collection right away and again
        after every change, until the returned function is called.
        """
        key = (os.path.abspath(self.db_path), self.user_id)
        with _listeners_lock:
            _listeners.setdefault(key, []).append(on_update)
        self.logger.debug(f"Listener registered for user {self.user_id}")

        self._deliver(on_update, self._snapshot_for_listeners())

        def unsubscribe():
            with _listeners_lock:
                registered = _listeners.get(key, [])
                if on_update in registered:
                    registered.remove(on_update)
                if not registered:
                    _listeners.pop(key, None)

        return unsubscribe

    def _snapshot_for_listeners(self) -> Optional[List[Chat]]:
        try:
            return self._fetch_visible()
        except sqlite3.Error as e:
            self.logger.error(f"Error in chat listener query for user {self.user_id}: {e}")
            return None

    def _deliver(self, listener: ChatListener, chats: Optional[List[Chat]]):
        if chats is None:
            return
        try:
            listener(chats)
        except Exception as e:
            self.logger.error(f"Error in chat listener: {e}", exc_info=True)

    def _notify(self):
        key = (os.path.abspath(self.db_path), self.user_id)
        with _listeners_lock:
            listeners = list(_listeners.get(key, []))
        if not listeners:
            return

        for listener in listeners:
            # Each listener gets its own copy of the collection
            self._deliver(listener, self._snapshot_for_listeners())
