"""
Conversation store - owns the in-memory chat collection.

All chat and message mutations go through ConversationStore. It drives one
assistant turn at a time: the turn is a generator of MessageSnapshot objects
that pulls fragments from the completion client, applies every snapshot to
the placeholder message and writes the collection when the turn ends.
"""

import copy
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional

from services.ai_service.llm_client import get_completion_client
from services.ai_service.models import MessageSnapshot
from services.ai_service.stream_accumulator import StreamingAccumulator
from services.chat_service.chat_repository import ChatRepository, PersistenceError
from services.chat_service.models import (
    Chat, Message, ROLE_ASSISTANT, ROLE_USER, create_default_chat, derive_title
)
from utils.logging_config import get_logger, get_error_tracker, log_conversation_event


@dataclass
class AssistantTurn:
    """One assistant response being streamed into a placeholder message"""
    chat_id: str
    message_id: str
    history: List[Message] = field(default_factory=list)
    cancelled: bool = False


class TurnStream:
    """
    Snapshot iterator of one assistant turn.

    Closing it releases the turn, including when it is closed before the
    first snapshot was pulled.
    """

    def __init__(self, turn: AssistantTurn, snapshots: Iterator[MessageSnapshot],
                 on_close: Callable[[AssistantTurn], None]):
        self.turn = turn
        self._snapshots = snapshots
        self._on_close = on_close

    def __iter__(self):
        return self

    def __next__(self) -> MessageSnapshot:
        return next(self._snapshots)

    def close(self):
        self._snapshots.close()
        self._on_close(self.turn)


class ConversationStore:
    """
    In-memory chat collection with exactly one active chat.

    Storage is delegated to a ChatRepository; a failed write is logged and
    never rolls back in-memory state.
    """

    def __init__(self, repository: ChatRepository, completion_client=None,
                 chats: Optional[List[Chat]] = None,
                 on_title_derived: Optional[Callable[[str, str], None]] = None,
                 on_active_chat_deleted: Optional[Callable[[str], None]] = None,
                 on_first_answer: Optional[Callable[[], None]] = None):
        """
        Initialize conversation store

        Args:
            repository: Storage backend for the collection
            completion_client: Source of completion fragments; the global
                client is used when omitted
            chats: Initial collection; loaded from the repository when omitted
            on_title_derived: Called with (chat_id, title) when a chat gets its title
            on_active_chat_deleted: Called with the new active chat id after
                the active chat was deleted
            on_first_answer: Called once per turn on the first answer text
        """
        self.logger = get_logger(__name__)
        self.repository = repository
        self._completion_client = completion_client
        self.on_title_derived = on_title_derived
        self.on_active_chat_deleted = on_active_chat_deleted
        self.on_first_answer = on_first_answer

        self.chats: List[Chat] = []
        self.active_chat_id: Optional[str] = None
        self._active_turn: Optional[AssistantTurn] = None

        self.replace_collection(chats if chats is not None else repository.load())

    @property
    def completion_client(self):
        if self._completion_client is None:
            self._completion_client = get_completion_client()
        return self._completion_client

    # Collection access

    @property
    def is_streaming(self) -> bool:
        return self._active_turn is not None

    @property
    def active_turn(self) -> Optional[AssistantTurn]:
        return self._active_turn

    @property
    def active_chat(self) -> Chat:
        chat = self.get_chat(self.active_chat_id)
        if chat is None:
            # Collection is never empty, so the first chat is always there
            chat = self.chats[0]
            self.active_chat_id = chat.id
        return chat

    def get_chat(self, chat_id: Optional[str]) -> Optional[Chat]:
        for chat in self.chats:
            if chat.id == chat_id:
                return chat
        return None

    def _find_message(self, message_id: str, chat_id: Optional[str] = None) -> Optional[Message]:
        chats = [self.get_chat(chat_id)] if chat_id else self.chats
        for chat in chats:
            if chat is None:
                continue
            index = chat.find_message_index(message_id)
            if index is not None:
                return chat.messages[index]
        return None

    def collection_snapshot(self) -> List[Chat]:
        """Deep copy of the collection, safe to hand to other components"""
        return copy.deepcopy(self.chats)

    def search_chats(self, query: str) -> List[Chat]:
        """
        Chats with at least one message containing the query

        Args:
            query: Case-insensitive search text; empty matches every chat

        Returns:
            Matching chats in collection order
        """
        needle = (query or "").strip().lower()
        if not needle:
            return list(self.chats)
        return [
            chat for chat in self.chats
            if any(needle in message.content.lower() for message in chat.messages)
        ]

    # Collection lifecycle

    def attach_repository(self, repository: ChatRepository):
        """Route subsequent writes to another backend"""
        self.repository = repository
        self.logger.debug(f"Attached repository: {type(repository).__name__}")

    def replace_collection(self, chats: List[Chat]):
        """
        Swap in a whole new collection and activate its first chat

        Any in-flight turn is orphaned.
        """
        self._cancel_turn()
        self.chats = list(chats) if chats else [create_default_chat()]
        self.active_chat_id = self.chats[0].id

    def apply_remote_snapshot(self, chats: List[Chat]):
        """
        Apply a collection pushed by remote storage

        A chat with an in-flight turn keeps its local version until the turn
        ends. The active chat stays active when it is still present.
        """
        incoming = list(chats)
        turn = self._active_turn
        if turn is not None:
            local_chat = self.get_chat(turn.chat_id)
            if local_chat is not None:
                for index, chat in enumerate(incoming):
                    if chat.id == local_chat.id:
                        incoming[index] = local_chat
                        break
                else:
                    incoming.insert(0, local_chat)

        self.chats = incoming or [create_default_chat()]
        if self.get_chat(self.active_chat_id) is None:
            self.active_chat_id = self.chats[0].id

    def persist(self) -> bool:
        """
        Write the collection to the attached repository

        Returns:
            True if the write succeeded
        """
        try:
            return bool(self.repository.save(self.chats))
        except PersistenceError as e:
            get_error_tracker().track_error(e, "persist_chats", chat_count=len(self.chats))
            return False

    def create_chat(self) -> Chat:
        """Add an empty chat at the top of the list and make it active"""
        chat = create_default_chat()
        self.chats.insert(0, chat)
        self.set_active_chat(chat.id)
        log_conversation_event(self.logger, "created", chat.id)
        self.persist()
        return chat

    def set_active_chat(self, chat_id: str) -> bool:
        """
        Activate a chat; switching away from a streaming chat orphans its turn

        Returns:
            True if the chat exists
        """
        if self.get_chat(chat_id) is None:
            return False
        if self._active_turn is not None and self._active_turn.chat_id != chat_id:
            self._cancel_turn()
        self.active_chat_id = chat_id
        return True

    def delete_chat(self, chat_id: str) -> bool:
        """
        Remove a chat from the collection and from storage

        Deleting the active chat activates the first remaining chat, or a new
        default chat when none remain.

        Returns:
            True if the chat existed
        """
        chat = self.get_chat(chat_id)
        if chat is None:
            return False

        if self._active_turn is not None and self._active_turn.chat_id == chat_id:
            self._cancel_turn(persist=False)

        self.chats.remove(chat)
        self.repository.delete_chat(chat_id)
        log_conversation_event(self.logger, "deleted", chat_id)

        if chat_id == self.active_chat_id:
            if not self.chats:
                self.chats.append(create_default_chat())
            self.active_chat_id = self.chats[0].id
            if self.on_active_chat_deleted is not None:
                self.on_active_chat_deleted(self.active_chat_id)

        self.persist()
        return True

    # Messages

    def append_message(self, chat_id: str, message: Message) -> bool:
        """
        Append a message; the first message of an empty chat sets its title

        Returns:
            True if the chat exists
        """
        chat = self.get_chat(chat_id)
        if chat is None:
            return False

        if not chat.messages:
            chat.title = derive_title(message.content)
            log_conversation_event(self.logger, "title_derived", chat.id, title=chat.title)
            if self.on_title_derived is not None:
                self.on_title_derived(chat.id, chat.title)

        chat.messages.append(message)
        return True

    def start_assistant_turn(self, chat_id: str) -> Optional[str]:
        """
        Append an empty assistant placeholder

        Returns:
            Id of the placeholder, or None if the chat does not exist
        """
        chat = self.get_chat(chat_id)
        if chat is None:
            return None
        placeholder = Message(role=ROLE_ASSISTANT, content="", reasoning="", reasoning_expanded=True)
        chat.messages.append(placeholder)
        return placeholder.id

    def apply_snapshot(self, message_id: str, snapshot: MessageSnapshot,
                       chat_id: Optional[str] = None) -> bool:
        """Copy a snapshot onto a message; no-op when the message is gone"""
        message = self._find_message(message_id, chat_id)
        if message is None:
            return False
        message.content = snapshot.content
        message.reasoning = snapshot.reasoning
        message.reasoning_expanded = snapshot.reasoning_expanded
        return True

    def toggle_reasoning_expanded(self, chat_id: str, message_index: int) -> bool:
        """Flip the reasoning disclosure of a message; display state only, not written"""
        chat = self.get_chat(chat_id)
        if chat is None or not 0 <= message_index < len(chat.messages):
            return False
        message = chat.messages[message_index]
        message.reasoning_expanded = not message.reasoning_expanded
        return True

    def begin_edit(self, message_id: str) -> bool:
        message = self._find_message(message_id, self.active_chat_id)
        if message is None:
            return False
        if not message.editing:
            message.saved_original_content = message.content
            message.editing = True
        return True

    def update_edit_draft(self, message_id: str, text: str) -> bool:
        message = self._find_message(message_id, self.active_chat_id)
        if message is None or not message.editing:
            return False
        message.content = text
        return True

    def cancel_edit(self, message_id: str) -> bool:
        """Leave edit mode and restore the content captured by begin_edit"""
        message = self._find_message(message_id, self.active_chat_id)
        if message is None or not message.editing:
            return False
        if message.saved_original_content is not None:
            message.content = message.saved_original_content
        message.editing = False
        message.saved_original_content = None
        return True

    def commit_edit(self, message_id: str, new_content: str) -> Optional[Iterator[MessageSnapshot]]:
        """
        Save an edit, discarding every later message

        An edited user message is resubmitted: the message itself is reused
        as the turn's input and a new assistant response is streamed.

        Args:
            message_id: Message being edited
            new_content: Replacement content

        Returns:
            The snapshot stream of the resubmitted turn, or None when nothing
            was resubmitted
        """
        chat = self.active_chat
        index = chat.find_message_index(message_id)
        if index is None:
            return None

        message = chat.messages[index]
        if self.is_streaming:
            self.logger.warning("Edit rejected: a response is still streaming")
            return None
        if message.role == ROLE_USER and not new_content.strip():
            self.logger.warning("Edit rejected: empty user message")
            return None

        del chat.messages[index + 1:]
        message.content = new_content
        message.editing = False
        message.saved_original_content = None
        log_conversation_event(self.logger, "message_edited", chat.id, message_index=index)

        if message.role == ROLE_USER:
            return self._begin_turn(chat)

        self.persist()
        return None

    def regenerate(self, message_index: int) -> Optional[Iterator[MessageSnapshot]]:
        """
        Drop the message at message_index and everything after it, then
        resubmit the preceding user message

        Returns:
            The snapshot stream of the new turn, or None when rejected
        """
        chat = self.active_chat
        if self.is_streaming:
            self.logger.warning("Regenerate rejected: a response is still streaming")
            return None
        if message_index <= 0 or message_index > len(chat.messages):
            self.logger.warning(f"Regenerate rejected: invalid message index {message_index}")
            return None
        if chat.messages[message_index - 1].role != ROLE_USER:
            self.logger.warning("Regenerate rejected: preceding message is not from the user")
            return None

        del chat.messages[message_index:]
        log_conversation_event(self.logger, "regenerated", chat.id, message_index=message_index)
        return self._begin_turn(chat)

    def handle_submit(self, text: str) -> Optional[Iterator[MessageSnapshot]]:
        """
        Accept user input for the active chat

        The user message and the assistant placeholder are added right away;
        the completion is only requested once the returned stream is consumed.

        Args:
            text: User input

        Returns:
            The snapshot stream of the new turn, or None when the input was
            empty or a response is still streaming
        """
        if not text or not text.strip():
            return None
        if self.is_streaming:
            self.logger.warning("Submit rejected: a response is still streaming")
            return None

        chat = self.active_chat
        self.append_message(chat.id, Message(role=ROLE_USER, content=text))
        return self._begin_turn(chat)

    # Turns

    def _begin_turn(self, chat: Chat) -> TurnStream:
        history = [copy.copy(message) for message in chat.messages]
        message_id = self.start_assistant_turn(chat.id)
        turn = AssistantTurn(chat_id=chat.id, message_id=message_id, history=history)
        self._active_turn = turn
        log_conversation_event(self.logger, "turn_started", chat.id, message_count=len(history))
        self.persist()
        return TurnStream(turn, self._run_turn(turn), on_close=self._release_turn)

    def _release_turn(self, turn: AssistantTurn):
        # A generator closed before its first next() never runs its finally block
        if self._active_turn is turn:
            self._cancel_turn()

    def _is_turn_live(self, turn: AssistantTurn) -> bool:
        return (
            not turn.cancelled
            and self._active_turn is turn
            and self.get_chat(turn.chat_id) is not None
            and self.active_chat_id == turn.chat_id
        )

    def _run_turn(self, turn: AssistantTurn) -> Iterator[MessageSnapshot]:
        accumulator = StreamingAccumulator(on_first_answer=self.on_first_answer)
        snapshots = accumulator.accumulate(self.completion_client.stream_completion(turn.history))
        completed = False
        try:
            for snapshot in snapshots:
                if not self._is_turn_live(turn):
                    self.logger.info(f"Turn in chat {turn.chat_id} orphaned, stopping stream")
                    break

                if snapshot.failed:
                    self._replace_with_error(turn, snapshot)
                else:
                    self.apply_snapshot(turn.message_id, snapshot, turn.chat_id)
                yield snapshot
            else:
                completed = True
        finally:
            snapshots.close()
            if self._active_turn is turn:
                if completed:
                    self._active_turn = None
                    log_conversation_event(self.logger, "turn_completed", turn.chat_id,
                                           fragments=accumulator.fragment_count)
                    self.persist()
                else:
                    # Consumer stopped pulling
                    self._cancel_turn()

    def _replace_with_error(self, turn: AssistantTurn, snapshot: MessageSnapshot):
        chat = self.get_chat(turn.chat_id)
        index = chat.find_message_index(turn.message_id) if chat else None
        if index is None:
            return
        error_message = Message(role=ROLE_ASSISTANT, content=snapshot.content, reasoning="",
                                reasoning_expanded=False)
        chat.messages[index] = error_message
        turn.message_id = error_message.id

    def cancel_turn(self) -> bool:
        """Stop the in-flight turn, keeping whatever it produced so far"""
        if self._active_turn is None:
            return False
        self._cancel_turn()
        return True

    def _cancel_turn(self, persist: bool = True):
        turn = self._active_turn
        if turn is None:
            return
        turn.cancelled = True
        self._active_turn = None

        chat = self.get_chat(turn.chat_id)
        index = chat.find_message_index(turn.message_id) if chat else None
        if index is not None:
            message = chat.messages[index]
            if not message.content and not message.reasoning:
                # Nothing arrived yet, drop the placeholder
                del chat.messages[index]
            else:
                message.reasoning_expanded = False
        log_conversation_event(self.logger, "turn_cancelled", turn.chat_id)
        if persist and self.get_chat(turn.chat_id) is not None:
            self.persist()
