"""
Chat interface service - handles chat UI components and interactions.
"""

import streamlit as st
from typing import Iterator, Optional

from config.app_config import get_config
from services.ai_service.models import MessageSnapshot
from services.chat_service.chat_session import ChatSession
from services.chat_service.conversation_store import ConversationStore
from services.chat_service.export import export_chat_markdown, export_filename
from services.chat_service.models import Message, ROLE_ASSISTANT, ROLE_USER
from services.ui_service.stream_renderer import StreamRenderer
from utils.logging_config import get_logger, log_user_interaction


PENDING_ACTION_KEY = "pending_action"
STREAM_RENDERER_KEY = "stream_renderer"


class ChatInterface:
    """
    Service for chat interface components and interactions.
    Handles the chat sidebar, message rendering, and streaming.

    Controls that start a new assistant turn (regenerate, saving an edit)
    queue a pending action and rerun; the app runs it before rendering so
    the stream is drawn below the current messages.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self.config = get_config()

    def create_stream_renderer(self, placeholder) -> StreamRenderer:
        """Create a snapshot renderer for Streamlit"""
        return StreamRenderer(placeholder, update_every=self.config.streaming.update_every)

    def on_first_answer(self):
        """First-answer notification for the response drawn in this session"""
        renderer = st.session_state.get(STREAM_RENDERER_KEY)
        if renderer is not None:
            renderer.mark_first_answer()

    def queue_action(self, action_type: str, **payload):
        st.session_state[PENDING_ACTION_KEY] = {"type": action_type, **payload}

    def pop_action(self) -> Optional[dict]:
        return st.session_state.pop(PENDING_ACTION_KEY, None)

    def run_action(self, store: ConversationStore, action: dict) -> Optional[Iterator[MessageSnapshot]]:
        """
        Apply a queued action to the store

        Returns:
            The snapshot stream when the action started a turn
        """
        action_type = action.get("type")
        if action_type == "regenerate":
            log_user_interaction(self.logger, "regenerate", message_index=action["message_index"])
            return store.regenerate(action["message_index"])
        if action_type == "commit_edit":
            log_user_interaction(self.logger, "edit_committed")
            return store.commit_edit(action["message_id"], action["content"])

        self.logger.warning(f"Unknown pending action: {action_type}")
        return None

    def render_sidebar(self, chat_session: ChatSession, auth_manager):
        """Render chat list, search, export and account controls"""
        store = chat_session.store

        with st.sidebar:
            st.markdown("## 💬 Chats")

            if st.button("➕ New Chat", use_container_width=True, type="secondary"):
                store.create_chat()
                log_user_interaction(self.logger, "chat_created")
                st.rerun()

            query = st.text_input("Search chats", key="chat_search", placeholder="Search messages...")
            chats = store.search_chats(query)
            st.caption(f"{len(chats)} chat{'s' if len(chats) != 1 else ''}")

            for chat in chats:
                col1, col2 = st.columns([5, 1])
                with col1:
                    is_active = chat.id == store.active_chat_id
                    if st.button(chat.title, key=f"select_{chat.id}", use_container_width=True,
                                 type="primary" if is_active else "secondary"):
                        store.set_active_chat(chat.id)
                        st.rerun()
                with col2:
                    if st.button("🗑", key=f"delete_{chat.id}", help="Delete chat"):
                        store.delete_chat(chat.id)
                        log_user_interaction(self.logger, "chat_deleted")
                        st.rerun()

            st.divider()
            active_chat = store.active_chat
            if active_chat.messages:
                st.download_button(
                    "⬇️ Export chat",
                    data=export_chat_markdown(active_chat, self.config.ui.assistant_name),
                    file_name=export_filename(active_chat),
                    mime="text/markdown",
                    use_container_width=True,
                )

            st.divider()
            st.subheader("👤 Account")
            if chat_session.is_signed_in:
                auth_manager.render_user_menu()
            else:
                if chat_session.local_repository.has_stored_chats():
                    st.caption(self.config.ui.sign_in_banner)
                auth_manager.render_auth_forms()

    def render_messages(self, store: ConversationStore):
        """Render the active chat; the placeholder of a running turn is skipped"""
        chat = store.active_chat
        streaming_id = store.active_turn.message_id if store.active_turn else None

        if not chat.messages:
            st.info(self.config.ui.empty_chat_message)
            return

        for index, message in enumerate(chat.messages):
            if message.id == streaming_id:
                continue
            try:
                self._render_message(store, chat.id, index, message)
            except Exception as e:
                self.logger.error(f"Error rendering message {message.id}: {e}")
                st.error("Error displaying message")

    def _render_message(self, store: ConversationStore, chat_id: str, index: int, message: Message):
        with st.chat_message(message.role):
            if message.role == ROLE_ASSISTANT and message.reasoning:
                label = "Hide reasoning" if message.reasoning_expanded else "Show reasoning"
                if st.button(label, key=f"toggle_{message.id}"):
                    store.toggle_reasoning_expanded(chat_id, index)
                    st.rerun()
                if message.reasoning_expanded:
                    with st.container(border=True):
                        st.caption(message.reasoning)

            if message.editing:
                self._render_editor(store, message)
                return

            st.markdown(message.content)

            col1, col2, _ = st.columns([1, 1, 6])
            with col1:
                if st.button("✏️", key=f"edit_{message.id}", help="Edit"):
                    store.begin_edit(message.id)
                    st.rerun()
            can_regenerate = (
                message.role == ROLE_ASSISTANT
                and index > 0
                and store.active_chat.messages[index - 1].role == ROLE_USER
            )
            if can_regenerate:
                with col2:
                    if st.button("🔄", key=f"regenerate_{message.id}", help="Regenerate"):
                        self.queue_action("regenerate", message_index=index)
                        st.rerun()

    def _render_editor(self, store: ConversationStore, message: Message):
        draft = st.text_area("Edit message", value=message.content, key=f"draft_{message.id}",
                             label_visibility="collapsed")
        if draft != message.content:
            store.update_edit_draft(message.id, draft)

        col1, col2, _ = st.columns([1, 1, 4])
        with col1:
            if st.button("Save", key=f"save_{message.id}", type="primary"):
                self.queue_action("commit_edit", message_id=message.id, content=draft)
                st.rerun()
        with col2:
            if st.button("Cancel", key=f"cancel_{message.id}"):
                store.cancel_edit(message.id)
                st.rerun()

    def stream_response(self, snapshots: Iterator[MessageSnapshot]) -> Optional[MessageSnapshot]:
        """
        Draw a streaming turn as it arrives

        Returns:
            The last snapshot, or None if the stream produced nothing
        """
        assistant_msg = st.chat_message(ROLE_ASSISTANT)
        renderer = self.create_stream_renderer(assistant_msg.empty())
        st.session_state[STREAM_RENDERER_KEY] = renderer
        renderer.start()

        last = None
        try:
            for snapshot in snapshots:
                renderer.render(snapshot)
                last = snapshot
        finally:
            st.session_state.pop(STREAM_RENDERER_KEY, None)
            close = getattr(snapshots, "close", None)
            if close is not None:
                close()
        return last


# Global interface instance
_chat_interface: Optional[ChatInterface] = None


def get_chat_interface() -> ChatInterface:
    """Get the global chat interface instance"""
    global _chat_interface
    if _chat_interface is None:
        _chat_interface = ChatInterface()
    return _chat_interface
