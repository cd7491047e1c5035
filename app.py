import streamlit as st

from config.app_config import get_config
from services.auth_service import get_auth_manager
from services.chat_service.chat_session import ChatSession
from services.ui_service import get_chat_interface
from utils.logging_config import initialize_logging, get_logger, log_user_interaction

# Initialize logging and error tracking
error_tracker = initialize_logging()
logger = get_logger(__name__)

# Get configuration
config = get_config()

st.set_page_config(page_title=config.ui.app_title, page_icon="💬")

interface = get_chat_interface()


def get_chat_session() -> ChatSession:
    """Chat session of this browser tab, created on first use"""
    if "chat_session" not in st.session_state:
        st.session_state.chat_session = ChatSession(
            on_first_answer=interface.on_first_answer,
            on_active_chat_deleted=lambda chat_id: st.toast("Chat deleted"),
        )
        logger.info("Chat session created")
    return st.session_state.chat_session


def sync_principal(chat_session: ChatSession):
    """Follow sign-in and sign-out with the matching chat storage"""
    user_id = get_auth_manager().get_current_user_id() if config.auth.enabled else None
    if user_id == chat_session.user_id:
        return

    if user_id:
        if chat_session.sign_in(user_id):
            st.toast("Your guest chats were saved to your account")
    else:
        chat_session.sign_out()


def main_app():
    """Main application content"""
    st.title(config.ui.app_title)

    try:
        chat_session = get_chat_session()
        sync_principal(chat_session)
        chat_session.apply_pending_updates()
    except Exception as e:
        error_tracker.track_error(e, "chat_session_initialization")
        st.error("Failed to load your chats. Please refresh the page.")
        return

    if config.auth.enabled and not config.auth.allow_guest_mode and not chat_session.is_signed_in:
        st.info(config.ui.sign_in_banner)
        get_auth_manager().render_auth_forms()
        return

    store = chat_session.store
    interface.render_sidebar(chat_session, get_auth_manager())

    # Always registered; Streamlit pins it to the bottom of the page
    prompt = st.chat_input(config.ui.chat_input_placeholder)

    snapshots = None
    action = interface.pop_action()
    if action:
        snapshots = interface.run_action(store, action)
    elif prompt:
        log_user_interaction(logger, "message_submitted", query_length=len(prompt),
                             chat_id=store.active_chat_id)
        snapshots = store.handle_submit(prompt)

    try:
        interface.render_messages(store)
        if snapshots is not None:
            last = interface.stream_response(snapshots)
            if last is not None and last.failed:
                logger.warning(f"Response failed in chat {store.active_chat_id}")
    finally:
        # Streamlit may stop the script before the stream is drawn
        if snapshots is not None:
            snapshots.close()

    if snapshots is not None:
        st.rerun()


main_app()
