"""
One-shot migration of guest chats into a newly signed-in user's storage.
"""

from typing import List

from services.chat_service.chat_repository import LocalChatRepository, PersistenceError, RemoteChatRepository
from services.chat_service.models import Chat
from utils.logging_config import get_logger, get_error_tracker


logger = get_logger(__name__)


def transfer_guest_chats(guest_chats: List[Chat], remote: RemoteChatRepository,
                         local: LocalChatRepository) -> bool:
    """
    Copy every non-empty guest chat into remote storage as a new document

    The copy is a single batch. Local guest storage is cleared only when the
    batch succeeds; a failure leaves it untouched for a later attempt.

    Args:
        guest_chats: Guest collection at the moment of sign-in
        remote: Storage bound to the newly signed-in user
        local: Guest storage to clear afterwards

    Returns:
        True if at least one chat was transferred
    """
    if not guest_chats:
        return False

    to_transfer = [chat for chat in guest_chats if chat.messages]
    if not to_transfer:
        logger.info("No non-empty guest chats to transfer")
        return False

    try:
        created_ids = remote.create_chats(to_transfer)
    except PersistenceError as e:
        get_error_tracker().track_error(e, "guest_transfer", user_id=remote.user_id,
                                        chat_count=len(to_transfer))
        return False

    local.clear()
    logger.info(f"Transferred {len(created_ids)} guest chats to user {remote.user_id}")
    return True
