"""Service layer: persistence, pending actions and the conversation orchestrator."""

from sheetchat.services.confirmation_relay import ConfirmationRelay, PendingConfirmation
from sheetchat.services.conversation_service import ConversationService
from sheetchat.services.pending_action_service import PendingActionService
from sheetchat.services.thread_store import ThreadStore

__all__ = [
    "ConfirmationRelay",
    "ConversationService",
    "PendingActionService",
    "PendingConfirmation",
    "ThreadStore",
]
