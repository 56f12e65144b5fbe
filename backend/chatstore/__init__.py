from .cache import TTLCache, hash_key
from .conversation_store import ConversationStore
from .database import SQLiteChatDB
from .errors import ConversationNotFound, ProfileNotFound, StoreError
from .models import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_USER,
    AssistantMessageMeta,
    Conversation,
    Message,
    MessageMetadata,
    Profile,
    SummaryMessageMeta,
    UserMessageMeta,
)
from .profile_store import ProfileStore

__all__ = [
    "ROLE_ASSISTANT",
    "ROLE_SYSTEM",
    "ROLE_USER",
    "AssistantMessageMeta",
    "Conversation",
    "ConversationNotFound",
    "ConversationStore",
    "Message",
    "MessageMetadata",
    "Profile",
    "ProfileNotFound",
    "ProfileStore",
    "SQLiteChatDB",
    "StoreError",
    "SummaryMessageMeta",
    "TTLCache",
    "UserMessageMeta",
    "hash_key",
]
