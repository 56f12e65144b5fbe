from __future__ import annotations


class StoreError(Exception):
    pass


class ConversationNotFound(StoreError):
    pass


class ProfileNotFound(StoreError):
    pass
