from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any, Callable, Iterable

from .database import SQLiteChatDB
from .errors import ConversationNotFound, StoreError
from .models import (
    MESSAGE_ROLES,
    Conversation,
    Message,
    MessageMetadata,
    mark_metadata_compressed,
    metadata_from_dict,
    metadata_to_dict,
)
from .time_utils import to_iso, utc_now


def _json_dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        token_count=int(row["token_count"]),
        metadata=metadata_from_dict(json.loads(row["metadata_json"])),
        created_at=row["created_at"],
        seq=int(row["seq"]),
    )


class ConversationStore:
    def __init__(self, db: SQLiteChatDB, clock: Callable = utc_now) -> None:
        self._db = db
        self._clock = clock

    def create(self, *, profile_id: str | None = None, title: str | None = None) -> Conversation:
        now = to_iso(self._clock())
        conversation_id = uuid.uuid4().hex
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO conversations (
                  id, profile_id, title, token_usage, last_activity_at, created_at, updated_at
                )
                VALUES (?, ?, ?, 0, ?, ?, ?)
                """,
                (conversation_id, profile_id, title, now, now, now),
            )
        return Conversation(
            id=conversation_id,
            profile_id=profile_id,
            title=title,
            token_usage=0,
            last_activity_at=now,
            created_at=now,
        )

    def get(self, conversation_id: str) -> Conversation:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT id, profile_id, title, token_usage, last_activity_at, created_at
                FROM conversations
                WHERE id = ?
                """,
                (conversation_id,),
            ).fetchone()
            if not row:
                raise ConversationNotFound(f"Conversation not found: {conversation_id}")
            messages = [
                _row_to_message(message_row)
                for message_row in conn.execute(
                    """
                    SELECT seq, id, conversation_id, role, content, token_count, metadata_json, created_at
                    FROM messages
                    WHERE conversation_id = ?
                    ORDER BY seq ASC
                    """,
                    (conversation_id,),
                ).fetchall()
            ]
        return Conversation(
            id=row["id"],
            profile_id=row["profile_id"],
            title=row["title"],
            token_usage=int(row["token_usage"]),
            last_activity_at=row["last_activity_at"],
            created_at=row["created_at"],
            messages=messages,
        )

    def append_message(
        self,
        conversation_id: str,
        *,
        role: str,
        content: str,
        token_count: int,
        metadata: MessageMetadata,
    ) -> Message:
        if role not in MESSAGE_ROLES:
            raise StoreError(f"Unsupported message role: {role}")
        now = to_iso(self._clock())
        message_id = uuid.uuid4().hex
        with self._db.connection() as conn:
            # Message insert and counter increment share one transaction.
            updated = conn.execute(
                """
                UPDATE conversations
                SET token_usage = token_usage + ?,
                    last_activity_at = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (int(token_count), now, now, conversation_id),
            ).rowcount
            if not updated:
                raise ConversationNotFound(f"Conversation not found: {conversation_id}")
            cursor = conn.execute(
                """
                INSERT INTO messages (
                  id, conversation_id, role, content, token_count, metadata_json, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message_id,
                    conversation_id,
                    role,
                    content,
                    int(token_count),
                    _json_dumps(metadata_to_dict(metadata)),
                    now,
                ),
            )
            seq = int(cursor.lastrowid or 0)
        return Message(
            id=message_id,
            conversation_id=conversation_id,
            role=role,
            content=content,
            token_count=int(token_count),
            metadata=metadata,
            created_at=now,
            seq=seq,
        )

    def mark_compressed(self, message_ids: Iterable[str]) -> int:
        ids = list(message_ids)
        if not ids:
            return 0
        marked = 0
        with self._db.connection() as conn:
            for message_id in ids:
                row = conn.execute(
                    "SELECT metadata_json FROM messages WHERE id = ?",
                    (message_id,),
                ).fetchone()
                if not row:
                    continue
                meta = mark_metadata_compressed(metadata_from_dict(json.loads(row["metadata_json"])))
                conn.execute(
                    "UPDATE messages SET metadata_json = ? WHERE id = ?",
                    (_json_dumps(metadata_to_dict(meta)), message_id),
                )
                marked += 1
        return marked

    def set_title_if_absent(self, conversation_id: str, title: str) -> bool:
        now = to_iso(self._clock())
        with self._db.connection() as conn:
            updated = conn.execute(
                """
                UPDATE conversations
                SET title = ?, updated_at = ?
                WHERE id = ? AND (title IS NULL OR title = '')
                """,
                (title, now, conversation_id),
            ).rowcount
        return bool(updated)

    def export(self, conversation_id: str) -> dict[str, Any]:
        conversation = self.get(conversation_id)
        return {
            "conversation": conversation.as_dict(),
            "messages": [message.as_dict() for message in conversation.messages],
            "exported_at": to_iso(self._clock()),
            "export_format": "json",
        }
