from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any, Callable

from .database import SQLiteChatDB
from .errors import ProfileNotFound, StoreError
from .models import Profile
from .time_utils import to_iso, utc_now

_TEXT_FIELDS = ("name", "weight", "height", "blood_type", "chronic_conditions", "allergies", "medications")
_FLAG_FIELDS = ("is_pregnant", "is_smoker", "is_drinker")


def _coerce_age(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        age = int(float(value))
    except (TypeError, ValueError):
        raise StoreError(f"Invalid age: {value!r}") from None
    if age < 0 or age > 150:
        raise StoreError(f"Invalid age: {value!r}")
    return age


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _row_to_profile(row: sqlite3.Row) -> Profile:
    gender = row["gender"]
    return Profile(
        id=row["id"],
        name=row["name"],
        age=row["age"],
        gender=None if gender is None else bool(gender),
        weight=row["weight"],
        height=row["height"],
        blood_type=row["blood_type"],
        chronic_conditions=row["chronic_conditions"],
        allergies=row["allergies"],
        medications=row["medications"],
        is_pregnant=bool(row["is_pregnant"]),
        is_smoker=bool(row["is_smoker"]),
        is_drinker=bool(row["is_drinker"]),
        extra_info=json.loads(row["extra_info_json"] or "{}"),
    )


class ProfileStore:
    def __init__(self, db: SQLiteChatDB, clock: Callable = utc_now) -> None:
        self._db = db
        self._clock = clock

    def create(self, **fields: Any) -> Profile:
        now = to_iso(self._clock())
        profile_id = uuid.uuid4().hex
        gender = fields.get("gender")
        extra_info = fields.get("extra_info") or {}
        if not isinstance(extra_info, dict):
            raise StoreError("extra_info must be a mapping.")
        values = {key: _clean_text(fields.get(key)) for key in _TEXT_FIELDS}
        flags = {key: 1 if fields.get(key) else 0 for key in _FLAG_FIELDS}
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO profiles (
                  id, name, age, gender, weight, height, blood_type, chronic_conditions,
                  allergies, medications, is_pregnant, is_smoker, is_drinker, extra_info_json,
                  created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    profile_id,
                    values["name"],
                    _coerce_age(fields.get("age")),
                    None if gender is None else int(bool(gender)),
                    values["weight"],
                    values["height"],
                    values["blood_type"],
                    values["chronic_conditions"],
                    values["allergies"],
                    values["medications"],
                    flags["is_pregnant"],
                    flags["is_smoker"],
                    flags["is_drinker"],
                    json.dumps(extra_info, sort_keys=True),
                    now,
                    now,
                ),
            )
        return self.get(profile_id)

    def get(self, profile_id: str) -> Profile:
        with self._db.connection() as conn:
            row = conn.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)).fetchone()
        if not row:
            raise ProfileNotFound(f"Profile not found: {profile_id}")
        return _row_to_profile(row)
