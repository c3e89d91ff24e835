# studyflow/memory/repository.py

import json
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from studyflow.core.types import Theme
from studyflow.memory.db import get_connection, init_db
from studyflow.memory.models import ContentRecord, Identity
from studyflow.utils.logging import get_logger

logger = get_logger(__name__)

USER_KEY = "studyflow_user"
HISTORY_PREFIX = "studyflow_history_"
ONBOARDING_KEY = "studyflow_onboarding_complete"
THEME_KEY = "studyflow_theme"

ISO_FMT = "%Y-%m-%dT%H:%M:%S"


def now_iso() -> str:
    return datetime.now(timezone.utc).strftime(ISO_FMT)


def history_key(email: str) -> str:
    return f"{HISTORY_PREFIX}{email}"


def onboarding_key(email: Optional[str] = None) -> str:
    return f"{ONBOARDING_KEY}_{email}" if email else ONBOARDING_KEY


class LocalStore:
    """
    Key-value persistence keyed by fixed prefixes plus the user's email.

    Reads never raise: missing or malformed entries fall back to defaults.
    Writes return True/False so callers can report whether the flush worked.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        init_db(db_path)

    # ---------- raw key-value ----------

    def get(self, key: str) -> Optional[str]:
        try:
            conn = get_connection(self.db_path)
            try:
                cur = conn.cursor()
                cur.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
                row = cur.fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error("Failed to read key %r: %s", key, e)
            return None
        return row["value"] if row else None

    def set(self, key: str, value: str) -> bool:
        try:
            conn = get_connection(self.db_path)
            try:
                cur = conn.cursor()
                cur.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (key, value, now_iso()),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error("Failed to write key %r: %s", key, e)
            return False
        return True

    def remove(self, key: str) -> bool:
        try:
            conn = get_connection(self.db_path)
            try:
                cur = conn.cursor()
                cur.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error("Failed to remove key %r: %s", key, e)
            return False
        return True

    # ---------- identity ----------

    def load_identity(self) -> Optional[Identity]:
        raw = self.get(USER_KEY)
        if not raw:
            return None
        try:
            return Identity.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Failed to parse stored identity: %s", e)
            return None

    def save_identity(self, identity: Identity) -> bool:
        return self.set(USER_KEY, json.dumps(identity.to_dict(), ensure_ascii=False))

    def clear_identity(self) -> bool:
        return self.remove(USER_KEY)

    # ---------- history ----------

    def load_history(self, email: str) -> List[ContentRecord]:
        """
        Return the persisted history for ``email``, newest first.
        A corrupt list degrades to empty; individual malformed entries are dropped.
        """
        raw = self.get(history_key(email))
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error("Failed to parse history for %s: %s", email, e)
            return []
        if not isinstance(data, list):
            logger.error("Stored history for %s is not a list; ignoring.", email)
            return []

        records: List[ContentRecord] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            try:
                records.append(ContentRecord.from_dict(item))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Dropping malformed history entry for %s: %s", email, e)
        return records

    def save_history(self, email: str, records: List[ContentRecord]) -> bool:
        payload = json.dumps([r.to_dict() for r in records], ensure_ascii=False)
        return self.set(history_key(email), payload)

    # ---------- onboarding ----------

    def is_onboarding_complete(self, email: Optional[str] = None) -> bool:
        return self.get(onboarding_key(email)) == "true"

    def mark_onboarding_complete(self, email: str) -> bool:
        ok_user = self.set(onboarding_key(email), "true")
        ok_global = self.set(onboarding_key(), "true")
        return ok_user and ok_global

    # ---------- theme ----------

    def load_theme(self) -> Theme:
        raw = self.get(THEME_KEY)
        try:
            return Theme(raw)
        except ValueError:
            return Theme.DARK

    def save_theme(self, theme: Theme) -> bool:
        return self.set(THEME_KEY, theme.value)
