# studyflow/core/state.py

from __future__ import annotations

import base64
import binascii
import time
from dataclasses import dataclass, field
from typing import List, Optional

from studyflow.core.errors import ConfirmationRequired, NotLoggedIn, RecordNotFound, ValidationError
from studyflow.core.generation import CancelToken
from studyflow.core.types import Theme
from studyflow.memory.models import ContentRecord, Identity
from studyflow.memory.repository import LocalStore
from studyflow.utils.logging import get_logger

logger = get_logger(__name__)

MAX_AVATAR_BYTES = 2 * 1024 * 1024

DEMO_GOOGLE_IDENTITY = Identity(
    name="Alex Student",
    email="alex.student@gmail.com",
    provider="google",
    avatar="https://api.dicebear.com/7.x/avataaars/svg?seed=Alex",
)


def _avatar_size(avatar: str) -> int:
    """Decoded size of a data-URI avatar; raw length for anything else."""
    if avatar.startswith("data:") and "base64," in avatar:
        payload = avatar.split("base64,", 1)[1]
        try:
            return len(base64.b64decode(payload, validate=False))
        except (binascii.Error, ValueError):
            return len(payload)
    return len(avatar.encode("utf-8"))


@dataclass
class AppState:
    """
    Explicit application state: identity, history (newest first), active view,
    theme, onboarding. Built from durable storage at startup, mutated only
    through the methods below, flushed to storage after each mutation.
    """
    store: LocalStore
    identity: Optional[Identity] = None
    history: List[ContentRecord] = field(default_factory=list)
    current_id: Optional[str] = None
    theme: Theme = Theme.DARK
    needs_onboarding: bool = True
    generating: bool = False
    cancel_token: Optional[CancelToken] = None
    saving_indicator_seconds: float = 0.8
    _saved_at: Optional[float] = None

    @classmethod
    def restore(cls, store: LocalStore, saving_indicator_seconds: float = 0.8) -> "AppState":
        state = cls(store=store, saving_indicator_seconds=saving_indicator_seconds)
        state.theme = store.load_theme()
        state.needs_onboarding = not store.is_onboarding_complete()
        identity = store.load_identity()
        if identity is not None:
            state.identity = identity
            state.history = state.load_for_identity(identity.email)
            logger.info("Restored session for %s with %d records.", identity.email, len(state.history))
        return state

    # ---------- identity ----------

    def require_identity(self) -> Identity:
        if self.identity is None:
            raise NotLoggedIn("Please log in first.")
        return self.identity

    def login(self, identity: Identity) -> None:
        email = (identity.email or "").strip()
        if not email:
            raise ValidationError("Email is required to log in.")

        self.cancel_pending()
        self.identity = identity
        self.current_id = None
        self.store.save_identity(identity)
        self.needs_onboarding = not self.store.is_onboarding_complete(email)
        self.history = self.load_for_identity(email)
        logger.info("Logged in %s (%s); %d records loaded.", email, identity.provider, len(self.history))

    def login_with_email(self, email: str) -> Identity:
        cleaned = (email or "").strip()
        if not cleaned:
            raise ValidationError("Email is required to log in.")
        identity = Identity(name=cleaned.split("@")[0] or "Student", email=cleaned, provider="email")
        self.login(identity)
        return identity

    def login_with_google(self) -> Identity:
        identity = Identity(**DEMO_GOOGLE_IDENTITY.to_dict())
        self.login(identity)
        return identity

    def logout(self) -> None:
        self.cancel_pending()
        if self.identity is not None:
            logger.info("Logging out %s.", self.identity.email)
        self.identity = None
        self.current_id = None
        self.clear_all()
        self.store.clear_identity()

    def update_profile(self, name: str, avatar: Optional[str] = None) -> Identity:
        identity = self.require_identity()
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Name cannot be empty")
        if avatar and _avatar_size(avatar) > MAX_AVATAR_BYTES:
            raise ValidationError("Image is too large. Please select an image under 2MB.")

        identity.name = cleaned
        # None keeps the current avatar; an empty string removes it
        if avatar is not None:
            identity.avatar = avatar or None
        self.store.save_identity(identity)
        return identity

    def complete_onboarding(self) -> bool:
        identity = self.require_identity()
        self.needs_onboarding = False
        return self.store.mark_onboarding_complete(identity.email)

    # ---------- theme ----------

    def set_theme(self, theme: Theme) -> bool:
        self.theme = theme
        return self.store.save_theme(theme)

    def toggle_theme(self) -> Theme:
        self.set_theme(Theme.LIGHT if self.theme == Theme.DARK else Theme.DARK)
        return self.theme

    # ---------- history ----------

    def load_for_identity(self, email: str) -> List[ContentRecord]:
        return self.store.load_history(email)

    def flush(self) -> bool:
        """
        Write the history for the active identity. Returns whether it stuck.
        """
        if self.identity is None:
            return False
        self._saved_at = time.monotonic()
        ok = self.store.save_history(self.identity.email, self.history)
        if not ok:
            logger.error("Failed to persist history for %s.", self.identity.email)
        return ok

    @property
    def is_saving(self) -> bool:
        if self._saved_at is None:
            return False
        return (time.monotonic() - self._saved_at) < self.saving_indicator_seconds

    def append(self, record: ContentRecord) -> bool:
        self.require_identity()
        record.validate()
        self.history.insert(0, record)
        self.current_id = record.id
        return self.flush()

    def get(self, record_id: str) -> ContentRecord:
        for record in self.history:
            if record.id == record_id:
                return record
        raise RecordNotFound(f"No study session with id {record_id!r}.")

    def remove(self, record_id: str, confirmed: bool = False) -> ContentRecord:
        """
        Delete one record. Destructive, so the caller must pass confirmed=True.
        """
        self.require_identity()
        if not confirmed:
            raise ConfirmationRequired("Are you sure you want to delete this study session?")
        record = self.get(record_id)
        self.history = [r for r in self.history if r.id != record_id]
        if self.current_id == record_id:
            self.current_id = None
        self.flush()
        logger.info("Deleted record %s; %d remain.", record_id, len(self.history))
        return record

    def clear_all(self) -> None:
        # In-memory only; the persisted copy stays under the identity's key.
        self.history = []

    # ---------- active view ----------

    @property
    def current(self) -> Optional[ContentRecord]:
        if self.current_id is None:
            return None
        try:
            return self.get(self.current_id)
        except RecordNotFound:
            return None

    def open(self, record_id: str) -> ContentRecord:
        record = self.get(record_id)
        self.current_id = record.id
        return record

    def close_view(self) -> None:
        self.current_id = None

    # ---------- in-flight generation ----------

    def cancel_pending(self) -> None:
        if self.cancel_token is not None:
            logger.info("Cancelling in-flight generation.")
            self.cancel_token.cancel()
