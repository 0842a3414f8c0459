"""Bearer credential storage, one namespace per identity role."""

import json
from typing import Any, Dict, Optional

from ...constants import CREDENTIAL_STORAGE_KEYS
from ...enums import IdentityRole
from ...logging import info, warning, LogRecord, LogEvent
from ..storage import DurableStore


class CredentialStore:
    """
    Token and profile storage for a single identity role.

    Students and admins share the ``authToken``/``user`` keys; mentors use
    ``mentorAuthToken``/``mentor``. A store only ever touches its own keys.
    """

    def __init__(self, store: DurableStore, role: IdentityRole):
        self.role = role
        self._store = store
        self.token_key, self.user_key = CREDENTIAL_STORAGE_KEYS[role]

    def get_token(self) -> Optional[str]:
        token = self._store.get_item(self.token_key)
        return token or None

    def set_token(self, token: str) -> None:
        self._store.set_item(self.token_key, token)

    def get_user(self) -> Optional[Dict[str, Any]]:
        raw = self._store.get_item(self.user_key)
        if raw is None:
            return None
        try:
            user = json.loads(raw)
        except ValueError:
            warning(
                LogRecord(
                    event=LogEvent.AUTH_EVENT.value,
                    message=f"Discarding unreadable {self.role} profile",
                )
            )
            return None
        return user if isinstance(user, dict) else None

    def set_user(self, user: Dict[str, Any]) -> None:
        self._store.set_item(self.user_key, json.dumps(user))

    def save(self, token: str, user: Optional[Dict[str, Any]]) -> None:
        """Store a freshly issued credential and its profile."""
        self.set_token(token)
        if user is not None:
            self.set_user(user)
        else:
            self._store.remove_item(self.user_key)

    def clear(self) -> None:
        """Remove token and profile. Safe to call when nothing is stored."""
        had_token = self.get_token() is not None
        self._store.remove_item(self.token_key)
        self._store.remove_item(self.user_key)
        if had_token:
            info(
                LogRecord(
                    event=LogEvent.AUTH_EVENT.value,
                    message=f"Cleared {self.role} credential",
                )
            )

    def is_authenticated(self) -> bool:
        return self.get_token() is not None and self.get_user() is not None

    async def persist(self) -> None:
        await self._store.flush()
