"""Browser sessions holding user-supplied credentials, encrypted at rest."""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Callable, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from ..logging import get_logger

logger = get_logger("sessions")


@dataclass(frozen=True)
class SessionKeys:
    """Decrypted credentials attached to a session."""

    gemini_key: Optional[str]
    github_token: Optional[str]


@dataclass
class _SessionRecord:
    session_id: str
    encrypted_gemini_key: Optional[bytes]
    encrypted_github_token: Optional[bytes]
    created_at: datetime
    expires_at: datetime
    last_used_at: datetime


def load_cipher(key: str | None) -> Fernet:
    """Build the session cipher; an unset key yields a per-process key."""
    if key:
        return Fernet(key.encode("utf-8"))
    logger.warning(
        "No session encryption key configured; sessions will not survive a restart"
    )
    return Fernet(Fernet.generate_key())


class SessionStore:
    """In-process session table keyed by an opaque, unguessable id."""

    def __init__(
        self,
        cipher: Fernet,
        *,
        ttl: timedelta = timedelta(hours=24),
        max_idle: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._cipher = cipher
        self._ttl = ttl
        self._max_idle = max_idle
        self._clock = clock
        self._records: Dict[str, _SessionRecord] = {}
        self._lock = threading.Lock()

    def create(
        self, gemini_key: Optional[str] = None, github_token: Optional[str] = None
    ) -> str:
        now = self._clock()
        session_id = secrets.token_urlsafe(16)
        record = _SessionRecord(
            session_id=session_id,
            encrypted_gemini_key=self._encrypt(gemini_key),
            encrypted_github_token=self._encrypt(github_token),
            created_at=now,
            expires_at=now + self._ttl,
            last_used_at=now,
        )
        with self._lock:
            self._records[session_id] = record
        return session_id

    def get_keys(self, session_id: str) -> Optional[SessionKeys]:
        """Return decrypted credentials, or ``None`` for unknown/expired sessions."""
        now = self._clock()
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return None
            if record.expires_at < now:
                del self._records[session_id]
                return None
            record.last_used_at = now
            encrypted_key = record.encrypted_gemini_key
            encrypted_token = record.encrypted_github_token
        return SessionKeys(
            gemini_key=self._decrypt(encrypted_key),
            github_token=self._decrypt(encrypted_token),
        )

    def update(
        self,
        session_id: str,
        gemini_key: Optional[str] = None,
        github_token: Optional[str] = None,
    ) -> bool:
        """Replace any provided credential and push the expiry forward."""
        now = self._clock()
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return False
            if gemini_key is not None:
                record.encrypted_gemini_key = self._encrypt(gemini_key)
            if github_token is not None:
                record.encrypted_github_token = self._encrypt(github_token)
            record.expires_at = now + self._ttl
            record.last_used_at = now
        return True

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._records.pop(session_id, None) is not None

    def purge(self) -> int:
        """Remove expired sessions and sessions idle for longer than ``max_idle``."""
        now = self._clock()
        with self._lock:
            stale = [
                session_id
                for session_id, record in self._records.items()
                if record.expires_at < now or record.last_used_at < now - self._max_idle
            ]
            for session_id in stale:
                del self._records[session_id]
        if stale:
            logger.info("Deleted %d expired/inactive sessions", len(stale))
        return len(stale)

    def _encrypt(self, value: Optional[str]) -> Optional[bytes]:
        if not value:
            return None
        return self._cipher.encrypt(value.encode("utf-8"))

    def _decrypt(self, value: Optional[bytes]) -> Optional[str]:
        if value is None:
            return None
        try:
            return self._cipher.decrypt(value).decode("utf-8")
        except InvalidToken:
            logger.warning("Discarding session credential that failed to decrypt")
            return None


__all__ = ["SessionKeys", "SessionStore", "load_cipher"]
