"""Explicit per-caller session carrying the CMS bearer token.

The session is handed to the REST client instead of the client reading a
process-wide token store. When the backend answers 401 the client calls
``clear()`` and publishes ``session.expired`` to the session's own scope so
whoever owns the session can send the operator back to the login screen.
"""

from __future__ import annotations

import hashlib


def scope_for(token: str | None) -> str | None:
    """Opaque event scope derived from a token; the token itself is never kept."""
    if not token:
        return None
    return hashlib.sha256(token.encode()).hexdigest()[:32]


class Session:
    def __init__(self, token: str | None = None) -> None:
        self._token = token or None
        self.scope = scope_for(self._token)
        self.expired = False

    @classmethod
    def from_authorization(cls, header: str | None) -> Session:
        header = header or ""
        if header.startswith("Bearer "):
            return cls(header[7:].strip())
        return cls()

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set_token(self, token: str) -> None:
        self._token = token or None
        self.scope = scope_for(self._token)
        self.expired = False

    def clear(self) -> None:
        # scope survives so the expiry can still be delivered to its owner
        self._token = None
        self.expired = True

    def auth_headers(self) -> dict[str, str]:
        if self._token is None:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    def __repr__(self) -> str:
        state = "authenticated" if self.is_authenticated else "anonymous"
        return f"<Session {state}>"
