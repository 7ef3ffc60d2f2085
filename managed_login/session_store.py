"""
In-memory stores used by the identity client.
Pending sign-ins (state -> code_verifier) live between /sign-in and the redirect back;
token sets are kept per browser session id. Lab use only; nothing survives a restart.
"""
import time
from dataclasses import dataclass

# TTL seconds for a pending sign-in (user may take a while on the hosted UI)
FLOW_TTL = 600


@dataclass
class PendingSignIn:
    session_id: str
    code_verifier: str
    created_at: float

    def expired(self) -> bool:
        return (time.monotonic() - self.created_at) > FLOW_TTL


@dataclass
class StoredTokens:
    id_token: str
    access_token: str
    expires_in: int | None
    issued_at: float
    refresh_token: str | None = None

    def expired(self, leeway_seconds: int = 0) -> bool:
        """True once the token set's lifetime (minus leeway) has elapsed. No lifetime: never."""
        if self.expires_in is None:
            return False
        return (time.time() - self.issued_at) >= (self.expires_in - leeway_seconds)


class SessionStore:
    """Pending sign-ins keyed by OAuth state, token sets keyed by session id."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingSignIn] = {}
        self._tokens: dict[str, StoredTokens] = {}

    def store_flow(self, state: str, session_id: str, code_verifier: str) -> None:
        self._clean_expired()
        self._pending[state] = PendingSignIn(
            session_id=session_id, code_verifier=code_verifier, created_at=time.monotonic()
        )

    def pop_flow(self, state: str) -> PendingSignIn | None:
        flow = self._pending.pop(state, None)
        if flow is None or flow.expired():
            return None
        return flow

    def store_tokens(
        self,
        session_id: str,
        *,
        id_token: str,
        access_token: str,
        expires_in: int | None,
        refresh_token: str | None = None,
    ) -> StoredTokens:
        self._evict_dead_tokens()
        tokens = StoredTokens(
            id_token=id_token,
            access_token=access_token,
            expires_in=expires_in,
            issued_at=time.time(),
            refresh_token=refresh_token,
        )
        self._tokens[session_id] = tokens
        return tokens

    def get_tokens(self, session_id: str) -> StoredTokens | None:
        return self._tokens.get(session_id)

    def clear_tokens(self, session_id: str) -> None:
        self._tokens.pop(session_id, None)

    def _evict_dead_tokens(self) -> None:
        """Drop expired token sets that have no refresh token (abandoned or unusable sessions)."""
        dead = [s for s, t in self._tokens.items() if t.expired() and not t.refresh_token]
        for s in dead:
            del self._tokens[s]

    def _clean_expired(self) -> None:
        expired = [s for s, f in self._pending.items() if f.expired()]
        for s in expired:
            del self._pending[s]
