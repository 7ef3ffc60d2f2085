"""
Auth state reconciliation: derive what the page shows from the identity client's session.
Every identity failure stops here; callers only ever see a ViewState and an optional message.
"""
import logging
from dataclasses import dataclass, field
from typing import Mapping, Union

from managed_login.identity import Identity, SessionTokens

logger = logging.getLogger(__name__)

# description shown when the provider sends error without error_description
UNKNOWN_ERROR_DESCRIPTION = "unknown"

ADMIN_ATTRIBUTE = "custom:isAdmin"


@dataclass(frozen=True)
class UserProfile:
    username: str
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Unauthenticated:
    pass


@dataclass(frozen=True)
class Authenticated:
    profile: UserProfile
    tokens: SessionTokens | None = None


ViewState = Union[Loading, Unauthenticated, Authenticated]


@dataclass(frozen=True)
class PendingError:
    code: str
    description: str

    @property
    def message(self) -> str:
        return f"Authentication error: {self.code} ({self.description})"


def parse_pending_error(query: Mapping[str, str]) -> PendingError | None:
    """Error reported by the provider on the redirect back (?error=...&error_description=...)."""
    code = query.get("error")
    if not code:
        return None
    description = query.get("error_description") or UNKNOWN_ERROR_DESCRIPTION
    logger.error("Authentication error: %s (%s)", code, description)
    return PendingError(code=code, description=description)


def is_admin(profile: UserProfile | None) -> bool:
    if profile is None:
        return False
    return profile.attributes.get(ADMIN_ATTRIBUTE) == "true"


class Reconciler:
    """
    Holds the current ViewState and user-facing message for one page load.
    state is only ever replaced, never mutated.
    """

    def __init__(self, identity: Identity, *, language: str | None = None) -> None:
        self.identity = identity
        self.language = language
        self.state: ViewState = Loading()
        self.message: str | None = None

    async def reconcile(self) -> ViewState:
        """
        Look up the current session. No session -> Unauthenticated (expected, not an error).
        Session found -> Authenticated, with empty attributes if enrichment fails.
        """
        self.state = Loading()
        try:
            user = await self.identity.get_current_user()
        except Exception as e:
            logger.info("No signed-in user: %s", e)
            self.state = Unauthenticated()
            return self.state

        try:
            attributes = await self.identity.fetch_user_attributes()
            tokens = await self.identity.fetch_session_tokens()
        except Exception as e:
            # TODO: surface a distinct degraded state so missing-scope misconfiguration is visible
            logger.error("Failed to fetch user attributes or session tokens: %s", e)
            self.state = Authenticated(profile=UserProfile(username=user.username, attributes={}))
            return self.state

        self.state = Authenticated(
            profile=UserProfile(username=user.username, attributes=dict(attributes)),
            tokens=tokens,
        )
        return self.state

    async def sign_in(self) -> str | None:
        """
        Start redirect sign-in. Returns the hosted UI URL, or None (with message set)
        if initiation failed before the browser could leave.
        """
        self.message = None
        try:
            return await self.identity.begin_redirect_sign_in(language=self.language)
        except Exception as e:
            logger.error("Sign-in redirect failed: %s", e)
            self.message = f"Sign-in error: {e}"
            return None

    async def sign_out(self) -> bool:
        """End the session. The view is Unauthenticated afterwards whether or not the call succeeded."""
        ok = True
        try:
            await self.identity.end_session()
            logger.info("Signed out")
        except Exception as e:
            logger.error("Sign-out failed: %s", e)
            self.message = f"Sign-out error: {e}"
            ok = False
        self.state = Unauthenticated()
        return ok
