"""
Pytest configuration for managed_login. No real identity provider is contacted:
route and reconciler tests use FakeIdentity, identity client tests use httpx.MockTransport.
"""
import os

import pytest

from managed_login.identity import CurrentUser, NoSessionError, SessionTokens

# Module-level app in managed_login.main reads these at import; keep it unconfigured
for _name in list(os.environ):
    if _name.startswith("COGNITO_"):
        del os.environ[_name]


class FakeIdentity:
    """Stand-in for SessionIdentity. Records calls; each operation can be made to fail."""

    def __init__(
        self,
        *,
        username: str | None = None,
        attributes: dict | None = None,
        tokens: SessionTokens | None = None,
        attributes_error: Exception | None = None,
        tokens_error: Exception | None = None,
        sign_in_url: str = "https://login.example/oauth2/authorize?client_id=c",
        sign_in_error: Exception | None = None,
        complete_error: Exception | None = None,
        end_session_error: Exception | None = None,
        logout: str | None = None,
    ):
        self.username = username
        self.attributes = attributes or {}
        self.tokens = tokens
        self.attributes_error = attributes_error
        self.tokens_error = tokens_error
        self.sign_in_url = sign_in_url
        self.sign_in_error = sign_in_error
        self.complete_error = complete_error
        self.end_session_error = end_session_error
        self.logout = logout
        self.calls: list[str] = []
        self.sign_in_language: str | None = None
        self.completed: tuple[str, str] | None = None

    async def get_current_user(self):
        self.calls.append("get_current_user")
        if self.username is None:
            raise NoSessionError("No signed-in user")
        return CurrentUser(username=self.username, user_id="sub-" + self.username)

    async def fetch_user_attributes(self):
        self.calls.append("fetch_user_attributes")
        if self.attributes_error is not None:
            raise self.attributes_error
        return dict(self.attributes)

    async def fetch_session_tokens(self):
        self.calls.append("fetch_session_tokens")
        if self.tokens_error is not None:
            raise self.tokens_error
        return self.tokens

    async def begin_redirect_sign_in(self, *, language=None):
        self.calls.append("begin_redirect_sign_in")
        self.sign_in_language = language
        if self.sign_in_error is not None:
            raise self.sign_in_error
        return self.sign_in_url

    async def complete_sign_in(self, code, state):
        self.calls.append("complete_sign_in")
        if self.complete_error is not None:
            raise self.complete_error
        self.completed = (code, state)

    async def end_session(self):
        self.calls.append("end_session")
        self.username = None
        if self.end_session_error is not None:
            raise self.end_session_error

    def logout_url(self):
        return self.logout


class FakeHostedUIClient:
    """Hands out the same FakeIdentity for every browser session."""

    def __init__(self, identity: FakeIdentity):
        self.identity = identity
        self.session_ids: list[str] = []

    def session(self, session_id):
        self.session_ids.append(session_id)
        return self.identity


@pytest.fixture
def make_identity():
    """FakeIdentity class; call it with the behaviour a test needs."""
    return FakeIdentity


@pytest.fixture
def make_hosted_client():
    return FakeHostedUIClient


@pytest.fixture
def fake_identity():
    return FakeIdentity()


@pytest.fixture
def fake_tokens():
    return SessionTokens(id_token="header.payload.signature", access_token="access-token")
