"""
Identity client for the hosted login UI (authorization code + PKCE, public app client).
Authorization URL, code exchange, refresh and revocation go through Authlib's httpx client;
userInfo is a plain Bearer GET. ID token claims are read, never verified (the provider issued them).
"""
import logging
import time
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode

import httpx
import jwt
from authlib.common.security import generate_token
from authlib.integrations.httpx_client import AsyncOAuth2Client

from managed_login.config import RESPONSE_TYPE, IdentityConfig
from managed_login.session_store import SessionStore, StoredTokens

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 10.0

# RFC 7636 allows 43-128 characters
CODE_VERIFIER_LENGTH = 64

AUTHORIZE_PATH = "/oauth2/authorize"
TOKEN_PATH = "/oauth2/token"
USERINFO_PATH = "/oauth2/userInfo"
REVOKE_PATH = "/oauth2/revoke"
LOGOUT_PATH = "/logout"


class IdentityError(Exception):
    """Any failure reported by the identity client."""


class NoSessionError(IdentityError):
    """No signed-in user (never signed in, signed out, or the session expired)."""


class ConfigurationError(IdentityError):
    """A required setting (client id, domain, redirect URL) is missing."""


class SignInError(IdentityError):
    """The redirect back from the hosted UI could not be turned into a session."""


@dataclass(frozen=True)
class CurrentUser:
    username: str
    user_id: str | None = None


@dataclass(frozen=True)
class SessionTokens:
    id_token: str
    access_token: str


class Identity(Protocol):
    """What the reconciler and routes need from the identity client, bound to one browser session."""

    async def get_current_user(self) -> CurrentUser: ...

    async def fetch_user_attributes(self) -> dict[str, str]: ...

    async def fetch_session_tokens(self) -> SessionTokens | None: ...

    async def begin_redirect_sign_in(self, *, language: str | None = None) -> str: ...

    async def complete_sign_in(self, code: str, state: str) -> None: ...

    async def end_session(self) -> None: ...

    def logout_url(self) -> str | None: ...


def read_id_token_claims(id_token: str) -> dict:
    """Decode ID token payload without signature or expiry checks."""
    try:
        return jwt.decode(id_token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise NoSessionError(f"Unreadable ID token: {e}") from e


def token_lifetime(token: dict, id_token: str) -> int | None:
    """
    Seconds the token set stays valid. expires_in is optional in a token response;
    without it the ID token's exp is used, and without that the set never expires locally.
    """
    if token.get("expires_in") is not None:
        return int(token["expires_in"])
    try:
        exp = read_id_token_claims(id_token).get("exp")
    except NoSessionError:
        return None
    if exp is None:
        return None
    return max(0, int(exp - time.time()))


def _attribute_value(value) -> str:
    # The user directory reports every attribute as a string ("true", not True)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class HostedUIClient:
    """
    Process-wide client: holds config and the in-memory stores.
    Use session(session_id) to get the per-browser view of it.
    """

    def __init__(
        self,
        config: IdentityConfig,
        store: SessionStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.store = store or SessionStore()
        self._transport = transport

    def session(self, session_id: str) -> "SessionIdentity":
        return SessionIdentity(self, session_id)

    def _client_kwargs(self) -> dict:
        kwargs = {"timeout": HTTP_TIMEOUT}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return kwargs

    def oauth_client(self) -> AsyncOAuth2Client:
        """Authlib client for a public app client: client_id in the body, no secret."""
        return AsyncOAuth2Client(
            client_id=self.config.client_id,
            token_endpoint_auth_method="none",
            revocation_endpoint_auth_method="none",
            scope=self.config.scope,
            redirect_uri=self.config.redirect_sign_in,
            code_challenge_method="S256",
            **self._client_kwargs(),
        )

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(**self._client_kwargs())


class SessionIdentity:
    """Identity operations for one browser session (cookie session id)."""

    def __init__(self, client: HostedUIClient, session_id: str) -> None:
        self._client = client
        self._config = client.config
        self._store = client.store
        self.session_id = session_id

    async def get_current_user(self) -> CurrentUser:
        """
        Signed-in user from the stored ID token. Refreshes an expired token set first.
        Raises NoSessionError when there is no usable session.
        """
        tokens = self._store.get_tokens(self.session_id)
        if tokens is None:
            raise NoSessionError("No signed-in user")
        if tokens.expired():
            tokens = await self._refresh(tokens)
        claims = read_id_token_claims(tokens.id_token)
        username = claims.get("cognito:username") or claims.get("username") or claims.get("sub")
        if not username:
            raise NoSessionError("ID token carries no username")
        return CurrentUser(username=username, user_id=claims.get("sub"))

    async def fetch_user_attributes(self) -> dict[str, str]:
        """Attributes of the signed-in user via userInfo. Needs the access token's admin scope."""
        tokens = self._store.get_tokens(self.session_id)
        if tokens is None:
            raise NoSessionError("No signed-in user")
        url = self._require_endpoint(USERINFO_PATH)
        try:
            async with self._client.http_client() as http:
                r = await http.get(
                    url,
                    headers={"Authorization": f"Bearer {tokens.access_token}", "Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise IdentityError(f"userInfo request failed: {e}") from e
        if r.status_code != 200:
            raise IdentityError(f"userInfo returned {r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            raise IdentityError("userInfo returned invalid JSON") from e
        if not isinstance(data, dict):
            raise IdentityError("userInfo returned an unexpected body")
        return {key: _attribute_value(value) for key, value in data.items() if value is not None}

    async def fetch_session_tokens(self) -> SessionTokens | None:
        tokens = self._store.get_tokens(self.session_id)
        if tokens is None:
            return None
        return SessionTokens(id_token=tokens.id_token, access_token=tokens.access_token)

    async def begin_redirect_sign_in(self, *, language: str | None = None) -> str:
        """
        Start the authorization code flow. Returns the hosted UI URL to redirect the browser to;
        state and PKCE verifier are kept until the redirect back.
        """
        if not self._config.client_id or not self._config.domain or not self._config.redirect_sign_in:
            raise ConfigurationError("Client ID, domain and redirect URL must be configured")
        code_verifier = generate_token(CODE_VERIFIER_LENGTH)
        extra = {"lang": language} if language else {}
        async with self._client.oauth_client() as oauth:
            url, state = oauth.create_authorization_url(
                self._require_endpoint(AUTHORIZE_PATH),
                code_verifier=code_verifier,
                response_type=RESPONSE_TYPE,
                **extra,
            )
        self._store.store_flow(state, session_id=self.session_id, code_verifier=code_verifier)
        logger.info("Redirecting to hosted UI for sign-in")
        return url

    async def complete_sign_in(self, code: str, state: str) -> None:
        """Exchange the authorization code from the redirect back and store the token set."""
        flow = self._store.pop_flow(state)
        if flow is None or flow.session_id != self.session_id:
            raise SignInError("Invalid or expired state. Please sign in again.")
        try:
            async with self._client.oauth_client() as oauth:
                token = await oauth.fetch_token(
                    self._require_endpoint(TOKEN_PATH),
                    grant_type="authorization_code",
                    code=code,
                    code_verifier=flow.code_verifier,
                )
        except IdentityError:
            raise
        except Exception as e:
            raise SignInError(f"Token exchange failed: {e}") from e
        id_token = token.get("id_token")
        access_token = token.get("access_token")
        if not id_token or not access_token:
            raise SignInError("Token response is missing id_token or access_token")
        self._store.store_tokens(
            self.session_id,
            id_token=id_token,
            access_token=access_token,
            expires_in=token_lifetime(token, id_token),
            refresh_token=token.get("refresh_token"),
        )
        logger.info("Sign-in completed")

    async def end_session(self) -> None:
        """
        Revoke the refresh token at the provider and drop the local token set.
        Local tokens are dropped even when revocation fails; the failure is still raised.
        """
        tokens = self._store.get_tokens(self.session_id)
        self._store.clear_tokens(self.session_id)
        if tokens is None or not tokens.refresh_token:
            return
        try:
            async with self._client.oauth_client() as oauth:
                r = await oauth.revoke_token(
                    self._require_endpoint(REVOKE_PATH),
                    token=tokens.refresh_token,
                    token_type_hint="refresh_token",
                )
                r.raise_for_status()
        except IdentityError:
            raise
        except Exception as e:
            raise IdentityError(f"Token revocation failed: {e}") from e

    def logout_url(self) -> str | None:
        """Hosted UI logout URL (clears the provider's cookie), or None if not configured."""
        base = self._config.endpoint(LOGOUT_PATH)
        if not base or not self._config.client_id or not self._config.redirect_sign_out:
            return None
        params = {"client_id": self._config.client_id, "logout_uri": self._config.redirect_sign_out}
        return f"{base}?{urlencode(params)}"

    async def _refresh(self, tokens: StoredTokens) -> StoredTokens:
        if not tokens.refresh_token:
            self._store.clear_tokens(self.session_id)
            raise NoSessionError("Session expired")
        try:
            async with self._client.oauth_client() as oauth:
                data = await oauth.refresh_token(
                    self._require_endpoint(TOKEN_PATH),
                    refresh_token=tokens.refresh_token,
                )
            access_token = data.get("access_token")
            if not access_token:
                raise IdentityError("Refresh response is missing access_token")
        except Exception as e:
            logger.warning("Token refresh failed: %s", e)
            self._store.clear_tokens(self.session_id)
            raise NoSessionError("Session expired and refresh failed") from e
        id_token = data.get("id_token") or tokens.id_token
        return self._store.store_tokens(
            self.session_id,
            id_token=id_token,
            access_token=access_token,
            expires_in=token_lifetime(data, id_token),
            # refresh responses do not carry a new refresh token
            refresh_token=data.get("refresh_token") or tokens.refresh_token,
        )

    def _require_endpoint(self, path: str) -> str:
        url = self._config.endpoint(path)
        if url is None:
            raise ConfigurationError("Domain is not configured")
        return url
