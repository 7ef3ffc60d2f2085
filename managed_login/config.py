"""
Managed login client configuration. Read once from the environment at startup.
Nothing here is a secret: the app client is public (PKCE, no client_secret).
"""
import os
from dataclasses import dataclass
from typing import Mapping

# Scopes requested from the hosted UI. The admin scope lets the access token read the user's own attributes.
SCOPES = ("email", "openid", "aws.cognito.signin.user.admin", "profile")

# authorization code grant only
RESPONSE_TYPE = "code"

NOT_CONFIGURED = "not configured"
CONFIGURED = "configured"


@dataclass(frozen=True)
class IdentityConfig:
    region: str | None = None
    user_pool_id: str | None = None
    client_id: str | None = None
    domain: str | None = None
    redirect_sign_in: str | None = None
    redirect_sign_out: str | None = None
    language: str = "ja"
    scopes: tuple[str, ...] = SCOPES

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)

    @property
    def base_url(self) -> str | None:
        """Hosted UI base URL; bare domains get https://."""
        if not self.domain:
            return None
        domain = self.domain.rstrip("/")
        if domain.startswith(("http://", "https://")):
            return domain
        return f"https://{domain}"

    def endpoint(self, path: str) -> str | None:
        base = self.base_url
        return f"{base}{path}" if base else None

    def diagnostics(self) -> list[tuple[str, str]]:
        """
        (label, value) rows for the development info card.
        Identifiers only show whether they are set; region and redirect URL are shown as-is.
        """
        return [
            ("Region", self.region or NOT_CONFIGURED),
            ("User Pool ID", CONFIGURED if self.user_pool_id else NOT_CONFIGURED),
            ("Client ID", CONFIGURED if self.client_id else NOT_CONFIGURED),
            ("Domain", CONFIGURED if self.domain else NOT_CONFIGURED),
            ("Redirect URL", self.redirect_sign_in or NOT_CONFIGURED),
        ]


def _get(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name, "").strip()
    return value or None


def load_config(environ: Mapping[str, str] | None = None) -> IdentityConfig:
    """Build the config from COGNITO_* variables. Missing values stay None."""
    if environ is None:
        environ = os.environ
    return IdentityConfig(
        region=_get(environ, "COGNITO_REGION"),
        user_pool_id=_get(environ, "COGNITO_USER_POOL_ID"),
        client_id=_get(environ, "COGNITO_CLIENT_ID"),
        domain=_get(environ, "COGNITO_DOMAIN"),
        redirect_sign_in=_get(environ, "COGNITO_REDIRECT_SIGN_IN"),
        redirect_sign_out=_get(environ, "COGNITO_REDIRECT_SIGN_OUT"),
        language=_get(environ, "COGNITO_LANGUAGE") or "ja",
    )
