"""
HTML rendering for the managed login page. Inline templates, everything user-supplied is escaped.
"""
import html

from managed_login.config import IdentityConfig
from managed_login.reconciler import (
    Authenticated,
    Loading,
    PendingError,
    UserProfile,
    ViewState,
    is_admin,
)

TITLE = "Managed Login Sample"

# (attribute, label) rows shown on the profile card when present
PROFILE_FIELDS = [
    ("email", "Email"),
    ("name", "Name"),
]

_STYLE = """
    body { font-family: system-ui, sans-serif; max-width: 48rem; margin: 2rem auto; padding: 0 1rem; }
    h1 { text-align: center; border-bottom: 1px solid #ddd; padding-bottom: 1rem; }
    .card { border: 1px solid #ccc; border-radius: 8px; padding: 1.5rem; margin-top: 1.5rem; }
    .info { background: #f5f5f5; }
    .alert { background: #fdecea; color: #611a15; border-radius: 4px; padding: 0.8rem 1rem; }
    .badge { background: #1976d2; color: #fff; border-radius: 4px; padding: 0.1rem 0.5rem; font-size: 0.8rem; }
    .button { display: inline-block; background: #1976d2; color: #fff; padding: 0.6rem 1.2rem;
              border-radius: 4px; text-decoration: none; }
    .button.secondary { background: #f50057; }
    dt { font-weight: bold; margin-top: 0.5rem; }
    pre { background: #f0f0f0; padding: 1rem; white-space: pre-wrap; word-break: break-all; font-size: 0.75rem; }
"""


def _page(body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{TITLE}</title><style>{_STYLE}</style></head>
<body>
  <h1>{TITLE}</h1>
{body}
</body>
</html>"""


def _alert(message: str) -> str:
    return f'  <div class="alert" role="alert">{html.escape(message)}</div>\n'


def _definition_list(rows: list[tuple[str, str]]) -> str:
    items = "".join(f"<dt>{html.escape(k)}</dt><dd>{html.escape(v)}</dd>" for k, v in rows)
    return f"<dl>{items}</dl>"


def render_loading() -> str:
    return _page("  <p>Loading...</p>")


def render_unauthenticated(config: IdentityConfig) -> str:
    return f"""  <div class="card">
    <h2>Sign-in required</h2>
    <p><a class="button" href="/sign-in">Sign in with the hosted UI</a></p>
    <div class="card info">
      <h3>Configuration (development)</h3>
      {_definition_list(config.diagnostics())}
    </div>
  </div>
"""


def _profile_rows(profile: UserProfile) -> list[tuple[str, str]]:
    rows = [("User ID", profile.username)]
    for attr, label in PROFILE_FIELDS:
        value = profile.attributes.get(attr)
        if value:
            rows.append((label, value))
    return rows


def render_authenticated(state: Authenticated, *, show_token: bool = False) -> str:
    profile = state.profile
    badge = ' <span class="badge">Administrator</span>' if is_admin(profile) else ""
    token_html = ""
    if state.tokens is not None:
        if show_token:
            token_html = f"""
    <h3>Tokens</h3>
    <p><a href="/">Hide token</a></p>
    <p><strong>ID Token:</strong></p>
    <pre>{html.escape(state.tokens.id_token)}</pre>"""
        else:
            token_html = """
    <h3>Tokens</h3>
    <p><a href="/?show_token=1">Show ID token</a></p>"""
    return f"""  <div class="card">
    <h2>Welcome!{badge}</h2>
    <h3>User information</h3>
    {_definition_list(_profile_rows(profile))}{token_html}
  </div>
  <p><a class="button secondary" href="/sign-out">Sign out</a></p>
"""


def render_page(
    state: ViewState,
    config: IdentityConfig,
    *,
    pending_error: PendingError | None = None,
    message: str | None = None,
    show_token: bool = False,
) -> str:
    """Whole page for the current state plus any error banners."""
    if isinstance(state, Loading):
        return render_loading()
    banners = ""
    if pending_error is not None:
        banners += _alert(pending_error.message)
    if message:
        banners += _alert(message)
    if isinstance(state, Authenticated):
        body = render_authenticated(state, show_token=show_token)
    else:
        body = render_unauthenticated(config)
    return _page(banners + body)
