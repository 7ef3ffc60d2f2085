"""
Managed login demo client. Redirects to the hosted login UI, completes the authorization code
redirect back, shows the signed-in user's attributes and ID token, and signs out.
GET /, /sign-in, /sign-out, /health. Port 8000.
"""
import logging
import secrets

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from managed_login.config import IdentityConfig, load_config
from managed_login.identity import HostedUIClient, SessionIdentity
from managed_login.reconciler import Reconciler, parse_pending_error
from managed_login.views import render_page

logger = logging.getLogger(__name__)

SESSION_COOKIE = "managed_login_sid"


def _session_id(request: Request) -> tuple[str, bool]:
    """Browser session id from the cookie; (new id, True) if the browser has none yet."""
    sid = request.cookies.get(SESSION_COOKIE)
    if sid:
        return sid, False
    return secrets.token_urlsafe(32), True


def _with_cookie(response: Response, sid: str, is_new: bool) -> Response:
    if is_new:
        response.set_cookie(SESSION_COOKIE, sid, httponly=True, samesite="lax")
    return response


def _identity(request: Request, sid: str) -> SessionIdentity:
    return request.app.state.identity.session(sid)


def _render(request: Request, reconciler: Reconciler, **kwargs) -> HTMLResponse:
    page = render_page(reconciler.state, request.app.state.config, message=reconciler.message, **kwargs)
    return HTMLResponse(page)


def create_app(config: IdentityConfig | None = None, identity: HostedUIClient | None = None) -> FastAPI:
    """Build the app. Config is read from the environment once, here, unless given."""
    if config is None:
        config = load_config()
    if identity is None:
        identity = HostedUIClient(config)

    app = FastAPI(title="Managed Login Client", version="0.1.0")
    app.state.config = config
    app.state.identity = identity

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "managed_login"}

    @app.get("/", response_class=HTMLResponse)
    async def home(request: Request, show_token: bool = False):
        """
        Main page; also the redirect-on-signin URL. ?code=&state= completes sign-in,
        ?error=&error_description= is shown as a banner. State is reconciled either way.
        """
        sid, is_new = _session_id(request)
        session = _identity(request, sid)
        reconciler = Reconciler(session, language=config.language)
        params = request.query_params
        pending_error = parse_pending_error(params)

        code = params.get("code")
        if code and pending_error is None:
            try:
                await session.complete_sign_in(code, params.get("state") or "")
            except Exception as e:
                logger.error("Sign-in callback failed: %s", e)
                reconciler.message = f"Sign-in error: {e}"
            else:
                # drop code/state from the address bar
                return _with_cookie(RedirectResponse(url=request.url.path, status_code=302), sid, is_new)

        await reconciler.reconcile()
        response = _render(request, reconciler, pending_error=pending_error, show_token=show_token)
        return _with_cookie(response, sid, is_new)

    @app.get("/sign-in")
    async def sign_in(request: Request):
        """Redirect to the hosted UI; if that cannot start, show the page with a sign-in error."""
        sid, is_new = _session_id(request)
        reconciler = Reconciler(_identity(request, sid), language=config.language)
        url = await reconciler.sign_in()
        if url:
            return _with_cookie(RedirectResponse(url=url, status_code=302), sid, is_new)
        await reconciler.reconcile()
        return _with_cookie(_render(request, reconciler), sid, is_new)

    @app.get("/sign-out")
    async def sign_out(request: Request):
        """
        End the session, then continue to the hosted UI logout when configured.
        On failure the signed-out page is shown with the error.
        """
        sid, is_new = _session_id(request)
        session = _identity(request, sid)
        reconciler = Reconciler(session, language=config.language)
        ok = await reconciler.sign_out()
        logout_url = session.logout_url()
        if ok and logout_url:
            return _with_cookie(RedirectResponse(url=logout_url, status_code=302), sid, is_new)
        return _with_cookie(_render(request, reconciler), sid, is_new)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "managed_login.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
