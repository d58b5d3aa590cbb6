import base64
import json
import logging
import secrets
import urllib.parse
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

import httpx

from .errors import AuthorizationError, TokenExchangeError
from .token_manager import TokenSet, mask_token

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_TOKEN_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token"

# Receives the authorize URL and resolves to the full redirect URL (or the bare
# code) once the user finished the browser flow. None means cancelled.
RedirectHandler = Callable[[str], Awaitable[Optional[str]]]


def basic_auth_header(client_id: str, client_secret: str) -> str:
    """Return the Authorization header value for client credentials."""

    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def extract_code_from_redirect_url(redirect_url: str) -> Dict[str, str]:
    """Parse a redirect URL and return {"code": ..., "state": ...} (missing keys omitted)."""

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    qs = urllib.parse.parse_qs(parsed.query)
    out: Dict[str, str] = {}
    if qs.get("code"):
        out["code"] = str(qs["code"][0])
    if qs.get("state"):
        out["state"] = str(qs["state"][0])
    if qs.get("error"):
        out["error"] = str(qs["error"][0])
    return out


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate Spotify OAuth config fields and return a structured status dict."""

    config = config or {}
    client_id = str(config.get("spotify_client_id", "")).strip()
    has_secret = bool(str(config.get("spotify_client_secret", "")).strip())
    redirect_uri = str(config.get("spotify_redirect_uri", "")).strip()
    scopes = list(config.get("spotify_scopes", []) or [])

    status = {
        "client_id": client_id,
        "has_client_secret": has_secret,
        "redirect_uri": redirect_uri,
        "scopes": scopes,
    }

    if not client_id:
        return {**status, "ok": False, "message": "Missing spotify_client_id in config.json."}

    if not has_secret:
        return {
            **status,
            "ok": False,
            "message": (
                "Missing spotify_client_secret in config.json.\n"
                "Copy the Client Secret from https://developer.spotify.com/dashboard"
            ),
        }

    if not redirect_uri:
        return {
            **status,
            "ok": False,
            "message": (
                "Missing spotify_redirect_uri in config.json.\n"
                "It must match a Redirect URI registered for the app."
            ),
        }

    return {**status, "ok": True, "message": "Spotify credentials look OK."}


class SpotifyAuthCodeAuth:
    """Spotify OAuth (Authorization Code with client secret) helper.

    The browser part of the flow is delegated to ``redirect_handler`` so the
    caller decides how the user gets from the authorize URL back to us.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        redirect_handler: Optional[RedirectHandler] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or {}
        self.redirect_handler = redirect_handler
        self._http = http_client

    @property
    def client_id(self) -> str:
        return str(self.config.get("spotify_client_id", "")).strip()

    @property
    def client_secret(self) -> str:
        return str(self.config.get("spotify_client_secret", "")).strip()

    @property
    def redirect_uri(self) -> str:
        return str(self.config.get("spotify_redirect_uri", "")).strip()

    def build_authorize_url(
        self,
        *,
        state: Optional[str] = None,
        scopes: Optional[Iterable[str]] = None,
        show_dialog: Optional[bool] = None,
    ) -> str:
        if not self.client_id:
            raise AuthorizationError("Missing config.spotify_client_id")
        if not self.redirect_uri:
            raise AuthorizationError("Missing config.spotify_redirect_uri")

        scope_list = list(scopes if scopes is not None else self.config.get("spotify_scopes", []))
        scope_str = " ".join([str(s).strip() for s in scope_list if str(s).strip()])
        if show_dialog is None:
            show_dialog = bool(self.config.get("spotify_show_dialog", False))

        params: Dict[str, str] = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "show_dialog": "true" if show_dialog else "false",
        }
        if scope_str:
            params["scope"] = scope_str
        if state:
            params["state"] = str(state)

        return f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize?{urllib.parse.urlencode(params)}"

    async def acquire_authorization_code(self) -> str:
        """Run the redirect flow and return the authorization code."""

        if self.redirect_handler is None:
            raise AuthorizationError("No redirect handler configured for the authorization flow.")

        state = secrets.token_urlsafe(16).rstrip("=")
        auth_url = self.build_authorize_url(state=state)
        logger.debug("Authorize URL: %s", auth_url)

        try:
            pasted = await self.redirect_handler(auth_url)
        except AuthorizationError:
            raise
        except Exception as e:
            raise AuthorizationError(f"Authorization redirect failed: {e}") from e

        pasted = (pasted or "").strip()
        if not pasted:
            raise AuthorizationError("Authorization was cancelled.")

        if "://" not in pasted:
            # The user pasted the raw code.
            return pasted

        parsed = extract_code_from_redirect_url(pasted)
        if parsed.get("error"):
            raise AuthorizationError(f"Spotify returned an error: {parsed['error']}")

        code = parsed.get("code", "")
        if not code:
            raise AuthorizationError("Redirect URL did not contain an authorization code.")

        returned_state = parsed.get("state", "")
        if returned_state and returned_state != state:
            raise AuthorizationError("OAuth state mismatch; the redirect belongs to another login attempt.")

        return code

    async def exchange_code_for_tokens(self, code: str) -> TokenSet:
        if not code:
            raise TokenExchangeError("Cannot exchange an empty authorization code.")

        payload = await self._post_form(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )
        tokens = TokenSet.from_spotify_token_response(payload)
        if not tokens.access_token:
            raise TokenExchangeError(f"Spotify token exchange failed: {payload}")

        logger.info("Received access token %s (expires in %s s)", mask_token(tokens.access_token), tokens.expires_in)
        return tokens

    async def refresh_access_token(self, refresh_token: str) -> TokenSet:
        """Mint a new access token. Only called on explicit request."""

        if not refresh_token:
            raise TokenExchangeError("Cannot refresh without a refresh token.")

        payload = await self._post_form(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            }
        )
        tokens = TokenSet.from_spotify_token_response(payload)

        # Spotify may omit refresh_token on refresh; keep existing.
        if not tokens.refresh_token:
            tokens = TokenSet(
                access_token=tokens.access_token,
                refresh_token=refresh_token,
                expires_in=tokens.expires_in,
                token_type=tokens.token_type,
                scope=tokens.scope,
            )

        if not tokens.access_token:
            raise TokenExchangeError(f"Spotify token refresh failed: {payload}")

        return tokens

    async def get_tokens(self) -> TokenSet:
        """Acquire an authorization code and exchange it in one step."""

        code = await self.acquire_authorization_code()
        logger.debug("Authorization code received (%s)", mask_token(code))
        return await self.exchange_code_for_tokens(code)

    async def _post_form(self, form: Dict[str, Any]) -> Dict[str, Any]:
        if not self.client_id or not self.client_secret:
            raise TokenExchangeError("Missing spotify_client_id or spotify_client_secret.")

        data = {k: str(v) for k, v in (form or {}).items() if v is not None}
        headers = {
            "Authorization": basic_auth_header(self.client_id, self.client_secret),
            "Content-Type": "application/x-www-form-urlencoded",
        }
        timeout = float(self.config.get("spotify_request_timeout", 30.0))

        try:
            if self._http is not None:
                resp = await self._http.post(SPOTIFY_TOKEN_URL, data=data, headers=headers, timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout, follow_redirects=False) as client:
                    resp = await client.post(SPOTIFY_TOKEN_URL, data=data, headers=headers)
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"Spotify token request failed: {e}") from e

        if resp.status_code >= 400:
            raise TokenExchangeError(
                f"Spotify token request failed (HTTP {resp.status_code}): {resp.text}",
                status=resp.status_code,
                body=resp.text,
            )

        try:
            payload = resp.json()
        except json.JSONDecodeError as e:
            raise TokenExchangeError(
                f"Spotify token response was not JSON: {resp.text}", status=resp.status_code, body=resp.text
            ) from e

        if not isinstance(payload, dict):
            raise TokenExchangeError(f"Spotify token response was not an object: {payload}", status=resp.status_code)

        return payload
