import json
import logging
from typing import Any, Dict, Optional

import httpx

from .errors import CatalogError
from .token_manager import NO_ACCESS_TOKEN, TokenSet

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"


class CatalogClient:
    """Thin async Spotify Web API client for the album/artist catalog.

    The access token is an explicit value on the client; whoever owns the
    session calls set_access_token() when a new token arrives. Every call
    reads the token current at the time it is issued.

    No retry, caching or paging: each method is exactly one request.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        access_token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or {}
        self._access_token = access_token
        self._token_type = "Bearer"
        self._http = http_client
        self._owns_http = http_client is None

    # -----------------
    # Token management
    # -----------------

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def is_configured(self) -> bool:
        return bool(self._access_token) and self._access_token != NO_ACCESS_TOKEN

    def set_access_token(self, token: str, *, token_type: str = "Bearer") -> None:
        self._access_token = token
        self._token_type = token_type or "Bearer"

    def use_tokens(self, tokens: TokenSet) -> None:
        self.set_access_token(tokens.access_token, token_type=tokens.token_type)

    # -----------------
    # HTTP helpers
    # -----------------

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            timeout = float(self.config.get("spotify_request_timeout", 30.0))
            self._http = httpx.AsyncClient(timeout=timeout, follow_redirects=False)
            self._owns_http = True
        return self._http

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request_json(self, method: str, path: str, *, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Make a Spotify Web API request and return parsed JSON."""

        if not self.is_configured:
            raise CatalogError("No Spotify access token configured. Run the authorization flow first.")

        url = f"{SPOTIFY_API_BASE_URL}{path}"
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}
        headers = {
            "Authorization": f"{self._token_type} {self._access_token}",
            "Accept": "application/json",
        }

        logger.debug("%s %s %s", method.upper(), path, query)
        try:
            resp = await self._get_http().request(method.upper(), url, params=query or None, headers=headers)
        except httpx.HTTPError as e:
            raise CatalogError(f"Spotify API request failed: {e}") from e

        body = resp.text
        if resp.status_code >= 400:
            raise CatalogError(f"Spotify API error {resp.status_code}: {body}", status=resp.status_code, body=body)

        if not body:
            return {}

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise CatalogError(
                f"Spotify API response was not JSON (status {resp.status_code}): {body}",
                status=resp.status_code,
                body=body,
            ) from e

        if not isinstance(payload, dict):
            raise CatalogError(f"Spotify API response was not an object: {payload}", status=resp.status_code)

        return payload

    # -----------------
    # Catalog endpoints
    # -----------------

    async def search_albums(
        self,
        query: str,
        *,
        limit: int = 1,
        offset: int = 0,
        market: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.request_json(
            "GET",
            "/search",
            params={"q": query, "type": "album", "limit": limit, "offset": offset, "market": market},
        )

    async def get_album(self, album_id: str) -> Dict[str, Any]:
        if not album_id:
            raise CatalogError("get_album() needs an album id")
        return await self.request_json("GET", f"/albums/{album_id}")

    async def get_artist(self, artist_id: str) -> Dict[str, Any]:
        if not artist_id:
            raise CatalogError("get_artist() needs an artist id")
        return await self.request_json("GET", f"/artists/{artist_id}")
