import logging
import random
from typing import Any, Dict, Optional

import httpx

from .auth import RedirectHandler, SpotifyAuthCodeAuth
from .client import CatalogClient
from .errors import AuthError
from .pipeline import FetchPipeline, PipelineResult, ViewState
from .token_manager import TokenManager, TokenSet

logger = logging.getLogger(__name__)


class RandomifySession:
    """One app launch: authorize once, then fetch random albums on demand.

    A new TokenSet reconfigures the catalog client. Call start() to authorize
    and fetch the first album, then randomify() for each further album.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        redirect_handler: Optional[RedirectHandler] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or {}
        self.tokens = TokenManager()
        self.auth = SpotifyAuthCodeAuth(self.config, redirect_handler=redirect_handler, http_client=http_client)
        self.client = CatalogClient(self.config, http_client=http_client)
        self.pipeline = FetchPipeline.from_config(self.client, self.config, rng=rng)

        self.tokens.subscribe(self.client.use_tokens)

    @property
    def snapshot(self) -> ViewState:
        return self.pipeline.snapshot

    @property
    def is_authorized(self) -> bool:
        return self.tokens.has_token

    def set_tokens(self, tokens: TokenSet) -> None:
        self.tokens.update(tokens)

    async def authorize(self) -> bool:
        """Acquire a token pair. On failure the previous tokens stay in place."""

        try:
            tokens = await self.auth.get_tokens()
        except AuthError as e:
            logger.error("Spotify authorization failed: %s", e)
            return False

        self.set_tokens(tokens)
        return True

    async def start(self) -> Optional[PipelineResult]:
        """Authorize, then run the pipeline once. Returns None if no token was obtained."""

        if not await self.authorize():
            return None
        return await self.pipeline.run()

    async def randomify(self) -> PipelineResult:
        return await self.pipeline.run()

    async def refresh(self) -> bool:
        """Explicitly trade the refresh token for a new access token.

        Only the catalog client's token changes; no pipeline run is started.
        """

        refresh_token = self.tokens.tokens.refresh_token
        if not self.is_authorized or not refresh_token:
            logger.warning("No refresh token available; authorize first.")
            return False

        try:
            tokens = await self.auth.refresh_access_token(refresh_token)
        except AuthError as e:
            logger.error("Spotify token refresh failed: %s", e)
            return False

        self.set_tokens(tokens)
        return True

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "RandomifySession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
