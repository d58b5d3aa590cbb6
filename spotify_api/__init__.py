"""Spotify Web API integration (OAuth authorization code + random album catalog)."""

from .auth import SpotifyAuthCodeAuth
from .client import CatalogClient
from .errors import AuthError, AuthorizationError, CatalogError, PipelineError, SpotifyError, TokenExchangeError
from .models import Album, Artist
from .pipeline import FetchPipeline, PipelineResult, PipelineState, ViewState
from .session import RandomifySession
from .token_manager import PLACEHOLDER_TOKENS, TokenManager, TokenSet

__all__ = [
    "SpotifyAuthCodeAuth",
    "CatalogClient",
    "FetchPipeline",
    "PipelineResult",
    "PipelineState",
    "ViewState",
    "RandomifySession",
    "TokenManager",
    "TokenSet",
    "PLACEHOLDER_TOKENS",
    "Album",
    "Artist",
    "SpotifyError",
    "AuthError",
    "AuthorizationError",
    "TokenExchangeError",
    "CatalogError",
    "PipelineError",
]
