from typing import Optional


class SpotifyError(RuntimeError):
    """Base class for every failure raised by spotify_api."""


class AuthError(SpotifyError):
    """Authorization or token exchange did not produce a usable token."""


class AuthorizationError(AuthError):
    """The browser redirect flow failed, was cancelled, or returned no code."""


class TokenExchangeError(AuthError):
    """The token endpoint rejected the request or answered with garbage."""

    def __init__(self, message: str, *, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class CatalogError(SpotifyError):
    """A catalog (search/album/artist) request failed."""

    def __init__(self, message: str, *, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class PipelineError(SpotifyError):
    """A fetch step produced data the next step cannot use."""
