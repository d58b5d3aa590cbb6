from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

NO_ACCESS_TOKEN = "no_access_token"
NO_REFRESH_TOKEN = "no_refresh_token"
NO_EXPIRE_TIME = "no_expire_time"


@dataclass(frozen=True)
class TokenSet:
    """Token pair returned by one authorization cycle.

    Before the first successful exchange the session holds PLACEHOLDER_TOKENS,
    whose fields are marker strings rather than credentials.
    """

    access_token: str
    refresh_token: Optional[str]
    expires_in: Union[int, str]
    token_type: str = "Bearer"
    scope: Optional[str] = None

    @staticmethod
    def from_spotify_token_response(payload: Dict[str, Any]) -> "TokenSet":
        """Convert Spotify token response JSON into a TokenSet.

        Spotify returns:
        - access_token
        - token_type
        - expires_in (seconds)
        - refresh_token (optional on refresh)
        - scope (space-delimited string)
        """

        try:
            expires_in: Union[int, str] = int(payload.get("expires_in", 0))
        except (TypeError, ValueError):
            expires_in = 0

        return TokenSet(
            access_token=str(payload.get("access_token") or ""),
            refresh_token=payload.get("refresh_token"),
            expires_in=expires_in,
            token_type=str(payload.get("token_type") or "Bearer"),
            scope=payload.get("scope"),
        )

    @property
    def is_placeholder(self) -> bool:
        return not self.access_token or self.access_token == NO_ACCESS_TOKEN

    def __repr__(self) -> str:
        return (
            f"TokenSet(access_token={mask_token(self.access_token)!r}, "
            f"refresh_token={mask_token(self.refresh_token)!r}, expires_in={self.expires_in!r})"
        )


PLACEHOLDER_TOKENS = TokenSet(
    access_token=NO_ACCESS_TOKEN,
    refresh_token=NO_REFRESH_TOKEN,
    expires_in=NO_EXPIRE_TIME,
)


def mask_token(token: Optional[str]) -> str:
    """Shorten a credential for log output."""
    token = str(token or "")
    if token in ("", NO_ACCESS_TOKEN, NO_REFRESH_TOKEN):
        return token
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


TokenListener = Callable[[TokenSet], None]


class TokenManager:
    """In-memory holder for the session's current TokenSet.

    Updates are last-write-wins and listeners are notified synchronously in
    registration order. Nothing is written to disk.
    """

    def __init__(self, initial: TokenSet = PLACEHOLDER_TOKENS):
        self._tokens = initial
        self._listeners: List[TokenListener] = []

    @property
    def tokens(self) -> TokenSet:
        return self._tokens

    @property
    def has_token(self) -> bool:
        return not self._tokens.is_placeholder

    def subscribe(self, listener: TokenListener) -> None:
        self._listeners.append(listener)

    def update(self, tokens: TokenSet) -> None:
        self._tokens = tokens
        for listener in list(self._listeners):
            listener(tokens)
