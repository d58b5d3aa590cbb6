"""Random album fetch pipeline.

One run performs three dependent catalog calls:

    random search (limit 1) -> album detail -> artist detail

and publishes a ViewState snapshot after every step. Runs are numbered; when
several overlap nothing is cancelled or queued. By default each step writes
as soon as its response arrives, so the last response to resolve wins even if
it belongs to an older run. With ``guard_stale_runs`` enabled, writes from any
run other than the newest one are dropped.
"""

import enum
import logging
import random
import string
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from .client import CatalogClient
from .errors import PipelineError, SpotifyError
from .models import PLACEHOLDER_ALBUM, PLACEHOLDER_ARTIST, Album, Artist

logger = logging.getLogger(__name__)

QUERY_ALPHABET = string.ascii_lowercase + string.digits
DEFAULT_MARKET = "US"
DEFAULT_MAX_OFFSET = 10000


class PipelineState(enum.Enum):
    IDLE = "idle"
    FETCHING_RANDOM_ALBUM_ID = "fetching_random_album_id"
    FETCHING_ALBUM_DETAIL = "fetching_album_detail"
    FETCHING_ARTIST_DETAIL = "fetching_artist_detail"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class ViewState:
    """Everything the front end needs to draw the album card."""

    state: PipelineState = PipelineState.IDLE
    run_id: int = 0
    album: Album = PLACEHOLDER_ALBUM
    artist: Artist = PLACEHOLDER_ARTIST
    error: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.state not in (PipelineState.READY, PipelineState.ERROR)

    def to_dict(self) -> Dict[str, Any]:
        return {"album": self.album.to_dict(), "artist": self.artist.to_dict()}


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one run, independent of what ended up in the snapshot."""

    run_id: int
    state: PipelineState
    album: Optional[Album] = None
    artist: Optional[Artist] = None
    error: Optional[SpotifyError] = None
    # True when at least one write of this run was dropped as stale.
    superseded: bool = False

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.READY and self.error is None


def random_query(rng: random.Random, max_offset: int = DEFAULT_MAX_OFFSET) -> Tuple[str, int]:
    """Pick the search character and result offset for a random album."""

    return rng.choice(QUERY_ALPHABET), rng.randrange(int(max_offset))


StateListener = Callable[[ViewState], None]


class FetchPipeline:
    def __init__(
        self,
        client: CatalogClient,
        *,
        market: str = DEFAULT_MARKET,
        max_offset: int = DEFAULT_MAX_OFFSET,
        rng: Optional[random.Random] = None,
        guard_stale_runs: bool = False,
    ):
        self.client = client
        self.market = market
        self.max_offset = int(max_offset)
        if self.max_offset < 1:
            raise ValueError(f"max_offset must be at least 1, got {max_offset}")
        self.rng = rng or random.Random()
        self.guard_stale_runs = guard_stale_runs

        self._snapshot = ViewState()
        self._last_run_id = 0
        self._listeners: List[StateListener] = []

    @classmethod
    def from_config(cls, client: CatalogClient, config: Dict[str, Any], *, rng: Optional[random.Random] = None) -> "FetchPipeline":
        config = config or {}
        return cls(
            client,
            market=str(config.get("spotify_market") or DEFAULT_MARKET),
            max_offset=int(config.get("spotify_max_offset") or DEFAULT_MAX_OFFSET),
            rng=rng,
            guard_stale_runs=bool(config.get("guard_stale_runs", False)),
        )

    @property
    def snapshot(self) -> ViewState:
        return self._snapshot

    @property
    def last_run_id(self) -> int:
        return self._last_run_id

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _publish(self, run_id: int, **changes: Any) -> bool:
        """Apply changes to the snapshot on behalf of run_id.

        Returns False when the write was dropped because a newer run started.
        """
        if self.guard_stale_runs and run_id != self._last_run_id:
            logger.debug("Dropping stale write from run %s (latest is %s)", run_id, self._last_run_id)
            return False

        self._snapshot = replace(self._snapshot, run_id=run_id, **changes)
        for listener in list(self._listeners):
            listener(self._snapshot)
        return True

    async def fetch_random_album_id(self) -> str:
        query, offset = random_query(self.rng, self.max_offset)
        logger.debug("Searching albums q=%r offset=%s market=%s", query, offset, self.market)

        page = await self.client.search_albums(query, limit=1, offset=offset, market=self.market)
        albums = page.get("albums") if isinstance(page.get("albums"), dict) else {}
        items = albums.get("items")
        first = items[0] if isinstance(items, list) and items and isinstance(items[0], dict) else {}

        album_id = str(first.get("id") or "")
        if not album_id:
            raise PipelineError(f"Album search for {query!r} at offset {offset} returned no albums.")
        return album_id

    async def fetch_album(self, album_id: str) -> Album:
        album = Album.from_spotify(await self.client.get_album(album_id))
        return album if album.id else replace(album, id=album_id)

    async def fetch_artist(self, album: Album) -> Artist:
        if not album.has_artist_id:
            raise PipelineError(f"Album {album.id or album.name!r} has no artist id; not fetching artist.")
        return Artist.from_spotify(await self.client.get_artist(album.artist_id))

    async def run(self) -> PipelineResult:
        """Fetch a random album and its artist, publishing every step."""

        self._last_run_id += 1
        run_id = self._last_run_id
        kept = True
        album: Optional[Album] = None
        artist: Optional[Artist] = None

        kept &= self._publish(run_id, state=PipelineState.FETCHING_RANDOM_ALBUM_ID, error=None)
        try:
            album_id = await self.fetch_random_album_id()

            kept &= self._publish(run_id, state=PipelineState.FETCHING_ALBUM_DETAIL)
            album = await self.fetch_album(album_id)
            logger.info("Run %s: album %r by %r", run_id, album.name, album.artist)

            kept &= self._publish(run_id, state=PipelineState.FETCHING_ARTIST_DETAIL, album=album)
            artist = await self.fetch_artist(album)

            kept &= self._publish(run_id, state=PipelineState.READY, artist=artist)
        except SpotifyError as e:
            logger.error("Run %s failed: %s", run_id, e)
            kept &= self._publish(run_id, state=PipelineState.ERROR, error=str(e))
            return PipelineResult(
                run_id=run_id,
                state=PipelineState.ERROR,
                album=album,
                artist=artist,
                error=e,
                superseded=not kept,
            )

        return PipelineResult(
            run_id=run_id,
            state=PipelineState.READY,
            album=album,
            artist=artist,
            superseded=not kept,
        )
