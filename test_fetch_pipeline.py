import asyncio
import os
import random
import unittest

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

from spotify_api.errors import CatalogError, PipelineError
from spotify_api.models import ARTIST_ID_PLACEHOLDER, THUMBNAIL_PLACEHOLDER, Album
from spotify_api.pipeline import QUERY_ALPHABET, FetchPipeline, PipelineState, random_query

ALBUM_ABC123 = {
    "id": "abc123",
    "name": "X",
    "uri": "spotify:album:abc123",
    "images": [{"url": "img.png"}],
    "artists": [{"name": "Y", "id": "art1"}],
}
ARTIST_ART1 = {"images": [{"url": "thumb.png"}]}


class FakeCatalog:
    """Canned catalog that records every call in order."""

    def __init__(self, *, search=None, album=None, artist=None):
        self.search = {"albums": {"items": [{"id": "abc123"}]}} if search is None else search
        self.album = ALBUM_ABC123 if album is None else album
        self.artist = ARTIST_ART1 if artist is None else artist
        self.calls = []

    async def search_albums(self, query, *, limit=1, offset=0, market=None):
        self.calls.append(("search", query, limit, offset, market))
        return self.search

    async def get_album(self, album_id):
        self.calls.append(("album", album_id))
        if isinstance(self.album, Exception):
            raise self.album
        return self.album

    async def get_artist(self, artist_id):
        self.calls.append(("artist", artist_id))
        return self.artist


class GatedCatalog:
    """Catalog whose artist responses resolve only when the test says so."""

    def __init__(self, album_ids):
        self.album_ids = list(album_ids)
        self.gates = {}
        self.waiting = set()

    async def search_albums(self, query, *, limit=1, offset=0, market=None):
        return {"albums": {"items": [{"id": self.album_ids.pop(0)}]}}

    async def get_album(self, album_id):
        tag = album_id[-1]
        return {
            "id": album_id,
            "name": f"Album {tag}",
            "uri": f"spotify:album:{album_id}",
            "images": [{"url": f"{album_id}.png"}],
            "artists": [{"name": f"Artist {tag}", "id": f"art{tag}"}],
        }

    async def get_artist(self, artist_id):
        gate = self.gates.setdefault(artist_id, asyncio.Event())
        self.waiting.add(artist_id)
        await gate.wait()
        return {"images": [{"url": f"{artist_id}-thumb.png"}]}


async def _until(predicate):
    while not predicate():
        await asyncio.sleep(0)


class TestRandomQuery(unittest.TestCase):
    def test_seeded_rng_is_reproducible(self):
        first = random_query(random.Random(1234))
        second = random_query(random.Random(1234))
        self.assertEqual(first, second)

    def test_character_and_offset_ranges(self):
        rng = random.Random(7)
        for _ in range(500):
            char, offset = random_query(rng, 10000)
            self.assertEqual(len(char), 1)
            self.assertIn(char, QUERY_ALPHABET)
            self.assertTrue(0 <= offset < 10000)


class TestFetchPipeline(unittest.IsolatedAsyncioTestCase):
    async def test_canned_responses_produce_expected_state(self):
        catalog = FakeCatalog()
        pipeline = FetchPipeline(catalog, rng=random.Random(0))

        result = await pipeline.run()

        self.assertTrue(result.ok)
        self.assertEqual(pipeline.snapshot.state, PipelineState.READY)
        self.assertEqual(
            pipeline.snapshot.to_dict(),
            {
                "album": {
                    "name": "X",
                    "url": "spotify:album:abc123",
                    "image": "img.png",
                    "artist": "Y",
                    "artist_id": "art1",
                },
                "artist": {"thumbnail": "thumb.png"},
            },
        )
        self.assertEqual([c[0] for c in catalog.calls], ["search", "album", "artist"])
        self.assertEqual(catalog.calls[1], ("album", "abc123"))
        self.assertEqual(catalog.calls[2], ("artist", "art1"))

    async def test_search_uses_limit_one_and_market(self):
        catalog = FakeCatalog()
        pipeline = FetchPipeline(catalog, market="SE", rng=random.Random(0))
        await pipeline.run()

        _, query, limit, offset, market = catalog.calls[0]
        self.assertEqual(limit, 1)
        self.assertEqual(market, "SE")
        self.assertIn(query, QUERY_ALPHABET)
        self.assertTrue(0 <= offset < 10000)

    async def test_same_seed_issues_same_search(self):
        first, second = FakeCatalog(), FakeCatalog()
        await FetchPipeline(first, rng=random.Random(99)).run()
        await FetchPipeline(second, rng=random.Random(99)).run()
        self.assertEqual(first.calls[0], second.calls[0])

    async def test_rerunning_with_canned_responses_is_idempotent(self):
        pipeline = FetchPipeline(FakeCatalog(), rng=random.Random(3))
        await pipeline.run()
        first = pipeline.snapshot.to_dict()
        await pipeline.run()
        await pipeline.run()

        self.assertEqual(pipeline.snapshot.to_dict(), first)
        self.assertEqual(pipeline.snapshot.run_id, 3)

    async def test_states_are_published_in_order(self):
        pipeline = FetchPipeline(FakeCatalog(), rng=random.Random(0))
        seen = []
        pipeline.subscribe(lambda view: seen.append(view.state))

        await pipeline.run()

        self.assertEqual(
            seen,
            [
                PipelineState.FETCHING_RANDOM_ALBUM_ID,
                PipelineState.FETCHING_ALBUM_DETAIL,
                PipelineState.FETCHING_ARTIST_DETAIL,
                PipelineState.READY,
            ],
        )

    async def test_artist_not_fetched_without_artist_id(self):
        album = dict(ALBUM_ABC123, artists=[])
        catalog = FakeCatalog(album=album)
        pipeline = FetchPipeline(catalog, rng=random.Random(0))

        result = await pipeline.run()

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, PipelineError)
        self.assertNotIn("artist", [c[0] for c in catalog.calls])
        self.assertEqual(pipeline.snapshot.state, PipelineState.ERROR)
        self.assertEqual(pipeline.snapshot.album.artist_id, ARTIST_ID_PLACEHOLDER)
        self.assertEqual(pipeline.snapshot.artist.thumbnail, THUMBNAIL_PLACEHOLDER)

    async def test_empty_search_result_stops_before_album(self):
        catalog = FakeCatalog(search={"albums": {"items": []}})
        pipeline = FetchPipeline(catalog, rng=random.Random(0))

        result = await pipeline.run()

        self.assertEqual(result.state, PipelineState.ERROR)
        self.assertIsInstance(result.error, PipelineError)
        self.assertEqual([c[0] for c in catalog.calls], ["search"])

    async def test_malformed_search_items_end_in_error_state(self):
        catalog = FakeCatalog(search={"albums": {"items": {"id": "abc123"}}})
        pipeline = FetchPipeline(catalog, rng=random.Random(0))

        result = await pipeline.run()

        self.assertIsInstance(result.error, PipelineError)
        self.assertEqual(pipeline.snapshot.state, PipelineState.ERROR)
        self.assertEqual([c[0] for c in catalog.calls], ["search"])

    async def test_album_without_id_keeps_searched_id(self):
        catalog = FakeCatalog(album={k: v for k, v in ALBUM_ABC123.items() if k != "id"})
        pipeline = FetchPipeline(catalog, rng=random.Random(0))

        await pipeline.run()

        self.assertEqual(pipeline.snapshot.album.id, "abc123")
        self.assertEqual(pipeline.snapshot.album.name, "X")

    def test_max_offset_must_be_positive(self):
        with self.assertRaises(ValueError):
            FetchPipeline(FakeCatalog(), max_offset=0)

    async def test_catalog_failure_is_returned_not_swallowed(self):
        catalog = FakeCatalog(album=CatalogError("Spotify API error 500", status=500))
        pipeline = FetchPipeline(catalog, rng=random.Random(0))

        result = await pipeline.run()

        self.assertIsInstance(result.error, CatalogError)
        self.assertEqual(result.error.status, 500)
        self.assertEqual(pipeline.snapshot.state, PipelineState.ERROR)
        self.assertIn("500", pipeline.snapshot.error)

    async def test_failed_run_keeps_previous_album(self):
        catalog = FakeCatalog()
        pipeline = FetchPipeline(catalog, rng=random.Random(0))
        await pipeline.run()

        catalog.album = CatalogError("boom")
        await pipeline.run()

        self.assertEqual(pipeline.snapshot.state, PipelineState.ERROR)
        self.assertEqual(pipeline.snapshot.album.name, "X")
        self.assertEqual(pipeline.snapshot.artist.thumbnail, "thumb.png")

    async def test_error_clears_on_next_successful_run(self):
        catalog = FakeCatalog(album=CatalogError("boom"))
        pipeline = FetchPipeline(catalog, rng=random.Random(0))
        await pipeline.run()
        self.assertIsNotNone(pipeline.snapshot.error)

        catalog.album = ALBUM_ABC123
        await pipeline.run()
        self.assertIsNone(pipeline.snapshot.error)
        self.assertEqual(pipeline.snapshot.state, PipelineState.READY)


class TestOverlappingRuns(unittest.IsolatedAsyncioTestCase):
    async def _overlap(self, pipeline, catalog):
        run_a = asyncio.create_task(pipeline.run())
        await _until(lambda: "artA" in catalog.waiting)
        run_b = asyncio.create_task(pipeline.run())
        await _until(lambda: "artB" in catalog.waiting)

        # B's artist resolves first, then A's.
        catalog.gates["artB"].set()
        result_b = await run_b
        catalog.gates["artA"].set()
        result_a = await run_a
        return result_a, result_b

    async def test_last_response_wins_without_guard(self):
        catalog = GatedCatalog(["albumA", "albumB"])
        pipeline = FetchPipeline(catalog, rng=random.Random(0))

        result_a, result_b = await self._overlap(pipeline, catalog)

        self.assertTrue(result_a.ok and result_b.ok)
        self.assertEqual(pipeline.snapshot.artist.thumbnail, "artA-thumb.png")
        self.assertEqual(pipeline.snapshot.run_id, result_a.run_id)
        # The album card now mixes B's album with A's artist.
        self.assertEqual(pipeline.snapshot.album.name, "Album B")

    async def test_guard_drops_writes_from_superseded_run(self):
        catalog = GatedCatalog(["albumA", "albumB"])
        pipeline = FetchPipeline(catalog, rng=random.Random(0), guard_stale_runs=True)

        result_a, result_b = await self._overlap(pipeline, catalog)

        self.assertTrue(result_a.superseded)
        self.assertFalse(result_b.superseded)
        self.assertEqual(result_a.artist.thumbnail, "artA-thumb.png")
        self.assertEqual(pipeline.snapshot.artist.thumbnail, "artB-thumb.png")
        self.assertEqual(pipeline.snapshot.album.name, "Album B")
        self.assertEqual(pipeline.snapshot.run_id, result_b.run_id)


class TestAlbumModel(unittest.TestCase):
    def test_missing_fields_keep_placeholders(self):
        album = Album.from_spotify({"id": "x"})
        self.assertEqual(album.name, "album_name")
        self.assertEqual(album.image, "image_URL")
        self.assertEqual(album.url, "album_URL")
        self.assertFalse(album.has_artist_id)
        self.assertIsNone(album.listen_url)

    def test_listen_url_prefers_web_link(self):
        album = Album.from_spotify(dict(ALBUM_ABC123, external_urls={"spotify": "https://open.spotify.com/album/abc123"}))
        self.assertEqual(album.listen_url, "https://open.spotify.com/album/abc123")
        self.assertEqual(Album.from_spotify(ALBUM_ABC123).listen_url, "spotify:album:abc123")


if __name__ == "__main__":
    unittest.main(verbosity=2)
