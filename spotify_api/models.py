from dataclasses import dataclass
from typing import Any, Dict, Optional

ALBUM_NAME_PLACEHOLDER = "album_name"
ARTIST_NAME_PLACEHOLDER = "artist_name"
ARTIST_ID_PLACEHOLDER = "artist_ID"
IMAGE_PLACEHOLDER = "image_URL"
ALBUM_URL_PLACEHOLDER = "album_URL"
THUMBNAIL_PLACEHOLDER = "thumbnail_URL"


def _first_dict(value: Any) -> Dict[str, Any]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return {}


def first_image_url(payload: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return images[0].url from a Spotify object, if present."""
    url = _first_dict((payload or {}).get("images")).get("url")
    return str(url) if url else None


@dataclass(frozen=True)
class Album:
    """The album card shown to the user.

    Fields Spotify did not return keep their placeholder string.
    """

    id: Optional[str] = None
    name: str = ALBUM_NAME_PLACEHOLDER
    artist: str = ARTIST_NAME_PLACEHOLDER
    artist_id: str = ARTIST_ID_PLACEHOLDER
    image: str = IMAGE_PLACEHOLDER
    url: str = ALBUM_URL_PLACEHOLDER
    external_url: Optional[str] = None

    @staticmethod
    def from_spotify(payload: Dict[str, Any]) -> "Album":
        payload = payload or {}
        artist = _first_dict(payload.get("artists"))
        external = payload.get("external_urls") if isinstance(payload.get("external_urls"), dict) else {}

        return Album(
            id=payload.get("id"),
            name=str(payload.get("name") or ALBUM_NAME_PLACEHOLDER),
            artist=str(artist.get("name") or ARTIST_NAME_PLACEHOLDER),
            artist_id=str(artist.get("id") or ARTIST_ID_PLACEHOLDER),
            image=first_image_url(payload) or IMAGE_PLACEHOLDER,
            url=str(payload.get("uri") or ALBUM_URL_PLACEHOLDER),
            external_url=external.get("spotify"),
        )

    @property
    def has_artist_id(self) -> bool:
        return bool(self.artist_id) and self.artist_id != ARTIST_ID_PLACEHOLDER

    @property
    def listen_url(self) -> Optional[str]:
        """Best link for opening the album outside the app."""
        if self.external_url:
            return self.external_url
        if self.url and self.url != ALBUM_URL_PLACEHOLDER:
            return self.url
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "image": self.image,
            "artist": self.artist,
            "artist_id": self.artist_id,
        }


@dataclass(frozen=True)
class Artist:
    thumbnail: str = THUMBNAIL_PLACEHOLDER

    @staticmethod
    def from_spotify(payload: Dict[str, Any]) -> "Artist":
        return Artist(thumbnail=first_image_url(payload) or THUMBNAIL_PLACEHOLDER)

    def to_dict(self) -> Dict[str, Any]:
        return {"thumbnail": self.thumbnail}


PLACEHOLDER_ALBUM = Album()
PLACEHOLDER_ARTIST = Artist()
