from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from .entities import ArtistRef, PlaylistItem, Platform, RelatedArtist, TopTrack
from .errors import ShapeMismatch


PLACEHOLDER_IMAGES = {
    Platform.SPOTIFY: "/image2.jpeg",
    Platform.YOUTUBE: "/image1.jpeg",
}
_ARTIST_SEPARATOR = ", "
_PLATFORMS_BY_VALUE = {p.value: p for p in Platform}


class PayloadShape(Enum):
    """Recognized upstream payload shapes, in classification priority order."""

    FLAT_LIST = 1
    TRACKS = 2
    SAVED_TRACKS = 3
    RECOMMENDATIONS = 4
    SONGS = 5
    ARTISTS = 6
    SINGLE_RECORD = 7


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_leaf_record(payload: Mapping[str, Any]) -> bool:
    return any(key in payload for key in ("name", "title", "url"))


def classify_payload(payload: Any) -> PayloadShape:
    """Return the first shape the payload matches.

    Providers structure responses consistently per endpoint, so the first match
    is taken even when a payload incidentally carries several array fields.
    """
    if _is_list(payload):
        return PayloadShape.FLAT_LIST
    if not isinstance(payload, Mapping):
        raise ShapeMismatch(f"Cannot normalize payload of type {type(payload).__name__}")
    if _is_list(payload.get("tracks")):
        return PayloadShape.TRACKS
    if _is_list(payload.get("savedTracks")):
        return PayloadShape.SAVED_TRACKS
    if isinstance(payload.get("recommendations"), Mapping):
        return PayloadShape.RECOMMENDATIONS
    if _is_list(payload.get("songs")):
        return PayloadShape.SONGS
    # A leaf record also has an "artists" list, but of plain names without top tracks.
    # Artists lacking topTracks are skipped during mapping.
    artists = payload.get("artists")
    if _is_list(artists) and not _is_leaf_record(payload) \
            and all(isinstance(a, Mapping) for a in artists) \
            and (not artists or any("topTracks" in a for a in artists)):
        return PayloadShape.ARTISTS
    return PayloadShape.SINGLE_RECORD


def _artist_names(raw: Any) -> List[Optional[str]]:
    names = []
    for artist in raw:
        if isinstance(artist, Mapping):
            names.append(artist.get("name"))
        else:
            names.append(artist)
    return names


def extract_artists(record: Mapping[str, Any]) -> Tuple[Optional[str], List[ArtistRef]]:
    """Return the flattened ``artistName`` string and the structured artist list."""
    raw = record.get("artists")
    if _is_list(raw):
        names = _artist_names(raw)
        joined = _ARTIST_SEPARATOR.join(str(n) for n in names if n)
        return joined or None, [ArtistRef(name=n) for n in names]
    if raw:
        return raw, [ArtistRef(name=raw)]
    fallback = record.get("artistName")
    if fallback:
        return fallback, [ArtistRef(name=fallback)]
    return None, []


def extract_images(record: Mapping[str, Any], platform: Platform) -> Tuple[str, str]:
    """Return ``(image, thumbnail)`` cross-filled from each other, placeholder last."""
    image = record.get("image")
    thumbnail = record.get("thumbnail")
    placeholder = PLACEHOLDER_IMAGES[platform]
    return image or thumbnail or placeholder, thumbnail or image or placeholder


def _related_artists(record: Mapping[str, Any]) -> List[RelatedArtist]:
    related = []
    for artist in record.get("relatedArtists") or []:
        top_tracks = [
            TopTrack(
                name=track.get("name"),
                url=track.get("url"),
                album=track.get("album"),
                image=track.get("image"),
            )
            for track in artist.get("topTracks") or []
        ]
        related.append(RelatedArtist(name=artist.get("name"), top_tracks=top_tracks))
    return related


def build_item(record: Mapping[str, Any], platform: Platform) -> PlaylistItem:
    """Map one leaf record (track, playlist, song or video) onto a PlaylistItem."""
    artist_name, artists = extract_artists(record)
    image, thumbnail = extract_images(record, platform)
    return PlaylistItem(
        platform=platform,
        name=record.get("name") or record.get("title"),
        title=record.get("title") or record.get("name"),
        artist_name=artist_name,
        artists=artists,
        url=record.get("url"),
        album=record.get("album"),
        image=image,
        thumbnail=thumbnail,
        related_artists=_related_artists(record),
    )


def _infer_platform(record: Mapping[str, Any]) -> Platform:
    explicit = record.get("platform")
    if isinstance(explicit, Platform):
        return explicit
    if explicit in _PLATFORMS_BY_VALUE:
        return _PLATFORMS_BY_VALUE[explicit]
    return Platform.YOUTUBE if record.get("thumbnail") else Platform.SPOTIFY


def _map_records(records: Iterable[Mapping[str, Any]], platform: Platform) -> List[PlaylistItem]:
    return [build_item(r, platform) for r in records]


def _normalize_recommendations(bundle: Mapping[str, Any]) -> List[PlaylistItem]:
    items: List[PlaylistItem] = []
    spotify = bundle.get("spotify") or {}
    items.extend(_map_records(spotify.get("moodPlaylists") or [], Platform.SPOTIFY))
    items.extend(_map_records(spotify.get("genrePlaylists") or [], Platform.SPOTIFY))
    items.extend(_map_records(bundle.get("youtube") or [], Platform.YOUTUBE))
    return items


def _normalize_artists(artists: Iterable[Mapping[str, Any]]) -> List[PlaylistItem]:
    items = []
    for artist in artists:
        top_tracks = artist.get("topTracks")
        if not _is_list(top_tracks):
            continue
        for track in top_tracks:
            image, thumbnail = extract_images(track, Platform.SPOTIFY)
            items.append(PlaylistItem(
                platform=Platform.SPOTIFY,
                name=track.get("name"),
                title=track.get("name"),
                artist_name=artist.get("name"),
                artists=[ArtistRef(name=artist.get("name"))],
                url=track.get("url"),
                album=track.get("album"),
                image=image,
                thumbnail=thumbnail,
            ))
    return items


def normalize_payload(payload: Any) -> List[PlaylistItem]:
    """Flatten any recognized upstream payload into playlist items.

    The single-record fallback yields a one-element list so callers can always
    extend their result with the return value.
    """
    if isinstance(payload, PlaylistItem):
        payload = payload.to_dict()
    shape = classify_payload(payload)

    if shape is PayloadShape.FLAT_LIST:
        items: List[PlaylistItem] = []
        for element in payload:
            items.extend(normalize_payload(element))
        return items
    if shape is PayloadShape.TRACKS:
        return _map_records(payload["tracks"], Platform.SPOTIFY)
    if shape is PayloadShape.SAVED_TRACKS:
        return _map_records(payload["savedTracks"], Platform.SPOTIFY)
    if shape is PayloadShape.RECOMMENDATIONS:
        return _normalize_recommendations(payload["recommendations"])
    if shape is PayloadShape.SONGS:
        return _map_records(payload["songs"], Platform.SPOTIFY)
    if shape is PayloadShape.ARTISTS:
        return _normalize_artists(payload["artists"])
    return [build_item(payload, _infer_platform(payload))]
