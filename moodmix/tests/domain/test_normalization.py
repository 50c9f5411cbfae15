import pytest

from moodmix.domain.entities import ArtistRef, Platform, PlaylistItem, RelatedArtist, TopTrack
from moodmix.domain.errors import ShapeMismatch
from moodmix.domain.normalization import (
    PLACEHOLDER_IMAGES, PayloadShape, classify_payload, extract_artists, extract_images, normalize_payload,
)


SHAPE_EXAMPLES = [
    ([{'name': 'P', 'url': 'u', 'image': 'i'}], PayloadShape.FLAT_LIST),
    ({'tracks': [{'name': 'T', 'artists': ['X'], 'url': 'u'}]}, PayloadShape.TRACKS),
    ({'savedTracks': [{'name': 'S', 'artists': 'X', 'url': 'u'}]}, PayloadShape.SAVED_TRACKS),
    ({'recommendations': {'spotify': {'moodPlaylists': [{'name': 'A'}]}, 'youtube': []}},
     PayloadShape.RECOMMENDATIONS),
    ({'songs': [{'name': 'S', 'artists': 'X, Y', 'album': 'Al'}]}, PayloadShape.SONGS),
    ({'artists': [{'name': 'X', 'topTracks': [{'name': 'Hit', 'url': 'u'}]}]}, PayloadShape.ARTISTS),
    ({'title': 'Video', 'url': 'u', 'thumbnail': 't'}, PayloadShape.SINGLE_RECORD),
]


@pytest.mark.parametrize('payload,shape', SHAPE_EXAMPLES)
def test_classify_payload_recognizes_each_shape(payload, shape):
    assert classify_payload(payload) is shape


@pytest.mark.parametrize('payload,_shape', SHAPE_EXAMPLES)
def test_every_shape_yields_items_with_platform_and_artist_list(payload, _shape):
    items = normalize_payload(payload)

    assert items
    for item in items:
        assert isinstance(item, PlaylistItem)
        assert item.platform in (Platform.SPOTIFY, Platform.YOUTUBE)
        assert isinstance(item.artists, list)
        assert all(isinstance(a, ArtistRef) for a in item.artists)


def test_first_matching_shape_wins_when_several_arrays_present():
    payload = {'tracks': [{'name': 'T'}], 'songs': [{'name': 'S'}], 'savedTracks': [{'name': 'X'}]}

    assert classify_payload(payload) is PayloadShape.TRACKS
    assert [i.name for i in normalize_payload(payload)] == ['T']


def test_scalar_payload_raises_shape_mismatch():
    with pytest.raises(ShapeMismatch):
        normalize_payload(42)


def test_tracks_artists_are_joined_and_structured():
    items = normalize_payload({'tracks': [{'name': 'T', 'artists': ['X', 'Y'], 'url': 'u'}]})

    assert len(items) == 1
    assert items[0].artist_name == 'X, Y'
    assert [a.to_dict() for a in items[0].artists] == [{'name': 'X'}, {'name': 'Y'}]
    assert items[0].platform is Platform.SPOTIFY


def test_scalar_artist_string_is_wrapped_as_singleton():
    name, artists = extract_artists({'artists': 'A, B'})

    assert name == 'A, B'
    assert artists == [ArtistRef(name='A, B')]


def test_artist_objects_are_accepted():
    name, artists = extract_artists({'artists': [{'name': 'X'}, {'name': 'Y'}]})

    assert name == 'X, Y'
    assert artists == [ArtistRef(name='X'), ArtistRef(name='Y')]


def test_missing_artists_fall_back_to_artist_name_then_empty():
    assert extract_artists({'artistName': 'Solo'}) == ('Solo', [ArtistRef(name='Solo')])
    assert extract_artists({'name': 'No artist'}) == (None, [])


def test_images_cross_fill_before_placeholder():
    assert extract_images({'image': 'i'}, Platform.YOUTUBE) == ('i', 'i')
    assert extract_images({'thumbnail': 't'}, Platform.SPOTIFY) == ('t', 't')
    assert extract_images({}, Platform.SPOTIFY) == (PLACEHOLDER_IMAGES[Platform.SPOTIFY],) * 2


def test_recommendations_bundle_is_flattened_in_slot_order():
    payload = {'recommendations': {
        'spotify': {'moodPlaylists': [{'name': 'A', 'url': 'u1', 'image': 'i1'}], 'genrePlaylists': []},
        'youtube': [{'name': 'B', 'url': 'u2'}],
    }}

    items = normalize_payload(payload)

    assert len(items) == 2
    assert (items[0].platform, items[0].name, items[0].image) == (Platform.SPOTIFY, 'A', 'i1')
    assert (items[1].platform, items[1].name) == (Platform.YOUTUBE, 'B')
    assert items[1].image == PLACEHOLDER_IMAGES[Platform.YOUTUBE]


def test_artists_shape_yields_one_item_per_top_track():
    payload = {'artists': [
        {'name': 'X', 'topTracks': [{'name': 'One', 'url': 'u1', 'album': 'Al'}, {'name': 'Two'}]},
        {'name': 'Y', 'topTracks': []},
    ]}

    items = normalize_payload(payload)

    assert [i.name for i in items] == ['One', 'Two']
    assert all(i.artist_name == 'X' and i.artists == [ArtistRef(name='X')] for i in items)
    assert items[0].album == 'Al'


def test_artists_without_top_tracks_are_skipped():
    payload = {'artists': [
        {'name': 'X', 'topTracks': [{'name': 'One', 'url': 'u1'}]},
        {'name': 'Y', 'genres': []},
    ]}

    assert classify_payload(payload) is PayloadShape.ARTISTS
    assert [(i.name, i.artist_name) for i in normalize_payload(payload)] == [('One', 'X')]


def test_related_artists_are_mapped_with_their_top_tracks():
    payload = {'tracks': [{
        'name': 'T', 'artists': ['X'], 'url': 'u',
        'relatedArtists': [
            {'name': 'R', 'topTracks': [{'name': 'Hit', 'url': 'h', 'album': 'Al', 'image': 'img'}]},
            {'name': 'Q'},
        ],
    }]}

    item = normalize_payload(payload)[0]

    assert item.related_artists == [
        RelatedArtist(name='R', top_tracks=[TopTrack(name='Hit', url='h', album='Al', image='img')]),
        RelatedArtist(name='Q', top_tracks=[]),
    ]
    assert item.to_dict()['relatedArtists'] == [
        {'name': 'R', 'topTracks': [{'name': 'Hit', 'url': 'h', 'album': 'Al', 'image': 'img'}]},
        {'name': 'Q', 'topTracks': []},
    ]


def test_related_artists_default_to_empty():
    item = normalize_payload({'tracks': [{'name': 'T', 'artists': ['X']}]})[0]

    assert item.related_artists == []
    assert item.to_dict()['relatedArtists'] == []


def test_single_record_platform_is_inferred_from_thumbnail():
    video = normalize_payload({'title': 'Clip', 'url': 'u', 'thumbnail': 't'})[0]
    track = normalize_payload({'name': 'Song', 'url': 'u'})[0]

    assert video.platform is Platform.YOUTUBE
    assert video.name == 'Clip'
    assert track.platform is Platform.SPOTIFY
    assert track.title == 'Song'


def test_explicit_platform_beats_thumbnail_inference():
    item = normalize_payload({'name': 'Song', 'thumbnail': 't', 'platform': 'Spotify'})[0]

    assert item.platform is Platform.SPOTIFY


def test_flat_list_recurses_into_nested_payloads():
    payload = [{'tracks': [{'name': 'T1'}]}, [{'title': 'V', 'thumbnail': 't'}]]

    items = normalize_payload(payload)

    assert [(i.name, i.platform) for i in items] == [('T1', Platform.SPOTIFY), ('V', Platform.YOUTUBE)]


def test_normalizing_normalized_items_is_idempotent():
    first = []
    for payload, _ in SHAPE_EXAMPLES:
        first.extend(normalize_payload(payload))

    again = normalize_payload([item.to_dict() for item in first])
    from_objects = normalize_payload(first)

    assert again == first
    assert from_objects == first


def test_to_dict_always_carries_every_key():
    data = normalize_payload({'name': 'Bare'})[0].to_dict()

    assert set(data) == {
        'name', 'artistName', 'artists', 'url', 'album', 'image',
        'thumbnail', 'title', 'platform', 'relatedArtists',
    }
    assert data['artists'] == []
    assert data['platform'] == 'Spotify'
