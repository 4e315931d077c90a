"""Tests for the playlist generation logic."""

import random
from collections import Counter
from datetime import UTC, datetime, timedelta

import pytest

from vinyl_radio.common.models.enums import PlaylistEntryType
from vinyl_radio.common.models.errors import InvalidDataError
from vinyl_radio.common.models.playlist import AlgorithmWeights, CatalogTrack, PlaylistConfig
from vinyl_radio.server.helpers import playlist_builder
from vinyl_radio.server.helpers.playlist_builder import (
    PLAYLIST_ALGORITHMS,
    build_playlist,
    can_interleave,
    get_algorithm,
    score_track,
)

NOW = datetime(2026, 10, 1, tzinfo=UTC)


def _track(track_id: str, genre: str = "Rock", artist: str | None = None, **kwargs) -> CatalogTrack:
    return CatalogTrack(
        id=track_id,
        name=f"Track {track_id}",
        artist=artist or f"Artist {track_id}",
        audio_url=f"https://cdn.example.com/audio/{track_id}.mp3",
        duration=kwargs.pop("duration", 100),
        genre=genre,
        **kwargs,
    )


def test_algorithms() -> None:
    """Test the builtin playlist algorithms."""
    assert set(PLAYLIST_ALGORITHMS) == {"balanced", "discovery", "popular", "genreSpecific"}
    balanced = get_algorithm("balanced")
    assert balanced.name == "Balanced Mix"
    assert balanced.weights == AlgorithmWeights(0.3, 0.2, 0.2, 0.2, 0.1)
    assert get_algorithm("genreSpecific").weights.diversity == 0
    for algorithm in PLAYLIST_ALGORITHMS.values():
        weights = algorithm.weights.to_dict().values()
        assert all(0 <= x <= 1 for x in weights)
        assert sum(weights) == pytest.approx(1)
    with pytest.raises(InvalidDataError):
        get_algorithm("unknown")


@pytest.mark.parametrize("algorithm", list(PLAYLIST_ALGORITHMS))
@pytest.mark.parametrize("max_duration", [0, 99, 250, 1000, 3600])
@pytest.mark.parametrize("include_tts", [False, True])
def test_duration_budget(algorithm: str, max_duration: float, include_tts: bool) -> None:
    """Test that a playlist never exceeds the requested duration."""
    rng = random.Random(max_duration)
    genres = ["Rock", "Jazz", "Soul", "Blues"]
    catalog = [
        _track(
            str(index),
            genre=rng.choice(genres),
            duration=rng.randint(60, 400),
            play_count=rng.randint(0, 100),
            created_at=NOW - timedelta(days=rng.randint(0, 60)),
        )
        for index in range(25)
    ]
    config = PlaylistConfig(
        max_duration=max_duration, include_tts=include_tts, algorithm=algorithm
    )
    entries = build_playlist(catalog, config, ad_clips=["https://ads.example.com/1.mp3"], now=NOW)
    assert sum(x.duration for x in entries) <= max_duration
    assert [x.position for x in entries] == list(range(len(entries)))
    track_ids = [x.track_id for x in entries if x.entry_type == PlaylistEntryType.TRACK]
    assert len(track_ids) == len(set(track_ids))


def test_empty_playlist() -> None:
    """Test that no fitting track results in an empty playlist (no error)."""
    catalog = [_track("a", duration=500), _track("b", duration=900)]
    assert build_playlist(catalog, PlaylistConfig(max_duration=300)) == []
    assert build_playlist([], PlaylistConfig()) == []


def test_genres_interleaved() -> None:
    """Test that the same genre is not placed adjacently when an alternative exists."""
    catalog = [_track("a", "rock"), _track("b", "rock"), _track("c", "jazz")]
    entries = build_playlist(catalog, PlaylistConfig(max_duration=1000, algorithm="balanced"))
    genres = [next(x.genre for x in catalog if x.id == e.track_id) for e in entries]
    assert genres == ["rock", "jazz", "rock"]


def test_genres_interleaved_large() -> None:
    """Test interleaving with a skewed genre distribution."""
    catalog = [_track(f"r{x}", "Rock") for x in range(4)] + [
        _track(f"j{x}", "Jazz") for x in range(3)
    ]
    entries = build_playlist(catalog, PlaylistConfig(max_duration=10000, algorithm="discovery"))
    genres = [e.track_id[0] for e in entries]
    assert len(genres) == 7
    assert all(genres[i] != genres[i + 1] for i in range(len(genres) - 1))


def test_ties_break_by_catalog_order() -> None:
    """Test that equal scoring tracks keep the catalog order."""
    catalog = [_track(x, artist="Same Artist") for x in ("c", "a", "b")]
    config = PlaylistConfig(max_duration=1000, algorithm="genreSpecific")
    entries = build_playlist(catalog, config)
    assert [x.track_id for x in entries] == ["c", "a", "b"]


def test_shuffle_ties() -> None:
    """Test that shuffle only reorders equal scoring tracks."""
    catalog = [_track(x, artist="Same Artist") for x in "abcdef"]
    catalog.append(_track("hit", artist="Same Artist", play_count=1000))
    config = PlaylistConfig(max_duration=10000, algorithm="popular", shuffle_tracks=True)
    orders = {
        tuple(x.track_id for x in build_playlist(catalog, config, rng=random.Random(seed)))
        for seed in range(10)
    }
    assert all(order[0] == "hit" for order in orders)
    assert len(orders) > 1


def test_preferred_genres() -> None:
    """Test that preferred genres win with the genre specific algorithm."""
    catalog = [_track("a", "Rock", play_count=50), _track("b", "Jazz"), _track("c", "Soul")]
    config = PlaylistConfig(max_duration=1000, algorithm="genreSpecific", genres=["jazz"])
    entries = build_playlist(catalog, config)
    assert entries[0].track_id == "b"


def test_intros_and_ads() -> None:
    """Test the tts intro and ad markers."""
    catalog = [_track(str(x), genre=("Rock", "Jazz")[x % 2]) for x in range(7)]
    config = PlaylistConfig(max_duration=10000, include_tts=True, voice_id="nova")
    entries = build_playlist(catalog, config, ad_clips=["https://ads.example.com/1.mp3"])
    types = [x.entry_type for x in entries]
    expected = (
        [PlaylistEntryType.AD]
        + [PlaylistEntryType.INTRO, PlaylistEntryType.TRACK] * 5
        + [PlaylistEntryType.AD]
        + [PlaylistEntryType.INTRO, PlaylistEntryType.TRACK] * 2
    )
    assert types == expected
    for intro, track in zip(entries[1::2], entries[2::2], strict=False):
        if intro.entry_type != PlaylistEntryType.INTRO:
            break
        assert intro.track_id == track.track_id
        assert intro.duration == 30
        assert intro.voice_id == "nova"
        assert f"Track {track.track_id}" in intro.text
    assert entries[0].url == "https://ads.example.com/1.mp3"
    assert entries[0].duration == 30


def test_intros_without_ads() -> None:
    """Test that no ad markers are added when no ad clip is available."""
    catalog = [_track(str(x)) for x in range(3)]
    entries = build_playlist(catalog, PlaylistConfig(max_duration=10000, include_tts=True))
    assert Counter(x.entry_type for x in entries) == {
        PlaylistEntryType.INTRO: 3,
        PlaylistEntryType.TRACK: 3,
    }


def test_intro_counts_in_budget() -> None:
    """Test that a track is only selected if its intro fits as well."""
    catalog = [_track("a", duration=100)]
    config = PlaylistConfig(max_duration=120, include_tts=True)
    assert build_playlist(catalog, config) == []
    config = PlaylistConfig(max_duration=130, include_tts=True)
    assert len(build_playlist(catalog, config)) == 2


def test_score_components() -> None:
    """Test the individual terms of the track score."""
    state = playlist_builder._SelectionState()
    recency = AlgorithmWeights(genre=0, artist=0, popularity=0, recency=1, diversity=0)
    fresh = _track("a", created_at=NOW)
    old = _track("b", created_at=NOW - timedelta(days=45))
    naive = _track("c", created_at=datetime(2026, 9, 16))
    assert score_track(fresh, recency, state, 1, 0, NOW) == 1
    assert score_track(old, recency, state, 1, 0, NOW) == 0
    assert score_track(naive, recency, state, 1, 0, NOW) == 0.5
    assert score_track(_track("d"), recency, state, 1, 0, NOW) == 0

    popularity = AlgorithmWeights(genre=0, artist=0, popularity=1, recency=0, diversity=0)
    popular = _track("e", play_count=5, like_count=5)
    assert score_track(popular, popularity, state, 1, 20, NOW) == 0.5

    artist = AlgorithmWeights(genre=0, artist=1, popularity=0, recency=0, diversity=0)
    diversity = AlgorithmWeights(genre=0, artist=0, popularity=0, recency=0, diversity=1)
    track = _track("f", artist="Repeat", genre="Soul")
    assert score_track(track, artist, state, 1, 0, NOW) == 1
    assert score_track(track, diversity, state, 1, 0, NOW) == 1
    state.register(_track("g", artist="Repeat", genre="Soul"))
    assert score_track(track, artist, state, 1, 0, NOW) == 0
    assert score_track(track, diversity, state, 1, 0, NOW) == round(1 / 3, 9)
    for index in range(3):
        state.register(_track(f"x{index}"))
    # the artist fell out of the repeat window
    assert score_track(track, artist, state, 1, 0, NOW) == 1


def test_can_interleave() -> None:
    """Test the feasibility check of the genre interleaving."""
    assert can_interleave(Counter(), "Rock")
    assert can_interleave(Counter(rock=2, jazz=1), None)
    assert not can_interleave(Counter(rock=3, jazz=1), None)
    assert not can_interleave(Counter(rock=2, jazz=1), "rock")
    assert can_interleave(Counter(rock=1, jazz=1), "rock")
