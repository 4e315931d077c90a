"""
Playlist generation logic.

Tracks are selected greedily: every step the highest scoring candidate that still
fits the duration budget is picked, after which the running diversity counters
are updated. The score of a candidate is the weighted combination of:
- genre match (preferred genres, or the share of the genre in the remaining catalog)
- artist diversity (penalty when the artist was played within the last few tracks)
- normalized popularity
- normalized recency
- diversity bonus (decreases with every selected track of the same genre/artist)
"""

from __future__ import annotations

import logging
import random
from collections import Counter, deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from vinyl_radio.common.models.enums import PlaylistEntryType
from vinyl_radio.common.models.errors import InvalidDataError
from vinyl_radio.common.models.playlist import (
    AlgorithmWeights,
    CatalogTrack,
    PlaylistAlgorithm,
    PlaylistConfig,
    PlaylistEntry,
)
from vinyl_radio.constants import (
    AD_DURATION,
    AD_INTERVAL,
    ARTIST_REPEAT_WINDOW,
    RECENCY_WINDOW_DAYS,
    ROOT_LOGGER_NAME,
    TTS_INTRO_DURATION,
)

LOGGER = logging.getLogger(f"{ROOT_LOGGER_NAME}.playlist_builder")

SCORE_PRECISION = 9

PLAYLIST_ALGORITHMS: dict[str, PlaylistAlgorithm] = {
    "balanced": PlaylistAlgorithm(
        key="balanced",
        name="Balanced Mix",
        description="A balanced mix of genres, artists, and popularity",
        weights=AlgorithmWeights(
            genre=0.3, artist=0.2, popularity=0.2, recency=0.2, diversity=0.1
        ),
    ),
    "discovery": PlaylistAlgorithm(
        key="discovery",
        name="Discovery Focus",
        description="Focus on new and lesser-known tracks",
        weights=AlgorithmWeights(
            genre=0.2, artist=0.1, popularity=0.1, recency=0.4, diversity=0.2
        ),
    ),
    "popular": PlaylistAlgorithm(
        key="popular",
        name="Popular Hits",
        description="Focus on popular and trending tracks",
        weights=AlgorithmWeights(
            genre=0.2, artist=0.1, popularity=0.5, recency=0.1, diversity=0.1
        ),
    ),
    "genreSpecific": PlaylistAlgorithm(
        key="genreSpecific",
        name="Genre Specific",
        description="Focus on specific genres",
        weights=AlgorithmWeights(
            genre=0.6, artist=0.2, popularity=0.1, recency=0.1, diversity=0.0
        ),
    ),
}

INTRO_TEMPLATES = (
    "Now featuring {name} by {artist}. Enjoy this {genre} selection.",
    "Up next on Vinyl Radio: {name} from {artist}.",
    "Here's {artist} with {name}, straight from the {genre} crates.",
)


def get_algorithm(key: str) -> PlaylistAlgorithm:
    """Return the playlist algorithm by its key."""
    if algorithm := PLAYLIST_ALGORITHMS.get(key):
        return algorithm
    msg = f"Unknown playlist algorithm: {key}"
    raise InvalidDataError(msg)


def intro_text(track: CatalogTrack, position: int = 0) -> str:
    """Return the script for the (tts) intro of a track."""
    template = INTRO_TEMPLATES[position % len(INTRO_TEMPLATES)]
    return template.format(name=track.name, artist=track.artist, genre=track.genre.lower())


@dataclass
class _SelectionState:
    """Running counters of the greedy selection."""

    genre_counts: Counter[str] = field(default_factory=Counter)
    artist_counts: Counter[str] = field(default_factory=Counter)
    recent_artists: deque[str] = field(default_factory=lambda: deque(maxlen=ARTIST_REPEAT_WINDOW))
    previous_genre: str | None = None

    def register(self, track: CatalogTrack) -> None:
        """Update the counters with a selected track."""
        self.genre_counts[track.genre] += 1
        self.artist_counts[track.artist] += 1
        self.recent_artists.append(track.artist)
        self.previous_genre = track.genre


def score_track(
    track: CatalogTrack,
    weights: AlgorithmWeights,
    state: _SelectionState,
    genre_share: float,
    max_popularity: int,
    now: datetime,
    preferred_genres: set[str] | None = None,
) -> float:
    """Score a candidate track as the weighted combination of its sub scores."""
    if preferred_genres:
        genre_score = 1.0 if track.genre.lower() in preferred_genres else 0.0
    else:
        genre_score = genre_share
    artist_score = 0.0 if track.artist in state.recent_artists else 1.0
    popularity_score = track.popularity / max_popularity if max_popularity else 0.0
    recency_score = 0.0
    if track.created_at is not None:
        created_at = track.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        age_days = (now - created_at).total_seconds() / 86400
        recency_score = min(1.0, max(0.0, 1 - age_days / RECENCY_WINDOW_DAYS))
    diversity_score = 1 / (
        1 + state.genre_counts[track.genre] + state.artist_counts[track.artist]
    )
    return round(
        weights.genre * genre_score
        + weights.artist * artist_score
        + weights.popularity * popularity_score
        + weights.recency * recency_score
        + weights.diversity * diversity_score,
        SCORE_PRECISION,
    )


def can_interleave(genre_counts: Counter[str], previous_genre: str | None) -> bool:
    """
    Return if the given genres can be ordered without two adjacent equal genres.

    The first genre of the ordering may not be equal to previous_genre.
    """
    total = sum(genre_counts.values())
    if total == 0:
        return True
    if max(genre_counts.values()) > (total + 1) // 2:
        return False
    return previous_genre is None or genre_counts[previous_genre] <= total // 2


def build_playlist(
    catalog: Sequence[CatalogTrack],
    config: PlaylistConfig,
    ad_clips: Sequence[str] = (),
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> list[PlaylistEntry]:
    """
    Build the ordered playlist entries for the given catalog.

    The cumulative duration of all entries never exceeds config.max_duration.
    An empty list is returned when no track fits the duration budget.
    """
    algorithm = get_algorithm(config.algorithm)
    weights = algorithm.weights
    if now is None:
        now = datetime.now(UTC)
    if rng is None:
        rng = random.Random()
    preferred_genres = {x.lower() for x in config.genres} or None
    intro_duration = TTS_INTRO_DURATION if config.include_tts else 0.0
    max_popularity = max((x.popularity for x in catalog), default=0)

    entries: list[PlaylistEntry] = []
    used = 0.0

    def add_entry(entry_type: PlaylistEntryType, duration: float, **kwargs) -> None:
        nonlocal used
        entries.append(
            PlaylistEntry(position=len(entries), entry_type=entry_type, duration=duration, **kwargs)
        )
        used += duration

    def add_ad() -> None:
        if ad_clips and used + AD_DURATION <= config.max_duration:
            add_entry(
                PlaylistEntryType.AD, AD_DURATION, url=rng.choice(ad_clips), voice_id=config.voice_id
            )

    if config.include_tts:
        add_ad()

    remaining = list(enumerate(catalog))
    state = _SelectionState()
    music_count = 0
    while True:
        candidates = [
            (index, track)
            for index, track in remaining
            if track.duration > 0 and used + intro_duration + track.duration <= config.max_duration
        ]
        if not candidates:
            break
        if weights.diversity > 0:
            candidates = _interleaving_candidates(candidates, state.previous_genre)
        remaining_genres = Counter(track.genre for _, track in remaining)
        scored = [
            (
                score_track(
                    track,
                    weights,
                    state,
                    remaining_genres[track.genre] / len(remaining),
                    max_popularity,
                    now,
                    preferred_genres,
                ),
                index,
                track,
            )
            for index, track in candidates
        ]
        best_score = max(x[0] for x in scored)
        # candidates keep catalog order, so the first of the ties is the stable pick
        ties = [x for x in scored if x[0] == best_score]
        _, index, track = rng.choice(ties) if config.shuffle_tracks else ties[0]
        remaining.remove((index, track))
        state.register(track)
        if config.include_tts:
            add_entry(
                PlaylistEntryType.INTRO,
                intro_duration,
                track_id=track.id,
                text=intro_text(track, music_count),
                voice_id=config.voice_id,
            )
        add_entry(PlaylistEntryType.TRACK, track.duration, track_id=track.id, url=track.audio_url)
        music_count += 1
        if config.include_tts and music_count % AD_INTERVAL == 0:
            add_ad()

    LOGGER.debug(
        "Built playlist with %s tracks (%s entries) of %s seconds using algorithm %s",
        music_count,
        len(entries),
        used,
        algorithm.key,
    )
    return entries


def _interleaving_candidates(
    candidates: list[tuple[int, CatalogTrack]], previous_genre: str | None
) -> list[tuple[int, CatalogTrack]]:
    """Narrow down the candidates to those that keep the genres interleaved."""
    pool = [x for x in candidates if x[1].genre != previous_genre] or candidates
    genre_counts = Counter(track.genre for _, track in candidates)
    feasible = []
    for index, track in pool:
        counts = genre_counts.copy()
        counts[track.genre] -= 1
        if can_interleave(+counts, track.genre):
            feasible.append((index, track))
    return feasible or pool
