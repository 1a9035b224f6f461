from datetime import date, datetime, time, timedelta, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from bynger.models import (
    Episode,
    MediaType,
    Movie,
    MovieMedia,
    ScheduledEvent,
    SchedulingBoundaries,
    SchedulingOptions,
    TvMedia,
    fuzzy_runtime,
)

EPISODE_PAYLOAD = {
    "show_id": 2316,
    "show_name": "The Office",
    "season_number": 2,
    "episode_number": 1,
    "name": "The Dundies",
    "air_date": "2005-09-20",
    "still_path": "/dundies.jpg",
    "runtime": 22,
}


@pytest.mark.parametrize(
    "runtime, show_runtimes, expected",
    [
        (45, [30], 45),
        (None, [30, 50], 50),
        (None, [], 60),
        (0, None, 60),
        (None, [None, 25], 25),
    ],
)
def test_fuzzy_runtime(runtime, show_runtimes, expected):
    assert fuzzy_runtime(runtime, show_runtimes) == expected


def test_episode_from_catalog_falls_back_to_show_runtime():
    payload = {
        "season_number": 1,
        "episode_number": 3,
        "name": "Cat's in the Bag...",
        "air_date": None,
        "runtime": None,
    }

    episode = Episode.from_catalog(1396, "Breaking Bad", payload, show_runtimes=[45, 47])

    assert episode.runtime == 47
    assert episode.air_date == ""
    assert episode.code == "s01e03"


def test_episode_is_immutable():
    episode = Episode(**EPISODE_PAYLOAD)

    with pytest.raises(ValidationError):
        episode.runtime = 30


def test_movie_from_catalog():
    movie = Movie.from_catalog({"id": 603, "title": "The Matrix", "release_date": "1999-03-30", "runtime": 136})

    assert movie.movie_id == 603
    assert movie.show_name == "The Matrix"
    assert movie.runtime == 136


def test_scheduled_event_round_trips_through_json():
    event = ScheduledEvent(
        scheduled_date=datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc),
        media=TvMedia(episode=Episode(**EPISODE_PAYLOAD)),
    )

    restored = ScheduledEvent.model_validate_json(event.model_dump_json())

    assert restored == event
    assert restored.media_type == MediaType.TV
    assert restored.episode.name == "The Dundies"
    assert restored.movie is None
    assert restored.watched is False


def test_naive_scheduled_date_is_taken_as_utc():
    event = ScheduledEvent(
        scheduled_date=datetime(2024, 1, 1, 20, 0),
        media=MovieMedia(movie=Movie(movie_id=949, show_name="Heat", runtime=170)),
    )

    assert event.scheduled_date.tzinfo == timezone.utc
    assert event.end_date == datetime(2024, 1, 1, 22, 50, tzinfo=timezone.utc)


def test_aware_scheduled_date_is_converted_to_utc():
    event = ScheduledEvent(
        scheduled_date=datetime(2024, 1, 1, 20, 0, tzinfo=timezone(timedelta(hours=-5))),
        media=MovieMedia(movie=Movie(movie_id=949, show_name="Heat", runtime=170)),
    )

    assert event.scheduled_date == datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc)
    assert event.date_only == date(2024, 1, 2)


def test_flat_record_is_folded_into_tagged_media():
    event_id = uuid4()
    record = {
        "uuid": str(event_id),
        "scheduled_date": "2024-01-01T20:00:00Z",
        "media_type": "tv",
        "episode": EPISODE_PAYLOAD,
        "movie": None,
        "watched": True,
    }

    event = ScheduledEvent.model_validate(record)

    assert event.id == event_id
    assert event.media_type == MediaType.TV
    assert event.episode.show_name == "The Office"
    assert event.watched is True


@pytest.mark.parametrize(
    "media_type, episode, movie",
    [
        ("movie", EPISODE_PAYLOAD, None),
        ("tv", None, {"movie_id": 949, "show_name": "Heat", "runtime": 170}),
        ("tv", EPISODE_PAYLOAD, {"movie_id": 949, "show_name": "Heat", "runtime": 170}),
        ("tv", None, None),
    ],
)
def test_flat_record_with_mismatched_discriminator_is_rejected(media_type, episode, movie):
    record = {
        "scheduled_date": "2024-01-01T20:00:00Z",
        "media_type": media_type,
        "episode": episode,
        "movie": movie,
    }

    with pytest.raises(ValidationError):
        ScheduledEvent.model_validate(record)


def test_tagged_media_rejects_wrong_payload():
    with pytest.raises(ValidationError):
        ScheduledEvent.model_validate(
            {
                "scheduled_date": "2024-01-01T20:00:00Z",
                "media": {"media_type": "movie", "episode": EPISODE_PAYLOAD},
            }
        )


def test_subjects():
    tv = ScheduledEvent(
        scheduled_date=datetime(2024, 1, 1, 20, 0),
        media=TvMedia(episode=Episode(**EPISODE_PAYLOAD)),
    )
    movie = ScheduledEvent(
        scheduled_date=datetime(2024, 1, 1, 20, 0),
        media=MovieMedia(movie=Movie(movie_id=949, show_name="Heat", release_date="1995-12-15", runtime=170)),
    )

    assert tv.subject == "The Office | s02e01"
    assert tv.description == "The Dundies"
    assert movie.subject == "Heat | Runtime: 170"
    assert movie.description == "Released: 1995-12-15"


def test_options_accept_weekday_list():
    options = SchedulingOptions(days_of_week=[True, True, True, True, True, False, False])

    assert options.is_available(date(2024, 1, 5))  # Friday
    assert not options.is_available(date(2024, 1, 6))  # Saturday


def test_options_require_every_weekday():
    with pytest.raises(ValidationError):
        SchedulingOptions(days_of_week={0: True, 1: True})


def test_options_reject_negative_quota():
    with pytest.raises(ValidationError):
        SchedulingOptions(eps_per_day=-1)


def test_boundaries_reject_end_before_start():
    with pytest.raises(ValidationError):
        SchedulingBoundaries(
            start_date=date(2024, 1, 2),
            start_time=time(8, 0),
            end_date=date(2024, 1, 1),
            end_time=time(23, 0),
        )


def test_boundaries_day_end_for_overnight_window():
    boundaries = SchedulingBoundaries(
        start_date=date(2024, 1, 1),
        start_time=time(22, 0),
        end_date=date(2024, 1, 7),
        end_time=time(1, 0),
    )

    assert boundaries.is_overnight
    assert boundaries.day_end(date(2024, 1, 1)) == datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc)
    assert boundaries.end == datetime(2024, 1, 7, 1, 0, tzinfo=timezone.utc)
