"""Unit tests for const helpers."""

from custom_components.frigate_events.const import MEDIA_CANDIDATE_PATHS, friendly_name


def test_friendly_name_title_cases_identifiers() -> None:
    assert friendly_name("front_door") == "Front Door"
    assert friendly_name("driveway-camera") == "Driveway Camera"
    assert friendly_name("person") == "Person"


def test_friendly_name_handles_empty_values() -> None:
    assert friendly_name("") == ""
    assert friendly_name(None) == ""


def test_media_candidates_start_with_mp4_clip() -> None:
    assert MEDIA_CANDIDATE_PATHS[0] == "clip.mp4"
    assert len(MEDIA_CANDIDATE_PATHS) == 4
