import pytest

from team_timeline.config import DEFAULT_SETTINGS, TimelineSettings


def test_defaults() -> None:
    assert DEFAULT_SETTINGS.day_width == 48
    assert DEFAULT_SETTINGS.never_horizon_days is None
    assert DEFAULT_SETTINGS.max_occurrences == 500


def test_from_mapping_overrides() -> None:
    settings = TimelineSettings.from_mapping({"day_width": "120", "drag_threshold_px": 0, "never_horizon_days": 90})
    assert settings.day_width == 120
    assert settings.drag_threshold_px == 0
    assert settings.never_horizon_days == 90
    assert settings.task_height == DEFAULT_SETTINGS.task_height


def test_from_mapping_rejects_bad_values() -> None:
    with pytest.raises(ValueError):
        TimelineSettings.from_mapping({"lane_width": 10})
    with pytest.raises(ValueError):
        TimelineSettings.from_mapping({"day_width": 0})
    with pytest.raises(ValueError):
        TimelineSettings.from_mapping({"drag_threshold_px": -1})


@pytest.mark.parametrize("raw", [3.7, 3.0, "3.7", True, "wide"])
def test_from_mapping_rejects_non_integers(raw) -> None:
    with pytest.raises(ValueError):
        TimelineSettings.from_mapping({"day_width": raw})
