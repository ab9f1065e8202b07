import pytest

from dosejournal.engine.timing import (
    active_window,
    aftereffects_hours,
    average_minutes,
    chart_timings,
    experience_timeline,
    is_active,
    max_hours,
    parse_range,
    total_active_minutes,
)
from dosejournal.models.substance import Timing, TimingValue

from conftest import HOUR_MS, NOW, make_experience, make_ingestion


def test_parse_range():
    assert parse_range("1-2") == [1.0, 2.0]
    assert parse_range("3") == [3.0]
    assert parse_range("") == [0.0]
    assert parse_range(None) == [0.0]
    assert parse_range("soon") == [0.0]


def test_average_minutes_scales_hours():
    assert average_minutes(TimingValue(value="1-2", unit="hours")) == 90
    assert average_minutes(TimingValue(value="30-45", unit="minutes")) == 37.5
    assert average_minutes(TimingValue(value="10", unit=None)) == 10
    assert average_minutes(None) == 0


def test_max_hours_rounds_minutes_to_one_decimal():
    assert max_hours(TimingValue(value="30-45", unit="minutes")) == 0.7
    assert max_hours(TimingValue(value="3-5", unit="hours")) == 5.0
    assert max_hours(None) == 0.0


def test_aftereffects_move_towards_max_with_tier():
    phase = TimingValue(value="12-48", unit="hours")
    assert aftereffects_hours(phase, 0) == 12
    assert aftereffects_hours(phase, 5) == pytest.approx(48)
    assert aftereffects_hours(phase, 2) == pytest.approx(26.4)


def test_chart_timings_for_mdma(library):
    onset, peak, after = chart_timings(library.get("mdma").timing, "oral", 2)
    assert onset == 0.7
    assert peak == 5.0
    assert after == pytest.approx(26.4)


def test_total_active_minutes_missing_timing_uses_default():
    assert total_active_minutes(None, "oral") == 60
    assert total_active_minutes(Timing(), "oral", default_minutes=15) == 15


def test_total_active_minutes_sums_average_phases(library):
    minutes = total_active_minutes(library.get("mdma").timing, "Oral")
    assert minutes == pytest.approx(37.5 + 240 + 1800)


def test_active_window_for_unknown_substance(library):
    ingestion = make_ingestion("Unobtainium", time=NOW)
    window = active_window(ingestion, library)
    assert window.start == NOW
    assert window.end == NOW + HOUR_MS
    assert is_active(ingestion, library, NOW + HOUR_MS // 2)
    assert not is_active(ingestion, library, NOW + 2 * HOUR_MS)


def test_experience_timeline_progress(library):
    ingestion = make_ingestion("Unobtainium", time=NOW)
    experience = make_experience("Test", ingestion)
    timeline = experience_timeline(experience, library, NOW + HOUR_MS // 2)
    assert timeline.start == NOW
    assert timeline.end == NOW + HOUR_MS
    assert timeline.progress == pytest.approx(0.5)
    assert timeline.remaining == HOUR_MS // 2


def test_experience_timeline_clamps_progress(library):
    ingestion = make_ingestion("MDMA", time=NOW)
    experience = make_experience("Test", ingestion)
    before = experience_timeline(experience, library, NOW - HOUR_MS)
    after = experience_timeline(experience, library, NOW + 1000 * HOUR_MS)
    assert before.progress == 0.0
    assert after.progress == 1.0


def test_undeclared_route_uses_declared_timing(library):
    mdma = library.get("mdma").timing
    assert total_active_minutes(mdma, "insufflated") == total_active_minutes(mdma, "oral")
    assert total_active_minutes(mdma, "") == pytest.approx(37.5 + 240 + 1800)


def test_undeclared_route_takes_longest_declared_route(library):
    cannabis = library.get("cannabis").timing
    assert total_active_minutes(cannabis, "smoked") == pytest.approx(5 + 90 + 22.5)
    assert total_active_minutes(cannabis, "rectal") == pytest.approx(60 + 360 + 540)


def test_timeline_for_undeclared_route_is_not_finished_at_once(library):
    ingestion = make_ingestion("MDMA", "100mg", "insufflated", time=NOW)
    experience = make_experience("Test", ingestion)
    timeline = experience_timeline(experience, library, NOW + HOUR_MS)
    assert timeline.duration == pytest.approx(17.7 * HOUR_MS, abs=1)
    assert 0 < timeline.progress < 1
    assert is_active(ingestion, library, NOW + HOUR_MS)
