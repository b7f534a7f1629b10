from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from deskwatch.sla.domain import ShiftSchedule, ShiftWindow
from deskwatch.sla.infrastructure import ShiftConfigManager


@pytest.mark.parametrize("hour,minute,shift", [
    (6, 0, "AM"),
    (13, 59, "AM"),
    (14, 0, "PM"),
    (21, 59, "PM"),
    (22, 0, "GY"),
    (0, 0, "GY"),
    (5, 59, "GY"),
])
def test_default_windows(schedule, hour, minute, shift):
    assert schedule.shift_for(datetime(2024, 1, 15, hour, minute)) == shift


def test_gy_window_wraps_midnight():
    gy = ShiftWindow(code="GY", start_hour=22, end_hour=6)

    assert gy.wraps_midnight is True
    assert gy.contains_hour(23) and gy.contains_hour(0) and gy.contains_hour(5)
    assert not gy.contains_hour(6)


def test_aware_timestamps_are_read_in_schedule_timezone():
    manila = ShiftSchedule(timezone="Asia/Manila")

    # 00:30 UTC is 08:30 in Manila
    assert manila.shift_for(datetime(2024, 1, 15, 0, 30, tzinfo=timezone.utc)) == "AM"
    assert ShiftSchedule().shift_for(datetime(2024, 1, 15, 0, 30, tzinfo=timezone.utc)) == "GY"


def test_naive_timestamps_are_wall_clock():
    manila = ShiftSchedule(timezone="Asia/Manila")

    assert manila.shift_for(datetime(2024, 1, 15, 8, 30)) == "AM"
    assert manila.to_utc(datetime(2024, 1, 15, 8, 30)) == datetime(2024, 1, 15, 0, 30, tzinfo=timezone.utc)


def test_in_shift_rejects_unknown_codes(schedule):
    assert schedule.in_shift(datetime(2024, 1, 15, 9), "AM") is True
    assert schedule.in_shift(datetime(2024, 1, 15, 9), "NIGHT") is False
    assert schedule.in_shift(datetime(2024, 1, 15, 9), None) is False


def test_unknown_timezone_is_rejected():
    with pytest.raises(ValidationError):
        ShiftSchedule(timezone="Mars/Olympus")


def test_windows_must_cover_the_day():
    with pytest.raises(ValidationError):
        ShiftSchedule(windows=(
            ShiftWindow(code="AM", start_hour=6, end_hour=14),
            ShiftWindow(code="PM", start_hour=14, end_hour=22),
        ))


def test_windows_must_not_overlap():
    with pytest.raises(ValidationError, match="overlap"):
        ShiftSchedule(windows=(
            ShiftWindow(code="AM", start_hour=6, end_hour=14),
            ShiftWindow(code="PM", start_hour=12, end_hour=22),
            ShiftWindow(code="GY", start_hour=22, end_hour=6),
        ))


def test_duplicate_codes_are_rejected():
    with pytest.raises(ValidationError):
        ShiftSchedule(windows=(
            ShiftWindow(code="DAY", start_hour=0, end_hour=12),
            ShiftWindow(code="DAY", start_hour=12, end_hour=24),
        ))


# ========== Shift config file ==========

SHIFTS_YAML = """
timezone: Asia/Manila
shifts:
  - {code: DAY, start_hour: 7, end_hour: 19}
  - {code: NIGHT, start_hour: 19, end_hour: 7}
"""


def test_missing_file_uses_default_windows(tmp_path):
    manager = ShiftConfigManager(default_timezone="Europe/London")

    schedule = manager.load(tmp_path / "shifts.yaml")

    assert [w.code for w in schedule.windows] == ["AM", "PM", "GY"]
    assert schedule.timezone == "Europe/London"


def test_load_reads_windows_and_timezone(tmp_path):
    path = tmp_path / "shifts.yaml"
    path.write_text(SHIFTS_YAML)

    schedule = ShiftConfigManager().load(path)

    assert schedule.timezone == "Asia/Manila"
    assert [w.code for w in schedule.windows] == ["DAY", "NIGHT"]
    assert schedule.shift_for(datetime(2024, 1, 15, 20)) == "NIGHT"


def test_invalid_reload_keeps_previous_schedule(tmp_path):
    path = tmp_path / "shifts.yaml"
    path.write_text(SHIFTS_YAML)
    manager = ShiftConfigManager()
    manager.load(path)

    path.write_text("shifts:\n  - {code: DAY, start_hour: 7, end_hour: 19}\n")

    assert manager.reload() is False
    assert [w.code for w in manager.schedule.windows] == ["DAY", "NIGHT"]


@pytest.mark.parametrize("content", ["- just\n- a list\n", "just a string\n"])
def test_reload_of_non_mapping_file_keeps_previous_schedule(tmp_path, content):
    path = tmp_path / "shifts.yaml"
    path.write_text(SHIFTS_YAML)
    manager = ShiftConfigManager()
    manager.load(path)

    path.write_text(content)

    assert manager.reload() is False
    assert [w.code for w in manager.schedule.windows] == ["DAY", "NIGHT"]


def test_load_rejects_non_mapping_file(tmp_path):
    path = tmp_path / "shifts.yaml"
    path.write_text("- AM\n- PM\n")

    with pytest.raises(ValueError, match="mapping"):
        ShiftConfigManager().load(path)


def test_reload_applies_changes(tmp_path):
    path = tmp_path / "shifts.yaml"
    path.write_text(SHIFTS_YAML)
    manager = ShiftConfigManager()
    manager.load(path)

    path.write_text(SHIFTS_YAML.replace("Asia/Manila", "UTC"))

    assert manager.reload() is True
    assert manager.schedule.timezone == "UTC"


def test_watching_requires_load():
    with pytest.raises(RuntimeError):
        ShiftConfigManager().start_watching()
