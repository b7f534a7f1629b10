"""
SLA Value Objects
==================

Shift windows and the schedule that maps a timestamp to a shift.

Naive timestamps are wall-clock time in the schedule's timezone; aware
timestamps are converted into it before the hour is read.
"""

from datetime import datetime, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from deskwatch.config import ShiftCode


class ShiftWindow(BaseModel):
    """
    Hours ``[start_hour, end_hour)`` of one shift.

    ``end_hour <= start_hour`` wraps midnight, so GY 22 -> 6 covers
    22:00-23:59 and 00:00-05:59.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=0, le=24)

    @property
    def wraps_midnight(self) -> bool:
        return self.end_hour <= self.start_hour

    def contains_hour(self, hour: int) -> bool:
        if self.wraps_midnight:
            return hour >= self.start_hour or hour < self.end_hour
        return self.start_hour <= hour < self.end_hour


DEFAULT_WINDOWS = (
    ShiftWindow(code=ShiftCode.AM, start_hour=6, end_hour=14),
    ShiftWindow(code=ShiftCode.PM, start_hour=14, end_hour=22),
    ShiftWindow(code=ShiftCode.GY, start_hour=22, end_hour=6),
)


class ShiftSchedule(BaseModel):
    """The shift windows in force and the timezone they are expressed in."""

    model_config = ConfigDict(frozen=True)

    windows: Tuple[ShiftWindow, ...] = DEFAULT_WINDOWS
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{v}'") from e
        return v

    @model_validator(mode="after")
    def validate_coverage(self) -> "ShiftSchedule":
        codes = [w.code for w in self.windows]
        if len(set(codes)) != len(codes):
            raise ValueError(f"Duplicate shift codes: {codes}")
        holders = {h: [w.code for w in self.windows if w.contains_hour(h)] for h in range(24)}
        uncovered = [h for h, codes_at in holders.items() if not codes_at]
        if uncovered:
            raise ValueError(f"Shift windows leave hours uncovered: {uncovered}")
        overlapping = {h: codes_at for h, codes_at in holders.items() if len(codes_at) > 1}
        if overlapping:
            raise ValueError(f"Shift windows overlap: {overlapping}")
        return self

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def window(self, code: Optional[str]) -> Optional[ShiftWindow]:
        for w in self.windows:
            if w.code == code:
                return w
        return None

    def to_utc(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=self.zone)
        return value.astimezone(timezone.utc)

    def wall_clock(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value
        return value.astimezone(self.zone)

    def shift_for(self, value: datetime) -> str:
        """The shift whose window contains the wall-clock hour of ``value``."""
        hour = self.wall_clock(value).hour
        for w in self.windows:
            if w.contains_hour(hour):
                return w.code
        # Unreachable for a validated schedule
        return self.windows[-1].code

    def in_shift(self, value: datetime, code: Optional[str]) -> bool:
        window = self.window(code)
        return window is not None and window.contains_hour(self.wall_clock(value).hour)
