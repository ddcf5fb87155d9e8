from datetime import date, datetime

from pydantic import field_validator

from salon.api.schemas.common import CamelModel, UtcDatetime


class SlotOut(CamelModel):
    """Times are local "HH:MM" on the local calendar `date` (YYYY-MM-DD)."""

    date: str
    start_time: str
    end_time: str
    available: bool = True

    @classmethod
    def from_slot(cls, start: datetime, end: datetime) -> "SlotOut":
        return cls(date=start.date().isoformat(), start_time=start.strftime("%H:%M"), end_time=end.strftime("%H:%M"))


class AvailabilityOut(CamelModel):
    id: int
    date: UtcDatetime
    is_available: bool
    created_at: UtcDatetime
    updated_at: UtcDatetime


class AvailabilityDateIn(CamelModel):
    """`date` is either a bare day ("2026-03-14") or a full ISO timestamp."""

    date: str

    @field_validator("date")
    @classmethod
    def _parseable(cls, v: str) -> str:
        cls.parse(v)
        return v

    @staticmethod
    def parse(value: str) -> date | datetime:
        value = value.strip()
        try:
            if len(value) == 10:
                return date.fromisoformat(value)
            return datetime.fromisoformat(value)
        except ValueError as e:
            raise ValueError("Invalid date, expected YYYY-MM-DD or an ISO timestamp") from e

    def when(self) -> date | datetime:
        return self.parse(self.date)


class AvailabilityRecordIn(AvailabilityDateIn):
    is_available: bool


class AvailabilityRangeIn(CamelModel):
    start_date: date
    end_date: date
