"""Calendar helpers: month periods, day clamping and money rounding."""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from app.core.exceptions import ValidationError

CENT = Decimal("0.01")


def to_cents(value) -> Decimal:
    """Round any numeric value (None counts as 0) half-up to cents."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamped_date(year: int, month: int, day: int) -> date:
    """Date for `day` in the given month, clamped to the month's last day."""
    return date(year, month, min(day, days_in_month(year, month)))


def shift_months(start: date, months: int, day: Optional[int] = None) -> date:
    """Move `start` by whole calendar months, then pin the day-of-month.

    The day is `day` when given, otherwise `start.day`, and is always clamped
    to the target month's length: Jan 31 + 1 month is Feb 28 (or 29), never
    a March date.
    """
    target = start.replace(day=1) + relativedelta(months=months)
    return clamped_date(target.year, target.month, day or start.day)


@dataclass(frozen=True)
class Period:
    """Half-open calendar month interval [start, end)."""
    start: date
    end: date

    @classmethod
    def for_month(cls, year: int, month: int) -> "Period":
        start = date(year, month, 1)
        return cls(start=start, end=start + relativedelta(months=1))

    @classmethod
    def from_string(cls, value: str) -> "Period":
        """Parse "YYYY-MM" (a full "YYYY-MM-DD" is accepted and truncated)."""
        try:
            year, month = map(int, str(value).strip().split("-")[:2])
            return cls.for_month(year, month)
        except (ValueError, TypeError):
            raise ValidationError(f"Invalid period '{value}', expected YYYY-MM")

    @classmethod
    def containing(cls, day: Union[date, datetime]) -> "Period":
        return cls.for_month(day.year, day.month)

    def contains(self, moment: Union[date, datetime]) -> bool:
        if isinstance(moment, datetime):
            moment = moment.date()
        return self.start <= moment < self.end

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.start, time.min)

    @property
    def end_datetime(self) -> datetime:
        return datetime.combine(self.end, time.min)

    @property
    def key(self) -> str:
        return self.start.strftime("%Y-%m")

    @property
    def label(self) -> str:
        return self.start.strftime("%m/%Y")

    def __str__(self) -> str:
        return self.key
