"""Pay period calendar generation."""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List

from daycare.models.user import PayFrequency

GENERATE_MONTHS = 6


@dataclass
class PeriodSpan:
    name: str
    start_date: date
    end_date: date


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def month_end(day: date) -> date:
    return date(day.year, day.month, calendar.monthrange(day.year, day.month)[1])


def _short(day: date) -> str:
    return f"{day.strftime('%b')} {day.day}"


def _month_label(day: date) -> str:
    return day.strftime("%B %Y")


def periods_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Inclusive date ranges overlap."""
    return start_a <= end_b and start_b <= end_a


def generate_period_spans(
    frequency: PayFrequency, start_date: date, months: int = GENERATE_MONTHS
) -> List[PeriodSpan]:
    """Consecutive pay periods from start_date covering the next `months` months.

    BI_WEEKLY spans 14 days. MONTHLY runs to the end of the start's month.
    SEMI_MONTHLY splits a month into the 1st-15th and 16th-month end halves;
    a start on any day other than the 1st is treated as a second half.
    """
    limit = add_months(start_date, months)
    spans: List[PeriodSpan] = []
    current = start_date

    while current < limit:
        if frequency == PayFrequency.BI_WEEKLY:
            end = current + timedelta(days=13)
            name = f"{_short(current)} - {_short(end)}, {end.year}"
            next_start = current + timedelta(days=14)
        elif frequency == PayFrequency.MONTHLY:
            end = month_end(current)
            name = _month_label(current)
            next_start = end + timedelta(days=1)
        else:
            if current.day == 1:
                end = date(current.year, current.month, 15)
                name = f"{_month_label(current)} (1st Half)"
                next_start = date(current.year, current.month, 16)
            else:
                end = month_end(current)
                name = f"{_month_label(current)} (2nd Half)"
                next_start = end + timedelta(days=1)

        spans.append(PeriodSpan(name=name, start_date=current, end_date=end))
        current = next_start

    return spans
