from datetime import date

from daycare.models import PayFrequency
from daycare.utils.pay_calendar import add_months, generate_period_spans, periods_overlap


def test_bi_weekly_spans_are_fourteen_days_and_contiguous():
    spans = generate_period_spans(PayFrequency.BI_WEEKLY, date(2026, 1, 5))

    assert spans[0].start_date == date(2026, 1, 5)
    assert spans[0].end_date == date(2026, 1, 18)
    for earlier, later in zip(spans, spans[1:]):
        assert (later.start_date - earlier.end_date).days == 1
    assert spans[-1].start_date < date(2026, 7, 5)


def test_semi_monthly_splits_each_month_in_halves():
    spans = generate_period_spans(PayFrequency.SEMI_MONTHLY, date(2026, 2, 1), months=1)

    assert [(s.start_date, s.end_date) for s in spans] == [
        (date(2026, 2, 1), date(2026, 2, 15)),
        (date(2026, 2, 16), date(2026, 2, 28)),
    ]
    assert spans[0].name == "February 2026 (1st Half)"


def test_monthly_runs_to_month_end():
    spans = generate_period_spans(PayFrequency.MONTHLY, date(2026, 1, 1))

    assert len(spans) == 6
    assert spans[1].end_date == date(2026, 2, 28)
    assert spans[-1].name == "June 2026"


def test_add_months_clamps_to_last_day():
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2025, 11, 30), 3) == date(2026, 2, 28)


def test_periods_overlap_is_inclusive():
    assert periods_overlap(date(2026, 1, 1), date(2026, 1, 15), date(2026, 1, 15), date(2026, 1, 31))
    assert not periods_overlap(date(2026, 1, 1), date(2026, 1, 15), date(2026, 1, 16), date(2026, 1, 31))
