from datetime import datetime, timedelta, timezone

import pytest

from app.domain.yearly_review.exceptions import ConfigurationError, InvalidReviewYear
from app.domain.yearly_review.models import TriggerWindow
from app.domain.yearly_review.period import in_trigger_window, period_for_year, resolve_period


def _utc(*parts: int) -> datetime:
	return datetime(*parts, tzinfo=timezone.utc)


def test_resolve_period_uses_previous_calendar_year():
	period = resolve_period(_utc(2019, 1, 1))

	assert period.year == 2018
	assert period.start == _utc(2018, 1, 1)
	assert period.end == _utc(2019, 1, 1)


def test_resolve_period_mid_year_still_targets_previous_year():
	period = resolve_period(_utc(2019, 7, 14, 12, 30))
	assert period.year == 2018


def test_period_is_start_inclusive_end_exclusive():
	period = period_for_year(2018)

	assert period.contains(_utc(2018, 1, 1))
	assert period.contains(_utc(2018, 12, 31, 23, 59, 59))
	assert not period.contains(_utc(2019, 1, 1))
	assert not period.contains(_utc(2017, 12, 31, 23, 59, 59))


def test_period_treats_naive_timestamps_as_utc():
	period = period_for_year(2018)
	assert period.contains(datetime(2018, 6, 1))
	assert not period.contains(datetime(2019, 1, 1))


def test_period_converts_other_timezones():
	period = period_for_year(2018)
	plus_two = timezone(timedelta(hours=2))
	# 2019-01-01 01:00 at +02:00 is still 2018-12-31 23:00 UTC
	assert period.contains(datetime(2019, 1, 1, 1, 0, tzinfo=plus_two))


def test_explicit_review_year():
	period = resolve_period(_utc(2019, 3, 1), review_year=2016)
	assert period.year == 2016
	assert period.start == _utc(2016, 1, 1)


def test_explicit_review_year_must_be_complete():
	with pytest.raises(InvalidReviewYear):
		resolve_period(_utc(2019, 3, 1), review_year=2019)


def test_default_trigger_window_is_first_of_january():
	window = TriggerWindow()

	assert in_trigger_window(_utc(2019, 1, 1), window)
	assert in_trigger_window(_utc(2019, 1, 1, 23, 59), window)
	assert not in_trigger_window(_utc(2019, 1, 2), window)
	assert not in_trigger_window(_utc(2019, 2, 1), window)
	assert not in_trigger_window(_utc(2018, 12, 31, 23, 59), window)


def test_custom_trigger_window():
	window = TriggerWindow(month=1, first_day=1, last_day=7)

	assert in_trigger_window(_utc(2019, 1, 5), window)
	assert not in_trigger_window(_utc(2019, 1, 8), window)


@pytest.mark.parametrize(
	"kwargs",
	[
		{"month": 0},
		{"month": 13},
		{"first_day": 0},
		{"first_day": 5, "last_day": 2},
		{"last_day": 32},
	],
)
def test_trigger_window_rejects_invalid_ranges(kwargs):
	with pytest.raises(ConfigurationError):
		TriggerWindow(**kwargs)
