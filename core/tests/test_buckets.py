from datetime import date, datetime, timezone as dt_timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from core.buckets import (
    bucket_id_for,
    is_past_bucket,
    parse_bucket_id,
    split_today_and_past,
    today_bucket_id,
)
from core.exceptions import ValidationFailure


def post(bucket_id):
    return SimpleNamespace(bucket_id=bucket_id)


def test_bucket_id_is_zero_padded():
    assert bucket_id_for(date(2025, 3, 7)) == '2025-03-07'


def test_today_uses_the_given_timezone():
    now = datetime(2025, 6, 1, 23, 30, tzinfo=dt_timezone.utc)
    assert today_bucket_id(now, ZoneInfo('UTC')) == '2025-06-01'
    assert today_bucket_id(now, ZoneInfo('Europe/Rome')) == '2025-06-02'
    assert today_bucket_id(now, ZoneInfo('America/New_York')) == '2025-06-01'


def test_string_order_matches_calendar_order():
    assert bucket_id_for(date(2025, 9, 30)) < bucket_id_for(date(2025, 10, 1))
    assert is_past_bucket('2024-12-31', today='2025-01-01')
    assert not is_past_bucket('2025-01-01', today='2025-01-01')


@pytest.mark.parametrize('value', ['2025-6-1', '2025/06/01', '', None, '2025-02-30'])
def test_parse_rejects_malformed_ids(value):
    with pytest.raises(ValidationFailure) as exc:
        parse_bucket_id(value)
    assert exc.value.code == 'invalid-bucket'


def test_split_today_and_past():
    posts = [post('2025-06-03'), post('2025-06-01'), post('2025-06-05'), post('2025-05-30')]
    todays, past = split_today_and_past(posts, today='2025-06-03')
    assert todays.bucket_id == '2025-06-03'
    assert [p.bucket_id for p in past] == ['2025-05-30', '2025-06-01']


def test_split_without_a_post_for_today():
    todays, past = split_today_and_past([post('2025-06-01')], today='2025-06-02')
    assert todays is None
    assert [p.bucket_id for p in past] == ['2025-06-01']
