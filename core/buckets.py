"""
DailySnap - Daily Buckets

A bucket id is the local calendar date as ``YYYY-MM-DD``. It partitions
themes, memories and uploads, and plain string comparison of two bucket ids
matches calendar order.

"Local" means the currently active Django timezone (see
``RequestTimezoneMiddleware``), so two partners in different timezones can
disagree on what "today" is.
"""

import re
from datetime import date, datetime

from django.utils import timezone

from .exceptions import ValidationFailure

BUCKET_ID_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def bucket_id_for(day):
    """Format a date (or datetime) as a zero-padded bucket id."""
    if isinstance(day, datetime):
        day = day.date()
    return f'{day.year:04d}-{day.month:02d}-{day.day:02d}'


def today_bucket_id(now=None, tz=None):
    """
    Bucket id for "today" in ``tz`` (defaults to the active timezone).

    ``now`` is an aware datetime; defaults to the current time.
    """
    if now is None:
        now = timezone.now()
    if timezone.is_naive(now):
        return bucket_id_for(now)
    return bucket_id_for(timezone.localtime(now, tz))


def parse_bucket_id(value):
    """Return the date for a bucket id, or raise ValidationFailure."""
    if not isinstance(value, str) or not BUCKET_ID_RE.match(value):
        raise ValidationFailure(f'Invalid day id: {value!r}', code='invalid-bucket')
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationFailure(f'Invalid day id: {value!r}', code='invalid-bucket')


def is_past_bucket(bucket_id, today=None):
    return bucket_id < (today or today_bucket_id())


def split_today_and_past(posts, today=None):
    """
    Partition day-keyed records into (today's record, past records).

    Records dated after ``today`` are dropped; past records are returned
    oldest first.
    """
    today = today or today_bucket_id()
    visible = sorted(
        (post for post in posts if post.bucket_id <= today),
        key=lambda post: post.bucket_id,
    )
    todays = None
    past = []
    for post in visible:
        if post.bucket_id == today:
            todays = post
        else:
            past.append(post)
    return todays, past
