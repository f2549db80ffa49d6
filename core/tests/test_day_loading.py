from unittest import mock

import pytest
from django.db import InternalError, OperationalError, ProgrammingError

from core import services
from core.exceptions import Connectivity, PermissionDenied
from core.models import DailyPost


def test_transient_errors_are_retried_with_backoff():
    sleep = mock.Mock()
    rows = [object()]
    with mock.patch.object(
        services, '_query_day_uploads',
        side_effect=[InternalError('internal'), InternalError('internal'), rows],
    ) as query:
        assert services.fetch_day_uploads('2025-06-01', max_attempts=3, sleep=sleep) == rows

    assert query.call_count == 3
    assert sleep.call_args_list == [mock.call(0.4), mock.call(0.6)]


def test_exhausted_retries_give_an_empty_list():
    sleep = mock.Mock()
    with mock.patch.object(services, '_query_day_uploads', side_effect=InternalError('internal')) as query:
        assert services.fetch_day_uploads('2025-06-01', max_attempts=3, sleep=sleep) == []
    assert query.call_count == 3


def test_backoff_is_capped():
    sleep = mock.Mock()
    with mock.patch.object(services, '_query_day_uploads', side_effect=InternalError('internal')):
        services.fetch_day_uploads('2025-06-01', max_attempts=7, sleep=sleep)
    assert sleep.call_args_list[-1] == mock.call(1.0)


@pytest.mark.parametrize('error,expected', [
    (OperationalError('could not connect to server'), Connectivity),
    (ProgrammingError('permission denied for table core_upload'), PermissionDenied),
])
def test_other_errors_surface_immediately(error, expected):
    sleep = mock.Mock()
    with mock.patch.object(services, '_query_day_uploads', side_effect=error) as query:
        with pytest.raises(expected):
            services.fetch_day_uploads('2025-06-01', max_attempts=3, sleep=sleep)
    assert query.call_count == 1
    sleep.assert_not_called()


@pytest.mark.django_db
def test_theme_and_memories(alice):
    DailyPost.objects.create(bucket_id='2025-05-30', theme_text='Blue', memory_image_url='https://example.com/m.jpg')
    DailyPost.objects.create(bucket_id='2025-06-01', theme_text='')
    DailyPost.objects.create(bucket_id='2025-06-02', theme_text='Tomorrow')

    view = services.load_day(alice, bucket_id='2025-06-01')

    assert view.theme.display_text == 'No message for today'
    assert [post.bucket_id for post in view.memories] == ['2025-05-30']
    assert view.memories[0].has_memory_image


@pytest.mark.django_db
def test_memories_disabled_in_conversation(alice, conversation):
    DailyPost.objects.create(bucket_id='2025-06-01', conversation=conversation, theme_text='Ours')

    assert services.load_posts(conversation, '2025-06-01') == (None, [])

    conversation.memories_enabled = True
    conversation.save()
    today, past = services.load_posts(conversation, '2025-06-01')
    assert today.theme_text == 'Ours'
    assert past == []


@pytest.mark.django_db
def test_theme_lookup_failure_means_no_theme(alice):
    with mock.patch.object(DailyPost.objects, 'filter', side_effect=OperationalError('down')):
        assert services.load_posts(None, '2025-06-01') == (None, [])
