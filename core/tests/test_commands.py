from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from core import push
from core.models import DailyPost, OrphanedBlob
from core.storage import InMemoryBlobStore

pytestmark = pytest.mark.django_db


def run(*args, **options):
    out = StringIO()
    call_command(*args, stdout=out, **options)
    return out.getvalue()


def test_seed_daily_posts_is_idempotent():
    output = run('seed_daily_posts', days=3, start='2025-06-01')
    assert 'seeded 3 new posts' in output
    assert list(DailyPost.objects.values_list('bucket_id', flat=True)) == [
        '2025-06-01', '2025-06-02', '2025-06-03',
    ]

    output = run('seed_daily_posts', days=3, start='2025-06-01')
    assert 'seeded 0 new posts (total: 3)' in output


def test_seed_rejects_a_bad_start():
    with pytest.raises(CommandError):
        run('seed_daily_posts', start='June 1st')


def test_send_daily_reminder(alice, bob):
    output = run('send_notifications', 'daily_reminder')
    assert 'daily_reminder: sent 2, failed 0' in output
    assert len(push.outbox) == 2


def test_send_test_notification(alice):
    output = run('send_notifications', 'test', user='ALICE')
    assert 'Sent' in output
    assert push.outbox[0].token == 'tok-alice'

    with pytest.raises(CommandError):
        run('send_notifications', 'test')


def test_loop_only_for_daily_reminder():
    with pytest.raises(CommandError):
        run('send_notifications', 'midnight_memory', loop=True)


def test_sweep_orphaned_blobs():
    InMemoryBlobStore.blobs['uploads/1/2025-06-01_1'] = b'x'
    OrphanedBlob.objects.create(public_id='uploads/1/2025-06-01_1', reason='deleted')

    InMemoryBlobStore.fail_deletes = True
    output = run('sweep_orphaned_blobs')
    assert '0 orphaned blobs, 1 still failing' in output
    assert OrphanedBlob.objects.get().attempts == 1

    InMemoryBlobStore.fail_deletes = False
    output = run('sweep_orphaned_blobs')
    assert 'Deleted 1 orphaned blobs' in output
    assert not OrphanedBlob.objects.exists()
    assert InMemoryBlobStore.blobs == {}
