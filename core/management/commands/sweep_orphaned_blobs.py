"""
Management command to retry deleting photos that lost their row.

Usage:
    python manage.py sweep_orphaned_blobs
    python manage.py sweep_orphaned_blobs --limit 50
"""

import logging

from django.core.management.base import BaseCommand

from core.models import OrphanedBlob
from core.storage import BlobStoreError, get_blob_store

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Deletes orphaned photo blobs from the blob store'

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=100, help='Maximum blobs to process')

    def handle(self, *args, **options):
        store = get_blob_store()
        deleted = failed = 0

        for orphan in OrphanedBlob.objects.all()[:options['limit']]:
            try:
                store.delete(orphan.public_id)
            except BlobStoreError as exc:
                orphan.attempts += 1
                orphan.last_error = str(exc)
                orphan.save(update_fields=['attempts', 'last_error', 'updated_at'])
                logger.warning('ORPHAN_SWEEP_FAILED public_id=%s attempts=%s', orphan.public_id, orphan.attempts)
                failed += 1
            else:
                orphan.delete()
                deleted += 1

        style = self.style.SUCCESS if not failed else self.style.WARNING
        self.stdout.write(style(f'Deleted {deleted} orphaned blobs, {failed} still failing'))
