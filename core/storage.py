"""
DailySnap - Photo Storage

Blob stores are picked by ``settings.BLOB_STORE_BACKEND`` the same way Django
picks an email backend, so services never reach for a global client.

Metadata rows and blobs are never updated in one transaction. Deleting a blob
is always best-effort: a failure is logged and the public id is recorded as
an ``OrphanedBlob`` for ``sweep_orphaned_blobs``.
"""

import logging
import time
import uuid
from dataclasses import dataclass

import cloudinary.exceptions
import cloudinary.uploader
from django.conf import settings
from django.db import DatabaseError
from django.utils.module_loading import import_string

from .models import OrphanedBlob, _pk

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    pass


@dataclass
class StoredBlob:
    public_id: str
    url: str


class CloudinaryBlobStore:
    """Uploads photos to Cloudinary under ``CLOUDINARY_UPLOAD_FOLDER``."""

    def __init__(self, folder=None):
        self.folder = folder if folder is not None else settings.CLOUDINARY_UPLOAD_FOLDER

    def upload(self, file, path):
        try:
            result = cloudinary.uploader.upload(
                file,
                public_id=path,
                folder=self.folder or None,
                resource_type='image',
                overwrite=False,
            )
        except cloudinary.exceptions.Error as exc:
            raise BlobStoreError(str(exc)) from exc
        return StoredBlob(public_id=result['public_id'], url=result['secure_url'])

    def delete(self, public_id):
        try:
            result = cloudinary.uploader.destroy(public_id, invalidate=True)
        except cloudinary.exceptions.Error as exc:
            raise BlobStoreError(str(exc)) from exc
        # "not found" means someone already cleaned it up
        if result.get('result') not in ('ok', 'not found'):
            raise BlobStoreError(f"destroy returned {result.get('result')!r}")


class InMemoryBlobStore:
    """
    Process-local store for tests and local development.

    Like Django's locmem mail outbox, state lives on the class so every
    instance returned by ``get_blob_store()`` sees the same blobs.
    """
    blobs = {}
    fail_deletes = False
    fail_uploads = False

    @classmethod
    def reset(cls):
        cls.blobs = {}
        cls.fail_deletes = False
        cls.fail_uploads = False

    def upload(self, file, path):
        if self.fail_uploads:
            raise BlobStoreError('upload rejected')
        content = file.read() if hasattr(file, 'read') else file
        self.blobs[path] = content
        return StoredBlob(public_id=path, url=f'https://blobs.invalid/{path}.jpg')

    def delete(self, public_id):
        if self.fail_deletes:
            raise BlobStoreError('delete rejected')
        self.blobs.pop(public_id, None)


def get_blob_store(path=None):
    return import_string(path or settings.BLOB_STORE_BACKEND)()


def blob_path(user, bucket_id, conversation=None):
    """Storage path of a new daily photo; unique per call."""
    stamp = f'{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}'
    if conversation is not None:
        return f'conversations/{conversation.pk}/{_pk(user)}/{bucket_id}_{stamp}'
    return f'uploads/{_pk(user)}/{bucket_id}_{stamp}'


def record_orphan(public_id, reason, error=''):
    try:
        orphan, created = OrphanedBlob.objects.get_or_create(
            public_id=public_id,
            defaults={'reason': reason, 'last_error': str(error)},
        )
    except DatabaseError:
        logger.exception('ORPHAN_RECORD_FAILED public_id=%s reason=%s', public_id, reason)
        return None
    if not created:
        orphan.last_error = str(error)
        orphan.save(update_fields=['last_error', 'updated_at'])
    return orphan


def release_blob(public_id, store, reason):
    """
    Best-effort delete. Returns True when the blob is gone; failures are
    logged, recorded as orphaned and swallowed.
    """
    if not public_id:
        return True
    try:
        store.delete(public_id)
    except BlobStoreError as exc:
        logger.warning('BLOB_DELETE_FAILED public_id=%s reason=%s error=%s', public_id, reason, exc)
        record_orphan(public_id, reason, exc)
        return False
    logger.info('BLOB_DELETED public_id=%s reason=%s', public_id, reason)
    return True
