import pytest


@pytest.fixture(autouse=True)
def local_backends(settings):
    from django.core.cache import cache

    from core import push
    from core.storage import InMemoryBlobStore

    settings.PUSH_BACKEND = 'core.push.LocmemPushBackend'
    settings.BLOB_STORE_BACKEND = 'core.storage.InMemoryBlobStore'
    settings.SECURE_SSL_REDIRECT = False
    settings.ACCESS_GATE_ENABLED = True
    settings.ACCESS_ALLOWED_EMAILS = ['alice@example.com', 'bob@example.com']
    settings.API_VERBOSE_LOGGING = False
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    push.outbox.clear()
    push.LocmemPushBackend.failing_tokens = set()
    InMemoryBlobStore.reset()
    cache.clear()
    yield
    push.outbox.clear()
