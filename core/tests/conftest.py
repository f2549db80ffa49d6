import pytest
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile

from core.models import Conversation, NotificationToken

User = get_user_model()

PASSWORD = 'secret123'


def make_photo(name='photo.jpg', content=b'\xff\xd8\xff fake jpeg'):
    return SimpleUploadedFile(name, content, content_type='image/jpeg')


@pytest.fixture
def photo():
    return make_photo()


@pytest.fixture
def make_user(db):
    def _make(username, email=None, password=PASSWORD, token=None):
        user = User.objects.create_user(
            username=username,
            email=email or f'{username}@example.com',
            password=password,
        )
        if token:
            NotificationToken.objects.create(user=user, token=token)
        return user
    return _make


@pytest.fixture
def alice(make_user):
    return make_user('alice', token='tok-alice')


@pytest.fixture
def bob(make_user):
    return make_user('bob', token='tok-bob')


@pytest.fixture
def conversation(alice, bob):
    return Conversation.objects.create(user1=alice, user2=bob, created_by=alice)


@pytest.fixture
def open_registration(settings):
    settings.ACCESS_GATE_ENABLED = False
