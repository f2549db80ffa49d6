import pytest
from django.contrib.auth import get_user_model

from core import services
from core.exceptions import AccessDenied, AuthFailure, ValidationFailure
from core.models import Conversation, NotificationToken, Profile, Upload
from core.storage import InMemoryBlobStore

from .conftest import PASSWORD, make_photo

User = get_user_model()

pytestmark = pytest.mark.django_db


@pytest.mark.parametrize('username', ['ab', 'a' * 21, 'has space', 'dash-name', ''])
def test_invalid_usernames(username):
    with pytest.raises(ValidationFailure) as exc:
        services.validate_username(username)
    assert exc.value.code == 'invalid-username'


def test_valid_username():
    assert services.validate_username('valid_user1') == 'valid_user1'


def test_register_creates_user_and_profile(open_registration):
    user, profile = services.register_user('New@Example.com', 'secret1', 'valid_user1', 'secret1')

    assert user.email == 'new@example.com'
    assert user.check_password('secret1')
    assert profile.pk is not None
    assert profile.display_name == 'valid_user1'
    assert Profile.objects.filter(user=user).count() == 1


def test_usernames_are_unique_ignoring_case(open_registration):
    services.register_user('one@example.com', 'secret1', 'valid_user1')
    assert not services.is_username_available('VALID_USER1')

    with pytest.raises(ValidationFailure) as exc:
        services.register_user('two@example.com', 'secret1', 'VALID_USER1')
    assert exc.value.code == 'username-taken'


@pytest.mark.parametrize('email,password,confirm,code', [
    ('', 'secret1', None, 'missing-field'),
    ('x@example.com', 'abc', None, 'weak-password'),
    ('x@example.com', 'secret1', 'secret2', 'password-mismatch'),
])
def test_register_rejects(email, password, confirm, code):
    with pytest.raises(ValidationFailure) as exc:
        services.register_user(email, password, 'valid_user1', confirm)
    assert exc.value.code == code


def test_register_unlisted_email_creates_nothing(settings):
    settings.ACCESS_ALLOWED_EMAILS = ['alice@example.com']

    with pytest.raises(AccessDenied):
        services.register_user('mallory@example.com', 'secret1', 'mallory', 'secret1')

    assert not User.objects.filter(email__iexact='mallory@example.com').exists()
    assert not Profile.objects.exists()


def test_register_with_empty_allow_list_is_refused(settings):
    settings.ACCESS_ALLOWED_EMAILS = []

    with pytest.raises(AccessDenied):
        services.register_user('alice@example.com', 'secret1', 'alice', 'secret1')
    assert not User.objects.exists()


def test_register_listed_email(settings):
    settings.ACCESS_ALLOWED_EMAILS = ['alice@example.com']
    user, _ = services.register_user('Alice@Example.com', 'secret1', 'alice', 'secret1')
    assert user.email == 'alice@example.com'


def test_register_rejects_known_email(alice):
    with pytest.raises(ValidationFailure) as exc:
        services.register_user('ALICE@example.com', 'secret1', 'other_name')
    assert exc.value.code == 'email-already-in-use'


def test_update_profile(alice, bob):
    profile = services.update_profile(alice, username='alice_2', display_name='Ali', timezone='UTC')

    alice.refresh_from_db()
    assert alice.username == 'alice_2'
    assert profile.display_name == 'Ali'
    assert profile.timezone == 'UTC'

    with pytest.raises(ValidationFailure) as exc:
        services.update_profile(alice, username='BOB')
    assert exc.value.code == 'username-taken'


def test_blank_display_name_falls_back_to_username(alice):
    profile = services.update_profile(alice, display_name='   ')
    assert profile.display_name == 'alice'


def test_delete_account_removes_everything(alice, bob, conversation):
    services.submit_upload(alice, '2025-06-01', make_photo())
    services.submit_upload(bob, '2025-06-01', make_photo(), conversation=conversation)
    assert len(InMemoryBlobStore.blobs) == 2

    services.delete_account(alice, PASSWORD)

    assert not User.objects.filter(username='alice').exists()
    assert not NotificationToken.objects.filter(token='tok-alice').exists()
    assert not Conversation.objects.exists()
    assert not Upload.objects.exists()
    assert InMemoryBlobStore.blobs == {}
    assert User.objects.filter(username='bob').exists()


def test_delete_account_needs_the_password(alice):
    with pytest.raises(AuthFailure) as exc:
        services.delete_account(alice, 'wrong')
    assert exc.value.code == 'wrong-password'
    assert User.objects.filter(pk=alice.pk).exists()
