from unittest import mock

import pytest

from core.auth import (
    GENERIC_AUTH_MESSAGE,
    auth_error_message,
    authenticate_email,
    check_credentials,
    is_email_allowed,
    legacy_pair_emails,
    session_expired,
)
from core.exceptions import AccessDenied, AuthFailure, ValidationFailure

from .conftest import PASSWORD


def test_unlisted_email_never_reaches_the_backend(settings):
    settings.ACCESS_ALLOWED_EMAILS = ['alice@example.com']
    backend = mock.Mock()

    with pytest.raises(AccessDenied):
        authenticate_email(None, 'random@example.com', 'whatever', backend=backend)

    backend.assert_not_called()


def test_allow_list_is_case_insensitive(settings):
    settings.ACCESS_ALLOWED_EMAILS = ['alice@example.com']
    assert is_email_allowed(' Alice@Example.COM ')
    assert not is_email_allowed('bob@example.com')


def test_empty_allow_list_lets_nobody_in(settings):
    settings.ACCESS_ALLOWED_EMAILS = []
    assert not is_email_allowed('anyone@example.com')

    with pytest.raises(AccessDenied):
        authenticate_email(None, 'anyone@example.com', 'pw', backend=mock.Mock())


def test_gate_off_lets_everyone_in(settings):
    settings.ACCESS_GATE_ENABLED = False
    settings.ACCESS_ALLOWED_EMAILS = []
    assert is_email_allowed('anyone@example.com')


def test_two_party_mode_needs_exactly_two_addresses(settings):
    assert legacy_pair_emails() == {'alice@example.com', 'bob@example.com'}

    settings.ACCESS_ALLOWED_EMAILS = ['alice@example.com', 'bob@example.com', 'carol@example.com']
    assert legacy_pair_emails() is None

    settings.ACCESS_ALLOWED_EMAILS = ['Alice@example.com', 'bob@example.com']
    settings.ACCESS_GATE_ENABLED = False
    assert legacy_pair_emails() is None


def test_missing_fields():
    with pytest.raises(ValidationFailure):
        authenticate_email(None, '', 'pw', backend=mock.Mock())


def test_backend_codes_map_to_fixed_messages(settings):
    settings.ACCESS_ALLOWED_EMAILS = ['alice@example.com']
    backend = mock.Mock(side_effect=AuthFailure(code='too-many-requests'))

    with pytest.raises(AuthFailure) as exc:
        authenticate_email(None, 'alice@example.com', 'pw', backend=backend)

    assert exc.value.code == 'too-many-requests'
    assert exc.value.message == 'Too many failed attempts. Try again later.'
    backend.assert_called_once_with(None, 'alice@example.com', 'pw')


def test_unknown_code_gets_the_generic_message():
    assert auth_error_message('something-new') == GENERIC_AUTH_MESSAGE
    assert auth_error_message('network-request-failed').startswith('Connection error')


@pytest.mark.django_db
def test_check_credentials(alice):
    assert check_credentials(None, 'alice@example.com', PASSWORD) == alice

    with pytest.raises(AuthFailure) as exc:
        check_credentials(None, 'alice@example.com', 'nope')
    assert exc.value.code == 'wrong-password'

    with pytest.raises(AuthFailure) as exc:
        check_credentials(None, 'ghost@example.com', 'nope')
    assert exc.value.code == 'user-not-found'


@pytest.mark.django_db
def test_disabled_account(alice):
    alice.is_active = False
    alice.save()
    with pytest.raises(AuthFailure) as exc:
        check_credentials(None, 'alice@example.com', PASSWORD)
    assert exc.value.code == 'user-disabled'


@pytest.mark.django_db
def test_repeated_failures_lock_the_email(settings, alice):
    settings.AUTH_MAX_FAILED_ATTEMPTS = 3
    for _ in range(3):
        with pytest.raises(AuthFailure):
            check_credentials(None, 'alice@example.com', 'nope')

    with pytest.raises(AuthFailure) as exc:
        check_credentials(None, 'alice@example.com', PASSWORD)
    assert exc.value.code == 'too-many-requests'


def test_session_expiry():
    assert not session_expired(None, 1000, timeout=300)
    assert not session_expired(1000, 1300, timeout=300)
    assert session_expired(1000, 1301, timeout=300)
