"""
DailySnap - Identity & Access Gate

Sign-in goes through two checks:
1. the email allow-list (no backend call for unknown addresses)
2. Django's authentication backend, whose failures carry a code that maps
   to a fixed user-facing message
"""

import logging
import time

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model, login, logout
from django.core.cache import cache
from django.db import DatabaseError

from .exceptions import AccessDenied, AuthFailure, ValidationFailure

logger = logging.getLogger(__name__)
User = get_user_model()

LAST_ACTIVITY_SESSION_KEY = '_last_activity'

# Session-held client state dropped on logout
DRAFT_SESSION_KEYS = ('pending_upload', 'pending_caption')

GENERIC_AUTH_MESSAGE = 'Could not sign in. Try again later.'

AUTH_ERROR_MESSAGES = {
    'invalid-credential': 'Incorrect email or password.',
    'wrong-password': 'Incorrect email or password.',
    'user-not-found': 'Incorrect email or password.',
    'invalid-email': 'Incorrect email or password.',
    'user-disabled': 'This account has been disabled.',
    'too-many-requests': 'Too many failed attempts. Try again later.',
    'network-request-failed': 'Connection error. Check your internet connection.',
}


def auth_error_message(code):
    return AUTH_ERROR_MESSAGES.get(code, GENERIC_AUTH_MESSAGE)


def allowed_emails():
    return {address.strip().lower() for address in settings.ACCESS_ALLOWED_EMAILS if address.strip()}


def is_email_allowed(email):
    """
    Allow-list policy. With ACCESS_GATE_ENABLED off every email passes;
    with it on, an empty ACCESS_ALLOWED_EMAILS lets nobody through.
    """
    if not settings.ACCESS_GATE_ENABLED:
        return True
    return (email or '').strip().lower() in allowed_emails()


def legacy_pair_emails():
    """
    The two accounts of two-party mode, or None when that mode is off.

    Two-party mode needs the gate on and exactly two allow-listed addresses.
    """
    if not settings.ACCESS_GATE_ENABLED:
        return None
    emails = allowed_emails()
    if len(emails) != 2:
        return None
    return emails


def _failures_key(email):
    return f'auth-failures:{email}'


def _record_failure(email):
    key = _failures_key(email)
    cache.add(key, 0, timeout=settings.AUTH_LOCKOUT_SECONDS)
    try:
        cache.incr(key)
    except ValueError:
        cache.set(key, 1, timeout=settings.AUTH_LOCKOUT_SECONDS)


def check_credentials(request, email, password):
    """
    The authentication backend: returns the user or raises AuthFailure
    with a backend error code.
    """
    if cache.get(_failures_key(email), 0) >= settings.AUTH_MAX_FAILED_ATTEMPTS:
        raise AuthFailure(code='too-many-requests')

    try:
        candidate = User.objects.filter(email__iexact=email).first()
    except DatabaseError as exc:
        raise AuthFailure(code='network-request-failed') from exc

    if candidate is None:
        _record_failure(email)
        raise AuthFailure(code='user-not-found')
    if not candidate.is_active:
        raise AuthFailure(code='user-disabled')

    user = authenticate(request, username=candidate.get_username(), password=password)
    if user is None:
        _record_failure(email)
        raise AuthFailure(code='wrong-password')

    cache.delete(_failures_key(email))
    return user


def authenticate_email(request, email, password, backend=check_credentials):
    """
    Gate + backend. Returns the authenticated user.

    Raises AccessDenied before touching the backend when the email is not
    allowed, AuthFailure (with a display message) when the backend refuses.
    """
    email = (email or '').strip().lower()
    if not email or not password:
        raise ValidationFailure('Enter your email and password.', code='missing-field')

    if not is_email_allowed(email):
        logger.warning('LOGIN_BLOCKED email=%s', email)
        raise AccessDenied()

    try:
        user = backend(request, email, password)
    except AuthFailure as exc:
        logger.warning('LOGIN_FAILED email=%s code=%s', email, exc.code)
        raise AuthFailure(auth_error_message(exc.code), code=exc.code) from exc
    return user


def sign_in(request, email, password, backend=check_credentials):
    user = authenticate_email(request, email, password, backend=backend)
    login(request, user)
    request.session[LAST_ACTIVITY_SESSION_KEY] = time.time()
    logger.info('LOGIN_OK user=%s', user.pk)
    return user


def deauthenticate(request):
    """End the session and drop any client state kept in it."""
    session = getattr(request, 'session', None)
    if session is not None:
        for key in DRAFT_SESSION_KEYS:
            session.pop(key, None)
    logout(request)


def session_expired(last_activity, now, timeout=None):
    timeout = settings.SESSION_INACTIVITY_TIMEOUT if timeout is None else timeout
    return last_activity is not None and now - last_activity > timeout
