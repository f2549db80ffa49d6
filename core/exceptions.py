"""
DailySnap - Error Taxonomy

Every error the services raise carries a user-facing message and a stable
code so views can render it without knowing where it came from.
"""


class DailySnapError(Exception):
    code = 'error'
    status = 400
    default_message = 'Something went wrong. Try again later.'

    def __init__(self, message=None, code=None):
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)


class AccessDenied(DailySnapError):
    """Email is not on the allow-list. Raised before any backend call."""
    code = 'access-denied'
    status = 403
    default_message = 'This email is not authorized.'


class AuthFailure(DailySnapError):
    """The authentication backend rejected the credentials or account."""
    code = 'auth-failure'
    status = 401
    default_message = 'Could not sign in. Try again later.'


class PermissionDenied(DailySnapError):
    code = 'permission-denied'
    status = 403
    default_message = 'Insufficient permissions to read this data.'


class Connectivity(DailySnapError):
    code = 'unavailable'
    status = 503
    default_message = 'Could not reach the server. Check your connection.'


class NotFound(DailySnapError):
    code = 'not-found'
    status = 404
    default_message = 'Not found.'


class ValidationFailure(DailySnapError):
    code = 'invalid'
    status = 400
    default_message = 'Invalid data.'


class TransientInternal(DailySnapError):
    """Known class of backend internal errors; retried automatically."""
    code = 'internal'
    status = 503
    default_message = 'Temporary server error. Try again.'


class NoPartner(DailySnapError):
    """Two-party mode is not configured for this account."""
    code = 'no-partner'
    status = 409
    default_message = 'Two-party mode is not set up for this account. Start a conversation instead.'
