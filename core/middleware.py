import json
import logging
import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.utils import timezone

from .auth import LAST_ACTIVITY_SESSION_KEY, deauthenticate, session_expired

logger = logging.getLogger('dailysnap.api')


class RequestTimezoneMiddleware:
    """
    Activate the caller's timezone so "today" is the caller's local date.

    Order: X-Timezone header, then the user's profile, then TIME_ZONE.
    """

    HEADER_NAME = 'HTTP_X_TIMEZONE'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        tz_name = (request.META.get(self.HEADER_NAME) or '').strip() or self._profile_timezone(request)

        if tz_name:
            try:
                timezone.activate(ZoneInfo(tz_name))
                request.client_timezone = tz_name
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning('INVALID_TIMEZONE value=%s', tz_name)
                timezone.deactivate()
                request.client_timezone = None
        else:
            timezone.deactivate()
            request.client_timezone = None

        try:
            return self.get_response(request)
        finally:
            timezone.deactivate()

    @staticmethod
    def _profile_timezone(request):
        user = getattr(request, 'user', None)
        if user is None or not user.is_authenticated:
            return ''
        profile = getattr(user, 'profile', None)
        return getattr(profile, 'timezone', '') or ''


class InactivityLogoutMiddleware:
    """
    Log the user out once SESSION_INACTIVITY_TIMEOUT passes without activity.

    Every request counts as activity except the passive polling paths in
    SESSION_PASSIVE_PATHS.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            now = time.time()
            last_activity = request.session.get(LAST_ACTIVITY_SESSION_KEY)
            if session_expired(last_activity, now):
                logger.info('INACTIVITY_LOGOUT user=%s idle_s=%s', user.pk, int(now - last_activity))
                deauthenticate(request)
            elif request.path not in settings.SESSION_PASSIVE_PATHS:
                request.session[LAST_ACTIVITY_SESSION_KEY] = now

        return self.get_response(request)


class ApiRequestLoggingMiddleware:
    """Logs request/response details for /api/* endpoints when API_VERBOSE_LOGGING is on."""

    SECRET_FIELDS = {'password', 'password_confirm', 'token'}

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not self._should_log(request):
            return self.get_response(request)

        started = time.monotonic()
        body_preview = self._extract_body_preview(request)

        logger.info(
            'API_REQUEST method=%s path=%s query=%s timezone=%s body=%s',
            request.method,
            request.path,
            request.META.get('QUERY_STRING', ''),
            getattr(request, 'client_timezone', None) or '',
            body_preview,
        )

        response = self.get_response(request)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            'API_RESPONSE method=%s path=%s status=%s duration_ms=%s',
            request.method,
            request.path,
            response.status_code,
            duration_ms,
        )

        return response

    @staticmethod
    def _should_log(request) -> bool:
        return bool(getattr(settings, 'API_VERBOSE_LOGGING', False)) and request.path.startswith('/api/')

    @classmethod
    def _extract_body_preview(cls, request) -> str:
        if request.method in {'GET', 'HEAD', 'OPTIONS'}:
            return ''
        content_type = (request.META.get('CONTENT_TYPE') or '').lower()
        if 'multipart/form-data' in content_type:
            length = request.META.get('CONTENT_LENGTH', '')
            return f'<multipart omitted content_type={content_type} content_length={length}>'

        try:
            raw = request.body.decode('utf-8', errors='ignore')
        except Exception:
            return '<unavailable>'
        if not raw:
            return ''
        try:
            parsed = json.loads(raw)
        except ValueError:
            return '<non-json body omitted>'
        if isinstance(parsed, dict):
            parsed = {key: ('***' if key in cls.SECRET_FIELDS else value) for key, value in parsed.items()}
        rendered = json.dumps(parsed, ensure_ascii=True)
        if len(rendered) > 500:
            return f'{rendered[:500]}...'
        return rendered
