"""
DailySnap - Notification Fan-out

Every trigger here is stateless: it resolves recipients, builds one message
per token and hands them to the push backend. Failed sends are logged and
counted, never retried.
"""

import logging
from datetime import datetime, time as dt_time, timedelta
from zoneinfo import ZoneInfo

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from .auth import legacy_pair_emails
from .buckets import bucket_id_for
from .exceptions import ValidationFailure
from .models import DailyPost, NotificationToken, Profile
from .push import FanOutResult, PushError, PushMessage, SendResult, get_push_backend

logger = logging.getLogger(__name__)


class NotificationType:
    PARTNER_UPLOAD = 'partner_upload'
    MIDNIGHT_MEMORY = 'midnight_memory'
    CHAT_INVITE = 'chat_invite'
    HOURLY_REMINDER = 'hourly_reminder'
    DAILY_REMINDER = 'daily_reminder'
    TEST = 'test'


FALLBACK_INVITER_LABEL = 'Someone'


def notification_tz():
    return ZoneInfo(settings.NOTIFICATION_TIMEZONE)


def scheduler_now(now=None):
    """Current time in the scheduler's fixed timezone."""
    return timezone.localtime(now or timezone.now(), notification_tz())


def next_fire_time(now, hour=None):
    """
    Next occurrence of ``hour``:00 strictly after ``now`` (same timezone
    as ``now``).
    """
    hour = settings.DAILY_REMINDER_HOUR if hour is None else hour
    candidate = datetime.combine(now.date(), dt_time(hour), tzinfo=now.tzinfo)
    if candidate <= now:
        candidate = datetime.combine(now.date() + timedelta(days=1), dt_time(hour), tzinfo=now.tzinfo)
    return candidate


# =============================================================================
# TOKENS
# =============================================================================

def save_notification_token(user, token):
    """Store the user's latest push token, replacing any previous device."""
    token = (token or '').strip()
    if not token:
        raise ValidationFailure('Missing notification token.', code='missing-token')
    record, _ = NotificationToken.objects.update_or_create(
        user=user,
        defaults={'token': token},
    )
    logger.info('PUSH_TOKEN_SAVED user=%s', user.pk)
    return record


def legacy_partner_tokens(uploader):
    """
    Two-party mode: the other allow-listed account's token. Empty when
    two-party mode is off or the uploader is not one of the pair.
    """
    pair = legacy_pair_emails()
    if pair is None or (uploader.email or '').lower() not in pair:
        return []
    return [
        record for record in NotificationToken.objects.select_related('user__profile')
        if record.user_id != uploader.pk and record.token and record.user.email.lower() in pair
    ]


def conversation_partner_tokens(conversation, sender_id):
    partner_id = conversation.get_partner_id(sender_id)
    if partner_id is None:
        return []
    record = NotificationToken.objects.select_related('user__profile').filter(user_id=partner_id).first()
    if record is None or not record.token:
        return []
    return [record]


def _wants_partner_uploads(record):
    profile = getattr(record.user, 'profile', None)
    return profile is None or profile.notify_partner_upload


# =============================================================================
# EVENT TRIGGERS
# =============================================================================

def notify_partner_on_upload(upload, backend=None):
    """Tell the partner that ``upload`` was just created."""
    logger.info(
        'UPLOAD_CREATED upload=%s user=%s date=%s conversation=%s',
        upload.doc_id, upload.user_id, upload.bucket_id, upload.conversation_id,
    )
    if upload.conversation_id:
        recipients = conversation_partner_tokens(upload.conversation, upload.user_id)
    else:
        recipients = legacy_partner_tokens(upload.user)
    recipients = [record for record in recipients if _wants_partner_uploads(record)]

    if not recipients:
        logger.info('PARTNER_TOKEN_NOT_FOUND upload=%s', upload.doc_id)
        return FanOutResult()

    data = {
        'type': NotificationType.PARTNER_UPLOAD,
        'date_id': upload.bucket_id,
        'upload_id': upload.doc_id,
    }
    if upload.conversation_id:
        data['conversation_id'] = upload.conversation_id

    messages = [
        PushMessage(
            token=record.token,
            title='New photo from your partner! 💕',
            body='Your partner just shared a photo. Open the app to see it!',
            data=data,
        )
        for record in recipients
    ]
    result = (backend or get_push_backend()).send_each(messages)
    logger.info(
        'PARTNER_NOTIFIED upload=%s sent=%s failed=%s',
        upload.doc_id, result.success_count, result.failure_count,
    )
    return result


def _inviter_label(user_id):
    try:
        profile = Profile.objects.select_related('user').get(user_id=user_id)
    except (Profile.DoesNotExist, DatabaseError) as exc:
        logger.warning('INVITER_LOOKUP_FAILED user=%s error=%s', user_id, exc)
        return FALLBACK_INVITER_LABEL
    return profile.user.username or FALLBACK_INVITER_LABEL


def notify_chat_invite(conversation, backend=None):
    """Tell the invited member that someone started a conversation with them."""
    invitee_id = conversation.invitee_id
    record = NotificationToken.objects.filter(user_id=invitee_id).exclude(token='').first()
    if record is None:
        logger.info('INVITEE_TOKEN_NOT_FOUND conversation=%s', conversation.pk)
        return None

    inviter = _inviter_label(conversation.created_by_id)
    message = PushMessage(
        token=record.token,
        title='New conversation 💬',
        body=f'@{inviter} started sharing daily photos with you!',
        data={
            'type': NotificationType.CHAT_INVITE,
            'conversation_id': conversation.pk,
        },
    )
    return _send_one(message, backend)


def _send_one(message, backend=None):
    try:
        message_id = (backend or get_push_backend()).send(message)
    except PushError as exc:
        logger.error('PUSH_SEND_FAILED type=%s error=%s', message.type, exc)
        return SendResult(message.token, False, error=str(exc))
    logger.info('PUSH_SENT type=%s message_id=%s', message.type, message_id)
    return SendResult(message.token, True, message_id=message_id)


# =============================================================================
# SCHEDULED JOBS
# =============================================================================

def broadcast(title, body, data, backend=None):
    """One message to every stored token. Individual failures are tolerated."""
    tokens = NotificationToken.objects.exclude(token='').values_list('token', flat=True)
    messages = [PushMessage(token=token, title=title, body=body, data=data) for token in tokens]
    result = (backend or get_push_backend()).send_each(messages)
    logger.info(
        'BROADCAST_DONE type=%s sent=%s failed=%s',
        data.get('type'), result.success_count, result.failure_count,
    )
    return result


def send_midnight_memory(now=None, backend=None):
    """Reveal today's memory photo, if there is one. Returns None when skipped."""
    bucket_id = bucket_id_for(scheduler_now(now))
    post = DailyPost.objects.filter(conversation__isnull=True, bucket_id=bucket_id).first()
    if post is None or not post.has_memory_image:
        logger.info('MIDNIGHT_MEMORY_SKIPPED date=%s', bucket_id)
        return None
    return broadcast(
        title='A new memory is waiting ✨',
        body="Today's memory has been unlocked. Come and see it!",
        data={'type': NotificationType.MIDNIGHT_MEMORY, 'date_id': bucket_id},
        backend=backend,
    )


def send_hourly_reminder(now=None, backend=None):
    """Periodic nudge, only inside REMINDER_ACTIVE_HOURS."""
    local = scheduler_now(now)
    start, end = settings.REMINDER_ACTIVE_HOURS
    if not start <= local.hour < end:
        logger.info('HOURLY_REMINDER_SKIPPED hour=%s', local.hour)
        return None
    return broadcast(
        title="Don't forget today's photo 📸",
        body='Share your moment of the day with your partner.',
        data={'type': NotificationType.HOURLY_REMINDER, 'date_id': bucket_id_for(local)},
        backend=backend,
    )


def send_daily_reminder(now=None, backend=None):
    local = scheduler_now(now)
    return broadcast(
        title="It's photo time! 📸",
        body="Don't forget to share your special moment of today!",
        data={'type': NotificationType.DAILY_REMINDER, 'date_id': bucket_id_for(local)},
        backend=backend,
    )


def send_test_notification(user, backend=None):
    record = NotificationToken.objects.filter(user=user).exclude(token='').first()
    if record is None:
        return None
    message = PushMessage(
        token=record.token,
        title='Test notification 🔔',
        body='Notifications are working!',
        data={'type': NotificationType.TEST},
    )
    return _send_one(message, backend)


SCHEDULED_JOBS = {
    NotificationType.MIDNIGHT_MEMORY: send_midnight_memory,
    NotificationType.HOURLY_REMINDER: send_hourly_reminder,
    NotificationType.DAILY_REMINDER: send_daily_reminder,
}
