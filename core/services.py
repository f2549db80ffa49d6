"""
DailySnap - Services
====================

The rules of the app, independent of HTTP:

1. Upload & Unlock
   - one photo per user per day, re-submitting overwrites
   - you see your partner's photo only once you have uploaded your own
2. Day loading
   - theme/memory lookups are optional and degrade to "no theme"
   - upload lookups retry transient database errors, then surface
     permission vs connectivity failures
3. Conversations and user accounts
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import (
    DatabaseError,
    IntegrityError,
    InterfaceError,
    InternalError,
    ProgrammingError,
    transaction,
)
from django.db.models import Q

from .auth import is_email_allowed, legacy_pair_emails
from .buckets import parse_bucket_id, split_today_and_past, today_bucket_id
from .exceptions import (
    AccessDenied,
    AuthFailure,
    Connectivity,
    NoPartner,
    NotFound,
    PermissionDenied,
    TransientInternal,
    ValidationFailure,
)
from .models import Conversation, DailyPost, NotificationToken, Profile, Upload
from .storage import BlobStoreError, blob_path, get_blob_store, record_orphan, release_blob

logger = logging.getLogger(__name__)
User = get_user_model()

USERNAME_RE = re.compile(r'^[a-zA-Z0-9_]{3,20}$')
MIN_PASSWORD_LENGTH = 6
MAX_CAPTION_LENGTH = 500
NEW_PHOTO_MESSAGE = '📸 New photo shared'


# =============================================================================
# UPLOAD & UNLOCK
# =============================================================================

def can_view_partner_upload(my_upload):
    """True iff I have my own upload for the day and it has an image."""
    return bool(my_upload is not None and my_upload.image_url)


def legacy_partner(user):
    """
    The other account of two-party mode, or None if it hasn't registered yet.

    Raises NoPartner when two-party mode is off or ``user`` is not one of
    the pair.
    """
    pair = legacy_pair_emails()
    if pair is None or (user.email or '').lower() not in pair:
        raise NoPartner()
    other = next(email for email in pair if email != user.email.lower())
    return User.objects.filter(email__iexact=other, is_active=True).first()


def _check_scope(user, conversation):
    if conversation is None:
        return legacy_partner(user)
    if not conversation.includes_user(user):
        raise PermissionDenied("You don't have access to this conversation.")
    return conversation.get_partner(user)


def _clean_caption(caption):
    caption = (caption or '').strip()
    if len(caption) > MAX_CAPTION_LENGTH:
        raise ValidationFailure(
            f'Captions can be at most {MAX_CAPTION_LENGTH} characters.',
            code='caption-too-long',
        )
    return caption


def _store_image(store, image, user, bucket_id, conversation):
    try:
        return store.upload(image, blob_path(user, bucket_id, conversation))
    except BlobStoreError as exc:
        logger.error('BLOB_UPLOAD_FAILED user=%s date=%s error=%s', user.pk, bucket_id, exc)
        raise Connectivity('Could not upload the photo. Try again.') from exc


def submit_upload(user, bucket_id, image, caption='', conversation=None, blob_store=None):
    """
    Write (or overwrite) the user's upload for ``bucket_id``.

    The blob goes first; if the row write then fails, the new blob is
    recorded as orphaned and the error propagates.
    """
    bucket_id = bucket_id or today_bucket_id()
    parse_bucket_id(bucket_id)
    if image is None:
        raise ValidationFailure('Choose a photo to upload.', code='missing-image')
    caption = _clean_caption(caption)
    _check_scope(user, conversation)

    store = blob_store or get_blob_store()
    stored = _store_image(store, image, user, bucket_id, conversation)

    previous = Upload.objects.filter(user=user, bucket_id=bucket_id, conversation=conversation).first()
    try:
        upload, created = Upload.objects.update_or_create(
            user=user,
            bucket_id=bucket_id,
            conversation=conversation,
            defaults={
                'image_public_id': stored.public_id,
                'image_url': stored.url,
                'caption': caption,
            },
        )
    except DatabaseError:
        logger.exception('UPLOAD_WRITE_FAILED user=%s date=%s', user.pk, bucket_id)
        record_orphan(stored.public_id, 'metadata-write-failed')
        raise

    if previous is not None and previous.image_public_id != stored.public_id:
        release_blob(previous.image_public_id, store, reason='replaced')

    if conversation is not None:
        conversation.touch(NEW_PHOTO_MESSAGE)

    logger.info(
        'UPLOAD_SAVED upload=%s created=%s conversation=%s',
        upload.doc_id, created, getattr(conversation, 'pk', None),
    )
    return upload


def edit_upload(user, bucket_id, new_image=None, new_caption=None, conversation=None, blob_store=None):
    """
    Replace the image and/or caption of an existing upload.

    A new image is uploaded first, then the old blob is released
    best-effort, then the row is updated.
    """
    _check_scope(user, conversation)
    upload = Upload.objects.filter(user=user, bucket_id=bucket_id, conversation=conversation).first()
    if upload is None:
        raise NotFound('There is no photo to edit for this day.')

    update_fields = ['updated_at']
    store = blob_store or get_blob_store()
    if new_image is not None:
        stored = _store_image(store, new_image, user, bucket_id, conversation)
        release_blob(upload.image_public_id, store, reason='replaced')
        upload.image_public_id = stored.public_id
        upload.image_url = stored.url
        update_fields += ['image_public_id', 'image_url']
    if new_caption is not None:
        upload.caption = _clean_caption(new_caption)
        update_fields.append('caption')

    upload.save(update_fields=update_fields)
    logger.info('UPLOAD_EDITED upload=%s new_image=%s', upload.doc_id, new_image is not None)
    return upload


def delete_upload(user, bucket_id, conversation=None, blob_store=None):
    """
    Remove the user's upload for the day. Returns False if there was none.

    The row deletion is what counts; the blob is released best-effort.
    """
    _check_scope(user, conversation)
    upload = Upload.objects.filter(user=user, bucket_id=bucket_id, conversation=conversation).first()
    if upload is None:
        return False

    public_id = upload.image_public_id
    doc_id = upload.doc_id
    upload.delete()
    release_blob(public_id, blob_store or get_blob_store(), reason='deleted')
    logger.info('UPLOAD_DELETED upload=%s', doc_id)
    return True


# =============================================================================
# DAY LOADING
# =============================================================================

@dataclass
class DayView:
    bucket_id: str
    theme: Optional[DailyPost] = None
    memories: list = field(default_factory=list)
    my_upload: Optional[Upload] = None
    partner_upload: Optional[Upload] = None

    @property
    def can_view_partner(self):
        return can_view_partner_upload(self.my_upload)


def _classify_db_error(exc):
    if isinstance(exc, InternalError):
        return TransientInternal()
    if isinstance(exc, ProgrammingError) and 'permission denied' in str(exc).lower():
        return PermissionDenied()
    return Connectivity()


def _query_day_uploads(bucket_id, conversation):
    return list(
        Upload.objects.filter(bucket_id=bucket_id, conversation=conversation).select_related('user')
    )


def fetch_day_uploads(bucket_id, conversation=None, max_attempts=None, sleep=time.sleep):
    """
    All uploads of a day, retrying transient internal errors.

    Gives up with an empty list once retries are exhausted; permission and
    connectivity errors are raised straight away.
    """
    max_attempts = max_attempts or settings.UPLOAD_FETCH_MAX_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            sleep(min(200 * attempt, 1000) / 1000)
        try:
            return _query_day_uploads(bucket_id, conversation)
        except (DatabaseError, InterfaceError) as exc:
            error = _classify_db_error(exc)
            if not isinstance(error, TransientInternal):
                logger.error('UPLOAD_FETCH_FAILED date=%s code=%s error=%s', bucket_id, error.code, exc)
                raise error from exc
            logger.warning('UPLOAD_FETCH_RETRY date=%s attempt=%s error=%s', bucket_id, attempt, exc)
    logger.error('UPLOAD_FETCH_GAVE_UP date=%s attempts=%s', bucket_id, max_attempts)
    return []


def load_posts(conversation=None, today=None):
    """(today's post, past posts) for a scope. Failures mean "no theme"."""
    today = today or today_bucket_id()
    if conversation is not None and not conversation.memories_enabled:
        return None, []
    try:
        posts = list(DailyPost.objects.filter(conversation=conversation, bucket_id__lte=today))
    except (DatabaseError, InterfaceError) as exc:
        logger.warning('DAILY_POST_FETCH_FAILED date=%s error=%s', today, exc)
        return None, []
    return split_today_and_past(posts, today)


def load_day(user, partner=None, bucket_id=None, conversation=None):
    """
    Everything a user sees for one day.

    Without a conversation (legacy two-party mode) the partner is the other
    allow-listed account; with one, it is the other member. Uploads by
    anyone else are ignored.
    """
    bucket_id = bucket_id or today_bucket_id()
    parse_bucket_id(bucket_id)
    scope_partner = _check_scope(user, conversation)
    partner = partner or scope_partner

    theme, memories = load_posts(conversation, bucket_id)
    view = DayView(bucket_id=bucket_id, theme=theme, memories=memories)

    for upload in fetch_day_uploads(bucket_id, conversation):
        if upload.user_id == user.pk:
            view.my_upload = upload
        elif partner is not None and upload.user_id == partner.pk:
            view.partner_upload = upload
    return view


# =============================================================================
# CONVERSATIONS
# =============================================================================

def start_conversation(initiator, other):
    """Return the pair's conversation, creating it on first contact."""
    if initiator.pk == other.pk:
        raise ValidationFailure("You can't start a conversation with yourself.", code='self-pairing')

    existing = Conversation.between(initiator, other)
    if existing is not None:
        return existing, False

    try:
        with transaction.atomic():
            conversation = Conversation.objects.create(
                user1=initiator,
                user2=other,
                created_by=initiator,
            )
    except IntegrityError:
        # The other member started it at the same moment
        return Conversation.between(initiator, other), False
    logger.info('CONVERSATION_CREATED id=%s by=%s', conversation.pk, initiator.pk)
    return conversation, True


def conversations_for(user):
    """[(conversation, other member)] newest activity first."""
    return [
        (conversation, conversation.get_partner(user))
        for conversation in Conversation.get_conversations_for_user(user)
    ]


def search_users(prefix, exclude=None, limit=10):
    """Users whose username starts with ``prefix`` (case-insensitive)."""
    prefix = (prefix or '').strip()
    if not prefix:
        return []
    qs = User.objects.filter(username__istartswith=prefix, is_active=True).select_related('profile')
    if exclude is not None:
        qs = qs.exclude(pk=exclude.pk)
    return list(qs.order_by('username')[:limit])


# =============================================================================
# ACCOUNTS
# =============================================================================

def validate_username(username):
    username = (username or '').strip()
    if not USERNAME_RE.match(username):
        raise ValidationFailure(
            'Usernames must be 3-20 characters (letters, numbers, underscore).',
            code='invalid-username',
        )
    return username


def is_username_available(username, exclude_user=None):
    qs = User.objects.filter(username__iexact=username)
    if exclude_user is not None:
        qs = qs.exclude(pk=exclude_user.pk)
    return not qs.exists()


def register_user(email, password, username, password_confirm=None):
    """
    Create the auth account and its profile.

    Returns (user, profile). If the profile write fails, the profile is an
    unsaved stand-in so callers can keep going.
    """
    email = (email or '').strip().lower()
    if not email or not password or not username:
        raise ValidationFailure('Fill in all the fields.', code='missing-field')
    username = validate_username(username)
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailure(
            f'Passwords must be at least {MIN_PASSWORD_LENGTH} characters.',
            code='weak-password',
        )
    if password_confirm is not None and password != password_confirm:
        raise ValidationFailure("Passwords don't match.", code='password-mismatch')
    if not is_username_available(username):
        raise ValidationFailure('This username is already taken.', code='username-taken')
    if User.objects.filter(email__iexact=email).exists():
        raise ValidationFailure('This email is already registered.', code='email-already-in-use')
    if not is_email_allowed(email):
        logger.warning('REGISTRATION_DENIED email=%s', email)
        raise AccessDenied()

    try:
        user = User.objects.create_user(username=username, email=email, password=password)
    except IntegrityError as exc:
        raise ValidationFailure('This username is already taken.', code='username-taken') from exc

    try:
        profile, _ = Profile.objects.update_or_create(user=user, defaults={'display_name': username})
    except DatabaseError:
        logger.exception('PROFILE_CREATE_FAILED user=%s', user.pk)
        profile = Profile(user=user, display_name=username)

    logger.info('USER_REGISTERED user=%s', user.pk)
    return user, profile


def update_profile(user, username=None, display_name=None, blob_store=None, **fields):
    """Change username/display name and any other Profile fields."""
    profile, _ = Profile.objects.get_or_create(user=user)
    old_picture = profile.profile_picture

    if username is not None and username.strip() != user.username:
        username = validate_username(username)
        if not is_username_available(username, exclude_user=user):
            raise ValidationFailure('This username is already taken.', code='username-taken')
        user.username = username
        user.save(update_fields=['username'])

    if display_name is not None:
        profile.display_name = display_name.strip() or user.username
    for name, value in fields.items():
        setattr(profile, name, value)
    profile.save()

    new_picture = fields.get('profile_picture')
    if old_picture and new_picture and _blob_id(old_picture) != _blob_id(new_picture):
        release_blob(_blob_id(old_picture), blob_store or get_blob_store(), reason='replaced')
    return profile


def _blob_id(picture):
    return getattr(picture, 'public_id', None) or str(picture)


def delete_account(user, password, blob_store=None):
    """
    Remove the user and everything hanging off them.

    Conversations go too (both members' photos in them), since a
    conversation can't exist with a single member.
    """
    if not user.check_password(password):
        raise AuthFailure('Wrong password.', code='wrong-password')

    store = blob_store or get_blob_store()
    profile = Profile.objects.filter(user=user).first()
    picture = getattr(profile, 'profile_picture', None) if profile else None
    if picture:
        release_blob(_blob_id(picture), store, reason='account-deleted')

    doomed = Upload.objects.filter(
        Q(user=user) | Q(conversation__user1=user) | Q(conversation__user2=user)
    ).exclude(image_public_id='').values_list('image_public_id', flat=True)
    public_ids = list(doomed)

    user_id = user.pk
    with transaction.atomic():
        NotificationToken.objects.filter(user=user).delete()
        user.delete()

    for public_id in public_ids:
        release_blob(public_id, store, reason='account-deleted')
    logger.info('ACCOUNT_DELETED user=%s photos=%s', user_id, len(public_ids))
