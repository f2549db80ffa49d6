"""
DailySnap - Data Models
=======================

Everything day-scoped is keyed by a bucket id (``YYYY-MM-DD``):

- DailyPost: the theme/memory of the day, written by admins
- Upload: one photo per user per day (``{bucket_id}_{user_id}``)

Two scopes exist side by side:
- legacy two-party mode: ``conversation`` is NULL and "partner" means
  "anyone who is not me"
- conversation mode: rows belong to a Conversation between two users
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from cloudinary.models import CloudinaryField

DEFAULT_THEME_TEXT = 'No message for today'


def _pk(user_or_id):
    return getattr(user_or_id, 'pk', user_or_id)


def pairing_id(user_a, user_b):
    """Deterministic conversation id: both ids sorted, joined with '_'."""
    return '_'.join(sorted([str(_pk(user_a)), str(_pk(user_b))]))


def upload_doc_id(bucket_id, user):
    return f'{bucket_id}_{_pk(user)}'


class Profile(models.Model):
    """
    Extends Django's User with the public profile.

    Created automatically when a User is created via signals.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='profile'
    )

    display_name = models.CharField(
        max_length=50,
        blank=True,
        help_text="Name shown to your partner (defaults to username)"
    )
    profile_picture = CloudinaryField(
        'profile_picture',
        blank=True,
        null=True,
        help_text="Profile photo"
    )

    # Preferences
    timezone = models.CharField(
        max_length=50,
        blank=True,
        default='',
        help_text="Decides which day counts as 'today' (blank = server timezone)"
    )
    notify_partner_upload = models.BooleanField(
        default=True,
        help_text="Get notified when your partner uploads a photo"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Profile: {self.user.username}"

    @property
    def name(self):
        """Returns display_name if set, otherwise username."""
        return self.display_name or self.user.username


class Conversation(models.Model):
    """
    A pairing of exactly two users.

    The primary key is the pairing id, so starting a conversation with the
    same person twice (from either side) lands on the same row. Members never
    change after creation.
    """
    id = models.CharField(primary_key=True, max_length=64, editable=False)
    user1 = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='conversations_as_user1'
    )
    user2 = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='conversations_as_user2'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='conversations_started',
        help_text="Who started the conversation (the other member is the invitee)"
    )

    memories_enabled = models.BooleanField(
        default=False,
        help_text="Show daily themes/memories in this conversation"
    )
    last_message = models.CharField(max_length=200, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        ordering = ['-updated_at']
        verbose_name = 'Conversation'
        verbose_name_plural = 'Conversations'

    def __str__(self):
        return f"{self.user1.username} & {self.user2.username}"

    def save(self, *args, **kwargs):
        # user1 is always the member whose id sorts first
        if str(self.user1_id) > str(self.user2_id):
            self.user1_id, self.user2_id = self.user2_id, self.user1_id
        if not self.id:
            self.id = pairing_id(self.user1_id, self.user2_id)
        super().save(*args, **kwargs)

    @property
    def participant_ids(self):
        return [self.user1_id, self.user2_id]

    def includes_user(self, user):
        return _pk(user) in self.participant_ids

    def get_partner_id(self, user):
        """Given one member, return the other member's id."""
        user_id = _pk(user)
        if user_id == self.user1_id:
            return self.user2_id
        elif user_id == self.user2_id:
            return self.user1_id
        return None

    def get_partner(self, user):
        partner_id = self.get_partner_id(user)
        if partner_id is None:
            return None
        return self.user2 if partner_id == self.user2_id else self.user1

    @property
    def invitee_id(self):
        return self.get_partner_id(self.created_by_id)

    def touch(self, last_message):
        self.last_message = last_message
        self.save(update_fields=['last_message', 'updated_at'])

    @classmethod
    def get_conversations_for_user(cls, user):
        """Return all conversations that include this user, newest activity first."""
        return cls.objects.filter(
            Q(user1=user) | Q(user2=user)
        ).select_related('user1', 'user2').order_by('-updated_at')

    @classmethod
    def between(cls, user_a, user_b):
        return cls.objects.filter(id=pairing_id(user_a, user_b)).first()


class DailyPost(models.Model):
    """
    The theme/memory of one day bucket.

    Written out-of-band (admin, seed command); the app only reads it.
    ``conversation`` NULL means the global (legacy two-party) post.
    """
    bucket_id = models.CharField(
        max_length=10,
        db_index=True,
        help_text="Day this post belongs to (YYYY-MM-DD)"
    )
    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name='daily_posts',
        null=True,
        blank=True,
        help_text="Leave blank for the global post"
    )
    theme_text = models.TextField(
        blank=True,
        default='',
        help_text="The prompt shown for the day"
    )
    memory_image_url = models.URLField(
        max_length=500,
        blank=True,
        default='',
        help_text="Memory photo revealed at midnight"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['bucket_id']
        verbose_name = 'Daily post'
        verbose_name_plural = 'Daily posts'
        constraints = [
            models.UniqueConstraint(
                fields=['conversation', 'bucket_id'],
                name='unique_conversation_daily_post'
            ),
            models.UniqueConstraint(
                fields=['bucket_id'],
                condition=Q(conversation__isnull=True),
                name='unique_global_daily_post'
            ),
        ]

    def __str__(self):
        return f"[{self.bucket_id}] {self.display_text[:50]}"

    @property
    def display_text(self):
        return self.theme_text or DEFAULT_THEME_TEXT

    @property
    def has_memory_image(self):
        return bool(self.memory_image_url)


class Upload(models.Model):
    """
    A user's photo for one day.

    At most one row per (scope, day, user); submitting again overwrites it.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='uploads'
    )
    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name='uploads',
        null=True,
        blank=True
    )
    bucket_id = models.CharField(max_length=10, db_index=True)

    image_public_id = models.CharField(
        max_length=255,
        blank=True,
        default='',
        help_text="Blob id in the photo store"
    )
    image_url = models.URLField(max_length=500, blank=True, default='')
    caption = models.CharField(max_length=500, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['bucket_id', 'created_at']
        verbose_name = 'Upload'
        verbose_name_plural = 'Uploads'
        constraints = [
            models.UniqueConstraint(
                fields=['conversation', 'bucket_id', 'user'],
                name='unique_conversation_day_user_upload'
            ),
            models.UniqueConstraint(
                fields=['bucket_id', 'user'],
                condition=Q(conversation__isnull=True),
                name='unique_global_day_user_upload'
            ),
        ]
        indexes = [
            models.Index(fields=['conversation', 'bucket_id'], name='upload_conversation_day_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.bucket_id}"

    @property
    def doc_id(self):
        return upload_doc_id(self.bucket_id, self.user_id)

    @property
    def has_image(self):
        return bool(self.image_url)


class NotificationToken(models.Model):
    """Latest push token of a user. Re-registering replaces it."""
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='notification_token'
    )
    token = models.CharField(max_length=512)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Notification token'
        verbose_name_plural = 'Notification tokens'

    def __str__(self):
        return f"{self.user_id}: {self.token[:12]}..."


class OrphanedBlob(models.Model):
    """
    A stored photo that no row references any more and could not be deleted
    inline. ``sweep_orphaned_blobs`` retries these.
    """
    public_id = models.CharField(max_length=255, unique=True)
    reason = models.CharField(max_length=50)
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.public_id} ({self.reason})"
