"""
DailySnap - Signals

Auto-create Profile when a User is created.
Push notifications once a new Upload or Conversation is committed.
"""

import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.contrib.auth import get_user_model

from . import notifications
from .models import Conversation, Profile, Upload

logger = logging.getLogger(__name__)
User = get_user_model()


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    """Create a Profile automatically when a new User is created."""
    if created:
        Profile.objects.get_or_create(user=instance, defaults={'display_name': instance.username})


def _fire_and_forget(trigger, instance):
    try:
        trigger(instance)
    except Exception:
        # A push problem must never fail the write that caused it
        logger.exception('PUSH_TRIGGER_FAILED trigger=%s pk=%s', trigger.__name__, instance.pk)


@receiver(post_save, sender=Upload)
def notify_partner_on_new_upload(sender, instance, created, **kwargs):
    """Only the first upload of the day notifies; edits and re-submits don't."""
    if created:
        transaction.on_commit(lambda: _fire_and_forget(notifications.notify_partner_on_upload, instance))


@receiver(post_save, sender=Conversation)
def notify_invited_member(sender, instance, created, **kwargs):
    if created:
        transaction.on_commit(lambda: _fire_and_forget(notifications.notify_chat_invite, instance))
