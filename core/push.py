"""
DailySnap - Push Backends

``settings.PUSH_BACKEND`` names the class used to deliver push messages:

- ``core.push.FirebasePushBackend``: Firebase Cloud Messaging
- ``core.push.LocmemPushBackend``: keeps messages in ``push.outbox`` (tests, dev)
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import firebase_admin
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

# Messages "sent" through LocmemPushBackend
outbox = []


class PushError(Exception):
    pass


@dataclass
class PushMessage:
    token: str
    title: str
    body: str
    data: dict = field(default_factory=dict)

    @property
    def type(self):
        return self.data.get('type')

    def as_firebase(self):
        return messaging.Message(
            notification=messaging.Notification(title=self.title, body=self.body),
            # FCM only accepts string values in the data map
            data={key: str(value) for key, value in self.data.items()},
            token=self.token,
            webpush=messaging.WebpushConfig(
                notification=messaging.WebpushNotification(
                    icon=settings.PUSH_ICON,
                    badge=settings.PUSH_ICON,
                    vibrate=[200, 100, 200],
                ),
            ),
        )


@dataclass
class SendResult:
    token: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class FanOutResult:
    results: list = field(default_factory=list)

    @property
    def success_count(self):
        return sum(1 for result in self.results if result.success)

    @property
    def failure_count(self):
        return sum(1 for result in self.results if not result.success)

    @property
    def attempted(self):
        return len(self.results)


class BasePushBackend:
    def send(self, message):
        """Deliver one message and return its id. Raises PushError."""
        raise NotImplementedError

    def send_each(self, messages):
        """Deliver every message; one failure never stops the rest."""
        result = FanOutResult()
        for message in messages:
            try:
                message_id = self.send(message)
            except PushError as exc:
                result.results.append(SendResult(message.token, False, error=str(exc)))
            else:
                result.results.append(SendResult(message.token, True, message_id=message_id))
        return result


def get_firebase_app():
    try:
        return firebase_admin.get_app()
    except ValueError:
        if settings.FIREBASE_CREDENTIALS:
            cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS)
        else:
            cred = credentials.ApplicationDefault()
        return firebase_admin.initialize_app(cred)


class FirebasePushBackend(BasePushBackend):
    def __init__(self, app=None):
        self.app = app or get_firebase_app()

    def send(self, message):
        try:
            return messaging.send(message.as_firebase(), app=self.app)
        except (firebase_exceptions.FirebaseError, ValueError) as exc:
            raise PushError(str(exc)) from exc

    def send_each(self, messages):
        result = FanOutResult()
        if not messages:
            return result
        try:
            batch = messaging.send_each([m.as_firebase() for m in messages], app=self.app)
        except (firebase_exceptions.FirebaseError, ValueError) as exc:
            logger.error('PUSH_BATCH_FAILED count=%s error=%s', len(messages), exc)
            result.results = [SendResult(m.token, False, error=str(exc)) for m in messages]
            return result
        for message, response in zip(messages, batch.responses):
            if response.success:
                result.results.append(SendResult(message.token, True, message_id=response.message_id))
            else:
                result.results.append(SendResult(message.token, False, error=str(response.exception)))
        return result


class LocmemPushBackend(BasePushBackend):
    """Appends to ``outbox``; tokens in ``failing_tokens`` are rejected."""
    failing_tokens = set()

    def send(self, message):
        if message.token in self.failing_tokens:
            raise PushError('Requested entity was not found.')
        outbox.append(message)
        return f'locmem-{len(outbox)}'


def get_push_backend(path=None):
    return import_string(path or settings.PUSH_BACKEND)()
