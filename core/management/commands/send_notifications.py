"""
Management command to run the scheduled push jobs.

Hook these up to cron (see NOTIFICATION_SCHEDULES in settings):
    python manage.py send_notifications midnight_memory
    python manage.py send_notifications hourly_reminder
    python manage.py send_notifications daily_reminder
    python manage.py send_notifications daily_reminder --loop   # self-scheduling
    python manage.py send_notifications test --user alice
"""

import time

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from core import notifications
from core.notifications import NotificationType

User = get_user_model()


class Command(BaseCommand):
    help = 'Sends one of the scheduled push notifications'

    def add_arguments(self, parser):
        parser.add_argument(
            'job',
            choices=sorted(notifications.SCHEDULED_JOBS) + [NotificationType.TEST],
        )
        parser.add_argument('--user', help='Username to send the test notification to')
        parser.add_argument(
            '--loop',
            action='store_true',
            help='Keep running and send daily_reminder every day at DAILY_REMINDER_HOUR',
        )

    def handle(self, *args, **options):
        job = options['job']

        if job == NotificationType.TEST:
            self.send_test(options['user'])
            return

        if options['loop']:
            if job != NotificationType.DAILY_REMINDER:
                raise CommandError('--loop only works with daily_reminder')
            self.run_forever()
            return

        self.report(job, notifications.SCHEDULED_JOBS[job]())

    def send_test(self, username):
        if not username:
            raise CommandError('--user is required for the test notification')
        user = User.objects.filter(username__iexact=username).first()
        if user is None:
            raise CommandError(f'No user named {username!r}')
        result = notifications.send_test_notification(user)
        if result is None:
            self.stdout.write(self.style.WARNING(f'{user.username} has no notification token'))
        elif result.success:
            self.stdout.write(self.style.SUCCESS(f'Sent ({result.message_id})'))
        else:
            self.stdout.write(self.style.ERROR(f'Failed: {result.error}'))

    def run_forever(self):
        while True:
            now = notifications.scheduler_now()
            fire_at = notifications.next_fire_time(now)
            self.stdout.write(f'Next daily reminder at {fire_at.isoformat()}')
            time.sleep(max((fire_at - now).total_seconds(), 0))
            self.report(NotificationType.DAILY_REMINDER, notifications.send_daily_reminder())

    def report(self, job, result):
        if result is None:
            self.stdout.write(self.style.WARNING(f'{job}: skipped'))
            return
        self.stdout.write(self.style.SUCCESS(
            f'{job}: sent {result.success_count}, failed {result.failure_count}'
        ))
