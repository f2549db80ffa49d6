"""
Management command to seed the database with daily themes.

Usage:
    python manage.py seed_daily_posts
    python manage.py seed_daily_posts --clear  # Clear existing global posts first
    python manage.py seed_daily_posts --days 7 --start 2025-06-01
"""

from datetime import timedelta
from django.core.management.base import BaseCommand, CommandError

from core.buckets import bucket_id_for, parse_bucket_id, today_bucket_id
from core.exceptions import ValidationFailure
from core.models import DailyPost

THEMES = [
    'Something that made you smile today',
    'Your view right now',
    'What you are eating',
    'Something blue',
    'Your favourite corner of home',
    'A tiny detail nobody notices',
    'The sky',
    'Something that reminds you of me',
    'Your shoes today',
    'Something old',
    'A reflection',
    'Your workspace',
    'Something you are grateful for',
    'A shadow',
]


class Command(BaseCommand):
    help = 'Seeds the global daily themes starting from today'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear all existing global posts before seeding',
        )
        parser.add_argument('--days', type=int, default=len(THEMES), help='How many days to seed')
        parser.add_argument('--start', help='First day (YYYY-MM-DD), defaults to today')

    def handle(self, *args, **options):
        if options['clear']:
            deleted_count = DailyPost.objects.filter(conversation__isnull=True).delete()[0]
            self.stdout.write(self.style.WARNING(f'Deleted {deleted_count} existing posts'))

        try:
            start = parse_bucket_id(options['start'] or today_bucket_id())
        except ValidationFailure as exc:
            raise CommandError(exc.message)

        created_count = 0
        for i in range(options['days']):
            post, created = DailyPost.objects.get_or_create(
                conversation=None,
                bucket_id=bucket_id_for(start + timedelta(days=i)),
                defaults={'theme_text': THEMES[i % len(THEMES)]},
            )
            if created:
                created_count += 1

        total = DailyPost.objects.filter(conversation__isnull=True).count()
        self.stdout.write(self.style.SUCCESS(
            f'Successfully seeded {created_count} new posts (total: {total})'
        ))
