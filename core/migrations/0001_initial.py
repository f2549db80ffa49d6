from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import cloudinary.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Conversation',
            fields=[
                ('id', models.CharField(editable=False, max_length=64, primary_key=True, serialize=False)),
                ('memories_enabled', models.BooleanField(default=False, help_text='Show daily themes/memories in this conversation')),
                ('last_message', models.CharField(blank=True, default='', max_length=200)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True)),
                ('created_by', models.ForeignKey(help_text='Who started the conversation (the other member is the invitee)', on_delete=django.db.models.deletion.CASCADE, related_name='conversations_started', to=settings.AUTH_USER_MODEL)),
                ('user1', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='conversations_as_user1', to=settings.AUTH_USER_MODEL)),
                ('user2', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='conversations_as_user2', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Conversation',
                'verbose_name_plural': 'Conversations',
                'ordering': ['-updated_at'],
            },
        ),
        migrations.CreateModel(
            name='OrphanedBlob',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('public_id', models.CharField(max_length=255, unique=True)),
                ('reason', models.CharField(max_length=50)),
                ('attempts', models.PositiveIntegerField(default=0)),
                ('last_error', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='NotificationToken',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='notification_token', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('token', models.CharField(max_length=512)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Notification token',
                'verbose_name_plural': 'Notification tokens',
            },
        ),
        migrations.CreateModel(
            name='Profile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('display_name', models.CharField(blank=True, help_text='Name shown to your partner (defaults to username)', max_length=50)),
                ('profile_picture', cloudinary.models.CloudinaryField(blank=True, help_text='Profile photo', max_length=255, null=True, verbose_name='profile_picture')),
                ('timezone', models.CharField(blank=True, default='', help_text="Decides which day counts as 'today' (blank = server timezone)", max_length=50)),
                ('notify_partner_upload', models.BooleanField(default=True, help_text='Get notified when your partner uploads a photo')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='profile', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='DailyPost',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('bucket_id', models.CharField(db_index=True, help_text='Day this post belongs to (YYYY-MM-DD)', max_length=10)),
                ('theme_text', models.TextField(blank=True, default='', help_text='The prompt shown for the day')),
                ('memory_image_url', models.URLField(blank=True, default='', help_text='Memory photo revealed at midnight', max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('conversation', models.ForeignKey(blank=True, help_text='Leave blank for the global post', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='daily_posts', to='core.conversation')),
            ],
            options={
                'verbose_name': 'Daily post',
                'verbose_name_plural': 'Daily posts',
                'ordering': ['bucket_id'],
                'constraints': [
                    models.UniqueConstraint(fields=('conversation', 'bucket_id'), name='unique_conversation_daily_post'),
                    models.UniqueConstraint(condition=models.Q(('conversation__isnull', True)), fields=('bucket_id',), name='unique_global_daily_post'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Upload',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('bucket_id', models.CharField(db_index=True, max_length=10)),
                ('image_public_id', models.CharField(blank=True, default='', help_text='Blob id in the photo store', max_length=255)),
                ('image_url', models.URLField(blank=True, default='', max_length=500)),
                ('caption', models.CharField(blank=True, default='', max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('conversation', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='uploads', to='core.conversation')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='uploads', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Upload',
                'verbose_name_plural': 'Uploads',
                'ordering': ['bucket_id', 'created_at'],
                'indexes': [models.Index(fields=['conversation', 'bucket_id'], name='upload_conversation_day_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('conversation', 'bucket_id', 'user'), name='unique_conversation_day_user_upload'),
                    models.UniqueConstraint(condition=models.Q(('conversation__isnull', True)), fields=('bucket_id', 'user'), name='unique_global_day_user_upload'),
                ],
            },
        ),
    ]
