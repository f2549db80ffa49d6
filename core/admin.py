"""
DailySnap - Admin Configuration

Daily posts (themes and memory photos) are written here; the app only
reads them. Uploads and orphaned blobs are visible for support.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth import get_user_model
from .models import Conversation, DailyPost, NotificationToken, OrphanedBlob, Profile, Upload

User = get_user_model()


# Inline Profile in User admin
class ProfileInline(admin.StackedInline):
    model = Profile
    can_delete = False
    verbose_name_plural = 'Profile'
    fk_name = 'user'


class UserAdmin(BaseUserAdmin):
    inlines = [ProfileInline]
    list_display = ['username', 'email', 'get_display_name', 'has_push_token', 'is_staff']

    def get_display_name(self, obj):
        if hasattr(obj, 'profile'):
            return obj.profile.name
        return obj.username
    get_display_name.short_description = 'Display Name'

    def has_push_token(self, obj):
        return hasattr(obj, 'notification_token')
    has_push_token.boolean = True
    has_push_token.short_description = 'Push'


# Re-register User with our custom admin
admin.site.unregister(User)
admin.site.register(User, UserAdmin)


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'created_by', 'memories_enabled', 'last_message', 'updated_at']
    list_filter = ['memories_enabled', 'created_at']
    search_fields = ['id', 'user1__username', 'user2__username']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(DailyPost)
class DailyPostAdmin(admin.ModelAdmin):
    list_display = ['bucket_id', 'conversation', 'text_short', 'has_memory_image']
    list_filter = ['conversation']
    search_fields = ['bucket_id', 'theme_text']
    ordering = ['-bucket_id']

    def text_short(self, obj):
        return obj.theme_text[:60] + '...' if len(obj.theme_text) > 60 else obj.theme_text
    text_short.short_description = 'Theme'

    def has_memory_image(self, obj):
        return obj.has_memory_image
    has_memory_image.boolean = True
    has_memory_image.short_description = 'Memory photo'


@admin.register(Upload)
class UploadAdmin(admin.ModelAdmin):
    list_display = ['user', 'bucket_id', 'conversation', 'caption_short', 'created_at']
    list_filter = ['bucket_id', 'created_at']
    search_fields = ['user__username', 'caption', 'bucket_id']
    readonly_fields = ['image_public_id', 'created_at', 'updated_at']
    ordering = ['-bucket_id', '-created_at']

    def caption_short(self, obj):
        return obj.caption[:40] + '...' if len(obj.caption) > 40 else obj.caption
    caption_short.short_description = 'Caption'


@admin.register(NotificationToken)
class NotificationTokenAdmin(admin.ModelAdmin):
    list_display = ['user', 'updated_at']
    search_fields = ['user__username']


@admin.register(OrphanedBlob)
class OrphanedBlobAdmin(admin.ModelAdmin):
    list_display = ['public_id', 'reason', 'attempts', 'updated_at']
    list_filter = ['reason']
    search_fields = ['public_id']
    readonly_fields = ['created_at', 'updated_at']
