"""
DailySnap - Core URL Configuration (mounted under /api/)
"""

from django.urls import path
from . import views

urlpatterns = [
    # Auth
    path('auth/login/', views.login_view, name='login'),
    path('auth/logout/', views.logout_view, name='logout'),
    path('auth/register/', views.register_view, name='register'),
    path('auth/username-available/', views.username_available, name='username_available'),

    # Daily photo (two-party mode)
    path('today/', views.today_view, name='today'),
    path('today/status/', views.today_status, name='today_status'),
    path('memories/', views.memories_view, name='memories'),
    path('uploads/', views.submit_upload, name='submit_upload'),
    path('uploads/today/edit/', views.edit_upload, name='edit_upload'),
    path('uploads/today/delete/', views.delete_upload, name='delete_upload'),

    # Conversations
    path('conversations/', views.conversations, name='conversations'),
    path('conversations/<str:conversation_id>/', views.conversation_day, name='conversation_day'),
    path('conversations/<str:conversation_id>/uploads/', views.conversation_submit_upload,
         name='conversation_submit_upload'),
    path('conversations/<str:conversation_id>/uploads/edit/', views.conversation_edit_upload,
         name='conversation_edit_upload'),
    path('conversations/<str:conversation_id>/uploads/delete/', views.conversation_delete_upload,
         name='conversation_delete_upload'),
    path('users/search/', views.search_users, name='search_users'),

    # Notifications
    path('notifications/token/', views.register_token, name='register_token'),
    path('notifications/test/', views.test_notification, name='test_notification'),

    # Profile & account
    path('profile/', views.profile_view, name='profile'),
    path('profile/delete/', views.delete_account, name='delete_account'),
]
