"""
DailySnap - Views
=================

JSON API over the services. The daily screen has three states:
1. Unanswered - I haven't uploaded today
2. Waiting - I uploaded, partner hasn't (or partner's photo is locked)
3. Unlocked - I uploaded, so the partner's photo is revealed

Errors come back as {"success": false, "error": ..., "code": ...}.
"""

from functools import wraps

from django.contrib.auth import get_user_model
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods

from . import notifications, services
from .auth import deauthenticate, sign_in
from .buckets import today_bucket_id
from .exceptions import DailySnapError, Connectivity, PermissionDenied
from .forms import (
    DeleteAccountForm,
    EditUploadForm,
    LoginForm,
    NotificationTokenForm,
    ProfileForm,
    RegistrationForm,
    StartConversationForm,
    UploadForm,
)
from .models import Conversation

User = get_user_model()


# =============================================================================
# HELPERS
# =============================================================================

def error_response(exc):
    payload = {'success': False, 'error': exc.message, 'code': exc.code}
    if isinstance(exc, (PermissionDenied, Connectivity)):
        # The user can't tell these apart: offer both ways out
        payload['actions'] = ['retry', 'reauthenticate']
    return JsonResponse(payload, status=exc.status)


def form_error_response(form):
    return JsonResponse(
        {'success': False, 'error': 'Please fix the highlighted fields.', 'code': 'invalid', 'fields': form.errors},
        status=400,
    )


def api_view(view):
    """Require a signed-in user and turn service errors into JSON."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({'success': False, 'error': 'Please sign in.', 'code': 'unauthenticated'}, status=401)
        try:
            return view(request, *args, **kwargs)
        except DailySnapError as exc:
            return error_response(exc)
    return wrapper


def serialize_user(user, profile=None):
    if user is None:
        return None
    profile = profile or getattr(user, 'profile', None)
    picture = getattr(profile, 'profile_picture', None)
    return {
        'id': user.pk,
        'username': user.username,
        'display_name': profile.name if profile else user.username,
        'profile_picture': getattr(picture, 'url', None) if picture else None,
    }


def serialize_upload(upload, reveal=True):
    if upload is None:
        return None
    data = {
        'id': upload.doc_id,
        'user_id': upload.user_id,
        'date_id': upload.bucket_id,
        'conversation_id': upload.conversation_id,
        'locked': not reveal,
    }
    if reveal:
        data.update({
            'image_url': upload.image_url,
            'caption': upload.caption,
            'created_at': upload.created_at.isoformat(),
            'updated_at': upload.updated_at.isoformat(),
        })
    return data


def serialize_post(post):
    if post is None:
        return None
    return {
        'date_id': post.bucket_id,
        'theme_text': post.display_text,
        'memory_image_url': post.memory_image_url or None,
    }


def serialize_day(view):
    if view.my_upload is None:
        state = 'unanswered'
    elif view.partner_upload is None:
        state = 'waiting'
    else:
        state = 'unlocked'
    return {
        'success': True,
        'date_id': view.bucket_id,
        'state': state,
        'theme': serialize_post(view.theme),
        'memories': [serialize_post(post) for post in view.memories],
        'my_upload': serialize_upload(view.my_upload),
        'partner_upload': serialize_upload(view.partner_upload, reveal=view.can_view_partner),
        'can_view_partner': view.can_view_partner,
    }


def serialize_conversation(conversation, partner):
    return {
        'id': conversation.pk,
        'other_user': serialize_user(partner),
        'created_by': conversation.created_by_id,
        'last_message': conversation.last_message,
        'memories_enabled': conversation.memories_enabled,
        'updated_at': conversation.updated_at.isoformat(),
    }


def _conversation_for(request, conversation_id):
    conversation = get_object_or_404(Conversation, pk=conversation_id)
    if not conversation.includes_user(request.user):
        raise PermissionDenied("You don't have access to this conversation.")
    return conversation


# =============================================================================
# AUTHENTICATION
# =============================================================================

@require_http_methods(['POST'])
def login_view(request):
    form = LoginForm(request.POST)
    if not form.is_valid():
        return form_error_response(form)
    try:
        user = sign_in(request, form.cleaned_data['email'], form.cleaned_data['password'])
    except DailySnapError as exc:
        return error_response(exc)
    return JsonResponse({'success': True, 'user': serialize_user(user)})


@require_http_methods(['POST'])
def logout_view(request):
    deauthenticate(request)
    return JsonResponse({'success': True})


@require_http_methods(['POST'])
def register_view(request):
    form = RegistrationForm(request.POST)
    if not form.is_valid():
        return form_error_response(form)
    data = form.cleaned_data
    try:
        user, _ = services.register_user(
            data['email'], data['password'], data['username'], password_confirm=data['password_confirm'],
        )
        user = sign_in(request, data['email'], data['password'])
    except DailySnapError as exc:
        return error_response(exc)
    return JsonResponse({'success': True, 'user': serialize_user(user)}, status=201)


@require_http_methods(['GET'])
def username_available(request):
    username = request.GET.get('username', '')
    try:
        username = services.validate_username(username)
    except DailySnapError as exc:
        return error_response(exc)
    exclude = request.user if request.user.is_authenticated else None
    return JsonResponse({'success': True, 'available': services.is_username_available(username, exclude)})


# =============================================================================
# DAILY PHOTO (two-party mode)
# =============================================================================

@api_view
@require_http_methods(['GET'])
def today_view(request):
    """Today's theme, memories and both uploads."""
    view = services.load_day(request.user)
    return JsonResponse(serialize_day(view))


@api_view
@require_http_methods(['GET'])
def today_status(request):
    """
    Polling endpoint to see whether the partner has uploaded yet.
    Does not count as user activity.
    """
    view = services.load_day(request.user)
    return JsonResponse({
        'success': True,
        'date_id': view.bucket_id,
        'partner_uploaded': view.partner_upload is not None,
        'can_view_partner': view.can_view_partner,
    })


@api_view
@require_http_methods(['GET'])
def memories_view(request):
    today, past = services.load_posts(today=today_bucket_id())
    return JsonResponse({
        'success': True,
        'today': serialize_post(today),
        'memories': [serialize_post(post) for post in past],
    })


def _submit(request, conversation=None):
    form = UploadForm(request.POST, request.FILES)
    if not form.is_valid():
        return form_error_response(form)
    upload = services.submit_upload(
        request.user,
        today_bucket_id(),
        form.cleaned_data['image'],
        form.cleaned_data['caption'],
        conversation=conversation,
    )
    return JsonResponse({'success': True, 'upload': serialize_upload(upload)}, status=201)


def _edit(request, conversation=None):
    form = EditUploadForm(request.POST, request.FILES)
    if not form.is_valid():
        return form_error_response(form)
    upload = services.edit_upload(
        request.user,
        today_bucket_id(),
        new_image=form.cleaned_data.get('image') or None,
        new_caption=form.cleaned_data['caption'] if form.caption_changed else None,
        conversation=conversation,
    )
    return JsonResponse({'success': True, 'upload': serialize_upload(upload)})


def _delete(request, conversation=None):
    deleted = services.delete_upload(request.user, today_bucket_id(), conversation=conversation)
    return JsonResponse({'success': True, 'deleted': deleted})


@api_view
@require_http_methods(['POST'])
def submit_upload(request):
    return _submit(request)


@api_view
@require_http_methods(['POST'])
def edit_upload(request):
    return _edit(request)


@api_view
@require_http_methods(['POST'])
def delete_upload(request):
    return _delete(request)


# =============================================================================
# CONVERSATIONS
# =============================================================================

@api_view
@require_http_methods(['GET', 'POST'])
def conversations(request):
    """GET: my conversations. POST: start one with ``username``."""
    if request.method == 'POST':
        form = StartConversationForm(request.POST)
        if not form.is_valid():
            return form_error_response(form)
        other = User.objects.filter(username__iexact=form.cleaned_data['username'], is_active=True).first()
        if other is None:
            return JsonResponse({'success': False, 'error': 'User not found.', 'code': 'not-found'}, status=404)
        conversation, created = services.start_conversation(request.user, other)
        return JsonResponse(
            {'success': True, 'created': created, 'conversation': serialize_conversation(conversation, other)},
            status=201 if created else 200,
        )

    items = services.conversations_for(request.user)
    return JsonResponse({
        'success': True,
        'conversations': [serialize_conversation(c, partner) for c, partner in items],
    })


@api_view
@require_http_methods(['GET'])
def conversation_day(request, conversation_id):
    conversation = _conversation_for(request, conversation_id)
    view = services.load_day(request.user, conversation=conversation)
    data = serialize_day(view)
    data['conversation'] = serialize_conversation(conversation, conversation.get_partner(request.user))
    return JsonResponse(data)


@api_view
@require_http_methods(['POST'])
def conversation_submit_upload(request, conversation_id):
    return _submit(request, _conversation_for(request, conversation_id))


@api_view
@require_http_methods(['POST'])
def conversation_edit_upload(request, conversation_id):
    return _edit(request, _conversation_for(request, conversation_id))


@api_view
@require_http_methods(['POST'])
def conversation_delete_upload(request, conversation_id):
    return _delete(request, _conversation_for(request, conversation_id))


@api_view
@require_http_methods(['GET'])
def search_users(request):
    users = services.search_users(request.GET.get('q', ''), exclude=request.user)
    return JsonResponse({'success': True, 'users': [serialize_user(u) for u in users]})


# =============================================================================
# NOTIFICATIONS
# =============================================================================

@api_view
@require_http_methods(['POST'])
def register_token(request):
    form = NotificationTokenForm(request.POST)
    if not form.is_valid():
        return form_error_response(form)
    notifications.save_notification_token(request.user, form.cleaned_data['token'])
    return JsonResponse({'success': True})


@api_view
@require_http_methods(['POST'])
def test_notification(request):
    result = notifications.send_test_notification(request.user)
    if result is None:
        return JsonResponse(
            {'success': False, 'error': 'Notifications are not enabled on this device.', 'code': 'no-token'},
            status=404,
        )
    return JsonResponse({'success': result.success, 'message_id': result.message_id})


# =============================================================================
# PROFILE & ACCOUNT
# =============================================================================

@api_view
@require_http_methods(['POST'])
def profile_view(request):
    """Partial profile update: only the posted fields change."""
    profile = request.user.profile
    data = {
        'display_name': request.POST.get('display_name', profile.display_name),
        'timezone': request.POST.get('timezone', profile.timezone),
        'notify_partner_upload': request.POST.get(
            'notify_partner_upload', 'true' if profile.notify_partner_upload else 'false'
        ),
        'username': request.POST.get('username', ''),
    }
    form = ProfileForm(data, request.FILES, instance=profile)
    if not form.is_valid():
        return form_error_response(form)

    fields = {
        'timezone': form.cleaned_data['timezone'],
        'notify_partner_upload': form.cleaned_data['notify_partner_upload'],
    }
    if 'profile_picture' in request.FILES:
        fields['profile_picture'] = form.cleaned_data['profile_picture']
    profile = services.update_profile(
        request.user,
        username=form.cleaned_data['username'] or None,
        display_name=form.cleaned_data['display_name'] if 'display_name' in request.POST else None,
        **fields,
    )
    return JsonResponse({'success': True, 'user': serialize_user(request.user, profile)})


@api_view
@require_http_methods(['POST'])
def delete_account(request):
    form = DeleteAccountForm(request.POST)
    if not form.is_valid():
        return form_error_response(form)
    services.delete_account(request.user, form.cleaned_data['password'])
    deauthenticate(request)
    return JsonResponse({'success': True})
