"""
DailySnap - Forms

Field-level shape checks for the JSON API. Business rules (username
format/uniqueness, one upload per day) live in services.
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django import forms
from .models import Profile

ACCEPTED_IMAGE_TYPES = ('image/jpeg', 'image/png', 'image/webp', 'image/heic', 'image/heif')
MAX_IMAGE_BYTES = 10 * 1024 * 1024


def validate_image_file(image):
    content_type = getattr(image, 'content_type', '') or ''
    if content_type not in ACCEPTED_IMAGE_TYPES:
        raise forms.ValidationError('Only photos can be uploaded.')
    if image.size > MAX_IMAGE_BYTES:
        raise forms.ValidationError('This photo is too large (max 10 MB).')
    return image


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(strip=False)


class RegistrationForm(forms.Form):
    email = forms.EmailField()
    username = forms.CharField(max_length=20)
    password = forms.CharField(strip=False)
    password_confirm = forms.CharField(strip=False)


class UploadForm(forms.Form):
    """Form for submitting the photo of the day."""
    image = forms.FileField()
    caption = forms.CharField(max_length=500, required=False)

    def clean_image(self):
        return validate_image_file(self.cleaned_data['image'])


class EditUploadForm(forms.Form):
    """Both fields optional: send only what changes."""
    image = forms.FileField(required=False)
    caption = forms.CharField(max_length=500, required=False)

    def clean_image(self):
        image = self.cleaned_data.get('image')
        if image:
            validate_image_file(image)
        return image

    @property
    def caption_changed(self):
        return 'caption' in self.data


class StartConversationForm(forms.Form):
    username = forms.CharField(max_length=20)


class NotificationTokenForm(forms.Form):
    token = forms.CharField(max_length=512)


class DeleteAccountForm(forms.Form):
    password = forms.CharField(strip=False)


class ProfileForm(forms.ModelForm):
    """Form for editing user profile settings."""
    username = forms.CharField(max_length=20, required=False)

    class Meta:
        model = Profile
        fields = ['display_name', 'profile_picture', 'timezone', 'notify_partner_upload']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Common timezone choices
        self.fields['timezone'].widget = forms.Select(
            choices=[
                ('', 'Server default'),
                ('UTC', 'UTC'),
                ('Europe/Rome', 'Rome (Italy)'),
                ('Europe/London', 'London (UK)'),
                ('Europe/Paris', 'Paris (Europe)'),
                ('Europe/Berlin', 'Berlin (Europe)'),
                ('America/New_York', 'Eastern Time (US)'),
                ('America/Chicago', 'Central Time (US)'),
                ('America/Los_Angeles', 'Pacific Time (US)'),
                ('Asia/Tokyo', 'Tokyo (Japan)'),
                ('Australia/Sydney', 'Sydney (Australia)'),
            ],
        )

    def clean_timezone(self):
        name = self.cleaned_data.get('timezone', '')
        if name:
            try:
                ZoneInfo(name)
            except (ZoneInfoNotFoundError, ValueError):
                raise forms.ValidationError('Unknown timezone.')
        return name
