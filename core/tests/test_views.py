from unittest import mock

import pytest
from django.contrib.auth import get_user_model
from django.db import OperationalError

from core import push, services
from core.buckets import today_bucket_id
from core.models import Conversation, DailyPost, NotificationToken, Upload

from .conftest import PASSWORD, make_photo

User = get_user_model()

pytestmark = pytest.mark.django_db


@pytest.fixture
def alice_client(client, alice):
    client.force_login(alice)
    return client


def test_api_requires_a_session(client):
    response = client.get('/api/today/')
    assert response.status_code == 401
    assert response.json()['code'] == 'unauthenticated'


def test_login_and_logout(client, alice):
    response = client.post('/api/auth/login/', {'email': 'ALICE@example.com', 'password': PASSWORD})
    assert response.status_code == 200
    assert response.json()['user']['username'] == 'alice'
    assert client.get('/api/today/').status_code == 200

    client.post('/api/auth/logout/')
    assert client.get('/api/today/').status_code == 401


def test_login_failure_uses_the_fixed_message(client, alice):
    response = client.post('/api/auth/login/', {'email': 'alice@example.com', 'password': 'nope'})
    assert response.status_code == 401
    assert response.json() == {
        'success': False,
        'error': 'Incorrect email or password.',
        'code': 'wrong-password',
    }


def test_login_blocked_by_allow_list(client, settings, alice):
    settings.ACCESS_ALLOWED_EMAILS = ['bob@example.com']
    response = client.post('/api/auth/login/', {'email': 'alice@example.com', 'password': PASSWORD})
    assert response.status_code == 403
    assert response.json()['code'] == 'access-denied'


def test_register_signs_in(client, open_registration):
    response = client.post('/api/auth/register/', {
        'email': 'new@example.com',
        'username': 'new_user',
        'password': 'secret1',
        'password_confirm': 'secret1',
    })
    assert response.status_code == 201
    assert User.objects.filter(username='new_user').exists()
    assert client.get('/api/conversations/').status_code == 200


def test_register_unlisted_email_is_refused(client, settings):
    settings.ACCESS_ALLOWED_EMAILS = ['alice@example.com']
    response = client.post('/api/auth/register/', {
        'email': 'mallory@example.com',
        'username': 'mallory',
        'password': 'secret1',
        'password_confirm': 'secret1',
    })
    assert response.status_code == 403
    assert response.json()['code'] == 'access-denied'
    assert not User.objects.filter(username='mallory').exists()
    assert client.get('/api/conversations/').status_code == 401


def test_today_without_two_party_mode(alice_client, settings):
    settings.ACCESS_GATE_ENABLED = False
    response = alice_client.get('/api/today/')
    assert response.status_code == 409
    assert response.json()['code'] == 'no-partner'
    assert alice_client.post('/api/uploads/', {'image': make_photo()}).status_code == 409
    assert alice_client.get('/api/conversations/').status_code == 200


def test_username_available(client, alice):
    assert client.get('/api/auth/username-available/', {'username': 'ALICE'}).json()['available'] is False
    assert client.get('/api/auth/username-available/', {'username': 'fresh_name'}).json()['available'] is True
    assert client.get('/api/auth/username-available/', {'username': 'ab'}).status_code == 400


def test_partner_photo_is_redacted_until_i_upload(client, alice, bob):
    client.force_login(alice)
    response = client.post('/api/uploads/', {'image': make_photo(), 'caption': 'sunset'})
    assert response.status_code == 201

    client.force_login(bob)
    data = client.get('/api/today/').json()
    assert data['state'] == 'unanswered'
    assert data['can_view_partner'] is False
    assert data['partner_upload']['locked'] is True
    assert 'image_url' not in data['partner_upload']
    assert 'caption' not in data['partner_upload']

    client.post('/api/uploads/', {'image': make_photo()})
    data = client.get('/api/today/').json()
    assert data['state'] == 'unlocked'
    assert data['partner_upload']['caption'] == 'sunset'
    assert data['partner_upload']['image_url'].startswith('https://')


def test_status_poll(alice_client, bob):
    services.submit_upload(bob, today_bucket_id(), make_photo())
    data = alice_client.get('/api/today/status/').json()
    assert data['partner_uploaded'] is True
    assert data['can_view_partner'] is False


def test_upload_rejects_non_images(alice_client):
    bad = make_photo('notes.txt')
    bad.content_type = 'text/plain'
    response = alice_client.post('/api/uploads/', {'image': bad})
    assert response.status_code == 400
    assert 'image' in response.json()['fields']
    assert not Upload.objects.exists()


def test_edit_and_delete_today(alice_client, alice):
    alice_client.post('/api/uploads/', {'image': make_photo(), 'caption': 'one'})

    response = alice_client.post('/api/uploads/today/edit/', {'caption': 'two'})
    assert response.json()['upload']['caption'] == 'two'

    response = alice_client.post('/api/uploads/today/delete/')
    assert response.json() == {'success': True, 'deleted': True}
    assert not Upload.objects.filter(user=alice).exists()

    response = alice_client.post('/api/uploads/today/edit/', {'caption': 'three'})
    assert response.status_code == 404


def test_fetch_failures_offer_retry_and_reauthenticate(alice_client):
    with mock.patch.object(services, '_query_day_uploads', side_effect=OperationalError('down')):
        response = alice_client.get('/api/today/')
    assert response.status_code == 503
    assert response.json()['actions'] == ['retry', 'reauthenticate']


def test_memories(alice_client):
    DailyPost.objects.create(bucket_id='2000-01-01', theme_text='Long ago')
    data = alice_client.get('/api/memories/').json()
    assert [m['theme_text'] for m in data['memories']] == ['Long ago']


def test_conversation_flow(alice_client, alice, bob):
    response = alice_client.post('/api/conversations/', {'username': 'BOB'})
    assert response.status_code == 201
    conversation_id = response.json()['conversation']['id']

    response = alice_client.post('/api/conversations/', {'username': 'bob'})
    assert response.status_code == 200
    assert response.json()['created'] is False

    response = alice_client.post(f'/api/conversations/{conversation_id}/uploads/', {'image': make_photo()})
    assert response.status_code == 201

    data = alice_client.get('/api/conversations/').json()
    assert data['conversations'][0]['other_user']['username'] == 'bob'
    assert data['conversations'][0]['last_message'] == services.NEW_PHOTO_MESSAGE

    data = alice_client.get(f'/api/conversations/{conversation_id}/').json()
    assert data['state'] == 'waiting'
    assert data['my_upload']['conversation_id'] == conversation_id


def test_conversation_with_unknown_user(alice_client):
    response = alice_client.post('/api/conversations/', {'username': 'ghost'})
    assert response.status_code == 404


def test_outsiders_get_403(client, make_user, conversation):
    client.force_login(make_user('carol'))
    response = client.get(f'/api/conversations/{conversation.pk}/')
    assert response.status_code == 403
    assert response.json()['code'] == 'permission-denied'


def test_search_users(alice_client, bob):
    data = alice_client.get('/api/users/search/', {'q': 'b'}).json()
    assert [u['username'] for u in data['users']] == ['bob']


def test_register_token_and_send_test(alice_client, alice):
    alice_client.post('/api/notifications/token/', {'token': 'tok-fresh'})
    assert NotificationToken.objects.get(user=alice).token == 'tok-fresh'

    response = alice_client.post('/api/notifications/test/')
    assert response.json()['success'] is True
    assert push.outbox[0].token == 'tok-fresh'


def test_profile_update(alice_client, alice):
    response = alice_client.post('/api/profile/', {'display_name': 'Ali', 'timezone': 'Europe/Paris'})
    assert response.status_code == 200

    alice.profile.refresh_from_db()
    assert alice.profile.display_name == 'Ali'
    assert alice.profile.timezone == 'Europe/Paris'
    assert alice.profile.notify_partner_upload is True


def test_profile_rejects_unknown_timezone(alice_client):
    response = alice_client.post('/api/profile/', {'timezone': 'Mars/Olympus'})
    assert response.status_code == 400


def test_delete_account(alice_client, alice):
    response = alice_client.post('/api/profile/delete/', {'password': 'wrong'})
    assert response.status_code == 401

    response = alice_client.post('/api/profile/delete/', {'password': PASSWORD})
    assert response.status_code == 200
    assert not User.objects.filter(pk=alice.pk).exists()
    assert not Conversation.objects.exists()
