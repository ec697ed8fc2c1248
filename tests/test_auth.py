from fastapi.testclient import TestClient

from conftest import PASSWORD
from main import app


class TestRegister:

    def test_register_logs_in_and_hides_password(self, client, register_data):
        response = client.post('/api/register', json=register_data)

        assert response.status_code == 201
        data = response.json()
        assert data['email'] == 'new.volunteer@hubmail.org'
        assert data['role'] == 'volunteer'
        assert data['is_verified'] is True
        assert 'password' not in data
        assert 'verification_token' not in data

        me = client.get('/api/user')
        assert me.status_code == 200
        assert me.json()['username'] == 'newvolunteer'

    def test_duplicate_email_is_case_insensitive(self, client, register_data):
        client.post('/api/register', json=register_data)
        again = dict(register_data, username='someoneelse', email='new.volunteer@hubmail.org')

        response = client.post('/api/register', json=again)

        assert response.status_code == 400
        assert 'already exists' in response.json()['detail']

    def test_duplicate_username(self, client, register_data):
        client.post('/api/register', json=register_data)
        again = dict(register_data, email='other@hubmail.org')

        response = client.post('/api/register', json=again)

        assert response.status_code == 400

    def test_password_mismatch(self, client, register_data):
        register_data['confirm_password'] = 'different1'
        assert client.post('/api/register', json=register_data).status_code == 422

    def test_admin_role_not_self_service(self, client, register_data):
        register_data['role'] = 'admin'
        assert client.post('/api/register', json=register_data).status_code == 422

    def test_bad_phone_number(self, client, register_data):
        register_data['phone_number'] = '12-34'
        assert client.post('/api/register', json=register_data).status_code == 422

    def test_phone_number_is_normalized(self, client, register_data):
        register_data['phone_number'] = '+38 (050) 123-45-67'
        response = client.post('/api/register', json=register_data)

        assert response.status_code == 201
        assert response.json()['phone_number'] == '+380501234567'


class TestLogin:

    def test_login_and_logout(self, client, make_user):
        user = make_user('donor')

        response = client.post('/api/login', json={'email': user['email'], 'password': PASSWORD})
        assert response.status_code == 200
        assert response.json()['id'] == user['id']

        assert client.post('/api/logout').status_code == 200
        assert client.get('/api/user').status_code == 401

    def test_wrong_password(self, client, make_user):
        user = make_user()
        response = client.post('/api/login', json={'email': user['email'], 'password': 'nope-nope'})
        assert response.status_code == 401

    def test_unknown_email(self, client):
        response = client.post('/api/login', json={'email': 'ghost@hubmail.org', 'password': PASSWORD})
        assert response.status_code == 401

    def test_blocked_user_cannot_login(self, client, make_user):
        user = make_user(is_blocked=True)
        response = client.post('/api/login', json={'email': user['email'], 'password': PASSWORD})
        assert response.status_code == 403

    def test_blocking_kicks_in_immediately(self, login_as, storage):
        volunteer_client, volunteer = login_as('volunteer')
        storage.block_user(volunteer['id'])

        assert volunteer_client.get('/api/user').status_code == 403

    def test_not_logged_in(self, client):
        assert client.get('/api/user').status_code == 401


class TestVerifyEmail:

    def test_verify_with_token(self, client, make_user, storage):
        user = make_user(is_verified=False, verification_token='tok-123')

        response = client.post('/api/verify-email', json={'token': 'tok-123'})

        assert response.status_code == 200
        refreshed = storage.get_user(user['id'])
        assert refreshed['is_verified'] is True
        assert refreshed['verification_token'] is None

    def test_missing_token(self, client):
        assert client.post('/api/verify-email', json={}).status_code == 400

    def test_bad_token(self, client):
        assert client.post('/api/verify-email', json={'token': 'nope'}).status_code == 400


class TestProfile:

    def test_update_profile(self, login_as):
        volunteer_client, _ = login_as('volunteer')

        response = volunteer_client.patch('/api/user/profile', json={'city': 'Lviv', 'bio': 'Likes trees'})

        assert response.status_code == 200
        assert response.json()['city'] == 'Lviv'
        assert response.json()['bio'] == 'Likes trees'

    def test_future_birth_date_rejected(self, login_as):
        volunteer_client, _ = login_as('volunteer')
        response = volunteer_client.patch('/api/user/profile', json={'birth_date': '2999-01-01'})
        assert response.status_code == 422

    def test_taken_username(self, login_as, make_user):
        other = make_user('donor')
        volunteer_client, _ = login_as('volunteer')

        response = volunteer_client.patch('/api/user/profile', json={'username': other['username']})

        assert response.status_code == 400

    def test_taken_email_any_case(self, login_as, make_user, storage):
        other = make_user('donor')
        volunteer_client, volunteer = login_as('volunteer')

        response = volunteer_client.patch('/api/user/profile', json={'email': other['email'].upper()})

        assert response.status_code == 400
        assert storage.get_user(volunteer['id'])['email'] == volunteer['email']

    def test_own_email_in_new_case(self, login_as):
        volunteer_client, volunteer = login_as('volunteer')

        response = volunteer_client.patch('/api/user/profile', json={'email': volunteer['email'].upper()})

        assert response.status_code == 200
        assert response.json()['email'] == volunteer['email']

    def test_phone_normalized(self, login_as):
        volunteer_client, _ = login_as('volunteer')

        response = volunteer_client.patch('/api/user/profile', json={'phone_number': '+38 (050) 123-45-67'})

        assert response.status_code == 200
        assert response.json()['phone_number'] == '+380501234567'

    def test_bad_phone_rejected(self, login_as):
        volunteer_client, _ = login_as('volunteer')
        response = volunteer_client.patch('/api/user/profile', json={'phone_number': '12-34'})
        assert response.status_code == 422

    def test_change_password(self, login_as):
        volunteer_client, volunteer = login_as('volunteer')

        response = volunteer_client.post('/api/user/change-password', json={
            'current_password': PASSWORD,
            'new_password': 'brand-new-pw',
            'confirm_password': 'brand-new-pw',
        })
        assert response.status_code == 200

        fresh = TestClient(app)
        assert fresh.post('/api/login', json={'email': volunteer['email'], 'password': PASSWORD}).status_code == 401
        assert fresh.post('/api/login', json={'email': volunteer['email'], 'password': 'brand-new-pw'}).status_code == 200

    def test_change_password_wrong_current(self, login_as):
        volunteer_client, _ = login_as('volunteer')

        response = volunteer_client.post('/api/user/change-password', json={
            'current_password': 'wrong-one',
            'new_password': 'brand-new-pw',
            'confirm_password': 'brand-new-pw',
        })

        assert response.status_code == 400
