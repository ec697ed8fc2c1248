"""
Volunteer Hub - Test Configuration and Fixtures
"""
import itertools
import os

# Set testing environment (before main/config get imported)
os.environ['VOLUNTEER_HUB_STORAGE'] = 'memory'
os.environ['SEED_DEMO_DATA'] = '0'
os.environ['AUTO_VERIFY_USERS'] = '1'
os.environ['SESSION_SECRET'] = 'test-session-secret'

import pytest
from fastapi.testclient import TestClient

from main import app
from security import hash_password
from storage import MemoryStorage, get_storage

PASSWORD = 'secret123'


@pytest.fixture
def storage():
    """Fresh in-memory storage for every test"""
    store = MemoryStorage()
    app.dependency_overrides[get_storage] = lambda: store
    yield store
    app.dependency_overrides.clear()


@pytest.fixture
def client(storage):
    """Anonymous client (no session cookie)"""
    return TestClient(app)


@pytest.fixture
def make_user(storage):
    """Create a user straight in storage, password is always PASSWORD"""
    counter = itertools.count(1)

    def _make(role='volunteer', **extra):
        n = next(counter)
        data = {
            'username': f'{role}{n}',
            'email': f'{role}{n}@hubmail.org',
            'password': hash_password(PASSWORD),
            'role': role,
            'is_verified': True,
        }
        data.update(extra)
        return storage.create_user(data)

    return _make


@pytest.fixture
def login_as(make_user):
    """Logged in client for a new (or given) user, returns (client, user)"""
    def _login(role='volunteer', user=None):
        user = user or make_user(role)
        logged_in = TestClient(app)
        response = logged_in.post('/api/login', json={'email': user['email'], 'password': PASSWORD})
        assert response.status_code == 200, response.text
        return logged_in, user

    return _login


@pytest.fixture
def make_project(storage):
    """Approved, published project owned by the given coordinator"""
    def _make(coordinator, **extra):
        data = {
            'name': 'Winter shelter',
            'description': 'Warm beds and hot meals for people without a home.',
            'target_amount': 1000.0,
            'coordinator_id': coordinator['id'],
            'bank_details': 'UA00 0000 0000',
            'moderation_status': 'approved',
            'is_published': True,
        }
        data.update(extra)
        return storage.create_project(data)

    return _make


@pytest.fixture
def volunteer_on_project(storage, make_user):
    """A volunteer with an approved application to the project"""
    def _make(project, volunteer=None):
        volunteer = volunteer or make_user('volunteer')
        storage.create_application({
            'project_id': project['id'],
            'volunteer_id': volunteer['id'],
            'status': 'approved',
        })
        return volunteer

    return _make


@pytest.fixture
def register_data():
    return {
        'username': 'newvolunteer',
        'email': 'New.Volunteer@HubMail.org',
        'password': 'secret123',
        'confirm_password': 'secret123',
        'role': 'volunteer',
    }
