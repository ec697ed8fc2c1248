import pytest
from fastapi.testclient import TestClient

from conftest import PASSWORD
from main import app
from ui.api import ApiClient, ApiError
from ui.forms import validate_donation, validate_registration, validate_task
from ui.pages import Notifier, Workflows, load_dashboard, project_page, resolve_route
from ui.session import MockAuth, SessionUser


@pytest.fixture
def api(storage):
    return ApiClient(client=TestClient(app))


@pytest.fixture
def logged_in(api, make_user):
    """Workflows for a freshly logged in user of the given role"""
    def _login(role):
        user = make_user(role)
        flows = Workflows(api, Notifier())
        result = flows.login(user['email'], PASSWORD)
        assert result.ok
        return flows, user

    return _login


class TestApiClient:

    def test_error_carries_status(self, api):
        with pytest.raises(ApiError) as info:
            api.api_request('GET', '/api/user')

        assert info.value.status_code == 401
        assert str(info.value).startswith('401: ')
        assert info.value.detail == 'Not authenticated'

    def test_on_401_return_none(self, api):
        assert api.get_query('/api/user', on_401='return_none') is None

    def test_queries_are_cached_until_invalidated(self, api, make_user, make_project):
        coordinator = make_user('coordinator')
        make_project(coordinator)

        first = api.get_query('/api/projects')
        make_project(coordinator, name='Second project')
        cached = api.get_query('/api/projects')
        api.invalidate_queries('/api/projects')
        fresh = api.get_query('/api/projects')

        assert len(first) == len(cached) == 1
        assert len(fresh) == 2

    def test_set_query_data(self, api):
        api.set_query_data('/api/user', {'id': 1})
        assert api.get_query('/api/user') == {'id': 1}


class TestRoutes:

    def test_guest_goes_to_auth(self):
        assert resolve_route('/dashboard/donor', None) == '/auth'

    def test_wrong_role_goes_home(self):
        assert resolve_route('/dashboard/donor', SessionUser(1, 'vol', 'volunteer')) == '/'

    def test_right_role_stays(self):
        assert resolve_route('/tasks/5/report', SessionUser(1, 'vol', 'volunteer')) == '/tasks/5/report'

    def test_public_pages_are_open(self):
        assert resolve_route('/projects/3', None) == '/projects/3'


class TestMockAuth:

    def test_login_and_logout(self):
        session = {}
        auth = MockAuth(session)

        user, errors = auth.login('maria@hubmail.org', 'secret123', role='donor')

        assert errors == {}
        assert session['isLoggedIn'] == 'true'
        assert session['userRole'] == 'donor'
        assert session['username'] == 'maria'
        assert user == auth.current_user()

        auth.logout()
        assert session == {}
        assert auth.current_user() is None

    def test_short_password_refused(self):
        auth = MockAuth()
        user, errors = auth.login('maria@hubmail.org', '123')
        assert user is None
        assert 'password' in errors

    def test_register(self):
        auth = MockAuth()
        user, errors = auth.register({
            'username': 'maria', 'email': 'maria@hubmail.org',
            'password': 'secret123', 'confirm_password': 'secret123', 'role': 'coordinator',
        })
        assert errors == {}
        assert user.role == 'coordinator'


class TestForms:

    def test_donation_form(self):
        good = {'amount': 50, 'email': 'me@hubmail.org', 'agree_to_terms': True}
        assert validate_donation(good, remaining=100) == {}

        too_much = validate_donation(dict(good, amount=150), remaining=100)
        no_terms = validate_donation(dict(good, agree_to_terms=False), remaining=100)
        tiny = validate_donation(dict(good, amount=0.5), remaining=100)

        assert 'amount' in too_much
        assert 'agree_to_terms' in no_terms
        assert 'amount' in tiny

    def test_registration_mismatch(self):
        errors = validate_registration({
            'username': 'maria', 'email': 'maria@hubmail.org',
            'password': 'secret123', 'confirm_password': 'other123', 'role': 'donor',
        })
        assert errors == {'confirm_password': 'Passwords do not match'}

    def test_task_needs_estimate(self):
        errors = validate_task({'title': 'Buy', 'description': 'Buy paint for the fence', 'requires_expenses': True})
        assert 'estimated_amount' in errors


class TestWorkflows:

    def test_login_redirects_to_dashboard(self, logged_in, api):
        flows, user = logged_in('donor')
        assert api.get_query('/api/user')['id'] == user['id']
        assert flows.notifier.last.title == 'Welcome back'

    def test_bad_login_toasts(self, api, make_user):
        user = make_user('donor')
        flows = Workflows(api)

        result = flows.login(user['email'], 'wrong-password')

        assert not result.ok
        assert flows.notifier.last.variant == 'destructive'

    def test_donate_refreshes_project(self, logged_in, api, make_user, make_project):
        flows, _ = logged_in('donor')
        project = make_project(make_user('coordinator'), target_amount=100)
        before = project_page(api, project['id'])

        result = flows.donate(before['project'], {'amount': 40, 'email': 'me@hubmail.org', 'agree_to_terms': True})
        after = project_page(api, project['id'])

        assert result.ok
        assert before['remaining'] == 100
        assert after['remaining'] == 60
        assert after['progress'] == 40
        assert flows.notifier.last.title == 'Thank you!'

    def test_donate_form_errors_skip_api(self, logged_in, make_user, make_project, storage):
        flows, _ = logged_in('donor')
        project = make_project(make_user('coordinator'), target_amount=100)

        result = flows.donate(project, {'amount': 500, 'email': 'me@hubmail.org', 'agree_to_terms': True})

        assert not result.ok
        assert 'amount' in result.errors
        assert storage.list_donations_by_project(project['id']) == []

    def test_apply_and_dashboard(self, logged_in, api, make_user, make_project):
        flows, user = logged_in('volunteer')
        project = make_project(make_user('coordinator'))

        assert flows.apply(project['id'], 'Count me in').ok
        dashboard = load_dashboard(api, SessionUser(user['id'], user['username'], 'volunteer'))

        assert dashboard['pending_applications'] == 1
        assert dashboard['projects'] == []

    def test_coordinator_creates_task(self, logged_in, api, make_project):
        flows, user = logged_in('coordinator')
        project = make_project(user)

        result = flows.create_task(project['id'], {
            'title': 'Load the truck', 'description': 'Load parcels into the truck at 9am',
        })
        dashboard = load_dashboard(api, SessionUser(user['id'], user['username'], 'coordinator'))

        assert result.ok
        assert result.redirect == f"/tasks/{result.data['id']}"
        assert [t['title'] for t in dashboard['tasks']] == ['Load the truck']

    def test_moderator_dashboard_and_decision(self, logged_in, api, make_user, make_project):
        flows, user = logged_in('moderator')
        project = make_project(make_user('coordinator'), moderation_status='pending')

        queue = load_dashboard(api, SessionUser(user['id'], user['username'], 'moderator'))['pending']
        assert [p['id'] for p in queue] == [project['id']]

        assert flows.moderate(project['id'], 'approved', 'ok').ok
        queue = load_dashboard(api, SessionUser(user['id'], user['username'], 'moderator'))['pending']
        assert queue == []

    def test_contact(self, api):
        flows = Workflows(api)
        result = flows.send_contact({
            'name': 'Petro', 'email': 'petro@hubmail.org',
            'subject': 'Volunteering', 'message': 'How can I join your team?',
        })
        assert result.ok
        assert flows.notifier.last.title == 'Message sent'

    def test_donate_exact_remaining_after_fractions(self, logged_in, api, make_user, make_project):
        flows, _ = logged_in('donor')
        project = make_project(make_user('coordinator'), target_amount=100, collected_amount=0.7 + 49.99)
        page = project_page(api, project['id'])

        result = flows.donate(page['project'], {'amount': 49.31, 'email': 'me@hubmail.org', 'agree_to_terms': True})

        assert page['remaining'] == 49.31
        assert result.ok, result.errors

    def test_report_expense_checks_skip_api(self, logged_in, make_user, make_project, storage, volunteer_on_project):
        flows, volunteer = logged_in('volunteer')
        project = make_project(make_user('coordinator'))
        volunteer_on_project(project, volunteer)
        task = storage.create_task({
            'title': 'Buy blankets', 'description': 'Buy twenty warm blankets',
            'project_id': project['id'], 'requires_expenses': True, 'estimated_amount': 300,
        })
        task = storage.assign_task(task['id'], volunteer['id'])

        result = flows.submit_report(task, {'description': 'Bought and delivered all of them'})

        assert not result.ok
        assert set(result.errors) == {'spent_amount', 'expense_purpose', 'financial_confirmed'}
        assert storage.list_reports_by_task(task['id']) == []

    def test_report_refreshes_volunteer_tasks(self, logged_in, api, make_user, make_project, storage,
                                              volunteer_on_project):
        flows, volunteer = logged_in('volunteer')
        project = make_project(make_user('coordinator'))
        volunteer_on_project(project, volunteer)
        task = storage.create_task({
            'title': 'Buy blankets', 'description': 'Buy twenty warm blankets',
            'project_id': project['id'], 'requires_expenses': True, 'estimated_amount': 300,
        })
        task = storage.assign_task(task['id'], volunteer['id'])
        api.get_query('/api/volunteer/tasks')

        result = flows.submit_report(task, {
            'description': 'Bought and delivered all of them',
            'spent_amount': 280, 'expense_purpose': 'Blankets', 'financial_confirmed': True,
        })

        assert result.ok
        assert result.redirect == '/dashboard/volunteer'
        assert '/api/volunteer/tasks' not in api.cache
        assert result.data['remaining_amount'] == 20
        assert flows.notifier.last.title == 'Report submitted'

    def test_logout_clears_cache(self, logged_in, api, make_user, make_project):
        flows, _ = logged_in('donor')
        make_project(make_user('coordinator'))
        api.get_query('/api/projects')

        result = flows.logout()

        assert result.ok
        assert result.redirect == '/'
        assert api.cache == {'/api/user': None}
        assert api.get_query('/api/user') is None
        assert flows.notifier.last.title == 'Logged out'


class TestDashboards:

    def test_donor_dashboard_totals(self, logged_in, api, make_user, make_project):
        flows, user = logged_in('donor')
        project = make_project(make_user('coordinator'), target_amount=100)
        form = {'email': 'me@hubmail.org', 'agree_to_terms': True}

        assert flows.donate(project, dict(form, amount=30)).ok
        assert flows.donate(project, dict(form, amount=12.5)).ok
        dashboard = load_dashboard(api, SessionUser(user['id'], user['username'], 'donor'))

        assert dashboard['total_donated'] == 42.5
        assert len(dashboard['donations']) == 2
        assert [p['id'] for p in dashboard['projects']] == [project['id']]

    def test_admin_dashboard(self, logged_in, api, make_user):
        flows, user = logged_in('admin')
        make_user('donor')

        dashboard = load_dashboard(api, SessionUser(user['id'], user['username'], 'admin'))

        assert dashboard['stats']['users_by_role'] == {'admin': 1, 'donor': 1}
        assert len(dashboard['users']) == 2
        assert dashboard['donations'] == []
