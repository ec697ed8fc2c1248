import pytest

from storage import MemoryStorage, build_storage, like_escape


@pytest.fixture
def store():
    return MemoryStorage()


@pytest.fixture
def coordinator(store):
    return store.create_user({
        'username': 'coord', 'email': 'coord@hubmail.org', 'password': 'x', 'role': 'coordinator',
    })


@pytest.fixture
def project(store, coordinator):
    return store.create_project({
        'name': 'Food bank', 'description': 'Collect and share food parcels.',
        'target_amount': 100, 'coordinator_id': coordinator['id'],
    })


class TestMemoryStorage:

    def test_defaults_match_the_database(self, project):
        assert project['status'] == 'funding'
        assert project['moderation_status'] == 'pending'
        assert project['collected_amount'] == 0
        assert project['is_published'] is False
        assert project['created_at'] == project['updated_at']

    def test_rows_are_copies(self, store, project):
        project['name'] = 'Changed outside'
        assert store.get_project(project['id'])['name'] == 'Food bank'

    def test_unique_email(self, store, coordinator):
        with pytest.raises(ValueError):
            store.create_user({'username': 'other', 'email': 'COORD@hubmail.org', 'password': 'x', 'role': 'donor'})

    def test_one_application_per_project(self, store, project):
        store.create_application({'project_id': project['id'], 'volunteer_id': 7})
        with pytest.raises(ValueError):
            store.create_application({'project_id': project['id'], 'volunteer_id': 7})

    def test_donation_updates_project(self, store, project):
        donation, updated = store.create_donation({'project_id': project['id'], 'amount': 100})

        assert donation['is_anonymous'] is False
        assert updated['collected_amount'] == 100
        assert updated['status'] == 'in_progress'

    def test_moderation_publishes(self, store, project):
        store.create_project_moderation(project['id'], 'approved', None, None)
        refreshed = store.get_project(project['id'])

        assert refreshed['moderation_status'] == 'approved'
        assert refreshed['is_published'] is True

    def test_delete_task_drops_reports(self, store, project):
        task = store.create_task({'title': 'Pack', 'description': 'Pack parcels', 'project_id': project['id']})
        store.create_report({'task_id': task['id'], 'description': 'Packed all of them'})

        assert store.delete_task(task['id']) is True
        assert store.list_reports_by_task(task['id']) == []
        assert store.delete_task(task['id']) is False

    def test_visibility(self, store, coordinator, project):
        assert store.list_projects() == []
        assert len(store.list_projects(viewer_role='coordinator', viewer_id=coordinator['id'])) == 1
        assert len(store.list_projects(viewer_role='admin')) == 1

    def test_update_missing_row(self, store):
        assert store.update_task(123, {'status': 'completed'}) is None

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_storage('sqlite')

    def test_search_is_literal(self, store, coordinator):
        store.create_project({
            'name': 'Raise 100% for the clinic', 'description': 'Medicine for the village clinic.',
            'target_amount': 100, 'coordinator_id': coordinator['id'],
        })
        store.create_project({
            'name': 'Raise 1000 for books', 'description': 'Books for the school_library.',
            'target_amount': 100, 'coordinator_id': coordinator['id'],
        })

        percent = store.list_projects(search='100%', viewer_role='admin')
        underscore = store.list_projects(search='school_', viewer_role='admin')

        assert [p['name'] for p in percent] == ['Raise 100% for the clinic']
        assert [p['name'] for p in underscore] == ['Raise 1000 for books']
        assert store.list_projects(search='_', viewer_role='admin') == underscore


class TestLikeEscape:

    @pytest.mark.parametrize('raw, escaped', [
        ('school', 'school'),
        ('100%', '100\\%'),
        ('school_library', 'school\\_library'),
        ('back\\slash', 'back\\\\slash'),
    ])
    def test_wildcards_escaped(self, raw, escaped):
        assert like_escape(raw) == escaped
