from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from models import ProjectCreate, RegisterRequest, Report, TaskCreate, normalize_phone


class TestPhoneNumbers:

    @pytest.mark.parametrize('raw, clean', [
        ('+380501234567', '+380501234567'),
        ('050 123 45 67', '0501234567'),
        ('+1 (555) 010-9999', '+15550109999'),
    ])
    def test_accepted(self, raw, clean):
        assert normalize_phone(raw) == clean

    @pytest.mark.parametrize('raw', ['12345', '+38050abc4567', '1234567890123456'])
    def test_rejected(self, raw):
        with pytest.raises(ValueError):
            normalize_phone(raw)

    def test_blank_is_none(self):
        assert normalize_phone('  ') is None
        assert normalize_phone(None) is None


class TestRegisterRequest:

    def base(self, **overrides):
        data = {
            'username': 'oksana',
            'email': 'Oksana@HubMail.org',
            'password': 'secret123',
            'confirm_password': 'secret123',
            'role': 'donor',
        }
        data.update(overrides)
        return data

    def test_valid(self):
        request = RegisterRequest(**self.base())
        assert request.email == 'oksana@hubmail.org'
        assert request.role == 'donor'

    def test_short_username(self):
        with pytest.raises(ValidationError):
            RegisterRequest(**self.base(username='ok'))

    def test_moderator_role_refused(self):
        with pytest.raises(ValidationError):
            RegisterRequest(**self.base(role='moderator'))

    def test_birth_date_in_future(self):
        tomorrow = date.today() + timedelta(days=1)
        with pytest.raises(ValidationError):
            RegisterRequest(**self.base(birth_date=tomorrow.isoformat()))


class TestProjectAndTask:

    def test_project_rules(self):
        with pytest.raises(ValidationError):
            ProjectCreate(name='Fine name', description='too short', target_amount=10, bank_details='UA123')
        with pytest.raises(ValidationError):
            ProjectCreate(name='Fine name', description='x' * 25, target_amount=-1, bank_details='UA123')

    def test_task_defaults(self):
        task = TaskCreate(title='Paint', description='Paint the fence blue')
        assert task.type == 'other'
        assert task.volunteers_needed == 1
        assert task.requires_expenses is False

    def test_report_null_lists(self):
        report = Report(id=1, task_id=2, description='All done here', image_urls=None, receipt_urls=None)
        assert report.image_urls == []
        assert report.receipt_urls == []

    @pytest.mark.parametrize('amount', [float('inf'), float('-inf'), float('nan')])
    def test_money_must_be_finite(self, amount):
        with pytest.raises(ValidationError):
            ProjectCreate(name='Fine name', description='x' * 25, target_amount=amount, bank_details='UA123')
