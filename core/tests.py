# core/tests.py
"""
Unit tests for settings, money/date helpers, error responses and auditing
"""
from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase, Client, RequestFactory
from django.urls import reverse

from users.models import Role, User
from .exceptions import ConflictError, UpstreamError
from .models import AuditLog, SystemSetting
from .money import coerce_amount, coerce_days, round_money
from .responses import handle_domain_errors
from .utils import days_in_month, month_bounds, previous_period, period_of, validate_period


class SystemSettingTest(TestCase):
    """Test SystemSetting helpers"""

    def test_initialize_defaults_is_idempotent(self):
        created = SystemSetting.initialize_defaults()
        self.assertEqual(set(created), set(SystemSetting.DEFAULTS))
        self.assertEqual(SystemSetting.initialize_defaults(), [])

    def test_typed_getters(self):
        SystemSetting.set_setting('reports_top_services_limit', '8')
        SystemSetting.set_setting('settlement_default_exchange_rate', '7.75')
        SystemSetting.set_setting('privileged_emails', 'a@x.gt, ,b@x.gt')

        self.assertEqual(SystemSetting.get_int_setting('reports_top_services_limit'), 8)
        self.assertEqual(SystemSetting.get_decimal_setting('settlement_default_exchange_rate'), Decimal('7.75'))
        self.assertEqual(SystemSetting.get_list_setting('privileged_emails'), ['a@x.gt', 'b@x.gt'])

    def test_unparsable_decimal_falls_back(self):
        SystemSetting.set_setting('settlement_default_exchange_rate', 'seven')
        self.assertEqual(
            SystemSetting.get_decimal_setting('settlement_default_exchange_rate', Decimal('7.5')),
            Decimal('7.5')
        )

    def test_initialize_settings_command(self):
        call_command('initialize_settings', verbosity=0)
        self.assertEqual(SystemSetting.get_setting('settlement_default_base_salary_usd'), '500')


class MoneyHelpersTest(TestCase):
    """Test amount coercion"""

    def test_coerce_amount(self):
        self.assertEqual(coerce_amount('12.50'), Decimal('12.50'))
        self.assertEqual(coerce_amount(3), Decimal('3'))
        for value in (None, '', 'abc', '-5', -1, float('nan'), float('inf'), True):
            self.assertEqual(coerce_amount(value), Decimal('0'), value)

    def test_coerce_days(self):
        self.assertEqual(coerce_days('15'), 15)
        self.assertEqual(coerce_days(-3), 0)
        self.assertEqual(coerce_days(None), 0)
        self.assertEqual(coerce_days('x'), 0)

    def test_round_money_half_up(self):
        self.assertEqual(round_money(Decimal('2.005')), Decimal('2.01'))
        self.assertEqual(round_money(Decimal('33.3333')), Decimal('33.33'))


class PeriodHelpersTest(TestCase):
    """Test zero-based month helpers"""

    def test_month_bounds(self):
        self.assertEqual(month_bounds(1, 2024), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(month_bounds(11, 2023), (date(2023, 12, 1), date(2023, 12, 31)))

    def test_days_in_month(self):
        self.assertEqual(days_in_month(1, 2023), 28)
        self.assertEqual(days_in_month(0, 2024), 31)

    def test_previous_period_wraps_year(self):
        self.assertEqual(previous_period(0, 2024), (11, 2023))
        self.assertEqual(previous_period(5, 2024), (4, 2024))

    def test_period_of(self):
        self.assertEqual(period_of(date(2024, 1, 30)), (0, 2024))

    def test_validate_period(self):
        self.assertEqual(validate_period('3', '2024'), (3, 2024))
        with self.assertRaises(ValueError):
            validate_period(12, 2024)


class DomainErrorResponseTest(TestCase):
    """Test that domain errors become JSON responses"""

    def setUp(self):
        self.factory = RequestFactory()

    def call(self, exc):
        @handle_domain_errors
        def view(request):
            raise exc
        return view(self.factory.get('/'))

    def test_validation_error(self):
        response = self.call(ValidationError('Item 2: please select a category.'))
        self.assertEqual(response.status_code, 400)
        self.assertIn(b'please select a category', response.content)

    def test_conflict_carries_ticket_number(self):
        response = self.call(ConflictError('Already registered', ticket_number=1234))
        self.assertEqual(response.status_code, 409)
        self.assertJSONEqual(response.content, {
            'success': False, 'error': 'Already registered', 'ticket_number': 1234
        })

    def test_upstream_error(self):
        response = self.call(UpstreamError('Could not connect'))
        self.assertEqual(response.status_code, 502)

    def test_unexpected_error_is_generic(self):
        with self.assertLogs('core.responses', level='ERROR'):
            response = self.call(RuntimeError('boom'))
        self.assertEqual(response.status_code, 500)
        self.assertNotIn(b'boom', response.content)


class CoreViewsTest(TestCase):
    """Test health check, audit log and settings endpoints"""

    def setUp(self):
        self.client = Client()
        self.admin = User.objects.create_user(
            username='admin', password='pass12345', role=Role.objects.create(name=Role.ADMIN)
        )
        self.doctor = User.objects.create_user(
            username='doctor', password='pass12345', role=Role.objects.create(name=Role.DOCTOR)
        )

    def test_health_check(self):
        response = self.client.get(reverse('core:health_check'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ok')

    def test_settings_update(self):
        self.client.force_login(self.admin)
        response = self.client.post(
            reverse('core:settings'),
            data={'settlement_default_exchange_rate': '7.8'},
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(SystemSetting.get_setting('settlement_default_exchange_rate'), '7.8')

    def test_settings_rejects_unknown_keys(self):
        self.client.force_login(self.admin)
        response = self.client.post(
            reverse('core:settings'),
            data={'smtp_password': 'x'},
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 400)

    def test_settings_require_privileged(self):
        self.client.force_login(self.doctor)
        self.assertEqual(self.client.get(reverse('core:settings')).status_code, 403)
        self.assertEqual(self.client.get(reverse('core:audit_logs')).status_code, 403)

    def test_audit_log_list(self):
        AuditLog.objects.create(user=self.admin, action='unlock', model_name='settlement', object_id=7)
        self.client.force_login(self.admin)

        response = self.client.get(reverse('core:audit_logs'), {'model': 'settlement', 'object_id': '7'})
        logs = response.json()['logs']
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0]['action'], 'unlock')
        self.assertEqual(logs[0]['user'], 'admin')
