# settlements/tests.py
"""
Unit tests for the settlement calculator, store and endpoints
"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import PermissionDenied, ValidationError
from django.test import TestCase, Client
from django.urls import reverse

from core.exceptions import SettlementLockedError
from core.models import AuditLog, SystemSetting
from invoices.models import Category, Invoice, InvoiceItem
from users.models import Role, User
from . import services
from .calculator import (
    COMMISSION_RATE, GOAL_BONUS_USD, calculate_settlement, rounded_figures
)
from .models import Settlement


class CalculatorTest(TestCase):
    """Test the pure settlement arithmetic"""

    def calculate(self, work_days=30, total_days=30, base='500', rate='7.5', income='0'):
        return calculate_settlement(
            work_days=work_days,
            total_days=total_days,
            base_salary_usd=Decimal(base),
            exchange_rate=Decimal(rate),
            commissionable_income_gtq=Decimal(income),
        )

    def test_reference_period(self):
        figures = rounded_figures(self.calculate(work_days=15, income='30000'))

        self.assertEqual(figures['prorated_salary_usd'], Decimal('250.00'))
        self.assertEqual(figures['commission_gtq'], Decimal('1500.00'))
        self.assertEqual(figures['commission_usd'], Decimal('200.00'))
        self.assertTrue(figures['goal_reached'])
        self.assertEqual(figures['goal_bonus_usd'], Decimal('100.00'))
        self.assertEqual(figures['total_usd'], Decimal('550.00'))
        self.assertEqual(figures['total_gtq'], Decimal('4125.00'))

    def test_full_month_pays_full_salary(self):
        self.assertEqual(self.calculate(work_days=31, total_days=31)['prorated_salary_usd'], Decimal('500'))

    def test_prorated_salary_is_monotonic(self):
        values = [self.calculate(work_days=days, total_days=31)['prorated_salary_usd'] for days in range(0, 40)]
        self.assertEqual(values, sorted(values))
        self.assertEqual(values[0], Decimal('0'))

    def test_partial_month(self):
        figures = self.calculate(work_days=7, total_days=31)
        self.assertEqual(figures['prorated_salary_usd'], Decimal('500') * 7 / 31)

    def test_commission_is_five_percent(self):
        for income in ('0', '0.01', '1234.56', '29999.99', '87500.10'):
            figures = self.calculate(income=income)
            self.assertEqual(figures['commission_gtq'], Decimal(income) * COMMISSION_RATE)

    def test_goal_threshold_is_inclusive(self):
        self.assertFalse(self.calculate(income='29999.99')['goal_reached'])
        self.assertEqual(self.calculate(income='29999.99')['goal_bonus_usd'], Decimal('0'))
        self.assertTrue(self.calculate(income='30000')['goal_reached'])
        self.assertEqual(self.calculate(income='30000')['goal_bonus_usd'], GOAL_BONUS_USD)

    def test_non_positive_divisors_do_not_raise(self):
        figures = self.calculate(total_days=0, rate='0', income='1000')
        self.assertEqual(figures['prorated_salary_usd'], Decimal('0'))
        self.assertEqual(figures['commission_usd'], Decimal('0'))
        self.assertEqual(figures['commission_gtq'], Decimal('50'))
        self.assertEqual(figures['total_gtq'], Decimal('0'))

    def test_work_days_above_month_length(self):
        figures = self.calculate(work_days=35, total_days=30, base='300')
        self.assertEqual(figures['prorated_salary_usd'], Decimal('350'))


class SettlementFixturesMixin:
    """Staff, categories and invoices for March 2024"""

    def setUp(self):
        self.admin = User.objects.create_user(
            username='admin', password='pass12345', role=Role.objects.create(name=Role.ADMIN)
        )
        self.doctor = User.objects.create_user(
            username='doctor', password='pass12345', is_active_doctor=True,
            role=Role.objects.create(name=Role.DOCTOR)
        )
        self.category = Category.objects.create(name='Consulta')

    def add_invoice(self, ticket, sale_date, amount, commissionable=True, accounting_date=None):
        invoice = Invoice.objects.create(
            ticket_number=ticket,
            sale_date=sale_date,
            accounting_date=accounting_date,
            staff=self.doctor,
            total_amount=Decimal(amount),
        )
        InvoiceItem.objects.create(
            invoice=invoice,
            description='Procedimiento',
            quantity=1,
            unit_price=Decimal(amount),
            is_commissionable=commissionable,
            category=self.category,
        )
        return invoice

    def save(self, work_days=15, base='500', rate='7.5', month=2, year=2024, **kwargs):
        return services.save_settlement(
            self.admin, self.doctor, month, year,
            work_days=work_days,
            base_salary_usd=base,
            exchange_rate=rate,
            payment_method='Transferencia',
            **kwargs
        )


class SettlementStoreTest(SettlementFixturesMixin, TestCase):
    """Test upsert, lock/unlock and history"""

    def test_save_computes_from_commissionable_income(self):
        self.add_invoice(1, date(2024, 3, 4), '30000')
        self.add_invoice(2, date(2024, 3, 5), '200', commissionable=False)

        settlement = self.save(total_days=30)

        self.assertEqual(settlement.commissionable_income_gtq, Decimal('30000'))
        self.assertEqual(settlement.prorated_salary_usd, Decimal('250'))
        self.assertEqual(settlement.total_usd, Decimal('550'))
        self.assertEqual(settlement.total_gtq, Decimal('4125'))
        self.assertTrue(settlement.goal_reached)
        self.assertTrue(settlement.is_locked)
        self.assertEqual(settlement.locked_by, self.admin)

    def test_accounting_month_income(self):
        self.add_invoice(3, date(2024, 1, 30), '500', accounting_date=date(2024, 2, 15))

        january = self.save(month=0)
        february = self.save(month=1)

        self.assertEqual(january.commissionable_income_gtq, Decimal('0'))
        self.assertEqual(february.commissionable_income_gtq, Decimal('500'))

    def test_total_days_default_to_month_length(self):
        settlement = self.save(month=1, year=2024)
        self.assertEqual(settlement.total_days, 29)

    def test_saving_locked_period_is_rejected(self):
        self.save()
        with self.assertRaises(SettlementLockedError):
            self.save(work_days=20)
        self.assertEqual(Settlement.objects.get().work_days, 15)

    def test_repeated_saves_keep_one_row(self):
        for work_days in (10, 12, 14, 16):
            settlement = self.save(work_days=work_days)
            services.unlock_settlement(self.admin, settlement)

        self.assertEqual(Settlement.objects.filter(staff=self.doctor, month=2, year=2024).count(), 1)
        self.assertEqual(Settlement.objects.get().work_days, 16)

    def test_unlock_is_privileged_and_audited(self):
        settlement = self.save()
        with self.assertRaises(PermissionDenied):
            services.unlock_settlement(self.doctor, settlement)

        services.unlock_settlement(self.admin, settlement)
        settlement.refresh_from_db()
        self.assertFalse(settlement.is_locked)
        self.assertEqual(settlement.unlocked_by, self.admin)
        self.assertTrue(AuditLog.objects.filter(action='unlock', object_id=settlement.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action='lock', object_id=settlement.pk).exists())

    def test_exchange_rate_must_be_positive(self):
        with self.assertRaises(ValidationError):
            self.save(rate='0')
        self.assertFalse(Settlement.objects.exists())

    def test_stored_inputs_reproduce_the_snapshot(self):
        self.add_invoice(1, date(2024, 3, 4), '10000')
        with self.assertRaises(ValidationError):
            self.save(rate='7.12345')
        with self.assertRaises(ValidationError):
            self.save(base='500.00001')
        self.assertFalse(Settlement.objects.exists())

        settlement = self.save(rate='7.1235', base='500.50')
        parameters, _ = services.period_parameters(self.doctor, 2, 2024)
        self.assertEqual(parameters['exchange_rate'], Decimal('7.1235'))
        self.assertEqual(parameters['base_salary_usd'], Decimal('500.50'))

        recomputed = services.compute_period(self.doctor, 2, 2024, **{
            key: parameters[key] for key in ('work_days', 'total_days', 'base_salary_usd', 'exchange_rate')
        })
        self.assertEqual(settlement.total_gtq, recomputed['total_gtq'].quantize(Decimal('0.0001'), rounding=ROUND_HALF_UP))

    def test_invalid_inputs_are_clamped(self):
        settlement = self.save(work_days='-4', base='abc')
        self.assertEqual(settlement.work_days, 0)
        self.assertEqual(settlement.base_salary_usd, Decimal('0'))

    def test_period_parameters(self):
        SystemSetting.set_setting('settlement_default_exchange_rate', '7.8')
        parameters, settlement = services.period_parameters(self.doctor, 1, 2024)
        self.assertIsNone(settlement)
        self.assertEqual(parameters['total_days'], 29)
        self.assertEqual(parameters['exchange_rate'], Decimal('7.8'))

        saved = self.save(month=1, work_days=11, base='650')
        parameters, settlement = services.period_parameters(self.doctor, 1, 2024)
        self.assertEqual(settlement, saved)
        self.assertEqual(parameters['work_days'], 11)
        self.assertEqual(parameters['base_salary_usd'], Decimal('650'))
        self.assertEqual(parameters['payment_method'], 'Transferencia')

    def test_delete(self):
        settlement = self.save()
        with self.assertRaises(PermissionDenied):
            services.delete_settlement(self.doctor, settlement)
        services.delete_settlement(self.admin, settlement)
        self.assertFalse(Settlement.objects.exists())

    def test_history_search_and_totals(self):
        self.add_invoice(4, date(2024, 3, 4), '1000')
        self.save(month=2)
        self.save(month=11, year=2023)

        settlements, totals = services.settlement_history(search='marzo')
        self.assertEqual([(s.month, s.year) for s in settlements], [(2, 2024)])

        settlements, totals = services.settlement_history(search='2023')
        self.assertEqual([(s.month, s.year) for s in settlements], [(11, 2023)])

        settlements, totals = services.settlement_history()
        self.assertEqual([(s.month, s.year) for s in settlements], [(2, 2024), (11, 2023)])
        self.assertEqual(totals['count'], 2)
        self.assertEqual(totals['commission_gtq'], Decimal('50'))


class SettlementViewsTest(SettlementFixturesMixin, TestCase):
    """Test the settlement JSON endpoints"""

    def setUp(self):
        super().setUp()
        self.client = Client()
        self.client.force_login(self.admin)

    def test_doctor_has_no_access(self):
        self.client.force_login(self.doctor)
        response = self.client.get(reverse('settlements:history'))
        self.assertEqual(response.status_code, 403)

    def test_period_prefill(self):
        self.add_invoice(1, date(2024, 3, 4), '30000')
        response = self.client.get(
            reverse('settlements:period'), {'staff': self.doctor.pk, 'month': 2, 'year': 2024}
        )
        data = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(data['settlement'])
        self.assertEqual(data['parameters']['work_days'], 31)
        self.assertEqual(data['figures']['commission_gtq'], '1500.00')

    def test_compute(self):
        self.add_invoice(1, date(2024, 3, 4), '30000')
        response = self.client.post(reverse('settlements:compute'), data={
            'staff': self.doctor.pk, 'month': 2, 'year': 2024,
            'work_days': '15', 'total_days': '30', 'base_salary_usd': '500', 'exchange_rate': '7.5',
        }, content_type='application/json')

        figures = response.json()['figures']
        self.assertEqual(figures['total_usd'], '550.00')
        self.assertEqual(figures['total_gtq'], '4125.00')
        self.assertFalse(Settlement.objects.exists())

    def test_save_then_locked_conflict(self):
        payload = {
            'staff': self.doctor.pk, 'month': 2, 'year': 2024,
            'work_days': '20', 'base_salary_usd': '500', 'exchange_rate': '7.5',
            'payment_method': 'Efectivo',
        }
        response = self.client.post(reverse('settlements:save'), data=payload, content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['settlement']['is_locked'])

        response = self.client.post(reverse('settlements:save'), data=payload, content_type='application/json')
        self.assertEqual(response.status_code, 409)

        settlement = Settlement.objects.get()
        response = self.client.post(reverse('settlements:unlock', args=[settlement.pk]))
        self.assertFalse(response.json()['settlement']['is_locked'])

        response = self.client.post(reverse('settlements:save'), data=payload, content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Settlement.objects.count(), 1)

    def test_history_endpoint(self):
        self.save()
        response = self.client.get(reverse('settlements:history'), {'search': 'Marzo'})
        data = response.json()
        self.assertEqual(data['totals']['count'], 1)
        self.assertEqual(data['settlements'][0]['period'], 'Marzo 2024')

    def test_delete_endpoint(self):
        settlement = self.save()
        response = self.client.post(reverse('settlements:delete', args=[settlement.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Settlement.objects.exists())

    def test_pdf(self):
        settlement = self.save()
        response = self.client.get(reverse('settlements:pdf', args=[settlement.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))
