# reports/tests.py
"""
Unit tests for the dashboard metrics and reconciliation endpoints
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase, Client
from django.urls import reverse

from core.models import SystemSetting
from invoices.models import Category, Invoice, InvoiceItem
from users.models import Role, User
from .metrics import dashboard_metrics, goal_progress, growth_percentage, reconciliation


class ReportsFixturesMixin:

    def setUp(self):
        self.admin = User.objects.create_user(
            username='admin', password='pass12345', role=Role.objects.create(name=Role.ADMIN)
        )
        doctor_role = Role.objects.create(name=Role.DOCTOR)
        self.doctor = User.objects.create_user(username='doctor', password='pass12345', role=doctor_role)
        self.other_doctor = User.objects.create_user(username='doctor2', password='pass12345', role=doctor_role)
        self.consulta = Category.objects.create(name='Consulta')
        self.cirugia = Category.objects.create(name='Cirugía')
        self.alimentos = Category.objects.create(name='Alimentos')

    def add_invoice(self, ticket, sale_date, items, staff=None, accounting_date=None, payment_method='Efectivo'):
        invoice = Invoice.objects.create(
            ticket_number=ticket,
            sale_date=sale_date,
            accounting_date=accounting_date,
            staff=staff or self.doctor,
            payment_method=payment_method,
        )
        for description, quantity, price, category, commissionable in items:
            InvoiceItem.objects.create(
                invoice=invoice,
                description=description,
                quantity=quantity,
                unit_price=Decimal(price),
                category=category,
                is_commissionable=commissionable,
            )
        return invoice


class DashboardMetricsTest(ReportsFixturesMixin, TestCase):
    """Test dashboard figures for March 2024"""

    def setUp(self):
        super().setUp()
        self.add_invoice(1, date(2024, 3, 4), [
            ('Consulta general', 1, '200', self.consulta, True),
            ('Croquetas', 2, '150', self.alimentos, False),
        ])
        self.add_invoice(2, date(2024, 3, 4), [
            ('Esterilización', 1, '1000', self.cirugia, True),
        ], payment_method='Tarjeta')
        self.add_invoice(3, date(2024, 3, 20), [
            ('Consulta general', 2, '200', self.consulta, True),
        ], payment_method='')
        # Sold in February, credited to March
        self.add_invoice(4, date(2024, 2, 27), [
            ('Consulta general', 1, '200', self.consulta, True),
        ], accounting_date=date(2024, 3, 15))
        self.add_invoice(5, date(2024, 2, 10), [
            ('Consulta general', 1, '800', self.consulta, True),
        ])
        self.add_invoice(6, date(2024, 3, 4), [
            ('Consulta general', 1, '5000', self.consulta, True),
        ], staff=self.other_doctor)

    def test_totals_count_only_commissionable_items(self):
        metrics = dashboard_metrics(2, 2024, staff=self.doctor)

        self.assertEqual(metrics['total_income'], '1800.00')
        self.assertEqual(metrics['total_commission'], '90.00')
        self.assertEqual(metrics['total_procedures'], 5)
        self.assertEqual(metrics['total_customers'], 4)
        self.assertEqual(metrics['average_ticket'], '450.00')

    def test_clinic_wide_totals(self):
        metrics = dashboard_metrics(2, 2024)
        self.assertEqual(metrics['total_income'], '6800.00')

    def test_goal_and_growth(self):
        metrics = dashboard_metrics(2, 2024, staff=self.doctor)

        self.assertEqual(metrics['goal_progress'], '6.00')
        self.assertFalse(metrics['goal_reached'])
        self.assertEqual(metrics['previous_month_income'], '800.00')
        self.assertEqual(metrics['growth_percentage'], '125.00')

    def test_breakdowns(self):
        metrics = dashboard_metrics(2, 2024, staff=self.doctor)

        self.assertEqual(metrics['category_data'], [
            {'name': 'Cirugía', 'value': '1000.00'},
            {'name': 'Consulta', 'value': '800.00'},
        ])
        self.assertEqual(
            {row['name']: row['value'] for row in metrics['payment_methods']},
            {'Efectivo': '400.00', 'Tarjeta': '1000.00', 'No especificado': '400.00'}
        )
        self.assertEqual(metrics['top_products'][0], {'name': 'Esterilización', 'count': 1, 'revenue': '1000.00'})
        self.assertEqual(metrics['top_products'][1], {'name': 'Consulta general', 'count': 4, 'revenue': '800.00'})

    def test_daily_trend_covers_every_day(self):
        trend = dashboard_metrics(2, 2024, staff=self.doctor)['revenue_trend']

        self.assertEqual(len(trend), 31)
        by_day = {row['date']: row['income'] for row in trend}
        self.assertEqual(by_day['2024-03-04'], '1200.00')
        self.assertEqual(by_day['2024-03-15'], '200.00')
        self.assertEqual(by_day['2024-03-01'], '0.00')

    def test_top_products_limit_setting(self):
        SystemSetting.set_setting('reports_top_services_limit', '1')
        self.assertEqual(len(dashboard_metrics(2, 2024, staff=self.doctor)['top_products']), 1)

    def test_empty_month(self):
        metrics = dashboard_metrics(6, 2024)
        self.assertEqual(metrics['total_income'], '0.00')
        self.assertEqual(metrics['average_ticket'], '0.00')
        self.assertIsNone(metrics['growth_percentage'])

    def test_helpers(self):
        self.assertEqual(goal_progress(Decimal('45000')), Decimal('100'))
        self.assertIsNone(growth_percentage(Decimal('10'), Decimal('0')))
        self.assertEqual(growth_percentage(Decimal('50'), Decimal('100')), Decimal('-50'))


class ReconciliationTest(ReportsFixturesMixin, TestCase):
    """Test the sale-date versus accounting-date view"""

    def test_reassigned_invoice_appears_on_both_sides(self):
        self.add_invoice(10, date(2024, 1, 30), [
            ('Cirugía menor', 1, '500', self.cirugia, True),
        ], accounting_date=date(2024, 2, 15))

        january = reconciliation(0, 2024)
        february = reconciliation(1, 2024)

        self.assertEqual(january['sale_income'], '500.00')
        self.assertEqual(january['accounting_income'], '0.00')
        self.assertEqual([i['ticket_number'] for i in january['moved_out']], [10])
        self.assertEqual(february['accounting_income'], '500.00')
        self.assertEqual([i['ticket_number'] for i in february['moved_in']], [10])
        self.assertEqual(february['moved_in'][0]['commissionable_total'], '500.00')


class ReportsViewsTest(ReportsFixturesMixin, TestCase):
    """Test the reports endpoints"""

    def setUp(self):
        super().setUp()
        self.client = Client()
        self.add_invoice(1, date(2024, 3, 4), [('Consulta', 1, '100', self.consulta, True)])
        self.add_invoice(2, date(2024, 3, 4), [('Consulta', 1, '900', self.consulta, True)], staff=self.other_doctor)

    def test_doctor_sees_only_own_figures(self):
        self.client.force_login(self.doctor)
        response = self.client.get(
            reverse('reports:dashboard'), {'month': 2, 'year': 2024, 'staff': self.other_doctor.pk}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['total_income'], '100.00')
        self.assertEqual(response.json()['staff_id'], self.doctor.pk)

    def test_admin_sees_clinic_or_chosen_staff(self):
        self.client.force_login(self.admin)
        response = self.client.get(reverse('reports:dashboard'), {'month': 2, 'year': 2024})
        self.assertEqual(response.json()['total_income'], '1000.00')

        response = self.client.get(
            reverse('reports:dashboard'), {'month': 2, 'year': 2024, 'staff': self.other_doctor.pk}
        )
        self.assertEqual(response.json()['total_income'], '900.00')

    def test_invalid_period(self):
        self.client.force_login(self.admin)
        response = self.client.get(reverse('reports:dashboard'), {'month': 12, 'year': 2024})
        self.assertEqual(response.status_code, 400)

    def test_reconciliation_endpoint(self):
        self.client.force_login(self.admin)
        response = self.client.get(reverse('reports:reconciliation'), {'month': 2, 'year': 2024})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['sale_income'], '1000.00')
