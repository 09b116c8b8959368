# invoices/tests.py
"""
Unit tests for invoice capture, the receipt parser client and commissionable
income aggregation
"""
from datetime import date
from decimal import Decimal
from unittest.mock import patch, Mock

import requests
from django.core.exceptions import PermissionDenied, ValidationError
from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase, Client, override_settings
from django.urls import reverse

from core.exceptions import ConflictError, PeriodRestrictionError, UpstreamError
from core.models import AuditLog
from core.utils import get_clinic_today
from users.models import Role, User
from . import receipt_client, services
from .aggregation import BASIS_SALE, commissionable_income, reassigned_invoices
from .models import Category, Invoice, InvoiceItem


def parser_row(**overrides):
    row = {
        'ticket_numero': 1001,
        'fecha_venta_iso': '2024-03-10',
        'forma_pago': 'Efectivo',
        'subtotal_q': 300,
        'total_q_factura': 300,
        'pagado_q': 300,
        'cambio_q': 0,
        'descripcion': 'Consulta general',
        'cantidad': 1,
        'precio_unitario_q': 100,
        'total_q': 100,
        'comisionable': True,
    }
    row.update(overrides)
    return row


class InvoiceFixturesMixin:
    """Users, categories and a helper to store invoices directly"""

    def setUp(self):
        self.admin_role = Role.objects.create(name=Role.ADMIN)
        self.doctor_role = Role.objects.create(name=Role.DOCTOR)
        self.admin = User.objects.create_user(username='admin', password='pass12345', role=self.admin_role)
        self.doctor = User.objects.create_user(
            username='doctor', password='pass12345', role=self.doctor_role, is_active_doctor=True
        )
        self.other_doctor = User.objects.create_user(
            username='doctor2', password='pass12345', role=self.doctor_role, is_active_doctor=True
        )
        self.consulta = Category.objects.create(name='Consulta')
        self.alimentos = Category.objects.create(name='Alimentos')

    def make_invoice(self, ticket, sale_date, items, staff=None, accounting_date=None, **kwargs):
        invoice = Invoice.objects.create(
            ticket_number=ticket,
            sale_date=sale_date,
            accounting_date=accounting_date,
            staff=staff or self.doctor,
            total_amount=sum(Decimal(price) * qty for _, qty, price, _ in items),
            **kwargs
        )
        for description, quantity, price, commissionable in items:
            InvoiceItem.objects.create(
                invoice=invoice,
                description=description,
                quantity=quantity,
                unit_price=Decimal(price),
                is_commissionable=commissionable,
                category=self.consulta if commissionable else self.alimentos,
            )
        return invoice

    def submission(self, ticket=1001, sale_date='2024-03-10', items=None):
        header = {
            'ticket_number': ticket,
            'sale_date': sale_date,
            'payment_method': 'Tarjeta',
            'subtotal': '300.00',
            'total_amount': '300.00',
            'amount_paid': '300.00',
            'change_amount': '0',
        }
        if items is None:
            items = [
                {'description': 'Consulta general', 'quantity': 1, 'unit_price': '100',
                 'is_commissionable': True, 'category_id': self.consulta.pk},
                {'description': 'Croquetas 2kg', 'quantity': 2, 'unit_price': '100',
                 'is_commissionable': False, 'category_id': self.alimentos.pk},
            ]
        return header, items


class InvoiceModelTest(InvoiceFixturesMixin, TestCase):
    """Test Invoice and InvoiceItem behaviour"""

    def test_accounting_date_defaults_to_sale_date(self):
        invoice = self.make_invoice(1, date(2024, 3, 5), [('Consulta', 1, '50', True)])
        self.assertEqual(invoice.accounting_date, date(2024, 3, 5))
        self.assertFalse(invoice.is_reassigned)

    def test_line_total_is_quantity_times_price(self):
        invoice = self.make_invoice(2, date(2024, 3, 5), [('Vacuna', 3, '33.335', True)])
        self.assertEqual(invoice.items.get().line_total, Decimal('100.01'))

    def test_commissionable_total(self):
        invoice = self.make_invoice(3, date(2024, 3, 5), [
            ('Consulta', 1, '100', True),
            ('Alimento', 1, '200', False),
        ])
        self.assertEqual(invoice.commissionable_total, Decimal('100'))

    def test_items_cascade_on_delete(self):
        invoice = self.make_invoice(4, date(2024, 3, 5), [('Consulta', 1, '100', True)])
        invoice.delete()
        self.assertEqual(InvoiceItem.objects.count(), 0)

    def test_search(self):
        self.make_invoice(5, date(2024, 3, 5), [('Vacuna antirrábica', 1, '100', True)])
        self.make_invoice(6, date(2024, 3, 5), [('Baño', 1, '100', True)], observations='Perro nervioso')

        self.assertEqual([i.ticket_number for i in Invoice.objects.search('antirr')], [5])
        self.assertEqual([i.ticket_number for i in Invoice.objects.search('nervioso')], [6])
        self.assertEqual([i.ticket_number for i in Invoice.objects.search('6')], [6])


class CategoryCatalogTest(TestCase):
    """Test category catalog and seeding"""

    def test_seed_categories(self):
        call_command('seed_categories', verbosity=0)
        call_command('seed_categories', verbosity=0)
        self.assertEqual(Category.objects.count(), len(Category.FALLBACK_NAMES))

    def test_catalog_falls_back_on_database_error(self):
        with patch.object(Category.objects, 'order_by', side_effect=DatabaseError('gone')):
            with self.assertLogs('invoices.models', level='ERROR'):
                catalog = Category.catalog()
        self.assertEqual([c['name'] for c in catalog], Category.FALLBACK_NAMES)
        self.assertTrue(all(c['id'] is None for c in catalog))


class CommissionableIncomeTest(InvoiceFixturesMixin, TestCase):
    """Test the commissionable income aggregation"""

    def test_only_commissionable_items_count(self):
        self.make_invoice(10, date(2024, 3, 10), [
            ('Consulta', 1, '100', True),
            ('Alimento', 1, '200', False),
        ])
        self.assertEqual(commissionable_income(2, 2024, staff=self.doctor), Decimal('100'))

    def test_accounting_date_decides_the_month(self):
        self.make_invoice(
            11, date(2024, 1, 30), [('Cirugía', 1, '500', True)],
            accounting_date=date(2024, 2, 15)
        )
        self.assertEqual(commissionable_income(0, 2024, staff=self.doctor), Decimal('0'))
        self.assertEqual(commissionable_income(1, 2024, staff=self.doctor), Decimal('500'))
        self.assertEqual(commissionable_income(0, 2024, staff=self.doctor, basis=BASIS_SALE), Decimal('500'))

    def test_month_boundaries_are_inclusive(self):
        self.make_invoice(12, date(2024, 2, 1), [('Consulta', 1, '10', True)])
        self.make_invoice(13, date(2024, 2, 29), [('Consulta', 1, '20', True)])
        self.make_invoice(14, date(2024, 3, 1), [('Consulta', 1, '40', True)])
        self.assertEqual(commissionable_income(1, 2024), Decimal('30'))

    def test_staff_filter(self):
        self.make_invoice(15, date(2024, 3, 2), [('Consulta', 1, '100', True)])
        self.make_invoice(16, date(2024, 3, 2), [('Consulta', 1, '70', True)], staff=self.other_doctor)

        self.assertEqual(commissionable_income(2, 2024, staff=self.doctor), Decimal('100'))
        self.assertEqual(commissionable_income(2, 2024), Decimal('170'))

    def test_empty_month_is_zero(self):
        self.assertEqual(commissionable_income(6, 2024), Decimal('0'))

    def test_reassigned_invoices(self):
        moved = self.make_invoice(
            17, date(2024, 1, 30), [('Cirugía', 1, '500', True)],
            accounting_date=date(2024, 2, 15)
        )
        self.make_invoice(18, date(2024, 2, 3), [('Consulta', 1, '100', True)])

        credited_here, sold_here = reassigned_invoices(1, 2024)
        self.assertEqual(list(credited_here), [moved])
        self.assertEqual(list(sold_here), [])

        credited_here, sold_here = reassigned_invoices(0, 2024)
        self.assertEqual(list(sold_here), [moved])


class ReceiptClientTest(TestCase):
    """Test the receipt parser client with a mocked webhook"""

    def mock_response(self, rows, status_code=200):
        response = Mock()
        response.ok = 200 <= status_code < 300
        response.status_code = status_code
        response.json.return_value = rows
        return response

    @override_settings(RECEIPT_PARSER_URL='http://parser.test/hook', RECEIPT_PARSER_TIMEOUT=5)
    @patch('invoices.receipt_client.requests.post')
    def test_preview(self, mock_post):
        mock_post.return_value = self.mock_response([
            parser_row(),
            parser_row(descripcion='Croquetas', cantidad=2, precio_unitario_q=100, total_q=200, comisionable=False),
        ])

        preview = receipt_client.request_preview('https://drive.test/r1', 'Perro de 3 años')

        mock_post.assert_called_once_with(
            'http://parser.test/hook',
            json={'recibo_url': 'https://drive.test/r1', 'observaciones_doctora': 'Perro de 3 años'},
            timeout=5
        )
        self.assertEqual(preview['header']['ticket_number'], 1001)
        self.assertEqual(preview['header']['sale_date'], date(2024, 3, 10))
        self.assertEqual(len(preview['items']), 2)
        self.assertFalse(preview['items'][1]['is_commissionable'])

        as_json = receipt_client.preview_to_json(preview)
        self.assertEqual(as_json['header']['sale_date'], '2024-03-10')
        self.assertEqual(as_json['items'][0]['unit_price'], '100')

    @patch('invoices.receipt_client.requests.post')
    def test_empty_list_means_no_items(self, mock_post):
        mock_post.return_value = self.mock_response([])
        with self.assertRaisesMessage(ValidationError, 'No items'):
            receipt_client.request_preview('https://drive.test/r1', 'Gato de 2 años')

    @patch('invoices.receipt_client.requests.post')
    def test_blank_observations_are_rejected_before_calling(self, mock_post):
        with self.assertRaisesMessage(ValidationError, 'Observations are required'):
            receipt_client.request_preview('https://drive.test/r1', '   ')
        mock_post.assert_not_called()

    @patch('invoices.receipt_client.requests.post')
    def test_network_failure_is_upstream_error(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('refused')
        with self.assertRaises(UpstreamError):
            receipt_client.request_preview('https://drive.test/r1', 'Gato de 2 años')

    @patch('invoices.receipt_client.requests.post')
    def test_non_2xx_is_upstream_error(self, mock_post):
        mock_post.return_value = self.mock_response({'message': 'down'}, status_code=500)
        with self.assertRaises(UpstreamError):
            receipt_client.request_preview('https://drive.test/r1', 'Gato de 2 años')

    def test_rejects_negative_and_non_finite_numbers(self):
        for bad in ({'total_q': -5}, {'precio_unitario_q': float('nan')}, {'cantidad': 'two'},
                    {'total_q_factura': float('inf')}, {'cantidad': 1.5}):
            with self.subTest(bad=bad):
                with self.assertRaises(ValidationError):
                    receipt_client.parse_rows([parser_row(**bad)])


class InvoiceServiceTest(InvoiceFixturesMixin, TestCase):
    """Test duplicate guard, period restriction and the transactional write"""

    def test_standard_user_files_draft_in_current_month(self):
        header, items = self.submission()
        invoice = services.create_invoice(
            self.doctor, header, items, source_reference='https://drive.test/r1',
            today=date(2024, 3, 20)
        )
        self.assertEqual(invoice.staff, self.doctor)
        self.assertEqual(invoice.status, Invoice.STATUS_DRAFT)
        self.assertEqual(invoice.accounting_date, date(2024, 3, 10))
        self.assertEqual(invoice.items.count(), 2)
        self.assertEqual(commissionable_income(2, 2024, staff=self.doctor), Decimal('100'))

    def test_standard_user_cannot_file_previous_month(self):
        header, items = self.submission(sale_date='2024-02-28')
        with self.assertRaises(PeriodRestrictionError):
            services.create_invoice(self.doctor, header, items, today=date(2024, 3, 1))
        self.assertEqual(Invoice.objects.count(), 0)

    def test_standard_user_cannot_choose_accounting_month(self):
        header, items = self.submission()
        invoice = services.create_invoice(
            self.doctor, header, items, accounting_month=5, accounting_year=2024,
            staff_id=self.other_doctor.pk, today=date(2024, 3, 20)
        )
        self.assertEqual(invoice.accounting_date, date(2024, 3, 10))
        self.assertEqual(invoice.staff, self.doctor)

    def test_privileged_user_assigns_accounting_month_and_staff(self):
        header, items = self.submission(sale_date='2024-01-30')
        invoice = services.create_invoice(
            self.admin, header, items, accounting_month=1, accounting_year=2024,
            staff_id=self.doctor.pk, today=date(2024, 6, 1)
        )
        self.assertEqual(invoice.accounting_date, date(2024, 2, 15))
        self.assertEqual(invoice.staff, self.doctor)
        self.assertEqual(invoice.status, Invoice.STATUS_CONFIRMED)
        self.assertTrue(invoice.is_reassigned)

    def test_duplicate_source_reference_is_conflict(self):
        header, items = self.submission(ticket=1001)
        services.create_invoice(
            self.doctor, header, items, source_reference='https://drive.test/r1', today=date(2024, 3, 20)
        )

        header, items = self.submission(ticket=1002)
        with self.assertRaises(ConflictError) as ctx:
            services.create_invoice(
                self.doctor, header, items, source_reference='https://drive.test/r1', today=date(2024, 3, 20)
            )
        self.assertEqual(ctx.exception.ticket_number, 1001)
        self.assertEqual(Invoice.objects.count(), 1)

    def test_duplicate_ticket_is_conflict(self):
        header, items = self.submission(ticket=1001)
        services.create_invoice(self.doctor, header, items, today=date(2024, 3, 20))
        with self.assertRaises(ConflictError):
            services.create_invoice(self.doctor, header, items, today=date(2024, 3, 20))

    def test_missing_category_names_the_row(self):
        header, items = self.submission()
        items[1]['category_id'] = None
        with self.assertRaisesMessage(ValidationError, 'Item 2'):
            services.create_invoice(self.doctor, header, items, today=date(2024, 3, 20))

    def test_invoice_and_items_are_written_together(self):
        header, items = self.submission()
        with patch('invoices.services.InvoiceItem.objects.create', side_effect=RuntimeError('disk full')):
            with self.assertRaises(RuntimeError):
                services.create_invoice(self.doctor, header, items, today=date(2024, 3, 20))
        self.assertEqual(Invoice.objects.count(), 0)
        self.assertEqual(InvoiceItem.objects.count(), 0)

    def test_create_is_audited(self):
        header, items = self.submission()
        invoice = services.create_invoice(self.doctor, header, items, today=date(2024, 3, 20))
        self.assertTrue(
            AuditLog.objects.filter(model_name='invoice', object_id=invoice.pk, action='create').exists()
        )

    def test_confirm_requires_privileged(self):
        invoice = self.make_invoice(20, date(2024, 3, 5), [('Consulta', 1, '50', True)])
        with self.assertRaises(PermissionDenied):
            services.confirm_invoice(self.doctor, invoice)

        services.confirm_invoice(self.admin, invoice)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_CONFIRMED)
        self.assertTrue(AuditLog.objects.filter(action='confirm', object_id=invoice.pk).exists())

    def test_delete_own_invoice_only(self):
        invoice = self.make_invoice(21, date(2024, 3, 5), [('Consulta', 1, '50', True)])
        with self.assertRaises(PermissionDenied):
            services.delete_invoice(self.other_doctor, invoice)

        services.delete_invoice(self.doctor, invoice)
        self.assertFalse(Invoice.objects.exists())


class InvoiceViewsTest(InvoiceFixturesMixin, TestCase):
    """Test the invoice JSON endpoints"""

    def setUp(self):
        super().setUp()
        self.client = Client()
        self.client.force_login(self.doctor)

    def test_categories(self):
        response = self.client.get(reverse('invoices:category_list'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual({c['name'] for c in response.json()['categories']}, {'Consulta', 'Alimentos'})

    @patch('invoices.receipt_client.requests.post')
    def test_preview(self, mock_post):
        mock_post.return_value = Mock(ok=True, status_code=200, json=Mock(return_value=[parser_row()]))
        response = self.client.post(
            reverse('invoices:preview_receipt'),
            data={'receipt_url': 'https://drive.test/r1', 'observations': 'Perro de 3 años'},
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['preview']['header']['ticket_number'], 1001)

    @patch('invoices.receipt_client.requests.post')
    def test_preview_requires_observations(self, mock_post):
        for observations in (None, '', '   '):
            data = {'receipt_url': 'https://drive.test/r1'}
            if observations is not None:
                data['observations'] = observations
            response = self.client.post(
                reverse('invoices:preview_receipt'), data=data, content_type='application/json'
            )
            self.assertEqual(response.status_code, 400)
            self.assertIn('Observations', response.json()['error'])
        mock_post.assert_not_called()

    @patch('invoices.receipt_client.requests.post')
    def test_preview_parser_down(self, mock_post):
        mock_post.side_effect = requests.Timeout('slow')
        response = self.client.post(
            reverse('invoices:preview_receipt'),
            data={'receipt_url': 'https://drive.test/r1', 'observations': 'Control'},
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 502)
        self.assertFalse(response.json()['success'])

    @patch('invoices.receipt_client.requests.post')
    def test_preview_of_known_receipt_is_conflict(self, mock_post):
        self.make_invoice(30, get_clinic_today(), [('Consulta', 1, '50', True)],
                          source_reference='https://drive.test/r1')
        response = self.client.post(
            reverse('invoices:preview_receipt'),
            data={'receipt_url': 'https://drive.test/r1', 'observations': 'Control'},
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['ticket_number'], 30)
        mock_post.assert_not_called()

    def test_confirm_invoice(self):
        header, items = self.submission(sale_date=get_clinic_today().isoformat())
        response = self.client.post(
            reverse('invoices:confirm_invoice'),
            data={'header': header, 'items': items, 'receipt_url': 'https://drive.test/r9'},
            content_type='application/json'
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['invoice']['source_reference'], 'https://drive.test/r9')

    def test_confirm_invalid_body(self):
        response = self.client.post(
            reverse('invoices:confirm_invoice'), data='not json', content_type='application/json'
        )
        self.assertEqual(response.status_code, 400)

    def test_list_only_shows_own_invoices(self):
        self.make_invoice(40, date(2024, 3, 5), [('Consulta', 1, '50', True)])
        self.make_invoice(41, date(2024, 3, 5), [('Consulta', 1, '50', True)], staff=self.other_doctor)

        response = self.client.get(reverse('invoices:invoice_list'))
        self.assertEqual([i['ticket_number'] for i in response.json()['invoices']], [40])

    def test_list_filters(self):
        self.make_invoice(42, date(2024, 3, 5), [('Vacuna', 1, '50', True)])
        self.make_invoice(43, date(2024, 4, 5), [('Croquetas', 1, '50', False)])

        response = self.client.get(reverse('invoices:invoice_list'), {'category': self.alimentos.pk})
        self.assertEqual([i['ticket_number'] for i in response.json()['invoices']], [43])

        response = self.client.get(reverse('invoices:invoice_list'), {'date_to': '2024-03-31'})
        self.assertEqual([i['ticket_number'] for i in response.json()['invoices']], [42])

    def test_calendar(self):
        self.make_invoice(44, date(2024, 3, 5), [('Consulta', 1, '50', True)])
        self.make_invoice(45, date(2024, 3, 5), [('Consulta', 1, '25', True)])

        response = self.client.get(reverse('invoices:invoice_calendar'), {'month': 2, 'year': 2024})
        day = response.json()['days']['2024-03-05']
        self.assertEqual(day['count'], 2)
        self.assertEqual(Decimal(day['total']), Decimal('75'))

    def test_draft_queue_and_confirm(self):
        invoice = self.make_invoice(46, date(2024, 3, 5), [('Consulta', 1, '50', True)])
        self.assertEqual(self.client.get(reverse('invoices:draft_queue')).status_code, 403)
        self.assertEqual(
            self.client.post(reverse('invoices:confirm_draft', args=[invoice.pk])).status_code, 403
        )

        self.client.force_login(self.admin)
        response = self.client.get(reverse('invoices:draft_queue'))
        self.assertEqual([i['ticket_number'] for i in response.json()['invoices']], [46])

        response = self.client.post(reverse('invoices:confirm_draft', args=[invoice.pk]))
        self.assertEqual(response.json()['invoice']['status'], Invoice.STATUS_CONFIRMED)

    def test_delete(self):
        invoice = self.make_invoice(47, date(2024, 3, 5), [('Consulta', 1, '50', True)])
        response = self.client.post(reverse('invoices:delete_invoice', args=[invoice.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertTrue(AuditLog.objects.filter(action='delete', model_name='invoice').exists())
