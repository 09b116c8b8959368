# invoices/models.py
import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models, DatabaseError
from django.db.models import Sum, Q, Value
from django.db.models.functions import Coalesce

from core.money import round_money
from core.utils import month_bounds, period_of

logger = logging.getLogger(__name__)


class Category(models.Model):
    """Accounting category assigned to every invoice line"""
    FALLBACK_NAMES = ['Consulta', 'Farmacia', 'Vacunación', 'Cirugía', 'Alimentos', 'Estética']

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    display_order = models.PositiveIntegerField(
        default=0,
        help_text="Order in which categories are displayed (lower numbers first)"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['display_order', 'name']
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'

    def __str__(self):
        return self.name

    def clean(self):
        """Validate category name is unique (case-insensitive)"""
        if self.name:
            existing = Category.objects.filter(name__iexact=self.name)
            if self.pk:
                existing = existing.exclude(pk=self.pk)

            if existing.exists():
                raise ValidationError({
                    'name': f'A category with the name "{self.name}" already exists.'
                })

    @classmethod
    def catalog(cls):
        """
        Categories offered when classifying invoice lines, as
        [{'id': ..., 'name': ...}]. Falls back to the built-in list
        (with id None) when the table cannot be read.
        """
        try:
            return [{'id': c.pk, 'name': c.name} for c in cls.objects.order_by('name')]
        except DatabaseError as e:
            logger.error(f"Error fetching categories, using fallback list: {str(e)}")
            return [{'id': None, 'name': name} for name in cls.FALLBACK_NAMES]


class InvoiceQuerySet(models.QuerySet):

    def with_period_date(self):
        """Annotate the date that decides the settlement period"""
        return self.annotate(period_date=Coalesce('accounting_date', 'sale_date'))

    def in_accounting_month(self, month, year):
        first_day, last_day = month_bounds(month, year)
        return self.with_period_date().filter(period_date__gte=first_day, period_date__lte=last_day)

    def in_sale_month(self, month, year):
        first_day, last_day = month_bounds(month, year)
        return self.filter(sale_date__gte=first_day, sale_date__lte=last_day)

    def for_staff(self, staff):
        """Restrict to one staff member; None means all staff"""
        if staff is None:
            return self
        return self.filter(staff=staff)

    def visible_to(self, user):
        """Administrators see every invoice, doctors only their own"""
        if user.is_privileged:
            return self
        return self.filter(staff=user)

    def search(self, term):
        term = (term or '').strip()
        if not term:
            return self
        query = Q(observations__icontains=term) | Q(items__description__icontains=term)
        if term.isdigit():
            query |= Q(ticket_number=int(term))
        return self.filter(query).distinct()


class Invoice(models.Model):
    """Captured sales receipt; owns its line items"""
    STATUS_DRAFT = 'draft'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_CONFIRMED, 'Confirmed'),
    ]

    PAYMENT_CASH = 'Efectivo'
    PAYMENT_CARD = 'Tarjeta'
    PAYMENT_TRANSFER = 'Transferencia'
    PAYMENT_METHOD_CHOICES = [
        (PAYMENT_CASH, 'Efectivo'),
        (PAYMENT_CARD, 'Tarjeta'),
        (PAYMENT_TRANSFER, 'Transferencia'),
    ]

    ticket_number = models.PositiveIntegerField(unique=True)
    sale_date = models.DateField()
    accounting_date = models.DateField(
        null=True,
        blank=True,
        help_text="Date that decides the settlement month (defaults to the sale date)"
    )
    payment_method = models.CharField(max_length=50, blank=True)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    change_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    staff = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='invoices',
        help_text="Staff member credited with this sale"
    )
    observations = models.TextField(blank=True)
    source_reference = models.CharField(
        max_length=500,
        unique=True,
        null=True,
        blank=True,
        help_text="Receipt link the invoice was parsed from"
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='submitted_invoices'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InvoiceQuerySet.as_manager()

    class Meta:
        ordering = ['-sale_date', '-ticket_number']
        indexes = [
            models.Index(fields=['sale_date'], name='invoice_sale_date_idx'),
            models.Index(fields=['accounting_date'], name='invoice_accounting_date_idx'),
            models.Index(fields=['staff', 'accounting_date'], name='invoice_staff_acct_idx'),
            models.Index(fields=['status'], name='invoice_status_idx'),
        ]

    def __str__(self):
        return f"Ticket #{self.ticket_number} - {self.sale_date}"

    def save(self, *args, **kwargs):
        if self.accounting_date is None:
            self.accounting_date = self.sale_date
        super().save(*args, **kwargs)

    @property
    def settlement_date(self):
        return self.accounting_date or self.sale_date

    @property
    def is_reassigned(self):
        """Credited to a different month than the one it was sold in"""
        return period_of(self.settlement_date) != period_of(self.sale_date)

    @property
    def is_paid(self):
        return (self.amount_paid or Decimal('0')) >= self.total_amount

    @property
    def commissionable_total(self):
        """Sum of commissionable line totals"""
        return self.items.filter(is_commissionable=True).aggregate(
            total=Coalesce(
                Sum('line_total'),
                Value(Decimal('0')),
                output_field=models.DecimalField(max_digits=14, decimal_places=2)
            )
        )['total']

    def confirm(self):
        self.status = self.STATUS_CONFIRMED
        self.save(update_fields=['status', 'updated_at'])

    def to_dict(self, include_items=True):
        data = {
            'id': self.pk,
            'ticket_number': self.ticket_number,
            'sale_date': self.sale_date.isoformat(),
            'accounting_date': self.settlement_date.isoformat(),
            'is_reassigned': self.is_reassigned,
            'payment_method': self.payment_method,
            'subtotal': str(self.subtotal),
            'total_amount': str(self.total_amount),
            'amount_paid': str(self.amount_paid),
            'change_amount': str(self.change_amount),
            'is_paid': self.is_paid,
            'staff_id': self.staff_id,
            'observations': self.observations,
            'source_reference': self.source_reference,
            'status': self.status,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items.all()]
        return data


class InvoiceItem(models.Model):
    """One line of an invoice; only commissionable lines count toward pay"""
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    description = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))]
    )
    line_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="quantity × unit price, rounded to 2 decimals"
    )
    is_commissionable = models.BooleanField(default=False)
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='items'
    )

    class Meta:
        ordering = ['id']
        indexes = [
            models.Index(fields=['invoice'], name='invoice_item_invoice_idx'),
            models.Index(fields=['is_commissionable'], name='invoice_item_comm_idx'),
        ]

    def __str__(self):
        return f"{self.description} x{self.quantity} @ Q{self.unit_price}"

    @staticmethod
    def compute_line_total(quantity, unit_price):
        return round_money(Decimal(quantity) * Decimal(unit_price))

    def save(self, *args, **kwargs):
        self.line_total = self.compute_line_total(self.quantity, self.unit_price)
        super().save(*args, **kwargs)

    def to_dict(self):
        return {
            'id': self.pk,
            'description': self.description,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
            'line_total': str(self.line_total),
            'is_commissionable': self.is_commissionable,
            'category_id': self.category_id,
            'category': self.category.name if self.category_id else None,
        }
