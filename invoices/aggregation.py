# invoices/aggregation.py
"""
Commissionable income queries.

Only items flagged commissionable count. An invoice belongs to the month of
its accounting date, falling back to the sale date; the sale-date basis is
kept available so both views of a month can be rebuilt for audit.
"""
from decimal import Decimal

from django.db.models import Sum, Value, DecimalField
from django.db.models.functions import Coalesce

from core.utils import month_bounds

from .models import Invoice, InvoiceItem

BASIS_ACCOUNTING = 'accounting'
BASIS_SALE = 'sale'

MONEY_FIELD = DecimalField(max_digits=14, decimal_places=2)


def money_sum(field_name):
    """Sum expression that yields 0 instead of NULL on empty sets"""
    return Coalesce(Sum(field_name), Value(Decimal('0')), output_field=MONEY_FIELD)


def commissionable_items(month, year, staff=None, basis=BASIS_ACCOUNTING):
    """
    Commissionable InvoiceItems belonging to a zero-based month.

    Args:
        month: 0-11
        year: calendar year
        staff: User to restrict to, or None for every staff member
        basis: BASIS_ACCOUNTING (settlement view) or BASIS_SALE (audit view)
    """
    first_day, last_day = month_bounds(month, year)
    items = InvoiceItem.objects.filter(is_commissionable=True)

    if basis == BASIS_SALE:
        items = items.filter(invoice__sale_date__gte=first_day, invoice__sale_date__lte=last_day)
    elif basis == BASIS_ACCOUNTING:
        items = items.annotate(
            period_date=Coalesce('invoice__accounting_date', 'invoice__sale_date')
        ).filter(period_date__gte=first_day, period_date__lte=last_day)
    else:
        raise ValueError(f"Unknown aggregation basis: {basis}")

    if staff is not None:
        items = items.filter(invoice__staff=staff)
    return items


def commissionable_income(month, year, staff=None, basis=BASIS_ACCOUNTING):
    """Total commissionable income (GTQ) for a month; Decimal('0') when empty"""
    return commissionable_items(month, year, staff=staff, basis=basis).aggregate(
        total=money_sum('line_total')
    )['total']


def reassigned_invoices(month, year, staff=None):
    """
    Invoices whose accounting month differs from their sale month and that
    touch the given month on either side.
    """
    first_day, last_day = month_bounds(month, year)
    invoices = Invoice.objects.for_staff(staff).with_period_date()

    credited_here = invoices.filter(period_date__gte=first_day, period_date__lte=last_day).exclude(
        sale_date__gte=first_day, sale_date__lte=last_day
    )
    sold_here = invoices.filter(sale_date__gte=first_day, sale_date__lte=last_day).exclude(
        period_date__gte=first_day, period_date__lte=last_day
    )
    return credited_here, sold_here
