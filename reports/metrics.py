# reports/metrics.py
"""
Monthly dashboard figures.

Every figure follows the settlement rule: only commissionable items count,
and invoices belong to the month of their accounting date (falling back to
the sale date). Non-commissionable items are kept for the record only.
"""
from collections import OrderedDict
from datetime import timedelta
from decimal import Decimal

from django.db.models import CharField, Count, IntegerField, Sum, Value
from django.db.models.functions import Coalesce

from core.models import SystemSetting
from core.money import ZERO, round_money
from core.utils import month_bounds, month_name, previous_period
from invoices.aggregation import (
    BASIS_ACCOUNTING, BASIS_SALE, commissionable_income, commissionable_items, money_sum, reassigned_invoices
)
from invoices.models import Invoice
from settlements.calculator import COMMISSION_RATE, GOAL_THRESHOLD_GTQ

UNCATEGORIZED = 'General'
UNSPECIFIED_PAYMENT = 'No especificado'


def _money(value):
    return str(round_money(value))


def goal_progress(income):
    """Percentage of the monthly goal reached, capped at 100"""
    if GOAL_THRESHOLD_GTQ <= 0:
        return Decimal('100')
    return min(income / GOAL_THRESHOLD_GTQ * 100, Decimal('100'))


def growth_percentage(current, previous):
    """Month-over-month change in percent; None when there is nothing to compare to"""
    if previous <= 0:
        return None
    return (current - previous) / previous * 100


def category_mix(items):
    """Commissionable income per category"""
    rows = items.annotate(
        category_name=Coalesce('category__name', Value(UNCATEGORIZED), output_field=CharField())
    ).values('category_name').annotate(total=money_sum('line_total')).order_by('-total', 'category_name')
    return [{'name': row['category_name'], 'value': _money(row['total'])} for row in rows]


def daily_trend(items, month, year):
    """Commissionable income for every day of the month, zeros included"""
    first_day, last_day = month_bounds(month, year)
    trend = OrderedDict()
    day = first_day
    while day <= last_day:
        trend[day] = ZERO
        day += timedelta(days=1)

    rows = items.values('period_date').annotate(total=money_sum('line_total'))
    for row in rows:
        if row['period_date'] in trend:
            trend[row['period_date']] += row['total']

    return [{'date': day.isoformat(), 'income': _money(total)} for day, total in trend.items()]


def payment_methods(items):
    """Commissionable income grouped by the invoice's payment method"""
    totals = OrderedDict()
    rows = items.values('invoice__payment_method').annotate(
        total=money_sum('line_total')
    ).order_by('-total')
    for row in rows:
        name = row['invoice__payment_method'] or UNSPECIFIED_PAYMENT
        totals[name] = totals.get(name, ZERO) + row['total']
    return [{'name': name, 'value': _money(total)} for name, total in totals.items()]


def top_products(items, limit):
    """Best-selling commissionable items by revenue"""
    rows = items.values('description').annotate(
        count=Coalesce(Sum('quantity'), Value(0), output_field=IntegerField()),
        revenue=money_sum('line_total'),
    ).order_by('-revenue', 'description')[:limit]
    return [
        {'name': row['description'], 'count': row['count'], 'revenue': _money(row['revenue'])}
        for row in rows
    ]


def dashboard_metrics(month, year, staff=None):
    """
    All dashboard figures for a zero-based month.

    Args:
        staff: restrict to one staff member, or None for the whole clinic
    """
    items = commissionable_items(month, year, staff=staff)

    totals = items.aggregate(
        income=money_sum('line_total'),
        procedures=Coalesce(Sum('quantity'), Value(0), output_field=IntegerField()),
    )
    income = totals['income']
    customers = Invoice.objects.for_staff(staff).in_accounting_month(month, year).aggregate(
        count=Count('id')
    )['count']

    previous_month, previous_year = previous_period(month, year)
    previous_income = commissionable_income(previous_month, previous_year, staff=staff)
    growth = growth_percentage(income, previous_income)
    limit = SystemSetting.get_int_setting('reports_top_services_limit', 5)

    return {
        'month': month,
        'year': year,
        'month_name': month_name(month),
        'total_income': _money(income),
        'total_commission': _money(income * COMMISSION_RATE),
        'total_procedures': totals['procedures'],
        'total_customers': customers,
        'average_ticket': _money(income / customers) if customers else _money(ZERO),
        'goal_threshold': _money(GOAL_THRESHOLD_GTQ),
        'goal_progress': _money(goal_progress(income)),
        'goal_reached': income >= GOAL_THRESHOLD_GTQ,
        'previous_month_income': _money(previous_income),
        'growth_percentage': _money(growth) if growth is not None else None,
        'category_data': category_mix(items),
        'revenue_trend': daily_trend(items, month, year),
        'payment_methods': payment_methods(items),
        'top_products': top_products(items, limit),
    }


def reconciliation(month, year, staff=None):
    """
    Sale-date view versus accounting-date view of one month, with the
    invoices that were moved in or out of it.
    """
    moved_in, moved_out = reassigned_invoices(month, year, staff=staff)

    def describe(invoice):
        return {
            'id': invoice.pk,
            'ticket_number': invoice.ticket_number,
            'sale_date': invoice.sale_date.isoformat(),
            'accounting_date': invoice.settlement_date.isoformat(),
            'staff_id': invoice.staff_id,
            'commissionable_total': _money(invoice.commissionable_total),
        }

    return {
        'month': month,
        'year': year,
        'accounting_income': _money(commissionable_income(month, year, staff=staff, basis=BASIS_ACCOUNTING)),
        'sale_income': _money(commissionable_income(month, year, staff=staff, basis=BASIS_SALE)),
        'moved_in': [describe(invoice) for invoice in moved_in.order_by('sale_date')],
        'moved_out': [describe(invoice) for invoice in moved_out.order_by('sale_date')],
    }
