# settlements/services.py
"""
Settlement store.

A period moves UNSAVED -> LOCKED on save, LOCKED -> EDITABLE on an explicit
(audited) unlock and back to LOCKED on the next save. Saves are upserts keyed
on (staff, month, year), so saving a period any number of times leaves one
row.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.utils import timezone

from core.exceptions import ConflictError, SettlementLockedError
from core.middleware import get_current_request
from core.models import AuditLog, SystemSetting
from core.money import coerce_amount, coerce_days
from core.utils import MONTH_NAMES, days_in_month, month_name, validate_period
from invoices.aggregation import commissionable_income, money_sum

from .calculator import calculate_settlement
from .models import Settlement

logger = logging.getLogger(__name__)

STORED_PLACES = Decimal('0.0001')
DECIMAL_FIELDS = (
    'base_salary_usd', 'prorated_salary_usd', 'commissionable_income_gtq', 'commission_gtq',
    'commission_usd', 'exchange_rate', 'goal_bonus_usd', 'total_usd', 'total_gtq',
)


def _period(month, year):
    try:
        return validate_period(month, year)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid period: {str(e)}")


def find_period(staff, month, year):
    """Saved settlement for the period, or None"""
    return Settlement.objects.filter(staff=staff, month=month, year=year).first()


def default_parameters(month, year):
    """Inputs offered when a period is opened for the first time"""
    total_days = days_in_month(month, year)
    return {
        'work_days': total_days,
        'total_days': total_days,
        'base_salary_usd': SystemSetting.get_decimal_setting('settlement_default_base_salary_usd', Decimal('500')),
        'exchange_rate': SystemSetting.get_decimal_setting('settlement_default_exchange_rate', Decimal('7.5')),
        'payment_method': SystemSetting.get_setting('settlement_default_payment_method', 'Efectivo'),
    }


def period_parameters(staff, month, year):
    """
    Inputs for opening a period: the saved ones when the period exists,
    otherwise the configured defaults.

    Returns:
        (parameters dict, Settlement or None)
    """
    month, year = _period(month, year)
    settlement = find_period(staff, month, year)
    if settlement is not None:
        return settlement.inputs(), settlement
    return default_parameters(month, year), None


def compute_period(staff, month, year, work_days, base_salary_usd, exchange_rate, total_days=None):
    """Calculate a period against the live commissionable income, without saving"""
    month, year = _period(month, year)
    if total_days in (None, ''):
        total_days = days_in_month(month, year)

    income = commissionable_income(month, year, staff=staff)
    return calculate_settlement(
        work_days=coerce_days(work_days),
        total_days=coerce_days(total_days),
        base_salary_usd=coerce_amount(base_salary_usd),
        exchange_rate=coerce_amount(exchange_rate),
        commissionable_income_gtq=income,
    )


def _stored_input(value, label):
    """Operator amount as stored, rejecting more precision than the row keeps"""
    amount = coerce_amount(value)
    if amount.normalize().as_tuple().exponent < STORED_PLACES.as_tuple().exponent:
        raise ValidationError(f"{label} accepts at most 4 decimal places.")
    return amount


def _stored(figures):
    values = dict(figures)
    for field in DECIMAL_FIELDS:
        values[field] = values[field].quantize(STORED_PLACES, rounding=ROUND_HALF_UP)
    return values


def save_settlement(user, staff, month, year, work_days, base_salary_usd, exchange_rate,
                    payment_method='', total_days=None):
    """
    Compute and store a period, then lock it.

    Raises:
        ValidationError: bad period or exchange rate, or an amount with more
            than 4 decimal places
        SettlementLockedError: the period is saved and still locked
        ConflictError: the row could not be written because of a concurrent save
    """
    month, year = _period(month, year)
    base_salary_usd = _stored_input(base_salary_usd, 'Base salary')
    exchange_rate = _stored_input(exchange_rate, 'Exchange rate')
    if exchange_rate <= 0:
        raise ValidationError('Exchange rate must be greater than zero.')

    figures = compute_period(staff, month, year, work_days, base_salary_usd, exchange_rate, total_days)
    values = _stored(figures)
    values['payment_method'] = (payment_method or '').strip()[:50]
    values['status'] = Settlement.STATUS_COMPLETED

    try:
        with transaction.atomic():
            existing = Settlement.objects.select_for_update().filter(
                staff=staff, month=month, year=year
            ).first()
            if existing is not None and existing.is_locked:
                logger.warning(f"Rejected save of locked settlement {existing.period_label} for staff #{staff.pk}")
                raise SettlementLockedError(
                    f"The settlement for {existing.period_label} is locked. Unlock it before saving changes."
                )

            values.update(is_locked=True, locked_at=timezone.now(), locked_by=user)
            settlement, created = Settlement.objects.update_or_create(
                staff=staff, month=month, year=year, defaults=values
            )
            AuditLog.log_action(
                user=user,
                action='lock',
                model_instance=settlement,
                request=get_current_request(),
                description=f"Saved and locked settlement {settlement.period_label}"
            )
    except IntegrityError as e:
        logger.error(f"Integrity error saving settlement {month}/{year} for staff #{staff.pk}: {str(e)}")
        raise ConflictError('This settlement was saved by someone else at the same time. Reload and try again.')

    logger.info(
        f"Settlement {settlement.period_label} for staff #{staff.pk} "
        f"{'created' if created else 'updated'} by {user.username}: total Q{settlement.total_gtq}"
    )
    return settlement


def unlock_settlement(user, settlement):
    """Make a saved period editable again (administrators only)"""
    if not user.is_privileged:
        raise PermissionDenied('Only administrators can unlock settlements.')
    if not settlement.is_locked:
        return settlement

    settlement.is_locked = False
    settlement.unlocked_at = timezone.now()
    settlement.unlocked_by = user
    settlement._skip_audit_log = True
    settlement.save(update_fields=['is_locked', 'unlocked_at', 'unlocked_by', 'updated_at'])

    AuditLog.log_action(
        user=user,
        action='unlock',
        model_instance=settlement,
        request=get_current_request(),
        description=f"Unlocked settlement {settlement.period_label}"
    )
    logger.info(f"Settlement {settlement.period_label} for staff #{settlement.staff_id} unlocked by {user.username}")
    return settlement


def delete_settlement(user, settlement):
    """Remove a saved period (administrators only)"""
    if not user.is_privileged:
        raise PermissionDenied('Only administrators can delete settlements.')

    label = settlement.period_label
    settlement.delete()
    logger.info(f"Settlement {label} deleted by {user.username}")
    return label


def search_months(term):
    """Zero-based months whose Spanish name contains the term"""
    term = term.lower()
    return [index for index, name in enumerate(MONTH_NAMES) if term in name.lower()]


def settlement_history(staff=None, search=''):
    """
    Saved settlements, newest period first, filtered by month name or year.

    Returns:
        (queryset, totals dict with total_gtq, commission_gtq and count)
    """
    settlements = Settlement.objects.select_related('staff')
    if staff is not None:
        settlements = settlements.filter(staff=staff)

    search = (search or '').strip()
    if search:
        query = Q(month__in=search_months(search))
        if search.isdigit():
            query |= Q(year=int(search))
        settlements = settlements.filter(query)

    settlements = settlements.order_by('-year', '-month', 'staff__first_name')
    totals = settlements.aggregate(
        total_gtq=money_sum('total_gtq'),
        commission_gtq=money_sum('commission_gtq'),
        count=Count('id'),
    )
    return settlements, totals


def statement_context(settlement):
    """Template context for the printable statement"""
    return {
        'settlement': settlement,
        'staff': settlement.staff,
        'month_name': month_name(settlement.month),
        'clinic_name': SystemSetting.get_setting('clinic_name', 'Clínica Veterinaria'),
        'generated_at': timezone.localtime(timezone.now()),
    }
