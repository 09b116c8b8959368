# invoices/services.py
"""
Invoice capture rules: duplicate detection, the current-month restriction
for standard users, and the transactional write of an invoice with its items.
"""
import logging
from datetime import date

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import IntegrityError, transaction

from core.exceptions import ConflictError, PeriodRestrictionError
from core.middleware import get_current_request
from core.models import AuditLog
from core.utils import get_clinic_today, period_of, validate_period

from .models import Category, Invoice, InvoiceItem
from .receipt_client import validate_amount, validate_date, validate_quantity

logger = logging.getLogger(__name__)

ACCOUNTING_DAY = 15


def check_duplicate_reference(source_reference):
    """Raise ConflictError when an invoice was already parsed from this receipt"""
    if not source_reference:
        return
    existing = Invoice.objects.filter(source_reference=source_reference).only('ticket_number').first()
    if existing is not None:
        logger.warning(f"Duplicate receipt {source_reference} (ticket #{existing.ticket_number})")
        raise ConflictError(
            f"This receipt was already registered as ticket #{existing.ticket_number}.",
            ticket_number=existing.ticket_number
        )


def check_duplicate_ticket(ticket_number):
    if Invoice.objects.filter(ticket_number=ticket_number).exists():
        raise ConflictError(
            f"An invoice with ticket #{ticket_number} already exists.",
            ticket_number=ticket_number
        )


def check_period(sale_date, privileged, today=None):
    """
    Standard users may only file invoices sold in the current calendar month.

    Raises:
        PeriodRestrictionError
    """
    if privileged:
        return
    today = today or get_clinic_today()
    if period_of(sale_date) != period_of(today):
        logger.warning(f"Rejected invoice dated {sale_date} outside current month {today:%Y-%m}")
        raise PeriodRestrictionError(
            "You can only register invoices from the current month. "
            "Contact an administrator to register invoices from other periods."
        )


def resolve_accounting_date(sale_date, privileged, month=None, year=None):
    """
    Accounting date for a new invoice.

    Privileged submitters may move the invoice to another month; the date is
    stored as the 15th of that month. Everyone else gets the sale date.
    """
    if not privileged or month in (None, '') or year in (None, ''):
        return sale_date
    try:
        month, year = validate_period(month, year)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid accounting period: {str(e)}")
    return date(year, month + 1, ACCOUNTING_DAY)


def clean_header(header):
    """Re-validate the header fields sent back by the browser"""
    if not isinstance(header, dict):
        raise ValidationError('Missing invoice header.')
    return {
        'ticket_number': validate_quantity(header.get('ticket_number'), 'ticket_number'),
        'sale_date': validate_date(header.get('sale_date'), 'sale_date'),
        'payment_method': str(header.get('payment_method') or '').strip()[:50],
        'subtotal': validate_amount(header.get('subtotal', 0), 'subtotal'),
        'total_amount': validate_amount(header.get('total_amount'), 'total_amount'),
        'amount_paid': validate_amount(header.get('amount_paid', 0), 'amount_paid'),
        'change_amount': validate_amount(header.get('change_amount', 0), 'change_amount'),
    }


def clean_items(items):
    """
    Re-validate the items and resolve their categories.

    Every item needs a category; the error names the offending row.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError('No items were detected in the receipt.')

    categories = Category.objects.in_bulk()
    cleaned = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"Item {index + 1} is malformed.")

        description = str(item.get('description') or '').strip()
        if not description:
            raise ValidationError(f"Item {index + 1}: description is required.")

        category_id = item.get('category_id')
        try:
            category = categories.get(int(category_id))
        except (TypeError, ValueError):
            category = None
        if category is None:
            raise ValidationError(f"Item {index + 1} ({description}): please select a category.")

        cleaned.append({
            'description': description[:255],
            'quantity': validate_quantity(item.get('quantity'), 'quantity', index),
            'unit_price': validate_amount(item.get('unit_price'), 'unit_price', index),
            'is_commissionable': bool(item.get('is_commissionable')),
            'category': category,
        })
    return cleaned


def resolve_staff(submitter, staff_id=None):
    """Privileged submitters may credit the invoice to another staff member"""
    if staff_id in (None, '') or not submitter.is_privileged:
        return submitter
    try:
        return get_user_model().objects.get(pk=int(staff_id), is_active=True)
    except (TypeError, ValueError, get_user_model().DoesNotExist):
        raise ValidationError('Selected staff member does not exist.')


def create_invoice(submitter, header, items, source_reference='', observations='',
                   accounting_month=None, accounting_year=None, staff_id=None, today=None):
    """
    Store an invoice and its items in one transaction.

    Standard submitters create drafts for the validation queue; invoices filed
    by administrators are confirmed immediately.

    Raises:
        ValidationError: bad header, items or period
        PeriodRestrictionError: sale date outside the current month
        ConflictError: receipt or ticket already registered
    """
    header = clean_header(header)
    items = clean_items(items)
    privileged = submitter.is_privileged
    source_reference = (source_reference or '').strip() or None

    check_period(header['sale_date'], privileged, today=today)
    accounting_date = resolve_accounting_date(
        header['sale_date'], privileged, accounting_month, accounting_year
    )
    staff = resolve_staff(submitter, staff_id)

    check_duplicate_reference(source_reference)
    check_duplicate_ticket(header['ticket_number'])

    try:
        with transaction.atomic():
            invoice = Invoice.objects.create(
                accounting_date=accounting_date,
                staff=staff,
                observations=(observations or '').strip(),
                source_reference=source_reference,
                status=Invoice.STATUS_CONFIRMED if privileged else Invoice.STATUS_DRAFT,
                created_by=submitter,
                **header
            )
            for item in items:
                InvoiceItem.objects.create(invoice=invoice, **item)
    except IntegrityError:
        # Lost a race against a concurrent submission of the same receipt
        logger.warning(f"Integrity error storing ticket #{header['ticket_number']}")
        check_duplicate_reference(source_reference)
        raise ConflictError(
            f"An invoice with ticket #{header['ticket_number']} already exists.",
            ticket_number=header['ticket_number']
        )

    logger.info(
        f"Invoice ticket #{invoice.ticket_number} stored for {staff.username} "
        f"with {len(items)} items (accounting date {accounting_date})"
    )
    return invoice


def confirm_invoice(user, invoice):
    """Move a draft out of the validation queue (administrators only)"""
    if not user.is_privileged:
        raise PermissionDenied('Only administrators can confirm invoices.')
    if invoice.status == Invoice.STATUS_CONFIRMED:
        return invoice

    invoice._skip_audit_log = True
    invoice.confirm()
    AuditLog.log_action(
        user=user,
        action='confirm',
        model_instance=invoice,
        request=get_current_request(),
        description=f"Confirmed invoice ticket #{invoice.ticket_number}"
    )
    logger.info(f"Invoice ticket #{invoice.ticket_number} confirmed by {user.username}")
    return invoice


def delete_invoice(user, invoice):
    """Delete an invoice and its items; allowed for the owner or an administrator"""
    if not (user.is_privileged or invoice.staff_id == user.pk):
        raise PermissionDenied('You can only delete your own invoices.')

    ticket_number = invoice.ticket_number
    invoice.delete()
    logger.info(f"Invoice ticket #{ticket_number} deleted by {user.username}")
    return ticket_number
