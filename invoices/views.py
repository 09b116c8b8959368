# invoices/views.py
import logging
from collections import OrderedDict

from django.contrib.auth.decorators import login_required
from django.core.paginator import Paginator
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from core.money import ZERO
from core.responses import (
    handle_domain_errors, json_error, module_permission_required, parse_json_body
)
from core.utils import get_clinic_today, month_bounds, month_name, period_of

from . import receipt_client, services
from .forms import InvoiceFilterForm, PeriodForm, ReceiptPreviewForm
from .models import Category, Invoice

logger = logging.getLogger(__name__)

INVOICES_PER_PAGE = 15


@login_required
@require_GET
@module_permission_required('invoices')
def category_list(request):
    """Categories offered when classifying invoice items"""
    return JsonResponse({'categories': Category.catalog()})


@login_required
@require_POST
@module_permission_required('invoices')
@handle_domain_errors
def preview_receipt(request):
    """
    Send a receipt to the parser and return the detected header and items.

    Nothing is stored; the operator reviews the preview, picks a category per
    item and posts it back to confirm_invoice.
    """
    form = ReceiptPreviewForm(parse_json_body(request))
    if not form.is_valid():
        if 'receipt_url' in form.errors:
            return json_error('Please provide a valid receipt link.')
        return json_error(' '.join(form.errors['observations']))

    receipt_url = form.cleaned_data['receipt_url']
    services.check_duplicate_reference(receipt_url)

    preview = receipt_client.request_preview(receipt_url, form.cleaned_data['observations'])
    return JsonResponse({
        'success': True,
        'preview': receipt_client.preview_to_json(preview),
        'categories': Category.catalog(),
    })


@login_required
@require_POST
@module_permission_required('invoices')
@handle_domain_errors
def confirm_invoice(request):
    """Store a reviewed preview as an invoice"""
    data = parse_json_body(request)

    invoice = services.create_invoice(
        submitter=request.user,
        header=data.get('header'),
        items=data.get('items'),
        source_reference=data.get('receipt_url'),
        observations=data.get('observations', ''),
        accounting_month=data.get('accounting_month'),
        accounting_year=data.get('accounting_year'),
        staff_id=data.get('staff_id'),
    )
    return JsonResponse({
        'success': True,
        'message': f"Invoice #{invoice.ticket_number} registered successfully.",
        'invoice': invoice.to_dict(),
    }, status=201)


@login_required
@require_GET
@module_permission_required('invoices')
def invoice_list(request):
    """Invoices visible to the user, with search, category and date filters"""
    form = InvoiceFilterForm(request.GET)
    if not form.is_valid():
        return json_error(' '.join(str(e) for errors in form.errors.values() for e in errors))

    invoices = form.filter(
        Invoice.objects.visible_to(request.user).select_related('staff')
    ).prefetch_related('items__category')

    paginator = Paginator(invoices, INVOICES_PER_PAGE)
    page = paginator.get_page(request.GET.get('page'))

    return JsonResponse({
        'invoices': [
            dict(invoice.to_dict(), staff=invoice.staff.full_name)
            for invoice in page.object_list
        ],
        'page': page.number,
        'num_pages': paginator.num_pages,
        'count': paginator.count,
    })


@login_required
@require_GET
@module_permission_required('invoices')
def invoice_detail(request, pk):
    invoice = get_object_or_404(Invoice.objects.visible_to(request.user), pk=pk)
    return JsonResponse({'invoice': invoice.to_dict()})


@login_required
@require_GET
@module_permission_required('invoices')
def invoice_calendar(request):
    """Invoice count and total per day for one month (sale date basis)"""
    today = get_clinic_today()
    current_month, current_year = period_of(today)
    form = PeriodForm({
        'month': request.GET.get('month', current_month),
        'year': request.GET.get('year', current_year),
    })
    if not form.is_valid():
        return json_error('Invalid month or year.')

    month, year = form.cleaned_data['month'], form.cleaned_data['year']
    first_day, last_day = month_bounds(month, year)
    invoices = Invoice.objects.visible_to(request.user).in_sale_month(month, year).order_by('sale_date')

    days = OrderedDict()
    for invoice in invoices:
        day = days.setdefault(invoice.sale_date.isoformat(), {'count': 0, 'total': ZERO, 'tickets': []})
        day['count'] += 1
        day['total'] += invoice.total_amount
        day['tickets'].append(invoice.ticket_number)

    return JsonResponse({
        'month': month,
        'year': year,
        'month_name': month_name(month),
        'first_day': first_day.isoformat(),
        'last_day': last_day.isoformat(),
        'days': {
            key: dict(value, total=str(value['total']))
            for key, value in days.items()
        },
    })


@login_required
@require_GET
@module_permission_required('invoices')
def draft_queue(request):
    """Draft invoices awaiting confirmation (administrators only)"""
    if not request.user.is_privileged:
        return json_error('Permission denied', status=403)

    drafts = Invoice.objects.filter(status=Invoice.STATUS_DRAFT).select_related('staff').order_by('sale_date')
    return JsonResponse({
        'invoices': [
            dict(invoice.to_dict(include_items=False), staff=invoice.staff.full_name)
            for invoice in drafts
        ]
    })


@login_required
@require_POST
@module_permission_required('invoices')
@handle_domain_errors
def confirm_draft(request, pk):
    invoice = get_object_or_404(Invoice, pk=pk)
    services.confirm_invoice(request.user, invoice)
    return JsonResponse({
        'success': True,
        'message': f"Invoice #{invoice.ticket_number} confirmed.",
        'invoice': invoice.to_dict(include_items=False),
    })


@login_required
@require_POST
@module_permission_required('invoices')
@handle_domain_errors
def delete_invoice(request, pk):
    invoice = get_object_or_404(Invoice.objects.visible_to(request.user), pk=pk)
    ticket_number = services.delete_invoice(request.user, invoice)
    return JsonResponse({
        'success': True,
        'message': f"Invoice #{ticket_number} deleted successfully.",
    })
