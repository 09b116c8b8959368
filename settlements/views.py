# settlements/views.py
import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from core.responses import (
    handle_domain_errors, json_error, module_permission_required, parse_json_body
)

from . import services
from .calculator import rounded_figures
from .forms import SettlementParametersForm
from .models import Settlement
from .pdf import render_statement

logger = logging.getLogger(__name__)


def _figures_to_json(figures):
    return {
        key: str(value) if key not in ('work_days', 'total_days', 'goal_reached') else value
        for key, value in rounded_figures(figures).items()
    }


def _form_error(form):
    return json_error(' '.join(str(e) for errors in form.errors.values() for e in errors))


def _visible_settlements(user):
    if user.is_privileged:
        return Settlement.objects.all()
    return Settlement.objects.filter(staff=user)


@login_required
@require_GET
@module_permission_required('settlements')
@handle_domain_errors
def period_detail(request):
    """
    Open a period: the saved inputs (or defaults) plus the figures they give
    against the current commissionable income.
    """
    form = SettlementParametersForm(request.GET, user=request.user)
    if not form.is_valid():
        return _form_error(form)

    staff = form.cleaned_data['staff']
    month, year = form.cleaned_data['month'], form.cleaned_data['year']
    parameters, settlement = services.period_parameters(staff, month, year)
    figures = services.compute_period(
        staff, month, year,
        work_days=parameters['work_days'],
        base_salary_usd=parameters['base_salary_usd'],
        exchange_rate=parameters['exchange_rate'],
        total_days=parameters['total_days'],
    )

    return JsonResponse({
        'success': True,
        'parameters': dict(
            parameters,
            base_salary_usd=str(parameters['base_salary_usd']),
            exchange_rate=str(parameters['exchange_rate']),
        ),
        'figures': _figures_to_json(figures),
        'settlement': settlement.to_dict() if settlement else None,
        'is_locked': bool(settlement and settlement.is_locked),
    })


@login_required
@require_POST
@module_permission_required('settlements')
@handle_domain_errors
def compute_settlement(request):
    """Preview the figures for edited inputs without saving"""
    form = SettlementParametersForm(parse_json_body(request), user=request.user)
    if not form.is_valid():
        return _form_error(form)

    data = form.cleaned_data
    figures = services.compute_period(data['staff'], data['month'], data['year'], **form.calculation_inputs())
    return JsonResponse({'success': True, 'figures': _figures_to_json(figures)})


@login_required
@require_POST
@module_permission_required('settlements')
@handle_domain_errors
def save_settlement(request):
    form = SettlementParametersForm(parse_json_body(request), user=request.user)
    if not form.is_valid():
        return _form_error(form)

    data = form.cleaned_data
    settlement = services.save_settlement(
        request.user,
        data['staff'],
        data['month'],
        data['year'],
        payment_method=data.get('payment_method', ''),
        **form.calculation_inputs()
    )
    return JsonResponse({
        'success': True,
        'message': f"Settlement for {settlement.period_label} saved and locked.",
        'settlement': settlement.to_dict(),
    })


@login_required
@require_POST
@module_permission_required('settlements')
@handle_domain_errors
def unlock_settlement(request, pk):
    settlement = get_object_or_404(Settlement, pk=pk)
    services.unlock_settlement(request.user, settlement)
    return JsonResponse({
        'success': True,
        'message': f"Settlement for {settlement.period_label} unlocked.",
        'settlement': settlement.to_dict(),
    })


@login_required
@require_POST
@module_permission_required('settlements')
@handle_domain_errors
def delete_settlement(request, pk):
    settlement = get_object_or_404(Settlement, pk=pk)
    label = services.delete_settlement(request.user, settlement)
    return JsonResponse({'success': True, 'message': f"Settlement for {label} deleted."})


@login_required
@require_GET
@module_permission_required('settlements')
def settlement_history(request):
    """Saved settlements with search by month name or year, plus totals"""
    staff = request.user
    staff_id = request.GET.get('staff')
    if request.user.is_privileged:
        staff = None
        if staff_id and staff_id.isdigit():
            staff = get_object_or_404(get_user_model(), pk=int(staff_id))

    settlements, totals = services.settlement_history(staff=staff, search=request.GET.get('search', ''))
    return JsonResponse({
        'settlements': [
            dict(settlement.to_dict(), staff=settlement.staff.full_name)
            for settlement in settlements
        ],
        'totals': {
            'total_gtq': str(totals['total_gtq']),
            'commission_gtq': str(totals['commission_gtq']),
            'count': totals['count'],
        },
    })


@login_required
@require_GET
@module_permission_required('settlements')
def settlement_pdf(request, pk):
    settlement = get_object_or_404(_visible_settlements(request.user).select_related('staff'), pk=pk)
    response = render_statement(settlement)
    if response is None:
        return json_error('Error generating PDF. Please try again.', status=500)
    return response
