# reports/views.py
from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from core.responses import json_error, module_permission_required
from core.utils import get_clinic_today, period_of, validate_period

from . import metrics


def _report_scope(request):
    """
    Resolve (month, year, staff) from the query string.

    Doctors only ever see their own figures; administrators see the whole
    clinic unless they pick a staff member.
    """
    current_month, current_year = period_of(get_clinic_today())
    month, year = validate_period(
        request.GET.get('month', current_month),
        request.GET.get('year', current_year)
    )

    if not request.user.is_privileged:
        return month, year, request.user

    staff_id = request.GET.get('staff')
    if staff_id:
        return month, year, get_user_model().objects.get(pk=int(staff_id))
    return month, year, None


@login_required
@require_GET
@module_permission_required('reports')
def dashboard(request):
    """Monthly KPIs: income, commission, goal progress, trend and breakdowns"""
    try:
        month, year, staff = _report_scope(request)
    except (TypeError, ValueError, get_user_model().DoesNotExist):
        return json_error('Invalid month, year or staff member.')

    return JsonResponse(dict(
        metrics.dashboard_metrics(month, year, staff=staff),
        staff_id=staff.pk if staff else None,
    ))


@login_required
@require_GET
@module_permission_required('reports')
def reconciliation(request):
    """Sale-date and accounting-date income of a month, with reassigned invoices"""
    try:
        month, year, staff = _report_scope(request)
    except (TypeError, ValueError, get_user_model().DoesNotExist):
        return json_error('Invalid month, year or staff member.')

    return JsonResponse(dict(
        metrics.reconciliation(month, year, staff=staff),
        staff_id=staff.pk if staff else None,
    ))
