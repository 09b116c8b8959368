# users/views.py
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from .models import User
from .roles import resolve_role


@login_required
@require_GET
def current_profile(request):
    """Profile card for the signed-in staff member"""
    user = request.user
    return JsonResponse({
        'id': user.pk,
        'username': user.username,
        'full_name': user.full_name,
        'email': user.email,
        'role': resolve_role(user),
        'permissions': {
            module: user.has_permission(module)
            for module in ('dashboard', 'invoices', 'settlements', 'reports')
        },
    })


@login_required
@require_GET
def staff_list(request):
    """Doctors that can be credited with invoices and settlements"""
    if not request.user.is_privileged:
        return JsonResponse({'success': False, 'error': 'Permission denied'}, status=403)

    doctors = User.objects.filter(is_active=True, is_active_doctor=True).order_by('first_name', 'last_name')
    return JsonResponse({
        'staff': [
            {'id': doctor.pk, 'full_name': doctor.full_name, 'email': doctor.email}
            for doctor in doctors
        ]
    })
