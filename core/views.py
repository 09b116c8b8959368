# core/views.py
import logging

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_GET

from .models import AuditLog, SystemSetting
from .responses import handle_domain_errors, json_error, parse_json_body

logger = logging.getLogger(__name__)


@login_required
@require_GET
def audit_log_list(request):
    """Most recent audit entries, optionally narrowed to one record"""
    if not request.user.is_privileged:
        return json_error('Permission denied', status=403)

    logs = AuditLog.objects.select_related('user')

    model_name = request.GET.get('model')
    if model_name:
        logs = logs.filter(model_name=model_name)

    object_id = request.GET.get('object_id')
    if object_id and object_id.isdigit():
        logs = logs.filter(object_id=int(object_id))

    action = request.GET.get('action')
    if action:
        logs = logs.filter(action=action)

    return JsonResponse({
        'logs': [
            {
                'timestamp': log.timestamp.isoformat(),
                'user': log.user.username if log.user else None,
                'action': log.action,
                'model': log.model_name,
                'object_id': log.object_id,
                'object_repr': log.object_repr,
                'description': log.description,
                'changes': log.changes,
            }
            for log in logs[:100]
        ]
    })


@login_required
@require_http_methods(["GET", "POST"])
@handle_domain_errors
def system_settings(request):
    """Read or update clinic settings (administrators only)"""
    if not request.user.is_privileged:
        return json_error('Permission denied', status=403)

    if request.method == 'POST':
        data = parse_json_body(request)
        unknown = sorted(set(data) - set(SystemSetting.DEFAULTS))
        if unknown:
            return json_error(f"Unknown settings: {', '.join(unknown)}")

        for key, value in data.items():
            SystemSetting.set_setting(key, value, SystemSetting.DEFAULTS[key][1])
        logger.info(f"User {request.user.username} updated settings: {', '.join(sorted(data))}")

    return JsonResponse({
        'success': True,
        'settings': {
            key: SystemSetting.get_setting(key, default)
            for key, (default, _) in SystemSetting.DEFAULTS.items()
        }
    })
