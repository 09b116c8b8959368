# core/signals.py
from django.db.models.signals import post_save, pre_save, post_delete
from django.dispatch import receiver

from .middleware import get_current_user, get_current_request

# Only the business records are audited; everything else is noise
AUDITED_MODELS = ('invoice', 'settlement')

# Track original state before save
_original_instances = {}


def _is_audited(sender):
    return sender._meta.model_name in AUDITED_MODELS


def _instance_key(sender, instance):
    return f"{sender.__name__}_{instance.pk}"


@receiver(pre_save, dispatch_uid='store_original_instance')
def store_original_instance(sender, instance, raw=False, **kwargs):
    """Store original instance before save for comparison"""
    if raw or not _is_audited(sender) or not instance.pk:
        return

    original = sender.objects.filter(pk=instance.pk).first()
    if original is not None:
        _original_instances[_instance_key(sender, instance)] = original


@receiver(post_save, dispatch_uid='log_model_save')
def log_model_save(sender, instance, created, raw=False, **kwargs):
    """Automatically log create and update actions"""
    if raw or not _is_audited(sender):
        return

    original = _original_instances.pop(_instance_key(sender, instance), None)

    if getattr(instance, '_skip_audit_log', False):
        return

    from .models import AuditLog

    if created:
        action = 'create'
        changes = {}
        description = f"Created {sender._meta.verbose_name}: {instance}"
    else:
        action = 'update'
        changes = AuditLog.get_field_changes(original, instance) if original else {}
        if original and not changes:
            return
        description = f"Updated {sender._meta.verbose_name}: {instance}"

    AuditLog.log_action(
        user=get_current_user(),
        action=action,
        model_instance=instance,
        changes=changes,
        request=get_current_request(),
        description=description
    )


@receiver(post_delete, dispatch_uid='log_model_delete')
def log_model_delete(sender, instance, **kwargs):
    """Log deletions of audited records"""
    if not _is_audited(sender) or getattr(instance, '_skip_audit_log', False):
        return

    from .models import AuditLog

    AuditLog.log_action(
        user=get_current_user(),
        action='delete',
        model_instance=instance,
        request=get_current_request(),
        description=f"Deleted {sender._meta.verbose_name}: {instance}"
    )
