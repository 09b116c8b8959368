# core/models.py
from decimal import Decimal, InvalidOperation

from django.db import models


class SystemSetting(models.Model):
    """Clinic-wide key/value settings editable from the admin"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    DEFAULTS = {
        'clinic_name': ('Clínica Veterinaria', 'Clinic name shown on statements'),
        'settlement_default_base_salary_usd': ('500', 'Base monthly salary (USD) offered when a period is opened for the first time'),
        'settlement_default_exchange_rate': ('7.5', 'Quetzales per US dollar offered when a period is opened for the first time'),
        'settlement_default_payment_method': ('Efectivo', 'Payment method offered when a period is opened for the first time'),
        'privileged_emails': ('', 'Comma-separated emails always treated as administrators'),
        'reports_top_services_limit': ('5', 'Number of top services shown on the dashboard'),
    }

    class Meta:
        verbose_name = 'System Setting'
        verbose_name_plural = 'System Settings'
        ordering = ['key']

    def __str__(self):
        return f"{self.key}: {self.value}"

    @classmethod
    def get_setting(cls, key, default=None):
        """Get a setting value by key"""
        try:
            return cls.objects.get(key=key, is_active=True).value
        except cls.DoesNotExist:
            return default

    @classmethod
    def get_int_setting(cls, key, default=0):
        """Get an integer setting value"""
        try:
            return int(cls.objects.get(key=key, is_active=True).value)
        except (cls.DoesNotExist, ValueError):
            return default

    @classmethod
    def get_decimal_setting(cls, key, default=Decimal('0')):
        """Get a decimal setting value, falling back on unparsable values"""
        try:
            return Decimal(cls.objects.get(key=key, is_active=True).value.strip())
        except (cls.DoesNotExist, InvalidOperation):
            return Decimal(str(default))

    @classmethod
    def get_list_setting(cls, key, default=None):
        """Get a comma-separated setting as a list of stripped values"""
        value = cls.get_setting(key)
        if value is None:
            return list(default or [])
        return [item.strip() for item in value.split(',') if item.strip()]

    @classmethod
    def set_setting(cls, key, value, description=''):
        """Set or update a setting"""
        setting, created = cls.objects.get_or_create(
            key=key,
            defaults={
                'value': str(value),
                'description': description,
                'is_active': True
            }
        )
        if not created:
            setting.value = str(value)
            if description:
                setting.description = description
            setting.is_active = True
            setting.save()
        return setting

    @classmethod
    def initialize_defaults(cls):
        """Create any missing default settings. Returns the keys created."""
        created_keys = []
        for key, (value, description) in cls.DEFAULTS.items():
            _, created = cls.objects.get_or_create(
                key=key,
                defaults={
                    'value': value,
                    'description': description,
                    'is_active': True
                }
            )
            if created:
                created_keys.append(key)
        return created_keys


class AuditLog(models.Model):
    """Who changed which invoice or settlement, and how"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('lock', 'Lock'),
        ('unlock', 'Unlock'),
        ('confirm', 'Confirm'),
    ]

    user = models.ForeignKey('users.User', on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)

    model_name = models.CharField(max_length=50)
    object_id = models.PositiveBigIntegerField(null=True, blank=True)
    object_repr = models.CharField(max_length=200, blank=True)

    changes = models.JSONField(default=dict, blank=True)
    description = models.TextField(blank=True, help_text="Human-readable description of the change")

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)

    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['model_name', 'object_id'], name='audit_object_idx'),
            models.Index(fields=['action', 'timestamp'], name='audit_action_idx'),
            models.Index(fields=['timestamp'], name='audit_timestamp_idx'),
        ]
        verbose_name = 'Audit Log'
        verbose_name_plural = 'Audit Logs'

    def __str__(self):
        user_str = self.user.username if self.user else 'System'
        return f"{user_str} {self.action} {self.model_name} at {self.timestamp}"

    @classmethod
    def log_action(cls, user, action, model_instance, changes=None, request=None, description=''):
        """
        Record an action against a model instance

        Args:
            user: User who performed the action (None for system actions)
            action: One of ACTION_CHOICES
            model_instance: The instance that was acted on
            changes: Dict of field changes {field_name: {'old': ..., 'new': ...}}
            request: HttpRequest for IP/user agent
            description: Human-readable description
        """
        log_entry = cls(
            user=user if user is not None and user.is_authenticated else None,
            action=action,
            model_name=model_instance._meta.model_name,
            object_id=model_instance.pk,
            object_repr=str(model_instance)[:200],
            changes=changes or {},
            description=description
        )

        if request is not None:
            log_entry.ip_address = cls.get_client_ip(request)
            log_entry.user_agent = request.META.get('HTTP_USER_AGENT', '')[:255]

        log_entry.save()
        return log_entry

    @staticmethod
    def get_client_ip(request):
        """Get client IP address from request"""
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')

    @staticmethod
    def format_field_value(value):
        """Format field value for storage in the changes JSON"""
        if value is None:
            return 'None'
        if isinstance(value, bool):
            return 'Yes' if value else 'No'
        if hasattr(value, 'isoformat'):
            return value.isoformat()
        return str(value)

    @classmethod
    def get_field_changes(cls, old_instance, new_instance, fields_to_ignore=None):
        """
        Compare two instances of the same model

        Returns:
            Dict of changes: {field_name: {'old': ..., 'new': ..., 'label': ...}}
        """
        if fields_to_ignore is None:
            fields_to_ignore = ['updated_at', 'created_at']

        changes = {}
        for field in new_instance._meta.concrete_fields:
            if field.name in fields_to_ignore:
                continue

            old_value = getattr(old_instance, field.attname, None)
            new_value = getattr(new_instance, field.attname, None)
            if old_value != new_value:
                changes[field.name] = {
                    'old': cls.format_field_value(old_value),
                    'new': cls.format_field_value(new_value),
                    'label': str(field.verbose_name).title(),
                }
        return changes
