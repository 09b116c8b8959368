# settlements/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q

from core.utils import month_name


def money_field(**kwargs):
    return models.DecimalField(max_digits=14, decimal_places=4, default=0, **kwargs)


class Settlement(models.Model):
    """
    Saved monthly pay snapshot for one staff member.

    One row per (staff, month, year); month is zero-based. Saving locks the
    row; it has to be unlocked before it can be saved again.
    """
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_COMPLETED, 'Completed'),
    ]

    staff = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='settlements'
    )
    month = models.PositiveSmallIntegerField(help_text="0 = January, 11 = December")
    year = models.PositiveSmallIntegerField()

    work_days = models.PositiveSmallIntegerField(default=0)
    total_days = models.PositiveSmallIntegerField(default=0)
    base_salary_usd = money_field()
    prorated_salary_usd = money_field()
    commissionable_income_gtq = money_field()
    commission_gtq = money_field()
    commission_usd = money_field()
    exchange_rate = models.DecimalField(max_digits=10, decimal_places=4, help_text="Quetzales per US dollar")
    goal_reached = models.BooleanField(default=False)
    goal_bonus_usd = money_field()
    total_usd = money_field()
    total_gtq = money_field()
    payment_method = models.CharField(max_length=50, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_COMPLETED)

    # Lock state
    is_locked = models.BooleanField(default=False)
    locked_at = models.DateTimeField(null=True, blank=True)
    locked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='locked_settlements'
    )
    unlocked_at = models.DateTimeField(null=True, blank=True)
    unlocked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='unlocked_settlements'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-year', '-month']
        constraints = [
            models.UniqueConstraint(
                fields=['staff', 'month', 'year'],
                name='unique_settlement_per_staff_period'
            ),
            models.CheckConstraint(
                condition=Q(month__gte=0) & Q(month__lte=11),
                name='settlement_month_range'
            ),
            models.CheckConstraint(
                condition=Q(exchange_rate__gt=0),
                name='settlement_exchange_rate_positive'
            ),
        ]
        indexes = [
            models.Index(fields=['year', 'month'], name='settlement_period_idx'),
        ]

    def __str__(self):
        return f"Settlement {self.period_label} - staff #{self.staff_id}"

    @property
    def period_label(self):
        return f"{month_name(self.month)} {self.year}"

    def inputs(self):
        """Operator inputs that reproduce this settlement"""
        return {
            'work_days': self.work_days,
            'total_days': self.total_days,
            'base_salary_usd': self.base_salary_usd,
            'exchange_rate': self.exchange_rate,
            'payment_method': self.payment_method,
        }

    def to_dict(self):
        return {
            'id': self.pk,
            'staff_id': self.staff_id,
            'month': self.month,
            'year': self.year,
            'period': self.period_label,
            'work_days': self.work_days,
            'total_days': self.total_days,
            'base_salary_usd': str(self.base_salary_usd),
            'prorated_salary_usd': str(self.prorated_salary_usd),
            'commissionable_income_gtq': str(self.commissionable_income_gtq),
            'commission_gtq': str(self.commission_gtq),
            'commission_usd': str(self.commission_usd),
            'exchange_rate': str(self.exchange_rate),
            'goal_reached': self.goal_reached,
            'goal_bonus_usd': str(self.goal_bonus_usd),
            'total_usd': str(self.total_usd),
            'total_gtq': str(self.total_gtq),
            'payment_method': self.payment_method,
            'status': self.status,
            'is_locked': self.is_locked,
            'locked_at': self.locked_at.isoformat() if self.locked_at else None,
            'unlocked_at': self.unlocked_at.isoformat() if self.unlocked_at else None,
        }
