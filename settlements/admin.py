# settlements/admin.py
from django.contrib import admin
from .models import Settlement


@admin.register(Settlement)
class SettlementAdmin(admin.ModelAdmin):
    list_display = ['staff', 'month', 'year', 'work_days', 'total_usd', 'total_gtq', 'goal_reached', 'is_locked']
    list_filter = ['year', 'month', 'is_locked', 'goal_reached']
    search_fields = ['staff__username', 'staff__first_name', 'staff__last_name']
    readonly_fields = [
        'prorated_salary_usd', 'commissionable_income_gtq', 'commission_gtq', 'commission_usd',
        'goal_reached', 'goal_bonus_usd', 'total_usd', 'total_gtq',
        'locked_at', 'locked_by', 'unlocked_at', 'unlocked_by', 'created_at', 'updated_at'
    ]
