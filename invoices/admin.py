# invoices/admin.py
from django.contrib import admin
from .models import Category, Invoice, InvoiceItem


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'display_order', 'updated_at']
    search_fields = ['name', 'description']
    ordering = ['display_order', 'name']


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ['line_total']
    fields = ['description', 'quantity', 'unit_price', 'line_total', 'is_commissionable', 'category']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = [
        'ticket_number', 'sale_date', 'accounting_date', 'staff',
        'payment_method', 'total_amount', 'status'
    ]
    list_filter = ['status', 'payment_method', 'staff']
    search_fields = ['ticket_number', 'observations', 'source_reference', 'items__description']
    date_hierarchy = 'sale_date'
    readonly_fields = ['created_by', 'created_at', 'updated_at']
    inlines = [InvoiceItemInline]
