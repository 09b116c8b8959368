# invoices/forms.py
from django import forms

from .models import Category, Invoice


class ReceiptPreviewForm(forms.Form):
    """Receipt link plus free-text notes sent to the receipt parser"""
    receipt_url = forms.URLField(max_length=500, assume_scheme='https')
    observations = forms.CharField(
        max_length=2000,
        error_messages={'required': 'Observations are required.'}
    )

    def clean_receipt_url(self):
        return self.cleaned_data['receipt_url'].strip()


class InvoiceFilterForm(forms.Form):
    """Query-string filters for the invoice list"""
    search = forms.CharField(required=False, max_length=100)
    category = forms.ModelChoiceField(queryset=Category.objects.all(), required=False)
    date_from = forms.DateField(required=False)
    date_to = forms.DateField(required=False)
    status = forms.ChoiceField(
        choices=[('', 'All')] + Invoice.STATUS_CHOICES,
        required=False
    )
    staff = forms.IntegerField(required=False, min_value=1)

    def clean(self):
        cleaned_data = super().clean()
        date_from = cleaned_data.get('date_from')
        date_to = cleaned_data.get('date_to')

        if date_from and date_to and date_from > date_to:
            raise forms.ValidationError('Start date cannot be after end date.')

        return cleaned_data

    def filter(self, queryset):
        """Apply the cleaned filters to an Invoice queryset"""
        data = self.cleaned_data
        queryset = queryset.search(data.get('search'))

        if data.get('category'):
            queryset = queryset.filter(items__category=data['category']).distinct()
        if data.get('date_from'):
            queryset = queryset.filter(sale_date__gte=data['date_from'])
        if data.get('date_to'):
            queryset = queryset.filter(sale_date__lte=data['date_to'])
        if data.get('status'):
            queryset = queryset.filter(status=data['status'])
        if data.get('staff'):
            queryset = queryset.filter(staff_id=data['staff'])
        return queryset


class PeriodForm(forms.Form):
    """Zero-based month and year taken from the query string"""
    month = forms.IntegerField(min_value=0, max_value=11)
    year = forms.IntegerField(min_value=2000, max_value=2100)
