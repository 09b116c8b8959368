# settlements/forms.py
from django import forms
from django.contrib.auth import get_user_model


class SettlementParametersForm(forms.Form):
    """
    Period and operator inputs for computing or saving a settlement.

    Amounts and day counts stay as text: blanks, garbage and negatives are
    clamped to zero by the calculator's callers rather than rejected here.
    """
    staff = forms.ModelChoiceField(queryset=get_user_model().objects.filter(is_active=True), required=False)
    month = forms.IntegerField(min_value=0, max_value=11)
    year = forms.IntegerField(min_value=2000, max_value=2100)
    work_days = forms.CharField(required=False)
    total_days = forms.CharField(required=False)
    base_salary_usd = forms.CharField(required=False)
    exchange_rate = forms.CharField(required=False)
    payment_method = forms.CharField(required=False, max_length=50)

    def __init__(self, *args, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = user

    def clean_staff(self):
        """Only administrators can work on someone else's settlement"""
        staff = self.cleaned_data.get('staff')
        if staff is None or self.user is None:
            return staff or self.user
        if staff != self.user and not self.user.is_privileged:
            raise forms.ValidationError('You can only view your own settlements.')
        return staff

    def calculation_inputs(self):
        data = self.cleaned_data
        return {
            'work_days': data.get('work_days'),
            'total_days': data.get('total_days') or None,
            'base_salary_usd': data.get('base_salary_usd'),
            'exchange_rate': data.get('exchange_rate'),
        }
