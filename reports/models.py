# reports/models.py

# No models needed for reports module
# All data is queried from existing models:
# - Invoice, InvoiceItem, Category (invoices app)

# IMPORTANT NOTES FOR FUTURE REFERENCE:
# ==================================================
# 1. Dashboard figures count ONLY commissionable items.
#    Non-commissionable lines (food, pharmacy resale, etc.) are stored for the
#    record but never add to income, procedures, categories or payment methods.
#
# 2. An invoice belongs to the month of its accounting_date, falling back to
#    sale_date. Administrators can move an invoice to another month, so the
#    dashboard and the settlement for that month always agree.
#
#    To see what moved, use the reconciliation endpoint: it shows income on
#    both the sale-date and the accounting-date basis plus the reassigned
#    invoices.
#
# 3. "Customers" is the number of invoices in the month, not distinct owners
#    or pets; the receipts carry no customer identity.
#
# ==================================================
