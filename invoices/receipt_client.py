# invoices/receipt_client.py
"""
Client for the external receipt parsing webhook.

The webhook receives a receipt link plus the doctor's observations and answers
with one JSON row per detected line item; the invoice header fields are
repeated on every row. Its output is untrusted: every number is checked to be
finite and non-negative before anything is stored.
"""
import logging
import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

import requests
from django.conf import settings
from django.core.exceptions import ValidationError

from core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

CONNECTION_ERROR_MESSAGE = 'Could not connect to the receipt analysis server. Please try again.'
NO_ITEMS_MESSAGE = 'No items were detected in the receipt.'


def validate_amount(value, field, row=None):
    """Return value as a finite, non-negative Decimal or raise ValidationError"""
    where = f" (item {row + 1})" if row is not None else ''
    if value is None or value == '' or isinstance(value, bool):
        raise ValidationError(f"Missing numeric field '{field}'{where}.")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"Field '{field}'{where} must be a finite number.")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Field '{field}'{where} must be a number.")
    if not amount.is_finite():
        raise ValidationError(f"Field '{field}'{where} must be a finite number.")
    if amount < 0:
        raise ValidationError(f"Field '{field}'{where} cannot be negative.")
    return amount


def validate_quantity(value, field='cantidad', row=None):
    """Quantities are whole numbers >= 0"""
    amount = validate_amount(value, field, row)
    if amount != amount.to_integral_value():
        where = f" (item {row + 1})" if row is not None else ''
        raise ValidationError(f"Field '{field}'{where} must be a whole number.")
    return int(amount)


def validate_date(value, field):
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value or '').strip()[:10], '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f"Field '{field}' must be a date in YYYY-MM-DD format.")


def parse_header(row):
    """Invoice header fields from one webhook row"""
    return {
        'ticket_number': validate_quantity(row.get('ticket_numero'), 'ticket_numero'),
        'sale_date': validate_date(row.get('fecha_venta_iso'), 'fecha_venta_iso'),
        'payment_method': str(row.get('forma_pago') or '').strip(),
        'subtotal': validate_amount(row.get('subtotal_q'), 'subtotal_q'),
        'total_amount': validate_amount(row.get('total_q_factura'), 'total_q_factura'),
        'amount_paid': validate_amount(row.get('pagado_q'), 'pagado_q'),
        'change_amount': validate_amount(row.get('cambio_q', 0), 'cambio_q'),
    }


def parse_item(row, index):
    """Line item fields from one webhook row"""
    description = str(row.get('descripcion') or '').strip()
    if not description:
        raise ValidationError(f"Missing description (item {index + 1}).")
    return {
        'description': description,
        'quantity': validate_quantity(row.get('cantidad'), 'cantidad', index),
        'unit_price': validate_amount(row.get('precio_unitario_q'), 'precio_unitario_q', index),
        'line_total': validate_amount(row.get('total_q'), 'total_q', index),
        'is_commissionable': bool(row.get('comisionable')),
    }


def parse_rows(rows):
    """
    Validate the webhook payload.

    Returns:
        dict with 'header' and 'items'
    """
    if not isinstance(rows, list) or not rows:
        raise ValidationError(NO_ITEMS_MESSAGE)
    if not all(isinstance(row, dict) for row in rows):
        raise ValidationError('The receipt analysis returned malformed items.')

    return {
        'header': parse_header(rows[0]),
        'items': [parse_item(row, index) for index, row in enumerate(rows)],
    }


def request_preview(receipt_url, observations):
    """
    Send a receipt to the parsing webhook and return the validated preview.

    Raises:
        UpstreamError: the webhook is unreachable or answers non-2xx
        ValidationError: blank link or observations, or the answer is empty or
            contains invalid numbers
    """
    if not (receipt_url or '').strip():
        raise ValidationError('Receipt link is required.')
    if not (observations or '').strip():
        raise ValidationError('Observations are required.')

    url = settings.RECEIPT_PARSER_URL
    payload = {
        'recibo_url': receipt_url,
        'observaciones_doctora': observations,
    }

    logger.info(f"Requesting receipt preview for {receipt_url}")
    try:
        response = requests.post(url, json=payload, timeout=settings.RECEIPT_PARSER_TIMEOUT)
    except requests.RequestException as e:
        logger.error(f"Receipt parser unreachable: {str(e)}")
        raise UpstreamError(CONNECTION_ERROR_MESSAGE)

    if not response.ok:
        logger.error(f"Receipt parser answered {response.status_code} for {receipt_url}")
        raise UpstreamError(CONNECTION_ERROR_MESSAGE)

    try:
        rows = response.json()
    except ValueError:
        logger.error(f"Receipt parser returned a non-JSON body for {receipt_url}")
        raise UpstreamError(CONNECTION_ERROR_MESSAGE)

    preview = parse_rows(rows)
    logger.info(f"Receipt preview for {receipt_url}: {len(preview['items'])} items")
    return preview


def preview_to_json(preview):
    """JSON-safe copy of a preview (dates and decimals as strings)"""
    def convert(value):
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, date):
            return value.isoformat()
        return value

    return {
        'header': {key: convert(value) for key, value in preview['header'].items()},
        'items': [{key: convert(value) for key, value in item.items()} for item in preview['items']],
    }
