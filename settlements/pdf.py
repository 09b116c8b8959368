# settlements/pdf.py
import logging

from django.http import HttpResponse
from django.template.loader import render_to_string
from xhtml2pdf import pisa

from .services import statement_context

logger = logging.getLogger(__name__)


def render_statement(settlement):
    """
    Render the printable pay statement of a saved settlement.

    Returns:
        HttpResponse with the PDF, or None when xhtml2pdf reports an error
    """
    html_string = render_to_string('settlements/statement_pdf.html', statement_context(settlement))

    response = HttpResponse(content_type='application/pdf')
    filename = f'Liquidacion_{settlement.staff.username}_{settlement.year}_{settlement.month + 1:02d}.pdf'
    response['Content-Disposition'] = f'inline; filename="{filename}"'

    pisa_status = pisa.CreatePDF(html_string, dest=response)
    if pisa_status.err:
        logger.error(f"PDF generation failed for settlement #{settlement.pk}")
        return None
    return response
