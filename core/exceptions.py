# core/exceptions.py
"""
Domain errors raised by the invoice and settlement services.

Missing or malformed input is reported with Django's own ValidationError;
the classes below cover the remaining failure kinds. Views turn all of them
into JSON responses through core.responses.handle_domain_errors.
"""


class ClinicError(Exception):
    """Base class for errors that carry an operator-facing message"""
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def as_dict(self):
        return {'error': self.message}


class ConflictError(ClinicError):
    """A write would duplicate an existing record"""
    status_code = 409

    def __init__(self, message, ticket_number=None):
        super().__init__(message)
        self.ticket_number = ticket_number

    def as_dict(self):
        data = super().as_dict()
        if self.ticket_number is not None:
            data['ticket_number'] = self.ticket_number
        return data


class SettlementLockedError(ClinicError):
    """The period was already saved and must be unlocked before re-saving"""
    status_code = 409


class PeriodRestrictionError(ClinicError):
    """A standard user tried to file an invoice outside the current month"""
    status_code = 403


class UpstreamError(ClinicError):
    """The receipt parsing service was unreachable or answered with an error"""
    status_code = 502
