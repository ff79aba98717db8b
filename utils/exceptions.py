"""
Billing error taxonomy. Each error knows the HTTP status the API answers with.
"""


class BillingError(Exception):
    """Base class for payment reconciliation failures"""
    status_code = 500

    def __init__(self, message, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self):
        return {'success': False, 'message': self.message}


class ValidationError(BillingError):
    """Notification is missing required fields or carries malformed values"""
    status_code = 400


class SignatureError(BillingError):
    """Notification signature is missing or does not match; possible forgery"""
    status_code = 403


class ForbiddenError(BillingError):
    """The order exists but belongs to another user"""
    status_code = 403


class NotFoundError(BillingError):
    """No transaction exists for the given order id"""
    status_code = 404


class StorageError(BillingError):
    """Persistence failed; the unit of work was rolled back and is safe to retry"""
    status_code = 500


class GatewayError(BillingError):
    """Outbound call to the payment gateway failed or timed out"""
    status_code = 502


class ProvisioningConflict(BillingError):
    """A concurrent request created the subscription first.

    Raised and handled inside provisioning; never reaches a caller.
    """
    status_code = 409
