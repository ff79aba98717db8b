"""
Schema for inbound gateway payment notifications.
The body is validated here once; nothing downstream reads the raw dict.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaValidationError

from utils.exceptions import ValidationError

GATEWAY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

SUCCESS_STATUSES = frozenset({'capture', 'settlement'})
FAILURE_STATUSES = frozenset({'deny', 'cancel', 'expire'})
FRAUD_ACCEPT = 'accept'


def parse_gateway_time(value):
    """Parse the gateway's 'YYYY-MM-DD HH:MM:SS' timestamps (ISO 8601 also accepted)."""
    if not value:
        return None
    try:
        return datetime.strptime(value, GATEWAY_TIME_FORMAT)
    except ValueError:
        return datetime.fromisoformat(value)


class PaymentNotification(BaseModel):
    """Payment status notification as sent by the gateway"""

    # Numbers arrive as JSON numbers from some gateway versions; the signature is
    # computed over their text form, so keep everything as strings.
    model_config = ConfigDict(extra='allow', coerce_numbers_to_str=True, str_strip_whitespace=True)

    order_id: str = Field(..., min_length=1, max_length=64)
    transaction_status: str = Field(..., min_length=1, max_length=50)
    fraud_status: Optional[str] = None
    gross_amount: Optional[str] = None
    payment_type: Optional[str] = None
    transaction_time: Optional[str] = None
    settlement_time: Optional[str] = None
    status_code: Optional[str] = None
    signature_key: Optional[str] = None

    @field_validator('gross_amount')
    @classmethod
    def _check_amount(cls, value):
        if value is None:
            return value
        try:
            Decimal(value)
        except InvalidOperation:
            raise ValueError('gross_amount must be numeric')
        return value

    @field_validator('transaction_time', 'settlement_time')
    @classmethod
    def _check_time(cls, value):
        if value:
            parse_gateway_time(value)
        return value or None

    @property
    def amount(self):
        return Decimal(self.gross_amount) if self.gross_amount is not None else None

    @property
    def paid_at(self):
        return parse_gateway_time(self.settlement_time or self.transaction_time)

    @property
    def is_success(self):
        return self.transaction_status in SUCCESS_STATUSES


def parse_notification(payload):
    """Validate a decoded JSON body; any problem becomes one ValidationError."""
    if not isinstance(payload, dict):
        raise ValidationError('Notification body must be a JSON object')
    try:
        return PaymentNotification.model_validate(payload)
    except SchemaValidationError as e:
        fields = sorted({'.'.join(str(p) for p in err['loc']) for err in e.errors()})
        raise ValidationError(
            f"Missing or invalid fields: {', '.join(fields)}", fields=fields
        ) from e
