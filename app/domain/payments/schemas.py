"""
Payment gateway webhook schemas

Inbound Paystack events are parsed into a closed set of types at the boundary:
ChargeSucceeded, ChargeFailed, or UnknownEvent for anything this service does
not act on. Nothing downstream sees the raw JSON dict.
"""

import json
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ...config import DEFAULT_CURRENCY
from ...errors import ValidationError

CHARGE_SUCCEEDED_EVENT = "charge.success"
CHARGE_FAILED_EVENT = "charge.failed"


class ChargeData(BaseModel):
    """The ``data`` object of a Paystack charge event"""

    model_config = ConfigDict(extra="ignore")

    id: str  # Gateway transaction id
    reference: str
    amount: int  # Minor units
    currency: str = DEFAULT_CURRENCY
    gateway_response: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_transaction_id(cls, v: Any) -> Any:
        # Paystack sends numeric transaction ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("id", "reference")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: int) -> int:
        if v < 0:
            raise ValueError("amount must not be negative")
        return v

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class ChargeSucceeded(BaseModel):
    type: Literal["charge_succeeded"] = "charge_succeeded"
    event: str = CHARGE_SUCCEEDED_EVENT
    data: ChargeData


class ChargeFailed(BaseModel):
    type: Literal["charge_failed"] = "charge_failed"
    event: str = CHARGE_FAILED_EVENT
    data: ChargeData

    @property
    def reason(self) -> str:
        return self.data.gateway_response or "Payment declined by gateway"


class UnknownEvent(BaseModel):
    type: Literal["unknown"] = "unknown"
    event: str
    raw: dict[str, Any] = Field(default_factory=dict)


GatewayEvent = Union[ChargeSucceeded, ChargeFailed, UnknownEvent]


def parse_gateway_event(raw_body: bytes) -> GatewayEvent:
    """
    Parse an authenticated webhook body.

    Raises ValidationError for malformed JSON, a missing event name, or a
    known event whose data is incomplete.
    """
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError("Invalid JSON payload", field="body") from None

    if not isinstance(payload, dict):
        raise ValidationError("Webhook payload must be a JSON object", field="body")

    event_name = payload.get("event")
    if not isinstance(event_name, str) or not event_name:
        raise ValidationError("Webhook payload is missing the event name", field="event")

    data = payload.get("data")
    try:
        if event_name == CHARGE_SUCCEEDED_EVENT:
            return ChargeSucceeded(data=data)
        if event_name == CHARGE_FAILED_EVENT:
            return ChargeFailed(data=data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(
            f"Invalid {event_name} payload: {first.get('msg')}", field=location or "data"
        ) from None

    return UnknownEvent(event=event_name, raw=payload)


class WebhookAck(BaseModel):
    status: str  # processed, already_processed, ignored
    event: str
    reference: Optional[str] = None
    booking_id: Optional[str] = None
