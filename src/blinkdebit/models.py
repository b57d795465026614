"""Response objects for the Blink Debit API.

Request bodies stay as plain dicts in the API's JSON shape. Responses are
parsed into small dataclasses that expose the fields the SDK works with and
keep the full payload on ``raw``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from uuid import UUID


class ConsentStatus(str, enum.Enum):
    GATEWAY_AWAITING_SUBMISSION = "GatewayAwaitingSubmission"
    GATEWAY_TIMEOUT = "GatewayTimeout"
    AWAITING_AUTHORISATION = "AwaitingAuthorisation"
    AUTHORISED = "Authorised"
    CONSUMED = "Consumed"
    REJECTED = "Rejected"
    REVOKED = "Revoked"


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    ACCEPTED_SETTLEMENT_IN_PROCESS = "AcceptedSettlementInProcess"
    ACCEPTED_SETTLEMENT_COMPLETED = "AcceptedSettlementCompleted"
    REJECTED = "Rejected"


class RefundStatus(str, enum.Enum):
    FAILED = "failed"
    PROCESSING = "processing"
    COMPLETED = "completed"


def _status(enum_cls, value):
    # Unknown statuses are kept verbatim; the poller treats them as in flight.
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _uuid(value) -> Optional[UUID]:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


@dataclass
class Consent:
    consent_id: UUID
    status: Union[ConsentStatus, str]
    creation_timestamp: Optional[str] = None
    status_updated_timestamp: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    payments: List[Dict[str, Any]] = field(default_factory=list)
    refunds: List[Dict[str, Any]] = field(default_factory=list)
    card_network: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "Consent":
        return cls(
            consent_id=_uuid(data.get("consent_id")),
            status=_status(ConsentStatus, data.get("status")),
            creation_timestamp=data.get("creation_timestamp"),
            status_updated_timestamp=data.get("status_updated_timestamp"),
            detail=data.get("detail") or {},
            payments=data.get("payments") or [],
            refunds=data.get("refunds") or [],
            card_network=data.get("card_network"),
            raw=data,
        )


@dataclass
class QuickPayment:
    quick_payment_id: UUID
    consent: Consent
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def status(self) -> Union[ConsentStatus, str]:
        return self.consent.status

    @classmethod
    def from_dict(cls, data: dict) -> "QuickPayment":
        return cls(
            quick_payment_id=_uuid(data.get("quick_payment_id")),
            consent=Consent.from_dict(data.get("consent") or {}),
            raw=data,
        )


@dataclass
class Payment:
    payment_id: UUID
    status: Union[PaymentStatus, str]
    type: Optional[str] = None
    creation_timestamp: Optional[str] = None
    status_updated_timestamp: Optional[str] = None
    accepted_until: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    refunds: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "Payment":
        return cls(
            payment_id=_uuid(data.get("payment_id")),
            status=_status(PaymentStatus, data.get("status")),
            type=data.get("type"),
            creation_timestamp=data.get("creation_timestamp"),
            status_updated_timestamp=data.get("status_updated_timestamp"),
            accepted_until=data.get("accepted_until"),
            detail=data.get("detail") or {},
            refunds=data.get("refunds") or [],
            raw=data,
        )


@dataclass
class Refund:
    refund_id: UUID
    status: Union[RefundStatus, str]
    creation_timestamp: Optional[str] = None
    status_updated_timestamp: Optional[str] = None
    account_number: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "Refund":
        return cls(
            refund_id=_uuid(data.get("refund_id")),
            status=_status(RefundStatus, data.get("status")),
            creation_timestamp=data.get("creation_timestamp"),
            status_updated_timestamp=data.get("status_updated_timestamp"),
            account_number=data.get("account_number"),
            detail=data.get("detail") or {},
            raw=data,
        )


@dataclass
class BankMetadata:
    name: str
    payment_limit: Optional[Dict[str, Any]] = None
    features: Dict[str, Any] = field(default_factory=dict)
    redirect_flow: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "BankMetadata":
        return cls(
            name=data.get("name"),
            payment_limit=data.get("payment_limit"),
            features=data.get("features") or {},
            redirect_flow=data.get("redirect_flow"),
            raw=data,
        )


# --- Creation responses ---


@dataclass
class CreateConsentResponse:
    consent_id: UUID
    redirect_uri: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CreateConsentResponse":
        return cls(consent_id=_uuid(data.get("consent_id")), redirect_uri=data.get("redirect_uri"))


@dataclass
class CreateQuickPaymentResponse:
    quick_payment_id: UUID
    redirect_uri: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CreateQuickPaymentResponse":
        return cls(quick_payment_id=_uuid(data.get("quick_payment_id")), redirect_uri=data.get("redirect_uri"))


@dataclass
class PaymentResponse:
    payment_id: UUID

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentResponse":
        return cls(payment_id=_uuid(data.get("payment_id")))


@dataclass
class RefundResponse:
    refund_id: UUID

    @classmethod
    def from_dict(cls, data: dict) -> "RefundResponse":
        return cls(refund_id=_uuid(data.get("refund_id")))
