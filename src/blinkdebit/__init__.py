"""Blink Debit SDK: consents, quick payments, payments and refunds for Blink Debit."""

__version__ = "0.1.0"

from blinkdebit.auth import OAuthAuthenticator, Token, TokenCache
from blinkdebit.client import BlinkDebitClient
from blinkdebit.config import BlinkPayConfig
from blinkdebit.errors import (
    BlinkError,
    BlinkInvalidValueError,
    BlinkTransportError,
    BlinkServiceError,
    BlinkClientError,
    BlinkUnauthenticatedError,
    BlinkForbiddenError,
    BlinkNotFoundError,
    BlinkRateLimitError,
    BlinkInternalServerError,
    BlinkAuthError,
    BlinkRejectedError,
    BlinkConsentRejectedError,
    BlinkGatewayTimeoutError,
    BlinkPaymentRejectedError,
    BlinkTimeoutError,
    BlinkConsentTimeoutError,
    BlinkPaymentTimeoutError,
    BlinkAggregateError,
    BlinkPollCancelledError,
)
from blinkdebit.models import (
    BankMetadata,
    Consent,
    ConsentStatus,
    CreateConsentResponse,
    CreateQuickPaymentResponse,
    Payment,
    PaymentResponse,
    PaymentStatus,
    QuickPayment,
    Refund,
    RefundResponse,
    RefundStatus,
)
from blinkdebit.poller import Outcome, PollPolicy, ResourcePoller, StatusTable
