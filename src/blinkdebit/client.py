"""
Blink Debit client: Python SDK for the Blink Debit payment-initiation API.

Merchants create a consent (single or enduring) or a quick payment, send the
customer to the returned redirect URI, then wait for the bank to authorise.
The client wraps the REST calls and adds blocking await operations that poll
once a second until the resource settles.

Usage:
    from blinkdebit import BlinkDebitClient, BlinkPayConfig

    client = BlinkDebitClient(BlinkPayConfig(client_id="...", client_secret="..."))

    # Create a quick payment (consent + payment in one)
    created = client.create_quick_payment({
        "flow": {"detail": {"type": "gateway", "redirect_uri": "https://shop.example/return"}},
        "amount": {"currency": "NZD", "total": "1.25"},
        "pcr": {"particulars": "order-1001"},
    })
    send_customer_to(created.redirect_uri)

    # Block until the customer authorises (revokes and raises if they don't)
    quick_payment = client.await_successful_quick_payment(created.quick_payment_id, 300)

    # Payments against an authorised enduring consent
    payment = client.create_payment({"consent_id": str(consent_id), "pcr": {...}, "amount": {...}})
    settled = client.await_successful_payment(payment.payment_id, 60)
"""

import logging
import threading
from uuid import uuid4

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential, wait_random

from blinkdebit.auth import OAuthAuthenticator
from blinkdebit.config import BlinkPayConfig
from blinkdebit.errors import (
    BlinkClientError,
    BlinkConsentRejectedError,
    BlinkConsentTimeoutError,
    BlinkForbiddenError,
    BlinkInternalServerError,
    BlinkNotFoundError,
    BlinkPaymentRejectedError,
    BlinkPaymentTimeoutError,
    BlinkRateLimitError,
    BlinkServiceError,
    BlinkTransportError,
    BlinkUnauthenticatedError,
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
)
from blinkdebit.poller import PollPolicy, ResourcePoller, StatusTable

logger = logging.getLogger(__name__)

REQUEST_ID = "request-id"
CORRELATION_ID = "x-correlation-id"
IDEMPOTENCY_KEY = "idempotency-key"
CUSTOMER_IP = "x-customer-ip"
CUSTOMER_USER_AGENT = "x-customer-user-agent"


# --- Status classification per resource kind ---

CONSENT_STATUSES = StatusTable(
    success=frozenset({ConsentStatus.AUTHORISED, ConsentStatus.CONSUMED}),
    rejected=frozenset({ConsentStatus.REJECTED, ConsentStatus.REVOKED}),
    gateway_timeout=frozenset({ConsentStatus.GATEWAY_TIMEOUT}),
)

PAYMENT_STATUSES = StatusTable(
    success=frozenset({PaymentStatus.ACCEPTED_SETTLEMENT_COMPLETED}),
    rejected=frozenset({PaymentStatus.REJECTED}),
)

SINGLE_CONSENT_POLICY = PollPolicy(
    label="single consent",
    table=CONSENT_STATUSES,
    rejected_error=BlinkConsentRejectedError,
    timeout_error=BlinkConsentTimeoutError,
    rejected_message="Single consent [{id}] has been rejected or revoked",
)

ENDURING_CONSENT_POLICY = PollPolicy(
    label="enduring consent",
    table=CONSENT_STATUSES,
    rejected_error=BlinkConsentRejectedError,
    timeout_error=BlinkConsentTimeoutError,
    rejected_message="Enduring consent [{id}] has been rejected or revoked",
)

QUICK_PAYMENT_POLICY = PollPolicy(
    label="quick payment",
    table=CONSENT_STATUSES,
    rejected_error=BlinkConsentRejectedError,
    timeout_error=BlinkConsentTimeoutError,
    rejected_message="Quick payment [{id}] has been rejected or revoked",
)

PAYMENT_POLICY = PollPolicy(
    label="payment",
    table=PAYMENT_STATUSES,
    rejected_error=BlinkPaymentRejectedError,
    timeout_error=BlinkPaymentTimeoutError,
    rejected_message="Payment [{id}] has been rejected",
)

RETRYABLE_ERRORS = (BlinkTransportError, BlinkRateLimitError, BlinkInternalServerError)


def _error_for(resp: requests.Response) -> BlinkServiceError:
    try:
        body = resp.json()
        detail = body.get("message") or body.get("detail") or resp.text
    except (ValueError, AttributeError):
        detail = resp.text

    status = resp.status_code
    if status == 401:
        return BlinkUnauthenticatedError(detail, resp)
    if status == 403:
        return BlinkForbiddenError(detail, resp)
    if status == 404:
        return BlinkNotFoundError(detail, resp)
    if status == 429:
        return BlinkRateLimitError(detail, resp)
    if status >= 500:
        return BlinkInternalServerError(status, detail, resp)
    return BlinkClientError(status, detail, resp)


class BlinkDebitClient:
    """Client for the Blink Debit API."""

    MAX_ATTEMPTS = 4
    retry_wait = wait_exponential(multiplier=1, min=1, max=8) + wait_random(0, 1)

    def __init__(
        self,
        config: BlinkPayConfig,
        session: requests.Session = None,
        authenticator: OAuthAuthenticator = None,
        poller: ResourcePoller = None,
    ):
        self.config = config.validate()
        self.base_url = config.base_url
        self.authenticator = authenticator or OAuthAuthenticator(
            config.token_url, config.client_id, config.client_secret, timeout=config.timeout,
        )
        self.poller = poller or ResourcePoller()
        self.session = session or requests.Session()
        self.session.auth = self.authenticator
        self.session.headers["Accept"] = "application/json"

    @classmethod
    def from_env(cls, **kwargs) -> "BlinkDebitClient":
        return cls(BlinkPayConfig.from_env(), **kwargs)

    def _headers(self, method: str, request_headers: dict = None) -> dict:
        supplied = {k.lower(): v for k, v in (request_headers or {}).items() if v}
        headers = {
            REQUEST_ID: supplied.get(REQUEST_ID) or str(uuid4()),
            CORRELATION_ID: supplied.get(CORRELATION_ID) or str(uuid4()),
        }
        if method == "POST":
            headers[IDEMPOTENCY_KEY] = supplied.get(IDEMPOTENCY_KEY) or str(uuid4())
        for name in (CUSTOMER_IP, CUSTOMER_USER_AGENT):
            if name in supplied:
                headers[name] = supplied[name]
        return headers

    def _request(self, method: str, path: str, request_headers: dict = None, retry: bool = True, **kwargs):
        """Make an authenticated request to the Blink Debit API.

        Centralizes error handling and converts HTTP errors to typed exceptions.
        Headers are fixed before any retry so the idempotency key is reused.
        With ``retry=False`` the request is sent once whatever the config says.
        """
        headers = self._headers(method, request_headers)
        if not (retry and self.config.retry_enabled):
            return self._send(method, path, headers, **kwargs)

        retrying = Retrying(
            stop=stop_after_attempt(self.MAX_ATTEMPTS),
            wait=self.retry_wait,
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        )
        return retrying(self._send, method, path, headers, **kwargs)

    def _send(self, method: str, path: str, headers: dict, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.config.timeout, **kwargs)
        except requests.RequestException as exc:
            raise BlinkTransportError(str(exc)) from exc

        logger.debug(
            "%s %s -> %s (correlation id %s)",
            method, path, resp.status_code, resp.headers.get(CORRELATION_ID, headers[CORRELATION_ID]),
        )
        if not resp.ok:
            raise _error_for(resp)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # --- Bank metadata ---

    def get_meta(self, request_headers: dict = None) -> list:
        """List the banks available to the merchant and the flows each supports."""
        return [BankMetadata.from_dict(item) for item in self._request("GET", "/meta", request_headers) or []]

    # --- Single consents ---

    def create_single_consent(self, request: dict, request_headers: dict = None) -> CreateConsentResponse:
        data = self._request("POST", "/single-consents", request_headers, json=request)
        return CreateConsentResponse.from_dict(data)

    def get_single_consent(self, consent_id, request_headers: dict = None) -> Consent:
        return Consent.from_dict(self._request("GET", f"/single-consents/{consent_id}", request_headers))

    def revoke_single_consent(self, consent_id, request_headers: dict = None, retry: bool = True) -> None:
        self._request("DELETE", f"/single-consents/{consent_id}", request_headers, retry=retry)

    def await_authorised_single_consent(
        self,
        consent_id,
        max_wait_seconds: int,
        revoke_on_timeout: bool = False,
        cancel_event: threading.Event = None,
    ) -> Consent:
        """Block until the single consent is authorised or consumed.

        Single consents expire on their own, so by default nothing is revoked
        on timeout; pass ``revoke_on_timeout=True`` to revoke anyway.

        Raises:
            BlinkConsentRejectedError: Rejected or revoked by the customer or bank.
            BlinkGatewayTimeoutError: The bank gateway timed out.
            BlinkConsentTimeoutError: Still awaiting authorisation after max_wait_seconds.
            BlinkAggregateError: Timed out and the revoke also failed.
        """
        revoke = (lambda: self.revoke_single_consent(consent_id, retry=False)) if revoke_on_timeout else None
        return self.poller.run(
            SINGLE_CONSENT_POLICY,
            consent_id,
            lambda: self.get_single_consent(consent_id),
            max_wait_seconds,
            revoke=revoke,
            cancel_event=cancel_event,
        )

    # --- Enduring consents ---

    def create_enduring_consent(self, request: dict, request_headers: dict = None) -> CreateConsentResponse:
        data = self._request("POST", "/enduring-consents", request_headers, json=request)
        return CreateConsentResponse.from_dict(data)

    def get_enduring_consent(self, consent_id, request_headers: dict = None) -> Consent:
        return Consent.from_dict(self._request("GET", f"/enduring-consents/{consent_id}", request_headers))

    def revoke_enduring_consent(self, consent_id, request_headers: dict = None, retry: bool = True) -> None:
        self._request("DELETE", f"/enduring-consents/{consent_id}", request_headers, retry=retry)

    def await_authorised_enduring_consent(
        self,
        consent_id,
        max_wait_seconds: int,
        cancel_event: threading.Event = None,
    ) -> Consent:
        """Block until the enduring consent is authorised; revoke it if it never is."""
        return self.poller.run(
            ENDURING_CONSENT_POLICY,
            consent_id,
            lambda: self.get_enduring_consent(consent_id),
            max_wait_seconds,
            revoke=lambda: self.revoke_enduring_consent(consent_id, retry=False),
            cancel_event=cancel_event,
        )

    # --- Quick payments ---

    def create_quick_payment(self, request: dict, request_headers: dict = None) -> CreateQuickPaymentResponse:
        data = self._request("POST", "/quick-payments", request_headers, json=request)
        return CreateQuickPaymentResponse.from_dict(data)

    def get_quick_payment(self, quick_payment_id, request_headers: dict = None) -> QuickPayment:
        return QuickPayment.from_dict(self._request("GET", f"/quick-payments/{quick_payment_id}", request_headers))

    def revoke_quick_payment(self, quick_payment_id, request_headers: dict = None, retry: bool = True) -> None:
        self._request("DELETE", f"/quick-payments/{quick_payment_id}", request_headers, retry=retry)

    def await_successful_quick_payment(
        self,
        quick_payment_id,
        max_wait_seconds: int,
        cancel_event: threading.Event = None,
    ) -> QuickPayment:
        """Block until the quick payment's consent is authorised; revoke it if it never is."""
        return self.poller.run(
            QUICK_PAYMENT_POLICY,
            quick_payment_id,
            lambda: self.get_quick_payment(quick_payment_id),
            max_wait_seconds,
            revoke=lambda: self.revoke_quick_payment(quick_payment_id, retry=False),
            cancel_event=cancel_event,
        )

    # --- Payments ---

    def create_payment(self, request: dict, request_headers: dict = None) -> PaymentResponse:
        return PaymentResponse.from_dict(self._request("POST", "/payments", request_headers, json=request))

    def get_payment(self, payment_id, request_headers: dict = None) -> Payment:
        return Payment.from_dict(self._request("GET", f"/payments/{payment_id}", request_headers))

    def await_successful_payment(
        self,
        payment_id,
        max_wait_seconds: int,
        cancel_event: threading.Event = None,
    ) -> Payment:
        """Block until the payment settles. Payments cannot be revoked."""
        return self.poller.run(
            PAYMENT_POLICY,
            payment_id,
            lambda: self.get_payment(payment_id),
            max_wait_seconds,
            cancel_event=cancel_event,
        )

    # --- Refunds ---

    def create_refund(self, request: dict, request_headers: dict = None) -> RefundResponse:
        return RefundResponse.from_dict(self._request("POST", "/refunds", request_headers, json=request))

    def get_refund(self, refund_id, request_headers: dict = None) -> Refund:
        return Refund.from_dict(self._request("GET", f"/refunds/{refund_id}", request_headers))
