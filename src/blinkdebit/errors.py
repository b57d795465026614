"""Error hierarchy for the Blink Debit SDK.

Callers branch on these types: a rejected consent, a client-side wait
timeout, a missing resource and a network failure each surface as their own
class, never as a generic exception.
"""

import requests


class BlinkError(Exception):
    """Base exception for all Blink Debit SDK errors."""
    pass


class BlinkInvalidValueError(BlinkError, ValueError):
    """A configuration value or argument is missing or out of range."""
    pass


class BlinkTransportError(BlinkError):
    """The request never produced an HTTP response (connection, DNS, timeout)."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Blink Debit transport error: {detail}")


class BlinkServiceError(BlinkError):
    """HTTP error from the Blink Debit API."""

    def __init__(self, status_code: int, detail: str, response: requests.Response = None):
        self.status_code = status_code
        self.detail = detail
        self.response = response
        super().__init__(f"Blink Debit API error {status_code}: {detail}")


class BlinkClientError(BlinkServiceError):
    """The API rejected the request (HTTP 4xx)."""
    pass


class BlinkUnauthenticatedError(BlinkClientError):
    """Missing or invalid bearer token (HTTP 401)."""

    def __init__(self, detail: str = "Unauthenticated", response: requests.Response = None):
        super().__init__(401, detail, response)


class BlinkForbiddenError(BlinkClientError):
    """The merchant may not access this resource (HTTP 403)."""

    def __init__(self, detail: str = "Forbidden", response: requests.Response = None):
        super().__init__(403, detail, response)


class BlinkNotFoundError(BlinkClientError):
    """Resource ID unknown to the API (HTTP 404)."""

    def __init__(self, detail: str = "Resource not found", response: requests.Response = None):
        super().__init__(404, detail, response)


class BlinkRateLimitError(BlinkClientError):
    """Rate limit exceeded (HTTP 429)."""

    def __init__(self, detail: str = "Rate limit exceeded", response: requests.Response = None):
        super().__init__(429, detail, response)


class BlinkInternalServerError(BlinkServiceError):
    """The API failed to process the request (HTTP 5xx)."""
    pass


class BlinkAuthError(BlinkError):
    """The OAuth2 token endpoint did not issue a token."""

    def __init__(self, detail: str, status_code: int = None):
        self.detail = detail
        self.status_code = status_code
        msg = "Blink Debit token request failed"
        if status_code is not None:
            msg += f" ({status_code})"
        super().__init__(f"{msg}: {detail}")


# --- Polling outcomes ---


class BlinkRejectedError(BlinkError):
    """The resource reached a terminal failure state decided by the customer or bank."""

    def __init__(self, message: str, resource_id=None, status=None):
        self.resource_id = resource_id
        self.status = status
        super().__init__(message)


class BlinkConsentRejectedError(BlinkRejectedError):
    """Consent or quick payment was rejected or revoked."""
    pass


class BlinkGatewayTimeoutError(BlinkConsentRejectedError):
    """The upstream banking gateway reported a timeout for the consent.

    This is a terminal status reported at source, not the client running
    out of wait time (see ``BlinkTimeoutError``).
    """
    pass


class BlinkPaymentRejectedError(BlinkRejectedError):
    """Payment was rejected."""
    pass


class BlinkTimeoutError(BlinkError):
    """The client's wait budget ran out while the resource was still in flight."""

    def __init__(self, message: str, resource_id=None):
        self.resource_id = resource_id
        super().__init__(message)


class BlinkConsentTimeoutError(BlinkTimeoutError):
    def __init__(self, resource_id=None):
        super().__init__("Consent timed out", resource_id)


class BlinkPaymentTimeoutError(BlinkTimeoutError):
    def __init__(self, resource_id=None):
        super().__init__("Payment timed out", resource_id)


class BlinkAggregateError(BlinkError):
    """A client timeout whose compensating revoke also failed."""

    def __init__(self, timeout_error: BlinkTimeoutError, revoke_error: Exception):
        self.timeout_error = timeout_error
        self.revoke_error = revoke_error
        self.errors = (timeout_error, revoke_error)
        super().__init__(f"{timeout_error}; revoke failed: {revoke_error}")


class BlinkPollCancelledError(BlinkError):
    """Polling was cancelled by the caller before a terminal state was seen."""

    def __init__(self, resource_id=None):
        self.resource_id = resource_id
        super().__init__(f"Polling cancelled for [{resource_id}]")
