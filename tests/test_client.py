from dataclasses import replace
from unittest import mock
from uuid import UUID, uuid4

import pytest
import requests
from tenacity import wait_none

from blinkdebit import (
    BlinkAggregateError,
    BlinkClientError,
    BlinkConsentRejectedError,
    BlinkConsentTimeoutError,
    BlinkDebitClient,
    BlinkForbiddenError,
    BlinkGatewayTimeoutError,
    BlinkInternalServerError,
    BlinkNotFoundError,
    BlinkPaymentRejectedError,
    BlinkPaymentTimeoutError,
    BlinkRateLimitError,
    BlinkServiceError,
    BlinkTransportError,
    BlinkUnauthenticatedError,
    Consent,
    ConsentStatus,
    Payment,
    PaymentStatus,
    QuickPayment,
    RefundStatus,
)

from conftest import make_response


def with_retry(config):
    return replace(config, retry_enabled=True)


def consent(consent_id, status) -> Consent:
    return Consent.from_dict({"consent_id": str(consent_id), "status": status})


def quick_payment(quick_payment_id, status) -> QuickPayment:
    return QuickPayment.from_dict({
        "quick_payment_id": str(quick_payment_id),
        "consent": {"consent_id": str(quick_payment_id), "status": status},
    })


def payment(payment_id, status) -> Payment:
    return Payment.from_dict({"payment_id": str(payment_id), "status": status})


# --- Transport ---


def test_client_installs_authenticator_on_session(client, session, authenticator) -> None:
    assert session.auth is authenticator
    assert session.headers["Accept"] == "application/json"


def test_get_single_consent_parses_response(client, session, resource_id) -> None:
    session.request.return_value = make_response(200, {
        "consent_id": str(resource_id),
        "status": "AwaitingAuthorisation",
        "creation_timestamp": "2024-01-01T00:00:00Z",
        "detail": {"type": "single"},
        "payments": [],
    })

    result = client.get_single_consent(resource_id)

    assert result.consent_id == resource_id
    assert result.status is ConsentStatus.AWAITING_AUTHORISATION
    assert result.detail == {"type": "single"}
    args, kwargs = session.request.call_args
    assert args == ("GET", f"https://debit.test/payments/v1/single-consents/{resource_id}")
    assert kwargs["timeout"] == 10.0
    assert "idempotency-key" not in kwargs["headers"]
    UUID(kwargs["headers"]["request-id"])
    UUID(kwargs["headers"]["x-correlation-id"])


def test_unknown_status_is_kept_verbatim(client, session, resource_id) -> None:
    session.request.return_value = make_response(200, {"payment_id": str(resource_id), "status": "Settling"})

    assert client.get_payment(resource_id).status == "Settling"


def test_create_quick_payment_sends_idempotency_and_customer_headers(client, session) -> None:
    quick_payment_id = uuid4()
    session.request.return_value = make_response(
        201, {"quick_payment_id": str(quick_payment_id), "redirect_uri": "https://bank.test/auth"},
    )
    body = {"amount": {"currency": "NZD", "total": "1.25"}}

    created = client.create_quick_payment(body, {
        "x-customer-ip": "192.0.2.1",
        "x-customer-user-agent": "test-agent",
        "idempotency-key": "key-1",
        "x-correlation-id": "corr-1",
    })

    assert created.quick_payment_id == quick_payment_id
    assert created.redirect_uri == "https://bank.test/auth"
    args, kwargs = session.request.call_args
    assert args == ("POST", "https://debit.test/payments/v1/quick-payments")
    assert kwargs["json"] == body
    assert kwargs["headers"]["idempotency-key"] == "key-1"
    assert kwargs["headers"]["x-correlation-id"] == "corr-1"
    assert kwargs["headers"]["x-customer-ip"] == "192.0.2.1"
    assert kwargs["headers"]["x-customer-user-agent"] == "test-agent"


def test_revoke_accepts_empty_response(client, session, resource_id) -> None:
    session.request.return_value = make_response(204)

    assert client.revoke_enduring_consent(resource_id) is None
    args, _ = session.request.call_args
    assert args == ("DELETE", f"https://debit.test/payments/v1/enduring-consents/{resource_id}")


def test_get_meta_and_refund(client, session) -> None:
    refund_id = uuid4()
    session.request.side_effect = [
        make_response(200, [{"name": "PNZ", "features": {"enduring_consent": {"enabled": True}}}]),
        make_response(200, {"refund_id": str(refund_id), "status": "processing"}),
    ]

    banks = client.get_meta()
    refund = client.get_refund(refund_id)

    assert [b.name for b in banks] == ["PNZ"]
    assert banks[0].features["enduring_consent"]["enabled"] is True
    assert refund.status is RefundStatus.PROCESSING


@pytest.mark.parametrize("status_code, error_type", [
    (400, BlinkClientError),
    (401, BlinkUnauthenticatedError),
    (403, BlinkForbiddenError),
    (404, BlinkNotFoundError),
    (422, BlinkClientError),
    (429, BlinkRateLimitError),
    (500, BlinkInternalServerError),
    (503, BlinkInternalServerError),
])
def test_http_errors_map_to_typed_errors(client, session, resource_id, status_code, error_type) -> None:
    session.request.return_value = make_response(status_code, {"message": "went wrong"})

    with pytest.raises(error_type) as exc_info:
        client.get_payment(resource_id)

    assert exc_info.value.status_code == status_code
    assert exc_info.value.detail == "went wrong"
    assert isinstance(exc_info.value, BlinkServiceError)


def test_network_error_is_wrapped(client, session, resource_id) -> None:
    session.request.side_effect = requests.ConnectionError("reset")

    with pytest.raises(BlinkTransportError) as exc_info:
        client.get_payment(resource_id)
    assert isinstance(exc_info.value.__cause__, requests.ConnectionError)


def test_retry_reuses_idempotency_key(config, session, authenticator) -> None:
    retrying_client = BlinkDebitClient(
        with_retry(config), session=session, authenticator=authenticator,
    )
    retrying_client.retry_wait = wait_none()
    payment_id = uuid4()
    session.request.side_effect = [
        make_response(503, {"message": "unavailable"}),
        requests.ConnectionError("reset"),
        make_response(201, {"payment_id": str(payment_id)}),
    ]

    created = retrying_client.create_payment({"consent_id": str(uuid4())})

    assert created.payment_id == payment_id
    keys = {c.kwargs["headers"]["idempotency-key"] for c in session.request.call_args_list}
    assert session.request.call_count == 3
    assert len(keys) == 1


def test_retry_gives_up_with_original_error(config, session, authenticator, resource_id) -> None:
    retrying_client = BlinkDebitClient(
        with_retry(config), session=session, authenticator=authenticator,
    )
    retrying_client.retry_wait = wait_none()
    session.request.return_value = make_response(502, {"message": "bad gateway"})

    with pytest.raises(BlinkInternalServerError):
        retrying_client.get_payment(resource_id)
    assert session.request.call_count == BlinkDebitClient.MAX_ATTEMPTS


def test_client_errors_are_not_retried(config, session, authenticator, resource_id) -> None:
    retrying_client = BlinkDebitClient(
        with_retry(config), session=session, authenticator=authenticator,
    )
    session.request.return_value = make_response(404, {"message": "no such payment"})

    with pytest.raises(BlinkNotFoundError):
        retrying_client.get_payment(resource_id)
    assert session.request.call_count == 1


# --- Await operations ---


def test_enduring_consent_times_out_after_budget_and_revokes(client, sleeps, resource_id) -> None:
    with mock.patch.object(client, "get_enduring_consent",
                           return_value=consent(resource_id, "AwaitingAuthorisation")) as get, \
            mock.patch.object(client, "revoke_enduring_consent") as revoke:
        with pytest.raises(BlinkConsentTimeoutError) as exc_info:
            client.await_authorised_enduring_consent(resource_id, 5)

    assert str(exc_info.value) == "Consent timed out"
    assert get.call_count == 5
    assert len(sleeps) == 4
    revoke.assert_called_once_with(resource_id, retry=False)


def test_enduring_consent_authorised_after_two_waits(client, sleeps, resource_id) -> None:
    statuses = ["AwaitingAuthorisation", "AwaitingAuthorisation", "Authorised"]
    with mock.patch.object(client, "get_enduring_consent",
                           side_effect=[consent(resource_id, s) for s in statuses]) as get, \
            mock.patch.object(client, "revoke_enduring_consent") as revoke:
        result = client.await_authorised_enduring_consent(resource_id, 5)

    assert result.status is ConsentStatus.AUTHORISED
    assert get.call_count == 3
    revoke.assert_not_called()


def test_enduring_consent_rejected_on_first_call(client, sleeps, resource_id) -> None:
    with mock.patch.object(client, "get_enduring_consent", return_value=consent(resource_id, "Rejected")) as get, \
            mock.patch.object(client, "revoke_enduring_consent") as revoke:
        with pytest.raises(BlinkConsentRejectedError):
            client.await_authorised_enduring_consent(resource_id, 5)

    assert get.call_count == 1
    assert sleeps == []
    revoke.assert_not_called()


def test_not_found_propagates_unchanged(client, session, sleeps, resource_id) -> None:
    session.request.return_value = make_response(404, {"message": "Consent not found"})

    with pytest.raises(BlinkNotFoundError) as exc_info:
        client.await_authorised_enduring_consent(resource_id, 5)

    assert exc_info.value.detail == "Consent not found"
    assert session.request.call_count == 1
    assert sleeps == []


def test_revoke_failure_on_timeout_reports_both(client, session, sleeps, resource_id) -> None:
    session.request.side_effect = [
        make_response(200, {"consent_id": str(resource_id), "status": "AwaitingAuthorisation"}),
        make_response(200, {"consent_id": str(resource_id), "status": "AwaitingAuthorisation"}),
        make_response(422, {"message": "Consent already revoked"}),
    ]

    with pytest.raises(BlinkAggregateError) as exc_info:
        client.await_authorised_enduring_consent(resource_id, 2)

    assert isinstance(exc_info.value.timeout_error, BlinkConsentTimeoutError)
    assert isinstance(exc_info.value.revoke_error, BlinkClientError)
    assert exc_info.value.revoke_error.detail == "Consent already revoked"
    assert session.request.call_args.args[0] == "DELETE"


def test_single_consent_does_not_revoke_by_default(client, sleeps, resource_id) -> None:
    with mock.patch.object(client, "get_single_consent",
                           return_value=consent(resource_id, "GatewayAwaitingSubmission")), \
            mock.patch.object(client, "revoke_single_consent") as revoke:
        with pytest.raises(BlinkConsentTimeoutError):
            client.await_authorised_single_consent(resource_id, 3)

    revoke.assert_not_called()


def test_single_consent_can_revoke_on_timeout(client, sleeps, resource_id) -> None:
    with mock.patch.object(client, "get_single_consent",
                           return_value=consent(resource_id, "AwaitingAuthorisation")), \
            mock.patch.object(client, "revoke_single_consent") as revoke:
        with pytest.raises(BlinkConsentTimeoutError):
            client.await_authorised_single_consent(resource_id, 3, revoke_on_timeout=True)

    revoke.assert_called_once_with(resource_id, retry=False)


def test_single_consent_consumed_is_success(client, sleeps, resource_id) -> None:
    with mock.patch.object(client, "get_single_consent", return_value=consent(resource_id, "Consumed")):
        result = client.await_authorised_single_consent(resource_id, 3)

    assert result.status is ConsentStatus.CONSUMED
    assert sleeps == []


def test_single_consent_gateway_timeout(client, sleeps, resource_id) -> None:
    with mock.patch.object(client, "get_single_consent", return_value=consent(resource_id, "GatewayTimeout")), \
            mock.patch.object(client, "revoke_single_consent") as revoke:
        with pytest.raises(BlinkGatewayTimeoutError, match="Gateway timed out for single consent"):
            client.await_authorised_single_consent(resource_id, 3, revoke_on_timeout=True)

    revoke.assert_not_called()


def test_quick_payment_classified_by_consent_status(client, sleeps, resource_id) -> None:
    statuses = ["GatewayAwaitingSubmission", "Authorised"]
    with mock.patch.object(client, "get_quick_payment",
                           side_effect=[quick_payment(resource_id, s) for s in statuses]) as get:
        result = client.await_successful_quick_payment(resource_id, 5)

    assert result.consent.status is ConsentStatus.AUTHORISED
    assert get.call_count == 2


def test_quick_payment_times_out_and_revokes(client, sleeps, resource_id) -> None:
    with mock.patch.object(client, "get_quick_payment",
                           return_value=quick_payment(resource_id, "AwaitingAuthorisation")), \
            mock.patch.object(client, "revoke_quick_payment") as revoke:
        with pytest.raises(BlinkConsentTimeoutError, match="Consent timed out"):
            client.await_successful_quick_payment(resource_id, 2)

    revoke.assert_called_once_with(resource_id, retry=False)


def test_quick_payment_revoked(client, sleeps, resource_id) -> None:
    with mock.patch.object(client, "get_quick_payment", return_value=quick_payment(resource_id, "Revoked")), \
            mock.patch.object(client, "revoke_quick_payment") as revoke:
        with pytest.raises(BlinkConsentRejectedError, match="Quick payment"):
            client.await_successful_quick_payment(resource_id, 2)

    revoke.assert_not_called()


def test_payment_settles(client, sleeps, resource_id) -> None:
    statuses = ["Pending", "AcceptedSettlementInProcess", "AcceptedSettlementCompleted"]
    with mock.patch.object(client, "get_payment", side_effect=[payment(resource_id, s) for s in statuses]) as get:
        result = client.await_successful_payment(resource_id, 5)

    assert result.status is PaymentStatus.ACCEPTED_SETTLEMENT_COMPLETED
    assert get.call_count == 3


def test_payment_rejected(client, sleeps, resource_id) -> None:
    with mock.patch.object(client, "get_payment", return_value=payment(resource_id, "Rejected")):
        with pytest.raises(BlinkPaymentRejectedError, match=f"Payment \\[{resource_id}\\] has been rejected"):
            client.await_successful_payment(resource_id, 5)


def test_payment_timeout_message_and_no_revoke(client, session, sleeps, resource_id) -> None:
    session.request.return_value = make_response(200, {"payment_id": str(resource_id), "status": "Pending"})

    with pytest.raises(BlinkPaymentTimeoutError) as exc_info:
        client.await_successful_payment(resource_id, 3)

    assert str(exc_info.value) == "Payment timed out"
    assert session.request.call_count == 3
    assert {c.args[0] for c in session.request.call_args_list} == {"GET"}


def test_timeout_revoke_is_sent_once_even_with_retry_enabled(config, session, authenticator, sleeps, resource_id) -> None:
    retrying_client = BlinkDebitClient(with_retry(config), session=session, authenticator=authenticator)
    retrying_client.retry_wait = wait_none()
    session.request.side_effect = [
        make_response(200, {"consent_id": str(resource_id), "status": "AwaitingAuthorisation"}),
        make_response(503, {"message": "unavailable"}),
        make_response(503, {"message": "unavailable"}),
        make_response(503, {"message": "unavailable"}),
        make_response(503, {"message": "unavailable"}),
    ]

    with pytest.raises(BlinkAggregateError) as exc_info:
        retrying_client.await_authorised_enduring_consent(resource_id, 1)

    assert isinstance(exc_info.value.revoke_error, BlinkInternalServerError)
    deletes = [c for c in session.request.call_args_list if c.args[0] == "DELETE"]
    assert len(deletes) == 1


def test_quick_payment_timeout_revoke_not_retried_on_network_error(config, session, authenticator, sleeps,
                                                                   resource_id) -> None:
    retrying_client = BlinkDebitClient(with_retry(config), session=session, authenticator=authenticator)
    retrying_client.retry_wait = wait_none()
    session.request.side_effect = [
        make_response(200, {
            "quick_payment_id": str(resource_id),
            "consent": {"consent_id": str(resource_id), "status": "AwaitingAuthorisation"},
        }),
        requests.ConnectionError("reset"),
        requests.ConnectionError("reset"),
    ]

    with pytest.raises(BlinkAggregateError) as exc_info:
        retrying_client.await_successful_quick_payment(resource_id, 1)

    assert isinstance(exc_info.value.revoke_error, BlinkTransportError)
    assert session.request.call_count == 2


def test_direct_revoke_still_uses_transport_retry(config, session, authenticator, resource_id) -> None:
    retrying_client = BlinkDebitClient(with_retry(config), session=session, authenticator=authenticator)
    retrying_client.retry_wait = wait_none()
    session.request.side_effect = [make_response(503, {"message": "unavailable"}), make_response(204)]

    retrying_client.revoke_enduring_consent(resource_id)

    assert session.request.call_count == 2


def test_get_meta_with_empty_body_returns_no_banks(client, session) -> None:
    session.request.return_value = make_response(204)

    assert client.get_meta() == []
