#!/usr/bin/env python3
"""
Blink Debit Quickstart: Quick Payment to Settled Payment

Creates a quick payment, prints the bank redirect URL for the customer, then
waits for the customer to authorise it.

Prerequisites:
  pip install blink-debit-api-client

  export BLINKPAY_CLIENT_ID="..."
  export BLINKPAY_CLIENT_SECRET="..."
  export BLINKPAY_DEBIT_URL="https://sandbox.debit.blinkpay.co.nz"  # default

Usage:
  python quickstart.py --amount 1.25 --redirect-uri https://shop.example/return
  python quickstart.py --list-banks
"""

import argparse
import logging
import sys

from blinkdebit import (
    BlinkAggregateError,
    BlinkConsentRejectedError,
    BlinkConsentTimeoutError,
    BlinkDebitClient,
    BlinkError,
    BlinkGatewayTimeoutError,
    BlinkServiceError,
)


def main():
    parser = argparse.ArgumentParser(description="Blink Debit Quickstart")
    parser.add_argument("--amount", default="1.25", help="Amount in NZD (default: 1.25)")
    parser.add_argument("--redirect-uri", default="https://www.blinkpay.co.nz/sample-merchant-return-page")
    parser.add_argument("--particulars", default="quickstart")
    parser.add_argument("--wait", type=int, default=300, help="Seconds to wait for authorisation (default: 300)")
    parser.add_argument("--list-banks", action="store_true", help="Only list available banks")
    parser.add_argument("--verbose", action="store_true", help="Log every poll")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        client = BlinkDebitClient.from_env()
    except BlinkError as e:
        print(f"Configuration error: {e}")
        print("Set BLINKPAY_CLIENT_ID and BLINKPAY_CLIENT_SECRET first.")
        sys.exit(1)

    if args.list_banks:
        for bank in client.get_meta():
            print(f"  {bank.name}")
        return

    created = client.create_quick_payment({
        "flow": {"detail": {"type": "gateway", "redirect_uri": args.redirect_uri}},
        "amount": {"currency": "NZD", "total": args.amount},
        "pcr": {"particulars": args.particulars},
    })
    print(f"Quick payment created: {created.quick_payment_id}")
    print(f"Send the customer to: {created.redirect_uri}\n")
    print(f"Waiting up to {args.wait}s for authorisation...")

    try:
        quick_payment = client.await_successful_quick_payment(created.quick_payment_id, args.wait)
    except BlinkGatewayTimeoutError as e:
        print(f"The bank gateway timed out: {e}")
        sys.exit(2)
    except BlinkConsentRejectedError as e:
        print(f"Rejected: {e}")
        sys.exit(2)
    except BlinkConsentTimeoutError:
        print("Customer did not authorise in time; the quick payment was revoked.")
        sys.exit(3)
    except BlinkAggregateError as e:
        print(f"Timed out and the revoke failed too: {e.revoke_error}")
        sys.exit(3)
    except BlinkServiceError as e:
        print(f"API error: {e.detail}")
        sys.exit(1)

    print(f"Consent status: {quick_payment.consent.status.value}")
    for payment in quick_payment.consent.payments:
        print(f"  Payment {payment.get('payment_id')}: {payment.get('status')}")


if __name__ == "__main__":
    main()
