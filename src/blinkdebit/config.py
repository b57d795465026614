"""Client configuration.

A ``BlinkPayConfig`` is built once at startup and handed to
``BlinkDebitClient``; nothing in the SDK reads process-wide state after that.

Usage:
    from blinkdebit import BlinkDebitClient, BlinkPayConfig

    config = BlinkPayConfig.from_env()
    client = BlinkDebitClient(config)
"""

import os
from dataclasses import dataclass

from blinkdebit.errors import BlinkInvalidValueError

DEFAULT_DEBIT_URL = "https://sandbox.debit.blinkpay.co.nz"
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class BlinkPayConfig:
    client_id: str
    client_secret: str
    debit_url: str = DEFAULT_DEBIT_URL
    timeout: float = DEFAULT_TIMEOUT
    retry_enabled: bool = True

    @property
    def base_url(self) -> str:
        return f"{self.debit_url.rstrip('/')}/payments/v1"

    @property
    def token_url(self) -> str:
        return f"{self.debit_url.rstrip('/')}/oauth2/token"

    def validate(self) -> "BlinkPayConfig":
        """Fail fast on missing values. Returns self so it can be chained."""
        if not self.debit_url:
            raise BlinkInvalidValueError("Blink Debit URL is not configured")
        if not self.client_id:
            raise BlinkInvalidValueError("Blink Debit client ID is not configured")
        if not self.client_secret:
            raise BlinkInvalidValueError("Blink Debit client secret is not configured")
        if self.timeout is None or self.timeout <= 0:
            raise BlinkInvalidValueError("Blink Debit timeout must be positive")
        return self

    @classmethod
    def from_env(cls, environ=None) -> "BlinkPayConfig":
        """Read BLINKPAY_* variables (defaults apply to URL, timeout and retry)."""
        env = os.environ if environ is None else environ
        timeout = env.get("BLINKPAY_TIMEOUT")
        try:
            timeout = float(timeout) if timeout else DEFAULT_TIMEOUT
        except ValueError:
            raise BlinkInvalidValueError(f"BLINKPAY_TIMEOUT is not a number: {timeout!r}")
        retry = env.get("BLINKPAY_RETRY_ENABLED", "true").strip().lower()
        return cls(
            client_id=env.get("BLINKPAY_CLIENT_ID", ""),
            client_secret=env.get("BLINKPAY_CLIENT_SECRET", ""),
            debit_url=env.get("BLINKPAY_DEBIT_URL") or DEFAULT_DEBIT_URL,
            timeout=timeout,
            retry_enabled=retry not in ("false", "0", "no", "off"),
        ).validate()
