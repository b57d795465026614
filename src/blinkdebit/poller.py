"""Poll a resource until it reaches a terminal status.

Each await operation on the client is one ``ResourcePoller.run`` call with a
``PollPolicy`` describing the resource kind: which statuses mean success,
which mean rejection, which mean the bank gateway gave up, and which errors
to raise. Anything unrecognised is treated as still in flight.

The loop makes at most ``max_wait_seconds`` fetches, one second apart. When
the budget runs out, revocable kinds get one compensating revoke call before
the timeout error is raised.
"""

from __future__ import annotations

import enum
import logging
import operator
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Optional, Type

from blinkdebit.errors import (
    BlinkAggregateError,
    BlinkGatewayTimeoutError,
    BlinkInvalidValueError,
    BlinkPollCancelledError,
    BlinkRejectedError,
    BlinkTimeoutError,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 1.0


class Outcome(enum.Enum):
    SUCCESS = "success"
    REJECTED = "rejected"
    GATEWAY_TIMEOUT = "gateway_timeout"
    RETRY = "retry"


@dataclass(frozen=True)
class StatusTable:
    success: FrozenSet[Any]
    rejected: FrozenSet[Any]
    gateway_timeout: FrozenSet[Any] = frozenset()

    def classify(self, status) -> Outcome:
        if status in self.success:
            return Outcome.SUCCESS
        if status in self.rejected:
            return Outcome.REJECTED
        if status in self.gateway_timeout:
            return Outcome.GATEWAY_TIMEOUT
        return Outcome.RETRY


@dataclass(frozen=True)
class PollPolicy:
    """How to read and judge one kind of resource.

    ``rejected_message`` is formatted with ``id``; ``label`` names the kind in
    log lines and gateway-timeout messages.
    """

    label: str
    table: StatusTable
    rejected_error: Type[BlinkRejectedError]
    timeout_error: Type[BlinkTimeoutError]
    rejected_message: str
    status_of: Callable[[Any], Any] = field(default=operator.attrgetter("status"))


class ResourcePoller:
    def __init__(self, interval: float = POLL_INTERVAL_SECONDS):
        self.interval = interval

    def run(
        self,
        policy: PollPolicy,
        resource_id,
        fetch: Callable[[], Any],
        max_wait_seconds: int,
        revoke: Optional[Callable[[], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Fetch until terminal and return the resource, or raise.

        Errors from ``fetch`` propagate unchanged on the attempt they occur.
        ``revoke`` is only called when the wait budget is exhausted.
        """
        if isinstance(max_wait_seconds, bool) or not isinstance(max_wait_seconds, int) or max_wait_seconds <= 0:
            raise BlinkInvalidValueError(f"max_wait_seconds must be a positive integer, got {max_wait_seconds!r}")

        for attempt in range(1, max_wait_seconds + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise BlinkPollCancelledError(resource_id)

            resource = fetch()
            status = policy.status_of(resource)
            outcome = policy.table.classify(status)
            logger.debug(
                "Polled %s [%s] attempt %d/%d: status=%s",
                policy.label, resource_id, attempt, max_wait_seconds, getattr(status, "value", status),
            )

            if outcome is Outcome.SUCCESS:
                logger.debug("%s completed for ID: %s", policy.label.capitalize(), resource_id)
                return resource
            if outcome is Outcome.REJECTED:
                raise policy.rejected_error(
                    policy.rejected_message.format(id=resource_id), resource_id=resource_id, status=status,
                )
            if outcome is Outcome.GATEWAY_TIMEOUT:
                raise BlinkGatewayTimeoutError(
                    f"Gateway timed out for {policy.label} [{resource_id}]", resource_id=resource_id, status=status,
                )
            if attempt < max_wait_seconds:
                self._wait(resource_id, cancel_event)

        timeout_error = policy.timeout_error(resource_id)
        if revoke is None:
            raise timeout_error

        logger.info("%s [%s] timed out, revoking", policy.label.capitalize(), resource_id)
        try:
            revoke()
        except Exception as exc:
            logger.warning("Revoke after timeout failed for %s [%s]: %s", policy.label, resource_id, exc)
            raise BlinkAggregateError(timeout_error, exc) from exc
        raise timeout_error

    def _wait(self, resource_id, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is None:
            time.sleep(self.interval)
        elif cancel_event.wait(self.interval):
            raise BlinkPollCancelledError(resource_id)
