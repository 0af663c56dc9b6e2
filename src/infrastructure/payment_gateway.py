"""
Payment gateway client.

Wire contract
-------------
* ``POST {gateway}/payments``  body ``{"amount": <int>}``, bearer token.
  Success is ``204 No Content``.
* ``GET  {gateway}/payments``  bearer token.  Success is ``200`` with a
  JSON array of ``{"amount": <int>, "status": <str>}`` in the same order as
  the caller's ride ledger.

The gateway is untrusted: a request may time out, fail, or succeed without
the caller ever seeing the ``204``.  Every failed submission is followed by
one reconciliation read; if that cannot prove the payment landed, the
submission is retried after ``base + uniform(0, jitter)`` seconds, at most
``max_retry`` times.  Cancellation is never retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx
from pydantic import BaseModel, TypeAdapter

from src.domain.reconciliation import (
    CountReconciler,
    Reconciler,
    ReconciliationMismatch,
)

logger = logging.getLogger(__name__)

RideLedger = Callable[[], Awaitable[Sequence[Any]]]
Sleep = Callable[[float], Awaitable[None]]


# ── Errors ────────────────────────────────────────────────────────────


class SettlementError(Exception):
    """Base class for failures of a single settlement attempt."""


class PaymentGatewayError(SettlementError):
    """The gateway could not be reached or answered unexpectedly."""


class GatewayTransportError(PaymentGatewayError):
    """Network-level failure (connect error, timeout, reset, ...)."""


class GatewayStatusError(PaymentGatewayError):
    def __init__(self, endpoint: str, status_code: int):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(f"[{endpoint}] unexpected status code ({status_code})")


class GatewayResponseError(PaymentGatewayError):
    """The gateway answered with a body that does not match the contract."""


class LedgerUnavailable(SettlementError):
    """The caller's ride ledger could not be read during reconciliation."""


class RetryBudgetExhausted(SettlementError):
    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"maximum retry limit reached: {last_error}")


# ── Wire models ───────────────────────────────────────────────────────


class PaymentRecord(BaseModel):
    amount: int
    status: str


_records_adapter = TypeAdapter(list[PaymentRecord])


# ── Client ────────────────────────────────────────────────────────────


class PaymentGatewayClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        reconciler: Optional[Reconciler] = None,
        max_retry: int = 5,
        backoff_base_seconds: float = 0.1,
        backoff_jitter_seconds: float = 0.2,
        timeout_seconds: float = 5.0,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.reconciler = reconciler or CountReconciler()
        self.max_retry = max_retry
        self.backoff_base = backoff_base_seconds
        self.backoff_jitter = backoff_jitter_seconds
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "PaymentGatewayClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    # ── Public API ────────────────────────────────────────────────────

    async def post_payment(self, amount: int, retrieve_rides: RideLedger) -> None:
        """
        Settle *amount*, recovering from ambiguous failures.

        *retrieve_rides* returns the caller's settled-or-settling rides in
        creation order; it is only awaited during reconciliation.

        Raises ``RetryBudgetExhausted`` (chained to the last cause) after
        ``max_retry + 1`` failed submissions.
        """
        attempts = 0
        while True:
            attempts += 1
            try:
                await self._attempt(amount, retrieve_rides)
                return
            except (SettlementError, ReconciliationMismatch) as exc:
                last_error = exc

            if attempts > self.max_retry:
                logger.error(
                    "Payment of %d failed after %d attempts: %s",
                    amount, attempts, last_error,
                )
                raise RetryBudgetExhausted(attempts, last_error) from last_error

            delay = self._backoff()
            logger.warning(
                "Payment attempt %d failed (%s); retrying in %.3fs",
                attempts, last_error, delay,
            )
            await self._sleep(delay)

    async def get_payments(self) -> list[PaymentRecord]:
        try:
            response = await self._http.get(
                f"{self.base_url}/payments", headers=self._auth_headers()
            )
        except httpx.HTTPError as exc:
            raise GatewayTransportError(f"[GET /payments] {exc!r}") from exc

        if response.status_code != httpx.codes.OK:
            raise GatewayStatusError("GET /payments", response.status_code)

        try:
            return _records_adapter.validate_python(response.json())
        except ValueError as exc:
            raise GatewayResponseError(f"[GET /payments] malformed body: {exc}") from exc

    # ── Internals ─────────────────────────────────────────────────────

    async def _attempt(self, amount: int, retrieve_rides: RideLedger) -> None:
        try:
            await self._submit(amount)
        except PaymentGatewayError as exc:
            logger.info("Submission failed (%s); reconciling with gateway", exc)
            await self._reconcile(retrieve_rides)
            logger.info("Reconciliation shows payment of %d already recorded", amount)

    async def _submit(self, amount: int) -> None:
        try:
            response = await self._http.post(
                f"{self.base_url}/payments",
                json={"amount": amount},
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as exc:
            raise GatewayTransportError(f"[POST /payments] {exc!r}") from exc

        if response.status_code != httpx.codes.NO_CONTENT:
            raise GatewayStatusError("POST /payments", response.status_code)

    async def _reconcile(self, retrieve_rides: RideLedger) -> None:
        records = await self.get_payments()
        try:
            rides = await retrieve_rides()
        except Exception as exc:
            raise LedgerUnavailable(f"ride ledger unavailable: {exc}") from exc
        self.reconciler.reconcile(records, rides)

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def _backoff(self) -> float:
        return self.backoff_base + self._rng.uniform(0, self.backoff_jitter)
