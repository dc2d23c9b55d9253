"""
HTTP client for the external settlement processor.

Requests are made once with a timeout. Retrying is the caller's decision:
a charge that times out may or may not have gone through, so it must be
reconciled with retrieve_charge rather than sent again.
"""

from decimal import Decimal
from typing import Any, Optional, cast
from urllib.parse import urljoin

import requests
import structlog

from villa_booking.config import (
    SETTLEMENT_API_KEY,
    SETTLEMENT_API_URL,
    SETTLEMENT_TIMEOUT_SECONDS,
)
from villa_booking.services.settlement import ChargeResult, ChargeStatus, RefundResult

logger = structlog.get_logger(__name__)


def _parse_status(value: Any) -> ChargeStatus:
    """
    Map a processor status string onto ChargeStatus.

    Raises:
        ValueError: If the processor returned a status the engine does not know.
    """
    try:
        return ChargeStatus(str(value).lower())
    except ValueError:
        raise ValueError(f"Unexpected settlement status: {value!r}")


class HttpSettlementAdapter:
    """
    SettlementAdapter backed by the processor's JSON API.

    Args:
        base_url: Processor base URL (trailing slash expected)
        api_key: Bearer token for the processor
        timeout: Per-request timeout in seconds
        session: Optional requests session (tests inject a mock)
    """

    def __init__(
        self,
        base_url: str = SETTLEMENT_API_URL,
        api_key: Optional[str] = SETTLEMENT_API_KEY,
        timeout: float = SETTLEMENT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, idempotency_key: Optional[str] = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict[str, Any]:
        url = urljoin(self.base_url, path)
        logger.debug("settlement_request", method=method, path=path)

        res = self.session.request(
            method,
            url,
            json=payload,
            headers=self._headers(idempotency_key),
            timeout=self.timeout,
        )
        res.raise_for_status()
        return cast(dict[str, Any], res.json())

    def charge(self, booking_uid: str, method: str, amount: Decimal, currency: str) -> ChargeResult:
        """
        Charge the guest for a booking.

        The engine guarantees this is never called for a booking that already
        has a paid or in-flight payment.

        Returns:
            ChargeResult: succeeded, failed (declined) or pending

        Raises:
            requests.RequestException: On transport errors, timeouts and non-2xx responses
        """
        data = self._request(
            "POST",
            "charges",
            payload={
                "reference": booking_uid,
                "method": method,
                "amount": str(amount),
                "currency": currency,
            },
        )
        return ChargeResult(
            status=_parse_status(data.get("status")), transaction_id=data.get("transaction_id")
        )

    def refund(self, transaction_id: str, amount: Decimal) -> RefundResult:
        data = self._request(
            "POST",
            f"charges/{transaction_id}/refunds",
            payload={"amount": str(amount)},
            idempotency_key=f"refund-{transaction_id}",
        )
        return RefundResult(status=_parse_status(data.get("status")))

    def retrieve_charge(self, booking_uid: str) -> ChargeResult:
        """
        Look up the processor's view of the latest charge for a booking.

        A 404 means the processor never received a charge for this reference
        (the charge request failed before reaching it), which is reported as
        FAILED so the pending payment can be settled.

        Raises:
            requests.RequestException: On transport errors and other non-2xx responses
        """
        try:
            data = self._request("GET", f"charges/by-reference/{booking_uid}")
        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                logger.info("settlement_charge_not_found", booking_uid=booking_uid)
                return ChargeResult(status=ChargeStatus.FAILED)
            raise
        return ChargeResult(
            status=_parse_status(data.get("status")), transaction_id=data.get("transaction_id")
        )
