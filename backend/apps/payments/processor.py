"""
Connected-account payment processor client.

The backend is chosen by settings.PAYMENT_PROCESSOR["BACKEND"] (a dotted
path, loaded like Django storage backends). Every call carries a bounded
timeout. Amounts go over the wire in minor units.

Error model:
- ProcessorError: the processor definitively refused the request.
- ProcessorUnavailable: outcome unknown (timeout, connection reset, 5xx).
  The transfer may or may not exist; resolve it by idempotency key.
"""

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import requests
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA", "PYG", "RWF",
     "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
)


class ProcessorError(Exception):
    """The processor rejected the request."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class ProcessorUnavailable(ProcessorError):
    """Outcome unknown; the request may have been applied."""


class ProcessorTimeout(ProcessorUnavailable):
    """The call exceeded the configured timeout."""


@dataclass(frozen=True)
class TransferResult:
    transfer_id: str
    status: str
    idempotency_key: Optional[str] = None
    failure_reason: Optional[str] = None
    raw: dict = field(default_factory=dict, compare=False)


def to_minor_units(amount, currency):
    exponent = 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2
    scaled = Decimal(amount).scaleb(exponent)
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentProcessor:
    """Interface every processor backend implements."""

    def transfer(self, amount, currency, destination, idempotency_key, metadata=None):
        """Move amount to the destination connected account. Returns TransferResult."""
        raise NotImplementedError

    def get_transfer(self, transfer_id):
        """Current state of a transfer by its processor id."""
        raise NotImplementedError

    def find_transfer(self, idempotency_key):
        """Transfer created with idempotency_key, or None if none exists."""
        raise NotImplementedError


class HttpPaymentProcessor(PaymentProcessor):
    """JSON-over-HTTP client for the connected-account transfers API."""

    def __init__(self, base_url=None, api_key=None, timeout=None, session=None):
        config = settings.PAYMENT_PROCESSOR
        self.base_url = (base_url or config["BASE_URL"]).rstrip("/")
        self.api_key = api_key if api_key is not None else config.get("API_KEY", "")
        self.timeout = timeout if timeout is not None else config.get("TIMEOUT", 10)
        self.session = session or requests.Session()

    def _request(self, method, path, idempotency_key=None, **kwargs) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        url = f"{self.base_url}{path}"

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.Timeout as exc:
            raise ProcessorTimeout(f"{method} {path} timed out after {self.timeout}s") from exc
        except requests.ConnectionError as exc:
            raise ProcessorUnavailable(f"{method} {path} connection failed: {exc}") from exc
        except requests.RequestException as exc:
            raise ProcessorError(f"{method} {path} failed: {exc}") from exc

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {"body": response.text[:500]}

        if response.status_code >= 500:
            raise ProcessorUnavailable(
                f"Processor returned {response.status_code}",
                status_code=response.status_code,
                payload=payload,
            )
        if response.status_code >= 400:
            message = payload.get("error", {}).get("message") if isinstance(
                payload.get("error"), dict
            ) else None
            raise ProcessorError(
                message or f"Processor returned {response.status_code}",
                status_code=response.status_code,
                payload=payload,
            )
        return payload

    @staticmethod
    def _result(payload):
        return TransferResult(
            transfer_id=payload["id"],
            status=payload.get("status", ""),
            idempotency_key=payload.get("idempotency_key"),
            failure_reason=payload.get("failure_message"),
            raw=payload,
        )

    def transfer(self, amount, currency, destination, idempotency_key, metadata=None):
        payload = self._request(
            "POST",
            "/v1/transfers",
            idempotency_key=idempotency_key,
            json={
                "amount": to_minor_units(amount, currency),
                "currency": currency.lower(),
                "destination": destination,
                "metadata": {k: str(v) for k, v in (metadata or {}).items()},
            },
        )
        return self._result(payload)

    def get_transfer(self, transfer_id):
        return self._result(self._request("GET", f"/v1/transfers/{transfer_id}"))

    def find_transfer(self, idempotency_key):
        payload = self._request(
            "GET", "/v1/transfers", params={"idempotency_key": idempotency_key}
        )
        matches = payload.get("data", [])
        if not matches:
            return None
        return self._result(matches[0])


def get_processor():
    """Instantiate the configured processor backend."""
    backend = import_string(settings.PAYMENT_PROCESSOR["BACKEND"])
    return backend()
