"""
In-memory payment processor for tests.

Selected with override_settings(PAYMENT_PROCESSOR=FAKE_PROCESSOR). State is
kept on the class because get_processor() builds a new instance per call;
call FakeProcessor.reset() in setUp.
"""

import itertools

from apps.payments.processor import (
    PaymentProcessor,
    ProcessorError,
    ProcessorTimeout,
    ProcessorUnavailable,
    TransferResult,
)

FAKE_PROCESSOR = {
    "BACKEND": "apps.payments.tests.fakes.FakeProcessor",
    "BASE_URL": "http://processor.test",
    "API_KEY": "test-key",
    "TIMEOUT": 1,
    "WEBHOOK_SECRET": "whsec_test",
}


class FakeProcessor(PaymentProcessor):
    # "ok": transfer accepted
    # "reject": definite refusal, nothing created
    # "timeout": transfer created but the response is lost
    # "down": nothing created, connection refused
    mode = "ok"
    initial_status = "pending"
    transfers = {}
    calls = []
    _ids = itertools.count(1)

    @classmethod
    def reset(cls, mode="ok", initial_status="pending"):
        cls.mode = mode
        cls.initial_status = initial_status
        cls.transfers = {}
        cls.calls = []
        cls._ids = itertools.count(1)

    @classmethod
    def transfer_calls(cls):
        return [call for call in cls.calls if call[0] == "transfer"]

    @classmethod
    def settle(cls, idempotency_key, status="succeeded", failure_reason=None):
        """Change a transfer's status as the processor would, asynchronously."""
        record = cls._by_key(idempotency_key)
        record["status"] = status
        record["failure_message"] = failure_reason
        return record

    @classmethod
    def _by_key(cls, idempotency_key):
        for record in cls.transfers.values():
            if record["idempotency_key"] == idempotency_key:
                return record
        return None

    @staticmethod
    def _result(record):
        return TransferResult(
            transfer_id=record["id"],
            status=record["status"],
            idempotency_key=record["idempotency_key"],
            failure_reason=record.get("failure_message"),
            raw=dict(record),
        )

    def transfer(self, amount, currency, destination, idempotency_key, metadata=None):
        cls = type(self)
        cls.calls.append(("transfer", idempotency_key, amount, destination))

        if cls.mode == "reject":
            raise ProcessorError("Destination account cannot receive transfers", 400)
        if cls.mode == "down":
            raise ProcessorUnavailable("Connection refused")

        record = cls._by_key(idempotency_key)
        if record is None:
            record = {
                "id": f"tr_{next(cls._ids)}",
                "idempotency_key": idempotency_key,
                "amount": amount,
                "currency": currency,
                "destination": destination,
                "metadata": dict(metadata or {}),
                "status": cls.initial_status,
                "failure_message": None,
            }
            cls.transfers[record["id"]] = record

        if cls.mode == "timeout":
            raise ProcessorTimeout("POST /v1/transfers timed out after 1s")
        return self._result(record)

    def get_transfer(self, transfer_id):
        cls = type(self)
        cls.calls.append(("get_transfer", transfer_id))
        if cls.mode == "down":
            raise ProcessorUnavailable("Connection refused")
        record = cls.transfers.get(transfer_id)
        if record is None:
            raise ProcessorError(f"No such transfer: {transfer_id}", 404)
        return self._result(record)

    def find_transfer(self, idempotency_key):
        cls = type(self)
        cls.calls.append(("find_transfer", idempotency_key))
        if cls.mode == "down":
            raise ProcessorUnavailable("Connection refused")
        record = cls._by_key(idempotency_key)
        return self._result(record) if record else None
