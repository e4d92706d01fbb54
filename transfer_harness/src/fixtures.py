"""Canned responders for the transfer endpoint."""
import logging

from transfer_harness.logger import MOCK_LOGGER_NAME
from transfer_harness.src.intercept import (
    AbortSignal,
    CapturedRequest,
    FabricatedResponse,
    Responder,
)
from transfer_harness.src.models import TransferError, TransferSuccess

mock_log = logging.getLogger(MOCK_LOGGER_NAME)


def success_fixture(transaction_id: str) -> Responder:
    """HTTP 200 with ``{"status": "success", "transactionId": ...}``."""
    payload = TransferSuccess(transaction_id=transaction_id).model_dump(by_alias=True)

    def _respond(request: CapturedRequest) -> FabricatedResponse:
        mock_log.info("[Mock] Intercepted transfer request - returning success")
        return FabricatedResponse.json(200, payload)

    return _respond


def error_fixture(message: str, status: int = 400) -> Responder:
    """Application error: ``{"error": message}`` with a 4xx/5xx status."""
    payload = TransferError(error=message).model_dump()

    def _respond(request: CapturedRequest) -> FabricatedResponse:
        mock_log.info(f"[Mock] Intercepted transfer request - returning {status} error")
        return FabricatedResponse.json(status, payload)

    return _respond


def transport_failure(reason: str = "failed") -> Responder:
    signal = AbortSignal(reason)

    def _respond(request: CapturedRequest) -> AbortSignal:
        mock_log.info("[Mock] Intercepted transfer request - aborting to simulate failure")
        return signal

    return _respond
