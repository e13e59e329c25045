from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details
                }
            }
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message


# ---------------------------------------------------------------------------
# Generic errors
# ---------------------------------------------------------------------------

class ValidationError(BaseAPIException):
    """Validation errors (rejected before any network call)"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )


class NotFoundError(BaseAPIException):
    """Resource not found errors"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND_001",
            message=message,
            details=details
        )


class InternalServerError(BaseAPIException):
    """Internal server errors"""
    def __init__(self, message: str = "Internal server error", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_001",
            message=message,
            details=details
        )


class ConfigurationError(BaseAPIException):
    """Server misconfiguration (e.g. missing treasury key)"""
    def __init__(self, message: str = "Service is not configured", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="CONFIG_001",
            message=message,
            details=details
        )


# ---------------------------------------------------------------------------
# Invariant violations: business rules enforced locally, no side effect
# ---------------------------------------------------------------------------

class InvariantViolationError(BaseAPIException):
    """Business rule violated; the request never reaches the ledger"""
    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict] = None,
        status_code: int = status.HTTP_409_CONFLICT,
    ):
        super().__init__(
            status_code=status_code,
            error_code=error_code,
            message=message,
            details=details
        )


class SelfAnswerError(InvariantViolationError):
    def __init__(self, question_id: str):
        super().__init__(
            error_code="SELF_ANSWER",
            message="You cannot answer your own question",
            details={"question_id": question_id},
            status_code=status.HTTP_403_FORBIDDEN,
        )


class NotQuestionAuthorError(InvariantViolationError):
    def __init__(self, question_id: str):
        super().__init__(
            error_code="NOT_QUESTION_AUTHOR",
            message="Only the question author can select the best answer",
            details={"question_id": question_id},
            status_code=status.HTTP_403_FORBIDDEN,
        )


class AlreadyResolvedError(InvariantViolationError):
    def __init__(self, question_id: str, best_answer_id: Optional[str]):
        super().__init__(
            error_code="ALREADY_RESOLVED",
            message="This question already has a best answer",
            details={"question_id": question_id, "best_answer_id": best_answer_id},
        )


class DuplicateIdentifierError(InvariantViolationError):
    def __init__(self, identifier: str):
        super().__init__(
            error_code="DUPLICATE_IDENTIFIER",
            message="Identifier is already used; generate a new one for a new action",
            details={"identifier": identifier},
        )


# ---------------------------------------------------------------------------
# Ledger errors
# ---------------------------------------------------------------------------

class LedgerError(BaseAPIException):
    """Base for failures reported by the ledger client"""


class LedgerUnavailableError(LedgerError):
    """RPC node unreachable; nothing was submitted"""
    def __init__(self, message: str = "Ledger node is unreachable", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="LEDGER_UNAVAILABLE",
            message=message,
            details=details
        )


class LedgerRejectedError(LedgerError):
    """Transaction reverted or rejected; no side effect, retry with a fresh identifier"""
    def __init__(self, message: str = "Transaction was rejected by the ledger", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="LEDGER_REJECTED",
            message=message,
            details=details
        )


class LedgerTimeoutError(LedgerError):
    """Unconfirmed: final state unknown, poll by identifier before retrying"""
    def __init__(self, message: str = "Transaction was not confirmed in time", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            error_code="LEDGER_UNCONFIRMED",
            message=message,
            details=details
        )


class ReconciliationError(BaseAPIException):
    """Confirmed on-chain but the off-chain write failed; retry the write, never resubmit"""
    def __init__(self, message: str = "Off-chain write failed after confirmation", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="RECONCILIATION_FAILED",
            message=message,
            details=details
        )


# ---------------------------------------------------------------------------
# Funding gate errors
# ---------------------------------------------------------------------------

class InvalidAddressError(BaseAPIException):
    def __init__(self, address: Optional[str]):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_ADDRESS",
            message="Invalid wallet address",
            details={"wallet_address": address},
        )


class AlreadyFundedError(BaseAPIException):
    def __init__(self, address: str, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="ALREADY_FUNDED",
            message="Wallet already funded",
            details={"wallet_address": address, **(details or {})},
        )


class InsufficientTreasuryError(BaseAPIException):
    def __init__(self, balance: str, required: str):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="INSUFFICIENT_TREASURY",
            message=f"Insufficient treasury balance. Have: {balance}, Need: {required}",
            details={"balance": balance, "required": required},
        )


class TransferFailedError(BaseAPIException):
    """No funds moved; safe to retry"""
    def __init__(self, message: str = "Funding transfer failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="TRANSFER_FAILED",
            message=message,
            details=details
        )


class RecordWriteFailedError(BaseAPIException):
    """Funds moved but bookkeeping is missing; must be reconciled out-of-band"""
    def __init__(self, address: str, transaction_hash: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="RECORD_WRITE_FAILED",
            message="Funds were sent but the funding record could not be written",
            details={"wallet_address": address, "transaction_hash": transaction_hash},
        )
