from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger-related errors."""

    error_code: str = "LEDGER_ERROR"
    default_message: str = "ledger error"

    def __init__(self, message: Optional[str] = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


class InvalidData(LedgerError):
    """Raised when a record is malformed or missing a required field."""

    error_code = "INVALID_DATA"
    default_message = "invalid data"


class InsufficientFunds(LedgerError):
    """Raised when an operation would drive available or held funds below zero."""

    error_code = "INSUFFICIENT_FUNDS"
    default_message = "insufficient funds for operation"


class AmountOverflow(LedgerError):
    """Raised when a balance update exceeds the representable decimal range."""

    error_code = "OVERFLOW"
    default_message = "overflow"


class TransactionExists(LedgerError):
    """Raised when a deposit or withdrawal reuses a known transaction id."""

    error_code = "TX_EXISTS"
    default_message = "tx already exists"
