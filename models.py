from pydantic import BaseModel, Field, field_validator, model_validator
from enum import Enum
from typing import Dict, Optional
from decimal import Context, Decimal, ROUND_HALF_EVEN


# Maximum fractional digits accepted for an amount on input.
AMOUNT_SCALE = 4

# Wide enough that scale-4 amounts up to 2**96 are never rounded.
LEDGER_CONTEXT = Context(prec=64, rounding=ROUND_HALF_EVEN)

MAX_CLIENT_ID = 2 ** 16 - 1
MAX_TX_ID = 2 ** 32 - 1


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.deposit, TransactionType.withdrawal)


class TransactionStatus(str, Enum):
    """Dispute lifecycle of a deposit or withdrawal.

    Transitions:
    - OPEN -> PENDING: dispute
    - PENDING -> RESOLVED: resolve
    - PENDING -> CHARGEBACK: chargeback (also freezes the account)
    """
    OPEN = "open"
    PENDING = "pending"
    RESOLVED = "resolved"
    CHARGEBACK = "chargeback"


class TransactionRecord(BaseModel):
    type: TransactionType = Field(..., description="Event kind")
    client: int = Field(..., ge=0, le=MAX_CLIENT_ID, description="Client identifier")
    tx: int = Field(..., ge=0, le=MAX_TX_ID, description="Globally unique transaction identifier")
    amount: Optional[Decimal] = Field(
        None,
        description="Amount for deposits and withdrawals, at most 4 fractional digits"
    )

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('amount', mode='before')
    @classmethod
    def blank_amount_is_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v is None:
            return v
        if not v.is_finite():
            raise ValueError('Amount must be a finite number')
        if v < 0:
            raise ValueError('Amount cannot be negative')
        exponent = v.normalize(LEDGER_CONTEXT).as_tuple().exponent
        if exponent < -AMOUNT_SCALE:
            raise ValueError(f'Amount must have at most {AMOUNT_SCALE} decimal places')
        return v

    @model_validator(mode='after')
    def validate_amount_presence(self):
        if self.type.carries_amount:
            if self.amount is None:
                raise ValueError(f'{self.type.value} requires an amount')
        else:
            # Recovered from the referenced transaction instead.
            self.amount = None
        return self


class AccountSnapshot(BaseModel):
    client: int = Field(..., description="Client identifier")
    available: Decimal = Field(..., description="Funds available for withdrawal")
    held: Decimal = Field(..., description="Funds held by open disputes")
    total: Decimal = Field(..., description="available + held")
    locked: bool = Field(..., description="Account frozen by a chargeback")

    @model_validator(mode='after')
    def validate_total(self):
        if self.total != LEDGER_CONTEXT.add(self.available, self.held):
            raise ValueError(
                f'Account {self.client} total {self.total} != available {self.available} + held {self.held}'
            )
        if self.available < 0 or self.held < 0:
            raise ValueError(f'Account {self.client} has a negative balance')
        return self

    def formatted(self, scale: int = AMOUNT_SCALE) -> Dict[str, str]:
        """Render the snapshot as CSV-ready strings."""
        quantum = Decimal(1).scaleb(-scale)
        available = self.available.quantize(quantum, context=LEDGER_CONTEXT)
        held = self.held.quantize(quantum, context=LEDGER_CONTEXT)
        # Total is derived from the rounded parts so the row always adds up.
        total = LEDGER_CONTEXT.add(available, held)
        return {
            "client": str(self.client),
            "available": str(available),
            "held": str(held),
            "total": str(total),
            "locked": "true" if self.locked else "false",
        }


class ProcessingSummary(BaseModel):
    rows_read: int = Field(0, description="Rows consumed from the record source")
    applied: int = Field(0, description="Events accepted by the ledger")
    failed: int = Field(0, description="Events rejected with an error")
    failures_by_code: Dict[str, int] = Field(default_factory=dict, description="Rejections per error code")

    def record_failure(self, error_code: str) -> None:
        self.failed += 1
        self.failures_by_code[error_code] = self.failures_by_code.get(error_code, 0) + 1
