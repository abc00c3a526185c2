from dataclasses import dataclass, replace
from decimal import Decimal, DecimalException, Inexact, InvalidOperation

from errors import AmountOverflow, InsufficientFunds
from models import LEDGER_CONTEXT, AccountSnapshot, TransactionStatus

ZERO = Decimal(0)

# Largest magnitude a balance may reach (96-bit mantissa).
MAX_AMOUNT = Decimal(2 ** 96 - 1)

_CHECKED_CONTEXT = LEDGER_CONTEXT.copy()
_CHECKED_CONTEXT.traps[Inexact] = True
_CHECKED_CONTEXT.traps[InvalidOperation] = True


def _checked(result_fn, a: Decimal, b: Decimal) -> Decimal:
    try:
        result = result_fn(a, b)
    except DecimalException as exc:
        raise AmountOverflow(f"cannot combine {a} and {b} exactly") from exc
    if result.copy_abs() > MAX_AMOUNT:
        raise AmountOverflow(f"{result} exceeds the representable range")
    return result


def checked_add(a: Decimal, b: Decimal) -> Decimal:
    return _checked(_CHECKED_CONTEXT.add, a, b)


def checked_sub(a: Decimal, b: Decimal) -> Decimal:
    return _checked(_CHECKED_CONTEXT.subtract, a, b)


@dataclass
class Account:
    client: int
    available: Decimal = ZERO
    held: Decimal = ZERO
    total: Decimal = ZERO
    locked: bool = False

    @property
    def frozen(self) -> bool:
        return self.locked

    def deposit(self, amount: Decimal) -> None:
        available = checked_add(self.available, amount)
        total = checked_add(self.total, amount)
        self.available, self.total = available, total

    def withdraw(self, amount: Decimal) -> None:
        available = checked_sub(self.available, amount)
        if available < ZERO:
            raise InsufficientFunds(
                f"client {self.client} has {self.available} available, needs {amount}",
                client=self.client,
            )
        total = checked_sub(self.total, amount)
        self.available, self.total = available, total

    def hold(self, amount: Decimal) -> None:
        held = checked_add(self.held, amount)
        total = checked_add(self.total, amount)
        self.held, self.total = held, total

    def withdraw_held(self, amount: Decimal) -> None:
        held = checked_sub(self.held, amount)
        if held < ZERO:
            raise InsufficientFunds(
                f"client {self.client} has {self.held} held, needs {amount}",
                client=self.client,
            )
        total = checked_sub(self.total, amount)
        self.held, self.total = held, total

    def dispute(self, amount: Decimal) -> None:
        """Move ``amount`` from available to held."""
        staged = replace(self)
        staged.withdraw(amount)
        staged.hold(amount)
        self._commit(staged)

    def resolve(self, amount: Decimal) -> None:
        """Release ``amount`` from held back to available."""
        staged = replace(self)
        staged.withdraw_held(amount)
        staged.deposit(amount)
        self._commit(staged)

    def chargeback(self, amount: Decimal) -> None:
        """Remove ``amount`` from held and freeze the account for good."""
        self.withdraw_held(amount)
        self.locked = True

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            client=self.client,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
        )

    def _commit(self, staged: "Account") -> None:
        self.available = staged.available
        self.held = staged.held
        self.total = staged.total


# Allowed status changes; anything else is ignored by the ledger.
_TRANSITIONS = {
    TransactionStatus.OPEN: (TransactionStatus.PENDING,),
    TransactionStatus.PENDING: (TransactionStatus.RESOLVED, TransactionStatus.CHARGEBACK),
    TransactionStatus.RESOLVED: (),
    TransactionStatus.CHARGEBACK: (),
}


@dataclass
class Transaction:
    id: int
    client: int
    amount: Decimal
    status: TransactionStatus = TransactionStatus.OPEN

    def can_transition(self, status: TransactionStatus) -> bool:
        return status in _TRANSITIONS[self.status]

    def transition_to(self, status: TransactionStatus) -> None:
        if not self.can_transition(status):
            raise ValueError(f"Transaction {self.id} cannot move from {self.status.value} to {status.value}")
        self.status = status
