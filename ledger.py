from decimal import Decimal
from typing import Callable, Iterator, List, Optional
import structlog

from accounts import Account, Transaction
from errors import InsufficientFunds, InvalidData, TransactionExists
from models import AccountSnapshot, TransactionRecord, TransactionStatus, TransactionType
from repositories import (
    AccountRepository,
    InMemoryAccountRepository,
    InMemoryTransactionRepository,
    TransactionRepository,
)

logger = structlog.get_logger()


class Ledger:
    """Owns every account and transaction of a run.

    Deposits and withdrawals create transactions and surface their
    failures to the caller. Disputes, resolves and chargebacks only ever
    reference an earlier transaction; when one of them cannot apply
    (unknown id, wrong status, frozen account, funds already moved) it is
    ignored rather than reported.
    """

    def __init__(
        self,
        account_repo: Optional[AccountRepository] = None,
        transaction_repo: Optional[TransactionRepository] = None,
    ):
        self.account_repo = account_repo if account_repo is not None else InMemoryAccountRepository()
        self.transaction_repo = transaction_repo if transaction_repo is not None else InMemoryTransactionRepository()

    def apply(self, record: TransactionRecord) -> None:
        """Route a parsed record to the operation for its kind."""
        if record.type.carries_amount and record.amount is None:
            raise InvalidData(f"{record.type.value} {record.tx} has no amount", tx=record.tx)

        if record.type == TransactionType.deposit:
            self.deposit(record.client, record.amount, record.tx)
        elif record.type == TransactionType.withdrawal:
            self.withdraw(record.client, record.amount, record.tx)
        elif record.type == TransactionType.dispute:
            self.dispute(record.client, record.tx)
        elif record.type == TransactionType.resolve:
            self.resolve(record.client, record.tx)
        elif record.type == TransactionType.chargeback:
            self.chargeback(record.client, record.tx)
        else:
            raise InvalidData(f"unknown transaction type {record.type!r}", tx=record.tx)

    def deposit(self, client: int, amount: Decimal, tx: int) -> None:
        self._record(TransactionType.deposit, client, amount, tx, Account.deposit)

    def withdraw(self, client: int, amount: Decimal, tx: int) -> None:
        self._record(TransactionType.withdrawal, client, amount, tx, Account.withdraw)

    def dispute(self, client: int, tx: int) -> None:
        self._settle(
            TransactionType.dispute, client, tx,
            TransactionStatus.OPEN, TransactionStatus.PENDING, Account.dispute,
        )

    def resolve(self, client: int, tx: int) -> None:
        self._settle(
            TransactionType.resolve, client, tx,
            TransactionStatus.PENDING, TransactionStatus.RESOLVED, Account.resolve,
        )

    def chargeback(self, client: int, tx: int) -> None:
        self._settle(
            TransactionType.chargeback, client, tx,
            TransactionStatus.PENDING, TransactionStatus.CHARGEBACK, Account.chargeback,
        )

    def account(self, client: int) -> Account:
        return self.account_repo.get_or_create(client)

    def accounts(self) -> Iterator[Account]:
        return iter(self.account_repo)

    def snapshots(self, sort: bool = True) -> List[AccountSnapshot]:
        accounts = list(self.account_repo)
        if sort:
            accounts.sort(key=lambda account: account.client)
        return [account.snapshot() for account in accounts]

    def transaction_status(self, tx: int) -> Optional[TransactionStatus]:
        transaction = self.transaction_repo.get(tx)
        return transaction.status if transaction else None

    def _record(
        self,
        kind: TransactionType,
        client: int,
        amount: Decimal,
        tx: int,
        operation: Callable[[Account, Decimal], None],
    ) -> None:
        if self.transaction_repo.exists(tx):
            raise TransactionExists(f"transaction {tx} already exists", tx=tx, client=client)

        account = self.account_repo.get_or_create(client)
        if account.frozen:
            logger.debug("Frozen account absorbed transaction", type=kind.value, client=client, tx=tx)
            return

        operation(account, amount)
        self.account_repo.save(account)
        self.transaction_repo.save(Transaction(id=tx, client=client, amount=amount))

        logger.debug(
            "Transaction recorded",
            type=kind.value,
            client=client,
            tx=tx,
            amount=str(amount),
            available=str(account.available),
        )

    def _settle(
        self,
        kind: TransactionType,
        client: int,
        tx: int,
        required: TransactionStatus,
        target: TransactionStatus,
        operation: Callable[[Account, Decimal], None],
    ) -> None:
        transaction = self.transaction_repo.get(tx)
        if transaction is None:
            logger.debug("Ignoring reference to unknown transaction", type=kind.value, client=client, tx=tx)
            return

        if transaction.client != client:
            logger.debug(
                "Ignoring request for another client's transaction",
                type=kind.value,
                client=client,
                tx=tx,
                owner=transaction.client,
            )
            return

        account = self.account_repo.get_or_create(client)
        if account.frozen:
            logger.debug("Ignoring request on frozen account", type=kind.value, client=client, tx=tx)
            return

        if transaction.status != required:
            logger.debug(
                "Ignoring request in current status",
                type=kind.value,
                client=client,
                tx=tx,
                status=transaction.status.value,
            )
            return

        try:
            operation(account, transaction.amount)
        except InsufficientFunds as e:
            logger.debug("Ignoring request without sufficient funds", type=kind.value, client=client, tx=tx, detail=e.message)
            return

        transaction.transition_to(target)
        self.transaction_repo.save(transaction)
        self.account_repo.save(account)

        logger.debug(
            "Transaction status changed",
            type=kind.value,
            client=client,
            tx=tx,
            status=target.value,
            held=str(account.held),
        )
