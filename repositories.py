from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional

from accounts import Account, Transaction


class AccountRepository(ABC):
    @abstractmethod
    def get(self, client: int) -> Optional[Account]:
        """Get an account. Returns None if the client has not been seen."""
        pass

    @abstractmethod
    def get_or_create(self, client: int) -> Account:
        """Get an account, creating an empty one on first reference."""
        pass

    @abstractmethod
    def save(self, account: Account) -> None:
        """Store an account."""
        pass

    @abstractmethod
    def __iter__(self) -> Iterator[Account]:
        """Iterate accounts in first-seen order."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class TransactionRepository(ABC):
    @abstractmethod
    def get(self, tx: int) -> Optional[Transaction]:
        """Get a recorded transaction by id."""
        pass

    @abstractmethod
    def save(self, transaction: Transaction) -> None:
        """Store a transaction."""
        pass

    def exists(self, tx: int) -> bool:
        return self.get(tx) is not None

    @abstractmethod
    def __len__(self) -> int:
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get(self, client: int) -> Optional[Account]:
        return self.accounts.get(client)

    def get_or_create(self, client: int) -> Account:
        account = self.accounts.get(client)
        if account is None:
            account = Account(client=client)
            self.accounts[client] = account
        return account

    def save(self, account: Account) -> None:
        self.accounts[account.client] = account

    def __iter__(self) -> Iterator[Account]:
        return iter(list(self.accounts.values()))

    def __len__(self) -> int:
        return len(self.accounts)


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self):
        self.transactions: Dict[int, Transaction] = {}

    def get(self, tx: int) -> Optional[Transaction]:
        return self.transactions.get(tx)

    def save(self, transaction: Transaction) -> None:
        self.transactions[transaction.id] = transaction

    def exists(self, tx: int) -> bool:
        return tx in self.transactions

    def __len__(self) -> int:
        return len(self.transactions)
