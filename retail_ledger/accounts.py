"""
Account Management Module

Defines the ledger Account (cash balance plus two mirrored debt maps) and the
in-memory AccountDirectory that resolves account identifiers.

The debt maps are never handed out by reference: callers go through the
add/remove/query methods so a zero entry is never left behind and no entry
ever goes negative.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple
import threading

from .errors import InvalidArgument
from .logging_config import get_logger, log_action


logger = get_logger("ledger.accounts")


def require_id(value: Optional[str], what: str = "Account id") -> str:
    """Reject None, empty and whitespace-only identifiers"""
    if value is None or not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{what} cannot be null/empty")
    return value


def require_amount(value: Any, what: str = "Amount", allow_negative: bool = False) -> int:
    """Reject non-integer amounts and, unless allowed, negative ones"""
    # bool is an int subclass but never a valid amount
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{what} must be an integer, got {value!r}")
    if not allow_negative and value < 0:
        raise InvalidArgument(f"{what} cannot be less than 0.")
    return value


@dataclass(frozen=True)
class AccountSnapshot:
    """Value copy of an account's mutable state"""
    balance: int
    owes_to: Tuple[Tuple[str, int], ...]
    owes_from: Tuple[Tuple[str, int], ...]


class Account:
    """
    Ledger account: identity, cash balance and pairwise debts.

    Two accounts are equal iff their ids are equal; balance and debt state
    take no part in equality or hashing.
    """

    def __init__(self, account_id: str, balance: int = 0):
        self._id = require_id(account_id)
        self._balance = require_amount(balance, "Balance")
        self._owes_to: Dict[str, int] = {}
        self._owes_from: Dict[str, int] = {}
        self.created_at = datetime.now(timezone.utc)
        self.lock = threading.RLock()

    @property
    def id(self) -> str:
        return self._id

    @property
    def balance(self) -> int:
        return self._balance

    def _set_balance(self, value: int) -> None:
        # Only the settlement engine moves cash
        self._balance = require_amount(value, "Balance")

    # Debt map queries

    @property
    def owes_to(self) -> Dict[str, int]:
        """Debts this account owes, in the order they were first recorded"""
        return dict(self._owes_to)

    @property
    def owes_from(self) -> Dict[str, int]:
        """Debts owed to this account, in the order they were first recorded"""
        return dict(self._owes_from)

    def does_owe_to(self, peer_id: str) -> bool:
        return require_id(peer_id, "Peer id") in self._owes_to

    def does_owe_from(self, peer_id: str) -> bool:
        return require_id(peer_id, "Peer id") in self._owes_from

    def owed_to(self, peer_id: str) -> int:
        return self._owes_to.get(require_id(peer_id, "Peer id"), 0)

    def owed_from(self, peer_id: str) -> int:
        return self._owes_from.get(require_id(peer_id, "Peer id"), 0)

    @property
    def total_owed_to(self) -> int:
        return sum(self._owes_to.values())

    @property
    def total_owed_from(self) -> int:
        return sum(self._owes_from.values())

    @property
    def net_position(self) -> int:
        """Balance plus receivables minus liabilities"""
        return self._balance + self.total_owed_from - self.total_owed_to

    # Debt map updates

    def add_owes_to(self, peer_id: str, amount: int) -> 'Account':
        """Apply a signed delta to the debt owed to peer_id"""
        _apply_delta(self._owes_to, require_id(peer_id, "Peer id"),
                     require_amount(amount, "Owing amount", allow_negative=True))
        return self

    def add_owes_from(self, peer_id: str, amount: int) -> 'Account':
        """Apply a signed delta to the debt peer_id owes this account"""
        _apply_delta(self._owes_from, require_id(peer_id, "Peer id"),
                     require_amount(amount, "Owing amount", allow_negative=True))
        return self

    def remove_owes_to(self, peer_id: str) -> int:
        return self._owes_to.pop(require_id(peer_id, "Peer id"), 0)

    def remove_owes_from(self, peer_id: str) -> int:
        return self._owes_from.pop(require_id(peer_id, "Peer id"), 0)

    # Rollback support

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            balance=self._balance,
            owes_to=tuple(self._owes_to.items()),
            owes_from=tuple(self._owes_from.items())
        )

    def restore(self, snapshot: AccountSnapshot) -> None:
        self._balance = snapshot.balance
        self._owes_to = dict(snapshot.owes_to)
        self._owes_from = dict(snapshot.owes_from)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display and API responses"""
        return {
            "id": self._id,
            "balance": self._balance,
            "owes_to": self.owes_to,
            "owes_from": self.owes_from,
            "created_at": self.created_at.isoformat()
        }

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Account):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return f"Account(id={self._id!r}, balance={self._balance})"


def _apply_delta(debts: Dict[str, int], peer_id: str, amount: int) -> None:
    current = debts.get(peer_id, 0)
    updated = current + amount
    if updated < 0:
        raise InvalidArgument(
            f"Debt with {peer_id} cannot go negative: {current} + ({amount})"
        )
    if updated == 0:
        debts.pop(peer_id, None)
    else:
        # Assigning an existing key keeps its original position
        debts[peer_id] = updated


class AccountDirectory:
    """
    In-memory account store keyed by account id.

    Constructed once and handed to every collaborator that needs to
    resolve accounts.
    """

    def __init__(self, accounts: Optional[Iterable[Account]] = None):
        self._accounts: Dict[str, Account] = {}
        self._lock = threading.RLock()
        for account in accounts or ():
            self.insert(account.id, account)

    def lookup(self, account_id: str) -> Optional[Account]:
        """Resolve an id to its Account, or None when absent"""
        require_id(account_id)
        with self._lock:
            account = self._accounts.get(account_id)
        logger.debug("Looked up account %s: %s", account_id, account)
        return account

    def insert(self, account_id: str, account: Account) -> None:
        require_id(account_id)
        if account is None:
            raise InvalidArgument("Account cannot be null")
        if account.id != account_id:
            raise InvalidArgument(
                f"Directory key {account_id!r} does not match account id {account.id!r}"
            )
        with self._lock:
            self._accounts[account_id] = account

    def create(self, account_id: str, balance: int = 0) -> Account:
        """
        Create an account and insert it, replacing any account with the same id

        Args:
            account_id: Identifier of the new account
            balance: Starting balance (bootstrap and test data)

        Returns:
            Created Account object
        """
        account = Account(account_id, balance)
        self.insert(account_id, account)
        log_action(
            logger, "info", f"Created account {account_id}",
            account_id=account_id, action="create_account",
            resource=f"account:{account_id}", extra={"balance": balance}
        )
        return account

    def get_or_create(self, account_id: str) -> Tuple[Account, bool]:
        """Resolve an account, creating it with a zero balance if absent"""
        with self._lock:
            account = self.lookup(account_id)
            if account is not None:
                return account, False
            return self.create(account_id), True

    def seed(self, names: Iterable[str], balance: int = 0) -> List[Account]:
        """Create bootstrap accounts"""
        return [self.create(name, balance) for name in names]

    def clear_all(self) -> None:
        with self._lock:
            count = len(self._accounts)
            self._accounts.clear()
        log_action(
            logger, "info", "Cleared account directory",
            action="clear_accounts", extra={"removed": count}
        )

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._accounts)

    def accounts(self) -> List[Account]:
        with self._lock:
            return list(self._accounts.values())

    def __contains__(self, account_id: object) -> bool:
        with self._lock:
            return account_id in self._accounts

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    def verify_debt_symmetry(self) -> Dict[str, Any]:
        """
        Verify that every debt is recorded on both sides with the same value.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every debt entry is mirrored and positive
            - 'discrepancies': List[Dict] - one entry per broken pair, with
              debtor, creditor, owes_to, owes_from and an error description
        """
        discrepancies = []
        with self._lock:
            accounts = dict(self._accounts)

        for debtor in accounts.values():
            for creditor_id, value in debtor.owes_to.items():
                creditor = accounts.get(creditor_id)
                mirrored = creditor.owed_from(debtor.id) if creditor else None
                if value <= 0:
                    error = "non-positive debt"
                elif creditor is None:
                    error = "creditor not registered"
                elif mirrored != value:
                    error = "mirror mismatch"
                else:
                    continue
                discrepancies.append({
                    'debtor': debtor.id,
                    'creditor': creditor_id,
                    'owes_to': value,
                    'owes_from': mirrored,
                    'error': error,
                })

        # Receivables with no liability on the other side
        for creditor in accounts.values():
            for debtor_id, value in creditor.owes_from.items():
                debtor = accounts.get(debtor_id)
                if debtor is not None and debtor.does_owe_to(creditor.id):
                    continue
                discrepancies.append({
                    'debtor': debtor_id,
                    'creditor': creditor.id,
                    'owes_to': None,
                    'owes_from': value,
                    'error': "debtor not registered" if debtor is None else "missing liability",
                })

        return {
            'valid': len(discrepancies) == 0,
            'discrepancies': discrepancies,
        }
