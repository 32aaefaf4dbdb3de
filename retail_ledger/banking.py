"""
Banking Service Module

Glue between a command surface (console or HTTP) and the settlement engine:
login resolves or creates an account and makes it active, deposit tops up
the active account and sweeps its debts, pay transfers to a named account.

The active account lives in an explicit Session value passed to every call.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .accounts import Account, AccountDirectory, require_amount, require_id
from .config import LedgerConfig, get_config
from .errors import NotLoggedIn, UnknownAccount
from .logging_config import get_logger, log_action
from .settlement import SettlementEngine


@dataclass
class Session:
    """Holds at most one active account id"""
    active_account_id: Optional[str] = None

    @property
    def is_logged_in(self) -> bool:
        return self.active_account_id is not None

    def require_active(self) -> str:
        if self.active_account_id is None:
            raise NotLoggedIn("User not logged in. Please login first")
        return self.active_account_id

    def clear(self) -> None:
        self.active_account_id = None


@dataclass(frozen=True)
class AccountSummary:
    """Point-in-time view of an account's balance and debts"""
    account_id: str
    balance: int
    owes_to: Dict[str, int] = field(default_factory=dict)
    owes_from: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_account(cls, account: Account) -> 'AccountSummary':
        return cls(
            account_id=account.id,
            balance=account.balance,
            owes_to=account.owes_to,
            owes_from=account.owes_from
        )

    def describe(self) -> List[str]:
        """User-facing lines: balance first, then liabilities, then receivables"""
        lines = [f"Your balance is {self.balance}."]
        lines.extend(f"Owed {amount} to {peer}." for peer, amount in self.owes_to.items())
        lines.extend(f"Owed {amount} from {peer}." for peer, amount in self.owes_from.items())
        return lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_id": self.account_id,
            "balance": self.balance,
            "owes_to": dict(self.owes_to),
            "owes_from": dict(self.owes_from)
        }


class BankingService:
    """
    Account operations on behalf of a session's active account
    """

    def __init__(self, directory: AccountDirectory, engine: SettlementEngine):
        self.directory = directory
        self.engine = engine
        self.logger = get_logger("ledger.banking")

    def login(self, session: Session, name: str) -> AccountSummary:
        """
        Log in as name, creating a zero-balance account if it does not exist

        Raises:
            InvalidArgument: If name is blank
        """
        require_id(name, "Input name")
        account, created = self.directory.get_or_create(name)
        if created:
            self.logger.warning("Created account for new user %s", name)

        session.active_account_id = account.id
        summary = AccountSummary.from_account(account)
        log_action(
            self.logger, "info", f"Hello, {account.id}!",
            account_id=account.id, action="login",
            extra={"created": created, **summary.to_dict()}
        )
        return summary

    def logout(self, session: Session) -> None:
        if session.is_logged_in:
            log_action(self.logger, "info", f"Goodbye, {session.active_account_id}!",
                       account_id=session.active_account_id, action="logout")
        session.clear()

    def current(self, session: Session) -> AccountSummary:
        """Summary of the active account"""
        return AccountSummary.from_account(self._active_account(session))

    def summary(self, account_id: str) -> AccountSummary:
        account = self.directory.lookup(account_id)
        if account is None:
            raise UnknownAccount(f"Account {account_id} does not exist")
        return AccountSummary.from_account(account)

    def deposit(self, session: Session, amount: int) -> AccountSummary:
        """
        Top up the active account and use the cash to pay down its debts

        Raises:
            InvalidArgument: If amount is negative
            NotLoggedIn: If no account is active
            LedgerInconsistency: If a creditor no longer exists
        """
        require_amount(amount, "Amount")
        account = self._active_account(session)
        self.engine.deposit(account, amount, self.directory.lookup)
        return AccountSummary.from_account(account)

    def pay(self, session: Session, target: str, amount: int) -> AccountSummary:
        """
        Pay amount from the active account to target

        Raises:
            InvalidArgument: If target is blank, amount is negative or the
                active account pays itself
            NotLoggedIn: If no account is active
            UnknownAccount: If target does not exist
        """
        require_id(target, "Input name")
        require_amount(amount, "Paying amount")
        payer = self._active_account(session)
        payee = self.directory.lookup(target)
        if payee is None:
            self.logger.error("Not a valid payee: %s", target)
            raise UnknownAccount(f"Not a valid payee: {target}")

        self.engine.transfer(payer, payee, amount)
        log_action(
            self.logger, "info", f"Transferred {amount} to {payee.id}",
            account_id=payer.id, action="pay",
            resource=f"account:{payee.id}", extra={"amount": amount}
        )
        return AccountSummary.from_account(payer)

    def _active_account(self, session: Session) -> Account:
        account_id = session.require_active()
        account = self.directory.lookup(account_id)
        if account is None:
            # Directory was reset under the session
            session.clear()
            raise NotLoggedIn(f"Account {account_id} no longer exists. Please login again")
        return account


def build_service(config: Optional[LedgerConfig] = None) -> BankingService:
    """Create a directory seeded from config and a service around it"""
    config = config or get_config()
    directory = AccountDirectory()
    directory.seed(config.seed_accounts, config.seed_balance)
    engine = SettlementEngine(lock_timeout=config.lock_timeout_seconds)
    return BankingService(directory, engine)
