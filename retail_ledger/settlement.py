"""
Settlement Engine Module

Implements the two settlement algorithms of the ledger:

* transfer: a payer pays a payee. A debt the payee already owes the payer is
  netted first; only the remainder moves as cash, and whatever the payer's
  balance cannot cover becomes a new debt from payer to payee.
* deposit sweep: when an account's balance grows, its outstanding debts are
  paid down in the order they were first recorded until the cash runs out.

Every call locks its participating accounts in ascending id order, snapshots
them, and restores all of them if anything raises, so a settlement is
observed either completely or not at all.
"""

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from .accounts import Account, require_amount
from .config import get_config
from .errors import AccountBusy, InvalidArgument, LedgerInconsistency
from .logging_config import get_logger, log_action


Resolver = Callable[[str], Optional[Account]]


class SettlementEngine:
    """
    Settles transfers and deposits between accounts
    """

    def __init__(self, lock_timeout: Optional[float] = None):
        if lock_timeout is None:
            lock_timeout = get_config().lock_timeout_seconds
        self.lock_timeout = lock_timeout
        self.logger = get_logger("ledger.settlement")

    @contextmanager
    def atomic(self, *accounts: Account) -> Iterator[None]:
        """
        Hold every account's lock and roll all of them back on failure

        Locks are taken in ascending id order so two settlements touching
        the same pair in opposite directions cannot deadlock.

        Raises:
            AccountBusy: If a lock is not acquired within lock_timeout
        """
        ordered = sorted({a.id: a for a in accounts}.values(), key=lambda a: a.id)
        acquired: List[Account] = []
        try:
            for account in ordered:
                if not account.lock.acquire(timeout=self.lock_timeout):
                    raise AccountBusy(
                        f"Account {account.id} is busy, try again later"
                    )
                acquired.append(account)

            snapshots = [(account, account.snapshot()) for account in ordered]
            try:
                yield
            except Exception:
                for account, snapshot in snapshots:
                    account.restore(snapshot)
                self.logger.warning(
                    "Settlement rolled back for accounts %s",
                    [account.id for account in ordered]
                )
                raise
        finally:
            for account in reversed(acquired):
                account.lock.release()

    def transfer(self, payer: Account, payee: Account, amount: int) -> None:
        """
        Transfer amount from payer to payee

        Args:
            payer: Account whose balance decreases
            payee: Account whose balance increases
            amount: Amount in the smallest currency unit

        Raises:
            InvalidArgument: If an account is missing, payer and payee are the
                same account, or amount is negative
        """
        if payer is None or payee is None:
            raise InvalidArgument("Payer or Payee not available in the Transaction.")
        require_amount(amount, "Payment amount")
        if payer == payee:
            raise InvalidArgument(f"Account {payer.id} cannot pay itself")

        with self.atomic(payer, payee):
            self._settle_transfer(payer, payee, amount)

    def _settle_transfer(self, payer: Account, payee: Account, amount: int) -> None:
        log_action(
            self.logger, "info",
            f"Transferring {amount} from {payer.id} to {payee.id}",
            account_id=payer.id, action="transfer",
            resource=f"account:{payee.id}", extra={"amount": amount}
        )

        remaining = amount
        prior_debt = payee.owed_to(payer.id)
        if prior_debt:
            if prior_debt <= remaining:
                payee.remove_owes_to(payer.id)
                payer.remove_owes_from(payee.id)
                self.logger.info("%s cleared its debt of %s to %s",
                                 payee.id, prior_debt, payer.id)
            else:
                payee.add_owes_to(payer.id, -remaining)
                payer.add_owes_from(payee.id, -remaining)
                self.logger.info("%s debt to %s reduced by %s",
                                 payee.id, payer.id, remaining)
            remaining -= prior_debt

        if remaining <= 0:
            self.logger.info("Transfer absorbed by debt between %s and %s",
                             payer.id, payee.id)
            return

        if remaining <= payer.balance:
            payer._set_balance(payer.balance - remaining)
            payee._set_balance(payee.balance + remaining)
            return

        deficit = remaining - payer.balance
        payee._set_balance(payee.balance + payer.balance)
        payer._set_balance(0)
        payer.add_owes_to(payee.id, deficit)
        payee.add_owes_from(payer.id, deficit)
        log_action(
            self.logger, "info",
            f"{payer.id} now owes {deficit} to {payee.id}",
            account_id=payer.id, action="record_debt",
            resource=f"account:{payee.id}", extra={"deficit": deficit}
        )

    def sweep_debts(self, account: Account, resolver: Resolver) -> None:
        """
        Pay down account's debts with its current balance

        Creditors are paid in the order their debts were first recorded.
        The sweep works on the debts present when it starts.

        Args:
            account: Debtor whose balance is used
            resolver: Maps a creditor id to its Account, or None

        Raises:
            InvalidArgument: If account is missing
            LedgerInconsistency: If a creditor cannot be resolved; nothing
                is changed in that case
        """
        if account is None:
            raise InvalidArgument("Account not available for debt sweep.")
        self.deposit(account, 0, resolver)

    def deposit(self, account: Account, amount: int, resolver: Resolver) -> None:
        """
        Add amount to account's balance, then sweep its debts

        Both steps form one atomic unit: a failed sweep also undoes the
        balance increase. Creditors are resolved before locking, so the
        debt list is read again once the locks are held; if a debt was
        recorded in between, the locks are released and the creditors
        resolved again.
        """
        if account is None:
            raise InvalidArgument("Account not available for deposit.")
        require_amount(amount, "Deposit amount")

        creditors: Dict[str, Optional[Account]] = {}
        while True:
            for creditor_id in account.owes_to:
                if creditor_id not in creditors:
                    creditors[creditor_id] = resolver(creditor_id)
            participants = [account] + [c for c in creditors.values() if c is not None]

            with self.atomic(*participants):
                creditor_ids = list(account.owes_to)
                unresolved = [c for c in creditor_ids if c not in creditors]
                if unresolved:
                    self.logger.debug("New creditors %s of %s recorded while waiting, retrying",
                                      unresolved, account.id)
                    continue

                if amount:
                    account._set_balance(account.balance + amount)
                    log_action(
                        self.logger, "info", f"Deposited {amount} to {account.id}",
                        account_id=account.id, action="deposit",
                        resource=f"account:{account.id}", extra={"amount": amount}
                    )
                self._sweep(account, creditor_ids, creditors)
                return

    def _sweep(self, account: Account, creditor_ids: List[str],
               creditors: Dict[str, Optional[Account]]) -> None:
        balance = account.balance
        for creditor_id in creditor_ids:
            if balance <= 0:
                break
            debt = account.owed_to(creditor_id)
            if not debt:
                continue

            creditor = creditors.get(creditor_id)
            if creditor is None:
                self.logger.error("Creditor %s of %s does not exist",
                                  creditor_id, account.id)
                raise LedgerInconsistency(
                    f"Account {account.id} owes {debt} to unknown account {creditor_id}"
                )

            if debt <= balance:
                account.remove_owes_to(creditor_id)
                creditor.remove_owes_from(account.id)
                creditor._set_balance(creditor.balance + debt)
                paid = debt
            else:
                account.add_owes_to(creditor_id, -balance)
                creditor.add_owes_from(account.id, -balance)
                creditor._set_balance(creditor.balance + balance)
                paid = balance

            balance = max(balance - paid, 0)
            account._set_balance(balance)
            log_action(
                self.logger, "info", f"{account.id} paid {paid} to {creditor_id}",
                account_id=account.id, action="sweep_debt",
                resource=f"account:{creditor_id}",
                extra={"paid": paid, "remaining_debt": account.owed_to(creditor_id)}
            )
