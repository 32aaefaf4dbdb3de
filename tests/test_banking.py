"""
Test suite for banking module

Tests login, deposit and pay on behalf of a session, mirroring how a
console or API caller drives the ledger.
"""

import pytest

from retail_ledger.accounts import AccountDirectory
from retail_ledger.banking import AccountSummary, BankingService, Session, build_service
from retail_ledger.config import LedgerConfig
from retail_ledger.errors import (
    InvalidArgument, LedgerInconsistency, NotLoggedIn, UnknownAccount
)
from retail_ledger.settlement import SettlementEngine


TEST_NAME = "Test"
TEST_BALANCE = 100


class TestSession:
    """Test Session state"""

    def test_empty_session(self):
        session = Session()
        assert not session.is_logged_in
        with pytest.raises(NotLoggedIn, match="Please login first"):
            session.require_active()

    def test_active_session(self):
        session = Session("Bob")
        assert session.is_logged_in
        assert session.require_active() == "Bob"
        session.clear()
        assert session.active_account_id is None


class TestAccountSummary:
    """Test AccountSummary rendering"""

    def test_describe(self):
        summary = AccountSummary("Bob", 10, {"Alice": 5}, {"Carol": 3})
        assert summary.describe() == [
            "Your balance is 10.",
            "Owed 5 to Alice.",
            "Owed 3 from Carol.",
        ]

    def test_to_dict(self):
        summary = AccountSummary("Bob", 10)
        assert summary.to_dict() == {
            "account_id": "Bob", "balance": 10, "owes_to": {}, "owes_from": {}
        }


class TestBankingService:
    """Test banking operations"""

    def setup_method(self):
        """Set up test fixtures"""
        self.directory = AccountDirectory()
        self.directory.seed(["Alice", "Bob"])
        self.service = BankingService(self.directory, SettlementEngine(lock_timeout=1.0))
        self.session = Session()

    def test_login_existing_account(self):
        self.directory.create(TEST_NAME, TEST_BALANCE)

        summary = self.service.login(self.session, TEST_NAME)

        assert self.session.active_account_id == TEST_NAME
        assert summary.account_id == TEST_NAME
        assert summary.balance == TEST_BALANCE

    def test_login_new_account(self):
        """Test logging in with an unknown name creates the account"""
        summary = self.service.login(self.session, "Test2")

        account = self.directory.lookup("Test2")
        assert account is not None
        assert account.balance == 0
        assert summary.balance == 0
        assert self.session.active_account_id == "Test2"

    def test_login_reports_debts(self):
        bob = self.directory.lookup("Bob")
        bob.add_owes_to("Alice", 20)
        bob.add_owes_from("Carol", 5)

        summary = self.service.login(self.session, "Bob")

        assert summary.owes_to == {"Alice": 20}
        assert summary.owes_from == {"Carol": 5}

    @pytest.mark.parametrize("name", [None, ""])
    def test_login_blank_name(self, name):
        with pytest.raises(InvalidArgument):
            self.service.login(self.session, name)
        assert not self.session.is_logged_in

    def test_logout(self):
        self.service.login(self.session, "Bob")
        self.service.logout(self.session)
        assert not self.session.is_logged_in

        # Logging out twice is harmless
        self.service.logout(self.session)

    def test_deposit(self):
        self.directory.create(TEST_NAME, TEST_BALANCE)
        self.service.login(self.session, TEST_NAME)

        summary = self.service.deposit(self.session, TEST_BALANCE)

        assert summary.balance == TEST_BALANCE + TEST_BALANCE
        assert self.directory.lookup(TEST_NAME).balance == 200

    def test_deposit_requires_login(self):
        with pytest.raises(NotLoggedIn):
            self.service.deposit(self.session, TEST_BALANCE)

    def test_deposit_negative_amount(self):
        self.service.login(self.session, "Bob")
        with pytest.raises(InvalidArgument):
            self.service.deposit(self.session, -1)
        assert self.directory.lookup("Bob").balance == 0

    def test_deposit_sweeps_debts(self):
        """Bob owes Alice 50 and tops up 100"""
        bob = self.directory.lookup("Bob")
        alice = self.directory.lookup("Alice")
        bob.add_owes_to("Alice", 50)
        alice.add_owes_from("Bob", 50)
        self.service.login(self.session, "Bob")

        summary = self.service.deposit(self.session, TEST_BALANCE)

        assert summary.balance == 50
        assert summary.owes_to == {}
        assert alice.balance == 50
        assert not alice.does_owe_from("Bob")

    def test_deposit_with_unknown_creditor(self):
        """Test a debt to an account outside the directory is fatal"""
        self.directory.create(TEST_NAME, TEST_BALANCE)
        self.directory.lookup(TEST_NAME).add_owes_to("Test3", TEST_BALANCE)
        self.service.login(self.session, TEST_NAME)

        with pytest.raises(LedgerInconsistency):
            self.service.deposit(self.session, TEST_BALANCE)
        assert self.directory.lookup(TEST_NAME).balance == TEST_BALANCE

    def test_pay(self):
        self.directory.create("Bob", TEST_BALANCE)
        self.directory.create("Alice", TEST_BALANCE)
        self.service.login(self.session, "Bob")

        summary = self.service.pay(self.session, "Alice", 50)

        assert summary.balance == 50
        assert self.directory.lookup("Alice").balance == 150

    def test_pay_more_than_balance(self):
        self.directory.create("Bob", TEST_BALANCE)
        self.directory.create("Alice", TEST_BALANCE)
        self.service.login(self.session, "Bob")

        summary = self.service.pay(self.session, "Alice", 200)

        assert summary.balance == 0
        assert summary.owes_to == {"Alice": 100}
        alice = self.service.summary("Alice")
        assert alice.balance == 200
        assert alice.owes_from == {"Bob": 100}

    def test_pay_unknown_account(self):
        """Test paying an unknown name changes nothing"""
        self.directory.create("Bob", TEST_BALANCE)
        self.service.login(self.session, "Bob")

        with pytest.raises(UnknownAccount, match="Nobody"):
            self.service.pay(self.session, "Nobody", 50)

        bob = self.directory.lookup("Bob")
        assert bob.balance == TEST_BALANCE
        assert bob.owes_to == {}
        assert "Nobody" not in self.directory

    @pytest.mark.parametrize("target", [None, ""])
    def test_pay_blank_target(self, target):
        self.service.login(self.session, "Bob")
        with pytest.raises(InvalidArgument):
            self.service.pay(self.session, target, TEST_BALANCE)

    def test_pay_negative_amount(self):
        self.service.login(self.session, "Bob")
        with pytest.raises(InvalidArgument):
            self.service.pay(self.session, "Alice", -TEST_BALANCE)

    def test_pay_requires_login(self):
        with pytest.raises(NotLoggedIn):
            self.service.pay(self.session, "Alice", 10)

    def test_pay_self(self):
        self.service.login(self.session, "Bob")
        with pytest.raises(InvalidArgument):
            self.service.pay(self.session, "Bob", 10)

    def test_session_invalidated_by_reset(self):
        """Test a session pointing at a cleared account must log in again"""
        self.service.login(self.session, "Bob")
        self.directory.clear_all()

        with pytest.raises(NotLoggedIn, match="login again"):
            self.service.deposit(self.session, 10)
        assert not self.session.is_logged_in

    def test_summary_unknown(self):
        with pytest.raises(UnknownAccount):
            self.service.summary("Nobody")

    def test_current(self):
        self.service.login(self.session, "Alice")
        assert self.service.current(self.session).account_id == "Alice"


class TestBuildService:
    """Test service bootstrap from configuration"""

    def test_seeded_from_config(self):
        config = LedgerConfig(seed_accounts=["Carol", "Dave"], seed_balance=25,
                              lock_timeout_seconds=0.5)

        service = build_service(config)

        assert service.directory.ids() == ["Carol", "Dave"]
        assert service.directory.lookup("Carol").balance == 25
        assert service.engine.lock_timeout == 0.5
