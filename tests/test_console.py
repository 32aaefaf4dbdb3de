"""
Test suite for the interactive console

Drives the command loop with in-memory streams.
"""

import io

import pytest

from retail_ledger.accounts import AccountDirectory
from retail_ledger.banking import BankingService, Session
from retail_ledger.console import CommandAction, CommandConsole
from retail_ledger.errors import InvalidArgument, LedgerInconsistency
from retail_ledger.settlement import SettlementEngine


class TestCommandAction:
    """Test command word parsing"""

    def test_known_commands(self):
        assert CommandAction.from_command("login") == CommandAction.LOGIN
        assert CommandAction.from_command("topup") == CommandAction.TOPUP
        assert CommandAction.from_command("deposit") == CommandAction.DEPOSIT
        assert CommandAction.from_command("pay") == CommandAction.PAY
        assert CommandAction.from_command("exit") == CommandAction.EXIT

    def test_unknown_command(self):
        assert CommandAction.from_command("withdraw") is None
        assert CommandAction.from_command("LOGIN") is None

    def test_blank_command(self):
        with pytest.raises(InvalidArgument):
            CommandAction.from_command("")


class TestCommandConsole:
    """Test the command loop"""

    def setup_method(self):
        """Set up test fixtures"""
        self.directory = AccountDirectory()
        self.directory.seed(["Alice", "Bob"])
        self.service = BankingService(self.directory, SettlementEngine(lock_timeout=1.0))
        self.session = Session()

    def run(self, *lines: str) -> str:
        stdin = io.StringIO("".join(line + "\n" for line in lines))
        stdout = io.StringIO()
        CommandConsole(self.service, self.session, stdin, stdout).run()
        return stdout.getvalue()

    def test_banner_and_farewell(self):
        output = self.run("exit")
        assert output.startswith("===>Welcome to Retail Bank<===\n")
        assert output.endswith("Exiting, Thanks for using the application.\n")

    def test_full_session(self):
        """Bob tops up, pays Alice more than he has, then Alice tops up"""
        output = self.run(
            "login Bob",
            "topup 100",
            "pay Alice 150",
            "login Alice",
            "exit",
        )

        assert "Hello, Bob!" in output
        assert "Your balance is 100." in output
        assert "Transferred 150 to Alice." in output
        assert "Owed 50 to Alice." in output
        assert "Hello, Alice!" in output
        assert "Owed 50 from Bob." in output
        assert self.directory.lookup("Alice").balance == 100

    def test_deposit_alias_sweeps(self):
        bob = self.directory.lookup("Bob")
        alice = self.directory.lookup("Alice")
        bob.add_owes_to("Alice", 30)
        alice.add_owes_from("Bob", 30)

        output = self.run("login Bob", "deposit 50")

        assert "Your balance is 20." in output
        assert alice.balance == 30

    def test_stops_at_end_of_input(self):
        output = self.run("login Bob")
        assert output.endswith("Exiting, Thanks for using the application.\n")

    def test_lines_after_exit_ignored(self):
        self.run("exit", "login Carol")
        assert "Carol" not in self.directory

    def test_recoverable_errors_reported(self):
        output = self.run(
            "",
            "hello",
            "topup 10",
            "login",
            "login Bob",
            "topup ten",
            "topup -5",
            "pay Alice",
            "pay Nobody 10",
            "pay Bob 10",
            "topup 7",
        )

        assert "Input command is null/empty" in output
        assert "Not a correct command=hello. Please enter again." in output
        assert "User not logged in. Please login first" in output
        assert "Not enough arguments to execute an action." in output
        assert "Input is not a valid Number=ten." in output
        assert "cannot be less than 0" in output
        assert "Not a valid payee: Nobody" in output
        assert "cannot pay itself" in output
        # The loop kept going after every error
        assert self.directory.lookup("Bob").balance == 7

    def test_execute_returns_false_on_exit(self):
        console = CommandConsole(self.service, self.session, io.StringIO(), io.StringIO())
        assert console.execute("login Bob")
        assert not console.execute("exit")

    def test_ledger_inconsistency_stops_loop(self):
        """Test a corrupted debt aborts the console"""
        self.directory.lookup("Bob").add_owes_to("Ghost", 10)
        stdout = io.StringIO()
        stdin = io.StringIO("login Bob\ntopup 10\nlogin Alice\n")
        console = CommandConsole(self.service, self.session, stdin, stdout)

        with pytest.raises(LedgerInconsistency):
            console.run()

        assert "Ledger error, aborting" in stdout.getvalue()
        assert self.session.active_account_id == "Bob"
        assert self.directory.lookup("Bob").balance == 0
