"""
Interactive Console Module

Reads one command per line and dispatches it to the banking service:

    login <name>
    topup <amount>      (alias: deposit <amount>)
    pay <name> <amount>
    exit
"""

import sys
from enum import Enum
from typing import List, Optional, TextIO

from .accounts import require_id
from .banking import AccountSummary, BankingService, Session
from .errors import AccountBusy, InvalidArgument, LedgerInconsistency, NotLoggedIn, UnknownAccount
from .logging_config import get_logger


class CommandAction(Enum):
    """Commands understood by the console"""
    LOGIN = "login"
    TOPUP = "topup"
    DEPOSIT = "deposit"
    PAY = "pay"
    EXIT = "exit"

    @classmethod
    def from_command(cls, command: str) -> Optional['CommandAction']:
        """
        Map a command word to its action

        Raises:
            InvalidArgument: If command is blank

        Returns:
            The matching action, or None for an unknown word
        """
        require_id(command, "Input command")
        for action in cls:
            if action.value == command:
                return action
        return None


RECOVERABLE_ERRORS = (InvalidArgument, NotLoggedIn, UnknownAccount, AccountBusy)


class CommandConsole:
    """
    Line-oriented command loop over a single session
    """

    def __init__(
        self,
        service: BankingService,
        session: Optional[Session] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None
    ):
        self.service = service
        self.session = session or Session()
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.logger = get_logger("ledger.console")

    def run(self) -> None:
        """Process lines until exit or end of input"""
        self._say("===>Welcome to Retail Bank<===")
        self._say("Login to do Banking.")
        for line in self.stdin:
            if not self.execute(line):
                break
        self._say("Exiting, Thanks for using the application.")

    def execute(self, line: str) -> bool:
        """
        Handle one input line

        Returns:
            False when the console should stop, True otherwise
        """
        commands = line.split()
        if not commands:
            self._say("Input command is null/empty")
            return True

        action = CommandAction.from_command(commands[0])
        if action is None:
            self._say(f"Not a correct command={commands[0]}. Please enter again.")
            return True
        if action == CommandAction.EXIT:
            return False

        try:
            summary = self._dispatch(action, commands[1:])
        except RECOVERABLE_ERRORS as e:
            self.logger.info("Command %s rejected: %s", action.value, e)
            self._say(str(e))
            return True
        except LedgerInconsistency as e:
            self.logger.critical("Ledger inconsistency during %s: %s", action.value, e)
            self._say(f"Ledger error, aborting: {e}")
            raise

        if summary is not None:
            for text in summary.describe():
                self._say(text)
        return True

    def _dispatch(self, action: CommandAction, args: List[str]) -> Optional[AccountSummary]:
        if action == CommandAction.LOGIN:
            if not self._enough(args, 1):
                return None
            summary = self.service.login(self.session, args[0])
            self._say(f"Hello, {summary.account_id}!")
            return summary

        if action in (CommandAction.TOPUP, CommandAction.DEPOSIT):
            if not self._enough(args, 1):
                return None
            amount = self._parse_amount(args[0])
            if amount is None:
                return None
            return self.service.deposit(self.session, amount)

        if action == CommandAction.PAY:
            if not self._enough(args, 2):
                return None
            amount = self._parse_amount(args[1])
            if amount is None:
                return None
            summary = self.service.pay(self.session, args[0], amount)
            self._say(f"Transferred {amount} to {args[0]}.")
            return summary

        return None

    def _enough(self, args: List[str], needed: int) -> bool:
        if len(args) < needed:
            self._say("Not enough arguments to execute an action.")
            return False
        return True

    def _parse_amount(self, value: str) -> Optional[int]:
        try:
            return int(value)
        except ValueError:
            self._say(f"Input is not a valid Number={value}.")
            return None

    def _say(self, text: str) -> None:
        self.stdout.write(text + "\n")
