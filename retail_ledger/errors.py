"""
Ledger Error Taxonomy

Validation failures ("fix your input") are kept apart from domain-state
failures ("the ledger is broken") so callers can tell them apart.
"""


class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InvalidArgument(LedgerError, ValueError):
    """Raised for a blank identifier, a bad amount or a missing account reference."""
    pass


class NotLoggedIn(LedgerError):
    """Raised when an operation needs an active session and none is active."""
    pass


class UnknownAccount(LedgerError, LookupError):
    """Raised when a named counterparty does not exist in the directory."""
    pass


class AccountBusy(LedgerError):
    """Raised when an account lock could not be acquired in time."""
    pass


class LedgerInconsistency(LedgerError, RuntimeError):
    """Raised when a debt entry names an account the directory cannot resolve."""
    pass
