"""
Retail Ledger

A small retail-banking ledger: accounts hold a cash balance and pairwise
IOUs, and a settlement engine nets mutual debts against cash movement.
"""

__version__ = "1.0.0"
