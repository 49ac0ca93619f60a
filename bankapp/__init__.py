"""
bankapp - Personal Banking Ledger

Accounts, deposits, withdrawals, transfers and interest accrual,
with the whole account collection persisted to a key-value store.

DESIGN PRINCIPLES:
1. Every balance change leaves a transaction behind
2. Fail early, fail visibly - invalid input never mutates state
3. A mutation is only complete once it has been persisted
4. Every operation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "bankapp Team"
