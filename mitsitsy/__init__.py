"""
Mitsitsy - Ledger Core

The local-first ledger behind the Mitsitsy personal finance tracker:
accounts, categories, transactions, transfers, planifications and currency
re-denomination over a single SQLite file.

DESIGN PRINCIPLES:
1. Balances are derived on every read, never stored
2. Money is integer cents
3. Every multi-row write is one atomic unit
4. Services return results, they do not raise across their boundary
5. Every mutation is logged
"""

__version__ = "1.0.5"
__author__ = "Mitsitsy Team"
