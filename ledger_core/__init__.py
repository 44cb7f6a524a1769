"""
Ledger Core - Source Package

The accounting core of a double-entry ledger: accounts, balanced
transactions and the balances derived from them.

DESIGN PRINCIPLES:
1. Every transaction proves it is balanced before it is stored
2. Fail early, fail visibly
3. History is never edited, only offset
4. Amounts are integers in the smallest currency unit
5. Storage layer is swappable
"""

__version__ = "1.0.0"
