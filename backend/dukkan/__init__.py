"""
Dukkan back-office core

Inventory and ledger transaction core for a small phone/electronics shop:
stock, sales, repairs and customer debt/credit ledgers over a flat
key-value store.
"""

__version__ = "1.0.0"
