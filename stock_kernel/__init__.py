"""
Stock Kernel

Inventory stock control for general and medical stock with:
- A single write path for on-hand quantities (the stock ledger)
- Atomic request approval (all lines deducted or none)
- Issuance tracking with due dates, returns and custody transfers
- Audit rows for restocks, discards and transfers
"""

__version__ = "0.1.0"
