"""
Lending Ledger

Fixed-point checked arithmetic and a per-account lending ledger for loans,
collateral and rewards, with interest accrued lazily at every touch.
"""

__version__ = "1.0.0"
