"""
Trip Ledger Kernel

Append-only ledger of shared trip expenses and repayments with:
- Immutable ledger snapshots and validated appends
- Exact cent arithmetic
- Typed, coded exceptions
- Structured JSON logging
- Swappable persistence behind a load/append interface
"""

__version__ = "0.1.0"
