"""
Premium Kernel

In-memory billing core for an insurance back-office:
- Premium accrual over an externally supplied time cursor
- Phased payment allocation across grouped contracts
- Ordered, append-only payment histories
- Typed errors and structured logging
"""

__version__ = "0.1.0"
