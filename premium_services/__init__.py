"""
premium_services -- stateful orchestration over the billing engines.

Usage:
    from premium_services import SettlementLedger

    ledger = SettlementLedger(datetime(2024, 1, 1))
    ledger.register_contract("SV-1", premium=100, cadence="MONTHLY")
    ledger.pay_one("SV-1", 100)
"""

from premium_services.settlement_ledger import (
    SettlementLedger,
    SettlementReceipt,
    SynchronizedLedger,
)

__all__ = [
    "SettlementLedger",
    "SettlementReceipt",
    "SynchronizedLedger",
]
