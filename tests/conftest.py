"""
Pytest fixtures for the premium ledger test suite.

Provides:
- Structured logging configured for the whole session
- A captured_logs fixture returning parsed JSON log records
- A fresh SettlementLedger on a controllable time cursor
- Ledger-entry factories
"""

import json
import logging
from datetime import datetime
from io import StringIO

import pytest

from premium_config.schema import LedgerSettings
from premium_kernel.domain.cadence import BillingCadence
from premium_kernel.domain.clock import CursorClock
from premium_kernel.domain.ledger import LedgerEntry
from premium_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from premium_services.settlement_ledger import SettlementLedger

T0 = datetime(2024, 1, 15, 9, 0, 0)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture premium_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.pay_one("SV-1", 100)
            logs = captured_logs()
            assert any(r["message"] == "payment_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("premium_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Ledger fixtures
# =============================================================================


@pytest.fixture
def clock():
    return CursorClock(T0)


@pytest.fixture
def ledger(clock):
    """Settlement ledger with default settings (charge on registration)."""
    return SettlementLedger(clock)


@pytest.fixture
def quiet_ledger(clock):
    """Settlement ledger that does not charge contracts on registration."""
    return SettlementLedger(clock, settings=LedgerSettings(charge_on_registration=False))


@pytest.fixture
def make_entry():
    """Factory for ledger entries due at T0 unless told otherwise."""

    def _make(
        premium: int = 100,
        cadence: BillingCadence = BillingCadence.MONTHLY,
        next_due_time: datetime = T0,
        outstanding_balance: int = 0,
        owner_id: str = "",
    ) -> LedgerEntry:
        return LedgerEntry(
            premium=premium,
            cadence=cadence,
            next_due_time=next_due_time,
            outstanding_balance=outstanding_balance,
            owner_id=owner_id,
        )

    return _make
