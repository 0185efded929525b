"""
Tests for the SettlementLedger orchestrator.

Covers:
- Registration, duplicate ids and charging on registration
- Group membership rules
- charge_all over top-level contracts and groups
- Single and group payments, including error paths
- Cascading, idempotent deactivation
- Payment history ordering and read-only views
"""

import threading
from datetime import datetime, timedelta

import pytest
from dateutil.relativedelta import relativedelta

from premium_config.schema import LedgerSettings
from premium_kernel.domain.cadence import BillingCadence
from premium_kernel.domain.clock import CursorClock, FixedClock
from premium_kernel.exceptions import (
    AlreadyGroupedError,
    ContractAlreadyExistsError,
    ContractInactiveError,
    ContractNotFoundError,
    GroupHasNoEligibleChildrenError,
    GroupInactiveError,
    GroupPaymentTargetError,
    InvalidAmountError,
    InvalidArgumentError,
    InvalidCadenceError,
    InvalidPremiumError,
    InvalidStateError,
    MissingReferenceError,
    NotAGroupError,
)
from premium_services.settlement_ledger import SettlementLedger

T0 = datetime(2024, 1, 15, 9, 0, 0)


def _months_later(months: int) -> datetime:
    return T0 + relativedelta(months=months)


class TestRegistration:
    def test_register_charges_first_premium(self, ledger):
        snap = ledger.register_contract("SV-1", premium=100, cadence=BillingCadence.MONTHLY)

        assert snap.outstanding_balance == 100
        assert snap.next_due_time == _months_later(1)
        assert ledger.balance("SV-1") == 100
        assert ledger.is_active("SV-1")
        assert ledger.contracts() == ("SV-1",)

    def test_register_without_charge(self, quiet_ledger):
        snap = quiet_ledger.register_contract("SV-1", premium=100, cadence="MONTHLY")
        assert snap.outstanding_balance == 0
        assert snap.next_due_time == T0

    def test_future_due_time_is_not_charged(self, ledger):
        ledger.register_contract(
            "SV-1", premium=100, cadence=3, next_due_time=_months_later(2)
        )
        assert ledger.balance("SV-1") == 0

    def test_duplicate_id_rejected(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        with pytest.raises(ContractAlreadyExistsError):
            ledger.register_contract("SV-1", premium=200, cadence=1)
        assert ledger.entry("SV-1").premium == 100

    def test_contract_and_group_share_id_space(self, ledger):
        ledger.register_group("M-1")
        with pytest.raises(ContractAlreadyExistsError):
            ledger.register_contract("M-1", premium=100, cadence=1)
        ledger.register_contract("SV-1", premium=100, cadence=1)
        with pytest.raises(ContractAlreadyExistsError):
            ledger.register_group("SV-1")

    @pytest.mark.parametrize("contract_id", [None, "", "   "])
    def test_missing_id_rejected(self, ledger, contract_id):
        with pytest.raises(MissingReferenceError):
            ledger.register_contract(contract_id, premium=100, cadence=1)

    def test_invalid_terms_rejected(self, ledger):
        with pytest.raises(InvalidPremiumError):
            ledger.register_contract("SV-1", premium=0, cadence=1)
        with pytest.raises(InvalidCadenceError):
            ledger.register_contract("SV-1", premium=100, cadence=7)
        assert ledger.contracts() == ()

    def test_ledger_requires_time(self):
        with pytest.raises(MissingReferenceError):
            SettlementLedger(None)

    def test_ledger_accepts_plain_datetime(self):
        ledger = SettlementLedger(T0)
        assert ledger.current_time == T0
        assert isinstance(ledger.clock, CursorClock)


class TestTimeCursor:
    def test_set_current_time(self, ledger):
        ledger.set_current_time(_months_later(3))
        assert ledger.current_time == _months_later(3)

    def test_set_current_time_rejects_none(self, ledger):
        with pytest.raises(MissingReferenceError):
            ledger.set_current_time(None)
        assert ledger.current_time == T0

    def test_ledger_follows_shared_clock(self, clock, ledger):
        clock.advance(months=1)
        assert ledger.current_time == _months_later(1)

    def test_fixed_clock_cannot_be_moved(self):
        ledger = SettlementLedger(FixedClock(T0))
        with pytest.raises(InvalidArgumentError):
            ledger.set_current_time(_months_later(1))
        assert ledger.current_time == T0


class TestGroupMembership:
    def test_add_to_group_moves_contract_under_group(self, ledger):
        ledger.register_group("M-1")
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.register_contract("SV-2", premium=50, cadence=1)

        ledger.add_to_group("M-1", "SV-1")
        ledger.add_to_group("M-1", "SV-2")

        assert ledger.children("M-1") == ("SV-1", "SV-2")
        assert ledger.contracts() == ("M-1",)
        assert ledger.group_of("SV-1") == "M-1"
        assert ledger.is_group("M-1")
        assert not ledger.is_group("SV-1")
        assert ledger.balance("M-1") == 150
        # The child keeps its own entry.
        assert ledger.entry("SV-1").outstanding_balance == 100

    def test_contract_already_grouped(self, ledger):
        ledger.register_group("M-1")
        ledger.register_group("M-2")
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.add_to_group("M-1", "SV-1")

        with pytest.raises(AlreadyGroupedError) as exc_info:
            ledger.add_to_group("M-2", "SV-1")
        assert exc_info.value.group_id == "M-1"
        assert ledger.children("M-2") == ()

    def test_inactive_contract_cannot_join(self, ledger):
        ledger.register_group("M-1")
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.deactivate("SV-1")
        with pytest.raises(ContractInactiveError):
            ledger.add_to_group("M-1", "SV-1")

    def test_inactive_group_cannot_receive(self, ledger):
        ledger.register_group("M-1")
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.deactivate("M-1")
        with pytest.raises(GroupInactiveError):
            ledger.add_to_group("M-1", "SV-1")
        assert ledger.contracts() == ("M-1", "SV-1")

    def test_target_must_be_a_group(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.register_contract("SV-2", premium=100, cadence=1)
        with pytest.raises(NotAGroupError):
            ledger.add_to_group("SV-1", "SV-2")

    def test_groups_cannot_nest(self, ledger):
        ledger.register_group("M-1")
        ledger.register_group("M-2")
        with pytest.raises(InvalidArgumentError):
            ledger.add_to_group("M-1", "M-2")

    def test_unknown_ids(self, ledger):
        ledger.register_group("M-1")
        with pytest.raises(ContractNotFoundError):
            ledger.add_to_group("M-1", "nope")
        with pytest.raises(ContractNotFoundError):
            ledger.add_to_group("nope", "M-1")


class TestChargeAll:
    def test_charges_every_active_contract(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.register_contract("SV-2", premium=300, cadence=3)
        ledger.set_current_time(_months_later(3))

        results = ledger.charge_all()

        assert ledger.balance("SV-1") == 400
        assert ledger.balance("SV-2") == 600
        assert sum(r.amount_charged for r in results) == 300 + 300

    def test_explicit_now_does_not_move_cursor(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.charge_all(_months_later(1))
        assert ledger.balance("SV-1") == 200
        assert ledger.current_time == T0

    def test_skips_inactive_contracts(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.deactivate("SV-1")
        ledger.set_current_time(_months_later(5))
        ledger.charge_all()
        assert ledger.balance("SV-1") == 100

    def test_charges_group_children_once(self, ledger):
        ledger.register_group("M-1")
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.register_contract("SV-2", premium=10, cadence=1)
        ledger.add_to_group("M-1", "SV-1")
        ledger.add_to_group("M-1", "SV-2")
        ledger.deactivate("SV-2")

        ledger.set_current_time(_months_later(1))
        ledger.charge_all()

        assert ledger.balance("SV-1") == 200
        assert ledger.balance("SV-2") == 10

    def test_charge_single_owner(self, ledger):
        ledger.register_group("M-1")
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.add_to_group("M-1", "SV-1")
        results = ledger.charge("M-1", _months_later(2))
        assert [r.owner_id for r in results] == ["SV-1"]
        assert ledger.balance("M-1") == 300

    def test_charge_inactive_owner_rejected(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.deactivate("SV-1")
        with pytest.raises(ContractInactiveError):
            ledger.charge("SV-1")


class TestPayOne:
    def test_subtracts_full_amount(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        receipt = ledger.pay_one("SV-1", 250)

        assert ledger.balance("SV-1") == -150
        assert receipt.consumed == 250
        assert receipt.unallocated == 0
        assert receipt.record.amount == 250
        assert receipt.record.timestamp == T0
        assert ledger.payment_history("SV-1") == (receipt.record,)

    @pytest.mark.parametrize("amount", [0, -1, 10.0, None])
    def test_rejects_invalid_amount(self, ledger, amount):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        with pytest.raises(InvalidAmountError):
            ledger.pay_one("SV-1", amount)
        assert ledger.balance("SV-1") == 100
        assert ledger.payment_history("SV-1") == ()

    def test_rejects_unknown_and_missing(self, ledger):
        with pytest.raises(ContractNotFoundError):
            ledger.pay_one("ghost", 10)
        with pytest.raises(MissingReferenceError):
            ledger.pay_one(None, 10)

    def test_rejects_inactive(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.deactivate("SV-1")
        with pytest.raises(ContractInactiveError) as exc_info:
            ledger.pay_one("SV-1", 100)
        assert isinstance(exc_info.value, InvalidStateError)
        assert ledger.balance("SV-1") == 100

    def test_rejects_group_target(self, ledger):
        ledger.register_group("M-1")
        with pytest.raises(GroupPaymentTargetError):
            ledger.pay_one("M-1", 100)

    def test_grouped_child_can_be_paid_directly(self, ledger):
        ledger.register_group("M-1")
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.add_to_group("M-1", "SV-1")
        ledger.pay_one("SV-1", 100)
        assert ledger.balance("SV-1") == 0
        assert ledger.payment_history("M-1") == ()


class TestPayGroup:
    def _group(self, ledger, premiums, debts=None):
        ledger.register_group("M-1")
        for i, premium in enumerate(premiums, start=1):
            ledger.register_contract(
                f"SV-{i}",
                premium=premium,
                cadence=1,
                outstanding_balance=(debts or [0] * len(premiums))[i - 1],
                next_due_time=_months_later(1),
            )
            ledger.add_to_group("M-1", f"SV-{i}")

    def test_order_sensitive_debt_clearance(self, ledger):
        self._group(ledger, [100, 100, 100], debts=[50, 80, 30])

        receipt = ledger.pay_group("M-1", 100)

        assert ledger.balance("SV-1") == 0
        assert ledger.balance("SV-2") == 30
        assert ledger.balance("SV-3") == 30
        assert receipt.consumed == 100
        assert ledger.payment_history("M-1")[0].amount == 100

    def test_prepay_scenario(self, ledger):
        self._group(ledger, [100, 150])

        receipt = ledger.pay_group("M-1", 175)

        assert ledger.balance("SV-1") == -100
        assert ledger.balance("SV-2") == -75
        assert receipt.consumed == 175
        assert receipt.unallocated == 0
        assert receipt.allocation.prepaid == 175

    def test_inactive_children_are_skipped(self, ledger):
        self._group(ledger, [100, 100], debts=[40, 60])
        ledger.deactivate("SV-1")

        ledger.pay_group("M-1", 100)

        assert ledger.balance("SV-1") == 40
        assert ledger.balance("SV-2") == -40

    def test_records_once_against_group(self, ledger):
        self._group(ledger, [100, 100], debts=[100, 100])
        ledger.pay_group("M-1", 150)

        assert len(ledger.payment_history("M-1")) == 1
        assert ledger.payment_history("SV-1") == ()
        assert ledger.payment_history("SV-2") == ()

    def test_empty_group_rejected(self, ledger):
        ledger.register_group("M-1")
        with pytest.raises(GroupHasNoEligibleChildrenError):
            ledger.pay_group("M-1", 100)
        assert ledger.payment_history("M-1") == ()

    def test_inactive_group_rejected(self, ledger):
        self._group(ledger, [100], debts=[100])
        ledger.deactivate("M-1")
        with pytest.raises(GroupInactiveError):
            ledger.pay_group("M-1", 100)
        assert ledger.balance("SV-1") == 100

    def test_group_with_all_children_inactive_rejected(self, ledger):
        self._group(ledger, [100, 100])
        ledger.deactivate("SV-1")
        ledger.deactivate("SV-2")
        assert not ledger.is_active("M-1")
        with pytest.raises(GroupInactiveError):
            ledger.pay_group("M-1", 10)

    def test_not_a_group(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        with pytest.raises(NotAGroupError):
            ledger.pay_group("SV-1", 10)

    @pytest.mark.parametrize("amount", [0, -50])
    def test_rejects_invalid_amount(self, ledger, amount):
        self._group(ledger, [100], debts=[100])
        with pytest.raises(InvalidAmountError):
            ledger.pay_group("M-1", amount)
        assert ledger.balance("M-1") == 100


class TestDeactivation:
    def test_group_cascade(self, ledger):
        ledger.register_group("M-1")
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.register_contract("SV-2", premium=100, cadence=1)
        ledger.add_to_group("M-1", "SV-1")
        ledger.add_to_group("M-1", "SV-2")

        ledger.deactivate("M-1")

        assert not ledger.is_active("SV-1")
        assert not ledger.is_active("SV-2")
        assert not ledger.is_active("M-1")

    def test_idempotent(self, ledger):
        ledger.register_group("M-1")
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.add_to_group("M-1", "SV-1")

        ledger.deactivate("M-1")
        ledger.deactivate("M-1")
        ledger.deactivate("SV-1")

        assert not ledger.is_active("M-1")
        assert not ledger.is_active("SV-1")

    def test_group_activity_is_derived(self, ledger):
        ledger.register_group("M-1")
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.register_contract("SV-2", premium=100, cadence=1)
        ledger.add_to_group("M-1", "SV-1")
        ledger.add_to_group("M-1", "SV-2")

        ledger.deactivate("SV-1")
        assert ledger.is_active("M-1")
        ledger.deactivate("SV-2")
        assert not ledger.is_active("M-1")

    def test_unknown_id(self, ledger):
        with pytest.raises(ContractNotFoundError):
            ledger.deactivate("ghost")


class TestPaymentHistory:
    def test_ordered_by_time_then_insertion(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.pay_one("SV-1", 10)
        ledger.pay_one("SV-1", 20)
        ledger.set_current_time(T0 - timedelta(days=1))
        ledger.pay_one("SV-1", 30)

        history = ledger.payment_history("SV-1")
        assert [p.amount for p in history] == [30, 10, 20]

    def test_histories_view_is_read_only(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.pay_one("SV-1", 10)
        histories = ledger.payment_histories()

        assert set(histories) == {"SV-1"}
        with pytest.raises(TypeError):
            histories["SV-2"] = ()

    def test_unknown_owner(self, ledger):
        with pytest.raises(ContractNotFoundError):
            ledger.payment_history("ghost")

    def test_entry_of_group_rejected(self, ledger):
        ledger.register_group("M-1")
        with pytest.raises(InvalidArgumentError):
            ledger.entry("M-1")


class TestLogging:
    def test_payment_logged_with_context(self, ledger, captured_logs):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.pay_one("SV-1", 40)

        logs = captured_logs()
        applied = [r for r in logs if r["message"] == "payment_applied"]
        assert applied[0]["contract_id"] == "SV-1"
        assert applied[0]["balance_after"] == 60

    def test_rejection_logged(self, ledger, captured_logs):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        ledger.deactivate("SV-1")
        with pytest.raises(ContractInactiveError):
            ledger.pay_one("SV-1", 40)

        rejected = [r for r in captured_logs() if r["message"] == "settlement_rejected"]
        assert rejected[0]["error_code"] == "CONTRACT_INACTIVE"
        assert rejected[0]["level"] == "WARNING"


class TestSettings:
    def test_settings_are_honoured(self, clock):
        ledger = SettlementLedger(clock, settings=LedgerSettings(charge_on_registration=False))
        ledger.register_contract("SV-1", premium=100, cadence=1)
        assert ledger.balance("SV-1") == 0


class TestSynchronizedLedger:
    def test_delegates_calls(self, ledger):
        view = ledger.locked()
        view.register_contract("SV-1", premium=100, cadence=1)
        assert view.balance("SV-1") == 100
        assert view.current_time == T0
        assert view.ledger is ledger

    def test_private_members_hidden(self, ledger):
        with pytest.raises(AttributeError):
            ledger.locked()._contracts

    def test_concurrent_payments_all_applied(self, ledger):
        view = ledger.locked()
        view.register_contract("SV-1", premium=100, cadence=1)

        def pay():
            for _ in range(50):
                view.pay_one("SV-1", 1)

        threads = [threading.Thread(target=pay) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert ledger.balance("SV-1") == 100 - 200
        assert len(ledger.payment_history("SV-1")) == 200
        sequences = [p.sequence for p in ledger.payment_history("SV-1")]
        assert sequences == sorted(sequences)

    def test_separate_views_share_one_lock(self, ledger):
        ledger.register_contract("SV-1", premium=100, cadence=1)
        first, second = ledger.locked(), ledger.locked()
        assert first.lock is second.lock

        worker = threading.Thread(target=second.pay_one, args=("SV-1", 1))
        with first.lock:
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            assert ledger.balance("SV-1") == 100
        worker.join()

        assert ledger.balance("SV-1") == 99

    def test_live_clock_not_exposed(self, ledger):
        view = ledger.locked()
        with pytest.raises(AttributeError):
            view.clock
        view.set_current_time(_months_later(1))
        assert view.current_time == _months_later(1)
