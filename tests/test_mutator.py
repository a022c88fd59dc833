"""
Tests for the Ledger Mutator.

Covers the write-path properties:
- balances move by exactly ±amount, goals by exactly the allocation
- a rejected transaction writes nothing
- a failing batch writes nothing
- wallets with transactions cannot be deleted
- toggling paid twice is a no-op with no side effects
- concurrent transactions on one wallet all land
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from finance_tracker.ledger import (
    LedgerMutator,
    LedgerValidationError,
    ReferentialIntegrityError,
)
from finance_tracker.models import (
    AuditEventType,
    DebtType,
    GoalAllocation,
    TransactionType,
    WalletType,
)
from finance_tracker.services.storage import (
    BatchOperationKind,
    Collections,
    InMemoryEntityStore,
    NotFoundError,
    StorageError,
)
from finance_tracker.validation import LedgerValidator


USER = "user-1"
OTHER_USER = "user-2"
NOW = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)


def _seed(mutator, wallet_balance="100", goal_target=None, goal_saved=None, store=None):
    """Create a wallet (and optionally a goal with some savings)."""

    async def seed():
        wallet = await mutator.create_wallet(USER, "Cash", Decimal(wallet_balance), WalletType.CASH)
        goal = None
        if goal_target is not None:
            goal = await mutator.create_goal(USER, "Laptop", Decimal(goal_target))
            if goal_saved is not None:
                await store.update(Collections.GOALS, goal.id, {"savedAmount": Decimal(goal_saved)})
        return wallet, goal

    return asyncio.run(seed())


def _get(store, collection, record_id):
    return asyncio.run(store.get(collection, record_id))


def _count(store, collection, owner=USER):
    return len(asyncio.run(store.find(collection, owner)))


class FailingGoalIncrementStore(InMemoryEntityStore):
    """Rejects any increment of a goal, after earlier operations were applied."""

    def _apply_operation(self, data, operation):
        if (
            operation.kind == BatchOperationKind.INCREMENT
            and operation.collection == Collections.GOALS
        ):
            raise StorageError("simulated backend failure")
        super()._apply_operation(data, operation)


class TestRecordTransaction:
    """Tests for record_transaction."""

    def test_income_increases_wallet_balance(self, mutator, store):
        """Test income adds exactly the amount."""
        wallet, _ = _seed(mutator, "100")
        tx = asyncio.run(mutator.record_transaction(
            USER, Decimal("25.50"), TransactionType.INCOME, "Salary", wallet.id, NOW,
        ))
        assert tx.id is not None
        assert _get(store, Collections.WALLETS, wallet.id)["balance"] == Decimal("125.50")

    def test_expense_decreases_wallet_balance(self, mutator, store):
        """Test expense subtracts exactly the amount (and may go negative)."""
        wallet, _ = _seed(mutator, "10")
        asyncio.run(mutator.record_transaction(
            USER, Decimal("30"), "expense", "Food", wallet.id, NOW,
        ))
        assert _get(store, Collections.WALLETS, wallet.id)["balance"] == Decimal("-20")

    def test_transaction_record_is_stored(self, mutator, store):
        """Test the stored transaction carries every field."""
        wallet, _ = _seed(mutator)
        tx = asyncio.run(mutator.record_transaction(
            USER, Decimal("12"), TransactionType.EXPENSE, "Transport", wallet.id,
            date(2024, 5, 1), note="Bus",
        ))
        record = _get(store, Collections.TRANSACTIONS, tx.id)
        assert record["userId"] == USER
        assert record["walletId"] == wallet.id
        assert record["amount"] == Decimal("12")
        assert record["category"] == "Transport"
        assert record["note"] == "Bus"
        assert record["date"] == datetime(2024, 5, 1)
        assert "allocatedToGoal" not in record

    def test_allocation_moves_goal_and_full_amount_to_wallet(self, mutator, store):
        """Test the wallet gets the full amount and the goal gets the allocation."""
        wallet, goal = _seed(mutator, "0", goal_target="1000", goal_saved="100", store=store)
        tx = asyncio.run(mutator.record_transaction(
            USER, Decimal("100"), TransactionType.INCOME, "Salary", wallet.id, NOW,
            allocation=GoalAllocation(goal_id=goal.id, amount=Decimal("20")),
        ))
        assert _get(store, Collections.WALLETS, wallet.id)["balance"] == Decimal("100")
        assert _get(store, Collections.GOALS, goal.id)["savedAmount"] == Decimal("120")
        assert _get(store, Collections.TRANSACTIONS, tx.id)["allocatedToGoal"] == {
            "goalId": goal.id,
            "amount": Decimal("20"),
        }

    def test_allocation_may_equal_amount_and_overshoot_target(self, mutator, store):
        """Test allocating the whole amount past the target is allowed."""
        wallet, goal = _seed(mutator, "0", goal_target="50", goal_saved="40", store=store)
        asyncio.run(mutator.record_transaction(
            USER, Decimal("30"), TransactionType.INCOME, "Bonus", wallet.id, NOW,
            allocation={"goal_id": goal.id, "amount": Decimal("30")},
        ))
        assert _get(store, Collections.GOALS, goal.id)["savedAmount"] == Decimal("70")

    def test_allocation_above_amount_writes_nothing(self, mutator, store):
        """Test an over-allocation is rejected with no record and no balance change."""
        wallet, goal = _seed(mutator, "100", goal_target="1000", store=store)
        with pytest.raises(LedgerValidationError) as exc_info:
            asyncio.run(mutator.record_transaction(
                USER, Decimal("50"), TransactionType.INCOME, "Salary", wallet.id, NOW,
                allocation=GoalAllocation(goal_id=goal.id, amount=Decimal("50.01")),
            ))
        assert exc_info.value.field == "allocation.amount"
        assert _count(store, Collections.TRANSACTIONS) == 0
        assert _get(store, Collections.WALLETS, wallet.id)["balance"] == Decimal("100")
        assert _get(store, Collections.GOALS, goal.id)["savedAmount"] == Decimal("0")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount_is_rejected(self, mutator, store, amount):
        """Test the amount must be greater than zero."""
        wallet, _ = _seed(mutator)
        with pytest.raises(LedgerValidationError) as exc_info:
            asyncio.run(mutator.record_transaction(
                USER, amount, TransactionType.EXPENSE, "Food", wallet.id, NOW,
            ))
        assert exc_info.value.field == "amount"
        assert _count(store, Collections.TRANSACTIONS) == 0

    def test_unparseable_amount_is_a_validation_error(self, mutator, store):
        """Test malformed input is reported against its field."""
        wallet, _ = _seed(mutator)
        with pytest.raises(LedgerValidationError) as exc_info:
            asyncio.run(mutator.record_transaction(
                USER, "lots", TransactionType.EXPENSE, "Food", wallet.id, NOW,
            ))
        assert exc_info.value.field == "amount"

    def test_expense_cannot_be_allocated(self, mutator, store):
        """Test allocation requires income."""
        wallet, goal = _seed(mutator, goal_target="100", store=store)
        with pytest.raises(LedgerValidationError) as exc_info:
            asyncio.run(mutator.record_transaction(
                USER, Decimal("10"), TransactionType.EXPENSE, "Food", wallet.id, NOW,
                allocation=GoalAllocation(goal_id=goal.id, amount=Decimal("5")),
            ))
        assert exc_info.value.field == "allocation"

    def test_unknown_wallet_is_rejected(self, mutator, store):
        """Test the wallet must exist."""
        with pytest.raises(LedgerValidationError) as exc_info:
            asyncio.run(mutator.record_transaction(
                USER, Decimal("10"), TransactionType.INCOME, "Salary", "no-such-wallet", NOW,
            ))
        assert exc_info.value.field == "wallet_id"
        assert _count(store, Collections.TRANSACTIONS) == 0

    def test_other_users_wallet_is_rejected(self, mutator, store):
        """Test the wallet must belong to the user."""
        foreign = asyncio.run(mutator.create_wallet(OTHER_USER, "Theirs", Decimal("5")))
        with pytest.raises(LedgerValidationError) as exc_info:
            asyncio.run(mutator.record_transaction(
                USER, Decimal("10"), TransactionType.INCOME, "Salary", foreign.id, NOW,
            ))
        assert exc_info.value.field == "wallet_id"
        assert _get(store, Collections.WALLETS, foreign.id)["balance"] == Decimal("5")

    def test_reached_goal_cannot_receive_allocation(self, mutator, store):
        """Test only goals with saved < target are eligible."""
        wallet, goal = _seed(mutator, goal_target="100", goal_saved="100", store=store)
        with pytest.raises(LedgerValidationError) as exc_info:
            asyncio.run(mutator.record_transaction(
                USER, Decimal("10"), TransactionType.INCOME, "Salary", wallet.id, NOW,
                allocation=GoalAllocation(goal_id=goal.id, amount=Decimal("5")),
            ))
        assert exc_info.value.field == "allocation.goal_id"

    def test_missing_category_and_date_are_rejected(self, mutator, store):
        """Test required fields are reported."""
        wallet, _ = _seed(mutator)
        with pytest.raises(LedgerValidationError) as exc_info:
            asyncio.run(mutator.record_transaction(
                USER, Decimal("10"), TransactionType.INCOME, "", wallet.id, None,
            ))
        fields = {issue.field for issue in exc_info.value.issues if issue.severity == "error"}
        assert fields == {"category", "date"}

    def test_failed_batch_has_no_partial_effect(self, settings):
        """Test a backend failure mid-batch leaves wallet and goal untouched."""
        store = FailingGoalIncrementStore()
        mutator = LedgerMutator(store, validator=LedgerValidator(store, settings=settings))
        wallet, goal = _seed(mutator, "100", goal_target="1000", store=store)

        with pytest.raises(StorageError):
            asyncio.run(mutator.record_transaction(
                USER, Decimal("40"), TransactionType.INCOME, "Salary", wallet.id, NOW,
                allocation=GoalAllocation(goal_id=goal.id, amount=Decimal("10")),
            ))

        assert _count(store, Collections.TRANSACTIONS) == 0
        assert _get(store, Collections.WALLETS, wallet.id)["balance"] == Decimal("100")
        assert _get(store, Collections.GOALS, goal.id)["savedAmount"] == Decimal("0")

    def test_concurrent_transactions_on_one_wallet_all_land(self, settings):
        """Test two sessions recording at once both move the balance."""
        store = InMemoryEntityStore()
        session_a = LedgerMutator(store, validator=LedgerValidator(store, settings=settings))
        session_b = LedgerMutator(store, validator=LedgerValidator(store, settings=settings))
        wallet, _ = _seed(session_a, "100")

        async def both():
            await asyncio.gather(
                session_a.record_transaction(
                    USER, Decimal("30"), TransactionType.INCOME, "Salary", wallet.id, NOW,
                ),
                session_b.record_transaction(
                    USER, Decimal("10"), TransactionType.EXPENSE, "Food", wallet.id, NOW,
                ),
            )

        asyncio.run(both())
        assert _get(store, Collections.WALLETS, wallet.id)["balance"] == Decimal("120")
        assert _count(store, Collections.TRANSACTIONS) == 2

    def test_recording_is_audited(self, mutator, store):
        """Test a recorded transaction leaves an audit event."""
        wallet, _ = _seed(mutator)
        tx = asyncio.run(mutator.record_transaction(
            USER, Decimal("5"), TransactionType.INCOME, "Gifts", wallet.id, NOW,
        ))
        events = asyncio.run(store.find(
            Collections.AUDIT_EVENTS, USER, eventType=AuditEventType.TRANSACTION_RECORDED.value,
        ))
        assert [event["entityId"] for event in events] == [tx.id]


class TestWallets:
    """Tests for wallet create/update/delete."""

    def test_create_wallet(self, mutator, store):
        """Test a wallet is stored with its opening balance."""
        wallet = asyncio.run(mutator.create_wallet(USER, "BCA", Decimal("250"), "bank"))
        record = _get(store, Collections.WALLETS, wallet.id)
        assert record["name"] == "BCA"
        assert record["balance"] == Decimal("250")
        assert record["type"] == WalletType.BANK

    def test_create_wallet_requires_name(self, mutator):
        """Test a nameless wallet is rejected."""
        with pytest.raises(LedgerValidationError) as exc_info:
            asyncio.run(mutator.create_wallet(USER, "  ", Decimal("0")))
        assert exc_info.value.field == "name"

    def test_update_wallet_overrides_balance(self, mutator, store):
        """Test an edited balance replaces the running balance."""
        wallet, _ = _seed(mutator, "100")
        asyncio.run(mutator.record_transaction(
            USER, Decimal("40"), TransactionType.EXPENSE, "Food", wallet.id, NOW,
        ))
        updated = asyncio.run(mutator.update_wallet(
            USER, wallet.id, "Pocket", Decimal("5"), WalletType.EWALLET,
        ))
        record = _get(store, Collections.WALLETS, wallet.id)
        assert record["balance"] == Decimal("5")
        assert record["name"] == "Pocket"
        assert updated.type == WalletType.EWALLET

    def test_update_other_users_wallet_is_not_found(self, mutator):
        """Test foreign wallets cannot be edited."""
        foreign = asyncio.run(mutator.create_wallet(OTHER_USER, "Theirs", Decimal("5")))
        with pytest.raises(NotFoundError):
            asyncio.run(mutator.update_wallet(USER, foreign.id, "Mine", Decimal("0")))

    def test_delete_unused_wallet(self, mutator, store):
        """Test a wallet without transactions can be deleted."""
        wallet, _ = _seed(mutator)
        asyncio.run(mutator.delete_wallet(USER, wallet.id))
        assert _get(store, Collections.WALLETS, wallet.id) is None

    def test_delete_referenced_wallet_is_refused(self, mutator, store):
        """Test a wallet with transactions survives a delete attempt, unchanged."""
        wallet, _ = _seed(mutator, "100")
        tx = asyncio.run(mutator.record_transaction(
            USER, Decimal("10"), TransactionType.EXPENSE, "Food", wallet.id, NOW,
        ))
        before = _get(store, Collections.WALLETS, wallet.id)

        with pytest.raises(ReferentialIntegrityError):
            asyncio.run(mutator.delete_wallet(USER, wallet.id))

        assert _get(store, Collections.WALLETS, wallet.id) == before
        assert _get(store, Collections.TRANSACTIONS, tx.id) is not None

    def test_delete_missing_wallet_is_not_found(self, mutator):
        """Test deleting an unknown wallet raises NotFoundError."""
        with pytest.raises(NotFoundError):
            asyncio.run(mutator.delete_wallet(USER, "nope"))


class TestGoalsAndDebts:
    """Tests for goal and debt operations."""

    def test_create_goal_starts_empty(self, mutator, store):
        """Test goals start with nothing saved."""
        goal = asyncio.run(mutator.create_goal(USER, "Bike", Decimal("300"), date(2025, 1, 1)))
        record = _get(store, Collections.GOALS, goal.id)
        assert record["savedAmount"] == Decimal("0")
        assert record["targetAmount"] == Decimal("300")
        assert record["deadline"] == datetime(2025, 1, 1)

    @pytest.mark.parametrize("target", [None, Decimal("0"), Decimal("-1")])
    def test_create_goal_requires_positive_target(self, mutator, target):
        """Test the target must be above zero."""
        with pytest.raises(LedgerValidationError) as exc_info:
            asyncio.run(mutator.create_goal(USER, "Bike", target))
        assert exc_info.value.field == "target_amount"

    def test_create_debt(self, mutator, store):
        """Test a debt is stored unpaid."""
        debt = asyncio.run(mutator.create_debt(
            USER, "Sari", Decimal("75"), DebtType.OWED_TO_ME, description="Lunch",
        ))
        record = _get(store, Collections.DEBTS, debt.id)
        assert record["isPaid"] is False
        assert record["personName"] == "Sari"
        assert record["description"] == "Lunch"

    def test_toggle_twice_restores_and_touches_nothing_else(self, mutator, store):
        """Test toggling paid twice is a no-op with no ledger side effects."""
        wallet, goal = _seed(mutator, "100", goal_target="500", store=store)
        debt = asyncio.run(mutator.create_debt(USER, "Andi", Decimal("50"), DebtType.I_OWE))

        first = asyncio.run(mutator.toggle_debt_paid(USER, debt.id))
        assert first.is_paid is True
        assert _get(store, Collections.DEBTS, debt.id)["isPaid"] is True

        second = asyncio.run(mutator.toggle_debt_paid(USER, debt.id))
        assert second.is_paid is False
        assert _get(store, Collections.DEBTS, debt.id)["isPaid"] is False

        assert _get(store, Collections.WALLETS, wallet.id)["balance"] == Decimal("100")
        assert _get(store, Collections.GOALS, goal.id)["savedAmount"] == Decimal("0")
        assert _count(store, Collections.TRANSACTIONS) == 0

    def test_toggle_other_users_debt_is_not_found(self, mutator):
        """Test foreign debts cannot be toggled."""
        debt = asyncio.run(mutator.create_debt(OTHER_USER, "X", Decimal("1"), DebtType.I_OWE))
        with pytest.raises(NotFoundError):
            asyncio.run(mutator.toggle_debt_paid(USER, debt.id))
