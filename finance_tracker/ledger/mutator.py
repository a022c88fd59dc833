"""
Ledger Mutator

The only component that writes wallets, transactions, goals and debts.

THE ONE LOAD-BEARING INVARIANT: recording a transaction is a single
atomic batch of up to three writes:

    1. create the Transaction record
    2. increment the wallet balance by +amount (income) / -amount (expense)
    3. increment the goal's savedAmount by the allocation (if any)

Either all three land or none does. Balances are moved with the store's
atomic increment, never by reading the balance and writing back a
computed value, so two sessions recording against the same wallet at
the same time both land.

Writes are never retried: replaying an increment batch after an
ambiguous failure could apply it twice.

Flow of every operation:
1. Build the intent (malformed input -> LedgerValidationError)
2. Validate (any error-level issue -> LedgerValidationError, no writes)
3. Write
4. Audit
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Type, TypeVar, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.ledger.errors import (
    LedgerValidationError,
    ReferentialIntegrityError,
)
from finance_tracker.models import (
    AuditEventType,
    Debt,
    DebtIntent,
    DebtType,
    Goal,
    GoalAllocation,
    GoalIntent,
    Transaction,
    TransactionIntent,
    TransactionType,
    ValidationResult,
    Wallet,
    WalletIntent,
    WalletType,
)
from finance_tracker.services.storage import (
    BatchOperation,
    Collections,
    EntityStoreInterface,
    NotFoundError,
    StorageError,
)
from finance_tracker.validation import LedgerValidator


logger = structlog.get_logger(__name__)

IntentT = TypeVar("IntentT", bound=BaseModel)
Amount = Union[Decimal, int, float, str]


class LedgerMutator:
    """
    Applies validated changes to the entity store.

    Every method takes the acting user's ID explicitly; records of other
    users are invisible (reported as not found).
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or LedgerValidator(store)
        self._audit_logger = audit_logger or AuditLogger()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _build_intent(self, model: Type[IntentT], **fields: Any) -> IntentT:
        try:
            return model(**fields)
        except ValidationError as e:
            raise LedgerValidationError.from_pydantic(e)

    async def _check(
        self,
        result: ValidationResult,
        user_id: str,
        operation: str,
        correlation_id: UUID,
    ) -> None:
        """Raise LedgerValidationError if the result has errors; log warnings."""
        if result.has_errors:
            await self._audit_logger.log_validation_failed(
                user_id=user_id,
                operation=operation,
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
            )
            raise LedgerValidationError(result.issues)

        if result.warnings:
            logger.warning(
                "validation_warnings",
                operation=operation,
                user_id=user_id,
                warnings=result.warnings,
            )

    async def _storage_failed(
        self,
        error: StorageError,
        user_id: str,
        operation: str,
        correlation_id: UUID,
    ) -> None:
        await self._audit_logger.log_storage_error(
            user_id=user_id,
            operation=operation,
            error_message=str(error),
            correlation_id=correlation_id,
        )

    async def _get_owned(
        self,
        collection: str,
        record_id: str,
        user_id: str,
    ) -> dict[str, Any]:
        """Read a record that must exist and belong to user_id."""
        record = await self._store.get(collection, record_id) if record_id else None
        if record is None or record.get(Collections.OWNER_FIELD) != user_id:
            raise NotFoundError(f"{collection}/{record_id} not found")
        return record

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def record_transaction(
        self,
        user_id: str,
        amount: Amount,
        type: Union[TransactionType, str],
        category: str,
        wallet_id: str,
        date: Union[datetime, date, None],
        note: Optional[str] = None,
        allocation: Union[GoalAllocation, dict, None] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Record an income or expense and move the balances it affects.

        Args:
            allocation: Optional {goal_id, amount}; income only, at most amount

        Returns:
            The created Transaction (with its new ID)

        Raises:
            LedgerValidationError: A precondition failed (nothing written)
            StorageError: The batch was rejected (nothing written)
        """
        correlation_id = correlation_id or create_correlation_id()
        intent = self._build_intent(
            TransactionIntent,
            user_id=user_id,
            amount=amount,
            type=type,
            category=category,
            wallet_id=wallet_id,
            date=date,
            note=note,
            allocation=allocation,
        )

        try:
            result = await self._validator.validate_transaction(intent)
        except StorageError as e:
            await self._storage_failed(e, user_id, "record_transaction", correlation_id)
            raise
        await self._check(result, user_id, "record_transaction", correlation_id)

        transaction = Transaction(
            id=self._store.new_id(Collections.TRANSACTIONS),
            user_id=user_id,
            amount=intent.amount,
            type=intent.type,
            category=intent.category,
            date=intent.date,
            note=intent.note,
            wallet_id=intent.wallet_id,
            allocated_to_goal=intent.allocation,
        )

        operations = [
            BatchOperation.set(
                Collections.TRANSACTIONS,
                transaction.id,
                transaction.to_document(),
            ),
            BatchOperation.increment(
                Collections.WALLETS,
                transaction.wallet_id,
                "balance",
                transaction.signed_amount,
            ),
        ]
        if transaction.allocated_to_goal is not None:
            operations.append(BatchOperation.increment(
                Collections.GOALS,
                transaction.allocated_to_goal.goal_id,
                "savedAmount",
                transaction.allocated_to_goal.amount,
            ))

        try:
            await self._store.atomic_batch(operations)
        except StorageError as e:
            await self._storage_failed(e, user_id, "record_transaction", correlation_id)
            raise

        await self._audit_logger.log_transaction_recorded(
            user_id=user_id,
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=str(transaction.amount),
            wallet_id=transaction.wallet_id,
            goal_id=transaction.allocated_to_goal.goal_id if transaction.allocated_to_goal else None,
            allocated=str(transaction.allocated_amount) if transaction.allocated_to_goal else None,
            correlation_id=correlation_id,
        )
        return transaction

    # -------------------------------------------------------------------------
    # Wallets
    # -------------------------------------------------------------------------

    async def create_wallet(
        self,
        user_id: str,
        name: str,
        balance: Optional[Amount],
        type: Union[WalletType, str] = WalletType.CASH,
        correlation_id: Optional[UUID] = None,
    ) -> Wallet:
        """Create a wallet with an opening balance."""
        correlation_id = correlation_id or create_correlation_id()
        intent = self._build_intent(
            WalletIntent, user_id=user_id, name=name, balance=balance, type=type,
        )
        await self._check(
            self._validator.validate_wallet(intent), user_id, "create_wallet", correlation_id,
        )

        wallet = Wallet(
            user_id=user_id,
            name=intent.name,
            type=intent.type,
            balance=intent.balance,
        )
        try:
            wallet_id = await self._store.add(Collections.WALLETS, wallet.to_document())
        except StorageError as e:
            await self._storage_failed(e, user_id, "create_wallet", correlation_id)
            raise
        wallet = wallet.model_copy(update={"id": wallet_id})

        await self._audit_logger.log_wallet_changed(
            event_type=AuditEventType.WALLET_CREATED,
            user_id=user_id,
            wallet_id=wallet_id,
            name=wallet.name,
            correlation_id=correlation_id,
            details={"type": wallet.type.value, "balance": str(wallet.balance)},
        )
        return wallet

    async def update_wallet(
        self,
        user_id: str,
        wallet_id: str,
        name: str,
        balance: Optional[Amount],
        type: Union[WalletType, str] = WalletType.CASH,
        correlation_id: Optional[UUID] = None,
    ) -> Wallet:
        """
        Replace a wallet's name, type and balance.

        The balance is a manual override, not a delta: whatever the
        transactions added up to, the wallet now holds exactly `balance`.

        Raises:
            NotFoundError: No such wallet for this user
        """
        correlation_id = correlation_id or create_correlation_id()
        intent = self._build_intent(
            WalletIntent, user_id=user_id, name=name, balance=balance, type=type,
        )
        await self._check(
            self._validator.validate_wallet(intent), user_id, "update_wallet", correlation_id,
        )

        try:
            current = await self._get_owned(Collections.WALLETS, wallet_id, user_id)
            wallet = Wallet.model_validate({
                **current,
                "name": intent.name,
                "type": intent.type,
                "balance": intent.balance,
            })
            await self._store.update(Collections.WALLETS, wallet_id, {
                "name": wallet.name,
                "type": wallet.type,
                "balance": wallet.balance,
            })
        except NotFoundError:
            raise
        except StorageError as e:
            await self._storage_failed(e, user_id, "update_wallet", correlation_id)
            raise

        await self._audit_logger.log_wallet_changed(
            event_type=AuditEventType.WALLET_UPDATED,
            user_id=user_id,
            wallet_id=wallet_id,
            name=wallet.name,
            correlation_id=correlation_id,
            details={
                "type": wallet.type.value,
                "balance": str(wallet.balance),
                "previous_balance": str(current.get("balance")),
            },
        )
        return wallet

    async def delete_wallet(
        self,
        user_id: str,
        wallet_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete a wallet that no transaction references.

        Raises:
            NotFoundError: No such wallet for this user
            ReferentialIntegrityError: At least one transaction uses the wallet
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            current = await self._get_owned(Collections.WALLETS, wallet_id, user_id)
            references = await self._store.find(
                Collections.TRANSACTIONS,
                user_id,
                limit=1,
                walletId=wallet_id,
            )
        except NotFoundError:
            raise
        except StorageError as e:
            await self._storage_failed(e, user_id, "delete_wallet", correlation_id)
            raise

        if references:
            await self._audit_logger.log_wallet_delete_blocked(
                user_id=user_id,
                wallet_id=wallet_id,
                correlation_id=correlation_id,
            )
            raise ReferentialIntegrityError(
                "Cannot delete a wallet that has transactions",
                collection=Collections.WALLETS,
                record_id=wallet_id,
            )

        try:
            await self._store.delete(Collections.WALLETS, wallet_id)
        except StorageError as e:
            await self._storage_failed(e, user_id, "delete_wallet", correlation_id)
            raise

        await self._audit_logger.log_wallet_changed(
            event_type=AuditEventType.WALLET_DELETED,
            user_id=user_id,
            wallet_id=wallet_id,
            name=current.get("name", ""),
            correlation_id=correlation_id,
        )

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def create_goal(
        self,
        user_id: str,
        title: str,
        target_amount: Optional[Amount],
        deadline: Union[datetime, date, None] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Goal:
        """Create a savings goal. It starts with nothing saved."""
        correlation_id = correlation_id or create_correlation_id()
        intent = self._build_intent(
            GoalIntent,
            user_id=user_id,
            title=title,
            target_amount=target_amount,
            deadline=deadline,
        )
        await self._check(
            self._validator.validate_goal(intent), user_id, "create_goal", correlation_id,
        )

        goal = Goal(
            user_id=user_id,
            title=intent.title,
            target_amount=intent.target_amount,
            saved_amount=Decimal("0"),
            deadline=intent.deadline,
        )
        try:
            goal_id = await self._store.add(Collections.GOALS, goal.to_document())
        except StorageError as e:
            await self._storage_failed(e, user_id, "create_goal", correlation_id)
            raise
        goal = goal.model_copy(update={"id": goal_id})

        await self._audit_logger.log_goal_created(
            user_id=user_id,
            goal_id=goal_id,
            title=goal.title,
            target_amount=str(goal.target_amount),
            correlation_id=correlation_id,
        )
        return goal

    # -------------------------------------------------------------------------
    # Debts
    # -------------------------------------------------------------------------

    async def create_debt(
        self,
        user_id: str,
        person_name: str,
        amount: Optional[Amount],
        type: Union[DebtType, str],
        due_date: Union[datetime, date, None] = None,
        description: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Debt:
        """Record a debt. Debts never touch wallets or goals."""
        correlation_id = correlation_id or create_correlation_id()
        intent = self._build_intent(
            DebtIntent,
            user_id=user_id,
            person_name=person_name,
            amount=amount,
            type=type,
            due_date=due_date,
            description=description,
        )
        await self._check(
            self._validator.validate_debt(intent), user_id, "create_debt", correlation_id,
        )

        debt = Debt(
            user_id=user_id,
            person_name=intent.person_name,
            amount=intent.amount,
            type=intent.type,
            due_date=intent.due_date,
            description=intent.description,
            is_paid=False,
        )
        try:
            debt_id = await self._store.add(Collections.DEBTS, debt.to_document())
        except StorageError as e:
            await self._storage_failed(e, user_id, "create_debt", correlation_id)
            raise
        debt = debt.model_copy(update={"id": debt_id})

        await self._audit_logger.log_debt_created(
            user_id=user_id,
            debt_id=debt_id,
            person_name=debt.person_name,
            debt_type=debt.type.value,
            amount=str(debt.amount),
            correlation_id=correlation_id,
        )
        return debt

    async def toggle_debt_paid(
        self,
        user_id: str,
        debt_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Debt:
        """
        Flip a debt between paid and unpaid.

        Only isPaid is written; no balance moves.

        Raises:
            NotFoundError: No such debt for this user
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            current = await self._get_owned(Collections.DEBTS, debt_id, user_id)
            is_paid = not bool(current.get("isPaid", False))
            await self._store.update(Collections.DEBTS, debt_id, {"isPaid": is_paid})
        except NotFoundError:
            raise
        except StorageError as e:
            await self._storage_failed(e, user_id, "toggle_debt_paid", correlation_id)
            raise

        await self._audit_logger.log_debt_paid_toggled(
            user_id=user_id,
            debt_id=debt_id,
            is_paid=is_paid,
            correlation_id=correlation_id,
        )
        return Debt.model_validate({**current, "isPaid": is_paid})
