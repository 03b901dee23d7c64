"""
Main Orchestrator for Finance Tracker

This module ties together all the components and owns the application
state for one user session:
1. Session start (fetch everything → resolve primary account → snapshot)
2. Mutations (validate → write through the store → apply locally)
3. Derived views (summaries, goal progress, charts) recomputed on read

DESIGN DECISION: The controller is the only write path.
- Input is validated before any store call
- Local state changes only after the store confirms
- Writes that touch two records are compensated if the second fails
- Every mutation is audited

This is the "glue" that keeps balances and records in lockstep even
when the store fails halfway through an operation.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union
from uuid import UUID

import structlog
from pydantic import BaseModel

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.config import AppSettings, get_settings
from finance_tracker.engine import (
    GoalProgressEvaluator,
    NotificationScheduler,
    apply_amount_delta,
    compute_summary,
    expenses_by_category,
    filter_transactions,
    monthly_overview,
    next_status,
    patrimony_trend,
    settlement_delta,
)
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.finance import (
    Account,
    AccountType,
    FinancialGoal,
    IncomeSource,
    PatrimonySnapshot,
    RecordKind,
    Transaction,
    TransactionType,
)
from finance_tracker.models.summary import (
    CategoryExpense,
    FinancialSummary,
    GoalNotification,
    GoalProgress,
    OverviewBar,
    PatrimonyTrend,
)
from finance_tracker.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StoreError,
)
from finance_tracker.validation import RecordValidator, ValidationError


logger = structlog.get_logger(__name__)

T = TypeVar("T")
Amount = Union[Decimal, int, float, str]


class SessionClosedError(Exception):
    """A mutation was issued while no session is active."""
    pass


class NoActiveAccountError(Exception):
    """There is no active account to apply a balance change to."""
    pass


class FinanceState:
    """
    In-memory snapshot of one user's records.

    Collections hold frozen records in the order the store guarantees.
    The controller replaces records wholesale; nothing edits them in place.
    """

    def __init__(self):
        self.transactions: list[Transaction] = []
        self.accounts: list[Account] = []
        self.income_sources: list[IncomeSource] = []
        self.goals: list[FinancialGoal] = []
        self.snapshots: list[PatrimonySnapshot] = []
        self.primary_account_id: Optional[UUID] = None

    def collection(self, kind: RecordKind) -> list:
        return {
            RecordKind.TRANSACTIONS: self.transactions,
            RecordKind.ACCOUNTS: self.accounts,
            RecordKind.INCOME_SOURCES: self.income_sources,
            RecordKind.GOALS: self.goals,
            RecordKind.PATRIMONY_SNAPSHOTS: self.snapshots,
        }[kind]

    def find(self, kind: RecordKind, record_id: UUID) -> Optional[BaseModel]:
        return next((r for r in self.collection(kind) if r.id == record_id), None)

    def upsert(self, kind: RecordKind, record: BaseModel) -> None:
        """Replace the record with the same id, or append it."""
        records = self.collection(kind)
        for idx, existing in enumerate(records):
            if existing.id == record.id:
                records[idx] = record
                break
        else:
            records.append(record)
        if kind == RecordKind.TRANSACTIONS:
            records.sort(key=lambda t: (t.due_date, t.created_at))
        elif kind == RecordKind.PATRIMONY_SNAPSHOTS:
            records.sort(key=lambda s: s.snapshot_date)

    def drop(self, kind: RecordKind, record_id: UUID) -> None:
        records = self.collection(kind)
        records[:] = [r for r in records if r.id != record_id]
        if kind == RecordKind.ACCOUNTS and record_id == self.primary_account_id:
            self.resolve_primary_account()

    def clear(self) -> None:
        for kind in RecordKind:
            self.collection(kind).clear()
        self.primary_account_id = None

    @property
    def active_accounts(self) -> list[Account]:
        return [a for a in self.accounts if a.is_active]

    def resolve_primary_account(self) -> Optional[UUID]:
        """
        Designate the primary account.

        First active account typed primary; otherwise the first active
        account in creation order.
        """
        active = self.active_accounts
        primary = next(
            (a for a in active if a.account_type == AccountType.PRIMARY),
            active[0] if active else None,
        )
        self.primary_account_id = primary.id if primary else None
        return self.primary_account_id

    @property
    def primary_account(self) -> Optional[Account]:
        if self.primary_account_id is None:
            return None
        return self.find(RecordKind.ACCOUNTS, self.primary_account_id)


class FinanceController:
    """
    Owns the FinanceState of one session and exposes its write paths.

    Mutations are awaited one at a time by the UI. If the session ends
    while a store call is in flight, its result is discarded.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        validator: Optional[RecordValidator] = None,
        evaluator: Optional[GoalProgressEvaluator] = None,
        today: Callable[[], date] = date.today,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app
        self._validator = validator or RecordValidator(self._settings)
        self._evaluator = evaluator or GoalProgressEvaluator.from_settings(self._settings)
        self._scheduler = NotificationScheduler(self._evaluator)
        self._today = today
        self._session: Optional[UUID] = None
        self.state = FinanceState()

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    @property
    def session_active(self) -> bool:
        return self._session is not None

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    async def start_session(self) -> FinanceState:
        """
        Load everything for the user.

        Synthesizes a default primary account when the user has no
        active account, then records today's patrimony snapshot.
        """
        session = create_correlation_id()
        self._session = session
        self._scheduler.reset()
        try:
            state = await self._load(session)
        except StoreError:
            self._session = None
            raise

        if self._session != session:
            await self._audit.log(AuditEventBuilder.mutation_discarded("start_session", session))
            return self.state

        state.resolve_primary_account()
        self.state = state

        await self._audit.log(AuditEventBuilder.session_started(
            user_id=self._settings.user_id,
            record_counts={kind.value: len(state.collection(kind)) for kind in RecordKind},
            correlation_id=session,
        ))

        try:
            await self.record_patrimony_snapshot()
        except StoreError:
            # Already logged; the dashboard works without today's snapshot
            pass

        return self.state

    async def _load(self, session: UUID) -> FinanceState:
        state = FinanceState()
        for kind in RecordKind:
            records = await self._call("load", session, self._store.fetch_all(kind))
            state.collection(kind).extend(records)

        if not state.active_accounts:
            account = await self._call(
                "create_default_account",
                session,
                self._store.insert(RecordKind.ACCOUNTS, {
                    "name": self._settings.default_account_name,
                    "balance": Decimal("0"),
                    "color": self._settings.default_account_color,
                    "account_type": AccountType.PRIMARY,
                    "icon": self._settings.default_account_icon,
                }),
            )
            await self._audit.log(AuditEventBuilder.default_account_created(
                account.id, account.name, session,
            ))
            # Re-read so concurrent session starts settle on the earliest account
            state.accounts[:] = await self._call(
                "load", session, self._store.fetch_all(RecordKind.ACCOUNTS)
            )
        return state

    async def end_session(self) -> None:
        """Tear down the session: forget notified goals and drop local state."""
        notified = len(self._scheduler.notified_goal_ids)
        self._session = None
        self._scheduler.reset()
        self.state.clear()
        await self._audit.log(AuditEventBuilder.session_ended(self._settings.user_id, notified))

    def _require_session(self) -> UUID:
        if self._session is None:
            raise SessionClosedError("No active session; start a session first")
        return self._session

    async def _is_current(self, session: UUID, operation: str, correlation_id: UUID) -> bool:
        """False (and logged) if the session ended while the store call ran."""
        if self._session == session:
            return True
        await self._audit.log(AuditEventBuilder.mutation_discarded(operation, correlation_id))
        return False

    # =========================================================================
    # STORE CALL HELPERS
    # =========================================================================

    async def _call(self, operation: str, correlation_id: UUID, call: Awaitable[T]) -> T:
        """
        Await a store call, logging failures before re-raising them.

        A NotFoundError also drops the stale record from local state.
        """
        try:
            return await call
        except NotFoundError as e:
            self.state.drop(e.kind, e.record_id)
            await self._audit.log(AuditEventBuilder.stale_record_dropped(
                e.kind.value, e.record_id, correlation_id,
            ))
            raise
        except StoreError as e:
            await self._audit.log_store_error(operation, str(e), correlation_id)
            raise

    async def _update_pair(
        self,
        operation: str,
        correlation_id: UUID,
        first: tuple[RecordKind, UUID, dict[str, Any], dict[str, Any]],
        second: tuple[RecordKind, UUID, dict[str, Any]],
    ) -> tuple[BaseModel, BaseModel]:
        """
        Write two records as one unit.

        `first` carries the fields to restore if `second` does not
        complete, whether it failed or the task was cancelled. When the
        compensating write fails too, the inconsistency is logged as
        critical and the write error is still raised.
        """
        first_kind, first_id, first_fields, undo_fields = first
        second_kind, second_id, second_fields = second

        first_record = await self._call(
            operation, correlation_id,
            self._store.update(first_kind, first_id, first_fields),
        )
        try:
            second_record = await self._call(
                operation, correlation_id,
                self._store.update(second_kind, second_id, second_fields),
            )
        except BaseException as e:
            try:
                await self._call(
                    f"{operation}_rollback", correlation_id,
                    self._store.update(first_kind, first_id, undo_fields),
                )
            except StoreError as rollback_error:
                await self._audit.log(AuditEventBuilder.rollback_failed(
                    first_kind.value, first_id, str(rollback_error), correlation_id,
                ))
            else:
                await self._audit.log(AuditEventBuilder.rollback_applied(
                    first_kind.value, first_id, str(e) or type(e).__name__, correlation_id,
                ))
            raise
        return first_record, second_record

    async def _parse(self, kind: RecordKind, data: Any, correlation_id: UUID) -> BaseModel:
        try:
            return self._validator.parse(kind, data, today=self._today())
        except ValidationError as e:
            await self._audit.log_validation_rejected(
                kind.value,
                [i.model_dump() for i in e.issues],
                correlation_id,
            )
            raise

    async def _parse_delta(self, kind: RecordKind, delta: Amount, correlation_id: UUID) -> Decimal:
        """Validate a signed amount; the magnitude must be a valid positive amount."""
        negative = str(delta).strip().startswith("-")
        magnitude = str(delta).strip().lstrip("-") if isinstance(delta, str) else abs(delta)
        try:
            amount = self._validator.parse_amount(kind, magnitude)
        except ValidationError as e:
            await self._audit.log_validation_rejected(
                kind.value,
                [i.model_dump() for i in e.issues],
                correlation_id,
            )
            raise
        return -amount if negative else amount

    def _require(self, kind: RecordKind, record_id: UUID) -> BaseModel:
        record = self.state.find(kind, record_id)
        if record is None:
            raise NotFoundError(kind, record_id)
        return record

    def _settlement_account(self, account_id: Optional[UUID]) -> Account:
        """The explicitly chosen account, or the primary one."""
        if account_id is not None:
            account = self._require(RecordKind.ACCOUNTS, account_id)
            if not account.is_active:
                raise NoActiveAccountError(f"Account {account_id} is deactivated")
            return account
        account = self.state.primary_account
        if account is None:
            raise NoActiveAccountError("No active account to apply the change to")
        return account

    async def _add(self, operation: str, kind: RecordKind, data: Any) -> Optional[BaseModel]:
        session = self._require_session()
        correlation_id = create_correlation_id()
        parsed = await self._parse(kind, data, correlation_id)
        record = await self._call(
            operation, correlation_id, self._store.insert(kind, parsed.model_dump()),
        )
        if not await self._is_current(session, operation, correlation_id):
            return None
        self.state.upsert(kind, record)
        amount = next(
            (getattr(record, f) for f in ("amount", "balance", "target_amount") if hasattr(record, f)),
            None,
        )
        await self._audit.log(AuditEventBuilder.record_added(
            kind.value,
            record.id,
            getattr(record, "description", None) or getattr(record, "name", ""),
            amount,
            correlation_id,
        ))
        return record

    async def _remove(self, operation: str, kind: RecordKind, record_id: UUID) -> bool:
        session = self._require_session()
        correlation_id = create_correlation_id()
        self._require(kind, record_id)
        await self._call(operation, correlation_id, self._store.delete(kind, record_id))
        if not await self._is_current(session, operation, correlation_id):
            return False
        self.state.drop(kind, record_id)
        await self._audit.log(AuditEventBuilder.record_removed(kind.value, record_id, correlation_id))
        return True

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def add_transaction(self, data: Any) -> Optional[Transaction]:
        """Validate and store a new transaction."""
        return await self._add("add_transaction", RecordKind.TRANSACTIONS, data)

    async def remove_transaction(self, transaction_id: UUID) -> bool:
        return await self._remove("remove_transaction", RecordKind.TRANSACTIONS, transaction_id)

    async def toggle_status(
        self,
        transaction_id: UUID,
        account_id: Optional[UUID] = None,
    ) -> Optional[Transaction]:
        """
        Flip a transaction between pending and paid.

        The settlement account (explicit, or the primary one) moves by
        exactly the signed amount of the transition. Status and balance
        are written as one unit; if the balance write fails the status
        write is undone and local state is left unchanged.
        """
        session = self._require_session()
        correlation_id = create_correlation_id()
        transaction = self._require(RecordKind.TRANSACTIONS, transaction_id)
        account = self._settlement_account(account_id)

        new_status = next_status(transaction.status)
        delta = settlement_delta(transaction, new_status)

        updated_transaction, updated_account = await self._update_pair(
            "toggle_status",
            correlation_id,
            (
                RecordKind.TRANSACTIONS, transaction.id,
                {"status": new_status}, {"status": transaction.status},
            ),
            (RecordKind.ACCOUNTS, account.id, {"balance": account.balance + delta}),
        )
        if not await self._is_current(session, "toggle_status", correlation_id):
            return None

        self.state.upsert(RecordKind.TRANSACTIONS, updated_transaction)
        self.state.upsert(RecordKind.ACCOUNTS, updated_account)
        await self._audit.log(AuditEventBuilder.status_toggled(
            transaction_id=transaction.id,
            new_status=new_status.value,
            account_id=account.id,
            delta=delta,
            new_balance=updated_account.balance,
            correlation_id=correlation_id,
        ))
        return updated_transaction

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def add_account(self, data: Any) -> Optional[Account]:
        account = await self._add("add_account", RecordKind.ACCOUNTS, data)
        if account is not None and self.state.primary_account_id is None:
            self.state.resolve_primary_account()
        return account

    async def remove_account(self, account_id: UUID) -> Optional[Account]:
        """Deactivate an account; its balance no longer counts."""
        session = self._require_session()
        correlation_id = create_correlation_id()
        self._require(RecordKind.ACCOUNTS, account_id)
        account = await self._call(
            "remove_account", correlation_id,
            self._store.soft_delete(RecordKind.ACCOUNTS, account_id),
        )
        if not await self._is_current(session, "remove_account", correlation_id):
            return None
        self.state.upsert(RecordKind.ACCOUNTS, account)
        if account_id == self.state.primary_account_id:
            self.state.resolve_primary_account()
        await self._audit.log(AuditEventBuilder.record_removed(
            RecordKind.ACCOUNTS.value, account_id, correlation_id,
        ))
        return account

    async def adjust_account_balance(
        self,
        delta: Amount,
        account_id: Optional[UUID] = None,
    ) -> Optional[Account]:
        """Deposit (delta > 0) into or withdraw (delta < 0) from an account."""
        session = self._require_session()
        correlation_id = create_correlation_id()
        signed = await self._parse_delta(RecordKind.ACCOUNTS, delta, correlation_id)
        account = self._settlement_account(account_id)

        updated = await self._call(
            "adjust_account_balance", correlation_id,
            self._store.update(RecordKind.ACCOUNTS, account.id, {"balance": account.balance + signed}),
        )
        if not await self._is_current(session, "adjust_account_balance", correlation_id):
            return None
        self.state.upsert(RecordKind.ACCOUNTS, updated)
        await self._audit.log(AuditEventBuilder.balance_adjusted(
            account.id, signed, updated.balance, correlation_id,
        ))
        return updated

    # =========================================================================
    # INCOME SOURCES
    # =========================================================================

    async def add_income_source(self, data: Any) -> Optional[IncomeSource]:
        return await self._add("add_income_source", RecordKind.INCOME_SOURCES, data)

    async def remove_income_source(self, source_id: UUID) -> bool:
        return await self._remove("remove_income_source", RecordKind.INCOME_SOURCES, source_id)

    async def toggle_income_source(self, source_id: UUID) -> Optional[IncomeSource]:
        """Pause or resume an income source."""
        session = self._require_session()
        correlation_id = create_correlation_id()
        source = self._require(RecordKind.INCOME_SOURCES, source_id)
        updated = await self._call(
            "toggle_income_source", correlation_id,
            self._store.update(
                RecordKind.INCOME_SOURCES, source_id, {"is_active": not source.is_active}
            ),
        )
        if not await self._is_current(session, "toggle_income_source", correlation_id):
            return None
        self.state.upsert(RecordKind.INCOME_SOURCES, updated)
        await self._audit.log(AuditEventBuilder.income_source_toggled(
            source_id, updated.is_active, correlation_id,
        ))
        return updated

    # =========================================================================
    # GOALS
    # =========================================================================

    async def add_goal(self, data: Any) -> Optional[FinancialGoal]:
        return await self._add("add_goal", RecordKind.GOALS, data)

    async def remove_goal(self, goal_id: UUID) -> bool:
        return await self._remove("remove_goal", RecordKind.GOALS, goal_id)

    async def update_goal_amount(
        self,
        goal_id: UUID,
        delta: Amount,
        from_account_id: Optional[UUID] = None,
    ) -> Optional[FinancialGoal]:
        """
        Deposit into (delta > 0) or withdraw from (delta < 0) a goal.

        The saved amount never drops below zero; a withdrawal larger than
        the saved amount is clamped. When `from_account_id` is given the
        account moves by the applied amount in the opposite direction,
        written together with the goal.
        """
        session = self._require_session()
        correlation_id = create_correlation_id()
        signed = await self._parse_delta(RecordKind.GOALS, delta, correlation_id)
        goal = self._require(RecordKind.GOALS, goal_id)

        new_amount = apply_amount_delta(goal.current_amount, signed)
        applied = new_amount - goal.current_amount
        account = None
        if from_account_id is not None:
            account = self._settlement_account(from_account_id)

        if account is not None and applied != 0:
            updated_goal, updated_account = await self._update_pair(
                "update_goal_amount",
                correlation_id,
                (
                    RecordKind.GOALS, goal.id,
                    {"current_amount": new_amount}, {"current_amount": goal.current_amount},
                ),
                (RecordKind.ACCOUNTS, account.id, {"balance": account.balance - applied}),
            )
        else:
            updated_account = None
            updated_goal = await self._call(
                "update_goal_amount", correlation_id,
                self._store.update(RecordKind.GOALS, goal.id, {"current_amount": new_amount}),
            )

        if not await self._is_current(session, "update_goal_amount", correlation_id):
            return None
        self.state.upsert(RecordKind.GOALS, updated_goal)
        if updated_account is not None:
            self.state.upsert(RecordKind.ACCOUNTS, updated_account)
        await self._audit.log(AuditEventBuilder.goal_amount_updated(
            goal_id=goal.id,
            requested_delta=signed,
            applied_delta=applied,
            new_amount=updated_goal.current_amount,
            account_id=account.id if account else None,
            correlation_id=correlation_id,
        ))
        return updated_goal

    async def mark_goal_complete(self, goal_id: UUID) -> Optional[FinancialGoal]:
        """Mark a goal completed. There is no way back."""
        session = self._require_session()
        correlation_id = create_correlation_id()
        goal = self._require(RecordKind.GOALS, goal_id)
        if goal.is_completed:
            return goal
        updated = await self._call(
            "mark_goal_complete", correlation_id,
            self._store.update(RecordKind.GOALS, goal_id, {"is_completed": True}),
        )
        if not await self._is_current(session, "mark_goal_complete", correlation_id):
            return None
        self.state.upsert(RecordKind.GOALS, updated)
        await self._audit.log(AuditEventBuilder.goal_completed(goal_id, correlation_id))
        return updated

    async def check_goal_notifications(self) -> list[GoalNotification]:
        """
        Scan goals for deadline alerts not yet shown in this session.

        Call once per data refresh.
        """
        self._require_session()
        notifications = self._scheduler.scan(self.state.goals, self._today())
        for notification in notifications:
            await self._audit.log(AuditEventBuilder.goal_notification(
                notification.goal_id, notification.urgency.value,
            ))
        return notifications

    # =========================================================================
    # PATRIMONY SNAPSHOTS
    # =========================================================================

    async def record_patrimony_snapshot(self) -> Optional[PatrimonySnapshot]:
        """Store today's total balance, replacing an earlier one from today."""
        session = self._require_session()
        correlation_id = create_correlation_id()
        total = self.summary.total_balance
        snapshot = await self._call(
            "record_patrimony_snapshot", correlation_id,
            self._store.upsert_snapshot(total, self._today()),
        )
        if not await self._is_current(session, "record_patrimony_snapshot", correlation_id):
            return None
        snapshots = self.state.snapshots
        snapshots[:] = [s for s in snapshots if s.snapshot_date != snapshot.snapshot_date]
        self.state.upsert(RecordKind.PATRIMONY_SNAPSHOTS, snapshot)
        await self._audit.log(AuditEventBuilder.snapshot_recorded(
            snapshot.id, snapshot.snapshot_date.isoformat(), snapshot.total_balance, correlation_id,
        ))
        return snapshot

    # =========================================================================
    # DERIVED VIEWS (recomputed on every read)
    # =========================================================================

    @property
    def summary(self) -> FinancialSummary:
        return compute_summary(
            self.state.transactions,
            self.state.accounts,
            self.state.income_sources,
        )

    @property
    def receivables(self) -> list[Transaction]:
        return filter_transactions(self.state.transactions, TransactionType.RECEIVABLE)

    @property
    def payables(self) -> list[Transaction]:
        return filter_transactions(self.state.transactions, TransactionType.PAYABLE)

    def goal_progress(self, goal_id: UUID) -> GoalProgress:
        goal = self._require(RecordKind.GOALS, goal_id)
        return self._evaluator.evaluate(goal, self._today())

    def all_goal_progress(self) -> dict[UUID, GoalProgress]:
        today = self._today()
        return {g.id: self._evaluator.evaluate(g, today) for g in self.state.goals}

    def expenses_by_category(self) -> list[CategoryExpense]:
        return expenses_by_category(self.state.transactions)

    def monthly_overview(self) -> list[OverviewBar]:
        return monthly_overview(self.state.transactions)

    def patrimony_trend(self) -> PatrimonyTrend:
        return patrimony_trend(self.state.snapshots)


def create_app_components(
    use_storage: bool = True,
) -> tuple[FinanceController, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on the in-memory store.

    Returns:
        (controller, sheets_client)
    """
    settings = get_settings().app
    sheets_client = None
    store: RecordStoreInterface
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsRecordStore(sheets_client, user_id=settings.user_id)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client is None:
        store = InMemoryRecordStore(user_id=settings.user_id)
        audit_logger = AuditLogger()  # Local-only logging

    controller = FinanceController(store=store, audit_logger=audit_logger, settings=settings)
    return controller, sheets_client
