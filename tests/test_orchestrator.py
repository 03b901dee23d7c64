"""
Tests for FinanceController.

All tests run against the in-memory store; FlakyRecordStore and
GatedRecordStore inject store failures and slow confirmations.
"""

import asyncio
import pytest
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from finance_tracker.audit import AuditLogger
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.finance import (
    AccountType,
    IncomeFrequency,
    RecordKind,
    TransactionStatus,
)
from finance_tracker.models.summary import UrgencyTier
from finance_tracker.orchestrator import (
    FinanceController,
    NoActiveAccountError,
    SessionClosedError,
    create_app_components,
)
from finance_tracker.services.storage import (
    InMemoryRecordStore,
    NotFoundError,
    StoreError,
)
from finance_tracker.validation import ValidationError


TODAY = date(2025, 6, 15)


@pytest.fixture
def today():
    """Pins the controller clock to the date the sample records use."""
    return TODAY


def transaction(amount="50.00", transaction_type="payable", **overrides):
    data = {
        "description": "Mercado",
        "amount": amount,
        "due_date": TODAY,
        "transaction_type": transaction_type,
        "category": "Alimentação",
    }
    data.update(overrides)
    return data


async def event_types(audit_storage):
    return [e.event_type for e in await audit_storage.get_recent_events(limit=1000)]


async def seed_account(store, balance="0", account_type=AccountType.PRIMARY, name="Principal"):
    return await store.insert(RecordKind.ACCOUNTS, {
        "name": name,
        "balance": Decimal(balance),
        "account_type": account_type,
    })


class TestSessionStart:
    """Loading, default account and primary resolution."""

    @pytest.mark.asyncio
    async def test_default_account_created_when_none_exist(self, controller, audit_storage):
        state = await controller.start_session()

        [account] = state.accounts
        assert account.name == "Conta Principal"
        assert account.account_type == AccountType.PRIMARY
        assert account.balance == Decimal("0")
        assert state.primary_account_id == account.id
        assert AuditEventType.DEFAULT_ACCOUNT_CREATED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_default_account_created_only_once(self, controller, store, settings):
        await controller.start_session()
        await controller.end_session()

        second = FinanceController(store=store, settings=settings, today=lambda: TODAY)
        state = await second.start_session()
        assert len(state.accounts) == 1

    @pytest.mark.asyncio
    async def test_primary_type_wins_over_creation_order(self, controller, store):
        await seed_account(store, account_type=AccountType.SECONDARY, name="Antiga")
        primary = await seed_account(store, account_type=AccountType.PRIMARY)

        state = await controller.start_session()
        assert state.primary_account_id == primary.id

    @pytest.mark.asyncio
    async def test_falls_back_to_first_created_account(self, controller, store):
        first = await seed_account(store, account_type=AccountType.SAVINGS, name="Poupança")
        await seed_account(store, account_type=AccountType.SECONDARY, name="Outra")

        state = await controller.start_session()
        assert state.primary_account_id == first.id

    @pytest.mark.asyncio
    async def test_records_todays_snapshot(self, controller, store):
        await seed_account(store, balance="250.00")
        state = await controller.start_session()

        [snapshot] = state.snapshots
        assert snapshot.snapshot_date == TODAY
        assert snapshot.total_balance == Decimal("250.00")

    @pytest.mark.asyncio
    async def test_mutation_without_session(self, controller):
        with pytest.raises(SessionClosedError):
            await controller.add_transaction(transaction())

    @pytest.mark.asyncio
    async def test_failed_load_logs_details(self, audit_storage, settings):
        class UnreachableRecordStore(InMemoryRecordStore):
            async def fetch_all(self, kind):
                raise StoreError("APIError: quota exceeded")

        controller = FinanceController(
            store=UnreachableRecordStore(),
            audit_logger=AuditLogger(audit_storage),
            settings=settings,
            today=lambda: TODAY,
        )
        with pytest.raises(StoreError):
            await controller.start_session()

        assert not controller.session_active
        [event] = await audit_storage.get_recent_events()
        assert event.event_type == AuditEventType.STORE_ERROR
        assert event.error_message == "APIError: quota exceeded"


class TestTransactions:
    """Adding, removing and settling transactions."""

    @pytest.mark.asyncio
    async def test_projected_balance(self, controller, store):
        """Balance 1000, pending receivable 200, pending payable 50 projects to 1150."""
        await seed_account(store, balance="1000")
        await controller.start_session()
        await controller.add_transaction(transaction("200", "receivable", category="Trabalho"))
        await controller.add_transaction(transaction("50", "payable"))

        assert controller.summary.projected_balance == Decimal("1150")
        assert len(controller.receivables) == 1
        assert len(controller.payables) == 1

    @pytest.mark.asyncio
    async def test_toggle_payable_and_back(self, controller, audit_storage):
        """Paying a 50 payable from a zero balance goes to -50, undoing returns to 0."""
        await controller.start_session()
        tx = await controller.add_transaction(transaction("50"))

        paid = await controller.toggle_status(tx.id)
        assert paid.status == TransactionStatus.PAID
        assert controller.state.primary_account.balance == Decimal("-50")

        pending = await controller.toggle_status(tx.id)
        assert pending.status == TransactionStatus.PENDING
        assert controller.state.primary_account.balance == Decimal("0")
        assert AuditEventType.TRANSACTION_STATUS_TOGGLED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_even_toggles_restore_balance_exactly(self, controller, store):
        await seed_account(store, balance="0.10")
        await controller.start_session()
        tx = await controller.add_transaction(transaction("33.33", "receivable"))

        for _ in range(6):
            await controller.toggle_status(tx.id)

        account = controller.state.primary_account
        assert account.balance == Decimal("0.10")
        [stored] = [a for a in await store.fetch_all(RecordKind.ACCOUNTS) if a.id == account.id]
        assert stored.balance == Decimal("0.10")

    @pytest.mark.asyncio
    async def test_toggle_against_chosen_account(self, controller, store):
        primary = await seed_account(store, balance="100")
        other = await seed_account(store, balance="100", account_type=AccountType.SECONDARY,
                                   name="Cartão")
        await controller.start_session()
        tx = await controller.add_transaction(transaction("40"))

        await controller.toggle_status(tx.id, account_id=other.id)

        balances = {a.id: a.balance for a in controller.state.accounts}
        assert balances[primary.id] == Decimal("100")
        assert balances[other.id] == Decimal("60")

    @pytest.mark.asyncio
    async def test_failed_balance_write_rolls_back_status(self, controller, store, audit_storage):
        await controller.start_session()
        tx = await controller.add_transaction(transaction("50"))
        store.update_failures = [False, True]  # status write ok, balance write fails

        with pytest.raises(StoreError):
            await controller.toggle_status(tx.id)

        [stored_tx] = await store.fetch_all(RecordKind.TRANSACTIONS)
        assert stored_tx.status == TransactionStatus.PENDING
        assert controller.state.transactions[0].status == TransactionStatus.PENDING
        assert controller.state.primary_account.balance == Decimal("0")

        types = await event_types(audit_storage)
        assert AuditEventType.ROLLBACK_APPLIED in types
        assert AuditEventType.STORE_ERROR in types

    @pytest.mark.asyncio
    async def test_failed_rollback_is_logged_critical(self, controller, store, audit_storage):
        await controller.start_session()
        tx = await controller.add_transaction(transaction("50"))
        store.update_failures = [False, True, True]

        with pytest.raises(StoreError):
            await controller.toggle_status(tx.id)

        assert controller.state.transactions[0].status == TransactionStatus.PENDING
        assert AuditEventType.ROLLBACK_FAILED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_rollback_of_vanished_record_drops_it(self, audit_storage, settings):
        class VanishingRecordStore(InMemoryRecordStore):
            """Balance write fails after the transaction was removed elsewhere."""

            async def update(self, kind, record_id, fields):
                if kind == RecordKind.ACCOUNTS:
                    for tx in await self.fetch_all(RecordKind.TRANSACTIONS):
                        await self.delete(RecordKind.TRANSACTIONS, tx.id)
                    raise StoreError("accounts write rejected")
                return await super().update(kind, record_id, fields)

        controller = FinanceController(
            store=VanishingRecordStore(),
            audit_logger=AuditLogger(audit_storage),
            settings=settings,
            today=lambda: TODAY,
        )
        await controller.start_session()
        tx = await controller.add_transaction(transaction("50"))

        with pytest.raises(StoreError):
            await controller.toggle_status(tx.id)

        assert controller.state.transactions == []
        types = await event_types(audit_storage)
        assert AuditEventType.STALE_RECORD_DROPPED in types
        assert AuditEventType.ROLLBACK_FAILED in types

    @pytest.mark.asyncio
    async def test_invalid_input_never_reaches_store(self, controller, store, audit_storage):
        await controller.start_session()
        with pytest.raises(ValidationError):
            await controller.add_transaction(transaction("12.345"))

        assert await store.fetch_all(RecordKind.TRANSACTIONS) == []
        types = await event_types(audit_storage)
        assert AuditEventType.VALIDATION_REJECTED in types
        assert AuditEventType.STORE_ERROR not in types

    @pytest.mark.asyncio
    async def test_removed_elsewhere_drops_stale_record(self, controller, store, audit_storage):
        await controller.start_session()
        tx = await controller.add_transaction(transaction())
        await store.delete(RecordKind.TRANSACTIONS, tx.id)

        with pytest.raises(NotFoundError):
            await controller.remove_transaction(tx.id)

        assert controller.state.transactions == []
        assert AuditEventType.STALE_RECORD_DROPPED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_remove_transaction(self, controller, store):
        await controller.start_session()
        tx = await controller.add_transaction(transaction())

        assert await controller.remove_transaction(tx.id) is True
        assert controller.state.transactions == []
        assert await store.fetch_all(RecordKind.TRANSACTIONS) == []


class TestSessionTeardown:
    """Results confirmed after the session ends are discarded."""

    @pytest.mark.asyncio
    async def test_late_confirmation_discarded(self, gated_store, audit_storage, settings):
        controller = FinanceController(
            store=gated_store,
            audit_logger=AuditLogger(audit_storage),
            settings=settings,
            today=lambda: TODAY,
        )
        await controller.start_session()
        tx = await controller.add_transaction(transaction())

        gated_store.gate = asyncio.Event()
        pending = asyncio.create_task(controller.toggle_status(tx.id))
        await asyncio.sleep(0)
        await controller.end_session()
        gated_store.gate.set()

        assert await pending is None
        assert controller.state.transactions == []
        assert AuditEventType.MUTATION_DISCARDED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_cancelled_balance_write_rolls_back_status(
        self, gated_store, audit_storage, settings
    ):
        controller = FinanceController(
            store=gated_store,
            audit_logger=AuditLogger(audit_storage),
            settings=settings,
            today=lambda: TODAY,
        )
        await controller.start_session()
        tx = await controller.add_transaction(transaction("50"))

        gated_store.gate = asyncio.Event()
        gated_store.gated_kind = RecordKind.ACCOUNTS
        task = asyncio.ensure_future(controller.toggle_status(tx.id))
        await gated_store.blocked.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        [stored_tx] = await gated_store.fetch_all(RecordKind.TRANSACTIONS)
        [stored_account] = await gated_store.fetch_all(RecordKind.ACCOUNTS)
        assert stored_tx.status == TransactionStatus.PENDING
        assert stored_account.balance == Decimal("0")
        assert controller.state.transactions[0].status == TransactionStatus.PENDING
        assert AuditEventType.ROLLBACK_APPLIED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_end_session_blocks_mutations(self, controller):
        await controller.start_session()
        await controller.end_session()
        assert not controller.session_active
        with pytest.raises(SessionClosedError):
            await controller.add_goal({"name": "Casa", "target_amount": "1000"})


class TestAccounts:
    """Account balance adjustments and deactivation."""

    @pytest.mark.asyncio
    async def test_deposit_and_withdraw(self, controller):
        await controller.start_session()
        await controller.adjust_account_balance("100.00")
        account = await controller.adjust_account_balance("-25.50")

        assert account.balance == Decimal("74.50")
        assert controller.summary.total_balance == Decimal("74.50")

    @pytest.mark.asyncio
    async def test_adjust_rejects_zero(self, controller):
        await controller.start_session()
        with pytest.raises(ValidationError):
            await controller.adjust_account_balance("0")

    @pytest.mark.asyncio
    async def test_deactivating_primary_moves_primary(self, controller, store):
        primary = await seed_account(store, balance="10")
        other = await seed_account(store, balance="5", account_type=AccountType.SAVINGS,
                                   name="Poupança")
        await controller.start_session()

        await controller.remove_account(primary.id)

        assert controller.state.primary_account_id == other.id
        assert controller.summary.total_balance == Decimal("5")
        assert len(controller.state.accounts) == 2  # kept, but inactive

    @pytest.mark.asyncio
    async def test_toggle_without_active_account(self, controller):
        await controller.start_session()
        tx = await controller.add_transaction(transaction())
        await controller.remove_account(controller.state.primary_account_id)

        with pytest.raises(NoActiveAccountError):
            await controller.toggle_status(tx.id)

    @pytest.mark.asyncio
    async def test_add_account(self, controller):
        await controller.start_session()
        account = await controller.add_account({
            "name": "Investimentos",
            "balance": "5000.00",
            "account_type": "investment",
        })
        assert account in controller.state.accounts
        assert controller.summary.total_balance == Decimal("5000.00")


class TestIncomeSources:
    """Income sources feed the monthly income figure."""

    @pytest.mark.asyncio
    async def test_monthly_income(self, controller):
        await controller.start_session()
        await controller.add_income_source(
            {"name": "Freela", "amount": "100", "frequency": "weekly"}
        )
        yearly = await controller.add_income_source(
            {"name": "Bônus", "amount": "1200", "frequency": IncomeFrequency.YEARLY}
        )
        assert controller.summary.monthly_income == Decimal("500.00")

        await controller.toggle_income_source(yearly.id)
        assert controller.summary.monthly_income == Decimal("400.00")

        await controller.remove_income_source(yearly.id)
        assert len(controller.state.income_sources) == 1


class TestGoals:
    """Goal deposits, withdrawals, completion and alerts."""

    @pytest.mark.asyncio
    async def test_withdrawal_clamped_at_zero(self, controller):
        await controller.start_session()
        goal = await controller.add_goal(
            {"name": "Viagem", "target_amount": "1000", "current_amount": "100"}
        )

        updated = await controller.update_goal_amount(goal.id, "-250")
        assert updated.current_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_funded_deposit_moves_account(self, controller):
        await controller.start_session()
        account_id = controller.state.primary_account_id
        await controller.adjust_account_balance("300")
        goal = await controller.add_goal({"name": "Notebook", "target_amount": "4000"})

        await controller.update_goal_amount(goal.id, "120.00", from_account_id=account_id)
        assert controller.state.primary_account.balance == Decimal("180.00")

        # Withdrawing more than saved only returns what was saved
        await controller.update_goal_amount(goal.id, "-500", from_account_id=account_id)
        assert controller.state.primary_account.balance == Decimal("300.00")
        assert controller.state.goals[0].current_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_funded_deposit_rolled_back(self, controller, store):
        await controller.start_session()
        account_id = controller.state.primary_account_id
        goal = await controller.add_goal({"name": "Notebook", "target_amount": "4000"})
        store.update_failures = [False, True]

        with pytest.raises(StoreError):
            await controller.update_goal_amount(goal.id, "100", from_account_id=account_id)

        [stored] = await store.fetch_all(RecordKind.GOALS)
        assert stored.current_amount == Decimal("0")
        assert controller.state.goals[0].current_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_progress_stays_bounded(self, controller):
        await controller.start_session()
        goal = await controller.add_goal({"name": "Reserva", "target_amount": "100"})
        await controller.update_goal_amount(goal.id, "1000000")

        progress = controller.goal_progress(goal.id)
        assert progress.progress_percent == 100
        assert progress.remaining == 0

    @pytest.mark.asyncio
    async def test_mark_complete_is_one_way(self, controller, store):
        await controller.start_session()
        goal = await controller.add_goal({"name": "Reserva", "target_amount": "100"})

        completed = await controller.mark_goal_complete(goal.id)
        assert completed.is_completed
        calls = len(store.update_calls)
        assert (await controller.mark_goal_complete(goal.id)).is_completed
        assert len(store.update_calls) == calls

    @pytest.mark.asyncio
    async def test_notifications_once_per_session(self, controller):
        await controller.start_session()
        await controller.add_goal({
            "name": "Viagem",
            "target_amount": "1000",
            "current_amount": "100",
            "deadline": TODAY + timedelta(days=15),
        })

        [notification] = await controller.check_goal_notifications()
        assert notification.urgency == UrgencyTier.AT_RISK
        assert await controller.check_goal_notifications() == []

        await controller.end_session()
        await controller.start_session()
        assert len(await controller.check_goal_notifications()) == 1

    @pytest.mark.asyncio
    async def test_completed_goals_not_notified(self, controller):
        await controller.start_session()
        goal = await controller.add_goal({
            "name": "Casa",
            "target_amount": "1000",
            "deadline": TODAY - timedelta(days=3),
        })
        await controller.mark_goal_complete(goal.id)
        assert await controller.check_goal_notifications() == []

    @pytest.mark.asyncio
    async def test_unknown_goal(self, controller):
        await controller.start_session()
        with pytest.raises(NotFoundError):
            await controller.remove_goal(uuid4())


class TestDerivedViews:
    """Charts data recomputed from state."""

    @pytest.mark.asyncio
    async def test_snapshot_and_trend(self, controller, store):
        await store.upsert_snapshot(Decimal("100.00"), TODAY - timedelta(days=1))
        await seed_account(store, balance="150")
        await controller.start_session()

        trend = controller.patrimony_trend()
        assert len(trend.points) == 2
        assert trend.percent_change == Decimal("50.00")

        await controller.adjust_account_balance("50")
        snapshot = await controller.record_patrimony_snapshot()
        assert snapshot.total_balance == Decimal("200")
        assert len(controller.state.snapshots) == 2

    @pytest.mark.asyncio
    async def test_expenses_and_overview(self, controller):
        await controller.start_session()
        tx = await controller.add_transaction(transaction("80", category="Lazer"))
        await controller.add_transaction(transaction("20", category="Saúde"))
        await controller.toggle_status(tx.id)

        assert [s.category for s in controller.expenses_by_category()] == ["Lazer", "Saúde"]
        _, payables = controller.monthly_overview()
        assert payables.realized == Decimal("80")


class TestFactory:
    """create_app_components wiring."""

    def test_without_storage_uses_memory(self):
        controller, client = create_app_components(use_storage=False)
        assert client is None
        assert isinstance(controller._store, InMemoryRecordStore)
