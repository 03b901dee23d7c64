"""
Streamlit Frontend for Finance Tracker

This is the dashboard the user opens to keep track of what they will
receive, what they owe, and how their savings goals are doing.

DESIGN PRINCIPLES:
1. Every change goes through the controller (validated, then stored)
2. Clear error messages in simple language
3. Visual feedback for all operations
4. Figures are always recomputed from the records, never typed in

One FinanceController lives in each browser session. Goal deadline
alerts are shown once per session as toasts.
"""

import asyncio
from datetime import date
from decimal import Decimal

import plotly.graph_objects as go
import streamlit as st

from finance_tracker.config import validate_all_settings
from finance_tracker.models.finance import (
    AccountType,
    IncomeFrequency,
    TransactionCategory,
    TransactionType,
)
from finance_tracker.models.summary import UrgencyTier
from finance_tracker.orchestrator import (
    FinanceController,
    NoActiveAccountError,
    create_app_components,
)
from finance_tracker.services.storage import StoreError
from finance_tracker.validation import ValidationError


# Page configuration
st.set_page_config(
    page_title="Finance Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .big-number {
        font-size: 2.2em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)

URGENCY_ICONS = {
    UrgencyTier.OVERDUE: "⚠️",
    UrgencyTier.DUE_TODAY: "🚨",
    UrgencyTier.DUE_SOON: "⏰",
    UrgencyTier.AT_RISK: "📊",
    UrgencyTier.ON_TRACK: "✅",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def money(value: Decimal) -> str:
    return f"R$ {value:,.2f}"


def get_controller() -> FinanceController:
    """Get or create this browser session's controller."""
    if "controller" not in st.session_state:
        controller, _ = create_app_components(use_storage=True)
        try:
            run_async(controller.start_session())
        except StoreError:
            st.error("Could not load your data. Please reload the page.")
            st.stop()
        st.session_state.controller = controller
    return st.session_state.controller


def run_action(action, success_message: str) -> bool:
    """Run a controller mutation and report the outcome to the user."""
    try:
        run_async(action)
    except ValidationError as e:
        st.error(str(e))
        return False
    except NoActiveAccountError as e:
        st.error(str(e))
        return False
    except StoreError:
        st.error("Could not save the change. Please try again.")
        return False
    except Exception as e:
        run_async(st.session_state.controller.audit_logger.log_error(
            error_type=type(e).__name__,
            error_message=str(e),
        ))
        st.error("Something went wrong. Please try again.")
        return False
    st.toast(success_message)
    return True


def show_goal_notifications(controller: FinanceController) -> None:
    for notification in run_async(controller.check_goal_notifications()):
        icon = "🔴" if notification.variant == "destructive" else "🔔"
        st.toast(f"**{notification.title}**\n\n{notification.message}", icon=icon)


def main():
    """Main application entry point."""
    controller = get_controller()
    show_goal_notifications(controller)

    st.sidebar.title("💰 Finance Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "🧾 Transactions", "🏦 Accounts", "💼 Income", "🎯 Goals"],
        index=0,
    )

    st.sidebar.markdown("---")
    if validate_all_settings().get("google_sheets"):
        st.sidebar.caption("🟢 Saving to Google Sheets")
    else:
        st.sidebar.caption("⚪ Google Sheets not configured; changes last until you close the app")
    if st.sidebar.button("🔄 Reload data"):
        run_async(controller.end_session())
        del st.session_state["controller"]
        st.rerun()

    if page == "📊 Dashboard":
        render_dashboard(controller)
    elif page == "🧾 Transactions":
        render_transactions_page(controller)
    elif page == "🏦 Accounts":
        render_accounts_page(controller)
    elif page == "💼 Income":
        render_income_page(controller)
    elif page == "🎯 Goals":
        render_goals_page(controller)


def render_dashboard(controller: FinanceController):
    """Summary cards and charts."""
    st.title("📊 Dashboard")
    summary = controller.summary

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total balance", money(summary.total_balance))
    col2.metric("Projected balance", money(summary.projected_balance))
    col3.metric("Pending receivables", money(summary.pending_receivables))
    col4.metric("Pending payables", money(summary.pending_payables))

    col1, col2, col3 = st.columns(3)
    col1.metric("Period balance", money(summary.balance))
    col2.metric("Monthly income", money(summary.monthly_income))
    trend = controller.patrimony_trend()
    col3.metric(
        "Net worth change",
        f"{trend.percent_change}%",
        delta=f"{trend.percent_change}%",
    )

    st.markdown("---")
    left, right = st.columns(2)

    with left:
        st.subheader("Expenses by category")
        slices = controller.expenses_by_category()
        if slices:
            fig = go.Figure(go.Pie(
                labels=[s.category for s in slices],
                values=[float(s.value) for s in slices],
                hole=0.4,
            ))
            st.plotly_chart(fig, use_container_width=True)
        else:
            st.info("No expenses recorded yet.")

    with right:
        st.subheader("Receivables vs payables")
        bars = controller.monthly_overview()
        fig = go.Figure([
            go.Bar(name="Total", x=[b.label for b in bars], y=[float(b.total) for b in bars]),
            go.Bar(name="Realized", x=[b.label for b in bars], y=[float(b.realized) for b in bars]),
        ])
        fig.update_layout(barmode="group")
        st.plotly_chart(fig, use_container_width=True)

    st.subheader("Net worth over time")
    if trend.points:
        fig = go.Figure(go.Scatter(
            x=[p.snapshot_date for p in trend.points],
            y=[float(p.total_balance) for p in trend.points],
            mode="lines+markers",
            line={"color": "#28a745" if trend.is_positive else "#dc3545"},
        ))
        st.plotly_chart(fig, use_container_width=True)
    else:
        st.info("History appears after the first day of use.")


def render_transactions_page(controller: FinanceController):
    """Receivables and payables with add / toggle / remove."""
    st.title("🧾 Transactions")

    with st.expander("➕ Add transaction"):
        with st.form("add_transaction", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                description = st.text_input("Description *")
                amount = st.number_input("Amount *", min_value=0.0, step=0.01, format="%.2f")
                due_date = st.date_input("Due date *", value=date.today())
            with col2:
                transaction_type = st.selectbox(
                    "Type *",
                    options=list(TransactionType),
                    format_func=lambda t: t.value.title(),
                )
                category = st.selectbox(
                    "Category *",
                    options=list(TransactionCategory),
                    format_func=lambda c: c.value,
                )
            if st.form_submit_button("Save", type="primary"):
                if run_action(
                    controller.add_transaction({
                        "description": description,
                        "amount": f"{amount:.2f}",
                        "due_date": due_date,
                        "transaction_type": transaction_type,
                        "category": category,
                    }),
                    "Transaction added",
                ):
                    st.rerun()

    accounts = controller.state.active_accounts
    primary = controller.state.primary_account
    account_index = accounts.index(primary) if primary in accounts else 0

    for title, transactions in (
        ("Receivables", controller.receivables),
        ("Payables", controller.payables),
    ):
        st.subheader(title)
        if not transactions:
            st.caption("Nothing here yet.")
            continue
        for tx in transactions:
            col1, col2, col3, col4, col5 = st.columns([4, 2, 2, 2, 1])
            col1.markdown(f"**{tx.description}**  \n{tx.category.value}")
            col2.markdown(money(tx.amount))
            col3.markdown(tx.due_date.strftime("%d/%m/%Y"))
            with col4:
                label = "↩️ Mark pending" if tx.is_paid else "✅ Mark paid"
                account = None
                if len(accounts) > 1:
                    account = st.selectbox(
                        "Account",
                        options=accounts,
                        index=account_index,
                        format_func=lambda a: a.name,
                        key=f"account_{tx.id}",
                        label_visibility="collapsed",
                    )
                if st.button(label, key=f"toggle_{tx.id}"):
                    if run_action(
                        controller.toggle_status(tx.id, account.id if account else None),
                        "Status updated",
                    ):
                        st.rerun()
            with col5:
                if st.button("🗑️", key=f"remove_{tx.id}"):
                    if run_action(controller.remove_transaction(tx.id), "Transaction removed"):
                        st.rerun()


def render_accounts_page(controller: FinanceController):
    """Accounts with deposit / withdraw / deactivate."""
    st.title("🏦 Accounts")
    st.markdown(f"<div class='big-number'>{money(controller.summary.total_balance)}</div>",
                unsafe_allow_html=True)

    with st.expander("➕ Add account"):
        with st.form("add_account", clear_on_submit=True):
            name = st.text_input("Name *")
            balance = st.number_input("Opening balance", step=0.01, format="%.2f")
            account_type = st.selectbox(
                "Type *",
                options=list(AccountType),
                index=list(AccountType).index(AccountType.SECONDARY),
                format_func=lambda t: t.value.title(),
            )
            if st.form_submit_button("Save", type="primary"):
                if run_action(
                    controller.add_account({
                        "name": name,
                        "balance": f"{balance:.2f}",
                        "account_type": account_type,
                    }),
                    "Account added",
                ):
                    st.rerun()

    for account in controller.state.active_accounts:
        is_primary = account.id == controller.state.primary_account_id
        st.markdown("---")
        col1, col2, col3 = st.columns([3, 3, 1])
        col1.markdown(f"**{account.name}** {'⭐' if is_primary else ''}  \n{account.account_type.value}")
        col1.markdown(f"### {money(account.balance)}")
        with col2:
            amount = st.number_input(
                "Amount", min_value=0.0, step=0.01, format="%.2f", key=f"amount_{account.id}",
            )
            dep, wd = st.columns(2)
            if dep.button("Deposit", key=f"deposit_{account.id}"):
                if run_action(
                    controller.adjust_account_balance(f"{amount:.2f}", account.id),
                    "Deposit recorded",
                ):
                    st.rerun()
            if wd.button("Withdraw", key=f"withdraw_{account.id}"):
                if run_action(
                    controller.adjust_account_balance(f"-{amount:.2f}", account.id),
                    "Withdrawal recorded",
                ):
                    st.rerun()
        with col3:
            if st.button("🗑️", key=f"deactivate_{account.id}"):
                if run_action(controller.remove_account(account.id), "Account deactivated"):
                    st.rerun()


def render_income_page(controller: FinanceController):
    """Recurring income sources."""
    st.title("💼 Income")
    st.metric("Monthly income", money(controller.summary.monthly_income))

    with st.expander("➕ Add income source"):
        with st.form("add_income", clear_on_submit=True):
            name = st.text_input("Name *")
            amount = st.number_input("Amount *", min_value=0.0, step=0.01, format="%.2f")
            frequency = st.selectbox(
                "Frequency *",
                options=list(IncomeFrequency),
                index=list(IncomeFrequency).index(IncomeFrequency.MONTHLY),
                format_func=lambda f: f.value.replace("-", " ").title(),
            )
            if st.form_submit_button("Save", type="primary"):
                if run_action(
                    controller.add_income_source({
                        "name": name,
                        "amount": f"{amount:.2f}",
                        "frequency": frequency,
                    }),
                    "Income source added",
                ):
                    st.rerun()

    for source in controller.state.income_sources:
        col1, col2, col3, col4 = st.columns([4, 2, 2, 1])
        col1.markdown(f"**{source.name}**  \n{source.frequency.value}")
        col2.markdown(money(source.amount))
        with col3:
            label = "⏸️ Pause" if source.is_active else "▶️ Resume"
            if st.button(label, key=f"toggle_{source.id}"):
                if run_action(controller.toggle_income_source(source.id), "Income source updated"):
                    st.rerun()
        with col4:
            if st.button("🗑️", key=f"remove_{source.id}"):
                if run_action(controller.remove_income_source(source.id), "Income source removed"):
                    st.rerun()


def render_goals_page(controller: FinanceController):
    """Savings goals with progress and deadline status."""
    st.title("🎯 Goals")

    with st.expander("➕ Add goal"):
        with st.form("add_goal", clear_on_submit=True):
            name = st.text_input("Name *")
            target = st.number_input("Target amount *", min_value=0.0, step=0.01, format="%.2f")
            has_deadline = st.checkbox("Has a deadline")
            deadline = st.date_input("Deadline", value=date.today())
            if st.form_submit_button("Save", type="primary"):
                if run_action(
                    controller.add_goal({
                        "name": name,
                        "target_amount": f"{target:.2f}",
                        "deadline": deadline if has_deadline else None,
                    }),
                    "Goal added",
                ):
                    st.rerun()

    progress_by_goal = controller.all_goal_progress()
    accounts = controller.state.active_accounts

    for goal in controller.state.goals:
        progress = progress_by_goal[goal.id]
        st.markdown("---")
        icon = "🏆" if goal.is_completed else URGENCY_ICONS.get(progress.urgency, "")
        st.markdown(f"### {icon} {goal.name}")
        st.progress(float(progress.progress_percent) / 100)
        st.caption(
            f"{money(goal.current_amount)} of {money(goal.target_amount)} "
            f"({progress.progress_percent:.0f}%) · {money(progress.remaining)} to go"
        )
        if progress.days_remaining is not None and not goal.is_completed:
            if progress.days_overdue:
                st.caption(f"Overdue by {progress.days_overdue} day(s)")
            else:
                st.caption(f"{progress.days_remaining} day(s) left")

        if goal.is_completed:
            continue

        col1, col2, col3, col4 = st.columns([2, 2, 1, 1])
        with col1:
            amount = st.number_input(
                "Amount", min_value=0.0, step=0.01, format="%.2f", key=f"goal_amount_{goal.id}",
            )
        with col2:
            source = st.selectbox(
                "From account",
                options=[None, *accounts],
                format_func=lambda a: "Don't move money" if a is None else a.name,
                key=f"goal_account_{goal.id}",
            )
        with col3:
            if st.button("Deposit", key=f"goal_deposit_{goal.id}"):
                if run_action(
                    controller.update_goal_amount(
                        goal.id, f"{amount:.2f}", source.id if source else None,
                    ),
                    "Goal updated",
                ):
                    st.rerun()
            if st.button("Withdraw", key=f"goal_withdraw_{goal.id}"):
                if run_action(
                    controller.update_goal_amount(
                        goal.id, f"-{amount:.2f}", source.id if source else None,
                    ),
                    "Goal updated",
                ):
                    st.rerun()
        with col4:
            if st.button("🏆 Done", key=f"goal_done_{goal.id}"):
                if run_action(controller.mark_goal_complete(goal.id), "Goal completed"):
                    st.rerun()
            if st.button("🗑️", key=f"goal_remove_{goal.id}"):
                if run_action(controller.remove_goal(goal.id), "Goal removed"):
                    st.rerun()


if __name__ == "__main__":
    main()
