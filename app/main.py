"""
Streamlit Frontend for Finance Tracker

DESIGN PRINCIPLES:
1. Every number on screen is derived from the live snapshot
2. Every write goes through the session (and so the Ledger Mutator)
3. Clear error messages in simple language
4. Visual feedback for all operations

Run with:
    streamlit run app/main.py
"""

import asyncio
from datetime import date
from decimal import Decimal

import pandas as pd
import streamlit as st

from finance_tracker.aggregation import available_goals, goal_progress, split_debts
from finance_tracker.config import configuration_problems
from finance_tracker.formatting import (
    AVATAR_OPTIONS,
    CURRENCIES,
    currency_label,
    format_censored,
    format_currency,
)
from finance_tracker.ledger import LedgerValidationError, ReferentialIntegrityError
from finance_tracker.models import (
    TRANSACTION_CATEGORIES,
    DebtType,
    GoalAllocation,
    Theme,
    TransactionType,
    WalletType,
)
from finance_tracker.orchestrator import LedgerSession, create_app_components
from finance_tracker.services.auth import AuthenticationError, FirebaseAuthService
from finance_tracker.services.storage import NotFoundError, StorageError


# Page configuration
st.set_page_config(
    page_title="Finance Tracker",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

THEME_CSS = {
    Theme.DARK: """
<style>
    .stApp { background-color: #191414; color: #ffffff; }
    .big-number { font-size: 2.5em; font-weight: 800; color: #ffffff; }
    .muted { color: #9ca3af; }
</style>
""",
    Theme.LIGHT: """
<style>
    .stApp { background-color: #ffffff; color: #111827; }
    .big-number { font-size: 2.5em; font-weight: 800; color: #111827; }
    .muted { color: #6b7280; }
</style>
""",
}

GENERIC_STORAGE_ERROR = "Something went wrong talking to the server. Please try again."

CONFIGURATION_LABELS = {
    "app": "Application settings",
    "firebase_auth": "Firebase Authentication",
    "firestore": "Cloud Firestore (Storage)",
}

WALLET_TYPE_LABELS = {
    WalletType.CASH: "💵 Cash",
    WalletType.BANK: "🏦 Bank",
    WalletType.EWALLET: "📱 E-Wallet",
}


def run_async(coro):
    """Helper to run async functions in Streamlit (one loop per browser session)."""
    loop = st.session_state.get("event_loop")
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        st.session_state.event_loop = loop
    asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def get_auth() -> FirebaseAuthService:
    if "auth" not in st.session_state:
        st.session_state.auth = FirebaseAuthService(audit_logger=get_components().audit_logger)
    return st.session_state.auth


def get_session() -> LedgerSession:
    """The signed-in user's ledger session, started on first use."""
    user = get_auth().current_session.user
    session = st.session_state.get("ledger_session")
    if session is None or session.user_id != user.uid:
        if session is not None:
            session.stop()
        session = get_components().open_session(user.uid)
        try:
            run_async(session.start())
        except StorageError:
            st.error(GENERIC_STORAGE_ERROR)
            st.stop()
        st.session_state.ledger_session = session
    return session


def show_write_error(error: Exception) -> None:
    """Turn a write failure into a message for the user."""
    if isinstance(error, LedgerValidationError):
        for issue in error.issues:
            if issue.severity == "error":
                st.error(f"**{issue.field}**: {issue.message}")
    elif isinstance(error, ReferentialIntegrityError):
        st.error(str(error))
    elif isinstance(error, NotFoundError):
        st.error("That record no longer exists.")
    elif isinstance(error, StorageError):
        st.error(GENERIC_STORAGE_ERROR)
    else:
        raise error


def main():
    """Main application entry point."""
    problems = configuration_problems()
    if problems:
        render_configuration_page(problems)
        return

    auth = get_auth()

    if auth.current_session is None:
        render_auth_page(auth)
        return

    session = get_session()
    profile = session.profile
    st.markdown(THEME_CSS[profile.theme], unsafe_allow_html=True)

    user = auth.current_session.user
    st.sidebar.image(user.avatar_url, width=64)
    st.sidebar.markdown(f"**{user.display_name or user.email}**")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🏠 Dashboard", "➕ Add Transaction", "👛 Wallets", "🎯 Goals", "🤝 Debts", "👤 Profile"],
        index=0,
    )

    if page == "🏠 Dashboard":
        render_dashboard_page(session)
    elif page == "➕ Add Transaction":
        render_transaction_page(session)
    elif page == "👛 Wallets":
        render_wallets_page(session)
    elif page == "🎯 Goals":
        render_goals_page(session)
    elif page == "🤝 Debts":
        render_debts_page(session)
    elif page == "👤 Profile":
        render_profile_page(session, auth)


def render_configuration_page(problems: dict[str, str]):
    """Shown instead of the app while required settings are missing."""
    st.title("⚙️ Configuration needed")
    st.markdown("The app cannot start until these settings are fixed:")

    for name, error in problems.items():
        st.error(f"❌ {CONFIGURATION_LABELS[name]} - {error}")

    st.markdown("---")
    st.markdown(
        "Set them in the environment or a `.env` file, for example:\n\n"
        "```\n"
        "FIREBASE_AUTH_API_KEY=...\n"
        "FIRESTORE_PROJECT_ID=...\n"
        "FIRESTORE_CREDENTIALS_PATH=credentials.json\n"
        "# or, without Firestore:\n"
        "STORAGE_BACKEND=memory\n"
        "```"
    )


def render_auth_page(auth: FirebaseAuthService):
    """Render sign-in / registration."""
    st.title("💸 Finance Tracker")
    st.markdown("Track wallets, savings goals and debts in one place.")

    mode = st.radio("Mode", ["Sign in", "Create account"], horizontal=True, label_visibility="collapsed")

    with st.form("auth_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button(mode, type="primary")

    if submitted:
        try:
            if mode == "Sign in":
                run_async(auth.sign_in_with_password(email, password))
            else:
                run_async(auth.register_with_password(email, password))
            st.rerun()
        except AuthenticationError as e:
            st.error(f"Authentication failed: {e.message}")

    with st.expander("Sign in with Google"):
        token = st.text_input("Google ID token", type="password")
        if st.button("Continue with Google") and token:
            try:
                run_async(auth.sign_in_with_google(token))
                st.rerun()
            except AuthenticationError as e:
                st.error(f"Authentication failed: {e.message}")


def render_dashboard_page(session: LedgerSession):
    """Render the dashboard."""
    currency = session.profile.currency
    summary = session.summary()
    snapshot = session.snapshot

    if "balance_visible" not in st.session_state:
        st.session_state.balance_visible = True
    visible = st.session_state.balance_visible

    st.title("🏠 Dashboard")

    col1, col2 = st.columns([4, 1])
    with col1:
        st.markdown('<span class="muted">Total Balance</span>', unsafe_allow_html=True)
        st.markdown(
            f'<div class="big-number">{format_censored(summary.total_balance, currency, visible)}</div>',
            unsafe_allow_html=True,
        )
    with col2:
        if st.button("🙈 Hide" if visible else "👁️ Show"):
            st.session_state.balance_visible = not visible
            st.rerun()

    col1, col2 = st.columns(2)
    col1.metric("Net income this month", format_censored(summary.monthly_net_income, currency, visible))
    col2.metric("Expenses this month", format_censored(summary.monthly_expense, currency, visible))

    window_days = get_components().settings.activity_window_days
    st.subheader(f"📈 Activity (last {window_days} days)")
    if summary.activity:
        chart = pd.DataFrame(
            {
                "Income": [float(bucket.income) for bucket in summary.activity],
                "Expense": [float(bucket.expense) for bucket in summary.activity],
            },
            index=[bucket.label for bucket in summary.activity],
        )
        st.bar_chart(chart)
    else:
        st.info(f"No transactions in the last {window_days} days.")

    st.subheader("👛 Wallets")
    if snapshot.wallets:
        columns = st.columns(min(len(snapshot.wallets), 3))
        for i, wallet in enumerate(snapshot.wallets):
            with columns[i % len(columns)]:
                st.metric(
                    f"{WALLET_TYPE_LABELS[wallet.type]} · {wallet.name}",
                    format_censored(wallet.balance, currency, visible),
                )
    else:
        st.info("No wallets yet. Add one on the Wallets page.")

    st.subheader("🕑 Recent Transactions")
    render_transaction_list(summary.recent_transactions, snapshot.wallets, currency)

    st.subheader("🎯 Goals")
    for goal in snapshot.goals:
        render_goal(goal, currency)
    if not snapshot.goals:
        st.info("No goals yet.")


def render_transaction_list(transactions, wallets, currency: str):
    if not transactions:
        st.info("No transactions yet.")
        return
    wallet_names = {wallet.id: wallet.name for wallet in wallets}
    for tx in transactions:
        sign = "+" if tx.type == TransactionType.INCOME else "-"
        col1, col2 = st.columns([3, 1])
        col1.markdown(
            f"**{tx.category}** · {wallet_names.get(tx.wallet_id, 'Unknown wallet')}  \n"
            f'<span class="muted">{tx.date:%B %d, %Y}{" · " + tx.note if tx.note else ""}</span>',
            unsafe_allow_html=True,
        )
        col2.markdown(f"**{sign} {format_currency(tx.amount, currency)}**")


def render_goal(goal, currency: str):
    progress = goal_progress(goal)
    st.markdown(f"**{goal.title}**" + (f" · due {goal.deadline:%B %d, %Y}" if goal.deadline else ""))
    st.progress(min(float(progress), 1.0))
    st.caption(
        f"{format_currency(goal.saved_amount, currency)} of "
        f"{format_currency(goal.target_amount, currency)} ({float(progress):.0%})"
    )


def render_transaction_page(session: LedgerSession):
    """Render the add-transaction form."""
    st.title("➕ Add Transaction")
    snapshot = session.snapshot

    if not snapshot.wallets:
        st.warning("Create a wallet first.")
        return

    tx_type = st.radio(
        "Type",
        options=list(TransactionType),
        format_func=lambda t: t.value.title(),
        horizontal=True,
    )
    open_goals = available_goals(snapshot.goals)

    with st.form("transaction_form", clear_on_submit=True):
        amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
        category = st.selectbox("Category", TRANSACTION_CATEGORIES[tx_type])
        wallet = st.selectbox("Wallet", snapshot.wallets, format_func=lambda w: w.name)
        when = st.date_input("Date", value=date.today())
        note = st.text_input("Note (optional)")

        goal = None
        allocated = 0.0
        if tx_type == TransactionType.INCOME and open_goals:
            st.markdown("**Allocate to a goal (optional)**")
            goal = st.selectbox(
                "Goal",
                [None] + open_goals,
                format_func=lambda g: "No allocation" if g is None else g.title,
            )
            allocated = st.number_input("Amount to allocate", min_value=0.0, step=1.0, format="%.2f")

        submitted = st.form_submit_button("💾 Save Transaction", type="primary")

    if submitted:
        allocation = None
        if goal is not None and allocated > 0:
            allocation = GoalAllocation(goal_id=goal.id, amount=Decimal(str(allocated)))
        try:
            run_async(session.record_transaction(
                amount=Decimal(str(amount)),
                type=tx_type,
                category=category,
                wallet_id=wallet.id,
                date=when,
                note=note,
                allocation=allocation,
            ))
            st.success("✅ Transaction saved")
        except (LedgerValidationError, StorageError) as e:
            show_write_error(e)

    st.subheader("All Transactions")
    render_transaction_list(snapshot.transactions, snapshot.wallets, session.profile.currency)


def render_wallets_page(session: LedgerSession):
    """Render wallet add/edit/delete."""
    st.title("👛 Wallets")
    currency = session.profile.currency

    with st.expander("➕ Add Wallet"):
        with st.form("add_wallet", clear_on_submit=True):
            name = st.text_input("Name")
            wallet_type = st.selectbox("Type", list(WalletType), format_func=WALLET_TYPE_LABELS.get)
            balance = st.number_input("Opening balance", step=1.0, format="%.2f")
            if st.form_submit_button("Create", type="primary"):
                try:
                    run_async(session.create_wallet(name, Decimal(str(balance)), wallet_type))
                    st.success(f"✅ Wallet '{name}' created")
                except (LedgerValidationError, StorageError) as e:
                    show_write_error(e)

    for wallet in session.snapshot.wallets:
        with st.expander(f"{WALLET_TYPE_LABELS[wallet.type]} · {wallet.name} · {format_currency(wallet.balance, currency)}"):
            with st.form(f"edit_wallet_{wallet.id}"):
                name = st.text_input("Name", value=wallet.name)
                wallet_type = st.selectbox(
                    "Type",
                    list(WalletType),
                    index=list(WalletType).index(wallet.type),
                    format_func=WALLET_TYPE_LABELS.get,
                )
                balance = st.number_input(
                    "Balance",
                    value=float(wallet.balance),
                    step=1.0,
                    format="%.2f",
                    help="Overrides the current balance",
                )
                if st.form_submit_button("Save changes"):
                    try:
                        run_async(session.update_wallet(wallet.id, name, Decimal(str(balance)), wallet_type))
                        st.success("✅ Wallet updated")
                    except (LedgerValidationError, StorageError) as e:
                        show_write_error(e)

            if st.button("🗑️ Delete wallet", key=f"delete_{wallet.id}"):
                try:
                    run_async(session.delete_wallet(wallet.id))
                    st.rerun()
                except (ReferentialIntegrityError, StorageError) as e:
                    show_write_error(e)


def render_goals_page(session: LedgerSession):
    """Render savings goals."""
    st.title("🎯 Goals")
    currency = session.profile.currency

    with st.expander("➕ Add Goal"):
        with st.form("add_goal", clear_on_submit=True):
            title = st.text_input("Title")
            target = st.number_input("Target amount", min_value=0.0, step=1.0, format="%.2f")
            has_deadline = st.checkbox("Set a deadline")
            deadline = st.date_input("Deadline", value=date.today())
            if st.form_submit_button("Create", type="primary"):
                try:
                    run_async(session.create_goal(
                        title,
                        Decimal(str(target)),
                        deadline if has_deadline else None,
                    ))
                    st.success(f"✅ Goal '{title}' created")
                except (LedgerValidationError, StorageError) as e:
                    show_write_error(e)

    st.caption("Goals fill up when you allocate part of an income to them.")
    goals = session.snapshot.goals
    if not goals:
        st.info("No goals yet.")
    for goal in goals:
        render_goal(goal, currency)


def render_debts_page(session: LedgerSession):
    """Render debts, one tab per direction."""
    st.title("🤝 Debts")
    currency = session.profile.currency

    with st.expander("➕ Add Debt"):
        with st.form("add_debt", clear_on_submit=True):
            debt_type = st.radio(
                "Type",
                list(DebtType),
                format_func=lambda t: "I owe" if t == DebtType.I_OWE else "Owed to me",
                horizontal=True,
            )
            person = st.text_input("Person")
            amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
            has_due = st.checkbox("Set a due date")
            due = st.date_input("Due date", value=date.today())
            description = st.text_input("Description (optional)")
            if st.form_submit_button("Create", type="primary"):
                try:
                    run_async(session.create_debt(
                        person,
                        Decimal(str(amount)),
                        debt_type,
                        due if has_due else None,
                        description,
                    ))
                    st.success("✅ Debt recorded")
                except (LedgerValidationError, StorageError) as e:
                    show_write_error(e)

    i_owe, owed_to_me = split_debts(session.snapshot.debts)
    tab_owe, tab_owed = st.tabs([f"I owe ({len(i_owe)})", f"Owed to me ({len(owed_to_me)})"])
    for tab, debts in ((tab_owe, i_owe), (tab_owed, owed_to_me)):
        with tab:
            if not debts:
                st.info("Nothing here.")
            for debt in debts:
                col1, col2, col3 = st.columns([3, 2, 1])
                due = f" · due {debt.due_date:%B %d, %Y}" if debt.due_date else ""
                col1.markdown(
                    f"**{debt.person_name}**{due}  \n"
                    f'<span class="muted">{debt.description or ""}</span>',
                    unsafe_allow_html=True,
                )
                col2.markdown(f"**{format_currency(debt.amount, currency)}**")
                if col3.checkbox("Paid", value=debt.is_paid, key=f"paid_{debt.id}") != debt.is_paid:
                    try:
                        run_async(session.toggle_debt_paid(debt.id))
                        st.rerun()
                    except StorageError as e:
                        show_write_error(e)


def render_profile_page(session: LedgerSession, auth: FirebaseAuthService):
    """Render profile, preferences and account settings."""
    st.title("👤 Profile")
    user = auth.current_session.user
    profile = session.profile

    st.image(user.avatar_url, width=96)

    with st.form("profile_form"):
        display_name = st.text_input("Display name", value=user.display_name or "")
        avatar = st.radio(
            "Avatar",
            [None] + AVATAR_OPTIONS,
            index=([None] + AVATAR_OPTIONS).index(user.photo_url) if user.photo_url in AVATAR_OPTIONS else 0,
            format_func=lambda url: "Default" if url is None else url.split("seed=")[1].split("&")[0],
            horizontal=True,
        )
        if st.form_submit_button("Save profile"):
            try:
                run_async(auth.update_profile(display_name=display_name, photo_url=avatar or ""))
                st.success("✅ Profile updated")
                st.rerun()
            except AuthenticationError as e:
                st.error(f"Could not update profile: {e.message}")

    st.subheader("Preferences")
    col1, col2 = st.columns(2)
    with col1:
        codes = list(CURRENCIES)
        currency = st.selectbox(
            "Currency",
            codes,
            index=codes.index(profile.currency) if profile.currency in codes else 0,
            format_func=currency_label,
        )
    with col2:
        theme = st.radio(
            "Theme",
            list(Theme),
            index=list(Theme).index(profile.theme),
            format_func=lambda t: t.value.title(),
            horizontal=True,
        )
    if currency != profile.currency or theme != profile.theme:
        try:
            run_async(session.update_profile(theme=theme, currency=currency))
            st.rerun()
        except (LedgerValidationError, StorageError) as e:
            show_write_error(e)

    st.subheader("Change password")
    with st.form("password_form", clear_on_submit=True):
        current = st.text_input("Current password", type="password")
        new = st.text_input("New password", type="password")
        if st.form_submit_button("Change password"):
            try:
                run_async(auth.change_password(current, new))
                st.success("✅ Password changed")
            except AuthenticationError as e:
                st.error(f"Could not change password: {e.message}")

    st.markdown("---")
    if st.button("🚪 Sign out"):
        session.stop()
        st.session_state.pop("ledger_session", None)
        run_async(auth.sign_out())
        st.rerun()


if __name__ == "__main__":
    main()
