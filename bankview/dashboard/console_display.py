"""Console display module for rendering dashboard snapshots to the terminal."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping

from ..aggregator.data_aggregator import LOW_BALANCE_THRESHOLD, TypeBucket
from ..data.models import DerivedSeries, Transaction, TransactionType
from ..reconciler.view_reconciler import (
    AdminDashboardSnapshot,
    HistorySnapshot,
    UserDashboardSnapshot,
    UserDetailSnapshot,
    UsersSnapshot,
    ViewState,
)

logger = logging.getLogger(__name__)

CURRENCY = 'KES'


class ConsoleDisplay:
    """Prints view states. Read-only: never changes a snapshot."""

    def __init__(self, use_colors: bool = True):
        self.use_colors = use_colors
        self._setup_colors()
        logger.info("Console Display initialized")

    def _setup_colors(self) -> None:
        if self.use_colors:
            self.colors = {
                'reset': '\033[0m',
                'bold': '\033[1m',
                'green': '\033[92m',
                'red': '\033[91m',
                'yellow': '\033[93m',
                'blue': '\033[94m',
                'cyan': '\033[96m',
                'gray': '\033[90m',
            }
        else:
            self.colors = {k: '' for k in ['reset', 'bold', 'green', 'red', 'yellow', 'blue', 'cyan', 'gray']}

    def show(self, state: ViewState) -> None:
        if not state.ok:
            self._print_error(state)
            return
        snapshot = state.snapshot
        if isinstance(snapshot, UserDashboardSnapshot):
            self.show_user_dashboard(snapshot)
        elif isinstance(snapshot, AdminDashboardSnapshot):
            self.show_admin_dashboard(snapshot)
        elif isinstance(snapshot, UserDetailSnapshot):
            self.show_user_detail(snapshot)
        elif isinstance(snapshot, HistorySnapshot):
            self.show_history(snapshot)
        elif isinstance(snapshot, UsersSnapshot):
            self.show_users(snapshot)

    def _money(self, amount: Decimal) -> str:
        return f"{CURRENCY} {amount:,.2f}"

    def _print_error(self, state: ViewState) -> None:
        print(f"\n{self.colors['red']}{self.colors['bold']}Unable to load view{self.colors['reset']}")
        print(f"{self.colors['red']}{state.error}{self.colors['reset']}")
        if state.retryable:
            print(f"{self.colors['gray']}Run again to retry.{self.colors['reset']}")

    def _print_header(self, title: str) -> None:
        print(f"{self.colors['cyan']}{self.colors['bold']}")
        print("=" * 60)
        print(f"  {title}")
        print("=" * 60)
        print(self.colors['reset'])

    def show_user_dashboard(self, snapshot: UserDashboardSnapshot) -> None:
        self._print_header("ACCOUNT OVERVIEW")
        print(f"Total Balance:   {self.colors['green']}{self._money(snapshot.total_balance)}{self.colors['reset']}")
        print(f"Accounts:        {self.colors['blue']}{len(snapshot.accounts)}{self.colors['reset']}")

        print(f"\n{self.colors['bold']}{'Account':<12} {'Type':<10} {'Status':<9} {'Txns':>5} {'Balance':>18}{self.colors['reset']}")
        print("-" * 58)
        at_risk = {account.account_number for account in snapshot.at_risk_accounts}
        for account in snapshot.accounts:
            status = 'Active' if account.is_active else 'Inactive'
            color = self.colors['yellow'] if account.account_number in at_risk else self.colors['green']
            marker = ' !' if account.account_number in at_risk else ''
            print(
                f"{account.masked_number:<12} {account.account_type.value:<10} {status:<9} "
                f"{account.transaction_count or 0:>5} {color}{self._money(account.balance):>18}{marker}{self.colors['reset']}"
            )
        if at_risk:
            print(f"{self.colors['yellow']}! balance below {self._money(LOW_BALANCE_THRESHOLD)}{self.colors['reset']}")

        stats = snapshot.quick_stats
        print(f"\n{self.colors['bold']}QUICK STATS{self.colors['reset']}")
        print(f"Deposits:        {self.colors['green']}{self._money(stats.total_deposits)}{self.colors['reset']}")
        print(f"Withdrawals:     {self.colors['red']}{self._money(stats.total_withdrawals)}{self.colors['reset']}")
        print(f"Pending:         {stats.pending_count} ({self._money(stats.pending_amount)})")

        if not snapshot.transactions_available:
            print(f"{self.colors['yellow']}Recent transactions are unavailable right now.{self.colors['reset']}")
        self._print_series(snapshot.series)
        self._print_distribution(snapshot.type_distribution)
        self._print_transactions("RECENT TRANSACTIONS", snapshot.recent_transactions)
        self._print_footer(snapshot.built_at)

    def show_admin_dashboard(self, snapshot: AdminDashboardSnapshot) -> None:
        self._print_header("ADMIN DASHBOARD")
        stats = snapshot.stats
        print(f"Total System Balance: {self.colors['green']}{self._money(stats.total_system_balance)}{self.colors['reset']}")
        print(f"Active Accounts:      {stats.total_active_accounts}")
        print(f"Users:                {stats.total_system_users} ({stats.total_admin_users} admins)")
        print(f"Pending Verification: {stats.pending_verifications}")
        print(f"Low Balance Alerts:   {self.colors['red']}{snapshot.low_balance_accounts}{self.colors['reset']}")
        self._print_series(snapshot.series)
        self._print_distribution(snapshot.type_distribution)
        self._print_transactions("NEEDS ATTENTION", snapshot.relevant_transactions)
        self._print_footer(snapshot.built_at)

    def show_user_detail(self, snapshot: UserDetailSnapshot) -> None:
        user = snapshot.user
        self._print_header(f"USER {user.id}: {user.full_name}")
        print(f"Email:       {user.email}")
        print(f"Role:        {user.role.value}")
        print(f"Status:      {'Active' if user.is_enabled else 'Inactive'}")
        print(f"Accounts:    {user.total_accounts}")
        risk_color = self.colors['red'] if snapshot.risk_level == 'HIGH' else self.colors['green']
        print(f"Balance:     {self._money(snapshot.total_balance)} {risk_color}[{snapshot.risk_level}]{self.colors['reset']}")
        self._print_transactions("RECENT TRANSACTIONS", snapshot.transactions)
        self._print_footer(snapshot.built_at)

    def show_history(self, snapshot: HistorySnapshot) -> None:
        self._print_header("TRANSACTION HISTORY")
        if snapshot.filters:
            applied = ', '.join(f"{name}={value}" for name, value in snapshot.filters.items())
            print(f"Filters:     {applied}")
        if snapshot.search:
            print(f"Search:      '{snapshot.search}' ({len(snapshot.transactions)} of {snapshot.fetched_count})")
        report = snapshot.report
        print(f"Volume:      {self._money(report.total_volume)} over {report.total_transactions} transactions")
        print(
            f"Status:      {self.colors['green']}{report.completed} completed{self.colors['reset']}, "
            f"{self.colors['yellow']}{report.pending} pending{self.colors['reset']}, "
            f"{self.colors['red']}{report.failed} failed{self.colors['reset']}"
        )
        net_color = self.colors['green'] if snapshot.net_flow >= 0 else self.colors['red']
        print(f"Net Flow:    {net_color}{self._money(snapshot.net_flow)}{self.colors['reset']}")

        if snapshot.account_activity:
            print(f"\n{self.colors['bold']}{'Account':<14} {'Type':<10} {'Txns':>5} {'Credits':>14} {'Debits':>14} {'Net':>14}{self.colors['reset']}")
            for activity in snapshot.account_activity:
                masked = f"****{activity.account_number[-4:]}"
                print(
                    f"{masked:<14} {activity.account_type:<10} {activity.total_transactions:>5} "
                    f"{activity.total_credits:>14,.2f} {activity.total_debits:>14,.2f} {activity.net_amount:>14,.2f}"
                )
        self._print_transactions("TRANSACTIONS", snapshot.transactions)
        self._print_footer(snapshot.built_at)

    def show_users(self, snapshot: UsersSnapshot) -> None:
        self._print_header("USERS")
        summary = snapshot.summary
        print(f"Users:       {summary.total_users} shown of {snapshot.total_users}")
        print(f"Active:      {summary.active_users} ({summary.inactive_users} inactive)")
        print(f"Admins:      {summary.administrators} ({summary.regular_users} regular)")
        if snapshot.search:
            print(f"Search:      '{snapshot.search}'")

        print(f"\n{self.colors['bold']}{'ID':<6} {'Name':<24} {'Email':<28} {'Role':<8} {'Accts':>5}{self.colors['reset']}")
        print("-" * 75)
        if not snapshot.users:
            print(f"{self.colors['gray']}No users found{self.colors['reset']}")
        for user in snapshot.users:
            color = self.colors['reset'] if user.is_enabled else self.colors['gray']
            print(
                f"{color}{str(user.id):<6} {user.full_name:<24} {user.email:<28} "
                f"{user.role.value:<8} {user.total_accounts:>5}{self.colors['reset']}"
            )
        print(f"{self.colors['gray']}Page {snapshot.page + 1} of {snapshot.total_pages}{self.colors['reset']}")
        self._print_footer(snapshot.built_at)

    def _print_series(self, series: DerivedSeries) -> None:
        print(f"\n{self.colors['bold']}LAST {series.window_days} DAYS{self.colors['reset']}")
        print(f"{'Day':<12} {'Deposits':>16} {'Withdrawals':>16} {'Net':>16}")
        for bucket in series.buckets:
            net_color = self.colors['green'] if bucket.net >= 0 else self.colors['red']
            print(
                f"{bucket.label:<12} {bucket.deposits:>16,.2f} {bucket.withdrawals:>16,.2f} "
                f"{net_color}{bucket.net:>16,.2f}{self.colors['reset']}"
            )

    def _print_distribution(self, distribution: Mapping[TransactionType, TypeBucket]) -> None:
        if not distribution:
            return
        print(f"\n{self.colors['bold']}BY TYPE{self.colors['reset']}")
        for tx_type, bucket in distribution.items():
            print(f"{tx_type.value:<12} {bucket.count:>5}  {self._money(bucket.amount)}")

    def _print_transactions(self, title: str, transactions: Iterable[Transaction]) -> None:
        transactions = list(transactions)
        print(f"\n{self.colors['bold']}{title}{self.colors['reset']}")
        if not transactions:
            print(f"{self.colors['gray']}No transactions found{self.colors['reset']}")
            return
        for tx in transactions:
            sign = '+' if tx.direction.sign > 0 else '-'
            amt_color = self.colors['green'] if sign == '+' else self.colors['red']
            print(
                f"{tx.created_at.strftime('%Y-%m-%d')} {tx.transaction_type.value:<10} {tx.status.value:<9} "
                f"{amt_color}{sign}{tx.amount:,.2f}{self.colors['reset']} {tx.description}"
            )

    def _print_footer(self, built_at: datetime) -> None:
        print(f"\n{self.colors['gray']}" + "-" * 60)
        print(f"Dashboard generated at {built_at.strftime('%Y-%m-%d %H:%M:%S')}{self.colors['reset']}\n")
