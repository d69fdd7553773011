"""Aggregation engine: roll-ups over canonical accounts, transactions and users."""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..data.coercion import coerce_balance
from ..data.extraction import resolve_counts, resolve_scalar_decimal
from ..data.models import (
    ZERO,
    Account,
    AdminStats,
    DerivedSeries,
    SeriesBucket,
    Transaction,
    TransactionDirection,
    TransactionStatus,
    TransactionType,
    UserSummary,
    quantize_money,
)

logger = logging.getLogger(__name__)

LOW_BALANCE_THRESHOLD = Decimal('100')
LARGE_TRANSACTION_THRESHOLD = Decimal('10000')
ADMIN_RELEVANT_LIMIT = 10
SERIES_WINDOWS = (7, 30)


@dataclass(frozen=True)
class QuickStats:
    """Completed deposit/withdrawal totals and the pending backlog."""
    total_deposits: Decimal = ZERO
    total_withdrawals: Decimal = ZERO
    pending_count: int = 0
    pending_amount: Decimal = ZERO


@dataclass(frozen=True)
class TypeBucket:
    """Count and volume of completed transactions of one type."""
    count: int = 0
    amount: Decimal = ZERO


@dataclass(frozen=True)
class AccountActivity:
    """Per-account activity summary over a transaction list."""
    account_number: str
    account_type: str
    total_transactions: int
    total_credits: Decimal
    total_debits: Decimal
    net_amount: Decimal


@dataclass(frozen=True)
class TransactionReport:
    """Summary block for a transaction report."""
    total_transactions: int
    total_volume: Decimal
    completed: int
    pending: int
    failed: int


@dataclass(frozen=True)
class UserListSummary:
    """Summary block for a user list."""
    total_users: int
    active_users: int
    inactive_users: int
    administrators: int
    regular_users: int


def _money(value: Decimal) -> Decimal:
    """Quantize to cents; totals too large for cent precision are kept as summed."""
    try:
        return quantize_money(value)
    except InvalidOperation:
        return value


def _sum(values: Iterable[Decimal]) -> Decimal:
    return _money(sum(values, ZERO))


class DataAggregator:
    """Computes derived figures from canonical collections. All methods are pure."""

    def __init__(self):
        """Initialize the data aggregator."""
        logger.info("Data Aggregator initialized")

    def total_balance(self, accounts: Iterable[Account]) -> Decimal:
        """
        Sum the balances of the accounts passed in.

        No activity filter is applied; callers pass only active accounts if
        that is what they want to total.

        Args:
            accounts: Canonical accounts.

        Returns:
            Total balance rounded to cents.
        """
        return _sum(account.balance for account in accounts)

    def quick_stats(self, transactions: Iterable[Transaction]) -> QuickStats:
        """
        Compute the dashboard quick stats.

        Args:
            transactions: Canonical transactions.

        Returns:
            QuickStats with completed deposit/withdrawal totals and pending
            count/amount across all types.
        """
        deposits: List[Decimal] = []
        withdrawals: List[Decimal] = []
        pending: List[Decimal] = []
        for tx in transactions:
            if tx.status is TransactionStatus.PENDING:
                pending.append(tx.amount)
            elif tx.is_completed:
                if tx.transaction_type is TransactionType.DEPOSIT:
                    deposits.append(tx.amount)
                elif tx.transaction_type is TransactionType.WITHDRAWAL:
                    withdrawals.append(tx.amount)

        return QuickStats(
            total_deposits=_sum(deposits),
            total_withdrawals=_sum(withdrawals),
            pending_count=len(pending),
            pending_amount=_sum(pending),
        )

    def time_series(
        self,
        transactions: Iterable[Transaction],
        now: datetime,
        window_days: int = 7,
    ) -> DerivedSeries:
        """
        Bucket completed deposits and withdrawals by calendar day.

        Args:
            transactions: Canonical transactions.
            now: Reference instant; its calendar day is the last bucket.
            window_days: 7 or 30 trailing days, today included.

        Returns:
            DerivedSeries with one bucket per day, oldest first.

        Raises:
            ValueError: If the window is not one of SERIES_WINDOWS.
        """
        if window_days not in SERIES_WINDOWS:
            raise ValueError(f"Unsupported series window: {window_days} days (expected one of {SERIES_WINDOWS})")

        today = now.date()
        days = [today - timedelta(days=offset) for offset in range(window_days - 1, -1, -1)]
        deposits: Dict[Any, List[Decimal]] = {day: [] for day in days}
        withdrawals: Dict[Any, List[Decimal]] = {day: [] for day in days}

        for tx in transactions:
            if not tx.is_completed:
                continue
            day = tx.created_at.date()
            if day not in deposits:
                continue
            if tx.transaction_type is TransactionType.DEPOSIT:
                deposits[day].append(tx.amount)
            elif tx.transaction_type is TransactionType.WITHDRAWAL:
                withdrawals[day].append(tx.amount)

        buckets = []
        for day in days:
            day_deposits = _sum(deposits[day])
            day_withdrawals = _sum(withdrawals[day])
            buckets.append(SeriesBucket(
                label=day.isoformat(),
                day=day,
                deposits=day_deposits,
                withdrawals=day_withdrawals,
                net=day_deposits - day_withdrawals,
            ))

        return DerivedSeries(window_days=window_days, buckets=tuple(buckets))

    def type_distribution(self, transactions: Iterable[Transaction]) -> Dict[TransactionType, TypeBucket]:
        """
        Group completed transactions by type.

        Returns:
            Mapping in DEPOSIT, WITHDRAWAL, TRANSFER order, present types only.
        """
        counts: Dict[TransactionType, int] = {}
        amounts: Dict[TransactionType, List[Decimal]] = {}
        for tx in transactions:
            if not tx.is_completed:
                continue
            counts[tx.transaction_type] = counts.get(tx.transaction_type, 0) + 1
            amounts.setdefault(tx.transaction_type, []).append(tx.amount)

        return OrderedDict(
            (tx_type, TypeBucket(count=counts[tx_type], amount=_sum(amounts[tx_type])))
            for tx_type in TransactionType
            if tx_type in counts
        )

    def is_admin_relevant(self, tx: Transaction) -> bool:
        return (
            tx.amount >= LARGE_TRANSACTION_THRESHOLD
            or tx.transaction_type is TransactionType.DEPOSIT
            or tx.status is TransactionStatus.FAILED
            or tx.flagged
        )

    def admin_relevant(self, transactions: Sequence[Transaction], limit: int = ADMIN_RELEVANT_LIMIT) -> List[Transaction]:
        """
        Select transactions an administrator should look at.

        Large amounts, deposits, failures and flagged items qualify. Input
        order (newest first) is kept and the result is capped at ``limit``.
        """
        relevant = [tx for tx in transactions if self.is_admin_relevant(tx)]
        return relevant[:limit]

    def is_at_risk(self, balance: Decimal) -> bool:
        """Advisory low-balance marker: strictly below LOW_BALANCE_THRESHOLD."""
        return balance < LOW_BALANCE_THRESHOLD

    def at_risk_accounts(self, accounts: Iterable[Account]) -> List[Account]:
        return [account for account in accounts if self.is_at_risk(account.balance)]

    def user_balance(self, user: UserSummary) -> Decimal:
        """Combined balance of a user's valid accounts."""
        return self.total_balance(user.valid_accounts)

    def user_risk_level(self, user: UserSummary) -> str:
        return 'HIGH' if self.is_at_risk(self.user_balance(user)) else 'NORMAL'

    def net_flow(self, transactions: Iterable[Transaction]) -> Decimal:
        """Signed sum of completed transactions: credits add, debits subtract."""
        return _sum(tx.signed_amount for tx in transactions if tx.is_completed)

    def account_summaries(self, transactions: Iterable[Transaction]) -> List[AccountActivity]:
        """
        Summarize activity per account, in order of first appearance.

        Every transaction counts towards ``total_transactions``; only
        completed ones move money in the credit, debit and net figures.
        """
        grouped: Dict[str, List[Transaction]] = OrderedDict()
        for tx in transactions:
            grouped.setdefault(tx.account.account_number, []).append(tx)

        summaries = []
        for account_number, account_txs in grouped.items():
            completed = [tx for tx in account_txs if tx.is_completed]
            summaries.append(AccountActivity(
                account_number=account_number,
                account_type=account_txs[0].account.account_type.value,
                total_transactions=len(account_txs),
                total_credits=_sum(tx.amount for tx in completed if tx.direction is TransactionDirection.CREDIT),
                total_debits=_sum(tx.amount for tx in completed if tx.direction is TransactionDirection.DEBIT),
                net_amount=self.net_flow(completed),
            ))
        return summaries

    def transaction_report(self, transactions: Sequence[Transaction]) -> TransactionReport:
        return TransactionReport(
            total_transactions=len(transactions),
            total_volume=_sum(tx.amount for tx in transactions),
            completed=sum(1 for tx in transactions if tx.status is TransactionStatus.COMPLETED),
            pending=sum(1 for tx in transactions if tx.status is TransactionStatus.PENDING),
            failed=sum(1 for tx in transactions if tx.status is TransactionStatus.FAILED),
        )

    def user_list_summary(self, users: Sequence[UserSummary]) -> UserListSummary:
        active = sum(1 for user in users if user.is_enabled)
        admins = sum(1 for user in users if user.is_admin)
        return UserListSummary(
            total_users=len(users),
            active_users=active,
            inactive_users=len(users) - active,
            administrators=admins,
            regular_users=len(users) - admins,
        )

    def search_transactions(self, transactions: Sequence[Transaction], term: Optional[str]) -> List[Transaction]:
        """Case-insensitive match on description or reference number."""
        if not term or not term.strip():
            return list(transactions)
        needle = term.strip().lower()
        return [
            tx for tx in transactions
            if needle in tx.description.lower() or needle in tx.reference_number.lower()
        ]

    def search_users(self, users: Sequence[UserSummary], term: Optional[str]) -> List[UserSummary]:
        """Case-insensitive match on first name, last name or email."""
        if not term or not term.strip():
            return list(users)
        needle = term.strip().lower()
        return [
            user for user in users
            if needle in user.first_name.lower() or needle in user.last_name.lower() or needle in user.email.lower()
        ]

    def admin_stats(
        self,
        balance_response: Any,
        users_response: Any,
        users: Sequence[UserSummary],
    ) -> AdminStats:
        """
        Build system-wide admin figures.

        Server-reported scalars win; when a figure is missing it is counted
        from the user list instead.

        Args:
            balance_response: Raw total-balance response.
            users_response: Raw users response (list envelope or stats object).
            users: Canonical users resolved from ``users_response``.

        Returns:
            AdminStats with every field non-negative.
        """
        balance_counts = resolve_counts(balance_response, ['total_accounts'])
        user_counts = resolve_counts(users_response, ['total_users', 'total_admins', 'pending_verifications'])
        total_balance = resolve_scalar_decimal(balance_response, ('totalBalance', 'total_balance'))

        stats = AdminStats(
            total_system_balance=coerce_balance(total_balance),
            total_active_accounts=balance_counts.get('total_accounts', 0),
            total_system_users=user_counts.get('total_users', len(users)),
            total_admin_users=user_counts.get('total_admins', sum(1 for user in users if user.is_admin)),
            pending_verifications=user_counts.get(
                'pending_verifications', sum(1 for user in users if not user.is_enabled)
            ),
        )
        logger.info(
            f"Admin stats: balance {stats.total_system_balance}, {stats.total_system_users} users, "
            f"{stats.total_active_accounts} accounts"
        )
        return stats
