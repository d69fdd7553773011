"""View reconciler: fetches, normalizes and joins everything one view needs.

A build reads the clock once, issues its fetches concurrently and returns a
frozen snapshot only when every piece is in. Nothing is kept between builds,
so two overlapping builds simply race and the caller keeps whichever it
receives last.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from ..aggregator.data_aggregator import (
    LOW_BALANCE_THRESHOLD,
    AccountActivity,
    DataAggregator,
    QuickStats,
    TransactionReport,
    TypeBucket,
    UserListSummary,
)
from ..data.coercion import coerce_accounts, coerce_transactions, coerce_user, coerce_users, index_accounts
from ..data.errors import TransportError
from ..data.extraction import looks_like_stats, resolve_counts, resolve_list, resolve_path
from ..data.models import (
    Account,
    AdminStats,
    DerivedSeries,
    EntityKind,
    Transaction,
    TransactionType,
    UserSummary,
)

logger = logging.getLogger(__name__)

# Server-side filters accepted by the transaction history endpoint
HISTORY_FILTERS = ('accountNumber', 'transactionType', 'startDate', 'endDate', 'minAmount', 'maxAmount')


@dataclass(frozen=True)
class UserDashboardSnapshot:
    """Everything the account holder's dashboard shows."""
    built_at: datetime
    accounts: Tuple[Account, ...]
    recent_transactions: Tuple[Transaction, ...]
    total_balance: Decimal
    quick_stats: QuickStats
    series: DerivedSeries
    type_distribution: Mapping[TransactionType, TypeBucket]
    account_activity: Tuple[AccountActivity, ...]
    at_risk_accounts: Tuple[Account, ...]
    transactions_available: bool = True


@dataclass(frozen=True)
class AdminDashboardSnapshot:
    """System-wide figures and the transactions worth an administrator's attention."""
    built_at: datetime
    stats: AdminStats
    low_balance_accounts: int
    recent_transactions: Tuple[Transaction, ...]
    relevant_transactions: Tuple[Transaction, ...]
    type_distribution: Mapping[TransactionType, TypeBucket]
    series: DerivedSeries
    users: Tuple[UserSummary, ...] = ()


@dataclass(frozen=True)
class UserDetailSnapshot:
    """One user's profile, accounts and latest transactions, as seen by an admin."""
    built_at: datetime
    user: UserSummary
    total_balance: Decimal
    risk_level: str
    transactions: Tuple[Transaction, ...]
    total_pages: int = 1
    transactions_available: bool = True


@dataclass(frozen=True)
class HistorySnapshot:
    """A filtered transaction history with its report and per-account summary."""
    built_at: datetime
    filters: Mapping[str, Any]
    search: Optional[str]
    transactions: Tuple[Transaction, ...]
    fetched_count: int
    report: TransactionReport
    account_activity: Tuple[AccountActivity, ...]
    net_flow: Decimal


@dataclass(frozen=True)
class UsersSnapshot:
    """One page of the user list, narrowed by a search term."""
    built_at: datetime
    users: Tuple[UserSummary, ...]
    summary: UserListSummary
    search: Optional[str]
    total_users: int
    page: int = 0
    total_pages: int = 1


Snapshot = Union[UserDashboardSnapshot, AdminDashboardSnapshot, UserDetailSnapshot, HistorySnapshot, UsersSnapshot]


@dataclass(frozen=True)
class ViewState:
    """What the presentation layer receives: a complete snapshot or an error."""
    snapshot: Optional[Snapshot] = None
    error: Optional[str] = None
    retryable: bool = False

    @property
    def ok(self) -> bool:
        return self.snapshot is not None


class ViewReconciler:
    """Orchestrates the concurrent fetches behind one view activation."""

    def __init__(
        self,
        connector: Any,
        aggregator: Optional[DataAggregator] = None,
        clock: Callable[[], datetime] = datetime.now,
        recent_size: int = 5,
        series_window: int = 7,
        enrichment_concurrency: int = 0,
    ):
        """
        Initialize the reconciler.

        Args:
            connector: Object exposing the BankConnector endpoint coroutines.
            aggregator: Aggregation engine; a fresh one when omitted.
            clock: Source of the build instant, read once per build.
            recent_size: How many recent transactions to request.
            series_window: 7 or 30 trailing days for the series.
            enrichment_concurrency: Cap on concurrent per-account count
                fetches; 0 leaves the fan-out unbounded.
        """
        self.connector = connector
        self.aggregator = aggregator or DataAggregator()
        self.clock = clock
        self.recent_size = recent_size
        self.series_window = series_window
        self.enrichment_concurrency = enrichment_concurrency

        logger.info("View Reconciler initialized")

    async def build_user_view(self) -> UserDashboardSnapshot:
        """
        Build the account holder's dashboard.

        Accounts and recent history are fetched concurrently. Only the accounts
        fetch is required: its failure propagates, while a history failure
        leaves the transaction figures empty and ``transactions_available``
        false.

        Raises:
            TransportError: If the accounts fetch fails.
        """
        now = self.clock()
        logger.info("Building user dashboard...")

        accounts_raw, history_raw = await asyncio.gather(
            self.connector.get_user_accounts(),
            self.connector.get_transaction_history({'size': self.recent_size}),
            return_exceptions=True,
        )
        if isinstance(accounts_raw, BaseException):
            logger.error(f"Accounts fetch failed: {accounts_raw}")
            raise accounts_raw

        accounts = coerce_accounts(accounts_raw, now)
        accounts = await self._enrich_transaction_counts(accounts)

        transactions_available = not isinstance(history_raw, BaseException)
        if transactions_available:
            transactions = coerce_transactions(history_raw, now, index_accounts(accounts))
        else:
            logger.warning(f"Recent transactions fetch failed, showing none: {history_raw}")
            transactions = []

        aggregator = self.aggregator
        snapshot = UserDashboardSnapshot(
            built_at=now,
            accounts=tuple(accounts),
            recent_transactions=tuple(transactions),
            total_balance=aggregator.total_balance(accounts),
            quick_stats=aggregator.quick_stats(transactions),
            series=aggregator.time_series(transactions, now, self.series_window),
            type_distribution=MappingProxyType(aggregator.type_distribution(transactions)),
            account_activity=tuple(aggregator.account_summaries(transactions)),
            at_risk_accounts=tuple(aggregator.at_risk_accounts(accounts)),
            transactions_available=transactions_available,
        )
        logger.info(f"User dashboard built: {len(accounts)} accounts, {len(transactions)} transactions")
        return snapshot

    async def _enrich_transaction_counts(self, accounts: List[Account]) -> List[Account]:
        """
        Fetch a transaction count per account, tolerating individual failures.

        All fetches are joined with all-settled semantics. A failed fetch, or a
        response that carries no usable total, falls back to the count
        embedded in the account record, or 0.
        """
        if not accounts:
            return accounts

        semaphore = asyncio.Semaphore(self.enrichment_concurrency) if self.enrichment_concurrency > 0 else None

        async def fetch_count(account: Account) -> Optional[int]:
            if semaphore is None:
                raw = await self.connector.get_account_transaction_count(account.account_number)
            else:
                async with semaphore:
                    raw = await self.connector.get_account_transaction_count(account.account_number)
            return _transaction_count(raw)

        targets = [account for account in accounts if account.is_valid]
        results = await asyncio.gather(*(fetch_count(account) for account in targets), return_exceptions=True)
        counts = {}
        for account, result in zip(targets, results):
            fallback = account.transaction_count or 0
            if isinstance(result, BaseException):
                logger.warning(
                    f"Transaction count fetch failed for {account.masked_number}: {result}; using {fallback}"
                )
                counts[account.account_number] = fallback
            elif result is None:
                logger.warning(f"No transaction total for {account.masked_number}; using {fallback}")
                counts[account.account_number] = fallback
            else:
                counts[account.account_number] = result

        return [
            replace(account, transaction_count=counts.get(account.account_number, account.transaction_count or 0))
            for account in accounts
        ]

    async def build_admin_view(self) -> AdminDashboardSnapshot:
        """
        Build the administrator dashboard.

        Total balance, low-balance accounts, all transactions and users are
        fetched concurrently; all four are required.

        Raises:
            TransportError: If any of the four fetches fails.
        """
        now = self.clock()
        logger.info("Building admin dashboard...")

        balance_raw, low_balance_raw, transactions_raw, users_raw = await asyncio.gather(
            self.connector.get_total_system_balance(),
            self.connector.get_low_balance_accounts(int(LOW_BALANCE_THRESHOLD)),
            self.connector.get_all_transactions({'size': 10}),
            self.connector.get_all_users({'size': 10}),
        )

        transactions = coerce_transactions(transactions_raw, now)
        if looks_like_stats(users_raw):
            logger.info("Users response carries summary counts only")
        users = coerce_users(users_raw, now)

        low_balance = resolve_counts(low_balance_raw, ['low_balance_accounts']).get('low_balance_accounts')
        if low_balance is None:
            low_balance = len(resolve_list(low_balance_raw, EntityKind.ACCOUNTS))

        aggregator = self.aggregator
        snapshot = AdminDashboardSnapshot(
            built_at=now,
            stats=aggregator.admin_stats(balance_raw, users_raw, users),
            low_balance_accounts=low_balance,
            recent_transactions=tuple(transactions[:self.recent_size]),
            relevant_transactions=tuple(aggregator.admin_relevant(transactions)),
            type_distribution=MappingProxyType(aggregator.type_distribution(transactions)),
            series=aggregator.time_series(transactions, now, self.series_window),
            users=tuple(users),
        )
        logger.info(f"Admin dashboard built: {len(transactions)} transactions, {len(users)} users")
        return snapshot

    async def build_user_detail_view(self, user_id: Any, page: int = 0, page_size: int = 10) -> UserDetailSnapshot:
        """
        Build the admin's view of one user.

        The user record is required; the transaction page is optional.

        Raises:
            TransportError: If the user fetch fails.
        """
        now = self.clock()
        params = {'page': page, 'size': page_size, 'sortBy': 'createdAt', 'sortDirection': 'DESC'}
        user_raw, transactions_raw = await asyncio.gather(
            self.connector.get_user_by_id(user_id),
            self.connector.get_user_transactions(user_id, params),
            return_exceptions=True,
        )
        if isinstance(user_raw, BaseException):
            logger.error(f"User {user_id} fetch failed: {user_raw}")
            raise user_raw

        record = user_raw
        if isinstance(user_raw, Mapping) and isinstance(user_raw.get('data'), Mapping):
            record = user_raw['data']
        user = coerce_user(record, now)

        transactions_available = not isinstance(transactions_raw, BaseException)
        if transactions_available:
            transactions = coerce_transactions(transactions_raw, now, index_accounts(user.valid_accounts))
            total_pages = _page_count(transactions_raw)
        else:
            logger.warning(f"Transactions fetch for user {user_id} failed, showing none: {transactions_raw}")
            transactions = []
            total_pages = 1

        return UserDetailSnapshot(
            built_at=now,
            user=user,
            total_balance=self.aggregator.user_balance(user),
            risk_level=self.aggregator.user_risk_level(user),
            transactions=tuple(transactions),
            total_pages=total_pages,
            transactions_available=transactions_available,
        )

    async def build_history_view(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        search: Optional[str] = None,
    ) -> HistorySnapshot:
        """
        Build the account holder's filtered transaction history.

        The history and the holder's accounts are fetched concurrently. The
        accounts only fill in account types, so their failure is logged and
        tolerated; the history fetch is required.

        Args:
            filters: Server-side filters keyed by HISTORY_FILTERS names; empty
                values are dropped and unknown names ignored.
            search: Client-side term matched against description and
                reference number.

        Raises:
            TransportError: If the history fetch fails.
        """
        now = self.clock()
        filters = filters or {}
        unknown = sorted(name for name in filters if name not in HISTORY_FILTERS)
        if unknown:
            logger.warning(f"Ignoring unsupported history filters: {unknown}")
        params = {
            name: value for name, value in filters.items()
            if name in HISTORY_FILTERS and value is not None and value != ''
        }
        logger.info(f"Building transaction history with filters {params}...")

        accounts_raw, history_raw = await asyncio.gather(
            self.connector.get_user_accounts(),
            self.connector.get_transaction_history(params),
            return_exceptions=True,
        )
        if isinstance(history_raw, BaseException):
            logger.error(f"Transaction history fetch failed: {history_raw}")
            raise history_raw
        if isinstance(accounts_raw, BaseException):
            logger.warning(f"Accounts fetch failed, account types unknown: {accounts_raw}")
            accounts = []
        else:
            accounts = coerce_accounts(accounts_raw, now)

        aggregator = self.aggregator
        fetched = coerce_transactions(history_raw, now, index_accounts(accounts))
        transactions = aggregator.search_transactions(fetched, search)

        return HistorySnapshot(
            built_at=now,
            filters=MappingProxyType(params),
            search=search or None,
            transactions=tuple(transactions),
            fetched_count=len(fetched),
            report=aggregator.transaction_report(transactions),
            account_activity=tuple(aggregator.account_summaries(transactions)),
            net_flow=aggregator.net_flow(transactions),
        )

    async def build_users_view(self, search: Optional[str] = None, page: int = 0, page_size: int = 10) -> UsersSnapshot:
        """
        Build one page of the admin user list.

        Raises:
            TransportError: If the users fetch fails.
        """
        now = self.clock()
        params = {'page': page, 'size': page_size, 'sortBy': 'createdAt', 'sortDir': 'desc'}
        users_raw = await self.connector.get_all_users(params)

        users = coerce_users(users_raw, now)
        matched = self.aggregator.search_users(users, search)
        total_users = resolve_counts(users_raw, ['total_users']).get('total_users', len(users))

        return UsersSnapshot(
            built_at=now,
            users=tuple(matched),
            summary=self.aggregator.user_list_summary(matched),
            search=search or None,
            total_users=total_users,
            page=page,
            total_pages=_page_count(users_raw),
        )

    async def load_user_view(self) -> ViewState:
        return await self._load(self.build_user_view())

    async def load_admin_view(self) -> ViewState:
        return await self._load(self.build_admin_view())

    async def load_user_detail_view(self, user_id: Any, page: int = 0) -> ViewState:
        return await self._load(self.build_user_detail_view(user_id, page))

    async def load_history_view(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        search: Optional[str] = None,
    ) -> ViewState:
        return await self._load(self.build_history_view(filters, search))

    async def load_users_view(self, search: Optional[str] = None, page: int = 0) -> ViewState:
        return await self._load(self.build_users_view(search, page))

    async def _load(self, build) -> ViewState:
        try:
            return ViewState(snapshot=await build)
        except TransportError as e:
            logger.error(f"View build failed: {e.message}")
            return ViewState(error=e.message, retryable=True)


def _transaction_count(raw: Any) -> Optional[int]:
    """
    Count from a one-item history page.

    The server total wins. An empty page means no transactions. A non-empty
    page without a total says nothing about the count, so None.
    """
    counts = resolve_counts(raw, ['total_transactions'])
    if 'total_transactions' in counts:
        return counts['total_transactions']
    path, records = resolve_path(raw, EntityKind.TRANSACTIONS)
    if path is not None and not records:
        return 0
    return None


def _page_count(raw: Any) -> int:
    if isinstance(raw, Mapping):
        for scope in (raw, raw.get('data')):
            if isinstance(scope, Mapping) and scope.get('totalPages') is not None:
                try:
                    return max(int(scope['totalPages']), 1)
                except (TypeError, ValueError):
                    return 1
    return 1
