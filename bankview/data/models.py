"""Canonical domain models for accounts, transactions, users and derived series."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, List, Optional, Tuple

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary value to two places, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class EntityKind(str, Enum):
    ACCOUNTS = 'accounts'
    TRANSACTIONS = 'transactions'
    USERS = 'users'


class AccountType(str, Enum):
    SAVINGS = 'SAVINGS'
    CHECKING = 'CHECKING'
    BUSINESS = 'BUSINESS'
    UNKNOWN = 'UNKNOWN'


class TransactionType(str, Enum):
    DEPOSIT = 'DEPOSIT'
    WITHDRAWAL = 'WITHDRAWAL'
    TRANSFER = 'TRANSFER'


class TransactionDirection(str, Enum):
    CREDIT = 'CREDIT'
    DEBIT = 'DEBIT'

    @property
    def sign(self) -> int:
        return 1 if self is TransactionDirection.CREDIT else -1


class TransactionStatus(str, Enum):
    COMPLETED = 'COMPLETED'
    PENDING = 'PENDING'
    FAILED = 'FAILED'


class UserRole(str, Enum):
    USER = 'USER'
    ADMIN = 'ADMIN'


@dataclass(frozen=True)
class OwnerRef:
    """Embedded owner summary carried on an account."""
    first_name: str = ''
    last_name: str = ''
    email: str = ''

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class AccountRef:
    """The account a transaction was booked against."""
    account_number: str = ''
    account_type: AccountType = AccountType.UNKNOWN


@dataclass(frozen=True)
class Account:
    """A bank account after normalization."""
    id: Any
    account_number: str
    account_type: AccountType
    balance: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime
    owner: Optional[OwnerRef] = None
    # Server-embedded count until enrichment replaces it
    transaction_count: Optional[int] = None

    @property
    def is_valid(self) -> bool:
        return bool(self.account_number)

    @property
    def masked_number(self) -> str:
        return f"****{self.account_number[-4:]}" if self.account_number else '****'


@dataclass(frozen=True)
class Transaction:
    """A transaction after normalization and status inference."""
    id: Any
    reference_number: str
    amount: Decimal
    transaction_type: TransactionType
    direction: TransactionDirection
    status: TransactionStatus
    balance_after: Optional[Decimal]
    description: str
    created_at: datetime
    account: AccountRef
    transfer_reference: Optional[str] = None
    flagged: bool = False

    @property
    def signed_amount(self) -> Decimal:
        return self.amount * self.direction.sign

    @property
    def is_completed(self) -> bool:
        return self.status is TransactionStatus.COMPLETED


@dataclass(frozen=True)
class UserSummary:
    """A user record with its embedded accounts."""
    id: Any
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: UserRole
    is_enabled: bool
    accounts: Tuple[Account, ...] = ()
    phone_number: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def valid_accounts(self) -> List[Account]:
        return [account for account in self.accounts if account.is_valid]

    @property
    def total_accounts(self) -> int:
        return len(self.valid_accounts)

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


@dataclass(frozen=True)
class AdminStats:
    """System-wide figures shown on the admin dashboard."""
    total_system_balance: Decimal = ZERO
    total_active_accounts: int = 0
    total_system_users: int = 0
    total_admin_users: int = 0
    pending_verifications: int = 0


@dataclass(frozen=True)
class SeriesBucket:
    """One calendar day of completed deposit and withdrawal totals."""
    label: str
    day: date
    deposits: Decimal = ZERO
    withdrawals: Decimal = ZERO
    net: Decimal = ZERO


@dataclass(frozen=True)
class DerivedSeries:
    """Day buckets covering a trailing window, oldest first."""
    window_days: int
    buckets: Tuple[SeriesBucket, ...] = field(default_factory=tuple)

    @property
    def labels(self) -> List[str]:
        return [bucket.label for bucket in self.buckets]
