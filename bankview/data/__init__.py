"""Data package: transport, canonical models and response normalization."""

from .bank_connector import BankConnector
from .coercion import coerce_account, coerce_accounts, coerce_transaction, coerce_transactions, coerce_user, coerce_users
from .errors import HttpError, TransportError
from .extraction import resolve_counts, resolve_list
from .models import (
    Account,
    AccountType,
    AdminStats,
    DerivedSeries,
    EntityKind,
    Transaction,
    TransactionDirection,
    TransactionStatus,
    TransactionType,
    UserRole,
    UserSummary,
)
from .status_inference import infer_status

__all__ = [
    'BankConnector', 'HttpError', 'TransportError',
    'resolve_list', 'resolve_counts', 'infer_status',
    'coerce_account', 'coerce_accounts', 'coerce_transaction', 'coerce_transactions', 'coerce_user', 'coerce_users',
    'Account', 'AccountType', 'AdminStats', 'DerivedSeries', 'EntityKind', 'Transaction',
    'TransactionDirection', 'TransactionStatus', 'TransactionType', 'UserRole', 'UserSummary',
]
