"""Coerce raw service records into canonical, typed entities.

Every function here is total: malformed or missing fields resolve to a
documented default instead of raising. The only non-determinism is the
``now`` argument used for missing timestamps, which callers pass in.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .extraction import parse_count, resolve_list
from .models import (
    ZERO,
    Account,
    AccountRef,
    AccountType,
    EntityKind,
    OwnerRef,
    Transaction,
    TransactionDirection,
    TransactionType,
    UserRole,
    UserSummary,
    quantize_money,
)
from .status_inference import infer_status


_MISSING = object()

# Candidate keys for the active flag, in priority order
ACTIVE_FIELDS = ('isActive', 'active', 'is_active', 'status')
ENABLED_FIELDS = ('isEnabled', 'enabled', 'is_enabled')
FLAGGED_FIELDS = ('flagged', 'isFlagged', 'is_flagged')

# fromisoformat before 3.11 takes exactly 3 or 6 fractional digits
_FRACTION = re.compile(r'(\d{2}:\d{2}:\d{2})[.,](\d+)')


def _as_record(record: Any) -> Mapping[str, Any]:
    return record if isinstance(record, Mapping) else {}


def first_present(record: Mapping[str, Any], names: Sequence[str], default: Any = _MISSING) -> Any:
    """Value of the first key in ``names`` present in ``record`` (null values count as present)."""
    for name in names:
        if name in record:
            return record[name]
    return default


def first_value(record: Mapping[str, Any], names: Sequence[str], default: Any = None) -> Any:
    """Value of the first key in ``names`` whose value is not null or empty."""
    for name in names:
        value = record.get(name)
        if value is not None and value != '':
            return value
    return default


def coerce_bool(value: Any) -> bool:
    """
    Interpret a loosely typed flag.

    Booleans pass through, ``"true"``/``"1"`` (any case) and the number 1 are
    true, everything else is false.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        return text == 'true' or text == '1'
    if isinstance(value, (int, float, Decimal)):
        return value == 1
    return False


def coerce_is_active(record: Any) -> bool:
    """Active flag from the first present of isActive, active, is_active, status."""
    record = _as_record(record)
    for name in ACTIVE_FIELDS:
        if name not in record:
            continue
        value = record[name]
        if name == 'status' and isinstance(value, str):
            return value.strip().lower() == 'active'
        return coerce_bool(value)
    return False


def coerce_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Parse a monetary value, quantized to two places.

    Args:
        value: Number or numeric string; thousands separators are ignored.
        default: Returned when the value is missing, unparsable or too large
            to represent at cent precision.

    Returns:
        Decimal rounded half-up to cents.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        number = value
    else:
        text = str(value).strip().replace(',', '').replace(' ', '')
        if not text:
            return default
        try:
            number = Decimal(text)
        except (InvalidOperation, ValueError):
            return default
    if not number.is_finite():
        return default
    try:
        return quantize_money(number)
    except InvalidOperation:
        # Too many digits to hold at cent precision
        return default


def coerce_balance(value: Any) -> Decimal:
    """Non-negative balance; negatives clamp to zero."""
    number = coerce_decimal(value)
    return number if number > 0 else ZERO


def coerce_amount(value: Any) -> Decimal:
    """Non-negative amount; the direction carries the sign."""
    return abs(coerce_decimal(value))


def _local_naive(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def coerce_timestamp(value: Any, now: datetime) -> datetime:
    """
    Parse a timestamp into naive local time.

    Accepts datetimes, ISO-8601 strings (with or without a trailing ``Z``),
    plain dates, epoch seconds or milliseconds and ``[y, m, d, h, mi, s]``
    arrays. Anything else yields ``now``.
    """
    try:
        if isinstance(value, datetime):
            return _local_naive(value)
        if isinstance(value, str) and value.strip():
            text = value.strip()
            if text.endswith('Z') or text.endswith('z'):
                text = text[:-1] + '+00:00'
            text = _FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", text, count=1)
            try:
                return _local_naive(datetime.fromisoformat(text))
            except ValueError:
                return datetime.strptime(text[:10], '%Y-%m-%d')
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            seconds = value / 1000 if abs(value) > 1e11 else value
            return datetime.fromtimestamp(seconds)
        if isinstance(value, (list, tuple)) and len(value) >= 3:
            parts = [int(part) for part in value[:6]]
            return datetime(*parts)
    except (ValueError, TypeError, OverflowError, OSError):
        pass
    return now


def coerce_account_type(value: Any) -> AccountType:
    if isinstance(value, str):
        try:
            return AccountType(value.strip().upper())
        except ValueError:
            pass
    return AccountType.UNKNOWN


def coerce_transaction_type(value: Any) -> TransactionType:
    """DEPOSIT/WITHDRAWAL/TRANSFER verbatim, CREDIT/DEBIT mapped, else TRANSFER."""
    if isinstance(value, str):
        token = value.strip().upper()
        if token in TransactionType.__members__:
            return TransactionType(token)
        if token == 'CREDIT':
            return TransactionType.DEPOSIT
        if token == 'DEBIT':
            return TransactionType.WITHDRAWAL
    return TransactionType.TRANSFER


def coerce_direction(value: Any, raw_type: Any, transaction_type: TransactionType, raw_amount: Any) -> TransactionDirection:
    """
    Direction from the record, else derived from the type and amount sign.

    Args:
        value: Raw direction field.
        raw_type: Raw type field before canonicalization.
        transaction_type: Canonical transaction type.
        raw_amount: Raw amount, used for its sign.
    """
    if isinstance(value, str):
        token = value.strip().upper()
        if token in TransactionDirection.__members__:
            return TransactionDirection(token)
    if isinstance(raw_type, str) and raw_type.strip().upper() in TransactionDirection.__members__:
        return TransactionDirection(raw_type.strip().upper())
    if transaction_type is TransactionType.DEPOSIT and coerce_decimal(raw_amount) >= 0:
        return TransactionDirection.CREDIT
    return TransactionDirection.DEBIT


def coerce_role(value: Any) -> UserRole:
    if isinstance(value, str):
        token = value.strip().upper()
        if token.startswith('ROLE_'):
            token = token[len('ROLE_'):]
        if token == 'ADMIN':
            return UserRole.ADMIN
    return UserRole.USER


def _coerce_text(value: Any, default: str = '') -> str:
    if value is None:
        return default
    return str(value)


def _coerce_optional_text(value: Any) -> Optional[str]:
    if value is None or value == '':
        return None
    return str(value)


def coerce_owner(value: Any) -> Optional[OwnerRef]:
    if not isinstance(value, Mapping):
        return None
    return OwnerRef(
        first_name=_coerce_text(first_value(value, ('firstName', 'first_name'))),
        last_name=_coerce_text(first_value(value, ('lastName', 'last_name'))),
        email=_coerce_text(value.get('email')),
    )


def coerce_account(record: Any, now: datetime) -> Account:
    """
    Build a canonical Account from one raw account record.

    Args:
        record: Raw account mapping (anything else is treated as empty).
        now: Instant substituted for missing or unparsable timestamps.

    Returns:
        Account with defaults for every malformed field.
    """
    record = _as_record(record)
    return Account(
        id=record.get('id'),
        account_number=_coerce_text(first_value(record, ('accountNumber', 'account_number'))),
        account_type=coerce_account_type(first_value(record, ('accountType', 'account_type'))),
        balance=coerce_balance(record.get('balance')),
        is_active=coerce_is_active(record),
        created_at=coerce_timestamp(first_value(record, ('createdAt', 'created_at')), now),
        updated_at=coerce_timestamp(first_value(record, ('updatedAt', 'updated_at')), now),
        owner=coerce_owner(first_value(record, ('user', 'owner'))),
        transaction_count=parse_count(first_value(record, ('totalTransactions', 'transactionCount', 'total_transactions'))),
    )


def _account_ref(record: Mapping[str, Any], accounts_by_number: Mapping[str, Account]) -> AccountRef:
    embedded = _as_record(record.get('account'))
    number = _coerce_text(
        first_value(embedded, ('accountNumber', 'account_number'))
        or first_value(record, ('accountNumber', 'account_number'))
    )
    raw_type = first_value(embedded, ('accountType', 'account_type')) or first_value(record, ('accountType', 'account_type'))
    account_type = coerce_account_type(raw_type)
    if account_type is AccountType.UNKNOWN and number in accounts_by_number:
        account_type = accounts_by_number[number].account_type
    return AccountRef(account_number=number, account_type=account_type)


def coerce_transaction(
    record: Any,
    now: datetime,
    accounts_by_number: Optional[Mapping[str, Account]] = None,
) -> Transaction:
    """
    Build a canonical Transaction, inferring its status.

    Args:
        record: Raw transaction mapping (anything else is treated as empty).
        now: Reference instant for missing timestamps and the status age rule.
        accounts_by_number: The caller's own accounts, used to fill in the
            account type when the record only carries the number.

    Returns:
        Transaction with a status in COMPLETED, PENDING or FAILED.
    """
    record = _as_record(record)
    raw_type = first_value(record, ('transactionType', 'type', 'transaction_type'))
    raw_amount = record.get('amount')
    transaction_type = coerce_transaction_type(raw_type)
    raw_balance_after = first_value(record, ('balanceAfter', 'balance_after'))
    balance_after = coerce_decimal(raw_balance_after) if raw_balance_after is not None else None
    created_at = coerce_timestamp(first_value(record, ('createdAt', 'created_at', 'date')), now)

    return Transaction(
        id=record.get('id'),
        reference_number=_coerce_text(first_value(record, ('referenceNumber', 'reference', 'reference_number'))),
        amount=coerce_amount(raw_amount),
        transaction_type=transaction_type,
        direction=coerce_direction(
            first_value(record, ('transactionDirection', 'direction', 'transaction_direction')),
            raw_type,
            transaction_type,
            raw_amount,
        ),
        status=infer_status(
            first_value(record, ('status',)),
            first_value(record, ('actualStatus', 'actual_status')),
            balance_after,
            created_at,
            now,
        ),
        balance_after=balance_after,
        description=_coerce_text(record.get('description')),
        created_at=created_at,
        account=_account_ref(record, accounts_by_number or {}),
        transfer_reference=_coerce_optional_text(first_value(record, ('transferReference', 'transfer_reference'))),
        flagged=coerce_bool(first_present(record, FLAGGED_FIELDS, False)),
    )


def coerce_user(record: Any, now: datetime) -> UserSummary:
    """Build a canonical UserSummary, including its embedded accounts."""
    record = _as_record(record)
    first_name = _coerce_text(first_value(record, ('firstName', 'first_name')))
    last_name = _coerce_text(first_value(record, ('lastName', 'last_name')))
    raw_accounts = record.get('accounts')
    accounts = tuple(
        coerce_account(account, now)
        for account in (raw_accounts if isinstance(raw_accounts, list) else [])
        if isinstance(account, Mapping)
    )
    created_at = first_value(record, ('createdAt', 'created_at'))
    updated_at = first_value(record, ('updatedAt', 'updated_at'))
    return UserSummary(
        id=record.get('id'),
        email=_coerce_text(record.get('email')),
        first_name=first_name,
        last_name=last_name,
        full_name=_coerce_text(first_value(record, ('fullName', 'full_name')), f"{first_name} {last_name}".strip()),
        role=coerce_role(record.get('role')),
        is_enabled=coerce_bool(first_present(record, ENABLED_FIELDS, False)),
        accounts=accounts,
        phone_number=_coerce_optional_text(first_value(record, ('phoneNumber', 'phone_number'))),
        address=_coerce_optional_text(record.get('address')),
        created_at=coerce_timestamp(created_at, now) if created_at is not None else None,
        updated_at=coerce_timestamp(updated_at, now) if updated_at is not None else None,
    )


def coerce_accounts(raw: Any, now: datetime) -> List[Account]:
    """Resolve and coerce an accounts response of any envelope shape."""
    return [coerce_account(record, now) for record in resolve_list(raw, EntityKind.ACCOUNTS)]


def coerce_transactions(
    raw: Any,
    now: datetime,
    accounts_by_number: Optional[Mapping[str, Account]] = None,
) -> List[Transaction]:
    """Resolve and coerce a transactions response of any envelope shape."""
    return [
        coerce_transaction(record, now, accounts_by_number)
        for record in resolve_list(raw, EntityKind.TRANSACTIONS)
    ]


def coerce_users(raw: Any, now: datetime) -> List[UserSummary]:
    """Resolve and coerce a users response of any envelope shape."""
    return [coerce_user(record, now) for record in resolve_list(raw, EntityKind.USERS)]


def index_accounts(accounts: Sequence[Account]) -> Dict[str, Account]:
    """Map valid accounts by account number."""
    return {account.account_number: account for account in accounts if account.is_valid}
