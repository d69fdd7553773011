"""Transaction lifecycle status inference.

The service reports status inconsistently: sometimes a ``status`` field,
sometimes a more precise ``actualStatus``, sometimes neither. ``infer_status``
folds whatever is available into one of COMPLETED, PENDING or FAILED. It never
reads a clock; the caller passes ``now``.
"""

from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .models import TransactionStatus


PENDING_AGE_LIMIT = timedelta(minutes=60)

_COMPLETED = TransactionStatus.COMPLETED
_PENDING = TransactionStatus.PENDING
_FAILED = TransactionStatus.FAILED

SECONDARY_SYNONYMS: Mapping[str, TransactionStatus] = MappingProxyType({
    'SUCCESS': _COMPLETED,
    'SUCCESSFUL': _COMPLETED,
    'PROCESSING': _PENDING,
    'IN_PROGRESS': _PENDING,
    'FAILED': _FAILED,
    'ERROR': _FAILED,
    'CANCELLED': _FAILED,
})

PRIMARY_SYNONYMS: Mapping[str, TransactionStatus] = MappingProxyType({
    'COMPLETED': _COMPLETED,
    'PENDING': _PENDING,
    'FAILED': _FAILED,
    'SUCCESS': _COMPLETED,
    'SUCCESSFUL': _COMPLETED,
    'COMPLETE': _COMPLETED,
    'DONE': _COMPLETED,
    'CONFIRMED': _COMPLETED,
    'PROCESSED': _COMPLETED,
    'PROCESSING': _PENDING,
    'IN_PROGRESS': _PENDING,
    'WAITING': _PENDING,
    'SUBMITTED': _PENDING,
    'QUEUED': _PENDING,
    'INITIATED': _PENDING,
    'ERROR': _FAILED,
    'CANCELLED': _FAILED,
    'REJECTED': _FAILED,
    'DECLINED': _FAILED,
    'TIMEOUT': _FAILED,
    'ABORTED': _FAILED,
})


def normalize_status_token(value: Any) -> Optional[str]:
    """Upper-case a raw status and join words with underscores; None if blank."""
    if not isinstance(value, str):
        return None
    token = value.strip().upper().replace('-', '_').replace(' ', '_')
    return token or None


def _lookup(value: Any, table: Mapping[str, TransactionStatus]) -> Optional[TransactionStatus]:
    token = normalize_status_token(value)
    if token is None:
        return None
    return table.get(token)


def _comparable(moment: datetime) -> datetime:
    # Aware values are moved to local wall time so naive and aware inputs mix
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def infer_status(
    primary: Optional[str],
    secondary: Optional[str],
    balance_after: Optional[Any],
    created_at: datetime,
    now: datetime,
) -> TransactionStatus:
    """
    Classify a transaction's lifecycle status.

    Rules, first match wins:
        1. ``secondary`` (``actualStatus``) through the short synonym table.
        2. ``primary`` (``status``) through the full synonym table.
        3. A recorded ``balance_after`` means the ledger was updated: COMPLETED.
        4. Older than PENDING_AGE_LIMIT relative to ``now``: COMPLETED.
        5. Otherwise PENDING.

    Args:
        primary: Raw ``status`` value, if any.
        secondary: Raw ``actualStatus`` value, if any.
        balance_after: Raw or parsed balance after the transaction, if any.
        created_at: When the transaction was created.
        now: Reference instant for the age rule.

    Returns:
        One of the three canonical statuses.
    """
    status = _lookup(secondary, SECONDARY_SYNONYMS)
    if status is not None:
        return status

    status = _lookup(primary, PRIMARY_SYNONYMS)
    if status is not None:
        return status

    if balance_after is not None:
        return _COMPLETED

    if _comparable(now) - _comparable(created_at) > PENDING_AGE_LIMIT:
        return _COMPLETED

    return _PENDING
