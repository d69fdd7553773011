"""Locate entity record arrays inside inconsistent response envelopes.

The banking service wraps collections differently depending on the endpoint
and version: a bare array, ``{"accounts": [...]}``, ``{"data": {...}}`` and so
on. Each entity kind has an ordered table of extraction paths; the first path
whose target is a list wins, even when that list is empty.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import EntityKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionPath:
    """A named rule describing where the record array lives in an envelope."""
    name: str
    keys: Tuple[str, ...] = ()

    def extract(self, raw: Any) -> Optional[List[Any]]:
        """
        Walk the keys through nested mappings.

        Args:
            raw: Parsed JSON response.

        Returns:
            The target list, or None if the path is missing or not a list.
        """
        target = raw
        for key in self.keys:
            if not isinstance(target, Mapping) or key not in target:
                return None
            target = target[key]
        return target if isinstance(target, list) else None


EXTRACTION_PATHS: Dict[EntityKind, Tuple[ExtractionPath, ...]] = {
    EntityKind.ACCOUNTS: (
        ExtractionPath('direct'),
        ExtractionPath('accounts', ('accounts',)),
        ExtractionPath('data', ('data',)),
        ExtractionPath('data.accounts', ('data', 'accounts')),
    ),
    EntityKind.USERS: (
        ExtractionPath('data.users', ('data', 'users')),
        ExtractionPath('users', ('users',)),
        ExtractionPath('content', ('content',)),
        ExtractionPath('data.content', ('data', 'content')),
        ExtractionPath('direct'),
        ExtractionPath('data', ('data',)),
    ),
    EntityKind.TRANSACTIONS: (
        ExtractionPath('transactionDetails', ('transactionDetails',)),
        ExtractionPath('data.transactions', ('data', 'transactions')),
        ExtractionPath('transactions', ('transactions',)),
        ExtractionPath('direct'),
        ExtractionPath('data.transactionDetails', ('data', 'transactionDetails')),
        ExtractionPath('content', ('content',)),
        ExtractionPath('data', ('data',)),
    ),
}

# Canonical count name -> aliases the service has been seen to use
SUMMARY_COUNT_FIELDS: Dict[str, Tuple[str, ...]] = {
    'total_users': ('totalUsers', 'totalElements', 'total_users'),
    'pending_verifications': ('pendingVerifications', 'pending_verifications'),
    'total_admins': ('totalAdmins', 'totalAdminUsers', 'total_admins'),
    'total_accounts': ('totalAccounts', 'totalActiveAccounts', 'total_accounts'),
    'total_transactions': ('totalElements', 'totalTransactions', 'total_transactions', 'count'),
    'low_balance_accounts': ('totalLowBalanceAccounts', 'total_low_balance_accounts'),
}


def resolve_path(raw: Any, kind: EntityKind) -> Tuple[Optional[ExtractionPath], List[Any]]:
    """Return the first matching path for ``kind`` and its target list."""
    for path in EXTRACTION_PATHS[kind]:
        records = path.extract(raw)
        if records is not None:
            return path, records
    return None, []


def resolve_list(raw: Any, kind: EntityKind) -> List[Dict[str, Any]]:
    """
    Find the raw record array for an entity kind, whatever the envelope.

    Args:
        raw: Parsed JSON response (any shape, including None).
        kind: Which entity table to consult.

    Returns:
        The raw record mappings in response order; empty if nothing matched.
    """
    path, records = resolve_path(raw, kind)
    if path is None:
        keys = sorted(raw.keys()) if isinstance(raw, Mapping) else type(raw).__name__
        logger.warning(f"No {kind.value} array found in response (keys: {keys}); treating as empty")
        return []

    mappings = [record for record in records if isinstance(record, Mapping)]
    dropped = len(records) - len(mappings)
    if dropped:
        logger.debug(f"Dropped {dropped} non-object {kind.value} entries from '{path.name}'")
    logger.debug(f"Resolved {len(mappings)} {kind.value} via '{path.name}'")
    return [dict(record) for record in mappings]


def _scalar_scopes(raw: Any) -> List[Mapping]:
    scopes = []
    if isinstance(raw, Mapping):
        scopes.append(raw)
        data = raw.get('data')
        if isinstance(data, Mapping):
            scopes.append(data)
    return scopes


def parse_count(value: Any) -> Optional[int]:
    """Non-negative integer from a number or numeric string; None otherwise."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or number < 0:
        return None
    return int(number)


def resolve_counts(raw: Any, fields: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """
    Pull scalar summary counts straight from known field names.

    Used when a response is a stats object rather than a list, or alongside a
    list to read server-side totals.

    Args:
        raw: Parsed JSON response.
        fields: Canonical names from SUMMARY_COUNT_FIELDS; all when omitted.

    Returns:
        Mapping of canonical name to count, only for names that were found.
    """
    names = list(fields) if fields is not None else list(SUMMARY_COUNT_FIELDS)
    counts: Dict[str, int] = {}
    scopes = _scalar_scopes(raw)
    for name in names:
        for scope in scopes:
            for alias in SUMMARY_COUNT_FIELDS[name]:
                count = parse_count(scope.get(alias))
                if count is not None:
                    counts[name] = count
                    break
            if name in counts:
                break
    return counts


def resolve_scalar_decimal(raw: Any, aliases: Sequence[str]) -> Optional[Decimal]:
    """Read a monetary scalar (e.g. ``totalBalance``) from the top level or ``data``."""
    for scope in _scalar_scopes(raw):
        for alias in aliases:
            value = scope.get(alias)
            if value is None or isinstance(value, bool):
                continue
            try:
                number = Decimal(str(value).strip())
            except (InvalidOperation, ValueError):
                continue
            if number.is_finite():
                return number
    return None


def looks_like_stats(raw: Any) -> bool:
    """True when no list path matches but summary count fields are present."""
    if not isinstance(raw, Mapping):
        return False
    if any(resolve_path(raw, kind)[0] is not None for kind in EntityKind):
        return False
    return bool(resolve_counts(raw))
