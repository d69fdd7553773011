"""Reconciler package: builds complete view snapshots from concurrent fetches."""

from .view_reconciler import (
    HISTORY_FILTERS,
    AdminDashboardSnapshot,
    HistorySnapshot,
    UserDashboardSnapshot,
    UserDetailSnapshot,
    UsersSnapshot,
    ViewReconciler,
    ViewState,
)

__all__ = [
    'HISTORY_FILTERS',
    'ViewReconciler',
    'ViewState',
    'UserDashboardSnapshot',
    'AdminDashboardSnapshot',
    'UserDetailSnapshot',
    'HistorySnapshot',
    'UsersSnapshot',
]
