"""Aggregator package for derived financial figures."""

from .data_aggregator import DataAggregator, QuickStats, TypeBucket, AccountActivity, TransactionReport, UserListSummary

__all__ = ['DataAggregator', 'QuickStats', 'TypeBucket', 'AccountActivity', 'TransactionReport', 'UserListSummary']
