"""
Shared fixtures for the bankview test suite.
"""
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from bankview.aggregator.data_aggregator import DataAggregator


NOW = datetime(2024, 1, 10, 12, 0, 0)


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant for coercion and status inference."""
    return NOW


@pytest.fixture
def aggregator() -> DataAggregator:
    return DataAggregator()


@pytest.fixture
def raw_accounts():
    """Three raw accounts using mixed field conventions."""
    return [
        {
            "id": 1,
            "accountNumber": "1234567890",
            "accountType": "savings",
            "balance": "500.5",
            "isActive": True,
            "createdAt": "2024-01-01T09:00:00",
            "totalTransactions": 12,
        },
        {
            "id": 2,
            "account_number": "2222333344",
            "account_type": "CHECKING",
            "balance": 75,
            "is_active": "1",
            "created_at": "2024-01-02T09:00:00",
        },
        {
            "id": 3,
            "accountNumber": "9999000011",
            "accountType": "business",
            "balance": "12,000.00",
            "status": "ACTIVE",
            "totalTransactions": "4",
        },
    ]


@pytest.fixture
def raw_transactions():
    """Newest-first raw history with inconsistent field names."""
    return {
        "transactionDetails": [
            {
                "id": 11,
                "referenceNumber": "TXN-011",
                "amount": "100.50",
                "transactionType": "deposit",
                "transactionDirection": "CREDIT",
                "status": "SUCCESS",
                "createdAt": "2024-01-10T08:00:00",
                "accountNumber": "1234567890",
                "description": "Salary top-up",
            },
            {
                "id": 10,
                "reference": "TXN-010",
                "amount": 40,
                "type": "WITHDRAWAL",
                "direction": "DEBIT",
                "status": "completed",
                "date": "2024-01-09T10:00:00",
                "account": {"accountNumber": "2222333344", "accountType": "CHECKING"},
                "description": "ATM",
            },
            {
                "id": 9,
                "referenceNumber": "TXN-009",
                "amount": "9.99",
                "transactionType": "CREDIT",
                "actualStatus": "SUCCESSFUL",
                "status": "PENDING",
                "createdAt": "2024-01-07T23:59:00",
                "accountNumber": "1234567890",
                "description": "Refund",
            },
            {
                "id": 8,
                "referenceNumber": "TXN-008",
                "amount": "250",
                "transactionType": "TRANSFER",
                "transactionDirection": "DEBIT",
                "status": "processing",
                "createdAt": "2024-01-10T11:45:00",
                "accountNumber": "2222333344",
                "description": "Rent",
            },
        ]
    }


@pytest.fixture
def mock_connector(raw_accounts, raw_transactions):
    """Connector double whose endpoint coroutines return canned payloads."""
    connector = MagicMock()
    connector.get_user_accounts = AsyncMock(return_value={"accounts": raw_accounts})
    connector.get_transaction_history = AsyncMock(return_value=raw_transactions)
    connector.get_account_transaction_count = AsyncMock(return_value={"transactionDetails": [], "totalElements": 3})
    connector.get_total_system_balance = AsyncMock(return_value={"totalBalance": "12575.50", "totalAccounts": 3})
    connector.get_low_balance_accounts = AsyncMock(
        return_value={"accounts": [raw_accounts[1]], "totalLowBalanceAccounts": 1}
    )
    connector.get_all_transactions = AsyncMock(return_value=raw_transactions)
    connector.get_all_users = AsyncMock(return_value={
        "data": {
            "users": [
                {"id": 1, "firstName": "Amina", "lastName": "Otieno", "role": "ADMIN", "isEnabled": True},
                {"id": 2, "firstName": "Brian", "lastName": "Kamau", "role": "USER", "isEnabled": False},
            ],
            "totalUsers": 42,
            "pendingVerifications": 5,
        }
    })
    connector.get_user_by_id = AsyncMock(return_value={
        "id": 2,
        "firstName": "Brian",
        "lastName": "Kamau",
        "email": "brian@example.com",
        "role": "USER",
        "isEnabled": "true",
        "accounts": [raw_accounts[1], {"accountNumber": "", "balance": 900}],
    })
    connector.get_user_transactions = AsyncMock(return_value={**raw_transactions, "totalPages": 2})
    return connector
