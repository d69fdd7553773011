"""
Unit tests for field coercion.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bankview.data.coercion import (
    coerce_account,
    coerce_accounts,
    coerce_amount,
    coerce_balance,
    coerce_bool,
    coerce_decimal,
    coerce_is_active,
    coerce_role,
    coerce_timestamp,
    coerce_transaction,
    coerce_transaction_type,
    coerce_transactions,
    coerce_user,
    index_accounts,
)
from bankview.data.models import (
    AccountType,
    TransactionDirection,
    TransactionStatus,
    TransactionType,
    UserRole,
)


class TestBoolCoercion:
    """The active flag is total over loosely typed input."""

    @pytest.mark.parametrize("value", [True, "true", "TRUE", "1", 1, " True "])
    def test_truthy(self, value):
        assert coerce_bool(value) is True

    @pytest.mark.parametrize("value", [False, "false", "0", 0, None, "yes", 2, [], {}])
    def test_falsy(self, value):
        assert coerce_bool(value) is False

    @pytest.mark.parametrize("value,expected", [
        (True, True), ("true", True), ("TRUE", True), ("1", True), (1, True),
        (False, False), ("false", False), ("0", False), (0, False), (None, False), ("yes", False),
    ])
    def test_is_active_field(self, value, expected):
        assert coerce_is_active({"isActive": value}) is expected

    def test_missing_is_inactive(self):
        assert coerce_is_active({}) is False
        assert coerce_is_active("not a record") is False


class TestActiveFieldPriority:
    """isActive, active, is_active, status: first present key wins."""

    def test_is_active_beats_active(self):
        assert coerce_is_active({"isActive": False, "active": True}) is False

    def test_active_beats_snake_case(self):
        assert coerce_is_active({"active": "1", "is_active": "0"}) is True

    def test_present_null_does_not_fall_through(self):
        assert coerce_is_active({"isActive": None, "status": "active"}) is False

    def test_status_string(self):
        assert coerce_is_active({"status": "Active"}) is True
        assert coerce_is_active({"status": "inactive"}) is False

    def test_non_string_status_uses_bool_rules(self):
        assert coerce_is_active({"status": 1}) is True


class TestMoneyCoercion:
    """Monetary parsing defaults to zero and never goes negative."""

    @pytest.mark.parametrize("value,expected", [
        ("500.5", Decimal("500.50")),
        (75, Decimal("75.00")),
        ("12,000.00", Decimal("12000.00")),
        (0.1, Decimal("0.10")),
        ("2.005", Decimal("2.01")),
    ])
    def test_parses(self, value, expected):
        assert coerce_decimal(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", True, "NaN", "Infinity", [], {}])
    def test_failure_is_zero(self, value):
        assert coerce_decimal(value) == Decimal("0")

    def test_negative_balance_clamped(self):
        assert coerce_balance("-20") == Decimal("0")

    def test_negative_amount_is_absolute(self):
        assert coerce_amount(-40) == Decimal("40.00")

    @pytest.mark.parametrize("value", ["1e30", 1e300, "9" * 40, Decimal("1E+27")])
    def test_too_large_for_cents_is_zero(self, value):
        assert coerce_decimal(value) == Decimal("0")

    def test_largest_cent_value_kept(self):
        assert coerce_decimal("9" * 26) == Decimal("9" * 26)

    def test_huge_account_balance_is_total(self, now):
        account = coerce_account({"accountNumber": "1234567890", "balance": "1e30"}, now)
        assert account.balance == Decimal("0")

    def test_huge_transaction_amounts_are_total(self, now):
        tx = coerce_transaction({"amount": "1e30", "balanceAfter": 1e300, "type": "DEPOSIT"}, now)
        assert tx.amount == Decimal("0")
        assert tx.balance_after == Decimal("0")
        assert tx.status is TransactionStatus.COMPLETED


class TestTimestampCoercion:
    """Timestamps parse to naive local time, else fall back to now."""

    def test_iso_string(self, now):
        assert coerce_timestamp("2024-01-07T23:59:00", now) == datetime(2024, 1, 7, 23, 59)

    def test_plain_date(self, now):
        assert coerce_timestamp("2024-01-07", now) == datetime(2024, 1, 7)

    def test_zulu_becomes_naive_local(self, now):
        result = coerce_timestamp("2024-01-07T12:00:00Z", now)
        expected = datetime(2024, 1, 7, 12, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        assert result == expected
        assert result.tzinfo is None

    @pytest.mark.parametrize("value,expected", [
        ("2024-01-10T11:50:00.12345", datetime(2024, 1, 10, 11, 50, 0, 123450)),
        ("2024-01-10T11:50:00.5", datetime(2024, 1, 10, 11, 50, 0, 500000)),
        ("2024-01-10T11:50:00.1234567", datetime(2024, 1, 10, 11, 50, 0, 123456)),
        ("2024-01-10T11:50:00.123456789", datetime(2024, 1, 10, 11, 50, 0, 123456)),
    ])
    def test_any_fraction_length(self, value, expected, now):
        assert coerce_timestamp(value, now) == expected

    def test_fraction_with_zulu(self, now):
        result = coerce_timestamp("2024-01-07T12:00:00.12345Z", now)
        expected = datetime(2024, 1, 7, 12, 0, 0, 123450, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        assert result == expected

    def test_array_form(self, now):
        assert coerce_timestamp([2024, 1, 7, 23, 59, 30], now) == datetime(2024, 1, 7, 23, 59, 30)

    @pytest.mark.parametrize("value", [None, "", "yesterday", [2024], {"y": 2024}, True])
    def test_unparsable_is_now(self, value, now):
        assert coerce_timestamp(value, now) == now


class TestAccountCoercion:
    """Raw accounts become canonical Account records."""

    def test_end_to_end_from_nested_envelope(self, now):
        raw = {"data": {"accounts": [
            {"accountNumber": "1234567890", "balance": "500.5", "is_active": "1", "accountType": "savings"},
        ]}}
        [account] = coerce_accounts(raw, now)
        assert account.account_number == "1234567890"
        assert account.balance == Decimal("500.5")
        assert account.is_active is True
        assert account.account_type is AccountType.SAVINGS

    def test_defaults(self, now):
        account = coerce_account({}, now)
        assert account.account_number == ""
        assert account.account_type is AccountType.UNKNOWN
        assert account.balance == Decimal("0")
        assert account.is_active is False
        assert account.created_at == now
        assert account.updated_at == now
        assert account.is_valid is False
        assert account.transaction_count is None

    def test_unknown_account_type(self, now):
        assert coerce_account({"accountType": "FIXED_DEPOSIT"}, now).account_type is AccountType.UNKNOWN

    def test_snake_case_fields(self, now):
        account = coerce_account({
            "account_number": "5555", "account_type": "checking", "created_at": "2024-01-02T09:00:00",
        }, now)
        assert account.account_number == "5555"
        assert account.account_type is AccountType.CHECKING
        assert account.created_at == datetime(2024, 1, 2, 9)

    def test_owner_and_embedded_count(self, now):
        account = coerce_account({
            "accountNumber": "1",
            "user": {"firstName": "Amina", "lastName": "Otieno", "email": "a@example.com"},
            "totalTransactions": "8",
        }, now)
        assert account.owner.full_name == "Amina Otieno"
        assert account.transaction_count == 8

    def test_masked_number(self, now):
        assert coerce_account({"accountNumber": "1234567890"}, now).masked_number == "****7890"

    def test_renormalizing_is_deterministic(self, raw_accounts, now):
        assert coerce_accounts(raw_accounts, now) == coerce_accounts(raw_accounts, now)


class TestTransactionCoercion:
    """Raw transactions become canonical Transaction records."""

    @pytest.mark.parametrize("raw,expected", [
        ("DEPOSIT", TransactionType.DEPOSIT),
        ("withdrawal", TransactionType.WITHDRAWAL),
        ("Transfer", TransactionType.TRANSFER),
        ("CREDIT", TransactionType.DEPOSIT),
        ("debit", TransactionType.WITHDRAWAL),
        ("PAYMENT", TransactionType.TRANSFER),
        (None, TransactionType.TRANSFER),
    ])
    def test_transaction_type(self, raw, expected):
        assert coerce_transaction_type(raw) is expected

    def test_full_record(self, now):
        tx = coerce_transaction({
            "id": 7,
            "reference": "REF-7",
            "amount": "1500",
            "type": "withdrawal",
            "direction": "debit",
            "status": "DONE",
            "balanceAfter": "200.00",
            "date": "2024-01-09T10:00:00",
            "transferReference": "TR-1",
            "account": {"accountNumber": "2222", "accountType": "checking"},
            "flagged": "true",
        }, now)
        assert tx.reference_number == "REF-7"
        assert tx.amount == Decimal("1500.00")
        assert tx.transaction_type is TransactionType.WITHDRAWAL
        assert tx.direction is TransactionDirection.DEBIT
        assert tx.status is TransactionStatus.COMPLETED
        assert tx.balance_after == Decimal("200.00")
        assert tx.created_at == datetime(2024, 1, 9, 10)
        assert tx.account.account_number == "2222"
        assert tx.account.account_type is AccountType.CHECKING
        assert tx.transfer_reference == "TR-1"
        assert tx.flagged is True

    def test_direction_derived_when_missing(self, now):
        assert coerce_transaction({"transactionType": "DEPOSIT"}, now).direction is TransactionDirection.CREDIT
        assert coerce_transaction({"transactionType": "CREDIT"}, now).direction is TransactionDirection.CREDIT
        assert coerce_transaction({"transactionType": "WITHDRAWAL"}, now).direction is TransactionDirection.DEBIT
        assert coerce_transaction({"transactionType": "TRANSFER"}, now).direction is TransactionDirection.DEBIT

    def test_negative_amount_means_debit(self, now):
        tx = coerce_transaction({"transactionType": "DEPOSIT", "amount": "-50"}, now)
        assert tx.amount == Decimal("50.00")
        assert tx.direction is TransactionDirection.DEBIT

    def test_account_type_from_known_accounts(self, raw_accounts, now):
        accounts = index_accounts(coerce_accounts(raw_accounts, now))
        tx = coerce_transaction({"accountNumber": "2222333344", "amount": 5}, now, accounts)
        assert tx.account.account_type is AccountType.CHECKING

    def test_unknown_account_type_without_lookup(self, now):
        tx = coerce_transaction({"accountNumber": "404"}, now)
        assert tx.account.account_type is AccountType.UNKNOWN

    def test_missing_everything_is_total(self, now):
        tx = coerce_transaction(None, now)
        assert tx.amount == Decimal("0")
        assert tx.transaction_type is TransactionType.TRANSFER
        assert tx.status is TransactionStatus.PENDING
        assert tx.created_at == now
        assert tx.balance_after is None
        assert tx.flagged is False

    def test_old_transaction_without_status_is_completed(self, now):
        tx = coerce_transaction({"createdAt": (now - timedelta(hours=3)).isoformat()}, now)
        assert tx.status is TransactionStatus.COMPLETED

    def test_recent_five_digit_fraction_is_pending(self, now):
        tx = coerce_transaction({"amount": "20", "type": "DEPOSIT", "createdAt": "2024-01-10T11:50:00.12345"}, now)
        assert tx.created_at == datetime(2024, 1, 10, 11, 50, 0, 123450)
        assert tx.status is TransactionStatus.PENDING

    def test_status_only_ever_canonical(self, raw_transactions, now):
        statuses = {tx.status for tx in coerce_transactions(raw_transactions, now)}
        assert statuses <= set(TransactionStatus)

    def test_renormalizing_is_deterministic(self, raw_transactions, now):
        assert coerce_transactions(raw_transactions, now) == coerce_transactions(raw_transactions, now)


class TestUserCoercion:
    """Raw users become UserSummary records with derived account counts."""

    def test_valid_accounts_counted(self, now):
        user = coerce_user({
            "id": 5,
            "firstName": "Brian",
            "lastName": "Kamau",
            "role": "ROLE_ADMIN",
            "enabled": 1,
            "accounts": [
                {"accountNumber": "1", "balance": 10},
                {"accountNumber": "", "balance": 20},
                {"balance": 30},
                "junk",
            ],
        }, now)
        assert user.full_name == "Brian Kamau"
        assert user.role is UserRole.ADMIN
        assert user.is_enabled is True
        assert len(user.accounts) == 3
        assert user.total_accounts == 1

    def test_defaults(self, now):
        user = coerce_user({}, now)
        assert user.role is UserRole.USER
        assert user.is_enabled is False
        assert user.accounts == ()
        assert user.total_accounts == 0
        assert user.created_at is None

    @pytest.mark.parametrize("raw,expected", [
        ("admin", UserRole.ADMIN), ("ROLE_ADMIN", UserRole.ADMIN), ("USER", UserRole.USER), (None, UserRole.USER),
    ])
    def test_role(self, raw, expected):
        assert coerce_role(raw) is expected
