"""Shared fixtures for the ledger test-suite."""

from datetime import datetime, timezone

import pytest

from ledger_core.config import get_settings
from ledger_core.models import Account, AccountType


@pytest.fixture(autouse=True)
def fresh_settings():
    """Make every test read the environment it sets up."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now():
    return datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def cash():
    return Account(name="Cash", account_type=AccountType.ASSET)


@pytest.fixture
def revenue():
    return Account(name="Sales", account_type=AccountType.REVENUE)


@pytest.fixture
def expense():
    return Account(name="Rent", account_type=AccountType.EXPENSE)


@pytest.fixture
def equity():
    return Account(name="Retained Earnings", account_type=AccountType.EQUITY)
