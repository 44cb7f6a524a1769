"""
Account Models for Ledger Core

An account is a named classification node in the chart of accounts.
Accounts are created and destroyed by an external collaborator; the core
only ever reads an account's identity and type.

DESIGN DECISION: The account type says on which side an account
naturally grows (debit or credit). It is used for reporting only and has
no influence on whether a transaction is balanced.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from ledger_core.models.transaction import ensure_aware


class NormalBalance(str, Enum):
    """Side of the ledger on which an account type increases."""
    DEBIT = "debit"
    CREDIT = "credit"


class AccountType(str, Enum):
    """
    Closed set of account classifications.

    Some accounts increase with a debit and decrease with a credit,
    while others increase with a credit and decrease with a debit.
    """
    ASSET = "Asset"          # Resources owned by the business
    EXPENSE = "Expense"      # Costs incurred by the business
    LIABILITY = "Liability"  # Obligations of the business
    EQUITY = "Equity"        # Owner's claim on the assets
    REVENUE = "Revenue"      # Income earned by the business

    @property
    def normal_balance(self) -> NormalBalance:
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class Account(BaseModel):
    """
    A single account in a ledger.

    An account can be a parent account, a child account or both.
    - A top-level account has no parent_id (None, never a zero UUID)
    - A parent account can have many child accounts
    - A child account has exactly one parent account
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )
    parent_id: Optional[UUID] = Field(
        default=None,
        description="Parent account ID, None for top-level accounts"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    account_type: AccountType

    @model_validator(mode='after')
    def validate_parent(self) -> 'Account':
        """An account cannot be its own parent."""
        if self.parent_id is not None and self.parent_id == self.id:
            raise ValueError("Account cannot be its own parent")
        return self

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None


class AccountBalance(BaseModel):
    """
    Balance of an account at a given time.

    Derived on demand from the transactions in storage, never persisted.
    The account type is copied in for display.
    """
    model_config = ConfigDict(frozen=True)

    account_id: UUID
    account_type: AccountType
    balance: int = Field(
        ...,
        strict=True,
        description="Signed balance in the smallest currency unit"
    )
    timestamp: AwareDatetime = Field(
        ...,
        description="Cut-off time the balance is valid for"
    )

    @field_validator('timestamp', mode='before')
    @classmethod
    def assume_utc(cls, v):
        return ensure_aware(v)
