"""Typed documents stored in JSON columns.

Each JSON column has exactly one schema per use site. Services build these
models and store ``to_column()``; readers parse with ``from_column()``.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from crackzone.schemas.common import BaseSchema


class ColumnDocument(BaseSchema):
    def to_column(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_column(cls, value: dict[str, Any] | None):
        return cls.model_validate(value or {})


# =============================================================================
# Rewards
# =============================================================================


class RewardRequirements(ColumnDocument):
    """Eligibility thresholds checked against live user stats."""

    min_level: int | None = Field(None, ge=0)
    min_experience: int | None = Field(None, ge=0)
    min_tournaments: int | None = Field(None, ge=0)
    min_matches: int | None = Field(None, ge=0)


# =============================================================================
# Orders
# =============================================================================


class OrderItem(ColumnDocument):
    product_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(1, ge=1)
    price: int = Field(..., ge=0)
    image: str | None = None


class ShippingAddress(ColumnDocument):
    full_name: str | None = None
    phone: str | None = None
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    tracking_number: str | None = None


# =============================================================================
# Matches
# =============================================================================


class MatchResultEntry(BaseSchema):
    user_id: str
    score: int = 0
    position: int = Field(..., ge=1)


class MatchResult(ColumnDocument):
    results: list[MatchResultEntry]
    submitted_by: str
    submitted_at: datetime
    notes: str | None = None


class MatchScreenshot(ColumnDocument):
    public_id: str
    url: str
    uploaded_by: str
    uploaded_at: datetime


# =============================================================================
# Transactions
# =============================================================================


class _ReviewFields(ColumnDocument):
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None


class DepositMetadata(_ReviewFields):
    kind: Literal["deposit"] = "deposit"
    payment_method: str
    reference: str | None = None


class WithdrawalMetadata(_ReviewFields):
    kind: Literal["withdrawal"] = "withdrawal"
    payment_method: str
    account_details: str | None = None


class PurchaseMetadata(_ReviewFields):
    kind: Literal["purchase"] = "purchase"
    order_id: str


class RefundMetadata(_ReviewFields):
    kind: Literal["refund"] = "refund"
    order_id: str


class RewardMetadata(_ReviewFields):
    kind: Literal["reward"] = "reward"
    reward_id: str


TransactionMetadata = Annotated[
    Union[
        DepositMetadata,
        WithdrawalMetadata,
        PurchaseMetadata,
        RefundMetadata,
        RewardMetadata,
    ],
    Field(discriminator="kind"),
]

_transaction_metadata = TypeAdapter(TransactionMetadata)


def parse_transaction_metadata(value: dict[str, Any] | None) -> TransactionMetadata | None:
    if not value:
        return None
    return _transaction_metadata.validate_python(value)


# =============================================================================
# Notifications
# =============================================================================


class NotificationMetadata(ColumnDocument):
    """References to the entity a notification is about."""

    tournament_id: str | None = None
    team_id: str | None = None
    match_id: str | None = None
    order_id: str | None = None
    transaction_id: str | None = None
    reward_id: str | None = None
    reason: str | None = None
    invited_by: str | None = None
