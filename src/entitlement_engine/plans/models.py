"""SQLAlchemy models for owner subscriptions and seller entitlements."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from entitlement_engine.common.models import Base, TimestampMixin, generate_uuid
from entitlement_engine.plans.catalog import (
    UNLIMITED,
    SellerPlanStatus,
    parse_plan_name,
    parse_seller_plan_status,
    parse_subscription_status,
)


class SubscriptionModel(Base, TimestampMixin):
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id"), unique=True, nullable=False, index=True
    )
    plan_name: Mapped[str] = mapped_column(String(20), nullable=False, default="free")
    max_sellers: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    price_per_month: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_annual: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="trial")
    trial_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    subscription_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @validates("plan_name")
    def _validate_plan_name(self, _key, value):
        return parse_plan_name(value).value

    @validates("status")
    def _validate_status(self, _key, value):
        return parse_subscription_status(value).value


class SellerEntitlementModel(Base, TimestampMixin):
    __tablename__ = "seller_entitlements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    seller_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id"), unique=True, nullable=False, index=True
    )
    is_team_member: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    subscription_status: Mapped[str] = mapped_column(String(20), default="free", nullable=False)
    plan_type: Mapped[str] = mapped_column(String(20), default="free", nullable=False)
    sales_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sales_limit: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    can_register: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @validates("subscription_status")
    def _validate_subscription_status(self, _key, value):
        return parse_seller_plan_status(value).value

    @property
    def unlimited(self) -> bool:
        return (
            self.is_team_member
            or self.subscription_status == SellerPlanStatus.PAID.value
            or self.sales_limit == UNLIMITED
        )

    def recompute_can_register(self) -> bool:
        """Refresh the stored gate. Every writer of the inputs calls this."""
        self.can_register = self.unlimited or (self.sales_used or 0) < self.sales_limit
        return self.can_register
