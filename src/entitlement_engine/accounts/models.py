"""SQLAlchemy models for accounts, teams and virtual sellers."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from entitlement_engine.common.models import Base, TimestampMixin, generate_uuid
from entitlement_engine.plans.catalog import parse_role


class AccountModel(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    # Nullable on purpose: legacy rows without a role are repaired by the reconciler.
    role: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)

    @validates("role")
    def _validate_role(self, _key, value):
        if value is None:
            return None
        return parse_role(value).value


class TeamMembershipModel(Base, TimestampMixin):
    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("seller_id", "owner_id", name="uq_team_member_seller_owner"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    seller_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id"), nullable=False, index=True
    )
    owner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id"), nullable=False, index=True
    )


class TeamRequestModel(Base, TimestampMixin):
    __tablename__ = "team_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    seller_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id"), nullable=False, index=True
    )
    owner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)


class VirtualSellerModel(Base, TimestampMixin):
    __tablename__ = "virtual_sellers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    owner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
