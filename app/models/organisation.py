"""
Organisation model.

Represents a tenant organisation in the multi-tenant system.
"""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Organisation(UUIDPrimaryKeyMixin, Base, TimestampMixin):
    """
    Organisation model representing a tenant in the system.

    Each organisation owns its webhook subscriptions and plugin installations.
    """
    __tablename__ = "organisations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # Relationships
    webhooks = relationship(
        "WebhookSubscription",
        back_populates="organisation",
        cascade="all, delete-orphan"
    )
    integrations = relationship(
        "Integration",
        back_populates="organisation",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Organisation(id={self.id}, name={self.name}, domain={self.domain})>"
