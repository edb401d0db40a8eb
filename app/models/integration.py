"""
Plugin installation model.

SECURITY: All queries MUST include organisation_id filter.
Failure to do so will result in data leakage between tenants.
"""
from typing import Any
from sqlalchemy import JSON, Boolean, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Integration(UUIDPrimaryKeyMixin, Base, TimestampMixin):
    """
    An organisation's installed instance of a plugin.

    `provider` is the plugin slug; `config` holds the provider-specific
    settings validated against the plugin's schema at install time.
    """
    __tablename__ = "integrations"
    __table_args__ = (
        UniqueConstraint("provider", "organisation_id", name="uq_integrations_provider_org"),
    )

    organisation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organisations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    provider: Mapped[str] = mapped_column(String(64), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    organisation = relationship("Organisation", back_populates="integrations")

    def __repr__(self):
        return f"<Integration(provider={self.provider}, org={self.organisation_id}, enabled={self.enabled})>"
