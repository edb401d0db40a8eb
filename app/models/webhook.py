"""
Webhook subscription model.

SECURITY: All queries MUST include organisation_id filter.
Failure to do so will result in data leakage between tenants.
"""
from sqlalchemy import JSON, String, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class WebhookSubscription(UUIDPrimaryKeyMixin, Base, TimestampMixin):
    """
    Organisation-owned webhook endpoint.

    Pairs a destination URL and a signing secret with the set of
    event names the endpoint wants to receive.
    """
    __tablename__ = "webhooks"

    organisation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organisations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    secret: Mapped[str] = mapped_column(String(255), nullable=False)
    events: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    organisation = relationship("Organisation", back_populates="webhooks")

    def subscribes_to(self, event: str) -> bool:
        """Exact-match check; no wildcard or hierarchical matching."""
        return event in self.events

    def __repr__(self):
        return f"<WebhookSubscription(id={self.id}, org={self.organisation_id}, url={self.url})>"
