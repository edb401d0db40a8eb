"""
Event registry.

Enumerates every domain event (`<domain>.<action>`) the platform can emit.
The vocabulary is computed once from a static catalogue of domain
operations and is used to populate "choose events" pickers and to
validate webhook subscriptions.
"""
from dataclasses import dataclass
from typing import Iterable, Iterator


@dataclass(frozen=True)
class EventOption:
    """A subscribable event: canonical identifier plus display label."""
    value: str
    label: str


@dataclass(frozen=True)
class Domain:
    """A domain and the operations in it that emit events."""
    name: str
    label: str
    actions: tuple[tuple[str, str], ...]


DOMAINS: tuple[Domain, ...] = (
    Domain("lead", "Lead", (
        ("created", "Created"),
        ("updated", "Updated"),
        ("deleted", "Deleted"),
    )),
    Domain("submission", "Submission", (
        ("created", "Created"),
        ("updated", "Updated"),
        ("deleted", "Deleted"),
    )),
    Domain("webhook", "Webhook", (
        ("created", "Created"),
        ("updated", "Updated"),
        ("deleted", "Deleted"),
    )),
    Domain("integration", "Integration", (
        ("installed", "Installed"),
        ("updated", "Updated"),
        ("uninstalled", "Uninstalled"),
    )),
    Domain("organization", "Organization", (
        ("created", "Created"),
        ("updated", "Updated"),
        ("verified", "Verified"),
        ("deleted", "Deleted"),
    )),
    Domain("membership", "Membership", (
        ("updated", "Updated"),
        ("deleted", "Deleted"),
    )),
    Domain("invitation", "Invitation", (
        ("created", "Created"),
        ("accepted", "Accepted"),
        ("rejected", "Rejected"),
        ("cancelled", "Cancelled"),
    )),
    Domain("api_key", "API Keys", (
        ("created", "Created"),
        ("updated", "Updated"),
        ("deleted", "Deleted"),
    )),
    Domain("user", "User", (
        ("updated", "Updated"),
        ("deleted", "Deleted"),
    )),
    Domain("account", "Accounts", (
        ("linked", "Linked"),
        ("unlinked", "Unlinked"),
    )),
    Domain("session", "Session", (
        ("revoked", "Revoked"),
    )),
    Domain("billing", "Billing", (
        ("checkout_session_created", "Checkout Session Created"),
        ("subscription_updated", "Subscription Updated"),
    )),
)


class EventRegistry:
    """
    Immutable event vocabulary.

    Build once at process start with `build_event_registry()` and pass it
    to whatever needs it. Iteration order follows the catalogue order.
    """

    def __init__(self, domains: Iterable[Domain]):
        self._events = tuple(
            EventOption(value=f"{domain.name}.{action}", label=f"{domain.label} - {label}")
            for domain in domains
            for action, label in domain.actions
        )
        self._values = frozenset(event.value for event in self._events)

    def list_events(self) -> list[EventOption]:
        """Return the full `{value, label}` enumeration."""
        return list(self._events)

    def __contains__(self, value: object) -> bool:
        return value in self._values

    def __iter__(self) -> Iterator[EventOption]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)


def build_event_registry(domains: Iterable[Domain] = DOMAINS) -> EventRegistry:
    """Create the process-wide event registry."""
    return EventRegistry(domains)
