"""
Live entity models for the SAM data store.

This module defines the dataclasses held by a Store: people, organizational
contexts, and evidence items, plus the small value types embedded in them.

Schema Design Decisions:
    - IDs are uuid.UUID values and are never regenerated by a restore
    - Timestamps are timezone-aware datetimes, serialized as ISO-8601 strings
    - Free-form display lists (interaction chips, product cards) are plain
      JSON-compatible dicts
    - Numbers read from a file must be finite, so anything loaded can be
      written out again
    - EvidenceItem is the only entity holding references to other entities;
      its links are live Person/Context objects, not ids
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ContextKind(str, Enum):
    """Kind of organizational context."""

    HOUSEHOLD = "household"
    BUSINESS = "business"
    RECRUITING = "recruiting"


class EvidenceSource(str, Enum):
    """Where an evidence item was imported from."""

    CALENDAR = "calendar"
    MAIL = "mail"
    MESSAGE = "message"
    NOTE = "note"
    MANUAL = "manual"


class EvidenceTriageState(str, Enum):
    """Two-state triage of an evidence item."""

    NEEDS_REVIEW = "needsReview"
    DONE = "done"


class LinkTarget(str, Enum):
    """Kind of entity a proposed link points at."""

    PERSON = "person"
    CONTEXT = "context"


class LinkStatus(str, Enum):
    """Lifecycle state of a link suggestion."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class InsightKind(str, Enum):
    """Category of an insight card."""

    FOLLOW_UP = "followUp"
    CONSENT_MISSING = "consentMissing"
    RELATIONSHIP_AT_RISK = "relationshipAtRisk"
    OPPORTUNITY = "opportunity"
    COMPLIANCE_WARNING = "complianceWarning"


_MISSING = object()


def get_field(
    data: dict[str, Any], key: str, kind: type | tuple[type, ...], default: Any = _MISSING
) -> Any:
    """
    Read a typed field from a parsed JSON object.

    Absent or null values fall back to default when one is given.

    Raises:
        KeyError: If the field is required and missing.
        TypeError: If the value has the wrong type.
    """
    value = data.get(key)
    if value is None:
        if default is _MISSING:
            raise KeyError(f"Missing required field: {key}")
        return default
    # bool is an int subclass; never accept it where a number is expected
    if isinstance(value, bool) and bool not in (kind if isinstance(kind, tuple) else (kind,)):
        raise TypeError(f"Field {key} has unexpected type bool")
    if not isinstance(value, kind):
        raise TypeError(f"Field {key} has unexpected type {type(value).__name__}")
    return value


def get_number(data: dict[str, Any], key: str, default: Any = _MISSING) -> float:
    """
    Read a finite JSON number as a float.

    Raises:
        KeyError, TypeError: As for get_field().
        ValueError: If the value is NaN or infinite.
    """
    value = get_field(data, key, (int, float), default)
    if not math.isfinite(value):
        raise ValueError(f"Field {key} must be a finite number")
    return float(value)


def parse_uuid(value: Any) -> uuid.UUID:
    """Parse a UUID from a string or pass through a UUID instance."""
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str):
        raise TypeError(f"Expected UUID string, got {type(value).__name__}")
    return uuid.UUID(value)


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value)
    else:
        raise TypeError(f"Expected ISO-8601 string, got {type(value).__name__}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_datetime(value: datetime) -> str:
    """Format a datetime as an ISO-8601 string."""
    return value.isoformat()


@dataclass
class Insight:
    """
    An insight card shown on a person or context.

    Attributes:
        id: Stable identifier of the card.
        kind: Insight category.
        message: Text shown on the card.
        confidence: Confidence between 0 and 1.
        interactions_count: Interactions the insight is based on.
        consents_count: Consents the insight is based on.
    """

    id: uuid.UUID
    kind: InsightKind
    message: str
    confidence: float
    interactions_count: int = 0
    consents_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "id": str(self.id),
            "kind": self.kind.value,
            "message": self.message,
            "confidence": self.confidence,
            "interactionsCount": self.interactions_count,
            "consentsCount": self.consents_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Insight:
        """Create from dictionary."""
        return cls(
            id=parse_uuid(data.get("id")),
            kind=InsightKind(get_field(data, "kind", str)),
            message=get_field(data, "message", str),
            confidence=get_number(data, "confidence"),
            interactions_count=get_field(data, "interactionsCount", int, 0),
            consents_count=get_field(data, "consentsCount", int, 0),
        )


@dataclass
class EvidenceSignal:
    """
    A deterministic, explainable tag attached to an evidence item.

    Attributes:
        id: Stable identifier of the signal.
        kind: Signal vocabulary entry (e.g. "unlinkedEvidence").
        confidence: Confidence between 0 and 1.
        reason: Short plain-English explanation.
    """

    id: uuid.UUID
    kind: str
    confidence: float
    reason: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "id": str(self.id),
            "kind": self.kind,
            "confidence": self.confidence,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvidenceSignal:
        """Create from dictionary."""
        return cls(
            id=parse_uuid(data.get("id")),
            kind=get_field(data, "kind", str),
            confidence=get_number(data, "confidence"),
            reason=get_field(data, "reason", str),
        )


@dataclass
class ParticipantHint:
    """Raw attendee information captured when evidence was imported."""

    id: uuid.UUID
    display_name: str
    is_organizer: bool = False
    is_verified: bool = False
    raw_email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "id": str(self.id),
            "displayName": self.display_name,
            "isOrganizer": self.is_organizer,
            "isVerified": self.is_verified,
            "rawEmail": self.raw_email,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParticipantHint:
        """Create from dictionary."""
        return cls(
            id=parse_uuid(data.get("id")),
            display_name=get_field(data, "displayName", str),
            is_organizer=get_field(data, "isOrganizer", bool, False),
            is_verified=get_field(data, "isVerified", bool, False),
            raw_email=get_field(data, "rawEmail", str, None),
        )


@dataclass
class ProposedLink:
    """
    A system-generated suggestion to link evidence to a person or context.

    The suggestion only names its target by id; accepting it is what adds a
    live reference to EvidenceItem.linked_people or linked_contexts.
    """

    id: uuid.UUID
    target: LinkTarget
    target_id: uuid.UUID
    display_name: str
    confidence: float
    reason: str
    secondary_line: str | None = None
    status: LinkStatus = LinkStatus.PENDING
    decided_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "id": str(self.id),
            "target": self.target.value,
            "targetID": str(self.target_id),
            "displayName": self.display_name,
            "secondaryLine": self.secondary_line,
            "confidence": self.confidence,
            "reason": self.reason,
            "status": self.status.value,
            "decidedAt": format_datetime(self.decided_at) if self.decided_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProposedLink:
        """Create from dictionary."""
        decided_at = get_field(data, "decidedAt", str, None)
        return cls(
            id=parse_uuid(data.get("id")),
            target=LinkTarget(get_field(data, "target", str)),
            target_id=parse_uuid(data.get("targetID")),
            display_name=get_field(data, "displayName", str),
            secondary_line=get_field(data, "secondaryLine", str, None),
            confidence=get_number(data, "confidence"),
            reason=get_field(data, "reason", str),
            status=LinkStatus(get_field(data, "status", str, LinkStatus.PENDING.value)),
            decided_at=parse_datetime(decided_at) if decided_at else None,
        )


@dataclass(eq=False)
class Person:
    """
    A person tracked by the store.

    Attributes:
        id: Stable identity, preserved across backup and restore.
        display_name: Human-readable name.
        role_badges: Role tags shown next to the name (e.g. "Client").
        contact_identifier: Address-book identifier, if matched.
        email: A known email address.
        consent_alerts_count: Denormalized consent alert counter.
        review_alerts_count: Denormalized review alert counter.
        responsibility_notes: Free-form obligation notes.
        recent_interactions: Interaction chips shown in the detail view.
        insights: Insight cards shown in the detail view.
        context_chips: Context chips shown in the detail view.
    """

    id: uuid.UUID
    display_name: str
    role_badges: list[str] = field(default_factory=list)
    contact_identifier: str | None = None
    email: str | None = None
    consent_alerts_count: int = 0
    review_alerts_count: int = 0
    responsibility_notes: list[str] = field(default_factory=list)
    recent_interactions: list[dict[str, Any]] = field(default_factory=list)
    insights: list[Insight] = field(default_factory=list)
    context_chips: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def create(cls, display_name: str, **kwargs: Any) -> Person:
        """Create a new Person with an auto-generated ID."""
        return cls(id=uuid.uuid4(), display_name=display_name, **kwargs)


@dataclass(eq=False)
class Context:
    """An organizational context (household, business, recruiting group)."""

    id: uuid.UUID
    name: str
    kind: ContextKind = ContextKind.HOUSEHOLD
    consent_alert_count: int = 0
    review_alert_count: int = 0
    follow_up_alert_count: int = 0
    product_cards: list[dict[str, Any]] = field(default_factory=list)
    recent_interactions: list[dict[str, Any]] = field(default_factory=list)
    insights: list[Insight] = field(default_factory=list)

    @classmethod
    def create(cls, name: str, kind: ContextKind = ContextKind.HOUSEHOLD, **kwargs: Any) -> Context:
        """Create a new Context with an auto-generated ID."""
        return cls(id=uuid.uuid4(), name=name, kind=kind, **kwargs)


@dataclass(eq=False)
class EvidenceItem:
    """
    An evidentiary record (calendar event, email, note, ...).

    linked_people and linked_contexts hold live references to entities in
    the same store. They are the only cross-entity relationships in the
    model.
    """

    id: uuid.UUID
    source: EvidenceSource
    occurred_at: datetime
    title: str
    snippet: str = ""
    state: EvidenceTriageState = EvidenceTriageState.NEEDS_REVIEW
    source_uid: str | None = None
    body_text: str | None = None
    signals: list[EvidenceSignal] = field(default_factory=list)
    participant_hints: list[ParticipantHint] = field(default_factory=list)
    proposed_links: list[ProposedLink] = field(default_factory=list)
    linked_people: list[Person] = field(default_factory=list)
    linked_contexts: list[Context] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        title: str,
        source: EvidenceSource = EvidenceSource.MANUAL,
        occurred_at: datetime | None = None,
        **kwargs: Any,
    ) -> EvidenceItem:
        """Create a new EvidenceItem with an auto-generated ID."""
        return cls(
            id=uuid.uuid4(),
            source=source,
            occurred_at=occurred_at or datetime.now(UTC),
            title=title,
            **kwargs,
        )


# Entity types managed by a Store, least dependent first
ENTITY_TYPES: tuple[type, ...] = (Person, Context, EvidenceItem)

ENTITY_NAMES: dict[type, str] = {
    Person: "people",
    Context: "contexts",
    EvidenceItem: "evidence",
}
