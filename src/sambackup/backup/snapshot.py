"""
Snapshot records: the flat, versioned form of the whole store.

A Snapshot is built once per export and consumed once per restore. Records
are plain field copies of live entities; relationships are carried only as
id lists on EvidenceRecord, never as object references, so the graph can be
rebuilt in two passes without forward references.

Field names in to_dict()/from_dict() are the camelCase names of the backup
file format and must not change without bumping SUPPORTED_VERSION.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sambackup.storage.models import (
    Context,
    ContextKind,
    EvidenceItem,
    EvidenceSignal,
    EvidenceSource,
    EvidenceTriageState,
    Insight,
    ParticipantHint,
    Person,
    ProposedLink,
    format_datetime,
    get_field,
    parse_datetime,
    parse_uuid,
)

# Format version written by this build. Bump on breaking shape changes.
SUPPORTED_VERSION = 1


def _str_list(data: dict[str, Any], key: str) -> list[str]:
    values = get_field(data, key, list, [])
    if not all(isinstance(v, str) for v in values):
        raise TypeError(f"Field {key} must be a list of strings")
    return list(values)


def _dict_list(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    values = get_field(data, key, list, [])
    if not all(isinstance(v, dict) for v in values):
        raise TypeError(f"Field {key} must be a list of objects")
    return [dict(v) for v in values]


def _id_list(data: dict[str, Any], key: str) -> list[uuid.UUID]:
    return unique_ids(parse_uuid(v) for v in get_field(data, key, list, []))


def unique_ids(ids: Any) -> list[uuid.UUID]:
    """Deduplicate ids, keeping first-seen order."""
    return list(dict.fromkeys(ids))


@dataclass
class PersonRecord:
    """Serialized form of a Person."""

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
    def from_entity(cls, person: Person) -> PersonRecord:
        """Copy the fields of a live Person."""
        return cls(
            id=person.id,
            display_name=person.display_name,
            role_badges=list(person.role_badges),
            contact_identifier=person.contact_identifier,
            email=person.email,
            consent_alerts_count=person.consent_alerts_count,
            review_alerts_count=person.review_alerts_count,
            responsibility_notes=list(person.responsibility_notes),
            recent_interactions=[dict(i) for i in person.recent_interactions],
            insights=list(person.insights),
            context_chips=[dict(c) for c in person.context_chips],
        )

    def make_entity(self) -> Person:
        """Build a bare Person with the original id."""
        return Person(
            id=self.id,
            display_name=self.display_name,
            role_badges=list(self.role_badges),
            contact_identifier=self.contact_identifier,
            email=self.email,
            consent_alerts_count=self.consent_alerts_count,
            review_alerts_count=self.review_alerts_count,
            responsibility_notes=list(self.responsibility_notes),
            recent_interactions=[dict(i) for i in self.recent_interactions],
            insights=list(self.insights),
            context_chips=[dict(c) for c in self.context_chips],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the backup file representation."""
        return {
            "id": str(self.id),
            "displayName": self.display_name,
            "roleBadges": self.role_badges,
            "contactIdentifier": self.contact_identifier,
            "email": self.email,
            "consentAlertsCount": self.consent_alerts_count,
            "reviewAlertsCount": self.review_alerts_count,
            "responsibilityNotes": self.responsibility_notes,
            "recentInteractions": self.recent_interactions,
            "insights": [i.to_dict() for i in self.insights],
            "contextChips": self.context_chips,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersonRecord:
        """Create from the backup file representation."""
        return cls(
            id=parse_uuid(data.get("id")),
            display_name=get_field(data, "displayName", str),
            role_badges=_str_list(data, "roleBadges"),
            contact_identifier=get_field(data, "contactIdentifier", str, None),
            email=get_field(data, "email", str, None),
            consent_alerts_count=get_field(data, "consentAlertsCount", int, 0),
            review_alerts_count=get_field(data, "reviewAlertsCount", int, 0),
            responsibility_notes=_str_list(data, "responsibilityNotes"),
            recent_interactions=_dict_list(data, "recentInteractions"),
            insights=[Insight.from_dict(d) for d in _dict_list(data, "insights")],
            context_chips=_dict_list(data, "contextChips"),
        )


@dataclass
class ContextRecord:
    """Serialized form of a Context."""

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
    def from_entity(cls, context: Context) -> ContextRecord:
        """Copy the fields of a live Context."""
        return cls(
            id=context.id,
            name=context.name,
            kind=ContextKind(context.kind),
            consent_alert_count=context.consent_alert_count,
            review_alert_count=context.review_alert_count,
            follow_up_alert_count=context.follow_up_alert_count,
            product_cards=[dict(p) for p in context.product_cards],
            recent_interactions=[dict(i) for i in context.recent_interactions],
            insights=list(context.insights),
        )

    def make_entity(self) -> Context:
        """Build a bare Context with the original id."""
        return Context(
            id=self.id,
            name=self.name,
            kind=self.kind,
            consent_alert_count=self.consent_alert_count,
            review_alert_count=self.review_alert_count,
            follow_up_alert_count=self.follow_up_alert_count,
            product_cards=[dict(p) for p in self.product_cards],
            recent_interactions=[dict(i) for i in self.recent_interactions],
            insights=list(self.insights),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the backup file representation."""
        return {
            "id": str(self.id),
            "name": self.name,
            "kind": self.kind.value,
            "consentAlertCount": self.consent_alert_count,
            "reviewAlertCount": self.review_alert_count,
            "followUpAlertCount": self.follow_up_alert_count,
            "productCards": self.product_cards,
            "recentInteractions": self.recent_interactions,
            "insights": [i.to_dict() for i in self.insights],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContextRecord:
        """Create from the backup file representation."""
        return cls(
            id=parse_uuid(data.get("id")),
            name=get_field(data, "name", str),
            kind=ContextKind(get_field(data, "kind", str)),
            consent_alert_count=get_field(data, "consentAlertCount", int, 0),
            review_alert_count=get_field(data, "reviewAlertCount", int, 0),
            follow_up_alert_count=get_field(data, "followUpAlertCount", int, 0),
            product_cards=_dict_list(data, "productCards"),
            recent_interactions=_dict_list(data, "recentInteractions"),
            insights=[Insight.from_dict(d) for d in _dict_list(data, "insights")],
        )


@dataclass
class EvidenceRecord:
    """
    Serialized form of an EvidenceItem.

    linked_people and linked_contexts are id lists. Ids that do not resolve
    to a record in the same snapshot are tolerated here and dropped on
    restore.
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
    linked_people: list[uuid.UUID] = field(default_factory=list)
    linked_contexts: list[uuid.UUID] = field(default_factory=list)

    @classmethod
    def from_entity(cls, item: EvidenceItem) -> EvidenceRecord:
        """Copy the fields of a live EvidenceItem, flattening links to ids."""
        return cls(
            id=item.id,
            source_uid=item.source_uid,
            source=EvidenceSource(item.source),
            state=EvidenceTriageState(item.state),
            occurred_at=item.occurred_at,
            title=item.title,
            snippet=item.snippet,
            body_text=item.body_text,
            signals=list(item.signals),
            participant_hints=list(item.participant_hints),
            proposed_links=list(item.proposed_links),
            linked_people=unique_ids(p.id for p in item.linked_people),
            linked_contexts=unique_ids(c.id for c in item.linked_contexts),
        )

    def make_entity(self) -> EvidenceItem:
        """Build a bare EvidenceItem with the original id and no links."""
        return EvidenceItem(
            id=self.id,
            source_uid=self.source_uid,
            source=self.source,
            state=self.state,
            occurred_at=self.occurred_at,
            title=self.title,
            snippet=self.snippet,
            body_text=self.body_text,
            signals=list(self.signals),
            participant_hints=list(self.participant_hints),
            proposed_links=list(self.proposed_links),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the backup file representation."""
        return {
            "id": str(self.id),
            "sourceUID": self.source_uid,
            "source": self.source.value,
            "state": self.state.value,
            "occurredAt": format_datetime(self.occurred_at),
            "title": self.title,
            "snippet": self.snippet,
            "bodyText": self.body_text,
            "signals": [s.to_dict() for s in self.signals],
            "participantHints": [h.to_dict() for h in self.participant_hints],
            "proposedLinks": [p.to_dict() for p in self.proposed_links],
            "linkedPeople": [str(i) for i in self.linked_people],
            "linkedContexts": [str(i) for i in self.linked_contexts],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvidenceRecord:
        """Create from the backup file representation."""
        return cls(
            id=parse_uuid(data.get("id")),
            source_uid=get_field(data, "sourceUID", str, None),
            source=EvidenceSource(get_field(data, "source", str)),
            state=EvidenceTriageState(
                get_field(data, "state", str, EvidenceTriageState.NEEDS_REVIEW.value)
            ),
            occurred_at=parse_datetime(get_field(data, "occurredAt", str)),
            title=get_field(data, "title", str),
            snippet=get_field(data, "snippet", str, ""),
            body_text=get_field(data, "bodyText", str, None),
            signals=[EvidenceSignal.from_dict(d) for d in _dict_list(data, "signals")],
            participant_hints=[
                ParticipantHint.from_dict(d) for d in _dict_list(data, "participantHints")
            ],
            proposed_links=[
                ProposedLink.from_dict(d) for d in _dict_list(data, "proposedLinks")
            ],
            linked_people=_id_list(data, "linkedPeople"),
            linked_contexts=_id_list(data, "linkedContexts"),
        )


@dataclass
class Snapshot:
    """
    Versioned envelope holding every record of the store at one instant.

    Attributes:
        version: Format version of the writer.
        created_at: ISO-8601 creation timestamp (informational only).
        people: Person records.
        contexts: Context records.
        evidence: Evidence records.
    """

    version: int
    created_at: str
    people: list[PersonRecord] = field(default_factory=list)
    contexts: list[ContextRecord] = field(default_factory=list)
    evidence: list[EvidenceRecord] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        people: list[PersonRecord] | None = None,
        contexts: list[ContextRecord] | None = None,
        evidence: list[EvidenceRecord] | None = None,
    ) -> Snapshot:
        """Create a snapshot at the current format version, stamped now."""
        return cls(
            version=SUPPORTED_VERSION,
            created_at=datetime.now(UTC).isoformat(timespec="milliseconds"),
            people=people or [],
            contexts=contexts or [],
            evidence=evidence or [],
        )

    def counts(self) -> dict[str, int]:
        """Number of records per collection."""
        return {
            "people": len(self.people),
            "contexts": len(self.contexts),
            "evidence": len(self.evidence),
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to the backup file representation."""
        return {
            "version": self.version,
            "createdAt": self.created_at,
            "people": [p.to_dict() for p in self.people],
            "contexts": [c.to_dict() for c in self.contexts],
            "evidence": [e.to_dict() for e in self.evidence],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        """
        Create from the backup file representation.

        Raises:
            KeyError, TypeError, ValueError: If the structure is invalid.
        """
        return cls(
            version=get_field(data, "version", int),
            created_at=get_field(data, "createdAt", str, ""),
            people=[PersonRecord.from_dict(d) for d in _dict_list(data, "people")],
            contexts=[ContextRecord.from_dict(d) for d in _dict_list(data, "contexts")],
            evidence=[EvidenceRecord.from_dict(d) for d in _dict_list(data, "evidence")],
        )
