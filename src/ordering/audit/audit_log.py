"""Audit log: append-only record of business events on orders.

Entries are written once and never changed. Each one names the event,
the subject it concerns, who acted (None for the system), free-form
metadata and a sentence a human can read in an admin screen.
"""

import json
from datetime import UTC, datetime

import structlog
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering

logger = structlog.get_logger(__name__)


@ordering.aggregate
class AuditLogEntry:
    event_name = String(required=True, max_length=100)
    subject_type = String(required=True, max_length=50)
    subject_id = Identifier(required=True)
    tenant_id = Identifier()
    actor_id = Identifier()
    actor_email = String(max_length=255)
    details = Text()  # JSON object
    message = String(max_length=1000)
    occurred_at = DateTime(required=True)

    @classmethod
    def record(cls, event_name, subject, actor=None, metadata=None, message=None):
        """Build an entry for `subject` (any aggregate with an id).

        `actor` is a RequestContext or None for system actions.
        """
        return cls(
            event_name=event_name,
            subject_type=type(subject).__name__,
            subject_id=str(subject.id),
            tenant_id=getattr(subject, "tenant_id", None) or (actor.tenant_id if actor else None),
            actor_id=actor.actor_id if actor else None,
            actor_email=actor.actor_email if actor else None,
            details=json.dumps(metadata or {}, default=str),
            message=message,
            occurred_at=datetime.now(UTC),
        )

    @property
    def details_dict(self) -> dict:
        return json.loads(self.details) if self.details else {}


def record_audit(event_name, subject, actor=None, metadata=None, message=None) -> AuditLogEntry:
    entry = AuditLogEntry.record(event_name, subject, actor=actor, metadata=metadata, message=message)
    current_domain.repository_for(AuditLogEntry).add(entry)
    logger.info("Audit entry recorded", event_name=event_name, subject_id=entry.subject_id)
    return entry


def entries_for(subject_id, event_name=None) -> list[AuditLogEntry]:
    filters = {"subject_id": str(subject_id)}
    if event_name:
        filters["event_name"] = event_name
    return current_domain.repository_for(AuditLogEntry)._dao.query.filter(**filters).all().items
