"""Request context passed explicitly into ordering operations.

Carries who is acting and for which tenant, so handlers never reach for
ambient request state. Reconciliation and the timeout reaper act as the
system (no actor).
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    tenant_id: str | None = None
    actor_id: str | None = None
    actor_email: str | None = None
