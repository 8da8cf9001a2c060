"""Authenticated caller as supplied by the identity provider."""

from __future__ import annotations

from dataclasses import dataclass, field

TENANT_ADMIN_ROLE = "admin"


@dataclass(frozen=True, slots=True)
class Principal:
    """User id, tenant id and tenant-level roles for one request."""

    user_id: int
    tenant_id: int
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_tenant_admin(self) -> bool:
        return TENANT_ADMIN_ROLE in self.roles
