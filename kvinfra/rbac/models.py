from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple, Union


class PrincipalType(str, Enum):
    USER = "User"
    GROUP = "Group"
    SERVICE_PRINCIPAL = "ServicePrincipal"
    MANAGED_IDENTITY = "ManagedIdentity"


ALLOWED_PRINCIPAL_TYPES: Tuple[str, ...] = tuple(t.value for t in PrincipalType)


class RejectionReason(str, Enum):
    INVALID_PRINCIPAL_TYPE = "InvalidPrincipalType"
    INVALID_PRINCIPAL_ID = "InvalidPrincipalId"
    BLOCKED_ROLE = "BlockedRole"
    UNAPPROVED_ROLE = "UnapprovedRole"


@dataclass(frozen=True)
class RoleAssignmentRequest:
    key: str
    role_reference: str
    principal_id: Optional[str] = None
    principal_type: Optional[str] = None  # User/Group/ServicePrincipal/ManagedIdentity
    description: Optional[str] = None
    condition: Optional[str] = None
    condition_version: Optional[str] = None
    delegated_managed_identity_resource_id: Optional[str] = None

    def with_principal(
        self, principal_id: str, principal_type: Optional[str]
    ) -> "RoleAssignmentRequest":
        return replace(self, principal_id=principal_id, principal_type=principal_type)


@dataclass(frozen=True)
class Identity:
    """Principal the deployment runs as."""

    principal_id: str
    tenant_id: str
    principal_type: Optional[str] = None


@dataclass(frozen=True)
class Accepted:
    assignment: RoleAssignmentRequest

    @property
    def key(self) -> str:
        return self.assignment.key

    @property
    def principal_id(self) -> str:
        return self.assignment.principal_id or ""


@dataclass(frozen=True)
class Rejected:
    key: str
    reason: RejectionReason
    value: str
    message: str


ValidationOutcome = Union[Accepted, Rejected]
