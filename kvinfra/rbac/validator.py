"""
Role assignment validator and filter.

Every requested assignment goes through the same checks, in order:
principal resolution, principal type, principal id format, blocked roles,
catalog membership. The first failing check decides the rejection reason.

Two enforcement modes exist. ``HARD_FAIL`` (default) rejects the whole
batch when any entry fails. ``FILTER`` drops failing entries, logs each
drop, and exposes them on ``BatchResult.dropped``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from kvinfra.rbac.catalog import RoleCatalog
from kvinfra.rbac.errors import ConflictingAccessModelError, RoleValidationError
from kvinfra.rbac.identity import CurrentIdentity
from kvinfra.rbac.models import (
    ALLOWED_PRINCIPAL_TYPES,
    Accepted,
    Identity,
    Rejected,
    RejectionReason,
    RoleAssignmentRequest,
    ValidationOutcome,
)

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)


class EnforcementMode(str, Enum):
    HARD_FAIL = "hard-fail"
    FILTER = "filter"


ENFORCEMENT_MODES = tuple(m.value for m in EnforcementMode)


@dataclass(frozen=True)
class BatchResult:
    outcomes: Dict[str, ValidationOutcome]

    @property
    def approved(self) -> Dict[str, RoleAssignmentRequest]:
        return {
            k: o.assignment for k, o in self.outcomes.items() if isinstance(o, Accepted)
        }

    @property
    def rejected(self) -> List[Rejected]:
        return [o for o in self.outcomes.values() if isinstance(o, Rejected)]

    @property
    def dropped(self) -> List[str]:
        return [r.key for r in self.rejected]

    @property
    def ok(self) -> bool:
        return not self.rejected


class RoleAssignmentValidator:
    def __init__(
        self,
        catalog: RoleCatalog,
        identity: Optional[CurrentIdentity] = None,
        mode: EnforcementMode = EnforcementMode.HARD_FAIL,
    ) -> None:
        self.catalog = catalog
        self.identity = identity
        self.mode = EnforcementMode(mode)

    def _needs_identity(self, requests: Mapping[str, RoleAssignmentRequest]) -> bool:
        return any(not r.principal_id for r in requests.values())

    def _resolve_identity(self) -> Optional[Identity]:
        # without a source, requests keep an empty principal_id and are rejected
        if self.identity is None:
            return None
        return self.identity.resolve()

    def _resolve_principal(
        self, request: RoleAssignmentRequest, current: Optional[Identity]
    ) -> RoleAssignmentRequest:
        if request.principal_id or current is None:
            return request
        return request.with_principal(
            current.principal_id, request.principal_type or current.principal_type
        )

    def check(self, request: RoleAssignmentRequest) -> ValidationOutcome:
        """Run the policy checks on a principal-resolved request."""
        key = request.key
        if request.principal_type not in ALLOWED_PRINCIPAL_TYPES:
            return Rejected(
                key,
                RejectionReason.INVALID_PRINCIPAL_TYPE,
                str(request.principal_type),
                f"principal_type must be one of {', '.join(ALLOWED_PRINCIPAL_TYPES)}",
            )
        if not request.principal_id or not UUID_PATTERN.fullmatch(request.principal_id):
            return Rejected(
                key,
                RejectionReason.INVALID_PRINCIPAL_ID,
                str(request.principal_id),
                "principal_id must be an object id (UUID)",
            )
        role = request.role_reference
        if self.catalog.is_blocked(role):
            if self.catalog.is_custom_role_id(role):
                message = "custom role definitions are never assignable"
            else:
                message = "privileged role is blocked"
            return Rejected(key, RejectionReason.BLOCKED_ROLE, role, message)
        if not self.catalog.is_approved(role):
            return Rejected(
                key,
                RejectionReason.UNAPPROVED_ROLE,
                role,
                "role is not in the approved catalog",
            )
        return Accepted(request)

    def evaluate(self, requests: Mapping[str, RoleAssignmentRequest]) -> BatchResult:
        """Validate a batch without raising; one outcome per key."""
        current: Optional[Identity] = None
        if self._needs_identity(requests):
            current = self._resolve_identity()
        outcomes: Dict[str, ValidationOutcome] = {}
        for key, request in requests.items():
            outcomes[key] = self.check(self._resolve_principal(request, current))
        return BatchResult(outcomes=outcomes)

    def enforce(self, requests: Mapping[str, RoleAssignmentRequest]) -> BatchResult:
        result = self.evaluate(requests)
        if result.ok:
            return result
        if self.mode is EnforcementMode.HARD_FAIL:
            raise RoleValidationError(
                result.rejected, self.catalog.approved_role_names()
            )
        for r in result.rejected:
            logger.warning(
                "Dropping role assignment %s (%s): %s [%s]",
                r.key,
                r.reason.value,
                r.message,
                r.value,
            )
        logger.warning(
            "%d of %d role assignment(s) dropped", len(result.rejected), len(requests)
        )
        return result


def check_access_model(
    *,
    rbac_authorization_enabled: bool,
    access_policy_count: int,
    role_assignment_keys: Sequence[str],
) -> None:
    """Reject vaults that mix legacy access policies with RBAC."""
    if access_policy_count and role_assignment_keys:
        raise ConflictingAccessModelError(
            "Legacy access policies and role assignments cannot be combined on one vault "
            f"(role assignments: {', '.join(role_assignment_keys)})"
        )
    if not rbac_authorization_enabled and role_assignment_keys:
        raise ConflictingAccessModelError(
            "Role assignments require rbac_authorization_enabled = true "
            f"(role assignments: {', '.join(role_assignment_keys)})"
        )
    if rbac_authorization_enabled and access_policy_count:
        raise ConflictingAccessModelError(
            "Access policies are ignored when rbac_authorization_enabled = true; "
            "disable RBAC authorization or remove the access policies"
        )
