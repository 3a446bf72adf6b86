from __future__ import annotations

from typing import List, Sequence

from kvinfra.rbac.models import Rejected


class RbacPolicyError(ValueError):
    """Base error for role assignment policy violations."""


class RoleValidationError(RbacPolicyError):
    def __init__(self, rejections: Sequence[Rejected], approved_roles: Sequence[str]) -> None:
        self.rejections: List[Rejected] = list(rejections)
        self.approved_roles: List[str] = list(approved_roles)
        lines = [f"{len(self.rejections)} role assignment(s) rejected:"]
        for r in self.rejections:
            lines.append(f"  - {r.key}: {r.reason.value}: {r.message}")
        lines.append("Approved roles: " + ", ".join(self.approved_roles))
        super().__init__("\n".join(lines))


class ConflictingAccessModelError(RbacPolicyError):
    pass


class IdentityResolutionError(RbacPolicyError):
    pass
