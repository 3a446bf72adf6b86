"""
Key Vault role assignments.

Only assignments approved by the role validator are declared; in filter
mode the dropped keys are returned so the stack can surface them.
"""

from __future__ import annotations

from typing import List, Tuple

from constructs import Construct

from cdktf_cdktf_provider_azurerm.key_vault import KeyVault
from cdktf_cdktf_provider_azurerm.role_assignment import RoleAssignment

from kvinfra.rbac.validator import BatchResult, RoleAssignmentValidator
from kvinfra.stacks.azure_stack import role_assignment_args
from kvinfra.iac_types import KeyVaultConfig


def provision_role_assignments(
    *,
    scope: Construct,
    kv_cfg: KeyVaultConfig,
    vault: KeyVault,
    validator: RoleAssignmentValidator,
) -> Tuple[BatchResult, List[RoleAssignment]]:
    """Validate requested assignments and declare the approved ones."""
    result = validator.enforce(kv_cfg.role_assignments)
    created: List[RoleAssignment] = []
    for key, assignment in result.approved.items():
        created.append(
            RoleAssignment(
                scope,
                f"roleAssignment-{key}",
                **role_assignment_args(
                    assignment, scope_id=vault.id, catalog=validator.catalog
                ),
            )
        )
    return result, created
