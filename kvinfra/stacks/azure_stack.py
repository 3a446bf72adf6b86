"""
Azure stack config helpers.

Pure adapters between the typed config and the CDKTF stack: building the
role validator a vault is checked with, and turning approved assignments
into azurerm ``RoleAssignment`` arguments. No CDKTF imports here.
"""

from dataclasses import asdict
from typing import Any, Dict, Optional

from kvinfra.iac_types import AzureKeyVaultInfrastructureConfig, KeyVaultConfig
from kvinfra.rbac.catalog import RoleCatalog, catalog_for_profile
from kvinfra.rbac.identity import CurrentIdentity
from kvinfra.rbac.models import PrincipalType, RoleAssignmentRequest
from kvinfra.rbac.validator import EnforcementMode, RoleAssignmentValidator


def build_validator(
    kv: KeyVaultConfig,
    identity: Optional[CurrentIdentity] = None,
    catalog: Optional[RoleCatalog] = None,
) -> RoleAssignmentValidator:
    return RoleAssignmentValidator(
        catalog=catalog or catalog_for_profile(kv.role_catalog_profile),
        identity=identity,
        mode=EnforcementMode(kv.rbac_enforcement),
    )


def azure_principal_type(principal_type: Optional[str]) -> Optional[str]:
    # Azure models managed identities as service principals
    if principal_type == PrincipalType.MANAGED_IDENTITY.value:
        return PrincipalType.SERVICE_PRINCIPAL.value
    return principal_type


def role_assignment_args(
    assignment: RoleAssignmentRequest, *, scope_id: str, catalog: RoleCatalog
) -> Dict[str, Any]:
    """Keyword arguments for an azurerm RoleAssignment at the vault scope."""
    args: Dict[str, Any] = {
        "scope": scope_id,
        "principal_id": assignment.principal_id,
        "principal_type": azure_principal_type(assignment.principal_type),
        "role_definition_name": catalog.canonical_name(assignment.role_reference),
    }
    optional = {
        "description": assignment.description,
        "condition": assignment.condition,
        "condition_version": assignment.condition_version,
        "delegated_managed_identity_resource_id": assignment.delegated_managed_identity_resource_id,
    }
    args.update({k: v for k, v in optional.items() if v is not None})
    return args


def synth_config_json(config: AzureKeyVaultInfrastructureConfig) -> Dict[str, Any]:
    """Convert dataclasses to plain dict for diagnostics or outputs."""
    return asdict(config)
