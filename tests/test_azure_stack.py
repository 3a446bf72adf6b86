from __future__ import annotations

import pytest

from kvinfra.iac_types import AzureKeyVaultInfrastructureConfig, KeyVaultConfig
from kvinfra.rbac.errors import RoleValidationError
from kvinfra.rbac.models import RoleAssignmentRequest
from kvinfra.rbac.validator import EnforcementMode
from kvinfra.stacks.azure_stack import (
    azure_principal_type,
    build_validator,
    role_assignment_args,
    synth_config_json,
)

VAULT_ID = "${azurerm_key_vault.keyVault.id}"
USER_ID = "11111111-1111-1111-1111-111111111111"


def make_config(**kv_overrides) -> AzureKeyVaultInfrastructureConfig:
    return AzureKeyVaultInfrastructureConfig(
        resource_group_name="rg-eus2-pay-dev-01",
        location="eastus2",
        key_vault_config=KeyVaultConfig(vault_name="kv-eus2-pay-dev-01", **kv_overrides),
    )


def test_role_assignment_args_by_id_uses_canonical_name(catalog):
    assignment = RoleAssignmentRequest(
        key="app",
        role_reference="4633458b-17de-408a-b874-0445c86b69e6",
        principal_id=USER_ID,
        principal_type="ManagedIdentity",
        condition="@Resource[x] StringEquals 'y'",
        condition_version="2.0",
    )
    args = role_assignment_args(assignment, scope_id=VAULT_ID, catalog=catalog)
    assert args == {
        "scope": VAULT_ID,
        "principal_id": USER_ID,
        "principal_type": "ServicePrincipal",
        "role_definition_name": "Key Vault Secrets User",
        "condition": "@Resource[x] StringEquals 'y'",
        "condition_version": "2.0",
    }


def test_azure_principal_type():
    assert azure_principal_type("ManagedIdentity") == "ServicePrincipal"
    assert azure_principal_type("Group") == "Group"
    assert azure_principal_type(None) is None


def test_build_validator_follows_config():
    validator = build_validator(
        KeyVaultConfig(
            vault_name="kv-eus2-pay-dev-01",
            rbac_enforcement="filter",
            role_catalog_profile="strict",
        )
    )
    assert validator.mode is EnforcementMode.FILTER
    assert not validator.catalog.is_approved("Key Vault Data Access Administrator")


def test_config_validator_hard_fail():
    cfg = make_config(
        role_assignments={
            "owner": RoleAssignmentRequest(
                key="owner", role_reference="Owner", principal_id=USER_ID, principal_type="User"
            )
        }
    )
    with pytest.raises(RoleValidationError):
        build_validator(cfg.key_vault_config).enforce(cfg.key_vault_config.role_assignments)


def test_config_validator_filter(current_identity):
    cfg = make_config(
        rbac_enforcement="filter",
        role_assignments={
            "me": RoleAssignmentRequest(key="me", role_reference="Key Vault Secrets Officer"),
            "owner": RoleAssignmentRequest(
                key="owner", role_reference="Owner", principal_id=USER_ID, principal_type="User"
            ),
        },
    )
    kv = cfg.key_vault_config
    result = build_validator(kv, current_identity).enforce(kv.role_assignments)
    assert list(result.approved) == ["me"]
    assert result.approved["me"].principal_id == current_identity.identity.principal_id
    assert result.dropped == ["owner"]


def test_synth_config_json_is_plain_data():
    cfg = make_config(
        role_assignments={
            "a": RoleAssignmentRequest(key="a", role_reference="Reader", principal_type="Group")
        }
    )
    data = synth_config_json(cfg)
    assert data["key_vault_config"]["vault_name"] == "kv-eus2-pay-dev-01"
    assert data["key_vault_config"]["role_assignments"]["a"]["role_reference"] == "Reader"
    assert data["key_vault_config"]["network_acls"]["default_action"] == "Deny"
