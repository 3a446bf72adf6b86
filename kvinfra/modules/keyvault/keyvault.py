"""
Key Vault module.

Creates the Azure Key Vault with network ACLs and either RBAC authorization
or legacy access policies, plus keys, secrets, imported certificates, a
private endpoint, diagnostic settings and a management lock when configured.
"""

from __future__ import annotations

import base64
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from constructs import Construct

from cdktf import ITerraformDependable
from cdktf_cdktf_provider_azurerm.key_vault import KeyVault
from cdktf_cdktf_provider_azurerm.key_vault_certificate import KeyVaultCertificate
from cdktf_cdktf_provider_azurerm.key_vault_key import KeyVaultKey
from cdktf_cdktf_provider_azurerm.key_vault_secret import KeyVaultSecret
from cdktf_cdktf_provider_azurerm.management_lock import ManagementLock
from cdktf_cdktf_provider_azurerm.monitor_diagnostic_setting import (
    MonitorDiagnosticSetting,
)
from cdktf_cdktf_provider_azurerm.private_endpoint import PrivateEndpoint

from kvinfra.iac_types import AzureKeyVaultInfrastructureConfig, KeyVaultConfig


def _tenant_id() -> str:
    tenant_id = os.getenv("ARM_TENANT_ID")
    if not tenant_id:
        raise ValueError("ARM_TENANT_ID must be set for Key Vault tenant binding")
    return tenant_id


def _access_policies(kv_cfg: KeyVaultConfig, tenant_id: str) -> List[Dict[str, Any]]:
    return [
        {
            "tenant_id": p.tenant_id or tenant_id,
            "object_id": p.object_id,
            "key_permissions": p.key_permissions,
            "secret_permissions": p.secret_permissions,
            "certificate_permissions": p.certificate_permissions,
            "storage_permissions": p.storage_permissions,
        }
        for p in kv_cfg.access_policies
    ]


def provision_key_vault(
    *, scope: Construct, cfg: AzureKeyVaultInfrastructureConfig, rg_name: str, location: str
) -> Tuple[KeyVault, str]:
    """Provision Key Vault and return (vault, tenant_id)."""
    tenant_id = _tenant_id()
    kv_cfg = cfg.key_vault_config
    acls = kv_cfg.network_acls
    kv = KeyVault(
        scope,
        "keyVault",
        name=kv_cfg.vault_name,
        location=location,
        resource_group_name=rg_name,
        tenant_id=tenant_id,
        sku_name=kv_cfg.sku,
        soft_delete_retention_days=kv_cfg.soft_delete_retention_days,
        purge_protection_enabled=kv_cfg.purge_protection_enabled,
        enabled_for_deployment=kv_cfg.enabled_for_deployment,
        enabled_for_disk_encryption=kv_cfg.enabled_for_disk_encryption,
        enabled_for_template_deployment=kv_cfg.enabled_for_template_deployment,
        rbac_authorization_enabled=kv_cfg.rbac_authorization_enabled,
        public_network_access_enabled=kv_cfg.public_network_access_enabled,
        network_acls={
            "bypass": acls.bypass,
            "default_action": acls.default_action,
            "ip_rules": acls.ip_rules,
            "virtual_network_subnet_ids": acls.virtual_network_subnet_ids,
        },
        access_policy=_access_policies(kv_cfg, tenant_id) or None,
        tags=cfg.tags or None,
    )
    return kv, tenant_id


def provision_vault_objects(
    *,
    scope: Construct,
    kv_cfg: KeyVaultConfig,
    vault: KeyVault,
    depends_on: Optional[Sequence[ITerraformDependable]] = None,
) -> None:
    """Keys, secrets and certificates; created after data-plane access is granted."""
    deps = list(depends_on or []) or None
    for key in kv_cfg.keys:
        KeyVaultKey(
            scope,
            f"key-{key.name}",
            name=key.name,
            key_vault_id=vault.id,
            key_type=key.key_type,
            key_size=key.key_size if key.key_type.startswith("RSA") else None,
            curve=key.curve if key.key_type.startswith("EC") else None,
            key_opts=key.key_opts,
            expiration_date=key.expiration_date,
            depends_on=deps,
        )
    for secret in kv_cfg.secrets:
        value = os.getenv(secret.value_env)
        if not value:
            raise ValueError(
                f"Secret '{secret.name}': environment variable {secret.value_env} is not set"
            )
        KeyVaultSecret(
            scope,
            f"secret-{secret.name}",
            name=secret.name,
            value=value,
            key_vault_id=vault.id,
            content_type=secret.content_type,
            expiration_date=secret.expiration_date,
            depends_on=deps,
        )
    for cert in kv_cfg.certificates:
        path = Path(cert.path)
        if not path.exists():
            raise ValueError(f"Certificate '{cert.name}': file not found: {path}")
        password = os.getenv(cert.password_env) if cert.password_env else None
        if cert.password_env and password is None:
            raise ValueError(
                f"Certificate '{cert.name}': environment variable {cert.password_env} is not set"
            )
        KeyVaultCertificate(
            scope,
            f"certificate-{cert.name}",
            name=cert.name,
            key_vault_id=vault.id,
            certificate={
                "contents": base64.b64encode(path.read_bytes()).decode("ascii"),
                "password": password,
            },
            depends_on=deps,
        )


def provision_vault_network_and_ops(
    *,
    scope: Construct,
    kv_cfg: KeyVaultConfig,
    vault: KeyVault,
    rg_name: str,
    location: str,
) -> None:
    """Private endpoint, diagnostic setting and management lock."""
    pe = kv_cfg.private_endpoint
    if pe is not None:
        PrivateEndpoint(
            scope,
            "privateEndpointVault",
            name=f"{kv_cfg.vault_name}-pe",
            resource_group_name=rg_name,
            location=location,
            subnet_id=pe.subnet_id,
            private_service_connection={
                "name": "vault-connection",
                "private_connection_resource_id": vault.id,
                "is_manual_connection": False,
                "subresource_names": ["vault"],
            },
            private_dns_zone_group=(
                {
                    "name": "vault-dns-group",
                    "private_dns_zone_ids": pe.private_dns_zone_ids,
                }
                if pe.private_dns_zone_ids
                else None
            ),
        )

    diag = kv_cfg.diagnostics
    if diag is not None:
        MonitorDiagnosticSetting(
            scope,
            "diagnosticsVault",
            name=f"{kv_cfg.vault_name}-diag",
            target_resource_id=vault.id,
            log_analytics_workspace_id=diag.log_analytics_workspace_id,
            enabled_log=[{"category_group": g} for g in diag.log_category_groups],
        )

    lock = kv_cfg.lock
    if lock is not None:
        ManagementLock(
            scope,
            "lockVault",
            name=f"{kv_cfg.vault_name}-lock",
            scope=vault.id,
            lock_level=lock.level,
            notes=lock.notes,
        )
