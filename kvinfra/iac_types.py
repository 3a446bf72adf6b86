from dataclasses import dataclass, field
from typing import Dict, List, Optional

from kvinfra.rbac.catalog import CATALOG_PROFILES
from kvinfra.rbac.models import RoleAssignmentRequest
from kvinfra.rbac.validator import ENFORCEMENT_MODES, check_access_model
from kvinfra.utils.naming import validate_key_vault_name

KEY_TYPES = ("RSA", "RSA-HSM", "EC", "EC-HSM")
HSM_KEY_TYPES = ("RSA-HSM", "EC-HSM")


@dataclass(frozen=True)
class NetworkAclsConfig:
    bypass: str = "AzureServices"  # AzureServices or None
    default_action: str = "Deny"  # Allow or Deny
    ip_rules: List[str] = field(default_factory=list)
    virtual_network_subnet_ids: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.bypass not in ("AzureServices", "None"):
            raise ValueError(f"network_acls.bypass must be AzureServices or None: {self.bypass}")
        if self.default_action not in ("Allow", "Deny"):
            raise ValueError(
                f"network_acls.default_action must be Allow or Deny: {self.default_action}"
            )


@dataclass(frozen=True)
class AccessPolicyConfig:
    object_id: str
    tenant_id: Optional[str] = None  # defaults to the vault tenant
    key_permissions: List[str] = field(default_factory=list)
    secret_permissions: List[str] = field(default_factory=list)
    certificate_permissions: List[str] = field(default_factory=list)
    storage_permissions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class KeyConfig:
    name: str
    key_type: str = "RSA"
    key_size: Optional[int] = 2048
    curve: Optional[str] = None  # EC keys only
    key_opts: List[str] = field(
        default_factory=lambda: ["decrypt", "encrypt", "sign", "unwrapKey", "verify", "wrapKey"]
    )
    expiration_date: Optional[str] = None

    def __post_init__(self) -> None:
        if self.key_type not in KEY_TYPES:
            raise ValueError(f"Key '{self.name}': key_type must be one of {', '.join(KEY_TYPES)}")


@dataclass(frozen=True)
class SecretConfig:
    name: str
    value_env: str  # env var holding the secret value
    content_type: Optional[str] = None
    expiration_date: Optional[str] = None


@dataclass(frozen=True)
class CertificateConfig:
    name: str
    path: str  # PFX/PEM bundle to import
    password_env: Optional[str] = None


@dataclass(frozen=True)
class PrivateEndpointConfig:
    subnet_id: str
    private_dns_zone_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DiagnosticsConfig:
    log_analytics_workspace_id: str
    log_category_groups: List[str] = field(default_factory=lambda: ["allLogs"])


@dataclass(frozen=True)
class LockConfig:
    level: str = "CanNotDelete"  # CanNotDelete or ReadOnly
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.level not in ("CanNotDelete", "ReadOnly"):
            raise ValueError(f"lock.level must be CanNotDelete or ReadOnly: {self.level}")


@dataclass(frozen=True)
class KeyVaultConfig:
    vault_name: str
    sku: str = "standard"
    soft_delete_retention_days: int = 90
    purge_protection_enabled: bool = True
    enabled_for_deployment: bool = False
    enabled_for_disk_encryption: bool = False
    enabled_for_template_deployment: bool = False
    public_network_access_enabled: bool = False
    rbac_authorization_enabled: bool = True
    rbac_enforcement: str = "hard-fail"  # hard-fail or filter
    role_catalog_profile: str = "standard"  # standard or strict
    network_acls: NetworkAclsConfig = field(default_factory=NetworkAclsConfig)
    access_policies: List[AccessPolicyConfig] = field(default_factory=list)
    role_assignments: Dict[str, RoleAssignmentRequest] = field(default_factory=dict)
    keys: List[KeyConfig] = field(default_factory=list)
    secrets: List[SecretConfig] = field(default_factory=list)
    certificates: List[CertificateConfig] = field(default_factory=list)
    private_endpoint: Optional[PrivateEndpointConfig] = None
    diagnostics: Optional[DiagnosticsConfig] = None
    lock: Optional[LockConfig] = None

    def __post_init__(self) -> None:
        validate_key_vault_name(self.vault_name)
        if self.sku not in ("standard", "premium"):
            raise ValueError(f"kv_sku must be standard or premium: {self.sku}")
        if not 7 <= self.soft_delete_retention_days <= 90:
            raise ValueError(
                "kv_soft_delete_retention_days must be between 7 and 90: "
                f"{self.soft_delete_retention_days}"
            )
        if self.rbac_enforcement not in ENFORCEMENT_MODES:
            raise ValueError(
                f"kv_rbac_enforcement must be one of {', '.join(ENFORCEMENT_MODES)}: "
                f"{self.rbac_enforcement}"
            )
        if self.role_catalog_profile not in CATALOG_PROFILES:
            raise ValueError(
                f"kv_role_catalog must be one of {', '.join(CATALOG_PROFILES)}: "
                f"{self.role_catalog_profile}"
            )
        for key in self.keys:
            if key.key_type in HSM_KEY_TYPES and self.sku != "premium":
                raise ValueError(f"Key '{key.name}': {key.key_type} requires the premium sku")
        check_access_model(
            rbac_authorization_enabled=self.rbac_authorization_enabled,
            access_policy_count=len(self.access_policies),
            role_assignment_keys=list(self.role_assignments),
        )


@dataclass(frozen=True)
class AzureKeyVaultInfrastructureConfig:
    resource_group_name: str
    location: str
    key_vault_config: KeyVaultConfig
    tags: Dict[str, str] = field(default_factory=dict)
