"""
Config loader for tfvars + vault definition JSON -> typed config used by the CDKTF stack.

Scalar settings come from a minimal subset of .tfvars syntax. Structured
sections (role assignments, access policies, network ACLs, keys, secrets,
certificates, private endpoint, diagnostics, lock, tags) come from the JSON
file named by ``kv_definition_file``.
"""

from __future__ import annotations

import json
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from kvinfra.iac_types import (
    AccessPolicyConfig,
    AzureKeyVaultInfrastructureConfig,
    CertificateConfig,
    DiagnosticsConfig,
    KeyConfig,
    KeyVaultConfig,
    LockConfig,
    NetworkAclsConfig,
    PrivateEndpointConfig,
    SecretConfig,
)
from kvinfra.rbac.models import RoleAssignmentRequest
from kvinfra.utils.naming import NamingParts, build_name

T = TypeVar("T")

DEFAULT_TFVARS_FILE = "vars/dev.tfvars"

# tfvars key -> (KeyVaultConfig field, converter name)
_KV_SCALARS = {
    "kv_sku": ("sku", "str"),
    "kv_soft_delete_retention_days": ("soft_delete_retention_days", "int"),
    "kv_purge_protection_enabled": ("purge_protection_enabled", "bool"),
    "kv_enabled_for_deployment": ("enabled_for_deployment", "bool"),
    "kv_enabled_for_disk_encryption": ("enabled_for_disk_encryption", "bool"),
    "kv_enabled_for_template_deployment": ("enabled_for_template_deployment", "bool"),
    "kv_public_network_access_enabled": ("public_network_access_enabled", "bool"),
    "kv_rbac_authorization_enabled": ("rbac_authorization_enabled", "bool"),
    "kv_rbac_enforcement": ("rbac_enforcement", "str"),
    "kv_role_catalog": ("role_catalog_profile", "str"),
}

# JSON key -> RoleAssignmentRequest field
_ROLE_ASSIGNMENT_KEYS = {
    "role_definition_id_or_name": "role_reference",
    "principal_id": "principal_id",
    "principal_type": "principal_type",
    "description": "description",
    "condition": "condition",
    "condition_version": "condition_version",
    "delegated_managed_identity_resource_id": "delegated_managed_identity_resource_id",
}


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def _parse_tfvars(content: str) -> Dict[str, str]:
    """Very small tfvars parser for simple key = value pairs.

    Supports strings, integers, booleans on single lines.
    Lines starting with '#' are ignored.
    """
    vars_map: Dict[str, str] = {}
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip()
        # Remove potential trailing comments
        if " #" in val:
            val = val.split(" #", 1)[0].strip()
        vars_map[key] = val
    return vars_map


def _to_bool(value: str) -> bool:
    if value.lower() in ("true", "1"):
        return True
    if value.lower() in ("false", "0"):
        return False
    raise ValueError(f"Invalid boolean value: {value}")


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError as ex:
        raise ValueError(f"Invalid int value: {value}") from ex


def _convert(value: str, kind: str) -> Any:
    if kind == "bool":
        return _to_bool(value)
    if kind == "int":
        return _to_int(value)
    return _strip_quotes(value)


def _required(vars_map: Mapping[str, str], key: str) -> str:
    if key not in vars_map:
        raise KeyError(f"Missing required var: {key}")
    return vars_map[key]


def _optional(vars_map: Mapping[str, str], key: str, default: str = "") -> str:
    if key not in vars_map:
        return default
    return _strip_quotes(vars_map[key])


def _build_record(cls: Type[T], data: Any, where: str) -> T:
    """Instantiate a config dataclass from a JSON object, defaults filling the gaps."""
    if not isinstance(data, dict):
        raise ValueError(f"{where}: expected an object, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{where}: unknown field(s): {', '.join(unknown)}")
    try:
        return cls(**data)
    except TypeError as ex:
        raise ValueError(f"{where}: {ex}") from ex


def _build_named_records(cls: Type[T], data: Any, where: str) -> List[T]:
    """Map of name -> settings into a list of records carrying the name."""
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ValueError(f"{where}: expected an object keyed by name")
    return [
        _build_record(cls, {"name": name, **(spec or {})}, f"{where}.{name}")
        for name, spec in data.items()
    ]


def parse_role_assignments(data: Any) -> Dict[str, RoleAssignmentRequest]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("role_assignments: expected an object keyed by assignment name")
    out: Dict[str, RoleAssignmentRequest] = {}
    for key, spec in data.items():
        where = f"role_assignments.{key}"
        if not isinstance(spec, dict):
            raise ValueError(f"{where}: expected an object")
        unknown = sorted(set(spec) - set(_ROLE_ASSIGNMENT_KEYS))
        if unknown:
            raise ValueError(f"{where}: unknown field(s): {', '.join(unknown)}")
        for name, value in spec.items():
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{where}.{name}: expected a string")
        if not spec.get("role_definition_id_or_name"):
            raise ValueError(f"{where}: role_definition_id_or_name is required")
        kwargs = {_ROLE_ASSIGNMENT_KEYS[k]: v for k, v in spec.items()}
        out[key] = RoleAssignmentRequest(key=key, **kwargs)
    return out


def load_definition(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    if not path.exists():
        raise FileNotFoundError(f"Key Vault definition file not found: {path}")
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return data


def _build_kv_config(
    vars_map: Mapping[str, str], vault_name: str, definition: Mapping[str, Any]
) -> KeyVaultConfig:
    scalars: Dict[str, Any] = {}
    for var, (attr, kind) in _KV_SCALARS.items():
        if var in vars_map:
            scalars[attr] = _convert(vars_map[var], kind)

    pe = definition.get("private_endpoint")
    diag = definition.get("diagnostics")
    lock = definition.get("lock")
    return KeyVaultConfig(
        vault_name=vault_name,
        network_acls=_build_record(
            NetworkAclsConfig, definition.get("network_acls") or {}, "network_acls"
        ),
        access_policies=[
            _build_record(AccessPolicyConfig, p, f"access_policies[{i}]")
            for i, p in enumerate(definition.get("access_policies") or [])
        ],
        role_assignments=parse_role_assignments(definition.get("role_assignments")),
        keys=_build_named_records(KeyConfig, definition.get("keys"), "keys"),
        secrets=_build_named_records(SecretConfig, definition.get("secrets"), "secrets"),
        certificates=_build_named_records(
            CertificateConfig, definition.get("certificates"), "certificates"
        ),
        private_endpoint=(
            _build_record(PrivateEndpointConfig, pe, "private_endpoint") if pe else None
        ),
        diagnostics=(_build_record(DiagnosticsConfig, diag, "diagnostics") if diag else None),
        lock=(_build_record(LockConfig, lock, "lock") if lock else None),
        **scalars,
    )


def load_tfvars_config(*, repo_root: Path) -> AzureKeyVaultInfrastructureConfig:
    # Use default if env var is missing or empty
    tfvars_file_env = os.getenv("TFVARS_FILE")
    tfvars_file = (
        tfvars_file_env
        if (tfvars_file_env and tfvars_file_env.strip())
        else DEFAULT_TFVARS_FILE
    )
    vars_path = (repo_root / tfvars_file).resolve()
    if not vars_path.exists():
        raise FileNotFoundError(f"tfvars file not found: {vars_path}")

    vars_map = _parse_tfvars(vars_path.read_text(encoding="utf-8"))

    env = _strip_quotes(_required(vars_map, "env"))
    location = _strip_quotes(_required(vars_map, "location"))
    app = _strip_quotes(_required(vars_map, "app_name"))
    objective = _optional(vars_map, "objective")
    correlative = _optional(vars_map, "correlative", "01")

    def name_for(service: str) -> str:
        return build_name(
            NamingParts(
                service=service,
                region=location,
                application=app,
                environment=env,
                objective=objective,
                correlative=correlative,
            )
        )

    rg_name = _optional(vars_map, "resource_group_name") or name_for("rg")
    vault_name = _optional(vars_map, "kv_name") or name_for("kv")

    definition_file = _optional(vars_map, "kv_definition_file")
    definition = load_definition(
        (repo_root / definition_file).resolve() if definition_file else None
    )
    tags = {str(k): str(v) for k, v in (definition.get("tags") or {}).items()}

    return AzureKeyVaultInfrastructureConfig(
        resource_group_name=rg_name,
        location=location,
        key_vault_config=_build_kv_config(vars_map, vault_name, definition),
        tags=tags,
    )
