from __future__ import annotations

import json

import pytest

from kvinfra.iac_types import KeyVaultConfig, NetworkAclsConfig
from kvinfra.rbac.errors import ConflictingAccessModelError
from kvinfra.utils.config_loader import (
    _parse_tfvars,
    _strip_quotes,
    load_tfvars_config,
    parse_role_assignments,
)

TFVARS = """
# sample
env = "dev"
location = "eastus2"
app_name = "pay"
objective = "sec"
kv_sku = "premium"
kv_soft_delete_retention_days = 30 # days
kv_rbac_enforcement = "filter"
kv_definition_file = "vars/kv.json"
"""

DEFINITION = {
    "tags": {"Environment": "dev"},
    "network_acls": {"ip_rules": ["203.0.113.10/32"]},
    "role_assignments": {
        "app": {
            "role_definition_id_or_name": "Key Vault Secrets User",
            "principal_id": "11111111-1111-1111-1111-111111111111",
            "principal_type": "ManagedIdentity",
            "condition_version": "2.0",
        }
    },
    "keys": {"cmk": {"key_type": "RSA-HSM", "key_size": 4096}},
    "secrets": {"db": {"value_env": "DB_PASSWORD"}},
    "lock": {"notes": "keep"},
}


@pytest.fixture
def repo(tmp_path, monkeypatch):
    monkeypatch.delenv("TFVARS_FILE", raising=False)
    (tmp_path / "vars").mkdir()
    (tmp_path / "vars" / "dev.tfvars").write_text(TFVARS, encoding="utf-8")
    (tmp_path / "vars" / "kv.json").write_text(json.dumps(DEFINITION), encoding="utf-8")
    return tmp_path


def test_strip_quotes():
    assert _strip_quotes('"abc"') == "abc"
    assert _strip_quotes("'abc'") == "abc"
    assert _strip_quotes('"abc') == '"abc'


def test_parse_tfvars_ignores_comments():
    parsed = _parse_tfvars('# c\na = "x" # trailing\nnot a pair\nb = 3\n')
    assert parsed == {"a": '"x"', "b": "3"}


def test_load_tfvars_config(repo):
    cfg = load_tfvars_config(repo_root=repo)
    kv = cfg.key_vault_config
    assert cfg.resource_group_name == "rg-eus2-pay-sec-dev-01"
    assert cfg.location == "eastus2"
    assert cfg.tags == {"Environment": "dev"}
    assert kv.vault_name == "kv-eus2-pay-sec-dev-01"
    assert kv.sku == "premium"
    assert kv.soft_delete_retention_days == 30
    assert kv.rbac_enforcement == "filter"
    # defaults
    assert kv.purge_protection_enabled is True
    assert kv.rbac_authorization_enabled is True
    assert kv.public_network_access_enabled is False
    assert kv.network_acls == NetworkAclsConfig(ip_rules=["203.0.113.10/32"])
    assert kv.role_assignments["app"].role_reference == "Key Vault Secrets User"
    assert kv.role_assignments["app"].condition_version == "2.0"
    assert kv.keys[0].name == "cmk" and kv.keys[0].key_size == 4096
    assert kv.secrets[0].value_env == "DB_PASSWORD"
    assert kv.lock is not None and kv.lock.level == "CanNotDelete"
    assert kv.private_endpoint is None


def test_tfvars_file_env_override(repo, monkeypatch):
    (repo / "vars" / "prd.tfvars").write_text(
        'env = "prd"\nlocation = "westeurope"\napp_name = "pay"\nkv_name = "kv-custom-01"\n',
        encoding="utf-8",
    )
    monkeypatch.setenv("TFVARS_FILE", "vars/prd.tfvars")
    cfg = load_tfvars_config(repo_root=repo)
    assert cfg.key_vault_config.vault_name == "kv-custom-01"
    assert cfg.resource_group_name == "rg-weu-pay-prd-01"
    assert cfg.key_vault_config.role_assignments == {}


def test_missing_tfvars(tmp_path, monkeypatch):
    monkeypatch.delenv("TFVARS_FILE", raising=False)
    with pytest.raises(FileNotFoundError):
        load_tfvars_config(repo_root=tmp_path)


def test_missing_required_var(repo):
    (repo / "vars" / "dev.tfvars").write_text('env = "dev"\n', encoding="utf-8")
    with pytest.raises(KeyError, match="location"):
        load_tfvars_config(repo_root=repo)


def test_invalid_bool(repo):
    (repo / "vars" / "dev.tfvars").write_text(
        TFVARS + "kv_purge_protection_enabled = maybe\n", encoding="utf-8"
    )
    with pytest.raises(ValueError, match="Invalid boolean"):
        load_tfvars_config(repo_root=repo)


def test_unknown_definition_field(repo):
    (repo / "vars" / "kv.json").write_text(
        json.dumps({"network_acls": {"default": "Deny"}}), encoding="utf-8"
    )
    with pytest.raises(ValueError, match="network_acls: unknown field"):
        load_tfvars_config(repo_root=repo)


def test_conflicting_access_model_from_config(repo):
    definition = dict(DEFINITION)
    definition["access_policies"] = [
        {"object_id": "33333333-3333-3333-3333-333333333333", "secret_permissions": ["Get"]}
    ]
    (repo / "vars" / "kv.json").write_text(json.dumps(definition), encoding="utf-8")
    with pytest.raises(ConflictingAccessModelError):
        load_tfvars_config(repo_root=repo)


def test_parse_role_assignments_requires_role():
    with pytest.raises(ValueError, match="role_definition_id_or_name is required"):
        parse_role_assignments({"a": {"principal_type": "User"}})
    with pytest.raises(ValueError, match="unknown field"):
        parse_role_assignments({"a": {"role_definition_id_or_name": "Reader", "role": "x"}})


@pytest.mark.parametrize(
    "field, value",
    [
        ("role_definition_id_or_name", 5),
        ("principal_id", ["11111111-1111-1111-1111-111111111111"]),
        ("principal_type", {"type": "User"}),
        ("condition_version", 2.0),
    ],
)
def test_parse_role_assignments_rejects_non_string_fields(field, value):
    spec = {"role_definition_id_or_name": "Key Vault Reader", "principal_type": "User"}
    spec[field] = value
    with pytest.raises(ValueError, match=rf"role_assignments\.app\.{field}: expected a string"):
        parse_role_assignments({"app": spec})


def test_non_string_role_in_definition_file(repo):
    definition = {"role_assignments": {"app": {"role_definition_id_or_name": 5}}}
    (repo / "vars" / "kv.json").write_text(json.dumps(definition), encoding="utf-8")
    with pytest.raises(ValueError, match="expected a string"):
        load_tfvars_config(repo_root=repo)


def test_keyvault_config_eager_validation():
    with pytest.raises(ValueError, match="between 7 and 90"):
        KeyVaultConfig(vault_name="kv-test-01", soft_delete_retention_days=3)
    with pytest.raises(ValueError, match="standard or premium"):
        KeyVaultConfig(vault_name="kv-test-01", sku="basic")
    with pytest.raises(ValueError, match="kv_rbac_enforcement"):
        KeyVaultConfig(vault_name="kv-test-01", rbac_enforcement="warn")
    with pytest.raises(ValueError, match="kv_role_catalog"):
        KeyVaultConfig(vault_name="kv-test-01", role_catalog_profile="open")
    with pytest.raises(ValueError, match="default_action"):
        NetworkAclsConfig(default_action="Block")


def test_hsm_key_requires_premium(repo):
    (repo / "vars" / "dev.tfvars").write_text(
        TFVARS.replace('kv_sku = "premium"', 'kv_sku = "standard"'), encoding="utf-8"
    )
    with pytest.raises(ValueError, match="requires the premium sku"):
        load_tfvars_config(repo_root=repo)
