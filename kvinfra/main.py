"""
CDKTF entrypoint for the Azure Key Vault infrastructure.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from constructs import Construct
from cdktf import App, TerraformOutput, TerraformStack

from cdktf_cdktf_provider_azurerm.provider import AzurermProvider
from cdktf_cdktf_provider_azurerm.resource_group import ResourceGroup

from kvinfra.iac_types import AzureKeyVaultInfrastructureConfig
from kvinfra.modules.keyvault.keyvault import (
    provision_key_vault,
    provision_vault_network_and_ops,
    provision_vault_objects,
)
from kvinfra.modules.keyvault.role_assignments import provision_role_assignments
from kvinfra.rbac.identity import ChainedIdentity, CurrentIdentity
from kvinfra.stacks.azure_stack import build_validator, synth_config_json
from kvinfra.utils.config_loader import load_tfvars_config
from kvinfra.utils.validation import format_missing_env_message, missing_env

logger = logging.getLogger(__name__)

REQUIRED_ENV = ["ARM_TENANT_ID", "ARM_SUBSCRIPTION_ID"]


class AzureKeyVaultStack(TerraformStack):
    """TerraformStack that wires the vault and its role assignments from typed config."""

    def __init__(
        self,
        scope: Construct,
        id: str,
        config: AzureKeyVaultInfrastructureConfig,
        identity: Optional[CurrentIdentity] = None,
    ) -> None:
        super().__init__(scope, id)
        kv_cfg = config.key_vault_config

        # Provider
        AzurermProvider(self, "azurerm", features=[{}])

        rg = ResourceGroup(
            self,
            "resourceGroup",
            name=config.resource_group_name,
            location=config.location,
            tags=config.tags or None,
        )

        # Key Vault
        kv, tenant_id = provision_key_vault(
            scope=self, cfg=config, rg_name=rg.name, location=config.location
        )

        # Role assignments (validated before anything is declared)
        validator = build_validator(kv_cfg, identity or ChainedIdentity())
        result, assignments = provision_role_assignments(
            scope=self, kv_cfg=kv_cfg, vault=kv, validator=validator
        )
        for key in result.dropped:
            logger.warning("Role assignment %s was not provisioned", key)

        provision_vault_objects(
            scope=self, kv_cfg=kv_cfg, vault=kv, depends_on=assignments
        )
        provision_vault_network_and_ops(
            scope=self,
            kv_cfg=kv_cfg,
            vault=kv,
            rg_name=rg.name,
            location=config.location,
        )

        TerraformOutput(self, "key_vault_name", value=kv.name)
        TerraformOutput(self, "key_vault_id", value=kv.id)
        TerraformOutput(self, "key_vault_uri", value=kv.vault_uri)
        TerraformOutput(self, "tenant_id", value=tenant_id)
        TerraformOutput(
            self, "role_assignments_approved", value=sorted(result.approved)
        )
        TerraformOutput(self, "role_assignments_dropped", value=result.dropped)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO, format="%(levelname)s %(name)s: %(message)s"
    )
    repo_root = Path(__file__).resolve().parents[1]

    # Preflight: ensure required env vars are present before synthesizing
    missing = missing_env(env=os.environ, keys=REQUIRED_ENV)
    if missing:
        print(format_missing_env_message(missing), file=sys.stderr)
        sys.exit(2)

    app = App()
    try:
        cfg = load_tfvars_config(repo_root=repo_root)
        AzureKeyVaultStack(app, "azure-keyvault", cfg)
    except (ValueError, KeyError, FileNotFoundError) as ex:
        # Surface a concise, friendly message instead of a long traceback
        print(f"Error: {ex}", file=sys.stderr)
        sys.exit(1)

    # Surface a copy of the config used for traceability
    _cfg_json = synth_config_json(cfg)
    TerraformOutput(
        app.node.try_find_child("azure-keyvault"), "config_json", value=str(_cfg_json)
    )

    try:
        app.synth()
    except Exception as ex:  # noqa: BLE001 - present actionable error
        print("Synthesis failed.", file=sys.stderr)
        print(str(ex), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
