"""
Current-identity resolution.

Resolves the principal the deployment runs as, used to fill role
assignments that leave ``principal_id`` empty. Sources are tried in order:
explicit environment variables, then the Azure CLI login context.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from typing import Callable, List, Mapping, Optional, Protocol, Sequence

from kvinfra.rbac.errors import IdentityResolutionError
from kvinfra.rbac.models import Identity

logger = logging.getLogger(__name__)

PRINCIPAL_ID_ENV = "KV_CURRENT_PRINCIPAL_ID"
PRINCIPAL_TYPE_ENV = "KV_CURRENT_PRINCIPAL_TYPE"
TENANT_ID_ENV = "ARM_TENANT_ID"


class CurrentIdentity(Protocol):
    def resolve(self) -> Identity: ...


class EnvIdentity:
    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self._env = env if env is not None else os.environ

    def available(self) -> bool:
        return bool(self._env.get(PRINCIPAL_ID_ENV))

    def resolve(self) -> Identity:
        principal_id = self._env.get(PRINCIPAL_ID_ENV)
        if not principal_id:
            raise IdentityResolutionError(f"{PRINCIPAL_ID_ENV} is not set")
        return Identity(
            principal_id=principal_id,
            tenant_id=self._env.get(TENANT_ID_ENV, ""),
            principal_type=self._env.get(PRINCIPAL_TYPE_ENV) or None,
        )


def _default_runner(cmd: List[str]) -> str:
    return subprocess.check_output(cmd, text=True, stderr=subprocess.PIPE)


class AzCliIdentity:
    """Signed-in principal of the Azure CLI (`az account show`)."""

    def __init__(self, runner: Optional[Callable[[List[str]], str]] = None) -> None:
        self._runner = runner or _default_runner

    def _az(self, args: Sequence[str]) -> str:
        exe = shutil.which("az") or shutil.which("az.cmd") or "az"
        cmd = [exe, *args]
        try:
            return self._runner(cmd).strip()
        except (OSError, subprocess.CalledProcessError) as ex:
            raise IdentityResolutionError(
                f"Azure CLI call failed: {' '.join(cmd)}: {ex}"
            ) from ex

    def resolve(self) -> Identity:
        account = json.loads(self._az(["account", "show", "-o", "json"]))
        tenant_id = account.get("tenantId", "")
        user = account.get("user") or {}
        if user.get("type") == "servicePrincipal":
            object_id = self._az(
                ["ad", "sp", "show", "--id", user.get("name", ""), "--query", "id", "-o", "tsv"]
            )
            principal_type = "ServicePrincipal"
        else:
            object_id = self._az(
                ["ad", "signed-in-user", "show", "--query", "id", "-o", "tsv"]
            )
            principal_type = "User"
        if not object_id:
            raise IdentityResolutionError("Azure CLI returned an empty object id")
        return Identity(
            principal_id=object_id, tenant_id=tenant_id, principal_type=principal_type
        )


class ChainedIdentity:
    """Environment first, Azure CLI second."""

    def __init__(
        self, env: Optional[EnvIdentity] = None, cli: Optional[CurrentIdentity] = None
    ) -> None:
        self._env = env or EnvIdentity()
        self._cli = cli or AzCliIdentity()

    def resolve(self) -> Identity:
        if self._env.available():
            identity = self._env.resolve()
            logger.info("Current identity from environment: %s", identity.principal_id)
            return identity
        identity = self._cli.resolve()
        logger.info("Current identity from Azure CLI: %s", identity.principal_id)
        return identity
