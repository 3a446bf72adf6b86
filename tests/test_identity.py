from __future__ import annotations

import json
import subprocess

import pytest

from kvinfra.rbac.errors import IdentityResolutionError
from kvinfra.rbac.identity import AzCliIdentity, ChainedIdentity, EnvIdentity
from kvinfra.rbac.models import Identity

TENANT = "00000000-0000-0000-0000-000000000001"
OBJECT_ID = "44444444-4444-4444-4444-444444444444"


class FakeAz:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def __call__(self, cmd):
        self.calls.append(cmd[1:])
        key = " ".join(cmd[1:3])
        return self.responses[key]


def test_env_identity():
    ident = EnvIdentity(
        {
            "KV_CURRENT_PRINCIPAL_ID": OBJECT_ID,
            "KV_CURRENT_PRINCIPAL_TYPE": "Group",
            "ARM_TENANT_ID": TENANT,
        }
    )
    assert ident.available()
    assert ident.resolve() == Identity(OBJECT_ID, TENANT, "Group")


def test_env_identity_missing():
    ident = EnvIdentity({})
    assert not ident.available()
    with pytest.raises(IdentityResolutionError):
        ident.resolve()


def test_az_cli_user():
    fake = FakeAz(
        {
            "account show": json.dumps({"tenantId": TENANT, "user": {"type": "user", "name": "a@b"}}),
            "ad signed-in-user": OBJECT_ID + "\n",
        }
    )
    identity = AzCliIdentity(runner=fake).resolve()
    assert identity == Identity(OBJECT_ID, TENANT, "User")


def test_az_cli_service_principal():
    fake = FakeAz(
        {
            "account show": json.dumps(
                {"tenantId": TENANT, "user": {"type": "servicePrincipal", "name": "app-id"}}
            ),
            "ad sp": OBJECT_ID,
        }
    )
    identity = AzCliIdentity(runner=fake).resolve()
    assert identity.principal_type == "ServicePrincipal"
    assert ["ad", "sp", "show", "--id", "app-id", "--query", "id", "-o", "tsv"] in fake.calls


def test_az_cli_failure_is_wrapped():
    def boom(cmd):
        raise subprocess.CalledProcessError(1, cmd)

    with pytest.raises(IdentityResolutionError, match="Azure CLI call failed"):
        AzCliIdentity(runner=boom).resolve()


def test_chained_prefers_env(static_identity):
    cli = static_identity("cli")
    env = EnvIdentity({"KV_CURRENT_PRINCIPAL_ID": OBJECT_ID})
    assert ChainedIdentity(env=env, cli=cli).resolve().principal_id == OBJECT_ID
    assert ChainedIdentity(env=EnvIdentity({}), cli=cli).resolve().principal_id == "cli"
