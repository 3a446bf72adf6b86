from __future__ import annotations

import sys
from pathlib import Path

import pytest


# Make the repository root importable when the project is not installed, so
# both ``kvinfra`` and the ``scripts`` CLI package resolve.
ROOT_PATH = Path(__file__).resolve().parents[1]
if str(ROOT_PATH) not in sys.path:
    sys.path.insert(0, str(ROOT_PATH))

from kvinfra.rbac.catalog import RoleCatalog  # noqa: E402
from kvinfra.rbac.models import Identity  # noqa: E402

CURRENT_ID = "99999999-9999-4999-8999-999999999999"


class CountingIdentity:
    """Current-identity stub recording how often it is resolved."""

    def __init__(self, identity: Identity) -> None:
        self.identity = identity
        self.calls = 0

    def resolve(self) -> Identity:
        self.calls += 1
        return self.identity


class StaticIdentity:
    """Fixed identity."""

    def __init__(self, identity: Identity) -> None:
        self._identity = identity

    def resolve(self) -> Identity:
        return self._identity


@pytest.fixture
def catalog() -> RoleCatalog:
    return RoleCatalog()


@pytest.fixture
def current_identity() -> CountingIdentity:
    return CountingIdentity(
        Identity(
            principal_id=CURRENT_ID,
            tenant_id="00000000-0000-0000-0000-000000000001",
            principal_type="ServicePrincipal",
        )
    )


@pytest.fixture
def static_identity():
    def make(principal_id: str, principal_type: str = "User") -> StaticIdentity:
        return StaticIdentity(
            Identity(
                principal_id=principal_id,
                tenant_id="00000000-0000-0000-0000-000000000001",
                principal_type=principal_type,
            )
        )

    return make
