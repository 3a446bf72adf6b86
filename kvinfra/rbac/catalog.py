"""
Least-privilege role catalog for Key Vault role assignments.

The catalog is an immutable value: build one with ``RoleCatalog(entries)``
or pick a named profile through ``catalog_for_profile``. Data-plane roles and
general monitoring roles are kept in separate lists and both are checked.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple


class RoleTier(str, Enum):
    READ_ONLY = "read-only"
    NARROW_WRITE = "narrow-write"
    ADMINISTRATIVE = "administrative"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RoleCatalogEntry:
    role_name: str
    role_id: str
    tier: RoleTier


KEY_VAULT_ROLES: Tuple[RoleCatalogEntry, ...] = (
    RoleCatalogEntry(
        "Key Vault Reader",
        "21090545-7ca7-4776-b22c-e363652d74d2",
        RoleTier.READ_ONLY,
    ),
    RoleCatalogEntry(
        "Key Vault Secrets User",
        "4633458b-17de-408a-b874-0445c86b69e6",
        RoleTier.READ_ONLY,
    ),
    RoleCatalogEntry(
        "Key Vault Secrets Officer",
        "b86a8fe4-44ce-4948-aee5-eccb2c155cd7",
        RoleTier.NARROW_WRITE,
    ),
    RoleCatalogEntry(
        "Key Vault Crypto User",
        "12338af0-0e69-4776-bea7-57ae8d297424",
        RoleTier.NARROW_WRITE,
    ),
    RoleCatalogEntry(
        "Key Vault Crypto Officer",
        "14b46e9e-c2b7-41b4-b07b-48a6ebf60603",
        RoleTier.NARROW_WRITE,
    ),
    RoleCatalogEntry(
        "Key Vault Crypto Service Encryption User",
        "e147488a-f6f5-4113-8e2d-b22465e65bf6",
        RoleTier.NARROW_WRITE,
    ),
    RoleCatalogEntry(
        "Key Vault Crypto Service Release User",
        "08bbd89e-9f13-488c-ac41-acfcb10c90ab",
        RoleTier.NARROW_WRITE,
    ),
    RoleCatalogEntry(
        "Key Vault Certificate User",
        "db79e9a7-68ee-4b58-9aeb-b90e7c24fcba",
        RoleTier.READ_ONLY,
    ),
    RoleCatalogEntry(
        "Key Vault Certificates Officer",
        "a4417e6f-fecd-4de8-b567-7b0420556985",
        RoleTier.NARROW_WRITE,
    ),
    RoleCatalogEntry(
        "Key Vault Data Access Administrator",
        "8b54135c-b56d-4d72-a534-26097cfdc8d8",
        RoleTier.ADMINISTRATIVE,
    ),
)

# Generic observability roles with no data-plane access.
GENERAL_MONITORING_ROLES: Tuple[str, ...] = (
    "Reader",
    "Monitoring Reader",
    "Security Reader",
)

BLOCKED_ROLE_NAMES: Tuple[str, ...] = (
    "Owner",
    "Contributor",
    "User Access Administrator",
    "Key Vault Administrator",
    "Key Vault Contributor",
    "Security Admin",
    "Backup Operator",
    "Restore Operator",
)

CUSTOM_ROLE_ID_PATTERN = re.compile(
    r"/subscriptions/[^/]+/providers/Microsoft\.Authorization/roleDefinitions/[^/]+/?",
    re.IGNORECASE,
)

CATALOG_PROFILES: Tuple[str, ...] = ("standard", "strict")


@dataclass(frozen=True)
class RoleCatalog:
    """Allow-list of roles that may be assigned on a vault."""

    entries: Tuple[RoleCatalogEntry, ...] = KEY_VAULT_ROLES
    monitoring_roles: Tuple[str, ...] = GENERAL_MONITORING_ROLES
    blocked_names: Tuple[str, ...] = BLOCKED_ROLE_NAMES
    _by_name: Dict[str, RoleCatalogEntry] = field(
        init=False, repr=False, compare=False
    )
    _by_id: Dict[str, RoleCatalogEntry] = field(init=False, repr=False, compare=False)
    _blocked: FrozenSet[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        entries = tuple(self.entries)
        by_name: Dict[str, RoleCatalogEntry] = {}
        by_id: Dict[str, RoleCatalogEntry] = {}
        for entry in entries:
            if entry.role_name in by_name:
                raise ValueError(f"Duplicate role name in catalog: {entry.role_name}")
            if entry.role_id in by_id:
                raise ValueError(f"Duplicate role id in catalog: {entry.role_id}")
            by_name[entry.role_name] = entry
            by_id[entry.role_id] = entry
        # frozen dataclass: derived lookups are set through object.__setattr__
        object.__setattr__(self, "entries", entries)
        object.__setattr__(self, "monitoring_roles", tuple(self.monitoring_roles))
        object.__setattr__(self, "blocked_names", tuple(self.blocked_names))
        object.__setattr__(self, "_by_name", by_name)
        object.__setattr__(self, "_by_id", by_id)
        object.__setattr__(
            self, "_blocked", frozenset(n.casefold() for n in self.blocked_names)
        )

    def lookup(self, role_reference: str) -> Optional[RoleCatalogEntry]:
        return self._by_name.get(role_reference) or self._by_id.get(role_reference)

    def is_monitoring_role(self, role_reference: str) -> bool:
        return role_reference in self.monitoring_roles

    def is_approved(self, role_reference: str) -> bool:
        """True iff the reference is a catalog name/id or a monitoring role."""
        if self.lookup(role_reference) is not None:
            return True
        return self.is_monitoring_role(role_reference)

    def is_custom_role_id(self, role_reference: str) -> bool:
        return bool(CUSTOM_ROLE_ID_PATTERN.fullmatch(role_reference.strip()))

    def is_blocked(self, role_reference: str) -> bool:
        if role_reference.strip().casefold() in self._blocked:
            return True
        # an id reference resolves to its name before the blocked check
        entry = self.lookup(role_reference)
        if entry is not None and entry.role_name.strip().casefold() in self._blocked:
            return True
        return self.is_custom_role_id(role_reference)

    def tier_of(self, role_reference: str) -> RoleTier:
        entry = self.lookup(role_reference)
        if entry is not None:
            return entry.tier
        if self.is_monitoring_role(role_reference):
            return RoleTier.READ_ONLY
        return RoleTier.UNKNOWN

    def canonical_name(self, role_reference: str) -> str:
        """Role name for a name or id reference."""
        entry = self.lookup(role_reference)
        if entry is not None:
            return entry.role_name
        if self.is_monitoring_role(role_reference):
            return role_reference
        raise KeyError(f"Role not in catalog: {role_reference}")

    def approved_role_names(self) -> List[str]:
        names = [e.role_name for e in self.entries]
        names.extend(self.monitoring_roles)
        return names

    def without_tiers(self, tiers: Iterable[RoleTier]) -> "RoleCatalog":
        excluded = set(tiers)
        return RoleCatalog(
            entries=tuple(e for e in self.entries if e.tier not in excluded),
            monitoring_roles=self.monitoring_roles,
            blocked_names=self.blocked_names,
        )


DEFAULT_CATALOG = RoleCatalog()


def catalog_for_profile(profile: str) -> RoleCatalog:
    """Return the catalog for a named profile.

    ``standard`` carries every Key Vault data-plane role, ``strict`` drops the
    administrative tier.
    """
    if profile == "standard":
        return DEFAULT_CATALOG
    if profile == "strict":
        return DEFAULT_CATALOG.without_tiers([RoleTier.ADMINISTRATIVE])
    raise ValueError(
        f"Unknown role catalog profile: {profile} (expected one of {', '.join(CATALOG_PROFILES)})"
    )
