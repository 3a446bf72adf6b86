"""
Resource naming convention.

Names are built as ``service-region-application-objective-environment-correlative``
in lower case, e.g. ``kv-eus2-payments-cmk-dev-01``. Empty optional parts
are skipped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

REGION_CODES: Mapping[str, str] = {
    "eastus": "eus",
    "eastus2": "eus2",
    "centralus": "cus",
    "northcentralus": "ncus",
    "southcentralus": "scus",
    "westcentralus": "wcus",
    "westus": "wus",
    "westus2": "wus2",
    "westus3": "wus3",
    "canadacentral": "cac",
    "canadaeast": "cae",
    "brazilsouth": "brs",
    "northeurope": "neu",
    "westeurope": "weu",
    "uksouth": "uks",
    "ukwest": "ukw",
    "francecentral": "frc",
    "germanywestcentral": "gwc",
    "swedencentral": "sdc",
    "switzerlandnorth": "szn",
    "norwayeast": "nwe",
    "australiaeast": "aue",
    "southeastasia": "sea",
    "eastasia": "ea",
    "japaneast": "jpe",
    "koreacentral": "krc",
    "centralindia": "inc",
}

_KV_NAME = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]{1,22}[a-zA-Z0-9]$")


@dataclass(frozen=True)
class NamingParts:
    service: str
    region: str  # Azure location, e.g. "eastus2"
    application: str
    environment: str
    objective: str = ""
    correlative: str = "01"


def region_code(location: str, region_codes: Mapping[str, str] = REGION_CODES) -> str:
    key = location.replace(" ", "").lower()
    if key not in region_codes:
        raise ValueError(f"No region code for location: {location}")
    return region_codes[key]


def build_name(parts: NamingParts, region_codes: Mapping[str, str] = REGION_CODES) -> str:
    segments = [
        parts.service,
        region_code(parts.region, region_codes),
        parts.application,
        parts.objective,
        parts.environment,
        parts.correlative,
    ]
    return "-".join(s.strip().lower() for s in segments if s and s.strip())


def validate_key_vault_name(name: str) -> str:
    """Return name unchanged if Azure accepts it as a vault name."""
    if not _KV_NAME.match(name) or "--" in name:
        raise ValueError(
            f"Invalid Key Vault name '{name}': 3-24 chars, start with a letter, "
            "letters/digits/hyphens only, no consecutive or trailing hyphens"
        )
    return name
