from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from kvinfra.rbac.catalog import CATALOG_PROFILES, catalog_for_profile
from kvinfra.rbac.identity import ChainedIdentity
from kvinfra.rbac.models import RoleAssignmentRequest
from kvinfra.rbac.validator import (
    ENFORCEMENT_MODES,
    EnforcementMode,
    RoleAssignmentValidator,
)
from kvinfra.stacks.azure_stack import build_validator
from kvinfra.utils.config_loader import load_tfvars_config
from kvinfra.utils.validation import format_role_report

from .utils import CmdError, cdktf, list_vault_role_assignments


def catalog(args: argparse.Namespace) -> int:
    cat = catalog_for_profile(args.profile)
    if args.json:
        payload = {
            "profile": args.profile,
            "roles": [
                {"name": e.role_name, "id": e.role_id, "tier": e.tier.value}
                for e in cat.entries
            ],
            "monitoring_roles": list(cat.monitoring_roles),
            "blocked_roles": list(cat.blocked_names),
        }
        print(json.dumps(payload, indent=2))
        return 0
    print(f"Approved Key Vault roles ({args.profile}):")
    for e in cat.entries:
        print(f"  {e.role_name:<42} {e.role_id}  [{e.tier.value}]")
    print("General monitoring roles:")
    for name in cat.monitoring_roles:
        print(f"  {name}")
    print("Blocked roles:")
    for name in cat.blocked_names:
        print(f"  {name}")
    print("  (any custom role definition resource id)")
    return 0


def rbac_check(args: argparse.Namespace) -> int:
    if args.tfvars:
        os.environ["TFVARS_FILE"] = args.tfvars
    cfg = load_tfvars_config(repo_root=Path(args.repo_root).resolve())
    kv = cfg.key_vault_config
    identity = None if args.no_identity else ChainedIdentity()
    validator = build_validator(
        kv,
        identity,
        catalog=catalog_for_profile(args.profile) if args.profile else None,
    )
    if args.mode:
        validator.mode = EnforcementMode(args.mode)
    result = validator.evaluate(kv.role_assignments)
    print(f"Key Vault: {kv.vault_name}")
    print(format_role_report(result, validator.catalog, validator.mode))
    if result.rejected and validator.mode is EnforcementMode.HARD_FAIL:
        return 1
    return 0


def whoami(args: argparse.Namespace) -> int:
    identity = ChainedIdentity().resolve()
    print(
        json.dumps(
            {
                "principal_id": identity.principal_id,
                "tenant_id": identity.tenant_id,
                "principal_type": identity.principal_type,
            },
            indent=2,
        )
    )
    return 0


def audit(args: argparse.Namespace) -> int:
    """Check role assignments already present on a vault against the catalog."""
    existing = list_vault_role_assignments(args.vault_id)
    requests: Dict[str, RoleAssignmentRequest] = {}
    for item in existing:
        key = item.get("name") or item.get("id", "")
        requests[key] = RoleAssignmentRequest(
            key=key,
            role_reference=item.get("roleDefinitionName") or "",
            principal_id=item.get("principalId"),
            principal_type=item.get("principalType"),
            description=item.get("description"),
            condition=item.get("condition"),
            condition_version=item.get("conditionVersion"),
        )
    validator = RoleAssignmentValidator(
        catalog=catalog_for_profile(args.profile), mode=EnforcementMode.HARD_FAIL
    )
    result = validator.evaluate(requests)
    print(f"Vault: {args.vault_id}")
    print(format_role_report(result, validator.catalog, validator.mode))
    return 1 if result.rejected else 0


def _project(args: argparse.Namespace) -> Path:
    project = Path(args.project_dir)
    if not project.exists():
        raise CmdError(f"Project directory not found: {project}")
    return project


def infra_synth(args: argparse.Namespace) -> int:
    project = _project(args)
    print("Synthesizing CDKTF...")
    cdktf(project, ["get"])  # ensure providers
    cdktf(project, ["synth"])  # generate JSON tf
    return 0


def infra_deploy(args: argparse.Namespace) -> int:
    project = _project(args)
    infra_synth(args)
    print("Deploying CDKTF...")
    cdktf(project, ["deploy", "--auto-approve"])
    print("CDKTF deploy completed.")
    return 0


def infra_destroy(args: argparse.Namespace) -> int:
    project = _project(args)
    print("Destroying CDKTF-managed infrastructure...")
    cdktf(project, ["destroy", "--auto-approve"])
    print("Destroy completed.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kv-deployer", description="Azure Key Vault RBAC deployment CLI"
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    cat = sub.add_parser("catalog", help="List approved, monitoring and blocked roles")
    cat.add_argument("--profile", choices=CATALOG_PROFILES, default="standard")
    cat.add_argument("--json", action="store_true")
    cat.set_defaults(func=catalog)

    chk = sub.add_parser(
        "rbac-check", help="Validate the configured role assignments without deploying"
    )
    chk.add_argument("--repo-root", default=".")
    chk.add_argument("--tfvars", help="tfvars file relative to the repo root")
    chk.add_argument("--mode", choices=ENFORCEMENT_MODES)
    chk.add_argument("--profile", choices=CATALOG_PROFILES)
    chk.add_argument(
        "--no-identity",
        action="store_true",
        help="Do not resolve the current identity for assignments without principal_id",
    )
    chk.set_defaults(func=rbac_check)

    who = sub.add_parser("whoami", help="Show the identity used as default principal")
    who.set_defaults(func=whoami)

    aud = sub.add_parser(
        "audit", help="Check existing role assignments on a vault against the catalog"
    )
    aud.add_argument("--vault-id", required=True)
    aud.add_argument("--profile", choices=CATALOG_PROFILES, default="standard")
    aud.set_defaults(func=audit)

    isyn = sub.add_parser("infra-synth", help="Synthesize infrastructure via CDKTF")
    isyn.add_argument("--project-dir", default=".")
    isyn.set_defaults(func=infra_synth)

    idep = sub.add_parser("infra-deploy", help="Deploy infrastructure via CDKTF")
    idep.add_argument("--project-dir", default=".")
    idep.set_defaults(func=infra_deploy)

    ides = sub.add_parser("infra-destroy", help="Destroy infrastructure via CDKTF")
    ides.add_argument("--project-dir", default=".")
    ides.set_defaults(func=infra_destroy)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (CmdError, ValueError, KeyError, FileNotFoundError) as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
