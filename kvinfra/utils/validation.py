"""
Preflight validation helpers.

Pure, minimal functions to validate required environment variables and
format actionable messages for operators (missing env, role assignment
reports).
"""

from __future__ import annotations

from typing import List, Mapping

from kvinfra.rbac.catalog import RoleCatalog
from kvinfra.rbac.models import Accepted
from kvinfra.rbac.validator import BatchResult, EnforcementMode


def missing_env(env: Mapping[str, str], keys: List[str]) -> List[str]:
    """Return the list of keys missing in the provided environment mapping."""
    return [k for k in keys if not env.get(k)]


def format_missing_env_message(missing: List[str]) -> str:
    """Format a friendly, actionable message for missing env vars (PowerShell and bash)."""
    if not missing:
        return ""
    lines: List[str] = []
    lines.append("Preflight check failed: missing environment variables")
    lines.append("")
    lines.append("Missing:")
    for k in missing:
        lines.append(f"  - {k}")
    lines.append("")
    lines.append("How to set them in PowerShell (current session):")
    for k in missing:
        lines.append(f"  $env:{k} = \"<value>\"")
    lines.append("")
    lines.append("How to set them in bash:")
    for k in missing:
        lines.append(f"  export {k}=\"<value>\"")
    lines.append("")
    lines.append("Then re-run: python -m scripts.cli infra-deploy")
    return "\n".join(lines)


def format_role_report(
    result: BatchResult, catalog: RoleCatalog, mode: EnforcementMode
) -> str:
    """Render per-assignment outcomes for a human operator."""
    lines: List[str] = []
    lines.append(f"Role assignment check ({mode.value})")
    lines.append("")
    for key, outcome in result.outcomes.items():
        if isinstance(outcome, Accepted):
            a = outcome.assignment
            tier = catalog.tier_of(a.role_reference).value
            lines.append(
                f"  OK       {key}: {a.role_reference} [{tier}] -> "
                f"{a.principal_type} {a.principal_id}"
            )
        else:
            verdict = "DROPPED " if mode is EnforcementMode.FILTER else "REJECTED"
            lines.append(
                f"  {verdict} {key}: {outcome.reason.value}: {outcome.message} ({outcome.value})"
            )
    if not result.outcomes:
        lines.append("  (no role assignments requested)")
    if result.rejected:
        lines.append("")
        lines.append("Approved roles:")
        for name in catalog.approved_role_names():
            lines.append(f"  - {name} [{catalog.tier_of(name).value}]")
    lines.append("")
    lines.append(
        f"{len(result.approved)} approved, {len(result.rejected)} "
        f"{'dropped' if mode is EnforcementMode.FILTER else 'rejected'}"
    )
    return "\n".join(lines)
