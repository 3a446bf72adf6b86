from __future__ import annotations

import json
import logging
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


class CmdError(Exception):
    pass


def run(cmd: List[str], cwd: Optional[str]) -> str:
    """Execute a command, stream both pipes, and return ONLY stdout text.

    Important: Some callers JSON-parse the return; never mix stderr into it.
    """
    logger.info("Running: %s", " ".join(cmd))
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
        )
    except OSError as ex:
        raise CmdError(f"Failed to start {cmd[0]}: {ex}") from ex

    stdout_buf: list[str] = []

    def pump(pipe, tag: str) -> None:
        try:
            for line in iter(pipe.readline, ""):
                line = line.rstrip()
                if not line:
                    continue
                # Echo to console
                print(line, flush=True)
                if tag == "stdout":
                    stdout_buf.append(line)
        finally:
            pipe.close()

    t_out = threading.Thread(target=pump, args=(proc.stdout, "stdout"), daemon=True)
    t_err = threading.Thread(target=pump, args=(proc.stderr, "stderr"), daemon=True)
    t_out.start()
    t_err.start()
    rc = proc.wait()
    t_out.join()
    t_err.join()

    out_text = "\n".join(stdout_buf).strip()
    if rc != 0:
        raise CmdError(f"Command failed ({rc}): {' '.join(cmd)}\nSTDOUT:\n{out_text}")
    return out_text


def _resolve_az_exe() -> str:
    return shutil.which("az") or shutil.which("az.cmd") or "az"


def az(args: List[str]) -> str:
    return run([_resolve_az_exe(), *args], cwd=None)


def az_json(args: List[str]) -> Any:
    out = az([*args, "-o", "json"])
    return json.loads(out) if out else None


def cdktf(project_dir: Path, args: List[str]) -> str:
    return run(["cdktf", *args], cwd=str(project_dir))


def list_vault_role_assignments(vault_id: str) -> List[dict]:
    """Role assignments currently present at the vault scope."""
    data = az_json(["role", "assignment", "list", "--scope", vault_id])
    return list(data or [])
