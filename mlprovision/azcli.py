from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from .errors import PreflightError, ProviderCommandError
from .redact import redact_argv, redact_text

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


def find_az() -> Optional[str]:
    return shutil.which("az") or shutil.which("az.cmd") or shutil.which("az.exe")


class AzCli:
    """
    Thin wrapper over the `az` executable.
    Every call requests JSON output; a non-zero exit raises ProviderCommandError
    with the (redacted) command line that failed.
    """

    def __init__(
        self,
        executable: Optional[str] = None,
        *,
        timeout_s: int = 1800,
        runner: Runner = subprocess.run,
    ) -> None:
        self.executable = executable or find_az() or "az"
        self.timeout_s = timeout_s
        self._runner = runner

    def run_text(self, args: Sequence[str]) -> str:
        argv = [self.executable, *args]
        shown = redact_argv(["az", *args])
        logger.debug(f"$ {' '.join(shown)}")
        try:
            p = self._runner(argv, check=False, capture_output=True, text=True, timeout=self.timeout_s)
        except FileNotFoundError as e:
            raise PreflightError(f"Azure CLI not found ({self.executable}). Install https://aka.ms/azcli and run 'az login'.") from e
        except subprocess.TimeoutExpired as e:
            raise ProviderCommandError(shown, -1, f"timed out after {self.timeout_s}s") from e
        if p.returncode != 0:
            raise ProviderCommandError(shown, p.returncode, redact_text(p.stderr or ""))
        return p.stdout or ""

    def run_json(self, args: Sequence[str]) -> Any:
        out = self.run_text([*args, "--output", "json"])
        if not out.strip():
            return None
        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            raise ProviderCommandError(redact_argv(["az", *args]), 0, f"unparseable JSON output: {e.msg}") from e


@dataclass
class AccountInfo:
    subscription_id: str
    subscription_name: str = ""
    tenant_id: str = ""
    user: str = ""


def ensure_az_ready(cli: AzCli, *, require_ml_extension: bool = True) -> AccountInfo:
    """
    Verify the CLI is installed, logged in, and (optionally) has the `ml` extension.
    Returns the active subscription, the root of every resource identifier.
    """
    try:
        account: Dict[str, Any] = cli.run_json(["account", "show"]) or {}
    except ProviderCommandError as e:
        raise PreflightError(
            "Azure CLI not logged in. Run 'az login' and 'az account set --subscription <SUBSCRIPTION>'."
        ) from e

    info = AccountInfo(
        subscription_id=str(account.get("id", "")),
        subscription_name=str(account.get("name", "")),
        tenant_id=str(account.get("tenantId", "")),
        user=str((account.get("user") or {}).get("name", "")),
    )
    if not info.subscription_id:
        raise PreflightError("'az account show' returned no subscription id.")

    if require_ml_extension:
        extensions: List[Dict[str, Any]] = cli.run_json(["extension", "list"]) or []
        names = {str(x.get("name", "")) for x in extensions}
        if "azure-cli-ml" not in names:
            raise PreflightError(
                "The Azure ML CLI extension is not installed. Run: az extension add -n azure-cli-ml"
            )

    logger.info(f"Using subscription {info.subscription_name or info.subscription_id} ({info.subscription_id})")
    return info
