"""Shared fixtures: an in-memory stand-in for the `az` executable."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pytest

from mlprovision.azcli import AzCli
from mlprovision.context import ProvisionContext, ResourceId
from mlprovision.provider import AzureMLProvider
from mlprovision.registry import CommandPackRegistry


def _flag(argv: Sequence[str], name: str) -> str:
    return argv[list(argv).index(name) + 1]


class FakeAz:
    """
    Answers the subset of `az` the command pack uses, keeping resources in memory.
    Every argv is recorded in `calls` (without the executable).
    """

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.groups: List[Dict[str, Any]] = []
        self.workspaces: List[Dict[str, Any]] = []
        self.computes: List[Dict[str, Any]] = []
        self.datasets: List[Dict[str, Any]] = []
        self.environments: List[Dict[str, Any]] = []
        self.fail: Dict[tuple, str] = {}
        self.hide_registered_datasets = False
        self.logged_in = True
        self.extensions = [{"name": "azure-cli-ml"}]

    # -- helpers for tests ---------------------------------------------------

    def seed_existing(self) -> "FakeAz":
        self.groups.append({"name": "rg1", "id": "/subscriptions/sub-123/resourceGroups/rg1"})
        self.workspaces.append({"workspaceName": "ws1", "id": "ws1-id", "resourceGroup": "rg1"})
        self.computes.append({"name": "cpu1", "id": "cpu1-id"})
        self.datasets.append({"name": "mnist", "id": "ds-123"})
        self.environments.extend({"name": n} for n in ("Env-1.0", "Env-2.0", "Env-1.5", "TF-Env"))
        return self

    def creations(self) -> List[List[str]]:
        return [c for c in self.calls if "create" in c or "register" in c]

    # -- subprocess.run replacement -----------------------------------------

    def __call__(self, argv, **kwargs) -> subprocess.CompletedProcess:
        args = list(argv[1:])
        if args[-2:] == ["--output", "json"]:
            args = args[:-2]
        self.calls.append(args)

        for prefix, stderr in self.fail.items():
            if tuple(args[: len(prefix)]) == prefix:
                return subprocess.CompletedProcess(argv, 1, "", stderr)

        out = self._dispatch(args)
        if out is _FAIL:
            return subprocess.CompletedProcess(argv, 1, "", "ERROR: not supported by fake")
        return subprocess.CompletedProcess(argv, 0, json.dumps(out), "")

    def _dispatch(self, a: List[str]) -> Any:
        if a[:2] == ["account", "show"]:
            if not self.logged_in:
                return _FAIL
            return {"id": "sub-123", "name": "Test Sub", "tenantId": "tenant", "user": {"name": "dev@example.com"}}
        if a[:2] == ["extension", "list"]:
            return self.extensions

        if a[:2] == ["group", "list"]:
            return self.groups
        if a[:2] == ["group", "create"]:
            name = _flag(a, "--name")
            rec = {"name": name, "id": f"/subscriptions/sub-123/resourceGroups/{name}", "location": _flag(a, "--location")}
            self.groups.append(rec)
            return rec

        if a[:3] == ["ml", "workspace", "list"]:
            return self.workspaces
        if a[:3] == ["ml", "workspace", "create"]:
            name = _flag(a, "--workspace-name")
            rec = {"workspaceName": name, "id": f"{name}-id", "resourceGroup": _flag(a, "--resource-group")}
            self.workspaces.append(rec)
            return rec

        if a[:3] == ["ml", "computetarget", "list"]:
            return self.computes
        if a[:4] == ["ml", "computetarget", "create", "amlcompute"]:
            name = _flag(a, "--name")
            rec = {"name": name, "id": f"{name}-id", "vmSize": _flag(a, "--vm-size")}
            self.computes.append(rec)
            return rec

        if a[:3] == ["ml", "dataset", "list"]:
            return self.datasets
        if a[:3] == ["ml", "dataset", "register"]:
            spec = json.loads(Path(_flag(a, "--file")).read_text("utf-8"))
            name = spec["registration"]["name"]
            rec = {"name": name, "id": f"ds-{name}"}
            if not self.hide_registered_datasets:
                self.datasets.append(rec)
            return rec

        if a[:3] == ["ml", "environment", "list"]:
            return self.environments

        if a[:3] == ["ml", "run", "submit-script"]:
            return {"runId": f"{_flag(a, '--experiment-name')}_1", "status": "Queued"}

        return _FAIL


_FAIL = object()


@pytest.fixture
def fake_az() -> FakeAz:
    return FakeAz()


@pytest.fixture
def provider(fake_az: FakeAz) -> AzureMLProvider:
    return AzureMLProvider(AzCli("az", runner=fake_az), CommandPackRegistry().load())


@pytest.fixture
def base_ctx(tmp_path: Path) -> ProvisionContext:
    script = tmp_path / "train.py"
    script.write_text("print('training')\n", "utf-8")
    return ProvisionContext(
        subscription=ResourceId(kind="subscription", name="Test Sub", id="sub-123"),
        location="eastus",
        resource_group_name="rg1",
        workspace_name="ws1",
        compute_name="cpu1",
        experiment="exp1",
        script=str(script),
        dataset_name="mnist",
        environment_match="Env",
    )


@pytest.fixture
def resolved_ctx(base_ctx: ProvisionContext) -> ProvisionContext:
    """A context as it looks right before the run configuration stage."""
    return base_ctx.evolve(
        resource_group=ResourceId(kind="resource_group", name="rg1", id="rg1-id"),
        workspace=ResourceId(kind="workspace", name="ws1", id="ws1-id", parent="rg1"),
        compute_target=ResourceId(kind="compute_target", name="cpu1", id="cpu1-id", parent="ws1"),
        dataset=ResourceId(kind="dataset", name="mnist", id="ds-123", parent="ws1"),
        environment=ResourceId(kind="environment", name="TF-Env", id="TF-Env", parent="ws1"),
    )
