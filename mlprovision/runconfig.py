from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from .context import ProvisionContext
from .errors import WalkthroughHalt
from .gate import StepGate

logger = logging.getLogger(__name__)

RUNCONFIG_DIR = ".azureml"
RUNCONFIG_SUFFIX = ".runconfig"

# Tokens understood in a user-supplied run configuration template.
TEMPLATE_TOKENS = ("computeTargetName", "scriptFile", "chosenEnvironmentName", "datasetId")

REQUIRED_FIELDS = ("compute_target", "script", "environment", "dataset", "experiment")


class DatasetMount(BaseModel):
    dataLocation: Dict[str, Any]
    mechanism: str = "mount"
    environmentVariableName: str
    pathOnCompute: Optional[str] = None
    overwrite: bool = False


class RunConfiguration(BaseModel):
    """Structured run configuration; field names follow the azureml v1 .runconfig schema."""
    script: str
    arguments: List[str] = Field(default_factory=list)
    target: str
    framework: str = "Python"
    communicator: str = "None"
    nodeCount: int = 1
    environment: Dict[str, Any]
    history: Dict[str, Any] = Field(
        default_factory=lambda: {"outputCollection": True, "snapshotProject": True, "directoriesToWatch": ["logs"]}
    )
    data: Dict[str, DatasetMount] = Field(default_factory=dict)

    # carried for the submit step; not part of the file body
    experiment: str = Field(default="", exclude=True)


def build_runconfig(ctx: ProvisionContext) -> RunConfiguration:
    assert ctx.compute_target and ctx.environment and ctx.dataset and ctx.script
    mount_name = re.sub(r"\W", "_", ctx.dataset.name) or "dataset"
    return RunConfiguration(
        script=Path(ctx.script).name,
        target=ctx.compute_target.name,
        environment={"name": ctx.environment.name},
        data={
            mount_name: DatasetMount(
                dataLocation={"dataset": {"id": ctx.dataset.id}},
                environmentVariableName=mount_name,
            )
        },
        experiment=ctx.experiment or "",
    )


def dump_runconfig(rc: RunConfiguration) -> str:
    header = f"# experiment: {rc.experiment}\n" if rc.experiment else ""
    body = yaml.safe_dump(rc.model_dump(mode="json"), sort_keys=True, default_flow_style=False)
    return header + body


def template_values(ctx: ProvisionContext) -> Dict[str, str]:
    assert ctx.compute_target and ctx.environment and ctx.dataset and ctx.script
    return {
        "computeTargetName": ctx.compute_target.name,
        "scriptFile": Path(ctx.script).name,
        "chosenEnvironmentName": ctx.environment.name,
        "datasetId": ctx.dataset.id,
    }


def _token_pattern(token: str) -> str:
    return rf"\$(?:{token}\b|\{{{token}\}})"


def render_template(text: str, values: Dict[str, str]) -> str:
    """Literal `$token` / `${token}` substitution; every other `$` sequence is left alone."""
    out = text
    for token in TEMPLATE_TOKENS:
        if token in values:
            out = re.sub(_token_pattern(token), lambda _m, v=values[token]: v, out)
    leftover = [t for t in TEMPLATE_TOKENS if re.search(_token_pattern(t), out)]
    if leftover:
        raise WalkthroughHalt(
            f"Run configuration template still has unresolved tokens: {', '.join(leftover)}", step="runconfig"
        )
    return out


def runconfig_path(workdir: Path, compute_name: str) -> Path:
    return workdir / f"{compute_name}{RUNCONFIG_SUFFIX}"


def materialize(
    ctx: ProvisionContext,
    gate: StepGate,
    workdir: Path,
    *,
    template: Optional[Path] = None,
    regenerate: Optional[bool] = None,
) -> ProvisionContext:
    """
    Write `<workdir>/<compute>.runconfig` once every referenced entity is resolved.

    An existing file is reused verbatim. It is only rewritten when `regenerate`
    is True, or when `regenerate` is None and the user confirms.
    """
    gate.check(
        "runconfig",
        ctx,
        REQUIRED_FIELDS,
        "A run configuration needs a compute target, script, environment, dataset and experiment.",
    )
    assert ctx.compute_target is not None
    path = runconfig_path(workdir, ctx.compute_target.name)

    if path.exists():
        if regenerate is None:
            regenerate = gate.ask(f"Run configuration {path} already exists. Regenerate it?")
        if not regenerate:
            logger.info(f"[runconfig] reusing {path}")
            return ctx.evolve(runconfig_path=path)

    if template is not None:
        if not template.exists():
            raise WalkthroughHalt(f"Run configuration template '{template}' not found.", step="runconfig")
        text = render_template(template.read_text("utf-8"), template_values(ctx))
    else:
        text = dump_runconfig(build_runconfig(ctx))

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(text, "utf-8")
    tmp.replace(path)
    logger.info(f"[runconfig] wrote {path}")
    return ctx.evolve(runconfig_path=path)
