from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

from .context import ProvisionContext, ResourceId
from .datasets import dataset_step
from .environments import environment_step
from .gate import Step, StepGate
from .provider import AzureMLProvider
from .runconfig import RUNCONFIG_DIR, materialize
from .settings import WalkthroughSettings

logger = logging.getLogger(__name__)


def context_from_settings(settings: WalkthroughSettings, subscription: Optional[ResourceId] = None) -> ProvisionContext:
    return ProvisionContext(
        subscription=subscription,
        location=settings.location,
        resource_group_name=settings.resource_group,
        workspace_name=settings.workspace,
        compute_name=settings.compute,
        vm_size=settings.vm_size,
        min_nodes=settings.min_nodes,
        max_nodes=settings.max_nodes,
        experiment=settings.experiment,
        script=str(settings.script) if settings.script else None,
        dataset_name=settings.dataset_name,
        dataset_file=settings.dataset_file,
        dataset_id=settings.dataset_id,
        environment_name=settings.environment,
        environment_match=settings.environment_match,
    )


def resource_group_step(provider: AzureMLProvider) -> Step:
    return Step(
        name="resource group",
        target="resource_group",
        requires=("subscription", "resource_group_name"),
        discover=lambda ctx: provider.find("resource_group", ctx.resource_group_name or "", ctx.scope()),
        create=lambda ctx: provider.create(
            "resource_group", {**ctx.scope(), "name": ctx.resource_group_name, "location": ctx.location}
        ),
        prompt="Resource group not found. Create it?",
        hint="Pass --resource-group.",
    )


def workspace_step(provider: AzureMLProvider) -> Step:
    return Step(
        name="workspace",
        target="workspace",
        requires=("resource_group", "workspace_name", "location"),
        discover=lambda ctx: provider.find("workspace", ctx.workspace_name or "", ctx.scope()),
        create=lambda ctx: provider.create("workspace", {**ctx.scope(), "name": ctx.workspace_name}),
        prompt="Workspace not found. Create it? (this can take several minutes)",
        hint="Pass --workspace.",
    )


def compute_step(provider: AzureMLProvider) -> Step:
    return Step(
        name="compute target",
        target="compute_target",
        requires=("resource_group", "workspace", "compute_name"),
        discover=lambda ctx: provider.find("compute_target", ctx.compute_name or "", ctx.scope()),
        create=lambda ctx: provider.create(
            "compute_target",
            {
                **ctx.scope(),
                "name": ctx.compute_name,
                "vm_size": ctx.vm_size,
                "min_nodes": ctx.min_nodes,
                "max_nodes": ctx.max_nodes,
            },
        ),
        prompt="Compute target not found. Create an autoscaling cluster?",
        hint="Pass --compute.",
    )


class Walkthrough:
    """
    Resource group -> workspace -> compute target -> dataset -> environment
    -> run configuration -> (optional) job submission.

    Each stage takes the context produced by the previous one. A WalkthroughHalt
    or ProvisioningError stops the run; anything created before it is left in place.
    """

    def __init__(
        self,
        provider: AzureMLProvider,
        gate: StepGate,
        *,
        workdir: Path = Path(".azureml"),
        runconfig_template: Optional[Path] = None,
        regenerate_runconfig: Optional[bool] = None,
        submit: bool = False,
    ) -> None:
        self.provider = provider
        self.gate = gate
        self.workdir = workdir
        self.runconfig_template = runconfig_template
        self.regenerate_runconfig = regenerate_runconfig
        self.submit = submit
        self.last_context: Optional[ProvisionContext] = None

    def steps(self) -> List[Step]:
        return [
            resource_group_step(self.provider),
            workspace_step(self.provider),
            compute_step(self.provider),
            dataset_step(self.provider, self.workdir),
            environment_step(self.provider),
        ]

    def stages(self) -> List[Callable[[ProvisionContext], ProvisionContext]]:
        stages: List[Callable[[ProvisionContext], ProvisionContext]] = [
            (lambda ctx, s=s: self.gate.run_step(s, ctx)) for s in self.steps()
        ]
        stages.append(self.write_runconfig)
        if self.submit:
            stages.append(self.submit_job)
        return stages

    def run(self, ctx: ProvisionContext) -> ProvisionContext:
        # last context reached, so a caller can report what exists after a halt
        self.last_context = ctx
        for stage in self.stages():
            ctx = stage(ctx)
            self.last_context = ctx
        logger.info("All done!")
        return ctx

    def runconfig_dir(self, ctx: ProvisionContext) -> Path:
        # az ml resolves --run-configuration-name under <project>/.azureml/
        if not ctx.script:
            return self.workdir
        return Path(ctx.script).parent / RUNCONFIG_DIR

    def write_runconfig(self, ctx: ProvisionContext) -> ProvisionContext:
        return materialize(
            ctx,
            self.gate,
            self.runconfig_dir(ctx),
            template=self.runconfig_template,
            regenerate=self.regenerate_runconfig,
        )

    def submit_job(self, ctx: ProvisionContext) -> ProvisionContext:
        self.gate.check(
            "submit",
            ctx,
            ("resource_group", "workspace", "runconfig_path", "experiment", "script"),
            "Submission needs a run configuration and an experiment name.",
        )
        assert ctx.runconfig_path is not None and ctx.script is not None
        source_dir = Path(ctx.script).parent
        project_dir = ctx.runconfig_path.parent.parent
        logger.info(f"[submit] submitting {Path(ctx.script).name} to experiment '{ctx.experiment}'")
        run_id = self.provider.submit(
            {
                **ctx.scope(),
                "experiment": ctx.experiment,
                "run_configuration": ctx.runconfig_path.stem,
                "source_directory": str(source_dir),
                "project_dir": str(project_dir),
            }
        )
        logger.info(f"[submit] run id: {run_id or '(not reported)'}")
        return ctx.evolve(run_id=run_id or None)
