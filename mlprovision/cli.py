from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .azcli import AzCli, ensure_az_ready
from .context import ProvisionContext, ResourceId
from .errors import ProvisioningError, WalkthroughHalt
from .gate import Step, StepGate
from .policy import ConsoleConfirm, assume_yes
from .provider import AzureMLProvider
from .registry import CommandPackRegistry
from .settings import WalkthroughSettings, load_settings
from .walkthrough import Walkthrough, context_from_settings

logger = logging.getLogger("mlprovision")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mlprovision")
    parser.add_argument("-v", "--verbose", action="store_true", help="Echo every az invocation")
    sub = parser.add_subparsers(dest="subcommand", required=True)

    # --- walkthrough ---
    run = sub.add_parser("run", help="Walk through provisioning and (optionally) submit a training run")
    run.add_argument("--config", type=Path, help="YAML/JSON settings file")
    run.add_argument("--resource-group", dest="resource_group", help="Resource group name")
    run.add_argument("--location", help="Azure region for new resources (default: eastus)")
    run.add_argument("--workspace", help="Azure ML workspace name")
    run.add_argument("--compute", help="Compute target (cluster) name")
    run.add_argument("--vm-size", dest="vm_size", help="VM size for a new cluster")
    run.add_argument("--min-nodes", dest="min_nodes", type=int, help="Min nodes for a new cluster (default: 0)")
    run.add_argument("--max-nodes", dest="max_nodes", type=int, help="Max nodes for a new cluster")
    run.add_argument("--experiment", help="Experiment name to submit under (default: mlprovision)")
    run.add_argument("--script", type=Path, help="Training script to run")

    ds = run.add_mutually_exclusive_group()
    ds.add_argument("--dataset-name", dest="dataset_name", help="Use (or register) a dataset by name")
    ds.add_argument("--dataset-file", dest="dataset_file", type=Path, help="Register from a dataset definition file")
    ds.add_argument("--dataset-id", dest="dataset_id", help="Use an existing dataset by id")

    env = run.add_mutually_exclusive_group()
    env.add_argument("--environment", help="Exact environment name")
    env.add_argument(
        "--environment-match",
        dest="environment_match",
        help="Substring; the lexicographically greatest matching environment is chosen",
    )

    run.add_argument("--runconfig-template", dest="runconfig_template", type=Path,
                     help="Run configuration template with $computeTargetName/$scriptFile/"
                          "$chosenEnvironmentName/$datasetId tokens")
    run.add_argument("--regenerate-runconfig", dest="regenerate_runconfig", action="store_true",
                     help="Rewrite an existing run configuration")
    run.add_argument("--submit", action="store_true", help="Submit the script once everything is in place")
    run.add_argument("-y", "--yes", dest="assume_yes", action="store_true", help="Create missing resources without asking")

    # --- checks ---
    sub.add_parser("preflight", help="Check that the Azure CLI is installed, logged in and has the ml extension")
    settings = sub.add_parser("settings", help="Print the effective settings")
    settings.add_argument("--config", type=Path, help="YAML/JSON settings file")

    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(message)s",
    )


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    fields = WalkthroughSettings.model_fields
    return {k: v for k, v in vars(args).items() if k in fields}


def _summary(ctx: Optional[ProvisionContext]) -> None:
    if ctx is None:
        return
    for label, rid in (
        ("Resource group", ctx.resource_group),
        ("Workspace", ctx.workspace),
        ("Compute target", ctx.compute_target),
        ("Dataset", ctx.dataset),
        ("Environment", ctx.environment),
    ):
        if rid is not None:
            print(f"{label:16} {rid.name}" + (f"  ({rid.id})" if rid.id and rid.id != rid.name else ""))
    if ctx.runconfig_path:
        print(f"{'Run config':16} {ctx.runconfig_path}")
    if ctx.run_id:
        print(f"{'Run id':16} {ctx.run_id}")
    if ctx.created:
        print(f"{'Created':16} {', '.join(ctx.created)}")


def _announce(step: Step, ctx: ProvisionContext) -> None:
    print(f"\n== {step.name} ==")


def run_walkthrough(settings: WalkthroughSettings) -> int:
    cli = AzCli(settings.az_path)
    pack = CommandPackRegistry().load(settings.command_pack)
    account = ensure_az_ready(cli)

    confirm = assume_yes if settings.assume_yes else ConsoleConfirm()
    if settings.regenerate_runconfig:
        regenerate: Optional[bool] = True
    elif settings.assume_yes:
        regenerate = False
    else:
        regenerate = None

    walkthrough = Walkthrough(
        AzureMLProvider(cli, pack),
        StepGate(confirm, on_step=_announce),
        workdir=settings.workdir,
        runconfig_template=settings.runconfig_template,
        regenerate_runconfig=regenerate,
        submit=settings.submit,
    )
    subscription = ResourceId(kind="subscription", name=account.subscription_name, id=account.subscription_id)
    try:
        ctx = walkthrough.run(context_from_settings(settings, subscription))
    except WalkthroughHalt:
        _summary(walkthrough.last_context)
        raise
    _summary(ctx)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.subcommand == "run":
            settings = load_settings(args.config, _overrides(args))
            return run_walkthrough(settings)

        if args.subcommand == "preflight":
            info = ensure_az_ready(AzCli(load_settings().az_path))
            print(f"OK: logged in as {info.user or '(unknown)'}, subscription {info.subscription_id}")
            return 0

        if args.subcommand == "settings":
            s = load_settings(args.config)
            print(s.model_dump_json(indent=2))
            return 0
    except WalkthroughHalt as e:
        logger.warning(str(e))
        return 0
    except ProvisioningError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 2
