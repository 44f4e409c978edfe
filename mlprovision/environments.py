from __future__ import annotations

import logging
from typing import Iterable, Optional

from .context import ProvisionContext, ResourceId
from .discovery import names_of
from .errors import WalkthroughHalt
from .gate import Step
from .provider import AzureMLProvider

logger = logging.getLogger(__name__)


def select_environment(candidates: Iterable[str], *, exact: Optional[str] = None, match: Optional[str] = None) -> str:
    """
    Pick an environment name.

    exact: the name must be present as-is.
    match: substring search; the lexicographically greatest hit wins, which
    prefers the highest version when it is encoded as a trailing token
    (e.g. "AzureML-TensorFlow-2.2-GPU" over "...-2.1-GPU").
    """
    names = sorted(set(candidates))
    if exact:
        if exact in names:
            return exact
        raise WalkthroughHalt(f"Environment '{exact}' does not exist.", step="environment")

    if match:
        hits = [n for n in names if match in n]
        if not hits:
            listing = "\n  ".join(names) if names else "(none)"
            raise WalkthroughHalt(
                f"No environment name contains '{match}'. Available environments:\n  {listing}",
                step="environment",
            )
        chosen = max(hits)
        if len(hits) > 1:
            logger.info(f"{len(hits)} environments match '{match}'; choosing '{chosen}'")
        return chosen

    raise WalkthroughHalt("No environment requested.", step="environment", missing=["environment_name"])


def requested(ctx: ProvisionContext) -> bool:
    return bool(ctx.environment_name or ctx.environment_match)


def environment_step(provider: AzureMLProvider) -> Step:
    def discover(ctx: ProvisionContext) -> Optional[ResourceId]:
        rc = provider.pack.for_kind("environment")
        records = provider.list("environment", ctx.scope())
        name = select_environment(
            names_of(records, rc.name_key),
            exact=ctx.environment_name,
            match=ctx.environment_match,
        )
        return ResourceId(kind="environment", name=name, id=name, parent=ctx.workspace.name if ctx.workspace else None)

    return Step(
        name="environment",
        target="environment",
        requires=("resource_group", "workspace"),
        discover=discover,
        hint="Pass --environment or --environment-match.",
        enabled=requested,
    )
