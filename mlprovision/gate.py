from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .context import ProvisionContext, ResourceId
from .errors import ProvisioningInconsistency, WalkthroughHalt
from .policy import Confirm

logger = logging.getLogger(__name__)

Discover = Callable[[ProvisionContext], Optional[ResourceId]]
Create = Callable[[ProvisionContext], ResourceId]


@dataclass(frozen=True)
class Step:
    """
    One ensure-or-create unit of the walkthrough.

    `requires` names context fields that must be set before anything runs.
    `target` is the context field the resolved ResourceId is stored in.
    `enabled`, when given, lets an optional step be skipped deliberately
    (the user asked for nothing it provides).
    """
    name: str
    target: str
    requires: Tuple[str, ...]
    discover: Discover
    create: Optional[Create] = None
    prompt: str = ""
    hint: str = ""
    reresolve: bool = False
    enabled: Optional[Callable[[ProvisionContext], bool]] = None


class StepGate:
    def __init__(
        self,
        confirm: Confirm,
        on_step: Optional[Callable[[Step, ProvisionContext], None]] = None,
    ) -> None:
        self._confirm = confirm
        self._on_step = on_step

    def check(self, name: str, ctx: ProvisionContext, requires: Tuple[str, ...], hint: str = "") -> None:
        missing = ctx.missing(requires)
        if missing:
            msg = f"Step '{name}' cannot run: missing {', '.join(missing)}."
            if hint:
                msg += f" {hint}"
            raise WalkthroughHalt(msg, step=name, missing=missing)

    def ask(self, question: str) -> bool:
        return bool(self._confirm(question))

    def run_step(self, step: Step, ctx: ProvisionContext) -> ProvisionContext:
        if step.enabled is not None and not step.enabled(ctx):
            logger.info(f"[{step.name}] skipped (nothing requested)")
            return ctx

        if self._on_step:
            self._on_step(step, ctx)

        self.check(step.name, ctx, step.requires, step.hint)

        found = step.discover(ctx)
        if found is not None:
            logger.info(f"[{step.name}] found existing {found.kind} '{found.name}'")
            return ctx.evolve(**{step.target: found})

        if step.create is None:
            raise WalkthroughHalt(
                f"Step '{step.name}': resource not found and this step cannot create it. {step.hint}".strip(),
                step=step.name,
            )

        question = step.prompt or f"{step.name}: not found. Create it now?"
        if not self.ask(question):
            raise WalkthroughHalt(f"Step '{step.name}': creation declined; stopping.", step=step.name)

        created = step.create(ctx)
        if step.reresolve:
            again = step.discover(ctx)
            if again is None:
                raise ProvisioningInconsistency(
                    f"Step '{step.name}': {created.kind} '{created.name}' was created but cannot be found afterwards"
                )
            created = again

        logger.info(f"[{step.name}] created {created.kind} '{created.name}'")
        return ctx.evolve(**{step.target: created, "created": (*ctx.created, f"{created.kind}:{created.name}")})
