from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict


class ResourceId(BaseModel):
    """A resolved provider resource. `parent` is the id of the enclosing scope."""
    model_config = ConfigDict(frozen=True)

    kind: str
    name: str
    id: str = ""
    parent: Optional[str] = None


class ProvisionContext(BaseModel):
    """
    Everything the walkthrough knows so far.

    Requested inputs (what the user asked for) sit next to resolved identifiers
    (what the provider confirmed). Steps never mutate a context; they return
    an updated copy via `evolve()`.
    """
    model_config = ConfigDict(frozen=True)

    # requested
    location: Optional[str] = None
    resource_group_name: Optional[str] = None
    workspace_name: Optional[str] = None
    compute_name: Optional[str] = None
    vm_size: str = "STANDARD_D2_V2"
    min_nodes: int = 0
    max_nodes: int = 4
    experiment: Optional[str] = None
    script: Optional[str] = None
    dataset_name: Optional[str] = None
    dataset_file: Optional[Path] = None
    dataset_id: Optional[str] = None
    environment_name: Optional[str] = None
    environment_match: Optional[str] = None

    # resolved
    subscription: Optional[ResourceId] = None
    resource_group: Optional[ResourceId] = None
    workspace: Optional[ResourceId] = None
    compute_target: Optional[ResourceId] = None
    dataset: Optional[ResourceId] = None
    environment: Optional[ResourceId] = None
    runconfig_path: Optional[Path] = None
    run_id: Optional[str] = None

    created: Tuple[str, ...] = ()

    def evolve(self, **changes: Any) -> "ProvisionContext":
        return self.model_copy(update=changes)

    def missing(self, fields: Sequence[str]) -> List[str]:
        return [f for f in fields if getattr(self, f) in (None, "")]

    def scope(self) -> dict:
        """Placeholder values for provider command templates."""
        return {
            "subscription": self.subscription.id if self.subscription else "",
            "location": self.location or "",
            "resource_group": self.resource_group.name if self.resource_group else "",
            "workspace": self.workspace.name if self.workspace else "",
        }
