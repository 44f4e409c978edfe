from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from .context import ProvisionContext, ResourceId
from .errors import WalkthroughHalt
from .gate import Step
from .provider import AzureMLProvider

logger = logging.getLogger(__name__)

# Azure Open Datasets copy of MNIST; used when a dataset is requested by name
# and does not exist yet.
MNIST_URLS = [
    "https://azureopendatastorage.blob.core.windows.net/mnist/train-images-idx3-ubyte.gz",
    "https://azureopendatastorage.blob.core.windows.net/mnist/train-labels-idx1-ubyte.gz",
    "https://azureopendatastorage.blob.core.windows.net/mnist/t10k-images-idx3-ubyte.gz",
    "https://azureopendatastorage.blob.core.windows.net/mnist/t10k-labels-idx1-ubyte.gz",
]


class DatasetParameters(BaseModel):
    path: List[str]
    sourceType: Optional[str] = None


class DatasetRegistration(BaseModel):
    name: str
    description: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)
    createNewVersion: bool = False


class DatasetDefinition(BaseModel):
    """Declarative dataset spec in the shape `az ml dataset register --file` reads."""
    schemaVersion: int = 1
    datasetType: Literal["File", "Tabular"] = "File"
    parameters: DatasetParameters
    registration: DatasetRegistration

    @property
    def name(self) -> str:
        return self.registration.name


def default_definition(name: str) -> DatasetDefinition:
    return DatasetDefinition(
        datasetType="File",
        parameters=DatasetParameters(path=list(MNIST_URLS)),
        registration=DatasetRegistration(
            name=name,
            description="MNIST handwritten digits (Azure Open Datasets)",
            tags={"source": "azureopendatasets"},
        ),
    )


def load_definition(path: Path) -> DatasetDefinition:
    if not path.exists():
        raise WalkthroughHalt(f"Dataset definition file '{path}' not found.", step="dataset", missing=["dataset_file"])
    try:
        return DatasetDefinition.model_validate(json.loads(path.read_text("utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        raise WalkthroughHalt(f"Dataset definition file '{path}' is invalid: {e}", step="dataset") from e


def write_definition(defn: DatasetDefinition, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(defn.model_dump(exclude_none=True), indent=2, ensure_ascii=False), "utf-8")
    tmp.replace(path)
    return path


def requested(ctx: ProvisionContext) -> bool:
    return bool(ctx.dataset_id or ctx.dataset_name or ctx.dataset_file)


def dataset_step(provider: AzureMLProvider, workdir: Path) -> Step:
    """
    Build the dataset step. Exactly one of dataset_id / dataset_file /
    dataset_name selects the mode; the CLI enforces the exclusivity.
    """

    def scope(ctx: ProvisionContext) -> dict:
        return ctx.scope()

    def requested_name(ctx: ProvisionContext) -> str:
        if ctx.dataset_file is not None:
            return load_definition(ctx.dataset_file).name
        return ctx.dataset_name or ""

    def discover(ctx: ProvisionContext) -> Optional[ResourceId]:
        if ctx.dataset_id:
            found = provider.find_id("dataset", ctx.dataset_id, scope(ctx))
            if found is None:
                raise WalkthroughHalt(
                    f"No dataset with id '{ctx.dataset_id}' in workspace '{ctx.workspace.name}'.",  # type: ignore[union-attr]
                    step="dataset",
                )
            return found
        return provider.find("dataset", requested_name(ctx), scope(ctx))

    def create(ctx: ProvisionContext) -> ResourceId:
        if ctx.dataset_file is not None:
            definition_file = ctx.dataset_file
            name = load_definition(definition_file).name
        else:
            name = ctx.dataset_name or ""
            definition_file = write_definition(default_definition(name), workdir / f"{name}.dataset.json")
            logger.info(f"Wrote default dataset definition to {definition_file}")
        return provider.create("dataset", {**scope(ctx), "name": name, "definition_file": str(definition_file)})

    return Step(
        name="dataset",
        target="dataset",
        requires=("resource_group", "workspace"),
        discover=discover,
        create=create,
        prompt="Dataset not found in the workspace. Register it now?",
        hint="Pass --dataset-name, --dataset-file or --dataset-id.",
        reresolve=True,
        enabled=requested,
    )
