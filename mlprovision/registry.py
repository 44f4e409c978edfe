from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import ValidationError

from .errors import CommandPackError
from .schema import CommandPack

DEFAULT_PACK = "azure-ml-cli-v1"


class CommandPackRegistry:
    def __init__(self, packs_dir: Optional[Path] = None) -> None:
        self.packs_dir = packs_dir or (Path(__file__).parent / "packs")

    def list(self) -> List[str]:
        if not self.packs_dir.exists():
            return []
        names = []
        for p in sorted(self.packs_dir.glob("*.yaml")):
            names.append(p.stem)
        for p in sorted(self.packs_dir.glob("*.json")):
            names.append(p.stem)
        return sorted(set(names))

    def load(self, name: str = DEFAULT_PACK) -> CommandPack:
        y = self.packs_dir / f"{name}.yaml"
        j = self.packs_dir / f"{name}.json"
        try:
            if y.exists():
                data = yaml.safe_load(y.read_text("utf-8"))
                return CommandPack.model_validate(data)
            if j.exists():
                data = json.loads(j.read_text("utf-8"))
                return CommandPack.model_validate(data)
        except (yaml.YAMLError, json.JSONDecodeError, ValidationError) as e:
            raise CommandPackError(f"invalid command pack '{name}': {e}") from e
        available = ", ".join(self.list()) or "none"
        raise CommandPackError(f"command pack not found: {name} (available: {available})")
