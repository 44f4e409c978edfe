from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .errors import CommandPackError


class ResourceCommands(BaseModel):
    """argv templates for one resource kind; `{placeholders}` are filled per call."""
    name_key: str = "name"
    id_key: str = "id"
    commands: Dict[str, List[str]] = Field(default_factory=dict)

    def render(self, kind: str, action: str, values: Dict[str, Any]) -> List[str]:
        template = self.commands.get(action)
        if template is None:
            raise CommandPackError(f"no '{action}' command defined for {kind}")
        try:
            return [tok.format(**values) for tok in template]
        except KeyError as e:
            raise CommandPackError(f"{kind}.{action} needs a value for {e.args[0]}") from e


class CommandPack(BaseModel):
    name: str
    description: str = ""
    resources: Dict[str, ResourceCommands]

    def for_kind(self, kind: str) -> ResourceCommands:
        rc = self.resources.get(kind)
        if rc is None:
            raise CommandPackError(f"command pack '{self.name}' has no resource kind '{kind}'")
        return rc

    def render(self, kind: str, action: str, values: Optional[Dict[str, Any]] = None) -> List[str]:
        return self.for_kind(kind).render(kind, action, values or {})
