from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .azcli import AzCli
from .context import ResourceId
from .discovery import Record, find_by_id, find_by_name
from .errors import ProviderCommandError
from .schema import CommandPack

logger = logging.getLogger(__name__)


class AzureMLProvider:
    """
    Resource operations for the walkthrough, driven by a command pack.

    Which argv to run for a kind/action lives in the pack (YAML data);
    this class only runs it and interprets the JSON records that come back.
    """

    def __init__(self, cli: AzCli, pack: CommandPack) -> None:
        self.cli = cli
        self.pack = pack

    def list(self, kind: str, scope: Dict[str, Any]) -> List[Record]:
        argv = self.pack.render(kind, "list", scope)
        out = self.cli.run_json(argv)
        if out is None:
            return []
        if not isinstance(out, list):
            raise ProviderCommandError(argv, 0, f"expected a JSON list of {kind} records")
        return out

    def find(self, kind: str, name: str, scope: Dict[str, Any]) -> Optional[ResourceId]:
        rc = self.pack.for_kind(kind)
        record = find_by_name(self.list(kind, scope), name, kind=kind, name_key=rc.name_key)
        if record is None:
            return None
        return self._to_id(kind, record, scope)

    def find_id(self, kind: str, resource_id: str, scope: Dict[str, Any]) -> Optional[ResourceId]:
        rc = self.pack.for_kind(kind)
        record = find_by_id(self.list(kind, scope), resource_id, id_key=rc.id_key)
        if record is None:
            return None
        return self._to_id(kind, record, scope)

    def create(self, kind: str, values: Dict[str, Any]) -> ResourceId:
        logger.info(f"Creating {kind} '{values.get('name', '')}'")
        out = self.cli.run_json(self.pack.render(kind, "create", values))
        record: Record = out if isinstance(out, dict) else {}
        if not record.get(self.pack.for_kind(kind).name_key):
            record = {**record, self.pack.for_kind(kind).name_key: values.get("name", "")}
        return self._to_id(kind, record, values)

    def submit(self, values: Dict[str, Any]) -> str:
        out = self.cli.run_json(self.pack.render("job", "submit", values))
        rc = self.pack.for_kind("job")
        run_id = str((out or {}).get(rc.id_key, "")) if isinstance(out, dict) else ""
        return run_id

    def _to_id(self, kind: str, record: Record, scope: Dict[str, Any]) -> ResourceId:
        rc = self.pack.for_kind(kind)
        name = str(record.get(rc.name_key, ""))
        parent = scope.get("workspace") or scope.get("resource_group") or None
        if kind == "resource_group":
            parent = scope.get("subscription") or None
        return ResourceId(kind=kind, name=name, id=str(record.get(rc.id_key) or name), parent=parent)
