from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .errors import AmbiguousResourceError

Record = Dict[str, Any]


def find_by_name(records: Iterable[Record], name: str, *, kind: str, name_key: str = "name") -> Optional[Record]:
    """
    Exact, case-sensitive match on `name_key`.

    Zero matches -> None. More than one match -> AmbiguousResourceError;
    the caller never gets an arbitrary pick.
    """
    hits: List[Record] = [r for r in records if isinstance(r, dict) and r.get(name_key) == name]
    if not hits:
        return None
    if len(hits) > 1:
        raise AmbiguousResourceError(kind, name, len(hits))
    return hits[0]


def find_by_id(records: Iterable[Record], resource_id: str, *, id_key: str = "id") -> Optional[Record]:
    for r in records:
        if isinstance(r, dict) and r.get(id_key) == resource_id:
            return r
    return None


def names_of(records: Iterable[Record], name_key: str = "name") -> List[str]:
    return sorted({str(r[name_key]) for r in records if isinstance(r, dict) and r.get(name_key)})
